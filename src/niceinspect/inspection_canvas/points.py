# niceinspect/src/niceinspect/inspection_canvas/points.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, TypedDict, Union

from .viewport import Vec2


class PointDict(TypedDict, total=False):
    id: str
    name: str
    image: Optional[str]
    x: float
    y: float


class NormalizedXY(TypedDict):
    x: float
    y: float


@dataclass(frozen=True)
class Point:
    """Caller-owned annotation point.

    `position` is normalized to the background image's intrinsic size.
    Stored points are trusted as-is; only new positions are range checked.
    """

    id: str
    name: str
    position: Vec2
    icon: Optional[str] = None

    @property
    def x(self) -> float:
        return self.position.x

    @property
    def y(self) -> float:
        return self.position.y

    def to_dict(self) -> PointDict:
        d: PointDict = {
            "id": self.id,
            "name": self.name,
            "x": self.position.x,
            "y": self.position.y,
        }
        if self.icon is not None:
            d["image"] = self.icon
        return d

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Point":
        try:
            point_id = str(data["id"])
            x = float(data["x"])
            y = float(data["y"])
        except KeyError as e:
            raise ValueError(f"point is missing required key {e.args[0]!r}: {dict(data)!r}") from e
        icon = data.get("image", data.get("icon"))
        return cls(
            id=point_id,
            name=str(data.get("name", point_id)),
            position=Vec2(x, y),
            icon=str(icon) if icon else None,
        )


PointLike = Union[Point, Mapping[str, Any]]


def is_normalized(p: Vec2) -> bool:
    """True if p lies in the closed unit square."""
    return 0.0 <= p.x <= 1.0 and 0.0 <= p.y <= 1.0


def coerce_points(points: Iterable[PointLike] | None) -> List[Point]:
    """Accept Points or point dicts; reject duplicate ids."""
    result: List[Point] = []
    seen: set[str] = set()
    for p in points or []:
        point = p if isinstance(p, Point) else Point.from_dict(p)
        if point.id in seen:
            raise ValueError(f"duplicate point id: {point.id!r}")
        seen.add(point.id)
        result.append(point)
    return result
