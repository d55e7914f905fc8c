# tests/inspection_canvas/conftest.py
"""Fixtures for inspection canvas tests."""
from __future__ import annotations

import io
import sys
from pathlib import Path
from typing import Callable

import pytest
from PIL import Image


def pytest_configure() -> None:
    # Ensure `niceinspect/src` is importable when running tests from the repo root.
    repo_root = Path(__file__).resolve().parents[2]
    src_dir = repo_root / "src"
    if src_dir.exists() and str(src_dir) not in sys.path:
        sys.path.insert(0, str(src_dir))


def _png_bytes(width: int, height: int, color: str = "gray") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_bytes() -> Callable[..., bytes]:
    """Factory for small in-memory PNG files."""
    return _png_bytes


@pytest.fixture
def inline_io_bound(monkeypatch: pytest.MonkeyPatch) -> None:
    """Run `run.io_bound` work in a plain worker thread, no NiceGUI app needed."""
    import asyncio
    from types import SimpleNamespace

    import niceinspect.inspection_canvas.image_loader as il_mod

    async def _io_bound(callback, *args, **kwargs):
        return await asyncio.to_thread(callback, *args, **kwargs)

    monkeypatch.setattr(il_mod, "run", SimpleNamespace(io_bound=_io_bound), raising=True)
