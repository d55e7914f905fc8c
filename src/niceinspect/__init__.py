"""
niceinspect: NiceGUI inspection canvas for annotating images with points.

This package provides:
- InspectionCanvas: background image with wheel/drag/pinch zoom and pan,
  point markers, one-shot insert mode and a per-marker action menu
- Pure viewport / gesture models usable without a UI
- Logging utilities for library and application use

For logging configuration in standalone scripts/demos:
    ```python
    from niceinspect.utils.logging import configure_logging
    configure_logging(level="DEBUG")
    ```

When used as a library, logging is handled by the parent application's
configuration.
"""

import logging

from niceinspect.utils.logging import configure_logging, get_logger

from niceinspect.inspection_canvas import (
    InspectionCanvas,
    InspectionCanvasConfig,
    Point,
)

# NullHandler so records don't reach the root logger's last-resort handler
# when no application configured logging.
_logger = logging.getLogger("niceinspect")
if not _logger.handlers:
    _logger.addHandler(logging.NullHandler())

__all__ = [
    "InspectionCanvas",
    "InspectionCanvasConfig",
    "Point",
    "configure_logging",
    "get_logger",
]

__version__ = "0.1.0"
