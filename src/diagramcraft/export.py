import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .errors import ExportPreconditionError, RasterExportError

logger = logging.getLogger(__name__)

VECTOR_FILENAME = "diagram.svg"
RASTER_FILENAME = "diagram.png"
SOURCE_MIME = "text/plain"

# Mermaid source of the rendered graphic -> PNG bytes.
Rasterizer = Callable[[str], Awaitable[bytes]]


@dataclass(frozen=True)
class ExportArtifact:
    filename: str
    mime: str
    data: bytes


def export_as_vector(svg: Optional[str]) -> ExportArtifact:
    if not svg:
        raise ExportPreconditionError()
    return ExportArtifact(filename=VECTOR_FILENAME, mime="image/svg+xml", data=svg.encode("utf-8"))


async def export_as_raster(
    svg: Optional[str],
    source_text: Optional[str],
    rasterizer: Optional[Rasterizer],
) -> ExportArtifact:
    """Rasterize the graphic currently on display.

    ``source_text`` must be the text that produced ``svg``, not the current
    editor text.
    """
    if not svg or source_text is None:
        raise ExportPreconditionError()
    if rasterizer is None:
        raise RasterExportError("PNG export is not available for this renderer.")
    data = await rasterizer(source_text)
    logger.debug("Rasterized diagram (%d bytes)", len(data))
    return ExportArtifact(filename=RASTER_FILENAME, mime="image/png", data=data)


def export_source(project_name: str, text: str) -> ExportArtifact:
    base = project_name.strip() or "diagram"
    return ExportArtifact(filename=f"{base}.mmd", mime=SOURCE_MIME, data=text.encode("utf-8"))
