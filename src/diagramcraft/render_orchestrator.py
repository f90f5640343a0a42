import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from .render_engine import EngineOutcome, RenderEngine

logger = logging.getLogger(__name__)

MIN_ZOOM = 0.5
MAX_ZOOM = 2.0
ZOOM_STEP = 0.1
DEFAULT_ZOOM = 1.0


class RenderState(str, Enum):
    IDLE = "idle"
    RENDERING = "rendering"
    RENDERED = "rendered"
    FAILED = "failed"


@dataclass(frozen=True)
class RenderResult:
    sequence: int
    request_id: str
    text: str
    state: RenderState
    svg: Optional[str] = None
    error: Optional[str] = None
    stale: bool = False

    @property
    def ok(self) -> bool:
        return self.state == RenderState.RENDERED


class RenderOrchestrator:
    """Issues render requests and keeps the latest issued one authoritative.

    Requests are never cancelled. Each one carries a sequence number and a
    completion only updates ``last_svg``/``state`` when its number is still
    the latest issued; older completions come back marked ``stale``.
    """

    def __init__(self, engine: RenderEngine) -> None:
        self.engine = engine
        self.state = RenderState.IDLE
        self.last_svg: Optional[str] = None
        self.last_svg_text: Optional[str] = None
        self.last_error: Optional[str] = None
        self.last_result: Optional[RenderResult] = None
        self.zoom = DEFAULT_ZOOM
        self._issued = 0

    @property
    def latest_sequence(self) -> int:
        return self._issued

    @property
    def has_graphic(self) -> bool:
        return self.last_svg is not None

    async def render(self, text: str) -> RenderResult:
        self._issued += 1
        sequence = self._issued
        request_id = f"diagram_{sequence}"
        self.state = RenderState.RENDERING

        try:
            outcome = await self.engine.render(request_id, text)
        except Exception as exc:
            logger.exception("Render engine raised for %s", request_id)
            outcome = EngineOutcome(error=str(exc) or exc.__class__.__name__)

        if outcome.ok:
            result = RenderResult(sequence, request_id, text, RenderState.RENDERED, svg=outcome.svg)
        else:
            error = outcome.error or "Rendering engine returned no output."
            result = RenderResult(sequence, request_id, text, RenderState.FAILED, error=error)

        if sequence != self._issued:
            logger.debug("Discarding stale render %s (latest is %d)", request_id, self._issued)
            return replace(result, stale=True)

        self.state = result.state
        self.last_result = result
        if result.ok:
            self.last_svg = result.svg
            self.last_svg_text = result.text
            self.last_error = None
        else:
            self.last_error = result.error
        return result

    def invalidate(self) -> None:
        """Make every in-flight request stale."""
        self._issued += 1
        if self.state == RenderState.RENDERING:
            self.state = RenderState.IDLE

    def clear(self) -> None:
        self.invalidate()
        self.state = RenderState.IDLE
        self.last_svg = None
        self.last_svg_text = None
        self.last_error = None
        self.last_result = None

    def set_zoom(self, value: float) -> float:
        self.zoom = round(min(MAX_ZOOM, max(MIN_ZOOM, float(value))), 1)
        return self.zoom

    def zoom_in(self) -> float:
        return self.set_zoom(self.zoom + ZOOM_STEP)

    def zoom_out(self) -> float:
        return self.set_zoom(self.zoom - ZOOM_STEP)

    def reset_zoom(self) -> float:
        return self.set_zoom(DEFAULT_ZOOM)

    def view(self) -> Optional[str]:
        if self.last_svg is None:
            return None
        return apply_zoom(self.last_svg, self.zoom)


def apply_zoom(svg: str, zoom: float) -> str:
    return (
        f'<div class="diagram-view" '
        f'style="transform: scale({zoom:.1f}); transform-origin: top left;">'
        f"{svg}</div>"
    )
