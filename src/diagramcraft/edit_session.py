import logging
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from .config import Settings
from .diagram_stats import DiagramStats, classify, classify_failure
from .errors import HistoryNoOpError
from .export import ExportArtifact, Rasterizer, export_as_raster, export_as_vector, export_source
from .history import DEFAULT_HISTORY_LIMIT, Clock, HistoryEntry, HistoryStack
from .project_store import Project, ProjectStore
from .render_engine import MermaidInkEngine
from .render_orchestrator import RenderOrchestrator, RenderResult, RenderState
from .storage import JsonFileStorage
from .templates import DEFAULT_PROJECT_NAME, get_starter_template

logger = logging.getLogger(__name__)


class SessionEvent(str, Enum):
    PROJECT = "project"
    TEXT = "text"
    HISTORY = "history"
    RENDER = "render"
    ZOOM = "zoom"
    LIVE_MODE = "live_mode"


Observer = Callable[[SessionEvent, "EditSession"], None]

UNDO = "undo"
REDO = "redo"


def resolve_shortcut(key: str, ctrl: bool = False, meta: bool = False, shift: bool = False) -> Optional[str]:
    if not (ctrl or meta):
        return None
    normalized = (key or "").strip().lower()
    if normalized == "z":
        return REDO if shift else UNDO
    if normalized == "y":
        return REDO
    return None


class EditSession:
    """Binds the active project, its history and the renderer together.

    Observers are called with the event name after each state change; the
    editor widget should reload ``text`` whenever ``editor_revision`` moves.
    """

    def __init__(
        self,
        store: ProjectStore,
        renderer: RenderOrchestrator,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        live_mode: bool = True,
        rasterizer: Optional[Rasterizer] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.store = store
        self.renderer = renderer
        self.history = HistoryStack(seed_text=store.active.source_text, limit=history_limit, clock=clock)
        self.live_mode = live_mode
        self.rasterizer = rasterizer or getattr(renderer.engine, "render_png", None)
        self.stats: Optional[DiagramStats] = None
        self.editor_revision = 0
        self._observers: List[Observer] = []

    @classmethod
    def from_settings(cls, settings: Settings, base_dir: Optional[Path] = None) -> "EditSession":
        storage = JsonFileStorage(base_dir or settings.data_dir)
        engine = MermaidInkEngine(
            base_url=settings.mermaid_ink_url,
            timeout_seconds=settings.render_timeout_seconds,
        )
        return cls(
            store=ProjectStore(storage),
            renderer=RenderOrchestrator(engine),
            history_limit=settings.history_limit,
            live_mode=settings.live_render,
        )

    @property
    def active_project(self) -> Project:
        return self.store.active

    @property
    def text(self) -> str:
        return self.store.active.source_text

    @property
    def render_state(self) -> RenderState:
        return self.renderer.state

    @property
    def last_error(self) -> Optional[str]:
        return self.renderer.last_error

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    async def edit(self, text: str) -> Optional[RenderResult]:
        if text == self.text:
            return None
        self.store.update_text(self.store.active_id, text)
        self.history.push(text)
        self._emit(SessionEvent.TEXT, SessionEvent.HISTORY)
        if self.live_mode:
            return await self.render()
        return None

    async def undo(self) -> Optional[HistoryEntry]:
        try:
            entry = self.history.undo()
        except HistoryNoOpError:
            return None
        await self._load_history_entry(entry)
        return entry

    async def redo(self) -> Optional[HistoryEntry]:
        try:
            entry = self.history.redo()
        except HistoryNoOpError:
            return None
        await self._load_history_entry(entry)
        return entry

    async def restore_version(self, index: int) -> HistoryEntry:
        entry = self.history.restore(index)
        await self._load_history_entry(entry)
        return entry

    async def handle_shortcut(
        self, key: str, ctrl: bool = False, meta: bool = False, shift: bool = False
    ) -> Optional[HistoryEntry]:
        action = resolve_shortcut(key, ctrl=ctrl, meta=meta, shift=shift)
        if action == UNDO:
            return await self.undo()
        if action == REDO:
            return await self.redo()
        return None

    async def render(self) -> RenderResult:
        result = await self.renderer.render(self.text)
        if result.stale:
            return result
        self.stats = classify(result.text) if result.ok else classify_failure()
        self._emit(SessionEvent.RENDER)
        return result

    async def new_project(self, name: str = DEFAULT_PROJECT_NAME, template_id: str = "") -> Project:
        project = self.store.create(name, source_text=get_starter_template(template_id))
        await self._activate(project)
        return project

    async def select_project(self, project_id: str) -> Project:
        project = self.store.select(project_id)
        await self._activate(project)
        return project

    def rename_project(self, project_id: str, new_name: str) -> Project:
        project = self.store.rename(project_id, new_name)
        self._emit(SessionEvent.PROJECT)
        return project

    async def delete_project(self, project_id: str) -> Project:
        was_active = self.store.active_id == project_id
        deleted = self.store.delete(project_id)
        if was_active:
            await self._activate(self.store.active)
        else:
            self._emit(SessionEvent.PROJECT)
        return deleted

    def set_live_mode(self, enabled: bool) -> None:
        if self.live_mode == bool(enabled):
            return
        self.live_mode = bool(enabled)
        self._emit(SessionEvent.LIVE_MODE)

    def toggle_live_mode(self) -> bool:
        self.set_live_mode(not self.live_mode)
        return self.live_mode

    def zoom_in(self) -> float:
        return self._zoom(self.renderer.zoom_in)

    def zoom_out(self) -> float:
        return self._zoom(self.renderer.zoom_out)

    def set_zoom(self, value: float) -> float:
        return self._zoom(lambda: self.renderer.set_zoom(value))

    def reset_zoom(self) -> float:
        return self._zoom(self.renderer.reset_zoom)

    def view(self) -> Optional[str]:
        return self.renderer.view()

    def export_vector(self) -> ExportArtifact:
        return export_as_vector(self.renderer.last_svg)

    async def export_raster(self) -> ExportArtifact:
        return await export_as_raster(self.renderer.last_svg, self.renderer.last_svg_text, self.rasterizer)

    def export_source(self) -> ExportArtifact:
        return export_source(self.active_project.name, self.text)

    async def _activate(self, project: Project) -> None:
        self.renderer.clear()
        self.stats = None
        self.history.reset(project.source_text)
        self.editor_revision += 1
        self._emit(SessionEvent.PROJECT, SessionEvent.HISTORY, SessionEvent.TEXT)
        if project.source_text.strip():
            await self.render()

    async def _load_history_entry(self, entry: HistoryEntry) -> None:
        self.store.update_text(self.store.active_id, entry.source_text)
        self.editor_revision += 1
        self._emit(SessionEvent.TEXT, SessionEvent.HISTORY)
        if self.live_mode:
            await self.render()

    def _zoom(self, change: Callable[[], float]) -> float:
        before = self.renderer.zoom
        after = change()
        if after != before:
            self._emit(SessionEvent.ZOOM)
        return after

    def _emit(self, *events: SessionEvent) -> None:
        for event in events:
            for observer in list(self._observers):
                try:
                    observer(event, self)
                except Exception:
                    logger.exception("Session observer failed on %s", event.value)
