import asyncio
import base64

import httpx
import pytest

from src.diagramcraft.config import Settings
from src.diagramcraft.diagram_stats import Complexity, DiagramType
from src.diagramcraft.edit_session import REDO, UNDO, EditSession, SessionEvent, resolve_shortcut
from src.diagramcraft.errors import (
    ExportPreconditionError,
    HistoryIndexError,
    ProjectNotFoundError,
    RasterExportError,
)
from src.diagramcraft.project_store import ProjectStore
from src.diagramcraft.render_engine import EngineOutcome, MermaidInkEngine
from src.diagramcraft.render_orchestrator import RenderOrchestrator, RenderState
from src.diagramcraft.storage import MemoryStorage
from src.diagramcraft.templates import DEFAULT_DIAGRAM


class StubEngine:
    def __init__(self):
        self.calls = []

    async def render(self, request_id, text):
        self.calls.append(text)
        if "not a diagram" in text or not text.strip():
            return EngineOutcome(error="Syntax error in text")
        return EngineOutcome(svg=f"<svg>{len(self.calls)}</svg>")


class GatedEngine:
    def __init__(self):
        self.gates = {}

    async def render(self, request_id, text):
        gate = self.gates.setdefault(request_id, asyncio.Event())
        await gate.wait()
        return EngineOutcome(svg=f"<svg>{text}</svg>")

    def release(self, request_id):
        self.gates.setdefault(request_id, asyncio.Event()).set()


def _session(engine=None, live_mode=True, rasterizer=None):
    engine = engine or StubEngine()
    store = ProjectStore(MemoryStorage())
    session = EditSession(
        store=store,
        renderer=RenderOrchestrator(engine),
        live_mode=live_mode,
        rasterizer=rasterizer,
    )
    return session, engine


def test_initial_state_tracks_default_project():
    session, _ = _session()
    assert session.text == DEFAULT_DIAGRAM
    assert len(session.history) == 1
    assert session.history.current.source_text == DEFAULT_DIAGRAM
    assert session.stats is None
    assert session.render_state == RenderState.IDLE


def test_live_edit_updates_project_pushes_history_and_renders():
    session, engine = _session()
    result = asyncio.run(session.edit("flowchart TB\nA-->B"))

    assert result.ok
    assert session.text == "flowchart TB\nA-->B"
    assert session.store.active.source_text == "flowchart TB\nA-->B"
    assert len(session.history) == 2
    assert engine.calls == ["flowchart TB\nA-->B"]
    assert session.stats.type == DiagramType.FLOWCHART
    assert session.stats.complexity == Complexity.LOW
    assert session.stats.element_count == 0


def test_manual_mode_edit_does_not_render_until_requested():
    session, engine = _session(live_mode=False)
    assert asyncio.run(session.edit("graph TD\nA[Start]-->B")) is None
    assert engine.calls == []
    assert session.stats is None

    asyncio.run(session.render())
    assert engine.calls == ["graph TD\nA[Start]-->B"]
    assert session.stats.element_count == 1


def test_identical_text_is_not_a_new_version():
    session, engine = _session()
    asyncio.run(session.edit(DEFAULT_DIAGRAM))
    assert len(session.history) == 1
    assert engine.calls == []


def test_render_failure_marks_error_and_keeps_graphic_and_text():
    session, _ = _session()
    asyncio.run(session.edit("graph TD\nA-->B"))
    graphic = session.renderer.last_svg

    result = asyncio.run(session.edit("not a diagram"))

    assert result.state == RenderState.FAILED
    assert session.stats.to_dict() == {"type": "Error", "complexity": "NotApplicable", "element_count": 0}
    assert session.last_error == "Syntax error in text"
    assert session.renderer.last_svg == graphic
    assert session.text == "not a diagram"


def test_undo_redo_round_trip_restores_text_and_editor():
    session, _ = _session()

    async def scenario():
        await session.edit("graph TD\nA-->B")
        await session.edit("graph TD\nA-->B\nB-->C")
        revision = session.editor_revision
        await session.undo()
        assert session.text == "graph TD\nA-->B"
        assert session.editor_revision == revision + 1
        await session.redo()

    asyncio.run(scenario())
    assert session.text == "graph TD\nA-->B\nB-->C"
    assert session.store.active.source_text == "graph TD\nA-->B\nB-->C"


def test_undo_and_redo_are_silent_noops_at_the_ends():
    session, engine = _session()
    assert asyncio.run(session.undo()) is None
    assert asyncio.run(session.redo()) is None
    assert engine.calls == []
    assert session.text == DEFAULT_DIAGRAM


def test_edit_after_undo_drops_redo_branch():
    session, _ = _session()

    async def scenario():
        await session.edit("graph TD\nA")
        await session.edit("graph TD\nB")
        await session.undo()
        await session.edit("graph TD\nC")

    asyncio.run(scenario())
    assert not session.can_redo
    assert [e.source_text for e in session.history.entries] == [DEFAULT_DIAGRAM, "graph TD\nA", "graph TD\nC"]


def test_restore_version_loads_selected_text():
    session, _ = _session()

    async def scenario():
        await session.edit("graph TD\nA")
        await session.edit("graph TD\nB")
        await session.restore_version(0)

    asyncio.run(scenario())
    assert session.text == DEFAULT_DIAGRAM
    assert session.history.cursor == 0
    with pytest.raises(HistoryIndexError):
        asyncio.run(session.restore_version(9))


def test_select_project_resets_history_to_stored_text():
    session, engine = _session()

    async def scenario():
        first = session.active_project
        await session.edit("graph TD\nA-->B")
        other = await session.new_project("Other")
        await session.edit("sequenceDiagram\nA->>B: hi")
        await session.select_project(first.id)
        return other

    asyncio.run(scenario())
    assert session.text == "graph TD\nA-->B"
    assert len(session.history) == 1
    assert session.history.cursor == 0
    assert session.history.current.source_text == "graph TD\nA-->B"
    assert asyncio.run(session.undo()) is None
    assert engine.calls[-1] == "graph TD\nA-->B"


def test_select_missing_project_raises_without_state_change():
    session, _ = _session()
    active = session.active_project
    with pytest.raises(ProjectNotFoundError):
        asyncio.run(session.select_project("p_missing"))
    assert session.active_project == active


def test_new_blank_project_seeds_empty_history_and_clears_graphic():
    session, engine = _session()
    asyncio.run(session.render())
    assert session.renderer.has_graphic

    project = asyncio.run(session.new_project("Blank"))

    assert project.source_text == ""
    assert session.history.current.source_text == ""
    assert len(session.history) == 1
    assert not session.renderer.has_graphic
    assert session.stats is None
    assert len(engine.calls) == 1


def test_new_project_from_template_renders_template():
    session, engine = _session()
    project = asyncio.run(session.new_project("Seq", template_id="api_sequence"))

    assert project.source_text.startswith("sequenceDiagram")
    assert session.history.current.source_text == project.source_text
    assert session.stats.type == DiagramType.SEQUENCE
    assert engine.calls == [project.source_text]


def test_delete_only_project_leaves_default_active():
    session, _ = _session()
    only = session.active_project
    asyncio.run(session.edit("graph TD\nX-->Y"))

    asyncio.run(session.delete_project(only.id))

    projects = session.store.list_projects()
    assert len(projects) == 1
    assert session.active_project.id != only.id
    assert session.text == DEFAULT_DIAGRAM
    assert len(session.history) == 1


def test_delete_inactive_project_keeps_history():
    session, _ = _session()
    first = session.active_project

    async def scenario():
        await session.new_project("Second")
        await session.edit("graph TD\nA")
        await session.delete_project(first.id)

    asyncio.run(scenario())
    assert len(session.history) == 2
    assert session.text == "graph TD\nA"


def test_rename_project_does_not_touch_history_or_render():
    session, engine = _session()
    renamed = session.rename_project(session.active_project.id, "Architecture")
    assert renamed.name == "Architecture"
    assert session.active_project.file_name == "Architecture.mmd"
    assert len(session.history) == 1
    assert engine.calls == []


def test_stale_render_from_previous_project_is_discarded():
    engine = GatedEngine()
    session, _ = _session(engine=engine)

    async def scenario():
        old = asyncio.create_task(session.render())
        await asyncio.sleep(0)
        fresh = asyncio.create_task(session.new_project("Fresh", template_id="order_state"))
        await asyncio.sleep(0)
        engine.release("diagram_3")
        await fresh
        engine.release("diagram_1")
        return await old

    old_result = asyncio.run(scenario())
    assert old_result.stale is True
    assert session.stats.type == DiagramType.STATE
    assert "stateDiagram" in session.renderer.last_svg


def test_rapid_edits_keep_stats_of_latest_issued_render():
    engine = GatedEngine()
    session, _ = _session(engine=engine)

    async def scenario():
        first = asyncio.create_task(session.edit("sequenceDiagram\nA->>B: 1"))
        await asyncio.sleep(0)
        second = asyncio.create_task(session.edit("classDiagram\nclass A"))
        await asyncio.sleep(0)
        engine.release("diagram_2")
        await second
        engine.release("diagram_1")
        await first

    asyncio.run(scenario())
    assert session.stats.type == DiagramType.CLASS
    assert session.renderer.last_svg == "<svg>classDiagram\nclass A</svg>"


def test_zoom_changes_view_without_rendering():
    session, engine = _session()
    asyncio.run(session.render())
    calls = len(engine.calls)

    assert session.zoom_in() == 1.1
    assert session.set_zoom(3) == 2.0
    assert "scale(2.0)" in session.view()
    assert session.reset_zoom() == 1.0
    assert len(engine.calls) == calls


def test_export_vector_before_render_raises():
    session, _ = _session()
    with pytest.raises(ExportPreconditionError):
        session.export_vector()


def test_export_raster_uses_source_of_last_successful_render():
    calls = []

    async def rasterizer(source_text):
        calls.append(source_text)
        return b"png"

    session, _ = _session(rasterizer=rasterizer)
    with pytest.raises(ExportPreconditionError):
        asyncio.run(session.export_raster())
    assert calls == []

    asyncio.run(session.render())
    asyncio.run(session.edit("not a diagram"))
    session.set_zoom(1.5)
    artifact = asyncio.run(session.export_raster())
    assert artifact.filename == "diagram.png"
    assert artifact.data == b"png"
    assert calls == [DEFAULT_DIAGRAM]
    assert session.export_vector().data == session.renderer.last_svg.encode("utf-8")


def test_export_raster_defaults_to_mermaid_ink_png():
    requested = []

    def handler(request):
        kind, encoded = request.url.path.strip("/").split("/", 1)
        requested.append((kind, base64.urlsafe_b64decode(encoded).decode("utf-8")))
        if kind == "img":
            return httpx.Response(200, content=b"\x89PNG\r\n\x1a\nimage")
        return httpx.Response(200, text="<svg><foreignObject>Sensing Layer</foreignObject></svg>")

    engine = MermaidInkEngine(transport=httpx.MockTransport(handler))
    session, _ = _session(engine=engine)
    asyncio.run(session.render())
    artifact = asyncio.run(session.export_raster())

    assert artifact.data.startswith(b"\x89PNG")
    assert requested == [("svg", DEFAULT_DIAGRAM), ("img", DEFAULT_DIAGRAM)]


def test_export_raster_without_png_support_raises():
    session, _ = _session()
    asyncio.run(session.render())
    with pytest.raises(RasterExportError):
        asyncio.run(session.export_raster())


def test_export_source_uses_project_file_name():
    session, _ = _session()
    session.rename_project(session.active_project.id, "Layers")
    artifact = session.export_source()
    assert artifact.filename == "Layers.mmd"
    assert artifact.data == DEFAULT_DIAGRAM.encode("utf-8")


@pytest.mark.parametrize(
    "key, ctrl, meta, shift, expected",
    [
        ("z", True, False, False, UNDO),
        ("Z", False, True, False, UNDO),
        ("y", True, False, False, REDO),
        ("z", True, False, True, REDO),
        ("z", False, False, False, None),
        ("x", True, False, False, None),
    ],
)
def test_resolve_shortcut(key, ctrl, meta, shift, expected):
    assert resolve_shortcut(key, ctrl=ctrl, meta=meta, shift=shift) == expected


def test_shortcuts_drive_undo_and_redo():
    session, _ = _session()

    async def scenario():
        await session.edit("graph TD\nA")
        await session.handle_shortcut("z", ctrl=True)
        assert session.text == DEFAULT_DIAGRAM
        await session.handle_shortcut("z", meta=True, shift=True)
        assert session.text == "graph TD\nA"
        assert await session.handle_shortcut("y", ctrl=True) is None

    asyncio.run(scenario())


def test_observers_receive_events_and_can_unsubscribe():
    session, _ = _session()
    events = []
    unsubscribe = session.subscribe(lambda event, s: events.append(event))

    asyncio.run(session.edit("graph TD\nA"))
    assert events == [SessionEvent.TEXT, SessionEvent.HISTORY, SessionEvent.RENDER]

    session.toggle_live_mode()
    assert events[-1] == SessionEvent.LIVE_MODE
    assert session.live_mode is False

    unsubscribe()
    session.zoom_in()
    assert SessionEvent.ZOOM not in events


def test_failing_observer_does_not_break_session():
    session, _ = _session()
    seen = []

    def broken(event, s):
        raise RuntimeError("observer bug")

    session.subscribe(broken)
    session.subscribe(lambda event, s: seen.append(event))

    asyncio.run(session.edit("graph TD\nA"))
    assert session.text == "graph TD\nA"
    assert SessionEvent.RENDER in seen


def test_from_settings_builds_file_backed_session(tmp_path):
    settings = Settings(data_dir=tmp_path, history_limit=5, live_render=False)
    session = EditSession.from_settings(settings)

    assert session.history.limit == 5
    assert session.live_mode is False
    assert (tmp_path / "diagramcraft.projects.json").exists()
