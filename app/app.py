from pathlib import Path
import asyncio
import html
import logging
import sys

import streamlit as st
import streamlit.components.v1 as components

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

from src.diagramcraft.config import load_settings  # noqa: E402
from src.diagramcraft.edit_session import EditSession  # noqa: E402
from src.diagramcraft.errors import ExportPreconditionError, ProjectNotFoundError  # noqa: E402
from src.diagramcraft.render_orchestrator import MAX_ZOOM, MIN_ZOOM, ZOOM_STEP  # noqa: E402
from src.diagramcraft.templates import list_starter_templates  # noqa: E402

SETTINGS = load_settings()
logging.basicConfig(
    level=getattr(logging, SETTINGS.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def run_async(coro):
    return asyncio.run(coro)


def ensure_state() -> EditSession:
    if "edit_session" not in st.session_state:
        session = EditSession.from_settings(SETTINGS, base_dir=ROOT_DIR / SETTINGS.data_dir)
        run_async(session.render())
        st.session_state.edit_session = session
    if "export_notice" not in st.session_state:
        st.session_state.export_notice = ""
    return st.session_state.edit_session


def editor_key(session: EditSession) -> str:
    return f"editor_{session.active_project.id}_{session.editor_revision}"


def on_editor_change(key: str) -> None:
    session: EditSession = st.session_state.edit_session
    run_async(session.edit(st.session_state[key]))


def render_preview(session: EditSession, height: int = 560) -> None:
    view = session.view()
    error = session.last_error
    error_html = ""
    if error:
        error_html = (
            '<pre style="color:#b91c1c;white-space:pre-wrap;font-family:monospace;">'
            f"{html.escape(error)}</pre>"
        )
    body = view or '<p style="color:#64748b;">Nothing rendered yet.</p>'
    components.html(
        f'<div style="padding: 8px; overflow: auto;">{error_html}{body}</div>',
        height=height,
        scrolling=True,
    )


def render_project_sidebar(session: EditSession) -> None:
    st.markdown("### Projects")
    projects = session.store.list_projects()
    lookup = {project.id: project for project in projects}
    ids = [project.id for project in projects]
    active_id = session.active_project.id
    selected_id = st.selectbox(
        "Project",
        ids,
        index=ids.index(active_id),
        format_func=lambda x: lookup[x].name,
        key=f"project_select_{active_id}",
    )
    if selected_id != active_id:
        try:
            run_async(session.select_project(selected_id))
        except ProjectNotFoundError as exc:
            st.error(str(exc))
        st.rerun()

    new_name = st.text_input("Name", value=session.active_project.name, key=f"rename_{active_id}")
    col_rename, col_delete = st.columns(2)
    if col_rename.button("Rename", use_container_width=True):
        session.rename_project(active_id, new_name)
        st.rerun()
    if col_delete.button("Delete", use_container_width=True):
        run_async(session.delete_project(active_id))
        st.rerun()

    st.markdown("### New Project")
    templates = list_starter_templates()
    template_lookup = {tpl["id"]: tpl for tpl in templates}
    template_id = st.selectbox(
        "Start from",
        [""] + [tpl["id"] for tpl in templates],
        format_func=lambda x: template_lookup[x]["name"] if x else "Blank",
        key="new_project_template",
    )
    project_name = st.text_input("New project name", value="Untitled", key="new_project_name")
    if st.button("Create Project", use_container_width=True):
        run_async(session.new_project(project_name, template_id=template_id))
        st.rerun()

    st.markdown("### Rendering")
    live = st.toggle("Live render", value=session.live_mode, help="Render on every edit.")
    session.set_live_mode(live)


def render_history_panel(session: EditSession) -> None:
    versions = session.history.versions()
    st.caption(f"{len(versions)} {'version' if len(versions) == 1 else 'versions'} saved")
    for row in reversed(versions):
        label = f"{row['label']} · {row['timestamp'].astimezone().strftime('%H:%M:%S')}"
        if row["current"]:
            label += " (current)"
        if st.button(label, key=f"version_{row['index']}", help=str(row["preview"]), use_container_width=True):
            run_async(session.restore_version(int(row["index"])))
            st.rerun()


def render_export(session: EditSession) -> None:
    col_svg, col_png, col_src = st.columns(3)
    try:
        svg_artifact = session.export_vector()
    except ExportPreconditionError as exc:
        col_svg.button("Download SVG", disabled=True, help=str(exc), use_container_width=True)
    else:
        col_svg.download_button(
            "Download SVG",
            data=svg_artifact.data,
            file_name=svg_artifact.filename,
            mime=svg_artifact.mime,
            use_container_width=True,
        )

    if col_png.button("Prepare PNG", use_container_width=True):
        try:
            st.session_state.png_artifact = (session.view(), run_async(session.export_raster()))
            st.session_state.export_notice = ""
        except (OSError, ValueError) as exc:
            st.session_state.export_notice = str(exc)
    prepared_view, png_artifact = st.session_state.get("png_artifact", (None, None))
    if png_artifact is not None and prepared_view == session.view():
        col_png.download_button(
            "Download PNG",
            data=png_artifact.data,
            file_name=png_artifact.filename,
            mime=png_artifact.mime,
            use_container_width=True,
        )

    source_artifact = session.export_source()
    col_src.download_button(
        "Export Mermaid (.mmd)",
        data=source_artifact.data,
        file_name=source_artifact.filename,
        mime=source_artifact.mime,
        use_container_width=True,
    )
    if st.session_state.export_notice:
        st.warning(st.session_state.export_notice)


st.set_page_config(layout="wide")
session = ensure_state()

with st.sidebar:
    render_project_sidebar(session)

st.title("DiagramCraft")
st.caption(f"Projects › {session.active_project.file_name}")

col_editor, col_preview = st.columns([2, 3])

with col_editor:
    st.markdown("### Editor")
    key = editor_key(session)
    st.text_area(
        "Mermaid Source",
        value=session.text,
        key=key,
        height=420,
        on_change=on_editor_change,
        args=(key,),
    )
    col_render, col_undo, col_redo = st.columns(3)
    if col_render.button("Render", use_container_width=True):
        run_async(session.render())
        st.rerun()
    if col_undo.button("Undo", disabled=not session.can_undo, help="Undo (Ctrl+Z)", use_container_width=True):
        run_async(session.undo())
        st.rerun()
    if col_redo.button("Redo", disabled=not session.can_redo, help="Redo (Ctrl+Y)", use_container_width=True):
        run_async(session.redo())
        st.rerun()

    with st.expander("Version History", expanded=False):
        render_history_panel(session)

with col_preview:
    st.markdown("### Preview")
    col_out, col_zoom, col_in = st.columns([1, 2, 1])
    if col_out.button("−", help="Zoom out", use_container_width=True):
        session.zoom_out()
    if col_in.button("+", help="Zoom in", use_container_width=True):
        session.zoom_in()
    zoom = col_zoom.slider(
        "Zoom",
        min_value=MIN_ZOOM,
        max_value=MAX_ZOOM,
        step=ZOOM_STEP,
        value=session.renderer.zoom,
        label_visibility="collapsed",
    )
    session.set_zoom(zoom)
    render_preview(session)

    stats = session.stats
    c1, c2, c3 = st.columns(3)
    c1.metric("Type", stats.type.value if stats else "-")
    c2.metric("Complexity", stats.complexity.value if stats else "-")
    c3.metric("Elements", stats.element_count if stats else 0)

    with st.expander("Export", expanded=False):
        render_export(session)
