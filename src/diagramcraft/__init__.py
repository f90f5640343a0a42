from importlib import import_module
from typing import Any

__all__ = [
    "EditSession",
    "HistoryStack",
    "ProjectStore",
    "RenderOrchestrator",
    "classify",
    "load_settings",
]

_EXPORTS = {
    "EditSession": ".edit_session",
    "HistoryStack": ".history",
    "ProjectStore": ".project_store",
    "RenderOrchestrator": ".render_orchestrator",
    "classify": ".diagram_stats",
    "load_settings": ".config",
}


def __getattr__(name: str) -> Any:
    if name in _EXPORTS:
        module = import_module(_EXPORTS[name], __name__)
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
