import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .history import DEFAULT_HISTORY_LIMIT
from .render_engine import DEFAULT_MERMAID_INK_URL, DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    data_dir: Path = Path(".diagram_data")
    history_limit: int = DEFAULT_HISTORY_LIMIT
    live_render: bool = True
    mermaid_ink_url: str = DEFAULT_MERMAID_INK_URL
    render_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    log_level: str = "INFO"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ
    defaults = Settings()
    return Settings(
        data_dir=Path(str(env.get("DIAGRAMCRAFT_DATA_DIR", "")).strip() or defaults.data_dir),
        history_limit=_positive_int(env, "DIAGRAMCRAFT_HISTORY_LIMIT", defaults.history_limit),
        live_render=_flag(env, "DIAGRAMCRAFT_LIVE_RENDER", defaults.live_render),
        mermaid_ink_url=str(env.get("MERMAID_INK_URL", "")).strip() or defaults.mermaid_ink_url,
        render_timeout_seconds=_positive_float(
            env, "DIAGRAMCRAFT_RENDER_TIMEOUT", defaults.render_timeout_seconds
        ),
        log_level=str(env.get("DIAGRAMCRAFT_LOG_LEVEL", "")).strip().upper() or defaults.log_level,
    )


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = str(env.get(name, "")).strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer", name, raw)
        return default
    if value < 1:
        logger.warning("Ignoring %s=%r: must be positive", name, raw)
        return default
    return value


def _positive_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = str(env.get(name, "")).strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number", name, raw)
        return default
    return value if value > 0 else default


def _flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = str(env.get(name, "")).strip().lower()
    if raw in TRUE_VALUES:
        return True
    if raw in FALSE_VALUES:
        return False
    return default
