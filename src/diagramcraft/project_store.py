import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from .errors import ProjectNotFoundError
from .storage import ProjectRecord, ProjectStorage
from .templates import DEFAULT_DIAGRAM, DEFAULT_PROJECT_NAME

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

RECORD_FIELDS = ("id", "name", "source_text", "created_at", "updated_at")


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    source_text: str
    created_at: datetime
    updated_at: datetime

    @property
    def file_name(self) -> str:
        return f"{self.name}.mmd"


class ProjectStore:
    """Owns the project set and the active project.

    Every mutation is flushed in full to ``storage`` before it returns. A
    failed save raises and leaves the in-memory set untouched.
    """

    def __init__(self, storage: ProjectStorage, clock: Optional[Clock] = None) -> None:
        self.storage = storage
        self._clock = clock or _now_utc
        self._projects: List[Project] = []
        self._issued_ids: Set[str] = set()
        self._active_id: Optional[str] = None
        self._rehydrate()

    @property
    def active(self) -> Project:
        return self._find(self._active_id or "")

    @property
    def active_id(self) -> str:
        return self.active.id

    def list_projects(self) -> List[Project]:
        return list(self._projects)

    def get(self, project_id: str) -> Optional[Project]:
        for project in self._projects:
            if project.id == project_id:
                return project
        return None

    def create(self, name: str = DEFAULT_PROJECT_NAME, source_text: str = "") -> Project:
        now = self._clock()
        project = Project(
            id=self._new_id(),
            name=name.strip() or DEFAULT_PROJECT_NAME,
            source_text=source_text,
            created_at=now,
            updated_at=now,
        )
        self._commit(self._projects + [project], project.id)
        logger.info("Created project %s (%s)", project.id, project.name)
        return project

    def select(self, project_id: str) -> Project:
        project = self._find(project_id)
        self._active_id = project.id
        logger.debug("Selected project %s", project.id)
        return project

    def rename(self, project_id: str, new_name: str) -> Project:
        project = self._find(project_id)
        updated = replace(
            project,
            name=new_name.strip() or project.name,
            updated_at=self._touch(project),
        )
        self._replace(updated)
        return updated

    def update_text(self, project_id: str, text: str) -> Project:
        project = self._find(project_id)
        updated = replace(project, source_text=text, updated_at=self._touch(project))
        self._replace(updated)
        return updated

    def delete(self, project_id: str) -> Project:
        target = self._find(project_id)
        remaining = [p for p in self._projects if p.id != project_id]
        if not remaining:
            logger.info("Last project deleted; synthesizing default project")
            remaining.append(self._default_project())
        active_id = self._active_id
        if active_id == project_id:
            active_id = remaining[0].id
        self._commit(remaining, active_id)
        logger.info("Deleted project %s (%s)", target.id, target.name)
        return target

    def _rehydrate(self) -> None:
        try:
            records = self.storage.load()
        except (OSError, ValueError) as exc:
            logger.warning("Stored projects are unreadable, starting fresh: %s", exc)
            records = None

        projects: List[Project] = []
        for record in records or []:
            try:
                project = project_from_record(record)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Dropping malformed project record: %s", exc)
                continue
            if project.id in self._issued_ids:
                logger.warning("Dropping duplicate project id %s", project.id)
                continue
            self._issued_ids.add(project.id)
            projects.append(project)

        if projects:
            self._projects = projects
            self._active_id = projects[0].id
            return

        default = self._default_project()
        self._projects = [default]
        self._active_id = default.id
        try:
            self._flush(self._projects)
        except OSError as exc:
            logger.warning("Could not store the default project: %s", exc)

    def _default_project(self) -> Project:
        now = self._clock()
        return Project(
            id=self._new_id(),
            name=DEFAULT_PROJECT_NAME,
            source_text=DEFAULT_DIAGRAM,
            created_at=now,
            updated_at=now,
        )

    def _find(self, project_id: str) -> Project:
        project = self.get(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def _replace(self, updated: Project) -> None:
        self._commit([updated if p.id == updated.id else p for p in self._projects], self._active_id)

    def _touch(self, project: Project) -> datetime:
        return max(self._clock(), project.created_at)

    def _new_id(self) -> str:
        while True:
            candidate = f"p_{uuid.uuid4().hex[:12]}"
            if candidate not in self._issued_ids:
                self._issued_ids.add(candidate)
                return candidate

    def _commit(self, projects: List[Project], active_id: Optional[str]) -> None:
        # State only changes once storage has accepted it.
        self._flush(projects)
        self._projects = projects
        self._active_id = active_id

    def _flush(self, projects: List[Project]) -> None:
        self.storage.save([project_to_record(p) for p in projects])


def project_to_record(project: Project) -> ProjectRecord:
    return {
        "id": project.id,
        "name": project.name,
        "source_text": project.source_text,
        "created_at": _to_iso(project.created_at),
        "updated_at": _to_iso(project.updated_at),
    }


def project_from_record(record: Dict[str, Any]) -> Project:
    if not isinstance(record, dict):
        raise TypeError(f"Project record must be an object, got {type(record).__name__}")
    missing = [name for name in RECORD_FIELDS if name not in record]
    if missing:
        raise KeyError(f"Project record is missing fields: {', '.join(missing)}")
    for name in RECORD_FIELDS:
        if not isinstance(record[name], str):
            raise TypeError(f"Project field {name!r} must be a string")
    if not record["id"].strip():
        raise ValueError("Project id is empty")
    created_at = _from_iso(record["created_at"])
    updated_at = _from_iso(record["updated_at"])
    return Project(
        id=record["id"],
        name=record["name"],
        source_text=record["source_text"],
        created_at=created_at,
        updated_at=max(updated_at, created_at),
    )


def _now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


def _to_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _from_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
