from __future__ import annotations

"""Project registry: one localization project per source map.

Projects are persisted in ``projects.json`` inside the registry folder.  The
registry guarantees that a normalised (real) map path belongs to at most one
project; callers that only want "the project of this map" use
:meth:`ProjectRegistry.get_or_create`.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
import json
import logging
import os
from pathlib import Path
import threading
from typing import Dict, Iterable, List, Optional, Union

from dita_l10n.core.utils import atomic_write_bytes

logger = logging.getLogger(__name__)

__all__ = ["Project", "ProjectRegistry", "normalise_map_path"]

PROJECTS_FILE = "projects.json"

# Per-language status values
UNTRANSLATED = "untranslated"
IN_PROGRESS = "in-progress"
COMPLETED = "completed"


def normalise_map_path(map_path: Union[str, Path]) -> str:
    """Return the canonical identity of *map_path* (absolute, symlinks resolved)."""
    return os.path.normcase(os.path.realpath(os.path.expanduser(str(map_path))))


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass
class Project:
    """A localization project bound to one DITA map.

    Attributes
    ----------
    id
        Positive integer, unique in the registry.
    map_path
        Normalised path of the root map (see :func:`normalise_map_path`).
    language_status
        Target language code -> ``untranslated`` / ``in-progress`` /
        ``completed``.
    """

    id: int
    title: str
    map_path: str
    source_language: str
    target_languages: List[str] = field(default_factory=list)
    description: str = ""
    created: str = field(default_factory=_now)
    updated: str = field(default_factory=_now)
    language_status: Dict[str, str] = field(default_factory=dict)

    def set_status(self, language: str, status: str) -> None:
        if status not in (UNTRANSLATED, IN_PROGRESS, COMPLETED):
            raise ValueError(f"Unknown language status: {status}")
        self.language_status[language] = status
        self.updated = _now()

    @classmethod
    def from_dict(cls, data: Dict) -> "Project":
        return cls(
            id=int(data["id"]),
            title=data.get("title", ""),
            map_path=data["map_path"],
            source_language=data.get("source_language", ""),
            target_languages=list(data.get("target_languages", [])),
            description=data.get("description", ""),
            created=data.get("created") or _now(),
            updated=data.get("updated") or _now(),
            language_status=dict(data.get("language_status", {})),
        )


class ProjectRegistry:
    """JSON-backed store of :class:`Project` records.

    Every call re-reads ``projects.json`` so several registries (or
    processes) pointed at one folder see each other's changes.
    """

    def __init__(self, projects_dir: Union[str, Path]) -> None:
        self.projects_dir = Path(projects_dir)
        self._file = self.projects_dir / PROJECTS_FILE
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def list(self) -> List[Project]:
        return sorted(self._load().values(), key=lambda p: p.id)

    def get(self, project_id: int) -> Optional[Project]:
        return self._load().get(int(project_id))

    def find(self, map_path: Union[str, Path]) -> Optional[Project]:
        """Return the project of *map_path*, or None."""
        key = normalise_map_path(map_path)
        for project in self._load().values():
            if project.map_path == key:
                return project
        return None

    def create(self, map_path: Union[str, Path], target_languages: Iterable[str],
               title: Optional[str] = None, source_language: str = "en-US",
               description: str = "") -> Project:
        """Register a new project for *map_path*.

        Raises:
            ValueError: If a project already exists for the same normalised path
        """
        key = normalise_map_path(map_path)
        with self._lock:
            projects = self._load()
            for existing in projects.values():
                if existing.map_path == key:
                    raise ValueError(f"Project {existing.id} already exists for {key}")
            project = Project(
                id=max(projects, default=0) + 1,
                title=title or Path(key).stem,
                map_path=key,
                source_language=source_language,
                target_languages=list(dict.fromkeys(target_languages)),
                description=description,
            )
            project.language_status = {lang: UNTRANSLATED for lang in project.target_languages}
            projects[project.id] = project
            self._save(projects)
        logger.info("Project created id=%d map=%s", project.id, key)
        return project

    def get_or_create(self, map_path: Union[str, Path], target_languages: Iterable[str],
                      **kwargs) -> Project:
        project = self.find(map_path)
        if project is not None:
            return project
        return self.create(map_path, target_languages, **kwargs)

    def update(self, project: Project) -> None:
        """Persist changes made to *project*."""
        with self._lock:
            projects = self._load()
            if project.id not in projects:
                raise KeyError(project.id)
            project.updated = _now()
            projects[project.id] = project
            self._save(projects)

    def set_language_status(self, map_path: Union[str, Path], language: str,
                            status: str) -> Optional[Project]:
        """Record *status* for *language* on the project of *map_path*.

        A language the project did not list yet is added to its targets.
        Returns the updated project, or None when *map_path* has no project.
        """
        key = normalise_map_path(map_path)
        with self._lock:
            projects = self._load()
            project = next((p for p in projects.values() if p.map_path == key), None)
            if project is None:
                return None
            if language not in project.target_languages:
                project.target_languages.append(language)
            project.set_status(language, status)
            self._save(projects)
        logger.debug("Project %d: %s -> %s", project.id, language, status)
        return project

    def remove(self, project_id: int) -> bool:
        with self._lock:
            projects = self._load()
            if projects.pop(int(project_id), None) is None:
                return False
            self._save(projects)
        logger.info("Project removed id=%s", project_id)
        return True

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def _load(self) -> Dict[int, Project]:
        if not self._file.exists():
            return {}
        try:
            with open(self._file, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.error("Failed to load projects from %s: %s", self._file, exc)
            raise
        projects = [Project.from_dict(item) for item in data.get("projects", [])]
        return {project.id: project for project in projects}

    def _save(self, projects: Dict[int, Project]) -> None:
        payload = {"projects": [asdict(p) for p in sorted(projects.values(), key=lambda p: p.id)]}
        atomic_write_bytes(self._file, json.dumps(payload, indent=2).encode("utf-8"))
        logger.debug("Saved %d project(s) to %s", len(projects), self._file)
