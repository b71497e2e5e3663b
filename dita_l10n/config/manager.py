from __future__ import annotations

"""Configuration loading and access helpers.

This module centralises all declarative rules (segmentation element names,
profiling attributes, engine defaults, logging).  It loads YAML files packaged
with *dita_l10n* and optionally merges them with user overrides located in
the user configuration directory.

On Windows: ``%LOCALAPPDATA%\\DitaL10n\\config\\*.yml``
On Unix: ``~/.dita_l10n/*.yml``
``$DITA_L10N_CONFIG_DIR`` takes precedence on every platform.

Nothing here is process-wide: callers build a :class:`ConfigManager`, take the
:class:`EngineConfig` value it produces and pass it explicitly to the engine.
"""

from dataclasses import dataclass, replace
from importlib import resources
import logging
import os
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

__all__ = ["ConfigManager", "EngineConfig"]


def _get_user_config_dir() -> Path:
    """Get the user configuration directory."""
    override = os.environ.get("DITA_L10N_CONFIG_DIR")
    if override:
        return Path(override)
    if os.name == "nt":
        local_appdata = os.environ.get("LOCALAPPDATA")
        if local_appdata:
            return Path(local_appdata) / "DitaL10n" / "config"
        return Path.home() / "AppData" / "Local" / "DitaL10n" / "config"
    return Path.home() / ".dita_l10n"


_BODY_ELEMENTS = frozenset({"body", "conbody", "taskbody", "refbody", "glossBody", "troublebody"})

_SEGMENT_ELEMENTS = frozenset({
    "title", "navtitle", "searchtitle", "linktext", "shortdesc", "abstract",
    "p", "lq", "note", "li", "sli", "dt", "dd", "entry", "stentry",
    "cmd", "info", "stepresult", "stepxmp", "context", "result", "prereq",
    "postreq", "section", "example", "desc", "pre", "glossterm", "glossdef",
    "linkinfo", "proptype", "propvalue", "propdesc", "choice", "choptionhd",
    "chdeschd", "choption", "chdesc", "cause", "remedy", "responsibleParty",
})

_INLINE_ELEMENTS = frozenset({
    "b", "i", "u", "sup", "sub", "tt", "line-through", "overline", "ph",
    "codeph", "keyword", "term", "q", "cite", "xref", "image", "alt",
    "uicontrol", "menucascade", "wintitle", "filepath", "userinput",
    "systemoutput", "varname", "option", "parmname", "apiname", "cmdname",
    "msgph", "msgnum", "synph", "tm", "indexterm", "data", "text",
    "draft-comment", "required-cleanup", "foreign", "unknown", "fn",
})

_UNTRANSLATABLE_ELEMENTS = frozenset({
    "codeblock", "draft-comment", "required-cleanup", "prolog", "data",
    "foreign", "unknown", "coords", "shape", "msgblock", "screen",
})

_REFERENCE_ELEMENTS = frozenset({
    "topicref", "chapter", "appendix", "appendices", "part", "frontmatter",
    "backmatter", "notices", "glossref", "mapref", "keydef", "topichead",
    "topicgroup", "anchorref", "topicset", "topicsetref",
})

_PROFILING_ATTRIBUTES = ("audience", "platform", "product", "otherprops", "props", "deliveryTarget")

_ASSET_ATTRIBUTES = (("image", "href"), ("object", "data"))


@dataclass(frozen=True)
class EngineConfig:
    """Immutable engine settings handed to every extraction/merge call.

    The defaults mirror the packaged YAML files so that ``EngineConfig()`` is
    usable on its own (unit tests, scripts); :meth:`ConfigManager.engine_config`
    applies packaged files and user overrides on top.
    """

    source_language: str = "en-US"
    xliff_version: str = "1.2"
    max_workers: int = 4
    pretty_print: bool = False
    body_elements: FrozenSet[str] = _BODY_ELEMENTS
    segment_elements: FrozenSet[str] = _SEGMENT_ELEMENTS
    inline_elements: FrozenSet[str] = _INLINE_ELEMENTS
    untranslatable_elements: FrozenSet[str] = _UNTRANSLATABLE_ELEMENTS
    reference_elements: FrozenSet[str] = _REFERENCE_ELEMENTS
    profiling_attributes: Tuple[str, ...] = _PROFILING_ATTRIBUTES
    asset_attributes: Tuple[Tuple[str, str], ...] = _ASSET_ATTRIBUTES
    topic_extensions: Tuple[str, ...] = (".dita", ".xml")
    map_extensions: Tuple[str, ...] = (".ditamap", ".bookmap")

    def with_overrides(self, **changes: Any) -> "EngineConfig":
        """Return a copy with *changes* applied (convenience for tests and CLI flags)."""
        return replace(self, **changes)


class ConfigManager:
    """Loads and exposes configuration sections as dictionaries."""

    _DEFAULT_FILENAMES = {
        "segmentation": "segmentation.yml",
        "engine": "engine.yml",
        "logging": "logging.yml",
    }

    def __init__(self, user_config_dir: Optional[Path] = None) -> None:
        self._user_config_dir = Path(user_config_dir) if user_config_dir else _get_user_config_dir()
        self._data: Dict[str, Dict[str, Any]] = {}
        self._load()

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------
    @property
    def user_config_dir(self) -> Path:
        return self._user_config_dir

    def get_segmentation(self) -> Dict[str, Any]:
        return self._data.get("segmentation", {})

    def get_engine(self) -> Dict[str, Any]:
        return self._data.get("engine", {})

    def get_logging_config(self) -> Dict[str, Any]:
        return self._data.get("logging", {})

    def engine_config(self) -> EngineConfig:
        """Build the :class:`EngineConfig` value from the loaded sections."""
        seg = self.get_segmentation()
        eng = self.get_engine()
        base = EngineConfig()
        changes: Dict[str, Any] = {}

        for key in ("body_elements", "segment_elements", "inline_elements",
                    "untranslatable_elements", "reference_elements"):
            if seg.get(key):
                changes[key] = frozenset(str(v) for v in seg[key])
        if seg.get("profiling_attributes"):
            changes["profiling_attributes"] = tuple(str(v) for v in seg["profiling_attributes"])
        if isinstance(seg.get("asset_attributes"), dict):
            changes["asset_attributes"] = tuple(
                (str(el), str(attr)) for el, attr in seg["asset_attributes"].items()
            )

        if eng.get("source_language"):
            changes["source_language"] = str(eng["source_language"])
        if eng.get("xliff_version"):
            changes["xliff_version"] = str(eng["xliff_version"])
        if eng.get("max_workers") is not None:
            try:
                changes["max_workers"] = max(1, int(eng["max_workers"]))
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid max_workers value: %r", eng["max_workers"])
        if eng.get("pretty_print") is not None:
            changes["pretty_print"] = bool(eng["pretty_print"])

        return replace(base, **changes)

    # ------------------------------------------------------------------
    # Internal loading logic
    # ------------------------------------------------------------------
    def _load(self) -> None:
        startup_summary = []

        for key, filename in self._DEFAULT_FILENAMES.items():
            merged_cfg: Dict[str, Any] = {}
            status = "missing"

            # 1. load packaged default
            try:
                text = resources.files(__package__).joinpath(filename).read_text(encoding="utf-8")
                merged_cfg.update(yaml.safe_load(text) or {})
                status = "loaded"
            except (FileNotFoundError, OSError):
                logger.error("Missing packaged config for %s (%s)", key, filename)
            except yaml.YAMLError as exc:
                logger.error("Invalid packaged config for %s (%s): %s", key, filename, exc)
                status = "invalid"

            # 2. load user overrides
            user_path = self._user_config_dir / filename
            if user_path.exists():
                try:
                    user_data = yaml.safe_load(user_path.read_text(encoding="utf-8")) or {}
                    merged_cfg.update(user_data)
                    if status == "loaded":
                        status = "loaded+overrides"
                except (OSError, yaml.YAMLError) as exc:
                    logger.error("Could not parse user config %s: %s", user_path, exc)

            self._data[key] = merged_cfg
            startup_summary.append(f"{key}: {status}")

        logger.info("Config startup: %s", " | ".join(startup_summary))
