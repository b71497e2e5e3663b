from __future__ import annotations

"""Shared data structures used across the dita_l10n core.

This module is intentionally free of I/O code so that the contained objects
can be reused in any context (unit-tests, CLI, project tooling, etc.).
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from lxml import etree as ET

from dita_l10n.core.exceptions import L10nError

__all__ = [
    "SourceDocument",
    "DocumentGraph",
    "TranslationUnit",
    "XliffDocument",
    "InterchangeFile",
    "MergeOptions",
    "JobError",
    "ExtractionReport",
    "MergeReport",
]

MAP = "map"
TOPIC = "topic"


@dataclass
class SourceDocument:
    """One map or topic of the source document graph.

    Attributes
    ----------
    path
        POSIX path relative to the folder of the root map (``topics/a.dita``).
    kind
        ``"map"`` or ``"topic"``.
    root
        Root element of the parsed document. For maps, references excluded by
        the active profile have already been removed.
    source_file
        Absolute location on disk.
    """

    path: str
    kind: str
    root: ET._Element
    source_file: Path

    @property
    def is_map(self) -> bool:
        return self.kind == MAP


@dataclass
class DocumentGraph:
    """Root map plus every map, topic and asset reachable from it, in document order."""

    root_map: Path
    maps: List[SourceDocument] = field(default_factory=list)
    topics: List[SourceDocument] = field(default_factory=list)
    assets: List[str] = field(default_factory=list)
    errors: List[L10nError] = field(default_factory=list)
    profile: Optional[str] = None

    @property
    def source_root(self) -> Path:
        return self.root_map.parent

    @property
    def documents(self) -> List[SourceDocument]:
        return [*self.maps, *self.topics]

    def find(self, path: str) -> Optional[SourceDocument]:
        for doc in self.documents:
            if doc.path == path:
                return doc
        return None


@dataclass
class TranslationUnit:
    """One segment of translatable text exchanged for translation.

    ``source`` and ``target`` are XLIFF ``<source>``/``<target>`` elements whose
    mixed content is text plus ``bpt``/``ept``/``ph`` inline codes.  A unit
    without ``target`` is untranslated.
    """

    id: str
    source: ET._Element
    target: Optional[ET._Element] = None
    resname: Optional[str] = None
    document: str = ""

    @property
    def translated(self) -> bool:
        return self.target is not None


@dataclass
class XliffDocument:
    """A ``<file>`` element: the units and skeleton of one source document."""

    original: str
    kind: str
    source_language: str
    target_language: str
    skeleton: bytes
    units: List[TranslationUnit] = field(default_factory=list)

    @property
    def is_map(self) -> bool:
        return self.kind == MAP


@dataclass
class InterchangeFile:
    """Bilingual container for every document extracted from one root map."""

    root_map: str
    source_language: str
    target_language: str
    documents: List[XliffDocument] = field(default_factory=list)
    assets: List[str] = field(default_factory=list)
    source_root: Optional[str] = None
    profile: Optional[str] = None
    path: Optional[Path] = None

    @property
    def unit_count(self) -> int:
        return sum(len(doc.units) for doc in self.documents)


@dataclass(frozen=True)
class MergeOptions:
    """Independent caller-selected merge flags.

    Attributes
    ----------
    overwrite
        Replace topic files already present in the output folder. When false
        they are left untouched and listed as skipped; maps are always
        reconciled.
    copy_assets
        Copy referenced non-text resources next to the merged topics.
    strict
        Treat untranslated units and structural mismatches as document
        failures instead of falling back to the source text.
    """

    overwrite: bool = True
    copy_assets: bool = True
    strict: bool = False


@dataclass(frozen=True)
class JobError:
    """Structured entry of a report: what failed, where, and why."""

    document: Optional[str]
    kind: str
    message: str
    unit_id: Optional[str] = None

    @classmethod
    def from_exception(cls, exc: BaseException, document: Optional[str] = None) -> "JobError":
        if isinstance(exc, L10nError):
            return cls(document or exc.path, exc.kind, str(exc), getattr(exc, "unit_id", None))
        return cls(document, "error", str(exc))


@dataclass
class ExtractionReport:
    """Outcome of one ``generate`` call."""

    interchange_files: Dict[str, Path] = field(default_factory=dict)
    documents: int = 0
    units: int = 0
    errors: List[JobError] = field(default_factory=list)
    warnings: List[JobError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass
class MergeReport:
    """Outcome of merging one interchange file into an output folder."""

    xliff_path: Optional[Path] = None
    output_dir: Optional[Path] = None
    source_map: Optional[Path] = None
    target_language: Optional[str] = None
    written_topics: List[str] = field(default_factory=list)
    written_maps: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    copied_assets: List[str] = field(default_factory=list)
    untranslated_units: int = 0
    errors: List[JobError] = field(default_factory=list)
    warnings: List[JobError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        return (
            f"topics={len(self.written_topics)} maps={len(self.written_maps)} "
            f"skipped={len(self.skipped)} assets={len(self.copied_assets)} "
            f"untranslated={self.untranslated_units} errors={len(self.errors)} "
            f"warnings={len(self.warnings)}"
        )
