from __future__ import annotations

"""Bitext extraction: document graph -> XLIFF interchange files."""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from dita_l10n.config import EngineConfig
from dita_l10n.core.exceptions import L10nError
from dita_l10n.core.models import (
    DocumentGraph,
    ExtractionReport,
    InterchangeFile,
    JobError,
    SourceDocument,
    TranslationUnit,
    XliffDocument,
)
from dita_l10n.core.profiling import Ruleset
from dita_l10n.core.segmenter import segment_document
from dita_l10n.core.utils import parse_xml_bytes, serialize_tree
from dita_l10n.core.xliff import write_interchange

logger = logging.getLogger(__name__)

__all__ = ["BitextExtractor", "extract", "interchange_filename"]


def interchange_filename(root_map: str, target_language: str, profile: Optional[str] = None) -> str:
    """Return ``<map stem>[_<profile>]_<lang><map suffix>.xlf``.

    >>> interchange_filename("sample.ditamap", "de-DE")
    'sample_de-DE.ditamap.xlf'
    """
    path = Path(root_map)
    parts = [path.stem]
    if profile:
        parts.append(profile)
    parts.append(target_language)
    return "_".join(parts) + (path.suffix or ".ditamap") + ".xlf"


class BitextExtractor:
    """Segments every document of a graph and packs the units per target language.

    Segmentation runs once per document; the resulting units and skeleton
    are shared by the interchange files of every target language.
    """

    def __init__(self, config: EngineConfig, ruleset: Optional[Ruleset] = None) -> None:
        self.config = config
        self.ruleset = ruleset
        self.logger = logging.getLogger(f"{__name__}.BitextExtractor")

    def extract(self, graph: DocumentGraph, target_languages: Iterable[str],
                source_language: Optional[str] = None,
                report: Optional[ExtractionReport] = None) -> Dict[str, InterchangeFile]:
        """Return one :class:`InterchangeFile` per target language.

        Documents that cannot be segmented are recorded in *report* and left
        out; every other document is present, including those without units.
        """
        languages = list(dict.fromkeys(target_languages))
        if not languages:
            raise ValueError("At least one target language is required")
        source_language = source_language or self.config.source_language

        segmented: List[Tuple[SourceDocument, List[TranslationUnit], bytes]] = []
        for document in graph.documents:
            try:
                units, skeleton = self._segment(document)
            except L10nError as exc:
                self.logger.error("Extraction failed for %s: %s", document.path, exc)
                if report is not None:
                    report.errors.append(JobError.from_exception(exc, document.path))
                continue
            segmented.append((document, units, skeleton))
            if report is not None:
                report.documents += 1
                report.units += len(units)

        root_map = graph.root_map.name
        results: Dict[str, InterchangeFile] = {}
        for language in languages:
            results[language] = InterchangeFile(
                root_map=root_map,
                source_language=source_language,
                target_language=language,
                documents=[
                    XliffDocument(
                        original=document.path,
                        kind=document.kind,
                        source_language=source_language,
                        target_language=language,
                        skeleton=skeleton,
                        units=units,
                    )
                    for document, units, skeleton in segmented
                ],
                assets=list(graph.assets),
                source_root=str(graph.source_root),
                profile=graph.profile,
            )
        self.logger.info("Extract: documents=%d units=%d languages=%s",
                         len(segmented), sum(len(u) for _, u, _ in segmented), ",".join(languages))
        return results

    def write(self, interchanges: Dict[str, InterchangeFile],
              output_dir: Union[str, Path], profile_in_name: bool = True) -> Dict[str, Path]:
        """Write each interchange file to *output_dir* and return the paths by language.

        With *profile_in_name* false the file name carries no profile suffix,
        so interchange files of different profiles share one name.
        """
        output_dir = Path(output_dir)
        written: Dict[str, Path] = {}
        for language, interchange in interchanges.items():
            profile = interchange.profile if profile_in_name else None
            name = interchange_filename(interchange.root_map, language, profile)
            written[language] = write_interchange(interchange, output_dir / name)
        return written

    def _segment(self, document: SourceDocument) -> Tuple[List[TranslationUnit], bytes]:
        # Work on a copy; the graph keeps the source tree untouched
        tree = parse_xml_bytes(serialize_tree(document.root.getroottree()), document.path)
        units = segment_document(tree.getroot(), self.config, self.ruleset, document.path)
        return units, serialize_tree(tree)


def extract(graph: DocumentGraph, target_languages: Iterable[str], config: EngineConfig,
            ruleset: Optional[Ruleset] = None) -> Dict[str, InterchangeFile]:
    """Extract *graph* into one interchange file per target language."""
    return BitextExtractor(config, ruleset).extract(graph, target_languages)
