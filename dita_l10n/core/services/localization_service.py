from __future__ import annotations

"""High-level localization service.

Entry-point for any front-end (CLI, project tooling, scripts) that needs to
generate interchange files from a DITA map or import translated ones. The
service owns no state besides the :class:`EngineConfig` it was built with
and an optional :class:`ProjectRegistry` that tracks per-language status,
so one instance may serve several jobs, including in parallel.
"""

from concurrent.futures import ThreadPoolExecutor
import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Union

from dita_l10n.config import EngineConfig
from dita_l10n.core.exceptions import InputError
from dita_l10n.core.extractor import BitextExtractor
from dita_l10n.core.graph import load_document_graph
from dita_l10n.core.merger import BitextMerger
from dita_l10n.core.models import ExtractionReport, JobError, MergeOptions, MergeReport
from dita_l10n.core.profiling import load_ditaval
from dita_l10n.core.projects import COMPLETED, IN_PROGRESS, ProjectRegistry

logger = logging.getLogger(__name__)

__all__ = ["LocalizationService"]

ProgressCallback = Callable[[str], None]


class LocalizationService:
    """Business-logic façade over the extraction/merge engine."""

    def __init__(self, config: Optional[EngineConfig] = None,
                 registry: Optional[ProjectRegistry] = None) -> None:
        self.config = config or EngineConfig()
        self.registry = registry
        self.logger = logger

    # ---------------------------------------------------------------------
    # PUBLIC API
    # ---------------------------------------------------------------------
    def generate(self, map_path: Union[str, Path], target_languages: Iterable[str],
                 output_dir: Union[str, Path], ditaval: Optional[Union[str, Path]] = None,
                 source_language: Optional[str] = None,
                 progress_callback: Optional[ProgressCallback] = None,
                 profile_in_name: bool = True) -> ExtractionReport:
        """Extract *map_path* into one XLIFF file per target language.

        Args:
            map_path: Root ``.ditamap`` of the publication
            target_languages: Language codes to produce interchange files for
            output_dir: Folder receiving the ``.xlf`` files
            ditaval: Optional DITAVAL profile applied during extraction
            source_language: Overrides the configured source language
            progress_callback: Optional callback for progress updates
            profile_in_name: Put the DITAVAL profile name in the file names

        Returns:
            ExtractionReport with written files and per-document errors

        Raises:
            InputError: If the root map or the DITAVAL file cannot be used
        """
        map_path = Path(map_path)
        languages = list(target_languages)
        self.logger.info("Generate: %s -> %s", map_path.name, ",".join(languages))
        if progress_callback:
            progress_callback(f"Loading {map_path.name}")

        ruleset = load_ditaval(ditaval) if ditaval else None
        graph = load_document_graph(map_path, self.config, ruleset)

        report = ExtractionReport()
        report.errors.extend(JobError.from_exception(exc) for exc in graph.errors)

        if progress_callback:
            progress_callback(f"Segmenting {len(graph.documents)} documents")
        extractor = BitextExtractor(self.config, ruleset)
        interchanges = extractor.extract(graph, languages, source_language, report)
        report.interchange_files = extractor.write(interchanges, output_dir, profile_in_name)
        if self.registry is not None:
            self._track_generate(map_path, languages, source_language)

        if progress_callback:
            progress_callback(f"Wrote {len(report.interchange_files)} interchange file(s)")
        self.logger.info("Generate done: files=%d documents=%d units=%d errors=%d",
                         len(report.interchange_files), report.documents, report.units,
                         len(report.errors))
        return report

    def import_xliff(self, xliff_path: Union[str, Path], output_dir: Union[str, Path],
                     overwrite: bool = True, copy_assets: bool = True, strict: bool = False,
                     progress_callback: Optional[ProgressCallback] = None) -> MergeReport:
        """Merge one translated XLIFF file into *output_dir*.

        Never raises for per-document problems; inspect ``report.errors``.
        """
        xliff_path = Path(xliff_path)
        if progress_callback:
            progress_callback(f"Importing {xliff_path.name}")
        options = MergeOptions(overwrite=overwrite, copy_assets=copy_assets, strict=strict)
        report = BitextMerger(self.config, options).merge(xliff_path, output_dir)
        if self.registry is not None and report.success:
            self._track_import(report)
        if progress_callback:
            progress_callback(f"Imported {xliff_path.name}: {report.summary()}")
        return report

    def import_many(self, xliff_paths: Sequence[Union[str, Path]], output_dir: Union[str, Path],
                    overwrite: bool = True, copy_assets: bool = True, strict: bool = False,
                    progress_callback: Optional[ProgressCallback] = None) -> List[MergeReport]:
        """Merge several XLIFF files into *output_dir* on a thread pool.

        Reports are returned in the order of *xliff_paths*. Map updates are
        serialised per output file by the reconciler.
        """
        if not xliff_paths:
            return []
        workers = min(self.config.max_workers, len(xliff_paths))
        self.logger.info("Import: %d file(s) with %d worker(s)", len(xliff_paths), workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="dita-l10n") as pool:
            futures = [
                pool.submit(self.import_xliff, path, output_dir, overwrite, copy_assets, strict,
                            progress_callback)
                for path in xliff_paths
            ]
            return [future.result() for future in futures]

    def check_map(self, map_path: Union[str, Path]) -> bool:
        """Return True when *map_path* is a readable DITA map."""
        try:
            load_document_graph(map_path, self.config)
        except InputError as exc:
            self.logger.debug("Not a usable map %s: %s", map_path, exc)
            return False
        return True

    # ---------------------------------------------------------------------
    # Project tracking
    # ---------------------------------------------------------------------

    def _track_generate(self, map_path: Path, languages: List[str],
                        source_language: Optional[str]) -> None:
        self.registry.get_or_create(
            map_path, languages, source_language=source_language or self.config.source_language)
        for language in languages:
            self.registry.set_language_status(map_path, language, IN_PROGRESS)

    def _track_import(self, report: MergeReport) -> None:
        if report.source_map is None or not report.target_language:
            return
        status = COMPLETED if report.untranslated_units == 0 else IN_PROGRESS
        if self.registry.set_language_status(report.source_map, report.target_language, status) is None:
            self.logger.debug("No project for %s; status not recorded", report.source_map)
