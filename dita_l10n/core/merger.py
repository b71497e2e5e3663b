from __future__ import annotations

"""Bitext merge: translated XLIFF -> DITA documents.

Each ``<file>`` of the interchange file is merged on its own.  Its skeleton
is decoded, the target (or, failing that, the source) of every unit is put
back in place of its segment marker and the document is written under the
output folder at its original relative path.  Topics obey the ``overwrite``
flag; maps always go through the
:class:`~dita_l10n.core.reconciler.PublicationReconciler`.

Problems are recorded per document in the returned
:class:`~dita_l10n.core.models.MergeReport`; a failing document never stops
the others.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from lxml import etree as ET

from dita_l10n.config import EngineConfig
from dita_l10n.core.assets import AssetCarrier
from dita_l10n.core.exceptions import (
    InputError,
    L10nError,
    MissingTargetError,
    StructuralMismatchError,
)
from dita_l10n.core.models import InterchangeFile, JobError, MergeOptions, MergeReport, XliffDocument
from dita_l10n.core.reconciler import PublicationReconciler
from dita_l10n.core.segmenter import find_markers, inline_codes, markup_to_nodes, restore_markup
from dita_l10n.core.utils import parse_xml_bytes, safe_output_path, save_xml_tree
from dita_l10n.core.xliff import read_interchange

logger = logging.getLogger(__name__)

__all__ = ["BitextMerger", "merge"]

XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"


def _has_text(fragment: ET._Element) -> bool:
    return any(text.strip() for text in fragment.itertext())


def _is_blank(target: ET._Element) -> bool:
    return len(target) == 0 and not (target.text or "").strip()


class BitextMerger:
    """Rebuilds translated documents from one interchange file."""

    def __init__(self, config: EngineConfig, options: Optional[MergeOptions] = None) -> None:
        self.config = config
        self.options = options or MergeOptions()
        self.reconciler = PublicationReconciler(config)
        self.logger = logging.getLogger(f"{__name__}.BitextMerger")

    def merge(self, interchange: Union[InterchangeFile, str, Path],
              output_dir: Union[str, Path]) -> MergeReport:
        """Merge *interchange* into *output_dir*.

        Args:
            interchange: Parsed interchange file, or the path of an XLIFF file
            output_dir: Folder receiving maps, topics and assets

        Returns:
            MergeReport listing written, skipped and failed documents
        """
        output_dir = Path(output_dir)
        report = MergeReport(output_dir=output_dir)
        if not isinstance(interchange, InterchangeFile):
            report.xliff_path = Path(interchange)
            try:
                interchange = read_interchange(interchange)
            except InputError as exc:
                self.logger.error("Import failed: %s", exc)
                report.errors.append(JobError.from_exception(exc))
                return report
        else:
            report.xliff_path = interchange.path
        report.target_language = interchange.target_language or None
        if interchange.source_root:
            report.source_map = Path(interchange.source_root) / interchange.root_map

        self.logger.info("Import: %s -> %s (%d files, lang=%s)",
                         report.xliff_path.name if report.xliff_path else interchange.root_map,
                         output_dir, len(interchange.documents), interchange.target_language)

        for document in interchange.documents:
            try:
                tree = self._merge_document(document, report)
                self._write(document, tree, output_dir, report)
            except L10nError as exc:
                self.logger.error("Merge failed for %s: %s", document.original, exc)
                report.errors.append(JobError.from_exception(exc, document.original))
            except OSError as exc:
                self.logger.error("Merge failed for %s: %s", document.original, exc, exc_info=True)
                report.errors.append(JobError(document.original, "io", str(exc)))

        if self.options.copy_assets and interchange.assets:
            self._copy_assets(interchange, output_dir, report)

        self.logger.info("Import done: %s", report.summary())
        return report

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------
    def _merge_document(self, document: XliffDocument, report: MergeReport) -> ET._ElementTree:
        tree = parse_xml_bytes(document.skeleton, document.original)
        markers = find_markers(tree.getroot())
        strict = self.options.strict

        for unit in document.units:
            marker = markers.pop(unit.id, None)
            if marker is None:
                exc = StructuralMismatchError(
                    "No segment position for translation unit", document.original, unit.id)
                if strict:
                    raise exc
                report.warnings.append(JobError.from_exception(exc, document.original))
                continue

            codes = inline_codes(unit.source)
            fragment = None
            if unit.target is None or _is_blank(unit.target):
                # <target/> is an untranslated unit, not a structural change
                report.untranslated_units += 1
                if strict:
                    raise MissingTargetError("Translation unit has no target", document.original, unit.id)
            else:
                try:
                    fragment = markup_to_nodes(unit.target, codes, document.original, unit.id)
                except StructuralMismatchError as exc:
                    if strict:
                        raise
                    report.warnings.append(JobError.from_exception(exc, document.original))
                    self.logger.warning("Using source text: %s", exc)
                else:
                    if not _has_text(fragment) and _has_text(markup_to_nodes(unit.source)):
                        report.untranslated_units += 1
                        if strict:
                            raise MissingTargetError("Translation unit has an empty target",
                                                     document.original, unit.id)
                        fragment = None

            if fragment is None:
                fragment = markup_to_nodes(unit.source, None, document.original, unit.id)
            restore_markup(marker, fragment)

        if markers:
            raise StructuralMismatchError(
                f"Segments without translation unit: {', '.join(sorted(markers, key=int))}",
                document.original)

        root = tree.getroot()
        if root.get(XML_LANG) and document.target_language:
            root.set(XML_LANG, document.target_language)
        return tree

    def _write(self, document: XliffDocument, tree: ET._ElementTree, output_dir: Path,
               report: MergeReport) -> None:
        destination = safe_output_path(output_dir, document.original)
        if document.is_map:
            result = self.reconciler.reconcile(tree, destination)
            report.written_maps.append(document.original)
            for conflict in result.conflicts:
                report.errors.append(JobError.from_exception(conflict, document.original))
            return

        if destination.exists() and not self.options.overwrite:
            self.logger.info("Skipping existing topic %s", document.original)
            report.skipped.append(document.original)
            return
        save_xml_tree(tree, destination, pretty=self.config.pretty_print)
        report.written_topics.append(document.original)

    def _copy_assets(self, interchange: InterchangeFile, output_dir: Path, report: MergeReport) -> None:
        source_root = Path(interchange.source_root) if interchange.source_root else None
        if source_root is None or not source_root.is_dir():
            # Fall back on the folder holding the XLIFF file
            fallback = interchange.path.parent if interchange.path else None
            self.logger.warning("Asset source folder %s unavailable, using %s",
                                interchange.source_root, fallback)
            source_root = fallback
        if source_root is None:
            report.errors.append(JobError(None, InputError.kind, "No source folder for assets"))
            return

        carrier = AssetCarrier(source_root, output_dir)
        copied, errors = carrier.carry_all(interchange.assets)
        report.copied_assets.extend(copied)
        for exc in errors:
            report.errors.append(JobError.from_exception(exc))


def merge(interchange_file: Union[InterchangeFile, str, Path], output_dir: Union[str, Path],
          options: Optional[MergeOptions] = None,
          config: Optional[EngineConfig] = None) -> MergeReport:
    """Merge one translated interchange file into *output_dir*."""
    return BitextMerger(config or EngineConfig(), options).merge(interchange_file, output_dir)
