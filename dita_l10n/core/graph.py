from __future__ import annotations

"""Document graph loader.

Walks a root DITA map and collects every sub-map, topic and asset reachable
from it, applying the active profile to map references on the way.  The
result is a :class:`~dita_l10n.core.models.DocumentGraph` whose map trees no
longer contain excluded references, so that both extraction and the map
skeletons carried in the interchange file reflect the filtered publication.
"""

import logging
import posixpath
from pathlib import Path
from typing import Dict, List, Optional, Set, Union

from lxml import etree as ET

from dita_l10n.config import EngineConfig
from dita_l10n.core.exceptions import InputError
from dita_l10n.core.models import MAP, TOPIC, DocumentGraph, SourceDocument
from dita_l10n.core.profiling import Ruleset, included
from dita_l10n.core.utils import (
    is_local_reference,
    local_name,
    parse_xml_file,
    reference_identity,
    remove_element,
    resolve_reference,
    stamp_occurrence,
)

logger = logging.getLogger(__name__)

__all__ = ["DocumentGraphLoader", "load_document_graph"]

_MAP_ROOTS = {"map", "bookmap", "subjectScheme"}


class DocumentGraphLoader:
    """Builds the document graph of one root map.

    Documents are visited depth-first in document order. A topic referenced
    several times (or pulled in both by a map and by a ``conref``) appears in
    the graph once; the first encounter fixes its position.
    """

    def __init__(self, config: EngineConfig, ruleset: Optional[Ruleset] = None) -> None:
        self.config = config
        self.ruleset = ruleset
        self.logger = logging.getLogger(f"{__name__}.DocumentGraphLoader")

    def load(self, map_path: Union[str, Path]) -> DocumentGraph:
        """Load the graph rooted at *map_path*.

        Args:
            map_path: Path to the root ``.ditamap`` file

        Returns:
            DocumentGraph with filtered maps, topics and asset paths. Referenced
            files that cannot be read are listed in ``graph.errors``.

        Raises:
            InputError: If the root map is missing or is not a DITA map
        """
        map_path = Path(map_path).resolve()
        if not map_path.is_file():
            raise InputError("Root map not found", map_path)

        root = parse_xml_file(map_path).getroot()
        if not self._is_map(root):
            raise InputError(f"Not a DITA map: root element is <{local_name(root)}>", map_path)

        graph = DocumentGraph(root_map=map_path,
                              profile=self.ruleset.name if self.ruleset else None)
        self._seen: Set[str] = set()
        self._topic_queue: List[str] = []

        self._visit_map(graph, map_path.name, root)
        self._drain_conrefs(graph)

        self.logger.info(
            "Graph: root=%s maps=%d topics=%d assets=%d errors=%d profile=%s",
            map_path.name, len(graph.maps), len(graph.topics), len(graph.assets),
            len(graph.errors), graph.profile or "-",
        )
        return graph

    # ------------------------------------------------------------------
    # Maps
    # ------------------------------------------------------------------
    def _visit_map(self, graph: DocumentGraph, rel_path: str, root: ET._Element) -> None:
        self._seen.add(rel_path)
        if self.ruleset is not None:
            self._stamp_occurrences(root)
        removed = self._filter_map(root)
        if removed:
            self.logger.debug("Profile removed %d reference(s) from %s", removed, rel_path)
        graph.maps.append(SourceDocument(rel_path, MAP, root, graph.source_root / rel_path))

        for ref in list(root.iter()):
            if local_name(ref) not in self.config.reference_elements:
                continue
            href = ref.get("href")
            if not is_local_reference(href, ref.get("scope")):
                continue
            target = resolve_reference(rel_path, href)
            fmt = (ref.get("format") or "").strip().lower()

            if fmt == "ditamap" or local_name(ref) == "mapref" or self._has_ext(target, self.config.map_extensions):
                if target in self._seen:
                    continue
                sub_root = self._parse_reference(graph, rel_path, target)
                if sub_root is None:
                    continue
                if not self._is_map(sub_root):
                    graph.errors.append(InputError(
                        f"Referenced map is not a DITA map: <{local_name(sub_root)}>", target))
                    continue
                self._visit_map(graph, target, sub_root)
            elif fmt in ("", "dita") and self._has_ext(target, self.config.topic_extensions):
                self._visit_topic(graph, rel_path, target)
            else:
                self._add_asset(graph, target)

    def _stamp_occurrences(self, root: ET._Element) -> None:
        """Mark repeated sibling references with their unfiltered position.

        Profiled maps are reconciled by reference identity and occurrence;
        counting after filtering would pair the second reference of one
        publication with the first of another.
        """
        for parent in list(root.iter()):
            refs = [child for child in parent if local_name(child) in self.config.reference_elements]
            if len(refs) < 2:
                continue
            identities = [reference_identity(ref) for ref in refs]
            seen: Dict[str, int] = {}
            for ref, identity in zip(refs, identities):
                if identities.count(identity) < 2:
                    continue
                stamp_occurrence(ref, seen.get(identity, 0))
                seen[identity] = seen.get(identity, 0) + 1

    def _filter_map(self, root: ET._Element) -> int:
        """Remove references excluded by the profile, subtree included."""
        if self.ruleset is None:
            return 0
        removed = 0
        for ref in list(root.iter()):
            if local_name(ref) not in self.config.reference_elements:
                continue
            if not included(ref, self.ruleset, self.config.profiling_attributes):
                remove_element(ref)
                removed += 1
        return removed

    # ------------------------------------------------------------------
    # Topics
    # ------------------------------------------------------------------
    def _visit_topic(self, graph: DocumentGraph, from_doc: str, target: str) -> None:
        if target in self._seen:
            return
        self._seen.add(target)
        root = self._parse_reference(graph, from_doc, target)
        if root is None:
            return
        graph.topics.append(SourceDocument(target, TOPIC, root, graph.source_root / target))
        self._collect_topic_links(graph, target, root)

    def _collect_topic_links(self, graph: DocumentGraph, rel_path: str, root: ET._Element) -> None:
        for node in root.iter():
            if not isinstance(node.tag, str):
                continue
            conref = node.get("conref")
            if conref and not conref.startswith("#") and is_local_reference(conref):
                target = resolve_reference(rel_path, conref)
                if target not in self._seen and target not in self._topic_queue:
                    self._topic_queue.append(target)
            for element, attribute in self.config.asset_attributes:
                if local_name(node) != element:
                    continue
                href = node.get(attribute)
                if is_local_reference(href, node.get("scope")):
                    self._add_asset(graph, resolve_reference(rel_path, href))

    def _drain_conrefs(self, graph: DocumentGraph) -> None:
        while self._topic_queue:
            target = self._topic_queue.pop(0)
            self.logger.debug("Including conref target %s", target)
            self._visit_topic(graph, graph.root_map.name, target)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _parse_reference(self, graph: DocumentGraph, from_doc: str, target: str) -> Optional[ET._Element]:
        path = graph.source_root / target
        if not path.is_file():
            graph.errors.append(InputError(f"Referenced file not found (from {from_doc})", target))
            self.logger.warning("Missing reference %s from %s", target, from_doc)
            return None
        try:
            return parse_xml_file(path).getroot()
        except InputError as exc:
            graph.errors.append(InputError(str(exc.args[0]), target, exc.cause))
            self.logger.warning("Unreadable document %s: %s", target, exc)
            return None

    def _add_asset(self, graph: DocumentGraph, target: str) -> None:
        if target in graph.assets:
            return
        if target.startswith("../") or posixpath.isabs(target):
            graph.errors.append(InputError("Asset outside the source folder", target))
            self.logger.warning("Ignoring asset outside the source folder: %s", target)
            return
        if not (graph.source_root / target).is_file():
            graph.errors.append(InputError("Referenced asset not found", target))
            return
        graph.assets.append(target)

    @staticmethod
    def _has_ext(target: str, extensions) -> bool:
        return posixpath.splitext(target)[1].lower() in extensions

    @staticmethod
    def _is_map(root: ET._Element) -> bool:
        return local_name(root) in _MAP_ROOTS or " map/map " in (root.get("class") or "")


def load_document_graph(map_path: Union[str, Path], config: EngineConfig,
                        ruleset: Optional[Ruleset] = None) -> DocumentGraph:
    """Convenience wrapper around :class:`DocumentGraphLoader`."""
    return DocumentGraphLoader(config, ruleset).load(map_path)
