from __future__ import annotations

"""Publication reconciler.

Merging interchange files extracted under different profiles of one source
map into one output folder must converge to a single map.  Before a map is
written, the map already present at the output path is re-read from disk and
the new map is folded into it:

* a topic reference missing from the output map is inserted after its
  nearest preceding sibling that already exists there;
* the profiling attributes of a reference present in both maps are unioned
  token by token (first-seen order, ``", "`` separated);
* references only present in the output map are left alone.

Union on token sets is idempotent and commutative, so the order in which
profiles are merged does not change the resulting attribute values.

The read-merge-write of one output path is serialised by a process-wide
lock per path and the file is replaced atomically.
"""

import copy
from dataclasses import dataclass, field
import logging
import os
import threading
import weakref
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from lxml import etree as ET

from dita_l10n.config import EngineConfig
from dita_l10n.core.exceptions import ReconciliationConflictError
from dita_l10n.core.utils import (
    join_tokens,
    local_name,
    parse_xml_file,
    reference_identity,
    save_xml_tree,
    split_tokens,
    stamped_occurrence,
    union_tokens,
)

logger = logging.getLogger(__name__)

__all__ = ["ReconcileResult", "PublicationReconciler", "reconcile_map"]

# Entries live as long as some caller holds the lock
_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
_locks_guard = threading.Lock()

RefKey = Tuple


def _lock_for(path: Path) -> threading.Lock:
    key = os.path.normcase(os.path.realpath(path))
    with _locks_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _locks[key] = lock
        return lock


@dataclass
class ReconcileResult:
    """What one reconciliation did to the output map."""

    path: Path
    created: bool = False
    inserted: int = 0
    updated: int = 0
    conflicts: List[ReconciliationConflictError] = field(default_factory=list)


class PublicationReconciler:
    """Folds newly merged maps into the map already present at the output path."""

    def __init__(self, config: EngineConfig) -> None:
        self.config = config

    def reconcile(self, new_map: Union[ET._Element, ET._ElementTree],
                  output_path: Union[str, Path]) -> ReconcileResult:
        output_path = Path(output_path)
        new_tree = new_map if isinstance(new_map, ET._ElementTree) else new_map.getroottree()
        result = ReconcileResult(output_path)

        with _lock_for(output_path):
            if not output_path.exists():
                self._normalise_profiling(new_tree.getroot())
                save_xml_tree(new_tree, output_path, pretty=self.config.pretty_print)
                result.created = True
                logger.info("Reconcile: created %s", output_path.name)
                return result

            existing_tree = parse_xml_file(output_path)
            self._merge_children(existing_tree.getroot(), new_tree.getroot(), (), result)
            save_xml_tree(existing_tree, output_path, pretty=self.config.pretty_print)

        logger.info("Reconcile: %s inserted=%d updated=%d conflicts=%d",
                    output_path.name, result.inserted, result.updated, len(result.conflicts))
        return result

    # ------------------------------------------------------------------
    # Reference identity
    # ------------------------------------------------------------------
    def _is_reference(self, node) -> bool:
        return isinstance(node.tag, str) and local_name(node) in self.config.reference_elements

    def _identity(self, ref: ET._Element) -> str:
        return reference_identity(ref)

    def _references(self, parent: ET._Element, parent_key: RefKey) -> Iterator[Tuple[ET._Element, RefKey]]:
        seen: Dict[str, int] = {}
        for child in parent:
            if not self._is_reference(child):
                continue
            identity = self._identity(child)
            counted = seen.get(identity, 0)
            seen[identity] = counted + 1
            # Profiled extractions record the position in the unfiltered source
            stamped = stamped_occurrence(child)
            occurrence = counted if stamped is None else stamped
            yield child, parent_key + ((identity, occurrence),)

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------
    def _merge_children(self, existing: ET._Element, incoming: ET._Element,
                        parent_key: RefKey, result: ReconcileResult) -> None:
        present = dict((key, el) for el, key in self._references(existing, parent_key))
        previous: Optional[ET._Element] = None

        for new_ref, key in list(self._references(incoming, parent_key)):
            match = present.get(key)
            if match is None:
                clone = copy.deepcopy(new_ref)
                self._normalise_profiling(clone)
                if previous is not None:
                    clone.tail = previous.tail
                    previous.addnext(clone)
                else:
                    first = next((c for c in existing if self._is_reference(c)), None)
                    if first is not None:
                        before = first.getprevious()
                        clone.tail = before.tail if before is not None else existing.text
                        first.addprevious(clone)
                    else:
                        existing.append(clone)
                result.inserted += 1
                logger.debug("Reconcile: inserted %s", key[-1][0])
                previous = clone
                continue

            if self._merge_attributes(match, new_ref, key, result):
                result.updated += 1
            self._merge_children(match, new_ref, key, result)
            previous = match

    def _merge_attributes(self, existing: ET._Element, incoming: ET._Element,
                          key: RefKey, result: ReconcileResult) -> bool:
        changed = False
        for name, value in incoming.attrib.items():
            current = existing.get(name)
            if ET.QName(name).localname in self.config.profiling_attributes:
                merged = union_tokens(current, value)
                if merged != current:
                    existing.set(name, merged)
                    changed = True
            elif current is None:
                existing.set(name, value)
                changed = True
            elif current != value:
                conflict = ReconciliationConflictError(
                    f"Reference {key[-1][0]!r}: attribute {name!r} is {current!r} in the output "
                    f"map but {value!r} in the merged map; keeping the output value",
                    result.path, attribute=name, existing=current, incoming=value,
                )
                logger.warning("%s", conflict)
                result.conflicts.append(conflict)
        return changed

    def _normalise_profiling(self, root: ET._Element) -> None:
        for node in root.iter():
            if not self._is_reference(node):
                continue
            for name in list(node.attrib):
                if ET.QName(name).localname in self.config.profiling_attributes:
                    node.set(name, join_tokens(split_tokens(node.get(name))))


def reconcile_map(new_map: Union[ET._Element, ET._ElementTree], output_path: Union[str, Path],
                  config: EngineConfig) -> ReconcileResult:
    """Write *new_map* to *output_path*, folding it into any map already there."""
    return PublicationReconciler(config).reconcile(new_map, output_path)
