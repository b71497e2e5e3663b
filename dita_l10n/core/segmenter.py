from __future__ import annotations

"""Reversible segmentation of DITA documents.

Extraction side
    :func:`segment_document` walks a document tree in document order and
    turns every maximal run of text and inline markup found in a segment
    container into a :class:`~dita_l10n.core.models.TranslationUnit`.  The run
    is cut out of the tree and replaced by a ``<?dita-l10n-segment N?>``
    processing instruction, which turns the tree into the *skeleton* carried
    inside the interchange file.  Whitespace at both ends of a run stays in
    the skeleton so that nothing outside the translated span changes.

Merge side
    :func:`markup_to_nodes` rebuilds DITA nodes from the content of an XLIFF
    ``<source>``/``<target>`` and :func:`restore_markup` puts them back in
    place of the marker.

Inline markup is carried as XLIFF 1.2 inline codes whose content is the
native markup: ``<bpt>``/``<ept>`` hold the start and end tag of an inline
element with content, ``<ph>`` holds a whole element that is empty or must
not be translated, as well as comments, processing instructions and entity
references.
"""

import itertools
import logging
import re
from typing import Dict, Iterator, List, Optional, Tuple

from lxml import etree as ET

from dita_l10n.config import EngineConfig
from dita_l10n.core.exceptions import StructuralMismatchError
from dita_l10n.core.models import TranslationUnit
from dita_l10n.core.profiling import Ruleset, included
from dita_l10n.core.utils import element_path, local_name

logger = logging.getLogger(__name__)

__all__ = [
    "XLIFF_NS",
    "MARKER",
    "Segmenter",
    "segment_document",
    "find_markers",
    "inline_codes",
    "markup_to_nodes",
    "restore_markup",
]

XLIFF_NS = "urn:oasis:names:tc:xliff:document:1.2"
MARKER = "dita-l10n-segment"

# XML whitespace only; a no-break space is content
_XML_WS = " \t\r\n"
_ENTITY_RE = re.compile(r"^&([A-Za-z_][\w.-]*);$")
_CODES = ("bpt", "ept", "ph")


def _x(tag: str) -> str:
    return f"{{{XLIFF_NS}}}{tag}"


def _visible(text: Optional[str]) -> bool:
    return bool(text) and bool(text.strip(_XML_WS))


def _append_text(parent: ET._Element, text: Optional[str]) -> None:
    """Append *text* after the current last child of *parent*."""
    if not text:
        return
    if len(parent):
        last = parent[-1]
        last.tail = (last.tail or "") + text
    else:
        parent.text = (parent.text or "") + text


# ---------------------------------------------------------------------------
# Native code helpers
# ---------------------------------------------------------------------------


def _start_tag(element: ET._Element) -> str:
    used = {ET.QName(element).namespace}
    used.update(ET.QName(name).namespace for name in element.attrib)
    nsmap = {prefix: uri for prefix, uri in element.nsmap.items() if uri in used}
    shell = ET.Element(element.tag, nsmap=nsmap)
    for name, value in element.attrib.items():
        shell.set(name, value)
    empty = ET.tostring(shell, encoding="unicode")
    return empty[:-2] + ">"


def _end_tag(element: ET._Element) -> str:
    name = local_name(element)
    return f"</{element.prefix}:{name}>" if element.prefix else f"</{name}>"


def _native(node) -> str:
    return ET.tostring(node, with_tail=False, encoding="unicode")


def _parse_start(native: Optional[str], path: Optional[str], unit_id: Optional[str]) -> ET._Element:
    if not native or not native.startswith("<") or not native.endswith(">"):
        raise StructuralMismatchError(f"Invalid start code: {native!r}", path, unit_id)
    try:
        return ET.fromstring(native[:-1] + "/>")
    except ET.XMLSyntaxError as exc:
        raise StructuralMismatchError(f"Invalid start code: {native!r}", path, unit_id, exc)


def _parse_native(native: Optional[str], path: Optional[str], unit_id: Optional[str]) -> List:
    if not native:
        raise StructuralMismatchError("Empty placeholder code", path, unit_id)
    match = _ENTITY_RE.match(native)
    if match:
        return [ET.Entity(match.group(1))]
    try:
        wrapper = ET.fromstring(f"<w>{native}</w>")
    except ET.XMLSyntaxError as exc:
        raise StructuralMismatchError(f"Invalid placeholder code: {native!r}", path, unit_id, exc)
    nodes = list(wrapper)
    if not nodes or _visible(wrapper.text):
        raise StructuralMismatchError(f"Invalid placeholder code: {native!r}", path, unit_id)
    return nodes


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


class Segmenter:
    """Cuts translatable runs out of a document tree, in document order.

    The tree passed to :meth:`segment` is modified in place; callers hand in
    a copy when they still need the original.
    """

    def __init__(self, config: EngineConfig, ruleset: Optional[Ruleset] = None) -> None:
        self.config = config
        self.ruleset = ruleset
        self._containers = config.segment_elements | config.body_elements

    def segment(self, root: ET._Element, document: str = "") -> List[TranslationUnit]:
        self._units: List[TranslationUnit] = []
        self._document = document
        self._walk(root)
        return self._units

    # -- classification ------------------------------------------------
    def _skipped(self, element: ET._Element) -> bool:
        if local_name(element) in self.config.untranslatable_elements:
            return True
        if element.get("translate") == "no":
            return True
        return not included(element, self.ruleset, self.config.profiling_attributes)

    def _is_inline(self, node) -> bool:
        if not isinstance(node.tag, str):
            # comments, processing instructions, entity references
            return True
        return local_name(node) in self.config.inline_elements

    def _has_text(self, element: ET._Element) -> bool:
        if _visible(element.text):
            return True
        for child in element:
            if _visible(child.tail):
                return True
            if isinstance(child.tag, str) and not self._skipped(child) and self._has_text(child):
                return True
        return False

    # -- walk ----------------------------------------------------------
    def _walk(self, element: ET._Element) -> None:
        if not isinstance(element.tag, str) or self._skipped(element):
            return
        if local_name(element) in self._containers:
            self._segment_container(element)
            return
        for child in list(element):
            self._walk(child)

    def _segment_container(self, container: ET._Element) -> None:
        resname = element_path(container)
        anchor: Optional[ET._Element] = None
        run: List = []
        for child in list(container):
            if self._is_inline(child):
                run.append(child)
                continue
            self._emit(container, anchor, run, resname)
            run = []
            self._walk(child)
            anchor = child
        self._emit(container, anchor, run, resname)

    def _emit(self, container: ET._Element, anchor: Optional[ET._Element],
              run: List, resname: str) -> None:
        head = anchor.tail if anchor is not None else container.text
        if not (_visible(head) or any(
            _visible(node.tail)
            or (isinstance(node.tag, str) and not self._skipped(node) and self._has_text(node))
            for node in run
        )):
            return

        head = head or ""
        lead = head[: len(head) - len(head.lstrip(_XML_WS))]
        first = head[len(lead):]
        last = (run[-1].tail or "") if run else first
        trail = last[len(last.rstrip(_XML_WS)):]
        if not run:
            first = first[: len(first) - len(trail)]

        unit_id = str(len(self._units) + 1)
        source = ET.Element(_x("source"), nsmap={None: XLIFF_NS})
        counter = itertools.count(1)
        _append_text(source, first)
        for index, node in enumerate(run):
            self._encode(source, node, counter)
            tail = node.tail or ""
            if index == len(run) - 1:
                tail = tail[: len(tail) - len(trail)]
            _append_text(source, tail)

        # Swap the run for the marker in the skeleton
        marker = ET.ProcessingInstruction(MARKER, unit_id)
        marker.tail = trail or None
        if anchor is not None:
            anchor.tail = lead or None
            anchor.addnext(marker)
        else:
            container.text = lead or None
            container.insert(0, marker)
        for node in run:
            container.remove(node)

        self._units.append(TranslationUnit(unit_id, source, resname=resname, document=self._document))

    def _encode(self, parent: ET._Element, node, counter: Iterator[int]) -> None:
        if not isinstance(node.tag, str):
            ph = ET.SubElement(parent, _x("ph"), id=str(next(counter)))
            ph.text = _native(node)
            return
        ctype = f"x-{local_name(node)}"
        if self._skipped(node) or (node.text is None and len(node) == 0):
            ph = ET.SubElement(parent, _x("ph"), id=str(next(counter)), ctype=ctype)
            ph.text = _native(node)
            return
        code_id = str(next(counter))
        bpt = ET.SubElement(parent, _x("bpt"), id=code_id, ctype=ctype)
        bpt.text = _start_tag(node)
        _append_text(parent, node.text)
        for child in node:
            self._encode(parent, child, counter)
            _append_text(parent, child.tail)
        ept = ET.SubElement(parent, _x("ept"), id=code_id)
        ept.text = _end_tag(node)


def segment_document(root: ET._Element, config: EngineConfig,
                     ruleset: Optional[Ruleset] = None,
                     document: str = "") -> List[TranslationUnit]:
    """Segment *root* in place and return its translation units (ids ``1..n``)."""
    units = Segmenter(config, ruleset).segment(root, document)
    logger.debug("Segmented %s units=%d", document or local_name(root), len(units))
    return units


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def find_markers(root: ET._Element) -> Dict[str, ET._Element]:
    """Map segment id to its marker processing instruction."""
    markers: Dict[str, ET._Element] = {}
    for pi in root.iter(ET.ProcessingInstruction):
        if pi.target == MARKER and pi.text:
            markers[pi.text.strip()] = pi
    return markers


def inline_codes(content: ET._Element) -> Dict[Tuple[str, str], str]:
    """Return ``{(code, id): native markup}`` for the inline codes of *content*."""
    codes: Dict[Tuple[str, str], str] = {}
    for child in content.iter():
        name = local_name(child)
        if name in _CODES:
            codes[(name, child.get("id") or "")] = child.text or ""
    return codes


def markup_to_nodes(content: ET._Element, codes: Optional[Dict[Tuple[str, str], str]] = None,
                    path: Optional[str] = None, unit_id: Optional[str] = None) -> ET._Element:
    """Rebuild DITA markup from the mixed content of an XLIFF ``<source>``/``<target>``.

    Returns a detached wrapper element whose text and children are the
    restored run. *codes* (usually :func:`inline_codes` of the source) must
    contain exactly the codes used by *content*; the native markup is taken
    from it so that a target cannot alter tags or attributes.

    Raises :class:`StructuralMismatchError` for unknown, missing, duplicated or
    unbalanced codes.
    """
    keys = [(local_name(c), c.get("id") or "") for c in content.iter() if local_name(c) in _CODES]
    if len(keys) != len(set(keys)):
        raise StructuralMismatchError("Duplicated inline code ids", path, unit_id)
    used = inline_codes(content)
    if codes is not None and set(used) != set(codes):
        missing = sorted(f"{k}#{i}" for k, i in set(codes) - set(used))
        extra = sorted(f"{k}#{i}" for k, i in set(used) - set(codes))
        raise StructuralMismatchError(
            f"Inline codes differ from source (missing={missing} unexpected={extra})", path, unit_id)
    natives = codes if codes is not None else used

    fragment = ET.Element("fragment")
    stack: List[ET._Element] = [fragment]
    open_ids: List[str] = []

    def feed(element: ET._Element) -> None:
        _append_text(stack[-1], element.text)
        for child in element:
            name = local_name(child)
            code_id = child.get("id") or ""
            if name == "bpt":
                start = _parse_start(natives.get(("bpt", code_id)), path, unit_id)
                stack[-1].append(start)
                stack.append(start)
                open_ids.append(code_id)
            elif name == "ept":
                if not open_ids or open_ids[-1] != code_id:
                    raise StructuralMismatchError(f"Unbalanced inline code ept#{code_id}", path, unit_id)
                open_ids.pop()
                stack.pop()
            elif name == "ph":
                for node in _parse_native(natives.get(("ph", code_id)), path, unit_id):
                    stack[-1].append(node)
            elif name == "mrk":
                feed(child)
            else:
                raise StructuralMismatchError(f"Unsupported inline element <{name}>", path, unit_id)
            _append_text(stack[-1], child.tail)

    feed(content)
    if open_ids:
        raise StructuralMismatchError(f"Unclosed inline code bpt#{open_ids[-1]}", path, unit_id)
    return fragment


def restore_markup(marker: ET._Element, fragment: ET._Element) -> None:
    """Replace the segment *marker* by the text and nodes held in *fragment*."""
    parent = marker.getparent()
    if parent is None:
        raise StructuralMismatchError("Segment marker is detached")

    def before(text: Optional[str]) -> None:
        if not text:
            return
        prev = marker.getprevious()
        if prev is not None:
            prev.tail = (prev.tail or "") + text
        else:
            parent.text = (parent.text or "") + text

    before(fragment.text)
    children = list(fragment)
    index = parent.index(marker)
    for offset, child in enumerate(children):
        parent.insert(index + offset, child)
    if children:
        last = children[-1]
        if marker.tail:
            last.tail = (last.tail or "") + marker.tail
    else:
        before(marker.tail)
    parent.remove(marker)
