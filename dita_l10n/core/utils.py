from __future__ import annotations

"""Simple reusable helper functions.

XML parsing/serialisation wrappers, atomic file writes, reference path
arithmetic and multi-value attribute helpers shared by every layer of the
engine.
"""

import logging
import os
import posixpath
import re
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Union
from urllib.parse import unquote

from lxml import etree as ET

from dita_l10n.core.exceptions import InputError

__all__ = [
    "local_name",
    "normalise",
    "split_tokens",
    "join_tokens",
    "union_tokens",
    "remove_element",
    "reference_identity",
    "stamp_occurrence",
    "stamped_occurrence",
    "element_path",
    "parse_xml_file",
    "parse_xml_bytes",
    "serialize_tree",
    "atomic_write_bytes",
    "save_xml_tree",
    "resolve_reference",
    "is_local_reference",
    "safe_output_path",
]

logger = logging.getLogger(__name__)

_TOKEN_SPLIT = re.compile(r"[\s,]+")
_WS = re.compile(r"\s+")


def local_name(node) -> str:
    """Return the tag of *node* without namespace, or ``""`` for comments/PIs."""
    tag = getattr(node, "tag", None)
    if not isinstance(tag, str):
        return ""
    return ET.QName(tag).localname if tag.startswith("{") else tag


def normalise(text: Optional[str], trim: bool = True) -> str:
    """Collapse every whitespace run of *text* into a single space.

    >>> normalise("  hello  \\n  world  ")
    'hello world'
    >>> normalise("  hello world  ", trim=False)
    ' hello world '
    """
    if not text:
        return ""
    collapsed = _WS.sub(" ", text)
    return collapsed.strip() if trim else collapsed


# ---------------------------------------------------------------------------
# Multi-value attributes (profiling)
# ---------------------------------------------------------------------------


def split_tokens(value: Optional[str]) -> List[str]:
    """Split a profiling attribute value on whitespace and commas, dropping duplicates."""
    if not value:
        return []
    tokens: List[str] = []
    for token in _TOKEN_SPLIT.split(value.strip()):
        if token and token not in tokens:
            tokens.append(token)
    return tokens


def join_tokens(tokens: Iterable[str]) -> str:
    return ", ".join(tokens)


def union_tokens(existing: Optional[str], incoming: Optional[str]) -> str:
    """Union two multi-value attribute values, first-seen order, comma separated.

    >>> union_tokens("pub1", "pub1 pub2")
    'pub1, pub2'
    >>> union_tokens("pub1, pub2", "pub2")
    'pub1, pub2'
    """
    merged = split_tokens(existing)
    for token in split_tokens(incoming):
        if token not in merged:
            merged.append(token)
    return join_tokens(merged)


def remove_element(element: ET._Element) -> None:
    """Detach *element* from its parent, keeping the text that follows it.

    lxml drops an element's tail together with the element; the tail is moved
    onto the previous sibling (or the parent's text), replacing the
    indentation that preceded the removed element.
    """
    parent = element.getparent()
    if parent is None:
        return
    tail = element.tail
    prev = element.getprevious()
    if tail is not None:
        if prev is not None:
            prev.tail = tail if not (prev.tail or "").strip() else prev.tail + tail
        else:
            parent.text = tail if not (parent.text or "").strip() else parent.text + tail
    parent.remove(element)


# ---------------------------------------------------------------------------
# Map references
# ---------------------------------------------------------------------------

OCCURRENCE_PI = "dita-l10n-occurrence"


def reference_identity(ref: ET._Element) -> str:
    """Return what a map reference points at: href, keys, or element + navtitle."""
    href = ref.get("href")
    if href:
        return href.strip().replace("\\", "/")
    if ref.get("keys"):
        return "keys:" + " ".join(split_tokens(ref.get("keys")))
    navtitle = ref.get("navtitle")
    if navtitle is None:
        meta = ref.find("topicmeta/navtitle")
        navtitle = "".join(meta.itertext()) if meta is not None else ""
    return f"{local_name(ref)}@{normalise(navtitle)}"


def stamped_occurrence(ref: ET._Element) -> Optional[int]:
    """Return the source occurrence recorded on *ref* by :func:`stamp_occurrence`, if any."""
    for child in ref:
        if isinstance(child, ET._ProcessingInstruction) and child.target == OCCURRENCE_PI:
            try:
                return int((child.text or "").strip())
            except ValueError:
                return None
    return None


def stamp_occurrence(ref: ET._Element, occurrence: int) -> None:
    """Record the position of *ref* among same-identity siblings of the source map.

    The ``<?dita-l10n-occurrence N?>`` instruction is the first child of the
    reference and stays in merged maps, where profile filtering may have
    removed some of the siblings it was counted against.
    """
    if stamped_occurrence(ref) is not None:
        return
    pi = ET.ProcessingInstruction(OCCURRENCE_PI, str(occurrence))
    pi.tail = ref.text
    ref.text = None
    ref.insert(0, pi)


def element_path(element: ET._Element) -> str:
    """Return an XPath-like location such as ``/concept/conbody/p[2]``."""
    steps: List[str] = []
    node = element
    while node is not None:
        name = local_name(node)
        parent = node.getparent()
        if parent is None:
            steps.append(name)
            break
        same = [sib for sib in parent if local_name(sib) == name]
        steps.append(f"{name}[{same.index(node) + 1}]" if len(same) > 1 else name)
        node = parent
    return "/" + "/".join(reversed(steps))


# ---------------------------------------------------------------------------
# XML convenience wrappers
# ---------------------------------------------------------------------------


def _parser() -> ET.XMLParser:
    # Entities stay unresolved and DTDs are never fetched
    return ET.XMLParser(resolve_entities=False, load_dtd=False, no_network=True,
                        remove_blank_text=False, strip_cdata=False)


def parse_xml_file(path: Union[str, Path]) -> ET._ElementTree:
    """Parse *path* into an element tree, raising :class:`InputError` on failure."""
    try:
        return ET.parse(str(path), _parser())
    except ET.XMLSyntaxError as exc:
        raise InputError(f"XML syntax error: {exc}", path, exc)
    except OSError as exc:
        raise InputError(f"Failed to read file: {exc}", path, exc)


def parse_xml_bytes(data: bytes, path: Optional[Union[str, Path]] = None) -> ET._ElementTree:
    """Parse in-memory XML, raising :class:`InputError` on failure."""
    try:
        return ET.fromstring(data, _parser()).getroottree()
    except ET.XMLSyntaxError as exc:
        raise InputError(f"XML syntax error: {exc}", path, exc)


def serialize_tree(tree: ET._ElementTree, *, pretty: bool = False) -> bytes:
    """Serialise *tree* with XML declaration, doctype and top-level PIs/comments."""
    return ET.tostring(tree, pretty_print=pretty, xml_declaration=True, encoding="UTF-8")


def atomic_write_bytes(path: Union[str, Path], data: bytes) -> None:
    """Write *data* to *path* through a temporary file and ``os.replace``.

    Readers never observe a half-written file; parent folders are created.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_name, path)
    except OSError:
        logger.error("I/O FAIL: write path=%s", path, exc_info=True)
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def save_xml_tree(tree: ET._ElementTree, path: Union[str, Path], *, pretty: bool = False) -> None:
    """Write *tree* to *path* atomically with XML declaration and original doctype."""
    xml_bytes = serialize_tree(tree, pretty=pretty)
    atomic_write_bytes(path, xml_bytes)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("I/O: wrote XML path=%s bytes=%d", path, len(xml_bytes))


# ---------------------------------------------------------------------------
# Reference paths
# ---------------------------------------------------------------------------


def is_local_reference(href: Optional[str], scope: Optional[str] = None) -> bool:
    """Return True when *href* points at a file of the local document set."""
    if not href or href.startswith("#"):
        return False
    if scope in ("external", "peer"):
        return False
    if re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*:", href):
        # http:, mailto:, file: ... (a Windows drive letter is not expected in DITA hrefs)
        return False
    return True


def resolve_reference(from_document: str, href: str) -> str:
    """Resolve *href* relative to the document at *from_document*.

    Both paths are POSIX paths relative to the root map folder; the fragment
    identifier is dropped.

    >>> resolve_reference("topics/a.dita", "../images/x.png#foo")
    'images/x.png'
    """
    target = unquote(href.split("#", 1)[0]).replace("\\", "/")
    base = posixpath.dirname(from_document)
    return posixpath.normpath(posixpath.join(base, target))


def safe_output_path(output_dir: Union[str, Path], relative: str) -> Path:
    """Map a document-relative path under *output_dir*, refusing escapes."""
    root = Path(output_dir).resolve()
    candidate = (root / relative).resolve()
    if candidate != root and root not in candidate.parents:
        raise InputError(f"Path escapes the output folder: {relative}", relative)
    return candidate
