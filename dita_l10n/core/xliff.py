from __future__ import annotations

"""XLIFF 1.2 reader and writer.

One interchange file holds every document extracted from one root map for
one target language.  Each document is a ``<file>`` element::

    <file original="topics/a.dita" source-language="en-US"
          target-language="de-DE" datatype="xml" tool-id="dita-l10n"
          l10n:kind="topic">
      <header>
        <skl><internal-file form="base64">...</internal-file></skl>
        <tool tool-id="dita-l10n" tool-name="dita-l10n" tool-version="..."/>
      </header>
      <body>
        <trans-unit id="1" resname="/concept/conbody/p" xml:space="preserve">
          <source>Press <bpt id="1">&lt;b&gt;</bpt>OK<ept id="1">&lt;/b&gt;</ept>.</source>
        </trans-unit>
      </body>
    </file>

The header of the root map's ``<file>`` also carries an ``<l10n:assets>``
extension element (namespace ``urn:dita-l10n``) listing the non-text
resources to copy at merge time and the folder they were read from.
"""

import base64
import binascii
import copy
import logging
from pathlib import Path
from typing import List, Optional, Union

from lxml import etree as ET

from dita_l10n.core.exceptions import InputError
from dita_l10n.core.models import MAP, TOPIC, InterchangeFile, TranslationUnit, XliffDocument
from dita_l10n.core.segmenter import XLIFF_NS
from dita_l10n.core.utils import local_name, parse_xml_file, save_xml_tree
from dita_l10n.version import get_version

logger = logging.getLogger(__name__)

__all__ = [
    "XLIFF_NS",
    "L10N_NS",
    "TOOL_ID",
    "write_interchange",
    "read_interchange",
    "pseudo_translate",
]

L10N_NS = "urn:dita-l10n"
TOOL_ID = "dita-l10n"
XML_SPACE = "{http://www.w3.org/XML/1998/namespace}space"

_NSMAP = {None: XLIFF_NS, "l10n": L10N_NS}
# Elements whose children may be indented; source/target content is never touched
_STRUCTURAL = {"xliff", "file", "header", "skl", "body", "group", "trans-unit", "assets"}


def _x(tag: str) -> str:
    return f"{{{XLIFF_NS}}}{tag}"


def _l(tag: str) -> str:
    return f"{{{L10N_NS}}}{tag}"


def _indent(element: ET._Element, level: int = 0) -> None:
    if local_name(element) not in _STRUCTURAL or not len(element):
        return
    pad = "\n" + "  " * (level + 1)
    element.text = pad
    for child in element:
        _indent(child, level + 1)
        child.tail = pad
    element[-1].tail = "\n" + "  " * level


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def _build_file(doc: XliffDocument, interchange: InterchangeFile) -> ET._Element:
    file_el = ET.Element(_x("file"), nsmap=_NSMAP)
    file_el.set("original", doc.original)
    file_el.set("source-language", doc.source_language)
    file_el.set("target-language", doc.target_language)
    file_el.set("datatype", "xml")
    file_el.set("tool-id", TOOL_ID)
    file_el.set(_l("kind"), doc.kind)

    header = ET.SubElement(file_el, _x("header"))
    skl = ET.SubElement(header, _x("skl"))
    internal = ET.SubElement(skl, _x("internal-file"), form="base64")
    internal.text = base64.b64encode(doc.skeleton).decode("ascii")
    ET.SubElement(header, _x("tool"), {
        "tool-id": TOOL_ID, "tool-name": TOOL_ID, "tool-version": get_version(),
    })
    if doc.original == interchange.root_map:
        assets = ET.SubElement(header, _l("assets"), {"root-map": interchange.root_map})
        if interchange.source_root:
            assets.set("source-root", interchange.source_root)
        if interchange.profile:
            assets.set("profile", interchange.profile)
        for href in interchange.assets:
            ET.SubElement(assets, _l("asset"), href=href)

    body = ET.SubElement(file_el, _x("body"))
    for unit in doc.units:
        tu = ET.SubElement(body, _x("trans-unit"), id=unit.id)
        if unit.resname:
            tu.set("resname", unit.resname)
        tu.set(XML_SPACE, "preserve")
        source = copy.deepcopy(unit.source)
        source.tag = _x("source")
        tu.append(source)
        if unit.target is not None:
            target = copy.deepcopy(unit.target)
            target.tag = _x("target")
            tu.append(target)
    return file_el


def write_interchange(interchange: InterchangeFile, path: Union[str, Path]) -> Path:
    """Serialise *interchange* as an XLIFF 1.2 document at *path*."""
    path = Path(path)
    root = ET.Element(_x("xliff"), nsmap=_NSMAP, version="1.2")
    for doc in interchange.documents:
        root.append(_build_file(doc, interchange))
    ET.cleanup_namespaces(root)
    _indent(root)
    root.tail = "\n"
    save_xml_tree(ET.ElementTree(root), path)
    interchange.path = path
    logger.debug("XLIFF written path=%s files=%d units=%d",
                 path, len(interchange.documents), interchange.unit_count)
    return path


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def _read_units(file_el: ET._Element, original: str) -> List[TranslationUnit]:
    units: List[TranslationUnit] = []
    body = file_el.find(_x("body"))
    if body is None:
        return units
    for tu in body.iter(_x("trans-unit")):
        unit_id = tu.get("id")
        if not unit_id:
            raise InputError(f"trans-unit without id in <file original={original!r}>")
        source = tu.find(_x("source"))
        if source is None:
            raise InputError(f"trans-unit {unit_id} has no <source> in <file original={original!r}>")
        units.append(TranslationUnit(
            id=unit_id,
            source=source,
            target=tu.find(_x("target")),
            resname=tu.get("resname"),
            document=original,
        ))
    return units


def _read_skeleton(file_el: ET._Element, original: str) -> bytes:
    internal = file_el.find(f"{_x('header')}/{_x('skl')}/{_x('internal-file')}")
    if internal is None or not (internal.text or "").strip():
        raise InputError(f"<file original={original!r}> has no embedded skeleton")
    if internal.get("form", "base64") != "base64":
        raise InputError(f"Unsupported skeleton form {internal.get('form')!r} in {original!r}")
    try:
        return base64.b64decode("".join(internal.text.split()), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InputError(f"Corrupt skeleton in {original!r}: {exc}", cause=exc)


def read_interchange(path: Union[str, Path]) -> InterchangeFile:
    """Parse an XLIFF file written by :func:`write_interchange`.

    Raises :class:`InputError` for unreadable or malformed files.
    """
    path = Path(path)
    root = parse_xml_file(path).getroot()
    if root.tag != _x("xliff"):
        raise InputError("Not an XLIFF 1.2 document", path)

    documents: List[XliffDocument] = []
    try:
        for file_el in root.iter(_x("file")):
            original = file_el.get("original")
            if not original:
                raise InputError("<file> without original attribute")
            kind = file_el.get(_l("kind")) or (MAP if original.endswith((".ditamap", ".bookmap")) else TOPIC)
            documents.append(XliffDocument(
                original=original,
                kind=kind,
                source_language=file_el.get("source-language", ""),
                target_language=file_el.get("target-language", ""),
                skeleton=_read_skeleton(file_el, original),
                units=_read_units(file_el, original),
            ))
    except InputError as exc:
        if exc.path is None:
            raise InputError(exc.args[0], path, exc.cause)
        raise

    if not documents:
        raise InputError("XLIFF document contains no <file>", path)

    assets_el = root.find(f".//{_l('assets')}")
    first = documents[0]
    interchange = InterchangeFile(
        root_map=first.original,
        source_language=first.source_language,
        target_language=first.target_language,
        documents=documents,
        path=path,
    )
    if assets_el is not None:
        interchange.root_map = assets_el.get("root-map", first.original)
        interchange.source_root = assets_el.get("source-root")
        interchange.profile = assets_el.get("profile")
        interchange.assets = [a.get("href") for a in assets_el.iter(_l("asset")) if a.get("href")]

    logger.debug("XLIFF read path=%s files=%d units=%d", path, len(documents), interchange.unit_count)
    return interchange


# ---------------------------------------------------------------------------
# Pseudo translation
# ---------------------------------------------------------------------------


def pseudo_translate(src: Union[str, Path], dst: Union[str, Path], prefix: Optional[str] = None) -> int:
    """Fill every missing ``<target>`` of *src* and write the result to *dst*.

    The target is a copy of the source whose first text run is prefixed with
    *prefix* (default ``"<target-language>:"``). Useful to check that a merge
    puts translated text everywhere without a translation step.

    Returns the number of units filled.
    """
    src, dst = Path(src), Path(dst)
    tree = parse_xml_file(src)
    root = tree.getroot()
    if root.tag != _x("xliff"):
        raise InputError("Not an XLIFF 1.2 document", src)

    filled = 0
    for file_el in root.iter(_x("file")):
        marker = prefix if prefix is not None else f"{file_el.get('target-language', '')}:"
        for tu in file_el.iter(_x("trans-unit")):
            source = tu.find(_x("source"))
            if source is None or tu.find(_x("target")) is not None:
                continue
            target = copy.deepcopy(source)
            target.tag = _x("target")
            target.set("state", "translated")
            target.tail = source.tail
            target.text = marker + (target.text or "")
            source.addnext(target)
            filled += 1

    save_xml_tree(tree, dst)
    logger.info("Pseudo-translated %d unit(s): %s -> %s", filled, src.name, dst)
    return filled
