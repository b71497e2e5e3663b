import pytest
from lxml import etree as ET

from dita_l10n.core.extractor import BitextExtractor
from dita_l10n.core.graph import load_document_graph
from dita_l10n.core.merger import merge
from dita_l10n.core.models import MergeOptions
from dita_l10n.core.xliff import XLIFF_NS, pseudo_translate

NS = {"x": XLIFF_NS}


@pytest.fixture
def xliff(sample_map, config, tmp_path):
    extractor = BitextExtractor(config)
    interchanges = extractor.extract(load_document_graph(sample_map, config), ["de-DE"])
    return extractor.write(interchanges, tmp_path / "xliff")["de-DE"]


@pytest.fixture
def translated(xliff, tmp_path):
    out = tmp_path / "translated.xlf"
    pseudo_translate(xliff, out)
    return out


def _parse(path):
    return ET.parse(str(path), ET.XMLParser(load_dtd=False, no_network=True, resolve_entities=False))


def _empty_targets(xliff, out):
    tree = ET.parse(str(xliff))
    for unit in tree.iterfind(".//x:trans-unit", NS):
        ET.SubElement(unit, f"{{{XLIFF_NS}}}target")
    tree.write(str(out), xml_declaration=True, encoding="UTF-8")
    return out


def _text(path):
    return " ".join("".join(_parse(path).getroot().itertext()).split())


class TestMerge:
    """Merging translated interchange files."""

    def test_round_trip_identity(self, sample_map, xliff, tmp_path):
        identity = tmp_path / "identity.xlf"
        pseudo_translate(xliff, identity, prefix="")
        out = tmp_path / "out"
        report = merge(identity, out)

        assert report.success, report.errors
        assert report.untranslated_units == 0
        for name in ("topic1.dita", "topic2.dita", "sample.ditamap"):
            source = _parse(sample_map.parent / name)
            merged = _parse(out / name)
            assert ET.tostring(merged.getroot()) == ET.tostring(source.getroot())
            assert merged.docinfo.doctype == source.docinfo.doctype

    def test_translated_text_is_merged(self, translated, tmp_path):
        out = tmp_path / "out"
        report = merge(translated, out)
        assert report.success
        assert sorted(report.written_topics) == ["topic1.dita", "topic2.dita"]
        assert report.written_maps == ["sample.ditamap"]

        topic1 = _parse(out / "topic1.dita").getroot()
        assert topic1.findtext("title") == "de-DE:First topic"
        p = topic1.find("conbody/p")
        assert p.text == "de-DE:Press "
        assert p.find("uicontrol").text == "OK"
        assert topic1.find("conbody/codeblock").text == 'print("untouched")'
        assert "de-DE:Sample map" in (out / "sample.ditamap").read_text(encoding="utf-8")

    def test_untranslated_units_fall_back_to_source(self, sample_map, xliff, tmp_path):
        out = tmp_path / "out"
        report = merge(xliff, out)
        assert report.success
        assert report.untranslated_units == 9
        for name in ("topic1.dita", "topic2.dita"):
            assert _text(out / name) == _text(sample_map.parent / name)

    def test_strict_mode_fails_untranslated_documents(self, xliff, tmp_path):
        out = tmp_path / "out"
        report = merge(xliff, out, MergeOptions(strict=True))
        assert not report.success
        assert {e.kind for e in report.errors} == {"missing-target"}
        assert {e.document for e in report.errors} == {"sample.ditamap", "topic1.dita", "topic2.dita"}
        assert not (out / "topic1.dita").exists()

    def test_empty_targets_count_as_untranslated(self, sample_map, xliff, tmp_path):
        empty = _empty_targets(xliff, tmp_path / "empty.xlf")
        unit = _parse(empty).find("x:file[@original='topic1.dita']/x:body/x:trans-unit[@id='3']", NS)
        assert unit.find("x:source/x:bpt", NS) is not None

        out = tmp_path / "out"
        report = merge(empty, out)
        assert report.success
        assert report.warnings == []
        assert report.untranslated_units == 9
        for name in ("topic1.dita", "topic2.dita"):
            assert _text(out / name) == _text(sample_map.parent / name)

    def test_empty_targets_fail_strict_mode_as_missing(self, xliff, tmp_path):
        empty = _empty_targets(xliff, tmp_path / "empty.xlf")
        report = merge(empty, tmp_path / "out", MergeOptions(strict=True))
        assert not report.success
        assert {e.kind for e in report.errors} == {"missing-target"}
        assert {e.document for e in report.errors} == {"sample.ditamap", "topic1.dita", "topic2.dita"}

    def test_structural_mismatch(self, translated, tmp_path):
        tree = ET.parse(str(translated))
        unit = tree.find("x:file[@original='topic1.dita']/x:body/x:trans-unit[@id='3']", NS)
        target = unit.find("x:target", NS)
        for child in list(target):
            target.remove(child)
        target.text = "Kaputt"
        tree.write(str(translated), xml_declaration=True, encoding="UTF-8")

        lenient = merge(translated, tmp_path / "lenient")
        assert lenient.success
        assert [(w.kind, w.document, w.unit_id) for w in lenient.warnings] == [("structure", "topic1.dita", "3")]
        p = _parse(tmp_path / "lenient" / "topic1.dita").getroot().find("conbody/p")
        assert "".join(p.itertext()) == "Press OK to continue."

        strict = merge(translated, tmp_path / "strict", MergeOptions(strict=True))
        assert [e.document for e in strict.errors] == ["topic1.dita"]
        assert (tmp_path / "strict" / "topic2.dita").exists()

    def test_no_overwrite_keeps_existing_topics(self, translated, tmp_path):
        out = tmp_path / "out"
        out.mkdir()
        (out / "topic1.dita").write_text("<concept id='keep'/>", encoding="utf-8")
        report = merge(translated, out, MergeOptions(overwrite=False))
        assert report.skipped == ["topic1.dita"]
        assert (out / "topic1.dita").read_text(encoding="utf-8") == "<concept id='keep'/>"
        assert (out / "topic2.dita").exists()

    def test_asset_copy_is_optional(self, translated, tmp_path):
        without = merge(translated, tmp_path / "a", MergeOptions(copy_assets=False))
        assert without.copied_assets == []
        assert not (tmp_path / "a" / "images").exists()

        with_assets = merge(translated, tmp_path / "b")
        assert with_assets.copied_assets == ["images/sample.png"]

    def test_unreadable_xliff_is_reported(self, tmp_path):
        bad = tmp_path / "bad.xlf"
        bad.write_text("<xliff", encoding="utf-8")
        report = merge(bad, tmp_path / "out")
        assert not report.success
        assert report.errors[0].kind == "input"
