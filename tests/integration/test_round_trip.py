"""End-to-end runs of the localization service.

Each test generates XLIFF from a sample project, pseudo-translates it and
imports the result, checking the files that land in the output folder.
"""

import pytest
from lxml import etree as ET

import dita_l10n
from dita_l10n.core.projects import ProjectRegistry
from dita_l10n.core.services import LocalizationService
from dita_l10n.core.utils import split_tokens
from dita_l10n.core.xliff import pseudo_translate


@pytest.fixture
def service(config):
    return LocalizationService(config)


def _translate(service, map_path, tmp_path, ditaval=None, language="de-DE"):
    report = service.generate(map_path, [language], tmp_path / "xliff", ditaval=ditaval)
    assert report.success, report.errors
    source = report.interchange_files[language]
    translated = source.with_name(source.name.replace(".xlf", ".translated.xlf"))
    pseudo_translate(source, translated)
    return translated


def _profiles(map_file):
    root = ET.parse(str(map_file)).getroot()
    return [(ref.get("href"), set(split_tokens(ref.get("product")))) for ref in root.iter("topicref")]


EXPECTED_PROFILES = [
    ("topic1.dita", {"pub1"}),
    ("topic2.dita", {"pub1", "pub2"}),
    ("topic3.dita", {"pub2"}),
]


@pytest.mark.integration
class TestProfiledPublications:
    """Two DITAVAL profiles merged into one output folder."""

    def test_sequential_imports_rebuild_the_publication(self, service, profile_project, tmp_path):
        pub1 = _translate(service, profile_project["map"], tmp_path, profile_project["pub1"])
        pub2 = _translate(service, profile_project["map"], tmp_path, profile_project["pub2"])
        assert pub1.name.startswith("profile_pub1_de-DE")
        assert pub2.name.startswith("profile_pub2_de-DE")

        out = tmp_path / "out"
        first = service.import_xliff(pub1, out)
        second = service.import_xliff(pub2, out)
        assert first.success, first.errors
        assert second.success, second.errors

        text = (out / "profile.ditamap").read_text(encoding="utf-8")
        assert 'href="topic1.dita" product="pub1"' in text
        assert 'href="topic2.dita" product="pub1, pub2"' in text
        assert 'href="topic3.dita" product="pub2"' in text
        for name in ("topic1.dita", "topic2.dita", "topic3.dita"):
            assert (out / name).exists()
        assert (out / "images" / "shared.png").read_bytes() == (profile_project["root"] / "images" / "shared.png").read_bytes()

    def test_import_order_does_not_matter(self, service, profile_project, tmp_path):
        pub1 = _translate(service, profile_project["map"], tmp_path, profile_project["pub1"])
        pub2 = _translate(service, profile_project["map"], tmp_path, profile_project["pub2"])

        forward, backward = tmp_path / "forward", tmp_path / "backward"
        service.import_xliff(pub1, forward)
        service.import_xliff(pub2, forward)
        service.import_xliff(pub2, backward)
        service.import_xliff(pub1, backward)

        assert _profiles(forward / "profile.ditamap") == EXPECTED_PROFILES
        assert _profiles(backward / "profile.ditamap") == EXPECTED_PROFILES

    def test_concurrent_imports(self, service, profile_project, tmp_path):
        pub1 = _translate(service, profile_project["map"], tmp_path, profile_project["pub1"])
        pub2 = _translate(service, profile_project["map"], tmp_path, profile_project["pub2"])

        out = tmp_path / "out"
        reports = service.import_many([pub1, pub2], out)
        assert [r.xliff_path for r in reports] == [pub1, pub2]
        assert all(r.success for r in reports)
        assert _profiles(out / "profile.ditamap") == EXPECTED_PROFILES

    def test_repeated_reference_keeps_each_publication(self, service, tmp_path, make_files):
        root = tmp_path / "repeated"
        make_files(root, {
            "book.ditamap": (
                '<map><topicref href="a.dita" product="pub1"/><topicref href="b.dita"/>'
                '<topicref href="a.dita" product="pub2"/></map>'
            ),
            "a.dita": "<topic id='a'><title>A</title></topic>",
            "b.dita": "<topic id='b'><title>B</title></topic>",
            "pub1.ditaval": "<val><prop att='product' val='pub2' action='exclude'/></val>",
            "pub2.ditaval": "<val><prop att='product' val='pub1' action='exclude'/></val>",
        })
        pub1 = _translate(service, root / "book.ditamap", tmp_path, root / "pub1.ditaval")
        pub2 = _translate(service, root / "book.ditamap", tmp_path, root / "pub2.ditaval")

        expected = [("a.dita", {"pub1"}), ("b.dita", set()), ("a.dita", {"pub2"})]
        for order, out in (((pub1, pub2), tmp_path / "forward"), ((pub2, pub1), tmp_path / "backward")):
            for xliff in order:
                assert service.import_xliff(xliff, out).success
            assert _profiles(out / "book.ditamap") == expected

    def test_excluded_content_is_not_offered_for_translation(self, service, profile_project, tmp_path):
        pub1 = _translate(service, profile_project["map"], tmp_path, profile_project["pub1"])
        pub2 = _translate(service, profile_project["map"], tmp_path, profile_project["pub2"])
        assert b"Only in publication two" not in pub1.read_bytes()
        assert b"Only in publication two" in pub2.read_bytes()


@pytest.mark.integration
class TestSharedTopics:
    """A topic referenced twice and one image."""

    def test_each_topic_is_written_once(self, service, sample_map, tmp_path):
        translated = _translate(service, sample_map, tmp_path)
        out = tmp_path / "out"
        report = service.import_xliff(translated, out)

        assert report.success, report.errors
        assert sorted(p.name for p in out.rglob("*.dita")) == ["topic1.dita", "topic2.dita"]
        assert (out / "images" / "sample.png").is_file()
        assert "de-DE:First topic" in (out / "topic1.dita").read_text(encoding="utf-8")
        assert "de-DE:Open the " in (out / "topic2.dita").read_text(encoding="utf-8")

        refs = [r.get("href") for r in ET.parse(str(out / "sample.ditamap")).getroot().iter("topicref")]
        assert refs == ["topic1.dita", "topic2.dita", "topic1.dita"]

    def test_several_languages(self, service, sample_map, tmp_path):
        report = service.generate(sample_map, ["de-DE", "fr-FR"], tmp_path / "xliff")
        assert sorted(p.name for p in report.interchange_files.values()) == [
            "sample_de-DE.ditamap.xlf",
            "sample_fr-FR.ditamap.xlf",
        ]
        assert report.documents == 3
        assert report.units == 9

    def test_progress_messages(self, service, sample_map, tmp_path):
        messages = []
        service.generate(sample_map, ["de-DE"], tmp_path / "xliff", progress_callback=messages.append)
        assert messages[0] == "Loading sample.ditamap"
        assert messages[-1] == "Wrote 1 interchange file(s)"

    def test_check_map(self, service, sample_map):
        assert service.check_map(sample_map)
        assert not service.check_map(sample_map.parent / "topic1.dita")


@pytest.mark.integration
class TestServiceOptions:
    """File naming and project tracking."""

    def test_profile_suffix_is_optional(self, service, profile_project, tmp_path):
        report = service.generate(profile_project["map"], ["de-DE"], tmp_path / "xliff",
                                  ditaval=profile_project["pub1"], profile_in_name=False)
        assert report.interchange_files["de-DE"].name == "profile_de-DE.ditamap.xlf"

    def test_registry_follows_generate_and_import(self, config, sample_map, tmp_path):
        registry = ProjectRegistry(tmp_path / "projects")
        service = LocalizationService(config, registry=registry)

        translated = _translate(service, sample_map, tmp_path)
        project = registry.find(sample_map)
        assert project.target_languages == ["de-DE"]
        assert project.language_status == {"de-DE": "in-progress"}

        report = service.import_xliff(translated, tmp_path / "out")
        assert report.source_map == sample_map.parent.resolve() / "sample.ditamap"
        assert report.target_language == "de-DE"
        assert registry.find(sample_map).language_status == {"de-DE": "completed"}

    def test_partial_import_stays_in_progress(self, config, sample_map, tmp_path):
        registry = ProjectRegistry(tmp_path / "projects")
        service = LocalizationService(config, registry=registry)
        report = service.generate(sample_map, ["fr-FR"], tmp_path / "xliff")

        service.import_xliff(report.interchange_files["fr-FR"], tmp_path / "out")
        assert registry.find(sample_map).language_status == {"fr-FR": "in-progress"}

    def test_registry_is_exported(self):
        assert dita_l10n.ProjectRegistry is ProjectRegistry
