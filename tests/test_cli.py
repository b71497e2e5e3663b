import logging

import pytest

from dita_l10n.cli import build_parser, main


@pytest.fixture(autouse=True)
def restore_logging():
    """main() configures the root logger; put the test setup back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestCli:
    """generate / pseudo / import from the command line."""

    def test_full_round_trip(self, sample_map, tmp_path, capsys):
        xliff_dir = tmp_path / "xliff"
        assert main(["generate", str(sample_map), "-l", "de-DE", "-o", str(xliff_dir)]) == 0
        xliff = xliff_dir / "sample_de-DE.ditamap.xlf"
        assert xliff.is_file()
        assert f"de-DE: {xliff}" in capsys.readouterr().out

        translated = tmp_path / "translated.xlf"
        assert main(["pseudo", str(xliff), str(translated)]) == 0
        assert "9 unit(s) pseudo-translated" in capsys.readouterr().out

        out = tmp_path / "out"
        assert main(["import", str(translated), "-o", str(out)]) == 0
        assert (out / "topic1.dita").is_file()
        assert (out / "images" / "sample.png").is_file()

    def test_strict_import_of_untranslated_file_fails(self, sample_map, tmp_path, capsys):
        xliff_dir = tmp_path / "xliff"
        main(["generate", str(sample_map), "-l", "de-DE", "-o", str(xliff_dir)])
        code = main(["import", str(xliff_dir / "sample_de-DE.ditamap.xlf"), "-o", str(tmp_path / "out"),
                     "--strict", "--no-assets"])
        assert code == 1
        assert "[missing-target]" in capsys.readouterr().err

    def test_profile_suffix_can_be_left_out(self, profile_project, tmp_path, capsys):
        xliff_dir = tmp_path / "xliff"
        assert main(["generate", str(profile_project["map"]), "-l", "de-DE", "-o", str(xliff_dir),
                     "--ditaval", str(profile_project["pub1"]), "--no-profile-suffix"]) == 0
        assert [p.name for p in xliff_dir.iterdir()] == ["profile_de-DE.ditamap.xlf"]

    def test_missing_map(self, tmp_path, capsys):
        code = main(["generate", str(tmp_path / "none.ditamap"), "-l", "de-DE", "-o", str(tmp_path / "x")])
        assert code == 1
        assert "error:" in capsys.readouterr().err

    def test_language_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["generate", "map.ditamap", "-o", "out"])
