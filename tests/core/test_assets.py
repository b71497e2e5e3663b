import pytest

from dita_l10n.core.assets import AssetCarrier, copy_asset
from dita_l10n.core.exceptions import InputError


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "src" / "images" / "logo.png"
    path.parent.mkdir(parents=True)
    path.write_bytes(b"\x89PNG-logo")
    return path


class TestCopyAsset:
    """Byte-for-byte asset copies."""

    def test_copy(self, source, tmp_path):
        out = tmp_path / "out"
        assert copy_asset(source, out, "images/logo.png") is True
        assert (out / "images" / "logo.png").read_bytes() == b"\x89PNG-logo"
        assert sorted(p.name for p in (out / "images").iterdir()) == ["logo.png"]

    def test_identical_file_is_left_alone(self, source, tmp_path):
        out = tmp_path / "out"
        copy_asset(source, out, "images/logo.png")
        assert copy_asset(source, out, "images/logo.png") is False

    def test_changed_file_is_replaced(self, source, tmp_path):
        out = tmp_path / "out"
        (out / "images").mkdir(parents=True)
        (out / "images" / "logo.png").write_bytes(b"stale")
        assert copy_asset(source, out, "images/logo.png") is True
        assert (out / "images" / "logo.png").read_bytes() == b"\x89PNG-logo"

    def test_missing_source(self, tmp_path):
        with pytest.raises(InputError):
            copy_asset(tmp_path / "nope.png", tmp_path / "out", "nope.png")

    def test_destination_must_stay_inside_output(self, source, tmp_path):
        with pytest.raises(InputError):
            copy_asset(source, tmp_path / "out", "../escaped.png")


class TestAssetCarrier:
    """Copying every asset of one merge."""

    def test_each_asset_is_copied_once(self, source, tmp_path):
        carrier = AssetCarrier(tmp_path / "src", tmp_path / "out")
        copied, errors = carrier.carry_all(["images/logo.png", "images/logo.png"])
        assert copied == ["images/logo.png"]
        assert errors == []

    def test_failures_do_not_stop_the_rest(self, source, tmp_path):
        carrier = AssetCarrier(tmp_path / "src", tmp_path / "out")
        copied, errors = carrier.carry_all(["images/missing.png", "images/logo.png"])
        assert copied == ["images/logo.png"]
        assert len(errors) == 1
        assert isinstance(errors[0], InputError)
