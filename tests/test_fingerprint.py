import pytest

from photo_backup_cleanup.fingerprint import CorruptImageError, fingerprint_image

from conftest import make_image


def test_reencoded_image_has_same_fingerprint(tmp_path):
    a = make_image(tmp_path / "a.png", compress_level=0)
    b = make_image(tmp_path / "b.png", compress_level=9)
    assert a.read_bytes() != b.read_bytes()
    assert fingerprint_image(a) == fingerprint_image(b)


def test_different_pixels_differ(tmp_path):
    a = make_image(tmp_path / "a.png")
    b = make_image(tmp_path / "b.png", shade=40)
    assert fingerprint_image(a) != fingerprint_image(b)


def test_digest_is_md5_hex(tmp_path):
    digest = fingerprint_image(make_image(tmp_path / "a.png"))
    assert len(digest) == 32
    int(digest, 16)


def test_undecodable_file_is_corrupt(tmp_path):
    bogus = tmp_path / "bogus.jpg"
    bogus.write_bytes(b"this is not a jpeg")
    with pytest.raises(CorruptImageError):
        fingerprint_image(bogus)


def test_truncated_image_is_corrupt(tmp_path):
    good = make_image(tmp_path / "good.png", size=(128, 128))
    truncated = tmp_path / "truncated.png"
    data = good.read_bytes()
    truncated.write_bytes(data[: len(data) // 2])
    with pytest.raises(CorruptImageError):
        fingerprint_image(truncated)
