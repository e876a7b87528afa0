import io

import pytest

from gitlard.fatformat import (
    DecodeError,
    decode,
    decode_strict,
    encode,
    fat_object_sha1,
    filter_clean,
    filter_smudge,
    object_path,
    sha1_hex,
)

MAGIC = b"#$# git-fat "
SHA = "0123456789abcdef0123456789abcdef01234567"


def test_encode_layout():
    pointer = encode(SHA, 5)
    assert len(pointer) == 74
    assert pointer.startswith(MAGIC + SHA.encode())
    assert pointer.endswith(b"5\n")
    assert pointer[52:53] == b" "


def test_encode_decode_round_trip():
    for size in (0, 1, 123456789, 2**40):
        assert decode(encode(SHA, size)) == (SHA, size)


def test_decode_non_pointer_returns_none():
    assert decode(b"just some ordinary file content") is None
    assert decode(b"") is None


def test_decode_strict_raises():
    with pytest.raises(DecodeError):
        decode_strict(b"not a pointer at all")


def test_decode_strict_accepts_pointer():
    assert decode_strict(encode(SHA, 42)) == (SHA, 42)


def test_decode_error_is_value_error():
    with pytest.raises(ValueError):
        decode_strict(b"x" * 74)


def test_sha1_hex_known_value():
    assert sha1_hex(b"") == "da39a3ee5e6b4b0d3255bfef95601890afd80709"


def test_sha1_hex_shape():
    digest = sha1_hex(b"content")
    assert len(digest) == 40
    assert set(digest) <= set("0123456789abcdef")
    assert sha1_hex(b"content") == digest
    assert sha1_hex(b"other") != digest


def test_object_path():
    assert object_path("objs", SHA) == "objs/" + SHA


def test_fat_object_sha1(tmp_path):
    f = tmp_path / "ptr"
    f.write_bytes(encode(SHA, 10))
    assert fat_object_sha1(f) == SHA


def test_fat_object_sha1_rejects_wrong_size_and_missing(tmp_path):
    f = tmp_path / "big"
    f.write_bytes(encode(SHA, 10) + b"extra")
    assert fat_object_sha1(f) is None
    assert fat_object_sha1(tmp_path / "missing") is None
    g = tmp_path / "plain"
    g.write_bytes(b"y" * 74)
    assert fat_object_sha1(g) is None


def test_clean_writes_pointer_and_caches(tmp_path):
    content = b"large binary payload" * 100
    out = io.BytesIO()
    digest = filter_clean(io.BytesIO(content), out, tmp_path)
    assert digest == sha1_hex(content)
    assert decode(out.getvalue()) == (digest, len(content))
    assert (tmp_path / digest).read_bytes() == content
    assert sorted(p.name for p in tmp_path.iterdir()) == [digest]


def test_clean_passes_pointer_through(tmp_path):
    pointer = encode(SHA, 99)
    out = io.BytesIO()
    assert filter_clean(io.BytesIO(pointer), out, tmp_path) == SHA
    assert out.getvalue() == pointer
    assert list(tmp_path.iterdir()) == []


def test_clean_does_not_overwrite_existing_object(tmp_path):
    content = b"abc"
    digest = sha1_hex(content)
    (tmp_path / digest).write_bytes(b"previous")
    out = io.BytesIO()
    filter_clean(io.BytesIO(content), out, tmp_path)
    assert (tmp_path / digest).read_bytes() == b"previous"
    assert sorted(p.name for p in tmp_path.iterdir()) == [digest]


def test_clean_then_smudge_round_trip(tmp_path):
    content = bytes(range(256)) * 1000
    pointer = io.BytesIO()
    filter_clean(io.BytesIO(content), pointer, tmp_path)
    restored = io.BytesIO()
    assert filter_smudge(io.BytesIO(pointer.getvalue()), restored, tmp_path) is True
    assert restored.getvalue() == content


def test_smudge_missing_object_echoes_pointer(tmp_path):
    pointer = encode(SHA, 7)
    out = io.BytesIO()
    assert filter_smudge(io.BytesIO(pointer), out, tmp_path) is False
    assert out.getvalue() == pointer


def test_smudge_passes_unmanaged_content(tmp_path):
    content = b"z" * (200 * 1024 + 3)
    out = io.BytesIO()
    assert filter_smudge(io.BytesIO(content), out, tmp_path) is False
    assert out.getvalue() == content


def test_smudge_with_size_mismatch_still_restores(tmp_path):
    (tmp_path / SHA).write_bytes(b"short")
    out = io.BytesIO()
    assert filter_smudge(io.BytesIO(encode(SHA, 1000)), out, tmp_path) is True
    assert out.getvalue() == b"short"