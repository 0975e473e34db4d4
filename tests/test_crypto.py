import pytest

from cdnsync.crypto import KEY_LENGTH, decrypt_contents, encrypt_contents, load_or_create_key


def test_create_key_writes_file(tmp_path):
    path = tmp_path / "key"
    key = load_or_create_key(path, KEY_LENGTH)
    assert len(key) == KEY_LENGTH
    assert path.read_bytes() == key + b"\n"


def test_load_existing_key(tmp_path):
    path = tmp_path / "key"
    first = load_or_create_key(path, KEY_LENGTH)
    assert load_or_create_key(path, KEY_LENGTH) == first


def test_load_key_drops_trailing_byte(tmp_path):
    path = tmp_path / "key"
    path.write_bytes(b"0123456789abcdef\n")
    assert load_or_create_key(path) == b"0123456789abcdef"


def test_round_trip(tmp_path):
    key_file, iv_file = tmp_path / "k", tmp_path / "iv"
    plain = b"Hello, World!xxkdsajf;lksdjf"
    cipher = encrypt_contents(plain, key_file, iv_file)
    assert len(cipher) == len(plain)
    assert cipher != plain
    assert decrypt_contents(cipher, key_file, iv_file) == plain


def test_encryption_deterministic_with_same_key(tmp_path):
    key_file, iv_file = tmp_path / "k", tmp_path / "iv"
    plain = b"some file body"
    first = encrypt_contents(plain, key_file, iv_file)
    second = encrypt_contents(plain, key_file, iv_file)
    assert first == second
    assert len(first) == len(plain)
    assert first != plain
    assert decrypt_contents(second, key_file, iv_file) == plain


def test_round_trip_with_zero_bytes(tmp_path):
    key_file, iv_file = tmp_path / "k", tmp_path / "iv"
    plain = b"\x00abc\x00def"
    assert decrypt_contents(encrypt_contents(plain, key_file, iv_file), key_file, iv_file) == plain


def test_invalid_key_length_raises(tmp_path):
    key_file, iv_file = tmp_path / "k", tmp_path / "iv"
    key_file.write_bytes(b"short\n")
    with pytest.raises(ValueError):
        encrypt_contents(b"data", key_file, iv_file)