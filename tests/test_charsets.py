import json

import pytest

from echo_fixture.charsets import (
    DEFAULT_RESPONSE_ENCODING,
    canonical_name,
    encode_json,
    request_encoding,
    resolve_response_encoding,
)


def test_default_response_encoding_is_us_ascii():
    assert resolve_response_encoding(None) == DEFAULT_RESPONSE_ENCODING == "us-ascii"


def test_canonical_names_use_charset_labels():
    assert canonical_name("utf-8") == "utf-8"
    assert canonical_name("UTF8") == "utf-8"
    assert canonical_name("ascii") == "us-ascii"
    assert canonical_name("US-ASCII") == "us-ascii"
    assert canonical_name("latin-1") == "iso-8859-1"
    assert canonical_name("iso-8859-15") == "iso-8859-15"
    assert canonical_name("cp1252") == "windows-1252"
    assert canonical_name("utf_16_le") == "utf-16-le"


def test_canonical_name_is_stable():
    for name in ("us-ascii", "iso-8859-1", "windows-1252", "utf-8", "macintosh", "shift_jis"):
        assert canonical_name(name) == name


def test_unknown_encoding_raises_lookup_error():
    with pytest.raises(LookupError):
        resolve_response_encoding("not-a-real-encoding")


def test_non_text_codecs_are_rejected():
    for name in ("base64", "rot13", "hex", "zlib"):
        with pytest.raises(LookupError):
            canonical_name(name)


def test_request_encoding_ignores_missing_and_unknown_charsets():
    assert request_encoding(None) is None
    assert request_encoding("") is None
    assert request_encoding("bogus") is None
    assert request_encoding(" UTF-8 ") == "utf-8"


def test_encode_json_is_compact_and_ordered():
    payload = {"method": "GET", "path": "", "headers": {"x-a": "1"}}
    assert encode_json(payload, "us-ascii") == b'{"method":"GET","path":"","headers":{"x-a":"1"}}'


def test_encode_json_keeps_text_literal_when_charset_allows():
    raw = encode_json({"body": "ü"}, "iso-8859-1")
    assert raw == '{"body":"ü"}'.encode("iso-8859-1")


def test_encode_json_escapes_what_charset_cannot_carry():
    raw = encode_json({"body": "snow ☃"}, "iso-8859-1")
    assert b"\\u2603" in raw
    assert json.loads(raw.decode("iso-8859-1")) == {"body": "snow ☃"}
