from __future__ import annotations

import codecs
import json
import re
from typing import Any, Dict, Optional

DEFAULT_RESPONSE_ENCODING = "us-ascii"

_ISO_8859_RE = re.compile(r"^iso8859-(\d+)$")
_WINDOWS_RE = re.compile(r"^cp(125\d)$")

# Python codec names whose IANA charset name differs in more than punctuation.
_IANA_NAMES = {
    "ascii": "us-ascii",
    "shift_jis": "shift_jis",
    "mac-roman": "macintosh",
}


def canonical_name(encoding: str) -> str:
    """Return the charset label for an encoding, as it goes on the wire.

    Raises LookupError for names that are unknown or that do not name a text
    encoding (``base64``, ``rot13`` and the other codecs.encode-only codecs).
    """
    name = codecs.lookup(encoding).name
    # str.encode refuses bytes-to-bytes and str-to-str codecs.
    "".encode(name)
    if name in _IANA_NAMES:
        return _IANA_NAMES[name]
    match = _ISO_8859_RE.match(name)
    if match:
        return f"iso-8859-{match.group(1)}"
    match = _WINDOWS_RE.match(name)
    if match:
        return f"windows-{match.group(1)}"
    return name.replace("_", "-")


def resolve_response_encoding(requested: Optional[str]) -> str:
    if requested is None:
        return DEFAULT_RESPONSE_ENCODING
    return canonical_name(requested)


def request_encoding(charset: Optional[str]) -> Optional[str]:
    """Codec for a request body's declared charset, or None when unusable."""
    if not charset:
        return None
    try:
        return canonical_name(charset.strip())
    except LookupError:
        return None


def encode_json(payload: Dict[str, Any], encoding: str, dumps=json.dumps) -> bytes:
    """Serialize ``payload`` to compact JSON encoded in ``encoding``.

    Text is kept literal where the charset can carry it and falls back to
    \\u escapes otherwise, so the result always decodes with ``encoding``.
    """
    options = {"separators": (",", ":"), "sort_keys": False}
    text = dumps(payload, ensure_ascii=False, **options)
    try:
        return text.encode(encoding)
    except UnicodeEncodeError:
        return dumps(payload, ensure_ascii=True, **options).encode(encoding)
