"""URL detection helpers for free-form message text."""

from __future__ import annotations

import re
from typing import Optional

DEFAULT_SCHEME = "https://"

_HOST_CHARS = r"a-z\u00a1-\uffff0-9"

VALID_URL_PATTERN = re.compile(
    r"^"
    # protocol identifier
    r"(?:(?:https?|ftp)://)"
    # user:pass authentication
    r"(?:\S+(?::\S*)?@)?"
    r"(?:"
    # private and local networks are never previewed
    r"(?!(?:10|127)(?:\.[0-9]{1,3}){3})"
    r"(?!(?:169\.254|192\.168)(?:\.[0-9]{1,3}){2})"
    r"(?!172\.(?:1[6-9]|2[0-9]|3[0-1])(?:\.[0-9]{1,3}){2})"
    # dotted octets, no 0.0.0.0, no >= 224.0.0.0, no network/broadcast
    r"(?:[1-9][0-9]?|1[0-9][0-9]|2[01][0-9]|22[0-3])"
    r"(?:\.(?:1?[0-9]{1,2}|2[0-4][0-9]|25[0-5])){2}"
    r"(?:\.(?:[1-9][0-9]?|1[0-9][0-9]|2[0-4][0-9]|25[0-4]))"
    r"|"
    # host name
    rf"(?:[{_HOST_CHARS}]+(?:-+[{_HOST_CHARS}]+)*)"
    # domain name
    rf"(?:\.[{_HOST_CHARS}]+(?:-+[{_HOST_CHARS}]+)*)*"
    # TLD, optionally ending with a dot
    r"(?:\.(?:[a-z\u00a1-\uffff]{2,}))"
    r"\.?"
    r")"
    # port number
    r"(?::[0-9]{2,5})?"
    # resource path
    r"(?:[/?#]\S*)?"
    r"$",
    re.IGNORECASE,
)


def ensure_scheme(text: str) -> str:
    """Prefix ``https://`` unless the text already starts with an HTTP scheme."""
    if text.startswith("https://") or text.startswith("http://"):
        return text
    return DEFAULT_SCHEME + text


def is_valid_url(token: str) -> bool:
    return VALID_URL_PATTERN.match(token) is not None


def detect_url(text: str) -> Optional[str]:
    """Return the first whitespace-delimited token of ``text`` that is a valid URL.

    Only one preview is generated per message, so later URLs are ignored.
    The default scheme is prefixed to the text as a whole, which means a
    scheme-less first word such as ``see.it`` wins over a later full URL.
    """
    candidate = ensure_scheme(text)
    for token in candidate.replace("\n", " ").split():
        if is_valid_url(token):
            return token
    return None
