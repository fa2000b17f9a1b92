"""Sanitization for provider-supplied free text."""

import re

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_WHITESPACE = re.compile(r"\s{2,}")


def sanitize_text(text: str | None, max_length: int = 200) -> str | None:
    """
    Clean an untrusted text field such as a company name.

    Strips control characters, collapses runs of whitespace and truncates to
    max_length. Empty results become None.
    """
    if text is None:
        return None

    text = _CONTROL_CHARS.sub("", str(text))
    text = _WHITESPACE.sub(" ", text).strip()

    if len(text) > max_length:
        text = text[:max_length].rstrip() + "..."

    return text or None
