"""Derive the stable record identity from a URL or from a fetched payload.

Both derivations must agree for the same logical resource: the URL carries
the identifier as a query parameter (``?property=42``) and the server echoes
it back under ``query.property`` in the payload. Older payloads without the
echo are keyed by the first entry of their ``response`` mapping.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import parse_qs, urlsplit

DEFAULT_PARAM = "property"


def _as_identity(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list, tuple, bool)):
        return None
    text = str(value).strip()
    return text or None


def identity_from_url(url: str, param: str = DEFAULT_PARAM) -> str | None:
    """Return the value of ``param`` in the URL query, or None.

    Malformed input yields None rather than raising.
    """

    if not isinstance(url, str):
        return None
    try:
        query = urlsplit(url.strip()).query
        values = parse_qs(query, keep_blank_values=False).get(param)
    except ValueError:
        return None
    if not values:
        return None
    return _as_identity(values[0])


def identity_from_record(record: Any, param: str = DEFAULT_PARAM) -> str | None:
    """Return the identity of a parsed payload, or None.

    The echoed query (``record["query"][param][0]``) wins. Otherwise the first
    key of ``record["response"]`` is used; with several keys that choice only
    follows insertion order and is not guaranteed to name the right resource.
    """

    if not isinstance(record, dict):
        return None
    query = record.get("query")
    if isinstance(query, dict):
        echoed = query.get(param)
        if isinstance(echoed, (list, tuple)):
            echoed = echoed[0] if echoed else None
        identity = _as_identity(echoed)
        if identity:
            return identity
    response = record.get("response")
    if isinstance(response, dict) and response:
        return _as_identity(next(iter(response)))
    return None


__all__ = ["DEFAULT_PARAM", "identity_from_record", "identity_from_url"]
