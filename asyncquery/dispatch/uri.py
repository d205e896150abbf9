"""Split a path-style query into its resource path and parameter multimap."""

import re

import httpx

from asyncquery.executor.exceptions import MalformedPayloadError

# RFC 3986 forbids raw whitespace, control characters and these delimiters in a URI
_ILLEGAL_CHARACTERS = re.compile(r'[\s\x00-\x1f\x7f"<>\\^`{|}]')


def decompose_uri(query: str) -> tuple[str, dict[str, list[str]]]:
    """Return (path, params) for a query such as "/widgets?color=red&color=blue".

    Repeated keys keep all of their values in encounter order. Parameter names
    and values are percent-decoded.

    Raises:
        MalformedPayloadError: if the query is empty, holds characters a URI cannot
            contain, or is otherwise not a valid URI.
    """
    if not query or not query.strip():
        raise MalformedPayloadError("Query is empty")

    illegal = _ILLEGAL_CHARACTERS.search(query)
    if illegal is not None:
        raise MalformedPayloadError(
            f"Illegal character {illegal.group()!r} at index {illegal.start()} in query"
        )

    try:
        url = httpx.URL(query)
    except httpx.InvalidURL as exc:
        raise MalformedPayloadError(f"Invalid URI: {exc}") from exc

    params: dict[str, list[str]] = {}
    for key, value in url.params.multi_items():
        params.setdefault(key, []).append(value)
    return url.path, params
