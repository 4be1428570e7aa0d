"""Object key construction for the image bucket."""

from __future__ import annotations

from urllib.parse import quote

# Characters left unescaped by a browser's encodeURIComponent.
_URI_COMPONENT_SAFE = "-_.!~*'()"


def encode_component(value: str) -> str:
    """Percent-encode a single key segment."""

    return quote(value, safe=_URI_COMPONENT_SAFE)


def encode_path(path: str) -> str:
    """Encode each ``/``-delimited segment, dropping empty ones."""

    return "/".join(encode_component(segment) for segment in path.split("/") if segment)


def build_key(
    filename: str,
    path: str | None = None,
    encode_filename_for_url: bool = False,
) -> str:
    """Compose ``path/filename`` from already-validated parts.

    Storage keys keep the raw sanitized filename so object identity matches what
    was uploaded; URL keys percent-encode it.
    """

    name = encode_component(filename) if encode_filename_for_url else filename
    encoded_path = encode_path(path) if path else ""
    return f"{encoded_path}/{name}" if encoded_path else name


__all__ = ["build_key", "encode_component", "encode_path"]
