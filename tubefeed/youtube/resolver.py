"""Resolution of user input (URL, handle, raw id) to a YouTube channel id."""

import logging
from urllib.parse import parse_qs, urlparse

import httpx

from tubefeed.config import get_settings

from .page import CHANNEL_ID_RE, extract_channel_id_from_html, fetch_channel_page

logger = logging.getLogger(__name__)


def _path_parts(value: str) -> list[str] | None:
    """Split a URL's path into segments, or None if value is not a URL."""
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return [part for part in parsed.path.split("/") if part]


def _handle_from_parts(parts: list[str]) -> str | None:
    for part in parts:
        if part.startswith("@") and len(part) > 1:
            return part
    for prefix in ("c", "user"):
        if prefix in parts:
            index = parts.index(prefix)
            if index + 1 < len(parts):
                return f"@{parts[index + 1]}"
    return None


def extract_channel_id(value: str) -> str | None:
    """Extract a channel id from input without any network access.

    Accepts a raw channel id, or a URL carrying a ``channel_id`` query
    parameter or a ``/channel/<id>`` path segment.

    Args:
        value: Raw user input

    Returns:
        The channel id, or None if the input needs handle resolution or is
        not recognisable at all
    """
    trimmed = value.strip()
    if not trimmed:
        return None

    if CHANNEL_ID_RE.match(trimmed):
        return trimmed

    parts = _path_parts(trimmed)
    if parts is None:
        return None

    query_ids = parse_qs(urlparse(trimmed).query).get("channel_id")
    if query_ids and query_ids[0]:
        return query_ids[0]

    if "channel" in parts:
        index = parts.index("channel")
        if index + 1 < len(parts):
            return parts[index + 1]

    return None


def handle_from_input(value: str) -> str | None:
    """Return the ``@handle`` named by a bare handle or a channel URL.

    ``/c/<name>`` and ``/user/<name>`` legacy URLs map to ``@<name>``.
    """
    trimmed = value.strip()
    if trimmed.startswith("@"):
        return trimmed if len(trimmed) > 1 and " " not in trimmed else None

    parts = _path_parts(trimmed)
    if parts is None:
        return None
    return _handle_from_parts(parts)


async def resolve_handle(handle: str) -> str | None:
    """
    Resolve a handle to its channel id by scraping the channel page.

    Network and HTTP failures are logged and reported as None, the same as a
    page that carries no channel id.

    Args:
        handle: Channel handle, with or without the leading "@"

    Returns:
        The channel id, or None
    """
    clean_handle = handle if handle.startswith("@") else f"@{handle}"
    timeout = get_settings().handle_fetch_timeout_seconds

    try:
        page = await fetch_channel_page(clean_handle, timeout=timeout)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error(f"Handle resolution error for {clean_handle}: {e!r}")
        return None

    if page is None:
        return None

    channel_id = extract_channel_id_from_html(page)
    if channel_id is None:
        logger.warning(f"No channel id found on page for {clean_handle}")
    return channel_id


async def resolve_channel_id(value: str) -> str | None:
    """
    Turn arbitrary user input into a canonical channel id.

    Direct matches (raw ids, /channel/ URLs, channel_id query parameters)
    return without touching the network; handles and handle-shaped URLs take
    one page fetch.

    Args:
        value: A channel URL, handle or id

    Returns:
        The channel id, or None if none could be established
    """
    if direct := extract_channel_id(value):
        return direct

    if handle := handle_from_input(value):
        return await resolve_handle(handle)

    return None
