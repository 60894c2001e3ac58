"""Scraping of public YouTube channel pages.

The markup of channel pages is not a stable interface, so everything that
depends on it lives here behind three small functions:

* ``fetch_channel_page`` downloads a page the way a desktop browser would,
* ``extract_channel_id_from_html`` finds the page's own channel id,
* ``extract_avatar_from_html`` finds the channel avatar image.
"""

import asyncio
import html as html_lib
import json
import logging
import re

import httpx

logger = logging.getLogger(__name__)

BASE_URL = "https://www.youtube.com"

# YouTube channel IDs start with UC and are 24 characters (alphanumeric, -, _)
CHANNEL_ID_RE = re.compile(r"^UC[A-Za-z0-9_-]{22}$")

BROWSER_HEADERS = {
    "user-agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "accept-language": "en-US,en;q=0.8",
    # Skips the EU consent interstitial, which has no channel data
    "cookie": "CONSENT=YES+1",
}

_CANONICAL_RE = re.compile(r'<link\s+rel="canonical"\s+href="https://www\.youtube\.com/([^"]+)"')
_INITIAL_DATA_RE = re.compile(r"var ytInitialData = (\{.*?\});\s*</script>", re.DOTALL)
_ID_KEY_RES = [
    re.compile(r'"externalId":"(UC[A-Za-z0-9_-]{22})"'),
    re.compile(r'"channelId":"(UC[A-Za-z0-9_-]{22})"'),
    re.compile(r'"browseId":"(UC[A-Za-z0-9_-]{22})"'),
]

_AVATAR_RES = [
    re.compile(r'<meta\s+property="og:image"\s+content="([^"]+)"'),
    re.compile(r'<link\s+itemprop="image"\s+href="([^"]+)"'),
    re.compile(r'"avatar":\{"thumbnails":\[\{"url":"([^"]+)"'),
]


async def fetch_channel_page(path: str, timeout: float) -> str | None:
    """
    Download a public channel page.

    Args:
        path: Page path below youtube.com, e.g. "@handle" or "channel/UC..."
        timeout: Request timeout in seconds

    Returns:
        The page HTML, or None if the server answered with a non-success status

    Raises:
        httpx.InvalidURL: If the path can't form a valid URL
        httpx.HTTPError: If the request itself fails (timeout, connection error)
    """
    url = f"{BASE_URL}/{path}"
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        response = await client.get(url, params={"hl": "en", "gl": "US"}, headers=BROWSER_HEADERS)

    if not response.is_success:
        logger.warning(
            f"Channel page fetch failed for {path}: HTTP {response.status_code}",
            extra={"url": url, "status": response.status_code},
        )
        return None
    return response.text


def _id_from_canonical(page: str) -> str | None:
    match = _CANONICAL_RE.search(page)
    if not match:
        return None
    path = match.group(1)
    if path.startswith("channel/"):
        candidate = path.removeprefix("channel/")
        if CHANNEL_ID_RE.match(candidate):
            return candidate
    return None


def _id_from_initial_data(page: str) -> str | None:
    match = _INITIAL_DATA_RE.search(page)
    if not match:
        return None
    try:
        data = json.loads(match.group(1))
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    metadata = data.get("metadata") or {}
    microformat = data.get("microformat") or {}
    candidates = [
        (metadata.get("channelMetadataRenderer") or {}).get("externalId"),
        (metadata.get("playlistMetadataRenderer") or {}).get("externalId"),
        (microformat.get("microformatDataRenderer") or {}).get("externalId"),
    ]
    for candidate in candidates:
        if isinstance(candidate, str) and CHANNEL_ID_RE.match(candidate):
            return candidate
    return None


def _id_from_json_keys(page: str) -> str | None:
    # The first occurrence is usually the page's own channel
    for pattern in _ID_KEY_RES:
        if match := pattern.search(page):
            return match.group(1)
    return None


def extract_channel_id_from_html(page: str) -> str | None:
    """Find the channel id of a channel page.

    Preference order: canonical link, ytInitialData metadata, then the first
    channel-id shaped value under a known JSON key.
    """
    return _id_from_canonical(page) or _id_from_initial_data(page) or _id_from_json_keys(page)


def extract_avatar_from_html(page: str) -> str | None:
    """Find the channel avatar image URL on a channel page."""
    for pattern in _AVATAR_RES:
        if match := pattern.search(page):
            url = html_lib.unescape(match.group(1))
            if url.startswith("//"):
                url = f"https:{url}"
            if url.startswith("http"):
                return url
    return None


async def fetch_channel_avatar(channel_id: str, timeout: float = 1.5) -> str | None:
    """
    Scrape a channel's avatar from its public page.

    Best effort: any failure, including a timeout, yields None.

    Args:
        channel_id: YouTube channel ID
        timeout: Request timeout in seconds

    Returns:
        Avatar image URL, or None if it could not be determined
    """
    try:
        # httpx timeouts are per phase; bound the whole request
        page = await asyncio.wait_for(
            fetch_channel_page(f"channel/{channel_id}", timeout=timeout), timeout=timeout
        )
    except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError) as e:
        logger.debug(f"Avatar fetch failed for {channel_id}: {e!r}")
        return None
    if page is None:
        return None
    return extract_avatar_from_html(page)
