"""Parsing of YouTube channel Atom feeds into FeedVideo entries."""

import xml.etree.ElementTree as ET
from datetime import datetime, timezone

from .models import ChannelFeed, ChannelMeta, FeedVideo

# XML namespaces for YouTube RSS feeds
NAMESPACES = {
    "yt": "http://www.youtube.com/xml/schemas/2015",
    "atom": "http://www.w3.org/2005/Atom",
    "media": "http://search.yahoo.com/mrss/",
}

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"
DEFAULT_THUMBNAIL_URL = "https://i.ytimg.com/vi/{video_id}/hqdefault.jpg"


def is_short(url: str) -> bool:
    """Check if a video URL points at a YouTube Short.

    Args:
        url: The canonical link of the video

    Returns:
        True if the URL path contains "/shorts/", False otherwise
    """
    return "/shorts/" in url.lower()


def _text(elem: ET.Element, path: str) -> str | None:
    """Return the stripped text of a child element, or None if absent/empty."""
    child = elem.find(path, NAMESPACES)
    if child is None or not child.text:
        return None
    return child.text.strip() or None


def _attr(elem: ET.Element, path: str, name: str) -> str | None:
    child = elem.find(path, NAMESPACES)
    if child is None:
        return None
    return child.attrib.get(name) or None


def _parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp, treating naive values as UTC."""
    if not value:
        return None
    try:
        # Convert Z to +00:00 for proper parsing
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _entry_link(entry: ET.Element) -> str | None:
    links = entry.findall("atom:link", NAMESPACES)
    for link in links:
        if link.attrib.get("rel") == "alternate" and link.attrib.get("href"):
            return link.attrib["href"]
    for link in links:
        if link.attrib.get("href"):
            return link.attrib["href"]
    return None


def _entry_video_id(entry: ET.Element) -> str | None:
    video_id = _text(entry, "yt:videoId")
    if video_id:
        return video_id
    # Atom ids look like "yt:video:<id>"
    atom_id = _text(entry, "atom:id")
    if atom_id:
        return atom_id.removeprefix("yt:video:")
    return None


def _entry_thumbnail(entry: ET.Element, video_id: str) -> str:
    """Resolve an entry's thumbnail, first non-empty source wins."""
    return (
        _attr(entry, "media:group/media:thumbnail", "url")
        or _attr(entry, "media:group/media:content", "url")
        or _attr(entry, "media:thumbnail", "url")
        or DEFAULT_THUMBNAIL_URL.format(video_id=video_id)
    )


def _entry_duration(entry: ET.Element) -> str | None:
    seconds = _attr(entry, "media:group/media:content", "duration")
    return f"{seconds}s" if seconds else None


def parse_entry(entry: ET.Element) -> FeedVideo | None:
    """Convert one Atom ``<entry>`` into a FeedVideo.

    Entries without any video identifier are skipped (None). A missing
    published timestamp falls back to the current time so the item keeps a
    place on the timeline instead of being dropped.
    """
    video_id = _entry_video_id(entry)
    if not video_id:
        return None

    link = _entry_link(entry)
    published = _parse_timestamp(_text(entry, "atom:published"))

    return FeedVideo(
        id=video_id,
        title=_text(entry, "atom:title") or "",
        channel_id=_text(entry, "yt:channelId") or "",
        channel_title=_text(entry, "atom:author/atom:name") or "",
        published_at=published or datetime.now(timezone.utc),
        updated_at=_parse_timestamp(_text(entry, "atom:updated")),
        url=link or WATCH_URL.format(video_id=video_id),
        thumbnail=_entry_thumbnail(entry, video_id),
        duration=_entry_duration(entry),
        is_short=is_short(link) if link else False,
    )


def parse_channel_feed(xml_text: str, channel_id: str) -> ChannelFeed:
    """Parse a channel's raw feed XML into videos and channel metadata.

    Malformed XML degrades to an empty feed rather than raising.

    Args:
        xml_text: Raw Atom document returned by the feed endpoint
        channel_id: The channel the feed was requested for

    Returns:
        ChannelFeed with the parsed videos (document order) and metadata
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError:
        return ChannelFeed(videos=[], meta=ChannelMeta(channel_id=channel_id, title=""))

    entries = root.findall("atom:entry", NAMESPACES)
    videos = [video for video in map(parse_entry, entries) if video is not None]

    title = _text(root, "atom:title") or _text(root, "atom:author/atom:name") or ""

    thumbnail = None
    if entries:
        thumbnail = _attr(entries[0], "media:group/media:thumbnail", "url") or _attr(
            entries[0], "media:thumbnail", "url"
        )
    if not thumbnail and videos:
        thumbnail = videos[0].thumbnail

    return ChannelFeed(
        videos=videos,
        meta=ChannelMeta(channel_id=channel_id, title=title, thumbnail=thumbnail),
    )
