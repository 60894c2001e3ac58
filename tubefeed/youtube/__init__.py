"""YouTube channel resolution and public page scraping."""

from .page import extract_avatar_from_html, extract_channel_id_from_html, fetch_channel_avatar
from .resolver import extract_channel_id, handle_from_input, resolve_channel_id

__all__ = [
    "extract_avatar_from_html",
    "extract_channel_id",
    "extract_channel_id_from_html",
    "fetch_channel_avatar",
    "handle_from_input",
    "resolve_channel_id",
]
