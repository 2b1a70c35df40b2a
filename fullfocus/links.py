"""
Meeting-link extraction.

An event's own URL attachment always wins. Otherwise the location and then
the notes are scanned for the first http(s) URL.
"""

import re

from .models import ProviderEvent

MEETING_URL_PATTERN = re.compile(r"https?://\S+", re.IGNORECASE)


def find_url(text: str | None) -> str | None:
    """Return the first http(s) URL in ``text``, if any."""
    if not text:
        return None
    match = MEETING_URL_PATTERN.search(text)
    return match.group(0) if match else None


def first_meeting_url(event: ProviderEvent) -> str | None:
    """Return the meeting link for an event, or None when it has none."""
    if event.url:
        return event.url

    for text in (event.location, event.notes):
        url = find_url(text)
        if url:
            return url
    return None
