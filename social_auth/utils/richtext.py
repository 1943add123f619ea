"""
Bluesky rich-text facets.

Bluesky does not parse post text; links, hashtags and mentions are only
clickable when the record carries ``app.bsky.richtext.facet`` entries whose
byte ranges index the UTF-8 encoded text.
"""

import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, NamedTuple, Optional

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(r"(?:^|(?<=[\s(]))(https?://[^\s]+)", re.IGNORECASE)
HASHTAG_PATTERN = re.compile(r"(?:^|(?<=\s))#([^\d\s#][^\s#]*)")
MENTION_PATTERN = re.compile(
    r"(?:^|(?<=[\s(]))@([a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+)"
)

TRAILING_PUNCTUATION = ".,;:!?)\"'"
MAX_TAG_LENGTH = 64

HandleResolver = Callable[[str], Awaitable[Optional[str]]]


class FacetSpan(NamedTuple):
    """A detected feature with UTF-8 byte offsets into the post text."""

    kind: str  # "link", "tag" or "mention"
    byte_start: int
    byte_end: int
    value: str


def _byte_offset(text: str, index: int) -> int:
    return len(text[:index].encode("utf-8"))


def _span(kind: str, text: str, start: int, end: int, value: str) -> FacetSpan:
    return FacetSpan(kind, _byte_offset(text, start), _byte_offset(text, end), value)


def detect_spans(text: str) -> List[FacetSpan]:
    """
    Find links, hashtags and mentions in post text.

    Trailing punctuation is not part of a link or hashtag. Results are
    ordered by position.
    """
    spans: List[FacetSpan] = []

    for match in URL_PATTERN.finditer(text):
        url = match.group(1).rstrip(TRAILING_PUNCTUATION)
        start = match.start(1)
        spans.append(_span("link", text, start, start + len(url), url))

    for match in HASHTAG_PATTERN.finditer(text):
        tag = match.group(1).rstrip(TRAILING_PUNCTUATION)
        if not tag or len(tag) > MAX_TAG_LENGTH:
            continue
        start = match.start(1) - 1  # include '#'
        spans.append(_span("tag", text, start, start + len(tag) + 1, tag))

    for match in MENTION_PATTERN.finditer(text):
        handle = match.group(1)
        start = match.start(1) - 1  # include '@'
        spans.append(_span("mention", text, start, match.end(1), handle.lower()))

    return sorted(spans, key=lambda span: span.byte_start)


async def detect_facets(
    text: str,
    resolve_handle: Optional[HandleResolver] = None,
) -> List[Dict[str, Any]]:
    """
    Build ``app.bsky.richtext.facet`` records for post text.

    Args:
        text: Post text
        resolve_handle: Coroutine mapping a handle to its DID; mentions it
            cannot resolve (or every mention, when omitted) are skipped

    Returns:
        Facet dicts ready to embed in an ``app.bsky.feed.post`` record
    """
    facets: List[Dict[str, Any]] = []

    for span in detect_spans(text):
        if span.kind == "link":
            feature = {"$type": "app.bsky.richtext.facet#link", "uri": span.value}
        elif span.kind == "tag":
            feature = {"$type": "app.bsky.richtext.facet#tag", "tag": span.value}
        else:
            if resolve_handle is None:
                continue
            did = await resolve_handle(span.value)
            if not did:
                logger.debug(f"Skipping mention of unresolvable handle @{span.value}")
                continue
            feature = {"$type": "app.bsky.richtext.facet#mention", "did": did}

        facets.append(
            {
                "index": {"byteStart": span.byte_start, "byteEnd": span.byte_end},
                "features": [feature],
            }
        )

    return facets
