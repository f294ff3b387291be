from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import markdown
import nh3
from jinja2 import Environment, FileSystemLoader
from markupsafe import Markup

from archiver.models import ArchiveMetadata, EventRecord, parse_start_time

ALLOWED_TAGS = {
    "h1", "h2", "h3", "h4", "h5", "h6",
    "p", "br", "hr", "strong", "em", "b", "i", "u", "blockquote",
    "ul", "ol", "li",
    "code", "pre",
    "a",
}
ALLOWED_ATTRIBUTES = {"a": {"href", "title"}, "code": {"class"}}
ALLOWED_URL_SCHEMES = {"http", "https", "mailto"}

_KNOWN_ENTITIES = [
    (re.compile(r"&ndash;", re.IGNORECASE), "–"),
    (re.compile(r"&mdash;", re.IGNORECASE), "—"),
    (re.compile(r"&#8211;"), "–"),
    (re.compile(r"&#8212;"), "—"),
    (re.compile(r"&#x2011;", re.IGNORECASE), "‑"),
    (re.compile(r"&#x2013;", re.IGNORECASE), "–"),
    (re.compile(r"&#x2014;", re.IGNORECASE), "—"),
]

# Meetup descriptions arrive with these characters backslash-escaped.
_ESCAPED_MARKDOWN = re.compile(r"\\([-|*_~`])")

NO_DESCRIPTION = "No description provided."


def _get_template_env() -> Environment:
    """Create Jinja2 environment with templates directory."""
    templates_dir = Path(__file__).parent / "templates"
    return Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def decode_known_entities(text: str) -> str:
    for pattern, replacement in _KNOWN_ENTITIES:
        text = pattern.sub(replacement, text)
    return text


def unescape_common_markdown(text: str) -> str:
    return _ESCAPED_MARKDOWN.sub(r"\1", text)


def render_markdown(text: str) -> Markup:
    """
    Convert a Markdown event description into sanitized HTML.

    Only a small tag allowlist survives; links are restricted to http/https/mailto and
    open in a new tab with rel="noopener noreferrer".
    """
    source = unescape_common_markdown(decode_known_entities(text))
    html = markdown.markdown(source, extensions=["nl2br"])
    cleaned = nh3.clean(
        html,
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        url_schemes=ALLOWED_URL_SCHEMES,
        link_rel="noopener noreferrer",
        set_tag_attribute_values={"a": {"target": "_blank"}},
    )
    return Markup(cleaned)


def format_date(iso: str) -> str:
    """Format an API timestamp like 'Sat, 4 Jan 2025, 18:00'; unparseable input is returned as-is."""
    d = parse_start_time(iso)
    if d.year == 1:
        return iso
    return f"{d:%a}, {d.day} {d:%b %Y}, {d:%H:%M}"


def _safe_link(url: Optional[str]) -> Optional[str]:
    if url and url.startswith(("http://", "https://")):
        return url
    return None


def _event_context(event: EventRecord) -> Dict[str, Any]:
    photo = event.featured_photo
    album_photos = event.photo_album.photos if event.photo_album and event.photo_album.photos else ()
    return {
        "id": event.id,
        "title": event.title,
        "url": _safe_link(event.event_url),
        "event_type": event.event_type or "EVENT",
        "date": format_date(event.date_time),
        "rsvp_count": event.rsvps.total_count,
        "hosts": ", ".join(h.name for h in event.hosts) or "N/A",
        "venue": event.venue.display if event.venue else "",
        "description": render_markdown(event.description) if event.description else NO_DESCRIPTION,
        "photo": photo.url() if photo and (photo.is_inlined or (photo.base_url and photo.id)) else None,
        "album_photos": [p.url() for p in album_photos],
    }


def _prepare_context(metadata: ArchiveMetadata, events: List[EventRecord]) -> Dict[str, Any]:
    newest_first = sorted(events, key=lambda e: e.start, reverse=True)
    return {
        "group_name": metadata.group_name,
        "group_urlname": metadata.group_urlname,
        "total_events": metadata.total_events,
        "past_events": metadata.past_events,
        "upcoming_events": metadata.upcoming_events,
        "archived_at": metadata.archived_at,
        "events": [_event_context(e) for e in newest_first],
    }


def render_archive(metadata: ArchiveMetadata, events: List[EventRecord]) -> str:
    """
    Render a single self-contained HTML page for an archive.

    Failure modes:
        - Raises jinja2.TemplateError if template is malformed
        - Raises if templates/archive.html.j2 is missing
    """
    env = _get_template_env()
    template = env.get_template("archive.html.j2")
    return template.render(**_prepare_context(metadata, events))
