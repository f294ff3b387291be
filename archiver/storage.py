from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Tuple, Union

from archiver.models import ArchiveMetadata, EventRecord

PathLike = Union[str, Path]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def ensure_output_directory(path: PathLike) -> None:
    os.makedirs(path, exist_ok=True)


def generate_filename(group_urlname: str) -> str:
    """`<urlname>-<timestamp>.json` with ':' and '.' of the ISO timestamp replaced by '-'."""
    timestamp = utc_now_iso().replace(":", "-").replace(".", "-")
    return f"{group_urlname}-{timestamp}.json"


def create_metadata(
    group_urlname: str,
    group_id: str,
    group_name: str,
    total_events: int,
    past_count: int,
    upcoming_count: int,
) -> ArchiveMetadata:
    return ArchiveMetadata(
        archived_at=utc_now_iso(),
        group_urlname=group_urlname,
        group_id=group_id,
        group_name=group_name,
        total_events=total_events,
        past_events=past_count,
        upcoming_events=upcoming_count,
    )


def save_to_json(events: List[EventRecord], metadata: ArchiveMetadata, output_path: PathLike) -> None:
    """Write the archive atomically (temp file, then rename)."""
    output_path = str(output_path)
    ensure_output_directory(os.path.dirname(output_path) or ".")
    payload = {"metadata": metadata.to_dict(), "events": [event.to_dict() for event in events]}
    tmp = f"{output_path}.tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
        f.write("\n")
    os.replace(tmp, output_path)


def load_archive(path: PathLike) -> Tuple[ArchiveMetadata, List[EventRecord]]:
    """
    Read an archive written by save_to_json.

    Failure modes:
        - Raises OSError if the file cannot be read
        - Raises ValueError if it is not valid JSON or lacks the expected shape
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, dict) or not isinstance(raw.get("events"), list):
        raise ValueError(f"{path} is not an archive file (expected 'metadata' and 'events')")
    metadata = ArchiveMetadata.from_dict(raw.get("metadata") or {})
    events = [EventRecord.from_node(node) for node in raw["events"]]
    return metadata, events


def format_file_size(num_bytes: float) -> str:
    if num_bytes < 1024:
        return f"{num_bytes:.0f} B"
    elif num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.2f} KB"
    else:
        return f"{num_bytes / (1024 * 1024):.2f} MB"


def display_summary(metadata: ArchiveMetadata, file_path: PathLike) -> None:
    file_size = format_file_size(os.path.getsize(file_path))
    rule = "=" * 60
    print()
    print(rule)
    print("Archive Complete!")
    print(rule)
    print(f"Group Name:       {metadata.group_name}")
    print(f"Group URL:        {metadata.group_urlname}")
    print(f"Total Events:     {metadata.total_events}")
    print(f"  - Past:         {metadata.past_events}")
    print(f"  - Upcoming:     {metadata.upcoming_events}")
    print(f"Archived At:      {metadata.archived_at}")
    print(f"Output File:      {file_path}")
    print(f"File Size:        {file_size}")
    print(rule)
    print()
