#!/usr/bin/env python3
"""
Archive every past and upcoming event of a Meetup group into a JSON file.

Usage:
    python -m archiver.main typescript-oslo
    python -m archiver.main typescript-oslo --output-dir archives --html
    python -m archiver.main --help

The group URL name is the part after meetup.com/, e.g. https://www.meetup.com/typescript-oslo/.

Environment variables (a local .env file is loaded first):
    MEETUP_ACCESS_TOKEN: API access token (required)
    MEETUP_OUTPUT_DIR: Directory for archive files (default: output)
    LOG_LEVEL: Logging level (default: INFO)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import httpx
from dotenv import load_dotenv

from archiver.client import MeetupClient
from archiver.config import ArchiverConfig, load_config_from_env, setup_logging
from archiver.errors import ArchiverError, ConfigurationError
from archiver.images import ImageEmbedder
from archiver.rate_limit import RateGovernor
from archiver.storage import create_metadata, display_summary, generate_filename, save_to_json

logger = logging.getLogger(__name__)

TOKEN_HELP = """\
Set MEETUP_ACCESS_TOKEN in the environment or in a .env file:
  1. Log in at https://www.meetup.com
  2. Open the browser DevTools, Application/Storage -> Cookies
  3. Copy the value of __meetup_auth_access_token
  4. Add MEETUP_ACCESS_TOKEN=<value> to .env
"""


async def run_once(
    cfg: ArchiverConfig,
    group_urlname: str,
    *,
    output_dir: Optional[str] = None,
    embed_images: bool = True,
    render_html: bool = False,
    http_client: Optional[httpx.AsyncClient] = None,
    image_http_client: Optional[httpx.AsyncClient] = None,
) -> int:
    """
    Fetch, enrich and write one archive. Returns the process exit code.

    Fatal ArchiverErrors (group not found, auth/transport/GraphQL failures on the PAST
    fetch) propagate to the caller.
    """
    governor = RateGovernor(cfg.rate_limit_points, cfg.rate_limit_window_s)
    client = MeetupClient(
        cfg.access_token,
        endpoint=cfg.endpoint,
        user_agent=cfg.user_agent,
        timeout_s=cfg.timeout_s,
        excluded_host=cfg.excluded_host,
        max_pages=cfg.max_pages,
        governor=governor,
        http_client=http_client,
    )

    async with client:
        print("[archiver] Testing authentication...")
        if not await client.test_authentication():
            print("[archiver] ERROR: Authentication failed. Check that MEETUP_ACCESS_TOKEN is valid.", file=sys.stderr)
            return 1
        print("[archiver] Authentication successful")

        result = await client.fetch_all_group_events(group_urlname, cfg.page_size)
        if not result.events:
            print("[archiver] No events found for this group.")
            return 0

        events = result.events
        if embed_images:
            embedder = ImageEmbedder(
                client.fetch_album_photos,
                http_client=image_http_client,
                timeout_s=cfg.image_timeout_s,
                concurrency=cfg.image_concurrency,
                images_per_second=cfg.images_per_second,
            )
            async with embedder:
                events = await embedder.embed_images(events)

    metadata = create_metadata(
        group_urlname,
        result.group_id,
        result.group_name,
        len(events),
        result.past_count,
        result.upcoming_count,
    )
    output_path = Path(output_dir or cfg.output_dir) / generate_filename(group_urlname)
    save_to_json(events, metadata, output_path)
    display_summary(metadata, output_path)

    if render_html:
        from reports.run_render import default_output_path, render_file

        html_path = render_file(output_path, default_output_path(output_path))
        print(f"[archiver] HTML written to {html_path}")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Archive all events of a Meetup group to JSON",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("group_urlname", nargs="?", help="Group URL name (the part after meetup.com/)")
    parser.add_argument("--output-dir", type=str, default=None, help="Output directory (default: $MEETUP_OUTPUT_DIR or output/)")
    parser.add_argument("--no-images", action="store_true", help="Keep remote photo URLs instead of embedding images")
    parser.add_argument("--html", action="store_true", help="Also render the archive to output-html/")
    args = parser.parse_args(argv)

    if not args.group_urlname:
        print("[archiver] ERROR: Group URL name is required", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 1

    try:
        cfg = load_config_from_env()
    except ConfigurationError as e:
        print(f"[archiver] ERROR: {e}", file=sys.stderr)
        print(TOKEN_HELP, file=sys.stderr)
        return 1

    setup_logging(cfg.log_level)
    print(f"[archiver] Group: {args.group_urlname}")

    try:
        return asyncio.run(
            run_once(
                cfg,
                args.group_urlname,
                output_dir=args.output_dir,
                embed_images=not args.no_images,
                render_html=args.html,
            )
        )
    except ArchiverError as e:
        logger.debug("Archive run failed", exc_info=True)
        print(f"[archiver] ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
