from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from archiver.config import DEFAULT_ENDPOINT, DEFAULT_EXCLUDED_HOST, PLACEHOLDER_TOKEN
from archiver.errors import (
    AlbumFetchFailed,
    ArchiverError,
    AuthenticationFailed,
    ConfigurationError,
    GraphQLError,
    GroupNotFound,
    MalformedResponse,
    PaginationLimitExceeded,
    RateLimited,
    TransportError,
)
from archiver.models import ArchiveResult, EventRecord, EventStatus, FetchResult, PageResult, Photo
from archiver.queries import get_event_album_query, get_group_events_query, get_self_query
from archiver.rate_limit import RateGovernor, Sleep

logger = logging.getLogger(__name__)

PAGE_DELAY_S = 0.1


def filter_excluded_hosts(events: Iterable[EventRecord], host_name: str) -> List[EventRecord]:
    """Drop events hosted by `host_name`; survivors keep their relative order."""
    return [event for event in events if not event.has_host(host_name)]


class MeetupClient:
    """
    Meetup GraphQL client: query execution, cursor pagination and the PAST/UPCOMING merge.

    Every request goes through the RateGovernor first. Use as an async context manager
    when the client owns its httpx.AsyncClient.
    """
    def __init__(
        self,
        access_token: str,
        *,
        endpoint: str = DEFAULT_ENDPOINT,
        user_agent: str = "meetup-archiver/0.1",
        timeout_s: float = 30.0,
        excluded_host: str = DEFAULT_EXCLUDED_HOST,
        max_pages: Optional[int] = 500,
        page_delay_s: float = PAGE_DELAY_S,
        governor: Optional[RateGovernor] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if not access_token or access_token == PLACEHOLDER_TOKEN:
            raise ConfigurationError("Invalid access token. Please set MEETUP_ACCESS_TOKEN in .env file")

        self._endpoint = endpoint
        self._headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "User-Agent": user_agent,
        }
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout_s)
        self.governor = governor or RateGovernor()
        self.excluded_host = excluded_host
        self.max_pages = max_pages
        self.page_delay_s = page_delay_s
        self._sleep = sleep

    async def __aenter__(self) -> "MeetupClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def execute_query(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        POST one GraphQL document and return the envelope's `data`.

        Failure modes:
          - AuthenticationFailed on HTTP 401
          - TransportError on any other HTTP error status, network fault or unreadable body
          - RateLimited when the first GraphQL error carries code RATE_LIMITED
          - GraphQLError for any other GraphQL error
          - MalformedResponse when `data` is not an object
        """
        await self.governor.check_rate_limit()

        try:
            resp = await self._http.post(
                self._endpoint,
                json={"query": query, "variables": variables or {}},
                headers=self._headers,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"timeout:{type(e).__name__}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"network:{type(e).__name__}:{str(e)[:200]}") from e

        self.governor.record_call()

        if resp.status_code == 401:
            raise AuthenticationFailed()
        if resp.status_code >= 400:
            raise TransportError(f"http_status:{resp.status_code}", status=resp.status_code)

        try:
            envelope = resp.json()
        except ValueError as e:
            raise TransportError(f"json_parse:{type(e).__name__}", status=resp.status_code) from e
        if not isinstance(envelope, dict):
            raise TransportError("json_parse:unexpected envelope", status=resp.status_code)

        errors = envelope.get("errors")
        if errors:
            first = errors[0] or {}
            extensions = first.get("extensions") or {}
            if extensions.get("code") == "RATE_LIMITED":
                raise RateLimited(extensions.get("resetAt"))
            raise GraphQLError(str(first.get("message") or "unknown error"))

        data = envelope.get("data") or {}
        if not isinstance(data, dict):
            raise MalformedResponse(f"data is {type(data).__name__}")
        return data

    async def test_authentication(self) -> bool:
        query, variables = get_self_query()
        try:
            data = await self.execute_query(query, variables)
        except ArchiverError as e:
            logger.error("Authentication test failed: %s", e)
            return False
        return bool(data)

    async def fetch_all_pages(
        self,
        urlname: str,
        status: EventStatus = "PAST",
        page_size: int = 20,
    ) -> FetchResult:
        """
        Follow the events cursor until hasNextPage is false.

        totalCount is logged for progress only: it counts events before the host
        filter, so termination depends on hasNextPage alone.
        """
        all_events: List[EventRecord] = []
        cursor: Optional[str] = None
        group_id = ""
        group_name = ""
        page_count = 0

        logger.info("Fetching %s events for group: %s", status, urlname)

        while True:
            page_count += 1
            query, variables = get_group_events_query(urlname, page_size, cursor, status)
            data = await self.execute_query(query, variables)

            group = data.get("groupByUrlname")
            if not group:
                raise GroupNotFound(urlname)
            if not isinstance(group, dict):
                raise MalformedResponse(f"groupByUrlname is {type(group).__name__}")

            group_id = str(group.get("id") or "")
            group_name = str(group.get("name") or "")

            connection = group.get("events")
            if not connection:
                break

            try:
                page = PageResult.from_connection(connection)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                raise MalformedResponse(f"{status} events page {page_count}: {type(e).__name__}: {e}") from e
            kept = filter_excluded_hosts(page.events, self.excluded_host)
            all_events.extend(kept)

            logger.info(
                "  Page %d: Fetched %d events, %d after filtering (Total: %d/%d)",
                page_count,
                len(page.events),
                len(kept),
                len(all_events),
                page.total_count,
            )

            if not page.has_next_page:
                break
            if self.max_pages is not None and page_count >= self.max_pages:
                raise PaginationLimitExceeded(self.max_pages)

            cursor = page.end_cursor
            await self._sleep(self.page_delay_s)

        logger.info("Completed: %d %s events fetched", len(all_events), status)
        return FetchResult(events=all_events, group_id=group_id, group_name=group_name)

    async def fetch_all_group_events(self, urlname: str, page_size: int = 20) -> ArchiveResult:
        """
        Fetch PAST (required) and UPCOMING (best-effort) events and merge them by start time.

        Any failure while fetching PAST propagates. Any ArchiverError while fetching
        UPCOMING is logged and treated as zero upcoming events.

        UPCOMING records whose id was already fetched as PAST are dropped before the
        merge, so upcoming_count can be smaller than the UPCOMING fetch's length.
        """
        past = await self.fetch_all_pages(urlname, "PAST", page_size)

        try:
            upcoming = await self.fetch_all_pages(urlname, "UPCOMING", page_size)
        except ArchiverError as e:
            logger.warning("Could not fetch upcoming events (%s); continuing with past events only", e)
            upcoming = FetchResult(events=[], group_id=past.group_id, group_name=past.group_name)

        # An event can flip from UPCOMING to PAST between the two fetches.
        past_ids = {event.id for event in past.events}
        upcoming_events = [event for event in upcoming.events if event.id not in past_ids]

        merged = sorted(past.events + upcoming_events, key=lambda event: event.start)

        return ArchiveResult(
            events=merged,
            group_id=past.group_id,
            group_name=past.group_name,
            past_count=len(past.events),
            upcoming_count=len(upcoming_events),
        )

    async def fetch_album_photos(self, event_id: str, count: int) -> List[Photo]:
        """Secondary query for up to `count` photos of an event's album. Raises AlbumFetchFailed."""
        query, variables = get_event_album_query(event_id, count)
        try:
            data = await self.execute_query(query, variables)
        except ArchiverError as e:
            raise AlbumFetchFailed(event_id, str(e)) from e

        try:
            album = (data.get("event") or {}).get("photoAlbum") or {}
            photos = album.get("photos") or {}
            if isinstance(photos, dict):
                nodes = [edge.get("node") for edge in photos.get("edges") or [] if isinstance(edge, dict)]
            else:
                nodes = list(photos)
            parsed = [Photo.from_dict(node) for node in nodes if isinstance(node, dict)]
        except (AttributeError, TypeError) as e:
            raise AlbumFetchFailed(event_id, f"malformed album payload: {type(e).__name__}") from e
        return [p for p in parsed if p is not None and p.id]
