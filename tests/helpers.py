"""Builders for Meetup GraphQL payloads and an in-memory transport."""
from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional, Union

import httpx

FOUNDATION = "OWASP® Foundation"

Reply = Union[httpx.Response, Dict[str, Any], Callable[[httpx.Request], httpx.Response], Exception]


def make_node(
    event_id: str,
    date_time: str = "2026-01-01T10:00:00.000Z",
    *,
    hosts: Optional[List[str]] = None,
    featured_photo: Optional[Dict[str, str]] = None,
    photo_album: Optional[Dict[str, Any]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    node: Dict[str, Any] = {
        "id": event_id,
        "title": f"Event {event_id}",
        "eventUrl": f"https://www.meetup.com/test-group/events/{event_id}/",
        "dateTime": date_time,
        "status": "PAST",
        "eventHosts": [{"memberId": str(i), "name": name} for i, name in enumerate(hosts or [])],
    }
    if featured_photo is not None:
        node["featuredEventPhoto"] = featured_photo
    if photo_album is not None:
        node["photoAlbum"] = photo_album
    node.update(extra)
    return node


def events_page(
    nodes: List[Dict[str, Any]],
    *,
    has_next_page: bool = False,
    end_cursor: Optional[str] = "cursor",
    total_count: Optional[int] = None,
    group_id: str = "group123",
    group_name: str = "Test Group",
) -> Dict[str, Any]:
    return {
        "data": {
            "groupByUrlname": {
                "id": group_id,
                "name": group_name,
                "urlname": "test-group",
                "events": {
                    "totalCount": len(nodes) if total_count is None else total_count,
                    "pageInfo": {"hasNextPage": has_next_page, "endCursor": end_cursor},
                    "edges": [{"node": n} for n in nodes],
                },
            }
        }
    }


class FakeSleep:
    """Async stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class ScriptedTransport:
    """
    httpx transport replaying one scripted reply per request.

    Replies may be an httpx.Response, a JSON body (served with status 200), a callable
    taking the request, or an exception to raise.
    """

    def __init__(self, replies: List[Reply]) -> None:
        self.replies = list(replies)
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.replies:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json=reply)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]
