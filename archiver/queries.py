"""GraphQL documents for the Meetup API."""
from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from archiver.models import EventStatus

GROUP_EVENTS_QUERY = """
query GetGroupEvents($urlname: String!, $first: Int!, $after: String, $status: EventStatus) {
  groupByUrlname(urlname: $urlname) {
    id
    name
    urlname
    events(first: $first, after: $after, status: $status) {
      totalCount
      pageInfo {
        endCursor
        hasNextPage
      }
      edges {
        node {
          id
          title
          description
          dateTime
          endTime
          createdTime
          duration
          eventUrl
          eventType
          status
          maxTickets
          howToFindUs
          featuredEventPhoto {
            id
            baseUrl
          }
          photoAlbum {
            id
            photoCount
            title
          }
          topics {
            edges {
              node {
                id
                name
              }
            }
          }
          speakerDetails {
            name
            description
            photo {
              id
              baseUrl
            }
          }
          venues {
            id
            name
            address
            city
            state
            country
            postalCode
            lat
            lon
            venueType
          }
          eventHosts {
            memberId
            name
          }
          rsvps {
            totalCount
            edges {
              node {
                id
                member {
                  id
                  name
                }
              }
            }
          }
        }
      }
    }
  }
}
"""

SELF_QUERY = """
query {
  self {
    id
    name
    email
  }
}
"""

EVENT_ALBUM_QUERY = """
query GetEventAlbumPhotos($eventId: ID!, $first: Int!) {
  event(id: $eventId) {
    id
    photoAlbum {
      id
      photoCount
      photos(first: $first) {
        edges {
          node {
            id
            baseUrl
          }
        }
      }
    }
  }
}
"""


def get_group_events_query(
    urlname: str,
    first: int = 20,
    after: Optional[str] = None,
    status: EventStatus = "PAST",
) -> Tuple[str, Dict[str, Any]]:
    return GROUP_EVENTS_QUERY, {"urlname": urlname, "first": first, "after": after, "status": status}


def get_self_query() -> Tuple[str, Dict[str, Any]]:
    return SELF_QUERY, {}


def get_event_album_query(event_id: str, first: int) -> Tuple[str, Dict[str, Any]]:
    return EVENT_ALBUM_QUERY, {"eventId": event_id, "first": first}
