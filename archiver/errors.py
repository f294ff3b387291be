from __future__ import annotations

from typing import Optional


class ArchiverError(RuntimeError):
    """Base class for every failure the archiver reports to its caller."""


class ConfigurationError(ArchiverError):
    pass


class AuthenticationFailed(ArchiverError):
    def __init__(self, message: str = "Authentication failed. Check that MEETUP_ACCESS_TOKEN is valid.") -> None:
        super().__init__(message)


class GroupNotFound(ArchiverError):
    def __init__(self, urlname: str) -> None:
        super().__init__(f"Group not found: {urlname}. Please check the group URL name.")
        self.urlname = urlname


class RateLimited(ArchiverError):
    def __init__(self, reset_at: Optional[str]) -> None:
        super().__init__(f"Rate limited. Please wait until {reset_at or 'the window resets'} before retrying.")
        self.reset_at = reset_at


class GraphQLError(ArchiverError):
    def __init__(self, message: str) -> None:
        super().__init__(f"GraphQL Error: {message}")
        self.graphql_message = message


class TransportError(ArchiverError):
    def __init__(self, detail: str, status: Optional[int] = None) -> None:
        super().__init__(f"API request failed: {detail}")
        self.detail = detail
        self.status = status


class PaginationLimitExceeded(ArchiverError):
    def __init__(self, max_pages: int) -> None:
        super().__init__(f"Pagination did not finish within {max_pages} pages")
        self.max_pages = max_pages


class ImageDownloadFailed(ArchiverError):
    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to download image {url}: {reason}")
        self.url = url


class AlbumFetchFailed(ArchiverError):
    def __init__(self, event_id: str, reason: str) -> None:
        super().__init__(f"Failed to fetch photo album for event {event_id}: {reason}")
        self.event_id = event_id


class MalformedResponse(ArchiverError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"Unexpected API response: {detail}")
        self.detail = detail
