"""Unit tests for ImageEmbedder."""
import asyncio
import base64

import httpx

from archiver.errors import AlbumFetchFailed
from archiver.images import ImageEmbedder
from archiver.models import EventRecord, Photo
from archiver.rate_limit import RateLimiter
from tests.helpers import FakeSleep, make_node

IMG_BASE = "https://secure.meetupstatic.com/photos/event/"
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


def photo_url(photo_id):
    return f"{IMG_BASE}{photo_id}/676x380.jpg"


class ImageHost:
    """Serves image bytes per URL; URLs listed in `failures` raise the given exception."""

    def __init__(self, failures=None, content_type="image/png"):
        self.failures = failures or {}
        self.content_type = content_type
        self.requested = []

    def handler(self, request):
        url = str(request.url)
        self.requested.append(url)
        if url in self.failures:
            raise self.failures[url]
        headers = {"content-type": self.content_type} if self.content_type else {}
        return httpx.Response(200, content=PNG_BYTES, headers=headers)

    def client(self):
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def event_with_photo(event_id, photo_id=None, album=None):
    photo = {"id": photo_id, "baseUrl": IMG_BASE} if photo_id else None
    return EventRecord.from_node(make_node(event_id, featured_photo=photo, photo_album=album))


def embed(host, events, album_fetcher=None, concurrency=4):
    async def scenario():
        embedder = ImageEmbedder(
            album_fetcher,
            http_client=host.client(),
            concurrency=concurrency,
            sleep=FakeSleep(),
        )
        async with embedder:
            return await embedder.embed_images(events)

    return asyncio.run(scenario())


class TestFeaturedPhoto:
    """Inlining of featured event photos."""

    def test_successful_download_is_inlined(self):
        host = ImageHost()
        events = [event_with_photo("e1", "111")]

        result = embed(host, events)

        expected = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")
        assert result[0].featured_photo == Photo(id="", base_url=expected)
        assert host.requested == [photo_url("111")]
        # input records are not mutated
        assert events[0].featured_photo.id == "111"

    def test_missing_content_type_defaults_to_jpeg(self):
        host = ImageHost(content_type=None)

        result = embed(host, [event_with_photo("e1", "111")])

        assert result[0].featured_photo.base_url.startswith("data:image/jpeg;base64,")

    def test_timeout_leaves_photo_untouched(self):
        host = ImageHost(failures={photo_url("111"): httpx.ReadTimeout("timed out")})
        events = [event_with_photo("e1", "111")]

        result = embed(host, events)

        assert len(result) == 1
        assert result[0].id == "e1"
        assert result[0].featured_photo == Photo(id="111", base_url=IMG_BASE)

    def test_http_error_status_leaves_photo_untouched(self):
        def not_found(request):
            return httpx.Response(404)

        events = [event_with_photo("e1", "111")]

        async def scenario():
            client = httpx.AsyncClient(transport=httpx.MockTransport(not_found))
            async with ImageEmbedder(http_client=client, sleep=FakeSleep()) as embedder:
                return await embedder.embed_images(events)

        result = asyncio.run(scenario())

        assert result[0].featured_photo.base_url == IMG_BASE

    def test_already_inlined_photo_is_skipped(self):
        host = ImageHost()
        node = make_node("e1", featured_photo={"id": "", "baseUrl": "data:image/png;base64,AAAA"})

        result = embed(host, [EventRecord.from_node(node)])

        assert host.requested == []
        assert result[0].featured_photo.base_url == "data:image/png;base64,AAAA"

    def test_order_and_length_survive_failures(self):
        failures = {photo_url(str(i)): httpx.ConnectError("refused") for i in range(0, 10, 3)}
        host = ImageHost(failures=failures)
        events = [event_with_photo(f"e{i}", str(i)) for i in range(10)] + [event_with_photo("no-photo")]

        result = embed(host, events, concurrency=3)

        assert [e.id for e in result] == [e.id for e in events]
        for i in range(10):
            inlined = result[i].featured_photo.is_inlined
            assert inlined == (i % 3 != 0)
        assert result[-1].featured_photo is None


class TestAlbumPhotos:
    """Secondary album fetch and download."""

    def test_album_photos_are_capped_and_ordered(self):
        host = ImageHost()
        calls = []

        async def fetch_album(event_id, count):
            calls.append((event_id, count))
            return [Photo(id=f"a{i}", base_url=IMG_BASE) for i in range(25)]

        events = [event_with_photo("e1", album={"id": "album1", "photoCount": 25, "title": "Pics"})]

        result = embed(host, events, album_fetcher=fetch_album)

        assert calls == [("e1", 25)]
        photos = result[0].photo_album.photos
        assert len(photos) == 20
        assert all(p.is_inlined and p.id == "" for p in photos)
        assert host.requested == [photo_url(f"a{i}") for i in range(20)]

    def test_fewer_photos_than_expected(self):
        host = ImageHost(failures={photo_url("a1"): httpx.ReadTimeout("slow")})

        async def fetch_album(event_id, count):
            return [Photo(id=f"a{i}", base_url=IMG_BASE) for i in range(3)]

        events = [event_with_photo("e1", "111", album={"id": "album1", "photoCount": 10})]

        result = embed(host, events, album_fetcher=fetch_album)

        assert result[0].featured_photo.is_inlined
        assert len(result[0].photo_album.photos) == 2

    def test_album_fetch_failure_is_not_fatal(self):
        host = ImageHost()

        async def fetch_album(event_id, count):
            raise AlbumFetchFailed(event_id, "GraphQL Error: no such field")

        events = [event_with_photo("e1", "111", album={"id": "album1", "photoCount": 4})]

        result = embed(host, events, album_fetcher=fetch_album)

        assert result[0].featured_photo.is_inlined
        assert result[0].photo_album.photos is None
        assert result[0].photo_album.photo_count == 4

    def test_all_album_downloads_failing_leaves_no_photo_list(self):
        failures = {photo_url(f"a{i}"): httpx.ConnectError("refused") for i in range(2)}
        host = ImageHost(failures=failures)

        async def fetch_album(event_id, count):
            return [Photo(id=f"a{i}", base_url=IMG_BASE) for i in range(2)]

        events = [event_with_photo("e1", album={"id": "album1", "photoCount": 2})]

        result = embed(host, events, album_fetcher=fetch_album)

        assert result[0].photo_album.photos is None

    def test_empty_album_is_not_queried(self):
        host = ImageHost()
        calls = []

        async def fetch_album(event_id, count):
            calls.append(event_id)
            return []

        events = [event_with_photo("e1", album={"id": "album1", "photoCount": 0})]

        embed(host, events, album_fetcher=fetch_album)

        assert calls == []


class TestUnexpectedInput:
    """Bad photo data degrades one photo, never the run."""

    def test_invalid_photo_url_leaves_photo_untouched(self):
        host = ImageHost()
        broken = EventRecord.from_node(
            make_node("e1", featured_photo={"id": "111", "baseUrl": "https://img.example/\x00"})
        )
        events = [broken, event_with_photo("e2", "222")]

        result = embed(host, events)

        assert [e.id for e in result] == ["e1", "e2"]
        assert result[0].featured_photo == Photo(id="111", base_url="https://img.example/\x00")
        assert result[1].featured_photo.is_inlined
        assert host.requested == [photo_url("222")]

    def test_invalid_album_photo_url_is_skipped(self):
        host = ImageHost()

        async def fetch_album(event_id, count):
            return [Photo(id="bad", base_url="https://img.example/\x00"), Photo(id="a1", base_url=IMG_BASE)]

        events = [event_with_photo("e1", album={"id": "album1", "photoCount": 2})]

        result = embed(host, events, album_fetcher=fetch_album)

        assert len(result[0].photo_album.photos) == 1
        assert host.requested == [photo_url("a1")]


class TestCourtesyPauses:
    """50 ms pauses between a record's downloads."""

    def run(self, events, album_fetcher=None):
        sleep = FakeSleep()

        async def scenario():
            embedder = ImageEmbedder(
                album_fetcher,
                http_client=ImageHost().client(),
                pacer=RateLimiter(1000.0, sleep=FakeSleep()),
                sleep=sleep,
            )
            async with embedder:
                return await embedder.embed_images(events)

        asyncio.run(scenario())
        return sleep.calls

    def test_featured_then_album(self):
        async def fetch_album(event_id, count):
            return [Photo(id=f"a{i}", base_url=IMG_BASE) for i in range(2)]

        events = [event_with_photo("e1", "111", album={"id": "album1", "photoCount": 2})]

        # featured -> album, between the two album downloads, after the album
        assert self.run(events, fetch_album) == [0.05, 0.05, 0.05]

    def test_album_only(self):
        async def fetch_album(event_id, count):
            return [Photo(id="a0", base_url=IMG_BASE)]

        events = [event_with_photo("e1", album={"id": "album1", "photoCount": 1})]

        assert self.run(events, fetch_album) == [0.05]

    def test_featured_only_has_no_pause(self):
        assert self.run([event_with_photo("e1", "111")]) == []
