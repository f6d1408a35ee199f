"""Tests for the HTTP dictionary backend."""

import json

import httpx
import pytest

from lexilens.backends.http import HTTPDictionaryBackend
from lexilens.config import Settings
from lexilens.definition import DefinitionLoader
from lexilens.entities import Match, MatchTier
from lexilens.errors import BackendError

BASE_URL = "http://dicts.test"


def _backend(handler, **kwargs):
    client = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    kwargs.setdefault("backoff_base_s", 0.001)
    kwargs.setdefault("backoff_max_s", 0.01)
    return HTTPDictionaryBackend(BASE_URL, client=client, **kwargs)


class TestHTTPDictionaryBackend:
    def test_search_posts_payload(self):
        seen = []

        def handler(request):
            seen.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json=["cat", "category"])

        with _backend(handler) as backend:
            terms = backend.search(3, "cat", strict=True, prefix_limit=2)

        assert terms == ["cat", "category"]
        assert seen == [(
            "/search",
            {"id": 3, "kw": "cat", "strict": True, "prefix_limit": 2, "phrase_limit": 10},
        )]

    def test_retries_on_server_error(self):
        statuses = iter([503, 200])

        def handler(request):
            status = next(statuses)
            return httpx.Response(status, json="<p>cat</p>" if status == 200 else None)

        with _backend(handler, max_retries=1) as backend:
            assert backend.search_word(1, "cat") == "<p>cat</p>"

    def test_throttled_request_honours_retry_after(self):
        statuses = iter([429, 200])

        def handler(request):
            if next(statuses) == 429:
                return httpx.Response(429, headers={"Retry-After": "0.001"})
            return httpx.Response(200, json=["cat"])

        with _backend(handler, max_retries=1) as backend:
            assert backend.search(1, "cat") == ["cat"]

    def test_client_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404, text="no such dictionary")

        with _backend(handler, max_retries=3) as backend:
            with pytest.raises(BackendError, match="HTTP 404"):
                backend.search(1, "cat")

        assert len(calls) == 1

    def test_transport_error_after_retries(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with _backend(handler, max_retries=1) as backend:
            with pytest.raises(BackendError, match="2 attempts"):
                backend.search(1, "cat")

    def test_invalid_reply_shape(self):
        with _backend(lambda request: httpx.Response(200, json={"oops": 1})) as backend:
            with pytest.raises(BackendError, match="Invalid response"):
                backend.search(1, "cat")

    def test_static_files_and_resource(self):
        def handler(request):
            if request.url.path == "/get_static_files":
                return httpx.Response(200, json=["h1{}", "run()"])
            return httpx.Response(200, json=[137, 80, 78, 71])

        with _backend(handler) as backend:
            assert backend.get_static_files(1) == ("h1{}", "run()")
            assert backend.search_resource(1, "logo.png") == b"\x89PNG"

    def test_missing_resource_is_none(self):
        with _backend(lambda request: httpx.Response(200, content=b"null")) as backend:
            assert backend.search_resource(1, "missing.png") is None

    @pytest.mark.parametrize("url", ["", "   "])
    def test_blank_base_url(self, url):
        with pytest.raises(ValueError):
            HTTPDictionaryBackend(url)


class TestWordAndResourceRequests:
    """Operations whose request carries a `name` field."""

    def test_search_word_posts_payload(self):
        seen = []

        def handler(request):
            seen.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json="<p>cat</p>")

        with _backend(handler) as backend:
            assert backend.search_word(4, "cat") == "<p>cat</p>"

        assert seen == [("/search_word", {"id": 4, "name": "cat"})]

    def test_search_resource_posts_payload(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json=[1, 2])

        with _backend(handler) as backend:
            assert backend.search_resource(4, "sound.mp3") == b"\x01\x02"

        assert seen == [{"id": 4, "name": "sound.mp3"}]

    def test_out_of_range_resource_byte_is_backend_error(self):
        with _backend(lambda request: httpx.Response(200, json=[12, 256])) as backend:
            with pytest.raises(BackendError, match="Invalid response"):
                backend.search_resource(1, "logo.png")

    def test_definition_loader_delivers_over_http(self):
        def handler(request):
            if request.url.path == "/search_word":
                return httpx.Response(200, json="<p>cat</p>")
            return httpx.Response(200, json=["h1{}", "run()"])

        loaded = []
        match = Match(source_id=1, source_name="A", term="cat", tier=MatchTier.EXACT, priority=0)
        with _backend(handler) as backend:
            loader = DefinitionLoader(backend, loaded.append)
            try:
                definition = loader.on_selection_changed(match).result(timeout=5)
            finally:
                loader.close()

        assert definition is not None
        assert (definition.content, definition.css, definition.js) == ("<p>cat</p>", "h1{}", "run()")
        assert loaded == [definition]


class TestFromSettings:
    def test_uses_server_settings(self):
        settings = Settings(server_url="http://dicts.example:9000/", timeout=3.5, max_retries=4)

        backend = HTTPDictionaryBackend.from_settings(settings)
        try:
            assert backend.base_url == "http://dicts.example:9000"
            assert backend.timeout_s == 3.5
            assert backend.max_retries == 4
        finally:
            backend.close()

    def test_requests_reach_configured_server(self):
        hosts = []

        def handler(request):
            hosts.append(request.url.host)
            return httpx.Response(200, json=["cat"])

        settings = Settings(server_url=BASE_URL)
        client = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(handler))

        with HTTPDictionaryBackend.from_settings(settings, client=client) as backend:
            assert backend.search(1, "cat") == ["cat"]

        assert hosts == ["dicts.test"]
