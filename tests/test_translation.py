import asyncio
import json

import httpx
import pytest

from errors import UpstreamServiceError
from translation import TranslationService, chunked, fetch_with_retry, is_retryable

API_URL = "https://translate.test/translate"


class FakeTranslator:
    """Upstream stub: answers with a scripted status sequence, then translations."""

    def __init__(self, statuses=()):
        self.statuses = list(statuses)
        self.requests = []

    def __call__(self, request):
        body = json.loads(request.content)
        self.requests.append(body)
        if self.statuses:
            return httpx.Response(self.statuses.pop(0), json={"error": "busy"})
        return httpx.Response(200, json={"translatedText": [f"{body['target']}:{t}" for t in body["q"]]})


def make_service(upstream, delays=None):
    async def fake_sleep(seconds):
        if delays is not None:
            delays.append(seconds)

    return TranslationService(API_URL, transport=httpx.MockTransport(upstream), sleep=fake_sleep)


def test_retryable_statuses():
    assert is_retryable(429)
    assert is_retryable(503)
    assert not is_retryable(404)
    assert not is_retryable(200)


def test_chunked():
    assert [len(c) for c in chunked([str(i) for i in range(120)])] == [50, 50, 20]


@pytest.mark.asyncio
async def test_cache_is_per_language():
    upstream = FakeTranslator()
    service = make_service(upstream)

    hindi = await service.translate(["Hello", "World"], "hi")
    assert hindi == {"Hello": "hi:Hello", "World": "hi:World"}
    assert await service.translate(["Hello"], "fr") == {"Hello": "fr:Hello"}
    assert await service.translate(["Hello", "World"], "hi") == hindi
    assert [r["target"] for r in upstream.requests] == ["hi", "fr"]


@pytest.mark.asyncio
async def test_only_missing_texts_are_fetched():
    upstream = FakeTranslator()
    service = make_service(upstream)
    await service.translate(["Hello"], "de")
    await service.translate(["Hello", "Goodbye", "", "  "], "de")
    assert upstream.requests[1]["q"] == ["Goodbye"]


@pytest.mark.asyncio
async def test_same_language_is_identity():
    upstream = FakeTranslator()
    result = await make_service(upstream).translate(["Hello"], "EN", "en")
    assert result == {"Hello": "Hello"}
    assert upstream.requests == []


@pytest.mark.asyncio
async def test_large_batches_are_chunked():
    upstream = FakeTranslator()
    texts = [f"label {i}" for i in range(120)]
    result = await make_service(upstream).translate(texts, "es")
    assert len(result) == 120
    assert [len(r["q"]) for r in upstream.requests] == [50, 50, 20]


@pytest.mark.asyncio
async def test_transient_failures_are_retried_with_backoff():
    upstream = FakeTranslator(statuses=[429, 503])
    delays = []
    result = await make_service(upstream, delays).translate(["Save"], "fr")
    assert result == {"Save": "fr:Save"}
    assert len(upstream.requests) == 3
    assert delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_exhausted_retries_leave_text_untranslated():
    upstream = FakeTranslator(statuses=[500, 500, 500])
    service = make_service(upstream)
    assert await service.translate(["Save"], "fr") == {"Save": "Save"}
    assert len(upstream.requests) == 3
    assert service.cache_for("fr") == {}


@pytest.mark.asyncio
async def test_client_errors_are_not_retried_or_cached():
    upstream = FakeTranslator(statuses=[400])
    service = make_service(upstream)
    assert await service.translate(["Save"], "fr") == {"Save": "Save"}
    assert len(upstream.requests) == 1

    assert await service.translate(["Save"], "fr") == {"Save": "fr:Save"}
    assert len(upstream.requests) == 2


@pytest.mark.asyncio
async def test_non_object_payload_leaves_text_untranslated():
    def upstream(request):
        return httpx.Response(200, json=["fr:Save"])

    service = make_service(upstream)
    assert await service.translate(["Save"], "fr") == {"Save": "Save"}
    assert service.cache_for("fr") == {}


@pytest.mark.asyncio
async def test_fetch_with_retry_raises_after_transport_errors():
    calls = []

    def broken(request):
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    async def no_sleep(seconds):
        return None

    async with httpx.AsyncClient(transport=httpx.MockTransport(broken)) as client:
        with pytest.raises(UpstreamServiceError):
            await fetch_with_retry(client, "GET", API_URL, sleep=no_sleep)
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_cached_language_is_served_while_another_is_retrying():
    backoff_held = asyncio.Event()
    release = asyncio.Event()

    def upstream(request):
        body = json.loads(request.content)
        if body["target"] == "fr":
            return httpx.Response(503, json={"error": "busy"})
        return httpx.Response(200, json={"translatedText": [f"{body['target']}:{t}" for t in body["q"]]})

    async def held_sleep(seconds):
        backoff_held.set()
        await release.wait()

    service = TranslationService(API_URL, transport=httpx.MockTransport(upstream), sleep=held_sleep)
    await service.translate(["Hello"], "hi")

    french = asyncio.create_task(service.translate(["Hello"], "fr"))
    await asyncio.wait_for(backoff_held.wait(), 1)
    try:
        assert await asyncio.wait_for(service.translate(["Hello"], "hi"), 0.5) == {"Hello": "hi:Hello"}
        assert await asyncio.wait_for(service.translate(["Bye"], "de"), 0.5) == {"Bye": "de:Bye"}
    finally:
        release.set()
    assert await french == {"Hello": "Hello"}


@pytest.mark.asyncio
async def test_concurrent_requests_for_one_language_fetch_once():
    upstream = FakeTranslator()
    service = make_service(upstream)
    first, second = await asyncio.gather(
        service.translate(["Hello"], "fr"),
        service.translate(["Hello"], "fr"),
    )
    assert first == second == {"Hello": "fr:Hello"}
    assert len(upstream.requests) == 1


def test_translate_endpoint(client):
    from dependencies import get_translation_service

    service = make_service(FakeTranslator())
    client.app.dependency_overrides[get_translation_service] = lambda: service
    response = client.post("/api/translation/translate", json={
        "texts": ["Dashboard", "Notes"],
        "targetLanguage": "hi",
    })
    assert response.status_code == 200
    assert response.json() == {"Dashboard": "hi:Dashboard", "Notes": "hi:Notes"}
