"""
Batched UI text translation.

Translations are cached per (source, target) language pair for the life of
the process, so switching languages back and forth never re-fetches strings
already translated for a language. Missing strings are sent upstream in
chunks, and transient upstream failures (429, 5xx, network errors) are retried
with exponential backoff.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

import httpx

from errors import UpstreamServiceError
from upstream import json_object

logger = logging.getLogger(__name__)

CHUNK_SIZE = 50
MAX_ATTEMPTS = 3
INITIAL_BACKOFF = 1.0

Sleep = Callable[[float], Awaitable[None]]


def is_retryable(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


async def fetch_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    attempts: int = MAX_ATTEMPTS,
    backoff: float = INITIAL_BACKOFF,
    sleep: Sleep = asyncio.sleep,
    **kwargs,
) -> httpx.Response:
    """Send a request, retrying 429/5xx and transport errors.

    Other 4xx responses are returned to the caller untouched. After the last
    attempt fails the error is raised as :class:`UpstreamServiceError`.
    """
    last_error = "no attempts made"
    for attempt in range(1, attempts + 1):
        try:
            response = await client.request(method, url, **kwargs)
            if not is_retryable(response.status_code):
                return response
            last_error = f"HTTP {response.status_code}"
        except httpx.TransportError as e:
            last_error = str(e) or e.__class__.__name__
        if attempt < attempts:
            logger.warning(f"Translation fetch failed ({last_error}). Retrying in {backoff}s "
                           f"({attempts - attempt} attempts left)")
            await sleep(backoff)
            backoff *= 2
    raise UpstreamServiceError("translation", last_error)


def chunked(items: List[str], size: int = CHUNK_SIZE) -> Iterable[List[str]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


class TranslationService:
    def __init__(self, api_url: str, api_key: Optional[str] = None, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None, sleep: Sleep = asyncio.sleep):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport
        self.sleep = sleep
        self._cache: Dict[Tuple[str, str], Dict[str, str]] = {}
        self._pair_locks: Dict[Tuple[str, str], asyncio.Lock] = {}

    def cache_for(self, target: str, source: str = "en") -> Dict[str, str]:
        return self._cache.setdefault((source.lower(), target.lower()), {})

    def _lock_for(self, target: str, source: str) -> asyncio.Lock:
        return self._pair_locks.setdefault((source.lower(), target.lower()), asyncio.Lock())

    async def translate(self, texts: Iterable[str], target: str, source: str = "en") -> Dict[str, str]:
        """Map each non-blank text to its translation.

        Texts whose chunk fails upstream map to themselves and are not cached,
        so a later call retries them.
        """
        wanted = list(dict.fromkeys(t for t in texts if t and t.strip()))
        if not wanted:
            return {}
        if target.lower() == source.lower():
            return {t: t for t in wanted}

        cache = self.cache_for(target, source)
        if any(t not in cache for t in wanted):
            # One upstream fill per language pair at a time.
            async with self._lock_for(target, source):
                missing = [t for t in wanted if t not in cache]
                if missing:
                    await self._fill(cache, missing, target, source)
        return {t: cache.get(t, t) for t in wanted}

    async def _fill(self, cache: Dict[str, str], missing: List[str], target: str, source: str) -> None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            for chunk in chunked(missing):
                try:
                    translated = await self._fetch_chunk(client, chunk, target, source)
                except UpstreamServiceError as e:
                    logger.error(f"Batch translation to {target} failed: {e}")
                    continue
                cache.update(zip(chunk, translated))

    async def _fetch_chunk(self, client: httpx.AsyncClient, chunk: List[str],
                           target: str, source: str) -> List[str]:
        body = {"q": chunk, "source": source, "target": target, "format": "text"}
        if self.api_key:
            body["api_key"] = self.api_key
        response = await fetch_with_retry(client, "POST", self.api_url, json=body, sleep=self.sleep)
        if response.status_code >= 400:
            raise UpstreamServiceError("translation", f"HTTP {response.status_code}")
        try:
            translated = json_object(response).get("translatedText")
        except ValueError:
            raise UpstreamServiceError("translation", "invalid JSON payload")
        if isinstance(translated, str):
            translated = [translated]
        if not isinstance(translated, list) or len(translated) != len(chunk):
            raise UpstreamServiceError("translation", "unexpected payload shape")
        return [str(t) for t in translated]
