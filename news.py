"""
NewsAPI wrapper.

Builds NewsAPI requests for the headline widgets and normalises every answer
to ``{"status": "ok", ...}`` or ``{"status": "error", "message": ...}``.
Upstream failures never raise out of this module.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from upstream import json_object

logger = logging.getLogger(__name__)

BASE_URL = "https://newsapi.org/v2"
SUPPORTED_LANGUAGES = {"ar", "de", "en", "es", "fr", "he", "it", "nl", "no", "pt", "ru", "se", "ud", "zh"}
CATEGORIES = {"business", "entertainment", "general", "health", "science", "sports", "technology"}
PLACEHOLDER_KEY = "YOUR_NEWS_API_KEY_HERE"


def error(message: str, **extra: Any) -> Dict[str, Any]:
    return {"status": "error", "message": message, **extra}


def clean_articles(articles: List[Dict[str, Any]], limit: int = 20) -> List[Dict[str, Any]]:
    """Drop removed or undated articles and sort newest first."""
    kept = [
        a for a in articles
        if isinstance(a, dict) and a.get("title") and a["title"] != "[Removed]" and a.get("publishedAt")
    ]
    kept.sort(key=lambda a: a["publishedAt"], reverse=True)
    return kept[:limit]


class NewsService:
    def __init__(self, api_key: Optional[str] = None, timeout: float = 10.0, language: str = "en",
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.timeout = timeout
        self.language = (language or "").lower()[:2]
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key) and self.api_key != PLACEHOLDER_KEY

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=BASE_URL,
            timeout=self.timeout,
            transport=self.transport,
            headers={"User-Agent": "WorkdayDashboard/1.0"},
        )

    def _language_param(self) -> Dict[str, str]:
        return {"language": self.language} if self.language in SUPPORTED_LANGUAGES else {}

    async def _get(self, client: httpx.AsyncClient, path: str, params: Dict[str, Any]) -> httpx.Response:
        return await client.get(path, params={**params, "apiKey": self.api_key})

    @staticmethod
    def _api_error(response: httpx.Response) -> Dict[str, Any]:
        try:
            message = json_object(response).get("message")
        except ValueError:
            message = None
        if message:
            return error(f"NewsAPI Error: {message}")
        return error(f"HTTP Error: {response.status_code}. Unable to fetch news.")

    async def global_news(self, q: str = "") -> Dict[str, Any]:
        """Latest articles for a keyword search across all sources."""
        if not self.api_key:
            return error("News API Key is missing in configuration.")
        query = q.strip() or "latest"
        try:
            async with self._client() as client:
                response = await self._get(client, "/everything", {
                    "q": query, "sortBy": "publishedAt", "pageSize": 20,
                })
            if response.status_code >= 400:
                return self._api_error(response)
            data = json_object(response)
        except httpx.HTTPError as e:
            logger.error(f"News request failed: {e}", exc_info=True)
            return error(f"Network Error: {e}. Check your connection.")
        except ValueError as e:
            return error(f"System Error: {e}")

        if data.get("status") == "error":
            return error(data.get("message") or "Unknown NewsAPI error")
        if not isinstance(data.get("articles"), list):
            return error("No articles found in the response.")
        return {"status": "ok", "articles": clean_articles(data["articles"])}

    def headline_request(self, country: str = "", category: str = "", query: str = "") -> tuple:
        """Endpoint path and parameters for the headlines widget."""
        params: Dict[str, Any] = dict(self._language_param())
        if query:
            params.update({"q": f'"{query}"', "sortBy": "publishedAt"})
            return "/everything", params
        if country:
            params["country"] = country
        if category:
            params["category"] = category
        if not country and not category:
            params["category"] = "general"
        return "/top-headlines", params

    async def headlines(self, country: str = "", category: str = "", query: str = "") -> Dict[str, Any]:
        if not self.configured:
            return error("API Key is missing or invalid in configuration")
        path, params = self.headline_request(country, category, query)
        try:
            async with self._client() as client:
                response = await self._get(client, path, params)
            if response.status_code >= 400:
                return error(f"API Error: {response.status_code}", details=response.text)
            return json_object(response)
        except httpx.HTTPError as e:
            logger.error(f"News request failed: {e}", exc_info=True)
            return error("News service is unreachable.", details=str(e))
        except ValueError as e:
            return error(str(e))

    async def everything(self, query: str, sort_by: str = "publishedAt") -> Dict[str, Any]:
        if not self.configured:
            return error("API Key is missing or invalid in configuration")
        params = {"q": query, "sortBy": sort_by, "language": self.language if self.language in SUPPORTED_LANGUAGES else "en"}
        try:
            async with self._client() as client:
                response = await self._get(client, "/everything", params)
            if response.status_code >= 400:
                return error(f"API Error: {response.status_code}")
            return json_object(response)
        except httpx.HTTPError as e:
            logger.error(f"News request failed: {e}", exc_info=True)
            return error("News service is unreachable.", details=str(e))
        except ValueError as e:
            return error(str(e))

    def city_request(self, city: str, country: str) -> tuple:
        query = " ".join(part for part in (city, country) if part)
        lowered = query.lower().strip()
        if lowered == "sport":
            lowered = "sports"
        if lowered in CATEGORIES:
            if country.lower() == "india":
                code = "in"
            else:
                code = country.lower() if len(country) == 2 else "in"
            params = {"category": lowered, "country": code, "pageSize": 100, **self._language_param()}
            return "/top-headlines", params
        params = {"q": query, "sortBy": "publishedAt", "pageSize": 100, **self._language_param()}
        return "/everything", params

    async def city_news(self, city: str = "", country: str = "") -> Dict[str, Any]:
        """News for a city, widening to the whole country when the city yields nothing."""
        if not self.configured:
            return error("API Key is missing or invalid")
        city, country = (city or "").strip(), (country or "").strip()
        if not city and not country:
            return error("City or Country is required")

        path, params = self.city_request(city, country)
        try:
            async with self._client() as client:
                response = await self._get(client, path, params)
                if response.is_success:
                    data = json_object(response)
                    total = data.get("totalResults")
                    if isinstance(total, int) and total > 0:
                        return data

                if country:
                    logger.info(f"No city news for {city!r}, falling back to {country!r}")
                    fallback = await self._get(client, "/everything", {
                        "q": country, "sortBy": "publishedAt", "pageSize": 100, **self._language_param(),
                    })
                    if fallback.is_success:
                        return json_object(fallback)

                if response.is_success:
                    return data
                return error("No news found even with fallback.")
        except httpx.HTTPError as e:
            logger.error(f"City news request failed: {e}", exc_info=True)
            return error("News service is currently unreachable (Network Error).", details=str(e))
        except ValueError as e:
            return error(str(e))
