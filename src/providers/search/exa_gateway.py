"""Exa search API gateway with timeout, retry and exponential backoff.

Issues ``POST {base_url}/search`` requests with ``contents`` (text, summary,
highlights) and turns each result into a scored :class:`Evidence` record.

Failure policy:
    * Each attempt is bounded by ``timeout_seconds`` (``asyncio.wait_for``
      plus httpx's own timeout) and raises :class:`GatewayTimeout` past it.
    * Transport errors, timeouts, HTTP 429 and 5xx are retried up to
      ``max_retries`` extra times, sleeping ``backoff_base * 2**(n - 1)``
      seconds before retry n.  Other 4xx statuses fail immediately.
    * After the last attempt the last error is raised.  An empty result list
      always means the API answered with no matches.

Follows the same adapter pattern as the other providers: injected
``httpx.AsyncClient``, a semaphore for concurrent call limits, structured
warnings on every retry.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.search_gateway import (
    ISearchGateway,
    SearchOptions,
    SearchResponse,
    retry_override,
)
from src.models.evidence import Evidence, SearchPurpose
from src.services.evidence_scorer import score_authenticity
from src.utils.errors import GatewayError, GatewayTimeout
from src.utils.logging import get_logger

_DEFAULT_BASE_URL = "https://api.exa.ai"
_DEFAULT_TIMEOUT = 60.0
_DEFAULT_MAX_RETRIES = 2
_DEFAULT_BACKOFF_BASE = 1.0
_DEFAULT_MAX_CONCURRENT = 5
# Page text is capped before storage; the extractors only need the top of it.
_MAX_TEXT_CHARS = 4000

_PROVIDER_NAME = "exa"


class ExaSearchGateway(ISearchGateway):
    """Retrying client for the Exa ``/search`` endpoint.

    Parameters
    ----------
    http_client:
        Injected ``httpx.AsyncClient`` for connection pooling and testability.
    api_key:
        Exa API key, sent as ``x-api-key``.
    base_url:
        API root URL.
    timeout_seconds:
        Hard ceiling for a single HTTP attempt.
    max_retries:
        Extra attempts after the first one fails with a retryable error.
    backoff_base:
        Base of the exponential backoff, in seconds.
    max_concurrent:
        Maximum in-flight requests across all runs sharing this gateway.
    cache:
        Optional response cache; identical searches within its TTL are
        served without a network call.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        base_url: str = _DEFAULT_BASE_URL,
        timeout_seconds: float = _DEFAULT_TIMEOUT,
        max_retries: int = _DEFAULT_MAX_RETRIES,
        backoff_base: float = _DEFAULT_BACKOFF_BASE,
        max_concurrent: int = _DEFAULT_MAX_CONCURRENT,
        cache: ICacheProvider | None = None,
    ) -> None:
        self._http = http_client
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._cache = cache
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # ISearchGateway implementation
    # ------------------------------------------------------------------

    async def search(
        self,
        query: str,
        purpose: SearchPurpose,
        options: SearchOptions | None = None,
    ) -> SearchResponse:
        options = options or SearchOptions()
        cache_key = f"{_PROVIDER_NAME}:{purpose.value}:{query}:{options!r}"
        if self._cache is not None:
            cached = await self._cache.get(cache_key)
            if cached is not None:
                return cached

        max_retries = options.max_retries
        if max_retries is None:
            override = retry_override.get()
            max_retries = self._max_retries if override is None else override
        max_retries = max(0, max_retries)
        payload = self._build_payload(query, options)

        last_error: GatewayError | GatewayTimeout | None = None
        for attempt in range(max_retries + 1):
            if attempt:
                delay = self._backoff_base * 2 ** (attempt - 1)
                self._logger.warning(
                    "gateway_retry",
                    query=query,
                    attempt=attempt + 1,
                    max_attempts=max_retries + 1,
                    delay_seconds=delay,
                    error=str(last_error),
                )
                await asyncio.sleep(delay)
            try:
                data = await self._post_once(payload)
            except GatewayTimeout as exc:
                last_error = exc
                continue
            except GatewayError as exc:
                last_error = exc
                if not _is_retryable(exc):
                    break
                continue

            response = SearchResponse(
                query=query,
                purpose=purpose,
                results=[
                    self._to_evidence(item, query, purpose)
                    for item in data.get("results", [])
                    if item.get("url")
                ],
                attempts=attempt + 1,
            )
            self._logger.debug(
                "gateway_search_complete",
                query=query,
                purpose=purpose.value,
                results=len(response.results),
                attempts=response.attempts,
            )
            if self._cache is not None:
                await self._cache.set(cache_key, response)
            return response

        if last_error is None:
            last_error = GatewayError(
                message="Search made no attempts", provider_name=_PROVIDER_NAME
            )
        self._logger.error(
            "gateway_search_failed",
            query=query,
            purpose=purpose.value,
            error_type=type(last_error).__name__,
            error=str(last_error),
        )
        raise last_error

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME

    def is_available(self) -> bool:
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _post_once(self, payload: dict[str, Any]) -> dict[str, Any]:
        """One HTTP attempt, mapped onto the gateway error types."""
        headers = {"x-api-key": self._api_key, "Content-Type": "application/json"}
        try:
            async with self._semaphore:
                response = await asyncio.wait_for(
                    self._http.post(
                        f"{self._base_url}/search",
                        json=payload,
                        headers=headers,
                        timeout=self._timeout,
                    ),
                    timeout=self._timeout,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise GatewayTimeout(
                message=f"Search request exceeded {self._timeout}s",
                provider_name=_PROVIDER_NAME,
                timeout_seconds=self._timeout,
            ) from exc
        except httpx.HTTPError as exc:
            raise GatewayError(
                message=f"Search transport error: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        if response.status_code != 200:
            raise GatewayError(
                message=f"Search API returned {response.status_code}: {response.text[:200]}",
                provider_name=_PROVIDER_NAME,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise GatewayError(
                message="Search API returned invalid JSON",
                provider_name=_PROVIDER_NAME,
                status_code=response.status_code,
            ) from exc

    @staticmethod
    def _build_payload(query: str, options: SearchOptions) -> dict[str, Any]:
        contents: dict[str, Any] = {"text": {"maxCharacters": _MAX_TEXT_CHARS}}
        if options.summary_query:
            contents["summary"] = {"query": options.summary_query}
        if options.highlight_query:
            contents["highlights"] = {
                "numSentences": 3,
                "highlightsPerUrl": 3,
                "query": options.highlight_query,
            }
        payload: dict[str, Any] = {
            "query": query,
            "numResults": options.num_results,
            "contents": contents,
        }
        if options.category:
            payload["category"] = options.category
        return payload

    @staticmethod
    def _to_evidence(item: dict[str, Any], query: str, purpose: SearchPurpose) -> Evidence:
        url = item["url"]
        raw_text = (item.get("text") or "")[:_MAX_TEXT_CHARS]
        title = item.get("title") or ""
        highlights = [h for h in item.get("highlights") or [] if h]
        summary = item.get("summary") or None
        published = item.get("publishedDate") or None

        scored_text = "\n".join(p for p in (title, raw_text, *highlights, summary or "") if p)
        authenticity = score_authenticity(url, scored_text)
        return Evidence(
            url=url,
            raw_text=raw_text,
            title=title,
            highlights=highlights,
            summary=summary,
            published_date=published[:10] if published else None,
            search_purpose=purpose,
            query=query,
            quality_score=authenticity.score,
            quality_reasons=authenticity.reasons,
        )


def _is_retryable(error: GatewayError) -> bool:
    """Transport failures, rate limits and server errors are worth retrying."""
    status = error.status_code
    return status is None or status == 429 or status >= 500
