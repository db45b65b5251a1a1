# core/http_client_service.py
"""Perform HTTP I/O for the generative service integrations.

This module provides a small HTTP layer used by the Gemini adapters. It
centralizes concurrency limits, retry behavior, and response handling so call
sites do not re-implement network concerns.

Notes:
    - Requests are concurrency-limited via a semaphore.
    - Timeouts, transport errors, 429 and 5xx responses are retried with
      exponential backoff. Other 4xx responses fail immediately.
"""

import asyncio
from typing import Any

import httpx
import structlog

import config

logger = structlog.get_logger(__name__)


class HTTPClientService:
    """Perform concurrency-limited HTTP requests with retries."""

    def __init__(
        self,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the HTTP client.

        Args:
            timeout: Request timeout in seconds. Defaults to `config.HTTPX_TIMEOUT`.
            transport: Optional transport override (tests pass `httpx.MockTransport`).
        """
        effective_timeout = timeout if timeout is not None else config.HTTPX_TIMEOUT
        self._client = httpx.AsyncClient(timeout=effective_timeout, transport=transport)
        self._semaphore = asyncio.Semaphore(config.MAX_CONCURRENT_LLM_CALLS)
        self._stats = {
            "total_requests": 0,
            "successful_requests": 0,
            "failed_requests": 0,
            "retry_attempts": 0,
        }

        logger.info(
            "HTTPClientService initialized",
            timeout=effective_timeout,
            concurrency_limit=config.MAX_CONCURRENT_LLM_CALLS,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client and release resources."""
        await self._client.aclose()
        logger.debug("HTTPClientService closed")

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        max_retries: int | None = None,
    ) -> httpx.Response:
        """POST a JSON payload with retry behavior.

        Args:
            url: Target URL for the request.
            payload: JSON payload to send.
            headers: Optional HTTP headers.
            max_retries: Maximum attempts. Defaults to `config.LLM_RETRY_ATTEMPTS`.

        Returns:
            The successful HTTP response.

        Raises:
            httpx.TimeoutException: When all attempts time out.
            httpx.HTTPStatusError: When a non-retryable status occurs or retries are
                exhausted.
            httpx.RequestError: When the request fails and retries are exhausted.
        """
        async with self._semaphore:
            self._stats["total_requests"] += 1

            effective_headers = headers or {}
            attempts = max(1, max_retries if max_retries is not None else config.LLM_RETRY_ATTEMPTS)

            last_exception: httpx.HTTPError | None = None

            for attempt in range(attempts):
                try:
                    logger.debug("HTTP POST", url=url, attempt=attempt + 1, max_attempts=attempts)
                    response = await self._client.post(url, json=payload, headers=effective_headers)
                    response.raise_for_status()

                    self._stats["successful_requests"] += 1
                    return response

                except httpx.TimeoutException as e:
                    last_exception = e
                    logger.warning("HTTP timeout", attempt=attempt + 1, error=str(e))

                except httpx.HTTPStatusError as e:
                    last_exception = e
                    status_code = e.response.status_code
                    logger.warning(
                        "HTTP status error",
                        attempt=attempt + 1,
                        status=status_code,
                        body=e.response.text[:200],
                    )

                    # Client errors are final, except rate limiting
                    if 400 <= status_code < 500 and status_code != 429:
                        logger.error("Non-retryable client error, aborting", status=status_code)
                        break

                except httpx.RequestError as e:
                    last_exception = e
                    logger.warning("HTTP request error", attempt=attempt + 1, error=str(e))

                if attempt < attempts - 1:
                    delay = config.LLM_RETRY_DELAY_SECONDS * (2**attempt)
                    logger.info("Retrying HTTP request", delay=round(delay, 2), reason=type(last_exception).__name__)
                    await asyncio.sleep(delay)
                    self._stats["retry_attempts"] += 1

            self._stats["failed_requests"] += 1
            logger.error("HTTP POST failed", attempts=attempts, error=str(last_exception))

            if last_exception is not None:
                raise last_exception
            raise httpx.RequestError("HTTP request failed with no specific error")

    def get_statistics(self) -> dict[str, Any]:
        """Return HTTP request statistics for monitoring."""
        total = self._stats["total_requests"]
        return {
            **self._stats,
            "success_rate": (self._stats["successful_requests"] / total * 100) if total > 0 else 0,
            "failure_rate": (self._stats["failed_requests"] / total * 100) if total > 0 else 0,
            "avg_retries_per_request": (self._stats["retry_attempts"] / total) if total > 0 else 0,
        }


class GeminiHTTPClient:
    """Call the Gemini `generateContent` endpoint using a shared HTTP client."""

    def __init__(
        self,
        http_client: HTTPClientService,
        api_key: str | None = None,
        api_base: str | None = None,
    ):
        """Initialize the Gemini client.

        Args:
            http_client: Shared HTTP client used for requests.
            api_key: API key; defaults to `config.GEMINI_API_KEY`.
            api_base: Base URL; defaults to `config.GEMINI_API_BASE`.
        """
        self._http_client = http_client
        self._api_key = api_key if api_key is not None else config.GEMINI_API_KEY
        self._api_base = (api_base or config.GEMINI_API_BASE).rstrip("/")

    async def generate_content(self, model: str, body: dict[str, Any]) -> dict[str, Any]:
        """POST a `generateContent` request.

        Args:
            model: Model identifier, for example "gemini-2.5-flash".
            body: Request body (contents, systemInstruction, generationConfig).

        Returns:
            Parsed JSON response.

        Raises:
            httpx.HTTPError: If the HTTP request fails.
        """
        url = f"{self._api_base}/models/{model}:generateContent"
        headers = {
            "x-goog-api-key": self._api_key,
            "Content-Type": "application/json",
        }
        logger.debug("Requesting Gemini content", model=model, parts=sum(len(c.get("parts", [])) for c in body.get("contents", [])))
        response = await self._http_client.post_json(url, body, headers)
        return response.json()
