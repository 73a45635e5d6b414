"""Async HTTP client for the artifact assembly service."""

import asyncio
import json
import random
import uuid
from typing import Optional

import httpx

from common.logging_config import get_logger
from publisher.exceptions import (
    ApiConnectionError,
    ApiError,
    MalformedResponseError,
    MissingCredentialsError,
)
from publisher.multipart import batch_to_files, make_boundary, multipart_content_type
from publisher.types import UploadOptions

logger = get_logger(__name__)


def compute_backoff(attempt: int, initial: float, maximum: float) -> float:
    """
    Exponential backoff with equal jitter.

    Args:
        attempt: Zero-based retry attempt
        initial: Delay before the first retry, in seconds
        maximum: Upper bound for the un-jittered delay

    Returns:
        Delay in seconds, between half and all of the capped exponential delay
    """
    capped = min(maximum, initial * (2 ** attempt))
    return capped / 2 + random.uniform(0, capped / 2)


class ApiClient:
    """HTTP client for the assembly service API with retry logic and error handling."""

    def __init__(
        self,
        base_url: str,
        auth_token: Optional[str],
        options: Optional[UploadOptions] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize API client.

        Args:
            base_url: Service root, e.g. "https://sentry.io"
            auth_token: Bearer token supplied by the credentials provider
            options: Upload options carrying timeout and retry settings
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url
        self.auth_token = auth_token
        self.options = options or UploadOptions()
        self.session = httpx.AsyncClient(
            base_url=base_url,
            timeout=self.options.timeout,
            transport=transport
        )
        logger.info(f"Initialized ApiClient [base_url={base_url}]")

    def _get_auth_header(self) -> dict:
        """
        Get Authorization header with the auth token.

        Raises:
            MissingCredentialsError: If no token is configured
        """
        if not self.auth_token:
            raise MissingCredentialsError(
                "No auth token configured. Set PUBLISHER_AUTH_TOKEN or add auth_token to the config file."
            )
        return {'Authorization': f'Bearer {self.auth_token}'}

    async def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Args:
            method: HTTP method
            endpoint: API endpoint path or absolute URL
            max_retries: Max retry attempts (uses options default if None)
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            The last HTTP response, which may still carry a 5xx status

        Raises:
            ApiConnectionError: If the service stays unreachable after all retries
            ApiError: If httpx rejects the exchange itself (bad encoding, redirect loop)
        """
        max_retries = max_retries if max_retries is not None else self.options.max_retries

        request_id = str(uuid.uuid4())
        headers = dict(kwargs.pop('headers', None) or {})
        headers.update(self._get_auth_header())
        headers['X-Request-ID'] = request_id

        logger.debug(f"Making request: {method} {endpoint} [request_id={request_id}]")

        last_exception = None
        for attempt in range(max_retries + 1):
            try:
                response = await self.session.request(method, endpoint, headers=headers, **kwargs)

                logger.debug(
                    f"Response received: {method} {endpoint} status={response.status_code} [request_id={request_id}]"
                )

                if 400 <= response.status_code < 500:
                    logger.warning(
                        f"Client error: {method} {endpoint} status={response.status_code} [request_id={request_id}]"
                    )
                    return response

                if response.status_code >= 500 and attempt < max_retries:
                    delay = compute_backoff(attempt, self.options.initial_backoff, self.options.max_backoff)
                    logger.warning(
                        f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} status={response.status_code}, retrying in {delay:.2f}s [request_id={request_id}]"
                    )
                    await asyncio.sleep(delay)
                    continue

                return response

            except httpx.TransportError as e:
                last_exception = e
                if attempt < max_retries:
                    delay = compute_backoff(attempt, self.options.initial_backoff, self.options.max_backoff)
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay:.2f}s [request_id={request_id}]"
                    )
                    await asyncio.sleep(delay)
                    continue
                logger.error(
                    f"Network error (max retries exceeded): {method} {endpoint} error={e} [request_id={request_id}]"
                )
            except httpx.RequestError as e:
                logger.error(f"Request failed: {method} {endpoint} error={e!r} [request_id={request_id}]")
                raise ApiError(f"{method} {endpoint} failed: {e}") from e

        if isinstance(last_exception, httpx.TimeoutException):
            raise ApiConnectionError(f"Request to {endpoint} timed out") from last_exception
        raise ApiConnectionError(f"Cannot connect to {self.base_url}: {last_exception}") from last_exception

    def _format_error(self, response: httpx.Response) -> str:
        """
        Extract the server's error detail from a response.

        Args:
            response: HTTP response object

        Returns:
            Detail message, or the status reason if the body has none
        """
        try:
            data = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(data, dict) and data.get('detail'):
            return str(data['detail'])
        return response.reason_phrase

    def _raise_for_status(self, method: str, endpoint: str, response: httpx.Response) -> None:
        """
        Raise ApiError for any non-2xx response.
        """
        if response.is_success:
            return
        detail = self._format_error(response)
        raise ApiError(
            f"{method} {endpoint} failed with status {response.status_code}: {detail}",
            status_code=response.status_code,
            detail=detail
        )

    def _decode_json(self, endpoint: str, response: httpx.Response):
        try:
            return response.json()
        except (ValueError, json.JSONDecodeError) as e:
            raise MalformedResponseError(
                f"Malformed JSON response from {endpoint}: {e}",
                status_code=response.status_code
            ) from e

    async def get_json(self, endpoint: str):
        """
        GET an endpoint and decode its JSON body.

        Raises:
            ApiError: On non-success status
            MalformedResponseError: If the body is not JSON
        """
        response = await self._request_with_retry('GET', endpoint)
        self._raise_for_status('GET', endpoint, response)
        return self._decode_json(endpoint, response)

    async def post(self, endpoint: str, payload) -> httpx.Response:
        """
        POST a JSON payload where only the status matters.

        Raises:
            ApiError: On non-success status
        """
        response = await self._request_with_retry('POST', endpoint, json=payload)
        self._raise_for_status('POST', endpoint, response)
        return response

    async def post_json(self, endpoint: str, payload):
        """
        POST a JSON payload and decode the JSON response.

        Raises:
            ApiError: On non-success status
            MalformedResponseError: If the body is not JSON
        """
        response = await self._request_with_retry('POST', endpoint, json=payload)
        self._raise_for_status('POST', endpoint, response)
        return self._decode_json(endpoint, response)

    async def upload_chunks(self, url: str, batch) -> None:
        """
        Upload one batch of chunks as a multipart form.

        Only the status code matters; the body, if any, is ignored.

        Args:
            url: Chunk upload URL announced by the server
            batch: UploadBatch to send

        Raises:
            ApiError: On non-success status after retries
            ApiConnectionError: If the service stays unreachable
        """
        boundary = make_boundary()
        response = await self._request_with_retry(
            'POST',
            url,
            headers={'Content-Type': multipart_content_type(boundary)},
            files=batch_to_files(batch)
        )
        self._raise_for_status('POST', url, response)

    async def close(self) -> None:
        """Close the HTTP session."""
        await self.session.aclose()
