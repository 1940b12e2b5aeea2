"""
Backend collaborators for the validate and commit stages.

ImportBackend is the interface the orchestrators depend on. HttpImportBackend
talks to the REST backend with requests, retrying transient failures with
exponential backoff; blocking calls run in a worker thread so the wizard's
event loop only suspends while a request is outstanding.

Row payloads are never logged; they may contain personal data.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Protocol

import requests

from .errors import BackendRequestError
from .logging_config import get_logger

logger = get_logger(__name__)

VALIDATE_PATH = "/api/advanced-import/validate"
COMMIT_PATH = "/api/advanced-import/commit"

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
TOO_MANY_REQUESTS_MESSAGE = "Too many requests. Please try again later."


class ImportBackend(Protocol):
    """
    Remote validation and commit services.

    Both calls return the backend's response envelope
    ``{"success": bool, "data": ..., "error": ...}`` and raise
    BackendRequestError when no envelope could be obtained.
    """

    async def validate(self, target_id: str, rows: list[dict[str, Any]]) -> dict[str, Any]:
        ...

    async def commit(self, target_id: str, rows: list[dict[str, Any]]) -> dict[str, Any]:
        ...


class HttpImportBackend:
    """
    ImportBackend over HTTP.
    """

    def __init__(
        self,
        *,
        base_url: str,
        auth_token: str | None = None,
        timeout_seconds: float = 30.0,
        max_retries: int = 2,
        backoff_initial_seconds: float = 0.5,
        backoff_multiplier: float = 2.0,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._auth_token = auth_token
        self._session = session or requests.Session()
        self._timeout_seconds = timeout_seconds
        self._max_retries = max_retries
        self._backoff_initial_seconds = backoff_initial_seconds
        self._backoff_multiplier = backoff_multiplier
        self._sleep = sleep

    @classmethod
    def from_config(cls, config) -> "HttpImportBackend":
        return cls(
            base_url=config.backend_url,
            auth_token=config.auth_token,
            timeout_seconds=config.timeout_seconds,
            max_retries=config.max_retries,
            backoff_initial_seconds=config.backoff_initial_seconds,
            backoff_multiplier=config.backoff_multiplier,
        )

    async def validate(self, target_id: str, rows: list[dict[str, Any]]) -> dict[str, Any]:
        return await asyncio.to_thread(
            self.post_json, VALIDATE_PATH, {"type": target_id, "rows": rows}
        )

    async def commit(self, target_id: str, rows: list[dict[str, Any]]) -> dict[str, Any]:
        return await asyncio.to_thread(
            self.post_json, COMMIT_PATH, {"type": target_id, "rows": rows}
        )

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "HttpImportBackend":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"
        return headers

    def post_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """
        POST a JSON payload and return the response envelope.
        """

        response = self._request(path, payload)
        return self._envelope(response)

    def _request(self, path: str, payload: dict[str, Any]) -> requests.Response:
        """
        Execute the request with exponential backoff on transient failures.

        A retryable status that persists is returned as-is so its body can be
        turned into an error envelope.
        """

        url = f"{self.base_url}{path}"
        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            try:
                response = self._session.post(
                    url,
                    json=payload,
                    headers=self._headers(),
                    timeout=self._timeout_seconds,
                )
                logger.debug(f"POST {path} status={response.status_code} attempt={attempt + 1}")
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    return response
                if attempt >= self._max_retries:
                    return response
                last_error = None
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = exc
                if attempt >= self._max_retries:
                    break
            except requests.RequestException as exc:
                logger.error(f"Backend request failed path={path} error={exc}")
                raise BackendRequestError(f"Request to {url} failed: {exc}") from exc

            backoff_seconds = self._backoff_initial_seconds * (self._backoff_multiplier**attempt)
            logger.warning(
                f"Backend request retry path={path} attempt={attempt + 1}/{self._max_retries} "
                f"wait_seconds={backoff_seconds:.2f}"
            )
            self._sleep(backoff_seconds)

        logger.error(f"Backend request exhausted retries path={path} error={last_error}")
        raise BackendRequestError(
            f"Network error: could not reach {self.base_url} ({last_error})"
        ) from last_error

    @staticmethod
    def _envelope(response: requests.Response) -> dict[str, Any]:
        """
        Turn a response into an envelope, tolerating non-JSON bodies.
        """

        if response.status_code == 429:
            return {"success": False, "error": TOO_MANY_REQUESTS_MESSAGE}

        try:
            body = response.json()
        except ValueError:
            text = response.text.strip()
            return {
                "success": False,
                "error": text or f"HTTP {response.status_code}: {response.reason}",
            }

        if not isinstance(body, dict):
            return {
                "success": False,
                "error": f"HTTP {response.status_code}: unexpected response body",
            }
        if "success" not in body and not response.ok:
            return {
                "success": False,
                "error": body.get("error") or f"HTTP {response.status_code}: {response.reason}",
            }
        return body
