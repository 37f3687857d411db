"""HTTP transport for the Seam REST API."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from seamlock._constants import STATUS_TIMEOUT, USER_AGENT
from seamlock._redact import redact_for_log
from seamlock.exceptions import SeamApiError, SeamTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpTransport`) concrete.
    """

    async def post_json(
        self,
        endpoint: str,
        payload: Mapping[str, Any],
        *,
        timeout: float | None = None,
    ) -> dict[str, Any]: ...


def _error_details(body: Any, text: str) -> tuple[str, str]:
    """Extract ``(error_type, message)`` from a Seam error response."""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("type") or ""), str(error.get("message") or text[:200])
        if isinstance(error, str):
            return "", error
    return "", text[:200]


class HttpTransport:
    """Authenticated JSON-over-HTTP transport."""

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        *,
        api_key: str,
        base_url: str,
        api_version: str,
        default_timeout: float = STATUS_TIMEOUT,
    ) -> None:
        self._http = http_session
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._api_version = api_version
        self._default_timeout = default_timeout

    def _headers(self) -> dict[str, str]:
        return {
            "authorization": f"Bearer {self._api_key}",
            "content-type": "application/json",
            "seam-api-version": self._api_version,
            "user-agent": USER_AGENT,
        }

    async def post_json(
        self,
        endpoint: str,
        payload: Mapping[str, Any],
        *,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """POST *payload* to *endpoint* and return the decoded JSON object.

        Raises
        ------
        SeamTransportError
            Network failure, timeout, empty or non-JSON body.
        SeamApiError
            The provider answered with a non-2xx status.
        """
        url = f"{self._base_url}{endpoint}"
        effective_timeout = self._default_timeout if timeout is None else timeout

        _logger.debug("POST %s %s", url, redact_for_log(dict(payload)))

        try:
            async with self._http.post(
                url,
                data=json.dumps(payload, separators=(",", ":")),
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=effective_timeout),
            ) as resp:
                status = resp.status
                text = await resp.text()
        except TimeoutError as exc:
            raise SeamTransportError(
                f"Request to {endpoint} timed out after {effective_timeout}s",
                endpoint=endpoint,
            ) from exc
        except aiohttp.ClientError as exc:
            raise SeamTransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        if not text or not text.strip():
            raise SeamTransportError(
                f"Empty response from {endpoint} (status: {status})",
                status_code=status,
                endpoint=endpoint,
            )

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            if 200 <= status < 300:
                raise SeamTransportError(
                    f"Invalid JSON from {endpoint}: {text[:100]}",
                    status_code=status,
                    endpoint=endpoint,
                ) from exc
            body = None

        if not 200 <= status < 300:
            error_type, message = _error_details(body, text)
            raise SeamApiError(
                f"API Error {status} from {endpoint}: {message}",
                status_code=status,
                error_type=error_type,
                endpoint=endpoint,
            )

        if not isinstance(body, dict):
            raise SeamTransportError(
                f"Response from {endpoint} is not a JSON object",
                status_code=status,
                endpoint=endpoint,
            )

        _logger.debug("Response %s %s", endpoint, redact_for_log(body))
        return body
