"""HTTP receiver for provider webhook deliveries.

Only ``POST`` requests to the current session path are served; every other
request gets a plain 404 so the endpoint does not advertise itself.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from typing import Any

from aiohttp import web
from pydantic import ValidationError

from seamlock._constants import SIGNATURE_HEADERS
from seamlock._redact import redact_for_log
from seamlock.exceptions import WebhookPayloadError, WebhookSignatureError
from seamlock.ingestion.normalize import now_ms
from seamlock.models.webhook import WebhookEvent
from seamlock.webhook.signing import verify_signature

_logger = logging.getLogger(__name__)

EventHandler = Callable[[WebhookEvent, int], Any]


def _signature_header(headers: Mapping[str, str]) -> str | None:
    for name in SIGNATURE_HEADERS:
        value = headers.get(name)
        if value:
            return value
    return None


def decode_webhook_request(body: bytes, headers: Mapping[str, str], secret: str | None) -> WebhookEvent:
    """Verify and parse one webhook request body.

    A missing signature header is tolerated; a present one must match.

    Raises
    ------
    WebhookSignatureError
        A signature header was present and did not match *body*.
    WebhookPayloadError
        The body is not a JSON object or lacks ``event_type``.
    """
    signature = _signature_header(headers)
    if signature is not None and secret:
        if not verify_signature(body, signature, secret):
            raise WebhookSignatureError("webhook signature mismatch")
    elif signature is None:
        _logger.debug("Webhook request carried no signature header")

    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise WebhookPayloadError(f"invalid JSON body: {exc}") from exc
    if not isinstance(payload, dict):
        raise WebhookPayloadError(f"expected a JSON object, got {type(payload).__name__}")

    try:
        return WebhookEvent.model_validate(payload)
    except ValidationError as exc:
        raise WebhookPayloadError(f"invalid webhook event: {exc.error_count()} validation error(s)") from exc


class WebhookReceiver:
    """aiohttp listener bound to a single secret path."""

    def __init__(
        self,
        *,
        path: str,
        secret: str | None,
        handler: EventHandler,
        host: str = "0.0.0.0",
        port: int = 0,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._path = path
        self._secret = secret
        self._handler = handler
        self._host = host
        self._port = port
        self._clock = clock
        self._runner: web.AppRunner | None = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    @property
    def bound_port(self) -> int | None:
        """Actual listening port (useful when bound to port 0)."""
        if self._runner is None:
            return None
        for address in self._runner.addresses:
            if isinstance(address, tuple) and len(address) >= 2:
                return int(address[1])
        return None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self.handle)
        return app

    async def start(self) -> None:
        if self._runner is not None:
            return
        runner = web.AppRunner(self.build_app(), access_log=None)
        await runner.setup()
        try:
            site = web.TCPSite(runner, self._host, self._port)
            await site.start()
        except Exception:
            await runner.cleanup()
            raise
        self._runner = runner
        _logger.info("Webhook server started on port %s", self.bound_port or self._port)

    async def stop(self) -> None:
        runner = self._runner
        self._runner = None
        if runner is None:
            return
        await runner.cleanup()
        _logger.info("Webhook server stopped")

    async def handle(self, request: web.Request) -> web.StreamResponse:
        if request.method != "POST" or request.path != self._path:
            return web.Response(status=404, text="Not Found")

        received_at = self._clock()
        body = await request.read()
        _logger.debug("Webhook request headers: %s", redact_for_log(dict(request.headers)))

        try:
            event = decode_webhook_request(body, request.headers, self._secret)
        except WebhookSignatureError:
            _logger.warning("Webhook signature verification failed")
            return web.json_response({"error": "Unauthorized"}, status=401)
        except WebhookPayloadError as exc:
            _logger.error("Error processing webhook: %s", exc)
            return web.json_response({"error": "Bad Request"}, status=400)

        _logger.debug("Received webhook event: %s for device %s", event.event_type, event.device_id)
        try:
            self._handler(event, received_at)
        except Exception:
            _logger.exception("Error handling webhook event %s", event.event_type)
        return web.json_response({"success": True})
