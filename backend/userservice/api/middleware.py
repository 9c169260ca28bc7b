"""HTTP Middleware — request ids, body limit, contract validation and security headers as pure ASGI apps.

Invariants:
    - Exempt paths (GET /health) bypass contract validation entirely
    - A rejected request never reaches the router: the error response is rendered here
    - The request body is read once (bounded by max_body_bytes) and replayed downstream
    - Responses below 500 are buffered and validated before the first byte is sent;
      a non-conforming response is replaced by a 500 from the error translator
    - Exceptions raised downstream propagate untouched to ErrorBoundaryMiddleware
    - Every response carries x-request-id; the id is set for the whole request

Design Decisions:
    - Pure ASGI over BaseHTTPMiddleware: the body can be replayed and the response
      swapped without Starlette's streaming wrappers
"""

import logging
from typing import Iterable

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from userservice.api.error_handlers import render_error
from userservice.core.errors import ApiError, PayloadTooLargeError
from userservice.infrastructure.contract import ApiContract, OperationMatch
from userservice.infrastructure.observability import (
    REQUEST_ID_HEADER, accept_request_id, request_id_var,
)

logger = logging.getLogger(__name__)

SECURITY_HEADERS = (
    (b"x-content-type-options", b"nosniff"),
    (b"x-frame-options", b"SAMEORIGIN"),
    (b"x-dns-prefetch-control", b"off"),
    (b"x-download-options", b"noopen"),
    (b"x-permitted-cross-domain-policies", b"none"),
    (b"x-xss-protection", b"0"),
    (b"referrer-policy", b"no-referrer"),
    (b"strict-transport-security", b"max-age=15552000; includeSubDomains"),
    (b"content-security-policy", b"default-src 'self'; frame-ancestors 'self'"),
    (b"cross-origin-opener-policy", b"same-origin"),
    (b"cross-origin-resource-policy", b"same-origin"),
)


class ContractValidationMiddleware:
    """Validates every non-exempt request and response against the API contract."""

    def __init__(
        self,
        app: ASGIApp,
        contract: ApiContract,
        max_body_bytes: int,
        exempt_paths: Iterable[str] = ("/health",),
        mount_prefix: str = "",
    ):
        self.app = app
        self.contract = contract
        self.max_body_bytes = max_body_bytes
        self.exempt_paths = frozenset(exempt_paths)
        self.mount_prefix = mount_prefix

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"] in self.exempt_paths:
            await self.app(scope, receive, send)
            return

        path = scope["path"]
        headers = Headers(scope=scope)
        try:
            body = await _read_body(receive, self.max_body_bytes)
            matched = self.contract.match(scope["method"], path, self.mount_prefix)
            self.contract.validate_request(
                matched,
                scope.get("query_string", b"").decode("latin-1"),
                headers.get("content-type", ""),
                body,
            )
        except ApiError as exc:
            logger.info(
                f"Request rejected by contract: {exc.message}",
                extra={
                    "event_name": "contract.request_rejected",
                    "method": scope["method"], "path": path,
                    "status": exc.http_status, "error_code": exc.code,
                },
            )
            await render_error(exc, path)(scope, receive, send)
            return

        await self.app(
            scope,
            _replay(body, receive),
            _ResponseValidator(self.contract, matched, scope, receive, send),
        )


class _ResponseValidator:
    """ASGI send wrapper that buffers the response and validates it on completion."""

    def __init__(
        self,
        contract: ApiContract,
        matched: OperationMatch,
        scope: Scope,
        receive: Receive,
        send: Send,
    ):
        self.contract = contract
        self.matched = matched
        self.scope = scope
        self.receive = receive
        self.send = send
        self._start: Message | None = None
        self._chunks: list[bytes] = []

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            if message["status"] >= 500:
                await self.send(message)
                return
            self._start = message
            return
        if message["type"] != "http.response.body" or self._start is None:
            await self.send(message)
            return

        self._chunks.append(message.get("body", b""))
        if message.get("more_body", False):
            return
        await self._flush()

    async def _flush(self) -> None:
        start, self._start = self._start, None
        body = b"".join(self._chunks)
        headers = Headers(raw=start.get("headers", []))
        try:
            self.contract.validate_response(
                self.matched, start["status"], headers.get("content-type", ""), body,
            )
        except ApiError as exc:
            await render_error(exc, self.scope["path"])(self.scope, self.receive, self.send)
            return
        await self.send(start)
        await self.send({"type": "http.response.body", "body": body, "more_body": False})


async def _read_body(receive: Receive, limit: int) -> bytes:
    chunks: list[bytes] = []
    size = 0
    more_body = True
    while more_body:
        message = await receive()
        if message["type"] == "http.disconnect":
            break
        chunk = message.get("body", b"")
        size += len(chunk)
        if size > limit:
            raise PayloadTooLargeError(limit)
        chunks.append(chunk)
        more_body = message.get("more_body", False)
    return b"".join(chunks)


def _replay(body: bytes, receive: Receive) -> Receive:
    delivered = False

    async def replayed() -> Message:
        nonlocal delivered
        if not delivered:
            delivered = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replayed


class SecurityHeadersMiddleware:
    """Adds a fixed set of hardening headers to every HTTP response."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                present = {name.lower() for name, _ in message.get("headers", [])}
                extra = [(k, v) for k, v in SECURITY_HEADERS if k not in present]
                message = {**message, "headers": [*message.get("headers", []), *extra]}
            await send(message)

        await self.app(scope, receive, send_with_headers)


class RequestContextMiddleware:
    """Tags each request with an id (incoming x-request-id or a fresh one).

    The id is visible to every log record emitted while the request runs and is
    echoed on the response.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = accept_request_id(Headers(scope=scope).get(REQUEST_ID_HEADER))
        header = (REQUEST_ID_HEADER.encode("latin-1"), request_id.encode("latin-1"))

        async def send_with_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                kept = [
                    (k, v) for k, v in message.get("headers", [])
                    if k.lower() != header[0]
                ]
                message = {**message, "headers": [*kept, header]}
            await send(message)

        token = request_id_var.set(request_id)
        try:
            await self.app(scope, receive, send_with_id)
        finally:
            request_id_var.reset(token)
