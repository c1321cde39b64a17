"""
ASGI middleware binding each HTTP request to a correlation id.
"""

import logging
import re

from starlette.datastructures import Headers, MutableHeaders

from .context import request_scope

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Client-supplied ids end up in every log line; anything else is replaced
_ACCEPTABLE_ID = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")


class CorrelationIdMiddleware:
    """Honours an incoming X-Request-ID, or mints one, and echoes it on the response."""

    def __init__(self, app, header_name: str = REQUEST_ID_HEADER):
        self.app = app
        self.header_name = header_name

    def _incoming_id(self, scope) -> str | None:
        value = Headers(scope=scope).get(self.header_name)
        if value and not _ACCEPTABLE_ID.match(value):
            logger.debug("Ignoring malformed %s header", self.header_name)
            return None
        return value

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        with request_scope(self._incoming_id(scope)) as request_id:

            async def send_with_id(message):
                if message["type"] == "http.response.start":
                    message.setdefault("headers", [])
                    MutableHeaders(scope=message)[self.header_name] = request_id
                await send(message)

            await self.app(scope, receive, send_with_id)
