"""Cloudflare Notifications Source.

Cloudflare generic webhook destinations POST a JSON payload with a single
"text" field, and send the configured secret in the "cf-webhook-auth" header.
"""

import logging
from typing import List

from pydantic import BaseModel, ValidationError
from starlette.requests import Request

from webhook_gateway.auth import verify_header_token
from webhook_gateway.errors import ParseError
from webhook_gateway.gateway import Message, Source
from webhook_gateway.registry import register_source

log = logging.getLogger(__name__)

AUTH_HEADER = "cf-webhook-auth"


class CloudflarePayload(BaseModel):
    text: str = ""


class CloudflareSource(Source):
    """Source for Cloudflare Notifications webhooks. Takes no configuration."""

    async def init(self) -> None:
        pass

    async def parse_http(self, request: Request) -> List[Message]:
        verify_header_token(request, AUTH_HEADER)

        body = await request.body()
        try:
            payload = CloudflarePayload.model_validate_json(body)
        except ValidationError as e:
            raise ParseError(f"failed parsing request: {e.errors()[0]['msg']}") from e

        if not payload.text:
            raise ParseError("no message content found")

        return [Message(content=payload.text)]


register_source("cloudflare-notifications", CloudflareSource)
