import pytest
from starlette.requests import Request


@pytest.fixture
def make_request():
    """Build a starlette Request with the given body and headers, without a server."""

    def _make_request(body=b"", headers=None, method="POST", path="/test"):
        if isinstance(body, str):
            body = body.encode("utf-8")

        raw_headers = [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in (headers or {}).items()
        ]
        scope = {
            "type": "http",
            "method": method,
            "path": path,
            "headers": raw_headers,
            "query_string": b"",
        }

        async def receive():
            return {"type": "http.request", "body": body, "more_body": False}

        return Request(scope, receive)

    return _make_request
