"""Shared HTTP client (requests session + response decoding).

One attempt per ``send`` call; retrying is the caller's concern
(see ``courier.infrastructure.retry``).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Dict, Optional

import requests

from courier.domain.models.http import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def decode_body(response: requests.Response, response_type: str) -> Any:
    """Decode response body according to the expected response type

    Args:
        response: Raw requests response
        response_type: One of "string", "bytes", "json"

    Returns:
        Decoded body (None for an empty json body)

    Raises:
        ValueError: If the type is unknown or the body is not valid JSON
    """
    if response_type == "string":
        return response.text
    if response_type == "bytes":
        return response.content
    if response_type == "json":
        if not response.content:
            return None
        return response.json()
    raise ValueError(f"Unknown response type: {response_type}")


class HttpClient:
    """Client for issuing single HTTP requests"""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """Initialize HTTP client

        Args:
            timeout: Per-request timeout in seconds
            session: Optional preconfigured session (a new one is created if None)
        """
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, request: HttpRequest) -> HttpResponse:
        """Send a request once

        Args:
            request: Resolved request

        Returns:
            Decoded response

        Raises:
            requests.RequestException: On network errors and non-2xx statuses
            ValueError: If the body cannot be decoded as the expected type
        """
        kwargs: Dict[str, Any] = {
            "headers": request.headers or None,
            "timeout": self.timeout,
        }
        body = request.body
        if isinstance(body, (Mapping, list, int, float)):
            kwargs["json"] = body
        elif isinstance(body, str):
            kwargs["data"] = body.encode("utf-8")
        elif body is not None:
            kwargs["data"] = body

        logger.debug(f"HTTP {request.method} {request.url}")
        resp = self.session.request(request.method, request.url, **kwargs)
        resp.raise_for_status()

        return HttpResponse(
            status_code=resp.status_code,
            body=decode_body(resp, request.response_type),
            headers=dict(resp.headers),
            url=resp.url,
        )

    def close(self) -> None:
        """Close the underlying session"""
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
