"""HTTP client processor - turns pipeline messages into HTTP calls and replies"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from typing import Iterable, Iterator, Optional, get_args

from courier.domain.config.httpclient import HttpClientConfig, HttpMethod
from courier.domain.expressions import ExpressionError
from courier.domain.models.http import HttpRequest, HttpResponse
from courier.domain.models.message import Message
from courier.domain.models.request import RequestSpec
from courier.infrastructure.http_client import HttpClient
from courier.infrastructure.retry import RetryCancelledError, RetryPolicy

logger = logging.getLogger(__name__)

HTTP_METHODS = frozenset(get_args(HttpMethod))


class HttpClientProcessor:
    """Processor issuing one HTTP request per incoming message"""

    def __init__(
        self,
        spec: RequestSpec,
        client: HttpClient,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        """Initialize processor

        Args:
            spec: How to derive the request and reply from each message
            client: HTTP client used for every attempt
            retry_policy: Policy guarding each request (None = single attempt)
        """
        self.spec = spec
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()

    @classmethod
    def from_config(
        cls, config: HttpClientConfig, client: Optional[HttpClient] = None
    ) -> "HttpClientProcessor":
        """Create processor from validated configuration

        Args:
            config: HTTP client configuration
            client: Optional client override (built from config.timeout if None)

        Returns:
            HttpClientProcessor instance
        """
        retry_policy = RetryPolicy.from_config(config.retry)
        logger.info(f"HTTP client processor: {retry_policy.describe()}")
        return cls(
            spec=RequestSpec.from_config(config),
            client=client or HttpClient(timeout=config.timeout),
            retry_policy=retry_policy,
        )

    def build_request(self, message: Message) -> HttpRequest:
        """Evaluate the request spec against a message

        Args:
            message: Incoming message

        Returns:
            Resolved request

        Raises:
            ExpressionError: If a part cannot be derived or has the wrong shape
        """
        url = self.spec.url.resolve(message)
        if not isinstance(url, str) or not url:
            raise ExpressionError(f"URL must be a non-empty string, got {url!r}")

        method = self.spec.method.resolve(message)
        method = str(method).strip().upper() if method is not None else ""
        if method not in HTTP_METHODS:
            raise ExpressionError(f"Unsupported HTTP method: {method!r}")

        headers = {}
        if self.spec.headers is not None:
            resolved = self.spec.headers.resolve(message)
            if resolved is not None and not isinstance(resolved, Mapping):
                raise ExpressionError(
                    f"Headers expression must yield a mapping, got {type(resolved).__name__}"
                )
            headers = {str(k): str(v) for k, v in (resolved or {}).items()}

        return HttpRequest(
            method=method,
            url=url,
            headers=headers,
            body=self.spec.body.resolve(message),
            response_type=self.spec.response_type,
        )

    def extract_reply(self, response: HttpResponse) -> object:
        """Apply the reply expression to a response"""
        return self.spec.reply.evaluate(response)

    def process(
        self, message: Message, cancel_event: Optional[threading.Event] = None
    ) -> Message:
        """Process one message

        Args:
            message: Incoming message
            cancel_event: Optional event aborting the retry sequence

        Returns:
            Reply message (reply as payload, incoming headers preserved)

        Raises:
            ExpressionError: If the request or reply cannot be derived
            RetryCancelledError: If cancelled before a response was obtained
            Exception: The last failure of the HTTP call after retries
        """
        request = self.build_request(message)
        response = self.retry_policy.execute(lambda: self.client.send(request), cancel_event)
        return message.with_payload(self.extract_reply(response))

    def process_stream(
        self,
        messages: Iterable[Message],
        cancel_event: Optional[threading.Event] = None,
        continue_on_error: bool = False,
    ) -> Iterator[Message]:
        """Process messages in order, yielding replies

        Args:
            messages: Incoming messages
            cancel_event: Optional event; once set, processing stops
            continue_on_error: Log failed messages and keep going instead of raising

        Yields:
            Reply messages
        """
        for i, message in enumerate(messages, 1):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Processing cancelled before message {i}")
                return
            try:
                reply = self.process(message, cancel_event)
            except RetryCancelledError:
                raise
            except Exception as e:
                if not continue_on_error:
                    raise
                logger.error(f"Error processing message {i}: {e}")
                continue
            yield reply
