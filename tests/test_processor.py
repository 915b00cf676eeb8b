"""Tests for HttpClientProcessor"""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest
import requests

from courier.application.processor import HttpClientProcessor
from courier.domain.config.httpclient import HttpClientConfig
from courier.domain.expressions import CallableExpression, ExpressionError, PathExpression
from courier.domain.models.http import HttpRequest, HttpResponse
from courier.domain.models.message import Message
from courier.domain.models.request import (
    ExpressionValue,
    PayloadBody,
    RequestSpec,
    StaticValue,
)
from courier.infrastructure.http_client import HttpClient
from courier.infrastructure.retry import RetryCancelledError, RetryPolicy


class FakeHttpClient(HttpClient):
    """HTTP client returning queued outcomes"""

    def __init__(self, *outcomes):
        super().__init__(session=MagicMock(spec=requests.Session))
        self.outcomes = list(outcomes)
        self.requests: list[HttpRequest] = []

    def send(self, request: HttpRequest) -> HttpResponse:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _ok(body="done", status=200) -> HttpResponse:
    return HttpResponse(status_code=status, body=body, headers={"X-Id": "1"})


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr("tenacity.nap.sleep", lambda *_: None)


class TestRequestSpecFromConfig:
    """Tests for building a RequestSpec from configuration"""

    def test_static_defaults(self):
        spec = RequestSpec.from_config(HttpClientConfig(url="http://svc/items"))
        assert spec.url == StaticValue("http://svc/items")
        assert spec.method == StaticValue("GET")
        assert spec.body == PayloadBody()
        assert spec.headers is None
        assert spec.response_type == "string"
        assert repr(spec.reply) == "SELECT_BODY"

    def test_expressions(self):
        spec = RequestSpec.from_config(
            HttpClientConfig(
                url_expression="headers.target",
                http_method="POST",
                http_method_expression="headers.verb",
                body_expression="payload.data",
                headers_expression="payload.meta",
                reply_expression="status_code",
            )
        )
        assert spec.url == ExpressionValue(PathExpression("headers.target"))
        assert spec.method == ExpressionValue(PathExpression("headers.verb"))
        assert spec.body == ExpressionValue(PathExpression("payload.data"))
        assert spec.headers == ExpressionValue(PathExpression("payload.meta"))
        assert spec.reply == PathExpression("status_code")

    def test_static_body(self):
        spec = RequestSpec.from_config(HttpClientConfig(url="http://x", body={"a": 1}))
        assert spec.body == StaticValue({"a": 1})


class TestBuildRequest:
    """Tests for resolving requests from messages"""

    def test_payload_is_default_body(self):
        processor = HttpClientProcessor(
            RequestSpec(url=StaticValue("http://svc/items")), FakeHttpClient(_ok())
        )
        request = processor.build_request(Message(payload={"n": 1}))
        assert request == HttpRequest(method="GET", url="http://svc/items", body={"n": 1})

    def test_dynamic_parts(self):
        spec = RequestSpec(
            url=ExpressionValue(PathExpression("headers.target")),
            method=ExpressionValue(PathExpression("headers.verb")),
            body=ExpressionValue(PathExpression("payload.data")),
            headers=ExpressionValue(CallableExpression(lambda m: {"X-Count": len(m.payload["data"])})),
            response_type="json",
        )
        processor = HttpClientProcessor(spec, FakeHttpClient(_ok()))
        message = Message(
            payload={"data": [1, 2, 3]},
            headers={"target": "http://svc/bulk", "verb": "put"},
        )

        request = processor.build_request(message)

        assert request.method == "PUT"
        assert request.url == "http://svc/bulk"
        assert request.body == [1, 2, 3]
        assert request.headers == {"X-Count": "3"}
        assert request.response_type == "json"

    def test_unknown_method_rejected(self):
        spec = RequestSpec(url=StaticValue("http://x"), method=StaticValue("FETCH"))
        processor = HttpClientProcessor(spec, FakeHttpClient(_ok()))
        with pytest.raises(ExpressionError, match="Unsupported HTTP method"):
            processor.build_request(Message(payload=None))

    def test_non_string_url_rejected(self):
        spec = RequestSpec(url=ExpressionValue(PathExpression("payload")))
        processor = HttpClientProcessor(spec, FakeHttpClient(_ok()))
        with pytest.raises(ExpressionError, match="URL"):
            processor.build_request(Message(payload=123))

    def test_headers_must_be_mapping(self):
        spec = RequestSpec(
            url=StaticValue("http://x"), headers=ExpressionValue(PathExpression("payload"))
        )
        processor = HttpClientProcessor(spec, FakeHttpClient(_ok()))
        with pytest.raises(ExpressionError, match="mapping"):
            processor.build_request(Message(payload=["a"]))


class TestProcess:
    """Tests for processing messages"""

    def test_reply_defaults_to_body(self):
        client = FakeHttpClient(_ok("response text"))
        processor = HttpClientProcessor(RequestSpec(url=StaticValue("http://x")), client)

        reply = processor.process(Message(payload="in", headers={"id": "m1"}))

        assert reply == Message(payload="response text", headers={"id": "m1"})
        assert len(client.requests) == 1

    def test_reply_expression(self):
        spec = RequestSpec(url=StaticValue("http://x"), reply=PathExpression("headers.X-Id"))
        processor = HttpClientProcessor(spec, FakeHttpClient(_ok()))
        assert processor.process(Message(payload=None)).payload == "1"

    def test_retries_transient_failures(self):
        client = FakeHttpClient(
            requests.ConnectionError("down"),
            requests.HTTPError("503"),
            _ok("recovered"),
        )
        processor = HttpClientProcessor(
            RequestSpec(url=StaticValue("http://x")),
            client,
            RetryPolicy(enabled=True, max_attempts=3),
        )

        assert processor.process(Message(payload=None)).payload == "recovered"
        assert len(client.requests) == 3

    def test_retry_disabled_single_attempt(self):
        error = requests.ConnectionError("down")
        client = FakeHttpClient(error, _ok())
        processor = HttpClientProcessor(RequestSpec(url=StaticValue("http://x")), client)

        with pytest.raises(requests.ConnectionError) as exc_info:
            processor.process(Message(payload=None))

        assert exc_info.value is error
        assert len(client.requests) == 1

    def test_exhausted_retries_raise_last_failure(self):
        last = requests.HTTPError("500 again")
        client = FakeHttpClient(requests.HTTPError("500"), last)
        processor = HttpClientProcessor(
            RequestSpec(url=StaticValue("http://x")),
            client,
            RetryPolicy(enabled=True, max_attempts=2),
        )

        with pytest.raises(requests.HTTPError) as exc_info:
            processor.process(Message(payload=None))

        assert exc_info.value is last

    def test_expression_error_not_retried(self):
        spec = RequestSpec(url=ExpressionValue(PathExpression("payload.url")))
        client = FakeHttpClient(_ok())
        processor = HttpClientProcessor(spec, client, RetryPolicy(enabled=True, max_attempts=3))

        with pytest.raises(ExpressionError):
            processor.process(Message(payload={}))

        assert client.requests == []

    def test_cancelled(self):
        event = threading.Event()
        event.set()
        client = FakeHttpClient(_ok())
        processor = HttpClientProcessor(
            RequestSpec(url=StaticValue("http://x")), client, RetryPolicy(enabled=True)
        )

        with pytest.raises(RetryCancelledError):
            processor.process(Message(payload=None), cancel_event=event)

        assert client.requests == []


class TestProcessStream:
    """Tests for stream processing"""

    def test_replies_in_order(self):
        spec = RequestSpec(url=StaticValue("http://x"), reply=PathExpression("body"))
        client = FakeHttpClient(_ok("a"), _ok("b"), _ok("c"))
        processor = HttpClientProcessor(spec, client)

        replies = list(processor.process_stream(Message(payload=i) for i in range(3)))

        assert [r.payload for r in replies] == ["a", "b", "c"]
        assert [r.body for r in client.requests] == [0, 1, 2]

    def test_stops_on_error_by_default(self):
        client = FakeHttpClient(_ok("a"), requests.HTTPError("boom"), _ok("c"))
        processor = HttpClientProcessor(RequestSpec(url=StaticValue("http://x")), client)

        stream = processor.process_stream(Message(payload=i) for i in range(3))
        assert next(stream).payload == "a"
        with pytest.raises(requests.HTTPError):
            next(stream)

    def test_continue_on_error(self):
        client = FakeHttpClient(_ok("a"), requests.HTTPError("boom"), _ok("c"))
        processor = HttpClientProcessor(RequestSpec(url=StaticValue("http://x")), client)

        replies = list(
            processor.process_stream(
                (Message(payload=i) for i in range(3)), continue_on_error=True
            )
        )

        assert [r.payload for r in replies] == ["a", "c"]

    def test_cancel_stops_stream(self):
        event = threading.Event()
        client = FakeHttpClient(_ok("a"))
        processor = HttpClientProcessor(RequestSpec(url=StaticValue("http://x")), client)

        stream = processor.process_stream((Message(payload=i) for i in range(5)), cancel_event=event)
        assert next(stream).payload == "a"
        event.set()
        assert list(stream) == []
        assert len(client.requests) == 1


def test_from_config():
    config = HttpClientConfig(
        url="http://svc",
        timeout=3,
        retry={"enabled": True, "max_attempts": 4, "initial_interval": 100, "max_interval": 400},
    )

    processor = HttpClientProcessor.from_config(config)

    assert processor.client.timeout == 3
    assert processor.retry_policy == RetryPolicy(
        enabled=True, max_attempts=4, initial_interval=0.1, multiplier=1.0, max_interval=0.4
    )
    assert processor.spec.url == StaticValue("http://svc")
