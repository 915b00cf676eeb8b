"""RequestSpec model - how to derive an HTTP request from a message"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union

from courier.domain.config.httpclient import HttpClientConfig
from courier.domain.expressions import SELECT_BODY, Expression, parse_expression
from courier.domain.models.message import Message


@dataclass(frozen=True)
class StaticValue:
    """Value fixed in configuration"""

    value: Any

    def resolve(self, message: Message) -> Any:
        return self.value


@dataclass(frozen=True)
class ExpressionValue:
    """Value derived from each message"""

    expression: Expression

    def resolve(self, message: Message) -> Any:
        return self.expression.evaluate(message)


@dataclass(frozen=True)
class PayloadBody:
    """Request body taken from the incoming payload as-is"""

    def resolve(self, message: Message) -> Any:
        return message.payload


UrlSource = Union[StaticValue, ExpressionValue]
MethodSource = Union[StaticValue, ExpressionValue]
BodySource = Union[StaticValue, ExpressionValue, PayloadBody]


@dataclass(frozen=True)
class RequestSpec:
    """Per-message request recipe.

    Each part is a single tagged source, so "exactly one URL" and "at most
    one body" hold by construction.
    """

    url: UrlSource
    method: MethodSource = StaticValue("GET")
    body: BodySource = PayloadBody()
    headers: Optional[ExpressionValue] = None
    response_type: str = "string"
    reply: Expression = SELECT_BODY

    @classmethod
    def from_config(cls, config: HttpClientConfig) -> "RequestSpec":
        """Build a spec from validated configuration

        Args:
            config: HTTP client configuration

        Returns:
            RequestSpec with expressions parsed
        """
        url: UrlSource
        if config.url_expression is not None:
            url = ExpressionValue(parse_expression(config.url_expression))
        else:
            url = StaticValue(config.url)

        method: MethodSource
        if config.http_method_expression is not None:
            method = ExpressionValue(parse_expression(config.http_method_expression))
        else:
            method = StaticValue(config.http_method)

        body: BodySource
        if config.body is not None:
            body = StaticValue(config.body)
        elif config.body_expression is not None:
            body = ExpressionValue(parse_expression(config.body_expression))
        else:
            body = PayloadBody()

        headers = None
        if config.headers_expression is not None:
            headers = ExpressionValue(parse_expression(config.headers_expression))

        reply = SELECT_BODY
        if config.reply_expression is not None:
            reply = parse_expression(config.reply_expression)

        return cls(
            url=url,
            method=method,
            body=body,
            headers=headers,
            response_type=config.expected_response_type,
            reply=reply,
        )
