"""HTTP client processor configuration model."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from courier.domain.config.retry import RetryConfig

HttpMethod = Literal["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE"]

ResponseType = Literal["string", "bytes", "json"]


class HttpClientConfig(BaseModel):
    """Configuration for the HTTP client processor.

    Expression fields hold expression text evaluated per message; see
    ``courier.domain.expressions.parse_expression``.

    Attributes:
        url: The URL to issue an http request to, as a static value
        url_expression: Expression against the incoming message to determine the URL
        http_method: The kind of http method to use
        http_method_expression: Expression to derive the request method from the message
        body: The (static) request body; if neither this nor body_expression
            is provided, the payload is used
        body_expression: Expression to derive the request body from the message
        headers_expression: Expression used to derive the http headers map
        expected_response_type: The type used to interpret the response
        reply_expression: Expression used to compute the final result, applied
            against the whole http response (None = select the body)
        timeout: Per-request timeout in seconds
        retry: Retry policy around each request
    """

    url: Optional[str] = None
    url_expression: Optional[str] = None
    http_method: HttpMethod = "GET"
    http_method_expression: Optional[str] = None
    body: Any = None
    body_expression: Optional[str] = None
    headers_expression: Optional[str] = None
    expected_response_type: ResponseType = "string"
    reply_expression: Optional[str] = None
    timeout: float = Field(30.0, gt=0.0)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("http_method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("expected_response_type", mode="before")
    @classmethod
    def _lower_response_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @model_validator(mode="after")
    def _check_sources(self) -> "HttpClientConfig":
        if (self.url is None) == (self.url_expression is None):
            raise ValueError("Exactly one of 'url' or 'urlExpression' is required")
        if self.body is not None and self.body_expression is not None:
            raise ValueError("At most one of 'body' or 'bodyExpression' is allowed")
        return self
