"""Main application configuration model."""

from pydantic import BaseModel, ConfigDict

from courier.domain.config.httpclient import HttpClientConfig


class AppConfig(BaseModel):
    """Main application configuration.

    This is the root configuration model. Validation is performed at load
    time so that the processor refuses to start on configuration errors.

    Attributes:
        httpclient: HTTP client processor configuration
    """

    httpclient: HttpClientConfig

    model_config = ConfigDict(
        extra="forbid",  # Reject unknown fields
        json_schema_extra={
            "example": {
                "httpclient": {
                    "url": "http://localhost:8080/orders",
                    "http_method": "POST",
                    "expected_response_type": "json",
                    "reply_expression": "body.id",
                    "retry": {
                        "enabled": True,
                        "max_attempts": 3,
                        "initial_interval": "1000ms",
                        "multiplier": 2.0,
                        "max_interval": "10s",
                    },
                },
            }
        },
    )
