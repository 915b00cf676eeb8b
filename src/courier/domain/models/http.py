"""HTTP request/response models exchanged with the HTTP client"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class HttpRequest:
    """A fully resolved outbound request"""

    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    response_type: str = "string"  # string, bytes or json


@dataclass(frozen=True)
class HttpResponse:
    """A decoded response; the context the reply expression is applied to"""

    status_code: int
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    url: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300
