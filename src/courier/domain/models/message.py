"""Message model - a unit of data flowing through the pipeline"""

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(frozen=True)
class Message:
    """Represents a pipeline message"""

    payload: Any
    headers: Dict[str, Any] = field(default_factory=dict)

    def with_payload(self, payload: Any) -> "Message":
        """Create a reply message carrying the same headers"""
        return Message(payload=payload, headers=dict(self.headers))
