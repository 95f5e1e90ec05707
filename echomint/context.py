"""Per-call request context passed explicitly across component boundaries."""

import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

REQUEST_ID_HEADER = "X-Request-ID"


@dataclass(frozen=True)
class RequestContext:
    """
    Identity and timing of one inbound call.

    Created at the edge (REST or RPC handler) and handed to every component
    that logs or makes an outbound call, so log lines and downstream requests
    can be correlated without ambient state.
    """
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: float = field(default_factory=time.perf_counter)

    @classmethod
    def from_header(cls, value: Optional[str]) -> "RequestContext":
        """Reuse a caller-supplied request id when present."""
        value = (value or "").strip()
        if value and len(value) <= 128:
            return cls(request_id=value)
        return cls()

    @property
    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self.started_at) * 1000)

    @property
    def headers(self) -> dict:
        return {REQUEST_ID_HEADER: self.request_id}
