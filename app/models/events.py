from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    SEARCH_STARTED = "search_started"
    CATEGORY_STARTED = "category_started"
    CATEGORY_PROGRESS = "category_progress"
    CATEGORY_COMPLETED = "category_completed"
    CATEGORY_FAILED = "category_failed"
    GATHERING_PROGRESS = "gathering_progress"
    GATHERINGS_COMPLETE = "gatherings_complete"
    SEARCH_COMPLETE = "search_complete"
    CAMPAIGN_PROGRESS = "campaign_progress"
    CAMPAIGN_COMPLETE = "campaign_complete"
    ERROR = "error"


@dataclass
class SSEEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)

    def format(self) -> str:
        return f"event: {self.event.value}\ndata: {json.dumps(self.data)}\n\n"

    def to_sse(self) -> dict[str, str]:
        """Shape accepted by sse_starlette's EventSourceResponse."""
        return {"event": self.event.value, "data": json.dumps(self.data)}
