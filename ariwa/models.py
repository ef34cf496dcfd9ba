# Ariwa - Data Models
"""
Frame schema and event vocabulary for the vote stream.

Inbound frames are validated with pydantic before classification so that a
frame with a missing or mistyped field is a protocol fault, not a partially
classified event.
"""

from enum import IntEnum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, StrictInt


class OpCode(IntEnum):
    """Operation codes sent by the websockets-topgg service."""

    READY = 3
    VOTE = 10
    TEST = 11
    REMINDER = 12


# Events emitted to subscribers
EVENT_OPEN = "open"
EVENT_READY = "ready"
EVENT_VOTE = "vote"
EVENT_TEST = "test"
EVENT_REMINDER = "reminder"
EVENT_DISCONNECTED = "disconnected"
EVENT_ERROR = "error"
EVENT_UNKNOWN_OP = "unknownOp"

VALID_EVENTS = frozenset(
    {
        EVENT_OPEN,
        EVENT_READY,
        EVENT_VOTE,
        EVENT_TEST,
        EVENT_REMINDER,
        EVENT_DISCONNECTED,
        EVENT_ERROR,
        EVENT_UNKNOWN_OP,
    }
)

OP_EVENTS: Dict[int, str] = {
    OpCode.READY: EVENT_READY,
    OpCode.VOTE: EVENT_VOTE,
    OpCode.TEST: EVENT_TEST,
    OpCode.REMINDER: EVENT_REMINDER,
}

# Close code for a normal closure; never triggers a reconnect
NORMAL_CLOSURE = 1000


class Frame(BaseModel):
    """One decoded inbound message.

    Attributes:
        op: Operation code
        d: Payload object
        ts: Resumption marker (epoch milliseconds), only on some frames
    """

    model_config = ConfigDict(extra="ignore")

    op: StrictInt
    d: Dict[str, Any]
    ts: Optional[StrictInt] = None

    @property
    def event_name(self) -> Optional[str]:
        """Event name for a recognised op code, None otherwise."""
        return OP_EVENTS.get(self.op)

    def event_payload(self) -> Dict[str, Any]:
        """Payload delivered to subscribers: ``d`` merged with ``ts`` if present."""
        if self.ts is None:
            return dict(self.d)
        return {**self.d, "ts": self.ts}
