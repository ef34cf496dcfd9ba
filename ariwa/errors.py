# Ariwa - Errors
"""Exception types surfaced by the stream client."""

from dataclasses import dataclass
from typing import Optional


class AriwaError(Exception):
    """Base class for all Ariwa exceptions."""


@dataclass
class FrameError(AriwaError):
    """An inbound message could not be decoded or failed schema validation.

    Delivered through the ``error`` event; the frame is dropped and the
    connection stays open.
    """

    reason: str
    raw: Optional[str] = None

    def __str__(self) -> str:
        return f"FrameError: {self.reason}"


class DisconnectTimeoutError(AriwaError):
    """The WebSocket did not finish closing within the disconnect timeout."""

    def __init__(self, timeout: float):
        super().__init__(f"WebSocket close timed out after {timeout}s")
        self.timeout = timeout
