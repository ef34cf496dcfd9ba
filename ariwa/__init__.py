# Ariwa - Package
"""
Ariwa

Client for the websockets-topgg vote stream with auto-reconnect and
resumption, plus cached wrappers for the websockets-topgg and Top.gg REST APIs.
"""

__version__ = "0.1.0"

from .backoff import ReconnectPolicy, calculate_reconnect_delay
from .cache import TTLCache, cache_key
from .checkpoint import CheckpointTracker, load_timestamp, save_timestamp
from .client import AriwaClient
from .config import Settings, configure_logging, get_settings, init_logging
from .errors import AriwaError, DisconnectTimeoutError, FrameError
from .events import EventEmitter
from .models import Frame, OpCode
from .result import Err, Ok, Result
from .stream_client import ConnectionState, VoteStreamClient
from .topgg_api import TopGGAPI
from .vote_api import VoteServiceAPI

__all__ = [
    # Client
    "AriwaClient",
    "VoteStreamClient",
    "ConnectionState",
    "VoteServiceAPI",
    "TopGGAPI",
    # Config
    "Settings",
    "get_settings",
    "configure_logging",
    "init_logging",
    # Events and frames
    "EventEmitter",
    "Frame",
    "OpCode",
    # Results and errors
    "Ok",
    "Err",
    "Result",
    "AriwaError",
    "FrameError",
    "DisconnectTimeoutError",
    # Utilities
    "TTLCache",
    "cache_key",
    "ReconnectPolicy",
    "calculate_reconnect_delay",
    "CheckpointTracker",
    "load_timestamp",
    "save_timestamp",
]
