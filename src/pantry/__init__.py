from pantry.catalog import ImageShelf, NO_RECIPE, RecipeBook
from pantry.client import RecipeClient, Reply
from pantry.config import (
    ImagesConfig,
    LimitsConfig,
    LivenessConfig,
    LoggingConfig,
    PantryConfig,
    ServerConfig,
    discover_config,
    load_config,
)
from pantry.dispatcher import RequestDispatcher
from pantry.errors import BindError, EndpointClosed, PantryError, TransportError
from pantry.events import (
    AdmissionDenied,
    ImageSent,
    ImageSkipped,
    PeerEvicted,
    QuotaDenied,
    ReplySent,
    RequestReceived,
    SendFailed,
    ServerEvent,
    ServerStarted,
    ServerStopped,
    SweepFailed,
)
from pantry.identity import PeerIdentity
from pantry.logger import EventLog, EventRecorder, FileSink
from pantry.quota import Allowed, Denied, QuotaTracker
from pantry.registry import Accepted, PeerRegistry, Rejected
from pantry.server import RecipeServer
from pantry.sessions import Admitted, OverCapacity, OverQuota, SessionTable
from pantry.sweeper import LivenessSweeper
from pantry.transport import Datagram, DatagramEndpoint

__all__ = [
    # Server
    "RecipeServer",
    "RequestDispatcher",
    "LivenessSweeper",
    # Session state
    "PeerIdentity",
    "PeerRegistry",
    "Accepted",
    "Rejected",
    "QuotaTracker",
    "Allowed",
    "Denied",
    "SessionTable",
    "Admitted",
    "OverCapacity",
    "OverQuota",
    # Transport
    "Datagram",
    "DatagramEndpoint",
    # Client
    "RecipeClient",
    "Reply",
    # Catalog
    "RecipeBook",
    "ImageShelf",
    "NO_RECIPE",
    # Config
    "PantryConfig",
    "ServerConfig",
    "LimitsConfig",
    "LivenessConfig",
    "ImagesConfig",
    "LoggingConfig",
    "discover_config",
    "load_config",
    # Events
    "EventLog",
    "EventRecorder",
    "FileSink",
    "ServerEvent",
    "ServerStarted",
    "ServerStopped",
    "RequestReceived",
    "AdmissionDenied",
    "QuotaDenied",
    "PeerEvicted",
    "ReplySent",
    "ImageSent",
    "ImageSkipped",
    "SendFailed",
    "SweepFailed",
    # Errors
    "PantryError",
    "BindError",
    "TransportError",
    "EndpointClosed",
]
