"""Feishu/Lark gateway: event ingestion, gating and reply delivery."""

from .app import AccountRuntime, Application, IApplication
from .config import AccountConfig, load_account_configs, resolve_accounts
from .connection import ConnectionSupervisor, WebSocketConnector
from .dedupe import Deduplicator
from .errors import (
    ConfigurationError,
    ConnectionClosedError,
    GatewayError,
    HandshakeError,
    PlatformAPIError,
)
from .event_bus import EventBus, IEventBus
from .gate import AccessGate, GateDecision, GateReason
from .history import HistoryBuffer
from .normalizer import EventNormalizer
from .output_router import OutputRouter
from .pipeline import GatewayPipeline
from .platform_api import PlatformClient
from .render import RenderPolicy
from .reply_context import ReplyContextResolver
from .responder import EchoResponder, LLMProvider, LLMResponder
from .tracker import ITracker, Tracker

__all__ = [
    # Application
    "AccountRuntime",
    "Application",
    "IApplication",
    # Configuration
    "AccountConfig",
    "load_account_configs",
    "resolve_accounts",
    # Errors
    "ConfigurationError",
    "ConnectionClosedError",
    "GatewayError",
    "HandshakeError",
    "PlatformAPIError",
    # Pipeline components
    "AccessGate",
    "ConnectionSupervisor",
    "Deduplicator",
    "EventNormalizer",
    "GateDecision",
    "GateReason",
    "GatewayPipeline",
    "HistoryBuffer",
    "OutputRouter",
    "RenderPolicy",
    "ReplyContextResolver",
    "WebSocketConnector",
    # Collaborators
    "EchoResponder",
    "LLMProvider",
    "LLMResponder",
    "PlatformClient",
    # Infrastructure
    "EventBus",
    "IEventBus",
    "ITracker",
    "Tracker",
]
