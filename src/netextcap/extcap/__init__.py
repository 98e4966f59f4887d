"""Capture-helper discovery, capability queries, and capture sessions."""

from .capabilities import (
    CapabilityQuery,
    CapabilityResult,
    CaptureCapabilities,
    ConfigurationResult,
    LinkType,
)
from .discovery import DiscoveryProber, InterfaceRecord, discover_interfaces, probe_helpers
from .parser import (
    ArgType,
    ArgumentValue,
    ConfigurationArgument,
    ExtcapSentenceParser,
    SentenceParser,
)
from .pipes import FifoPipeFactory, PipeChannel, PipeFactory, Win32PipeFactory, default_pipe_factory
from .protocol import INVALID_PID
from .registry import InterfaceRegistry, get_registry
from .runner import HelperRunner, ProcessLauncher
from .session import (
    CaptureSession,
    InterfaceOptions,
    InterfaceState,
    InterfaceType,
    SessionManager,
)

__all__ = [
    # registry
    "InterfaceRegistry",
    "get_registry",
    # discovery
    "DiscoveryProber",
    "InterfaceRecord",
    "discover_interfaces",
    "probe_helpers",
    # capabilities
    "CapabilityQuery",
    "CapabilityResult",
    "CaptureCapabilities",
    "ConfigurationResult",
    "LinkType",
    # parser
    "ArgType",
    "ArgumentValue",
    "ConfigurationArgument",
    "ExtcapSentenceParser",
    "SentenceParser",
    # channels
    "PipeChannel",
    "PipeFactory",
    "FifoPipeFactory",
    "Win32PipeFactory",
    "default_pipe_factory",
    # processes and sessions
    "HelperRunner",
    "ProcessLauncher",
    "INVALID_PID",
    "CaptureSession",
    "InterfaceOptions",
    "InterfaceState",
    "InterfaceType",
    "SessionManager",
]
