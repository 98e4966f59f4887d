"""Custom exceptions for the extcap helper core."""


class NetExtcapError(Exception):
    """Base exception for all netextcap errors."""

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ProbeError(NetExtcapError):
    """A helper could not be started, exited nonzero, or produced no usable output."""

    def __init__(self, helper: str, details: str | None = None):
        message = f"Probe of {helper} failed"
        super().__init__(message, details)
        self.helper = helper


class CapabilityQueryError(NetExtcapError):
    """A capability query could not be answered for an interface."""

    def __init__(self, interface: str, details: str | None = None):
        message = f"Capability query for {interface} failed"
        super().__init__(message, details)
        self.interface = interface


class ChannelError(NetExtcapError):
    """A capture channel (FIFO or named pipe) could not be created or released."""

    pass


class ValidationError(NetExtcapError):
    """Input validation error."""

    pass


class DependencyError(NetExtcapError):
    """Missing platform dependency."""

    def __init__(self, dependency: str, install_hint: str | None = None):
        message = f"Missing dependency: {dependency}"
        super().__init__(message, install_hint)
        self.dependency = dependency
        self.install_hint = install_hint
