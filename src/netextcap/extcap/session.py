"""Capture session lifecycle for helper-backed interfaces.

Each helper-backed interface in a session gets its own channel and helper
process:

    CONFIGURED -> CHANNEL_CREATED -> PROCESS_SPAWNED -> RUNNING -> STOPPED

Interface options are immutable; every step stores a new revision in the
session's index -> revision mapping.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from ..core.exceptions import NetExtcapError
from .pipes import PipeFactory, default_pipe_factory
from .protocol import INVALID_PID, capture_command
from .registry import InterfaceRegistry, get_registry
from .runner import ProcessLauncher

logger = logging.getLogger(__name__)


class InterfaceType(Enum):
    """Kind of capture source."""

    NATIVE = "native"
    EXTCAP = "extcap"


class InterfaceState(Enum):
    """Lifecycle of a helper-backed interface, in order."""

    CONFIGURED = "configured"
    CHANNEL_CREATED = "channel_created"
    PROCESS_SPAWNED = "process_spawned"
    RUNNING = "running"
    STOPPED = "stopped"

    @property
    def order(self) -> int:
        return list(InterfaceState).index(self)


@dataclass(frozen=True)
class InterfaceOptions:
    """One revision of an interface's capture options."""

    name: str
    if_type: InterfaceType = InterfaceType.NATIVE
    extcap: str | None = None
    extcap_fifo: str | None = None
    pipe_handle: Any = None
    extcap_pid: int = INVALID_PID
    extcap_args: dict[str, str | None] = field(default_factory=dict)
    state: InterfaceState = InterfaceState.CONFIGURED

    def __post_init__(self) -> None:
        if self.if_type is InterfaceType.EXTCAP and not self.extcap:
            raise ValueError(f"Helper-backed interface {self.name} needs a helper path")

    @property
    def is_extcap(self) -> bool:
        return self.if_type is InterfaceType.EXTCAP

    @property
    def has_process(self) -> bool:
        return self.extcap_pid != INVALID_PID

    def advance(self, state: InterfaceState, **changes: Any) -> "InterfaceOptions":
        """Return the next revision; states never move backwards."""
        if state.order < self.state.order:
            raise ValueError(f"{self.name}: cannot go from {self.state.value} to {state.value}")
        return replace(self, state=state, **changes)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": self.if_type.value,
            "extcap": self.extcap,
            "fifo": self.extcap_fifo,
            "pid": self.extcap_pid,
            "args": dict(self.extcap_args),
            "state": self.state.value,
        }


class CaptureSession:
    """The interfaces configured for one capture run."""

    def __init__(self) -> None:
        self._interfaces: dict[int, InterfaceOptions] = {}
        self._next_index = 0

    def add(self, options: InterfaceOptions) -> int:
        index = self._next_index
        self._interfaces[index] = options
        self._next_index += 1
        return index

    def add_native(self, name: str) -> int:
        return self.add(InterfaceOptions(name=name))

    def add_extcap(
        self,
        name: str,
        extcap: str,
        args: dict[str, str | None] | None = None,
    ) -> int:
        return self.add(
            InterfaceOptions(
                name=name,
                if_type=InterfaceType.EXTCAP,
                extcap=extcap,
                extcap_args=dict(args or {}),
            )
        )

    def get(self, index: int) -> InterfaceOptions:
        return self._interfaces[index]

    def replace(self, index: int, options: InterfaceOptions) -> None:
        """Store a new revision for an existing entry."""
        if index not in self._interfaces:
            raise KeyError(index)
        self._interfaces[index] = options

    def items(self) -> list[tuple[int, InterfaceOptions]]:
        return sorted(self._interfaces.items())

    def extcap_items(self) -> list[tuple[int, InterfaceOptions]]:
        """Helper-backed entries in configured order."""
        return [(i, opts) for i, opts in self.items() if opts.is_extcap]

    def __len__(self) -> int:
        return len(self._interfaces)

    def __iter__(self) -> Iterator[InterfaceOptions]:
        return iter([opts for _, opts in self.items()])


class SessionManager:
    """Starts and stops the helper processes of capture sessions."""

    def __init__(
        self,
        registry: InterfaceRegistry | None = None,
        pipe_factory: PipeFactory | None = None,
        launcher: ProcessLauncher | None = None,
    ) -> None:
        self.registry = registry if registry is not None else get_registry()
        self._pipe_factory = pipe_factory
        self.launcher = launcher or ProcessLauncher()

    @property
    def pipe_factory(self) -> PipeFactory:
        if self._pipe_factory is None:
            self._pipe_factory = default_pipe_factory()
        return self._pipe_factory

    def add_interface(
        self,
        session: CaptureSession,
        name: str,
        args: dict[str, str | None] | None = None,
    ) -> int | None:
        """
        Configure a helper-backed interface using its registered owner.

        Args:
            session: Session to extend
            name: Interface name from discovery
            args: Extra helper arguments, flag -> value (None for bare flags)

        Returns:
            Session index of the new entry, or None if no helper provides name
        """
        helper = self.registry.lookup(name)
        if helper is None:
            logger.warning("Extcap interface %s is not provided by any helper", name)
            return None
        return session.add_extcap(name, helper, args)

    def init_interfaces(self, session: CaptureSession) -> bool:
        """
        Create a channel and spawn a helper for every configured helper-backed entry.

        A channel failure aborts the call. Channels and helpers started for
        earlier entries in the same call are left in place for cleanup().

        Args:
            session: Session to start

        Returns:
            False if any channel could not be created
        """
        for index, options in session.extcap_items():
            if options.state is not InterfaceState.CONFIGURED:
                logger.debug("Extcap [%s] - already %s", options.name, options.state.value)
                continue

            try:
                channel = self.pipe_factory.create_channel()
            except NetExtcapError as e:
                logger.error("Extcap [%s] - %s", options.name, e)
                return False

            options = options.advance(
                InterfaceState.CHANNEL_CREATED,
                extcap_fifo=channel.path,
                pipe_handle=channel.handle,
            )
            session.replace(index, options)

            argv = capture_command(options.extcap, options.name, channel.path, options.extcap_args)
            pid = self.launcher.spawn(argv)
            if pid == INVALID_PID:
                logger.warning("Extcap [%s] - helper %s did not start", options.name, options.extcap)

            session.replace(index, options.advance(InterfaceState.PROCESS_SPAWNED, extcap_pid=pid))

        for index, options in session.extcap_items():
            if options.state is InterfaceState.PROCESS_SPAWNED and options.has_process:
                session.replace(index, options.advance(InterfaceState.RUNNING))

        return True

    def cleanup(self, session: CaptureSession) -> None:
        """
        Release channels and process handles of all helper-backed entries.

        Helpers are not signaled; they are expected to exit once their channel
        disappears. Safe to call repeatedly.
        """
        for index, options in session.extcap_items():
            logger.debug(
                "Extcap [%s] - Cleaning up fifo: %s; PID: %d",
                options.name,
                options.extcap_fifo,
                options.extcap_pid,
            )
            changes: dict[str, Any] = {}

            if options.extcap_fifo is not None or options.pipe_handle is not None:
                try:
                    self.pipe_factory.release(options.extcap_fifo, options.pipe_handle)
                except NetExtcapError as e:
                    logger.warning("Extcap [%s] - %s", options.name, e)
                else:
                    changes.update(extcap_fifo=None, pipe_handle=None)

            if options.has_process:
                logger.debug(
                    "Extcap [%s] - Closing spawned PID: %d", options.name, options.extcap_pid
                )
                self.launcher.release(options.extcap_pid)
                changes["extcap_pid"] = INVALID_PID

            session.replace(index, options.advance(InterfaceState.STOPPED, **changes))

    def running(self, session: CaptureSession) -> list[InterfaceOptions]:
        """Helper-backed entries whose helper process is still alive."""
        return [
            options
            for _, options in session.extcap_items()
            if options.has_process and self.launcher.is_running(options.extcap_pid)
        ]
