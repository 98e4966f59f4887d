"""Capture channel creation.

A channel is the named object a capture helper writes frames into. POSIX
systems use a FIFO in the temp directory; Windows uses a duplex named pipe
whose handle is kept for flush/disconnect at teardown. Callers only see a
PipeChannel: the path handed to the helper plus an optional handle.
"""

import logging
import os
import secrets
import tempfile
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from ..core.config import ExtcapConfig, get_config
from ..core.exceptions import ChannelError, DependencyError
from ..core.utils import is_windows

logger = logging.getLogger(__name__)

PIPE_NAMESPACE = "\\\\.\\pipe\\"


@dataclass(frozen=True)
class PipeChannel:
    """A created capture channel."""

    path: str
    handle: Any = None


class PipeFactory(ABC):
    """Creates and releases uniquely named capture channels."""

    def __init__(self, config: ExtcapConfig | None = None) -> None:
        self.config = config or get_config().extcap

    def unique_name(self) -> str:
        """Prefix, local timestamp and random suffix."""
        timestamp = time.strftime("%Y%m%d%H%M%S")
        return f"{self.config.pipe_prefix}_{timestamp}_{secrets.token_hex(4)}"

    @abstractmethod
    def create_channel(self) -> PipeChannel:
        """
        Create a new channel.

        Raises:
            ChannelError: if the channel cannot be created
        """

    @abstractmethod
    def release(self, path: str | None, handle: Any = None) -> None:
        """
        Tear down a channel. Releasing an absent channel is not an error.

        Raises:
            ChannelError: if an existing channel cannot be removed
        """


class FifoPipeFactory(PipeFactory):
    """FIFO special files with owner-only permissions."""

    def create_channel(self) -> PipeChannel:
        pipe_dir = str(self.config.pipe_dir)

        # mkstemp reserves a name nobody else holds; the FIFO replaces it
        try:
            fd, path = tempfile.mkstemp(prefix=f"{self.unique_name()}_", dir=pipe_dir)
            os.close(fd)
        except OSError as e:
            raise ChannelError(f"Cannot reserve fifo name in {pipe_dir}", str(e)) from e

        logger.debug("Extcap - Creating fifo: %s", path)

        try:
            if os.path.lexists(path):
                os.unlink(path)
            os.mkfifo(path, 0o600)
        except (OSError, AttributeError) as e:
            raise ChannelError(f"Cannot create fifo {path}", str(e)) from e

        return PipeChannel(path=path)

    def release(self, path: str | None, handle: Any = None) -> None:
        if not path:
            return

        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise ChannelError(f"Cannot remove fifo {path}", str(e)) from e


class Win32PipeFactory(PipeFactory):
    """Duplex, message-mode named pipes with an inheritable handle."""

    def __init__(self, config: ExtcapConfig | None = None) -> None:
        super().__init__(config)
        try:
            import pywintypes
            import win32file
            import win32pipe
        except ImportError as e:
            raise DependencyError("pywin32", "Install with: pip install pywin32") from e

        self._pywintypes = pywintypes
        self._win32file = win32file
        self._win32pipe = win32pipe

    def create_channel(self) -> PipeChannel:
        win32pipe = self._win32pipe
        path = PIPE_NAMESPACE + self.unique_name()

        security = self._pywintypes.SECURITY_ATTRIBUTES()
        security.bInheritHandle = True

        try:
            handle = win32pipe.CreateNamedPipe(
                path,
                win32pipe.PIPE_ACCESS_DUPLEX,
                win32pipe.PIPE_TYPE_MESSAGE | win32pipe.PIPE_READMODE_MESSAGE | win32pipe.PIPE_WAIT,
                self.config.pipe_max_instances,
                self.config.pipe_buffer_size,
                self.config.pipe_buffer_size,
                self.config.pipe_timeout_ms,
                security,
            )
        except self._pywintypes.error as e:
            raise ChannelError(f"Cannot create pipe {path}", str(e)) from e

        logger.debug("Extcap - Created pipe: %s", path)
        return PipeChannel(path=path, handle=handle)

    def release(self, path: str | None, handle: Any = None) -> None:
        if handle is None:
            return

        logger.debug("Extcap - Closing pipe %s", path)
        errors = []
        for step in (
            self._win32file.FlushFileBuffers,
            self._win32pipe.DisconnectNamedPipe,
            self._win32file.CloseHandle,
        ):
            try:
                step(handle)
            except self._pywintypes.error as e:
                # Flush/disconnect fail when no client ever connected
                errors.append(str(e))

        if errors:
            logger.debug("Pipe %s teardown reported: %s", path, "; ".join(errors))


def default_pipe_factory(config: ExtcapConfig | None = None) -> PipeFactory:
    """Pick the channel implementation for this platform."""
    if is_windows():
        return Win32PipeFactory(config)
    return FifoPipeFactory(config)
