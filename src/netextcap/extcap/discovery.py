"""Helper program discovery.

Every executable directly under the helper directory is asked to list its
interfaces. Interfaces are registered first-come-first-served; a helper
advertising a name another helper already owns is logged and ignored for
that name.
"""

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from ..core.config import get_config
from ..core.exceptions import ProbeError
from ..core.utils import list_executables
from .parser import ExtcapSentenceParser, SentenceParser
from .protocol import interfaces_command
from .registry import InterfaceRegistry, get_registry
from .runner import HelperRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InterfaceRecord:
    """Interface advertised by a helper program."""

    name: str
    display: str
    extcap: str

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "display": self.display,
            "extcap": self.extcap,
        }


@dataclass(frozen=True)
class ProbeOutcome:
    """Stdout of one helper that answered a probe with exit status 0."""

    helper: str
    output: str


def probe_helpers(
    directory: Path,
    args: list[str],
    runner: HelperRunner | None = None,
) -> Iterator[ProbeOutcome]:
    """
    Lazily run every helper in a directory with the same protocol arguments.

    Helpers that fail to start or exit nonzero are logged and skipped.
    Stop consuming the iterator to stop probing.

    Args:
        directory: Helper directory to scan
        args: Protocol arguments passed to each helper
        runner: Synchronous helper runner

    Yields:
        ProbeOutcome for each helper that answered successfully
    """
    runner = runner or HelperRunner()

    for helper in list_executables(directory):
        try:
            output = runner.run(str(helper), args)
        except ProbeError as e:
            logger.info("%s", e)
            continue
        yield ProbeOutcome(helper=str(helper), output=output)


class DiscoveryProber:
    """Enumerates helper programs and rebuilds the interface registry."""

    def __init__(
        self,
        registry: InterfaceRegistry | None = None,
        parser: SentenceParser | None = None,
        runner: HelperRunner | None = None,
    ) -> None:
        self.registry = registry if registry is not None else get_registry()
        self.parser = parser or ExtcapSentenceParser()
        self.runner = runner or HelperRunner()

    def enumerate(self, directory: Path | str | None = None) -> list[InterfaceRecord]:
        """
        Discover all helper interfaces in a directory.

        Args:
            directory: Helper directory (defaults to the configured one)

        Returns:
            Interface records in directory order, then helper emission order
        """
        if directory is None:
            directory = get_config().extcap.helper_dir
        directory = Path(os.path.abspath(directory))
        logger.debug("Extcap path %s", directory)

        records: list[InterfaceRecord] = []

        with self.registry.lock:
            self.registry.reset()

            for outcome in probe_helpers(directory, interfaces_command(), self.runner):
                records.extend(self._register(outcome))

        return records

    def _register(self, outcome: ProbeOutcome) -> list[InterfaceRecord]:
        """Fold one helper's answer into the registry."""
        try:
            interfaces = self.parser.parse_interfaces(outcome.output)
        except Exception as e:
            logger.info("%s", ProbeError(outcome.helper, f"unparsable output ({e})"))
            return []

        if not interfaces:
            logger.debug("Helper %s advertised no interfaces", outcome.helper)
            return []

        records = []
        for interface in interfaces:
            owner = self.registry.lookup(interface.call)
            if owner is not None and owner != outcome.helper:
                logger.warning(
                    'Extcap interface "%s" is already provided by "%s"',
                    interface.call,
                    owner,
                )
                continue
            if owner is not None:
                logger.debug("Helper %s advertised %s twice", outcome.helper, interface.call)
                continue

            logger.debug('  Interface [%s] "%s"', interface.call, interface.display)
            self.registry.register(interface.call, outcome.helper)
            records.append(
                InterfaceRecord(
                    name=interface.call,
                    display=interface.display,
                    extcap=outcome.helper,
                )
            )

        return records


def discover_interfaces(
    directory: Path | str | None = None,
    registry: InterfaceRegistry | None = None,
) -> list[InterfaceRecord]:
    """Convenience wrapper around DiscoveryProber.enumerate."""
    return DiscoveryProber(registry=registry).enumerate(directory)
