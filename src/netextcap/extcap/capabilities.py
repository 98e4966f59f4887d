"""Link-type and configuration queries routed to the owning helper."""

import logging
from dataclasses import dataclass, field

from ..core.exceptions import CapabilityQueryError, ProbeError
from .parser import ConfigurationArgument, ExtcapSentenceParser, SentenceParser
from .protocol import ARG_CONFIG, ARG_LIST_DLTS, query_command
from .registry import InterfaceRegistry, get_registry
from .runner import HelperRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkType:
    """Link-layer type a helper can deliver."""

    dlt: int
    name: str
    description: str

    def to_dict(self) -> dict:
        return {
            "dlt": self.dlt,
            "name": self.name,
            "description": self.description,
        }


@dataclass
class CaptureCapabilities:
    """Capture capabilities of a helper interface."""

    data_link_types: list[LinkType] = field(default_factory=list)
    can_set_rfmon: bool = False

    def to_dict(self) -> dict:
        return {
            "data_link_types": [lt.to_dict() for lt in self.data_link_types],
            "can_set_rfmon": self.can_set_rfmon,
        }


@dataclass
class CapabilityResult:
    """Outcome of a link-type query; exactly one of the fields is set."""

    capabilities: CaptureCapabilities | None = None
    error: CapabilityQueryError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ConfigurationResult:
    """Outcome of a configuration query."""

    arguments: list[ConfigurationArgument] = field(default_factory=list)
    error: CapabilityQueryError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CapabilityQuery:
    """Asks the helper that owns an interface about that interface.

    Only names present in the registry are queried, and only their recorded
    owner is ever invoked.
    """

    def __init__(
        self,
        registry: InterfaceRegistry | None = None,
        parser: SentenceParser | None = None,
        runner: HelperRunner | None = None,
    ) -> None:
        self.registry = registry if registry is not None else get_registry()
        self.parser = parser or ExtcapSentenceParser()
        self.runner = runner or HelperRunner()

    def _query(self, name: str, verb: str) -> str:
        """Run verb against the owner of name and return its output."""
        helper = self.registry.lookup(name)
        if helper is None:
            raise CapabilityQueryError(name, "interface is not provided by any helper")

        try:
            return self.runner.run(helper, query_command(verb, name))
        except ProbeError as e:
            raise CapabilityQueryError(name, str(e)) from e

    def list_link_types(self, name: str) -> CapabilityResult:
        """
        Fetch the link-layer types an interface supports.

        Args:
            name: Registered interface name

        Returns:
            CapabilityResult with capabilities or a descriptive error
        """
        try:
            output = self._query(name, ARG_LIST_DLTS)
            dlts = self.parser.parse_dlts(output)
        except CapabilityQueryError as e:
            logger.debug("%s", e)
            return CapabilityResult(error=e)
        except Exception as e:
            error = CapabilityQueryError(name, f"unparsable output ({e})")
            logger.debug("%s", error)
            return CapabilityResult(error=error)

        caps = CaptureCapabilities()
        for dlt in dlts:
            logger.debug('  DLT %d name="%s" display="%s"', dlt.number, dlt.name, dlt.display)
            caps.data_link_types.append(
                LinkType(dlt=dlt.number, name=dlt.name, description=dlt.display)
            )

        if not caps.data_link_types:
            error = CapabilityQueryError(name, "Extcap returned no DLTs")
            logger.debug("%s", error)
            return CapabilityResult(error=error)

        return CapabilityResult(capabilities=caps)

    def get_configuration(self, name: str) -> ConfigurationResult:
        """
        Fetch the configuration argument definitions of an interface.

        Args:
            name: Registered interface name

        Returns:
            ConfigurationResult with argument definitions or a descriptive error
        """
        try:
            output = self._query(name, ARG_CONFIG)
            arguments = self.parser.parse_arguments(output)
        except CapabilityQueryError as e:
            logger.debug("%s", e)
            return ConfigurationResult(error=e)
        except Exception as e:
            error = CapabilityQueryError(name, f"unparsable output ({e})")
            logger.debug("%s", error)
            return ConfigurationResult(error=error)

        if not arguments:
            error = CapabilityQueryError(name, "Extcap returned no configuration arguments")
            logger.debug("%s", error)
            return ConfigurationResult(error=error)

        return ConfigurationResult(arguments=arguments)
