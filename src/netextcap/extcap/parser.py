"""Sentence-stream parsing for capture-helper output.

Helpers answer protocol queries with one sentence per line, a sentence
type followed by {key=value} parameters:

    interface {value=eth-ext}{display=External Ethernet}
    dlt {number=147}{name=USER0}{display=Demo link type}
    arg {number=0}{call=--delay}{display=Delay}{type=integer}{range=1,15}{default=5}
    value {arg=0}{value=1}{display=One}{default=true}

The core depends only on the SentenceParser protocol; ExtcapSentenceParser
is the default implementation of the grammar above.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)

_SENTENCE_RE = re.compile(r"^\s*([A-Za-z_]+)\s*(.*)$")
_PARAM_RE = re.compile(r"\{([^=}]+)=([^}]*)\}")


class ArgType(Enum):
    """Configuration argument types advertised by helpers."""

    INTEGER = "integer"
    UNSIGNED = "unsigned"
    LONG = "long"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    BOOLFLAG = "boolflag"
    MENU = "menu"
    RADIO = "radio"
    SELECTOR = "selector"
    STRING = "string"
    PASSWORD = "password"
    FILESELECT = "fileselect"
    MULTICHECK = "multicheck"
    UNKNOWN = "unknown"

    @classmethod
    def from_str(cls, value: str | None) -> "ArgType":
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass
class Sentence:
    """One tokenized line of helper output."""

    kind: str
    params: dict[str, str]


@dataclass(frozen=True)
class InterfaceSentence:
    call: str
    display: str


@dataclass(frozen=True)
class DltSentence:
    number: int
    name: str
    display: str


@dataclass
class ArgumentValue:
    """One selectable value of a menu/radio/selector/multicheck argument."""

    arg: int
    value: str
    display: str
    is_default: bool = False

    def to_dict(self) -> dict:
        return {
            "value": self.value,
            "display": self.display,
            "default": self.is_default,
        }


@dataclass
class ConfigurationArgument:
    """Argument definition a helper accepts on its run-capture command line."""

    number: int
    call: str
    display: str
    arg_type: ArgType = ArgType.UNKNOWN
    tooltip: str | None = None
    range_start: str | None = None
    range_end: str | None = None
    default: str | None = None
    values: list[ArgumentValue] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "call": self.call,
            "display": self.display,
            "type": self.arg_type.value,
            "tooltip": self.tooltip,
            "range": [self.range_start, self.range_end] if self.range_start is not None else None,
            "default": self.default,
            "values": [v.to_dict() for v in self.values],
        }


class SentenceParser(Protocol):
    """Turns helper stdout into structured records."""

    def parse_interfaces(self, output: str) -> list[InterfaceSentence]: ...

    def parse_dlts(self, output: str) -> list[DltSentence]: ...

    def parse_arguments(self, output: str) -> list[ConfigurationArgument]: ...


def tokenize_sentences(output: str) -> list[Sentence]:
    """Split helper output into sentences, skipping blank and malformed lines."""
    sentences: list[Sentence] = []

    for line in (output or "").splitlines():
        match = _SENTENCE_RE.match(line)
        if not match:
            continue

        params = {key.strip(): value for key, value in _PARAM_RE.findall(match.group(2))}
        sentences.append(Sentence(kind=match.group(1).lower(), params=params))

    return sentences


def _to_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


class ExtcapSentenceParser:
    """Default parser for the extcap sentence grammar."""

    def parse_interfaces(self, output: str) -> list[InterfaceSentence]:
        interfaces = []

        for sentence in tokenize_sentences(output):
            if sentence.kind != "interface":
                continue
            call = sentence.params.get("value")
            if not call:
                logger.debug("Dropping interface sentence without value: %s", sentence.params)
                continue
            interfaces.append(
                InterfaceSentence(call=call, display=sentence.params.get("display", call))
            )

        return interfaces

    def parse_dlts(self, output: str) -> list[DltSentence]:
        dlts = []

        for sentence in tokenize_sentences(output):
            if sentence.kind != "dlt":
                continue
            number = _to_int(sentence.params.get("number"))
            name = sentence.params.get("name")
            if number is None or not name:
                logger.debug("Dropping malformed dlt sentence: %s", sentence.params)
                continue
            dlts.append(
                DltSentence(number=number, name=name, display=sentence.params.get("display", name))
            )

        return dlts

    def parse_arguments(self, output: str) -> list[ConfigurationArgument]:
        arguments: list[ConfigurationArgument] = []
        by_number: dict[int, ConfigurationArgument] = {}
        pending_values: list[ArgumentValue] = []

        for sentence in tokenize_sentences(output):
            params = sentence.params

            if sentence.kind == "arg":
                number = _to_int(params.get("number"))
                call = params.get("call")
                if number is None or not call:
                    logger.debug("Dropping malformed arg sentence: %s", params)
                    continue

                range_start = range_end = None
                if "range" in params:
                    range_start, _, range_end = params["range"].partition(",")
                    range_start, range_end = range_start.strip(), range_end.strip() or None

                argument = ConfigurationArgument(
                    number=number,
                    call=call,
                    display=params.get("display", call),
                    arg_type=ArgType.from_str(params.get("type")),
                    tooltip=params.get("tooltip"),
                    range_start=range_start,
                    range_end=range_end,
                    default=params.get("default"),
                )
                arguments.append(argument)
                by_number.setdefault(number, argument)

            elif sentence.kind == "value":
                arg = _to_int(params.get("arg"))
                value = params.get("value")
                if arg is None or value is None:
                    logger.debug("Dropping malformed value sentence: %s", params)
                    continue
                pending_values.append(
                    ArgumentValue(
                        arg=arg,
                        value=value,
                        display=params.get("display", value),
                        is_default=params.get("default", "").lower() == "true",
                    )
                )

        # Values may precede their arg sentence
        for value in pending_values:
            owner = by_number.get(value.arg)
            if owner is None:
                logger.debug("Dropping value for unknown arg %d", value.arg)
                continue
            owner.values.append(value)

        return arguments
