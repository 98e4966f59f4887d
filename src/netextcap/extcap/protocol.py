"""Command-line protocol spoken to capture-helper programs."""

ARG_LIST_INTERFACES = "--extcap-interfaces"
ARG_LIST_DLTS = "--extcap-dlts"
ARG_CONFIG = "--extcap-config"
ARG_RUN_CAPTURE = "--capture"
ARG_INTERFACE = "--extcap-interface"
ARG_RUN_PIPE = "--fifo"

# Sentinel for "no helper process"
INVALID_PID = -1


def interfaces_command() -> list[str]:
    """Arguments for the list-interfaces verb."""
    return [ARG_LIST_INTERFACES]


def query_command(verb: str, interface: str) -> list[str]:
    """Arguments for a per-interface query verb (list-dlts, get-config)."""
    return [verb, ARG_INTERFACE, interface]


def capture_command(
    helper: str,
    interface: str,
    fifo: str,
    extra_args: dict[str, str | None] | None = None,
) -> list[str]:
    """Full argv for the run-capture verb.

    Extra arguments follow the mapping's own order; a None value emits
    the flag alone.
    """
    cmd = [helper, ARG_RUN_CAPTURE, ARG_INTERFACE, interface, ARG_RUN_PIPE, fifo]

    for key, value in (extra_args or {}).items():
        if not key:
            continue
        cmd.append(key)
        if value is not None:
            cmd.append(value)

    return cmd
