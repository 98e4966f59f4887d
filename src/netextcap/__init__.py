"""netextcap - delegate packet capture to external capture-helper programs."""

__version__ = "0.1.0"
__author__ = "Network Analytics Team"

from . import extcap

__all__ = [
    "__version__",
    "__author__",
    "extcap",
]
