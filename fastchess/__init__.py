"""Driving UCI chess engines: processes, options, time controls, CPU affinity and opening books."""

__version__ = "1.4.0"
__all__ = [
    "affinity",
    "book",
    "compliance",
    "cpuinfo",
    "options",
    "process",
    "timecontrol",
    "uci_engine",
]