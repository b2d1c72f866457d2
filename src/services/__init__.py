"""Services package.

Keep this module lightweight: importing `services` should not trigger heavy
imports. The wallet session is exported lazily.
"""

from __future__ import annotations

import importlib

from .event_bus import EventBus, Events, event_bus
from .logger import get_logger, setup_logging

__all__ = ["EventBus", "Events", "event_bus", "get_logger", "setup_logging"]


_LAZY_EXPORTS = {
    "SessionContext": ("services.session", "SessionContext"),
    "WalletSession": ("services.session", "WalletSession"),
    "PerformanceLogger": ("services.logger", "PerformanceLogger"),
}


def __getattr__(name: str):
    if name in _LAZY_EXPORTS:
        module_name, attr = _LAZY_EXPORTS[name]
        module = importlib.import_module(module_name)
        value = getattr(module, attr)
        globals()[name] = value
        if name not in __all__:
            __all__.append(name)
        return value
    raise AttributeError(f"module 'services' has no attribute {name!r}")
