"""Terminal dashboard for the plant relay."""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("dashboard.app")
    raise AttributeError(name)

# ``dashboard.app`` must keep resolving to the module, not the Typer
# instance, because tests patch attributes on that module path.

__all__ = []
