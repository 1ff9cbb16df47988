"""
Plugin loader for discovery and registration of job runner classes.
"""

import importlib
import logging
import pkgutil
from typing import Callable, Dict, Type

import plugins

from .interfaces import JobRunner
from .models import JobKind

logger = logging.getLogger(__name__)

# Global registry of job kinds to runner classes
_REGISTRY: Dict[JobKind, Type[JobRunner]] = {}
_DISCOVERED = False


def register(kind: JobKind) -> Callable[[Type[JobRunner]], Type[JobRunner]]:
    """Class decorator binding a runner class to a job kind."""

    def decorator(cls: Type[JobRunner]) -> Type[JobRunner]:
        if not issubclass(cls, JobRunner):
            raise TypeError(f"{cls.__name__} is not a JobRunner")
        existing = _REGISTRY.get(kind)
        if existing is not None and existing is not cls:
            raise ValueError(
                f"Job kind '{kind.value}' already registered to {existing.__name__}"
            )
        _REGISTRY[kind] = cls
        logger.debug(f"Registered runner: {kind.value} -> {cls.__name__}")
        return cls

    return decorator


def refresh_registry() -> None:
    """Import every plugin package so their runners register themselves."""
    global _DISCOVERED

    plugin_count = 0
    for module_info in pkgutil.iter_modules(plugins.__path__, prefix="plugins."):
        try:
            importlib.import_module(module_info.name)
            plugin_count += 1
        except Exception as e:
            logger.error(f"Failed to load plugin {module_info.name}: {e}")
            raise

    _DISCOVERED = True
    logger.info(f"Plugin discovery complete: {plugin_count} plugins, {len(_REGISTRY)} runners")


def get(kind: JobKind) -> Type[JobRunner]:
    """Get the runner class for a job kind.

    Raises:
        KeyError: If no plugin registered a runner for the kind
    """
    if not _DISCOVERED:
        refresh_registry()

    if kind not in _REGISTRY:
        available = [k.value for k in _REGISTRY]
        raise KeyError(f"No runner for job kind '{kind.value}'. Available: {available}")

    return _REGISTRY[kind]


def list_available() -> Dict[JobKind, Type[JobRunner]]:
    """Get a copy of all registered runners."""
    if not _DISCOVERED:
        refresh_registry()
    return _REGISTRY.copy()
