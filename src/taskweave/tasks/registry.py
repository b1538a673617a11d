"""Task registry and discovery of task modules from task directories."""

from __future__ import annotations

import importlib.util
import logging
import sys
from collections.abc import Callable, Iterable
from pathlib import Path

from taskweave.flow.errors import DiscoveryError, DuplicateTaskError, UnknownTaskError
from taskweave.tasks.base import Task

logger = logging.getLogger(__name__)

TaskFactory = Callable[[], Task]
_MODULE_PREFIX = "taskweave.tasks._discovered"


class TaskRegistry:
    """Explicit task name -> factory mapping.

    A name can be registered once; a second registration raises
    ``DuplicateTaskError`` so collisions surface at startup.
    """

    def __init__(self) -> None:
        self._factories: dict[str, TaskFactory] = {}
        self._origins: dict[str, str] = {}

    def register(self, name: str, factory: TaskFactory, *, origin: str = "<builtin>") -> None:
        key = name.strip()
        if not key:
            raise ValueError("Task name must be a non-empty string")
        if key in self._factories:
            raise DuplicateTaskError(
                f"Task {key!r} from {origin} is already registered by {self._origins[key]}",
            )
        self._factories[key] = factory
        self._origins[key] = origin

    def add(self, task_cls: type[Task], *, origin: str = "<builtin>") -> type[Task]:
        """Register a ``Task`` subclass under its ``name``; usable as a class decorator."""

        if not task_cls.name:
            raise ValueError(f"Task class {task_cls.__name__} has no name")
        self.register(task_cls.name, task_cls, origin=origin)
        return task_cls

    def merge(self, other: TaskRegistry) -> None:
        for name in other.names():
            self.register(name, other._factories[name], origin=other._origins[name])

    def create(self, name: str) -> Task:
        factory = self._factories.get(name)
        if factory is None:
            raise UnknownTaskError(name, self.names())
        task = factory()
        if not task.name:
            task.name = name
        return task

    def names(self) -> list[str]:
        return sorted(self._factories)

    def origin(self, name: str) -> str:
        return self._origins[name]

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def __len__(self) -> int:
        return len(self._factories)


def discover_tasks(directories: Iterable[Path], registry: TaskRegistry) -> list[Path]:
    """Load task modules from ``directories`` into ``registry``.

    Each ``*.py`` file not starting with ``_`` must define a module-level
    ``register(registry)`` function. Modules that fail to import or to
    register are logged and skipped; duplicate task names are fatal.
    Returns the modules that registered successfully.
    """

    loaded: list[Path] = []
    for directory in directories:
        if not directory.is_dir():
            logger.debug("Task directory does not exist: %s", directory)
            continue
        for py_file in sorted(directory.glob("*.py")):
            if py_file.name.startswith("_"):
                continue
            staging = TaskRegistry()
            try:
                _load_module(py_file, staging)
            except DiscoveryError as error:
                logger.warning("Skipping task module %s: %s", py_file, error)
                continue
            registry.merge(staging)
            logger.debug("Loaded task module %s: %s", py_file, ", ".join(staging.names()))
            loaded.append(py_file)
    return loaded


def _load_module(py_file: Path, staging: TaskRegistry) -> None:
    module_name = f"{_MODULE_PREFIX}.{py_file.parent.name}.{py_file.stem}"
    spec = importlib.util.spec_from_file_location(module_name, py_file)
    if spec is None or spec.loader is None:
        raise DiscoveryError(f"cannot build import spec for {py_file}")

    module = importlib.util.module_from_spec(spec)
    # dataclasses look the module up in sys.modules while the body executes
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as error:
        sys.modules.pop(module_name, None)
        raise DiscoveryError(f"import failed: {error}") from error

    register = getattr(module, "register", None)
    if not callable(register):
        sys.modules.pop(module_name, None)
        raise DiscoveryError("module defines no register(registry) function")
    origin = str(py_file)
    try:
        register(_OriginRegistry(staging, origin))
    except DuplicateTaskError:
        sys.modules.pop(module_name, None)
        raise
    except Exception as error:
        sys.modules.pop(module_name, None)
        raise DiscoveryError(f"register() failed: {error}") from error
    if not len(staging):
        logger.warning("Task module %s registered no tasks", py_file)


class _OriginRegistry:
    """Registry view handed to task modules; records the module as origin."""

    def __init__(self, registry: TaskRegistry, origin: str) -> None:
        self._registry = registry
        self._origin = origin

    def register(self, name: str, factory: TaskFactory) -> None:
        self._registry.register(name, factory, origin=self._origin)

    def add(self, task_cls: type[Task]) -> type[Task]:
        return self._registry.add(task_cls, origin=self._origin)
