"""Named index transform handlers.

Index definitions persist only a transform name. Applications register
the callable behind each name before opening a store, and the index
registry resolves names here when it loads.
"""

from __future__ import annotations

import importlib.util
from pathlib import Path
from typing import Any, Callable

from core.constants import TRANSFORM_MODULE_HOOK_NAME
from core.errors import JsonDbIndexIntegrityError, JsonDbValidationError
from core.types import TransformCallable


class TransformRegistry:
    """Mapping of transform names to handler callables."""

    def __init__(self) -> None:
        self._handlers: dict[str, TransformCallable] = {}

    def register(
        self,
        name: str,
        handler: TransformCallable | None = None,
    ) -> Any:
        """Register a handler, directly or as a decorator.

        Args:
            name: Stable transform identifier persisted in the index registry.
            handler: Callable taking (key, document); omit to use as decorator.

        Returns:
            The handler, or a decorator when handler is omitted.

        Raises:
            JsonDbValidationError: If name or handler has the wrong type.
        """
        if not isinstance(name, str) or not name:
            raise JsonDbValidationError("Transform names must be non-empty strings.")
        if handler is None:
            def _decorator(fn: TransformCallable) -> TransformCallable:
                self.register(name, fn)
                return fn

            return _decorator
        if not callable(handler):
            raise JsonDbValidationError(f"Transform '{name}' must be callable.")
        self._handlers[name] = handler
        return handler

    def resolve(self, name: str) -> TransformCallable:
        """Return the handler registered under a name.

        Raises:
            JsonDbIndexIntegrityError: If no handler is registered.
        """
        handler = self._handlers.get(name)
        if handler is None:
            raise JsonDbIndexIntegrityError(
                f"No transform registered under '{name}'. "
                "Register it with TransformRegistry.register before opening the store."
            )
        return handler

    def name_of(self, handler: Callable[..., Any]) -> str | None:
        """Return the name a handler was registered under, if any."""
        for name, registered in self._handlers.items():
            if registered is handler:
                return name
        return None

    def names(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers


def load_transform_module(module_path: str, transforms: TransformRegistry) -> None:
    """Load a Python file and let it register its transforms.

    The file must define register_transforms(registry).

    Args:
        module_path: Path to the Python file.
        transforms: Registry passed to the module hook.

    Raises:
        JsonDbValidationError: If the file is missing or has no hook.
    """
    resolved_path = Path(module_path).expanduser().resolve()
    if not resolved_path.exists():
        raise JsonDbValidationError(
            f"Transform module not found at {resolved_path}. Provide a valid --transforms path."
        )
    module = _load_python_module(resolved_path)
    hook = getattr(module, TRANSFORM_MODULE_HOOK_NAME, None)
    if hook is None or not callable(hook):
        raise JsonDbValidationError(
            f"Invalid transform module at {resolved_path}: "
            f"missing callable {TRANSFORM_MODULE_HOOK_NAME}(registry)."
        )
    hook(transforms)


def _load_python_module(module_path: Path) -> Any:
    """Load Python module from file path."""
    spec = importlib.util.spec_from_file_location(
        f"jsondb_user_transforms_{module_path.stem}", str(module_path)
    )
    if spec is None or spec.loader is None:
        raise JsonDbValidationError(
            f"Failed to load transform module at {module_path}. Verify the file path and syntax."
        )
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module
