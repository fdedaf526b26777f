"""Keyed registry for pluggable implementations.

Output formats are registered with a decorator under a short key, which
the command line exposes as ``--format`` choices::

    renderer_registry = Registry("renderer")

    @renderer_registry.register("csv", "Comma separated values")
    class CsvReportRenderer(ReportRenderer):
        ...

    renderer = renderer_registry.create("csv")
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Tuple, Type, TypeVar

T = TypeVar("T")


class Registry:
    """Maps string keys to classes and builds instances on request."""

    def __init__(self, name: str = "registry") -> None:
        """
        Args:
            name: What is being registered, used in error messages.
        """
        self._name = name
        self._items: Dict[str, Type[Any]] = {}
        self._descriptions: Dict[str, str] = {}

    def register(self, key: str, description: str = "") -> Callable[[Type[T]], Type[T]]:
        """Class decorator registering the class under ``key``.

        Raises:
            ValueError: If ``key`` is empty or already taken.
        """
        if not key:
            raise ValueError(f"{self._name}: cannot register an empty key")

        def decorator(cls: Type[T]) -> Type[T]:
            if key in self._items:
                raise ValueError(
                    f"{self._name}: key '{key}' already registered "
                    f"to {self._items[key].__name__}"
                )
            self._items[key] = cls
            self._descriptions[key] = description or (cls.__doc__ or "").strip().split("\n")[0]
            return cls
        return decorator

    def get(self, key: str) -> Type[Any]:
        """Return the class registered under ``key``.

        Raises:
            KeyError: If ``key`` is unknown.  The message lists the
                available keys.
        """
        try:
            return self._items[key]
        except KeyError:
            available = ", ".join(sorted(self._items))
            raise KeyError(
                f"{self._name}: unknown key '{key}'. Available: {available}"
            ) from None

    def create(self, key: str, **kwargs: Any) -> Any:
        """Instantiate the class registered under ``key`` with ``kwargs``."""
        return self.get(key)(**kwargs)

    def keys(self) -> List[str]:
        return list(self._items)

    def describe(self) -> List[Tuple[str, str]]:
        """Return ``(key, description)`` pairs sorted by key."""
        return sorted(self._descriptions.items())

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)
