"""
Command registry: name -> zero-argument async unit of work.

The registry is handed to the JobManager explicitly so tests and
deployments can register their own commands without module-level state.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Iterator

from ..errors import UnknownCommandError

UnitOfWork = Callable[[], Awaitable[Any]]


class CommandRegistry:
    """Mapping of command names to units of work."""

    def __init__(self, commands: dict[str, UnitOfWork] | None = None) -> None:
        self._commands: dict[str, UnitOfWork] = dict(commands or {})

    def register(self, name: str, fn: UnitOfWork) -> UnitOfWork:
        """Register ``fn`` under ``name``, replacing any previous entry."""
        self._commands[name] = fn
        return fn

    def command(self, name: str) -> Callable[[UnitOfWork], UnitOfWork]:
        """Decorator form of ``register``."""

        def decorator(fn: UnitOfWork) -> UnitOfWork:
            return self.register(name, fn)

        return decorator

    def get(self, name: str) -> UnitOfWork:
        """
        Look up a unit of work.

        Raises:
            UnknownCommandError: If nothing is registered under ``name``
        """
        try:
            return self._commands[name]
        except KeyError:
            raise UnknownCommandError(
                f"Unknown command: {name}. Available: {', '.join(self.names()) or 'none'}"
            ) from None

    def names(self) -> list[str]:
        return sorted(self._commands)

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._commands)
