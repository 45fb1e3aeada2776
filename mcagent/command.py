"""Plugin and probe commands given either as a shell string or an argument list."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

_SHELL = "/bin/sh"

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
}


def _quote(text: str) -> str:
    parts = []
    for ch in text:
        if ch in _ESCAPES:
            parts.append(_ESCAPES[ch])
        elif ch.isprintable():
            parts.append(ch)
        else:
            code = ord(ch)
            if code < 0x80:
                parts.append(f"\\x{code:02x}")
            elif code < 0x10000:
                parts.append(f"\\u{code:04x}")
            else:
                parts.append(f"\\U{code:08x}")
    return '"' + "".join(parts) + '"'


def _scalar(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ValueError("command must be a string or a list of strings")


@dataclass(frozen=True)
class Command:
    """A command as a shell string, an argument tuple, or nothing."""

    value: str | tuple[str, ...] | None = None

    @classmethod
    def from_yaml(cls, value: Any) -> "Command":
        """Build a command from a decoded YAML value."""
        if value is None:
            return cls()
        if isinstance(value, (list, tuple)):
            return cls(tuple(_scalar(item) for item in value))
        return cls(_scalar(value))

    def __str__(self) -> str:
        if isinstance(self.value, tuple):
            return " ".join(
                _quote(arg) if any(ch.isspace() for ch in arg) else arg
                for arg in self.value
            )
        return self.value or ""

    def to_args(self) -> list[str]:
        """Return the argument vector to execute."""
        if isinstance(self.value, str):
            return [_SHELL, "-c", self.value]
        if isinstance(self.value, tuple):
            return list(self.value)
        raise ValueError("command is empty")

    def is_empty(self) -> bool:
        """Whether the command has nothing to run."""
        return not self.value


def command_string(s: str) -> Command:
    """A command run through the shell."""
    return Command(s)


def command_args(args: Iterable[str]) -> Command:
    """A command given as an argument list."""
    return Command(tuple(args))