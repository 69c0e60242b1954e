"""Platform layer: subprocess and filesystem access."""

from .files import atomic_write_bytes, atomic_write_text
from .process import CommandRunner, ProcessError, SubprocessRunner, run

__all__ = [
    "CommandRunner",
    "ProcessError",
    "SubprocessRunner",
    "atomic_write_bytes",
    "atomic_write_text",
    "run",
]
