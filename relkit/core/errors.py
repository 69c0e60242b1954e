"""Process exit codes.

A failed release always exits non-zero; the code only tells the operator (or
the CI job) which kind of problem stopped it.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for relkit commands.

    - 0: Success
    - 1: User error (bad version, malformed changelog, missing secret)
    - 2: Environment error (missing tool, keychain unusable)
    - 3: Build error (build, notarization, archive or signing failed)
    - 4: Network error (push or release publishing failed)
    - 5: I/O error (changelog or feed could not be read or written)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
