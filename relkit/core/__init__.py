"""Core types: results, exit codes and configuration."""

from .config import ConfigError, ReleaseConfig, ReleaseSecrets, load_config, load_secrets
from .errors import ErrorCode
from .result import Err, Ok, Result, is_err, is_ok

__all__ = [
    # config
    "ConfigError",
    "ReleaseConfig",
    "ReleaseSecrets",
    "load_config",
    "load_secrets",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
    "is_err",
    "is_ok",
]
