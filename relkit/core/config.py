"""Typed release configuration.

Non-secret settings live in an optional ``relkit.toml`` at the project root;
secrets always come from the environment. Both are resolved once, before the
pipeline starts, into frozen dataclasses.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_int, get_str, get_str_list, get_table

__all__ = [
    "CONFIG_FILE_NAME",
    "VERSION_ENV_VAR",
    "SECRET_ENV_VARS",
    "BuildConfig",
    "ConfigError",
    "FeedConfig",
    "KeychainConfig",
    "PathsConfig",
    "ReleaseConfig",
    "ReleaseSecrets",
    "load_config",
    "load_config_or_default",
    "load_secrets",
]

CONFIG_FILE_NAME = "relkit.toml"

# Raw (possibly "v"-prefixed) version requested by the operator or CI.
VERSION_ENV_VAR = "RELEASE_VERSION"

SECRET_ENV_VARS: tuple[str, ...] = (
    "CODESIGN_IDENTITY",
    "AC_NOTARIZE_EMAIL",
    "AC_NOTARIZE_TEAM",
    "AC_NOTARIZE_PASSWORD",
    "SIGNING_CERT",
    "SIGNING_CERT_PASSWORD",
    "SPARKLE_PRIVATE_KEY",
    "MATCH_KEYCHAIN_PASSWORD",
    "GITHUB_TOKEN",
)

DEFAULT_APP_NAME = "YT Music"
DEFAULT_REPOSITORY = "TimOliver/YouTube-Music"
DEFAULT_DEPENDENCY_COMMAND: tuple[str, ...] = (
    "bundle",
    "exec",
    "pod",
    "install",
    "--clean-install",
)


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when configuration or secrets cannot be resolved."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class PathsConfig:
    """Paths relative to the project root."""

    changelog: str = "CHANGELOG.md"
    feed: str = "Appcast.xml"
    info_plist: str = "YT Music/Supporting/Info.plist"
    workspace: str = "YT Music.xcworkspace"
    build_dir: str = "build"
    sparkle_bin: str = "Pods/Sparkle/bin"


@dataclass(frozen=True, slots=True)
class BuildConfig:
    scheme: str = DEFAULT_APP_NAME
    export_method: str = "developer-id"
    dependency_command: tuple[str, ...] = DEFAULT_DEPENDENCY_COMMAND


@dataclass(frozen=True, slots=True)
class FeedConfig:
    """Sparkle appcast settings."""

    download_base: str = f"https://github.com/{DEFAULT_REPOSITORY}/releases/download"
    schema_version: str = "8"


@dataclass(frozen=True, slots=True)
class KeychainConfig:
    """Ephemeral keychain holding the signing identity during a release."""

    name: str = "GitHubActions"
    timeout_seconds: int = 600

    @property
    def db_name(self) -> str:
        # `security create-keychain` appends "-db" to the file it creates.
        return f"{self.name}-db"


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    """Main configuration container, passed into the pipeline at construction."""

    app_name: str = DEFAULT_APP_NAME
    repository: str = DEFAULT_REPOSITORY
    paths: PathsConfig = field(default_factory=PathsConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)
    keychain: KeychainConfig = field(default_factory=KeychainConfig)

    def archive_name(self, version: str) -> str:
        """Distributable ZIP name, e.g. ``YT-Music-1.2.0.zip``."""
        return f"{self.app_name.replace(' ', '-')}-{version}.zip"

    def app_bundle(self, root: Path) -> Path:
        """Exported application bundle, e.g. ``build/YT Music.app``."""
        return root / self.paths.build_dir / f"{self.app_name}.app"

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ReleaseConfig:
        """Create a config from parsed TOML, falling back to defaults per key."""
        paths: StrDict = get_table(data, "paths") or {}
        build: StrDict = get_table(data, "build") or {}
        feed: StrDict = get_table(data, "feed") or {}
        keychain: StrDict = get_table(data, "keychain") or {}

        repository = get_str(data, "repository") or DEFAULT_REPOSITORY
        app_name = get_str(data, "app_name") or DEFAULT_APP_NAME
        defaults = PathsConfig()
        dependency_command = get_str_list(build, "dependency_command")

        return cls(
            app_name=app_name,
            repository=repository,
            paths=PathsConfig(
                changelog=get_str(paths, "changelog") or defaults.changelog,
                feed=get_str(paths, "feed") or defaults.feed,
                info_plist=get_str(paths, "info_plist") or defaults.info_plist,
                workspace=get_str(paths, "workspace") or defaults.workspace,
                build_dir=get_str(paths, "build_dir") or defaults.build_dir,
                sparkle_bin=get_str(paths, "sparkle_bin") or defaults.sparkle_bin,
            ),
            build=BuildConfig(
                scheme=get_str(build, "scheme") or app_name,
                export_method=get_str(build, "export_method") or "developer-id",
                dependency_command=(
                    tuple(dependency_command)
                    if dependency_command
                    else DEFAULT_DEPENDENCY_COMMAND
                ),
            ),
            feed=FeedConfig(
                download_base=(
                    get_str(feed, "download_base")
                    or f"https://github.com/{repository}/releases/download"
                ).rstrip("/"),
                schema_version=get_str(feed, "schema_version") or "8",
            ),
            keychain=KeychainConfig(
                name=get_str(keychain, "name") or "GitHubActions",
                timeout_seconds=get_int(keychain, "timeout_seconds") or 600,
            ),
        )


@dataclass(frozen=True, slots=True)
class ReleaseSecrets:
    """Credentials sourced from the environment.

    These values are passed to external tools only; they are never printed.
    """

    codesign_identity: str
    notarize_email: str
    notarize_team: str
    notarize_password: str
    signing_cert: str
    signing_cert_password: str
    sparkle_private_key: str
    keychain_password: str
    github_token: str

    def __repr__(self) -> str:
        return "ReleaseSecrets(<redacted>)"


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and syntax errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[ReleaseConfig, ConfigError]:
    """Load and parse ``relkit.toml``.

    Args:
        path: Path to the config file.

    Returns:
        Ok(ReleaseConfig) on success, Err(ConfigError) on failure.
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(ReleaseConfig.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Result[ReleaseConfig, ConfigError]:
    """Load config if the file exists, else return the defaults.

    A file that exists but cannot be parsed is still an error.
    """
    if not path.exists():
        return Ok(ReleaseConfig())
    return load_config(path)


def load_secrets(env: Mapping[str, str]) -> Result[ReleaseSecrets, ConfigError]:
    """Collect every required secret, reporting all missing names at once."""
    missing = [name for name in SECRET_ENV_VARS if not env.get(name, "").strip()]
    if missing:
        return Err(ConfigError(f"missing environment variables: {', '.join(missing)}"))

    return Ok(
        ReleaseSecrets(
            codesign_identity=env["CODESIGN_IDENTITY"],
            notarize_email=env["AC_NOTARIZE_EMAIL"],
            notarize_team=env["AC_NOTARIZE_TEAM"],
            notarize_password=env["AC_NOTARIZE_PASSWORD"],
            signing_cert=env["SIGNING_CERT"],
            signing_cert_password=env["SIGNING_CERT_PASSWORD"],
            sparkle_private_key=env["SPARKLE_PRIVATE_KEY"],
            keychain_password=env["MATCH_KEYCHAIN_PASSWORD"],
            github_token=env["GITHUB_TOKEN"],
        )
    )
