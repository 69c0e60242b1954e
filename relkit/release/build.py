"""Build, notarize and package the application.

These are thin wrappers over xcodebuild, notarytool, stapler and ditto; the
only logic kept here is where artifacts land and how failures are reported.
"""

from __future__ import annotations

import plistlib
from pathlib import Path
from xml.parsers.expat import ExpatError

from relkit.core.config import BuildConfig, ReleaseConfig
from relkit.core.result import Err, Ok, Result
from relkit.output.console import ConsoleProtocol, Style
from relkit.platform.files import atomic_write_bytes
from relkit.platform.process import CommandRunner
from relkit.release.commands import run_step
from relkit.release.errors import ReleaseError
from relkit.release.timeouts import BUILD_TIMEOUT_SECONDS, NOTARIZE_TIMEOUT_SECONDS

SHORT_VERSION_KEY = "CFBundleShortVersionString"
MINIMUM_SYSTEM_VERSION_KEY = "LSMinimumSystemVersion"

_NOTARY_ACCEPTED = "status: accepted"


def install_dependencies(
    *, runner: CommandRunner, root: Path, build: BuildConfig, console: ConsoleProtocol
) -> Result[None, ReleaseError]:
    result = run_step(
        runner,
        list(build.dependency_command),
        cwd=root,
        console=console,
        message="dependency install failed",
        timeout=BUILD_TIMEOUT_SECONDS,
    )
    if isinstance(result, Err):
        return result
    return Ok(None)


def _load_plist(path: Path) -> Result[tuple[dict[str, object], plistlib.PlistFormat], ReleaseError]:
    try:
        raw = path.read_bytes()
    except OSError as e:
        return Err(
            ReleaseError(
                kind="command_failed",
                message=f"failed to read {path.name}: {e}",
                hint=str(path),
            )
        )

    fmt = plistlib.FMT_BINARY if raw.startswith(b"bplist") else plistlib.FMT_XML
    try:
        data: object = plistlib.loads(raw)
    except (plistlib.InvalidFileException, ExpatError, ValueError) as e:
        return Err(
            ReleaseError(
                kind="command_failed",
                message=f"invalid property list {path.name}: {e}",
                hint=str(path),
            )
        )
    if not isinstance(data, dict):
        return Err(
            ReleaseError(
                kind="command_failed",
                message=f"property list root is not a dictionary: {path.name}",
                hint=str(path),
            )
        )
    return Ok((data, fmt))


def read_plist_value(path: Path, key: str) -> Result[str, ReleaseError]:
    loaded = _load_plist(path)
    if isinstance(loaded, Err):
        return loaded
    data, _ = loaded.value
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        return Err(
            ReleaseError(
                kind="command_failed",
                message=f"missing {key} in {path.name}",
                hint=str(path),
            )
        )
    return Ok(value.strip())


def set_bundle_version(path: Path, version: str) -> Result[bool, ReleaseError]:
    """Write ``CFBundleShortVersionString``; Ok(False) if it already matched."""
    loaded = _load_plist(path)
    if isinstance(loaded, Err):
        return loaded
    data, fmt = loaded.value

    if data.get(SHORT_VERSION_KEY) == version:
        return Ok(False)
    data[SHORT_VERSION_KEY] = version

    try:
        atomic_write_bytes(path, plistlib.dumps(data, fmt=fmt))
    except OSError as e:
        return Err(
            ReleaseError(
                kind="command_failed",
                message=f"failed to write {path.name}: {e}",
                hint=str(path),
            )
        )
    return Ok(True)


def minimum_system_version(app: Path) -> Result[str, ReleaseError]:
    """``LSMinimumSystemVersion`` of the built bundle."""
    return read_plist_value(app / "Contents" / "Info.plist", MINIMUM_SYSTEM_VERSION_KEY)


def build_app(
    *,
    runner: CommandRunner,
    root: Path,
    config: ReleaseConfig,
    codesign_identity: str,
    console: ConsoleProtocol,
) -> Result[Path, ReleaseError]:
    """Archive and export a signed application bundle into the build dir."""
    build_dir = root / config.paths.build_dir
    archive_path = build_dir / f"{config.app_name}.xcarchive"
    options_path = build_dir / "ExportOptions.plist"

    archive = run_step(
        runner,
        [
            "xcodebuild",
            "-workspace",
            str(root / config.paths.workspace),
            "-scheme",
            config.build.scheme,
            "-configuration",
            "Release",
            "-archivePath",
            str(archive_path),
            "archive",
            f"CODE_SIGN_IDENTITY={codesign_identity}",
        ],
        cwd=root,
        console=console,
        message=f"xcodebuild archive failed for scheme {config.build.scheme}",
        timeout=BUILD_TIMEOUT_SECONDS,
    )
    if isinstance(archive, Err):
        return archive

    options = {
        "method": config.build.export_method,
        "signingStyle": "manual",
        "signingCertificate": codesign_identity,
    }
    try:
        atomic_write_bytes(options_path, plistlib.dumps(options))
    except OSError as e:
        return Err(
            ReleaseError(
                kind="command_failed",
                message=f"failed to write export options: {e}",
                hint=str(options_path),
            )
        )

    export = run_step(
        runner,
        [
            "xcodebuild",
            "-exportArchive",
            "-archivePath",
            str(archive_path),
            "-exportPath",
            str(build_dir),
            "-exportOptionsPlist",
            str(options_path),
        ],
        cwd=root,
        console=console,
        message="xcodebuild export failed",
        timeout=BUILD_TIMEOUT_SECONDS,
    )
    if isinstance(export, Err):
        return export

    app = config.app_bundle(root)
    if not app.is_dir():
        return Err(
            ReleaseError(
                kind="command_failed",
                message=f"exported app not found: {app.name}",
                hint=str(app),
            )
        )
    return Ok(app)


def _zip_bundle(
    *, runner: CommandRunner, root: Path, app: Path, dest: Path, console: ConsoleProtocol
) -> Result[Path, ReleaseError]:
    result = run_step(
        runner,
        ["ditto", "-c", "-k", "--sequesterRsrc", "--keepParent", str(app), str(dest)],
        cwd=root,
        console=console,
        message=f"failed to create {dest.name}",
        timeout=BUILD_TIMEOUT_SECONDS,
    )
    if isinstance(result, Err):
        return result
    return Ok(dest)


def notarize_app(
    *,
    runner: CommandRunner,
    root: Path,
    app: Path,
    apple_id: str,
    team_id: str,
    password: str,
    console: ConsoleProtocol,
) -> Result[None, ReleaseError]:
    """Submit the bundle to Apple, wait for the verdict and staple the ticket."""
    upload = app.parent / f"{app.stem}-notarize.zip"
    zipped = _zip_bundle(runner=runner, root=root, app=app, dest=upload, console=console)
    if isinstance(zipped, Err):
        return zipped

    try:
        submitted = run_step(
            runner,
            [
                "xcrun",
                "notarytool",
                "submit",
                str(upload),
                "--apple-id",
                apple_id,
                "--team-id",
                team_id,
                "--password",
                password,
                "--wait",
            ],
            cwd=root,
            console=console,
            message="notarization failed",
            timeout=NOTARIZE_TIMEOUT_SECONDS,
            echo=f"xcrun notarytool submit {upload.name} --team-id {team_id} --wait",
        )
    finally:
        upload.unlink(missing_ok=True)
    if isinstance(submitted, Err):
        return submitted

    if _NOTARY_ACCEPTED not in submitted.value.lower():
        return Err(
            ReleaseError(
                kind="command_failed",
                message="notarization was not accepted",
                hint=submitted.value.strip() or None,
            )
        )
    console.print("notarization accepted", Style.DIM)

    stapled = run_step(
        runner,
        ["xcrun", "stapler", "staple", str(app)],
        cwd=root,
        console=console,
        message=f"failed to staple notarization ticket to {app.name}",
        timeout=BUILD_TIMEOUT_SECONDS,
    )
    if isinstance(stapled, Err):
        return stapled
    return Ok(None)


def archive_app(
    *, runner: CommandRunner, root: Path, app: Path, archive_name: str, console: ConsoleProtocol
) -> Result[Path, ReleaseError]:
    """Create the distributable ZIP at the project root."""
    return _zip_bundle(runner=runner, root=root, app=app, dest=root / archive_name, console=console)
