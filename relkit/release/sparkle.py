"""Sparkle's EdDSA tools: key import and update signing."""

from __future__ import annotations

from pathlib import Path

from relkit.core.result import Err, Ok, Result
from relkit.output.console import ConsoleProtocol
from relkit.platform.files import atomic_write_text
from relkit.platform.process import CommandRunner
from relkit.release.commands import run_step
from relkit.release.errors import ReleaseError
from relkit.release.timeouts import KEYCHAIN_TIMEOUT_SECONDS

PRIVATE_KEY_FILE = "key.pem"


def install_update_key(
    *,
    runner: CommandRunner,
    root: Path,
    sparkle_bin: Path,
    private_key: str,
    console: ConsoleProtocol,
) -> Result[None, ReleaseError]:
    """Import the update-signing key into the default keychain."""
    key_path = root / PRIVATE_KEY_FILE
    try:
        atomic_write_text(key_path, private_key)
    except OSError as e:
        return Err(
            ReleaseError(
                kind="credential_failed",
                message=f"could not save Sparkle private key: {e}",
                hint=str(key_path),
            )
        )

    try:
        result = run_step(
            runner,
            [str(sparkle_bin / "generate_keys"), "-f", str(key_path)],
            cwd=root,
            console=console,
            message="failed to import Sparkle private key",
            kind="credential_failed",
            timeout=KEYCHAIN_TIMEOUT_SECONDS,
        )
    finally:
        key_path.unlink(missing_ok=True)
    if isinstance(result, Err):
        return result
    return Ok(None)


def sign_update(
    *,
    runner: CommandRunner,
    root: Path,
    sparkle_bin: Path,
    archive: Path,
    console: ConsoleProtocol,
) -> Result[str, ReleaseError]:
    """Sign ``archive`` and return the enclosure attribute block.

    e.g. ``sparkle:edSignature="..." length="1234"``
    """
    result = run_step(
        runner,
        [str(sparkle_bin / "sign_update"), str(archive)],
        cwd=root,
        console=console,
        message=f"failed to sign {archive.name}",
        kind="credential_failed",
        timeout=KEYCHAIN_TIMEOUT_SECONDS,
    )
    if isinstance(result, Err):
        return result

    signature = result.value.strip()
    if "sparkle:edSignature=" not in signature:
        return Err(
            ReleaseError(
                kind="credential_failed",
                message="could not parse sign_update output",
                hint=signature or None,
            )
        )
    return Ok(signature)
