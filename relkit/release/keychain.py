"""Ephemeral keychain holding the code-signing identity for one release.

The keychain is recreated from scratch on every run, unlocked with a fixed
inactivity timeout and made the default so ``xcodebuild`` and Sparkle's tools
find the identity without prompting.
"""

from __future__ import annotations

import base64
import binascii
from pathlib import Path

from relkit.core.config import KeychainConfig
from relkit.core.result import Err, Ok, Result
from relkit.output.console import ConsoleProtocol, Style
from relkit.platform.files import atomic_write_bytes
from relkit.platform.process import CommandRunner
from relkit.release.commands import run_step
from relkit.release.errors import ReleaseError
from relkit.release.timeouts import KEYCHAIN_TIMEOUT_SECONDS

CERTIFICATE_FILE = "Certificate.p12"


def setup_keychain(
    *,
    runner: CommandRunner,
    root: Path,
    keychain: KeychainConfig,
    password: str,
    console: ConsoleProtocol,
) -> Result[None, ReleaseError]:
    name = keychain.name

    # A keychain left behind by an aborted run would make create-keychain fail.
    deleted = runner.run(
        ["security", "delete-keychain", name], cwd=root, timeout=KEYCHAIN_TIMEOUT_SECONDS
    )
    if isinstance(deleted, Ok):
        console.print(f"deleted stale keychain {name}", Style.DIM)

    steps: list[tuple[list[str], str]] = [
        (
            ["security", "create-keychain", "-p", password, name],
            f"security create-keychain {name}",
        ),
        (
            ["security", "set-keychain-settings", "-t", str(keychain.timeout_seconds), name],
            f"security set-keychain-settings -t {keychain.timeout_seconds} {name}",
        ),
        (
            ["security", "default-keychain", "-s", name],
            f"security default-keychain -s {name}",
        ),
        (
            ["security", "list-keychains", "-d", "user", "-s", name, "login.keychain"],
            f"security list-keychains -d user -s {name} login.keychain",
        ),
    ]
    for cmd, echo in steps:
        result = run_step(
            runner,
            cmd,
            cwd=root,
            console=console,
            message=f"failed to set up keychain {name}",
            kind="credential_failed",
            timeout=KEYCHAIN_TIMEOUT_SECONDS,
            echo=echo,
        )
        if isinstance(result, Err):
            return result

    return unlock_keychain(
        runner=runner, root=root, keychain=keychain, password=password, console=console
    )


def unlock_keychain(
    *,
    runner: CommandRunner,
    root: Path,
    keychain: KeychainConfig,
    password: str,
    console: ConsoleProtocol,
) -> Result[None, ReleaseError]:
    result = run_step(
        runner,
        ["security", "unlock-keychain", "-p", password, keychain.name],
        cwd=root,
        console=console,
        message=f"failed to unlock keychain {keychain.name}",
        kind="credential_failed",
        timeout=KEYCHAIN_TIMEOUT_SECONDS,
        echo=f"security unlock-keychain {keychain.name}",
    )
    if isinstance(result, Err):
        return result
    return Ok(None)


def decode_certificate(encoded: str) -> Result[bytes, ReleaseError]:
    """Decode a base64 PKCS#12 blob, ignoring line breaks and spaces."""
    compact = "".join(encoded.split())
    try:
        data = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        return Err(
            ReleaseError(
                kind="credential_failed",
                message=f"signing certificate is not valid base64: {e}",
                hint="Check the SIGNING_CERT secret.",
            )
        )
    if not data:
        return Err(ReleaseError(kind="credential_failed", message="signing certificate is empty"))
    return Ok(data)


def install_signing_identity(
    *,
    runner: CommandRunner,
    root: Path,
    keychain: KeychainConfig,
    certificate: str,
    certificate_password: str,
    keychain_password: str,
    console: ConsoleProtocol,
) -> Result[None, ReleaseError]:
    """Import the signing identity into the release keychain.

    The decoded certificate only exists on disk for the duration of the import.
    """
    data = decode_certificate(certificate)
    if isinstance(data, Err):
        return data

    cert_path = root / CERTIFICATE_FILE
    try:
        atomic_write_bytes(cert_path, data.value)
    except OSError as e:
        return Err(
            ReleaseError(
                kind="credential_failed",
                message=f"unable to save signing identity to disk: {e}",
                hint=str(cert_path),
            )
        )

    db = keychain.db_name
    try:
        imported = run_step(
            runner,
            [
                "security",
                "import",
                str(cert_path),
                "-k",
                db,
                "-P",
                certificate_password,
                "-T",
                "/usr/bin/codesign",
                "-T",
                "/usr/bin/security",
            ],
            cwd=root,
            console=console,
            message="failed to import signing identity",
            kind="credential_failed",
            timeout=KEYCHAIN_TIMEOUT_SECONDS,
            echo=f"security import {CERTIFICATE_FILE} -k {db}",
        )
    finally:
        cert_path.unlink(missing_ok=True)
    if isinstance(imported, Err):
        return imported

    # Lets codesign use the key without a UI prompt.
    partition = run_step(
        runner,
        [
            "security",
            "set-key-partition-list",
            "-S",
            "apple-tool:,apple:",
            "-s",
            "-k",
            keychain_password,
            db,
        ],
        cwd=root,
        console=console,
        message="failed to grant codesign access to the signing key",
        kind="credential_failed",
        timeout=KEYCHAIN_TIMEOUT_SECONDS,
        echo=f"security set-key-partition-list -S apple-tool:,apple: -s {db}",
    )
    if isinstance(partition, Err):
        return partition
    return Ok(None)
