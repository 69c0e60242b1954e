"""Release pipeline: a fixed, linear sequence of fail-fast stages.

Each stage returns ``Ok(None)`` to advance or ``Err(ReleaseError)`` to stop
the run. There is no retry and no rollback: files written before the failing
stage stay as they are, and the release is re-run from the start once the
cause is fixed.

Version checks come first so nothing (keychain, build, files) is touched for
a version that cannot be released.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

from relkit.core.config import ReleaseConfig, ReleaseSecrets
from relkit.core.result import Err, Ok, Result
from relkit.output.console import ConsoleProtocol, Style
from relkit.release import build, changelog, feed, git, keychain, notes, publish, sparkle
from relkit.release.context import ReleaseContext
from relkit.release.errors import ReleaseError
from relkit.release.toolchain import Toolchain
from relkit.release.version import extract_version, validate_new_version

STAGES: tuple[str, ...] = (
    "resolve-version",
    "parse-changelog",
    "validate-version",
    "install-dependencies",
    "setup-credentials",
    "bump-bundle-version",
    "build",
    "notarize",
    "archive",
    "update-feed",
    "rewrite-changelog",
    "commit",
    "tag",
    "push",
    "publish",
)

# Last stage that runs before anything outside the process is touched.
LAST_VALIDATION_STAGE = "validate-version"

StageHandler = Callable[[ReleaseContext], Result[None, ReleaseError]]


@dataclass(frozen=True, slots=True)
class StageFailure:
    stage: str
    error: ReleaseError

    def pretty(self) -> str:
        return f"[{self.stage}] {self.error.message}"


@dataclass(frozen=True, slots=True)
class ReleaseSummary:
    version: str
    previous_version: str | None
    completed: tuple[str, ...]
    changed_files: tuple[Path, ...] = ()
    archive: Path | None = None
    release_url: str | None = None


AbortHandler = Callable[[StageFailure], None]

T = TypeVar("T")


def _need(value: T | None, what: str) -> T:
    if value is None:
        raise AssertionError(f"{what} is not available at this stage")
    return value


class ReleasePipeline:
    """Runs the release stages in order over one ``ReleaseContext``.

    Args:
        root: Project root; relative config paths resolve against it.
        config: Immutable release settings.
        console: Operator output.
        toolchain: External collaborators (command runner, notes renderer, clock).
        secrets: Credentials; only needed from ``setup-credentials`` on.
        on_abort: Called once with the failure by ``run_or_abort``.
        stop_after: Name of the last stage to run (default: all of them).
    """

    def __init__(
        self,
        *,
        root: Path,
        config: ReleaseConfig,
        console: ConsoleProtocol,
        toolchain: Toolchain | None = None,
        secrets: ReleaseSecrets | None = None,
        on_abort: AbortHandler | None = None,
        stop_after: str | None = None,
    ) -> None:
        if stop_after is not None and stop_after not in STAGES:
            raise ValueError(f"unknown stage: {stop_after}")

        self._root = root
        self._config = config
        self._console = console
        self._tools = toolchain or Toolchain()
        self._secrets = secrets
        self._on_abort = on_abort
        end = STAGES.index(stop_after) + 1 if stop_after is not None else len(STAGES)
        self.stages: tuple[str, ...] = STAGES[:end]

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def run(self, raw_version: str) -> Result[ReleaseSummary, StageFailure]:
        ctx = ReleaseContext(raw_version=raw_version)
        handlers = self._handlers()
        total = len(self.stages)
        completed: list[str] = []

        for index, stage in enumerate(self.stages, start=1):
            self._console.stage(index, total, stage)
            outcome = handlers[stage](ctx)
            if isinstance(outcome, Err):
                return Err(StageFailure(stage=stage, error=outcome.error))
            completed.append(stage)

        return Ok(
            ReleaseSummary(
                version=_need(ctx.new_version, "new version"),
                previous_version=ctx.previous_version,
                completed=tuple(completed),
                changed_files=tuple(ctx.changed_files),
                archive=self._root / ctx.archive_name if ctx.archive_name else None,
                release_url=ctx.release_url,
            )
        )

    def run_or_abort(self, raw_version: str) -> ReleaseSummary | None:
        """Run the pipeline; on failure hand it to the abort handler.

        Returns None only when the abort handler returns instead of exiting.
        """
        result = self.run(raw_version)
        if isinstance(result, Ok):
            return result.value
        if self._on_abort is None:
            raise RuntimeError(f"release failed: {result.error.pretty()}")
        self._on_abort(result.error)
        return None

    def _handlers(self) -> Mapping[str, StageHandler]:
        return {
            "resolve-version": self._resolve_version,
            "parse-changelog": self._parse_changelog,
            "validate-version": self._validate_version,
            "install-dependencies": self._install_dependencies,
            "setup-credentials": self._setup_credentials,
            "bump-bundle-version": self._bump_bundle_version,
            "build": self._build,
            "notarize": self._notarize,
            "archive": self._archive,
            "update-feed": self._update_feed,
            "rewrite-changelog": self._rewrite_changelog,
            "commit": self._commit,
            "tag": self._tag,
            "push": self._push,
            "publish": self._publish,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def _changelog_path(self) -> Path:
        return self._root / self._config.paths.changelog

    @property
    def _feed_path(self) -> Path:
        return self._root / self._config.paths.feed

    @property
    def _sparkle_bin(self) -> Path:
        return self._root / self._config.paths.sparkle_bin

    def _require_secrets(self) -> Result[ReleaseSecrets, ReleaseError]:
        if self._secrets is None:
            return Err(
                ReleaseError(
                    kind="missing_secret",
                    message="release credentials were not provided",
                    hint="Export the signing, notarization and GitHub secrets.",
                )
            )
        return Ok(self._secrets)

    # ------------------------------------------------------------------
    # Validation stages (no side effects outside the process)
    # ------------------------------------------------------------------

    def _resolve_version(self, ctx: ReleaseContext) -> Result[None, ReleaseError]:
        version = extract_version(ctx.raw_version)
        if isinstance(version, Err):
            return version
        ctx.new_version = version.value
        self._console.print(f"version: {ctx.new_version}", Style.DIM)
        return Ok(None)

    def _parse_changelog(self, ctx: ReleaseContext) -> Result[None, ReleaseError]:
        text = changelog.read_changelog(self._changelog_path)
        if isinstance(text, Err):
            return text
        parsed = changelog.parse_changelog(text.value)
        if isinstance(parsed, Err):
            return parsed

        ctx.changelog_text = text.value
        ctx.changes = parsed.value.changes
        ctx.previous_version = parsed.value.previous_version
        self._console.print(f"previous version: {ctx.previous_version}", Style.DIM)
        if not parsed.value.has_changes:
            self._console.warning("no unreleased changes listed in the changelog")
        return Ok(None)

    def _validate_version(self, ctx: ReleaseContext) -> Result[None, ReleaseError]:
        new_version = _need(ctx.new_version, "new version")
        exists = git.tag_exists(runner=self._tools.runner, repo_root=self._root, tag=new_version)
        if isinstance(exists, Err):
            return exists
        return validate_new_version(
            new_version=new_version,
            previous_version=_need(ctx.previous_version, "previous version"),
            tag_exists=exists.value,
        )

    # ------------------------------------------------------------------
    # Credentials and build
    # ------------------------------------------------------------------

    def _install_dependencies(self, ctx: ReleaseContext) -> Result[None, ReleaseError]:
        return build.install_dependencies(
            runner=self._tools.runner,
            root=self._root,
            build=self._config.build,
            console=self._console,
        )

    def _setup_credentials(self, ctx: ReleaseContext) -> Result[None, ReleaseError]:
        secrets = self._require_secrets()
        if isinstance(secrets, Err):
            return secrets
        s = secrets.value
        runner = self._tools.runner

        ok = keychain.setup_keychain(
            runner=runner,
            root=self._root,
            keychain=self._config.keychain,
            password=s.keychain_password,
            console=self._console,
        )
        if isinstance(ok, Err):
            return ok

        ok = keychain.install_signing_identity(
            runner=runner,
            root=self._root,
            keychain=self._config.keychain,
            certificate=s.signing_cert,
            certificate_password=s.signing_cert_password,
            keychain_password=s.keychain_password,
            console=self._console,
        )
        if isinstance(ok, Err):
            return ok

        return sparkle.install_update_key(
            runner=runner,
            root=self._root,
            sparkle_bin=self._sparkle_bin,
            private_key=s.sparkle_private_key,
            console=self._console,
        )

    def _bump_bundle_version(self, ctx: ReleaseContext) -> Result[None, ReleaseError]:
        plist = self._root / self._config.paths.info_plist
        changed = build.set_bundle_version(plist, _need(ctx.new_version, "new version"))
        if isinstance(changed, Err):
            return changed
        if changed.value:
            ctx.record_change(plist)
        else:
            self._console.print(f"{plist.name} already at {ctx.new_version}", Style.DIM)
        return Ok(None)

    def _build(self, ctx: ReleaseContext) -> Result[None, ReleaseError]:
        secrets = self._require_secrets()
        if isinstance(secrets, Err):
            return secrets
        app = build.build_app(
            runner=self._tools.runner,
            root=self._root,
            config=self._config,
            codesign_identity=secrets.value.codesign_identity,
            console=self._console,
        )
        if isinstance(app, Err):
            return app
        ctx.app_path = app.value
        return Ok(None)

    def _notarize(self, ctx: ReleaseContext) -> Result[None, ReleaseError]:
        secrets = self._require_secrets()
        if isinstance(secrets, Err):
            return secrets
        s = secrets.value
        return build.notarize_app(
            runner=self._tools.runner,
            root=self._root,
            app=_need(ctx.app_path, "app bundle"),
            apple_id=s.notarize_email,
            team_id=s.notarize_team,
            password=s.notarize_password,
            console=self._console,
        )

    def _archive(self, ctx: ReleaseContext) -> Result[None, ReleaseError]:
        name = self._config.archive_name(_need(ctx.new_version, "new version"))
        archive = build.archive_app(
            runner=self._tools.runner,
            root=self._root,
            app=_need(ctx.app_path, "app bundle"),
            archive_name=name,
            console=self._console,
        )
        if isinstance(archive, Err):
            return archive
        ctx.archive_name = name
        self._console.print(f"archive: {name}", Style.DIM)
        return Ok(None)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def _update_feed(self, ctx: ReleaseContext) -> Result[None, ReleaseError]:
        secrets = self._require_secrets()
        if isinstance(secrets, Err):
            return secrets
        new_version = _need(ctx.new_version, "new version")
        archive_name = _need(ctx.archive_name, "archive")
        runner = self._tools.runner

        minimum = build.minimum_system_version(_need(ctx.app_path, "app bundle"))
        if isinstance(minimum, Err):
            return minimum

        unlocked = keychain.unlock_keychain(
            runner=runner,
            root=self._root,
            keychain=self._config.keychain,
            password=secrets.value.keychain_password,
            console=self._console,
        )
        if isinstance(unlocked, Err):
            return unlocked

        signature = sparkle.sign_update(
            runner=runner,
            root=self._root,
            sparkle_bin=self._sparkle_bin,
            archive=self._root / archive_name,
            console=self._console,
        )
        if isinstance(signature, Err):
            return signature

        entry = feed.FeedEntry.create(
            version=new_version,
            archive_name=archive_name,
            notes_html=notes.render_release_notes(self._tools.renderer, ctx.changes),
            signature=signature.value,
            minimum_system_version=minimum.value,
            feed=self._config.feed,
            published_at=self._tools.clock(),
        )
        updated = feed.update_feed(feed_path=self._feed_path, entry=entry)
        if isinstance(updated, Err):
            return updated
        ctx.record_change(self._feed_path)
        return Ok(None)

    def _rewrite_changelog(self, ctx: ReleaseContext) -> Result[None, ReleaseError]:
        rewritten = changelog.rewrite_changelog(
            _need(ctx.changelog_text, "changelog"),
            new_version=_need(ctx.new_version, "new version"),
        )
        if isinstance(rewritten, Err):
            return rewritten
        written = changelog.write_changelog(self._changelog_path, rewritten.value)
        if isinstance(written, Err):
            return written
        ctx.changelog_text = rewritten.value
        ctx.record_change(self._changelog_path)
        return Ok(None)

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def _commit(self, ctx: ReleaseContext) -> Result[None, ReleaseError]:
        return git.commit_files(
            runner=self._tools.runner,
            repo_root=self._root,
            paths=list(ctx.changed_files),
            message=git.release_commit_message(_need(ctx.new_version, "new version")),
            console=self._console,
        )

    def _tag(self, ctx: ReleaseContext) -> Result[None, ReleaseError]:
        return git.create_tag(
            runner=self._tools.runner,
            repo_root=self._root,
            tag=_need(ctx.new_version, "new version"),
            console=self._console,
        )

    def _push(self, ctx: ReleaseContext) -> Result[None, ReleaseError]:
        return git.push_with_tags(
            runner=self._tools.runner,
            repo_root=self._root,
            tag=_need(ctx.new_version, "new version"),
            console=self._console,
        )

    def _publish(self, ctx: ReleaseContext) -> Result[None, ReleaseError]:
        secrets = self._require_secrets()
        if isinstance(secrets, Err):
            return secrets
        version = _need(ctx.new_version, "new version")
        url = publish.publish_release(
            runner=self._tools.runner,
            repo_root=self._root,
            repository=self._config.repository,
            token=secrets.value.github_token,
            tag=version,
            title=version,
            notes=ctx.changes or notes.NO_CHANGES_PLACEHOLDER,
            assets=[self._root / _need(ctx.archive_name, "archive")],
            console=self._console,
        )
        if isinstance(url, Err):
            return url
        ctx.release_url = url.value or None
        self._console.success(f"released {version}")
        return Ok(None)
