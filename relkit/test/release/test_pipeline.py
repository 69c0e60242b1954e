from __future__ import annotations

import plistlib
from datetime import datetime, timezone
from pathlib import Path

import pytest

from relkit.core.config import ReleaseConfig, ReleaseSecrets
from relkit.core.result import Err, Ok
from relkit.output.console import MockConsole
from relkit.release.notes import NO_CHANGES_PLACEHOLDER
from relkit.release.pipeline import (
    LAST_VALIDATION_STAGE,
    STAGES,
    ReleasePipeline,
    StageFailure,
)
from relkit.release.toolchain import Toolchain
from relkit.test.fakes import FakeRunner, UpperRenderer

CHANGELOG = """# Changelog

## [Unreleased]
- Added dark mode

## [1.0.0]
- Initial release

[Unreleased]: https://github.com/TimOliver/YouTube-Music/compare/1.0.0...HEAD
[1.0.0]: https://github.com/TimOliver/YouTube-Music/compare/0.9.0...1.0.0
"""

EMPTY_CHANGELOG = CHANGELOG.replace("- Added dark mode\n", "")

FEED = """<?xml version="1.0" encoding="utf-8"?>
<rss version="2.0" xmlns:sparkle="http://www.andymatuschak.org/xml-namespaces/sparkle">
    <channel>
        <title>YT Music</title>
        <item>
            <title>Version 1.0.0</title>
        </item>
    </channel>
</rss>
"""

SIGNATURE = 'sparkle:edSignature="abc" length="10"'
RELEASE_URL = "https://github.com/TimOliver/YouTube-Music/releases/tag/1.1.0"
NOW = datetime(2024, 9, 3, 14, 5, 9, tzinfo=timezone.utc)

SECRETS = ReleaseSecrets(
    codesign_identity="Developer ID Application: Someone",
    notarize_email="me@example.com",
    notarize_team="TEAM",
    notarize_password="app-pw",
    signing_cert="cDEyZGF0YQ==",
    signing_cert_password="certpw",
    sparkle_private_key="PRIVATE",
    keychain_password="kpw",
    github_token="ghp_secret",
)


def _touch_dest(cmd: list[str]) -> Ok[str]:
    Path(cmd[-1]).write_bytes(b"zip")
    return Ok("")


def _project(root: Path, changelog: str = CHANGELOG) -> Path:
    (root / "CHANGELOG.md").write_text(changelog, encoding="utf-8")
    (root / "Appcast.xml").write_text(FEED, encoding="utf-8")

    info = root / "YT Music" / "Supporting" / "Info.plist"
    info.parent.mkdir(parents=True)
    info.write_bytes(plistlib.dumps({"CFBundleShortVersionString": "1.0.0"}))

    built = root / "build" / "YT Music.app" / "Contents" / "Info.plist"
    built.parent.mkdir(parents=True)
    built.write_bytes(plistlib.dumps({"LSMinimumSystemVersion": "11.0"}))
    return root


def _runner(root: Path) -> FakeRunner:
    runner = FakeRunner()
    runner.on(["ditto"], _touch_dest)
    runner.respond(["xcrun", "notarytool"], "status: Accepted\n")
    runner.respond([str(root / "Pods" / "Sparkle" / "bin" / "sign_update")], SIGNATURE + "\n")
    runner.respond(["gh", "release", "create"], RELEASE_URL + "\n")
    runner.respond(["git", "tag", "--list"], "")
    return runner


def _pipeline(
    root: Path,
    runner: FakeRunner,
    console: MockConsole,
    *,
    secrets: ReleaseSecrets | None = SECRETS,
    renderer: UpperRenderer | None = None,
    **kwargs,
) -> ReleasePipeline:
    return ReleasePipeline(
        root=root,
        config=ReleaseConfig(),
        console=console,
        toolchain=Toolchain(runner=runner, renderer=renderer or UpperRenderer(), clock=lambda: NOW),
        secrets=secrets,
        **kwargs,
    )


class TestFullRelease:
    def test_end_to_end(self, tmp_path: Path) -> None:
        root = _project(tmp_path)
        runner = _runner(root)
        console = MockConsole()

        result = _pipeline(root, runner, console).run("v1.1.0")

        assert isinstance(result, Ok)
        summary = result.value
        assert summary.version == "1.1.0"
        assert summary.previous_version == "1.0.0"
        assert summary.completed == STAGES
        assert summary.archive == root / "YT-Music-1.1.0.zip"
        assert summary.release_url == RELEASE_URL
        assert console.stages == list(STAGES)

        changelog = (root / "CHANGELOG.md").read_text(encoding="utf-8")
        assert "## [Unreleased]\n\n## [1.1.0]\n- Added dark mode" in changelog
        assert "[Unreleased]: https://github.com/TimOliver/YouTube-Music/compare/1.1.0...HEAD" in changelog
        assert "[1.1.0]: https://github.com/TimOliver/YouTube-Music/compare/1.0.0...1.1.0" in changelog

        feed = (root / "Appcast.xml").read_text(encoding="utf-8")
        assert feed.count("<item>") == 2
        assert feed.index("Version 1.1.0") < feed.index("Version 1.0.0")
        assert "<p>- ADDED DARK MODE</p>" in feed
        assert SIGNATURE in feed
        assert "<pubDate>Tue, 03 Sep 2024 14:05:09 +0000</pubDate>" in feed
        assert "<sparkle:minimumSystemVersion>11.0</sparkle:minimumSystemVersion>" in feed
        assert (
            'url="https://github.com/TimOliver/YouTube-Music/releases/download/1.1.0/'
            'YT-Music-1.1.0.zip"'
        ) in feed

        info = plistlib.loads((root / "YT Music" / "Supporting" / "Info.plist").read_bytes())
        assert info["CFBundleShortVersionString"] == "1.1.0"

        assert runner.commands("git", "tag", "1.1.0") == [["git", "tag", "1.1.0"]]

    def test_commit_contains_every_changed_file(self, tmp_path: Path) -> None:
        root = _project(tmp_path)
        runner = _runner(root)

        result = _pipeline(root, runner, MockConsole()).run("1.1.0")

        assert isinstance(result, Ok)
        assert result.value.changed_files == (
            root / "YT Music" / "Supporting" / "Info.plist",
            root / "Appcast.xml",
            root / "CHANGELOG.md",
        )
        commit = runner.commands("git", "commit")
        assert commit == [
            [
                "git",
                "commit",
                "-m",
                "Release version 1.1.0! 🎉",
                "--",
                "YT Music/Supporting/Info.plist",
                "Appcast.xml",
                "CHANGELOG.md",
            ]
        ]

    def test_external_steps_in_order(self, tmp_path: Path) -> None:
        root = _project(tmp_path)
        runner = _runner(root)

        _pipeline(root, runner, MockConsole()).run("1.1.0")

        order = [
            ("git", "tag", "--list"),
            ("bundle", "exec", "pod"),
            ("security", "create-keychain"),
            ("security", "import"),
            (str(root / "Pods" / "Sparkle" / "bin" / "generate_keys"),),
            ("xcodebuild", "-workspace"),
            ("xcodebuild", "-exportArchive"),
            ("xcrun", "notarytool"),
            ("xcrun", "stapler"),
            (str(root / "Pods" / "Sparkle" / "bin" / "sign_update"),),
            ("git", "add"),
            ("git", "commit"),
            ("git", "tag", "1.1.0"),
            ("git", "push"),
            ("gh", "release", "create"),
        ]
        positions = []
        for prefix in order:
            matches = [i for i, c in enumerate(runner.calls) if tuple(c.cmd[: len(prefix)]) == prefix]
            assert matches, f"missing {prefix}"
            positions.append(matches[0])
        assert positions == sorted(positions)

    def test_secret_files_are_removed(self, tmp_path: Path) -> None:
        root = _project(tmp_path)

        _pipeline(root, _runner(root), MockConsole()).run("1.1.0")

        assert not (root / "Certificate.p12").exists()
        assert not (root / "key.pem").exists()

    def test_publish_uses_changes_and_token(self, tmp_path: Path) -> None:
        root = _project(tmp_path)
        runner = _runner(root)

        _pipeline(root, runner, MockConsole()).run("1.1.0")

        gh = [c for c in runner.calls if c.cmd[0] == "gh"]
        assert len(gh) == 1
        cmd = gh[0].cmd
        assert cmd[cmd.index("--notes") + 1] == "- Added dark mode"
        assert cmd[cmd.index("--title") + 1] == "1.1.0"
        assert str(root / "YT-Music-1.1.0.zip") in cmd
        assert gh[0].env == {"GH_TOKEN": "ghp_secret"}

    def test_no_secret_is_printed(self, tmp_path: Path) -> None:
        root = _project(tmp_path)
        console = MockConsole()

        _pipeline(root, _runner(root), console).run("1.1.0")

        for secret in ("app-pw", "certpw", "kpw", "ghp_secret", "PRIVATE", "cDEyZGF0YQ=="):
            assert secret not in console.text

    def test_empty_changes_use_placeholder(self, tmp_path: Path) -> None:
        root = _project(tmp_path, EMPTY_CHANGELOG)
        runner = _runner(root)
        console = MockConsole()
        renderer = UpperRenderer()

        result = _pipeline(root, runner, console, renderer=renderer).run("1.1.0")

        assert isinstance(result, Ok)
        assert console.find("warning: no unreleased changes")
        assert renderer.sources == [NO_CHANGES_PLACEHOLDER]
        cmd = runner.commands("gh")[0]
        assert cmd[cmd.index("--notes") + 1] == NO_CHANGES_PLACEHOLDER


class TestValidationFailures:
    def test_invalid_version(self, tmp_path: Path) -> None:
        root = _project(tmp_path)
        runner = _runner(root)

        result = _pipeline(root, runner, MockConsole()).run("banana")

        assert isinstance(result, Err)
        assert result.error.stage == "resolve-version"
        assert result.error.error.kind == "invalid_version"
        assert runner.calls == []

    def test_unparseable_changelog(self, tmp_path: Path) -> None:
        root = _project(tmp_path, "# Changelog\n")
        runner = _runner(root)

        result = _pipeline(root, runner, MockConsole()).run("1.1.0")

        assert isinstance(result, Err)
        assert result.error.stage == "parse-changelog"
        assert result.error.error.kind == "changelog_unparseable"
        assert runner.calls == []

    def test_missing_changelog(self, tmp_path: Path) -> None:
        result = _pipeline(tmp_path, _runner(tmp_path), MockConsole()).run("1.1.0")

        assert isinstance(result, Err)
        assert result.error.error.kind == "changelog_unreadable"

    def test_existing_tag(self, tmp_path: Path) -> None:
        root = _project(tmp_path)
        runner = _runner(root)
        runner.respond(["git", "tag", "--list"], "1.1.0\n")

        result = _pipeline(root, runner, MockConsole()).run("1.1.0")

        assert isinstance(result, Err)
        assert result.error.stage == "validate-version"
        assert result.error.error.kind == "tag_exists"
        assert [c.cmd for c in runner.calls] == [["git", "tag", "--list", "1.1.0"]]

    @pytest.mark.parametrize("raw", ["1.0.0", "0.9.9"])
    def test_version_not_greater(self, tmp_path: Path, raw: str) -> None:
        root = _project(tmp_path)
        runner = _runner(root)

        result = _pipeline(root, runner, MockConsole()).run(raw)

        assert isinstance(result, Err)
        assert result.error.error.kind == "version_not_greater"
        assert len(runner.calls) == 1
        assert (root / "CHANGELOG.md").read_text(encoding="utf-8") == CHANGELOG
        assert (root / "Appcast.xml").read_text(encoding="utf-8") == FEED

    def test_rerun_after_release_is_rejected(self, tmp_path: Path) -> None:
        root = _project(tmp_path)
        first = _pipeline(root, _runner(root), MockConsole()).run("1.1.0")
        assert isinstance(first, Ok)
        after_first = (root / "CHANGELOG.md").read_text(encoding="utf-8")

        second = _pipeline(root, _runner(root), MockConsole()).run("1.1.0")

        assert isinstance(second, Err)
        assert second.error.error.kind == "version_not_greater"
        assert (root / "CHANGELOG.md").read_text(encoding="utf-8") == after_first


class TestLaterFailures:
    def test_missing_secrets(self, tmp_path: Path) -> None:
        root = _project(tmp_path)
        runner = _runner(root)

        result = _pipeline(root, runner, MockConsole(), secrets=None).run("1.1.0")

        assert isinstance(result, Err)
        assert result.error.stage == "setup-credentials"
        assert result.error.error.kind == "missing_secret"
        assert runner.commands("security") == []

    def test_build_failure_leaves_documents_alone(self, tmp_path: Path) -> None:
        root = _project(tmp_path)
        runner = _runner(root)
        runner.fail(["xcodebuild"], stderr="** ARCHIVE FAILED **")

        result = _pipeline(root, runner, MockConsole()).run("1.1.0")

        assert isinstance(result, Err)
        assert result.error.stage == "build"
        assert result.error.error.kind == "command_failed"
        assert (root / "CHANGELOG.md").read_text(encoding="utf-8") == CHANGELOG
        assert (root / "Appcast.xml").read_text(encoding="utf-8") == FEED
        assert runner.commands("git", "commit") == []

    def test_notarization_rejected(self, tmp_path: Path) -> None:
        root = _project(tmp_path)
        runner = _runner(root)
        runner.respond(["xcrun", "notarytool"], "status: Invalid\n")

        result = _pipeline(root, runner, MockConsole()).run("1.1.0")

        assert isinstance(result, Err)
        assert result.error.stage == "notarize"
        assert runner.commands("xcrun", "stapler") == []

    def test_unparseable_feed_stops_before_changelog(self, tmp_path: Path) -> None:
        root = _project(tmp_path)
        (root / "Appcast.xml").write_text("<rss/>\n", encoding="utf-8")

        result = _pipeline(root, _runner(root), MockConsole()).run("1.1.0")

        assert isinstance(result, Err)
        assert result.error.stage == "update-feed"
        assert result.error.error.kind == "feed_unparseable"
        assert (root / "CHANGELOG.md").read_text(encoding="utf-8") == CHANGELOG

    def test_push_rejected_skips_publish(self, tmp_path: Path) -> None:
        root = _project(tmp_path)
        runner = _runner(root)
        runner.fail(["git", "push"], stderr="rejected")

        result = _pipeline(root, runner, MockConsole()).run("1.1.0")

        assert isinstance(result, Err)
        assert result.error.stage == "push"
        assert result.error.error.kind == "publish_failed"
        assert runner.commands("gh") == []


class TestStopAfter:
    def test_validation_only(self, tmp_path: Path) -> None:
        root = _project(tmp_path)
        runner = _runner(root)
        console = MockConsole()

        result = _pipeline(
            root, runner, console, secrets=None, stop_after=LAST_VALIDATION_STAGE
        ).run("1.1.0")

        assert isinstance(result, Ok)
        assert result.value.completed == ("resolve-version", "parse-changelog", "validate-version")
        assert result.value.changed_files == ()
        assert console.stages == ["resolve-version", "parse-changelog", "validate-version"]
        assert [c.cmd for c in runner.calls] == [["git", "tag", "--list", "1.1.0"]]

    def test_unknown_stage(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="unknown stage"):
            _pipeline(tmp_path, FakeRunner(), MockConsole(), stop_after="deploy")


class TestRunOrAbort:
    def test_abort_handler_called_once(self, tmp_path: Path) -> None:
        root = _project(tmp_path)
        failures: list[StageFailure] = []

        summary = _pipeline(root, _runner(root), MockConsole(), on_abort=failures.append).run_or_abort(
            "nope"
        )

        assert summary is None
        assert len(failures) == 1
        assert failures[0].stage == "resolve-version"
        assert failures[0].pretty().startswith("[resolve-version] ")

    def test_success_skips_handler(self, tmp_path: Path) -> None:
        root = _project(tmp_path)
        failures: list[StageFailure] = []

        summary = _pipeline(root, _runner(root), MockConsole(), on_abort=failures.append).run_or_abort(
            "1.1.0"
        )

        assert summary is not None
        assert summary.version == "1.1.0"
        assert failures == []

    def test_without_handler_raises(self, tmp_path: Path) -> None:
        root = _project(tmp_path)

        with pytest.raises(RuntimeError, match="release failed"):
            _pipeline(root, _runner(root), MockConsole()).run_or_abort("nope")
