"""Tests for relkit.output.console module."""

from __future__ import annotations

from relkit.output.console import (
    ConsoleProtocol,
    MockConsole,
    OutputRecord,
    RichConsole,
    Style,
)


class TestStyle:
    def test_str_conversion(self) -> None:
        assert str(Style.SUCCESS) == "success"
        assert str(Style.DIM) == "dim"
        assert str(Style.HEADER) == "header"

    def test_all_styles_exist(self) -> None:
        expected = {"DEFAULT", "SUCCESS", "ERROR", "WARNING", "INFO", "DIM", "HEADER"}
        assert {s.name for s in Style} == expected


class TestMockConsole:
    """Test MockConsole for testing purposes."""

    def test_print_captures_message(self) -> None:
        console = MockConsole()
        console.print("hello")
        assert console.outputs == [OutputRecord("hello", Style.DEFAULT)]

    def test_prefixed_levels(self) -> None:
        console = MockConsole()
        console.success("done")
        console.error("bad")
        console.warning("careful")
        console.info("fyi")

        assert console.messages == ["OK done", "error: bad", "warning: careful", "info: fyi"]
        assert console.has_error()

    def test_stage_banners(self) -> None:
        console = MockConsole()
        console.header("Released 1.1.0")
        console.stage(1, 3, "resolve-version")
        console.stage(2, 3, "parse-changelog")

        assert console.stages == ["resolve-version", "parse-changelog"]
        assert console.outputs[1].message == "[1/3] resolve-version"

    def test_find(self) -> None:
        console = MockConsole()
        console.print("git tag 1.1.0", Style.DIM)
        console.print("git push", Style.DIM)

        assert len(console.find("git")) == 2
        assert console.find("tag")[0].message == "git tag 1.1.0"

    def test_text(self) -> None:
        console = MockConsole()
        console.print("a")
        console.print("b")
        assert console.text == "a\nb"

    def test_no_error_initially(self) -> None:
        assert not MockConsole().has_error()


class TestRichConsole:
    def test_satisfies_protocol(self) -> None:
        console: ConsoleProtocol = RichConsole()
        assert console is not None

    def test_brackets_printed_literally(self, capsys) -> None:
        console = RichConsole()
        console.print("## [Unreleased]")
        console.stage(1, 2, "parse-changelog")

        out = capsys.readouterr().out
        assert "## [Unreleased]" in out
        assert "[1/2] parse-changelog" in out
