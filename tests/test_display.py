"""
Tests for terminal output: file list, message display, styling and the spinner.

Run with:
    pytest tests/test_display.py -v
"""

import asyncio
import io
import re

import pytest

import aicommit.output as output

from aicommit.git.diff_processor import ProcessedDiff
from aicommit.cli.main import _display_file_list, _display_message, _choose
from aicommit.cli.utils import add_ticket_reference, format_option
from aicommit.cli.commands import report_provider_error
from aicommit.errors import ErrorKind, ProviderError
from aicommit.output import Spinner, colorize_circuit_state, colorize_commit_type, paint
from aicommit.resilience import CircuitBreaker

ANSI_RE = re.compile(r'\033\[[0-9;]*m')


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def strip_ansi():
    """Return a function that removes ANSI escape codes."""
    def _strip(text: str) -> str:
        return ANSI_RE.sub('', text)
    return _strip


@pytest.fixture
def make_processed():
    """Return a factory that builds ProcessedDiff from a file list."""
    def _make(file_details, filtered=0):
        return ProcessedDiff(
            summary="",
            diff="",
            total_files=len(file_details) + filtered,
            included_files=len(file_details),
            filtered_files=filtered,
            file_details=file_details,
        )
    return _make


# ---------------------------------------------------------------------------
# File list display
# ---------------------------------------------------------------------------

class TestDisplayFileList:
    """Output from _display_file_list()."""

    def test_small_list_shows_all(self, capsys, make_processed):
        p = make_processed([
            ("src/utils/validator.py", 15, 3),
            ("src/utils/__init__.py", 1, 0),
            ("tests/test_validator.py", 22, 0),
        ])
        _display_file_list(p)
        out = capsys.readouterr().out

        assert "Staged changes:" in out
        assert "src/utils/validator.py (+15 -3)" in out
        assert "src/utils/__init__.py (+1 -0)" in out
        assert "tests/test_validator.py (+22 -0)" in out
        assert "..." not in out

    def test_large_list_collapses(self, capsys, make_processed):
        files = [(f"src/mod_{i}.py", 10 + i, i) for i in range(12)]
        _display_file_list(make_processed(files))
        out = capsys.readouterr().out

        assert "src/mod_0.py" in out
        assert "src/mod_7.py" in out
        assert "src/mod_8.py" not in out
        assert "... and 4 more files" in out

    def test_max_shown_from_config(self, capsys, make_processed):
        files = [(f"src/mod_{i}.py", 1, 0) for i in range(5)]
        _display_file_list(make_processed(files), max_shown=2)
        out = capsys.readouterr().out

        assert "src/mod_1.py" in out
        assert "src/mod_2.py" not in out
        assert "... and 3 more files" in out

    def test_shows_filtered_count(self, capsys, make_processed):
        _display_file_list(make_processed([("src/app.py", 5, 2)], filtered=3))
        assert "3 noise files filtered" in capsys.readouterr().out

    def test_hides_filtered_when_zero(self, capsys, make_processed):
        _display_file_list(make_processed([("src/app.py", 5, 2)], filtered=0))
        assert "noise" not in capsys.readouterr().out

    def test_empty_details_prints_nothing(self, capsys, make_processed):
        _display_file_list(make_processed([]))
        assert capsys.readouterr().out == ""


# ---------------------------------------------------------------------------
# Commit message display
# ---------------------------------------------------------------------------

class TestDisplayMessage:
    """Output from _display_message()."""

    def test_subject_with_ticket_trailer(self, capsys, strip_ansi):
        _display_message("feat(auth): add JWT token refresh\n\nRefs: PROJ-42")
        out = strip_ansi(capsys.readouterr().out)

        assert "feat(auth): add JWT token refresh" in out
        assert "Refs: PROJ-42" in out

    def test_subject_only(self, capsys, strip_ansi):
        _display_message("fix(api): handle null response")
        assert "fix(api): handle null response" in strip_ansi(capsys.readouterr().out)

    def test_has_horizontal_rules(self, capsys, strip_ansi):
        _display_message("chore: update dependencies")
        out = strip_ansi(capsys.readouterr().out)
        lines = [l for l in out.split("\n") if l.strip()]

        assert set(lines[0].strip()) <= {"─", "-"}
        assert set(lines[-1].strip()) <= {"─", "-"}
        assert len(lines[0].strip()) == len("chore: update dependencies")


# ---------------------------------------------------------------------------
# Candidate selection and ticket trailers
# ---------------------------------------------------------------------------

class TestCandidates:

    def test_format_option_numbers_candidates(self, strip_ansi):
        assert strip_ansi(format_option("fix(api): handle timeout", 2)) == "[2] fix(api): handle timeout"

    def test_choose_single_candidate_skips_prompt(self):
        assert _choose(["feat: add one thing"], is_interactive=True) == "feat: add one thing"

    def test_choose_non_interactive_takes_first(self):
        assert _choose(["feat: first option", "feat: second option"], is_interactive=False) == "feat: first option"

    def test_choose_reads_selection(self, monkeypatch, capsys):
        answers = iter(["7", "2"])
        monkeypatch.setattr("builtins.input", lambda _prompt: next(answers))
        chosen = _choose(["feat: first option", "feat: second option"], is_interactive=True)

        assert chosen == "feat: second option"
        assert "Enter 1-2 or q" in capsys.readouterr().out

    def test_choose_quit_returns_none(self, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda _prompt: "q")
        assert _choose(["feat: first option", "feat: second option"], is_interactive=True) is None

    @pytest.mark.parametrize("message, ticket, prefix, expected", [
        pytest.param("feat: add login", "proj-1", "Refs", "feat: add login\n\nRefs: PROJ-1", id="appends"),
        pytest.param("feat: add login", None, "Refs", "feat: add login", id="no-ticket"),
        pytest.param("feat: add login", "PROJ-1", "Closes", "feat: add login\n\nCloses: PROJ-1", id="prefix"),
        pytest.param("feat: add login\n\nRefs: PROJ-1", "PROJ-1", "Refs",
                     "feat: add login\n\nRefs: PROJ-1", id="not-twice"),
    ])
    def test_add_ticket_reference(self, message, ticket, prefix, expected):
        assert add_ticket_reference(message, ticket, prefix) == expected

    def test_circuit_state_text_is_kept(self, strip_ansi):
        assert strip_ansi(colorize_circuit_state("HALF_OPEN")) == "HALF_OPEN"




# ---------------------------------------------------------------------------
# Styling
# ---------------------------------------------------------------------------

class TestStyling:

    @pytest.fixture
    def colors_on(self, monkeypatch):
        monkeypatch.setattr(output, "COLORS_ENABLED", True)

    def test_paint_is_plain_without_colors(self, monkeypatch):
        monkeypatch.setattr(output, "COLORS_ENABLED", False)
        assert paint("done", "green") == "done"

    def test_paint_wraps_and_resets(self, colors_on):
        assert paint("done", "bold", "green") == "\033[1m\033[32mdone\033[0m"

    def test_commit_type_prefix_colored(self, colors_on, strip_ansi):
        colored = colorize_commit_type("fix(api): handle null response\n\nRefs: PROJ-9")

        assert colored.startswith("\033[1m\033[31mfix(api):\033[0m handle")
        assert colored.endswith("\n\nRefs: PROJ-9")
        assert strip_ansi(colored) == "fix(api): handle null response\n\nRefs: PROJ-9"

    def test_unknown_type_left_alone(self, colors_on):
        assert colorize_commit_type("wip: half done") == "wip: half done"

    def test_breaking_change_marker(self, colors_on):
        assert colorize_commit_type("feat!: drop python 3.9").startswith("\033[1m\033[32mfeat!:")

    def test_no_color_env_wins(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        monkeypatch.setenv("FORCE_COLOR", "1")
        assert output._supports_color(io.StringIO()) is False

    def test_force_color_without_tty(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("FORCE_COLOR", "1")
        assert output._supports_color(io.StringIO()) is True


# ---------------------------------------------------------------------------
# Spinner
# ---------------------------------------------------------------------------

class TtyBuffer(io.StringIO):
    def isatty(self):
        return True


class TestSpinner:

    @pytest.mark.asyncio
    async def test_draws_frames_then_clears_line(self):
        stream = TtyBuffer()
        async with Spinner("generating", stream=stream) as spinner:
            await asyncio.sleep(Spinner.INTERVAL * 3)

        out = stream.getvalue()
        assert "generating" in out
        assert out.endswith("\r\033[K")
        assert spinner.elapsed > 0

    @pytest.mark.asyncio
    async def test_silent_when_not_a_tty(self):
        stream = io.StringIO()
        async with Spinner("generating", stream=stream) as spinner:
            await asyncio.sleep(0)

        assert stream.getvalue() == ""
        assert spinner.elapsed >= 0

    @pytest.mark.asyncio
    async def test_error_inside_block_still_stops_spinner(self):
        stream = TtyBuffer()
        spinner = Spinner("generating", stream=stream)
        with pytest.raises(ProviderError):
            async with spinner:
                await asyncio.sleep(0)
                raise ProviderError(ErrorKind.TIMEOUT, provider="Ollama")

        assert spinner._task is None
        assert stream.getvalue().endswith("\r\033[K")


# ---------------------------------------------------------------------------
# Provider error report
# ---------------------------------------------------------------------------

class BreakerHolder:
    def __init__(self, breaker):
        self.breaker = breaker


async def _fail():
    raise ConnectionError("refused")


class TestReportProviderError:

    def test_message_on_stderr(self, capsys, strip_ansi):
        report_provider_error(ProviderError(ErrorKind.TIMEOUT, provider="Ollama"))
        captured = capsys.readouterr()

        assert captured.out == ""
        assert "Request to Ollama timed out" in strip_ansi(captured.err)

    def test_closed_circuit_not_mentioned(self, capsys):
        report_provider_error(ProviderError(ErrorKind.SERVER, provider="Claude"), BreakerHolder(CircuitBreaker()))
        assert "circuit" not in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_open_circuit_reported(self, capsys, strip_ansi):
        breaker = CircuitBreaker(failure_threshold=1, name="Claude")
        with pytest.raises(ConnectionError):
            await breaker.execute(_fail)

        report_provider_error(ProviderError(ErrorKind.CONNECTIVITY, provider="Claude"), BreakerHolder(breaker))
        assert "circuit OPEN: 1 recent failures" in strip_ansi(capsys.readouterr().err)
