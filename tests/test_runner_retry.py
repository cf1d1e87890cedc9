"""Tests for src/runner/retry.py: replaying commands from history."""

import pytest

from src.core.exceptions import MalformedHistoryError, MissingHistoryError, RetryUsageError
from src.runner.history import HistoryLog
from src.runner.retry import (
    parse_command_line,
    parse_retry_request,
    resolve_retry,
    select_command_line,
)


@pytest.fixture
def history(tmp_path) -> HistoryLog:
    log = HistoryLog(tmp_path / "history")
    log.path.write_text("3\tbpipe run a.pipe in1.txt\n5\tbpipe test a.pipe in2.txt\n")
    return log


class TestParseRetryRequest:
    def test_no_args(self):
        request = parse_retry_request([])
        assert request.job_selector is None
        assert request.test_mode is False

    def test_test_then_selector(self):
        request = parse_retry_request(["test", "3"])
        assert request.job_selector == 3
        assert request.test_mode is True

    def test_test_alone(self):
        request = parse_retry_request(["test"])
        assert request.job_selector is None
        assert request.test_mode is True

    def test_non_integer_selector(self):
        with pytest.raises(RetryUsageError, match="could not be parsed as integer"):
            parse_retry_request(["abc"])

    def test_extra_tokens_rejected(self):
        with pytest.raises(RetryUsageError):
            parse_retry_request(["3", "4"])


class TestSelectCommandLine:
    def test_empty_history(self):
        with pytest.raises(MissingHistoryError, match="No previous Bpipe command"):
            select_command_line([], parse_retry_request([]))

    def test_newest_match_wins_for_duplicate_selectors(self):
        lines = ["7\tbpipe run old.py x", "8\tbpipe run other.py y", "7\tbpipe run new.py z"]
        assert select_command_line(lines, parse_retry_request(["7"])) == "7\tbpipe run new.py z"

    def test_selector_must_match_whole_field(self):
        lines = ["33\tbpipe run a.py x"]
        with pytest.raises(MissingHistoryError, match="job id 3"):
            select_command_line(lines, parse_retry_request(["3"]))


class TestParseCommandLine:
    def test_strips_job_id(self):
        assert parse_command_line("12\tbpipe run a.py in1.txt") == ("run", ["a.py", "in1.txt"])

    def test_without_job_id(self):
        assert parse_command_line("bpipe test a.py") == ("test", ["a.py"])

    def test_placeholder_job_id(self):
        assert parse_command_line("command\tbpipe run a.py") == ("run", ["a.py"])

    def test_quoted_arguments(self):
        mode, args = parse_command_line("1\tbpipe run -p 'label=two words' a.py 'in 1.txt'")
        assert mode == "run"
        assert args == ["-p", "label=two words", "a.py", "in 1.txt"]

    def test_grammar_mismatch_is_internal_error(self):
        with pytest.raises(MalformedHistoryError, match="Internal error"):
            parse_command_line("1\tsomething else entirely")


class TestResolveRetry:
    def test_no_args_resolves_newest(self, history):
        assert resolve_retry(history, []) == ("test", ["a.pipe", "in2.txt"])

    def test_selector(self, history):
        assert resolve_retry(history, ["3"]) == ("run", ["a.pipe", "in1.txt"])

    def test_test_mode_forced(self, history):
        assert resolve_retry(history, ["test", "3"]) == ("run", ["-t", "a.pipe", "in1.txt"])

    def test_missing_log(self, tmp_path):
        with pytest.raises(MissingHistoryError):
            resolve_retry(HistoryLog(tmp_path / "absent"), [])

    def test_replay_is_idempotent(self, history):
        assert resolve_retry(history, ["5"]) == resolve_retry(history, ["5"])

    def test_recorded_vector_round_trips(self, tmp_path):
        log = HistoryLog(tmp_path / "history")
        argv = ["-p", "sample=patient one", "a.py", "reads 1.fq", "reads_2.fq"]
        log.append("9", "run", argv)
        assert resolve_retry(log, []) == ("run", argv)

    @pytest.mark.parametrize(
        "arg",
        ["x\ny", "x\r\ny", "x\x1cy", "x y", "page\fbreak", "it's\nmultiline"],
    )
    def test_line_separators_in_arguments_round_trip(self, tmp_path, arg):
        log = HistoryLog(tmp_path / "history")
        log.append("7", "run", ["a.pipe", arg])
        log.append("8", "run", ["b.pipe"])

        assert len(log.read_lines()) == 2
        assert resolve_retry(log, ["7"]) == ("run", ["a.pipe", arg])
        assert resolve_retry(log, []) == ("run", ["b.pipe"])
