"""Tests for src/runner/shell_args.py: quoting and splitting."""

import pytest

from src.runner.shell_args import join_shell_args, quote_arg, split_shell_args


class TestSplitShellArgs:
    def test_whitespace_separates(self):
        assert split_shell_args("a.py  in1.txt\tin2.txt") == ["a.py", "in1.txt", "in2.txt"]

    def test_single_quotes_group_verbatim(self):
        assert split_shell_args("a.py 'my file.txt' b") == ["a.py", "my file.txt", "b"]

    def test_double_quotes_group(self):
        assert split_shell_args('-p "name=two words"') == ["-p", "name=two words"]

    def test_quotes_inside_other_quotes_are_literal(self):
        assert split_shell_args("\"it's\" 'say \"hi\"'") == ["it's", 'say "hi"']

    def test_adjacent_quoted_sections_join(self):
        assert split_shell_args("a'b c'd") == ["ab cd"]

    def test_empty_quoted_token(self):
        assert split_shell_args("a '' b") == ["a", "", "b"]

    def test_backslash_escapes_space(self):
        assert split_shell_args(r"my\ file.txt other") == ["my file.txt", "other"]

    def test_unterminated_quote_runs_to_end(self):
        assert split_shell_args("a 'b c") == ["a", "b c"]

    def test_empty_text(self):
        assert split_shell_args("   ") == []


class TestQuoteArg:
    def test_plain_args_unchanged(self):
        assert quote_arg("in1.txt") == "in1.txt"
        assert quote_arg("threads=4") == "threads=4"

    def test_whitespace_is_single_quoted(self):
        assert quote_arg("my file.txt") == "'my file.txt'"

    def test_single_quote_uses_double_quotes(self):
        assert quote_arg("it's here") == '"it\'s here"'

    def test_empty_arg(self):
        assert quote_arg("") == "''"

    def test_line_breaks_are_escaped(self):
        assert quote_arg("x\ny") == '"x\\ny"'
        assert quote_arg("x\r\ny") == '"x\\r\\ny"'

    def test_other_separators_are_quoted(self):
        assert quote_arg("x\x1cy") == "'x\x1cy'"

    @pytest.mark.parametrize(
        "args",
        [
            ["a.py", "in 1.txt", "-p", "label=two words"],
            ["it's a file", 'say "hi" now', "back\\slash path"],
            ["", "tab\tseparated"],
            ["two\nlines", "crlf\r\nend", "group\x1dsep", "back\\n literal", "it's back\\n"],
        ],
    )
    def test_join_then_split_gives_original(self, args):
        assert split_shell_args(join_shell_args(args)) == args
