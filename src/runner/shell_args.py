"""Shell-style quoting and splitting for recorded command lines.

Grammar (no shell is involved):

* unescaped whitespace separates tokens;
* ``'...'`` groups its content verbatim;
* ``"..."`` groups its content, where ``\\"``, ``\\\\``, ``\\n`` and ``\\r``
  are escapes;
* outside quotes a backslash escapes the next character;
* quote characters are consumed, and quoted sections may abut plain text
  (``a'b c'`` is the single token ``ab c``).

An unterminated quote runs to the end of the text. Quoted output never
contains a raw line break, so one command always fits on one history line.
"""

from __future__ import annotations

_QUOTES = "'\""
_SPECIAL = set("'\"\\")
_LINE_BREAKS = set("\n\r")
_DOUBLE_QUOTE_ESCAPES = {'"': '"', "\\": "\\", "n": "\n", "r": "\r"}


def split_shell_args(text: str) -> list[str]:
    tokens: list[str] = []
    current: list[str] = []
    in_token = False
    quote: str | None = None
    i = 0
    while i < len(text):
        ch = text[i]
        if quote is not None:
            if ch == quote:
                quote = None
            elif (
                quote == '"'
                and ch == "\\"
                and i + 1 < len(text)
                and text[i + 1] in _DOUBLE_QUOTE_ESCAPES
            ):
                i += 1
                current.append(_DOUBLE_QUOTE_ESCAPES[text[i]])
            else:
                current.append(ch)
        elif ch in _QUOTES:
            quote = ch
            in_token = True
        elif ch == "\\" and i + 1 < len(text):
            i += 1
            current.append(text[i])
            in_token = True
        elif ch.isspace():
            if in_token:
                tokens.append("".join(current))
                current = []
                in_token = False
        else:
            current.append(ch)
            in_token = True
        i += 1

    if in_token:
        tokens.append("".join(current))
    return tokens


def quote_arg(arg: str) -> str:
    """Quote one argument so split_shell_args gives it back unchanged."""
    if arg and not any(ch.isspace() or ch in _SPECIAL for ch in arg):
        return arg
    if "'" not in arg and not _LINE_BREAKS.intersection(arg):
        return f"'{arg}'"
    escaped = (
        arg.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
    return f'"{escaped}"'


def join_shell_args(args: list[str]) -> str:
    return " ".join(quote_arg(a) for a in args)
