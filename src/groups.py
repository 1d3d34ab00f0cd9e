"""Grouping and tokenization utilities for minish.

This module turns a raw input line into the pieces the executor works with:
word tokens (with shell quoting applied), pipeline stages split on unquoted
``|``, and per-command redirection descriptors.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

# Characters a backslash may escape inside double quotes
DOUBLE_QUOTE_ESCAPES = {'"', '\\', '$', '`', '\n'}

WHITESPACE = {' ', '\t'}

# Redirection operators -> (stream, append). Longest first so that a
# concatenated token like "1>>out" is not read as "1>" + ">out".
REDIRECT_OPERATORS: list[tuple[str, str, bool]] = [
    ("1>>", "stdout", True),
    ("2>>", "stderr", True),
    (">>", "stdout", True),
    ("1>", "stdout", False),
    ("2>", "stderr", False),
    (">", "stdout", False),
]


@dataclass
class Redirection:
    """Where a command's output streams go, plus the words that are left."""
    stdout: Optional[str] = None
    append_stdout: bool = False
    stderr: Optional[str] = None
    append_stderr: bool = False
    args: list[str] = field(default_factory=list)


@dataclass
class CommandGroup:
    """A simple command: its name, residual args and redirections."""
    name: str
    args: list[str]
    redirection: Redirection


# --- Tokenization ---

def tokenize(line: str) -> list[str]:
    """Split a line into words, applying quote and backslash rules.

    Quote characters are removed. Unterminated quotes are not an error: the
    word collected so far is flushed at end of input.
    """
    tokens: list[str] = []
    buf: list[str] = []
    # A quoted empty string ('' or "") still makes a word
    have_word = False
    in_single = False
    in_double = False
    i = 0
    n = len(line)

    while i < n:
        ch = line[i]
        if in_single:
            if ch == "'":
                in_single = False
            else:
                buf.append(ch)
            i += 1
            continue
        if in_double:
            if ch == '"':
                in_double = False
            elif ch == '\\' and i + 1 < n and line[i + 1] in DOUBLE_QUOTE_ESCAPES:
                buf.append(line[i + 1])
                i += 1
            else:
                buf.append(ch)
            i += 1
            continue

        if ch == '\\':
            if i + 1 < n:
                buf.append(line[i + 1])
                i += 2
            else:
                buf.append(ch)
                i += 1
            have_word = True
            continue
        if ch == "'":
            in_single = True
            have_word = True
        elif ch == '"':
            in_double = True
            have_word = True
        elif ch in WHITESPACE:
            if have_word or buf:
                tokens.append(''.join(buf))
            buf = []
            have_word = False
        else:
            buf.append(ch)
        i += 1

    if have_word or buf:
        tokens.append(''.join(buf))
    return tokens


def _unquoted_pipe_positions(line: str) -> list[int]:
    positions: list[int] = []
    in_single = False
    in_double = False
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if in_single:
            if ch == "'":
                in_single = False
        elif in_double:
            if ch == '"':
                in_double = False
            elif ch == '\\':
                i += 1
        elif ch == '\\':
            i += 1
        elif ch == "'":
            in_single = True
        elif ch == '"':
            in_double = True
        elif ch == '|':
            positions.append(i)
        i += 1
    return positions


def has_pipe(line: str) -> bool:
    return bool(_unquoted_pipe_positions(line))


def split_pipeline(line: str) -> list[str]:
    """Split a line on unquoted ``|`` into trimmed stage strings."""
    stages: list[str] = []
    start = 0
    for pos in _unquoted_pipe_positions(line):
        stages.append(line[start:pos].strip())
        start = pos + 1
    stages.append(line[start:].strip())
    return stages


# --- Redirection ---

def _match_operator(token: str) -> Optional[tuple[str, str, bool]]:
    for op, stream, append in REDIRECT_OPERATORS:
        if token.startswith(op):
            return op, stream, append
    return None


def parse_redirection(tokens: list[str]) -> Redirection:
    """Pull redirection operators and targets out of ``tokens``.

    ``tokens`` excludes the command name. Later operators for the same stream
    override earlier ones; an operator with nothing after it is dropped.
    """
    redir = Redirection()
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        matched = _match_operator(tok)
        if matched is None:
            redir.args.append(tok)
            i += 1
            continue
        op, stream, append = matched
        if len(tok) > len(op):
            target: Optional[str] = tok[len(op):]
            i += 1
        elif i + 1 < len(tokens):
            target = tokens[i + 1]
            i += 2
        else:
            target = None
            i += 1
        if target is None:
            continue
        if stream == "stdout":
            redir.stdout = target
            redir.append_stdout = append
        else:
            redir.stderr = target
            redir.append_stderr = append
    return redir


def parse_command(text: str) -> Optional[CommandGroup]:
    """Tokenize one pipeline stage into a command, or None if it has no words."""
    words = tokenize(text)
    if not words:
        return None
    redir = parse_redirection(words[1:])
    return CommandGroup(name=words[0], args=redir.args, redirection=redir)
