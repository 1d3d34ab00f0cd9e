# module for builtin commands and command-name resolution

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from pathsearch import resolve
from session import ShellSession

logger = logging.getLogger(__name__)


class ShellExit(Exception):
    """Raised by the `exit` builtin to stop the REPL with ``code``."""

    def __init__(self, code: int = 0, message: Optional[str] = None) -> None:
        super().__init__(code)
        self.code = code
        # Complaint to report before leaving, e.g. a bad exit code
        self.message = message


@dataclass
class BuiltinResult:
    """Text produced by a builtin. ``None`` means nothing was written.

    Text carries no trailing newline; whoever writes it adds one.
    """
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    exit_code: int = 0


BuiltinFunc = Callable[[List[str], ShellSession], BuiltinResult]

BUILTINS: Dict[str, BuiltinFunc] = {}


def builtin(name: str) -> Callable[[BuiltinFunc], BuiltinFunc]:
    def register(func: BuiltinFunc) -> BuiltinFunc:
        BUILTINS[name] = func
        return func
    return register


@dataclass
class CommandTarget:
    """What a command name refers to: a builtin, an executable, or nothing."""
    name: str
    builtin: Optional[BuiltinFunc] = None
    path: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.builtin is not None or self.path is not None


def lookup(name: str, session: ShellSession) -> CommandTarget:
    func = BUILTINS.get(name)
    if func is not None:
        return CommandTarget(name, builtin=func)
    path = resolve(name, session.search_path)
    logger.debug("resolved %r -> %r", name, path)
    return CommandTarget(name, path=path)


def _error(message: str, code: int = 1) -> BuiltinResult:
    return BuiltinResult(stderr=message, exit_code=code)


@builtin("exit")
def builtin_exit(args: List[str], session: ShellSession) -> BuiltinResult:
    if not args:
        raise ShellExit(0)
    try:
        code = int(args[0])
    except ValueError:
        # bash complains, then exits anyway
        raise ShellExit(2, f"exit: {args[0]}: numeric argument required")
    raise ShellExit(code & 0xFF)


@builtin("echo")
def builtin_echo(args: List[str], session: ShellSession) -> BuiltinResult:
    return BuiltinResult(stdout=" ".join(args))


@builtin("pwd")
def builtin_pwd(args: List[str], session: ShellSession) -> BuiltinResult:
    return BuiltinResult(stdout=session.cwd)


@builtin("cd")
def builtin_cd(args: List[str], session: ShellSession) -> BuiltinResult:
    path = args[0] if args else "~"
    if path == "~":
        target = session.home
    elif path.startswith("~/"):
        target = session.home + path[1:]
    else:
        target = path
    try:
        session.chdir(target)
    except OSError as e:
        return _error(f"cd: {path}: {e.strerror}")
    return BuiltinResult()


@builtin("type")
def builtin_type(args: List[str], session: ShellSession) -> BuiltinResult:
    if not args:
        return BuiltinResult()
    lines: List[str] = []
    code = 0
    for name in args:
        if name in BUILTINS:
            lines.append(f"{name} is a shell builtin")
            continue
        path = resolve(name, session.search_path)
        if path:
            lines.append(f"{name} is {path}")
        else:
            lines.append(f"{name}: not found")
            code = 1
    return BuiltinResult(stdout="\n".join(lines), exit_code=code)


def _format_history(session: ShellSession, start: int) -> Optional[str]:
    entries = [f"{idx:>4} {entry}"
               for idx, entry in enumerate(session.history[start:], start=start + 1)]
    return "\n".join(entries) if entries else None


@builtin("history")
def builtin_history(args: List[str], session: ShellSession) -> BuiltinResult:
    if not args:
        return BuiltinResult(stdout=_format_history(session, 0))

    opt = args[0]
    if opt in ("-r", "-w", "-a"):
        if len(args) < 2:
            return _error(f"history: {opt}: option requires an argument", 2)
        path = args[1]
        try:
            if opt == "-r":
                session.load_history(path)
            else:
                session.write_history(path, append=(opt == "-a"))
        except OSError as e:
            return _error(f"history: {path}: {e.strerror}")
        return BuiltinResult()

    if not opt.isdigit():
        return _error(f"history: {opt}: numeric argument required", 2)
    count = int(opt)
    if count == 0:
        return BuiltinResult()
    start = max(0, len(session.history) - count)
    return BuiltinResult(stdout=_format_history(session, start))
