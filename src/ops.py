from __future__ import annotations

import logging
import os
import subprocess
import sys
import threading
from contextlib import ExitStack
from typing import IO, List, Optional, Tuple

from command import BuiltinFunc, BuiltinResult, CommandTarget, ShellExit, lookup
from groups import CommandGroup, Redirection, has_pipe, parse_command, split_pipeline
from session import ShellSession

logger = logging.getLogger(__name__)


def _report(message: str, stream: Optional[IO[bytes]] = None) -> None:
    """Write a one-line error to a redirect target, or to our stderr."""
    if stream is not None:
        stream.write((message + "\n").encode())
        stream.flush()
        return
    sys.stderr.write(message + "\n")
    sys.stderr.flush()


def _os_error_message(name: str, e: OSError) -> str:
    reason = e.strerror or str(e)
    if e.filename:
        return f"{name}: {e.filename}: {reason}"
    return f"{name}: {reason}"


def _open_target(path: str, append: bool) -> IO[bytes]:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    return open(path, 'ab' if append else 'wb')


def _open_redirections(redir: Redirection, stack: ExitStack) -> Tuple[Optional[IO[bytes]], Optional[IO[bytes]]]:
    # Returns (stdout_file, stderr_file); files are closed with the stack
    out = err = None
    if redir.stdout is not None:
        out = stack.enter_context(_open_target(redir.stdout, redir.append_stdout))
    if redir.stderr is not None:
        err = stack.enter_context(_open_target(redir.stderr, redir.append_stderr))
    return out, err


def _write_text(text: Optional[str], target: Optional[IO[bytes]], fallback: IO[str]) -> None:
    if text is None:
        return
    data = text + "\n"
    if target is not None:
        target.write(data.encode())
        target.flush()
    else:
        fallback.write(data)
        fallback.flush()


def _exit_status(proc: subprocess.Popen) -> int:
    rc = proc.returncode
    if rc is None:
        return 0
    # Killed by a signal: report it the way sh does
    return 128 - rc if rc < 0 else rc


def _emit_builtin_result(name: str, result: BuiltinResult, redir: Redirection) -> int:
    """Print a builtin's text, honouring its stdout/stderr redirections."""
    with ExitStack() as stack:
        try:
            out, err = _open_redirections(redir, stack)
        except OSError as e:
            _report(_os_error_message(name, e))
            return 1
        _write_text(result.stdout, out, sys.stdout)
        _write_text(result.stderr, err, sys.stderr)
    return result.exit_code


def _run_external(cmd: CommandGroup, target: CommandTarget, session: ShellSession) -> int:
    with ExitStack() as stack:
        try:
            out, err = _open_redirections(cmd.redirection, stack)
        except OSError as e:
            _report(_os_error_message(cmd.name, e))
            return 1

        # Anything we printed must reach the terminal before the child's output
        sys.stdout.flush()
        try:
            proc = subprocess.Popen(
                [cmd.name, *cmd.args],
                executable=target.path,
                stdout=out,
                stderr=err,
                env=session.get_env(),
            )
        except OSError as e:
            _report(_os_error_message(cmd.name, e), err)
            return 126
        logger.debug("spawned %s (pid %d)", target.path, proc.pid)
        proc.wait()
        return _exit_status(proc)


def _exec_simple(cmd: CommandGroup, session: ShellSession) -> int:
    target = lookup(cmd.name, session)
    if target.builtin is not None:
        try:
            result = target.builtin(cmd.args, session)
        except ShellExit as e:
            if e.message is not None:
                _emit_builtin_result(cmd.name, BuiltinResult(stderr=e.message), cmd.redirection)
            raise
        return _emit_builtin_result(cmd.name, result, cmd.redirection)
    if target.path is not None:
        return _run_external(cmd, target, session)
    not_found = BuiltinResult(stderr=f"{cmd.name}: command not found", exit_code=127)
    return _emit_builtin_result(cmd.name, not_found, cmd.redirection)


# ---- Pipelines ----

def _feed(stream: IO[bytes], data: bytes) -> None:
    """Copy a builtin's buffered output into the next stage, then close it."""
    try:
        with stream:
            stream.write(data)
    except BrokenPipeError:
        logger.debug("pipeline stage closed its input before reading %d bytes", len(data))


def _start_feeder(stream: IO[bytes], data: bytes) -> threading.Thread:
    t = threading.Thread(target=_feed, args=(stream, data), daemon=True)
    t.start()
    return t


def _run_pipeline_builtin(func: BuiltinFunc, cmd: CommandGroup, session: ShellSession) -> BuiltinResult:
    try:
        return func(cmd.args, session)
    except ShellExit as e:
        # A pipeline stage cannot end the shell
        return BuiltinResult(stderr=e.message, exit_code=e.code)


def _build_pipeline(stages: List[str], session: ShellSession) -> Tuple[Optional[List[Tuple[CommandGroup, CommandTarget]]], int]:
    """Parse and resolve every stage.

    On failure the problem is reported and ``(None, status)`` returned, so
    nothing in the pipeline runs.
    """
    commands: List[Tuple[CommandGroup, CommandTarget]] = []
    for text in stages:
        cmd = parse_command(text)
        if cmd is None:
            _report("syntax error near unexpected token '|'")
            return None, 2
        target = lookup(cmd.name, session)
        if not target.found:
            _report(f"{cmd.name}: command not found")
            return None, 127
        commands.append((cmd, target))
    return commands, 0


def _exec_pipeline(stages: List[str], session: ShellSession) -> int:
    commands, status = _build_pipeline(stages, session)
    if commands is None:
        return status

    procs: List[subprocess.Popen] = []
    feeders: List[threading.Thread] = []
    prev_stdout: Optional[IO[bytes]] = None
    pending: Optional[bytes] = None
    tail_proc: Optional[subprocess.Popen] = None
    last_status = 0

    sys.stdout.flush()
    try:
        for idx, (cmd, target) in enumerate(commands):
            is_last = idx == len(commands) - 1

            if target.builtin is not None:
                # Builtins never read stdin; let the upstream writer see EOF/EPIPE
                if prev_stdout is not None:
                    prev_stdout.close()
                    prev_stdout = None
                result = _run_pipeline_builtin(target.builtin, cmd, session)
                if is_last:
                    last_status = _emit_builtin_result(cmd.name, result, cmd.redirection)
                else:
                    _write_text(result.stderr, None, sys.stderr)
                    pending = b"" if result.stdout is None else (result.stdout + "\n").encode()
                    last_status = result.exit_code
                continue

            if prev_stdout is not None:
                stdin = prev_stdout
            elif pending is not None:
                stdin = subprocess.PIPE
            else:
                stdin = subprocess.DEVNULL
            try:
                proc = subprocess.Popen(
                    [cmd.name, *cmd.args],
                    executable=target.path,
                    stdin=stdin,
                    stdout=None if is_last else subprocess.PIPE,
                    env=session.get_env(),
                )
            except OSError as e:
                _report(_os_error_message(cmd.name, e))
                last_status = 126
                break
            finally:
                # The child holds its own copy of the read end now
                if prev_stdout is not None:
                    prev_stdout.close()
                    prev_stdout = None
            logger.debug("pipeline stage %d: spawned %s (pid %d)", idx, target.path, proc.pid)
            procs.append(proc)

            # stdin is only a pipe when a builtin left output pending
            if proc.stdin is not None:
                feeders.append(_start_feeder(proc.stdin, pending or b""))
            pending = None
            prev_stdout = proc.stdout
            if is_last:
                tail_proc = proc
    finally:
        if prev_stdout is not None:
            prev_stdout.close()
        for t in feeders:
            t.join()
        for proc in procs:
            proc.wait()

    if tail_proc is not None:
        last_status = _exit_status(tail_proc)
    return last_status


def execute_line(line: str, session: ShellSession) -> int:
    """Run one input line and return its exit status.

    Only `exit` escapes as :class:`ShellExit`; every other failure is
    reported on stderr and turned into a non-zero status.
    """
    if not line.strip():
        return 0
    if has_pipe(line):
        return _exec_pipeline(split_pipeline(line), session)
    cmd = parse_command(line)
    if cmd is None:
        return 0
    return _exec_simple(cmd, session)
