#!/usr/bin/env python3

# Entry of minish

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional

try:
    import readline  # type: ignore
except Exception:  # pragma: no cover - fallback when readline unavailable
    readline = None

READLINE_ACTIVE = bool(readline)

PROMPT = "$ "

# Only whitespace and pipes end the word being completed
COMPLETER_DELIMS = " \t\n|"

from completion import Completer  # local modules in the same folder
from ops import ShellExit, ShellSession, execute_line

logger = logging.getLogger("minish")


def configure_logging(debug: bool = False) -> None:
    if not debug:
        debug = os.environ.get("MINISH_DEBUG", "") not in ("", "0")
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if debug else logging.WARNING)


def setup_readline(completer: Completer) -> None:
    if not READLINE_ACTIVE:
        return
    try:
        readline.set_completer(completer)
        readline.set_completer_delims(COMPLETER_DELIMS)
        if 'libedit' in (readline.__doc__ or ''):
            readline.parse_and_bind("bind ^I rl_complete")
        else:
            readline.parse_and_bind("tab: complete")
    except Exception as e:
        logger.warning("readline setup failed: %s", e)


def load_history_file(session: ShellSession, path: Optional[str]) -> None:
    if not path or not os.path.exists(path):
        return
    try:
        count = session.load_history(path)
    except OSError as e:
        logger.warning("could not read history file %s: %s", path, e)
        return
    logger.debug("loaded %d history entries from %s", count, path)
    if READLINE_ACTIVE:
        for entry in session.history:
            readline.add_history(entry)


def save_history_file(session: ShellSession, path: Optional[str]) -> None:
    if not path:
        return
    try:
        session.write_history(path)
    except OSError as e:
        logger.warning("could not write history file %s: %s", path, e)


def repl(histfile: Optional[str] = None) -> int:
    session = ShellSession(inherit_env=True)
    histfile = histfile or session.env.get("HISTFILE")
    load_history_file(session, histfile)

    readline_enabled = READLINE_ACTIVE and sys.stdin.isatty()
    completer = Completer(
        session,
        prompt=PROMPT,
        line_buffer=readline.get_line_buffer if readline_enabled else None,
        preceding_text=(lambda: readline.get_line_buffer()[:readline.get_begidx()]) if readline_enabled else None,
    )
    if readline_enabled:
        setup_readline(completer)

    exit_code = 0
    while True:
        # A new prompt starts a new completion session
        completer.reset()
        try:
            line = input(PROMPT)
        except EOFError:
            # Ctrl-D on empty line -> exit
            print()
            break
        except KeyboardInterrupt:
            # Ctrl-C at prompt -> new line and continue
            print()
            continue

        if not line.strip():
            continue
        session.record(line)

        try:
            exit_code = execute_line(line, session)
        except ShellExit as e:
            exit_code = e.code
            break
        except KeyboardInterrupt:
            print()
            exit_code = 130
        except Exception as e:
            logger.debug("unhandled error running %r", line, exc_info=True)
            print(f"minish: {e}", file=sys.stderr)
            exit_code = 1

    save_history_file(session, histfile)
    return exit_code


def parse_args(args=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="minish - a small interactive POSIX-style shell",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  minish                        # history from $HISTFILE, if set
  minish --histfile ~/.mhist    # read and save history in ~/.mhist
  minish --debug                # log resolution and process spawning
"""
    )

    parser.add_argument(
        "--histfile",
        metavar="PATH",
        help="Load history from PATH at startup and write it back on exit (default: $HISTFILE)"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log debug information to stderr (also enabled by MINISH_DEBUG=1)"
    )

    return parser.parse_args(args)


def main() -> None:
    args = parse_args()
    configure_logging(args.debug)
    sys.exit(repl(histfile=args.histfile))


if __name__ == "__main__":
    main()
