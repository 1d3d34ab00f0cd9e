from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass
class CompletionState:
    """Tracks repeated completion requests for the line being edited."""
    last_input: Optional[str] = None
    repeat_count: int = 0

    def press(self, partial: str) -> int:
        if partial == self.last_input:
            self.repeat_count += 1
        else:
            self.last_input = partial
            self.repeat_count = 1
        return self.repeat_count

    def reset(self) -> None:
        self.last_input = None
        self.repeat_count = 0


class ShellSession:
    """Holds session-wide shell context: environment, history, completion.

    Only the builtins mutate this state (``cd`` changes the working directory,
    ``history`` reads and writes the log) and the REPL appends each line it
    reads. Everything runs on the single control-flow thread between prompts.
    """

    def __init__(self, inherit_env: bool = True) -> None:
        # String-only environment used as base for subprocesses
        self.env: Dict[str, str] = dict(os.environ) if inherit_env else {}
        self.history: List[str] = []
        # Number of history entries already written by `history -a/-w`
        self.history_flushed: int = 0
        self.completion = CompletionState()

    @property
    def cwd(self) -> str:
        return os.getcwd()

    def chdir(self, target: str) -> None:
        os.chdir(target)
        self.env['PWD'] = os.getcwd()

    @property
    def search_path(self) -> str:
        return self.env.get('PATH', os.defpath)

    @property
    def home(self) -> str:
        return self.env.get('HOME') or os.path.expanduser('~')

    def get_env(self) -> Dict[str, str]:
        return dict(self.env)

    # --- History helpers ---
    def record(self, line: str) -> None:
        self.history.append(line)

    def load_history(self, path: str) -> int:
        """Append the non-blank lines of ``path``; returns how many were added."""
        with open(path, 'r', encoding='utf-8', errors='replace') as f:
            entries = [ln.rstrip('\n') for ln in f if ln.strip()]
        self.history.extend(entries)
        self.history_flushed = len(self.history)
        return len(entries)

    def write_history(self, path: str, *, append: bool = False) -> None:
        """Write the log to ``path``; with ``append`` only the unwritten tail."""
        entries = self.history[self.history_flushed:] if append else self.history
        with open(path, 'a' if append else 'w', encoding='utf-8') as f:
            for entry in entries:
                f.write(entry + '\n')
        self.history_flushed = len(self.history)
