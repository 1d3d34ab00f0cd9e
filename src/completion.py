"""Command-name completion for the interactive prompt.

The engine is independent of readline: :meth:`Completer.complete` takes the
partial word and returns the replacement(s), writing the bell or the match
listing to its stream as a side effect. :meth:`Completer.__call__` adapts it
to readline's ``completer(text, state)`` protocol.
"""
from __future__ import annotations

import logging
import os
import sys
from typing import Callable, List, Optional, TextIO

from command import BUILTINS
from pathsearch import list_all
from session import ShellSession

logger = logging.getLogger(__name__)

BELL = "\a"


def longest_common_prefix(words: List[str]) -> str:
    return os.path.commonprefix(words) if words else ""


class Completer:
    def __init__(
        self,
        session: ShellSession,
        stream: Optional[TextIO] = None,
        prompt: str = "$ ",
        line_buffer: Optional[Callable[[], str]] = None,
        preceding_text: Optional[Callable[[], str]] = None,
    ) -> None:
        self.session = session
        self.stream = stream
        self.prompt = prompt
        # Returns the text currently being edited, used to redraw the prompt
        self.line_buffer = line_buffer
        # Returns the line up to the word being completed
        self.preceding_text = preceding_text
        self._matches: List[str] = []

    def _out(self) -> TextIO:
        return self.stream if self.stream is not None else sys.stdout

    def _bell(self) -> None:
        out = self._out()
        out.write(BELL)
        out.flush()

    def candidates(self) -> List[str]:
        names = set(BUILTINS)
        names.update(list_all(self.session.search_path))
        return sorted(names)

    def complete(self, partial: str, line: Optional[str] = None) -> List[str]:
        """Return the replacement for ``partial``; [] leaves the line as is.

        ``line`` is the input up to the cursor. Repeated presses are counted
        on it, so the same word elsewhere on the line starts over.
        """
        presses = self.session.completion.press(partial if line is None else line)
        hits = sorted(name for name in self.candidates() if name.startswith(partial))
        logger.debug("complete %r: %d hit(s), press %d", partial, len(hits), presses)

        if not hits:
            self._bell()
            return []
        if len(hits) == 1:
            return [hits[0] + " "]

        prefix = longest_common_prefix(hits)
        if len(prefix) > len(partial):
            return [prefix]

        if presses == 1:
            self._bell()
            return []
        current = self.line_buffer() if self.line_buffer is not None else partial
        out = self._out()
        out.write("\n" + "  ".join(hits) + "\n")
        out.write(self.prompt + current)
        out.flush()
        return []

    def reset(self) -> None:
        self.session.completion.reset()
        self._matches = []

    # --- readline protocol ---
    def __call__(self, text: str, state: int) -> Optional[str]:
        if state == 0:
            self._matches = self.complete(text, self._typed(text)) if self._is_command_word() else []
        if state < len(self._matches):
            return self._matches[state]
        return None

    def _typed(self, text: str) -> Optional[str]:
        if self.preceding_text is None:
            return None
        return self.preceding_text() + text

    def _is_command_word(self) -> bool:
        if self.preceding_text is None:
            return True
        before = self.preceding_text().rstrip()
        return before == "" or before.endswith("|")
