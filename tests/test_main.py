"""Tests for the REPL driver and CLI in main.py."""

import logging
from unittest import mock

import pytest  # type: ignore

import main
from main import PROMPT, configure_logging, parse_args, repl


def feed(*lines):
    """Make input() return ``lines`` in order, then raise EOFError."""
    return mock.patch("builtins.input", side_effect=[*lines, EOFError()])


class TestRepl:
    def test_prompt_is_dollar(self, sandbox):
        with feed() as fake_input:
            assert repl() == 0
        fake_input.assert_called_with(PROMPT)
        assert PROMPT == "$ "

    def test_exit_code(self, sandbox):
        with feed("exit 7", "echo never"):
            assert repl() == 7

    def test_bare_exit(self, sandbox, capfd):
        with feed("echo before", "exit"):
            assert repl() == 0
        assert capfd.readouterr().out == "before\n"

    def test_eof_ends_loop(self, sandbox, capfd):
        with feed("echo hi"):
            assert repl() == 0
        assert capfd.readouterr().out == "hi\n\n"

    def test_keyboard_interrupt_at_prompt(self, sandbox):
        with mock.patch("builtins.input", side_effect=[KeyboardInterrupt(), "exit 4"]):
            assert repl() == 4

    def test_errors_do_not_end_session(self, sandbox, capfd):
        with feed("nosuchcmd_xyz", "cd /nope_xyz", "echo still here", "exit 0"):
            assert repl() == 0
        captured = capfd.readouterr()
        assert "nosuchcmd_xyz: command not found" in captured.err
        assert "cd: /nope_xyz: No such file or directory" in captured.err
        assert "still here\n" in captured.out

    def test_unexpected_error_is_contained(self, sandbox, capfd):
        with mock.patch("main.execute_line", side_effect=[RuntimeError("boom"), 0]):
            with feed("first", "second"):
                assert repl() == 0
        assert "minish: boom" in capfd.readouterr().err

    def test_history_records_non_blank_lines(self, sandbox, capfd):
        with feed("echo a", "", "   ", "history"):
            repl()
        out = capfd.readouterr().out
        assert "   1 echo a\n   2 history\n" in out

    def test_history_file_loaded_and_saved(self, sandbox, tmp_path, monkeypatch, capfd):
        histfile = tmp_path / "hist"
        histfile.write_text("echo old\n\n")
        monkeypatch.setenv("HISTFILE", str(histfile))
        with feed("history", "exit 0"):
            repl()
        assert "   1 echo old\n   2 history\n" in capfd.readouterr().out
        assert histfile.read_text() == "echo old\nhistory\nexit 0\n"

    def test_histfile_argument_overrides_env(self, sandbox, tmp_path, monkeypatch):
        monkeypatch.setenv("HISTFILE", str(tmp_path / "ignored"))
        chosen = tmp_path / "chosen"
        with feed("echo x"):
            repl(histfile=str(chosen))
        assert chosen.read_text() == "echo x\n"
        assert not (tmp_path / "ignored").exists()


class TestCli:
    def test_defaults(self):
        args = parse_args([])
        assert args.histfile is None
        assert args.debug is False

    def test_flags(self):
        args = parse_args(["--histfile", "/tmp/h", "--debug"])
        assert args.histfile == "/tmp/h"
        assert args.debug is True

    def test_main_exits_with_repl_status(self):
        with mock.patch.object(main, "parse_args", return_value=parse_args([])), \
                mock.patch.object(main, "configure_logging"), \
                mock.patch.object(main, "repl", return_value=3):
            with pytest.raises(SystemExit) as info:
                main.main()
        assert info.value.code == 3


class TestLogging:
    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_default_level_is_warning(self, monkeypatch):
        monkeypatch.delenv("MINISH_DEBUG", raising=False)
        configure_logging()
        assert logging.getLogger().level == logging.WARNING

    def test_debug_flag(self):
        configure_logging(debug=True)
        assert logging.getLogger().level == logging.DEBUG

    def test_debug_env(self, monkeypatch):
        monkeypatch.setenv("MINISH_DEBUG", "1")
        configure_logging()
        assert logging.getLogger().level == logging.DEBUG
