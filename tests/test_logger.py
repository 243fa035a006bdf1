"""Tests for the leveled logger."""

from diffdeck.utils.logger import Logger, LogLevel


class _RunningApp:
    def __init__(self, running: bool):
        self.is_running = running


class TestConsoleOutput:
    """Console writes stop while a bound app owns the terminal."""

    def test_writes_without_app(self):
        assert Logger()._can_write_stdout()

    def test_running_app_blocks_console(self):
        logger = Logger()
        app = _RunningApp(True)
        logger.bind_app(app)
        assert not logger._can_write_stdout()

        app.is_running = False
        assert logger._can_write_stdout()

    def test_released_app_is_forgotten(self):
        logger = Logger()
        app = _RunningApp(True)
        logger.bind_app(app)
        del app
        assert logger._can_write_stdout()

    def test_warning_reaches_stderr(self, capsys):
        logger = Logger()
        logger.set_level(LogLevel.INFO)
        logger.warning("[GIT] slow repository")
        assert "[GIT] slow repository" in capsys.readouterr().err

    def test_warning_suppressed_while_app_runs(self, capsys):
        logger = Logger()
        app = _RunningApp(True)
        logger.bind_app(app)
        logger.warning("[GIT] slow repository")
        assert capsys.readouterr().err == ""
