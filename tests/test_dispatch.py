"""Tests for watchrun.dispatch."""

import logging
import sys
import time
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from watchrun.commands import CommandSpec
from watchrun.config import WatchConfig
from watchrun.dispatch import EXIT_COMMAND_FAILED, EXIT_OK, Dispatcher, watch
from watchrun.errors import SpawnError, WatcherError
from watchrun.events import WatchError, WatchEvent
from watchrun.runner import ProcessOutcome

EVENT = WatchEvent((Path("watched.txt"),))
OK = ProcessOutcome(0, b"ok\n", b"")
FAILED = ProcessOutcome(1, b"", b"it broke")


def make_config(primary=None, **kwargs):
    primary = primary or CommandSpec("make")
    kwargs.setdefault("watch_path", Path("watched.txt"))
    kwargs.setdefault("command_text", str(primary))
    return WatchConfig(primary_command=primary, **kwargs)


class FakeSession:
    """Stands in for WatchSession; yields the given items then ends."""

    instances = []

    def __init__(self, path, delay, use_polling=False, items=(), pause=0.0):
        self.path = path
        self.delay = delay
        self.use_polling = use_polling
        self.items = list(items)
        self.pause = pause
        self.stopped = False
        FakeSession.instances.append(self)

    def __iter__(self):
        time.sleep(self.pause)
        for item in self.items:
            if isinstance(item, BaseException):
                raise item
            yield item

    def stop(self):
        self.stopped = True


@pytest.fixture
def fake_session():
    FakeSession.instances = []

    def factory(items=(), pause=0.0):
        def build(path, delay, use_polling=False):
            return FakeSession(path, delay, use_polling, items=items, pause=pause)

        return build

    return factory


class TestDispatcher:
    def test_echo_scenario(self, python_command, capsys):
        """A successful run with show_output prints stdout and keeps going."""
        config = make_config(python_command("print('hello')"), show_output=True)
        dispatcher = Dispatcher(config, [EVENT])

        assert dispatcher.run() == EXIT_OK
        assert "hello" in capsys.readouterr().out

    def test_output_hidden_without_show_output(self, capsys):
        dispatcher = Dispatcher(make_config(), [EVENT], runner=lambda spec: OK)
        dispatcher.run()
        assert capsys.readouterr().out == ""

    def test_failing_command_ends_loop(self, python_command, caplog):
        code = "import sys; sys.stderr.write('bad input'); sys.exit(1)"
        config = make_config(python_command(code), command_text="check watched.txt")
        dispatcher = Dispatcher(config, [EVENT])

        assert dispatcher.run() == EXIT_COMMAND_FAILED
        assert 'Error occurred when running command "check watched.txt"' in caplog.text
        assert "Error(1): bad input" in caplog.text

    def test_no_runs_after_failure(self):
        runner = MagicMock(return_value=FAILED)
        dispatcher = Dispatcher(make_config(), [EVENT, EVENT, EVENT], runner=runner)

        assert dispatcher.run() == EXIT_COMMAND_FAILED
        assert runner.call_count == 1

    def test_signal_exit_reported(self, caplog):
        runner = MagicMock(return_value=ProcessOutcome(None, b"", b""))
        Dispatcher(make_config(), [EVENT], runner=runner).run()
        assert "Error(signal)" in caplog.text

    def test_watch_errors_are_not_fatal(self, caplog):
        runner = MagicMock(return_value=OK)
        items = [WatchError("queue overflow"), EVENT]
        dispatcher = Dispatcher(make_config(), items, runner=runner)

        assert dispatcher.run() == EXIT_OK
        assert "watch error: queue overflow" in caplog.text
        assert runner.call_count == 1

    def test_other_items_ignored(self):
        runner = MagicMock(return_value=OK)
        dispatcher = Dispatcher(make_config(), ["created", None, EVENT], runner=runner)

        assert dispatcher.run() == EXIT_OK
        assert runner.call_count == 1

    def test_runs_are_sequential(self):
        active = []
        overlaps = []

        def runner(spec):
            if active:
                overlaps.append(spec)
            active.append(spec)
            time.sleep(0.05)
            active.pop()
            return OK

        dispatcher = Dispatcher(make_config(), [EVENT, EVENT], runner=runner)
        assert dispatcher.run() == EXIT_OK
        assert dispatcher.runs == 2
        assert overlaps == []


class TestWatch:
    def test_missing_path_fails_before_receiving(self, tmp_path):
        runner = MagicMock()
        config = make_config(watch_path=tmp_path / "missing")
        with pytest.raises(WatcherError):
            watch(config, runner=runner)
        runner.assert_not_called()

    def test_session_built_from_config(self, fake_session):
        with patch("watchrun.dispatch.WatchSession", fake_session([EVENT])):
            config = make_config(delay=0.5, use_polling=True)
            assert watch(config, runner=lambda spec: OK) == EXIT_OK

        (session,) = FakeSession.instances
        assert session.path == Path("watched.txt")
        assert session.delay == 0.5
        assert session.use_polling is True
        assert session.stopped

    def test_failure_exit_code_returned(self, fake_session):
        with patch("watchrun.dispatch.WatchSession", fake_session([EVENT])):
            assert watch(make_config(), runner=lambda spec: FAILED) == EXIT_COMMAND_FAILED
        assert FakeSession.instances[0].stopped

    def test_keyboard_interrupt_stops_cleanly(self, fake_session, caplog):
        caplog.set_level(logging.INFO)
        with patch("watchrun.dispatch.WatchSession", fake_session([KeyboardInterrupt()])):
            assert watch(make_config(), runner=lambda spec: OK) == EXIT_OK
        assert "Stopping watcher..." in caplog.text
        assert FakeSession.instances[0].stopped

    def test_debug_reports_primary_spec(self, fake_session, caplog):
        caplog.set_level(logging.DEBUG)
        config = make_config(debug=True)
        with patch("watchrun.dispatch.WatchSession", fake_session()):
            watch(config, runner=lambda spec: OK)
        (record,) = [r for r in caplog.records if "DEBUG command=" in r.getMessage()]
        assert record.levelno == logging.DEBUG
        assert record.getMessage() == f"DEBUG command={config.primary_command!r}"

    @pytest.mark.skipif(sys.platform == "win32", reason="pipe selectors require POSIX")
    def test_failing_companion_does_not_stop_loop(self, python_command, fake_session, caplog):
        companion = python_command("import sys; sys.exit(2)")
        runner = MagicMock(return_value=OK)
        config = make_config(companion_command=companion)

        with patch("watchrun.dispatch.WatchSession", fake_session([EVENT, EVENT], pause=1.0)):
            assert watch(config, runner=runner) == EXIT_OK

        assert runner.call_count == 2
        errors = [r for r in caplog.records if "exited with an error(2)" in r.getMessage()]
        assert len(errors) == 1

    def test_companion_started_and_stopped(self, python_command, fake_session):
        companion = python_command("pass")
        config = make_config(companion_command=companion, show_output=True)

        with patch("watchrun.dispatch.WatchSession", fake_session([EVENT])), patch(
            "watchrun.dispatch.CompanionSupervisor"
        ) as supervisor_cls:
            watch(config, runner=lambda spec: OK)

        supervisor_cls.assert_called_once_with(companion, show_output=True, debug=False)
        supervisor = supervisor_cls.return_value
        supervisor.start.assert_called_once_with()
        supervisor.stop.assert_called_once_with()

    def test_companion_spawn_failure_is_fatal(self, tmp_path, fake_session):
        config = make_config(companion_command=CommandSpec(str(tmp_path / "nope")))
        with patch("watchrun.dispatch.WatchSession", fake_session([EVENT])):
            with pytest.raises(SpawnError):
                watch(config, runner=lambda spec: OK)
        assert FakeSession.instances == []

    def test_companion_stopped_when_session_stop_fails(self, fake_session):
        config = make_config(companion_command=CommandSpec("serve"))
        build = fake_session([EVENT])

        def failing_session(path, delay, use_polling=False):
            session = build(path, delay, use_polling)
            session.stop = MagicMock(side_effect=RuntimeError("observer wedged"))
            return session

        with patch("watchrun.dispatch.WatchSession", failing_session), patch(
            "watchrun.dispatch.CompanionSupervisor"
        ) as supervisor_cls:
            with pytest.raises(RuntimeError, match="observer wedged"):
                watch(config, runner=lambda spec: OK)

        supervisor_cls.return_value.stop.assert_called_once_with()
