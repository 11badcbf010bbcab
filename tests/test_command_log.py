import pytest

from sts_core.analyzers.command_log import CommandLog
from sts_core.commands.schema import CommandLogEntry


def _entry(i, success=True):
    return CommandLogEntry("creation", f"command {i}", "ok", success)


def test_oldest_entries_are_evicted_first():
    log = CommandLog(max_entries=3)
    for i in range(5):
        log.record(_entry(i))
    assert len(log) == 3
    assert [e.text for e in log] == ["command 2", "command 3", "command 4"]
    assert log.last.text == "command 4"


def test_recent_is_newest_first():
    log = CommandLog()
    for i in range(4):
        log.record(_entry(i))
    assert [e.text for e in log.recent(2)] == ["command 3", "command 2"]


def test_summary_and_clear():
    log = CommandLog()
    log.record(_entry(0))
    log.record(_entry(1, success=False))
    log.record(_entry(2))
    assert log.summary() == {"total": 3, "succeeded": 2, "failed": 1}
    log.clear()
    assert log.last is None
    assert log.summary()["total"] == 0


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        CommandLog(max_entries=0)


def test_entry_rendering():
    ok = CommandLogEntry("scaling", "make it bigger", "Scale factor: 2", True)
    failed = CommandLogEntry("movement", "move it right", "No active entity selected", False,
                             error="no_active_entity")
    assert ok.display_text == "✅ Scaling: Scale factor: 2"
    assert failed.display_text == "❌ Failed: move it right (No active entity selected)"
    assert len(ok.formatted_time) == 8
