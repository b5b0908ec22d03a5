from datetime import date, datetime

import pytest
from conftest import add_owner

from glicemia.analytics import StatusBand, summarize
from glicemia.errors import InvalidRange
from glicemia.history import LiveHistoryView, ViewStatus, window_for
from glicemia.records import RecordWriter


def test_window_for_covers_whole_days():
    window = window_for(date(2024, 3, 1), date(2024, 3, 5))

    assert window.start == datetime(2024, 3, 1, 0, 0, 0)
    assert window.end == datetime(2024, 3, 5, 23, 59, 59)
    assert window_for("2024-03-01", "2024-03-05") == window


def test_window_for_single_day():
    window = window_for("2024-03-05", "2024-03-05")

    assert window.contains(datetime(2024, 3, 5, 0, 0))
    assert window.contains(datetime(2024, 3, 5, 23, 59))
    assert not window.contains(datetime(2024, 3, 6, 0, 0))


@pytest.mark.parametrize("start, end", [("2024-02-30", "2024-03-01"), ("2024-03-01", "not a date"), ("", "")])
def test_window_for_rejects_malformed_dates(start, end):
    with pytest.raises(InvalidRange):
        window_for(start, end)


def test_window_for_rejects_inverted_range():
    with pytest.raises(InvalidRange):
        window_for("2024-03-06", "2024-03-05")


def test_view_shows_snapshot_and_summary(store, owner):
    writer = RecordWriter(store, owner)
    writer.save("50", "2024-03-05", "07:00")
    writer.save("200", "2024-03-05", "19:00")
    view = LiveHistoryView(store)

    view.show(owner, window_for("2024-03-05", "2024-03-05"))

    state = view.state
    assert state.status == ViewStatus.READY
    assert [r.glycemia_value for r in state.records] == ["200", "50"]
    summary = view.summary
    assert (summary.count, summary.average, summary.minimum, summary.maximum) == (2, 125.0, 50, 200)
    assert summary.status == StatusBand.OPTIMAL
    view.close()


def test_view_updates_live_on_matching_write(store, owner):
    view = LiveHistoryView(store)
    view.show(owner, window_for("2024-03-05", "2024-03-05"))
    assert view.state.status == ViewStatus.READY
    assert view.records == ()
    assert view.summary.status == StatusBand.INFORMATIONAL

    RecordWriter(store, owner).save("190", "2024-03-05", "12:00")
    RecordWriter(store, owner).save("80", "2024-03-09", "12:00")

    assert [r.glycemia_value for r in view.records] == ["190"]
    assert view.summary.status == StatusBand.HYPERGLYCEMIA
    view.close()


def test_summary_of_a_captured_state_matches_its_records(store, owner):
    view = LiveHistoryView(store)
    view.show(owner, window_for("2024-03-05", "2024-03-05"))
    state = view.state

    RecordWriter(store, owner).save("190", "2024-03-05", "12:00")

    assert state.records == ()
    assert summarize(state.records).count == 0
    assert summarize(view.state.records) == view.summary
    assert view.summary.count == 1
    view.close()


def test_same_scope_keeps_the_subscription(store, owner):
    view = LiveHistoryView(store)
    window = window_for("2024-03-05", "2024-03-05")

    view.show(owner, window)
    first = store.active_subscriptions(owner)
    view.show(owner, window_for(date(2024, 3, 5), date(2024, 3, 5)))

    assert store.active_subscriptions(owner) == first
    assert len(first) == 1
    view.close()


def test_window_change_replaces_the_subscription(store, owner):
    RecordWriter(store, owner).save("100", "2024-03-01", "08:00")
    view = LiveHistoryView(store)
    view.show(owner, window_for("2024-03-05", "2024-03-05"))
    old = store.active_subscriptions(owner)[0]
    assert view.records == ()

    view.show(owner, window_for("2024-03-01", "2024-03-05"))

    assert old.closed
    assert len(store.active_subscriptions(owner)) == 1
    assert [r.glycemia_value for r in view.records] == ["100"]
    view.close()


def test_owner_change_replaces_the_subscription(db_path, store, owner):
    other = add_owner(db_path)
    RecordWriter(store, other).save("140", "2024-03-05", "08:00")
    window = window_for("2024-03-05", "2024-03-05")
    view = LiveHistoryView(store)

    view.show(owner, window)
    assert view.records == ()
    view.show(other, window)

    assert store.active_subscriptions(owner) == []
    assert [r.glycemia_value for r in view.records] == ["140"]
    view.close()


def test_close_stops_updates(store, owner):
    view = LiveHistoryView(store)
    view.show(owner, window_for("2024-03-05", "2024-03-05"))

    view.close()
    RecordWriter(store, owner).save("120", "2024-03-05", "12:00")

    assert view.state.status == ViewStatus.IDLE
    assert view.records == ()
    assert store.active_subscriptions() == []


def test_no_owner_means_idle(store, owner):
    view = LiveHistoryView(store)
    view.show(owner, window_for("2024-03-05", "2024-03-05"))

    view.show(None, window_for("2024-03-05", "2024-03-05"))

    assert view.state.status == ViewStatus.IDLE
    assert store.active_subscriptions() == []


def test_failure_is_terminal_until_scope_changes(store, owner):
    view = LiveHistoryView(store)
    window = window_for("2024-03-05", "2024-03-05")

    view.show("unknown-owner", window)
    assert view.state.status == ViewStatus.ERROR
    assert view.state.error.code == "permission-denied"

    # same scope again: no silent retry
    view.show("unknown-owner", window)
    assert view.state.status == ViewStatus.ERROR
    assert store.active_subscriptions() == []

    view.show(owner, window)
    assert view.state.status == ViewStatus.READY
    view.close()


def test_limit_is_passed_to_the_store(store, owner):
    writer = RecordWriter(store, owner)
    for minute in range(5):
        writer.save(str(100 + minute), "2024-03-05", f"10:0{minute}")
    view = LiveHistoryView(store, limit=3)

    view.show(owner, window_for("2024-03-05", "2024-03-05"))

    assert [r.glycemia_value for r in view.records] == ["104", "103", "102"]
    view.close()
