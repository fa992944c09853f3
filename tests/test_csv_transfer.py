from datetime import datetime

import pytest

from backend import csv_transfer
from backend.csv_transfer import (
    HEADER,
    export_csv,
    format_timestamp,
    import_csv,
    parse_row,
    split_csv_row,
)
from backend.errors import ParseError, StoreError
from backend.sessions import SessionManager


def _ts(*args):
    return datetime(*args).timestamp()


@pytest.fixture
def populated(store):
    """Two workouts, one of them empty, with a closed and an open session."""
    with store.transaction():
        push = store.create_workout("Push Day")
        store.create_workout("Arms")
        bench = store.create_exercise(push, "Bench", "chest", note="pause at chest")
        store.create_exercise(push, "Dips", "triceps")
        done = store.create_session(
            push, _ts(2025, 5, 1, 18, 0), _ts(2025, 5, 1, 19, 0), 3600.0, 600.0
        )
        store.create_set(bench, done, 60.0, 5, _ts(2025, 5, 1, 18, 10))
        store.create_set(bench, done, 60.0, 5, _ts(2025, 5, 1, 18, 5))
        ongoing = store.create_session(push, _ts(2025, 5, 3, 7, 0), total_volume=250.0)
        store.create_set(bench, ongoing, 62.5, 4, _ts(2025, 5, 3, 7, 1))
    return store


def _tuples(text):
    return sorted(split_csv_row(line)[:9] for line in text.strip().split("\n")[1:])


def test_export_format(populated):
    lines = export_csv(populated).strip().split("\n")
    assert lines[0] == HEADER
    assert lines[1] == '"Arms","","","",,,"","",""'
    assert lines[2] == (
        '"Push Day","Bench","chest","pause at chest",60.0,5,'
        '"2025-05-01 18:05:00","2025-05-01 18:00:00","2025-05-01 19:00:00"'
    )
    assert lines[3].endswith('"2025-05-01 18:10:00","2025-05-01 18:00:00","2025-05-01 19:00:00"')
    assert lines[4] == (
        '"Push Day","Bench","chest","pause at chest",62.5,4,'
        '"2025-05-03 07:01:00","2025-05-03 07:00:00",""'
    )
    assert lines[5] == '"Push Day","Dips","triceps","",,,"","",""'
    assert len(lines) == 6


def test_split_csv_row_respects_quotes():
    assert split_csv_row('"a,b",1,"",x') == ["a,b", "1", "", "x"]
    assert split_csv_row("") == [""]


def test_parse_row_rejects_short_rows():
    with pytest.raises(ParseError):
        parse_row('"Push Day","Bench"')
    with pytest.raises(ParseError):
        parse_row('"","Bench","chest","",1,1,"","",""')


def test_parse_row_requires_both_numbers():
    fields = parse_row('"W","E","legs","",80,,"","",""')
    assert fields["weight"] is None and fields["reps"] is None
    fields = parse_row('"W","E","legs","",abc,5,"","",""')
    assert fields["weight"] is None


def test_round_trip(populated, tmp_path):
    first = export_csv(populated)
    report = import_csv(first, populated)
    assert report == {
        "workouts": 2,
        "exercises": 2,
        "sessions": 2,
        "sets": 3,
        "skipped": 0,
    }
    second = export_csv(populated)
    assert _tuples(second) == _tuples(first)
    assert second == first


def test_import_rebuilds_sessions_and_volume(populated):
    import_csv(export_csv(populated), populated)
    push = [w for w in populated.list_workouts() if w.name == "Push Day"][0]
    sessions = populated.sessions_for(push)
    assert [s.total_volume for s in sessions] == [600.0, 250.0]
    assert sessions[0].duration == 3600.0
    assert sessions[1].is_open
    assert len(populated.sets_for_session(sessions[0])) == 2


def test_import_replaces_everything(populated):
    text = "\n".join(
        [
            HEADER,
            '"Legs","Squat","legs","",100,5,"2025-06-01 10:00:00","2025-06-01 09:55:00","2025-06-01 11:00:00"',
        ]
    )
    import_csv(text, populated)
    assert [w.name for w in populated.list_workouts()] == ["Legs"]
    assert [e.name for e in populated.list_exercises()] == ["Squat"]
    assert populated.counts() == {
        "workouts": 1,
        "exercises": 1,
        "sessions": 1,
        "set_entries": 1,
    }


def test_rows_without_session_start_get_own_sessions(store):
    text = "\n".join(
        [
            HEADER,
            '"W","E","back","",10,10,"","",""',
            '"W","E","back","",20,10,"","",""',
            '"W","E","back","",,,"","",""',
            "garbage",
            "",
        ]
    )
    report = import_csv(text, store)
    assert report["sessions"] == 2
    assert report["sets"] == 2
    assert report["exercises"] == 1
    assert report["skipped"] == 1
    volumes = sorted(s.total_volume for s in store.list_sessions())
    assert volumes == [100.0, 200.0]


def test_repeated_exercise_takes_last_note(store):
    text = "\n".join(
        [
            HEADER,
            '"W","E","back","old",,,"","",""',
            '"W","E","back","new",,,"","",""',
        ]
    )
    import_csv(text, store)
    assert store.list_exercises()[0].note == "new"


def test_import_clears_session_cache(store, push_day):
    workout, bench = push_day
    manager = SessionManager(store)
    manager.add_set(bench, 60, 5)
    import_csv(HEADER + "\n", store, manager)
    assert manager.active_sessions == {}
    assert store.counts()["workouts"] == 0


def test_import_adopts_open_session(populated):
    text = export_csv(populated)
    manager = SessionManager(populated)
    import_csv(text, populated, manager)

    push = populated.list_workouts()[1]
    assert push.name == "Push Day"
    cached = manager.open_session_for(push)
    assert cached is not None and cached.total_volume == 250.0

    bench = populated.exercises_for(push)[0]
    manager.add_set(bench, 60, 5)
    open_sessions = populated.open_sessions()
    assert [s.id for s in open_sessions] == [cached.id]
    assert populated.get_session(cached.id).total_volume == 550.0


def test_failed_import_keeps_previous_data(populated, monkeypatch):
    before = export_csv(populated)

    def broken(*args, **kwargs):
        raise StoreError("disk full")

    monkeypatch.setattr(populated, "save", broken)
    with pytest.raises(StoreError):
        import_csv(HEADER + '\n"Other","","","",,,"","",""\n', populated)
    monkeypatch.undo()
    assert export_csv(populated) == before


def test_format_timestamp_empty():
    assert format_timestamp(None) == ""
    assert csv_transfer.parse_timestamp("") is None
    assert csv_transfer.parse_timestamp("yesterday") is None
