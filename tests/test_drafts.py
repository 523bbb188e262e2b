"""Tests for local autosave drafts and the auth-interruption backup."""

from __future__ import annotations

import json
import threading
from datetime import datetime, timedelta, timezone

import pytest

from checkup_admin import drafts
from checkup_admin.auth import AuthEvents

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
ROUTE = "/checkup-templates/abc"


class FakeClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


def _form(title="Liver checkup"):
    return {
        "testKey": "liver",
        "title": title,
        "questions": [
            {
                "index": 1,
                "id": "1",
                "question": "Do you drink?",
                "type": "single",
                "variants": [{"label": "Да", "value": "a"}, {"label": "Нет", "value": "b"}],
            },
            {
                "index": 2,
                "id": "2",
                "question": "How often?",
                "type": "form",
                "fields": [{"label": "Times", "name": "times", "type": "number", "min": 0}],
                "condition": {"questionId": "1", "values": ["a"]},
            },
        ],
    }


@pytest.fixture
def store(tmp_path):
    return drafts.DraftStore(tmp_path / "drafts")


def _session(store, form, template_id="abc", route=ROUTE, clock=None):
    return drafts.DraftSession(store, route, lambda: form, template_id, clock=clock or FakeClock())


def test_autosave_key_uses_template_id_or_new_slot() -> None:
    assert drafts.autosave_key("abc") == "checkup-template-draft-abc"
    assert drafts.autosave_key(None) == "checkup-template-draft-new"


def test_store_round_trip_and_delete(store) -> None:
    store.write("key", {"data": {"title": "Тест"}})

    assert store.read("key") == {"data": {"title": "Тест"}}
    assert store.exists("key")
    store.delete("key")
    store.delete("key")
    assert store.read("key") is None


def test_store_discards_corrupt_documents(store) -> None:
    store.write("key", {"data": {}})
    store._path("key").write_text("{not json", encoding="utf-8")

    assert store.read("key") is None
    assert not store.exists("key")


def test_autosave_round_trip_reproduces_questions(store) -> None:
    form = _form()
    writer = _session(store, form)
    writer.mark_loaded()
    assert writer.autosave() is True

    reader = _session(store, {})
    result = reader.restore()

    assert result.source == drafts.SOURCE_AUTOSAVE
    assert result.data["questions"] == form["questions"]
    assert result.saved_at == NOW
    assert reader.loaded


def test_autosave_is_skipped_until_loaded(store) -> None:
    session = _session(store, _form())

    assert session.autosave() is False
    assert not store.exists(drafts.autosave_key("abc"))


def test_draft_older_than_a_day_is_discarded(store) -> None:
    store.write(
        drafts.autosave_key("abc"),
        {"data": _form(), "timestamp": (NOW - timedelta(hours=25)).isoformat()},
    )

    result = _session(store, {}).restore()

    assert not result.restored
    assert not store.exists(drafts.autosave_key("abc"))


def test_trivial_draft_is_not_restored(store) -> None:
    store.write(
        drafts.autosave_key(None),
        {"data": {"title": " ", "questions": []}, "timestamp": NOW.isoformat()},
    )

    result = _session(store, {}, template_id=None, route="/checkup-templates/create").restore()

    assert not result.restored


def test_auth_backup_wins_over_autosave_and_is_consumed(store) -> None:
    store.write(
        drafts.autosave_key("abc"),
        {"data": _form("From autosave"), "timestamp": NOW.isoformat()},
    )
    store.write(
        drafts.AUTH_BACKUP_KEY,
        {"data": _form("From backup"), "path": ROUTE, "timestamp": NOW.isoformat()},
    )

    result = _session(store, {}).restore()

    assert result.source == drafts.SOURCE_AUTH_BACKUP
    assert result.data["title"] == "From backup"
    assert not store.exists(drafts.AUTH_BACKUP_KEY)
    assert store.exists(drafts.autosave_key("abc"))


def test_auth_backup_for_another_page_is_left_alone(store) -> None:
    store.write(
        drafts.AUTH_BACKUP_KEY,
        {"data": _form(), "path": "/checkup-templates/other", "timestamp": NOW.isoformat()},
    )

    result = _session(store, {}).restore()

    assert not result.restored
    assert store.exists(drafts.AUTH_BACKUP_KEY)


def test_expired_auth_backup_is_removed(store) -> None:
    store.write(
        drafts.AUTH_BACKUP_KEY,
        {"data": _form(), "path": ROUTE, "timestamp": (NOW - timedelta(minutes=61)).isoformat()},
    )

    result = _session(store, {}).restore()

    assert not result.restored
    assert not store.exists(drafts.AUTH_BACKUP_KEY)


def test_auth_error_writes_path_tagged_backup(store) -> None:
    events = AuthEvents()
    session = _session(store, _form())
    session.mark_loaded()
    session.start_autosave(interval=3600, events=events)
    try:
        events.emit()
    finally:
        session.stop()

    backup = store.read(drafts.AUTH_BACKUP_KEY)
    assert backup["path"] == ROUTE
    assert backup["data"]["title"] == "Liver checkup"
    assert backup["timestamp"] == NOW.isoformat()
    assert len(events) == 0


def test_auth_error_before_load_writes_nothing(store) -> None:
    _session(store, _form()).on_auth_error()

    assert not store.exists(drafts.AUTH_BACKUP_KEY)


def test_on_saved_clears_drafts_and_stops_autosave(store) -> None:
    session = _session(store, _form())
    session.mark_loaded()
    session.autosave()
    store.write(drafts.AUTH_BACKUP_KEY, {"data": {}, "path": ROUTE, "timestamp": NOW.isoformat()})

    session.on_saved()

    assert session.state == drafts.CLOSED
    assert not store.exists(drafts.autosave_key("abc"))
    assert not store.exists(drafts.AUTH_BACKUP_KEY)
    assert session.autosave() is False


def test_on_unload_writes_final_snapshot(store) -> None:
    session = _session(store, _form())
    session.mark_loaded()

    session.on_unload()

    saved = json.loads(store._path(drafts.autosave_key("abc")).read_text(encoding="utf-8"))
    assert saved["data"]["testKey"] == "liver"


def test_repeating_timer_calls_back_until_cancelled() -> None:
    fired = threading.Event()
    timer = drafts.RepeatingTimer(0.01, fired.set)

    timer.start()
    try:
        assert fired.wait(2)
        assert timer.is_running
    finally:
        timer.cancel()
    assert not timer.is_running


def test_autosave_in_flight_does_not_outlive_on_saved(store) -> None:
    entered = threading.Event()
    release = threading.Event()
    form = _form()

    def slow_form_state():
        entered.set()
        release.wait(2)
        return form

    session = drafts.DraftSession(store, ROUTE, slow_form_state, "abc", clock=FakeClock())
    session.mark_loaded()
    writer = threading.Thread(target=session.autosave)
    writer.start()
    assert entered.wait(2)

    saver = threading.Thread(target=session.on_saved)
    saver.start()
    release.set()
    writer.join(2)
    saver.join(2)

    assert not store.exists(drafts.autosave_key("abc"))
    assert session.autosave() is False


def test_discard_also_drops_this_pages_auth_backup(store) -> None:
    clock = FakeClock()
    session = _session(store, _form(), clock=clock)
    session.mark_loaded()
    session.autosave()
    events = AuthEvents()
    session.start_autosave(interval=60, events=events)
    events.emit()

    session.stop()
    session.discard()

    assert _session(store, _form(), clock=clock).restore().source is None


def test_discard_keeps_auth_backup_of_another_page(store) -> None:
    store.write(
        drafts.AUTH_BACKUP_KEY,
        {"data": _form(), "path": "/checkup-templates/other", "timestamp": NOW.isoformat()},
    )

    _session(store, _form()).discard()

    assert store.exists(drafts.AUTH_BACKUP_KEY)
