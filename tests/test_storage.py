import json
from datetime import datetime, timedelta

import pytest

from hamlog_pro.errors import StorageError
from hamlog_pro.models import QSO
from hamlog_pro.settings import UserSettings
from hamlog_pro.state import LogbookState, search_contacts
from hamlog_pro.storage import (
    CONTACTS_KEY,
    SQLiteKeyValueStore,
    get_db_path,
    load_contacts,
    load_settings,
    save_contacts,
    save_settings,
)


def test_kv_basic_operations(temp_store):
    """Test get/set/delete on the key-value store."""
    assert temp_store.get("missing") is None

    temp_store.set("alpha", b"one")
    temp_store.set("beta", b"\x00\xff")
    assert temp_store.get("alpha") == b"one"
    assert temp_store.get("beta") == b"\x00\xff"

    temp_store.set("alpha", b"two")
    assert temp_store.get("alpha") == b"two"
    assert temp_store.keys() == ["alpha", "beta"]

    assert temp_store.delete("alpha") is True
    assert temp_store.delete("alpha") is False
    assert temp_store.get("alpha") is None


def test_kv_persists_across_instances(tmp_path):
    path = tmp_path / "persist.sqlite3"
    store = SQLiteKeyValueStore(path)
    store.set("k", b"v")
    store.close()

    reopened = SQLiteKeyValueStore(path)
    try:
        assert reopened.get("k") == b"v"
    finally:
        reopened.close()


def test_db_path_env_override(tmp_path, monkeypatch):
    target = tmp_path / "nested" / "env.sqlite3"
    monkeypatch.setenv("HAMLOG_DB_PATH", str(target))
    assert get_db_path() == target
    store = SQLiteKeyValueStore()
    try:
        assert store.path == target
        assert target.exists()
    finally:
        store.close()


def test_contacts_round_trip_losslessly(temp_store, sample_qso):
    other = QSO(
        callsign="JA1DEF",
        timestamp=datetime(2024, 1, 3, 8, 15, 30),
        band="15m",
        mode="CW",
        synced=True,
        audio_ref="blob:1234",
        profile_image_url="https://example.org/ja1def.png",
    )
    save_contacts(temp_store, [sample_qso, other])

    loaded = load_contacts(temp_store)
    assert [q.model_dump() for q in loaded] == [sample_qso.model_dump(), other.model_dump()]


def test_load_contacts_empty_store(temp_store):
    assert load_contacts(temp_store) == []


def test_load_contacts_accepts_legacy_field_names(temp_store):
    legacy = [
        {
            "id": "1720094400000",
            "timestamp": "2024-07-04T12:00:00.000Z",
            "callsign": "IZ3MEZ",
            "rstSent": "59",
            "rstRcvd": "59",
            "band": "40m",
            "mode": "SSB",
            "power": "100W",
            "name": "Mario",
            "qth": "Padova",
            "locator": "JN55vk",
            "synced": True,
        }
    ]
    temp_store.set(CONTACTS_KEY, json.dumps(legacy).encode("utf-8"))
    (q,) = load_contacts(temp_store)
    assert q.id == "1720094400000"
    assert q.grid == "JN55vk"
    assert q.synced is True


def test_corrupt_contacts_raise(temp_store):
    temp_store.set(CONTACTS_KEY, b"{not json")
    with pytest.raises(StorageError):
        load_contacts(temp_store)
    temp_store.set(CONTACTS_KEY, b'{"a": 1}')
    with pytest.raises(StorageError):
        load_contacts(temp_store)


def test_settings_round_trip(temp_store):
    assert load_settings(temp_store) == UserSettings()

    settings = UserSettings(my_call="iu3abc", my_locator="jn55VK", sota_enabled=False)
    assert settings.my_call == "IU3ABC"
    assert settings.my_locator == "JN55vk"
    save_settings(temp_store, settings)

    assert load_settings(temp_store) == settings


def test_settings_reject_bad_locator():
    with pytest.raises(ValueError):
        UserSettings(my_locator="ZZ99")


def test_state_add_remove_clear(temp_store, sample_qso):
    state = LogbookState.load(temp_store)
    assert state.contacts == []

    state.add(sample_qso)
    newer = state.add(QSO(callsign="W1AW", timestamp=sample_qso.timestamp + timedelta(hours=1)))
    assert [q.callsign for q in state.contacts] == ["W1AW", "K1ABC"]

    # Reloading from the store sees the same log.
    assert [q.id for q in LogbookState.load(temp_store).contacts] == [newer.id, sample_qso.id]

    assert state.remove(sample_qso.id) is True
    assert state.remove(sample_qso.id) is False
    assert [q.callsign for q in state.contacts] == ["W1AW"]

    assert state.clear() == 1
    assert state.contacts == []
    assert load_contacts(temp_store) == []


def test_state_update_failure_leaves_log_unchanged(temp_store, sample_qso):
    state = LogbookState(temp_store, [sample_qso])

    def boom(current):
        raise RuntimeError("merge failed")

    with pytest.raises(RuntimeError):
        state.update(boom)
    assert [q.id for q in state.contacts] == [sample_qso.id]


def test_state_contacts_is_a_snapshot(temp_store, sample_qso):
    state = LogbookState(temp_store, [sample_qso])
    snapshot = state.contacts
    snapshot.clear()
    assert len(state.contacts) == 1


def test_state_settings(temp_store):
    state = LogbookState.load(temp_store)
    state.set_settings(UserSettings(my_call="K1ABC"))
    assert LogbookState.load(temp_store).settings.my_call == "K1ABC"


def test_search_contacts():
    base = datetime(2024, 1, 1, 10, 0, 0)
    contacts = [
        QSO(callsign="W1ABC", timestamp=base, band="20m", mode="SSB", grid="FN31"),
        QSO(callsign="K2XYZ", timestamp=base, band="40m", mode="CW"),
        QSO(callsign="W1DEF", timestamp=base, band="20m", mode="FT8", grid="FN42"),
    ]
    assert [q.callsign for q in search_contacts(contacts, call="w1")] == ["W1ABC", "W1DEF"]
    assert [q.callsign for q in search_contacts(contacts, band="20M")] == ["W1ABC", "W1DEF"]
    assert [q.callsign for q in search_contacts(contacts, mode="cw")] == ["K2XYZ"]
    assert [q.callsign for q in search_contacts(contacts, grid="fn42")] == ["W1DEF"]
    assert [q.callsign for q in search_contacts(contacts, band="20m", limit=1)] == ["W1ABC"]
    assert search_contacts(contacts, call="ZZ9") == []
