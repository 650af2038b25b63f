import pytest


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point the database and reference catalog config at a temp directory."""
    monkeypatch.setenv("HAMLOG_DB_PATH", str(tmp_path / "test.sqlite3"))
    monkeypatch.setenv("HAMLOG_REFERENCES_CONFIG", str(tmp_path / "references.json"))
    yield tmp_path


@pytest.fixture
def sample_qso():
    """Create a sample QSO for testing."""
    from datetime import datetime

    from hamlog_pro.models import QSO

    return QSO(
        callsign="K1ABC",
        timestamp=datetime(2024, 7, 4, 12, 0, 0),
        band="20m",
        mode="SSB",
        rst_sent="59",
        rst_rcvd="57",
        power="100W",
        name="Test",
        qth="Test City",
        grid="FN42aa",
        park_ref="K-0001",
        distance_km=6500,
        notes="Test QSO",
    )


@pytest.fixture
def temp_store(tmp_path):
    """Create a key-value store on a temporary database."""
    from hamlog_pro.storage import SQLiteKeyValueStore

    store = SQLiteKeyValueStore(tmp_path / "store.sqlite3")
    try:
        yield store
    finally:
        store.close()
