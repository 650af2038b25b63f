from typer.testing import CliRunner

from hamlog_pro.cli import app
from hamlog_pro.state import LogbookState
from hamlog_pro.storage import SQLiteKeyValueStore

runner = CliRunner()


def _state():
    return LogbookState.load(SQLiteKeyValueStore())


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "HamLog Pro" in result.output


def test_init_and_log_and_list():
    """Log a contact through the CLI and read it back from the store."""
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["settings", "set", "--my-locator", "JN61fv", "--my-call", "iu0abc"])
    assert result.exit_code == 0, result.output

    result = runner.invoke(
        app,
        ["log", "--call", "iz3mez", "--when", "2024-07-04 12:00", "--band", "20m", "--grid", "JN55vk"],
    )
    assert result.exit_code == 0, result.output
    assert "IZ3MEZ" in result.output

    (q,) = _state().contacts
    assert q.callsign == "IZ3MEZ"
    assert q.distance_km is not None and q.distance_km > 0
    assert q.synced is False

    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0, result.output
    assert "IZ3MEZ" in result.output


def test_log_suggests_references():
    result = runner.invoke(
        app, ["log", "--call", "K1ABC", "--lat", "45.87", "--lon", "11.80"]
    )
    assert result.exit_code == 0, result.output
    (q,) = _state().contacts
    assert q.summit_ref == "I/VE-045"
    assert q.park_ref is None


def test_log_rejects_bad_band():
    result = runner.invoke(app, ["log", "--call", "K1ABC", "--band", "11m"])
    assert result.exit_code == 1
    assert _state().contacts == []


def test_grid_commands():
    result = runner.invoke(app, ["grid", "encode", "--lat", "0", "--lon", "0"])
    assert result.exit_code == 0
    assert "JJ00aa" in result.output

    result = runner.invoke(app, ["grid", "decode", "JJ00"])
    assert result.exit_code == 0
    assert "0.5000 1.0000" in result.output

    result = runner.invoke(app, ["grid", "decode", "A"])
    assert result.exit_code == 1


def test_remote_push_and_import(tmp_path):
    remote = tmp_path / "remote.adi"
    runner.invoke(app, ["log", "--call", "W1AW", "--when", "2024-07-04 12:00"])

    result = runner.invoke(app, ["remote", "push", "--adif", str(remote)])
    assert result.exit_code == 0, result.output
    assert all(q.synced for q in _state().contacts)

    result = runner.invoke(app, ["remote", "import", "--adif", str(remote)])
    assert result.exit_code == 0, result.output
    assert len(_state().contacts) == 1


def test_export_and_import_adif(tmp_path):
    out = tmp_path / "log.adi"
    runner.invoke(app, ["log", "--call", "W1AW", "--when", "2024-07-04 12:00"])
    result = runner.invoke(app, ["export", "--output", str(out)])
    assert result.exit_code == 0, result.output
    assert out.exists()

    # Re-importing the same file adds nothing.
    result = runner.invoke(app, ["import-adif", str(out)])
    assert result.exit_code == 0, result.output
    assert len(_state().contacts) == 1

    result = runner.invoke(app, ["clear", "--yes"])
    assert result.exit_code == 0
    assert _state().contacts == []


def test_log_duplicate_asks_before_saving():
    args = ["log", "--call", "W1AW", "--when", "2024-07-04 12:00"]
    assert runner.invoke(app, args).exit_code == 0

    result = runner.invoke(app, ["log", "--call", "w1aw", "--when", "2024-07-04 12:00:30"], input="n\n")
    assert result.exit_code == 1
    assert "already logged" in result.output
    assert len(_state().contacts) == 1

    result = runner.invoke(app, ["log", "--call", "W1AW", "--when", "2024-07-04 12:00:30"], input="y\n")
    assert result.exit_code == 0, result.output
    assert len(_state().contacts) == 2

    result = runner.invoke(app, args + ["--force"])
    assert result.exit_code == 0, result.output
    assert len(_state().contacts) == 3


def test_log_prefills_from_earlier_contact():
    runner.invoke(app, ["settings", "set", "--my-locator", "JN61fv"])
    runner.invoke(
        app,
        ["log", "--call", "IZ3MEZ", "--when", "2024-07-01 12:00", "--name", "Mario", "--qth", "Padova", "--grid", "JN55vk"],
    )
    result = runner.invoke(app, ["log", "--call", "iz3mez", "--when", "2024-07-04 12:00"])
    assert result.exit_code == 0, result.output

    newest = _state().contacts[0]
    assert newest.timestamp.day == 4
    assert newest.name == "Mario"
    assert newest.qth == "Padova"
    assert newest.grid == "JN55vk"
    assert newest.distance_km is not None


def test_log_auto_sync_pushes_to_remote(tmp_path):
    remote = tmp_path / "remote.adi"
    result = runner.invoke(app, ["settings", "set", "--auto-sync", "--remote-adif", str(remote)])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["log", "--call", "W1AW", "--when", "2024-07-04 12:00"])
    assert result.exit_code == 0, result.output
    assert "Auto-sync" in result.output
    assert "<CALL:4>W1AW" in remote.read_text(encoding="utf-8")
    assert all(q.synced for q in _state().contacts)

    # Without --adif the remote commands use the configured file.
    result = runner.invoke(app, ["remote", "import"])
    assert result.exit_code == 0, result.output
    assert len(_state().contacts) == 1


def test_log_without_auto_sync_stays_pending(tmp_path):
    remote = tmp_path / "remote.adi"
    runner.invoke(app, ["settings", "set", "--remote-adif", str(remote)])
    runner.invoke(app, ["log", "--call", "W1AW", "--when", "2024-07-04 12:00"])
    assert not remote.exists()
    assert _state().contacts[0].synced is False


def test_remote_without_configured_file_fails():
    result = runner.invoke(app, ["remote", "push"])
    assert result.exit_code == 1


def test_settings_clear_locator():
    runner.invoke(app, ["settings", "set", "--my-locator", "JN61fv"])
    assert _state().settings.my_locator == "JN61fv"

    result = runner.invoke(app, ["settings", "set", "--clear-locator"])
    assert result.exit_code == 0, result.output
    assert _state().settings.my_locator is None

    result = runner.invoke(app, ["settings", "set", "--clear-locator", "--my-locator", "JN61fv"])
    assert result.exit_code == 1
