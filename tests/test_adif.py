from datetime import datetime

from hamlog_pro.adif import dump_adif, load_adif
from hamlog_pro.models import QSO


def test_adif_roundtrip_basic(sample_qso):
    """Test basic ADIF export/import roundtrip."""
    txt = dump_adif([sample_qso])
    assert "<PROGRAMID:9>HAMLOGPRO" in txt
    assert "<POTA_REF:6>K-0001" in txt

    parsed = load_adif(txt)
    assert len(parsed) == 1
    p = parsed[0]
    assert p.id == sample_qso.id
    assert p.callsign == sample_qso.callsign
    assert p.timestamp == sample_qso.timestamp
    assert p.band == sample_qso.band
    assert p.mode == sample_qso.mode
    assert p.rst_rcvd == sample_qso.rst_rcvd
    assert p.grid == sample_qso.grid
    assert p.park_ref == sample_qso.park_ref
    assert p.distance_km == sample_qso.distance_km
    assert p.notes == sample_qso.notes
    assert p.synced is False


def test_adif_load_as_synced(sample_qso):
    parsed = load_adif(dump_adif([sample_qso]), synced=True)
    assert parsed[0].synced is True


def test_adif_empty():
    """Test empty ADIF input."""
    assert load_adif("") == []


def test_adif_malformed():
    """Test that malformed ADIF doesn't crash."""
    malformed = "<CALL:5>K1ABC<QSO_DATE:8>20240704<EOR>"  # Missing TIME_ON
    assert load_adif(malformed) == []


def test_adif_skips_unknown_band_and_uses_freq():
    text = (
        "header text <ADIF_VER:5>3.1.4 <EOH>\n"
        "<CALL:5>K1ABC<QSO_DATE:8>20240704<TIME_ON:4>1234<BAND:3>11m<EOR>\n"
        "<call:5>g0xyz<qso_date:8>20240705<time_on:6>010203<freq:6>14.074<mode:3>FT8<eor>\n"
    )
    parsed = load_adif(text)
    assert len(parsed) == 1
    q = parsed[0]
    assert q.callsign == "G0XYZ"
    assert q.timestamp == datetime(2024, 7, 5, 1, 2, 3)
    assert q.band == "20m"
    assert q.mode == "FT8"


def test_adif_many_records():
    qsos = [
        QSO(callsign=f"K1AB{i}", timestamp=datetime(2024, 7, 4, 12, i, 0), band="20m")
        for i in range(50)
    ]
    parsed = load_adif(dump_adif(qsos))
    assert [q.callsign for q in parsed] == [q.callsign for q in qsos]


def test_adif_tags_are_case_insensitive():
    text = (
        "<adif_ver:5>3.1.4<Eoh>\n"
        "<call:4>W1AW<qso_date:8>20240704<time_on:4>1200<Eor>\n"
        "<CALL:5>K2ABC<QSO_DATE:8>20240704<TIME_ON:4>1300<eOR>\n"
    )
    parsed = load_adif(text)
    assert [q.callsign for q in parsed] == ["W1AW", "K2ABC"]


def test_adif_dump_without_header(sample_qso):
    txt = dump_adif([sample_qso], header=False)
    assert "<EOH>" not in txt
    assert "PROGRAMID" not in txt
    assert [q.id for q in load_adif(txt)] == [sample_qso.id]
