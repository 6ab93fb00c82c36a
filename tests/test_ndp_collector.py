import json

import pytest

from eveship.ndp_collector import collect, collect_ftp, collect_smb
from eveship.ndp_core import NdpContext, NdpSettings, md5_hex, parse_networks


def _context(**overrides):
    calls = []
    options = {
        "ignore_networks": parse_networks("10.0.0.0/8,192.168.0.0/16"),
        "smb_commands": ("SMB2_COMMAND_CREATE", "SMB2_COMMAND_READ"),
        "ftp_commands": ("RETR", "STOR", "USER"),
    }
    options.update(overrides)
    ctx = NdpContext(
        settings=NdpSettings(**options),
        output=lambda text, index, doc_id: calls.append((text, index, doc_id)),
    )
    return ctx, calls


def _smb_event(command="SMB2_COMMAND_CREATE", filename="share\\a.txt"):
    return {
        "timestamp": "2024-01-01T00:00:00",
        "community_id": "1:abc",
        "smb": {"command": command, "filename": filename},
    }


def _ftp_event(command="RETR", data="report.pdf"):
    return {"timestamp": "2024-01-01T00:00:00", "ftp": {"command": command, "command_data": data}}


def test_smb_emits_document_keyed_by_command_and_filename():
    ctx, calls = _context()
    text = collect_smb(ctx, _smb_event(), "10.0.0.1", "10.0.0.2", "77")
    assert len(calls) == 1
    sent, index, doc_id = calls[0]
    assert sent == text
    assert index == "ndp"
    assert doc_id == md5_hex("SMB2_COMMAND_CREATE|share\\a.txt")
    doc = json.loads(text)
    assert doc["type"] == "smb"
    assert doc["command"] == "SMB2_COMMAND_CREATE"
    assert doc["filename"] == "share\\a.txt"
    assert doc["flow_id"] == "77"
    assert doc["timestamp"] == json.dumps("2024-01-01T00:00:00")
    assert doc["community_id"] == "1:abc"


def test_smb_repeat_is_skipped():
    ctx, calls = _context()
    collect_smb(ctx, _smb_event(), "10.0.0.1", "10.0.0.2", "1")
    assert collect_smb(ctx, _smb_event(), "10.0.0.1", "10.0.0.2", "2") is None
    assert len(calls) == 1
    assert ctx.skipped == 1
    assert ctx.sent == 1


def test_smb_unlisted_command_or_missing_filename_sends_nothing():
    ctx, calls = _context()
    assert collect_smb(ctx, _smb_event(command="SMB2_COMMAND_CLOSE"), "a", "b", "1") is None
    event = {"smb": {"command": "SMB2_COMMAND_READ"}}
    assert collect_smb(ctx, event, "a", "b", "1") is None
    assert calls == []


def test_smb_geoip_is_spliced_in():
    ctx, calls = _context(geoip=True)
    event = _smb_event()
    event["geoip_src"] = {"country": "US"}
    text = collect_smb(ctx, event, "10.0.0.1", "10.0.0.2", "1")
    assert json.loads(text)["geoip_src"] == {"country": "US"}


def test_ftp_emits_document_and_skips_repeat():
    ctx, calls = _context(description="sensor")
    text = collect_ftp(ctx, _ftp_event(), "1.2.3.4", "5.6.7.8", "9")
    doc = json.loads(text)
    assert doc["command"] == "RETR"
    assert doc["command_data"] == "report.pdf"
    assert doc["description"] == "sensor"
    assert doc["timestamp"] == "2024-01-01T00:00:00"
    assert calls[0][2] == md5_hex("RETR|report.pdf")
    assert collect_ftp(ctx, _ftp_event(), "1.2.3.4", "5.6.7.8", "9") is None
    assert ctx.skipped == 1


def test_ftp_unlisted_command_sends_nothing():
    ctx, calls = _context()
    assert collect_ftp(ctx, _ftp_event(command="PASV"), "a", "b", "1") is None
    assert calls == []


def test_ftp_different_data_is_new_document():
    ctx, calls = _context()
    collect_ftp(ctx, _ftp_event(data="one"), "a", "b", "1")
    collect_ftp(ctx, _ftp_event(data="two"), "a", "b", "1")
    assert [c[2] for c in calls] == [md5_hex("RETR|one"), md5_hex("RETR|two")]


def test_collect_ignores_events_inside_networks():
    ctx, calls = _context()
    assert collect(ctx, _ftp_event(), "ftp", "10.0.0.1", "192.168.1.1", "1") == []
    assert calls == []


def test_collect_routes_outside_events():
    ctx, calls = _context()
    sent = collect(ctx, _ftp_event(), "ftp", "10.0.0.1", "8.8.8.8", "1")
    assert len(sent) == 1
    assert json.loads(sent[0])["type"] == "ftp"


def test_collect_respects_disabled_route_and_unknown_type():
    ctx, calls = _context(routes=frozenset({"smb"}))
    assert collect(ctx, _ftp_event(), "ftp", "10.0.0.1", "8.8.8.8", "1") == []
    assert collect(ctx, {}, "alert", "10.0.0.1", "8.8.8.8", "1") == []
    assert calls == []


@pytest.mark.parametrize("internal", [True, False])
def test_collect_smb_internal_setting(internal):
    ctx, calls = _context(smb_internal=internal)
    inside = collect(ctx, _smb_event(), "smb", "10.0.0.1", "10.0.0.2", "1")
    assert len(inside) == (1 if internal else 0)
    outside = collect(ctx, _smb_event(filename="other"), "smb", "10.0.0.1", "8.8.8.8", "1")
    assert len(outside) == (0 if internal else 1)


def test_collect_dispatches_flow_as_list():
    ctx, calls = _context()
    event = {"flow": {"state": "established", "age": 3}}
    sent = collect(ctx, event, "flow", "10.0.0.1", "8.8.8.8", "5")
    assert len(sent) == 1
    assert calls[0][2] == md5_hex("8.8.8.8")