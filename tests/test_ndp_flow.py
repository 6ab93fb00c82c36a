import json

import pytest

from eveship.ndp_core import NdpContext, NdpSettings, md5_hex, parse_networks
from eveship.ndp_flow import collect_fileinfo, collect_flow


def make_ctx(**settings):
    records = []

    def output(json_text, index, doc_id):
        records.append((json_text, index, doc_id))

    base = {"ignore_networks": parse_networks("10.0.0.0/8")}
    base.update(settings)
    ctx = NdpContext(settings=NdpSettings(**base), output=output)
    return ctx, records


def flow_event(**extra):
    event = {
        "timestamp": "2022-01-01T00:00:00.000000+0000",
        "proto": "TCP",
        "app_proto": "http",
        "community_id": "1:abc=",
        "flow": {
            "bytes_toserver": 100,
            "bytes_toclient": 250,
            "age": 3,
            "state": "established",
            "reason": "timeout",
            "alerted": False,
            "start": "s",
            "end": "e",
        },
    }
    event.update(extra)
    return event


def file_event(md5="d41d8cd98f00b204e9800998ecf8427e", **extra):
    event = {
        "timestamp": "ts",
        "app_proto": "http",
        "fileinfo": {
            "md5": md5,
            "sha1": "s1",
            "sha256": "s256",
            "filename": "/a.exe",
            "magic": "PE32",
            "size": 42,
        },
    }
    event.update(extra)
    return event


def test_flow_emits_outside_endpoint_only():
    ctx, records = make_ctx()
    sent = collect_flow(ctx, flow_event(), "10.0.0.5", "203.0.113.7", "77")
    assert len(sent) == 1
    json_text, index, doc_id = records[0]
    assert index == "ndp"
    assert doc_id == md5_hex("203.0.113.7")
    doc = json.loads(json_text)
    assert doc["type"] == "flow"
    assert doc["flow_id"] == "77"
    assert doc["src_ip"] == "10.0.0.5"
    assert doc["dest_ip"] == "203.0.113.7"
    assert doc["bytes_toserver"] == 100
    assert doc["bytes_toclient"] == 250
    assert doc["reason"] == "timeout"
    assert doc["alerted"] is False
    assert doc["proto"] == "TCP"
    assert doc["state"] == 0
    assert ctx.sent == 1


def test_flow_repeat_is_skipped():
    ctx, records = make_ctx()
    collect_flow(ctx, flow_event(), "10.0.0.5", "203.0.113.7", "1")
    second = collect_flow(ctx, flow_event(), "10.0.0.6", "203.0.113.7", "2")
    assert second == []
    assert len(records) == 1
    assert ctx.skipped == 1


def test_flow_without_state_sends_nothing():
    ctx, records = make_ctx()
    event = flow_event(flow={"bytes_toserver": 1})
    assert collect_flow(ctx, event, "10.0.0.5", "203.0.113.7", "1") == []
    assert records == []


def test_flow_ignores_ipv6_endpoint():
    ctx, records = make_ctx()
    assert collect_flow(ctx, flow_event(), "10.0.0.5", "2001:db8::1", "1") == []
    assert records == []


def test_flow_both_outside_sends_two():
    ctx, records = make_ctx()
    sent = collect_flow(ctx, flow_event(), "198.51.100.1", "203.0.113.7", "1")
    assert len(sent) == 2
    assert [r[2] for r in records] == [md5_hex("198.51.100.1"), md5_hex("203.0.113.7")]


def test_flow_geoip_description_and_dns():
    ctx, records = make_ctx(geoip=True, dns=True, description="sensor")
    geo = {"country": "US"}
    event = flow_event(geoip_src=geo, src_dns="a.example.com", dest_dns="b.example.com")
    collect_flow(ctx, event, "10.0.0.5", "203.0.113.7", "1")
    doc = json.loads(records[0][0])
    assert doc["geoip_src"] == geo
    assert "geoip_dest" not in doc
    assert doc["description"] == "sensor"
    assert doc["src_dns"] == "a.example.com"
    assert doc["dest_dns"] == "b.example.com"


def test_flow_dns_off_leaves_dns_out():
    ctx, records = make_ctx()
    collect_flow(ctx, flow_event(src_dns="a.example.com"), "10.0.0.5", "203.0.113.7", "1")
    assert "src_dns" not in json.loads(records[0][0])


def test_fileinfo_emits_keyed_by_md5():
    ctx, records = make_ctx()
    text = collect_fileinfo(ctx, file_event(), "10.0.0.5", "203.0.113.7", "9")
    assert records[0][2] == "d41d8cd98f00b204e9800998ecf8427e"
    doc = json.loads(text)
    assert doc["type"] == "fileinfo"
    assert doc["sha256"] == "s256"
    assert doc["filename"] == "/a.exe"
    assert doc["size"] == 42
    assert doc["flow_id"] == "9"


def test_fileinfo_repeat_md5_skipped():
    ctx, records = make_ctx()
    collect_fileinfo(ctx, file_event(), "10.0.0.5", "203.0.113.7", "1")
    assert collect_fileinfo(ctx, file_event(), "10.0.0.5", "203.0.113.7", "2") is None
    assert len(records) == 1
    assert ctx.skipped == 1


def test_fileinfo_without_md5_is_never_skipped():
    ctx, records = make_ctx()
    event = {"fileinfo": {"filename": "x"}}
    collect_fileinfo(ctx, event, "10.0.0.5", "203.0.113.7", "1")
    collect_fileinfo(ctx, event, "10.0.0.5", "203.0.113.7", "2")
    assert [r[2] for r in records] == ["", ""]
    assert ctx.skipped == 0


@pytest.mark.parametrize("geoip", [True, False])
def test_fileinfo_geoip_follows_setting(geoip):
    ctx, records = make_ctx(geoip=geoip)
    geo = {"city": "Somewhere"}
    collect_fileinfo(ctx, file_event(geoip_dest=geo), "10.0.0.5", "203.0.113.7", "1")
    doc = json.loads(records[0][0])
    assert ("geoip_dest" in doc) is geoip
    if geoip:
        assert doc["geoip_dest"] == geo


def test_fileinfo_accepts_nested_json_text():
    ctx, records = make_ctx()
    event = {"fileinfo": json.dumps({"md5": "abc", "magic": "ELF"})}
    collect_fileinfo(ctx, event, "10.0.0.5", "203.0.113.7", "1")
    assert records[0][2] == "abc"
    assert json.loads(records[0][0])["magic"] == "ELF"