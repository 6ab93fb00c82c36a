"""NDP collection for flow endpoints and file hashes."""

from __future__ import annotations

import ipaddress
import json
from collections.abc import Mapping
from typing import Any

from eveship.ndp_core import NdpContext, md5_hex

MD5_HEX_LENGTH = 32

_FLOW_EVENT_TEXT_FIELDS = ("timestamp", "community_id", "proto", "host", "app_proto")
_FLOW_INT_FIELDS = ("bytes_toserver", "bytes_toclient", "age", "state")
_FLOW_TAIL_TEXT_FIELDS = ("start", "end")
_FILEINFO_EVENT_TEXT_FIELDS = ("timestamp", "community_id", "app_proto", "host")
_FILEINFO_TEXT_FIELDS = ("sha1", "sha256", "filename", "magic")


def _text(value: Any) -> str:
    """Render a JSON value as text: strings as they are, anything else as JSON."""
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _integer(value: Any) -> int:
    """Read a JSON value as an integer the lenient way; unreadable values are 0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return 0
    return 0


def _boolean(value: Any) -> bool:
    """Read a JSON value as a boolean: numbers by non-zero, strings by non-empty."""
    if isinstance(value, (bool, int, float)):
        return bool(value)
    if isinstance(value, str):
        return len(value) > 0
    return False


def _member(value: Any) -> Mapping[str, Any] | None:
    """Return a nested object, parsing it first if it arrived as JSON text."""
    if isinstance(value, Mapping):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return None
        if isinstance(parsed, Mapping):
            return parsed
    return None


def _is_ipv4(ip: str) -> bool:
    try:
        ipaddress.IPv4Address(ip)
    except ValueError:
        return False
    return True


def _geoip(ctx: NdpContext, event: Mapping[str, Any]) -> tuple[str | None, str | None]:
    if not ctx.settings.geoip:
        return None, None
    src = json.dumps(event["geoip_src"]) if "geoip_src" in event else None
    dest = json.dumps(event["geoip_dest"]) if "geoip_dest" in event else None
    return src, dest


def _add_dns(ctx: NdpContext, event: Mapping[str, Any], document: dict[str, Any]) -> None:
    if not ctx.settings.dns:
        return
    for key in ("src_dns", "dest_dns"):
        if key in event:
            document[key] = _text(event[key])


def _add_description(ctx: NdpContext, document: dict[str, Any]) -> None:
    if ctx.settings.description:
        document["description"] = ctx.settings.description


def collect_flow(
    ctx: NdpContext,
    event: Mapping[str, Any],
    src_ip: str,
    dest_ip: str,
    flow_id: str,
) -> list[str]:
    """Record the outside IPv4 endpoints of a flow.

    Each endpoint that is not in a network of interest gets its own document,
    keyed by the MD5 of its address. Nothing is sent if either address repeats
    the last flow id, or if the flow carries no state. Returns the JSON texts
    that were sent.
    """
    for ip in (src_ip, dest_ip):
        doc_id = md5_hex(ip)
        if ctx.is_repeat("flow", doc_id):
            ctx.skip("flow", doc_id)
            return []

    state = _member(event.get("flow"))
    if state is None or "state" not in state:
        return []

    geoip_src, geoip_dest = _geoip(ctx, event)
    sent: list[str] = []

    for ip in (src_ip, dest_ip):
        if ctx.in_range(ip) or not _is_ipv4(ip):
            continue

        document: dict[str, Any] = {
            "type": "flow",
            "flow_id": flow_id,
            "src_ip": src_ip,
            "dest_ip": dest_ip,
        }
        _add_description(ctx, document)
        _add_dns(ctx, event, document)

        for key in _FLOW_EVENT_TEXT_FIELDS:
            if key in event:
                document[key] = _text(event[key])
        for key in _FLOW_INT_FIELDS:
            if key in state:
                document[key] = _integer(state[key])
        if "reason" in state:
            document["reason"] = _text(state["reason"])
        if "alerted" in state:
            document["alerted"] = _boolean(state["alerted"])
        for key in _FLOW_TAIL_TEXT_FIELDS:
            if key in state:
                document[key] = _text(state[key])

        sent.append(ctx.emit("flow", document, md5_hex(ip), geoip_src, geoip_dest))

    return sent


def collect_fileinfo(
    ctx: NdpContext,
    event: Mapping[str, Any],
    src_ip: str,
    dest_ip: str,
    flow_id: str,
) -> str | None:
    """Record the hashes and details of a transferred file, keyed by its MD5.

    A file whose MD5 repeats the last one sent is skipped and None returned;
    otherwise the JSON text that was sent is returned.
    """
    document: dict[str, Any] = {
        "type": "fileinfo",
        "src_ip": src_ip,
        "dest_ip": dest_ip,
        "flow_id": flow_id,
    }
    geoip_src, geoip_dest = _geoip(ctx, event)
    _add_dns(ctx, event, document)
    _add_description(ctx, document)

    for key in _FILEINFO_EVENT_TEXT_FIELDS:
        if key in event:
            document[key] = _text(event[key])

    md5 = ""
    fileinfo = _member(event.get("fileinfo"))
    if fileinfo is not None:
        if "md5" in fileinfo:
            md5 = _text(fileinfo["md5"])[:MD5_HEX_LENGTH]
            if ctx.is_repeat("fileinfo", md5):
                ctx.skip("fileinfo", md5)
                return None
        for key in _FILEINFO_TEXT_FIELDS:
            if key in fileinfo:
                document[key] = _text(fileinfo[key])
        if "size" in fileinfo:
            document["size"] = _integer(fileinfo["size"])

    return ctx.emit("fileinfo", document, md5, geoip_src, geoip_dest)