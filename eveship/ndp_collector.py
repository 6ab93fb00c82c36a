"""NDP collection for SMB and FTP commands, and the dispatcher for all event types."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Union

from eveship.ndp_core import NdpContext, md5_hex
from eveship.ndp_flow import (
    _add_description,
    _add_dns,
    _geoip,
    _member,
    _text,
    collect_fileinfo,
    collect_flow,
)
from eveship.ndp_http import _json, collect_http, collect_ssh
from eveship.ndp_tls import collect_dns, collect_tls

COMMAND_LENGTH = 63
ARGUMENT_LENGTH = 10239
COMMAND_ID_LENGTH = COMMAND_LENGTH + 1 + ARGUMENT_LENGTH

CollectResult = Union[list[str], str, None]
Collector = Callable[[NdpContext, Mapping[str, Any], str, str, str], CollectResult]


def collect_smb(
    ctx: NdpContext,
    event: Mapping[str, Any],
    src_ip: str,
    dest_ip: str,
    flow_id: str,
) -> str | None:
    """Record an SMB command of interest together with the file it touches.

    Only commands listed in the settings are recorded, and only when a
    filename is present. The id is the MD5 of "command|filename"; a repeat of
    the last one sent is skipped. Returns the JSON text sent, or None.
    """
    document: dict[str, Any] = {
        "type": "smb",
        "src_ip": src_ip,
        "dest_ip": dest_ip,
        "flow_id": flow_id,
    }
    _add_description(ctx, document)
    geoip_src, geoip_dest = _geoip(ctx, event)

    if ctx.settings.dns:
        for key in ("src_dns", "dest_dns"):
            if key in event:
                document[key] = _json(event[key])

    if "timestamp" in event:
        document["timestamp"] = _json(event["timestamp"])
    if "community_id" in event:
        document["community_id"] = _text(event["community_id"])
    if "host" in event:
        document["host"] = _json(event["host"])

    smb = _member(event.get("smb"))
    if smb is None or "command" not in smb:
        return None

    command = _text(smb["command"])[:COMMAND_LENGTH]
    if command not in ctx.settings.smb_commands or "filename" not in smb:
        return None

    filename = _text(smb["filename"])[:ARGUMENT_LENGTH]
    doc_id = md5_hex(f"{command}|{filename}"[:COMMAND_ID_LENGTH])
    if ctx.is_repeat("smb", doc_id):
        ctx.skip("smb", doc_id)
        return None

    document["command"] = command
    document["filename"] = filename
    return ctx.emit("smb", document, doc_id, geoip_src, geoip_dest)


def collect_ftp(
    ctx: NdpContext,
    event: Mapping[str, Any],
    src_ip: str,
    dest_ip: str,
    flow_id: str,
) -> str | None:
    """Record an FTP command of interest (files sent or received, user names).

    Only commands listed in the settings are recorded, and only when command
    data is present. The id is the MD5 of "command|command_data"; a repeat of
    the last one sent is skipped. Returns the JSON text sent, or None.
    """
    document: dict[str, Any] = {
        "type": "ftp",
        "src_ip": src_ip,
        "dest_ip": dest_ip,
        "flow_id": flow_id,
    }
    geoip_src, geoip_dest = _geoip(ctx, event)
    _add_dns(ctx, event, document)
    _add_description(ctx, document)

    for key in ("timestamp", "community_id", "host"):
        if key in event:
            document[key] = _text(event[key])

    ftp = _member(event.get("ftp"))
    if ftp is None or "command" not in ftp:
        return None

    command = _text(ftp["command"])[:COMMAND_LENGTH]
    if command not in ctx.settings.ftp_commands or "command_data" not in ftp:
        return None

    data = _text(ftp["command_data"])[:ARGUMENT_LENGTH]
    doc_id = md5_hex(f"{command}|{data}"[:COMMAND_ID_LENGTH])
    if ctx.is_repeat("ftp", doc_id):
        ctx.skip("ftp", doc_id)
        return None

    document["command"] = command
    document["command_data"] = data
    return ctx.emit("ftp", document, doc_id, geoip_src, geoip_dest)


_COLLECTORS: dict[str, Collector] = {
    "flow": collect_flow,
    "http": collect_http,
    "ssh": collect_ssh,
    "fileinfo": collect_fileinfo,
    "tls": collect_tls,
    "dns": collect_dns,
    "ftp": collect_ftp,
    "smb": collect_smb,
}


def _as_list(result: CollectResult) -> list[str]:
    if result is None:
        return []
    if isinstance(result, str):
        return [result]
    return list(result)


def collect(
    ctx: NdpContext,
    event: Mapping[str, Any],
    event_type: str,
    src_ip: str,
    dest_ip: str,
    flow_id: str,
) -> list[str]:
    """Route an EVE event to the collector for its type.

    SMB events bypass the address check when internal SMB collection is on.
    Otherwise an event is collected only when at least one of its addresses
    lies outside the networks of interest and its type is routed. Returns the
    JSON texts that were sent.
    """
    settings = ctx.settings
    routed = event_type in settings.routes

    if event_type == "smb" and routed and settings.smb_internal:
        return _as_list(collect_smb(ctx, event, src_ip, dest_ip, flow_id))

    if ctx.in_range(src_ip) and ctx.in_range(dest_ip):
        return []

    collector = _COLLECTORS.get(event_type)
    if collector is None or not routed:
        return []
    if event_type == "smb" and settings.smb_internal:
        return []
    return _as_list(collector(ctx, event, src_ip, dest_ip, flow_id))