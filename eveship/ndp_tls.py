"""NDP collection for TLS fingerprints and DNS queries."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from eveship.ndp_core import NdpContext, md5_hex
from eveship.ndp_flow import _add_description, _add_dns, _member, _text

log = logging.getLogger(__name__)

JA3_HASH_LENGTH = 40
TLS_ID_LENGTH = 67
RRNAME_LENGTH = 8191

_EVENT_TEXT_FIELDS = ("timestamp", "community_id", "host")
_TLS_TEXT_FIELDS = (
    "fingerprint",
    "subject",
    "issuerdn",
    "serial",
    "sni",
    "version",
    "notbefore",
    "notafter",
)


def _geoip_json(event: Mapping[str, Any], key: str) -> str | None:
    return json.dumps(event[key]) if key in event else None


def _ja3_hash(tls: Mapping[str, Any], key: str, document: dict[str, Any]) -> str:
    """Copy the hash of a JA3/JA3S member into the document; return it, truncated."""
    ja3 = _member(tls.get(key))
    if ja3 is None or "hash" not in ja3:
        return ""
    value = _text(ja3["hash"])
    document[key] = value
    return value[:JA3_HASH_LENGTH]


def collect_tls(
    ctx: NdpContext,
    event: Mapping[str, Any],
    src_ip: str,
    dest_ip: str,
    flow_id: str,
) -> str | None:
    """Record the certificate details and JA3/JA3S hashes of a TLS session.

    The document id is the MD5 of "ja3:ja3s". Sessions with neither hash, or
    whose id repeats the last one sent, are not sent and None is returned;
    otherwise the JSON text that was sent is returned.
    """
    document: dict[str, Any] = {
        "type": "tls",
        "flow_id": flow_id,
        "src_ip": src_ip,
        "dest_ip": dest_ip,
    }
    geoip_src = geoip_dest = None
    if ctx.settings.geoip:
        geoip_src = _geoip_json(event, "geoip_src")
        geoip_dest = _geoip_json(event, "geoip_dest")

    _add_dns(ctx, event, document)
    _add_description(ctx, document)

    for key in _EVENT_TEXT_FIELDS:
        if key in event:
            document[key] = _text(event[key])

    ja3 = ja3s = ""
    tls = _member(event.get("tls"))
    if tls is not None:
        for key in _TLS_TEXT_FIELDS:
            if key in tls:
                document[key] = _text(tls[key])
        ja3 = _ja3_hash(tls, "ja3", document)
        ja3s = _ja3_hash(tls, "ja3s", document)

    if not ja3 and not ja3s:
        log.warning("No JA3 or JA3S hash located.  Are you sure Suricata is sending this data?")
        return None

    doc_id = md5_hex(f"{ja3}:{ja3s}"[:TLS_ID_LENGTH])
    if ctx.is_repeat("tls", doc_id):
        ctx.skip("tls", doc_id)
        return None

    return ctx.emit("tls", document, doc_id, geoip_src, geoip_dest)


def collect_dns(
    ctx: NdpContext,
    event: Mapping[str, Any],
    src_ip: str,
    dest_ip: str,
    flow_id: str,
) -> str | None:
    """Record a DNS query (answers are ignored), keyed by the MD5 of its rrname.

    Returns the JSON text that was sent, or None when nothing was sent: no
    "dns" member, an answer rather than a query, a query without rrname, or
    an rrname that repeats the last one sent. A "dns" member without a type
    is sent with an empty id.
    """
    document: dict[str, Any] = {
        "type": "dns",
        "src_ip": src_ip,
        "dest_ip": dest_ip,
        "flow_id": flow_id,
    }
    _add_description(ctx, document)

    geoip_src = None
    if ctx.settings.geoip:
        # Both addresses land in the same slot; the destination wins when present.
        geoip_src = _geoip_json(event, "geoip_src")
        dest = _geoip_json(event, "geoip_dest")
        if dest is not None:
            geoip_src = dest

    _add_dns(ctx, event, document)

    for key in _EVENT_TEXT_FIELDS:
        if key in event:
            document[key] = _text(event[key])

    if "dns" not in event:
        return None

    dns = _member(event["dns"]) or {}
    doc_id = ""
    if "type" in dns:
        if _text(dns["type"]) != "query" or "rrname" not in dns:
            return None
        rrname = _text(dns["rrname"])
        doc_id = md5_hex(rrname[:RRNAME_LENGTH])
        if ctx.is_repeat("dns", doc_id):
            ctx.skip("dns", doc_id)
            return None
        document["rrname"] = rrname
        if "rrtype" in dns:
            document["rrtype"] = _text(dns["rrtype"])

    return ctx.emit("dns", document, doc_id, geoip_src, None)