"""NDP collection for HTTP requests, user agents and SSH banners."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from eveship.ndp_core import NdpContext, md5_hex
from eveship.ndp_flow import _add_description, _geoip, _integer, _member, _text

USER_AGENT_LENGTH = 2047
HOSTNAME_LENGTH = 255
URL_LENGTH = 10239
FULL_URL_LENGTH = HOSTNAME_LENGTH + 1 + URL_LENGTH
SSH_VERSION_LENGTH = 255
SSH_ID_LENGTH = 63


def _json(value: Any) -> str:
    """Render a JSON value as its JSON text, so strings keep their quotes."""
    return json.dumps(value)


def collect_http(
    ctx: NdpContext,
    event: Mapping[str, Any],
    src_ip: str,
    dest_ip: str,
    flow_id: str,
) -> list[str]:
    """Record an HTTP request and, separately, its user agent.

    The request document is keyed by the MD5 of hostname plus URL, the user
    agent document by the MD5 of the user agent. Either is skipped when it
    repeats the last one sent of its kind. Events without an "http" member
    send nothing. Returns the JSON texts that were sent.
    """
    http_doc: dict[str, Any] = {"type": "http"}
    agent_doc: dict[str, Any] = {"type": "user_agent"}

    for document in (http_doc, agent_doc):
        document["src_ip"] = src_ip
        document["dest_ip"] = dest_ip
        document["flow_id"] = flow_id
        _add_description(ctx, document)

    geoip_src, geoip_dest = _geoip(ctx, event)

    if ctx.settings.dns:
        for key in ("src_dns", "dest_dns"):
            if key in event:
                http_doc[key] = agent_doc[key] = _json(event[key])

    if "timestamp" in event:
        http_doc["timestamp"] = agent_doc["timestamp"] = _json(event["timestamp"])
    if "community_id" in event:
        agent_doc["community_id"] = _text(event["community_id"])
    if "host" in event:
        http_doc["host"] = agent_doc["host"] = _json(event["host"])

    if "http" not in event:
        return []

    http = _member(event["http"]) or {}
    user_agent = hostname = url = ""

    if "http_user_agent" in http:
        user_agent = _text(http["http_user_agent"])[:USER_AGENT_LENGTH]
        http_doc["http_user_agent"] = user_agent
        agent_doc["user_agent"] = user_agent
    if "hostname" in http:
        hostname = _text(http["hostname"])[:HOSTNAME_LENGTH]
        http_doc["hostname"] = hostname
    if "url" in http:
        url = _text(http["url"])[:URL_LENGTH]
        http_doc["url"] = url
    if "method" in http:
        http_doc["method"] = _text(http["method"])
    for key in ("status", "length"):
        if key in http:
            http_doc[key] = _integer(http[key])

    sent: list[str] = []

    url_id = md5_hex(f"{hostname}{url}"[:FULL_URL_LENGTH])
    if ctx.is_repeat("http", url_id):
        ctx.skip("http", url_id)
    else:
        sent.append(ctx.emit("http", http_doc, url_id, geoip_src, geoip_dest))

    agent_id = md5_hex(user_agent)
    if ctx.is_repeat("user_agent", agent_id):
        ctx.skip("user_agent", agent_id)
        return sent

    sent.append(ctx.emit("user_agent", agent_doc, agent_id, geoip_src, geoip_dest))
    return sent


def collect_ssh(
    ctx: NdpContext,
    event: Mapping[str, Any],
    src_ip: str,
    dest_ip: str,
    flow_id: str,
) -> str | None:
    """Record the SSH software versions seen on a connection.

    The document id is the MD5 of "dest_ip:dest_port:server:client" versions.
    A document whose id repeats the last one sent is skipped and None is
    returned; otherwise the JSON text that was sent is returned.
    """
    document: dict[str, Any] = {
        "type": "ssh",
        "src_ip": src_ip,
        "dest_ip": dest_ip,
        "flow_id": flow_id,
    }
    _add_description(ctx, document)
    geoip_src, geoip_dest = _geoip(ctx, event)

    if ctx.settings.dns:
        if "src_dns" in event:
            document["src_dns"] = _json(event["src_dns"])
        if "dest_dns" in event:
            # The destination name is stored under "src_dest".
            document["src_dest"] = _json(event["dest_dns"])

    if "timestamp" in event:
        document["timestamp"] = _json(event["timestamp"])
    if "community_id" in event:
        document["community_id"] = _text(event["community_id"])

    dest_port = 0
    if "src_port" in event:
        document["src_port"] = _integer(event["src_port"])
    if "dest_port" in event:
        dest_port = _integer(event["dest_port"]) & 0xFFFF
        document["dest_port"] = dest_port

    if "host" in event:
        document["host"] = _json(event["host"])

    client_version = server_version = ""
    ssh = _member(event.get("ssh"))
    if ssh is not None:
        client = _member(ssh.get("client")) if "client" in ssh else None
        if client is not None:
            if "proto_version" in client:
                document["client_proto_version"] = _json(client["proto_version"])
            if "software_version" in client:
                client_version = _json(client["software_version"])[:SSH_VERSION_LENGTH]
                document["client_software_version"] = client_version
        # The server version is read from the client member, as collected upstream.
        if "server" in ssh and client is not None and "software_version" in client:
            server_version = _json(client["software_version"])[:SSH_VERSION_LENGTH]
            document["server_software_version"] = server_version

    doc_id = md5_hex(f"{dest_ip}:{dest_port}:{server_version}:{client_version}"[:SSH_ID_LENGTH])
    if ctx.is_repeat("ssh", doc_id):
        ctx.skip("ssh", doc_id)
        return None

    return ctx.emit("ssh", document, doc_id, geoip_src, geoip_dest)