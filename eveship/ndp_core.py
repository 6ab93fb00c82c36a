"""Shared state and helpers for collecting network data points (NDPs).

An NDP is a small document distilled from a Suricata EVE event (a flow
endpoint, a file hash, a TLS fingerprint, a DNS query and so on) that is
stored under a stable id. The context keeps the last id sent per kind, so
that back-to-back repeats are skipped rather than re-sent.
"""

from __future__ import annotations

import hashlib
import ipaddress
import json
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

log = logging.getLogger(__name__)

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
OutputFunc = Callable[[str, str, str], None]

NDP_INDEX = "ndp"

EVENT_TYPES = frozenset({"flow", "http", "ssh", "fileinfo", "tls", "dns", "smb", "ftp"})
KINDS = EVENT_TYPES | {"user_agent"}


def md5_hex(text: str) -> str:
    """Return the lower-case hex MD5 digest of a string's UTF-8 bytes."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def parse_networks(spec: str | Iterable[str]) -> tuple[IPNetwork, ...]:
    """Parse networks given as a comma-separated string or as an iterable.

    Each entry is an address or CIDR range; host bits are allowed. Empty
    entries are ignored. Raises ValueError on an entry that is not a network.
    """
    items = spec.split(",") if isinstance(spec, str) else spec
    networks = []
    for item in items:
        text = item.strip()
        if not text:
            continue
        try:
            networks.append(ipaddress.ip_network(text, strict=False))
        except ValueError as exc:
            raise ValueError(f"invalid network {text!r}") from exc
    return tuple(networks)


def append_geoip(json_text: str, key: str, value_json: str) -> str:
    """Splice a member holding raw JSON into the end of a JSON object text.

    ``value_json`` is inserted verbatim, so it must itself be valid JSON.
    Raises ValueError if ``json_text`` does not end with an object brace.
    """
    stripped = json_text.rstrip()
    if not stripped.startswith("{") or not stripped.endswith("}"):
        raise ValueError("JSON text is not an object")
    body = stripped[:-1].rstrip()
    member = f"{json.dumps(key)}: {value_json}"
    if body == "{":
        return f"{{ {member} }}"
    return f"{body}, {member} }}"


@dataclass(frozen=True)
class NdpSettings:
    """What to collect and how to decorate the collected documents."""

    ignore_networks: tuple[IPNetwork, ...] = ()
    routes: frozenset[str] = EVENT_TYPES
    smb_internal: bool = False
    smb_commands: tuple[str, ...] = ()
    ftp_commands: tuple[str, ...] = ()
    description: str = ""
    dns: bool = False
    geoip: bool = False
    debug: bool = False


@dataclass
class NdpContext:
    """Collector state: settings, the output, counters and the repeat cache."""

    settings: NdpSettings = field(default_factory=NdpSettings)
    output: OutputFunc | None = None
    sent: int = 0
    skipped: int = 0
    _last_ids: dict[str, str] = field(default_factory=dict, repr=False)

    def in_range(self, ip: str) -> bool:
        """Tell whether an address lies in one of the networks of interest.

        An address that cannot be parsed is never in range.
        """
        try:
            address = ipaddress.ip_address(ip)
        except ValueError:
            return False
        return any(address in network for network in self.settings.ignore_networks)

    def is_repeat(self, kind: str, doc_id: str) -> bool:
        """Tell whether ``doc_id`` is the last id sent for this kind."""
        _check_kind(kind)
        return self._last_ids.get(kind) == doc_id

    def skip(self, kind: str, doc_id: str) -> None:
        """Count a document that was not sent because it repeats the last one."""
        _check_kind(kind)
        self.skipped += 1
        if self.settings.debug:
            log.debug("SKIP %s: %s", kind.upper(), doc_id)

    def emit(
        self,
        kind: str,
        document: Mapping[str, Any],
        doc_id: str,
        geoip_src: str | None = None,
        geoip_dest: str | None = None,
    ) -> str:
        """Serialise a document, add GeoIP members, send it and remember its id.

        ``geoip_src`` and ``geoip_dest`` are raw JSON texts; empty or None
        values are left out. Returns the JSON text that was sent.
        """
        _check_kind(kind)
        json_text = json.dumps(document)
        if geoip_src:
            json_text = append_geoip(json_text, "geoip_src", geoip_src)
        if geoip_dest:
            json_text = append_geoip(json_text, "geoip_dest", geoip_dest)
        if self.settings.debug:
            log.debug("INSERT %s %s: %s", kind.upper(), doc_id, json_text)
        self.sent += 1
        self._last_ids[kind] = doc_id
        if self.output is not None:
            self.output(json_text, NDP_INDEX, doc_id)
        return json_text


def _check_kind(kind: str) -> None:
    if kind not in KINDS:
        raise ValueError(f"unknown NDP kind {kind!r}")