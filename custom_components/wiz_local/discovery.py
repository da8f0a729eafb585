"""Discovery of WiZ bulbs among candidate network addresses."""
from __future__ import annotations

import asyncio
import ipaddress
import logging
from typing import Any, Iterable, List, Mapping, Optional

from .const import (
    ARP_TABLE_PATH,
    CONF_HOSTS,
    CONF_SUBNET,
    CONF_USE_ARP,
    DEFAULT_DISCOVERY_TIMEOUT,
    MAX_CONCURRENT_PROBES,
    MAX_SUBNET_HOSTS,
)
from .models import WizCandidate, WizDevice, normalize_mac
from .pilot import WizPilotClient, WizTransportError

_LOGGER = logging.getLogger(__name__)

_INCOMPLETE_MAC = "000000000000"


async def _probe(
    pilot: WizPilotClient, candidate: WizCandidate, timeout: float, sem: asyncio.Semaphore
) -> Optional[WizDevice]:
    try:
        async with sem:
            response = await pilot.async_get_pilot(candidate.ip, timeout=timeout)
    except WizTransportError as ex:
        _LOGGER.debug("Skipping %s: %s", candidate.ip, ex)
        return None
    if response is None:
        _LOGGER.debug("Skipping %s: no usable reply", candidate.ip)
        return None
    return WizDevice.from_response(candidate.ip, response, mac=candidate.mac)


async def async_discover(
    candidates: Iterable[WizCandidate],
    timeout: float = DEFAULT_DISCOVERY_TIMEOUT,
    pilot: Optional[WizPilotClient] = None,
    max_concurrent: int = MAX_CONCURRENT_PROBES,
) -> List[WizDevice]:
    """Probe the candidates concurrently and return the ones that answered.

    At most ``max_concurrent`` probes (and sockets) are open at a time, so the
    total latency is one timeout per batch of that size. Results keep the order
    of ``candidates``. Silent or garbled candidates are left out; only a local
    socket failure is raised.
    """
    pilot = pilot or WizPilotClient()
    unique = merge_candidates(candidates)
    sem = asyncio.Semaphore(max_concurrent)
    results = await asyncio.gather(*(_probe(pilot, c, timeout, sem) for c in unique))
    devices = [dev for dev in results if dev is not None]
    _LOGGER.debug("Discovered %s WiZ devices among %s candidates", len(devices), len(unique))
    return devices


def merge_candidates(*groups: Iterable[WizCandidate]) -> List[WizCandidate]:
    """Flatten candidate groups, keeping the first entry per IP.

    A later entry only contributes its MAC when the first one had none.
    """
    merged: dict[str, WizCandidate] = {}
    for group in groups:
        for candidate in group:
            seen = merged.get(candidate.ip)
            if seen is None:
                merged[candidate.ip] = candidate
            elif not seen.mac and candidate.mac:
                merged[candidate.ip] = WizCandidate(seen.ip, candidate.mac)
    return list(merged.values())


def candidates_from_hosts(hosts: Iterable[str]) -> List[WizCandidate]:
    out = []
    for host in hosts:
        host = host.strip()
        if host:
            out.append(WizCandidate(host))
    return out


def parse_hosts(value: str) -> List[str]:
    """Split a comma/whitespace separated host list as typed by a user."""
    return [part for part in value.replace(",", " ").split() if part]


def candidates_from_subnet(cidr: str, limit: int = MAX_SUBNET_HOSTS) -> List[WizCandidate]:
    """Every host address of an IPv4 network, e.g. ``192.168.1.0/24``."""
    network = ipaddress.ip_network(cidr, strict=False)
    if network.version != 4:
        raise ValueError(f"{cidr} is not an IPv4 network")
    if network.num_addresses > limit + 2:
        raise ValueError(f"{cidr} has more than {limit} hosts")
    return [WizCandidate(str(addr)) for addr in network.hosts()]


def candidates_from_config(config: Mapping[str, Any], arp_path: str = ARP_TABLE_PATH) -> List[WizCandidate]:
    """Collect candidates from the configured hosts, subnet and ARP cache.

    Reads the ARP table from disk, so run it in an executor from the event loop.
    """
    groups = [candidates_from_hosts(parse_hosts(config.get(CONF_HOSTS) or ""))]
    subnet = config.get(CONF_SUBNET)
    if subnet:
        try:
            groups.append(candidates_from_subnet(subnet))
        except ValueError as ex:
            _LOGGER.warning("Ignoring subnet %s: %s", subnet, ex)
    if config.get(CONF_USE_ARP, True):
        groups.append(candidates_from_arp_table(arp_path))
    return merge_candidates(*groups)


def candidates_from_arp_table(path: str = ARP_TABLE_PATH) -> List[WizCandidate]:
    """Read IP/MAC pairs from the kernel ARP cache (Linux ``/proc/net/arp``).

    The cache only knows hosts this machine talked to recently; a missing or
    unreadable table yields no candidates.
    """
    try:
        with open(path, "r", encoding="utf-8") as f_handle:
            lines = f_handle.read().splitlines()
    except OSError as ex:
        _LOGGER.debug("ARP table %s unavailable: %s", path, ex)
        return []

    out: List[WizCandidate] = []
    # IP address  HW type  Flags  HW address  Mask  Device
    for line in lines[1:]:
        fields = line.split()
        if len(fields) < 4:
            continue
        mac = normalize_mac(fields[3])
        if not mac or mac == _INCOMPLETE_MAC:
            continue
        out.append(WizCandidate(fields[0], mac))
    return out


def validate_discovery_input(user_input: Mapping[str, Any]) -> dict:
    """Return form errors for the discovery settings, keyed by field."""
    errors = {}
    hosts = parse_hosts(user_input.get(CONF_HOSTS) or "")
    for host in hosts:
        try:
            ipaddress.ip_address(host)
        except ValueError:
            errors[CONF_HOSTS] = "invalid_host"
            break
    subnet = user_input.get(CONF_SUBNET)
    if subnet:
        try:
            candidates_from_subnet(subnet)
        except ValueError:
            errors[CONF_SUBNET] = "invalid_subnet"
    if not errors and not (hosts or subnet or user_input.get(CONF_USE_ARP)):
        errors["base"] = "no_candidates"
    return errors
