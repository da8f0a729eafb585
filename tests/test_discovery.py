"""Concurrent discovery and candidate sources."""
from __future__ import annotations

import asyncio
import time

import pytest

from custom_components.wiz_local.const import CONF_HOSTS, CONF_SUBNET, CONF_USE_ARP
from custom_components.wiz_local.discovery import (
    async_discover,
    candidates_from_arp_table,
    candidates_from_config,
    candidates_from_subnet,
    merge_candidates,
    parse_hosts,
    validate_discovery_input,
)
from custom_components.wiz_local.models import PilotResponse, WizCandidate, WizDeviceClass
from custom_components.wiz_local.pilot import WizPilotClient, WizSocketError, WizTransportError

from .fake_bulb import pilot_reply

ARP_TABLE = """IP address       HW type     Flags       HW address            Mask     Device
192.168.1.20     0x1         0x2         a8:bb:50:aa:00:01     *        eth0
192.168.1.21     0x1         0x0         00:00:00:00:00:00     *        eth0
192.168.1.22     0x1         0x2         A8:BB:50:AA:00:02     *        eth0
garbage
"""


class _ScriptedPilot:
    """Stands in for WizPilotClient and answers from a table keyed by IP."""

    def __init__(self, answers):
        self.answers = answers
        self.calls = []

    async def async_get_pilot(self, ip, timeout=None):
        self.calls.append(ip)
        answer = self.answers.get(ip)
        if isinstance(answer, Exception):
            raise answer
        return answer


def _response(mac, **result) -> PilotResponse:
    if mac is not None:
        result["mac"] = mac
    return PilotResponse("getPilot", env="pro", result=result)


@pytest.mark.asyncio
async def test_discover_keeps_candidate_order(bulb_factory) -> None:
    # the first bulb answers last, its result must still come first
    first = await bulb_factory(pilot_reply(mac="a8bb50000002", dimming=40, temp=3000), delay=0.1, host="127.0.0.2")
    await bulb_factory(pilot_reply(mac="a8bb50000003", dimming=70), host="127.0.0.3")
    pilot = WizPilotClient(port=first.port)

    devices = await async_discover(
        [WizCandidate("127.0.0.2"), WizCandidate("127.0.0.4"), WizCandidate("127.0.0.3")],
        timeout=0.5,
        pilot=pilot,
    )

    assert [dev.ip for dev in devices] == ["127.0.0.2", "127.0.0.3"]
    assert devices[0].device_class is WizDeviceClass.WHITE_LIGHT
    assert devices[1].device_class is WizDeviceClass.RGB_LIGHT


@pytest.mark.asyncio
async def test_error_reply_is_not_a_device(bulb_factory) -> None:
    bulb = await bulb_factory(
        {"method": "getPilot", "env": "pro", "error": {"code": -32601, "message": "Method not found"}}
    )
    pilot = WizPilotClient(port=bulb.port)

    assert await async_discover([WizCandidate("127.0.0.1", "aabbcc")], timeout=0.5, pilot=pilot) == []
    assert len(bulb.requests) == 1


@pytest.mark.asyncio
async def test_silent_candidates_are_probed_concurrently(bulb_factory) -> None:
    bulb = await bulb_factory(None)
    pilot = WizPilotClient(port=bulb.port)
    candidates = [WizCandidate(f"127.0.1.{n}") for n in range(1, 41)]

    started = time.monotonic()
    assert await async_discover(candidates, timeout=0.3, pilot=pilot) == []
    assert time.monotonic() - started < 1.5


@pytest.mark.asyncio
async def test_open_probes_are_capped() -> None:
    gate = asyncio.Event()
    open_now = 0
    peak = 0

    class _CountingPilot:
        async def async_get_pilot(self, ip, timeout=None):
            nonlocal open_now, peak
            open_now += 1
            peak = max(peak, open_now)
            await gate.wait()
            open_now -= 1
            return None

    task = asyncio.create_task(
        async_discover(
            [WizCandidate(f"10.0.{n // 250}.{n % 250 + 1}") for n in range(600)],
            pilot=_CountingPilot(),
            max_concurrent=50,
        )
    )
    for _ in range(5):
        await asyncio.sleep(0)
    assert peak == 50
    gate.set()

    assert await task == []
    assert peak == 50


@pytest.mark.asyncio
async def test_transport_errors_are_left_out() -> None:
    pilot = _ScriptedPilot(
        {
            "10.0.0.1": WizTransportError("unreachable", ip="10.0.0.1"),
            "10.0.0.2": None,
        }
    )
    pilot.answers["10.0.0.3"] = _response("aa", dimming=20)

    devices = await async_discover(
        [WizCandidate(ip) for ip in ("10.0.0.1", "10.0.0.2", "10.0.0.3")], pilot=pilot
    )

    assert [dev.ip for dev in devices] == ["10.0.0.3"]


@pytest.mark.asyncio
async def test_socket_failure_is_raised() -> None:
    pilot = _ScriptedPilot({"10.0.0.1": WizSocketError("no sockets left")})

    with pytest.raises(WizSocketError):
        await async_discover([WizCandidate("10.0.0.1")], pilot=pilot)


@pytest.mark.asyncio
async def test_duplicate_candidates_are_probed_once() -> None:
    pilot = _ScriptedPilot({"10.0.0.1": _response("aa", dimming=20)})

    devices = await async_discover(
        [WizCandidate("10.0.0.1"), WizCandidate("10.0.0.1", "aa")], pilot=pilot
    )

    assert pilot.calls == ["10.0.0.1"]
    assert len(devices) == 1


@pytest.mark.asyncio
async def test_device_takes_candidate_mac_when_reply_has_none() -> None:
    pilot = _ScriptedPilot({"10.0.0.1": _response(None, dimming=20)})

    devices = await async_discover([WizCandidate("10.0.0.1", "A8:BB:50:00:00:01")], pilot=pilot)

    assert devices[0].mac == "a8bb50000001"


def test_merge_candidates_keeps_first_and_fills_mac() -> None:
    merged = merge_candidates(
        [WizCandidate("10.0.0.1"), WizCandidate("10.0.0.2", "bb")],
        [WizCandidate("10.0.0.1", "aa"), WizCandidate("10.0.0.2", "cc"), WizCandidate("10.0.0.3")],
    )
    assert merged == [
        WizCandidate("10.0.0.1", "aa"),
        WizCandidate("10.0.0.2", "bb"),
        WizCandidate("10.0.0.3"),
    ]


def test_parse_hosts() -> None:
    assert parse_hosts("10.0.0.1, 10.0.0.2\n10.0.0.3,,") == ["10.0.0.1", "10.0.0.2", "10.0.0.3"]
    assert parse_hosts("") == []


def test_subnet_candidates() -> None:
    candidates = candidates_from_subnet("192.168.7.0/30")
    assert [c.ip for c in candidates] == ["192.168.7.1", "192.168.7.2"]
    assert len(candidates_from_subnet("192.168.7.9/24")) == 254


@pytest.mark.parametrize("cidr", ["fe80::/64", "10.0.0.0/8", "10.0.0.0/23", "not-a-net"])
def test_subnet_rejects_unusable_networks(cidr: str) -> None:
    with pytest.raises(ValueError):
        candidates_from_subnet(cidr)


def test_arp_table(tmp_path) -> None:
    path = tmp_path / "arp"
    path.write_text(ARP_TABLE)

    assert candidates_from_arp_table(str(path)) == [
        WizCandidate("192.168.1.20", "a8bb50aa0001"),
        WizCandidate("192.168.1.22", "a8bb50aa0002"),
    ]


def test_missing_arp_table(tmp_path) -> None:
    assert candidates_from_arp_table(str(tmp_path / "nope")) == []


def test_candidates_from_config(tmp_path) -> None:
    path = tmp_path / "arp"
    path.write_text(ARP_TABLE)
    config = {CONF_HOSTS: "192.168.1.20, 10.0.0.1", CONF_SUBNET: "10.0.0.0/30", CONF_USE_ARP: True}

    candidates = candidates_from_config(config, arp_path=str(path))

    assert candidates == [
        WizCandidate("192.168.1.20", "a8bb50aa0001"),
        WizCandidate("10.0.0.1"),
        WizCandidate("10.0.0.2"),
        WizCandidate("192.168.1.22", "a8bb50aa0002"),
    ]


def test_candidates_from_config_skips_bad_subnet_and_arp(tmp_path) -> None:
    path = tmp_path / "arp"
    path.write_text(ARP_TABLE)
    config = {CONF_HOSTS: "10.0.0.5", CONF_SUBNET: "10.0.0.0/8", CONF_USE_ARP: False}

    assert candidates_from_config(config, arp_path=str(path)) == [WizCandidate("10.0.0.5")]


@pytest.mark.parametrize(
    "user_input, errors",
    [
        ({CONF_HOSTS: "10.0.0.1", CONF_USE_ARP: False}, {}),
        ({CONF_USE_ARP: True}, {}),
        ({CONF_HOSTS: "10.0.0.1, bulb.lan"}, {CONF_HOSTS: "invalid_host"}),
        ({CONF_SUBNET: "10.0.0.0/8"}, {CONF_SUBNET: "invalid_subnet"}),
        ({CONF_SUBNET: "192.168.0.0/22"}, {CONF_SUBNET: "invalid_subnet"}),
        ({CONF_SUBNET: "192.168.4.0/24"}, {}),
        ({CONF_HOSTS: "", CONF_SUBNET: "", CONF_USE_ARP: False}, {"base": "no_candidates"}),
    ],
)
def test_validate_discovery_input(user_input, errors) -> None:
    assert validate_discovery_input(user_input) == errors
