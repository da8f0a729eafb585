#!/usr/bin/env python3

"""
WiZ LAN discovery and control tester.

Usage examples:
  - Probe the hosts in the ARP cache (default) and print discovered bulbs:
      python wiz_lan.py

  - Sweep a subnet instead (every host gets one getPilot):
      python wiz_lan.py --no-arp --subnet 192.168.1.0/24

  - Target specific IPs and switch them on at 60% brightness:
      python wiz_lan.py --host 10.0.0.50 --host 10.0.0.51 --on --brightness 153

This script runs outside Home Assistant and is intended to validate that
bulbs answer the pilot protocol on your network. It imports only the
protocol modules of the integration, which do not need Home Assistant.
"""

import argparse
import asyncio
import logging
import sys
from typing import List

from custom_components.wiz_local.api import WizDeviceClient
from custom_components.wiz_local.const import (
    CONF_HOSTS,
    CONF_SUBNET,
    CONF_USE_ARP,
    DEFAULT_DISCOVERY_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    WIZ_PORT,
)
from custom_components.wiz_local.discovery import async_discover, candidates_from_config
from custom_components.wiz_local.models import WizDevice
from custom_components.wiz_local.pilot import WizPilotClient, WizSocketError, WizTransportError
from custom_components.wiz_local.temperature import clamp_unit, unit_from_reading, unit_to_kelvin

_LOGGER = logging.getLogger("wiz_lan")


def format_device(dev: WizDevice) -> str:
    line = f"- {dev.ip} mac={dev.mac} class={dev.device_class.value} on={dev.is_on}"
    if dev.brightness is not None:
        line += f" dimming={dev.brightness}"
    if dev.color_temp_kelvin is not None:
        line += f" temp={dev.color_temp_kelvin}K unit={unit_from_reading(dev.color_temp_kelvin)}"
    line += f" rssi={dev.rssi} scene={dev.scene_id} src={dev.source}"
    return line


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="WiZ LAN discovery/control tester")
    ap.add_argument("--host", action="append", default=[], help="Bulb IP to probe (can repeat)")
    ap.add_argument("--subnet", help="IPv4 network to sweep, e.g. 192.168.1.0/24")
    ap.add_argument("--no-arp", action="store_true", help="Do not probe hosts from the ARP cache")
    ap.add_argument("--port", type=int, default=WIZ_PORT, help=f"Bulb UDP port (default {WIZ_PORT})")
    ap.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_DISCOVERY_TIMEOUT,
        help=f"Per-candidate discovery timeout in seconds (default {DEFAULT_DISCOVERY_TIMEOUT})",
    )
    ap.add_argument(
        "--request-timeout",
        type=float,
        default=DEFAULT_REQUEST_TIMEOUT,
        help=f"Command timeout in seconds (default {DEFAULT_REQUEST_TIMEOUT})",
    )
    ap.add_argument("--status", action="store_true", help="Query state again after commands")
    power = ap.add_mutually_exclusive_group()
    power.add_argument("--on", action="store_true", help="Switch discovered bulbs on")
    power.add_argument("--off", action="store_true", help="Switch discovered bulbs off")
    ap.add_argument("--brightness", type=int, help="Brightness 0-255")
    temp = ap.add_mutually_exclusive_group()
    temp.add_argument("--kelvin", type=int, help="Color temperature in Kelvin (2700-6500)")
    temp.add_argument("--unit", type=int, help="Color temperature on the 140-500 scale")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return ap


async def run(args: argparse.Namespace) -> int:
    config = {
        CONF_HOSTS: ",".join(args.host),
        CONF_SUBNET: args.subnet or "",
        CONF_USE_ARP: not args.no_arp,
    }
    candidates = candidates_from_config(config)
    if not candidates:
        print("No candidates. Use --host, --subnet or leave the ARP cache enabled.", file=sys.stderr)
        return 2

    pilot = WizPilotClient(port=args.port, timeout=args.request_timeout)
    print(f"Probing {len(candidates)} candidates...")
    try:
        devices = await async_discover(candidates, args.timeout, pilot)
    except WizSocketError as ex:
        print(f"Cannot open UDP socket: {ex}", file=sys.stderr)
        return 1

    if not devices:
        print("No WiZ bulbs discovered.")
        return 0
    print("\nDiscovered WiZ bulbs:")
    for dev in devices:
        print(format_device(dev))

    kelvin = args.kelvin
    if args.unit is not None:
        kelvin = unit_to_kelvin(clamp_unit(args.unit))
    if not (args.on or args.off or args.brightness is not None or kelvin is not None):
        return 0

    clients: List[WizDeviceClient] = [
        WizDeviceClient(dev.ip, dev.mac, pilot, args.request_timeout) for dev in devices
    ]
    print("\nSending commands...")
    for client in clients:
        # (label, method, args); coroutines are created only when awaited
        steps = []
        if args.on:
            steps.append(("on", WizDeviceClient.turn_on, ()))
        if args.off:
            steps.append(("off", WizDeviceClient.turn_off, ()))
        if args.brightness is not None:
            steps.append((f"brightness {args.brightness}", WizDeviceClient.set_brightness, (args.brightness,)))
        if kelvin is not None:
            steps.append((f"temp {kelvin}K", WizDeviceClient.set_color_temp, (kelvin,)))
        for label, action, action_args in steps:
            try:
                ok, err = await action(client, *action_args)
            except WizTransportError as ex:
                ok, err = False, str(ex)
            print(f"- {client.ip} {label}: {'ok' if ok else err}")

    if args.status:
        print("\nQuerying status...")
        for client in clients:
            try:
                dev = await client.async_get_device()
            except WizTransportError as ex:
                print(f"- {client.ip} {ex}")
                continue
            print(format_device(dev) if dev else f"- {client.ip} no reply")
    return 0


def main():
    args = build_parser().parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    return asyncio.run(run(args))


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        pass
