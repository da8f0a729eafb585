"""Shared fixtures."""
from __future__ import annotations

import asyncio
import copy

import pytest
import pytest_asyncio

from .fake_bulb import WHITE_PILOT, FakeBulb


@pytest_asyncio.fixture
async def bulb_factory():
    """Start fake bulbs on loopback addresses that all share one port."""
    loop = asyncio.get_running_loop()
    transports = []
    port = 0

    async def _start(reply=None, delay: float = 0.0, host: str = "127.0.0.1") -> FakeBulb:
        nonlocal port
        transport, bulb = await loop.create_datagram_endpoint(
            lambda: FakeBulb(reply, delay), local_addr=(host, port)
        )
        transports.append(transport)
        port = bulb.port
        return bulb

    yield _start

    for transport in transports:
        transport.close()
    await asyncio.sleep(0)


@pytest.fixture
def white_pilot() -> dict:
    return copy.deepcopy(WHITE_PILOT)
