"""Shared fixtures: a simulated lamp and a connection pointed at it."""
from __future__ import annotations

import pytest

from lamp_connection import LampConnection
from lamp_protocol import DeviceAddress
from simulator import LampSimulator


@pytest.fixture
def lamp():
    with LampSimulator() as simulator:
        yield simulator


@pytest.fixture
def lamp_address(lamp) -> DeviceAddress:
    return DeviceAddress("127.0.0.1", lamp.port)


@pytest.fixture
def connection():
    with LampConnection(timeout=0.4, bind_host="127.0.0.1") as conn:
        yield conn
