from __future__ import annotations

from typing import Callable, Optional, Tuple

import pytest
import usb.core
import usb.util

from ibutton.ds1922 import DS1922
from ibutton.onewire import BridgeConfig, SessionConfig, UsbBridge
from simulator import FakeDs2490, SimulatedBus, SimulatedLogger


@pytest.fixture
def install_usb(monkeypatch) -> Callable[[Optional[FakeDs2490]], Optional[FakeDs2490]]:
    """Route usb.core.find to a fake adapter (or to nothing)."""

    def install(fake: Optional[FakeDs2490]) -> Optional[FakeDs2490]:
        monkeypatch.setattr(usb.core, "find", lambda **kwargs: fake)
        monkeypatch.setattr(usb.util, "claim_interface", lambda device, interface: None)
        monkeypatch.setattr(usb.util, "release_interface", lambda device, interface: None)
        monkeypatch.setattr(usb.util, "dispose_resources", lambda device: None)
        return fake

    return install


@pytest.fixture
def make_bridge(install_usb) -> Callable[..., Tuple[UsbBridge, FakeDs2490]]:
    def make(*, bus: Optional[SimulatedBus] = None, busy_polls: int = 0, idle_timeout_s: float = 1.0):
        fake = install_usb(FakeDs2490(bus or SimulatedBus(), busy_polls=busy_polls))
        bridge = UsbBridge(BridgeConfig(idle_timeout_s=idle_timeout_s))
        bridge.open()
        return bridge, fake

    return make


@pytest.fixture
def logger_device() -> SimulatedLogger:
    return SimulatedLogger()


@pytest.fixture
def session(make_bridge, logger_device) -> DS1922:
    bridge, _ = make_bridge(bus=SimulatedBus(logger=logger_device))
    return DS1922(bridge, SessionConfig(commit_delay_s=0.0))
