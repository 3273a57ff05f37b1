"""Serial ports as seen by the operating system."""

from __future__ import annotations

from dataclasses import dataclass

from serial.tools.list_ports import comports


@dataclass
class PortInfo:
    device: str
    description: str
    hwid: str


def list_serial_ports() -> list[PortInfo]:
    """List serial ports known to pyserial, independent of arduino-cli."""
    return [
        PortInfo(device=p.device, description=p.description, hwid=p.hwid)
        for p in comports()
    ]
