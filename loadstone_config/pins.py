"""Peripheral pins available for serial communication on each port."""

from __future__ import annotations

from dataclasses import dataclass

from .port import Port


@dataclass(frozen=True)
class PeripheralPin:
    """A pin configured for a peripheral function, such as PB6 on USART1."""

    peripheral: str
    bank: str
    index: int
    af_index: int

    def __str__(self) -> str:
        return f"P{self.bank}{self.index}"


_STM32F412_TX = (
    PeripheralPin("USART1", "a", 9, 7),
    PeripheralPin("USART1", "b", 6, 7),
    PeripheralPin("USART2", "a", 2, 7),
    PeripheralPin("USART2", "d", 5, 7),
    PeripheralPin("USART1", "a", 15, 6),
    PeripheralPin("USART6", "c", 6, 8),
    PeripheralPin("USART6", "a", 11, 8),
    PeripheralPin("USART6", "g", 14, 8),
)

_STM32F412_RX = (
    PeripheralPin("USART1", "b", 3, 7),
    PeripheralPin("USART1", "b", 7, 7),
    PeripheralPin("USART1", "a", 10, 7),
    PeripheralPin("USART2", "a", 3, 7),
    PeripheralPin("USART2", "d", 6, 7),
    PeripheralPin("USART6", "c", 7, 8),
    PeripheralPin("USART6", "a", 12, 8),
    PeripheralPin("USART6", "g", 9, 8),
)


def serial_tx(port: Port) -> list[PeripheralPin]:
    """Possible serial transmission pins for a port."""
    return list(_STM32F412_TX) if port is Port.STM32F412 else []


def serial_rx(port: Port) -> list[PeripheralPin]:
    """Possible serial reception pins for a port."""
    return list(_STM32F412_RX) if port is Port.STM32F412 else []