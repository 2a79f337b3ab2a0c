"""Optional and configurable bootloader features."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .pins import PeripheralPin
from .port import Port


@dataclass(frozen=True)
class BootMetrics:
    """Relaying boot information to the application, optionally with timing."""

    enabled: bool = False
    timing: bool = False

    def __post_init__(self) -> None:
        if self.timing and not self.enabled:
            raise ValueError("boot timing requires boot metrics to be enabled")

    @staticmethod
    def timing_supported(port: Port) -> bool:
        """Whether a port can record boot timing information."""
        return port is Port.STM32F412


@dataclass(frozen=True)
class Greetings:
    """Default greetings, or custom ones for the bootloader and the demo app."""

    loadstone: Optional[str] = None
    demo: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.loadstone is None) != (self.demo is None):
            raise ValueError("custom greetings need both a loadstone and a demo greeting")

    def is_custom(self) -> bool:
        """True when custom greetings are set."""
        return self.loadstone is not None


@dataclass(frozen=True)
class Serial:
    """Serial communication feature, with its pins and recovery option."""

    enabled: bool = False
    recovery_enabled: bool = False
    tx_pin: Optional[PeripheralPin] = None
    rx_pin: Optional[PeripheralPin] = None

    def __post_init__(self) -> None:
        if self.enabled:
            if self.tx_pin is None or self.rx_pin is None:
                raise ValueError("enabled serial needs both a tx and an rx pin")
        elif self.recovery_enabled or self.tx_pin is not None or self.rx_pin is not None:
            raise ValueError("disabled serial takes no pins or recovery option")

    @staticmethod
    def supported(port: Port) -> bool:
        """Whether a port supports serial communication."""
        return port is Port.STM32F412

    @classmethod
    def disabled(cls) -> Serial:
        """Serial communication switched off."""
        return cls()


class UpdateSignal(Enum):
    """Whether the application controls when image updates happen."""

    DISABLED = "Disabled"
    ENABLED = "Enabled"


@dataclass
class FeatureConfiguration:
    """Collection of optional or configurable features."""

    serial: Serial = field(default_factory=Serial.disabled)
    boot_metrics: BootMetrics = field(default_factory=BootMetrics)
    update_signal: UpdateSignal = UpdateSignal.DISABLED
    greetings: Greetings = field(default_factory=Greetings)