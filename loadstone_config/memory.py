"""Flash chips, firmware banks and memory maps."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .port import Port


def kb(value: int) -> int:
    """Kilobytes to bytes."""
    return value * 1024


@dataclass
class Bank:
    """Firmware bank: a start address in flash and a size in kilobytes."""

    start_address: int = 0
    size_kb: int = 0

    def end_address(self) -> int:
        """Address immediately after the end of this bank."""
        return self.start_address + kb(self.size_kb)


@dataclass
class InternalMemoryMap:
    """Memory map of the MCU flash, holding the bootloader and a bootable bank."""

    bootloader_location: int = 0
    bootloader_length_kb: int = 64
    banks: list[Bank] = field(default_factory=list)
    bootable_index: Optional[int] = None


@dataclass
class ExternalMemoryMap:
    """Memory map of an optional external flash chip."""

    banks: list[Bank] = field(default_factory=list)


@dataclass(frozen=True)
class FlashChip:
    """Hardware description of a flash chip."""

    name: str
    internal: bool
    start: int
    end: int
    region_size: int


@dataclass
class MemoryConfiguration:
    """Full memory layout: internal map, external map and golden bank."""

    internal_memory_map: InternalMemoryMap = field(default_factory=InternalMemoryMap)
    external_memory_map: ExternalMemoryMap = field(default_factory=ExternalMemoryMap)
    external_flash: Optional[FlashChip] = None
    golden_index: Optional[int] = None

    def bootable_address(self) -> Optional[int]:
        """Start address of the bootable bank, or None if it is undefined."""
        index = self.internal_memory_map.bootable_index
        banks = self.internal_memory_map.banks
        if index is None or not 0 <= index < len(banks):
            return None
        return banks[index].start_address


def internal_flash(port: Port) -> FlashChip:
    """The MCU flash of a port."""
    if port is Port.STM32F412:
        return FlashChip(
            name="STM32F412 MCU Flash",
            internal=True,
            start=0x0800_0000,
            end=0x0810_0000,
            region_size=kb(16),
        )
    return FlashChip(
        name="EFM32GG11 MCU Flash",
        internal=True,
        start=0x0000_0000,
        end=512 * kb(4),
        region_size=kb(4),
    )


def external_flash(port: Port) -> list[FlashChip]:
    """External flash chips for which a driver exists on this port."""
    if port is Port.STM32F412:
        return [
            FlashChip(
                name="Micron n25q128a",
                internal=False,
                start=0x0000_0000,
                end=0x00FF_FFFF,
                region_size=kb(4),
            )
        ]
    return []