"""Hardware targets (ports) and their families and linker constants."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

_KB = 1024


class Family(Enum):
    """Supported hardware families."""

    STM32 = "Stm32"
    EFM32 = "Efm32"

    def __str__(self) -> str:
        return _FAMILY_NAMES[self]


class Subfamily(Enum):
    """Supported hardware subfamilies."""

    STM32F4 = "Stm32f4"
    EFM32GG11 = "Efm32Gg11"

    def __str__(self) -> str:
        return _SUBFAMILY_NAMES[self]


@dataclass
class LinkerArea:
    """A section of memory as defined in the linker script."""

    origin: int
    size: int


@dataclass
class LinkerScriptConstants:
    """Flash and RAM areas propagated to the linker script for a port."""

    flash: LinkerArea
    ram: LinkerArea


class Port(Enum):
    """Top level description of the hardware target, usually a chip subfamily."""

    STM32F412 = "Stm32F412"
    WGM160P = "Wgm160P"

    @classmethod
    def default(cls) -> Port:
        """Arbitrary default port used to seed a fresh configuration."""
        return cls.STM32F412

    def family(self) -> Family:
        """Hardware family of this port."""
        return _PORT_FAMILIES[self]

    def subfamily(self) -> Subfamily:
        """Hardware subfamily of this port."""
        return _PORT_SUBFAMILIES[self]

    def linker_script_constants(self) -> LinkerScriptConstants:
        """Fresh linker script constants (flash and RAM areas) for this port."""
        if self is Port.STM32F412:
            return LinkerScriptConstants(
                flash=LinkerArea(origin=0x08000000, size=896 * _KB),
                ram=LinkerArea(origin=0x20000000, size=256 * _KB),
            )
        return LinkerScriptConstants(
            flash=LinkerArea(origin=0x00000000, size=1024 * _KB),
            ram=LinkerArea(origin=0x20000000, size=128 * _KB),
        )

    def __str__(self) -> str:
        return _PORT_NAMES[self]


_FAMILY_NAMES = {Family.STM32: "stm32", Family.EFM32: "efm32"}
_SUBFAMILY_NAMES = {Subfamily.STM32F4: "f4", Subfamily.EFM32GG11: "gg11"}
_PORT_NAMES = {Port.STM32F412: "stm32f412", Port.WGM160P: "wgm160p"}
_PORT_FAMILIES = {Port.STM32F412: Family.STM32, Port.WGM160P: Family.EFM32}
_PORT_SUBFAMILIES = {
    Port.STM32F412: Subfamily.STM32F4,
    Port.WGM160P: Subfamily.EFM32GG11,
}