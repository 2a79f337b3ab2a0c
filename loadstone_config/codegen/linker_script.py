"""Generation of the `memory.x` linker script describing flash and RAM areas."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Union

from ..configuration import Configuration
from ..port import LinkerArea, LinkerScriptConstants

MEMORY_FILENAME = "memory.x"


def relocate_to_bootable_bank(
    constants: LinkerScriptConstants, configuration: Configuration
) -> LinkerScriptConstants:
    """Constants whose flash area starts at the bootable bank instead of the flash origin."""
    bootable_address = configuration.memory_configuration.bootable_address()
    if bootable_address is None:
        raise ValueError(
            "Impossible to relocate: bootable bank is undefined in configuration file."
        )
    offset = bootable_address - constants.flash.origin
    if offset < 0:
        raise ValueError("Impossible to relocate: bootable bank lies before the flash origin.")
    flash = LinkerArea(origin=bootable_address, size=max(constants.flash.size - offset, 0))
    return LinkerScriptConstants(flash=flash, ram=replace(constants.ram))


def render_linker_script(configuration: Configuration, relocate: bool = False) -> str:
    """Text of the linker script for a configuration."""
    constants = configuration.port.linker_script_constants()
    if relocate:
        constants = relocate_to_bootable_bank(constants, configuration)
    return (
        "MEMORY\n"
        "{\n"
        f"FLASH : ORIGIN = 0x{constants.flash.origin:08X}, "
        f"LENGTH = {constants.flash.size // 1024}K\n"
        f"RAM : ORIGIN = 0x{constants.ram.origin:08X}, "
        f"LENGTH = {constants.ram.size // 1024}K\n"
        "}\n"
    )


def generate_linker_script(
    configuration: Configuration,
    output_dir: Union[str, Path] = ".",
    relocate: bool = False,
) -> Path:
    """Write `memory.x` into a directory and return its path."""
    text = render_linker_script(configuration, relocate)
    path = Path(output_dir) / MEMORY_FILENAME
    path.write_text(text, encoding="utf-8")
    return path