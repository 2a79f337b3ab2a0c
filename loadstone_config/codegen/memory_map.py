"""Generation of the `memory_map.rs` module describing flash banks."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Optional, Union

from ..memory import ExternalMemoryMap, InternalMemoryMap, MemoryConfiguration, kb
from ..port import Port, Subfamily

MEMORY_MAP_FILENAME = "memory_map.rs"

_MCU_ADDRESS = {
    Subfamily.STM32F4: ("blue_hal", "drivers", "stm32f4", "flash", "Address"),
    Subfamily.EFM32GG11: ("blue_hal", "drivers", "efm32gg11b", "flash", "Address"),
}


def _prettify(path: Path) -> None:
    try:
        subprocess.run(["rustfmt", str(path)], check=False)
    except OSError:
        pass


def _external_address(memory_configuration: MemoryConfiguration, port: Port) -> tuple[str, ...]:
    chip = memory_configuration.external_flash
    if chip is not None and "n25q128a" in chip.name.lower():
        return ("blue_hal", "drivers", "micron", "n25q128a_flash", "Address")
    if chip is None and port is Port.STM32F412:
        return ("blue_hal", "hal", "null", "NullAddress")
    return ("usize",)


def render_imports(memory_configuration: MemoryConfiguration, port: Port) -> str:
    """Header of the memory map module, choosing the address types for the port."""
    mcu_address = "::".join(_MCU_ADDRESS[port.subfamily()])
    external_address = "::".join(_external_address(memory_configuration, port))
    return (
        "//! This code is autogenerated! Don't modify it manually, as it will be overwritten\n"
        "//! in the next project build. Generation logic for this module is defined in\n"
        "//! `loadstone_config/codegen/memory_map.py`\n"
        "use crate::devices::image as image;\n"
        "#[allow(unused_imports)]\n"
        "use super::pin_configuration::ExternalFlash;\n"
        f"use {mcu_address} as McuAddress;\n"
        f"use {external_address} as ExternalAddress;\n"
    )


def _render_banks(
    const_name: str,
    static_name: str,
    address_type: str,
    entries: list[tuple[int, bool, int, int, bool]],
) -> str:
    lines = [
        f"const {const_name}: usize = {len(entries)}usize;",
        f"pub static {static_name}: [image::Bank<{address_type}>; {const_name}] = [",
    ]
    body = ",\n".join(
        f"    image::Bank {{ index: {index}u8, bootable: {str(bootable).lower()}, "
        f"location: {address_type}({location}u32), size: {size}usize, "
        f"is_golden: {str(golden).lower()} }}"
        for index, bootable, location, size, golden in entries
    )
    if body:
        lines.append(body)
    lines.append("];")
    return "\n".join(lines) + "\n"


def render_mcu_banks(
    base_index: int, internal_memory_map: InternalMemoryMap, golden_index: Optional[int]
) -> str:
    """Static table of the MCU flash banks."""
    entries = [
        (
            (i + base_index) & 0xFF,
            i == internal_memory_map.bootable_index,
            bank.start_address,
            kb(bank.size_kb),
            i == golden_index,
        )
        for i, bank in enumerate(internal_memory_map.banks)
    ]
    return _render_banks("NUMBER_OF_MCU_BANKS", "MCU_BANKS", "McuAddress", entries)


def render_external_banks(
    base_index: int, external_memory_map: ExternalMemoryMap, golden_index: Optional[int]
) -> str:
    """Static table of the external flash banks, numbered after the MCU banks."""
    entries = [
        (
            (i + base_index) & 0xFF,
            False,
            bank.start_address,
            kb(bank.size_kb),
            max(i + base_index - 1, 0) == golden_index,
        )
        for i, bank in enumerate(external_memory_map.banks)
    ]
    return _render_banks(
        "NUMBER_OF_EXTERNAL_BANKS", "EXTERNAL_BANKS", "ExternalAddress", entries
    )


def generate(
    folder: Union[str, Path], memory_configuration: MemoryConfiguration, port: Port
) -> Path:
    """Write `memory_map.rs` into a folder, format it, and return its path."""
    path = Path(folder) / MEMORY_MAP_FILENAME
    base_index = 1
    internal_map = memory_configuration.internal_memory_map
    text = (
        render_imports(memory_configuration, port)
        + render_mcu_banks(base_index, internal_map, memory_configuration.golden_index)
        + render_external_banks(
            len(internal_map.banks) + base_index,
            memory_configuration.external_memory_map,
            memory_configuration.golden_index,
        )
    )
    path.write_text(text, encoding="utf-8")
    _prettify(path)
    return path