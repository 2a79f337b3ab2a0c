"""Editing and normalizing memory maps while keeping their invariants."""

from __future__ import annotations

from . import memory
from .memory import (
    Bank,
    ExternalMemoryMap,
    FlashChip,
    InternalMemoryMap,
    MemoryConfiguration,
    kb,
)
from .port import Port

BOOTLOADER_MAX_LENGTH_KB = 128


def normalize(memory_configuration: MemoryConfiguration, port: Port) -> None:
    """Enforce golden, alignment, contiguity and range rules on a memory layout."""
    internal_map = memory_configuration.internal_memory_map
    flash = memory.internal_flash(port)

    if memory_configuration.golden_index == internal_map.bootable_index:
        memory_configuration.golden_index = None

    _internal_banks_follow_bootloader(internal_map, flash)
    _make_contiguous(internal_map.banks)
    _internal_bank_ranges_are_maintained(internal_map, flash)

    chip = memory_configuration.external_flash
    if chip is None:
        memory_configuration.external_memory_map.banks.clear()
    elif any(candidate.name == chip.name for candidate in memory.external_flash(port)):
        _external_banks_are_contiguous(memory_configuration.external_memory_map, chip)
    else:
        memory_configuration.external_flash = None


def _make_contiguous(banks: list[Bank]) -> None:
    for previous, following in zip(banks, banks[1:]):
        following.start_address = previous.end_address()


def _external_banks_are_contiguous(external_map: ExternalMemoryMap, chip: FlashChip) -> None:
    if external_map.banks:
        external_map.banks[0].start_address = chip.start
    _make_contiguous(external_map.banks)
    external_map.banks[:] = [b for b in external_map.banks if b.end_address() < chip.end]


def _internal_bank_ranges_are_maintained(
    internal_map: InternalMemoryMap, flash: FlashChip
) -> None:
    internal_map.banks[:] = [b for b in internal_map.banks if b.end_address() < flash.end]
    index = internal_map.bootable_index
    if index is not None and index >= len(internal_map.banks):
        internal_map.bootable_index = None


def _internal_banks_follow_bootloader(
    internal_map: InternalMemoryMap, flash: FlashChip
) -> None:
    if not internal_map.banks:
        return
    internal_map.bootloader_location = min(
        max(internal_map.bootloader_location, flash.start), flash.end
    )
    bootloader_end = internal_map.bootloader_location + kb(internal_map.bootloader_length_kb)
    offset = max(bootloader_end - flash.start, 0)
    remainder = offset % flash.region_size
    if remainder:
        offset += flash.region_size - remainder
    internal_map.banks[0].start_address = flash.start + offset


def next_internal_bank_address(
    memory_configuration: MemoryConfiguration, internal_flash: FlashChip
) -> int:
    """Start address that a newly added internal bank would get."""
    internal_map = memory_configuration.internal_memory_map
    if internal_map.banks:
        return internal_map.banks[-1].end_address()
    length = kb(internal_map.bootloader_length_kb)
    return max(internal_map.bootloader_location + length, internal_flash.start + length)


def next_external_bank_address(memory_configuration: MemoryConfiguration) -> int:
    """Start address that a newly added external bank would get."""
    chip = memory_configuration.external_flash
    if chip is None:
        raise ValueError("no external flash chip is selected")
    banks = memory_configuration.external_memory_map.banks
    return banks[-1].end_address() if banks else chip.start


def available_space_kb(flash: FlashChip, start_address: int) -> int:
    """Kilobytes left on a flash chip from a start address to its end."""
    return max(flash.end - start_address, 0) // kb(1)


def _ensure_space(flash: FlashChip, start_address: int) -> None:
    if not start_address + flash.region_size < flash.end:
        raise ValueError(f"not enough space left on {flash.name} for another bank")


def add_internal_bank(memory_configuration: MemoryConfiguration, port: Port) -> Bank:
    """Append a bank of one erase region to the internal flash and return it."""
    flash = memory.internal_flash(port)
    start = next_internal_bank_address(memory_configuration, flash)
    _ensure_space(flash, start)
    banks = memory_configuration.internal_memory_map.banks
    golden = memory_configuration.golden_index
    if golden is not None and golden >= len(banks):
        memory_configuration.golden_index = golden + 1
    bank = Bank(start_address=start, size_kb=flash.region_size // kb(1))
    banks.append(bank)
    return bank


def _check_index(banks: list[Bank], index: int) -> None:
    if not 0 <= index < len(banks):
        raise IndexError(f"bank index {index} out of range")


def _shift_golden_after_delete(
    memory_configuration: MemoryConfiguration, global_index: int
) -> None:
    golden = memory_configuration.golden_index
    if golden is None:
        return
    if global_index == golden:
        memory_configuration.golden_index = None
    elif global_index < golden:
        memory_configuration.golden_index = golden - 1


def delete_internal_bank(memory_configuration: MemoryConfiguration, index: int) -> None:
    """Remove an internal bank, moving the golden index along with it."""
    banks = memory_configuration.internal_memory_map.banks
    _check_index(banks, index)
    _shift_golden_after_delete(memory_configuration, index)
    del banks[index]


def set_bootable(memory_configuration: MemoryConfiguration, index: int) -> None:
    """Mark an internal bank as the bootable one."""
    internal_map = memory_configuration.internal_memory_map
    _check_index(internal_map.banks, index)
    internal_map.bootable_index = index


def _toggle_golden(memory_configuration: MemoryConfiguration, global_index: int) -> None:
    if memory_configuration.golden_index == global_index:
        memory_configuration.golden_index = None
    else:
        memory_configuration.golden_index = global_index


def toggle_internal_golden(memory_configuration: MemoryConfiguration, index: int) -> None:
    """Make an internal bank golden, or clear it if it already is."""
    internal_map = memory_configuration.internal_memory_map
    _check_index(internal_map.banks, index)
    if internal_map.bootable_index == index:
        raise ValueError("the bootable bank cannot be golden")
    _toggle_golden(memory_configuration, index)


def add_external_bank(memory_configuration: MemoryConfiguration) -> Bank:
    """Append a bank of one erase region to the external flash and return it."""
    start = next_external_bank_address(memory_configuration)
    chip = memory_configuration.external_flash
    _ensure_space(chip, start)
    bank = Bank(start_address=start, size_kb=chip.region_size // kb(1))
    memory_configuration.external_memory_map.banks.append(bank)
    return bank


def delete_external_bank(memory_configuration: MemoryConfiguration, index: int) -> None:
    """Remove an external bank, moving the golden index along with it."""
    banks = memory_configuration.external_memory_map.banks
    _check_index(banks, index)
    global_index = index + len(memory_configuration.internal_memory_map.banks)
    _shift_golden_after_delete(memory_configuration, global_index)
    del banks[index]


def toggle_external_golden(memory_configuration: MemoryConfiguration, index: int) -> None:
    """Make an external bank golden, or clear it if it already is."""
    _check_index(memory_configuration.external_memory_map.banks, index)
    global_index = index + len(memory_configuration.internal_memory_map.banks)
    _toggle_golden(memory_configuration, global_index)


def bank_size_limit_kb(bank: Bank, flash: FlashChip) -> int:
    """Largest size in kilobytes a bank may be given on a flash chip."""
    return max(flash.end - (bank.start_address + 1), 0) // kb(1)


def bootloader_length_limit_kb(
    internal_memory_map: InternalMemoryMap, internal_flash: FlashChip
) -> int:
    """Largest bootloader length in kilobytes at its current location."""
    room = max(internal_flash.end - internal_memory_map.bootloader_location, 0) // kb(1)
    return min(BOOTLOADER_MAX_LENGTH_KB, room)


def bootloader_location_range(internal_flash: FlashChip) -> tuple[int, int]:
    """Inclusive range of addresses the bootloader may start at."""
    high = max(internal_flash.end - kb(BOOTLOADER_MAX_LENGTH_KB), 0)
    return internal_flash.start, high