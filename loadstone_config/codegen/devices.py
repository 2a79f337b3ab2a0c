"""Generation of the `devices.rs` module with serial and external flash constructors."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Union

from ..configuration import Configuration
from ..port import Port

DEVICES_FILENAME = "devices.rs"

_SERIAL_IMPORTS = (
    "use super::pin_configuration::{UsartPins, Serial};\n"
    "use blue_hal::stm32pac;\n"
    "use blue_hal::drivers::stm32f4::rcc::Clocks;\n"
)


def _prettify(path: Path) -> None:
    try:
        subprocess.run(["rustfmt", str(path)], check=False)
    except OSError:
        pass


def _render_serial_stm32(configuration: Configuration) -> str:
    serial = configuration.feature_configuration.serial
    if serial.enabled:
        peripheral = serial.tx_pin.peripheral.lower()
        if not peripheral.isidentifier():
            raise ValueError(f"serial peripheral {serial.tx_pin.peripheral!r} is not an identifier")
        return (
            _SERIAL_IMPORTS
            + "use blue_hal::drivers::stm32f4::serial::{self, UsartExt};\n"
            "#[allow(unused)]\n"
            "pub fn construct_serial(\n"
            "    serial_pins: UsartPins,\n"
            "    clocks: Clocks,\n"
            "    usart1: stm32pac::USART1,\n"
            "    usart2: stm32pac::USART2,\n"
            "    usart6: stm32pac::USART6\n"
            ") -> Option<Serial> {\n"
            "    let serial_config = serial::config::Config::default()"
            ".baudrate(time::Bps(115200));\n"
            f"    Some({peripheral}.constrain(serial_pins, serial_config, clocks).unwrap())\n"
            "}\n"
        )
    return (
        _SERIAL_IMPORTS
        + "#[allow(unused)]\n"
        "pub fn construct_serial(\n"
        "    _serial_pins: UsartPins,\n"
        "    _clocks: Clocks,\n"
        "    _usart1: stm32pac::USART1,\n"
        "    _usart2: stm32pac::USART2,\n"
        "    _usart6: stm32pac::USART6\n"
        ") -> Option<Serial> {\n"
        "    None\n"
        "}\n"
    )


def _render_flash_stm32(configuration: Configuration) -> str:
    header = "use blue_hal::hal::time;\nuse super::pin_configuration::*;\n"
    if configuration.memory_configuration.external_flash is not None:
        return (
            header
            + "pub fn construct_flash(qspi_pins: QspiPins, qspi: stm32pac::QUADSPI)"
            " -> Option<ExternalFlash> {\n"
            "    let qspi_config = qspi::Config::<mode::Single>::default()"
            ".with_flash_size(24).unwrap();\n"
            "    let qspi = Qspi::from_config(qspi, qspi_pins, qspi_config).unwrap();\n"
            "    let external_flash = ExternalFlash::with_timeout(qspi, "
            "time::Milliseconds(5000)).unwrap();\n"
            "    Some(external_flash)\n"
            "}\n"
        )
    return (
        header
        + "#[allow(unused)]\n"
        "pub fn construct_flash(qspi_pins: QspiPins, qspi: stm32pac::QUADSPI)"
        " -> Option<ExternalFlash> { None }\n"
    )


def render_devices(configuration: Configuration) -> str:
    """Text of the devices module; empty for ports without generated devices."""
    if configuration.port is Port.STM32F412:
        return _render_serial_stm32(configuration) + _render_flash_stm32(configuration)
    return ""


def generate(folder: Union[str, Path], configuration: Configuration) -> Path:
    """Write `devices.rs` into a folder, format it, and return its path."""
    path = Path(folder) / DEVICES_FILENAME
    path.write_text(render_devices(configuration), encoding="utf-8")
    _prettify(path)
    return path