"""Generation of the `pin_configuration.rs` module with pin and peripheral types."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from ..configuration import Configuration
from ..pins import PeripheralPin
from ..port import Subfamily

PIN_CONFIGURATION_FILENAME = "pin_configuration.rs"
_GPIO_BANKS = "abcdefgh"

_QSPI_PIN_STRUCTS = ("gpiob", "gpiog", "gpiof", "gpiof", "gpiof", "gpiof")
_QSPI_PIN_FIELDS = ("pb2", "pg6", "pf8", "pf9", "pf7", "pf6")

_NULL_FLASH_PATH = ("blue_hal", "hal", "null", "NullFlash")


@dataclass(frozen=True)
class _PinEntry:
    bank: str
    index: int
    mode: str


_INPUT_PINS = (
    _PinEntry("a", 0, "Input<Floating>"),
    _PinEntry("a", 1, "Input<Floating>"),
)

_QSPI_PINS = (
    _PinEntry("b", 2, "AF9 as QspiClk"),
    _PinEntry("f", 6, "AF9 as QspiSecondaryInput"),
    _PinEntry("f", 7, "AF9 as QspiSecondaryOutput"),
    _PinEntry("f", 8, "AF10 as QspiOutput"),
    _PinEntry("f", 9, "AF10 as QspiInput"),
    _PinEntry("g", 6, "AF10 as QspiChipSelect"),
)


def _prettify(path: Path) -> None:
    try:
        subprocess.run(["rustfmt", str(path)], check=False)
    except OSError:
        pass


def render_efm32gg(configuration: Configuration) -> str:
    """Pin configuration for the EFM32GG11 subfamily, which uses no external flash.

    The subfamily has no configurable pins, so the configuration does not
    change the output.
    """
    null_flash = "::".join(_NULL_FLASH_PATH)
    return f"pub use {null_flash} as ExternalFlash;\n"


def _serial_entry(pin: PeripheralPin, direction: str) -> _PinEntry:
    if not pin.bank:
        raise ValueError(f"serial pin {pin} has an empty bank")
    return _PinEntry(pin.bank[0], pin.index, f"AF{pin.af_index} as {direction}<{pin.peripheral}>")


def _serial_entries(configuration: Configuration) -> list[_PinEntry]:
    serial = configuration.feature_configuration.serial
    if not serial.enabled:
        return []
    return [_serial_entry(serial.tx_pin, "TxPin"), _serial_entry(serial.rx_pin, "RxPin")]


def _qspi_entries(configuration: Configuration) -> list[_PinEntry]:
    if configuration.memory_configuration.external_flash is None:
        return []
    return list(_QSPI_PINS)


def _render_imports_and_types(configuration: Configuration) -> str:
    serial = configuration.feature_configuration.serial
    lines = [
        "use blue_hal::drivers::stm32f4::serial::{TxPin, RxPin};",
        "#[allow(unused_imports)]",
        "use blue_hal::stm32pac::{self, USART1, USART2, USART6};",
    ]
    if serial.enabled:
        tx, rx = serial.tx_pin, serial.rx_pin
        lines += [
            f"pub type UsartPins = (P{tx.bank}{tx.index}<AF{tx.af_index}>, "
            f"P{rx.bank}{rx.index}<AF{rx.af_index}>);",
            "pub type Serial = blue_hal::drivers::stm32f4::serial::Serial"
            f"<{tx.peripheral}, UsartPins>;",
        ]
    else:
        lines += [
            "pub type UsartPins = ();",
            "pub type Serial = blue_hal::hal::null::NullSerial;",
        ]
    if configuration.memory_configuration.external_flash is not None:
        lines += [
            "use blue_hal::drivers::micron::n25q128a_flash::MicronN25q128a;",
            "use blue_hal::drivers::stm32f4::systick::SysTick;",
            "pub type QspiPins = (Pb2<AF9>, Pg6<AF10>, Pf8<AF10>, Pf9<AF10>, Pf7<AF9>, Pf6<AF9>);",
            "pub type Qspi = QuadSpi<QspiPins, mode::Single>;",
            "pub type ExternalFlash = MicronN25q128a<Qspi, SysTick>;",
            "#[allow(unused_imports)]",
            "pub use blue_hal::drivers::stm32f4::qspi::{",
            "    self, mode, QuadSpi,",
            "    ClkPin as QspiClk,",
            "    Bk1CsPin as QspiChipSelect,",
            "    Bk1Io0Pin as QspiOutput,",
            "    Bk1Io1Pin as QspiInput,",
            "    Bk1Io2Pin as QspiSecondaryOutput,",
            "    Bk1Io3Pin as QspiSecondaryInput,",
            "};",
            "enable_gpio!();",
        ]
    else:
        lines += [
            "pub type ExternalFlash = blue_hal::hal::null::NullFlash;",
            "pub type QspiPins = ();",
            "enable_gpio!();",
        ]
    return "\n".join(lines) + "\n"


def _render_gpio_macros(configuration: Configuration) -> str:
    entries = [*_INPUT_PINS, *_serial_entries(configuration), *_qspi_entries(configuration)]
    blocks = []
    for bank in _GPIO_BANKS:
        rows = "".join(
            f"    ({entry.index}, {entry.mode}),\n" for entry in entries if entry.bank == bank
        )
        blocks.append(f"gpio!({bank}, [\n{rows}]);\n")
    return "".join(blocks)


def _render_pin_constructor(configuration: Configuration) -> str:
    params = ", ".join(f"gpio{bank}: stm32pac::GPIO{bank.upper()}" for bank in _GPIO_BANKS)
    serial = configuration.feature_configuration.serial
    if serial.enabled:
        serial_fields = [
            f"gpio{pin.bank}.p{pin.bank}{pin.index}" for pin in (serial.tx_pin, serial.rx_pin)
        ]
    else:
        serial_fields = []
    if configuration.memory_configuration.external_flash is not None:
        qspi_fields = [f"{s}.{f}" for s, f in zip(_QSPI_PIN_STRUCTS, _QSPI_PIN_FIELDS)]
    else:
        qspi_fields = []
    lines = [
        "#[allow(unused)]",
        f"pub fn pins({params}, rcc: &mut stm32pac::RCC) -> (UsartPins, QspiPins) {{",
        *(f"    let gpio{bank} = gpio{bank}.split(rcc);" for bank in _GPIO_BANKS),
        "    (",
        f"        ({', '.join(serial_fields)}),",
        f"        ({', '.join(qspi_fields)})",
        "    )",
        "}",
    ]
    return "\n".join(lines) + "\n"


def render_stm32f4_pins(configuration: Configuration) -> str:
    """Pin configuration for the STM32F4 subfamily: types, GPIO rows and constructor."""
    header = (
        "use blue_hal::{enable_gpio, gpio, gpio_inner, alternate_functions, enable_qspi, "
        "enable_spi, enable_serial, pin_rows};\n"
        "use blue_hal::drivers::stm32f4::gpio::*;\n"
    )
    return (
        header
        + _render_imports_and_types(configuration)
        + _render_gpio_macros(configuration)
        + _render_pin_constructor(configuration)
    )


def generate(folder: Union[str, Path], configuration: Configuration) -> Path:
    """Write `pin_configuration.rs` for the configured port and return its path."""
    path = Path(folder) / PIN_CONFIGURATION_FILENAME
    if configuration.port.subfamily() is Subfamily.STM32F4:
        text = render_stm32f4_pins(configuration)
    else:
        text = render_efm32gg(configuration)
    path.write_text(text, encoding="utf-8")
    _prettify(path)
    return path