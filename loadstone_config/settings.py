"""Operations that change feature and security settings consistently."""

from __future__ import annotations

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import load_pem_public_key

from .features import BootMetrics, Greetings, Serial, UpdateSignal
from .pins import PeripheralPin, serial_rx, serial_tx
from .port import Port


def port_label(port: Port) -> str:
    """Human readable family and subfamily of a port."""
    return f"Family [{port.family()}] - Subfamily [{port.subfamily()}]"


def available_peripherals(port: Port) -> list[str]:
    """Sorted, distinct serial peripherals that have pins on a port."""
    return sorted({pin.peripheral for pin in [*serial_tx(port), *serial_rx(port)]})


def tx_pin_choices(port: Port, peripheral: str) -> list[PeripheralPin]:
    """Transmission pins of a port that belong to a peripheral."""
    return [pin for pin in serial_tx(port) if pin.peripheral == peripheral]


def rx_pin_choices(port: Port, peripheral: str) -> list[PeripheralPin]:
    """Reception pins of a port that belong to a peripheral."""
    return [pin for pin in serial_rx(port) if pin.peripheral == peripheral]


def _first_pins(port: Port, peripheral: str) -> tuple[PeripheralPin, PeripheralPin]:
    tx = tx_pin_choices(port, peripheral)
    rx = rx_pin_choices(port, peripheral)
    if not tx or not rx:
        raise ValueError(f"peripheral {peripheral!r} has no tx and rx pins on {port}")
    return tx[0], rx[0]


def set_serial_enabled(serial: Serial, enabled: bool, port: Port) -> Serial:
    """Switch serial on (with the first valid pins) or off."""
    if enabled and not serial.enabled:
        peripherals = available_peripherals(port)
        if not peripherals:
            raise ValueError(f"port {port} has no serial peripherals")
        tx_pin, rx_pin = _first_pins(port, peripherals[0])
        return Serial(enabled=True, recovery_enabled=False, tx_pin=tx_pin, rx_pin=rx_pin)
    if not enabled and serial.enabled:
        return Serial.disabled()
    return serial


def select_peripheral(serial: Serial, peripheral: str, port: Port) -> Serial:
    """Move the serial pins to a peripheral, keeping pins that already belong to it."""
    if not serial.enabled:
        raise ValueError("serial must be enabled to select a peripheral")
    tx_pin, rx_pin = serial.tx_pin, serial.rx_pin
    if tx_pin.peripheral != peripheral or rx_pin.peripheral != peripheral:
        first_tx, first_rx = _first_pins(port, peripheral)
        if tx_pin.peripheral != peripheral:
            tx_pin = first_tx
        if rx_pin.peripheral != peripheral:
            rx_pin = first_rx
    return Serial(
        enabled=True,
        recovery_enabled=serial.recovery_enabled,
        tx_pin=tx_pin,
        rx_pin=rx_pin,
    )


def set_boot_metrics_enabled(boot_metrics: BootMetrics, enabled: bool) -> BootMetrics:
    """Switch boot metrics on (without timing) or off."""
    if enabled and not boot_metrics.enabled:
        return BootMetrics(enabled=True, timing=False)
    if not enabled and boot_metrics.enabled:
        return BootMetrics()
    return boot_metrics


def set_greetings_custom(greetings: Greetings, custom: bool, version: str) -> Greetings:
    """Switch to custom greetings seeded with a version string, or back to default."""
    if custom and not greetings.is_custom():
        return Greetings(
            loadstone=f"-- Loadstone [{version}] --",
            demo=f"-- Loadstone Demo App [{version}] --",
        )
    if not custom and greetings.is_custom():
        return Greetings()
    return greetings


def set_update_signal(enabled: bool) -> UpdateSignal:
    """Update signal setting matching a checkbox state."""
    return UpdateSignal.ENABLED if enabled else UpdateSignal.DISABLED


def normalize_pem(text: str) -> str:
    """Restore the line breaks around PEM armour lost when pasting into one line."""
    return text.replace(
        "-----BEGIN PUBLIC KEY----- ", "-----BEGIN PUBLIC KEY-----\n"
    ).replace(" -----END PUBLIC KEY-----", "\n-----END PUBLIC KEY-----")


def accept_verifying_key(text: str) -> str:
    """Return the normalized PEM text if it holds a P256 public key; else ValueError."""
    normalized = normalize_pem(text)
    try:
        key = load_pem_public_key(normalized.encode("utf-8"))
    except (ValueError, TypeError, UnsupportedAlgorithm) as error:
        raise ValueError("not a valid PEM public key") from error
    if not isinstance(key, ec.EllipticCurvePublicKey) or not isinstance(
        key.curve, ec.SECP256R1
    ):
        raise ValueError("public key is not a P256 ECDSA key")
    return normalized