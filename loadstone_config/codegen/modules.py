"""Top level code generation: feature constants, public key and every submodule."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
    load_pem_public_key,
)

from ..configuration import Configuration
from ..features import BootMetrics, Serial, UpdateSignal
from ..security import SecurityMode
from . import devices, memory_map, pin_configuration
from .linker_script import generate_linker_script

TOP_LEVEL_FILENAME = "mod.rs"
KEY_PATH = Path("src/devices/assets/key.sec1")
DEFAULT_LOADSTONE_GREETING = "-- Loadstone --"
DEFAULT_DEMO_GREETING = "-- Loadstone Demo App --"

_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t", "\0": "\\0"}


def _rust_string(text: str) -> str:
    parts = []
    for char in text:
        if char in _ESCAPES:
            parts.append(_ESCAPES[char])
        elif ord(char) < 0x20 or ord(char) == 0x7F:
            parts.append(f"\\u{{{ord(char):x}}}")
        else:
            parts.append(char)
    return '"' + "".join(parts) + '"'


def prettify_file(path: Union[str, Path]) -> bool:
    """Format a generated file with rustfmt; False when rustfmt cannot be started."""
    try:
        subprocess.run(["rustfmt", str(path)], check=False)
    except OSError:
        return False
    return True


def render_top_level_module(configuration: Configuration) -> str:
    """Text of the top level module: submodule declarations and feature constants."""
    port = configuration.port
    features = configuration.feature_configuration

    serial = features.serial
    if serial.enabled and not Serial.supported(port):
        raise ValueError(f"Serial features enabled for a port that doesn't support them: {port}")
    serial_enabled = bool(serial.enabled)
    recovery_enabled = bool(serial.enabled and serial.recovery_enabled)

    metrics = features.boot_metrics
    timing = bool(metrics.enabled and metrics.timing)
    if timing and not BootMetrics.timing_supported(port):
        raise ValueError(f"Timing features enabled for a port that doesn't support them: {port}")

    greetings = features.greetings
    if greetings.is_custom():
        loadstone_greeting, demo_greeting = greetings.loadstone, greetings.demo
    else:
        loadstone_greeting, demo_greeting = DEFAULT_LOADSTONE_GREETING, DEFAULT_DEMO_GREETING

    update_signal_enabled = features.update_signal is UpdateSignal.ENABLED

    constants = [
        ("SERIAL_ENABLED", "bool", str(serial_enabled).lower()),
        ("RECOVERY_ENABLED", "bool", str(recovery_enabled).lower()),
        ("BOOT_TIME_METRICS_ENABLED", "bool", str(timing).lower()),
        ("LOADSTONE_GREETING", "&str", _rust_string(loadstone_greeting)),
        ("DEMO_APP_GREETING", "&str", _rust_string(demo_greeting)),
        ("UPDATE_SIGNAL_ENABLED", "bool", str(update_signal_enabled).lower()),
    ]
    lines = [
        "//! This entire module is autogenerated. Don't modify it manually!",
        "//! Logic for generating these files is defined under `loadstone_config/codegen/`",
        "pub mod memory_map;",
        "pub mod pin_configuration;",
        "pub mod devices;",
    ]
    for name, kind, value in constants:
        lines += ["#[allow(unused)]", f"pub const {name}: {kind} = {value};"]
    return "\n".join(lines) + "\n"


def generate_key(loadstone_path: Union[str, Path], configuration: Configuration) -> Path:
    """Write the verifying key as an uncompressed SEC1 point and return its path."""
    security = configuration.security_configuration
    if security.security_mode is not SecurityMode.P256ECDSA:
        raise ValueError(
            "Configuration mismatch: Config file requires ECDSA verification, "
            "but feature is disabled"
        )
    try:
        key = load_pem_public_key(security.verifying_key_raw.encode("utf-8"))
    except (ValueError, TypeError, UnsupportedAlgorithm) as error:
        raise ValueError("Supplied public key is not valid") from error
    if not isinstance(key, ec.EllipticCurvePublicKey) or not isinstance(
        key.curve, ec.SECP256R1
    ):
        raise ValueError("Supplied public key is not valid")

    key_path = Path(loadstone_path) / KEY_PATH
    key_path.parent.mkdir(parents=True, exist_ok=True)
    key_path.write_bytes(key.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint))
    return key_path


def generate_modules(
    loadstone_path: Union[str, Path],
    configuration: Configuration,
    ecdsa_verify: bool = False,
    relocate: bool = False,
) -> Path:
    """Write every generated source file for a configuration; return the module folder."""
    root = Path(loadstone_path)
    folder = root / "src" / "ports" / str(configuration.port) / "autogenerated"
    folder.mkdir(parents=True, exist_ok=True)

    generate_linker_script(configuration, root, relocate)

    top_level = folder / TOP_LEVEL_FILENAME
    top_level.write_text(render_top_level_module(configuration), encoding="utf-8")
    prettify_file(top_level)

    if ecdsa_verify:
        generate_key(root, configuration)

    memory_map.generate(folder, configuration.memory_configuration, configuration.port)
    pin_configuration.generate(folder, configuration)
    devices.generate(folder, configuration)
    return folder