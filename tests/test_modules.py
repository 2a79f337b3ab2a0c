from unittest import mock

import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
)

from loadstone_config.codegen.modules import (
    generate_key,
    generate_modules,
    prettify_file,
    render_top_level_module,
)
from loadstone_config.configuration import Configuration
from loadstone_config.features import (
    BootMetrics,
    FeatureConfiguration,
    Greetings,
    Serial,
    UpdateSignal,
)
from loadstone_config.memory import Bank, InternalMemoryMap, MemoryConfiguration
from loadstone_config.pins import serial_rx, serial_tx
from loadstone_config.port import Port
from loadstone_config.security import SecurityConfiguration, SecurityMode


def make_config(port=Port.STM32F412, features=None, security=None):
    memory = MemoryConfiguration(
        internal_memory_map=InternalMemoryMap(
            banks=[Bank(start_address=0x08010000, size_kb=16)], bootable_index=0
        )
    )
    return Configuration(
        port=port,
        memory_configuration=memory,
        feature_configuration=features or FeatureConfiguration(),
        security_configuration=security or SecurityConfiguration(),
    )


def make_public_key():
    return ec.generate_private_key(ec.SECP256R1()).public_key()


def pem_of(public_key):
    from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

    return public_key.public_bytes(Encoding.PEM, PublicFormat.SubjectPublicKeyInfo).decode()


def test_default_module_constants():
    text = render_top_level_module(make_config())
    assert "pub const SERIAL_ENABLED: bool = false;" in text
    assert "pub const RECOVERY_ENABLED: bool = false;" in text
    assert "pub const BOOT_TIME_METRICS_ENABLED: bool = false;" in text
    assert 'pub const LOADSTONE_GREETING: &str = "-- Loadstone --";' in text
    assert 'pub const DEMO_APP_GREETING: &str = "-- Loadstone Demo App --";' in text
    assert "pub const UPDATE_SIGNAL_ENABLED: bool = false;" in text
    assert "pub mod memory_map;" in text


def test_enabled_features():
    port = Port.STM32F412
    features = FeatureConfiguration(
        serial=Serial(
            enabled=True,
            recovery_enabled=True,
            tx_pin=serial_tx(port)[0],
            rx_pin=serial_rx(port)[0],
        ),
        boot_metrics=BootMetrics(enabled=True, timing=True),
        update_signal=UpdateSignal.ENABLED,
        greetings=Greetings(loadstone='say "hi"', demo="demo"),
    )
    text = render_top_level_module(make_config(features=features))
    assert "pub const SERIAL_ENABLED: bool = true;" in text
    assert "pub const RECOVERY_ENABLED: bool = true;" in text
    assert "pub const BOOT_TIME_METRICS_ENABLED: bool = true;" in text
    assert "pub const UPDATE_SIGNAL_ENABLED: bool = true;" in text
    assert 'LOADSTONE_GREETING: &str = "say \\"hi\\"";' in text


def test_metrics_without_timing_is_not_timing():
    features = FeatureConfiguration(boot_metrics=BootMetrics(enabled=True, timing=False))
    text = render_top_level_module(make_config(features=features))
    assert "pub const BOOT_TIME_METRICS_ENABLED: bool = false;" in text


def test_serial_on_unsupported_port_raises():
    port = Port.STM32F412
    features = FeatureConfiguration(
        serial=Serial(enabled=True, tx_pin=serial_tx(port)[0], rx_pin=serial_rx(port)[0])
    )
    with pytest.raises(ValueError):
        render_top_level_module(make_config(port=Port.WGM160P, features=features))


def test_timing_on_unsupported_port_raises():
    features = FeatureConfiguration(boot_metrics=BootMetrics(enabled=True, timing=True))
    with pytest.raises(ValueError):
        render_top_level_module(make_config(port=Port.WGM160P, features=features))


def test_generate_key_writes_uncompressed_point(tmp_path):
    public_key = make_public_key()
    config = make_config(security=SecurityConfiguration(verifying_key_raw=pem_of(public_key)))
    path = generate_key(tmp_path, config)
    assert path == tmp_path / "src/devices/assets/key.sec1"
    data = path.read_bytes()
    assert len(data) == 65
    assert data[0] == 4
    assert data == public_key.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)


def test_generate_key_requires_ecdsa_mode(tmp_path):
    config = make_config(security=SecurityConfiguration(security_mode=SecurityMode.CRC))
    with pytest.raises(ValueError):
        generate_key(tmp_path, config)


def test_generate_key_rejects_invalid_key(tmp_path):
    config = make_config(security=SecurityConfiguration(verifying_key_raw="not a key"))
    with pytest.raises(ValueError):
        generate_key(tmp_path, config)


@mock.patch("subprocess.run", side_effect=FileNotFoundError)
def test_prettify_without_rustfmt(run, tmp_path):
    assert prettify_file(tmp_path / "x.rs") is False


@mock.patch("subprocess.run")
def test_prettify_runs_rustfmt(run, tmp_path):
    target = tmp_path / "x.rs"
    assert prettify_file(target) is True
    assert run.call_args[0][0] == ["rustfmt", str(target)]


@mock.patch("subprocess.run")
def test_generate_modules_writes_everything(run, tmp_path):
    public_key = make_public_key()
    config = make_config(security=SecurityConfiguration(verifying_key_raw=pem_of(public_key)))
    folder = generate_modules(tmp_path, config, ecdsa_verify=True)
    assert folder == tmp_path / "src/ports/stm32f412/autogenerated"
    names = sorted(p.name for p in folder.iterdir())
    assert names == ["devices.rs", "memory_map.rs", "mod.rs", "pin_configuration.rs"]
    assert (tmp_path / "memory.x").read_text().startswith("MEMORY\n")
    assert (tmp_path / "src/devices/assets/key.sec1").exists()


@mock.patch("subprocess.run")
def test_generate_modules_without_key(run, tmp_path):
    generate_modules(tmp_path, make_config())
    assert not (tmp_path / "src/devices/assets/key.sec1").exists()
    assert (tmp_path / "src/ports/stm32f412/autogenerated/mod.rs").exists()


@mock.patch("subprocess.run")
def test_generate_modules_relocates(run, tmp_path):
    generate_modules(tmp_path, make_config(), relocate=True)
    assert "ORIGIN = 0x08010000" in (tmp_path / "memory.x").read_text()