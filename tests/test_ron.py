import pytest

from loadstone_config.configuration import Configuration
from loadstone_config.features import BootMetrics, Greetings, Serial, UpdateSignal
from loadstone_config.memory import Bank, external_flash
from loadstone_config.pins import serial_rx, serial_tx
from loadstone_config.port import Port
from loadstone_config.ron import RonError, dumps, loads
from loadstone_config.security import SecurityMode


def _rich_configuration() -> Configuration:
    cfg = Configuration()
    memory = cfg.memory_configuration
    memory.internal_memory_map.banks = [Bank(0x08010000, 16), Bank(0x08014000, 32)]
    memory.internal_memory_map.bootable_index = 0
    memory.external_flash = external_flash(Port.STM32F412)[0]
    memory.external_memory_map.banks = [Bank(0, 4)]
    memory.golden_index = 2
    features = cfg.feature_configuration
    features.serial = Serial(
        enabled=True,
        recovery_enabled=True,
        tx_pin=serial_tx(Port.STM32F412)[0],
        rx_pin=serial_rx(Port.STM32F412)[2],
    )
    features.boot_metrics = BootMetrics(enabled=True, timing=True)
    features.update_signal = UpdateSignal.ENABLED
    features.greetings = Greetings(loadstone='say "hi"\\ back\nnow', demo="demo\tapp")
    cfg.security_configuration.verifying_key_raw = "-----BEGIN PUBLIC KEY-----\nplaceholder\n"
    return cfg


def test_default_round_trip():
    cfg = Configuration()
    assert loads(dumps(cfg)) == cfg


def test_rich_round_trip():
    cfg = _rich_configuration()
    assert loads(dumps(cfg)) == cfg


def test_crc_wgm_round_trip():
    cfg = Configuration(port=Port.WGM160P)
    cfg.security_configuration.security_mode = SecurityMode.CRC
    assert loads(dumps(cfg)) == cfg


def test_default_layout_uses_variant_names():
    lines = dumps(Configuration()).splitlines()
    assert lines[0] == "("
    assert lines[1] == "    port: Stm32F412,"
    assert lines[-1] == ")"
    assert "        boot_metrics: Disabled," in lines


def test_optional_values_render_as_some_and_none():
    text = dumps(_rich_configuration())
    assert "bootable_index: Some(0)," in text
    assert "golden_index: Some(2)," in text
    assert "external_flash: None" not in text


def test_compact_text_with_comments_parses():
    cfg = _rich_configuration()
    text = "// configuration\n/* block */" + dumps(cfg).replace("\n", " ")
    assert loads(text) == cfg


def test_hex_integers_parse():
    text = dumps(Configuration()).replace(
        "bootloader_length_kb: 64", "bootloader_length_kb: 0x40"
    )
    assert loads(text).memory_configuration.internal_memory_map.bootloader_length_kb == 64


def test_missing_optional_field_is_none():
    text = dumps(Configuration()).replace("        golden_index: None,\n", "")
    assert loads(text).memory_configuration.golden_index is None


def test_missing_required_field_raises():
    text = dumps(Configuration()).replace("    port: Stm32F412,\n", "")
    with pytest.raises(RonError):
        loads(text)


def test_unknown_variant_raises():
    text = dumps(Configuration()).replace("port: Stm32F412", "port: Stm32F999")
    with pytest.raises(RonError):
        loads(text)


def test_inconsistent_serial_raises():
    text = dumps(Configuration()).replace(
        "serial: Disabled", "serial: Enabled(recovery_enabled: true)"
    )
    with pytest.raises(RonError):
        loads(text)


@pytest.mark.parametrize("text", ["", "(", "(port: Stm32F412", '("unterminated'])
def test_malformed_text_raises(text):
    with pytest.raises(RonError):
        loads(text)


def test_trailing_content_raises():
    with pytest.raises(RonError):
        loads(dumps(Configuration()) + " 1")


def test_ron_error_is_value_error():
    with pytest.raises(ValueError):
        loads("[]")