from unittest import mock

import pytest

from loadstone_config.build import (
    ConfigurationMismatch,
    main,
    missing_feature_flags,
    process_configuration,
    supplied_feature_flags,
    validate_feature_flags,
    write_runner_target,
)
from loadstone_config.configuration import Configuration
from loadstone_config.features import FeatureConfiguration
from loadstone_config.memory import Bank, InternalMemoryMap, MemoryConfiguration
from loadstone_config.port import Port
from loadstone_config.ron import RonError, dumps
from loadstone_config.security import SecurityConfiguration, SecurityMode


def make_config(port=Port.STM32F412, mode=SecurityMode.P256ECDSA):
    memory = MemoryConfiguration(
        internal_memory_map=InternalMemoryMap(
            banks=[Bank(start_address=0x08010000, size_kb=16)], bootable_index=0
        )
    )
    return Configuration(
        port=port,
        memory_configuration=memory,
        feature_configuration=FeatureConfiguration(),
        security_configuration=SecurityConfiguration(security_mode=mode),
    )


def test_supplied_feature_flags_from_environment():
    env = {"CARGO_FEATURE_ECDSA_VERIFY": "1", "CARGO_FEATURE_STM32F412": "1", "PATH": "/bin"}
    assert sorted(supplied_feature_flags(env)) == ["ecdsa_verify", "stm32f412"]


def test_missing_flags_in_order():
    assert missing_feature_flags(make_config(), []) == ["stm32f412", "ecdsa_verify"]


def test_no_missing_flags_when_supplied():
    assert missing_feature_flags(make_config(), ["stm32f412", "ecdsa_verify"]) == []


def test_crc_needs_only_port_flag():
    config = make_config(port=Port.WGM160P, mode=SecurityMode.CRC)
    assert missing_feature_flags(config, []) == ["wgm160p"]


def test_validate_rejects_ecdsa_flag_in_crc_mode():
    config = make_config(mode=SecurityMode.CRC)
    with pytest.raises(ConfigurationMismatch, match="ecdsa-verify"):
        validate_feature_flags(config, ["stm32f412", "ecdsa_verify"])


def test_validate_reports_missing_flags():
    with pytest.raises(ConfigurationMismatch, match="--features=ecdsa_verify"):
        validate_feature_flags(make_config(), ["stm32f412"])


def test_write_runner_target(tmp_path):
    path = write_runner_target(tmp_path / ".cargo" / ".runner-target", Port.WGM160P)
    assert path.read_text() == "wgm160p"


def test_empty_configuration_generates_nothing(tmp_path):
    assert process_configuration("", tmp_path, []) is None
    assert list(tmp_path.iterdir()) == []


def test_invalid_configuration_text(tmp_path):
    with pytest.raises(RonError):
        process_configuration("not ron (", tmp_path, [])


@mock.patch("subprocess.run")
def test_process_configuration_generates(run, tmp_path):
    config = make_config(mode=SecurityMode.CRC)
    result = process_configuration(dumps(config), tmp_path, ["stm32f412"])
    assert result.port is Port.STM32F412
    assert (tmp_path / ".cargo/.runner-target").read_text() == "stm32f412"
    assert (tmp_path / "src/ports/stm32f412/autogenerated/mod.rs").exists()
    assert (tmp_path / "memory.x").exists()


@mock.patch("subprocess.run")
def test_process_configuration_validates_first(run, tmp_path):
    with pytest.raises(ConfigurationMismatch):
        process_configuration(dumps(make_config()), tmp_path, ["stm32f412"])
    assert not (tmp_path / "memory.x").exists()


@mock.patch("subprocess.run")
def test_main_with_config_file(run, tmp_path, monkeypatch):
    monkeypatch.delenv("LOADSTONE_CONFIG", raising=False)
    config_file = tmp_path / "config.ron"
    config_file.write_text(dumps(make_config(mode=SecurityMode.CRC)))
    code = main(
        ["--config", str(config_file), "--manifest-dir", str(tmp_path), "--features", "stm32f412"]
    )
    assert code == 0
    assert (tmp_path / ".cargo/.runner-target").read_text() == "stm32f412"


def test_main_without_configuration_fails(tmp_path, monkeypatch):
    monkeypatch.delenv("LOADSTONE_CONFIG", raising=False)
    assert main(["--manifest-dir", str(tmp_path)]) == 1


def test_main_with_empty_environment_configuration(tmp_path, monkeypatch):
    monkeypatch.setenv("LOADSTONE_CONFIG", "")
    assert main(["--manifest-dir", str(tmp_path)]) == 0
    assert list(tmp_path.iterdir()) == []


def test_main_reports_mismatch(tmp_path, monkeypatch):
    monkeypatch.setenv("LOADSTONE_CONFIG", dumps(make_config()))
    assert main(["--manifest-dir", str(tmp_path)]) == 1