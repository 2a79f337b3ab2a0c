import re
from unittest import mock

from loadstone_config.codegen.memory_map import (
    generate,
    render_external_banks,
    render_imports,
    render_mcu_banks,
)
from loadstone_config.memory import (
    Bank,
    ExternalMemoryMap,
    InternalMemoryMap,
    MemoryConfiguration,
    external_flash,
    kb,
)
from loadstone_config.port import Port


def _field(text, name):
    return re.findall(rf"{name}: ([^,}}]+)", text)


def test_imports_stm32_without_external_flash():
    text = render_imports(MemoryConfiguration(), Port.STM32F412)
    assert "use blue_hal::hal::null::NullAddress as ExternalAddress;" in text
    assert "use blue_hal::drivers::stm32f4::flash::Address as McuAddress;" in text
    assert "use crate::devices::image as image;" in text


def test_imports_with_micron_flash():
    memory_configuration = MemoryConfiguration(external_flash=external_flash(Port.STM32F412)[0])
    text = render_imports(memory_configuration, Port.STM32F412)
    assert "use blue_hal::drivers::micron::n25q128a_flash::Address as ExternalAddress;" in text


def test_imports_wgm160p():
    text = render_imports(MemoryConfiguration(), Port.WGM160P)
    assert "use usize as ExternalAddress;" in text
    assert "use blue_hal::drivers::efm32gg11b::flash::Address as McuAddress;" in text


def test_mcu_banks_flags_and_indices():
    internal = InternalMemoryMap(
        banks=[Bank(start_address=4096, size_kb=16), Bank(start_address=20480, size_kb=8)],
        bootable_index=0,
    )
    text = render_mcu_banks(1, internal, golden_index=1)
    assert "const NUMBER_OF_MCU_BANKS: usize = 2usize;" in text
    assert _field(text, "index") == ["1u8", "2u8"]
    assert _field(text, "bootable") == ["true", "false"]
    assert _field(text, "is_golden") == ["false", "true"]
    assert "location: McuAddress(4096u32)" in text
    assert f"size: {kb(16)}usize" in text


def test_mcu_banks_empty():
    text = render_mcu_banks(1, InternalMemoryMap(), None)
    assert "const NUMBER_OF_MCU_BANKS: usize = 0usize;" in text
    assert "image::Bank {" not in text
    assert text.rstrip().endswith("];")


def test_external_banks_are_never_bootable_and_follow_global_golden():
    external = ExternalMemoryMap(
        banks=[Bank(start_address=0, size_kb=4), Bank(start_address=4096, size_kb=4)]
    )
    text = render_external_banks(3, external, golden_index=2)
    assert "const NUMBER_OF_EXTERNAL_BANKS: usize = 2usize;" in text
    assert _field(text, "index") == ["3u8", "4u8"]
    assert _field(text, "bootable") == ["false", "false"]
    assert _field(text, "is_golden") == ["true", "false"]
    assert "location: ExternalAddress(4096u32)" in text


def test_external_banks_without_golden():
    external = ExternalMemoryMap(banks=[Bank(start_address=0, size_kb=4)])
    text = render_external_banks(1, external, golden_index=None)
    assert _field(text, "is_golden") == ["false"]


def test_generate_writes_and_formats(tmp_path):
    memory_configuration = MemoryConfiguration(
        internal_memory_map=InternalMemoryMap(
            banks=[Bank(start_address=4096, size_kb=16)], bootable_index=0
        ),
        external_memory_map=ExternalMemoryMap(banks=[Bank(start_address=0, size_kb=4)]),
        external_flash=external_flash(Port.STM32F412)[0],
        golden_index=1,
    )
    with mock.patch("subprocess.run") as run:
        path = generate(tmp_path, memory_configuration, Port.STM32F412)
    assert path == tmp_path / "memory_map.rs"
    expected = (
        render_imports(memory_configuration, Port.STM32F412)
        + render_mcu_banks(1, memory_configuration.internal_memory_map, 1)
        + render_external_banks(2, memory_configuration.external_memory_map, 1)
    )
    assert path.read_text(encoding="utf-8") == expected
    assert run.call_args.args[0] == ["rustfmt", str(path)]


def test_generate_without_formatter(tmp_path):
    with mock.patch("subprocess.run", side_effect=FileNotFoundError):
        path = generate(tmp_path, MemoryConfiguration(), Port.WGM160P)
    assert "NUMBER_OF_EXTERNAL_BANKS" in path.read_text(encoding="utf-8")