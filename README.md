# loadstone_config

This package describes a build of the Loadstone bootloader and generates the sources for it. A build is described by four things: a target port, its memory map, optional features and its image security mode. The package stores that description as a RON (`.ron`) document. It then generates the Rust modules and the `memory.x` linker script that a Loadstone build compiles against.

## Modules

- `port`: `Port` (`stm32f412`, `wgm160p`), with `family()`, `subfamily()` and `linker_script_constants()`.
- `memory`: `Bank`, `InternalMemoryMap`, `ExternalMemoryMap`, `FlashChip` and `MemoryConfiguration`.
  - `MemoryConfiguration.bootable_address()` returns the start address of the bootable bank.
  - `internal_flash(port)` and `external_flash(port)` describe the flash chips that a port supports.
- `pins`: `PeripheralPin`. `serial_tx(port)` and `serial_rx(port)` list the possible serial pins.
- `features`: `Serial`, `BootMetrics`, `Greetings`, `UpdateSignal` and `FeatureConfiguration`.
- `security`: `SecurityMode` (`CRC` or `P256ECDSA`) and `SecurityConfiguration`, which holds the PEM verifying key.
- `configuration`: `Configuration`, which combines all of the above. `RequiredConfigurationStep` names the things still missing from it.
- `ron`:
  - `dumps(configuration)` and `loads(text)` write and read RON text.
  - Invalid input raises `RonError`.
- `settings`: helpers that switch features on and off while keeping them consistent.
  - `set_serial_enabled` picks the first valid pins.
  - `select_peripheral` moves the serial pins to another peripheral.
  - `set_boot_metrics_enabled`, `set_greetings_custom` and `set_update_signal` set the other features.
  - `accept_verifying_key` checks that PEM text holds a P256 public key.
- `layout`: operations that edit a memory map.
  - `normalize` keeps banks aligned behind the bootloader, contiguous and within the chip.
  - `add_internal_bank`, `delete_internal_bank`, `set_bootable` and `toggle_internal_golden` edit the internal banks.
  - `add_external_bank`, `delete_external_bank` and `toggle_external_golden` edit the external banks.
  - The golden index moves along with the banks.
- `dispatch`: prepares a CI build request or a local `.ron` file.
- `codegen`: writes the generated sources.
- `build`: the build-time command.

## Working with a configuration

```python
from loadstone_config.configuration import Configuration
from loadstone_config.memory import Bank
from loadstone_config.security import SecurityMode
from loadstone_config import ron

configuration = Configuration()
configuration.security_configuration.security_mode = SecurityMode.CRC
configuration.memory_configuration.internal_memory_map.banks.append(
    Bank(start_address=0x0801_0000, size_kb=128)
)
configuration.memory_configuration.internal_memory_map.bootable_index = 0

configuration.cleanup()
for step in configuration.required_configuration_steps():
    print(step)

print(configuration.required_feature_flags())   # ['stm32f412']

text = ron.dumps(configuration)
restored = ron.loads(text)
```

`cleanup()` drops anything the selected port cannot support:
- serial, on a port without serial support;
- boot timing, on a port that cannot record it;
- an external flash chip the port has no driver for, together with its banks.

`complete()` is true once `required_configuration_steps()` is empty. A configuration is incomplete until it has a bootable bank. In ECDSA mode it also needs a public key.

## Preparing a CI build

`dispatch.build_dispatch_request(configuration, token, git_ref, git_fork)` returns a `DispatchRequest`. It holds the URL, the headers and the JSON body of a workflow-dispatch POST for the fork's build workflow. The token is sent as Basic authorization. Incomplete configurations raise `ValueError`.

- `dispatch.actions_url(git_fork)` gives the page where builds can be followed.
- `dispatch.describe_response(status)` explains a response status code. `None` means no response arrived.
- `dispatch.save_local(configuration, path)` writes the `.ron` document to disk instead; the default path is `loadstone_config.ron`.

```python
from loadstone_config import dispatch

request = dispatch.build_dispatch_request(configuration, "token", "main", "my-fork")
```

## Generating sources

```python
from loadstone_config.codegen.modules import generate_modules

generate_modules("path/to/loadstone", configuration, ecdsa_verify=False, relocate=False)
```

This writes `mod.rs`, `memory_map.rs`, `pin_configuration.rs` and `devices.rs` into `src/ports/<port>/autogenerated/` under the given directory. It writes `memory.x` into the directory itself.

- With `ecdsa_verify=True`, the verifying key is also written to `src/devices/assets/key.sec1` as an uncompressed SEC1 point.
- With `relocate=True`, the linker script's flash area starts at the bootable bank.
- Each generated Rust file is passed through `rustfmt` when it can be started.

Each generator also has a `render_*` function that returns the text without writing it.

## Command line

```
loadstone-config --config my_config.ron --manifest-dir path/to/loadstone --features stm32f412
```

Where the configuration comes from:
- `--config` names the configuration file.
- Without `--config`, the `LOADSTONE_CONFIG` environment variable is read.
- If neither is given, the command prints a message and exits with status 1.
- An empty configuration means nothing needs generating, and the command does nothing.

Where the feature flags come from:
- `CARGO_FEATURE_*` environment variables;
- the comma separated `--features` option.

`--manifest-dir` defaults to `CARGO_MANIFEST_DIR`, or to the current directory when that variable is unset.

The command fails, printing the reason and exiting with status 1, in these cases:
- a flag the configuration requires was not supplied;
- `ecdsa-verify` was supplied for a configuration in CRC mode;
- the configuration cannot be parsed.

On success it generates the sources and writes the port name to `.cargo/.runner-target`.

## What it does not do

- The package has no editor screen. The `settings` and `layout` functions change a configuration, and your own code has to call them.
- `dispatch` only builds the request and never sends it. Sending it, for example with any HTTP client, is left to the caller.