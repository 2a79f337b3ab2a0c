"""Reading and writing configurations in RON (Rusty Object Notation) text."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, TypeVar

from .configuration import Configuration
from .features import BootMetrics, FeatureConfiguration, Greetings, Serial, UpdateSignal
from .memory import Bank, ExternalMemoryMap, FlashChip, InternalMemoryMap, MemoryConfiguration
from .pins import PeripheralPin
from .port import Port
from .security import SecurityConfiguration, SecurityMode

_INDENT = "    "
_E = TypeVar("_E", bound=Enum)
_T = TypeVar("_T")


class RonError(ValueError):
    """Raised when RON text cannot be parsed into a configuration."""


@dataclass
class _Node:
    """A named or anonymous RON value: unit, struct (fields) or tuple (items)."""

    name: Optional[str]
    fields: Optional[dict[str, Any]] = None
    items: Optional[list[Any]] = None


# ---------------------------------------------------------------------------
# Writing


def _quote(text: str) -> str:
    escapes = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t"}
    parts = []
    for char in text:
        if char in escapes:
            parts.append(escapes[char])
        elif ord(char) < 0x20 or ord(char) == 0x7F:
            parts.append(f"\\u{{{ord(char):x}}}")
        else:
            parts.append(char)
    return '"' + "".join(parts) + '"'


def _render(value: Any, indent: int) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return _quote(value)
    if isinstance(value, list):
        if not value:
            return "[]"
        inner = "".join(
            f"{_INDENT * (indent + 1)}{_render(item, indent + 1)},\n" for item in value
        )
        return f"[\n{inner}{_INDENT * indent}]"
    name = value.name or ""
    if value.fields is not None:
        if not value.fields:
            return f"{name}()"
        inner = "".join(
            f"{_INDENT * (indent + 1)}{key}: {_render(item, indent + 1)},\n"
            for key, item in value.fields.items()
        )
        return f"{name}(\n{inner}{_INDENT * indent})"
    if value.items is not None:
        return f"{name}(" + ", ".join(_render(item, indent) for item in value.items) + ")"
    return name


def _option(value: Any, encode: Callable[[Any], Any] = lambda v: v) -> _Node:
    if value is None:
        return _Node("None")
    return _Node("Some", items=[encode(value)])


def _bank(bank: Bank) -> _Node:
    return _Node(None, {"start_address": bank.start_address, "size_kb": bank.size_kb})


def _flash_chip(chip: FlashChip) -> _Node:
    return _Node(
        None,
        {
            "name": chip.name,
            "internal": chip.internal,
            "start": chip.start,
            "end": chip.end,
            "region_size": chip.region_size,
        },
    )


def _pin(pin: PeripheralPin) -> _Node:
    return _Node(
        None,
        {
            "peripheral": pin.peripheral,
            "bank": pin.bank,
            "index": pin.index,
            "af_index": pin.af_index,
        },
    )


def _encode_memory(memory: MemoryConfiguration) -> _Node:
    internal = memory.internal_memory_map
    return _Node(
        None,
        {
            "internal_memory_map": _Node(
                None,
                {
                    "bootloader_location": internal.bootloader_location,
                    "bootloader_length_kb": internal.bootloader_length_kb,
                    "banks": [_bank(bank) for bank in internal.banks],
                    "bootable_index": _option(internal.bootable_index),
                },
            ),
            "external_memory_map": _Node(
                None, {"banks": [_bank(bank) for bank in memory.external_memory_map.banks]}
            ),
            "external_flash": _option(memory.external_flash, _flash_chip),
            "golden_index": _option(memory.golden_index),
        },
    )


def _encode_features(features: FeatureConfiguration) -> _Node:
    serial = features.serial
    if serial.enabled:
        serial_node = _Node(
            "Enabled",
            {
                "recovery_enabled": serial.recovery_enabled,
                "tx_pin": _pin(serial.tx_pin),
                "rx_pin": _pin(serial.rx_pin),
            },
        )
    else:
        serial_node = _Node("Disabled")

    metrics = features.boot_metrics
    metrics_node = (
        _Node("Enabled", {"timing": metrics.timing}) if metrics.enabled else _Node("Disabled")
    )

    greetings = features.greetings
    greetings_node = (
        _Node("Custom", {"loadstone": greetings.loadstone, "demo": greetings.demo})
        if greetings.is_custom()
        else _Node("Default")
    )

    return _Node(
        None,
        {
            "serial": serial_node,
            "boot_metrics": metrics_node,
            "update_signal": _Node(features.update_signal.value),
            "greetings": greetings_node,
        },
    )


def dumps(configuration: Configuration) -> str:
    """Serialize a configuration as pretty-printed RON text."""
    security = configuration.security_configuration
    root = _Node(
        None,
        {
            "port": _Node(configuration.port.value),
            "memory_configuration": _encode_memory(configuration.memory_configuration),
            "feature_configuration": _encode_features(configuration.feature_configuration),
            "security_configuration": _Node(
                None,
                {
                    "security_mode": _Node(security.security_mode.value),
                    "verifying_key_raw": security.verifying_key_raw,
                },
            ),
        },
    )
    return _render(root, 0)


# ---------------------------------------------------------------------------
# Parsing


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def fail(self, message: str) -> RonError:
        return RonError(f"{message} at position {self.pos}")

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def skip(self) -> None:
        while self.pos < len(self.text):
            if self.text[self.pos].isspace():
                self.pos += 1
            elif self.text.startswith("//", self.pos):
                end = self.text.find("\n", self.pos)
                self.pos = len(self.text) if end < 0 else end + 1
            elif self.text.startswith("/*", self.pos):
                end = self.text.find("*/", self.pos + 2)
                if end < 0:
                    raise self.fail("unterminated block comment")
                self.pos = end + 2
            else:
                break

    def expect(self, char: str) -> None:
        self.skip()
        if self.peek() != char:
            raise self.fail(f"expected {char!r}")
        self.pos += 1

    def document(self) -> Any:
        value = self.value()
        self.skip()
        if self.pos != len(self.text):
            raise self.fail("unexpected trailing content")
        return value

    def identifier(self) -> str:
        start = self.pos
        while self.pos < len(self.text) and (
            self.text[self.pos].isalnum() or self.text[self.pos] == "_"
        ):
            self.pos += 1
        if start == self.pos:
            raise self.fail("expected an identifier")
        return self.text[start:self.pos]

    def value(self) -> Any:
        self.skip()
        char = self.peek()
        if not char:
            raise self.fail("unexpected end of input")
        if char == '"':
            return self.string()
        if char == "[":
            return self.sequence()
        if char == "(":
            return self.body(None)
        if char.isdigit() or char in "+-":
            return self.number()
        if char.isalpha() or char == "_":
            name = self.identifier()
            if name == "true":
                return True
            if name == "false":
                return False
            self.skip()
            if self.peek() == "(":
                return self.body(name)
            return _Node(name)
        raise self.fail(f"unexpected character {char!r}")

    def number(self) -> int:
        start = self.pos
        sign = 1
        if self.peek() in "+-":
            sign = -1 if self.peek() == "-" else 1
            self.pos += 1
        base = 10
        prefix = self.text[self.pos:self.pos + 2].lower()
        if prefix in ("0x", "0b", "0o"):
            base = {"0x": 16, "0b": 2, "0o": 8}[prefix]
            self.pos += 2
        digits_start = self.pos
        while self.pos < len(self.text) and (
            self.text[self.pos].isalnum() or self.text[self.pos] == "_"
        ):
            self.pos += 1
        digits = self.text[digits_start:self.pos].replace("_", "")
        try:
            return sign * int(digits, base)
        except ValueError:
            self.pos = start
            raise self.fail("invalid integer") from None

    def string(self) -> str:
        self.pos += 1
        parts = []
        simple = {"n": "\n", "r": "\r", "t": "\t", "0": "\0", "\\": "\\", '"': '"', "'": "'"}
        while True:
            char = self.peek()
            if not char:
                raise self.fail("unterminated string")
            self.pos += 1
            if char == '"':
                return "".join(parts)
            if char != "\\":
                parts.append(char)
                continue
            escape = self.peek()
            self.pos += 1
            if escape in simple:
                parts.append(simple[escape])
            elif escape == "u":
                parts.append(self.unicode_escape())
            else:
                raise self.fail(f"invalid escape {escape!r}")

    def unicode_escape(self) -> str:
        if self.peek() == "{":
            end = self.text.find("}", self.pos)
            if end < 0:
                raise self.fail("unterminated unicode escape")
            digits = self.text[self.pos + 1:end]
            self.pos = end + 1
        else:
            digits = self.text[self.pos:self.pos + 4]
            self.pos += 4
        try:
            return chr(int(digits, 16))
        except ValueError:
            raise self.fail("invalid unicode escape") from None

    def sequence(self) -> list[Any]:
        self.pos += 1
        items = []
        while True:
            self.skip()
            if self.peek() == "]":
                self.pos += 1
                return items
            items.append(self.value())
            self.skip()
            if self.peek() == ",":
                self.pos += 1
            elif self.peek() != "]":
                raise self.fail("expected ',' or ']'")

    def starts_field(self) -> bool:
        saved = self.pos
        try:
            char = self.peek()
            if not (char.isalpha() or char == "_"):
                return False
            self.identifier()
            self.skip()
            return self.peek() == ":"
        finally:
            self.pos = saved

    def body(self, name: Optional[str]) -> _Node:
        self.expect("(")
        self.skip()
        if self.starts_field():
            fields: dict[str, Any] = {}
            while True:
                self.skip()
                if self.peek() == ")":
                    break
                key = self.identifier()
                if key in fields:
                    raise self.fail(f"duplicate field {key!r}")
                self.expect(":")
                fields[key] = self.value()
                self.skip()
                if self.peek() == ",":
                    self.pos += 1
                elif self.peek() != ")":
                    raise self.fail("expected ',' or ')'")
            self.pos += 1
            return _Node(name, fields=fields)
        items = []
        while True:
            self.skip()
            if self.peek() == ")":
                break
            items.append(self.value())
            self.skip()
            if self.peek() == ",":
                self.pos += 1
            elif self.peek() != ")":
                raise self.fail("expected ',' or ')'")
        self.pos += 1
        if not items:
            return _Node(name, fields={})
        return _Node(name, items=items)


# ---------------------------------------------------------------------------
# Decoding parsed values


def _struct(value: Any, what: str) -> dict[str, Any]:
    if not isinstance(value, _Node) or value.fields is None:
        raise RonError(f"expected a struct for {what}")
    return value.fields


def _required(fields: dict[str, Any], key: str, what: str) -> Any:
    if key not in fields:
        raise RonError(f"missing field {key!r} in {what}")
    return fields[key]


def _int(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise RonError(f"expected an integer for {what}")
    if value < 0:
        raise RonError(f"expected a non-negative integer for {what}")
    return value


def _bool(value: Any, what: str) -> bool:
    if not isinstance(value, bool):
        raise RonError(f"expected a boolean for {what}")
    return value


def _str(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise RonError(f"expected a string for {what}")
    return value


def _optional(
    fields: dict[str, Any], key: str, decode: Callable[[Any, str], _T]
) -> Optional[_T]:
    value = fields.get(key, _Node("None"))
    if isinstance(value, _Node) and value.name == "None" and value.fields is None \
            and value.items is None:
        return None
    if isinstance(value, _Node) and value.name == "Some" and value.items \
            and len(value.items) == 1:
        return decode(value.items[0], key)
    raise RonError(f"expected Some(..) or None for {key}")


def _variant(value: Any, what: str) -> tuple[str, Optional[dict[str, Any]]]:
    if not isinstance(value, _Node) or value.name is None or value.items is not None:
        raise RonError(f"expected an enum variant for {what}")
    return value.name, value.fields


def _unit_enum(value: Any, enum: type[_E], what: str) -> _E:
    name, fields = _variant(value, what)
    if fields is not None:
        raise RonError(f"variant {name!r} of {what} takes no fields")
    try:
        return enum(name)
    except ValueError:
        raise RonError(f"unknown variant {name!r} for {what}") from None


def _decode_bank(value: Any, what: str) -> Bank:
    fields = _struct(value, what)
    return Bank(
        start_address=_int(_required(fields, "start_address", what), "start_address"),
        size_kb=_int(_required(fields, "size_kb", what), "size_kb"),
    )


def _decode_banks(value: Any, what: str) -> list[Bank]:
    if not isinstance(value, list):
        raise RonError(f"expected a list for {what}")
    return [_decode_bank(item, what) for item in value]


def _decode_flash_chip(value: Any, what: str) -> FlashChip:
    fields = _struct(value, what)
    return FlashChip(
        name=_str(_required(fields, "name", what), "name"),
        internal=_bool(_required(fields, "internal", what), "internal"),
        start=_int(_required(fields, "start", what), "start"),
        end=_int(_required(fields, "end", what), "end"),
        region_size=_int(_required(fields, "region_size", what), "region_size"),
    )


def _decode_pin(value: Any, what: str) -> PeripheralPin:
    fields = _struct(value, what)
    return PeripheralPin(
        peripheral=_str(_required(fields, "peripheral", what), "peripheral"),
        bank=_str(_required(fields, "bank", what), "bank"),
        index=_int(_required(fields, "index", what), "index"),
        af_index=_int(_required(fields, "af_index", what), "af_index"),
    )


def _decode_memory(value: Any) -> MemoryConfiguration:
    fields = _struct(value, "memory_configuration")
    internal = _struct(
        _required(fields, "internal_memory_map", "memory_configuration"),
        "internal_memory_map",
    )
    external = _struct(
        _required(fields, "external_memory_map", "memory_configuration"),
        "external_memory_map",
    )
    return MemoryConfiguration(
        internal_memory_map=InternalMemoryMap(
            bootloader_location=_int(
                _required(internal, "bootloader_location", "internal_memory_map"),
                "bootloader_location",
            ),
            bootloader_length_kb=_int(
                _required(internal, "bootloader_length_kb", "internal_memory_map"),
                "bootloader_length_kb",
            ),
            banks=_decode_banks(_required(internal, "banks", "internal_memory_map"), "banks"),
            bootable_index=_optional(internal, "bootable_index", _int),
        ),
        external_memory_map=ExternalMemoryMap(
            banks=_decode_banks(_required(external, "banks", "external_memory_map"), "banks")
        ),
        external_flash=_optional(fields, "external_flash", _decode_flash_chip),
        golden_index=_optional(fields, "golden_index", _int),
    )


def _decode_serial(value: Any) -> Serial:
    name, fields = _variant(value, "serial")
    if name == "Disabled" and fields is None:
        return Serial.disabled()
    if name == "Enabled" and fields is not None:
        return Serial(
            enabled=True,
            recovery_enabled=_bool(
                _required(fields, "recovery_enabled", "serial"), "recovery_enabled"
            ),
            tx_pin=_decode_pin(_required(fields, "tx_pin", "serial"), "tx_pin"),
            rx_pin=_decode_pin(_required(fields, "rx_pin", "serial"), "rx_pin"),
        )
    raise RonError(f"invalid variant {name!r} for serial")


def _decode_boot_metrics(value: Any) -> BootMetrics:
    name, fields = _variant(value, "boot_metrics")
    if name == "Disabled" and fields is None:
        return BootMetrics()
    if name == "Enabled" and fields is not None:
        return BootMetrics(
            enabled=True,
            timing=_bool(_required(fields, "timing", "boot_metrics"), "timing"),
        )
    raise RonError(f"invalid variant {name!r} for boot_metrics")


def _decode_greetings(value: Any) -> Greetings:
    name, fields = _variant(value, "greetings")
    if name == "Default" and fields is None:
        return Greetings()
    if name == "Custom" and fields is not None:
        return Greetings(
            loadstone=_str(_required(fields, "loadstone", "greetings"), "loadstone"),
            demo=_str(_required(fields, "demo", "greetings"), "demo"),
        )
    raise RonError(f"invalid variant {name!r} for greetings")


def _decode_features(value: Any) -> FeatureConfiguration:
    fields = _struct(value, "feature_configuration")
    what = "feature_configuration"
    return FeatureConfiguration(
        serial=_decode_serial(_required(fields, "serial", what)),
        boot_metrics=_decode_boot_metrics(_required(fields, "boot_metrics", what)),
        update_signal=_unit_enum(
            _required(fields, "update_signal", what), UpdateSignal, "update_signal"
        ),
        greetings=_decode_greetings(_required(fields, "greetings", what)),
    )


def _decode_security(value: Any) -> SecurityConfiguration:
    fields = _struct(value, "security_configuration")
    what = "security_configuration"
    return SecurityConfiguration(
        security_mode=_unit_enum(
            _required(fields, "security_mode", what), SecurityMode, "security_mode"
        ),
        verifying_key_raw=_str(
            _required(fields, "verifying_key_raw", what), "verifying_key_raw"
        ),
    )


def loads(text: str) -> Configuration:
    """Parse RON text into a configuration, raising RonError when it is invalid."""
    root = _Parser(text).document()
    fields = _struct(root, "configuration")
    try:
        return Configuration(
            port=_unit_enum(_required(fields, "port", "configuration"), Port, "port"),
            memory_configuration=_decode_memory(
                _required(fields, "memory_configuration", "configuration")
            ),
            feature_configuration=_decode_features(
                _required(fields, "feature_configuration", "configuration")
            ),
            security_configuration=_decode_security(
                _required(fields, "security_configuration", "configuration")
            ),
        )
    except RonError:
        raise
    except (ValueError, TypeError) as error:
        raise RonError(str(error)) from error