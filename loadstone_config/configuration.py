"""Complete bootloader configuration and its consistency rules."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from . import memory
from .features import BootMetrics, FeatureConfiguration, Serial
from .memory import MemoryConfiguration
from .port import Port
from .security import SecurityConfiguration, SecurityMode


class RequiredConfigurationStep(Enum):
    """A step still missing before a bootloader binary can be generated."""

    PUBLIC_KEY = "PublicKey"
    SERIAL_TX_PIN = "SerialTxPin"
    SERIAL_RX_PIN = "SerialRxPin"
    BOOTABLE_BANK = "BootableBank"

    def __str__(self) -> str:
        return _STEP_MESSAGES[self]


_STEP_MESSAGES = {
    RequiredConfigurationStep.PUBLIC_KEY:
        "[Security] Provide P256 ECDSA public key or enable CRC32 mode",
    RequiredConfigurationStep.SERIAL_TX_PIN: "[Features] Define Serial Tx pin",
    RequiredConfigurationStep.SERIAL_RX_PIN: "[Features] Define Serial Rx pin",
    RequiredConfigurationStep.BOOTABLE_BANK: "[Memory Map] Define a bootable bank",
}


@dataclass
class Configuration:
    """Everything needed to generate a bootloader for one port."""

    port: Port = field(default_factory=Port.default)
    memory_configuration: MemoryConfiguration = field(default_factory=MemoryConfiguration)
    feature_configuration: FeatureConfiguration = field(default_factory=FeatureConfiguration)
    security_configuration: SecurityConfiguration = field(
        default_factory=SecurityConfiguration
    )

    def complete(self) -> bool:
        """True if nothing is missing to generate a binary."""
        return not self.required_configuration_steps()

    def required_feature_flags(self) -> list[str]:
        """Build feature flags needed to compile with this configuration."""
        flags = [str(self.port)]
        if self.security_configuration.security_mode is SecurityMode.P256ECDSA:
            flags.append("ecdsa-verify")
        return flags

    def required_configuration_steps(self) -> list[RequiredConfigurationStep]:
        """Configuration steps still missing, in a fixed order."""
        steps = []
        if self.memory_configuration.internal_memory_map.bootable_index is None:
            steps.append(RequiredConfigurationStep.BOOTABLE_BANK)
        security = self.security_configuration
        if security.security_mode is SecurityMode.P256ECDSA and not security.verifying_key_raw:
            steps.append(RequiredConfigurationStep.PUBLIC_KEY)
        return steps

    def cleanup(self) -> None:
        """Enforce the invariants between port, features and memory layout."""
        features = self.feature_configuration
        if not Serial.supported(self.port):
            features.serial = Serial.disabled()

        if not BootMetrics.timing_supported(self.port) and features.boot_metrics.enabled:
            features.boot_metrics = replace(features.boot_metrics, timing=False)

        memory_configuration = self.memory_configuration
        if memory_configuration.external_flash not in memory.external_flash(self.port):
            memory_configuration.external_flash = None

        if memory_configuration.external_flash is None:
            memory_configuration.external_memory_map.banks.clear()