"""Image security options."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SecurityMode(Enum):
    """How image integrity (and possibly authenticity) is enforced."""

    CRC = "Crc"
    P256ECDSA = "P256ECDSA"


@dataclass
class SecurityConfiguration:
    """Security mode and the PEM text of the verifying public key."""

    security_mode: SecurityMode = SecurityMode.P256ECDSA
    verifying_key_raw: str = ""