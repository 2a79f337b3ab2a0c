"""Build step: validate a configuration against feature flags and generate sources."""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Optional, Union

from .codegen.modules import generate_modules
from .configuration import Configuration
from .port import Port
from .ron import RonError, loads
from .security import SecurityMode

FEATURE_PREFIX = "CARGO_FEATURE_"
RUNNER_TARGET_FILE = Path(".cargo/.runner-target")

_MISSING_CONFIGURATION = (
    "Building Loadstone requires you supply a configuration file, either with "
    "--config or embedded in the LOADSTONE_CONFIG environment variable. "
    "If you're just looking to run unit tests, or to build a port that does not "
    "require any code generation (manual port), supply an empty string."
)


class ConfigurationMismatch(Exception):
    """The supplied feature flags do not match the configuration."""


def supplied_feature_flags(environ: Optional[Mapping[str, str]] = None) -> list[str]:
    """Feature flags named by CARGO_FEATURE_* variables, lower case."""
    env = os.environ if environ is None else environ
    return [
        key[len(FEATURE_PREFIX):].lower() for key in env if key.startswith(FEATURE_PREFIX)
    ]


def missing_feature_flags(
    configuration: Configuration, supplied_flags: Iterable[str]
) -> list[str]:
    """Flags the configuration requires that were not supplied (underscored form)."""
    supplied = set(supplied_flags)
    required = (flag.replace("-", "_") for flag in configuration.required_feature_flags())
    return [flag for flag in required if flag not in supplied]


def validate_feature_flags(configuration: Configuration, supplied_flags: Iterable[str]) -> None:
    """Raise ConfigurationMismatch when flags and configuration disagree."""
    supplied = list(supplied_flags)
    if (
        configuration.security_configuration.security_mode is not SecurityMode.P256ECDSA
        and "ecdsa_verify" in supplied
    ):
        raise ConfigurationMismatch(
            "Configuration mismatch. Configuration file does not specify ECDSA security "
            "mode, but the `ecdsa-verify` flag was supplied. Try again without "
            "`ecdsa-verify` for CRC mode."
        )
    missing = missing_feature_flags(configuration, supplied)
    if missing:
        raise ConfigurationMismatch(
            "The configuration file requires flags that haven't been supplied. "
            f"Please build again with `--features={','.join(missing)}`"
        )


def write_runner_target(path: Union[str, Path], port: Port) -> Path:
    """Record the port name for the runner and return the file's path."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(str(port), encoding="utf-8")
    return target


def process_configuration(
    text: str, manifest_dir: Union[str, Path], supplied_flags: Iterable[str]
) -> Optional[Configuration]:
    """Parse, validate and generate sources; an empty text means nothing to generate."""
    if not text:
        return None
    flags = list(supplied_flags)
    configuration = loads(text)
    validate_feature_flags(configuration, flags)
    root = Path(manifest_dir)
    generate_modules(
        root,
        configuration,
        ecdsa_verify="ecdsa_verify" in flags,
        relocate="relocate_to_bootable_bank" in flags,
    )
    write_runner_target(root / RUNNER_TARGET_FILE, configuration.port)
    return configuration


def main(argv: Optional[list[str]] = None) -> int:
    """Generate sources from a configuration file or the LOADSTONE_CONFIG variable."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--config", type=Path, help="RON configuration file")
    parser.add_argument(
        "--manifest-dir",
        type=Path,
        default=Path(os.environ.get("CARGO_MANIFEST_DIR", ".")),
        help="root of the project to generate sources into",
    )
    parser.add_argument(
        "--features", default="", help="comma separated feature flags that are enabled"
    )
    args = parser.parse_args(argv)

    if args.config is not None:
        text = args.config.read_text(encoding="utf-8")
    elif "LOADSTONE_CONFIG" in os.environ:
        text = os.environ["LOADSTONE_CONFIG"]
    else:
        print(_MISSING_CONFIGURATION, file=sys.stderr)
        return 1

    flags = supplied_feature_flags()
    flags += [f.strip().replace("-", "_").lower() for f in args.features.split(",") if f.strip()]

    try:
        process_configuration(text, args.manifest_dir, flags)
    except (ConfigurationMismatch, RonError, ValueError, OSError) as error:
        print(error, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())