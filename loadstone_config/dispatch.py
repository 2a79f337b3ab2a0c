"""Handing a finished configuration to a CI build or to a local file."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from .configuration import Configuration
from .ron import dumps

REST_API_ROOT = "https://api.github.com/repos"
REST_API_LEAF = "loadstone/actions/workflows/dispatch.yml/dispatches"
ACTIONS_URL_ROOT = "https://github.com"
ACTIONS_URL_LEAF = "loadstone/actions"
LOCAL_OUTPUT_FILENAME = "loadstone_config.ron"

_ACCEPTED = "Request accepted!"
_NOT_FOUND = (
    "Repository not found. This likely means your Github PAT doesn't have enough rights."
)
_BAD_REQUEST = (
    "Bad request. Somehow your .ron file has broken the json parser. Please download "
    "it and submit it as a bug report."
)
_NOT_RESPONDING = "Github Actions is not responding. Are you sure Github is up?"


@dataclass(frozen=True)
class DispatchRequest:
    """An HTTP request that triggers a workflow dispatch build."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""
    method: str = "POST"


def _ensure_complete(configuration: Configuration) -> None:
    steps = configuration.required_configuration_steps()
    if steps:
        missing = "; ".join(str(step) for step in steps)
        raise ValueError(f"configuration is incomplete: {missing}")


def build_dispatch_request(
    configuration: Configuration, token: str, git_ref: str, git_fork: str
) -> DispatchRequest:
    """Build the workflow dispatch request for a complete configuration."""
    _ensure_complete(configuration)
    ron = dumps(configuration).replace('"', '\\"').replace("\n", "")
    features = ",".join(configuration.required_feature_flags())
    body = (
        f'{{"ref":"{git_ref}", "inputs": {{"loadstone_configuration":"{ron}",'
        f'"loadstone_features":"{features}"}}}}'
    )
    credentials = base64.b64encode(f"{token}:".encode()).decode("ascii")
    return DispatchRequest(
        url=f"{REST_API_ROOT}/{git_fork}/{REST_API_LEAF}",
        headers={
            "Accept": "application/vnd.github.v3+json",
            "Authorization": f"Basic {credentials}",
        },
        body=body,
    )


def actions_url(git_fork: str) -> str:
    """Page where the builds of a fork can be monitored."""
    return f"{ACTIONS_URL_ROOT}/{git_fork}/{ACTIONS_URL_LEAF}"


def describe_response(status: Optional[int]) -> str:
    """Message for a dispatch response status; None means no response arrived."""
    if status in (202, 204):
        return _ACCEPTED
    if status == 404:
        return _NOT_FOUND
    if status == 400:
        return _BAD_REQUEST
    return _NOT_RESPONDING


def save_local(
    configuration: Configuration, path: Union[str, Path] = LOCAL_OUTPUT_FILENAME
) -> Path:
    """Write a complete configuration as a RON file and return its path."""
    _ensure_complete(configuration)
    target = Path(path)
    target.write_text(dumps(configuration), encoding="utf-8")
    return target