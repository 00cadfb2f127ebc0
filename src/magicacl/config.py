"""Environment configuration.

Environment Variables:
  LOG_LEVEL                 (default INFO)
  ACL_HOSTNAME              (default: fully qualified name of this host)
  ACL_INVENTORY_PATH        (default /etc/magicacl/acl.json)
  ACL_ADDRESS_FAMILY        (default ipv6) -> ipv6 | ipv4
  ACL_INTERVAL_SECS         (default 30) -> seconds between reconciliation passes
  ACL_COMMAND_TIMEOUT_SECS  (default 30) -> timeout for one namespace command
  DRY_RUN                   (default false) -> only log modifying commands
"""

from __future__ import annotations

import os
import socket
from dataclasses import dataclass

from magicacl.exceptions import ConfigError
from magicacl.rules import FAMILIES, IPV6, AddressFamily

DEFAULT_INVENTORY_PATH = "/etc/magicacl/acl.json"


def env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in {"1", "true", "yes", "on"}


def env_float(name: str, default: float) -> float:
    raw = os.getenv(name, str(default)).strip()
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass
class Config:
    hostname: str
    inventory_path: str = DEFAULT_INVENTORY_PATH
    family: AddressFamily = IPV6
    interval: float = 30.0
    command_timeout: float = 30.0
    dry_run: bool = False

    @classmethod
    def from_env(cls) -> "Config":
        family_name = os.getenv("ACL_ADDRESS_FAMILY", IPV6.name).strip().lower()
        if family_name not in FAMILIES:
            raise ConfigError(f"ACL_ADDRESS_FAMILY must be one of {sorted(FAMILIES)}, got {family_name!r}")

        return cls(
            hostname=os.getenv("ACL_HOSTNAME") or socket.getfqdn(),
            inventory_path=os.getenv("ACL_INVENTORY_PATH", DEFAULT_INVENTORY_PATH),
            family=FAMILIES[family_name],
            interval=env_float("ACL_INTERVAL_SECS", 30.0),
            command_timeout=env_float("ACL_COMMAND_TIMEOUT_SECS", 30.0),
            dry_run=env_bool("DRY_RUN", False),
        )
