"""JSON inventory of authorized peers.

The file maps each Docker host to the ACL entries of its containers, in the
shape the node repository reports them:

    {
      "dockerhost1.example.com": [
        {"hostname": "node-1.example.com", "ipAddress": "2001:db8::1", "trustedBy": "container-1"},
        {"hostname": "node-2.example.com", "ipAddress": "2001:db8::2", "trustedBy": "container-1"}
      ]
    }

It is re-read on every pass so edits take effect without a restart.
"""

from __future__ import annotations

import json
import logging
from typing import Dict, List, Set

from magicacl.exceptions import AclFetchError
from magicacl.ports import AclEntry, AclProvider, group_entries
from magicacl.rules import IPV6, AddressFamily, canonical_address


class JsonInventoryProvider(AclProvider):
    def __init__(self, path: str, family: AddressFamily = IPV6):
        self.path = path
        self.family = family

    def load(self) -> dict:
        """Read and decode the inventory file."""
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise AclFetchError(f"Cannot read inventory {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise AclFetchError(f"Inventory {self.path} must be a JSON object keyed by host")
        return data

    def get_entries(self, hostname: str) -> List[AclEntry]:
        specs = self.load().get(hostname, [])
        if not isinstance(specs, list):
            raise AclFetchError(f"Inventory entry for {hostname} must be a list")

        entries: List[AclEntry] = []
        for spec in specs:
            try:
                container = spec["trustedBy"]
                address = canonical_address(spec["ipAddress"], self.family)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logging.warning(f"Skipping invalid inventory entry {spec!r}: {e}")
                continue
            entries.append(AclEntry(container=container, hostname=spec.get("hostname", ""), ip_address=address))
        return entries

    def get_acl(self, hostname: str) -> Dict[str, Set[str]]:
        return group_entries(self.get_entries(hostname))
