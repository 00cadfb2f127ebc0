"""
Shared fixtures for the ACL agent tests.

The three collaborators of the maintainer are replaced with mocks; a mock
Docker client stands in for the daemon.
"""

from __future__ import annotations

from typing import Dict, List, Set, Type
from unittest.mock import MagicMock

import pytest

from magicacl.exceptions import CommandExecutionError
from magicacl.maintainer import AclMaintainer
from magicacl.ports import AclProvider, ContainerLister, ContainerState, NamespaceExecutor

HOSTNAME = "dockerhost1.example.com"


def existing_acl(addresses: List[str], policy: str = "DROP") -> str:
    """Listing an INPUT chain configured for ``addresses`` would print."""
    if not addresses:
        return ""
    lines = [
        f"-P INPUT {policy}",
        "-P FORWARD ACCEPT",
        "-P OUTPUT ACCEPT",
        "-A INPUT -m state --state RELATED,ESTABLISHED -j ACCEPT",
        "-A INPUT -p ipv6-icmp -j ACCEPT",
    ]
    lines += [f"-A INPUT -s {a}/128 -j ACCEPT" for a in addresses]
    return "\n".join(lines) + "\n"


def make_namespaces(listings: Dict[str, str], failing: Dict[str, set] = None,
                    error: Type[Exception] = CommandExecutionError) -> MagicMock:
    """Mock executor answering ``-S`` from ``listings`` and raising ``error`` for argv listed in ``failing``."""
    failing = failing or {}
    executor = MagicMock(spec=NamespaceExecutor)

    def execute(container, argv):
        if tuple(argv) in failing.get(container, set()):
            raise error(container, argv, "iptables command failed")
        if argv[1:] == ["-S"]:
            return listings.get(container, "")
        return ""

    executor.execute.side_effect = execute
    return executor


def make_maintainer(executor, acl: Dict[str, Set[str]], containers: List[ContainerState], **kwargs) -> AclMaintainer:
    provider = MagicMock(spec=AclProvider)
    provider.get_acl.return_value = acl
    lister = MagicMock(spec=ContainerLister)
    lister.list_containers.return_value = containers
    return AclMaintainer(executor, provider, lister, HOSTNAME, **kwargs)


@pytest.fixture
def docker_client():
    client = MagicMock()
    client.containers = MagicMock()
    return client
