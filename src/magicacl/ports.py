"""Collaborator interfaces used by the ACL maintainer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Set


@dataclass(frozen=True)
class ContainerState:
    name: str
    running: bool


@dataclass(frozen=True)
class AclEntry:
    container: str
    hostname: str
    ip_address: str


class NamespaceExecutor(ABC):
    @abstractmethod
    def execute(self, container: str, argv: List[str]) -> str:
        """Run ``argv`` inside the network namespace of ``container`` and return its stdout.

        Raises CommandExecutionError on any failure, timeouts included.
        """


class AclProvider(ABC):
    @abstractmethod
    def get_acl(self, hostname: str) -> Dict[str, Set[str]]:
        """Authorized peer addresses per container on ``hostname``.

        Raises AclFetchError when the inventory cannot be read; an empty
        mapping means no container has any authorized peer.
        """


class ContainerLister(ABC):
    @abstractmethod
    def list_containers(self) -> List[ContainerState]:
        """Snapshot of all containers known to the local runtime."""


def group_entries(entries: List[AclEntry]) -> Dict[str, Set[str]]:
    acl: Dict[str, Set[str]] = {}
    for entry in entries:
        acl.setdefault(entry.container, set()).add(entry.ip_address)
    return acl
