"""Docker-backed container enumeration and namespace command execution."""

from __future__ import annotations

import logging
import subprocess
from typing import List

from docker.errors import DockerException, NotFound

from magicacl.exceptions import AclFetchError, CommandExecutionError, ContainerNotRunningError
from magicacl.ports import ContainerLister, ContainerState, NamespaceExecutor

READ_ONLY_FLAGS = {"-S", "-L"}


def is_read_only(argv: List[str]) -> bool:
    return len(argv) > 1 and argv[1] in READ_ONLY_FLAGS


class DockerContainerLister(ContainerLister):
    def __init__(self, docker_client):
        self.docker_client = docker_client

    def list_containers(self) -> List[ContainerState]:
        try:
            containers = self.docker_client.containers.list(all=True)
        except DockerException as e:
            raise AclFetchError(f"Docker list error: {e}") from e
        return [ContainerState(name=c.name, running=c.status == "running") for c in containers]


class DockerNamespaceExecutor(NamespaceExecutor):
    """Runs commands in a container's network namespace with nsenter.

    Only the network namespace is entered, so the host's firewall binaries
    are used and the container image does not need to ship them.
    """

    def __init__(self, docker_client, timeout: float = 30.0, dry_run: bool = False):
        self.docker_client = docker_client
        self.timeout = timeout
        self.dry_run = dry_run

    def container_pid(self, container: str, argv: List[str]) -> int:
        try:
            c = self.docker_client.containers.get(container)
        except NotFound as e:
            raise ContainerNotRunningError(container, argv, "container no longer exists") from e
        except DockerException as e:
            raise CommandExecutionError(container, argv, f"Docker lookup error: {e}") from e
        pid = c.attrs.get("State", {}).get("Pid") or 0
        if not pid:
            raise ContainerNotRunningError(container, argv, "container has no running process")
        return pid

    def execute(self, container: str, argv: List[str]) -> str:
        if self.dry_run and not is_read_only(argv):
            logging.info(f"[DRY-RUN] {container}: {' '.join(argv)}")
            return ""

        pid = self.container_pid(container, argv)
        cmd = ["nsenter", "--target", str(pid), "--net", "--", *argv]
        logging.debug(f"Running command in {container}: {' '.join(argv)}")
        try:
            out = subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                                 timeout=self.timeout)
        except subprocess.CalledProcessError as e:
            raise CommandExecutionError(container, argv, e.stderr.decode(errors="ignore").strip()) from e
        except subprocess.TimeoutExpired as e:
            raise CommandExecutionError(container, argv, f"timed out after {self.timeout}s") from e
        except OSError as e:
            raise CommandExecutionError(container, argv, str(e)) from e
        return out.stdout.decode(errors="ignore")
