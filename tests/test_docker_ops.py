"""Tests for the Docker-backed lister and namespace executor."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest
from docker.errors import DockerException, NotFound

from magicacl.docker_ops import DockerContainerLister, DockerNamespaceExecutor, is_read_only
from magicacl.exceptions import AclFetchError, CommandExecutionError, ContainerNotRunningError
from magicacl.ports import ContainerState


def make_container(name, status="running", pid=4242):
    container = MagicMock()
    container.name = name
    container.status = status
    container.attrs = {"State": {"Pid": pid}}
    return container


# --- Container Listing Tests ---

class TestDockerContainerLister:
    def test_maps_status_to_running(self, docker_client):
        docker_client.containers.list.return_value = [
            make_container("container-1"),
            make_container("container-2", status="exited", pid=0),
        ]

        states = DockerContainerLister(docker_client).list_containers()

        assert states == [ContainerState("container-1", True), ContainerState("container-2", False)]
        docker_client.containers.list.assert_called_once_with(all=True)

    def test_docker_error_becomes_fetch_error(self, docker_client):
        docker_client.containers.list.side_effect = DockerException("daemon unreachable")

        with pytest.raises(AclFetchError):
            DockerContainerLister(docker_client).list_containers()


# --- Namespace Execution Tests ---

class TestDockerNamespaceExecutor:
    @patch("magicacl.docker_ops.subprocess.run")
    def test_runs_command_through_nsenter(self, mock_run, docker_client):
        docker_client.containers.get.return_value = make_container("container-1")
        mock_run.return_value = MagicMock(stdout=b"-P INPUT ACCEPT\n")

        output = DockerNamespaceExecutor(docker_client, timeout=5.0).execute("container-1", ["ip6tables", "-S"])

        assert output == "-P INPUT ACCEPT\n"
        docker_client.containers.get.assert_called_once_with("container-1")
        mock_run.assert_called_once_with(
            ["nsenter", "--target", "4242", "--net", "--", "ip6tables", "-S"],
            check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE, timeout=5.0,
        )

    @patch("magicacl.docker_ops.subprocess.run")
    def test_failed_command_raises(self, mock_run, docker_client):
        docker_client.containers.get.return_value = make_container("container-1")
        mock_run.side_effect = subprocess.CalledProcessError(1, ["nsenter"], output=b"", stderr=b"Bad rule")

        with pytest.raises(CommandExecutionError) as exc_info:
            DockerNamespaceExecutor(docker_client).execute("container-1", ["ip6tables", "-F", "INPUT"])

        assert "Bad rule" in str(exc_info.value)
        assert exc_info.value.argv == ["ip6tables", "-F", "INPUT"]

    @patch("magicacl.docker_ops.subprocess.run")
    def test_timeout_raises(self, mock_run, docker_client):
        docker_client.containers.get.return_value = make_container("container-1")
        mock_run.side_effect = subprocess.TimeoutExpired(["nsenter"], 30)

        with pytest.raises(CommandExecutionError):
            DockerNamespaceExecutor(docker_client).execute("container-1", ["ip6tables", "-S"])

    @patch("magicacl.docker_ops.subprocess.run")
    def test_missing_binary_raises(self, mock_run, docker_client):
        docker_client.containers.get.return_value = make_container("container-1")
        mock_run.side_effect = FileNotFoundError("nsenter")

        with pytest.raises(CommandExecutionError):
            DockerNamespaceExecutor(docker_client).execute("container-1", ["ip6tables", "-S"])

    @patch("magicacl.docker_ops.subprocess.run")
    def test_unknown_container_raises(self, mock_run, docker_client):
        docker_client.containers.get.side_effect = NotFound("No such container")

        with pytest.raises(ContainerNotRunningError):
            DockerNamespaceExecutor(docker_client).execute("container-1", ["ip6tables", "-S"])
        mock_run.assert_not_called()

    @patch("magicacl.docker_ops.subprocess.run")
    def test_container_without_pid_raises(self, mock_run, docker_client):
        docker_client.containers.get.return_value = make_container("container-1", status="exited", pid=0)

        with pytest.raises(ContainerNotRunningError):
            DockerNamespaceExecutor(docker_client).execute("container-1", ["ip6tables", "-S"])
        mock_run.assert_not_called()

    @patch("magicacl.docker_ops.subprocess.run")
    def test_docker_error_is_not_reported_as_stopped(self, mock_run, docker_client):
        docker_client.containers.get.side_effect = DockerException("daemon unreachable")

        with pytest.raises(CommandExecutionError) as exc_info:
            DockerNamespaceExecutor(docker_client).execute("container-1", ["ip6tables", "-S"])

        assert not isinstance(exc_info.value, ContainerNotRunningError)
        mock_run.assert_not_called()

    @patch("magicacl.docker_ops.subprocess.run")
    def test_dry_run_only_reads(self, mock_run, docker_client):
        docker_client.containers.get.return_value = make_container("container-1")
        mock_run.return_value = MagicMock(stdout=b"")
        executor = DockerNamespaceExecutor(docker_client, dry_run=True)

        assert executor.execute("container-1", ["ip6tables", "-F", "INPUT"]) == ""
        mock_run.assert_not_called()

        executor.execute("container-1", ["ip6tables", "-S"])
        mock_run.assert_called_once()


# --- Read-Only Tests ---

class TestReadOnly:
    def test_listing_is_read_only(self):
        assert is_read_only(["ip6tables", "-S"]) is True
        assert is_read_only(["iptables", "-L"]) is True

    def test_modifications_are_not(self):
        assert is_read_only(["ip6tables", "-F", "INPUT"]) is False
        assert is_read_only(["ip6tables", "-P", "INPUT", "ACCEPT"]) is False
