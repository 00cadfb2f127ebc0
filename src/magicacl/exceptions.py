"""Exception hierarchy for the ACL agent."""

from __future__ import annotations

from typing import List


class AclError(Exception):
    """Base class for all ACL agent errors."""


class ConfigError(AclError):
    """Invalid environment configuration."""


class AclFetchError(AclError):
    """Desired ACL state or container list could not be obtained. The whole pass is skipped."""


class RuleSetParseError(AclError):
    """Rule listing contained a line that could not be classified."""

    def __init__(self, line: str, reason: str = "unrecognized rule"):
        super().__init__(f"{reason}: {line!r}")
        self.line = line


class CommandExecutionError(AclError):
    """A command run inside a container's network namespace failed."""

    def __init__(self, container: str, argv: List[str], detail: str = ""):
        message = f"command failed in {container}: {' '.join(argv)}"
        if detail:
            message += f"\n{detail}"
        super().__init__(message)
        self.container = container
        self.argv = list(argv)


class ContainerNotRunningError(CommandExecutionError):
    """The container stopped or disappeared after the pass took its snapshot."""


class AclRecoveryError(AclError):
    """Fail-open recovery failed; the listed containers may be left without a usable INPUT chain."""

    def __init__(self, containers: List[str]):
        super().__init__(f"fail-open recovery failed for: {', '.join(containers)}")
        self.containers = list(containers)
