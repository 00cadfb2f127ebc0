"""ACL convergence for running containers.

One call to ``AclMaintainer.run()`` is one reconciliation pass:

  1. Snapshot the containers known to Docker and the authorized peers of
     this host. If either cannot be fetched the pass is skipped entirely;
     reconciling against partial data could revoke legitimate peers.
  2. For each running container read its INPUT chain. When the chain
     already holds both baseline rules and admits exactly the authorized
     peers under a DROP policy, nothing is changed.
  3. Otherwise replace the chain: flush, baseline accepts, one accept per
     peer, then policy DROP. Commands run one at a time, in that order.
  4. If any of those commands fails the chain is set to policy ACCEPT
     (fail open) so the container stays reachable until the next pass
     retries. A failing recovery is the only per-container condition that
     escapes ``run()``, and only after every other container was handled.

Stopped containers are never touched.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, List, Optional, Set

from magicacl.exceptions import AclFetchError, AclRecoveryError, ContainerNotRunningError, RuleSetParseError
from magicacl.ports import AclProvider, ContainerLister, NamespaceExecutor
from magicacl.rules import (ACCEPT, IPV6, ActualRuleSet, AddressFamily, canonical_address, canonical_order,
                            list_command, parse, policy_command, render)


class ContainerOutcome(str, Enum):
    SKIPPED = "skipped"
    UNCHANGED = "unchanged"
    REAPPLIED = "reapplied"
    FAILED_OPEN = "failed_open"
    RECOVERY_FAILED = "recovery_failed"


class AclMaintainer:
    def __init__(self, executor: NamespaceExecutor, provider: AclProvider, lister: ContainerLister,
                 hostname: str, family: AddressFamily = IPV6):
        self.executor = executor
        self.provider = provider
        self.lister = lister
        self.hostname = hostname
        self.family = family

    def run(self):
        try:
            self.reconcile()
        except AclFetchError as e:
            logging.error(f"Skipping ACL pass: {e}")

    def reconcile(self) -> Dict[str, ContainerOutcome]:
        """Run one pass and return the outcome per container.

        Raises AclFetchError if the pass was skipped, AclRecoveryError if
        fail-open recovery failed for at least one container.
        """
        containers = self.lister.list_containers()
        acl = self.provider.get_acl(self.hostname)

        outcomes: Dict[str, ContainerOutcome] = {}
        for container in containers:
            if not container.running:
                outcomes[container.name] = ContainerOutcome.SKIPPED
                continue
            outcomes[container.name] = self.converge(container.name, acl.get(container.name, set()))

        unrecovered = [name for name, o in outcomes.items() if o is ContainerOutcome.RECOVERY_FAILED]
        changed = sum(1 for o in outcomes.values()
                      if o not in (ContainerOutcome.UNCHANGED, ContainerOutcome.SKIPPED))
        logging.info(f"ACL pass done: {len(outcomes)} containers, {changed} changed")
        if unrecovered:
            raise AclRecoveryError(unrecovered)
        return outcomes

    def converge(self, container: str, peers: Set[str]) -> ContainerOutcome:
        desired = self.valid_addresses(container, peers)
        try:
            actual = self.read_ruleset(container)
        except ContainerNotRunningError as e:
            logging.info(f"Skipping ACL for {container}, it is no longer running: {e}")
            return ContainerOutcome.SKIPPED
        if actual is not None and actual.converged_to(desired):
            logging.debug(f"ACL for {container} unchanged ({len(desired)} peers)")
            return ContainerOutcome.UNCHANGED

        try:
            for argv in render(desired, self.family):
                self.executor.execute(container, argv)
        except ContainerNotRunningError as e:
            logging.info(f"Skipping ACL for {container}, it stopped while applying: {e}")
            return ContainerOutcome.SKIPPED
        except Exception:
            logging.exception(f"Failed to apply ACL for {container}, falling back to policy ACCEPT")
            return self.fail_open(container)

        logging.info(f"Applied ACL for {container}: {len(desired)} peers")
        return ContainerOutcome.REAPPLIED

    def read_ruleset(self, container: str) -> Optional[ActualRuleSet]:
        """Current INPUT chain of ``container``, or None if it must be rebuilt unconditionally.

        Unreadable, malformed and empty listings are all answered with a full
        reapplication. ContainerNotRunningError is passed on to the caller.
        """
        try:
            output = self.executor.execute(container, list_command(self.family))
        except ContainerNotRunningError:
            raise
        except Exception as e:
            logging.warning(f"Cannot list rules of {container}: {e}")
            return None
        if not output.strip():
            return None
        try:
            return parse(output, self.family)
        except RuleSetParseError as e:
            logging.warning(f"Unrecognized rules in {container}, reapplying ACL: {e}")
            return None

    def valid_addresses(self, container: str, peers: Set[str]) -> List[str]:
        valid = []
        for peer in peers:
            try:
                valid.append(canonical_address(peer, self.family))
            except ValueError as e:
                logging.warning(f"Ignoring peer {peer!r} of {container}: {e}")
        return canonical_order(valid, self.family)

    def fail_open(self, container: str) -> ContainerOutcome:
        try:
            self.executor.execute(container, policy_command(ACCEPT, self.family))
        except ContainerNotRunningError as e:
            logging.info(f"Skipping fail-open for {container}, it is no longer running: {e}")
            return ContainerOutcome.SKIPPED
        except Exception as e:
            logging.critical(f"Fail-open recovery failed for {container}, INPUT chain may be unusable: {e}")
            return ContainerOutcome.RECOVERY_FAILED
        return ContainerOutcome.FAILED_OPEN
