"""INPUT chain codec (ip6tables / iptables ``-S`` format)

Every managed container owns exactly one inbound allow-list, expressed as the
INPUT chain of its network namespace:

    -P INPUT DROP
    -A INPUT -m state --state RELATED,ESTABLISHED -j ACCEPT
    -A INPUT -p ipv6-icmp -j ACCEPT
    -A INPUT -s 2001:db8::1/128 -j ACCEPT
    -A INPUT -s 2001:db8::2/128 -j ACCEPT

The first two rules are the baseline (stateful return traffic and the control
protocol needed for neighbour discovery); every other rule admits a single
peer address. Anything that does not fit this shape is treated as foreign and
makes ``parse`` fail, which the maintainer answers with a full reapplication.

This module does no I/O: ``parse`` turns listing text into an ActualRuleSet,
``render`` turns a desired address set into the ordered command sequence that
installs it.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from magicacl.exceptions import RuleSetParseError

INPUT_CHAIN = "INPUT"
ACCEPT = "ACCEPT"
DROP = "DROP"
BUILTIN_POLICIES = {ACCEPT, DROP}
STATEFUL_STATES = "RELATED,ESTABLISHED"


@dataclass(frozen=True)
class AddressFamily:
    name: str
    version: int
    tool: str
    prefix_len: int
    control_protocol: str
    # spellings of the control protocol that the listing may print
    control_aliases: Tuple[str, ...] = ()


IPV6 = AddressFamily("ipv6", 6, "ip6tables", 128, "ipv6-icmp", ("ipv6-icmp", "icmpv6", "58"))
IPV4 = AddressFamily("ipv4", 4, "iptables", 32, "icmp", ("icmp", "1"))
FAMILIES: Dict[str, AddressFamily] = {f.name: f for f in (IPV6, IPV4)}


class RuleKind(str, Enum):
    ESTABLISHED = "established"
    CONTROL = "control"
    PEER = "peer"


@dataclass(frozen=True)
class InputRule:
    kind: RuleKind
    address: Optional[str] = None


@dataclass
class ActualRuleSet:
    rules: List[InputRule] = field(default_factory=list)
    # None when the listing carried no "-P INPUT" line
    policy: Optional[str] = None

    @property
    def addresses(self) -> Set[str]:
        return {r.address for r in self.rules if r.kind is RuleKind.PEER}

    @property
    def default_policy(self) -> str:
        return self.policy or ACCEPT

    @property
    def has_baseline(self) -> bool:
        kinds = {r.kind for r in self.rules}
        return RuleKind.ESTABLISHED in kinds and RuleKind.CONTROL in kinds

    def converged_to(self, desired: Iterable[str]) -> bool:
        """True if the chain already is what ``render(desired)`` would build."""
        return self.has_baseline and self.default_policy == DROP and self.addresses == set(desired)


def canonical_address(raw: str, family: AddressFamily = IPV6) -> str:
    """Return the compressed form of ``raw``; ValueError if it is not an address of ``family``."""
    addr = ipaddress.ip_address(raw.strip())
    if addr.version != family.version:
        raise ValueError(f"{raw} is not an {family.name} address")
    return str(addr)


def canonical_order(addresses: Iterable[str], family: AddressFamily = IPV6) -> List[str]:
    """Deduplicated addresses in ascending numeric order."""
    unique = {canonical_address(a, family) for a in addresses}
    return sorted(unique, key=ipaddress.ip_address)


# ---------------- Parsing -----------------

def _classify_input_rule(args: List[str], line: str, family: AddressFamily) -> InputRule:
    if len(args) == 6 and args[4:] == ["-j", ACCEPT]:
        match, flag, states = args[1], args[2], args[3]
        if args[0] == "-m" and (match, flag) in {("state", "--state"), ("conntrack", "--ctstate")}:
            if set(states.split(",")) == set(STATEFUL_STATES.split(",")):
                return InputRule(RuleKind.ESTABLISHED)

    if len(args) == 4 and args[0] == "-p" and args[2:] == ["-j", ACCEPT]:
        if args[1] in family.control_aliases:
            return InputRule(RuleKind.CONTROL)

    if len(args) == 4 and args[0] == "-s" and args[2:] == ["-j", ACCEPT]:
        addr, _, prefix = args[1].partition("/")
        if prefix and prefix != str(family.prefix_len):
            raise RuleSetParseError(line, "source is not a single address")
        try:
            return InputRule(RuleKind.PEER, canonical_address(addr, family))
        except ValueError:
            raise RuleSetParseError(line, "invalid source address")

    raise RuleSetParseError(line)


def parse(text: str, family: AddressFamily = IPV6) -> ActualRuleSet:
    """Parse ``<tool> -S`` output into the INPUT chain's rules and policy.

    Policies and rules of other chains, and chain declarations, are ignored.
    Empty text yields an empty rule set with an implicit ACCEPT policy.
    """
    ruleset = ActualRuleSet()
    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        tokens = line.split()

        if tokens[0] == "-P":
            if len(tokens) != 3 or tokens[2] not in BUILTIN_POLICIES:
                raise RuleSetParseError(line, "malformed policy")
            if tokens[1] == INPUT_CHAIN:
                ruleset.policy = tokens[2]
        elif tokens[0] == "-N" and len(tokens) == 2:
            continue
        elif tokens[0] == "-A" and len(tokens) > 2:
            if tokens[1] != INPUT_CHAIN:
                continue
            ruleset.rules.append(_classify_input_rule(tokens[2:], line, family))
        else:
            raise RuleSetParseError(line)
    return ruleset


# ---------------- Rendering -----------------

def list_command(family: AddressFamily = IPV6) -> List[str]:
    return [family.tool, "-S"]


def policy_command(policy: str, family: AddressFamily = IPV6) -> List[str]:
    return [family.tool, "-P", INPUT_CHAIN, policy]


def render(desired: Iterable[str], family: AddressFamily = IPV6) -> List[List[str]]:
    """Ordered command sequence replacing the INPUT chain with an allow-list for ``desired``.

    flush, baseline accepts, one accept per address (ascending), then policy DROP.
    """
    tool = family.tool
    commands = [
        [tool, "-F", INPUT_CHAIN],
        [tool, "-A", INPUT_CHAIN, "-m", "state", "--state", STATEFUL_STATES, "-j", ACCEPT],
        [tool, "-A", INPUT_CHAIN, "-p", family.control_protocol, "-j", ACCEPT],
    ]
    for addr in canonical_order(desired, family):
        commands.append([tool, "-A", INPUT_CHAIN, "-s", f"{addr}/{family.prefix_len}", "-j", ACCEPT])
    commands.append(policy_command(DROP, family))
    return commands


def render_listing(commands: List[List[str]]) -> str:
    """Listing text a fresh namespace would report after running ``commands``."""
    policies = {"INPUT": ACCEPT, "FORWARD": ACCEPT, "OUTPUT": ACCEPT}
    rules: List[List[str]] = []
    for argv in commands:
        op, chain, rest = argv[1], argv[2], argv[3:]
        if op == "-F":
            rules = [r for r in rules if r[0] != chain]
        elif op == "-P":
            policies[chain] = rest[0]
        elif op == "-A":
            rules.append([chain, *rest])
        else:
            raise ValueError(f"cannot simulate {' '.join(argv)}")

    lines = [f"-P {chain} {policy}" for chain, policy in policies.items()]
    lines += ["-A " + " ".join(r) for r in rules]
    return "\n".join(lines) + "\n"
