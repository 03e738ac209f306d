"""Decide which node of a cluster should hold which role."""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

MIN_VOTERS = 3


class NodeRole(enum.IntEnum):
    """Role a node can have in the cluster."""

    VOTER = 0
    STANDBY = 1
    SPARE = 2

    def __str__(self) -> str:
        return _ROLE_NAMES[self]


_ROLE_NAMES = {
    NodeRole.VOTER: "voter",
    NodeRole.STANDBY: "stand-by",
    NodeRole.SPARE: "spare",
}


@dataclass(frozen=True)
class NodeInfo:
    """Identity, address and role of a cluster node."""

    id: int
    address: str
    role: NodeRole = NodeRole.VOTER


@dataclass(frozen=True)
class NodeMetadata:
    """Failure domain and weight reported by an online node."""

    failure_domain: int = 0
    weight: int = 0


@dataclass
class RolesConfig:
    """Target number of voters and stand-bys."""

    voters: int = 3
    standbys: int = 3


@dataclass
class RolesChanges:
    """Role assignment algorithm over a snapshot of the cluster.

    ``state`` maps every node of the cluster to its metadata, or to ``None``
    if the node is currently offline.
    """

    config: RolesConfig = field(default_factory=RolesConfig)
    state: dict[NodeInfo, NodeMetadata | None] = field(default_factory=dict)

    def assume(self, node_id: int) -> NodeRole | None:
        """Return the role the given node should take at startup, if any."""
        if len(self.state) < MIN_VOTERS:
            return None

        node = self._get(node_id)
        if node is None:
            return None
        if node.role in (NodeRole.VOTER, NodeRole.STANDBY):
            return None

        online_voters = self._list(NodeRole.VOTER, True)
        online_standbys = self._list(NodeRole.STANDBY, True)

        if (
            len(online_voters) >= self.config.voters
            and len(online_standbys) >= self.config.standbys
        ):
            return None

        if len(online_voters) < self.config.voters:
            return NodeRole.VOTER
        return NodeRole.STANDBY

    def handover(self, node_id: int) -> tuple[NodeRole | None, list[NodeInfo]]:
        """Return the role the node should hand over and ordered candidates."""
        node = self._get(node_id)
        if node is None:
            return None, []
        if node.role not in (NodeRole.VOTER, NodeRole.STANDBY):
            return None, []

        peers = [peer for peer in self._list(node.role, True) if peer.id != node.id]
        domains = self._failure_domains(peers)

        candidates = self._list(NodeRole.SPARE, True)
        if node.role == NodeRole.VOTER:
            candidates = self._list(NodeRole.STANDBY, True) + candidates

        if not candidates:
            return None, []

        return node.role, self._sort_candidates(candidates, domains)

    def adjust(self, leader: int) -> tuple[NodeRole | None, list[NodeInfo]]:
        """Return a role to assign and the ordered candidates to receive it."""
        size = len(self.state)
        if size == 1:
            return None, []

        if size < MIN_VOTERS:
            for node in self.state:
                if node.id == leader or node.role != NodeRole.VOTER:
                    continue
                return NodeRole.SPARE, [node]
            return None, []

        online_voters = self._list(NodeRole.VOTER, True)
        online_standbys = self._list(NodeRole.STANDBY, True)
        offline_voters = self._list(NodeRole.VOTER, False)
        offline_standbys = self._list(NodeRole.STANDBY, False)

        domains_with_voters = self._failure_domains(online_voters)
        all_domains = self._all_failure_domains()

        if len(domains_with_voters) < len(all_domains) and len(domains_with_voters) < len(
            online_voters
        ):
            without_voters = all_domains - domains_with_voters
            candidates = self._list(NodeRole.STANDBY, True, without_voters)
            candidates += self._list(NodeRole.SPARE, True, without_voters)
            if candidates:
                return NodeRole.VOTER, self._sort_candidates(candidates, without_voters)

        if (
            not offline_voters
            and len(online_voters) == self.config.voters
            and not offline_standbys
            and len(online_standbys) == self.config.standbys
        ):
            return None, []

        if len(online_voters) < self.config.voters:
            candidates = self._list(NodeRole.STANDBY, True) + self._list(NodeRole.SPARE, True)
            if not candidates:
                return None, []
            domains = self._failure_domains(online_voters)
            return NodeRole.VOTER, self._sort_candidates(candidates, domains)

        if len(online_voters) > self.config.voters:
            nodes = [node for node in online_voters if node.id != leader]
            return NodeRole.SPARE, self._sort_voters_to_demote(nodes)

        if offline_voters:
            return NodeRole.SPARE, offline_voters

        if len(online_standbys) < self.config.standbys:
            candidates = self._list(NodeRole.SPARE, True)
            if not candidates:
                return None, []
            domains = self._failure_domains(online_standbys)
            return NodeRole.STANDBY, self._sort_candidates(candidates, domains)

        if len(online_standbys) > self.config.standbys:
            return NodeRole.SPARE, [node for node in online_standbys if node.id != leader]

        if offline_standbys:
            return NodeRole.SPARE, offline_standbys

        return None, []

    def _get(self, node_id: int) -> NodeInfo | None:
        return next((node for node in self.state if node.id == node_id), None)

    def _list(
        self, role: NodeRole, online: bool, domains: Iterable[int] | None = None
    ) -> list[NodeInfo]:
        wanted = None if domains is None else set(domains)
        return [
            node
            for node, metadata in self.state.items()
            if node.role == role
            and (metadata is not None) == online
            and (wanted is None or (metadata is not None and metadata.failure_domain in wanted))
        ]

    def _count(self, role: NodeRole, online: bool) -> int:
        return len(self._list(role, online))

    def _failure_domains(self, nodes: Iterable[NodeInfo]) -> set[int]:
        return {
            metadata.failure_domain
            for metadata in (self.state.get(node) for node in nodes)
            if metadata is not None
        }

    def _all_failure_domains(self) -> set[int]:
        return {m.failure_domain for m in self.state.values() if m is not None}

    def _metadata(self, node: NodeInfo) -> NodeMetadata:
        return self.state.get(node) or NodeMetadata()

    def _sort_candidates(
        self, candidates: list[NodeInfo], domains: Mapping[int, object] | set[int]
    ) -> list[NodeInfo]:
        """Prefer nodes outside the given domains, then lower weights."""

        def key(node: NodeInfo) -> tuple[bool, int]:
            metadata = self._metadata(node)
            return metadata.failure_domain in domains, metadata.weight

        return sorted(candidates, key=key)

    def _sort_voters_to_demote(self, candidates: list[NodeInfo]) -> list[NodeInfo]:
        """Prefer crowded failure domains first, then higher weights."""
        groups: dict[int, list[NodeInfo]] = {}
        for node in candidates:
            groups.setdefault(self._metadata(node).failure_domain, []).append(node)

        ordered = sorted(groups.values(), key=len, reverse=True)
        return [
            node
            for group in ordered
            for node in sorted(group, key=lambda n: self._metadata(n).weight, reverse=True)
        ]