import pytest

from dqcluster.roles import NodeInfo, NodeMetadata, NodeRole, RolesChanges, RolesConfig

V, S, P = NodeRole.VOTER, NodeRole.STANDBY, NodeRole.SPARE


def build(specs, config=None):
    """specs: (id, role, online, failure_domain, weight)."""
    state = {}
    nodes = {}
    for node_id, role, online, domain, weight in specs:
        node = NodeInfo(node_id, f"127.0.0.1:900{node_id}", role)
        nodes[node_id] = node
        state[node] = NodeMetadata(domain, weight) if online else None
    return RolesChanges(config or RolesConfig(), state), nodes


def test_role_names():
    changes, _ = build(
        [(1, V, True, 0, 0), (2, V, True, 0, 0), (3, V, True, 0, 0), (4, P, True, 0, 0)]
    )
    assert str(changes.assume(4)) == "stand-by"

    changes, _ = build([(1, V, True, 0, 0), (2, V, True, 0, 0)])
    role, _ = changes.adjust(1)
    assert str(role) == "spare"


def test_assume_small_cluster():
    changes, _ = build([(1, V, True, 0, 0), (2, P, True, 0, 0)])
    assert changes.assume(2) is None


def test_assume_unknown_node():
    changes, _ = build([(1, V, True, 0, 0), (2, P, True, 0, 0), (3, P, True, 0, 0)])
    assert changes.assume(42) is None


def test_assume_already_voter():
    changes, _ = build([(1, V, True, 0, 0), (2, V, True, 0, 0), (3, P, True, 0, 0)])
    assert changes.assume(1) is None


def test_assume_voter_when_short():
    changes, _ = build([(1, V, True, 0, 0), (2, P, True, 0, 0), (3, P, True, 0, 0)])
    assert changes.assume(3) == V


def test_assume_standby_when_voters_full():
    changes, _ = build(
        [(1, V, True, 0, 0), (2, V, True, 0, 0), (3, V, True, 0, 0), (4, P, True, 0, 0)]
    )
    assert changes.assume(4) == S


def test_assume_nothing_when_full():
    changes, _ = build(
        [(1, V, True, 0, 0), (2, V, True, 0, 0), (3, V, True, 0, 0), (4, S, True, 0, 0),
         (5, P, True, 0, 0)],
        RolesConfig(voters=3, standbys=1),
    )
    assert changes.assume(5) is None


def test_handover_voter_prefers_standby():
    changes, nodes = build(
        [(1, V, True, 0, 0), (2, V, True, 0, 0), (3, V, True, 0, 0), (4, P, True, 0, 0),
         (5, S, True, 0, 0)]
    )
    role, candidates = changes.handover(3)
    assert role == V
    assert candidates == [nodes[5], nodes[4]]


def test_handover_spare_does_nothing():
    changes, _ = build([(1, V, True, 0, 0), (2, P, True, 0, 0)])
    assert changes.handover(2) == (None, [])


def test_handover_no_candidates():
    changes, _ = build([(1, V, True, 0, 0), (2, V, True, 0, 0), (3, P, False, 0, 0)])
    assert changes.handover(1) == (None, [])


def test_handover_two_nodes():
    changes, nodes = build([(1, V, True, 0, 0), (2, P, True, 0, 0)])
    assert changes.handover(1) == (V, [nodes[2]])


def test_handover_honors_failure_domain():
    changes, nodes = build(
        [(1, V, True, 0, 0), (2, V, True, 1, 0), (3, V, True, 2, 0),
         (4, S, True, 0, 0), (5, S, True, 1, 0), (6, S, True, 2, 0)]
    )
    role, candidates = changes.handover(3)
    assert role == V
    assert candidates[0] == nodes[6]
    assert set(candidates) == {nodes[4], nodes[5], nodes[6]}


def test_adjust_single_node():
    changes, _ = build([(1, V, True, 0, 0)])
    assert changes.adjust(1) == (None, [])


def test_adjust_two_voters_demotes_non_leader():
    changes, nodes = build([(1, V, True, 0, 0), (2, V, True, 0, 0)])
    assert changes.adjust(1) == (P, [nodes[2]])


def test_adjust_replaces_offline_voter():
    changes, nodes = build(
        [(1, V, True, 0, 0), (2, V, True, 0, 0), (3, V, False, 0, 0), (4, S, True, 0, 0)]
    )
    assert changes.adjust(1) == (V, [nodes[4]])


def test_adjust_prefers_lower_weight():
    changes, nodes = build(
        [(1, V, True, 0, 0), (2, V, True, 0, 0), (3, V, False, 0, 0),
         (4, S, True, 0, 15), (5, S, True, 0, 5), (6, S, True, 0, 10)]
    )
    role, candidates = changes.adjust(1)
    assert role == V
    assert candidates == [nodes[5], nodes[6], nodes[4]]


def test_adjust_imbalanced_failure_domain():
    changes, nodes = build(
        [(1, V, True, 0, 0), (2, V, True, 0, 0), (3, V, True, 0, 0),
         (4, P, True, 1, 0), (5, P, True, 0, 0)]
    )
    assert changes.adjust(1) == (V, [nodes[4]])


def test_adjust_demotes_extra_voter():
    changes, nodes = build(
        [(1, V, True, 1, 0), (2, V, True, 0, 1), (3, V, True, 0, 5), (4, V, True, 1, 9)],
        RolesConfig(voters=3, standbys=0),
    )
    role, candidates = changes.adjust(1)
    assert role == P
    assert nodes[1] not in candidates
    assert candidates == [nodes[3], nodes[2], nodes[4]]


def test_adjust_demotes_offline_voter():
    changes, nodes = build(
        [(1, V, True, 0, 0), (2, V, True, 0, 0), (3, V, True, 0, 0), (4, V, False, 0, 0)],
        RolesConfig(voters=3, standbys=0),
    )
    assert changes.adjust(1) == (P, [nodes[4]])


def test_adjust_promotes_standbys():
    changes, nodes = build(
        [(1, V, True, 0, 0), (2, V, True, 0, 0), (3, V, True, 0, 0),
         (4, P, True, 0, 2), (5, P, True, 0, 1)]
    )
    assert changes.adjust(1) == (S, [nodes[5], nodes[4]])


def test_adjust_cannot_replace_voter():
    changes, _ = build(
        [(1, V, True, 0, 0), (2, V, True, 0, 0), (3, V, False, 0, 0), (4, S, False, 0, 0)]
    )
    assert changes.adjust(1) == (None, [])


def test_adjust_nothing_when_balanced():
    changes, _ = build(
        [(1, V, True, 0, 0), (2, V, True, 0, 0), (3, V, True, 0, 0), (4, S, True, 0, 0)],
        RolesConfig(voters=3, standbys=1),
    )
    assert changes.adjust(1) == (None, [])


def test_adjust_demotes_extra_standby_but_not_leader():
    changes, nodes = build(
        [(1, V, True, 0, 0), (2, V, True, 0, 0), (3, V, True, 0, 0),
         (4, S, True, 0, 0), (5, S, True, 0, 0)],
        RolesConfig(voters=3, standbys=1),
    )
    role, candidates = changes.adjust(1)
    assert role == P
    assert candidates == [nodes[4], nodes[5]]


@pytest.mark.parametrize("node_id", [1, 2, 3])
def test_adjust_result_never_includes_leader_when_demoting(node_id):
    changes, nodes = build(
        [(1, V, True, 0, 0), (2, V, True, 0, 0), (3, V, True, 0, 0), (4, V, True, 0, 0)],
        RolesConfig(voters=3, standbys=0),
    )
    role, candidates = changes.adjust(node_id)
    assert role == P
    assert nodes[node_id] not in candidates
    assert len(candidates) == len(nodes) - 1