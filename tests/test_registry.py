"""Tests for ServerRegistry — admission, completion, config updates, stats reset."""

import pytest

from rr_load_balancer import Request, ServerConfig, ServerRegistry


@pytest.fixture
def registry():
    """Registry with two servers."""
    registry = ServerRegistry()
    registry.add(ServerConfig(name="alpha", weight=2, max_connections=2, processing_time_ms=100))
    registry.add(ServerConfig(name="beta", weight=1, max_connections=1, processing_time_ms=250))
    return registry


def assert_capacity_invariant(registry):
    for server in registry.servers():
        assert 0 <= server.current_connections <= server.max_connections
        assert server.current_connections == len(server.in_flight)


# ─────────────────────────────────────────────────────────────────────
# add / remove
# ─────────────────────────────────────────────────────────────────────


class TestAddRemove:
    def test_add_starts_with_zeroed_counters(self):
        registry = ServerRegistry()
        server = registry.add(ServerConfig(name="alpha", weight=4))

        assert server.active is True
        assert server.current_connections == 0
        assert server.total_requests == 0
        assert server.total_response_time_ms == 0
        assert server.in_flight == frozenset()
        assert server.weight == server.original_weight == 4

    def test_ids_are_unique_and_never_reused(self, registry):
        first, second = registry.servers()
        registry.remove(second.id)
        third = registry.add(ServerConfig(name="gamma"))

        assert len({first.id, second.id, third.id}) == 3

    def test_servers_keep_insertion_order(self, registry):
        registry.add(ServerConfig(name="gamma"))
        assert [s.name for s in registry.servers()] == ["alpha", "beta", "gamma"]

    def test_remove_is_idempotent(self, registry):
        alpha = registry.servers()[0]

        assert registry.remove(alpha.id).name == "alpha"
        assert registry.remove(alpha.id) is None
        assert alpha.id not in registry
        assert len(registry) == 1


# ─────────────────────────────────────────────────────────────────────
# admit / complete
# ─────────────────────────────────────────────────────────────────────


class TestAdmitComplete:
    def test_admit_stamps_request_and_counts(self, registry):
        alpha = registry.servers()[0]

        request = Request(id=1)
        assert not request.admitted

        admitted = registry.admit(alpha.id, request, now_ms=10.0)

        assert admitted.admitted
        assert admitted.server_id == alpha.id
        assert admitted.processing_time_ms == 100
        assert admitted.admitted_at_ms == 10.0
        server = registry.get(alpha.id)
        assert server.current_connections == 1
        assert server.total_requests == 1
        assert server.in_flight == frozenset({1})

    def test_admit_refuses_full_server(self, registry):
        beta = registry.servers()[1]

        assert registry.admit(beta.id, Request(id=1), 0.0) is not None
        assert registry.admit(beta.id, Request(id=2), 0.0) is None

        server = registry.get(beta.id)
        assert server.total_requests == 1
        assert_capacity_invariant(registry)

    def test_admit_refuses_inactive_server(self, registry):
        alpha = registry.servers()[0]
        registry.toggle_active(alpha.id)

        assert registry.can_accept(alpha.id) is False
        assert registry.admit(alpha.id, Request(id=1), 0.0) is None

    def test_admit_unknown_server(self, registry):
        assert registry.admit(999, Request(id=1), 0.0) is None

    def test_complete_updates_stats(self, registry):
        alpha = registry.servers()[0]
        registry.admit(alpha.id, Request(id=1), 0.0)

        done = registry.complete(alpha.id, 1)

        assert done.completed is True
        server = registry.get(alpha.id)
        assert server.current_connections == 0
        assert server.total_response_time_ms == 100
        assert server.in_flight == frozenset()
        assert server.average_response_time == 100.0

    def test_complete_unknown_request_is_noop(self, registry):
        alpha = registry.servers()[0]
        assert registry.complete(alpha.id, 42) is None
        assert registry.get(alpha.id).current_connections == 0

    def test_snapshot_is_not_affected_by_later_admissions(self, registry):
        alpha = registry.servers()[0]
        registry.admit(alpha.id, Request(id=1), 0.0)

        assert alpha.current_connections == 0
        assert registry.get(alpha.id).current_connections == 1

    def test_toggle_keeps_in_flight_requests(self, registry):
        alpha = registry.servers()[0]
        registry.admit(alpha.id, Request(id=1), 0.0)

        registry.toggle_active(alpha.id)
        assert registry.get(alpha.id).in_flight == frozenset({1})

        registry.complete(alpha.id, 1)
        assert registry.get(alpha.id).total_response_time_ms == 100


# ─────────────────────────────────────────────────────────────────────
# config updates and resets
# ─────────────────────────────────────────────────────────────────────


class TestUpdateAndClear:
    def test_update_resets_original_weight_keeps_counters(self, registry):
        alpha = registry.servers()[0]
        registry.admit(alpha.id, Request(id=1), 0.0)
        registry.set_effective_weight(alpha.id, 1)

        updated = registry.update_config(
            alpha.id,
            ServerConfig(name="alpha-2", weight=5, max_connections=10, processing_time_ms=50),
        )

        assert updated.name == "alpha-2"
        assert updated.weight == updated.original_weight == 5
        assert updated.max_connections == 10
        assert updated.processing_time_ms == 50
        assert updated.total_requests == 1
        assert updated.current_connections == 1

    def test_update_unknown_server_returns_none(self, registry):
        assert registry.update_config(999, ServerConfig(name="x")) is None
        assert registry.toggle_active(999) is None

    def test_clear_stats_zeroes_everything(self, registry):
        alpha, beta = registry.servers()
        registry.admit(alpha.id, Request(id=1), 0.0)
        registry.admit(beta.id, Request(id=2), 0.0)
        registry.complete(alpha.id, 1)

        registry.clear_stats()

        for server in registry.servers():
            assert server.current_connections == 0
            assert server.total_requests == 0
            assert server.total_response_time_ms == 0
            assert server.in_flight == frozenset()

    def test_completion_after_clear_stats_is_ignored(self, registry):
        beta = registry.servers()[1]
        registry.admit(beta.id, Request(id=1), 0.0)
        registry.clear_stats()

        assert registry.complete(beta.id, 1) is None
        assert registry.get(beta.id).total_response_time_ms == 0
        assert_capacity_invariant(registry)
