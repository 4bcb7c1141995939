"""
Tests for the WebSocket connection registry.

This module tests connection tracking per identity, targeted and filtered
dispatch, diagnostics snapshots and registry-wide shutdown.
"""

import asyncio
import random
import time

import pytest

from adminws.managers.connection import ConnectionState
from adminws.managers.websocket_connection_manager import ConnectionRegistry
from tests.mocks.websocket_mocks import FakeTransport, create_connection


async def assert_identity_invariant(registry: ConnectionRegistry):
    detailed = await registry.enumerate_connections()
    assert all(conn_ids for conn_ids in detailed.values())
    all_ids = [cid for conn_ids in detailed.values() for cid in conn_ids]
    assert len(all_ids) == len(set(all_ids))


class TestRegister:
    """Tests for register/unregister."""

    @pytest.mark.asyncio
    async def test_register_creates_identity(self, registry):
        conn = create_connection("user1")

        await registry.register("user1", conn)

        assert await registry.enumerate_identities() == {"user1"}
        assert await registry.enumerate_connections() == {"user1": [conn.id]}

    @pytest.mark.asyncio
    async def test_register_multiple_connections_keeps_order(self, registry):
        conns = [create_connection("user1") for _ in range(3)]

        for conn in conns:
            await registry.register("user1", conn)

        detailed = await registry.enumerate_connections()
        assert detailed["user1"] == [c.id for c in conns]
        assert await registry.connection_count("user1") == 3

    @pytest.mark.asyncio
    async def test_register_same_connection_twice_is_ignored(self, registry):
        conn = create_connection("user1")

        await registry.register("user1", conn)
        await registry.register("user1", conn)
        await registry.register("user2", conn)

        assert await registry.enumerate_connections() == {"user1": [conn.id]}

    @pytest.mark.asyncio
    async def test_unregister_removes_empty_identity(self, registry):
        conn1 = create_connection("user1")
        conn2 = create_connection("user1")
        await registry.register("user1", conn1)
        await registry.register("user1", conn2)

        await registry.unregister(conn1)
        assert await registry.enumerate_connections() == {"user1": [conn2.id]}

        await registry.unregister(conn2)
        assert await registry.enumerate_identities() == set()
        assert await registry.connection_count("user1") == 0

    @pytest.mark.asyncio
    async def test_unregister_unknown_connection_is_noop(self, registry):
        tracked = create_connection("user1")
        await registry.register("user1", tracked)
        before = await registry.enumerate_connections()

        await registry.unregister(create_connection("user1"))
        await registry.unregister(create_connection("user9"))

        assert await registry.enumerate_connections() == before

    @pytest.mark.asyncio
    async def test_unregister_is_idempotent(self, registry):
        conn = create_connection("user1")
        await registry.register("user1", conn)

        await registry.unregister(conn)
        await registry.unregister(conn)

        assert await registry.enumerate_identities() == set()

    @pytest.mark.asyncio
    async def test_identity_invariant_holds_for_random_sequences(self):
        rng = random.Random(1234)
        identities = ["user1", "user2", "member3", "member4"]

        for _ in range(20):
            registry = ConnectionRegistry()
            pool = [
                create_connection(rng.choice(identities)) for _ in range(12)
            ]

            for _ in range(60):
                conn = rng.choice(pool)
                if rng.random() < 0.55:
                    await registry.register(conn.identity, conn)
                else:
                    await registry.unregister(conn)
                await assert_identity_invariant(registry)

    @pytest.mark.asyncio
    async def test_concurrent_register_loses_no_updates(self, registry):
        rng = random.Random(42)
        conns = [create_connection("user1") for _ in range(50)]

        async def register_later(conn):
            await asyncio.sleep(rng.random() / 100)
            await registry.register("user1", conn)

        await asyncio.gather(*(register_later(c) for c in conns))

        detailed = await registry.enumerate_connections()
        assert sorted(detailed["user1"]) == sorted(c.id for c in conns)

    @pytest.mark.asyncio
    async def test_concurrent_register_and_unregister(self, registry):
        rng = random.Random(7)
        keep = [create_connection("user1") for _ in range(20)]
        drop = [create_connection("user1") for _ in range(20)]
        for conn in drop:
            await registry.register("user1", conn)

        async def jitter(coro):
            await asyncio.sleep(rng.random() / 100)
            await coro

        await asyncio.gather(
            *(jitter(registry.register("user1", c)) for c in keep),
            *(jitter(registry.unregister(c)) for c in drop),
        )

        detailed = await registry.enumerate_connections()
        assert sorted(detailed["user1"]) == sorted(c.id for c in keep)


class TestDispatch:
    """Tests for dispatching payloads."""

    @pytest.mark.asyncio
    async def test_dispatch_reaches_every_connection_of_identity(
        self, registry
    ):
        conn1 = create_connection("user1")
        conn2 = create_connection("user1")
        await registry.register("user1", conn1)
        await registry.register("user1", conn2)

        sent = await registry.dispatch_to_identity("user1", b"hello")

        assert sent == 2
        assert conn1.queue.get_nowait() == b"hello"
        assert conn2.queue.get_nowait() == b"hello"

    @pytest.mark.asyncio
    async def test_dispatch_skips_closed_connection(self, registry):
        conn1 = create_connection("user1")
        conn2 = create_connection("user1")
        await registry.register("user1", conn1)
        await registry.register("user1", conn2)
        conn2.closed.set()

        sent = await registry.dispatch_to_identity("user1", b"hello")

        assert sent == 1
        assert conn1.queue.qsize() == 1
        assert conn2.queue.empty()

    @pytest.mark.asyncio
    async def test_dispatch_unknown_identity_returns_zero(self, registry):
        other = create_connection("user2")
        await registry.register("user2", other)

        assert await registry.dispatch_to_identity("user1", b"hello") == 0
        assert other.queue.empty()

    @pytest.mark.asyncio
    async def test_dispatch_before_any_registration(self, registry):
        assert await registry.dispatch_to_identity("user1", b"hello") == 0
        assert await registry.dispatch_to_matching(lambda _: True, b"x") == 0

    @pytest.mark.asyncio
    async def test_saturated_queue_is_excluded_within_timeout(self, registry):
        full = create_connection("user1", queue_size=1)
        free = create_connection("user1", queue_size=1)
        await registry.register("user1", full)
        await registry.register("user1", free)
        assert await full.offer(b"first")

        started = time.monotonic()
        sent = await registry.dispatch_to_identity("user1", b"second")
        elapsed = time.monotonic() - started

        assert sent == 1
        assert elapsed < 1.0
        assert full.queue.get_nowait() == b"first"
        assert full.queue.empty()
        assert free.queue.get_nowait() == b"second"

    @pytest.mark.asyncio
    async def test_queue_keeps_fifo_order(self, registry):
        conn = create_connection("user1")
        await registry.register("user1", conn)

        for i in range(5):
            await registry.dispatch_to_identity("user1", f"m{i}".encode())

        received = [conn.queue.get_nowait() for _ in range(5)]
        assert received == [b"m0", b"m1", b"m2", b"m3", b"m4"]

    @pytest.mark.asyncio
    async def test_dispatch_to_matching_uses_predicate(self, registry):
        admin1 = create_connection("user1")
        admin2 = create_connection("user2")
        member10 = create_connection("member10")
        member11 = create_connection("member11")
        for conn in (admin1, admin2, member10, member11):
            await registry.register(conn.identity, conn)

        sent = await registry.dispatch_to_matching(
            lambda identity: identity.startswith("user")
            or identity == "member10",
            b"balance",
        )

        assert sent == 3
        assert admin1.queue.qsize() == 1
        assert admin2.queue.qsize() == 1
        assert member10.queue.qsize() == 1
        assert member11.queue.empty()

    @pytest.mark.asyncio
    async def test_dispatch_to_many(self, registry):
        conns = {
            identity: create_connection(identity)
            for identity in ("user1", "user2", "user3")
        }
        for identity, conn in conns.items():
            await registry.register(identity, conn)

        sent = await registry.dispatch_to_many(
            ["user1", "user3", "user404"], b"hi"
        )

        assert sent == 2
        assert conns["user1"].queue.qsize() == 1
        assert conns["user2"].queue.empty()
        assert conns["user3"].queue.qsize() == 1

    @pytest.mark.asyncio
    async def test_dispatch_holds_no_lock_while_waiting(self, registry):
        """A slow (full) queue must not block register on the same registry."""
        full = create_connection("user1", queue_size=1)
        await registry.register("user1", full)
        await full.offer(b"first")

        dispatch = asyncio.create_task(
            registry.dispatch_to_identity("user1", b"second")
        )
        await asyncio.sleep(0.02)

        newcomer = create_connection("user2")
        await asyncio.wait_for(registry.register("user2", newcomer), 0.05)

        assert await dispatch == 0


class TestEnumerate:
    """Tests for diagnostics snapshots."""

    @pytest.mark.asyncio
    async def test_snapshots_are_copies(self, registry):
        conn = create_connection("user1")
        await registry.register("user1", conn)

        identities = await registry.enumerate_identities()
        detailed = await registry.enumerate_connections()
        identities.add("user2")
        detailed["user1"].append("bogus")
        detailed["user3"] = ["x"]

        assert await registry.enumerate_identities() == {"user1"}
        assert await registry.enumerate_connections() == {"user1": [conn.id]}

    @pytest.mark.asyncio
    async def test_total_connections(self, registry):
        for identity in ("user1", "user1", "member2"):
            await registry.register(identity, create_connection(identity))

        assert await registry.total_connections() == 3


class TestShutdownAll:
    """Tests for registry-wide shutdown."""

    @pytest.mark.asyncio
    async def test_shutdown_closes_everything(self, registry):
        transports = [FakeTransport() for _ in range(3)]
        conns = [
            create_connection(identity, transport=transport)
            for identity, transport in zip(
                ("user1", "user1", "member2"), transports
            )
        ]
        for conn in conns:
            await registry.register(conn.identity, conn)

        await registry.shutdown_all()

        assert await registry.enumerate_identities() == set()
        assert await registry.dispatch_to_identity("user1", b"x") == 0
        assert await registry.dispatch_to_matching(lambda _: True, b"x") == 0
        for conn, transport in zip(conns, transports):
            assert conn.closed.is_set()
            assert conn.state is ConnectionState.CLOSED
            assert transport.close_calls == [1000]

    @pytest.mark.asyncio
    async def test_shutdown_closes_slow_peers_concurrently(self, registry):
        transports = [FakeTransport(close_delay=0.2) for _ in range(5)]
        for transport in transports:
            await registry.register(
                "user1", create_connection("user1", transport=transport)
            )

        started = time.monotonic()
        await registry.shutdown_all()
        elapsed = time.monotonic() - started

        assert elapsed < 0.6
        assert all(t.close_calls == [1000] for t in transports)

    @pytest.mark.asyncio
    async def test_registry_usable_after_shutdown(self, registry):
        await registry.register("user1", create_connection("user1"))
        await registry.shutdown_all()

        conn = create_connection("user1")
        await registry.register("user1", conn)

        assert await registry.dispatch_to_identity("user1", b"again") == 1

    @pytest.mark.asyncio
    async def test_unregister_after_shutdown_is_noop(self, registry):
        conn = create_connection("user1")
        await registry.register("user1", conn)
        await registry.shutdown_all()

        await registry.unregister(conn)

        assert await registry.enumerate_identities() == set()

    @pytest.mark.asyncio
    async def test_independent_registries(self):
        first = ConnectionRegistry()
        second = ConnectionRegistry()
        await first.register("user1", create_connection("user1"))

        await second.shutdown_all()

        assert await first.enumerate_identities() == {"user1"}
        assert await second.enumerate_identities() == set()


@pytest.mark.asyncio
async def test_end_to_end_dispatch_then_shutdown(registry):
    conn = create_connection("user42")
    await registry.register("user42", conn)

    sent = await registry.dispatch_to_identity("user42", b"ping")

    assert sent == 1
    assert conn.queue.qsize() == 1
    assert conn.queue.get_nowait() == b"ping"

    await registry.shutdown_all()

    assert await registry.dispatch_to_identity("user42", b"ping") == 0
