import asyncio

from fakes import FakeConnection
from wallet_sync.core import events
from wallet_sync.core.registry import SubscriberRegistry


def test_register_greets_only_the_new_connection():
    async def scenario():
        registry = SubscriberRegistry()
        first, second = FakeConnection(), FakeConnection()
        await registry.register(first)
        await registry.register(second)
        return registry, first, second

    registry, first, second = asyncio.run(scenario())
    assert len(registry) == 2
    assert [m["type"] for m in first.sent] == ["connected"]
    assert [m["type"] for m in second.sent] == ["connected"]
    assert isinstance(first.sent[0]["timestamp"], int)


def test_failed_greeting_drops_the_connection():
    async def scenario():
        registry = SubscriberRegistry()
        broken = FakeConnection(fail=True)
        await registry.register(broken)
        return registry, broken

    registry, broken = asyncio.run(scenario())
    assert broken not in registry
    assert len(registry) == 0


def test_greeting_is_the_first_frame_even_if_a_broadcast_interleaves():
    registry = SubscriberRegistry()

    class BroadcastsWhileGreeted(FakeConnection):
        triggered = False

        async def send_text(self, data):
            if not self.triggered:
                self.triggered = True
                await registry.broadcast(events.new_block(11))
            await super().send_text(data)

    async def scenario():
        conn = BroadcastsWhileGreeted()
        await registry.register(conn)
        return conn

    conn = asyncio.run(scenario())
    assert [m["type"] for m in conn.sent] == ["connected"]
    assert conn in registry


def test_broadcast_survives_one_failing_subscriber():
    async def scenario():
        registry = SubscriberRegistry()
        healthy = [FakeConnection() for _ in range(4)]
        for conn in healthy:
            await registry.register(conn)
        flaky = FakeConnection()
        await registry.register(flaky)
        flaky.fail = True

        delivered = await registry.broadcast(events.new_block(42))
        return registry, healthy, flaky, delivered

    registry, healthy, flaky, delivered = asyncio.run(scenario())
    assert delivered == 4
    for conn in healthy:
        assert conn.of_type("newBlock")[0]["blockNumber"] == 42
    assert flaky not in registry
    assert len(registry) == 4


def test_register_during_broadcast_is_not_delivered_that_event():
    late = FakeConnection()

    class RegistersOnSend(FakeConnection):
        async def send_text(self, data):
            await super().send_text(data)
            if len(self.sent) == 2:  # the broadcast, not the greeting
                await registry.register(late)

    registry = SubscriberRegistry()

    async def scenario():
        trigger, other = RegistersOnSend(), FakeConnection()
        await registry.register(trigger)
        await registry.register(other)
        delivered = await registry.broadcast(events.new_block(7))
        return trigger, other, delivered

    trigger, other, delivered = asyncio.run(scenario())
    assert delivered == 2
    assert trigger.of_type("newBlock") and other.of_type("newBlock")
    assert late in registry
    assert [m["type"] for m in late.sent] == ["connected"]


def test_connection_leaving_mid_broadcast_is_skipped():
    registry = SubscriberRegistry()
    conns = []

    class UnregistersOthers(FakeConnection):
        async def send_text(self, data):
            await super().send_text(data)
            if len(self.sent) == 2:
                for c in conns:
                    if c is not self:
                        registry.unregister(c)

    async def scenario():
        conns.extend([UnregistersOthers(), FakeConnection(), FakeConnection()])
        for c in conns:
            await registry.register(c)
        return await registry.broadcast(events.new_block(9))

    delivered = asyncio.run(scenario())
    # Set order is arbitrary; whoever came after the remover was skipped.
    reached_before_removal = [c for c in conns[1:] if c.of_type("newBlock")]
    assert conns[0].of_type("newBlock")
    assert delivered == 1 + len(reached_before_removal)
    assert len(registry) == 1


def test_unregister_unknown_connection_is_harmless():
    registry = SubscriberRegistry()
    registry.unregister(FakeConnection())
    assert len(registry) == 0
