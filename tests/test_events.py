import asyncio

from debate.events import EventStream, TurnCountChanged


def test_closed_subscription_receives_nothing_more():
    async def scenario():
        stream = EventStream()
        kept, dropped = stream.subscribe(), stream.subscribe()
        stream.publish(TurnCountChanged(turn_count=1))
        dropped.close()
        dropped.close()
        stream.publish(TurnCountChanged(turn_count=2))
        return kept, dropped

    kept, dropped = asyncio.run(scenario())
    assert kept.queue.qsize() == 2
    assert dropped.queue.qsize() == 1
    assert dropped.get_nowait().turn_count == 1


def test_removed_listener_is_not_called():
    stream = EventStream()
    seen = []
    remove = stream.add_listener(seen.append)
    stream.publish(TurnCountChanged(turn_count=1))
    remove()
    remove()
    stream.publish(TurnCountChanged(turn_count=2))

    assert [e.turn_count for e in seen] == [1]
