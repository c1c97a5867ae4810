import asyncio
import threading

import pytest

from resumable_sse._channel import AsyncEventChannel, ChannelClosed, EventChannel
from resumable_sse._events import Event


def ev(n: int) -> Event:
    return Event(origin="o", data=str(n).encode())


def test_buffer_must_not_be_negative():
    with pytest.raises(ValueError):
        EventChannel(buffer=-1)
    with pytest.raises(ValueError):
        AsyncEventChannel(buffer=-1)


def test_iteration_preserves_order_and_stops_on_close():
    ch = EventChannel(buffer=10)
    for i in range(5):
        ch.put(ev(i))
    ch.close()

    assert [e.data for e in ch] == [b"0", b"1", b"2", b"3", b"4"]
    assert ch.closed


def test_close_is_idempotent_and_blocks_further_puts():
    ch = EventChannel(buffer=1)
    ch.close()
    ch.close()

    with pytest.raises(ChannelClosed):
        ch.put(ev(1))
    with pytest.raises(ChannelClosed):
        ch.get(timeout=1)


def test_get_timeout_raises_timeout_error():
    ch = EventChannel()

    with pytest.raises(TimeoutError):
        ch.get(timeout=0.01)


def test_unbuffered_put_waits_for_consumer():
    ch = EventChannel()
    delivered = threading.Event()

    def produce():
        ch.put(ev(1))
        delivered.set()

    t = threading.Thread(target=produce)
    t.start()

    # Sin consumidor, el productor sigue bloqueado.
    assert not delivered.wait(0.1)
    assert ch.get(timeout=1).data == b"1"
    assert delivered.wait(1)
    t.join(1)


def test_every_consumer_sees_the_close():
    ch = EventChannel(buffer=4)
    results: list[list[bytes]] = [[], []]

    def consume(idx: int):
        for e in ch:
            results[idx].append(e.data)

    threads = [threading.Thread(target=consume, args=(i,)) for i in range(2)]
    for t in threads:
        t.start()
    for i in range(6):
        ch.put(ev(i))
    ch.close()
    for t in threads:
        t.join(2)

    assert not any(t.is_alive() for t in threads)
    assert sorted(results[0] + results[1]) == [str(i).encode() for i in range(6)]


def test_close_does_not_block_on_full_buffer():
    ch = EventChannel(buffer=2)
    ch.put(ev(1))
    ch.put(ev(2))

    ch.close()

    # Los eventos ya encolados siguen disponibles tras el cierre.
    assert [e.data for e in ch] == [b"1", b"2"]


def test_close_releases_blocked_unbuffered_put():
    ch = EventChannel()
    errors: list[BaseException] = []

    def produce():
        try:
            ch.put(ev(1))
        except ChannelClosed as e:
            errors.append(e)

    t = threading.Thread(target=produce)
    t.start()
    t.join(0.1)
    assert t.is_alive()

    ch.close()
    t.join(1)

    assert not t.is_alive()
    assert len(errors) == 1


def test_close_releases_put_waiting_for_room():
    ch = EventChannel(buffer=1)
    ch.put(ev(1))
    errors: list[BaseException] = []

    def produce():
        try:
            ch.put(ev(2))
        except ChannelClosed as e:
            errors.append(e)

    t = threading.Thread(target=produce)
    t.start()
    t.join(0.1)
    ch.close()
    t.join(1)

    assert not t.is_alive()
    assert len(errors) == 1


@pytest.mark.asyncio
async def test_async_channel_iteration():
    ch = AsyncEventChannel()

    async def produce():
        for i in range(3):
            await ch.put(ev(i))
        await ch.close()

    task = asyncio.create_task(produce())
    received = [e.data async for e in ch]
    await task

    assert received == [b"0", b"1", b"2"]
    with pytest.raises(ChannelClosed):
        await ch.put(ev(4))


@pytest.mark.asyncio
async def test_async_unbuffered_put_waits_for_consumer():
    ch = AsyncEventChannel()
    task = asyncio.create_task(ch.put(ev(1)))
    await asyncio.sleep(0.05)

    assert not task.done()
    assert (await ch.get()).data == b"1"
    await asyncio.wait_for(task, timeout=1)


@pytest.mark.asyncio
async def test_async_close_releases_blocked_put():
    ch = AsyncEventChannel()
    task = asyncio.create_task(ch.put(ev(1)))
    await asyncio.sleep(0.05)

    await ch.close()

    with pytest.raises(ChannelClosed):
        await asyncio.wait_for(task, timeout=1)


@pytest.mark.asyncio
async def test_async_close_does_not_block_on_full_buffer():
    ch = AsyncEventChannel(buffer=1)
    await ch.put(ev(1))

    await asyncio.wait_for(ch.close(), timeout=1)

    assert [e.data async for e in ch] == [b"1"]
