import asyncio
from contextlib import suppress

import pytest

from iri_exporter.exceptions import FeedUnavailable
from iri_exporter.feed import ZmqFeed
from fakes import sync_publisher, wait_until


@pytest.fixture
def feed():
    f = ZmqFeed("tcp://localhost:5556")
    f.started = True
    return f


def test_counts_transactions(feed):
    feed.handle_message("tx HASH ADDR 0 TAG 1 0 0 BUNDLE TRUNK BRANCH 1 TAG")
    feed.handle_message("tx HASH ADDR -5 TAG 1 0 0 BUNDLE TRUNK BRANCH 1 TAG")
    feed.handle_message("sn 1000 HASH ADDR TRUNK BRANCH BUNDLE")
    stats = feed.sample()
    assert stats.seen_tx_count == 2
    assert stats.txs_with_value_count == 1
    assert stats.confirmed_tx_count == 1


def test_rstat_replaces_queue_depths(feed):
    feed.handle_message("rstat 1 2 3 4 5")
    feed.handle_message("rstat 10 20 30 40 50")
    stats = feed.sample()
    assert (stats.to_process, stats.to_broadcast, stats.to_request) == (10, 20, 30)
    assert (stats.to_reply, stats.total_transactions) == (40, 50)


def test_sample_is_a_copy(feed):
    stats = feed.sample()
    feed.handle_message("sn 1000 HASH ADDR TRUNK BRANCH BUNDLE")
    assert stats.confirmed_tx_count == 0
    assert feed.sample().confirmed_tx_count == 1


@pytest.mark.parametrize(
    "message", ["", "tx HASH", "tx HASH ADDR many", "rstat 1 2", "rstat a b c d e", "lmi 1 2"]
)
def test_ignores_malformed_and_unknown(feed, message):
    feed.handle_message(message)
    stats = feed.sample()
    assert stats.seen_tx_count == 0
    assert stats.total_transactions == 0


def test_unavailable_until_started():
    f = ZmqFeed("tcp://localhost:5556")
    with pytest.raises(FeedUnavailable):
        f.sample()


@pytest.mark.asyncio
async def test_run_receives_and_filters(zmq_context, publisher):
    publisher, address = publisher
    f = ZmqFeed(address, context=zmq_context)
    task = asyncio.get_running_loop().create_task(f.run())
    try:
        await sync_publisher(publisher, f)
        for frame in [
            b"sn 1 HASH ADDR TRUNK BRANCH BUNDLE",
            b"sn_trytes TRYTES HASH 1",
            b"tx_trytes TRYTES HASH",
            b"tx HASH ADDR 5 TAG 1 0 0 BUNDLE TRUNK BRANCH 1 TAG",
            b"lmi 1 2",
            b"rstat 1 2 3 4 5",
        ]:
            await publisher.send(frame)
        await wait_until(lambda: f.sample().total_transactions == 5)
        stats = f.sample()
        assert stats.confirmed_tx_count == 1
        assert stats.seen_tx_count == 1
        assert stats.txs_with_value_count == 1
        assert (stats.to_process, stats.to_reply) == (1, 4)
    finally:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
    assert not f.started
    assert f._socket is None


@pytest.mark.asyncio
async def test_run_survives_undecodable_frame(zmq_context, publisher):
    publisher, address = publisher
    f = ZmqFeed(address, context=zmq_context)
    task = asyncio.get_running_loop().create_task(f.run())
    try:
        await sync_publisher(publisher, f)
        await publisher.send(b"sn 1 HASH ADDR TRUNK BRANCH BUNDLE")
        await publisher.send(b"sn \xff\xfe 2")
        await publisher.send(b"sn 3 HASH ADDR TRUNK BRANCH BUNDLE")
        await publisher.send(b"rstat 1 2 3 4 5")
        await wait_until(lambda: f.sample().total_transactions == 5)
        assert f.started
        assert not task.done()
        assert f.sample().confirmed_tx_count == 2
    finally:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task


def test_rstat_with_missing_fields_keeps_all_depths(feed):
    feed.handle_message("rstat 1 2 3 4 5")
    feed.handle_message("rstat 9 9 9")
    stats = feed.sample()
    assert (stats.to_process, stats.to_broadcast, stats.to_request) == (1, 2, 3)
    assert (stats.to_reply, stats.total_transactions) == (4, 5)
