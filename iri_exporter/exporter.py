import asyncio
import logging
import time
from contextlib import suppress

from prometheus_client import Counter, Gauge

from .client import iri_client

logger = logging.getLogger(__name__)

NEIGHBOR_LABELS = ("id",)

# metric attribute -> getNodeInfo field
NODE_INFO_GAUGES = (
    ("available_processors", "jreAvailableProcessors", "Number of cores available in this Node."),
    ("free_memory", "jreFreeMemory", "Free Memory in this IRI instance."),
    ("max_memory", "jreMaxMemory", "Max Memory in this IRI instance."),
    ("total_memory", "jreTotalMemory", "Total Memory in this IRI instance."),
    ("latest_milestone", "latestMilestoneIndex", "Tangle milestone at the interval."),
    (
        "latest_subtangle_milestone",
        "latestSolidSubtangleMilestoneIndex",
        "Subtangle milestone at the interval.",
    ),
    ("total_neighbors", "neighbors", "Total neighbors at the interval."),
    ("total_tips", "tips", "Total tips at the interval."),
    ("total_transactions_queued", "transactionsToRequest", "Total open txs at the interval."),
)

# metric attribute -> Neighbor attribute
NEIGHBOR_GAUGES = (
    ("new_transactions", "new_transactions", "Number of New Transactions for a specific Neighbor."),
    (
        "random_transactions",
        "random_transactions",
        "Number of Random Transactions for a specific Neighbor.",
    ),
    (
        "all_transactions",
        "all_transactions",
        "Number of All Transaction Types for a specific Neighbor.",
    ),
    (
        "invalid_transactions",
        "invalid_transactions",
        "Number of Invalid Transactions for a specific Neighbor.",
    ),
    (
        "sent_transactions",
        "sent_transactions",
        "Number of Sent Transactions for a specific Neighbor.",
    ),
    ("active", "active", "Report if the Neighbor Active based on incoming transactions."),
)

# metric attribute -> ZmqStats attribute
ZMQ_GAUGES = (
    ("seen_tx_count", "Count of transactions seen by zeroMQ."),
    ("txs_with_value_count", "Count of transactions seen by zeroMQ that have a non-zero value."),
    ("confirmed_tx_count", "Count of transactions confirmed by zeroMQ."),
    ("to_process", "toProcess from RSTAT output of ZMQ."),
    ("to_broadcast", "toBroadcast from RSTAT output of ZMQ."),
    ("to_request", "toRequest from RSTAT output of ZMQ."),
    ("to_reply", "toReply from RSTAT output of ZMQ."),
    ("total_transactions", "totalTransactions from RSTAT output of ZMQ."),
)


class Exporter:
    """
    Owns every exported metric and republishes IRI node statistics on demand.

    An instance is a prometheus_client collector: register it into a
    :class:`prometheus_client.CollectorRegistry` and every
    :func:`prometheus_client.generate_latest` call scrapes the node once. None of
    the metrics are placed in the global default registry.

    Each scrape is three independent steps (node info, neighbors, ZMQ feed). A
    step that fails is logged and leaves the metrics it feeds at their last
    observed values; the other steps still run.

    :param iri_address: URI of the IRI node's API
    :param feed: An optional :class:`iri_exporter.feed.ZmqFeed` to sample
    :param client_factory: Callable returning an async context manager that yields
        an :class:`iri_exporter.client.IriClient`, defaults to
        :func:`iri_exporter.client.iri_client`
    :param prune_neighbors: Drop label sets of neighbors that no longer appear in
        a successful ``getNeighbors`` response

    :type feed: :class:`iri_exporter.feed.ZmqFeed`
    """

    def __init__(self, iri_address, feed=None, client_factory=None, prune_neighbors=False):
        self.iri_address = iri_address
        self.feed = feed
        self.client_factory = client_factory or iri_client
        self.prune_neighbors = prune_neighbors
        self.known_neighbors = set()

        self.node_info_duration = Gauge(
            "iota_node_info_duration",
            "Response time of getting Node Info.",
            registry=None,
        )
        self.node_info = {
            attr: Gauge(f"iota_node_info_{attr}", hint, registry=None)
            for attr, _, hint in NODE_INFO_GAUGES
        }
        self.total_scrapes = Counter(
            "iota_node_info_scrapes", "Total number of scrapes.", registry=None
        )
        self.neighbors_total = Gauge(
            "iota_neighbors_info_total_neighbors",
            "Total number of neighbors as received in the getNeighbors ws call.",
            registry=None,
        )
        self.neighbors_active = Gauge(
            "iota_neighbors_info_active_neighbors",
            "Total number of neighbors that are active.",
            registry=None,
        )
        self.neighbors = {
            attr: Gauge(f"iota_neighbors_{attr}", hint, NEIGHBOR_LABELS, registry=None)
            for attr, _, hint in NEIGHBOR_GAUGES
        }
        self.zmq = {
            attr: Gauge(f"iota_zmq_{attr}", hint, registry=None) for attr, hint in ZMQ_GAUGES
        }

    def metrics(self):
        yield self.node_info_duration
        yield from self.node_info.values()
        yield self.total_scrapes
        yield self.neighbors_total
        yield self.neighbors_active
        yield from self.neighbors.values()
        yield from self.zmq.values()

    def describe(self):
        for metric in self.metrics():
            yield from metric.describe()

    def collect(self):
        self.run_scrape()
        for metric in self.metrics():
            yield from metric.collect()

    def run_scrape(self):
        """Runs :meth:`scrape` to completion on a private event loop"""
        asyncio.run(self.scrape())

    async def scrape(self):
        self.total_scrapes.inc()
        try:
            async with self.client_factory(self.iri_address) as client:
                await self.scrape_node_info(client)
                await self.scrape_neighbors(client)
        except Exception:
            logger.exception("scrape: client error talking to %s", self.iri_address)
        self.scrape_zmq()

    async def scrape_node_info(self, client):
        start = time.monotonic()
        try:
            info = await client.get_node_info()
        except Exception:
            logger.exception("scrape_node_info: getNodeInfo failed on %s", self.iri_address)
            return
        self.node_info_duration.set(time.monotonic() - start)
        for attr, field, _ in NODE_INFO_GAUGES:
            value = getattr(info, field)
            if value is not None:
                self.node_info[attr].set(value)

    async def scrape_neighbors(self, client):
        try:
            neighbors = await client.get_neighbors()
        except Exception:
            logger.exception("scrape_neighbors: getNeighbors failed on %s", self.iri_address)
            return
        self.neighbors_total.set(len(neighbors))
        self.neighbors_active.set(sum(1 for n in neighbors if n.active))
        seen = set()
        for neighbor in neighbors:
            seen.add(neighbor.address)
            for attr, field, _ in NEIGHBOR_GAUGES:
                value = getattr(neighbor, field)
                self.neighbors[attr].labels(neighbor.address).set(int(value))
        if self.prune_neighbors:
            for address in self.known_neighbors - seen:
                logger.info("Removing vanished neighbor %s", address)
                for gauge in self.neighbors.values():
                    with suppress(KeyError):
                        gauge.remove(address)
            self.known_neighbors = seen

    def scrape_zmq(self):
        if self.feed is None:
            return
        try:
            stats = self.feed.sample()
        except Exception:
            logger.warning("scrape_zmq: feed unavailable", exc_info=True)
            return
        for attr, _ in ZMQ_GAUGES:
            self.zmq[attr].set(getattr(stats, attr))
