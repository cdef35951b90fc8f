import copy
import logging
import threading

import zmq
import zmq.asyncio

from .exceptions import FeedUnavailable

logger = logging.getLogger(__name__)

TOPICS = ("tx", "sn", "rstat")


class ZmqStats:
    def __init__(self):
        self.seen_tx_count = 0
        self.txs_with_value_count = 0
        self.confirmed_tx_count = 0
        self.to_process = 0
        self.to_broadcast = 0
        self.to_request = 0
        self.to_reply = 0
        self.total_transactions = 0

    def __repr__(self):
        return f"<ZmqStats seen={self.seen_tx_count} confirmed={self.confirmed_tx_count}>"


class ZmqFeed:
    """
    Subscribes to the ZeroMQ event stream of an IRI node and keeps running totals.

    ``tx`` and ``sn`` messages are counted, ``rstat`` messages replace the queue
    depths. The exporter only ever reads a copy of the totals through :meth:`sample`.

    :param address: ZMQ endpoint of the node, e.g. ``tcp://localhost:5556``
    """

    def __init__(self, address, context=None):
        self.address = address
        self.context = context
        self.stats = ZmqStats()
        self.started = False
        self._lock = threading.Lock()
        self._socket = None

    def handle_message(self, message):
        fields = message.split()
        if not fields:
            return
        topic = fields[0]
        try:
            if topic == "tx":
                value = int(fields[3])
                with self._lock:
                    self.stats.seen_tx_count += 1
                    if value != 0:
                        self.stats.txs_with_value_count += 1
            elif topic == "sn":
                with self._lock:
                    self.stats.confirmed_tx_count += 1
            elif topic == "rstat":
                depths = [int(f) for f in fields[1:6]]
                if len(depths) != 5:
                    raise ValueError(f"expected 5 fields, got {len(depths)}")
                # sample() runs on executor threads, the five depths change together
                with self._lock:
                    (
                        self.stats.to_process,
                        self.stats.to_broadcast,
                        self.stats.to_request,
                        self.stats.to_reply,
                        self.stats.total_transactions,
                    ) = depths
        except (IndexError, ValueError):
            logger.warning("Dropping malformed %s message: %r", topic, message)

    def sample(self):
        if not self.started:
            raise FeedUnavailable(f"feed from {self.address} is not running")
        with self._lock:
            return copy.copy(self.stats)

    def connect(self):
        if self.context is None:
            self.context = zmq.asyncio.Context.instance()
        self._socket = self.context.socket(zmq.SUB)
        self._socket.connect(self.address)
        for topic in TOPICS:
            # trailing space keeps tx_trytes and sn_trytes out
            self._socket.setsockopt_string(zmq.SUBSCRIBE, topic + " ")
        self.started = True
        logger.info("Subscribed to %s on %s", ", ".join(TOPICS), self.address)

    async def run(self):
        try:
            if self._socket is None:
                self.connect()
            while True:
                frame = await self._socket.recv()
                try:
                    message = frame.decode("utf-8")
                except UnicodeDecodeError:
                    logger.warning("Dropping undecodable message: %r", frame)
                    continue
                self.handle_message(message)
        except Exception:
            logger.exception("feed: error receiving from %s", self.address)
        finally:
            self.close()

    def close(self):
        self.started = False
        if self._socket is not None:
            self._socket.close(linger=0)
            self._socket = None
