import logging
from contextlib import asynccontextmanager

import aiohttp

from .exceptions import IriApiError

logger = logging.getLogger(__name__)

API_VERSION_HEADER = "X-IOTA-API-Version"
API_VERSION = "1"


class NodeInfo:
    """
    The subset of an IRI ``getNodeInfo`` response that the exporter maps onto metrics.

    Numeric fields that the node did not report are left as ``None``.
    """

    FIELDS = (
        "jreAvailableProcessors",
        "jreFreeMemory",
        "jreMaxMemory",
        "jreTotalMemory",
        "latestMilestoneIndex",
        "latestSolidSubtangleMilestoneIndex",
        "neighbors",
        "tips",
        "transactionsToRequest",
    )

    def __init__(self, app_name=None, app_version=None, **fields):
        self.app_name = app_name
        self.app_version = app_version
        self.fields = {name: fields.get(name) for name in self.FIELDS}

    def __getattr__(self, key):
        try:
            return self.__dict__["fields"][key]
        except KeyError:
            raise AttributeError(key)

    def __repr__(self):
        return f"<NodeInfo {self.app_name} {self.app_version}>"

    @classmethod
    def from_json(cls, doc):
        if not isinstance(doc, dict):
            raise IriApiError(f"getNodeInfo returned {type(doc).__name__}, expected an object")
        fields = {}
        for name in cls.FIELDS:
            value = doc.get(name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise IriApiError(f"getNodeInfo field {name} is not numeric: {value!r}")
            fields[name] = value
        return cls(app_name=doc.get("appName"), app_version=doc.get("appVersion"), **fields)


class Neighbor:
    def __init__(
        self,
        address,
        new_transactions=0,
        random_transactions=0,
        all_transactions=0,
        invalid_transactions=0,
        sent_transactions=0,
    ):
        self.address = address
        self.new_transactions = new_transactions
        self.random_transactions = random_transactions
        self.all_transactions = all_transactions
        self.invalid_transactions = invalid_transactions
        self.sent_transactions = sent_transactions

    @property
    def active(self):
        return self.all_transactions != 0

    def __repr__(self):
        return f"<Neighbor {self.address} active={self.active}>"

    @classmethod
    def from_json(cls, doc):
        try:
            return cls(
                doc["address"],
                new_transactions=int(doc.get("numberOfNewTransactions", 0)),
                random_transactions=int(doc.get("numberOfRandomTransactionRequests", 0)),
                all_transactions=int(doc.get("numberOfAllTransactions", 0)),
                invalid_transactions=int(doc.get("numberOfInvalidTransactions", 0)),
                sent_transactions=int(doc.get("numberOfSentTransactions", 0)),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise IriApiError(f"malformed neighbor entry {doc!r}: {e}")


class IriClient:
    """
    A minimal client for the IRI JSON API.

    Every command is a ``POST`` of ``{"command": <name>}`` to the node address. The
    caller owns the :class:`aiohttp.ClientSession`; see :func:`iri_client` for the
    per-scrape variant.

    :param address: Base URI of the node, e.g. ``http://localhost:14265``
    :param session: An open aiohttp client session
    """

    def __init__(self, address, session):
        self.address = address
        self.session = session

    async def command(self, name, **params):
        body = dict(params, command=name)
        headers = {API_VERSION_HEADER: API_VERSION}
        logger.debug("Sending %s to %s", name, self.address)
        async with self.session.post(self.address, json=body, headers=headers) as resp:
            try:
                doc = await resp.json(content_type=None)
            except ValueError as e:
                raise IriApiError(f"{name}: undecodable response from {self.address}: {e}")
            if resp.status >= 400:
                detail = doc.get("error") if isinstance(doc, dict) else doc
                raise IriApiError(f"{name}: HTTP {resp.status} from {self.address}: {detail}")
        if isinstance(doc, dict) and "error" in doc:
            raise IriApiError(f"{name}: {doc['error']}")
        return doc

    async def get_node_info(self):
        return NodeInfo.from_json(await self.command("getNodeInfo"))

    async def get_neighbors(self):
        doc = await self.command("getNeighbors")
        neighbors = doc.get("neighbors") if isinstance(doc, dict) else None
        if not isinstance(neighbors, list):
            raise IriApiError("getNeighbors response has no neighbors list")
        return [Neighbor.from_json(n) for n in neighbors]


@asynccontextmanager
async def iri_client(address):
    async with aiohttp.ClientSession() as session:
        yield IriClient(address, session)
