import asyncio

import pytest
import zmq
import zmq.asyncio

from iri_exporter.client import Neighbor, NodeInfo
from fakes import FakeClient


@pytest.fixture
def fake_client():
    return FakeClient(
        node_info=NodeInfo(
            app_name="IRI",
            app_version="1.8.6",
            jreAvailableProcessors=8,
            jreFreeMemory=1000,
            jreMaxMemory=4000,
            jreTotalMemory=2000,
            latestMilestoneIndex=42,
            latestSolidSubtangleMilestoneIndex=41,
            neighbors=2,
            tips=150,
            transactionsToRequest=7,
        ),
        neighbors=[
            Neighbor("A", new_transactions=1, random_transactions=2, all_transactions=3,
                     invalid_transactions=4, sent_transactions=5),
            Neighbor("B", new_transactions=10, random_transactions=20, all_transactions=0,
                     invalid_transactions=40, sent_transactions=50),
        ],
    )


@pytest.fixture
def timeout_error():
    return asyncio.TimeoutError()


@pytest.fixture
def zmq_context():
    ctx = zmq.asyncio.Context()
    yield ctx
    ctx.destroy(linger=0)


@pytest.fixture
def publisher(zmq_context):
    pub = zmq_context.socket(zmq.PUB)
    port = pub.bind_to_random_port("tcp://127.0.0.1")
    yield pub, f"tcp://127.0.0.1:{port}"
    pub.close(linger=0)
