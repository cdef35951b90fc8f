import logging

import aiohttp.web

from .exporter import Exporter
from .feed import ZmqFeed
from .server import MetricsServer

logger = logging.getLogger(__name__)


def build_server(config):
    feed = ZmqFeed(config.web_zmq_address) if config.web_zmq_address else None
    exporter = Exporter(
        config.web_iri_path, feed=feed, prune_neighbors=bool(config.web_prune_neighbors)
    )
    return MetricsServer(exporter, metrics_path=config.web_telemetry_path)


def run_exporter(config):
    host, port = config.listen_host_port
    server = build_server(config)
    logger.info(
        f"Starting iota-iri_exporter Server on port {config.web_listen_address} "
        f"monitoring {config.web_iri_path}"
    )
    if server.exporter.feed is None:
        logger.info("No ZeroMQ address configured, feed metrics will not be updated")
    aiohttp.web.run_app(server.app(), host=host, port=port, print=None, access_log=None)
