import asyncio
import logging
from contextlib import suppress

import aiohttp.web
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

logger = logging.getLogger(__name__)

LANDING_PAGE = """<html>
<head><title>Iota-IRI Exporter</title></head>
<body>
<h1>Iota-IRI Node Exporter</h1>
<p><a href='{metrics_path}'>Metrics</a></p>
</body>
</html>
"""


class MetricsServer:
    """
    Serves the exporter's registry over HTTP.

    Every request to the metrics path renders the registry on an executor thread,
    which in turn scrapes the node once. Concurrent requests scrape concurrently.

    :param exporter: The :class:`iri_exporter.exporter.Exporter` to serve
    :param metrics_path: Path under which the metrics are exposed
    :param registry: Registry to render, a new one holding only the exporter is
        created if not given
    """

    def __init__(self, exporter, metrics_path="/metrics", registry=None):
        self.exporter = exporter
        self.metrics_path = metrics_path
        if registry is None:
            registry = CollectorRegistry(auto_describe=True)
            registry.register(exporter)
        self.registry = registry
        self.landing_page = LANDING_PAGE.format(metrics_path=metrics_path)

    async def metrics(self, request):
        loop = asyncio.get_running_loop()
        output = await loop.run_in_executor(None, generate_latest, self.registry)
        return aiohttp.web.Response(body=output, headers={"Content-Type": CONTENT_TYPE_LATEST})

    async def index(self, request):
        return aiohttp.web.Response(text=self.landing_page, content_type="text/html")

    async def feed_context(self, app):
        feed = self.exporter.feed
        if feed is None:
            yield
            return
        task = asyncio.get_running_loop().create_task(feed.run())
        yield
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        feed.close()

    def app(self):
        app = aiohttp.web.Application()
        app.add_routes(
            [
                aiohttp.web.get(self.metrics_path, self.metrics),
                aiohttp.web.get("/", self.index),
            ]
        )
        app.cleanup_ctx.append(self.feed_context)
        return app
