import logging
import logging.config
import sys

from .config import ExporterConfig
from .entrypoints import run_exporter

logger = logging.getLogger(__name__)


def main(args=None):

    try:
        config = ExporterConfig(args)
    except Exception as e:
        logger.error("An error occured while validating the configuration options:\n%s" % (str(e),))
        sys.exit(1)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "simple": {
                    "format": "{levelname} {asctime} {module} {message}",
                    "style": "{",
                },
            },
            "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "simple"}},
            "loggers": {
                "iri_exporter": {
                    "handlers": ["console"],
                    "level": "DEBUG" if config.default_debug else "INFO",
                }
            },
        }
    )

    try:
        run_exporter(config)
    except OSError:
        logger.exception("main: could not bind %s", config.web_listen_address)
        sys.exit(1)
    except Exception:
        logger.exception("main: an error occured while running the exporter")
        sys.exit(1)


if __name__ == "__main__":
    # We were run with python -m
    main()
