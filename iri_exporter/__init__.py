__version__ = "0.2.0"

from .exporter import Exporter  # noqa: E402,F401
