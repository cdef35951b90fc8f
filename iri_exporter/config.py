import argparse
import configparser
import logging
import os

from . import __version__
from .exceptions import ExporterConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "IRI_EXPORTER_"


class ConfigOption:
    def __init__(self, value, value_type):
        self.value = value
        self.value_type = value_type


class ExporterConfig:
    """
    The configuration object for the exporter

    Options are read from, in increasing order of precedence, their defaults, the
    config file, environment variables and the command line. Environment variables
    are named ``IRI_EXPORTER_<SECTION>_<KEY>``, for example
    ``IRI_EXPORTER_WEB_IRI_PATH``. The config file uses the same sections::

        [web]
        listen_address = :9187
        iri_path = http://localhost:14265

    Options are available as attributes named ``<section>_<key>``::

        config = ExporterConfig(["--web.iri-path", "http://node:14265"])
        config.web_iri_path
    """

    def __init__(self, args=None, parser_class=argparse.ArgumentParser, parser_opts=None):
        self._config_options = {}
        if not parser_opts:
            parser_opts = {}
        self._cli_args = parser_class("iri-exporter", **parser_opts)
        self._cli_args.add_argument(
            "--version", action="version", version=f"iri-exporter {__version__}"
        )
        self._parsed_args = None
        self._config_file = configparser.ConfigParser(allow_no_value=True, delimiters=("=",))

        self.add_config_option(
            section="default",
            key="config",
            short_option="-c",
            default_value="/etc/iri-exporter/iri-exporter.conf",
            value_type="path",
            hint="Path to the exporter configuration file.",
        )
        self.add_config_option(
            section="default",
            key="debug",
            default_value=None,
            set_value=True,
            value_type="bool",
            hint="Emit debugging output.",
        )
        self.add_config_option(
            section="web",
            key="listen_address",
            default_value=":9187",
            value_type="str",
            hint="Address to listen on for web interface and telemetry.",
        )
        self.add_config_option(
            section="web",
            key="telemetry_path",
            default_value="/metrics",
            value_type="str",
            hint="Path under which to expose metrics.",
        )
        self.add_config_option(
            section="web",
            key="iri_path",
            default_value="http://localhost:14265",
            value_type="str",
            hint="URI of the IOTA IRI Node to scrape.",
        )
        self.add_config_option(
            section="web",
            key="zmq_address",
            default_value="",
            value_type="str",
            hint="""ZeroMQ endpoint of the IRI Node, e.g. tcp://localhost:5556. The
                    feed metrics are not updated if unset.""",
        )
        self.add_config_option(
            section="web",
            key="prune_neighbors",
            default_value=False,
            set_value=True,
            value_type="bool",
            hint="Stop exporting neighbors that the node no longer reports.",
        )
        self.parse_options(args)

    def add_config_option(
        self,
        section,
        key,
        short_option="",
        long_option="",
        default_value=None,
        set_value=None,
        value_type=None,
        hint=None,
    ):
        config_entry = "%s_%s" % (section, key)
        action = "store_const" if value_type == "bool" else "store"
        # default section options are plain --key, the rest are --section.key
        if not long_option:
            if section == "default":
                long_option = "--%s" % (key.replace("_", "-"),)
            else:
                long_option = "--%s.%s" % (section, key.replace("_", "-"))
        args = []
        if short_option:
            args.append(short_option)
        args.append(long_option)
        kwargs = {"help": hint, "action": action, "dest": config_entry}
        # store_const rather than store_true so an unset flag doesn't override
        # the config file or environment
        if value_type == "bool":
            kwargs["const"] = set_value
        self._cli_args.add_argument(*args, **kwargs)
        self._config_options[config_entry] = ConfigOption(default_value, value_type)

    def _get_config_value(self, key, ignore_config_file=False):
        value = None

        (section, section_key) = key.split("_", 1)
        if not ignore_config_file and section in self._config_file and self._config_file[section]:
            try:
                value = self._config_file[section][section_key]
            except KeyError:
                pass
        env_value = os.environ.get(ENV_PREFIX + key.upper(), None)
        if env_value is not None:
            value = env_value
        cli_value = getattr(self._parsed_args, key, None)
        if cli_value is not None:
            value = cli_value
        return value

    def parse_options(self, args):
        self._parsed_args = self._cli_args.parse_args(args)
        # the config file has to be located before anything else is read
        config_entry = self._config_options["default_config"]
        config_path = self._get_config_value("default_config", ignore_config_file=True)
        if config_path is not None:
            config_entry.value = config_path
        config_entry.value = self._enforce_value_type(config_entry.value, config_entry.value_type)
        read = self._config_file.read([config_entry.value])
        if read:
            logger.debug("Read configuration from %s", ", ".join(read))
        for key, entry in self._config_options.items():
            if key == "default_config":
                continue
            value = self._get_config_value(key)
            if value is not None:
                entry.value = value
            entry.value = self._enforce_value_type(entry.value, entry.value_type)
        self.listen_host_port = parse_listen_address(self.web_listen_address)

    def _enforce_value_type(self, value, value_type):
        if value is None:
            return None
        try:
            if value_type == "int" and not isinstance(value, int):
                return int(value)
            elif value_type == "str" and not isinstance(value, str):
                return "%s" % (value,)
            elif value_type == "bool" and not isinstance(value, bool):
                if isinstance(value, str):
                    return value.lower() in ("yes", "y", "true", "1")
                elif isinstance(value, int):
                    return value != 0
                else:
                    raise ValueError(
                        "could not convert '%s' (type: %s) to a boolean value"
                        % (value, type(value))
                    )
            elif value_type == "path":
                return os.path.expanduser(value)
            else:
                return value
        except Exception as e:
            raise ExporterConfigError(e)

    def __getattr__(self, key):
        try:
            return self.__dict__["_config_options"][key].value
        except KeyError:
            raise AttributeError(key)


def parse_listen_address(address):
    """Splits ``host:port`` into ``(host, port)``; an empty host means every interface"""
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ExporterConfigError(f"listen address {address!r} has no port")
    try:
        port = int(port)
    except ValueError:
        raise ExporterConfigError(f"listen address {address!r} has an invalid port")
    if not 0 <= port <= 65535:
        raise ExporterConfigError(f"listen address {address!r} has an invalid port")
    host = host.strip("[]")
    return (host or None, port)
