"""Configuration loading from a YAML file, env vars, and CLI args."""

import argparse
import logging
import os
import re
import socket
import sys
from dataclasses import dataclass

import yaml

from remote_syslog.client import PROTOCOLS
from remote_syslog.packet import parse_facility, parse_severity

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/etc/log_files.yml"
MIN_REFRESH_INTERVAL = 1.0
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(ValueError):
    """The configuration is missing something or holds an invalid value."""


@dataclass(frozen=True)
class LogFileSpec:
    path: str      # glob pattern, absolute
    tag: str = ""  # syslog tag, "-" on the wire when empty


@dataclass(frozen=True)
class Config:
    files: tuple[LogFileSpec, ...] = ()
    exclude_files: tuple[re.Pattern, ...] = ()
    exclude_patterns: tuple[re.Pattern, ...] = ()
    dest_host: str = "localhost"
    dest_port: int = 514
    dest_protocol: str = "udp"
    hostname: str = ""
    severity: int = 5   # notice
    facility: int = 1   # user
    refresh_interval: float = 10.0
    poll: bool = False
    tcp_max_line_length: int = 99990
    connect_timeout: float = 30.0
    write_timeout: float = 30.0
    ca_file: str = ""
    tls_verify: bool = True
    buffer_size: int = 100
    metrics_interval: float = 0.0
    log_level: str = "INFO"


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


def _yaml_list(data: dict, key: str) -> list:
    """Value of *key* as a list. A scalar or mapping raises ConfigError."""
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"{key} must be a list, got {type(value).__name__}")
    return value


def resolve_path(path: str) -> str:
    """Expand ``~`` and make *path* absolute."""
    return os.path.abspath(os.path.expanduser(path))


def compile_patterns(sources) -> tuple[re.Pattern, ...]:
    """Compile regexes in order. Raises ConfigError naming the bad one."""
    compiled = []
    for source in sources or []:
        try:
            compiled.append(re.compile(str(source)))
        except re.error as e:
            raise ConfigError(f"invalid regular expression {source!r}: {e}") from e
    return tuple(compiled)


def parse_file_specs(entries) -> tuple[LogFileSpec, ...]:
    """Accept plain path strings or ``{path, tag}`` mappings."""
    specs = []
    for entry in entries or []:
        if isinstance(entry, dict):
            path = entry.get("path")
            if not path:
                raise ConfigError(f"file entry without a path: {entry!r}")
            specs.append(LogFileSpec(path=resolve_path(str(path)), tag=str(entry.get("tag") or "")))
        else:
            specs.append(LogFileSpec(path=resolve_path(str(entry))))
    return tuple(specs)


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Tail log files and forward new lines to a remote syslog collector",
    )
    parser.add_argument(
        "files", nargs="*",
        help="Additional file globs to forward",
    )
    parser.add_argument(
        "-c", "--configfile", default=None,
        help=f"Path to YAML config file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("-d", "--dest-host", default=None, help="Destination syslog hostname or IP")
    parser.add_argument("-p", "--dest-port", type=int, default=None, help="Destination syslog port")
    parser.add_argument("--tcp", action="store_true", help="Connect via TCP (no TLS)")
    parser.add_argument("--tls", action="store_true", help="Connect via TCP with TLS")
    parser.add_argument("-s", "--severity", default=None, help="Severity name (default: notice)")
    parser.add_argument("-f", "--facility", default=None, help="Facility name (default: user)")
    parser.add_argument("--hostname", default=None, help="Local hostname to send in packets")
    parser.add_argument(
        "--poll", action="store_const", const=True, default=None,
        help="Poll files instead of waiting for filesystem events",
    )
    parser.add_argument(
        "--new-file-check-interval", type=float, default=None,
        help="Seconds between re-evaluating file globs (default: 10)",
    )
    parser.add_argument("--log-level", default=None, help="Log level (default: INFO)")
    return parser


def load_yaml_config(path: str | None, required: bool = False) -> dict:
    """Load the YAML config file. A missing optional file yields an empty dict."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        if required:
            raise ConfigError(f"config file {path} not found") from None
        logger.debug("Config file %s not found, using defaults", path)
        return {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    logger.info("Loaded YAML config from %s", path)
    return data


def load_config(argv: list[str] | None = None) -> Config:
    """Build Config from defaults <- YAML <- env vars <- CLI args (highest priority)."""
    if argv is None:
        argv = sys.argv[1:]
    args = build_cli_parser().parse_args(argv)

    config_path = args.configfile or os.environ.get("CONFIG_PATH")
    yaml_data = load_yaml_config(config_path or DEFAULT_CONFIG_PATH, required=bool(config_path))
    destination = yaml_data.get("destination") or {}
    if not isinstance(destination, dict):
        raise ConfigError(f"destination must be a mapping, got {type(destination).__name__}")

    try:
        dest_host = str(destination.get("host", Config.dest_host))
        dest_port = int(destination.get("port", Config.dest_port))
        protocol = str(destination.get("protocol", Config.dest_protocol)).lower()
        hostname = str(yaml_data.get("hostname") or "")
        severity = str(yaml_data.get("severity", "notice"))
        facility = str(yaml_data.get("facility", "user"))
        refresh = float(yaml_data.get("new_file_check_interval", Config.refresh_interval))
        poll = _parse_bool(yaml_data.get("poll", Config.poll))
        metrics_interval = float(yaml_data.get("metrics_interval", Config.metrics_interval))
        log_level = str(yaml_data.get("log_level", Config.log_level))

        # Env var overrides
        dest_host = os.environ.get("DEST_HOST", dest_host)
        dest_port = int(os.environ.get("DEST_PORT", str(dest_port)))
        protocol = os.environ.get("DEST_PROTOCOL", protocol).lower()
        hostname = os.environ.get("HOSTNAME_OVERRIDE", hostname)
        metrics_interval = float(os.environ.get("METRICS_INTERVAL", str(metrics_interval)))
        log_level = os.environ.get("LOG_LEVEL", log_level)

        # CLI overrides
        if args.dest_host is not None:
            dest_host = args.dest_host
        if args.dest_port is not None:
            dest_port = args.dest_port
        if args.tls:
            protocol = "tls"
        elif args.tcp:
            protocol = "tcp"
        if args.hostname is not None:
            hostname = args.hostname
        if args.severity is not None:
            severity = args.severity
        if args.facility is not None:
            facility = args.facility
        if args.new_file_check_interval is not None:
            refresh = args.new_file_check_interval
        if args.poll is not None:
            poll = args.poll
        if args.log_level is not None:
            log_level = args.log_level

        severity_code = parse_severity(severity)
        facility_code = parse_facility(facility)
        tcp_max_line_length = int(yaml_data.get("tcp_max_line_length", Config.tcp_max_line_length))
        connect_timeout = float(yaml_data.get("connect_timeout", Config.connect_timeout))
        write_timeout = float(yaml_data.get("write_timeout", Config.write_timeout))
        buffer_size = int(yaml_data.get("buffer_size", Config.buffer_size))
    except ConfigError:
        raise
    except (TypeError, ValueError) as e:
        raise ConfigError(str(e)) from e

    if protocol not in PROTOCOLS:
        raise ConfigError(f"unsupported protocol {protocol!r}, expected one of {', '.join(PROTOCOLS)}")
    if refresh < MIN_REFRESH_INTERVAL:
        raise ConfigError(
            f"new_file_check_interval must be at least {MIN_REFRESH_INTERVAL:.0f}s, got {refresh}"
        )
    log_level = log_level.upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"unknown log level {log_level!r}")

    files = parse_file_specs(_yaml_list(yaml_data, "files")) + parse_file_specs(args.files)
    if not files:
        raise ConfigError("no files to forward, list them in the config file or on the command line")

    return Config(
        files=files,
        exclude_files=compile_patterns(_yaml_list(yaml_data, "exclude_files")),
        exclude_patterns=compile_patterns(_yaml_list(yaml_data, "exclude_patterns")),
        dest_host=dest_host,
        dest_port=dest_port,
        dest_protocol=protocol,
        hostname=hostname or socket.gethostname(),
        severity=severity_code,
        facility=facility_code,
        refresh_interval=refresh,
        poll=poll,
        tcp_max_line_length=tcp_max_line_length,
        connect_timeout=connect_timeout,
        write_timeout=write_timeout,
        ca_file=str(yaml_data.get("ca_file") or ""),
        tls_verify=_parse_bool(yaml_data.get("tls_verify", Config.tls_verify)),
        buffer_size=buffer_size,
        metrics_interval=metrics_interval,
        log_level=log_level,
    )
