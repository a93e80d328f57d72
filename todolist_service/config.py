from __future__ import annotations

import argparse
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import os
import re
import sys
from typing import Callable, List, Mapping, Optional, Sequence, TypeVar

from . import APP_NAME, __version__

T = TypeVar("T")

PORT_ENV = "APP_PORT"
BUILD_STAMP_ENV = "APP_BUILD_STAMP"
GIT_HASH_ENV = "APP_GIT_HASH"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class RuntimeConfig:
    port: int = 8020
    db: str = ""
    db_type: str = "mock"
    migration_path: str = "migration"
    log_level: str = "warning"
    log_format: str = "text"
    statistics_interval: timedelta = timedelta(seconds=20)


_DEFAULTS = RuntimeConfig()


@dataclass(frozen=True)
class BuildInfo:
    version: str
    build_time: datetime
    git_hash: str

    def describe(self) -> str:
        return f"{self.version}, build on {self.build_time.isoformat(sep=' ')}, git hash {self.git_hash}"


def parse_or_default(parse: Callable[[str], T], raw: Optional[str], default: T) -> T:
    """Best-effort parse: a missing or unparsable value yields ``default``."""
    if raw is None:
        return default
    try:
        return parse(raw)
    except ValueError:
        return default


_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``30s``, ``2h30m`` or ``300ms``."""
    raw = text.strip()
    sign = 1.0
    if raw.startswith(("+", "-")):
        if raw[0] == "-":
            sign = -1.0
        raw = raw[1:]
    if raw == "0":
        return timedelta(0)
    if not raw:
        raise ValueError(f"invalid duration {text!r}")

    seconds = 0.0
    pos = 0
    while pos < len(raw):
        match = _DURATION_PART.match(raw, pos)
        if match is None:
            raise ValueError(f"invalid duration {text!r}")
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    try:
        return timedelta(seconds=sign * seconds)
    except OverflowError as exc:
        raise ValueError(f"duration out of range: {text!r}") from exc


def _parse_port(raw: str) -> int:
    value = int(raw)
    if value < 1 or value > 65535:
        raise ValueError(f"port out of range: {value}")
    return value


def _parse_interval(raw: str) -> timedelta:
    value = parse_duration(raw)
    if value <= timedelta(0):
        raise ValueError(f"interval must be positive: {raw!r}")
    return value


def parse_build_stamp(raw: str) -> datetime:
    try:
        return datetime.fromtimestamp(int(raw), tz=timezone.utc)
    except (OverflowError, OSError) as exc:
        raise ValueError(f"build stamp out of range: {raw!r}") from exc


def load_build_info(environ: Optional[Mapping[str, str]] = None) -> BuildInfo:
    env = os.environ if environ is None else environ
    return BuildInfo(
        version=__version__,
        build_time=parse_or_default(parse_build_stamp, env.get(BUILD_STAMP_ENV), EPOCH),
        git_hash=env.get(GIT_HASH_ENV, ""),
    )


def build_parser(build: BuildInfo) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog=APP_NAME,
        description="todolist service launcher",
        allow_abbrev=False,
    )
    # numeric values stay strings here so a bad value falls back to its default
    p.add_argument(
        "--port",
        "-p",
        default=None,
        help=f"Set the listening port of the webserver (default: {_DEFAULTS.port}, env: {PORT_ENV})",
    )
    p.add_argument(
        "--db",
        "-d",
        default=_DEFAULTS.db,
        help="Set the database connection string (mongodb or postgresql)",
    )
    p.add_argument(
        "--dbt",
        "-dt",
        default=_DEFAULTS.db_type,
        help="Set the database type to use for the service (mongodb, postgresql or mock)",
    )
    p.add_argument(
        "--mp",
        "-m",
        default=_DEFAULTS.migration_path,
        help="Set the database migration folder path",
    )
    p.add_argument(
        "--logl",
        "-l",
        default=_DEFAULTS.log_level,
        help="Set the output log level (debug, info, warning, error)",
    )
    p.add_argument(
        "--logf",
        "-f",
        default=_DEFAULTS.log_format,
        help="Set the log formatter (text or structured)",
    )
    p.add_argument(
        "--statd",
        "-s",
        default=None,
        help="Set the statistics accumulation duration (ex : 1h, 2h30m, 30s, 300ms)",
    )
    p.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"%(prog)s version {build.describe()}",
    )
    return p


_FLAGS = frozenset([
    "--port", "-p", "--db", "-d", "--dbt", "-dt", "--mp", "-m",
    "--logl", "-l", "--logf", "-f", "--statd", "-s", "--version", "-v", "--help", "-h",
])
_NUMERIC_FLAGS = frozenset(["--port", "-p", "--statd", "-s"])


def attach_dashed_values(argv: Sequence[str]) -> List[str]:
    """Rewrite ``-s -5s`` as ``-s=-5s`` so argparse hands the value to the fallback parser."""
    out: List[str] = []
    i = 0
    while i < len(argv):
        arg = argv[i]
        if (
            arg in _NUMERIC_FLAGS
            and i + 1 < len(argv)
            and argv[i + 1].startswith("-")
            and argv[i + 1].split("=", 1)[0] not in _FLAGS
        ):
            out.append(f"{arg}={argv[i + 1]}")
            i += 2
            continue
        out.append(arg)
        i += 1
    return out


def load_config(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
    build: Optional[BuildInfo] = None,
) -> RuntimeConfig:
    env = os.environ if environ is None else environ
    parser = build_parser(build or load_build_info(env))
    args = parser.parse_args(attach_dashed_values(sys.argv[1:] if argv is None else list(argv)))

    port = parse_or_default(_parse_port, env.get(PORT_ENV), _DEFAULTS.port)
    if args.port is not None:
        port = parse_or_default(_parse_port, args.port, _DEFAULTS.port)

    return RuntimeConfig(
        port=port,
        db=args.db,
        db_type=args.dbt,
        migration_path=args.mp,
        log_level=args.logl,
        log_format=args.logf,
        statistics_interval=parse_or_default(_parse_interval, args.statd, _DEFAULTS.statistics_interval),
    )
