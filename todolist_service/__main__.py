from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Sequence

from .banner import render_banner
from .config import BuildInfo, RuntimeConfig, load_build_info, load_config
from .dao import parse_backend_kind
from .errors import LogConfigError, StartupError
from .logs import get_logger, init_log
from .server import build_web_server
from .shutdown import install_exit_handler

logger = get_logger(__name__)


def run(
    config: RuntimeConfig,
    build: BuildInfo,
    *,
    build_server: Callable[..., Any] = build_web_server,
    install_shutdown: Callable[[], Any] = install_exit_handler,
) -> None:
    print(render_banner(config, build), flush=True)

    try:
        init_log(config.log_level, config.log_format)
    except LogConfigError as exc:
        logger.warning("log_config_invalid", error=str(exc))

    kind = parse_backend_kind(config.db_type)
    server = build_server(config.db, config.migration_path, kind, config.statistics_interval)

    # the listener must exist before the blocking run call
    install_shutdown()
    server.run(f":{config.port}")


def main(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
    *,
    build_server: Callable[..., Any] = build_web_server,
    install_shutdown: Callable[[], Any] = install_exit_handler,
) -> int:
    build = load_build_info(environ)
    config = load_config(argv, environ, build)
    try:
        run(config, build, build_server=build_server, install_shutdown=install_shutdown)
    except StartupError as exc:
        logger.error("run_error", error=str(exc), error_type=type(exc).__name__)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
