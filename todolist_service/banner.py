from __future__ import annotations

from typing import List

from . import APP_NAME
from .config import BuildInfo, RuntimeConfig

HEADER = r"""         ,_---~~~~~----._
  _,,_,*^____      _____``*g*\"*,
 / __/ /'     ^.  /      \ ^@q   f
[  @f | @))    |  | @))   l  0 _/
 \`/   \~____ / __ \_____/    \
  |           _l__l_           I
  }          [______]           I
  ]            | | |            |
  ]             ~ ~             |
  |                            |
   |                           |"""

_RULE = "* --------------------------------------------------- *"


def render_banner(config: RuntimeConfig, build: BuildInfo) -> str:
    rows = [
        ("port", str(config.port)),
        ("db", config.db),
        ("dbt", config.db_type),
        ("mp", config.migration_path),
        ("logger level", config.log_level),
        ("logger format", config.log_format),
        ("statistic duration(s)", f"{config.statistics_interval.total_seconds():.0f}"),
    ]
    lines: List[str] = [HEADER, "", f"{APP_NAME} version {build.describe()}", _RULE]
    lines.extend(f"|   {name:<24}: {value}" for name, value in rows)
    lines.append(_RULE)
    return "\n".join(lines)
