"""token-impact CLI 顶层入口。

本模块仅负责定义 Click 命令组并导入各子命令模块，
实际业务逻辑拆分在 `token_impact.cli.*` 子模块中。
"""

from __future__ import annotations

from typing import Optional

import click

from ..config import Settings
from .common import setup_logging


@click.group()
@click.option("--log-level", default=None, help="覆盖配置中的日志级别（DEBUG/INFO/WARNING）。")
def main(log_level: Optional[str]) -> None:
    """Compare the real cost of a trade across exchanges."""
    setup_logging(log_level or Settings.load().log_level)


# 导入子模块以注册子命令（装饰器在导入时执行）
from . import quote as _quote  # noqa: F401,E402
from . import symbols as _symbols  # noqa: F401,E402
from . import venues as _venues  # noqa: F401,E402


__all__ = ["main"]
