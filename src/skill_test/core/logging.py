"""结构化日志配置

日志统一输出到 stderr，保证 --format json 时 stdout 只有 JSON 文档。
"""

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(verbose: bool = False, color: bool = True) -> None:
    """配置基于 Rich 的结构化日志"""
    level = logging.DEBUG if verbose else logging.INFO
    console = Console(stderr=True, no_color=not color, highlight=color)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
