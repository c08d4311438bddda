"""
日志 - 基于 loguru

- 控制台: 级别由 LOG_LEVEL 决定，DEPLOYMENT_ENV=prod 时默认 INFO，否则 DEBUG；
  输出到终端时带颜色
- 文件: logs/gateway.log 记录 DEBUG 及以上，按大小轮转；LOG_DISABLE_FILE=true 时关闭

使用方式:
    from src.core.logger import logger

    logger.info("counter={} value={}", counter_id, value)
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from loguru import logger

_DEFAULT_LEVEL = "INFO" if os.getenv("DEPLOYMENT_ENV", "").strip() == "prod" else "DEBUG"
LOG_LEVEL = os.getenv("LOG_LEVEL", _DEFAULT_LEVEL).upper()

DISABLE_FILE_LOG = os.getenv("LOG_DISABLE_FILE", "false").lower() == "true"

LOG_DIR = Path(__file__).resolve().parent.parent.parent / "logs"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{message}</cyan>"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"

logger.remove()
logger.add(
    sys.stdout,
    format=CONSOLE_FORMAT,
    level=LOG_LEVEL,
    colorize=sys.stdout.isatty(),
    backtrace=False,
    diagnose=False,
)

if not DISABLE_FILE_LOG:
    LOG_DIR.mkdir(exist_ok=True)
    # enqueue=False: 同步写入
    logger.add(
        LOG_DIR / "gateway.log",
        format=FILE_FORMAT,
        level="DEBUG",
        rotation="50 MB",
        retention=5,
        compression="gz",
        enqueue=False,
        encoding="utf-8",
        catch=True,
    )

# 第三方库日志只保留警告及以上
for _name in ("httpx", "httpcore", "uvicorn.access"):
    logging.getLogger(_name).setLevel(logging.WARNING)

__all__ = ["logger"]
