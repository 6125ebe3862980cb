#!/usr/bin/env python3
"""
SkyGrid メインパッケージ

天球を正二十面体の再帰分割でゾーンに区切る測地グリッドと、
パッケージ共通のロギング設定を提供します。
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

__version__ = "0.1.0"
__author__ = "SkyGrid Development Team"

# format_style -> ログフォーマット
LOG_FORMATS = {
    "simple": "%(levelname)s %(name)s: %(message)s",
    "detailed": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    "debug": "%(asctime)s.%(msecs)03d %(levelname)-8s %(name)s (%(funcName)s:%(lineno)d) %(message)s",
}


def _parse_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    numeric_level = logging.getLevelName(str(level).upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")
    return numeric_level


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[Path] = None,
    format_style: str = "detailed"
) -> logging.Logger:
    """
    ルートロガーを設定

    既存のハンドラーは取り外し、標準出力（と指定があればファイル）に出力します。

    Args:
        level: ログレベル名 (DEBUG, INFO, ...) または数値
        log_file: 追記するログファイル
        format_style: "simple" / "detailed" / "debug"

    Returns:
        ルートロガー
    """
    numeric_level = _parse_level(level)
    formatter = logging.Formatter(
        LOG_FORMATS.get(format_style, LOG_FORMATS["detailed"]), datefmt="%H:%M:%S"
    )

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        if isinstance(handler, logging.FileHandler):
            handler.close()

    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)
    return root_logger


def get_logger(name: str) -> logging.Logger:
    """モジュール用ロガー（通常は __name__ を渡す）"""
    return logging.getLogger(name)


def ensure_default_logging() -> None:
    """ルートロガーにハンドラーが無ければ既定設定を適用"""
    if not logging.getLogger().handlers:
        setup_logging()


ensure_default_logging()
