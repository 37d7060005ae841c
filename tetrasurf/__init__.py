#!/usr/bin/env python3
"""
TetraSurf メインパッケージ

点群からの表面再構成（法線推定・陰関数距離場・Marching Tetrahedra）で
共通して使用されるロギング機能を提供します。
"""

import logging
import sys
from pathlib import Path
from typing import Optional

# プロジェクト情報
__version__ = "0.1.0"
__author__ = "TetraSurf Development Team"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    format_style: str = "detailed"
) -> logging.Logger:
    """
    プロジェクト全体の統一ログ設定
    
    Args:
        level: ログレベル (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: ログファイルパス（Noneならコンソールのみ）
        format_style: フォーマットスタイル ("simple", "detailed", "debug")
    
    Returns:
        設定済みパッケージロガー
    """
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {level}')
    
    formats = {
        "simple": "%(levelname)s: %(message)s",
        "detailed": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        "debug": "%(asctime)s [%(levelname)s] %(name)s:%(funcName)s:%(lineno)d: %(message)s"
    }
    
    log_format = formats.get(format_style, formats["detailed"])
    formatter = logging.Formatter(log_format, datefmt='%H:%M:%S')
    
    # ライブラリとして使われるためルートではなくパッケージロガーを設定
    package_logger = logging.getLogger(__name__)
    package_logger.setLevel(numeric_level)
    
    # 既存ハンドラークリア
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
    
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)
    
    if log_file is not None:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)
    
    return package_logger


def get_logger(name: str) -> logging.Logger:
    """
    モジュール用ロガーを取得
    
    Args:
        name: ロガー名（通常は __name__ を使用）
    
    Returns:
        ロガー
    """
    return logging.getLogger(name)


# ライブラリ利用時に "No handler" 警告を出さない
logging.getLogger(__name__).addHandler(logging.NullHandler())
