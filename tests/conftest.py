#!/usr/bin/env python3
"""
pytest共通設定とフィクスチャ

テスト実行時の共通ロギング設定と、再構成テストで使う
サンプル点群・サンプルセルを提供します。
"""

import pytest
import sys
import os
import tempfile
import numpy as np
from typing import Generator

# tetrasurfモジュールのパス追加
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, os.path.dirname(__file__))

from tetrasurf import setup_logging, get_logger
from tetrasurf.config import TetraSurfConfig
from sample_clouds import make_planar_grid, make_sphere

# =============================================================================
# テストロギング設定
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def setup_test_logging():
    """テスト全体のロギング設定"""
    setup_logging(level="DEBUG", format_style="simple")
    logger = get_logger("tetrasurf.test")
    logger.info("=== テストセッション開始 ===")
    yield
    logger.info("=== テストセッション終了 ===")


@pytest.fixture
def test_logger():
    """テスト用ロガー"""
    return get_logger("tetrasurf.test")


# =============================================================================
# テストデータ生成
# =============================================================================

@pytest.fixture
def planar_points() -> np.ndarray:
    """平面点群"""
    return make_planar_grid()


@pytest.fixture
def sphere_points() -> np.ndarray:
    """球面点群"""
    return make_sphere()


@pytest.fixture
def small_config() -> TetraSurfConfig:
    """小規模テスト用設定"""
    config = TetraSurfConfig()
    config.extraction.voxel_size = 0.1
    config.parallel.num_workers = 2
    config.parallel.chunk_size = 64
    return config


@pytest.fixture
def temp_directory() -> Generator[str, None, None]:
    """一時ディレクトリ"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


# =============================================================================
# テストスイート選択
# =============================================================================

def pytest_configure(config):
    """pytest設定時に実行"""
    config.addinivalue_line(
        "markers", "slow: 実行時間が長いテスト"
    )
    config.addinivalue_line(
        "markers", "integration: パイプライン全体の統合テスト"
    )
