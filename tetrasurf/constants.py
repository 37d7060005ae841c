#!/usr/bin/env python3
"""
共通定数・設定値

再構成パイプライン全体で使用される定数や閾値を一元管理します。
"""

from typing import Final

# =============================================================================
# 数値精度・許容誤差
# =============================================================================

NUMERICAL_TOLERANCE: Final[float] = 1e-6
DISTANCE_EPSILON: Final[float] = 1e-12

# 平面フィッティングのランク判定（第2固有値 / 最大固有値）
PLANE_RANK_TOLERANCE: Final[float] = 1e-10

# 重心方向による向き判定が不定とみなす cos 閾値
ORIENTATION_TOLERANCE: Final[float] = 1e-6

# =============================================================================
# 近傍数（k近傍）
# =============================================================================

DEFAULT_KN: Final[int] = 10   # 法線推定
DEFAULT_KI: Final[int] = 10   # 法線補間
DEFAULT_KD: Final[int] = 10   # 距離値計算

# 平面フィットに必要な最小点数
MIN_PLANE_POINTS: Final[int] = 3

# バウンディングボックス判定: 第2辺長 / 最長辺 の下限
BBOX_RATIO: Final[float] = 0.05

# 不良近傍時に近傍数を倍々で増やす上限倍率
MAX_NEIGHBOR_GROWTH: Final[int] = 4

# =============================================================================
# 等値面抽出
# =============================================================================

ISOVALUE: Final[float] = 0.0
DEFAULT_VOXEL_SIZE: Final[float] = 0.05

# 占有ボクセルの周囲に追加するセル層数（等値面が空セルへ抜ける箇所を拾う）
DEFAULT_GRID_PADDING: Final[int] = 1

# =============================================================================
# 並列処理
# =============================================================================

DEFAULT_NUM_WORKERS: Final[int] = 4
DEFAULT_CHUNK_SIZE: Final[int] = 2048
WELD_LOCK_STRIPES: Final[int] = 64
