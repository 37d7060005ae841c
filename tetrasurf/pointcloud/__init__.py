"""
TetraSurf 点群処理フェーズ

点群から接平面・法線を推定し、等値面抽出で使う陰関数距離場を構築します。

処理フロー:
1. 空間インデックス構築 (index.py)
2. 接平面フィット (plane.py)
3. 法線推定・補間 (normals.py)
4. 陰関数距離場 (implicit.py)
"""

# 空間インデックス
from .index import (
    IndexType,
    KDTreeIndex,
    BruteForceIndex,
    create_spatial_index
)

# 点群コンテナ
from .cloud import PointCloud

# 接平面
from .plane import (
    Plane,
    PlaneFitter,
    bounding_box_ok
)

# 法線
from .normals import (
    NormalEstimator,
    NormalInterpolator,
    orient_normal
)

# 距離場
from .implicit import ImplicitField

__all__ = [
    # インデックス
    'IndexType',
    'KDTreeIndex',
    'BruteForceIndex',
    'create_spatial_index',
    
    # 点群
    'PointCloud',
    
    # 接平面
    'Plane',
    'PlaneFitter',
    'bounding_box_ok',
    
    # 法線
    'NormalEstimator',
    'NormalInterpolator',
    'orient_normal',
    
    # 距離場
    'ImplicitField'
]
