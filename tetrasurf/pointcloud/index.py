#!/usr/bin/env python3
"""
空間インデックス

法線推定・距離値計算で使用するk近傍検索のデータ構造を提供します。
どの実装も SpatialIndex プロトコル (build / query_knn) を満たし、
結果は距離昇順、同距離はインデックス順で返します。
"""

import threading
import time
from enum import Enum
from typing import Tuple, Optional
import numpy as np
from scipy.spatial import cKDTree
from scipy.spatial.distance import cdist

from .. import get_logger
from ..data_types import SpatialIndex

logger = get_logger(__name__)


class IndexType(Enum):
    """インデックスタイプの列挙"""
    KDTREE = "kdtree"              # KD-Tree (scipy.spatial.cKDTree)
    BRUTE_FORCE = "brute_force"    # 全点距離計算


def _sort_neighbors(indices: np.ndarray, distances: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """距離昇順・同距離はインデックス昇順に並べ替え"""
    order = np.lexsort((indices, distances))
    return indices[order], distances[order]


class KDTreeIndex:
    """cKDTreeによるk近傍インデックス"""
    
    def __init__(self, leafsize: int = 16):
        self.leafsize = leafsize
        self.kdtree: Optional[cKDTree] = None
        self.num_points = 0
        
        # パフォーマンス統計
        self.stats = {
            'build_time_ms': 0.0,
            'total_queries': 0,
            'tie_resolutions': 0
        }
        self._stats_lock = threading.Lock()  # 複数スレッドから検索される
    
    def build(self, points: np.ndarray) -> None:
        """インデックスを構築"""
        start_time = time.perf_counter()
        points = np.asarray(points, dtype=np.float64)
        if points.ndim != 2 or points.shape[1] != 3:
            raise ValueError(f"Expected points of shape (N, 3), got {points.shape}")
        
        self.kdtree = cKDTree(points, leafsize=self.leafsize)
        self.num_points = len(points)
        self.stats['build_time_ms'] = (time.perf_counter() - start_time) * 1000
    
    def query_knn(self, point: np.ndarray, k: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        k近傍を検索
        
        Args:
            point: 検索点 (3,)
            k: 近傍数（点数を超える場合は点数に切り詰め）
            
        Returns:
            (indices, distances)
        """
        if self.kdtree is None:
            raise RuntimeError("Index not built")
        with self._stats_lock:
            self.stats['total_queries'] += 1
        
        k = min(int(k), self.num_points)
        if k <= 0:
            return np.empty(0, dtype=np.int64), np.empty(0)
        
        # 境界での同距離を検出するため1点多く取得
        k_probe = min(k + 1, self.num_points)
        distances, indices = self.kdtree.query(point, k=k_probe)
        distances = np.atleast_1d(distances)
        indices = np.atleast_1d(indices).astype(np.int64)
        
        if k_probe > k and distances[k] <= distances[k - 1]:
            # k番目と同距離の点が他にもある: 半径検索で全て拾ってから順序付け
            with self._stats_lock:
                self.stats['tie_resolutions'] += 1
            candidates = np.asarray(
                self.kdtree.query_ball_point(point, distances[k - 1] * (1.0 + 1e-12) + 1e-15),
                dtype=np.int64
            )
            cand_dist = np.linalg.norm(self.kdtree.data[candidates] - point, axis=1)
            indices, distances = _sort_neighbors(candidates, cand_dist)
        else:
            indices, distances = _sort_neighbors(indices, distances)
        
        return indices[:k], distances[:k]


class BruteForceIndex:
    """全点距離計算によるk近傍インデックス（小規模・検証用）"""
    
    def __init__(self):
        self.points: Optional[np.ndarray] = None
        self.stats = {'total_queries': 0}
        self._stats_lock = threading.Lock()
    
    def build(self, points: np.ndarray) -> None:
        points = np.asarray(points, dtype=np.float64)
        if points.ndim != 2 or points.shape[1] != 3:
            raise ValueError(f"Expected points of shape (N, 3), got {points.shape}")
        self.points = points
    
    def query_knn(self, point: np.ndarray, k: int) -> Tuple[np.ndarray, np.ndarray]:
        if self.points is None:
            raise RuntimeError("Index not built")
        with self._stats_lock:
            self.stats['total_queries'] += 1
        
        distances = cdist(np.asarray(point, dtype=np.float64).reshape(1, 3), self.points)[0]
        # stable ソートで同距離はインデックス順
        order = np.argsort(distances, kind="stable")[:min(int(k), len(self.points))]
        return order.astype(np.int64), distances[order]


def create_spatial_index(index_type: IndexType = IndexType.KDTREE,
                         points: Optional[np.ndarray] = None) -> SpatialIndex:
    """
    空間インデックスを作成（points指定時は構築済みで返す）
    
    Args:
        index_type: インデックスタイプ（IndexType または文字列）
        points: 構築に使う点群 (N, 3)
    """
    if isinstance(index_type, str):
        index_type = IndexType(index_type)
    
    if index_type == IndexType.KDTREE:
        index: SpatialIndex = KDTreeIndex()
    elif index_type == IndexType.BRUTE_FORCE:
        index = BruteForceIndex()
    else:
        raise ValueError(f"Unknown index type: {index_type}")
    
    if points is not None:
        index.build(points)
        logger.debug(f"Built {index_type.value} index over {len(points)} points")
    return index
