#!/usr/bin/env python3
"""
陰関数距離場

任意の位置について、最も近い接平面までの符号付き距離を評価します。
接平面は有効な点（法線推定に成功した点）を基準点とし、
kd 近傍の基準点と法線を平均して統合した平面を使用します（kd=1 で最近傍平面）。
"""

from typing import Tuple, Union
import numpy as np

from .. import get_logger
from ..constants import DEFAULT_KD, DISTANCE_EPSILON
from ..errors import ReconstructionError
from .cloud import PointCloud
from .index import IndexType, create_spatial_index

logger = get_logger(__name__)


class ImplicitField:
    """接平面による符号付き距離場"""

    def __init__(self, cloud: PointCloud, kd: int = DEFAULT_KD,
                 index_type: Union[IndexType, str] = IndexType.KDTREE):
        """
        初期化

        Args:
            cloud: 法線推定済みの点群
            kd: 距離値計算に使う近傍数
            index_type: 基準点インデックスのタイプ
        """
        if kd < 1:
            raise ValueError(f"kd must be >= 1, got {kd}")

        anchor_ids = cloud.valid_indices()
        if len(anchor_ids) == 0:
            raise ReconstructionError("No valid tangent planes: every point was excluded")

        # フィールドは構築時のスナップショットを参照し、以後変更しない
        self._anchors = np.array(cloud.points[anchor_ids], dtype=np.float64)
        self._normals = np.array(cloud.normals[anchor_ids], dtype=np.float64)
        self._anchors.flags.writeable = False
        self._normals.flags.writeable = False
        self.anchor_ids = anchor_ids
        self.kd = min(kd, len(anchor_ids))
        self.index = create_spatial_index(index_type, self._anchors)

        logger.debug(f"Implicit field over {len(anchor_ids)} tangent planes (kd={self.kd})")

    @property
    def num_planes(self) -> int:
        return len(self._anchors)

    def nearest_plane(self, point: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """kd 近傍を統合した接平面 (anchor, normal)"""
        indices, _ = self.index.query_knn(point, self.kd)
        anchor = self._anchors[indices].mean(axis=0)
        normal = self._normals[indices].sum(axis=0)
        length = np.linalg.norm(normal)
        if length <= DISTANCE_EPSILON:
            # 近傍の法線が打ち消し合う場合は最近傍の法線を使う
            normal = self._normals[indices[0]]
        else:
            normal = normal / length
        return anchor, normal

    def distance(self, point: np.ndarray) -> Tuple[float, float]:
        """
        最近傍接平面までの距離

        Args:
            point: 評価位置 (3,)

        Returns:
            (projected_distance, euclidean_distance)
            projected_distance: 接平面法線方向の符号付き距離（等値面抽出に使用）
            euclidean_distance: 接平面基準点までの距離（品質指標）
        """
        point = np.asarray(point, dtype=np.float64).reshape(3)
        anchor, normal = self.nearest_plane(point)
        offset = point - anchor
        return float(np.dot(offset, normal)), float(np.linalg.norm(offset))

    def distances(self, points: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        複数位置の距離をまとめて評価

        Args:
            points: 評価位置 (M, 3)

        Returns:
            (projected (M,), euclidean (M,))
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        projected = np.empty(len(points))
        euclidean = np.empty(len(points))
        for j, point in enumerate(points):
            projected[j], euclidean[j] = self.distance(point)
        return projected, euclidean

    def __call__(self, point: np.ndarray) -> float:
        """符号付き距離のみを返す"""
        return self.distance(point)[0]
