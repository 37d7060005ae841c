#!/usr/bin/env python3
"""
点群コンテナ

点座標・法線・有効フラグ・重心を保持します。点座標はロード後不変で、
法線は推定/補間パスで各点のスロットにだけ書き込まれます。
座標型は dtype で指定します (float32 / float64)。
"""

from typing import Optional
import numpy as np

from ..data_types import ArrayLike


class PointCloud:
    """再構成対象の点群"""
    
    def __init__(self, points: ArrayLike, normals: Optional[ArrayLike] = None,
                 dtype=np.float64):
        """
        初期化
        
        Args:
            points: 点座標 (N, 3) またはフラットな (3N,) 配列
            normals: 外部から与えられた法線 (N, 3)。NaN行は未指定扱い
            dtype: 座標型
        """
        self.dtype = np.dtype(dtype)
        if self.dtype.kind != 'f':
            raise ValueError(f"Coordinate dtype must be floating point, got {self.dtype}")
        
        points = np.array(points, dtype=self.dtype).reshape(-1, 3)
        if len(points) == 0:
            raise ValueError("Point cloud is empty")
        if not np.all(np.isfinite(points)):
            raise ValueError("Point cloud contains non-finite coordinates")
        points.flags.writeable = False
        self._points = points
        
        # 重心は構築時に一度だけ計算
        centroid = points.mean(axis=0, dtype=np.float64).astype(self.dtype)
        centroid.flags.writeable = False
        self._centroid = centroid
        
        self.normals = np.zeros_like(points)
        self.supplied = np.zeros(len(points), dtype=bool)
        self.valid = np.ones(len(points), dtype=bool)
        
        if normals is not None:
            normals = np.array(normals, dtype=self.dtype).reshape(-1, 3)
            if normals.shape != points.shape:
                raise ValueError(f"Normals shape {normals.shape} does not match points {points.shape}")
            lengths = np.linalg.norm(normals, axis=1)
            supplied = np.all(np.isfinite(normals), axis=1) & (lengths > 0)
            self.normals[supplied] = normals[supplied] / lengths[supplied, None]
            self.supplied = supplied
    
    @property
    def points(self) -> np.ndarray:
        """点座標 (N, 3)（読み取り専用）"""
        return self._points
    
    @property
    def centroid(self) -> np.ndarray:
        """点群の重心 (3,)"""
        return self._centroid
    
    @property
    def num_points(self) -> int:
        return len(self._points)
    
    @property
    def num_valid(self) -> int:
        return int(np.count_nonzero(self.valid))
    
    @property
    def has_all_normals(self) -> bool:
        """全点に外部法線が与えられているか"""
        return bool(np.all(self.supplied))
    
    def valid_indices(self) -> np.ndarray:
        """接平面を提供できる点のインデックス"""
        return np.flatnonzero(self.valid)
    
    def flag_invalid(self, index: int) -> None:
        """点を抽出対象から除外"""
        self.valid[index] = False
        self.normals[index] = 0.0
    
    def __len__(self) -> int:
        return self.num_points
    
    def __repr__(self) -> str:
        return (f"PointCloud(n={self.num_points}, valid={self.num_valid}, "
                f"supplied={int(np.count_nonzero(self.supplied))}, dtype={self.dtype})")
