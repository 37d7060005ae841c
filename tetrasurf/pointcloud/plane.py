#!/usr/bin/env python3
"""
接平面フィッティング

クエリ点とそのk近傍に最小二乗（垂直距離の二乗和最小）で平面を当てはめます。
疎なスキャンで直線状の近傍から誤った平面が生じるのを防ぐため、
フィット前に近傍のバウンディングボックス形状を検査します。
"""

from dataclasses import dataclass
import numpy as np

from ..constants import BBOX_RATIO, PLANE_RANK_TOLERANCE, MIN_PLANE_POINTS, DISTANCE_EPSILON
from ..errors import DegenerateNeighborhood, IllFormedNeighborhood


@dataclass(frozen=True)
class Plane:
    """点の接平面"""
    a: float                   # 陽形式 z = a + b*x + c*y の係数（鉛直平面ではNaN）
    b: float
    c: float
    normal: np.ndarray         # 単位法線 (3,)
    anchor: np.ndarray         # 基準点（クエリ点） (3,)
    residual: float = 0.0      # 近傍点の平面からの平均距離
    
    def signed_distance(self, point: np.ndarray) -> float:
        """法線方向の符号付き距離"""
        return float(np.dot(np.asarray(point) - self.anchor, self.normal))
    
    def project(self, point: np.ndarray) -> np.ndarray:
        """平面への正射影"""
        point = np.asarray(point, dtype=self.anchor.dtype)
        return point - self.signed_distance(point) * self.normal


def bounding_box_ok(extents: np.ndarray, ratio: float = BBOX_RATIO) -> bool:
    """
    近傍のバウンディングボックスが「整った形」か判定
    
    どれか1軸だけが他より極端に長い（直線状の）近傍を拒否します。
    平面状（1軸だけが薄い）近傍は受理します。
    
    Args:
        extents: 各軸の辺長 (3,)
        ratio: 第2辺長 / 最長辺 の下限
    """
    sorted_extents = np.sort(np.abs(np.asarray(extents, dtype=np.float64)))
    longest = sorted_extents[2]
    if longest <= DISTANCE_EPSILON:
        return False
    return bool(sorted_extents[1] >= ratio * longest)


class PlaneFitter:
    """近傍点群への接平面フィッター"""
    
    def __init__(self, bbox_ratio: float = BBOX_RATIO,
                 rank_tolerance: float = PLANE_RANK_TOLERANCE,
                 check_bounding_box: bool = True):
        self.bbox_ratio = bbox_ratio
        self.rank_tolerance = rank_tolerance
        self.check_bounding_box = check_bounding_box
    
    def check_neighborhood(self, query: np.ndarray, neighbors: np.ndarray) -> np.ndarray:
        """
        近傍点を検証し、クエリ点を含む点集合 (M, 3) を返す
        
        Raises:
            DegenerateNeighborhood: 点が3点未満
            IllFormedNeighborhood: バウンディングボックスが直線状
        """
        query = np.asarray(query, dtype=np.float64).reshape(3)
        neighbors = np.asarray(neighbors, dtype=np.float64).reshape(-1, 3)
        
        samples = np.unique(np.vstack([query[None, :], neighbors]), axis=0)
        if len(samples) < MIN_PLANE_POINTS:
            raise DegenerateNeighborhood(
                f"Need at least {MIN_PLANE_POINTS} distinct points, got {len(samples)}"
            )
        
        if self.check_bounding_box:
            extents = samples.max(axis=0) - samples.min(axis=0)
            if not bounding_box_ok(extents, self.bbox_ratio):
                raise IllFormedNeighborhood(f"Ill-formed neighborhood bounding box: {extents}")
        
        return samples
    
    def fit(self, query: np.ndarray, neighbors: np.ndarray) -> Plane:
        """
        接平面を計算
        
        Args:
            query: クエリ点 (3,)
            neighbors: 距離順の近傍点 (k, 3)
            
        Returns:
            接平面（法線の向きは未確定）
        """
        samples = self.check_neighborhood(query, neighbors)
        anchor = np.asarray(query, dtype=np.float64).reshape(3)
        
        centroid = samples.mean(axis=0)
        centered = samples - centroid
        covariance = centered.T @ centered / len(samples)
        
        # 固有値昇順: 最小固有値の固有ベクトルが法線
        eigenvalues, eigenvectors = np.linalg.eigh(covariance)
        if eigenvalues[1] <= self.rank_tolerance * max(eigenvalues[2], DISTANCE_EPSILON):
            raise DegenerateNeighborhood(f"Rank-deficient neighborhood: eigenvalues {eigenvalues}")
        
        normal = eigenvectors[:, 0]
        normal = normal / np.linalg.norm(normal)
        
        # 平面は近傍重心を通る
        offset = float(np.dot(normal, centroid))
        residual = float(np.mean(np.abs(samples @ normal - offset)))
        
        if abs(normal[2]) > DISTANCE_EPSILON:
            a = offset / normal[2]
            b = -normal[0] / normal[2]
            c = -normal[1] / normal[2]
        else:
            a = b = c = float("nan")
        
        return Plane(a=float(a), b=float(b), c=float(c),
                     normal=normal, anchor=anchor, residual=residual)
