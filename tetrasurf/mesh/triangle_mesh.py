#!/usr/bin/env python3
"""
三角形メッシュデータ構造

抽出結果（頂点・三角形・法線配列）を保持します。シリアライズ形式には依存しません。
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import numpy as np


@dataclass
class TriangleMesh:
    """三角形メッシュデータ構造"""
    vertices: np.ndarray       # 頂点座標 (N, 3)
    triangles: np.ndarray      # 三角形インデックス (M, 3)
    triangle_normals: Optional[np.ndarray] = None  # 三角形法線 (M, 3)
    vertex_normals: Optional[np.ndarray] = None    # 頂点法線 (N, 3)

    @property
    def num_vertices(self) -> int:
        """頂点数を取得"""
        return len(self.vertices)

    @property
    def num_triangles(self) -> int:
        """三角形数を取得"""
        return len(self.triangles)

    def get_bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """バウンディングボックスを取得"""
        min_bounds = np.min(self.vertices, axis=0)
        max_bounds = np.max(self.vertices, axis=0)
        return min_bounds, max_bounds

    def get_triangle_centers(self) -> np.ndarray:
        """三角形の重心を計算"""
        v0 = self.vertices[self.triangles[:, 0]]
        v1 = self.vertices[self.triangles[:, 1]]
        v2 = self.vertices[self.triangles[:, 2]]
        return (v0 + v1 + v2) / 3.0

    def get_triangle_areas(self) -> np.ndarray:
        """三角形の面積を計算"""
        v0 = self.vertices[self.triangles[:, 0]]
        v1 = self.vertices[self.triangles[:, 1]]
        v2 = self.vertices[self.triangles[:, 2]]

        # 3D外積の長さは2倍の面積
        cross = np.cross(v1 - v0, v2 - v0)
        return np.linalg.norm(cross, axis=1) / 2.0

    def get_edge_use_counts(self) -> dict:
        """無向エッジ -> 使用する三角形数"""
        counts: dict = {}
        for tri in self.triangles:
            for a, b in ((tri[0], tri[1]), (tri[1], tri[2]), (tri[2], tri[0])):
                edge = (int(min(a, b)), int(max(a, b)))
                counts[edge] = counts.get(edge, 0) + 1
        return counts

    def count_boundary_edges(self) -> int:
        """1つの三角形にしか使われていないエッジ数（閉曲面なら0）"""
        return sum(1 for count in self.get_edge_use_counts().values() if count == 1)


# ---------------------------------------------------------------------------
# Geometry helpers
# ---------------------------------------------------------------------------

def compute_triangle_normals(vertices: np.ndarray, triangles: np.ndarray) -> np.ndarray:
    """Compute per-triangle normals (unit length)."""
    if len(triangles) == 0:
        return np.empty((0, 3))
    v0 = vertices[triangles[:, 0]]
    v1 = vertices[triangles[:, 1]]
    v2 = vertices[triangles[:, 2]]
    normals = np.cross(v1 - v0, v2 - v0)
    norms = np.linalg.norm(normals, axis=1, keepdims=True) + 1e-12
    return normals / norms


def compute_vertex_normals(vertices: np.ndarray, triangles: np.ndarray,
                           tri_normals: np.ndarray) -> np.ndarray:
    """Compute vertex normals as the average of adjacent triangle normals."""
    vert_normals = np.zeros_like(vertices, dtype=np.float64)
    for corner in range(3):
        np.add.at(vert_normals, triangles[:, corner], tri_normals)
    norms = np.linalg.norm(vert_normals, axis=1, keepdims=True) + 1e-12
    return vert_normals / norms


def build_triangle_mesh(vertices: np.ndarray, triangles, compute_normals: bool = True) -> TriangleMesh:
    """頂点配列と三角形リストからメッシュを組み立て（法線配列も計算）"""
    vertices = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
    triangles = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
    mesh = TriangleMesh(vertices=vertices, triangles=triangles)
    if compute_normals:
        mesh.triangle_normals = compute_triangle_normals(vertices, triangles)
        mesh.vertex_normals = compute_vertex_normals(vertices, triangles, mesh.triangle_normals)
    return mesh
