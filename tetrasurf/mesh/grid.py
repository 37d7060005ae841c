#!/usr/bin/env python3
"""
一様グリッド走査

点を含むボクセル（占有セル）を列挙し、各セルの8角の座標と陰関数値を提供します。
角の値は格子点ごとに一度だけ評価し、隣接セル間で共有します。
"""

import time
from typing import Iterable, Iterator, Optional, Sequence
import numpy as np

from .. import get_logger
from ..data_types import CellIndex, EdgeKey, GridCell
from .tetra_tables import CORNER_OFFSETS, canonical_edge_key

logger = get_logger(__name__)

_CORNER_OFFSETS = np.array(CORNER_OFFSETS, dtype=np.int64)


def _evaluate_field(field, points: np.ndarray) -> np.ndarray:
    """距離場を評価（distances() を持つ場は符号付き距離を使用）"""
    if hasattr(field, "distances"):
        return np.asarray(field.distances(points)[0], dtype=np.float64)
    return np.asarray(field(points), dtype=np.float64).reshape(len(points))


class UniformGrid:
    """占有セルのみを走査する一様グリッド"""

    def __init__(
        self,
        field,
        voxel_size: float,
        origin: Sequence[float],
        cell_indices: Iterable[CellIndex]
    ):
        """
        初期化

        Args:
            field: distances(points) -> (projected, euclidean) を持つ距離場、
                   または points (M, 3) -> values (M,) の関数
            voxel_size: セルの辺長
            origin: セル (0, 0, 0) の角0の座標
            cell_indices: 走査するセル座標
        """
        if voxel_size <= 0.0:
            raise ValueError(f"voxel_size must be positive, got {voxel_size}")
        start_time = time.perf_counter()

        self.voxel_size = float(voxel_size)
        self.origin = np.asarray(origin, dtype=np.float64).reshape(3)
        cell_array = np.asarray(list(cell_indices), dtype=np.int64).reshape(-1, 3)
        self.cell_indices = np.unique(cell_array, axis=0) if len(cell_array) else cell_array

        # 全セルの角格子点を一意化して一度だけ評価
        if len(self.cell_indices):
            lattice = (self.cell_indices[:, None, :] + _CORNER_OFFSETS[None, :, :]).reshape(-1, 3)
            unique_lattice, inverse = np.unique(lattice, axis=0, return_inverse=True)
            self.corner_values = _evaluate_field(field, self.lattice_to_world(unique_lattice))
            self._corner_lookup = np.asarray(inverse).reshape(-1, 8)
        else:
            unique_lattice = np.empty((0, 3), dtype=np.int64)
            self.corner_values = np.empty(0)
            self._corner_lookup = np.empty((0, 8), dtype=np.int64)
        self.lattice_points = unique_lattice

        self.stats = {
            'num_cells': len(self.cell_indices),
            'num_corners': len(unique_lattice),
            'build_time_ms': (time.perf_counter() - start_time) * 1000
        }
        logger.debug(f"Grid with {self.stats['num_cells']} cells, "
                     f"{self.stats['num_corners']} corners (voxel={self.voxel_size})")

    @classmethod
    def from_points(cls, points: np.ndarray, field, voxel_size: float,
                    padding: int = 0, origin: Optional[Sequence[float]] = None) -> "UniformGrid":
        """
        点を含むセルからグリッドを作成

        Args:
            points: 点群 (N, 3)
            field: 距離場
            voxel_size: セルの辺長
            padding: 占有セルの周囲に追加するセル層数
            origin: 原点（省略時はバウンディングボックス最小点の半ボクセル下）
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if origin is None:
            origin = points.min(axis=0) - 0.5 * voxel_size
        origin = np.asarray(origin, dtype=np.float64)

        occupied = np.unique(np.floor((points - origin) / voxel_size).astype(np.int64), axis=0)
        if padding > 0:
            steps = np.arange(-padding, padding + 1)
            offsets = np.stack(np.meshgrid(steps, steps, steps, indexing="ij"), axis=-1).reshape(-1, 3)
            occupied = np.unique((occupied[:, None, :] + offsets[None, :, :]).reshape(-1, 3), axis=0)

        return cls(field, voxel_size, origin, occupied)

    def lattice_to_world(self, lattice: np.ndarray) -> np.ndarray:
        """格子点座標 -> ワールド座標"""
        return self.origin + np.asarray(lattice, dtype=np.float64) * self.voxel_size

    @property
    def num_cells(self) -> int:
        return len(self.cell_indices)

    def cell(self, position: int) -> GridCell:
        """position 番目のセル"""
        index = self.cell_indices[position]
        lattice = index[None, :] + _CORNER_OFFSETS
        return GridCell(
            index=(int(index[0]), int(index[1]), int(index[2])),
            corners=self.lattice_to_world(lattice),
            values=self.corner_values[self._corner_lookup[position]]
        )

    def cells(self) -> Iterator[GridCell]:
        """全セルを列挙"""
        for position in range(self.num_cells):
            yield self.cell(position)

    def edge_key(self, cell_index: CellIndex, edge_id: int) -> EdgeKey:
        """セル境界を越えて一意なエッジキー"""
        return canonical_edge_key(cell_index, edge_id)
