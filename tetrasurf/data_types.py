#!/usr/bin/env python3
"""
共通型定義

外部協調コンポーネント（空間インデックス・グリッド走査）のプロトコルと、
モジュール間で共有されるデータ構造を一元管理し、循環依存を解消します。
"""

from dataclasses import dataclass
from typing import Iterator, List, Tuple, Union, Protocol, runtime_checkable
import numpy as np

# 型エイリアス
ArrayLike = Union[np.ndarray, List, Tuple]
CellIndex = Tuple[int, int, int]
EdgeKey = Tuple[CellIndex, int]
Triangle = Tuple[int, int, int]


# =============================================================================
# プロトコル定義（インターフェース）
# =============================================================================

@runtime_checkable
class SpatialIndex(Protocol):
    """k近傍検索を提供する空間インデックスのプロトコル"""
    
    def build(self, points: np.ndarray) -> None:
        """点群 (N, 3) からインデックスを構築"""
        ...
    
    def query_knn(self, point: np.ndarray, k: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        k近傍を検索
        
        Returns:
            (indices, distances) 距離昇順、同距離はインデックス順
        """
        ...


@dataclass
class GridCell:
    """グリッドセル（立方体）1個分の角データ"""
    index: CellIndex           # 整数セル座標 (ix, iy, iz)
    corners: np.ndarray        # 角座標 (8, 3)
    values: np.ndarray         # 角の陰関数値 (8,)
    
    @property
    def is_finite(self) -> bool:
        """全ての角の値が有限かどうか"""
        return bool(np.all(np.isfinite(self.values)))


@runtime_checkable
class GridTraversal(Protocol):
    """抽出対象セルを列挙するグリッド走査のプロトコル"""
    
    def cells(self) -> Iterator[GridCell]:
        """抽出対象のセルを列挙"""
        ...
    
    def edge_key(self, cell_index: CellIndex, edge_id: int) -> EdgeKey:
        """セル境界を越えて一意なエッジキーを返す"""
        ...
