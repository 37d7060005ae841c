#!/usr/bin/env python3
"""
Marching Tetrahedra 参照テーブル

立方体セルの6四面体分割、ケース別三角形分割、交差エッジの大域ID、
隣接セル間のエッジ対応を不変データとして保持します。
テーブルの範囲外参照は丸めずに例外を送出します。

セル角の番号（単位立方体上のオフセット）:

    0 (0,0,0)  1 (1,0,0)  2 (1,1,0)  3 (0,1,0)
    4 (0,0,1)  5 (1,0,1)  6 (1,1,1)  7 (0,1,1)

大域エッジID: 0-11 は立方体の辺、12-17 は面の対角線、18 は体対角線 2-4。
"""

from typing import List, Tuple

from ..data_types import CellIndex, EdgeKey
from ..errors import InvalidCaseCode, InvalidEdgeId

NUM_TETRAHEDRA = 6
NUM_CASES = 16
NUM_LOCAL_EDGES = 6
NUM_GLOBAL_EDGES = 19
SENTINEL = -1

# セル角のオフセット
CORNER_OFFSETS: Tuple[Tuple[int, int, int], ...] = (
    (0, 0, 0),
    (1, 0, 0),
    (1, 1, 0),
    (0, 1, 0),
    (0, 0, 1),
    (1, 0, 1),
    (1, 1, 1),
    (0, 1, 1),
)

# 立方体の6四面体分割（角0/6を切り落とし、残りの八面体を対角線2-4で4分割）
CUBE_DECOMPOSITION: Tuple[Tuple[int, int, int, int], ...] = (
    (0, 1, 3, 4),   # 0
    (3, 1, 2, 4),   # 1
    (4, 2, 3, 7),   # 2
    (1, 5, 2, 4),   # 3
    (4, 5, 2, 7),   # 4
    (2, 5, 6, 7),   # 5
)

# 四面体ローカルエッジの端点（四面体ローカル角番号）
TETRA_EDGE_CORNERS: Tuple[Tuple[int, int], ...] = (
    (0, 1),   # 0
    (1, 3),   # 1
    (0, 3),   # 2
    (0, 2),   # 3
    (1, 2),   # 4
    (2, 3),   # 5
)

# ケースコード別の三角形（ローカルエッジID 3個ずつ、-1 で終端）
CASE_TRIANGULATION: Tuple[Tuple[int, ...], ...] = (
    (-1, -1, -1, -1, -1, -1, -1),   # 0
    ( 0,  3,  2, -1, -1, -1, -1),   # 1
    ( 0,  1,  4, -1, -1, -1, -1),   # 2
    ( 2,  1,  3,  3,  1,  4, -1),   # 3
    ( 3,  4,  5, -1, -1, -1, -1),   # 4
    ( 2,  0,  5,  5,  0,  4, -1),   # 5
    ( 3,  0,  1,  3,  1,  5, -1),   # 6
    ( 2,  1,  5, -1, -1, -1, -1),   # 7
    ( 2,  5,  1, -1, -1, -1, -1),   # 8
    ( 3,  1,  0,  3,  5,  1, -1),   # 9
    ( 2,  5,  0,  5,  4,  0, -1),   # 10
    ( 3,  5,  4, -1, -1, -1, -1),   # 11
    ( 2,  3,  1,  3,  4,  1, -1),   # 12
    ( 0,  4,  1, -1, -1, -1, -1),   # 13
    ( 0,  2,  3, -1, -1, -1, -1),   # 14
    (-1, -1, -1, -1, -1, -1, -1),   # 15
)

# 四面体 x ローカルエッジ -> 大域エッジID
EDGE_IDENTITY: Tuple[Tuple[int, ...], ...] = (
    ( 0, 12,  8,  3, 16, 14),   # 0
    (16, 12, 14,  2,  1, 18),   # 1
    (18, 13,  7, 14,  2, 10),   # 2
    ( 9,  4, 12,  1, 15, 18),   # 3
    ( 4, 17,  7, 18, 15, 13),   # 4
    (15, 17, 13, 11,  5,  6),   # 5
)

# 大域エッジの端点（セル角番号）
GLOBAL_EDGE_CORNERS: Tuple[Tuple[int, int], ...] = (
    (0, 1), (1, 2), (2, 3), (3, 0),
    (4, 5), (5, 6), (6, 7), (7, 4),
    (0, 4), (1, 5), (3, 7), (2, 6),
    (1, 4), (2, 7), (3, 4), (2, 5), (1, 3), (5, 7),
    (2, 4),
)

# 大域エッジを共有する隣接セル（9*(dx+1) + 3*(dy+1) + (dz+1)、13 が自セル）
NEIGHBOR_CELL_TABLE: Tuple[Tuple[int, int, int], ...] = (
    (12, 10,  9),   # 0
    (22, 12, 21),   # 1
    (16, 12, 15),   # 2
    ( 4,  3, 12),   # 3
    (14, 10, 11),   # 4
    (23, 22, 14),   # 5
    (14, 16, 17),   # 6
    ( 4,  5, 14),   # 7
    ( 4,  1, 10),   # 8
    (22, 19, 10),   # 9
    ( 4,  7, 16),   # 10
    (22, 25, 16),   # 11
    (10, -1, -1),   # 12
    (16, -1, -1),   # 13
    ( 4, -1, -1),   # 14
    (22, -1, -1),   # 15
    (12, -1, -1),   # 16
    (14, -1, -1),   # 17
    (-1, -1, -1),   # 18
)

# 隣接セル側での同じエッジの大域ID
NEIGHBOR_EDGE_TABLE: Tuple[Tuple[int, int, int], ...] = (
    ( 4,  2,  6),   # 0
    ( 3,  5,  7),   # 1
    ( 0,  6,  4),   # 2
    ( 1,  5,  7),   # 3
    ( 0,  6,  2),   # 4
    ( 3,  7,  1),   # 5
    ( 2,  4,  0),   # 6
    ( 5,  1,  3),   # 7
    ( 9, 11, 10),   # 8
    ( 8, 10, 11),   # 9
    (11,  9,  8),   # 10
    (10,  8,  9),   # 11
    (13, -1, -1),   # 12
    (12, -1, -1),   # 13
    (15, -1, -1),   # 14
    (14, -1, -1),   # 15
    (17, -1, -1),   # 16
    (16, -1, -1),   # 17
    (-1, -1, -1),   # 18
)


def _check_range(value: int, upper: int, name: str) -> int:
    if isinstance(value, bool) or not 0 <= value < upper:
        raise InvalidEdgeId(f"{name} out of range [0, {upper - 1}]: {value!r}")
    return int(value)


def case_triangles(code: int) -> List[Tuple[int, int, int]]:
    """
    ケースコードの三角形リスト（ローカルエッジIDの3つ組）

    Raises:
        InvalidCaseCode: code が [0, 15] 外
    """
    if isinstance(code, bool) or not 0 <= code < NUM_CASES:
        raise InvalidCaseCode(code)
    row = CASE_TRIANGULATION[code]
    triangles = []
    for start in range(0, len(row) - 1, 3):
        if row[start] == SENTINEL:
            break
        triangles.append((row[start], row[start + 1], row[start + 2]))
    return triangles


def tetrahedron_corners(tetra: int) -> Tuple[int, int, int, int]:
    """四面体のセル角番号"""
    return CUBE_DECOMPOSITION[_check_range(tetra, NUM_TETRAHEDRA, "tetrahedron")]


def local_edge_corners(tetra: int, local_edge: int) -> Tuple[int, int]:
    """四面体ローカルエッジの端点（セル角番号）"""
    corners = tetrahedron_corners(tetra)
    a, b = TETRA_EDGE_CORNERS[_check_range(local_edge, NUM_LOCAL_EDGES, "local edge")]
    return corners[a], corners[b]


def global_edge_id(tetra: int, local_edge: int) -> int:
    """四面体ローカルエッジの大域エッジID"""
    tetra = _check_range(tetra, NUM_TETRAHEDRA, "tetrahedron")
    local_edge = _check_range(local_edge, NUM_LOCAL_EDGES, "local edge")
    return EDGE_IDENTITY[tetra][local_edge]


def neighbor_offset(code: int) -> Tuple[int, int, int]:
    """隣接セルコードをセル座標オフセット (dx, dy, dz) に変換"""
    code = _check_range(code, 27, "neighbor cell code")
    return code // 9 - 1, (code // 3) % 3 - 1, code % 3 - 1


def edge_aliases(cell: CellIndex, edge: int) -> List[EdgeKey]:
    """
    同じ幾何エッジを指す (セル, 大域エッジID) の一覧（自身を先頭に含む）
    """
    edge = _check_range(edge, NUM_GLOBAL_EDGES, "global edge")
    cell = (int(cell[0]), int(cell[1]), int(cell[2]))
    aliases: List[EdgeKey] = [(cell, edge)]
    for code, nb_edge in zip(NEIGHBOR_CELL_TABLE[edge], NEIGHBOR_EDGE_TABLE[edge]):
        if code == SENTINEL:
            break
        dx, dy, dz = neighbor_offset(code)
        aliases.append(((cell[0] + dx, cell[1] + dy, cell[2] + dz), nb_edge))
    return aliases


def canonical_edge_key(cell: CellIndex, edge: int) -> EdgeKey:
    """
    セル境界を越えて一意なエッジキー

    どのセル・どの四面体から到達しても同じ値になるよう、全エイリアスの最小値を返します。
    """
    return min(edge_aliases(cell, edge))
