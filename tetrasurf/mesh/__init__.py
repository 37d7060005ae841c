"""
TetraSurf 等値面抽出フェーズ

陰関数距離場から Marching Tetrahedra で三角形メッシュを抽出します。

処理フロー:
1. 占有セルのグリッド走査 (grid.py)
2. 四面体テーブル参照 (tetra_tables.py)
3. セル単位の抽出 (extractor.py)
4. 頂点溶接 (weld.py)
5. メッシュ組み立て (triangle_mesh.py)

全体の実行は pipeline.py の SurfaceReconstructor を使用します。
"""

# 四面体テーブル
from .tetra_tables import (
    CORNER_OFFSETS,
    CUBE_DECOMPOSITION,
    CASE_TRIANGULATION,
    EDGE_IDENTITY,
    NEIGHBOR_CELL_TABLE,
    NEIGHBOR_EDGE_TABLE,
    case_triangles,
    global_edge_id,
    edge_aliases,
    canonical_edge_key
)

# 溶接キャッシュ
from .weld import WeldCache

# セル抽出
from .extractor import (
    CellExtractor,
    case_code,
    interpolation_parameter,
    interpolate_vertex
)

# グリッド走査
from .grid import UniformGrid

# メッシュ
from .triangle_mesh import (
    TriangleMesh,
    build_triangle_mesh,
    compute_triangle_normals,
    compute_vertex_normals
)

# パイプライン
from .pipeline import (
    SurfaceReconstructor,
    ReconstructionResult,
    reconstruct_surface
)

__all__ = [
    # テーブル
    'CORNER_OFFSETS',
    'CUBE_DECOMPOSITION',
    'CASE_TRIANGULATION',
    'EDGE_IDENTITY',
    'NEIGHBOR_CELL_TABLE',
    'NEIGHBOR_EDGE_TABLE',
    'case_triangles',
    'global_edge_id',
    'edge_aliases',
    'canonical_edge_key',

    # 溶接
    'WeldCache',

    # 抽出
    'CellExtractor',
    'case_code',
    'interpolation_parameter',
    'interpolate_vertex',

    # グリッド
    'UniformGrid',

    # メッシュ
    'TriangleMesh',
    'build_triangle_mesh',
    'compute_triangle_normals',
    'compute_vertex_normals',

    # パイプライン
    'SurfaceReconstructor',
    'ReconstructionResult',
    'reconstruct_surface'
]
