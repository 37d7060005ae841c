#!/usr/bin/env python3
"""
等値面抽出フェーズのテスト

交差頂点の補間、ケースコード、セル抽出、グリッド走査、
メッシュ組み立ての各コンポーネントをテストします。
"""

import unittest
import numpy as np

# テスト対象モジュール
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from tetrasurf.data_types import GridCell, GridTraversal
from tetrasurf.mesh import (
    # 抽出
    CellExtractor, case_code, interpolation_parameter, interpolate_vertex,
    # 溶接
    WeldCache,
    # グリッド
    UniformGrid,
    # メッシュ
    TriangleMesh, build_triangle_mesh, canonical_edge_key, CORNER_OFFSETS
)


def make_cell(function, index=(0, 0, 0), size: float = 1.0) -> GridCell:
    """関数値から単位セルを作成"""
    corners = (np.add(index, CORNER_OFFSETS)) * size
    return GridCell(index=index, corners=corners.astype(np.float64),
                    values=np.array([function(p) for p in corners], dtype=np.float64))


def triangle_soup(vertices: np.ndarray, triangles) -> set:
    """ハンドル順序に依存しない三角形集合"""
    soup = set()
    for tri in triangles:
        points = tuple(sorted(tuple(np.round(vertices[h], 9)) for h in tri))
        soup.add(points)
    return soup


class TestInterpolation(unittest.TestCase):
    """交差頂点補間テスト"""

    def test_parameter(self):
        """t = v0 / (v0 - v1)"""
        self.assertAlmostEqual(interpolation_parameter(1.0, -1.0), 0.5)
        self.assertAlmostEqual(interpolation_parameter(2.0, -1.0), 2.0 / 3.0)
        self.assertAlmostEqual(interpolation_parameter(-0.25, 0.75), 0.25)

    def test_parameter_without_crossing(self):
        """同じ値の2端点は例外"""
        with self.assertRaises(ValueError):
            interpolation_parameter(0.3, 0.3)

    def test_vertex(self):
        """頂点位置"""
        vertex = interpolate_vertex([0.0, 0.0, 0.0], [3.0, 0.0, 0.0], 2.0, -1.0)
        np.testing.assert_allclose(vertex, [2.0, 0.0, 0.0])


class TestCaseCode(unittest.TestCase):
    """ケースコードテスト"""

    def test_inside_bits(self):
        """負の値の角のビットが立つ"""
        self.assertEqual(case_code([-1.0, 1.0, 1.0, -1.0]), 0b1001)
        self.assertEqual(case_code([-1.0, -1.0, -1.0, -1.0]), 15)
        self.assertEqual(case_code([1.0, 2.0, 3.0, 4.0]), 0)

    def test_zero_is_outside(self):
        """等値（0）の角は外側"""
        self.assertEqual(case_code([0.0, 0.0, 0.0, 0.0]), 0)
        self.assertEqual(case_code([0.0, -0.0, -1e-300, 0.0]), 0b0100)


class TestCellExtractor(unittest.TestCase):
    """セル抽出テスト"""

    def test_separating_plane(self):
        """x=0.5 の平面で単位セルを切断"""
        cell = make_cell(lambda p: p[0] - 0.5)
        weld = WeldCache()
        extractor = CellExtractor()

        triangles = extractor.extract(cell, weld)
        vertices = weld.vertices()

        # 1:3 分割の四面体4個 + 2:2 分割の四面体2個
        self.assertEqual(len(triangles), 8)
        # x 方向に跨ぐ辺4本 + 面対角線4本 + 体対角線1本
        self.assertEqual(len(weld), 9)
        np.testing.assert_allclose(vertices[:, 0], 0.5)
        self.assertTrue(np.all(vertices >= 0.0) and np.all(vertices <= 1.0))

        mesh = build_triangle_mesh(vertices, triangles)
        self.assertAlmostEqual(float(mesh.get_triangle_areas().sum()), 1.0)
        # 法線は値が正の側（外側）を向く
        np.testing.assert_allclose(mesh.triangle_normals, np.tile([1.0, 0.0, 0.0], (8, 1)),
                                   atol=1e-9)

    def test_no_crossing(self):
        """符号が一様なセルは三角形なし"""
        extractor = CellExtractor()
        weld = WeldCache()
        self.assertEqual(extractor.extract(make_cell(lambda p: 1.0 + p.sum()), weld), [])
        self.assertEqual(extractor.extract(make_cell(lambda p: -1.0), weld), [])
        self.assertEqual(len(weld), 0)

    def test_non_finite_cell_is_skipped(self):
        """非有限値を含むセルはスキップ"""
        cell = make_cell(lambda p: p[2] - 0.5)
        cell.values[6] = np.nan
        extractor = CellExtractor()
        weld = WeldCache()

        self.assertEqual(extractor.extract(cell, weld), [])
        extractor.extract_cells([cell], weld)
        self.assertEqual(extractor.stats['skipped_cells'], 1)
        self.assertEqual(len(weld), 0)

    def test_adjacent_cells_share_vertices(self):
        """隣接セルの共有面上の頂点は1つに溶接される"""
        field = lambda p: p[1] + 0.25 * p[2] - 0.6
        cells = [make_cell(field, (0, 0, 0)), make_cell(field, (1, 0, 0)),
                 make_cell(field, (0, 0, 1))]
        weld = WeldCache()
        extractor = CellExtractor()

        triangles = extractor.extract_cells(cells, weld)
        vertices = weld.vertices()

        unique_positions = np.unique(np.round(vertices, 9), axis=0)
        self.assertEqual(len(unique_positions), len(vertices))
        self.assertGreater(len(triangles), 0)
        self.assertEqual(extractor.stats['total_cells'], 3)
        self.assertEqual(extractor.stats['total_triangles'], len(triangles))

        # 3セル分の切断面は内部エッジを2回ずつ共有する
        mesh = build_triangle_mesh(vertices, triangles)
        counts = mesh.get_edge_use_counts()
        self.assertTrue(all(count in (1, 2) for count in counts.values()))
        self.assertTrue(any(count == 2 for count in counts.values()))

    def test_parallel_matches_sequential(self):
        """並列抽出と逐次抽出は同じ三角形集合"""
        field = lambda p: np.linalg.norm(p - 2.0) - 1.3
        cells = [make_cell(field, (i, j, k))
                 for i in range(4) for j in range(4) for k in range(4)]

        weld_seq = WeldCache()
        seq = CellExtractor().extract_cells(cells, weld_seq, num_workers=1)
        weld_par = WeldCache()
        par = CellExtractor().extract_cells(cells, weld_par, num_workers=4)

        self.assertEqual(len(seq), len(par))
        self.assertEqual(len(weld_seq), len(weld_par))
        self.assertEqual(triangle_soup(weld_seq.vertices(), seq),
                         triangle_soup(weld_par.vertices(), par))

    def test_closed_surface(self):
        """セル集合の内部に収まる閉曲面は境界エッジなし"""
        field = lambda p: np.linalg.norm(p - 4.0) - 2.6
        cells = [make_cell(field, (i, j, k))
                 for i in range(8) for j in range(8) for k in range(8)]
        weld = WeldCache()
        triangles = CellExtractor().extract_cells(cells, weld, num_workers=2)
        mesh = build_triangle_mesh(weld.vertices(), triangles)

        self.assertEqual(mesh.count_boundary_edges(), 0)

        # 外向きの閉曲面なら符号付き体積は正で、球の体積以下
        v0, v1, v2 = (mesh.vertices[mesh.triangles[:, i]] for i in range(3))
        volume = float(np.einsum('ij,ij->i', v0, np.cross(v1, v2)).sum()) / 6.0
        sphere_volume = 4.0 / 3.0 * np.pi * 2.6 ** 3
        self.assertGreater(volume, 0.7 * sphere_volume)
        self.assertLess(volume, sphere_volume)

    def test_custom_edge_key(self):
        """エッジキー関数の差し替え"""
        seen = []

        def edge_key(cell_index, edge_id):
            seen.append(edge_id)
            return canonical_edge_key(cell_index, edge_id)

        CellExtractor(edge_key=edge_key).extract(make_cell(lambda p: p[0] - 0.5), WeldCache())
        self.assertIn(18, seen)


class TestUniformGrid(unittest.TestCase):
    """グリッド走査テスト"""

    def test_from_points(self):
        """占有セルのみを走査"""
        points = np.array([[0.0, 0.0, 0.0], [0.02, 0.03, 0.0], [1.0, 0.0, 0.0]])
        grid = UniformGrid.from_points(points, lambda pts: pts[:, 2], voxel_size=0.1)

        np.testing.assert_allclose(grid.origin, [-0.05, -0.05, -0.05])
        self.assertEqual(grid.num_cells, 2)
        cells = list(grid.cells())
        self.assertEqual(len(cells), 2)
        for cell in cells:
            self.assertEqual(cell.corners.shape, (8, 3))
            np.testing.assert_allclose(cell.values, cell.corners[:, 2])

    def test_shared_corners_evaluated_once(self):
        """隣接セルの角は一度だけ評価"""
        calls = []

        def field(pts):
            calls.append(len(pts))
            return pts[:, 0]

        grid = UniformGrid(field, 1.0, (0.0, 0.0, 0.0), [(0, 0, 0), (1, 0, 0), (1, 0, 0)])
        self.assertEqual(grid.num_cells, 2)
        self.assertEqual(grid.stats['num_corners'], 12)
        self.assertEqual(calls, [12])

    def test_padding(self):
        """周囲セル層の追加"""
        grid = UniformGrid.from_points(np.zeros((1, 3)), lambda pts: pts[:, 0],
                                       voxel_size=1.0, padding=1)
        self.assertEqual(grid.num_cells, 27)

    def test_empty_grid(self):
        """セルなし"""
        grid = UniformGrid(lambda pts: pts[:, 0], 1.0, (0.0, 0.0, 0.0), [])
        self.assertEqual(grid.num_cells, 0)
        self.assertEqual(list(grid.cells()), [])

    def test_invalid_voxel_size(self):
        with self.assertRaises(ValueError):
            UniformGrid(lambda pts: pts[:, 0], 0.0, (0.0, 0.0, 0.0), [(0, 0, 0)])

    def test_traversal_protocol(self):
        """GridTraversal プロトコルを満たす"""
        grid = UniformGrid(lambda pts: pts[:, 0], 1.0, (0.0, 0.0, 0.0), [(0, 0, 0)])
        self.assertIsInstance(grid, GridTraversal)
        self.assertEqual(grid.edge_key((1, 0, 0), 3), canonical_edge_key((1, 0, 0), 3))


class TestTriangleMesh(unittest.TestCase):
    """メッシュデータ構造テスト"""

    def setUp(self):
        # 正の向きの四面体表面
        self.vertices = np.array([
            [0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]
        ])
        self.triangles = np.array([[0, 2, 1], [0, 1, 3], [0, 3, 2], [1, 2, 3]])

    def test_single_triangle(self):
        """1枚の三角形"""
        mesh = build_triangle_mesh(self.vertices[:3], [[0, 1, 2]])
        self.assertIsInstance(mesh, TriangleMesh)
        self.assertEqual(mesh.num_vertices, 3)
        self.assertEqual(mesh.num_triangles, 1)
        np.testing.assert_allclose(mesh.triangle_normals, [[0.0, 0.0, 1.0]], atol=1e-9)
        np.testing.assert_allclose(mesh.vertex_normals, np.tile([0.0, 0.0, 1.0], (3, 1)),
                                   atol=1e-9)
        self.assertAlmostEqual(float(mesh.get_triangle_areas()[0]), 0.5)
        self.assertEqual(mesh.count_boundary_edges(), 3)

    def test_closed_tetrahedron(self):
        """閉じた四面体表面"""
        mesh = build_triangle_mesh(self.vertices, self.triangles)
        self.assertEqual(mesh.count_boundary_edges(), 0)
        outward = mesh.get_triangle_centers() - self.vertices.mean(axis=0)
        self.assertTrue(np.all(np.einsum('ij,ij->i', mesh.triangle_normals, outward) > 0.0))

        min_bounds, max_bounds = mesh.get_bounds()
        np.testing.assert_allclose(min_bounds, [0.0, 0.0, 0.0])
        np.testing.assert_allclose(max_bounds, [1.0, 1.0, 1.0])

    def test_without_normals(self):
        """法線計算なし"""
        mesh = build_triangle_mesh(self.vertices, self.triangles, compute_normals=False)
        self.assertIsNone(mesh.triangle_normals)
        self.assertIsNone(mesh.vertex_normals)

    def test_empty_mesh(self):
        """空メッシュ"""
        mesh = build_triangle_mesh(np.empty((0, 3)), [])
        self.assertEqual(mesh.num_triangles, 0)
        self.assertEqual(mesh.triangle_normals.shape, (0, 3))
        self.assertEqual(mesh.vertex_normals.shape, (0, 3))


if __name__ == '__main__':
    unittest.main()
