#!/usr/bin/env python3
"""
頂点溶接キャッシュのテスト
"""

import unittest
import threading
from concurrent.futures import ThreadPoolExecutor
import numpy as np

# テスト対象モジュール
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from tetrasurf.mesh.weld import WeldCache


class TestWeldCache(unittest.TestCase):
    """WeldCache テスト"""

    def test_same_key_same_handle(self):
        """同じキーは同じハンドル、factory は1回だけ"""
        weld = WeldCache()
        calls = []

        def factory():
            calls.append(1)
            return np.array([1.0, 2.0, 3.0])

        key = ((0, 0, 0), 4)
        first = weld.get_or_create(key, factory)
        second = weld.get_or_create(key, factory)

        self.assertEqual(first, second)
        self.assertEqual(len(calls), 1)
        self.assertEqual(len(weld), 1)
        self.assertEqual(weld.stats['created'], 1)
        self.assertEqual(weld.stats['hits'], 1)
        np.testing.assert_array_equal(weld.vertex(first), [1.0, 2.0, 3.0])

    def test_distinct_keys(self):
        """異なるキーはハンドル順に頂点を格納"""
        weld = WeldCache(lock_stripes=1)
        handles = [weld.get_or_create(((i, 0, 0), 0), lambda i=i: [float(i), 0.0, 0.0])
                   for i in range(5)]

        self.assertEqual(handles, list(range(5)))
        vertices = weld.vertices()
        self.assertEqual(vertices.shape, (5, 3))
        np.testing.assert_array_equal(vertices[:, 0], np.arange(5))

    def test_empty_and_reset(self):
        """空のキャッシュとリセット"""
        weld = WeldCache()
        self.assertEqual(weld.vertices().shape, (0, 3))

        key = ((1, 2, 3), 18)
        weld.get_or_create(key, lambda: np.zeros(3))
        self.assertIn(key, weld)
        self.assertEqual(weld.get(key), 0)

        weld.reset()
        self.assertNotIn(key, weld)
        self.assertIsNone(weld.get(key))
        self.assertEqual(len(weld), 0)
        self.assertEqual(weld.stats['created'], 0)

    def test_invalid_stripes(self):
        """ストライプ数は1以上"""
        with self.assertRaises(ValueError):
            WeldCache(lock_stripes=0)

    def test_concurrent_get_or_create(self):
        """同じキーへの同時アクセスでも頂点は1つ"""
        weld = WeldCache(lock_stripes=4)
        key = ((5, 5, 5), 11)
        barrier = threading.Barrier(8)
        calls = []
        calls_lock = threading.Lock()

        def factory():
            with calls_lock:
                calls.append(1)
            return np.array([0.5, 0.5, 0.5])

        def worker(_):
            barrier.wait()
            return weld.get_or_create(key, factory)

        with ThreadPoolExecutor(max_workers=8) as executor:
            handles = list(executor.map(worker, range(8)))

        self.assertEqual(len(set(handles)), 1)
        self.assertEqual(len(calls), 1)
        self.assertEqual(len(weld), 1)
        self.assertEqual(weld.stats['hits'], 7)

    def test_concurrent_many_keys(self):
        """多数キーの並列登録で重複なし"""
        weld = WeldCache(lock_stripes=8)
        keys = [((i % 7, i % 5, 0), i % 19) for i in range(400)]
        unique_keys = set(keys)

        def worker(key):
            return key, weld.get_or_create(key, lambda: np.array(key[0], dtype=np.float64))

        with ThreadPoolExecutor(max_workers=4) as executor:
            results = list(executor.map(worker, keys))

        handle_of = {}
        for key, handle in results:
            self.assertEqual(handle_of.setdefault(key, handle), handle)
        self.assertEqual(len(weld), len(unique_keys))
        self.assertEqual(len(set(handle_of.values())), len(unique_keys))


if __name__ == '__main__':
    unittest.main()
