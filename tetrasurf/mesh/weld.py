#!/usr/bin/env python3
"""
頂点溶接キャッシュ

隣接する四面体・セル間で共有される交差頂点を重複排除します。
頂点は整数ハンドルで参照するアリーナに格納し、キー -> ハンドルの対応は
キー単位でアトミックに生成されます（ストライプロック）。
同じエッジに複数のワーカーが同時に到達しても、頂点は1つしか作られません。
"""

import threading
from typing import Callable, Dict, Hashable, List, Optional
import numpy as np

from .. import get_logger
from ..constants import WELD_LOCK_STRIPES

logger = get_logger(__name__)


class WeldCache:
    """エッジキー -> 頂点ハンドル のスレッドセーフなキャッシュ"""

    def __init__(self, lock_stripes: int = WELD_LOCK_STRIPES):
        if lock_stripes < 1:
            raise ValueError(f"lock_stripes must be >= 1, got {lock_stripes}")
        self._stripes = [threading.Lock() for _ in range(lock_stripes)]
        self._arena_lock = threading.Lock()
        self._handles: Dict[Hashable, int] = {}
        self._vertices: List[np.ndarray] = []

        self.stats = {'created': 0, 'hits': 0}

    def _stripe(self, key: Hashable) -> threading.Lock:
        return self._stripes[hash(key) % len(self._stripes)]

    def get_or_create(self, key: Hashable, factory: Callable[[], np.ndarray]) -> int:
        """
        キーに対応する頂点ハンドルを取得（なければ factory で生成）

        factory はキーごとに高々1回しか呼ばれません。競合に負けた呼び出し側は
        勝者が登録したハンドルを受け取ります。

        Args:
            key: エッジキー
            factory: 頂点座標 (3,) を返す関数

        Returns:
            頂点ハンドル
        """
        with self._stripe(key):
            handle = self._handles.get(key)
            if handle is not None:
                with self._arena_lock:
                    self.stats['hits'] += 1
                return handle

            vertex = np.asarray(factory(), dtype=np.float64).reshape(3)
            with self._arena_lock:
                handle = len(self._vertices)
                self._vertices.append(vertex)
                self.stats['created'] += 1
            self._handles[key] = handle
            return handle

    def get(self, key: Hashable) -> Optional[int]:
        """登録済みハンドル（なければ None）"""
        with self._stripe(key):
            return self._handles.get(key)

    def vertex(self, handle: int) -> np.ndarray:
        """ハンドルの頂点座標"""
        with self._arena_lock:
            return self._vertices[handle].copy()

    def vertices(self) -> np.ndarray:
        """全頂点 (V, 3)（ハンドル順）"""
        with self._arena_lock:
            if not self._vertices:
                return np.empty((0, 3))
            return np.vstack(self._vertices)

    def reset(self) -> None:
        """再構成実行ごとにキャッシュを破棄"""
        for lock in self._stripes:
            lock.acquire()
        try:
            with self._arena_lock:
                self._handles.clear()
                self._vertices.clear()
                self.stats = {'created': 0, 'hits': 0}
        finally:
            for lock in reversed(self._stripes):
                lock.release()

    def __len__(self) -> int:
        with self._arena_lock:
            return len(self._vertices)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None
