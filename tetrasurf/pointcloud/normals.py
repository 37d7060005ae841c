#!/usr/bin/env python3
"""
法線推定・法線補間

各点の kn 近傍に接平面をフィットして初期法線を求め（NormalEstimator）、
ki 近傍の法線を統合して平滑化・向きの一貫化を行います（NormalInterpolator）。
各点の計算は不変な点群と読み取り専用のインデックスのみを参照し、
自分の法線スロットにだけ書き込むため、チャンク単位で並列実行できます。
"""

import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, TypeVar
import numpy as np

from .. import get_logger
from ..constants import (
    DEFAULT_KN, DEFAULT_KI, MAX_NEIGHBOR_GROWTH, ORIENTATION_TOLERANCE,
    DEFAULT_NUM_WORKERS, DEFAULT_CHUNK_SIZE, DISTANCE_EPSILON
)
from ..data_types import SpatialIndex
from ..errors import DegenerateNeighborhood, IllFormedNeighborhood
from .cloud import PointCloud
from .plane import Plane, PlaneFitter

logger = get_logger(__name__)

T = TypeVar("T")


def orient_normal(normal: np.ndarray, point: np.ndarray, centroid: np.ndarray,
                  tolerance: float = ORIENTATION_TOLERANCE) -> np.ndarray:
    """
    重心を基準に法線の向きを決定

    法線が点群の重心から離れる向き (n·(p - c) > 0) になるよう反転します。
    点が重心を通る平面上にあり向きが決まらない場合は、
    絶対値最大の成分が正になる向きに揃えます。
    """
    normal = np.asarray(normal, dtype=np.float64)
    offset = np.asarray(point, dtype=np.float64) - np.asarray(centroid, dtype=np.float64)
    offset_length = np.linalg.norm(offset)
    dot = float(np.dot(normal, offset))

    if offset_length > DISTANCE_EPSILON and abs(dot) > tolerance * offset_length:
        return normal if dot > 0.0 else -normal

    dominant = int(np.argmax(np.abs(normal)))
    return normal if normal[dominant] >= 0.0 else -normal


def _chunks(indices: np.ndarray, chunk_size: int) -> List[np.ndarray]:
    return [indices[start:start + chunk_size] for start in range(0, len(indices), chunk_size)]


def run_chunks(worker: Callable[[np.ndarray], T], chunks: Iterable[np.ndarray],
               num_workers: int) -> List[T]:
    """チャンクを並列実行し、全完了まで待つ（バリア）"""
    chunks = list(chunks)
    if num_workers <= 1 or len(chunks) <= 1:
        return [worker(chunk) for chunk in chunks]
    with ThreadPoolExecutor(max_workers=num_workers) as executor:
        # list() で例外を呼び出し元へ伝播させる
        return list(executor.map(worker, chunks))


class NormalEstimator:
    """接平面フィットによる初期法線推定"""

    def __init__(
        self,
        fitter: Optional[PlaneFitter] = None,
        kn: int = DEFAULT_KN,                          # 法線推定の近傍数
        max_neighbor_growth: int = MAX_NEIGHBOR_GROWTH, # 不良近傍時の近傍数拡大上限（倍率）
        orientation_tolerance: float = ORIENTATION_TOLERANCE,
        num_workers: int = DEFAULT_NUM_WORKERS,
        chunk_size: int = DEFAULT_CHUNK_SIZE
    ):
        if kn < 2:
            raise ValueError(f"kn must be >= 2, got {kn}")
        self.fitter = fitter or PlaneFitter()
        self.kn = kn
        self.max_neighbor_growth = max(1, max_neighbor_growth)
        self.orientation_tolerance = orientation_tolerance
        self.num_workers = num_workers
        self.chunk_size = chunk_size

        self.stats = {
            'total_time_ms': 0.0,
            'estimated': 0,
            'degenerate': 0,
            'ill_formed': 0,
            'grown_neighborhoods': 0
        }

    def fit_point(self, cloud: PointCloud, index: SpatialIndex, i: int,
                  counter: Optional[Counter] = None) -> Plane:
        """
        1点の接平面を計算（近傍が直線状なら近傍数を倍々に増やして再試行）

        Raises:
            DegenerateNeighborhood, IllFormedNeighborhood
        """
        points = cloud.points
        query = points[i]
        k = min(self.kn, cloud.num_points - 1)
        k_limit = min(self.kn * self.max_neighbor_growth, cloud.num_points - 1)
        if k < 2:
            raise DegenerateNeighborhood(
                f"Point cloud too small for plane fitting ({cloud.num_points} points)"
            )

        while True:
            indices, _ = index.query_knn(query, k + 1)
            indices = indices[indices != i][:k]
            try:
                return self.fitter.fit(query, points[indices])
            except IllFormedNeighborhood:
                if k >= k_limit:
                    raise
                k = min(k * 2, k_limit)
                if counter is not None:
                    counter['grown_neighborhoods'] += 1

    def estimate(self, cloud: PointCloud, index: SpatialIndex) -> PointCloud:
        """
        外部法線のない全点の法線を推定

        Args:
            cloud: 点群（normals / valid を更新）
            index: cloud.points 全体で構築済みの空間インデックス
        """
        start_time = time.perf_counter()
        targets = np.flatnonzero(~cloud.supplied)

        def worker(chunk: np.ndarray) -> Counter:
            counter: Counter = Counter()
            for i in chunk:
                i = int(i)
                try:
                    plane = self.fit_point(cloud, index, i, counter)
                except DegenerateNeighborhood as e:
                    logger.debug(f"Point {i}: degenerate neighborhood ({e})")
                    counter['degenerate'] += 1
                    cloud.flag_invalid(i)
                    continue
                except IllFormedNeighborhood as e:
                    logger.debug(f"Point {i}: ill-formed neighborhood ({e})")
                    counter['ill_formed'] += 1
                    cloud.flag_invalid(i)
                    continue

                cloud.normals[i] = orient_normal(plane.normal, cloud.points[i], cloud.centroid,
                                                 self.orientation_tolerance)
                counter['estimated'] += 1
            return counter

        totals = sum(run_chunks(worker, _chunks(targets, self.chunk_size), self.num_workers),
                     Counter())
        for key in ('estimated', 'degenerate', 'ill_formed', 'grown_neighborhoods'):
            self.stats[key] = totals[key]
        self.stats['total_time_ms'] = (time.perf_counter() - start_time) * 1000

        excluded = totals['degenerate'] + totals['ill_formed']
        if excluded:
            logger.warning(f"{excluded} of {len(targets)} points excluded "
                           f"(degenerate: {totals['degenerate']}, ill-formed: {totals['ill_formed']})")
        logger.info(f"Estimated {totals['estimated']} normals "
                    f"in {self.stats['total_time_ms']:.1f}ms")
        return cloud


class NormalInterpolator:
    """ki 近傍の法線統合による法線補間"""

    def __init__(
        self,
        ki: int = DEFAULT_KI,
        num_workers: int = DEFAULT_NUM_WORKERS,
        chunk_size: int = DEFAULT_CHUNK_SIZE
    ):
        if ki < 1:
            raise ValueError(f"ki must be >= 1, got {ki}")
        self.ki = ki
        self.num_workers = num_workers
        self.chunk_size = chunk_size
        self.stats = {'total_time_ms': 0.0, 'interpolated': 0}

    def interpolate_point(self, cloud: PointCloud, index: SpatialIndex,
                          source: np.ndarray, i: int) -> np.ndarray:
        """
        1点の補間法線を計算

        近傍法線の総和を向きの基準とし、各法線を基準に揃えてから平均します。
        """
        indices, _ = index.query_knn(cloud.points[i], self.ki + 1)
        indices = indices[cloud.valid[indices]]
        own = source[i].astype(np.float64)
        if len(indices) == 0:
            return own

        neighbor_normals = source[indices].astype(np.float64)
        reference = neighbor_normals.sum(axis=0)
        if np.linalg.norm(reference) <= DISTANCE_EPSILON:
            reference = own

        signs = np.where(neighbor_normals @ reference < 0.0, -1.0, 1.0)
        combined = (neighbor_normals * signs[:, None]).sum(axis=0)
        length = np.linalg.norm(combined)
        if length <= DISTANCE_EPSILON:
            return own
        return combined / length

    def interpolate(self, cloud: PointCloud, index: SpatialIndex) -> PointCloud:
        """
        推定済み法線場全体を補間

        推定パスが全点で完了した後に呼び出します。現在の法線場のスナップショット
        から新しい配列を計算するため、同じ入力からは常に同じ結果になります。
        """
        start_time = time.perf_counter()
        source = cloud.normals.copy()
        result = source.copy()
        targets = np.flatnonzero(cloud.valid & ~cloud.supplied)

        def worker(chunk: np.ndarray) -> None:
            for i in chunk:
                result[i] = self.interpolate_point(cloud, index, source, int(i))

        run_chunks(worker, _chunks(targets, self.chunk_size), self.num_workers)

        cloud.normals[:] = result
        self.stats['interpolated'] = len(targets)
        self.stats['total_time_ms'] = (time.perf_counter() - start_time) * 1000
        logger.info(f"Interpolated {len(targets)} normals with ki={self.ki} "
                    f"in {self.stats['total_time_ms']:.1f}ms")
        return cloud
