#!/usr/bin/env python3
"""
測地グリッド - 領域検索結果

レベルごとに1本の固定長バッファを持ち、inside ゾーンを先頭から、
border ゾーンを末尾から詰めて格納します。検索中の再確保はありません。

検索結果オブジェクトは呼び出し側ごとのスクラッチバッファです。
同じオブジェクトに対して並行に search() を呼ばないでください。
"""

import time
from typing import Dict, Iterator, List, Optional, Sequence

import numpy as np

from .grid import GeodesicGrid
from .types import GridInvariantError, HalfSpace, ZoneClass
from .vectors import VectorLike, as_vector
from ..config import get_config
from ..constants import ZONE_ID_DTYPE, nr_of_zones
from .. import get_logger

logger = get_logger(__name__)


class GeodesicSearchResult:
    """領域検索の結果バッファ"""

    def __init__(self, grid: GeodesicGrid):
        """
        初期化

        Args:
            grid: 検索対象の測地グリッド（構築済み・読み取り専用）
        """
        self.grid = grid
        levels = grid.max_level + 1
        self._zones: List[np.ndarray] = [
            np.zeros(nr_of_zones(level), dtype=ZONE_ID_DTYPE) for level in range(levels)
        ]
        self._inside_end: List[int] = [0] * levels
        self._border_start: List[int] = [nr_of_zones(level) for level in range(levels)]
        self.max_search_level = -1

        self.stats = {
            'total_searches': 0,
            'total_search_time_ms': 0.0,
            'average_search_time_ms': 0.0,
            'last_search_time_ms': 0.0,
            'last_nodes_visited': 0,
            'last_inside_count': 0,
            'last_border_count': 0,
        }

    def reset(self):
        """全レベルのバッファを空にする"""
        for level in range(len(self._zones)):
            self._inside_end[level] = 0
            self._border_start[level] = len(self._zones[level])
        self.max_search_level = -1

    # ------------------------------
    #  検索
    # ------------------------------
    def search(self, half_spaces: Sequence[HalfSpace],
               max_search_level: Optional[int] = None) -> 'GeodesicSearchResult':
        """
        半空間の積集合でゾーンを検索

        Args:
            half_spaces: 凸領域を表す半空間（1〜4個）
            max_search_level: 最大検索レベル（Noneの場合は設定ファイルの既定値）

        Returns:
            self
        """
        search_config = get_config().search
        if max_search_level is None:
            max_search_level = search_config.default_search_level
            if max_search_level is None:
                max_search_level = self.grid.max_level
        if len(half_spaces) > search_config.max_half_spaces:
            raise ValueError(
                f"At most {search_config.max_half_spaces} half spaces are configured, "
                f"got {len(half_spaces)}"
            )

        start_time = time.perf_counter()
        self.reset()
        nodes_visited = self.grid.search_zones(half_spaces, self, max_search_level)
        self.max_search_level = min(max(max_search_level, 0), self.grid.max_level)

        search_time = (time.perf_counter() - start_time) * 1000
        self._update_stats(search_time, nodes_visited)
        if search_config.log_query_stats:
            logger.debug(
                f"Zone search: {len(half_spaces)} half spaces, level {self.max_search_level}, "
                f"nodes={nodes_visited}, inside={self.stats['last_inside_count']}, "
                f"border={self.stats['last_border_count']}, {search_time:.2f}ms"
            )
        return self

    def search_cap(self, center: VectorLike, cos_radius: float,
                   max_search_level: Optional[int] = None) -> 'GeodesicSearchResult':
        """中心方向と角半径の余弦で表される球帽を検索"""
        return self.search([HalfSpace.from_cap(center, cos_radius)], max_search_level)

    def search_quadrilateral(self, e0: VectorLike, e1: VectorLike,
                             e2: VectorLike, e3: VectorLike,
                             max_search_level: Optional[int] = None) -> 'GeodesicSearchResult':
        """
        視野の4隅 e0..e3 で囲まれた領域を検索

        e0, e1, e2 が外側から見て反時計回りなら4つの大円半空間、
        そうでなければ e0, e1, e2 を通る平面1つで検索します。
        """
        e0, e1, e2, e3 = as_vector(e0), as_vector(e1), as_vector(e2), as_vector(e3)
        plane_normal = np.cross(e1 - e0, e2 - e0)
        d = float(np.dot(e0, plane_normal))
        if d > 0:
            half_spaces = [
                HalfSpace(np.cross(e0, e1), 0.0),
                HalfSpace(np.cross(e1, e2), 0.0),
                HalfSpace(np.cross(e2, e3), 0.0),
                HalfSpace(np.cross(e3, e0), 0.0),
            ]
        else:
            half_spaces = [HalfSpace(plane_normal, d)]
        return self.search(half_spaces, max_search_level)

    # 検索中に GeodesicGrid から呼ばれる
    def _append_inside(self, level: int, index: int):
        end = self._inside_end[level]
        if end >= self._border_start[level]:
            raise GridInvariantError(f"search buffer overflow at level {level}")
        self._zones[level][end] = index
        self._inside_end[level] = end + 1

    def _append_border(self, level: int, index: int):
        start = self._border_start[level] - 1
        if start < self._inside_end[level]:
            raise GridInvariantError(f"search buffer overflow at level {level}")
        self._zones[level][start] = index
        self._border_start[level] = start

    # ------------------------------
    #  結果参照
    # ------------------------------
    def _clamp_level(self, level: int) -> int:
        return min(max(level, 0), self.grid.max_level)

    def _check_level(self, level: int):
        if not 0 <= level <= self.grid.max_level:
            raise IndexError(f"Level {level} out of range [0, {self.grid.max_level}]")

    def inside_zones(self, level: int) -> np.ndarray:
        """レベルの inside ゾーン（読み取り専用ビュー）"""
        self._check_level(level)
        view = self._zones[level][:self._inside_end[level]]
        view.setflags(write=False)
        return view

    def border_zones(self, level: int) -> np.ndarray:
        """レベルの border ゾーン（読み取り専用ビュー）"""
        self._check_level(level)
        view = self._zones[level][self._border_start[level]:]
        view.setflags(write=False)
        return view

    def inside_count(self, level: int) -> int:
        self._check_level(level)
        return self._inside_end[level]

    def border_count(self, level: int) -> int:
        self._check_level(level)
        return len(self._zones[level]) - self._border_start[level]

    def inside_leaves(self, level: int) -> np.ndarray:
        """
        レベル 0..level の inside ゾーンをレベル level の子孫に展開

        GeodesicSearchInsideIterator と同じ集合・順序を配列で返します。
        """
        level = self._clamp_level(level)
        parts = []
        for lev in range(level + 1):
            zones = self.inside_zones(lev).astype(np.int64)
            if len(zones) == 0:
                continue
            count = 1 << ((level - lev) << 1)
            parts.append((zones[:, None] * count + np.arange(count, dtype=np.int64)).ravel())
        if not parts:
            return np.zeros(0, dtype=np.int64)
        return np.concatenate(parts)

    def classify_zone(self, level: int, index: int) -> ZoneClass:
        """
        ゾーンの分類を取得

        祖先が inside ならそのゾーンも inside です。
        検索レベルより深いゾーンは、最も深い border 祖先が見つかれば border とします。
        """
        if not 0 <= level <= self.grid.max_level:
            raise IndexError(f"Level {level} out of range [0, {self.grid.max_level}]")
        deepest = min(level, max(self.max_search_level, 0))
        ancestor = index >> ((level - deepest) << 1)
        for lev in range(deepest, -1, -1):
            if ancestor in self.inside_zones(lev):
                return ZoneClass.INSIDE
            ancestor >>= 2
        ancestor = index >> ((level - deepest) << 1)
        if ancestor in self.border_zones(deepest):
            return ZoneClass.BORDER
        return ZoneClass.OUTSIDE

    def describe(self) -> Dict[int, Dict[str, List[int]]]:
        """レベル別の inside/border ゾーンをDEBUGログ出力して返す"""
        summary = {}
        for level in range(len(self._zones)):
            inside = self.inside_zones(level).tolist()
            border = self.border_zones(level).tolist()
            summary[level] = {'inside': inside, 'border': border}
            logger.debug(f"level {level}: inside={inside} border={border}")
        return summary

    def _update_stats(self, search_time: float, nodes_visited: int):
        self.stats['total_searches'] += 1
        self.stats['total_search_time_ms'] += search_time
        self.stats['average_search_time_ms'] = (
            self.stats['total_search_time_ms'] / self.stats['total_searches']
        )
        self.stats['last_search_time_ms'] = search_time
        self.stats['last_nodes_visited'] = nodes_visited
        self.stats['last_inside_count'] = sum(self._inside_end)
        self.stats['last_border_count'] = sum(
            len(z) - start for z, start in zip(self._zones, self._border_start)
        )

    def get_performance_stats(self) -> dict:
        """パフォーマンス統計取得"""
        return self.stats.copy()


class GeodesicSearchInsideIterator:
    """
    inside ゾーンをレベル level の葉ゾーンに展開して列挙するイテレータ

    幾何判定は行わず番号計算のみで子孫を生成します。
    最後まで進んだら reset() するまで空です。
    """

    def __init__(self, result: GeodesicSearchResult, level: int):
        self._result = result
        self.max_level = min(max(level, 0), result.grid.max_level)
        self.reset()

    def reset(self):
        self._generator = self._generate()

    def _generate(self) -> Iterator[int]:
        for level in range(self.max_level + 1):
            count = 1 << ((self.max_level - level) << 1)
            for zone in self._result.inside_zones(level).tolist():
                base = zone * count
                for offset in range(count):
                    yield base + offset

    def __iter__(self) -> 'GeodesicSearchInsideIterator':
        return self

    def __next__(self) -> int:
        return next(self._generator)


class GeodesicSearchBorderIterator:
    """1レベルの border ゾーンを列挙するイテレータ"""

    def __init__(self, result: GeodesicSearchResult, level: int):
        self._result = result
        self.level = min(max(level, 0), result.grid.max_level)
        self.reset()

    def reset(self):
        self._zones = iter(self._result.border_zones(self.level).tolist())

    def __iter__(self) -> 'GeodesicSearchBorderIterator':
        return self

    def __next__(self) -> int:
        return next(self._zones)


# 便利関数

def search(grid: GeodesicGrid, half_spaces: Sequence[HalfSpace],
           max_level: int) -> GeodesicSearchResult:
    """新しい検索結果オブジェクトで領域検索"""
    return GeodesicSearchResult(grid).search(half_spaces, max_level)


def iterate_inside_leaves(result: GeodesicSearchResult, max_level: int) -> Iterator[int]:
    """inside ゾーンをレベル max_level の葉ゾーンとして列挙"""
    return GeodesicSearchInsideIterator(result, max_level)
