#!/usr/bin/env python3
"""
測地グリッド

正二十面体の20面を再帰的に4分割して天球をゾーンに区切り、
点→ゾーン検索、全ノード走査、半空間の積集合による領域検索を提供します。

ゾーン (level, index) の子は 4*index + {0, 1, 2, 3} で、
子0=(c0, e2, e1), 子1=(e2, c1, e0), 子2=(e1, e0, c2), 子3=(e0, e1, e2)。
この番号付けはゾーン番号を保存する外部データとの互換性のため固定です。
"""

import time
from typing import Callable, List, Optional, Sequence, Tuple, TYPE_CHECKING

import numpy as np

from .icosahedron import (
    ICOSAHEDRON_CORNERS,
    ICOSAHEDRON_TRIANGLES,
    root_corner_array,
    root_edge_normals,
)
from .types import GridInvariantError, HalfSpace, Triangle
from .vectors import VectorLike, as_vector, normalize_rows
from ..config import get_config
from ..constants import (
    CHILDREN_PER_TRIANGLE, MAX_HALF_SPACES, NUM_ROOT_TRIANGLES, UNIT_VECTOR_TOLERANCE, nr_of_zones
)
from .. import get_logger

if TYPE_CHECKING:
    from .search import GeodesicSearchResult

logger = get_logger(__name__)

# visitor(level, index, c0, c1, c2)
VisitFunc = Callable[[int, int, np.ndarray, np.ndarray, np.ndarray], None]


def _triple_product(a: np.ndarray, b: np.ndarray, v: np.ndarray) -> np.ndarray:
    """(a×b)·v（最終軸でブロードキャスト）"""
    return (np.cross(a, b) * v).sum(axis=-1)


def _subdivide(corners: np.ndarray, midpoints: np.ndarray) -> np.ndarray:
    """
    全三角形を4分割した次レベルの頂点配列を作成

    Args:
        corners: 現レベルの頂点 (n, 3, 3)
        midpoints: 現レベルの辺中点 (n, 3, 3)

    Returns:
        次レベルの頂点 (4n, 3, 3)、行 4i+k が子 k
    """
    c0, c1, c2 = corners[:, 0], corners[:, 1], corners[:, 2]
    e0, e1, e2 = midpoints[:, 0], midpoints[:, 1], midpoints[:, 2]
    children = np.stack([
        np.stack([c0, e2, e1], axis=1),
        np.stack([e2, c1, e0], axis=1),
        np.stack([e1, e0, c2], axis=1),
        np.stack([e0, e1, e2], axis=1),
    ], axis=1)
    return children.reshape(len(corners) * CHILDREN_PER_TRIANGLE, 3, 3)


class _SearchContext:
    """1回の領域検索で共有する状態"""

    __slots__ = ('normals', 'offsets', 'result', 'max_search_level', 'nodes_visited')

    def __init__(self, normals: np.ndarray, offsets: np.ndarray,
                 result: 'GeodesicSearchResult', max_search_level: int):
        self.normals = normals
        self.offsets = offsets
        self.result = result
        self.max_search_level = max_search_level
        self.nodes_visited = 0


class GeodesicGrid:
    """
    天球の測地グリッド

    構築後は読み取り専用で、複数の読み手から共有できます。
    検索結果のバッファは GeodesicSearchResult が呼び出し側ごとに保持します。
    """

    def __init__(self, max_level: int, check_unit_vectors: Optional[bool] = None):
        """
        初期化

        Args:
            max_level: 最大分割レベル（負の値は0として扱う）
            check_unit_vectors: 点検索の入力が単位ベクトルか確認するか
                （Noneの場合は設定ファイルから取得）
        """
        self.max_level = max(0, int(max_level))
        if check_unit_vectors is None:
            check_unit_vectors = get_config().grid.check_unit_vectors
        self.check_unit_vectors = check_unit_vectors

        self._root_normals = root_edge_normals()
        self._root_normals.setflags(write=False)
        # レベル l (0 <= l < max_level) の辺中点 (20*4^l, 3, 3)
        self._midpoints: List[np.ndarray] = []

        self.stats = {
            'build_time_ms': 0.0,
            'num_nodes': 0,
            'max_level': self.max_level,
        }

        self._build()

    @staticmethod
    def nr_of_zones(level: int) -> int:
        """レベルごとのゾーン数 20*4^level"""
        return nr_of_zones(level)

    @property
    def zone_count(self) -> int:
        """最大レベルのゾーン数"""
        return nr_of_zones(self.max_level)

    # ------------------------------
    #  構築
    # ------------------------------
    def _build(self):
        """全レベルの辺中点を構築"""
        start_time = time.perf_counter()

        corners = root_corner_array()
        for level in range(self.max_level):
            c0, c1, c2 = corners[:, 0], corners[:, 1], corners[:, 2]
            midpoints = normalize_rows(np.stack([c1 + c2, c2 + c0, c0 + c1], axis=1))
            self._check_midpoints(level, midpoints)
            midpoints.setflags(write=False)
            self._midpoints.append(midpoints)
            self.stats['num_nodes'] += len(midpoints)

            if level + 1 < self.max_level:
                corners = _subdivide(corners, midpoints)

        build_time = (time.perf_counter() - start_time) * 1000
        self.stats['build_time_ms'] = build_time
        logger.info(
            f"Geodesic grid built: max_level={self.max_level}, "
            f"nodes={self.stats['num_nodes']}, zones={self.zone_count}, {build_time:.1f}ms"
        )

    @staticmethod
    def _check_midpoints(level: int, midpoints: np.ndarray):
        """辺中点が有限な単位ベクトルであることを確認"""
        finite = np.all(np.isfinite(midpoints), axis=(1, 2))
        if not np.all(finite):
            index = int(np.argmin(finite))
            logger.critical(f"Degenerate edge midpoint at level {level}, index {index}")
            raise GridInvariantError(
                f"degenerate edge midpoint at level {level}, index {index}"
            )

    # ------------------------------
    #  ノード参照
    # ------------------------------
    def triangle(self, level: int, index: int) -> Triangle:
        """ノード (level, index) の辺中点を取得（level < max_level）"""
        if not 0 <= level < self.max_level:
            raise IndexError(f"No triangle nodes at level {level} (max_level={self.max_level})")
        e0, e1, e2 = self._midpoints[level][index]
        return Triangle(level=level, index=index, e0=e0, e1=e1, e2=e2)

    def midpoint_array(self, level: int) -> np.ndarray:
        """レベルの辺中点配列 (20*4^level, 3, 3)、読み取り専用"""
        return self._midpoints[level]

    def triangle_corners(self, level: int, index: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        ゾーン (level, index) の3頂点を取得

        Args:
            level: 0 <= level <= max_level
            index: 0 <= index < 20*4^level

        Returns:
            (c0, c1, c2)
        """
        if not 0 <= level <= self.max_level:
            raise IndexError(f"Level {level} out of range [0, {self.max_level}]")
        if not 0 <= index < nr_of_zones(level):
            raise IndexError(f"Zone {index} out of range at level {level}")
        return self._corners(level, index)

    def _corners(self, level: int, index: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        if level == 0:
            c0, c1, c2 = ICOSAHEDRON_TRIANGLES[index]
            return ICOSAHEDRON_CORNERS[c0], ICOSAHEDRON_CORNERS[c1], ICOSAHEDRON_CORNERS[c2]

        parent = index >> 2
        e0, e1, e2 = self._midpoints[level - 1][parent]
        child = index & 3
        if child == 3:
            return e0, e1, e2
        c0, c1, c2 = self._corners(level - 1, parent)
        if child == 0:
            return c0, e2, e1
        if child == 1:
            return e2, c1, e0
        return e1, e0, c2

    def corner_array(self, level: int) -> np.ndarray:
        """レベルの全ゾーンの頂点配列 (20*4^level, 3, 3)"""
        if not 0 <= level <= self.max_level:
            raise IndexError(f"Level {level} out of range [0, {self.max_level}]")
        corners = root_corner_array()
        for lev in range(level):
            corners = _subdivide(corners, self._midpoints[lev])
        return corners

    # ------------------------------
    #  全ノード走査
    # ------------------------------
    def visit_triangles(self, max_visit_level: int, visitor: Optional[VisitFunc]):
        """
        レベル0から max_visit_level までの全ノードを深さ優先で訪問

        Args:
            max_visit_level: 訪問する最大レベル（max_level で打ち切り）
            visitor: visitor(level, index, c0, c1, c2)
        """
        if visitor is None or max_visit_level < 0:
            return
        max_visit_level = min(max_visit_level, self.max_level)

        for i in range(NUM_ROOT_TRIANGLES):
            c0, c1, c2 = ICOSAHEDRON_TRIANGLES[i]
            self._visit(0, i,
                        ICOSAHEDRON_CORNERS[c0], ICOSAHEDRON_CORNERS[c1], ICOSAHEDRON_CORNERS[c2],
                        max_visit_level, visitor)

    def _visit(self, level: int, index: int,
               c0: np.ndarray, c1: np.ndarray, c2: np.ndarray,
               max_visit_level: int, visitor: VisitFunc):
        visitor(level, index, c0, c1, c2)
        if level < max_visit_level:
            e0, e1, e2 = self._midpoints[level][index]
            level += 1
            index <<= 2
            self._visit(level, index + 0, c0, e2, e1, max_visit_level, visitor)
            self._visit(level, index + 1, e2, c1, e0, max_visit_level, visitor)
            self._visit(level, index + 2, e1, e0, c2, max_visit_level, visitor)
            self._visit(level, index + 3, e0, e1, e2, max_visit_level, visitor)

    # ------------------------------
    #  点→ゾーン検索
    # ------------------------------
    def search_zone(self, v: VectorLike, search_level: int) -> int:
        """
        単位ベクトルを含むゾーン番号を検索

        ゾーン境界上の点は常に同じ1つのゾーンに割り当てられます。

        Args:
            v: 単位方向ベクトル
            search_level: 検索レベル（[0, max_level] に丸める）

        Returns:
            ゾーン番号

        Raises:
            GridInvariantError: どのレベル0三角形にも含まれない（NaN入力など）
        """
        v = as_vector(v)
        if self.check_unit_vectors and abs(np.dot(v, v) - 1.0) > UNIT_VECTOR_TOLERANCE:
            logger.warning(f"search_zone called with non-unit vector (|v|^2={np.dot(v, v):.12f})")
        search_level = min(max(search_level, 0), self.max_level)

        for i in range(NUM_ROOT_TRIANGLES):
            n = self._root_normals[i]
            if (n[0] * v).sum() >= 0.0 and (n[1] * v).sum() >= 0.0 and (n[2] * v).sum() >= 0.0:
                index = i
                for lev in range(search_level):
                    e0, e1, e2 = self._midpoints[lev][index]
                    index <<= 2
                    if _triple_product(e1, e2, v) <= 0.0:
                        pass
                    elif _triple_product(e2, e0, v) <= 0.0:
                        index += 1
                    elif _triple_product(e0, e1, v) <= 0.0:
                        index += 2
                    else:
                        index += 3
                return index

        logger.critical(f"No root triangle contains vector {v}")
        raise GridInvariantError(f"no root triangle contains vector {v}")

    def search_zones_for_points(self, vectors: np.ndarray, search_level: int) -> np.ndarray:
        """
        点群 (N, 3) のゾーン番号を一括検索

        search_zone と同じ境界の扱いでベクトル化したものです。

        Returns:
            ゾーン番号配列 (N,)
        """
        vectors = np.asarray(vectors, dtype=np.float64)
        if vectors.ndim != 2 or vectors.shape[1] != 3:
            raise ValueError(f"Expected an (N, 3) array, got shape {vectors.shape}")
        search_level = min(max(search_level, 0), self.max_level)
        if len(vectors) == 0:
            return np.zeros(0, dtype=np.int64)

        # (N, 20, 3) の辺判定
        dots = (self._root_normals[None, :, :, :] * vectors[:, None, None, :]).sum(axis=-1)
        in_root = np.all(dots >= 0.0, axis=2)
        found = in_root.any(axis=1)
        if not np.all(found):
            bad = vectors[int(np.argmin(found))]
            logger.critical(f"No root triangle contains vector {bad}")
            raise GridInvariantError(f"no root triangle contains vector {bad}")

        index = np.argmax(in_root, axis=1).astype(np.int64)
        for lev in range(search_level):
            t = self._midpoints[lev][index]
            e0, e1, e2 = t[:, 0], t[:, 1], t[:, 2]
            child = np.where(
                _triple_product(e1, e2, vectors) <= 0.0, 0,
                np.where(
                    _triple_product(e2, e0, vectors) <= 0.0, 1,
                    np.where(_triple_product(e0, e1, vectors) <= 0.0, 2, 3)
                )
            )
            index = (index << 2) + child
        return index

    # ------------------------------
    #  領域検索
    # ------------------------------
    def search_zones(self, half_spaces: Sequence[HalfSpace],
                     result: 'GeodesicSearchResult', max_search_level: int) -> int:
        """
        半空間の積集合に完全に含まれるゾーン（inside）と境界をまたぐゾーン（border）を検索

        ゾーンの3頂点が半空間に含まれればゾーン全体が含まれるものとみなします。
        各半空間の平面が原点を通る場合に正確です。
        結果は result のレベル別バッファに書き込まれます（事前に reset 済みであること）。

        Args:
            half_spaces: 1〜MAX_HALF_SPACES 個の半空間
            result: 書き込み先の検索結果
            max_search_level: 最大検索レベル（[0, max_level] に丸める）

        Returns:
            訪問したノード数
        """
        num = len(half_spaces)
        if num == 0:
            raise ValueError("At least one half space is required")
        if num > MAX_HALF_SPACES:
            raise ValueError(f"At most {MAX_HALF_SPACES} half spaces are supported, got {num}")
        if result.grid is not self:
            raise ValueError("Search result belongs to a different grid")

        max_search_level = min(max(max_search_level, 0), self.max_level)
        normals = np.stack([h.normal for h in half_spaces])
        offsets = np.array([h.offset for h in half_spaces], dtype=np.float64)
        ctx = _SearchContext(normals, offsets, result, max_search_level)

        # 12頂点 x N半空間 の内外判定を1回だけ計算
        corner_inside = [tuple(row) for row in ((ICOSAHEDRON_CORNERS @ normals.T) >= offsets).tolist()]
        used = tuple(range(num))
        for i in range(NUM_ROOT_TRIANGLES):
            c0, c1, c2 = ICOSAHEDRON_TRIANGLES[i]
            self._search_node(0, i, ctx, used,
                              corner_inside[c0], corner_inside[c1], corner_inside[c2])

        return ctx.nodes_visited

    def _search_node(self, level: int, index: int, ctx: _SearchContext,
                     used: Tuple[int, ...],
                     corner0_inside: Sequence[bool],
                     corner1_inside: Sequence[bool],
                     corner2_inside: Sequence[bool]):
        ctx.nodes_visited += 1

        undecided = []
        for h in used:
            a, b, c = corner0_inside[h], corner1_inside[h], corner2_inside[h]
            if not (a or b or c):
                # この半空間の完全に外側
                return
            if not (a and b and c):
                undecided.append(h)

        if not undecided:
            ctx.result._append_inside(level, index)
            return

        ctx.result._append_border(level, index)
        if level >= ctx.max_search_level:
            return

        midpoints = self._midpoints[level][index]
        flags = (midpoints @ ctx.normals[undecided].T) >= ctx.offsets[undecided]
        num = len(ctx.offsets)
        edge0_inside = [False] * num
        edge1_inside = [False] * num
        edge2_inside = [False] * num
        for j, h in enumerate(undecided):
            edge0_inside[h] = bool(flags[0, j])
            edge1_inside[h] = bool(flags[1, j])
            edge2_inside[h] = bool(flags[2, j])

        undecided = tuple(undecided)
        level += 1
        index <<= 2
        self._search_node(level, index + 0, ctx, undecided,
                          corner0_inside, edge2_inside, edge1_inside)
        self._search_node(level, index + 1, ctx, undecided,
                          edge2_inside, corner1_inside, edge0_inside)
        self._search_node(level, index + 2, ctx, undecided,
                          edge1_inside, edge0_inside, corner2_inside)
        self._search_node(level, index + 3, ctx, undecided,
                          edge0_inside, edge1_inside, edge2_inside)

    def get_performance_stats(self) -> dict:
        """構築統計取得"""
        return self.stats.copy()


# 便利関数

def build_grid(max_level: Optional[int] = None) -> GeodesicGrid:
    """
    測地グリッドを構築（簡単なインターフェース）

    Args:
        max_level: 最大分割レベル（Noneの場合は設定ファイルから取得）
    """
    if max_level is None:
        max_level = get_config().grid.max_level
    return GeodesicGrid(max_level)


def point_to_zone(grid: GeodesicGrid, level: int, unit_vector: VectorLike) -> int:
    """単位ベクトルを含むレベル level のゾーン番号"""
    return grid.search_zone(unit_vector, level)


def visit(grid: GeodesicGrid, max_level: int, visitor_fn: VisitFunc):
    """max_level までの全ノードを訪問"""
    grid.visit_triangles(max_level, visitor_fn)
