#!/usr/bin/env python3
"""
測地グリッドの共通データ構造

三角形ノード、半空間、ゾーン分類、例外を定義し、
モジュール間の循環参照を防ぐために使用されます。
"""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

import numpy as np

from .vectors import VectorLike, as_vector


class GridInvariantError(RuntimeError):
    """グリッドの幾何学的不変条件が破れた（プログラム上の欠陥）"""


class ZoneClass(Enum):
    """検索結果におけるゾーンの分類"""
    INSIDE = "inside"      # 全半空間の内側
    BORDER = "border"      # 少なくとも1つの境界をまたぐ
    OUTSIDE = "outside"    # いずれかの半空間の完全に外側


@dataclass(frozen=True)
class Triangle:
    """
    三角形ノード

    e0, e1, e2 は頂点 c0, c1, c2 の対辺の中点を単位球に射影したもので、
    4つの子三角形の頂点を兼ねます。
    """
    level: int
    index: int
    e0: np.ndarray
    e1: np.ndarray
    e2: np.ndarray

    @property
    def edge_midpoints(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        return self.e0, self.e1, self.e2

    @property
    def first_child(self) -> int:
        """次レベルでの最初の子ゾーン番号"""
        return self.index << 2


@dataclass(frozen=True, eq=False)
class HalfSpace:
    """
    半空間 {x | x·normal >= offset}

    原点を通る平面（offset = 0）なら天球上の大円で区切られた半球、
    offset > 0 なら球帽を表します。
    """
    normal: np.ndarray
    offset: float = 0.0

    def __post_init__(self):
        normal = as_vector(self.normal).copy()
        normal.setflags(write=False)
        object.__setattr__(self, 'normal', normal)
        object.__setattr__(self, 'offset', float(self.offset))

    def inside(self, v: VectorLike) -> bool:
        """点が半空間に含まれるか"""
        return bool(np.dot(self.normal, v) >= self.offset)

    def inside_many(self, vectors: np.ndarray) -> np.ndarray:
        """点群 (..., 3) の内外判定"""
        return np.asarray(vectors, dtype=np.float64) @ self.normal >= self.offset

    def __eq__(self, other) -> bool:
        if not isinstance(other, HalfSpace):
            return NotImplemented
        return self.offset == other.offset and np.array_equal(self.normal, other.normal)

    def __hash__(self) -> int:
        return hash((tuple(self.normal.tolist()), self.offset))

    @staticmethod
    def from_cap(center: VectorLike, cos_radius: float) -> 'HalfSpace':
        """中心方向と角半径の余弦から球帽を作成"""
        return HalfSpace(normal=as_vector(center), offset=cos_radius)

    @staticmethod
    def from_great_circle(a: VectorLike, b: VectorLike) -> 'HalfSpace':
        """a→b の大円の左側（a×b 側）の半球"""
        return HalfSpace(normal=np.cross(as_vector(a), as_vector(b)), offset=0.0)
