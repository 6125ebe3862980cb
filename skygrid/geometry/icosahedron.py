#!/usr/bin/env python3
"""
正二十面体の定数データ

測地グリッドのレベル0（20ゾーン）となる12頂点と20面を定義します。
面の頂点順序は外側から見て反時計回り（det(c0, c1, c2) > 0）です。
ゾーン番号の互換性のため、頂点・面の順序は変更しないでください。
"""

from typing import Tuple

import numpy as np

from ..constants import ICOSAHEDRON_A as _A, ICOSAHEDRON_B as _B


def _readonly(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


ICOSAHEDRON_CORNERS = _readonly(np.array([
    [ _A, -_B, 0.0],
    [ _A,  _B, 0.0],
    [-_A,  _B, 0.0],
    [-_A, -_B, 0.0],
    [0.0,  _A, -_B],
    [0.0,  _A,  _B],
    [0.0, -_A,  _B],
    [0.0, -_A, -_B],
    [-_B, 0.0,  _A],
    [ _B, 0.0,  _A],
    [ _B, 0.0, -_A],
    [-_B, 0.0, -_A],
], dtype=np.float64))

ICOSAHEDRON_TRIANGLES = _readonly(np.array([
    [ 1,  0, 10],
    [ 0,  1,  9],
    [ 0,  9,  6],
    [ 9,  8,  6],
    [ 0,  7, 10],
    [ 6,  7,  0],
    [ 7,  6,  3],
    [ 6,  8,  3],
    [11, 10,  7],
    [ 7,  3, 11],
    [ 3,  2, 11],
    [ 2,  3,  8],
    [10, 11,  4],
    [ 2,  4, 11],
    [ 5,  4,  2],
    [ 2,  8,  5],
    [ 4,  1, 10],
    [ 4,  5,  1],
    [ 5,  9,  1],
    [ 8,  9,  5],
], dtype=np.intp))


def root_triangle_corners(index: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """レベル0三角形の3頂点を取得"""
    c0, c1, c2 = ICOSAHEDRON_TRIANGLES[index]
    return ICOSAHEDRON_CORNERS[c0], ICOSAHEDRON_CORNERS[c1], ICOSAHEDRON_CORNERS[c2]


def root_corner_array() -> np.ndarray:
    """全レベル0三角形の頂点配列 (20, 3, 3)"""
    return ICOSAHEDRON_CORNERS[ICOSAHEDRON_TRIANGLES]


def root_edge_normals() -> np.ndarray:
    """
    レベル0三角形の辺法線 (20, 3, 3)

    各三角形について c0×c1, c1×c2, c2×c0 を並べたもの。
    3つすべてとの内積が非負の点がその三角形に含まれます。
    """
    corners = root_corner_array()
    c0, c1, c2 = corners[:, 0], corners[:, 1], corners[:, 2]
    return np.stack([np.cross(c0, c1), np.cross(c1, c2), np.cross(c2, c0)], axis=1)
