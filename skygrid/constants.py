#!/usr/bin/env python3
"""
共通定数

正二十面体の形状定数、ゾーン数、検索バッファ容量などを一元管理します。
"""

import math
from typing import Final

# =============================================================================
# 正二十面体
# =============================================================================

# 黄金比とそれから導かれる単位球上の頂点座標成分
ICOSAHEDRON_G: Final[float] = 0.5 * (1.0 + math.sqrt(5.0))
ICOSAHEDRON_B: Final[float] = 1.0 / math.sqrt(1.0 + ICOSAHEDRON_G * ICOSAHEDRON_G)
ICOSAHEDRON_A: Final[float] = ICOSAHEDRON_B * ICOSAHEDRON_G

NUM_ROOT_TRIANGLES: Final[int] = 20

# 1つの三角形が持つ子三角形の数
CHILDREN_PER_TRIANGLE: Final[int] = 4

# =============================================================================
# グリッド・検索
# =============================================================================

# デフォルト最大分割レベル（20*4^7 = 327680 ゾーン）
DEFAULT_MAX_LEVEL: Final[int] = 7

# 1回の領域検索で使える半空間の最大数（キャップ=1, 視野四角形=4）
MAX_HALF_SPACES: Final[int] = 4

# 正規化で許容する最小ノルム
MIN_VECTOR_NORM: Final[float] = 1e-12

# 単位ベクトル判定の許容誤差
UNIT_VECTOR_TOLERANCE: Final[float] = 1e-9

# ゾーン番号の格納型
ZONE_ID_DTYPE: Final[str] = "int32"


def nr_of_zones(level: int) -> int:
    """レベルごとのゾーン数 20*4^level"""
    return NUM_ROOT_TRIANGLES * CHILDREN_PER_TRIANGLE ** level
