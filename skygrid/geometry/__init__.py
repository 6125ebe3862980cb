"""
SkyGrid 測地グリッド

正二十面体を再帰分割した天球ゾーンの空間インデックスです。

処理フロー:
1. 正二十面体の12頂点・20面 (icosahedron.py)
2. 辺中点の再帰的な構築 (grid.py)
3. 点→ゾーン検索・全ノード走査 (grid.py)
4. 半空間による領域検索と結果の列挙 (search.py)
"""

# 正二十面体
from .icosahedron import (
    ICOSAHEDRON_CORNERS,
    ICOSAHEDRON_TRIANGLES,
    root_triangle_corners,
)

# 共通型
from .types import (
    GridInvariantError,
    HalfSpace,
    Triangle,
    ZoneClass,
)

# ベクトル
from .vectors import (
    normalize,
    radec_to_vector,
    radec_to_vectors,
)

# グリッド
from .grid import (
    GeodesicGrid,
    build_grid,
    point_to_zone,
    visit,
)

# 検索結果
from .search import (
    GeodesicSearchResult,
    GeodesicSearchInsideIterator,
    GeodesicSearchBorderIterator,
    search,
    iterate_inside_leaves,
)

__all__ = [
    # 正二十面体
    'ICOSAHEDRON_CORNERS',
    'ICOSAHEDRON_TRIANGLES',
    'root_triangle_corners',

    # 共通型
    'GridInvariantError',
    'HalfSpace',
    'Triangle',
    'ZoneClass',

    # ベクトル
    'normalize',
    'radec_to_vector',
    'radec_to_vectors',

    # グリッド
    'GeodesicGrid',
    'build_grid',
    'point_to_zone',
    'visit',

    # 検索結果
    'GeodesicSearchResult',
    'GeodesicSearchInsideIterator',
    'GeodesicSearchBorderIterator',
    'search',
    'iterate_inside_leaves',
]
