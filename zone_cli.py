#!/usr/bin/env python3
"""
CLI ゾーン検索ユーティリティ

SkyGrid の測地グリッド (skygrid.geometry) をコマンドラインから直接操作して、
ゾーン番号や領域検索の結果を確認するための小さなデバッグツールです。

使い方:
    python zone_cli.py lookup --ra 83.8 --dec -5.4 --level 6
    python zone_cli.py cap --ra 83.8 --dec -5.4 --radius 2.0 --level 6
    python zone_cli.py info --level 4
"""

from __future__ import annotations

import argparse
import math
import sys
from pathlib import Path
from typing import List, Optional

from skygrid import setup_logging, get_logger
from skygrid.config import load_config
from skygrid.geometry import (
    GeodesicGrid,
    GeodesicSearchResult,
    GeodesicSearchInsideIterator,
    radec_to_vector,
)

logger = get_logger(__name__)

# 葉ゾーンを表示する最大数
MAX_PRINTED_ZONES = 32


def create_argument_parser() -> argparse.ArgumentParser:
    """コマンドライン引数パーサーを作成"""
    parser = argparse.ArgumentParser(
        description="SkyGrid 測地グリッド ゾーン検索ツール",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('--config', type=Path, default=None, help='設定ファイル (YAML)')
    parser.add_argument('--log-level', type=str, default=None, help='ログレベル (DEBUG, INFO, ...)')

    subparsers = parser.add_subparsers(dest='command', required=True)

    lookup = subparsers.add_parser('lookup', help='方向を含むゾーン番号を表示')
    add_direction_arguments(lookup)
    lookup.add_argument('--level', type=int, default=None, help='検索レベル')

    cap = subparsers.add_parser('cap', help='球帽と交差するゾーンを表示')
    add_direction_arguments(cap)
    cap.add_argument('--radius', type=float, required=True, help='角半径（度）')
    cap.add_argument('--level', type=int, default=None, help='最大検索レベル')

    info = subparsers.add_parser('info', help='グリッドのゾーン数と構築統計を表示')
    info.add_argument('--level', type=int, default=None, help='最大分割レベル')

    return parser


def add_direction_arguments(parser: argparse.ArgumentParser):
    """方向指定の引数を追加"""
    parser.add_argument('--ra', type=float, required=True, help='赤経（度）')
    parser.add_argument('--dec', type=float, required=True, help='赤緯（度）')


def run_lookup(grid: GeodesicGrid, args: argparse.Namespace) -> int:
    level = grid.max_level if args.level is None else args.level
    zone = grid.search_zone(radec_to_vector(args.ra, args.dec), level)
    print(f"RA={args.ra:.4f} Dec={args.dec:.4f} -> level {min(max(level, 0), grid.max_level)} zone {zone}")
    return 0


def run_cap(grid: GeodesicGrid, args: argparse.Namespace) -> int:
    if not 0.0 <= args.radius <= 180.0:
        print(f"[ERROR] 半径は 0〜180 度で指定してください: {args.radius}")
        return 2
    level = grid.max_level if args.level is None else args.level
    center = radec_to_vector(args.ra, args.dec)
    result = GeodesicSearchResult(grid).search_cap(center, math.cos(math.radians(args.radius)), level)

    for lev in range(result.max_search_level + 1):
        print(f"level {lev}: inside={result.inside_count(lev)} border={result.border_count(lev)}")

    leaves = list(GeodesicSearchInsideIterator(result, result.max_search_level))
    shown = ' '.join(str(z) for z in leaves[:MAX_PRINTED_ZONES])
    suffix = ' ...' if len(leaves) > MAX_PRINTED_ZONES else ''
    print(f"inside leaves at level {result.max_search_level}: {len(leaves)}")
    if leaves:
        print(f"  {shown}{suffix}")
    stats = result.get_performance_stats()
    print(f"nodes visited: {stats['last_nodes_visited']}, {stats['last_search_time_ms']:.2f}ms")
    return 0


def run_info(grid: GeodesicGrid, args: argparse.Namespace) -> int:
    for lev in range(grid.max_level + 1):
        print(f"level {lev}: {GeodesicGrid.nr_of_zones(lev)} zones")
    stats = grid.get_performance_stats()
    print(f"nodes: {stats['num_nodes']}, build: {stats['build_time_ms']:.1f}ms")
    return 0


COMMANDS = {
    'lookup': run_lookup,
    'cap': run_cap,
    'info': run_info,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    setup_logging(level=args.log_level or config.log_level, format_style=config.log_format_style)

    # 指定レベルまでのグリッドだけを構築
    max_level = config.grid.max_level
    if args.level is not None:
        max_level = max(args.level, 0)

    grid = GeodesicGrid(max_level)
    return COMMANDS[args.command](grid, args)


if __name__ == "__main__":
    sys.exit(main())
