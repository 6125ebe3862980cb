#!/usr/bin/env python3
"""
テスト共通フィクスチャ

ロギング、処理時間・メモリ計測、共有グリッド、
総当たり判定などの補助関数をまとめています。
"""

import gc
import os
import sys
import tempfile
import time
from dataclasses import dataclass
from typing import Iterator, Optional

import numpy as np
import psutil
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from skygrid import setup_logging, get_logger
from skygrid.geometry import GeodesicGrid, HalfSpace


# -----------------------------------------------------------------------------
# ロギング
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session", autouse=True)
def session_logging():
    setup_logging(level="DEBUG", format_style="debug")
    logger = get_logger("tests")
    logger.info("skygrid テスト開始")
    yield
    logger.info("skygrid テスト終了")


@pytest.fixture
def test_logger():
    return get_logger("tests")


# -----------------------------------------------------------------------------
# 計測
# -----------------------------------------------------------------------------

@dataclass
class Measurement:
    """1区間の計測値"""
    elapsed_ms: float
    rss_delta_mb: float
    ops_per_sec: Optional[float] = None

    def report(self, logger, label: str, budget_ms: Optional[float] = None) -> bool:
        """計測値をINFOログに出力し、予算内かどうかを返す"""
        line = f"[{label}] {self.elapsed_ms:.2f}ms, RSS {self.rss_delta_mb:+.2f}MB"
        if self.ops_per_sec is not None:
            line += f", {self.ops_per_sec:,.0f} ops/s"
        within = budget_ms is None or self.elapsed_ms <= budget_ms
        if budget_ms is not None:
            line += f" (予算 {budget_ms:.0f}ms: {'OK' if within else 'NG'})"
        logger.info(line)
        return within


class Stopwatch:
    """perf_counter と psutil の RSS による区間計測"""

    def __init__(self):
        self._process = psutil.Process()
        self._t0 = 0.0
        self._rss0 = 0.0

    def _rss_mb(self) -> float:
        return self._process.memory_info().rss / (1024 * 1024)

    def start(self):
        gc.collect()
        self._rss0 = self._rss_mb()
        self._t0 = time.perf_counter()

    def stop(self, operations: Optional[int] = None) -> Measurement:
        elapsed_ms = (time.perf_counter() - self._t0) * 1000
        ops = operations / (elapsed_ms / 1000) if operations and elapsed_ms > 0 else None
        return Measurement(elapsed_ms, self._rss_mb() - self._rss0, ops)


@pytest.fixture
def stopwatch() -> Stopwatch:
    return Stopwatch()


def assert_within_budget(measurement: Measurement, budget_ms: float, label: str):
    assert measurement.elapsed_ms <= budget_ms, (
        f"{label}: {measurement.elapsed_ms:.2f}ms が予算 {budget_ms:.0f}ms を超過"
    )


def assert_unit_vectors(vectors: np.ndarray, tolerance: float = 1e-12):
    error = np.abs(np.linalg.norm(vectors, axis=-1) - 1.0)
    assert np.all(error <= tolerance), f"単位ベクトルでない要素 (max |norm-1| = {error.max()})"


@pytest.fixture
def temp_directory() -> Iterator[str]:
    with tempfile.TemporaryDirectory(prefix="skygrid_") as path:
        yield path


# -----------------------------------------------------------------------------
# グリッドと幾何データ
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def small_grid() -> GeodesicGrid:
    """レベル3（1280ゾーン）"""
    return GeodesicGrid(3)


@pytest.fixture(scope="session")
def medium_grid() -> GeodesicGrid:
    """レベル6（81920ゾーン）"""
    return GeodesicGrid(6)


@pytest.fixture
def hemisphere_north() -> HalfSpace:
    return HalfSpace(np.array([0.0, 0.0, 1.0]), 0.0)


def random_unit_vectors(count: int, seed: int = 42) -> np.ndarray:
    """再現可能なランダム単位ベクトル (count, 3)"""
    rng = np.random.default_rng(seed)
    vectors = rng.normal(size=(count, 3))
    return vectors / np.linalg.norm(vectors, axis=1, keepdims=True)


def field_of_view_corners(center: np.ndarray, half_width: float) -> np.ndarray:
    """
    中心方向のまわりの視野四隅 (4, 3)

    外側から見て反時計回りの順序で返します。
    """
    center = center / np.linalg.norm(center)
    helper = np.array([0.0, 0.0, 1.0]) if abs(center[2]) < 0.9 else np.array([1.0, 0.0, 0.0])
    u = np.cross(helper, center)
    u /= np.linalg.norm(u)
    w = np.cross(center, u)
    t = np.tan(half_width)
    corners = np.array([
        center + t * (-u - w),
        center + t * (u - w),
        center + t * (u + w),
        center + t * (-u + w),
    ])
    return corners / np.linalg.norm(corners, axis=1, keepdims=True)


def brute_force_inside(grid: GeodesicGrid, level: int, half_spaces) -> np.ndarray:
    """全ゾーンの3頂点を直接判定して inside ゾーン番号を返す"""
    corners = grid.corner_array(level)
    inside = np.ones(len(corners), dtype=bool)
    for half_space in half_spaces:
        inside &= np.all(corners @ half_space.normal >= half_space.offset, axis=1)
    return np.nonzero(inside)[0]


def fully_outside(corners: np.ndarray, half_spaces) -> bool:
    """3頂点すべてがいずれかの半空間の外側にあるか"""
    return any(
        bool(np.all(corners @ h.normal < h.offset)) for h in half_spaces
    )


# -----------------------------------------------------------------------------
# マーカー
# -----------------------------------------------------------------------------

def pytest_collection_modifyitems(config, items):
    """ファイル名から performance / unit マーカーを付与"""
    for item in items:
        if "performance" in item.nodeid:
            item.add_marker(pytest.mark.performance)
            item.add_marker(pytest.mark.slow)
        elif "cli_test" in item.nodeid:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
