#!/usr/bin/env python3
"""
ベクトルユーティリティ

正規化と赤経・赤緯から単位ベクトルへの変換を提供します。
"""

from typing import Union, Sequence

import numpy as np

from ..constants import MIN_VECTOR_NORM

VectorLike = Union[np.ndarray, Sequence[float]]


def as_vector(v: VectorLike) -> np.ndarray:
    """3要素のfloat64ベクトルに変換"""
    vec = np.asarray(v, dtype=np.float64)
    if vec.shape != (3,):
        raise ValueError(f"Expected a 3-vector, got shape {vec.shape}")
    return vec


def normalize_rows(vectors: np.ndarray) -> np.ndarray:
    """
    最終軸方向に正規化

    ゼロ長や非有限のベクトルはNaNになり、呼び出し側で検出できます。
    """
    norms = np.linalg.norm(vectors, axis=-1, keepdims=True)
    with np.errstate(divide='ignore', invalid='ignore'):
        normalized = vectors / norms
    normalized[np.broadcast_to(norms < MIN_VECTOR_NORM, normalized.shape)] = np.nan
    return normalized


def normalize(v: VectorLike) -> np.ndarray:
    """単一ベクトルを正規化"""
    vec = as_vector(v)
    norm = np.linalg.norm(vec)
    if not np.isfinite(norm) or norm < MIN_VECTOR_NORM:
        raise ValueError(f"Cannot normalize vector {vec}")
    return vec / norm


def radec_to_vector(ra_deg: float, dec_deg: float) -> np.ndarray:
    """
    赤経・赤緯（度）を単位ベクトルに変換

    座標系の変換は行わず、同じ座標系の直交座標を返すだけです。
    """
    ra = np.radians(ra_deg)
    dec = np.radians(dec_deg)
    cos_dec = np.cos(dec)
    return np.array([cos_dec * np.cos(ra), cos_dec * np.sin(ra), np.sin(dec)])


def radec_to_vectors(ra_deg: np.ndarray, dec_deg: np.ndarray) -> np.ndarray:
    """赤経・赤緯配列を単位ベクトル配列 (N, 3) に変換"""
    ra = np.radians(np.asarray(ra_deg, dtype=np.float64))
    dec = np.radians(np.asarray(dec_deg, dtype=np.float64))
    cos_dec = np.cos(dec)
    return np.stack([cos_dec * np.cos(ra), cos_dec * np.sin(ra), np.sin(dec)], axis=-1)
