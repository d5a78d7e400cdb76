#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
同构判定 Oracle

给定范畴 C 与态射 f: A → B，判定 f 是否为同构并返回逆见证 g: B → A，
满足 g ∘ f = id_A 且 f ∘ g = id_B。

判定路线（按能力视图选择，禁止运行时类型探测）:
1. as_linear() 可用: 奇异值秩判定（scipy.linalg.svd），满秩时 scipy.linalg.inv 求逆，
   并用范畴自身的 eq 复核两侧恒等
2. as_finite() 可用: 在 Hom(B, A) 中穷举双侧逆
3. 否则: 无可用 oracle，返回 holds=False（不抛出）

秩阈值: tol = max(m, n) · ε · σ_max（与 numpy.linalg.matrix_rank 默认一致）
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np
import scipy.linalg

from categorical_engine import CategoryBase, FiniteCategory, MatrixCategory, Morphism

_logger = logging.getLogger(__name__)

_FLOAT64_EPS = np.finfo(np.float64).eps


@dataclass(frozen=True)
class IsoWitness:
    """同构见证: forward ∘ inverse = id, inverse ∘ forward = id"""
    forward: Any
    inverse: Any


@dataclass(frozen=True)
class IsomorphismCheck:
    holds: bool
    witness: Optional[IsoWitness] = None
    details: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "holds": self.holds,
            "inverse": repr(self.witness.inverse) if self.witness else None,
            "details": self.details,
        }


def _round_trips(category: CategoryBase, f: Any, g: Any) -> bool:
    """g ∘ f = id_src 且 f ∘ g = id_dst"""
    id_src = category.identity(category.source(f))
    id_dst = category.identity(category.target(f))
    return (category.eq(category.compose(g, f), id_src)
            and category.eq(category.compose(f, g), id_dst))


def _check_linear(category: MatrixCategory, arrow: Morphism) -> IsomorphismCheck:
    if arrow.matrix is None:
        return IsomorphismCheck(False, None, f"{arrow!r} carries no matrix representation.")
    matrix = np.asarray(arrow.matrix, dtype=np.float64)
    rows, cols = matrix.shape
    if rows != cols:
        return IsomorphismCheck(
            False, None, f"{arrow!r} has non-square matrix {matrix.shape}; cannot be invertible."
        )
    singular_values = scipy.linalg.svd(matrix, compute_uv=False)
    sigma_max = float(singular_values[0]) if singular_values.size else 0.0
    tol = max(rows, cols) * _FLOAT64_EPS * sigma_max
    rank = int(np.sum(singular_values > tol))
    if rank < rows:
        return IsomorphismCheck(
            False, None, f"{arrow!r} has rank {rank} < {rows}; matrix is singular."
        )
    inverse = Morphism(
        source=arrow.target,
        target=arrow.source,
        name=f"{arrow.name}⁻¹" if arrow.name else "",
        matrix=scipy.linalg.inv(matrix),
    )
    if not _round_trips(category, arrow, inverse):
        return IsomorphismCheck(
            False, None, f"Numerical inverse of {arrow!r} fails the round-trip check."
        )
    return IsomorphismCheck(True, IsoWitness(arrow, inverse), "Matrix is invertible.")


def _check_finite(category: FiniteCategory, arrow: Any) -> IsomorphismCheck:
    src, dst = category.source(arrow), category.target(arrow)
    for candidate in category.hom(dst, src):
        if _round_trips(category, arrow, candidate):
            return IsomorphismCheck(
                True, IsoWitness(arrow, candidate), f"Found two-sided inverse {candidate!r}."
            )
    return IsomorphismCheck(
        False, None, f"No arrow in Hom({dst!r}, {src!r}) is a two-sided inverse of {arrow!r}."
    )


def check_isomorphism(category: CategoryBase, arrow: Any) -> IsomorphismCheck:
    """判定 arrow 在 category 中是否为同构"""
    linear = category.as_linear()
    if linear is not None:
        result = _check_linear(linear, arrow)
        _logger.debug("linear iso check on %r: %s", arrow, result.details)
        return result
    finite = category.as_finite()
    if finite is not None:
        result = _check_finite(finite, arrow)
        _logger.debug("finite iso check on %r: %s", arrow, result.details)
        return result
    return IsomorphismCheck(
        False, None,
        f"Category {category!r} exposes neither a finite nor a linear view; "
        "no isomorphism oracle applies.",
    )


__all__ = [
    "IsoWitness",
    "IsomorphismCheck",
    "check_isomorphism",
]
