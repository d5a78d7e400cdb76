#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
局部化的泛性质检验

定理（Gabriel-Zisman）: 若 F: C → D 把 S 中每个态射送到同构，则存在唯一
G: C[S⁻¹] → D 使 G ∘ L = F，且 G(n ∘ d⁻¹) = F(n) ∘ F(d)⁻¹。

给定候选 (F, G)，按顺序检验:
1. 分母求逆: F(d) 是同构（isomorphism_oracle），缓存逆见证
2. 因子分解: G ∘ L 与 F 在样本上一致（compare_functors）
3. 分式一致: 目标范畴可枚举时，对每个局部化态射 (d, n) 比较
   G((d, n)) 与 F(n) ∘ F(d)⁻¹；不可枚举时跳过并给出说明（不算失败）

工程红线:
- 结构前提（F / G / 局部化结果的源、目标范畴不匹配）是调用方违约，立即抛出
- 其余失败一律作为结构化数据返回，绝不抛出
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from calculus_of_fractions import (
    LocalizationContractError,
    LocalizationResult,
    LocalizedMorphism,
)
from functor_witness import (
    FunctorComparisonReport,
    FunctorWithWitness,
    compare_functors,
    compose_functors,
)
from isomorphism_oracle import IsoWitness, check_isomorphism

_logger = logging.getLogger(__name__)


class UniversalPropertyContractError(LocalizationContractError):
    """F、G 与局部化结果的范畴不匹配"""
    pass


@dataclass(frozen=True)
class DenominatorInversionFailure:
    arrow: Any
    reason: str


@dataclass(frozen=True)
class FractionAgreementFailure:
    arrow: LocalizedMorphism
    expected: Any
    actual: Any
    reason: str


@dataclass(frozen=True)
class LocalizationUniversalPropertyReport:
    """泛性质检验报告

    lift_respects_fractions 为 None 表示目标范畴不可枚举、分式一致性检验被跳过。
    """
    denominators_inverted: bool
    denominator_failures: Tuple[DenominatorInversionFailure, ...]
    factorization: FunctorComparisonReport
    lift_respects_fractions: Optional[bool]
    fraction_failures: Tuple[FractionAgreementFailure, ...]
    holds: bool
    details: Tuple[str, ...]

    @property
    def fraction_check_skipped(self) -> bool:
        return self.lift_respects_fractions is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "denominators_inverted": self.denominators_inverted,
            "denominator_failures": [
                {"arrow": repr(f.arrow), "reason": f.reason} for f in self.denominator_failures
            ],
            "factorization": self.factorization.to_dict(),
            "lift_respects_fractions": self.lift_respects_fractions,
            "fraction_failures": [
                {
                    "arrow": f.arrow.key,
                    "expected": repr(f.expected),
                    "actual": repr(f.actual),
                    "reason": f.reason,
                }
                for f in self.fraction_failures
            ],
            "holds": self.holds,
            "details": list(self.details),
        }


def _require_compatible(
    result: LocalizationResult,
    base_functor: FunctorWithWitness,
    lifted_functor: FunctorWithWitness,
) -> None:
    if base_functor.source is not result.base_category:
        raise UniversalPropertyContractError(
            "Base functor must originate from the localized category's source."
        )
    if lifted_functor.source is not result.localized_category:
        raise UniversalPropertyContractError("Lifted functor must originate from the localization.")
    if lifted_functor.target is not base_functor.target:
        raise UniversalPropertyContractError(
            "Lifted functor and base functor must share a target category."
        )


def localization_universal_property(
    result: LocalizationResult,
    base_functor: FunctorWithWitness,
    lifted_functor: FunctorWithWitness,
) -> LocalizationUniversalPropertyReport:
    """检验 lifted_functor 是否为 base_functor 经局部化函子的唯一分解"""
    _require_compatible(result, base_functor, lifted_functor)
    target = base_functor.target
    base = result.base_category

    # 1) 分母求逆
    denominator_failures: List[DenominatorInversionFailure] = []
    witnesses: Dict[int, IsoWitness] = {}
    checked = set()
    for denominator in result.denominators:
        index = result.arrow_index(denominator)
        if index in checked:
            continue
        checked.add(index)
        check = check_isomorphism(target, base_functor.on_morphisms(denominator))
        if not check.holds or check.witness is None:
            denominator_failures.append(DenominatorInversionFailure(
                denominator, check.details or "Denominator does not map to an isomorphism."
            ))
            continue
        witnesses[index] = check.witness
    denominators_inverted = not denominator_failures

    # S 缺少的恒等态射也是屋顶分母（局部化函子 f / id_X），只补见证不计入失败
    for obj in base.objects:
        identity = base.identity(obj)
        index = result.arrow_index(identity)
        if index in checked:
            continue
        checked.add(index)
        check = check_isomorphism(target, base_functor.on_morphisms(identity))
        if check.holds and check.witness is not None:
            witnesses[index] = check.witness

    # 2) 因子分解 G ∘ L = F
    factorization = compare_functors(
        compose_functors(lifted_functor, result.localization_functor),
        base_functor,
    )

    # 3) 分式一致 G(n ∘ d⁻¹) = F(n) ∘ F(d)⁻¹
    fraction_failures: List[FractionAgreementFailure] = []
    lift_respects_fractions: Optional[bool]
    if target.as_finite() is None:
        lift_respects_fractions = None
        _logger.debug("target %r has no finite view; fraction agreement skipped", target)
    else:
        for arrow in result.localized_category.arrows:
            actual = lifted_functor.on_morphisms(arrow)
            iso = witnesses.get(arrow.denominator_index)
            if iso is None:
                fraction_failures.append(FractionAgreementFailure(
                    arrow, None, actual,
                    "Missing isomorphism witness for denominator prevents reconstructing "
                    "the expected image.",
                ))
                continue
            numerator_image = base_functor.on_morphisms(arrow.numerator)
            if target.source(numerator_image) != target.target(iso.inverse):
                fraction_failures.append(FractionAgreementFailure(
                    arrow, None, actual,
                    "Numerator image does not start where the denominator inverse ends.",
                ))
                continue
            expected = target.compose(numerator_image, iso.inverse)
            if not target.eq(actual, expected):
                fraction_failures.append(FractionAgreementFailure(
                    arrow, expected, actual,
                    "Lifted functor disagrees with canonical fraction evaluation.",
                ))
        lift_respects_fractions = not fraction_failures

    holds = denominators_inverted and factorization.holds and lift_respects_fractions is not False

    details = (
        "Base functor sends denominators to isomorphisms."
        if denominators_inverted
        else "Base functor fails to invert the specified denominators.",
        "Lift factors through the localization on supplied samples."
        if factorization.holds
        else "Composite of lift with localization functor disagrees with the base functor.",
        "Target category lacks a finite witness; canonical fraction comparisons were skipped."
        if lift_respects_fractions is None
        else "Lifted functor matches canonical roof evaluation on every localized arrow."
        if lift_respects_fractions
        else "Lifted functor disagrees with canonical roof evaluation.",
    )
    _logger.info(
        "universal property on %s: inverted=%s factorization=%s fractions=%s holds=%s",
        base.name or "category", denominators_inverted, factorization.holds,
        lift_respects_fractions, holds,
    )
    return LocalizationUniversalPropertyReport(
        denominators_inverted=denominators_inverted,
        denominator_failures=tuple(denominator_failures),
        factorization=factorization,
        lift_respects_fractions=lift_respects_fractions,
        fraction_failures=tuple(fraction_failures),
        holds=holds,
        details=details,
    )


__all__ = [
    "UniversalPropertyContractError",
    "DenominatorInversionFailure",
    "FractionAgreementFailure",
    "LocalizationUniversalPropertyReport",
    "localization_universal_property",
]
