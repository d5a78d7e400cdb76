#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
函子见证: Functor With Witness

函子 F: C → D 由对象映射 F0 与态射映射 F1 给出，并附带在样本上的验证见证:
1. 恒等律  F(id_A) = id_{F(A)}
2. 复合律  F(g ∘ f) = F(g) ∘ F(f)
3. 端点律  F(f): F(src f) → F(dst f)

与 FunctorBase 的"违规即抛出"不同，这里的见证把违规记录为数据；
需要硬失败的调用方使用 FunctorWithWitness.reject_if_violated()。

工具:
- construct_functor_with_witness: 构造并验证
- compose_functors: 函子复合 G ∘ F
- compare_functors: 在样本上比较两个平行函子
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from categorical_engine import (
    CategoricalError,
    CategoryBase,
    CompositionUndefinedError,
    FiniteCategory,
    FunctorLawViolation,
)

_logger = logging.getLogger(__name__)


# ============================================================================
# Section 1: 样本与检查结果
# ============================================================================

@dataclass(frozen=True)
class FunctorSamples:
    """函子验证样本

    composable_pairs 中的 (f, g) 满足 target(f) == source(g)，对应复合 g ∘ f
    """
    objects: Tuple[Any, ...] = ()
    arrows: Tuple[Any, ...] = ()
    composable_pairs: Tuple[Tuple[Any, Any], ...] = ()


def samples_from_finite(category: FiniteCategory) -> FunctorSamples:
    """有限范畴的完整样本: 全部对象、全部态射、全部可复合对"""
    return FunctorSamples(
        objects=tuple(category.objects),
        arrows=tuple(category.arrows),
        composable_pairs=tuple(category.composable_pairs()),
    )


@dataclass(frozen=True)
class FunctorIdentityFailure:
    object: Any
    expected_identity: Any
    mapped_identity: Any
    reason: str


@dataclass(frozen=True)
class FunctorCompositionFailure:
    pair: Tuple[Any, Any]
    expected_composite: Any
    mapped_composite: Any
    reason: str


@dataclass(frozen=True)
class FunctorEndpointFailure:
    arrow: Any
    expected_endpoints: Tuple[Any, Any]
    mapped_endpoints: Tuple[Any, Any]
    reason: str


@dataclass(frozen=True)
class FunctorWitness:
    """函子在样本上的验证见证"""
    source: CategoryBase
    target: CategoryBase
    samples: FunctorSamples
    identity_failures: Tuple[FunctorIdentityFailure, ...] = ()
    composition_failures: Tuple[FunctorCompositionFailure, ...] = ()
    ignored_pairs: Tuple[Tuple[Any, Any], ...] = ()
    endpoint_failures: Tuple[FunctorEndpointFailure, ...] = ()
    metadata: Tuple[str, ...] = ()

    @property
    def preserves_identities(self) -> bool:
        return not self.identity_failures

    @property
    def preserves_composition(self) -> bool:
        return not self.composition_failures

    @property
    def respects_endpoints(self) -> bool:
        return not self.endpoint_failures

    @property
    def holds(self) -> bool:
        return self.preserves_identities and self.preserves_composition and self.respects_endpoints

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": repr(self.source),
            "target": repr(self.target),
            "holds": self.holds,
            "identity_failures": [
                {"object": repr(f.object), "reason": f.reason} for f in self.identity_failures
            ],
            "composition_failures": [
                {"pair": [repr(p) for p in f.pair], "reason": f.reason}
                for f in self.composition_failures
            ],
            "endpoint_failures": [
                {"arrow": repr(f.arrow), "reason": f.reason} for f in self.endpoint_failures
            ],
            "ignored_pairs": len(self.ignored_pairs),
            "metadata": list(self.metadata),
        }


@dataclass(frozen=True)
class FunctorWithWitness:
    """函子 + 见证

    Attributes:
        on_objects: F0
        on_morphisms: F1
        witness: 样本验证结果（含源/目标范畴）
        name: 调试名称
    """
    on_objects: Callable[[Any], Any]
    on_morphisms: Callable[[Any], Any]
    witness: FunctorWitness
    name: str = ""

    @property
    def source(self) -> CategoryBase:
        return self.witness.source

    @property
    def target(self) -> CategoryBase:
        return self.witness.target

    def __call__(self, arrow: Any) -> Any:
        return self.on_morphisms(arrow)

    def reject_if_violated(self) -> None:
        """见证中存在任何违规时抛出 FunctorLawViolation"""
        name = self.name or "functor"
        if self.witness.identity_failures:
            first = self.witness.identity_failures[0]
            raise FunctorLawViolation(name, "identity", f"{first.object!r}: {first.reason}")
        if self.witness.composition_failures:
            first = self.witness.composition_failures[0]
            g_f = f"{first.pair[1]!r} ∘ {first.pair[0]!r}"
            raise FunctorLawViolation(name, "composition", f"{g_f}: {first.reason}")
        if self.witness.endpoint_failures:
            first = self.witness.endpoint_failures[0]
            raise FunctorLawViolation(name, "endpoint", f"{first.arrow!r}: {first.reason}")


# ============================================================================
# Section 2: 函子律检查（违规记录为数据）
# ============================================================================

def _check_identities(
    C: CategoryBase, D: CategoryBase,
    F0: Callable[[Any], Any], F1: Callable[[Any], Any],
    objects: Sequence[Any],
) -> List[FunctorIdentityFailure]:
    failures: List[FunctorIdentityFailure] = []
    for obj in objects:
        mapped = F1(C.identity(obj))
        expected = D.identity(F0(obj))
        reasons: List[str] = []
        if D.source(mapped) != D.source(expected):
            reasons.append(
                f"mapped identity has source {D.source(mapped)!r} instead of {D.source(expected)!r}"
            )
        if D.target(mapped) != D.target(expected):
            reasons.append(
                f"mapped identity has target {D.target(mapped)!r} instead of {D.target(expected)!r}"
            )
        if not reasons and not D.eq(mapped, expected):
            reasons.append("mapped identity arrow differs from target identity under equality check")
        if reasons:
            failures.append(FunctorIdentityFailure(obj, expected, mapped, "; ".join(reasons)))
    return failures


def _check_compositions(
    C: CategoryBase, D: CategoryBase,
    F1: Callable[[Any], Any],
    pairs: Sequence[Tuple[Any, Any]],
) -> Tuple[List[FunctorCompositionFailure], List[Tuple[Any, Any]]]:
    failures: List[FunctorCompositionFailure] = []
    ignored: List[Tuple[Any, Any]] = []
    for f, g in pairs:
        if C.target(f) != C.source(g):
            ignored.append((f, g))
            continue
        try:
            composite = C.compose(g, f)
        except CompositionUndefinedError:
            # 源范畴中复合不存在（部分局部化）: 无可比较之物
            ignored.append((f, g))
            continue
        mapped = F1(composite)
        image_f, image_g = F1(f), F1(g)
        if D.target(image_f) != D.source(image_g):
            failures.append(FunctorCompositionFailure(
                (f, g), None, mapped, "images of the pair are not composable in target"
            ))
            continue
        try:
            expected = D.compose(image_g, image_f)
        except CompositionUndefinedError as e:
            failures.append(FunctorCompositionFailure(
                (f, g), None, mapped, f"composite of images is undefined in target: {e}"
            ))
            continue
        reasons: List[str] = []
        if D.source(mapped) != D.source(expected) or D.target(mapped) != D.target(expected):
            reasons.append("mapped composite has different endpoints than composed images")
        elif not D.eq(mapped, expected):
            reasons.append("mapped composite differs from composed images under equality check")
        if reasons:
            failures.append(FunctorCompositionFailure((f, g), expected, mapped, "; ".join(reasons)))
    return failures, ignored


def _check_endpoints(
    C: CategoryBase, D: CategoryBase,
    F0: Callable[[Any], Any], F1: Callable[[Any], Any],
    arrows: Sequence[Any],
) -> List[FunctorEndpointFailure]:
    failures: List[FunctorEndpointFailure] = []
    for arrow in arrows:
        mapped = F1(arrow)
        expected = (F0(C.source(arrow)), F0(C.target(arrow)))
        actual = (D.source(mapped), D.target(mapped))
        if actual[0] != expected[0] or actual[1] != expected[1]:
            failures.append(FunctorEndpointFailure(
                arrow, expected, actual,
                f"mapped arrow runs {actual[0]!r} → {actual[1]!r} instead of "
                f"{expected[0]!r} → {expected[1]!r}",
            ))
    return failures


def construct_functor_with_witness(
    source: CategoryBase,
    target: CategoryBase,
    on_objects: Callable[[Any], Any],
    on_morphisms: Callable[[Any], Any],
    samples: Optional[FunctorSamples] = None,
    metadata: Sequence[str] = (),
    name: str = "",
) -> FunctorWithWitness:
    """构造函子并在样本上验证函子律

    samples 缺省时: 源范畴有限则取全部样本，否则样本为空
    """
    if samples is None:
        finite = source.as_finite()
        samples = samples_from_finite(finite) if finite is not None else FunctorSamples()

    identity_failures = _check_identities(source, target, on_objects, on_morphisms, samples.objects)
    composition_failures, ignored = _check_compositions(
        source, target, on_morphisms, samples.composable_pairs
    )
    endpoint_failures = _check_endpoints(source, target, on_objects, on_morphisms, samples.arrows)

    witness = FunctorWitness(
        source=source,
        target=target,
        samples=samples,
        identity_failures=tuple(identity_failures),
        composition_failures=tuple(composition_failures),
        ignored_pairs=tuple(ignored),
        endpoint_failures=tuple(endpoint_failures),
        metadata=tuple(metadata),
    )
    _logger.debug(
        "functor %s: %d objects, %d arrows, %d pairs sampled; holds=%s",
        name or "<anonymous>", len(samples.objects), len(samples.arrows),
        len(samples.composable_pairs), witness.holds,
    )
    return FunctorWithWitness(
        on_objects=on_objects,
        on_morphisms=on_morphisms,
        witness=witness,
        name=name,
    )


# ============================================================================
# Section 3: 复合与比较
# ============================================================================

def compose_functors(outer: FunctorWithWitness, inner: FunctorWithWitness) -> FunctorWithWitness:
    """函子复合 outer ∘ inner: C → E（inner: C → D, outer: D → E）"""
    if inner.target is not outer.source:
        raise CategoricalError(
            f"Cannot compose functors: inner target {inner.target!r} is not "
            f"outer source {outer.source!r}"
        )
    name = f"{outer.name or 'G'} ∘ {inner.name or 'F'}"
    return construct_functor_with_witness(
        inner.source,
        outer.target,
        lambda obj: outer.on_objects(inner.on_objects(obj)),
        lambda arrow: outer.on_morphisms(inner.on_morphisms(arrow)),
        samples=inner.witness.samples,
        metadata=(f"Composite functor {name}.",),
        name=name,
    )


@dataclass(frozen=True)
class FunctorComparisonReport:
    """两个平行函子在样本上的比较"""
    holds: bool
    object_mismatches: Tuple[Tuple[Any, Any, Any], ...] = ()
    arrow_mismatches: Tuple[Tuple[Any, Any, Any], ...] = ()
    details: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "holds": self.holds,
            "object_mismatches": [
                [repr(x) for x in m] for m in self.object_mismatches
            ],
            "arrow_mismatches": [
                [repr(x) for x in m] for m in self.arrow_mismatches
            ],
            "details": list(self.details),
        }


def compare_functors(
    left: FunctorWithWitness,
    right: FunctorWithWitness,
    samples: Optional[FunctorSamples] = None,
) -> FunctorComparisonReport:
    """在样本上比较 left 与 right（默认样本取 left 的见证样本）

    对象用 == 比较，态射用目标范畴的 eq 比较。
    """
    if left.source is not right.source:
        raise CategoricalError("Compared functors must share their source category.")
    if left.target is not right.target:
        raise CategoricalError("Compared functors must share their target category.")
    if samples is None:
        samples = left.witness.samples
    target = left.target

    object_mismatches: List[Tuple[Any, Any, Any]] = []
    for obj in samples.objects:
        lhs, rhs = left.on_objects(obj), right.on_objects(obj)
        if lhs != rhs:
            object_mismatches.append((obj, lhs, rhs))

    arrow_mismatches: List[Tuple[Any, Any, Any]] = []
    for arrow in samples.arrows:
        lhs, rhs = left.on_morphisms(arrow), right.on_morphisms(arrow)
        if not target.eq(lhs, rhs):
            arrow_mismatches.append((arrow, lhs, rhs))

    holds = not object_mismatches and not arrow_mismatches
    details = [
        "Functors agree on every sampled object."
        if not object_mismatches
        else f"Functors disagree on {len(object_mismatches)} sampled object(s).",
        "Functors agree on every sampled arrow."
        if not arrow_mismatches
        else f"Functors disagree on {len(arrow_mismatches)} sampled arrow(s).",
    ]
    return FunctorComparisonReport(
        holds=holds,
        object_mismatches=tuple(object_mismatches),
        arrow_mismatches=tuple(arrow_mismatches),
        details=tuple(details),
    )


__all__ = [
    "FunctorSamples",
    "samples_from_finite",
    "FunctorIdentityFailure",
    "FunctorCompositionFailure",
    "FunctorEndpointFailure",
    "FunctorWitness",
    "FunctorWithWitness",
    "construct_functor_with_witness",
    "compose_functors",
    "FunctorComparisonReport",
    "compare_functors",
]
