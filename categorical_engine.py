#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
范畴核心: Categorical Engine (有限范畴 + 线性范畴)

为分式演算局部化提供最小而严格的范畴基础:
1. Object / Morphism - 对象与态射（态射可携带 numpy 矩阵表示）
2. CategoryBase      - 抽象范畴接口: identity / compose / source / target / eq
3. FiniteCategory    - 显式有限见证: 对象表 + 态射表 + 复合函数
4. MatrixCategory    - 线性代数范畴: 复合 = 矩阵乘法, 相等 = 相对容差比较

能力视图（禁止运行时类型探测）:
- as_finite(): 若范畴可枚举全部态射则返回 FiniteCategory 句柄，否则 None
- as_linear(): 若范畴具备矩阵表示则返回 MatrixCategory 句柄，否则 None

工程红线:
- 复合约定固定为 compose(g, f) = g ∘ f（f 先作用）
- 禁止猜测复合: 复合表缺项必须抛出 CompositionUndefinedError，不得回退到任意态射
- 禁魔法数: 容差从 float64 机器精度推导
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import (
    Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
)

import numpy as np

_logger = logging.getLogger(__name__)

# ============================================================================
# Section 0: 数值常数与异常定义
# ============================================================================

_FLOAT64_EPS = np.finfo(np.float64).eps
# 矩阵态射相等的相对容差系数: √ε（Golub-Van Loan 截断量级）
_MORPHISM_EQ_REL_TOL = float(np.sqrt(_FLOAT64_EPS))


class CategoricalError(Exception):
    """范畴论引擎基础异常"""
    pass


class CompositionUndefinedError(CategoricalError):
    """复合在该范畴中不存在

    与边界不匹配（调用方违约）不同: 这里两个态射端点相容，
    但范畴无法给出复合（例如复合表缺项、Ore 方块不存在）。
    """
    pass


class FunctorLawViolation(CategoricalError):
    """函子律违反异常

    当 F(id) ≠ id 或 F(g∘f) ≠ F(g)∘F(f) 或端点不一致时抛出
    """
    def __init__(self, functor_name: str, law: str, details: str):
        self.functor_name = functor_name
        self.law = law  # "identity" / "composition" / "endpoint"
        self.details = details
        super().__init__(f"Functor '{functor_name}' violates {law} law: {details}")


# ============================================================================
# Section 1: Categorical Core - 基础抽象
# ============================================================================

@dataclass(frozen=True)
class Object:
    """范畴中的对象

    Attributes:
        id: 对象唯一标识符
        dimension: 对象维度（用于线性代数表示）
        data: 可选的附加数据
    """
    id: str
    dimension: int = 1
    data: Optional[Any] = None

    def __hash__(self):
        return hash(self.id)

    def __eq__(self, other):
        if not isinstance(other, Object):
            return False
        return self.id == other.id

    def __repr__(self):
        return f"Object({self.id})"


@dataclass(eq=False)
class Morphism:
    """范畴中的态射（箭头） f: A → B

    Attributes:
        source: 源对象 A
        target: 目标对象 B
        name: 态射名称（有限范畴中作为身份）
        matrix: 线性代数表示（可选，形状 target.dimension × source.dimension）
    """
    source: Object
    target: Object
    name: str = ""
    matrix: Optional[np.ndarray] = None

    def __post_init__(self):
        if self.matrix is not None:
            self.matrix = np.asarray(self.matrix, dtype=np.float64)
            if self.matrix.shape != (self.target.dimension, self.source.dimension):
                raise ValueError(
                    f"Matrix shape {self.matrix.shape} incompatible with "
                    f"morphism {self.source.dimension} → {self.target.dimension}"
                )

    def __hash__(self):
        return hash((self.source.id, self.target.id, self.name))

    def __eq__(self, other):
        if not isinstance(other, Morphism):
            return False
        return (self.source == other.source and
                self.target == other.target and
                self.name == other.name)

    def __repr__(self):
        name_str = f"'{self.name}'" if self.name else ""
        return f"Morphism{name_str}({self.source.id} → {self.target.id})"


class CategoryBase(ABC):
    """范畴抽象接口

    公理:
    1. 结合律: (h ∘ g) ∘ f = h ∘ (g ∘ f)
    2. 恒等律: id_B ∘ f = f = f ∘ id_A

    本接口不验证公理；公理由构造方保证（有限范畴可用 verify_axioms 抽查）。
    """

    name: str = ""

    @abstractmethod
    def identity(self, obj: Any) -> Any:
        """对象的恒等态射 id_A"""

    @abstractmethod
    def compose(self, g: Any, f: Any) -> Any:
        """态射复合 g ∘ f（f 先作用）"""

    @abstractmethod
    def source(self, f: Any) -> Any:
        """态射源对象"""

    @abstractmethod
    def target(self, f: Any) -> Any:
        """态射目标对象"""

    def eq(self, a: Any, b: Any) -> bool:
        return a == b

    def as_finite(self) -> Optional["FiniteCategory"]:
        """有限能力视图: 默认不可枚举"""
        return None

    def as_linear(self) -> Optional["MatrixCategory"]:
        """线性能力视图: 默认无矩阵表示"""
        return None

    def __repr__(self):
        return f"{self.__class__.__name__}('{self.name}')"


class FiniteCategory(CategoryBase):
    """有限范畴的显式见证

    持有有限对象表、有限态射表以及 identity / compose / source / target / eq
    五个函数。构造后不可变。
    """

    def __init__(
        self,
        objects: Sequence[Any],
        arrows: Sequence[Any],
        identity: Callable[[Any], Any],
        compose: Callable[[Any, Any], Any],
        source: Callable[[Any], Any],
        target: Callable[[Any], Any],
        eq: Optional[Callable[[Any, Any], bool]] = None,
        name: str = "",
    ):
        self.name = name
        self._objects: Tuple[Any, ...] = tuple(objects)
        self._arrows: Tuple[Any, ...] = tuple(arrows)
        self._identity = identity
        self._compose = compose
        self._source = source
        self._target = target
        self._eq = eq

    @property
    def objects(self) -> Tuple[Any, ...]:
        return self._objects

    @property
    def arrows(self) -> Tuple[Any, ...]:
        return self._arrows

    def identity(self, obj: Any) -> Any:
        return self._identity(obj)

    def compose(self, g: Any, f: Any) -> Any:
        return self._compose(g, f)

    def source(self, f: Any) -> Any:
        return self._source(f)

    def target(self, f: Any) -> Any:
        return self._target(f)

    def eq(self, a: Any, b: Any) -> bool:
        if self._eq is None:
            return a == b
        return bool(self._eq(a, b))

    def as_finite(self) -> Optional["FiniteCategory"]:
        return self

    def hom(self, source: Any, target: Any) -> List[Any]:
        """Hom(source, target) 中的全部态射（保持态射表顺序）"""
        return [
            f for f in self._arrows
            if self._source(f) == source and self._target(f) == target
        ]

    def composable_pairs(self) -> List[Tuple[Any, Any]]:
        """全部可复合对 (f, g)，满足 target(f) == source(g)"""
        return [
            (f, g)
            for f in self._arrows
            for g in self._arrows
            if self._target(f) == self._source(g)
        ]

    def verify_axioms(self) -> List[str]:
        """穷举验证恒等律与结合律，返回违规描述列表（空表示通过）

        代价 O(|Mor|³)，仅用于构造期自检与测试。
        """
        violations: List[str] = []
        for f in self._arrows:
            id_src = self.identity(self.source(f))
            id_dst = self.identity(self.target(f))
            if not self.eq(self.compose(f, id_src), f):
                violations.append(f"right identity fails for {f!r}")
            if not self.eq(self.compose(id_dst, f), f):
                violations.append(f"left identity fails for {f!r}")
        for f, g in self.composable_pairs():
            for h in self._arrows:
                if self.target(g) != self.source(h):
                    continue
                left = self.compose(self.compose(h, g), f)
                right = self.compose(h, self.compose(g, f))
                if not self.eq(left, right):
                    violations.append(f"associativity fails for {h!r} ∘ {g!r} ∘ {f!r}")
        return violations

    @classmethod
    def from_composition_table(
        cls,
        name: str,
        objects: Sequence[Object],
        morphisms: Sequence[Morphism],
        table: Mapping[Tuple[str, str], str],
    ) -> "FiniteCategory":
        """由命名态射与复合表构造有限范畴

        - 每个对象 A 自动获得恒等态射 id_A（若 morphisms 中已有同名态射则复用）
        - table[(g.name, f.name)] = (g ∘ f).name；涉及恒等态射的复合自动处理
        - 复合表缺项时在调用时抛出 CompositionUndefinedError
        """
        identities: Dict[str, Morphism] = {}
        by_name: Dict[str, Morphism] = {}
        for m in morphisms:
            if m.name in by_name:
                raise ValueError(f"Duplicate morphism name '{m.name}' in category '{name}'")
            by_name[m.name] = m
        for obj in objects:
            id_name = f"id_{obj.id}"
            if id_name not in by_name:
                by_name[id_name] = Morphism(source=obj, target=obj, name=id_name)
            identities[obj.id] = by_name[id_name]

        object_ids = {obj.id for obj in objects}
        for m in by_name.values():
            if m.source.id not in object_ids or m.target.id not in object_ids:
                raise ValueError(f"{m!r} has an endpoint outside category '{name}'")

        # 恒等态射优先出现在态射表前部
        arrows: List[Morphism] = [identities[obj.id] for obj in objects]
        identity_names = {m.name for m in arrows}
        arrows.extend(m for m in morphisms if m.name not in identity_names)

        frozen_table = dict(table)
        _logger.debug(
            "finite category '%s': %d objects, %d arrows, %d table entries",
            name, len(objects), len(arrows), len(frozen_table),
        )

        def _identity(obj: Object) -> Morphism:
            if obj.id not in identities:
                raise KeyError(f"Object {obj.id} not in category '{name}'")
            return identities[obj.id]

        def _compose(g: Morphism, f: Morphism) -> Morphism:
            if f.target != g.source:
                raise ValueError(
                    f"Cannot compose: {f} target {f.target.id} ≠ {g} source {g.source.id}"
                )
            if f == identities.get(f.source.id):
                return g
            if g == identities.get(g.source.id):
                return f
            key = (g.name, f.name)
            if key not in frozen_table:
                raise CompositionUndefinedError(
                    f"Composition table of '{name}' has no entry for {g.name} ∘ {f.name}"
                )
            result = by_name[frozen_table[key]]
            if result.source != f.source or result.target != g.target:
                raise CategoricalError(
                    f"Composition table of '{name}' sends {g.name} ∘ {f.name} to "
                    f"{result!r}, expected {f.source.id} → {g.target.id}"
                )
            return result

        return cls(
            objects=objects,
            arrows=arrows,
            identity=_identity,
            compose=_compose,
            source=lambda f: f.source,
            target=lambda f: f.target,
            eq=lambda a, b: a.name == b.name,
            name=name,
        )

    def __repr__(self):
        return (f"FiniteCategory('{self.name}', {len(self._objects)} objects, "
                f"{len(self._arrows)} arrows)")


class MatrixCategory(CategoryBase):
    """线性代数范畴: 对象 = 带维度的 Object，态射 = 矩阵

    复合: (g ∘ f).matrix = g.matrix @ f.matrix
    相等: 端点一致且 ‖A - B‖_F ≤ rel_tol · max(‖A‖_F, ‖B‖_F, 1)

    默认不可枚举（Hom 集是连续的）；with_morphisms 给出显式有限态射表后，
    as_finite() 返回对应的 FiniteCategory 视图。
    """

    def __init__(self, name: str = "", rel_tol: float = _MORPHISM_EQ_REL_TOL):
        if not rel_tol > 0:
            raise ValueError(f"rel_tol must be positive, got {rel_tol}")
        self.name = name
        self.rel_tol = float(rel_tol)
        self._objects: List[Object] = []
        self._morphisms: Optional[List[Morphism]] = None

    def add_object(self, obj: Object) -> None:
        if obj.dimension < 1:
            raise ValueError(f"Object {obj.id} must have dimension >= 1, got {obj.dimension}")
        if obj not in self._objects:
            self._objects.append(obj)

    def with_morphisms(self, morphisms: Iterable[Morphism]) -> "MatrixCategory":
        """声明有限态射表（必须对复合与恒等封闭，由调用方保证）"""
        listed = list(morphisms)
        for m in listed:
            self._require_matrix(m)
            self.add_object(m.source)
            self.add_object(m.target)
        self._morphisms = listed
        return self

    @property
    def objects(self) -> Tuple[Object, ...]:
        return tuple(self._objects)

    @staticmethod
    def _require_matrix(m: Morphism) -> np.ndarray:
        if m.matrix is None:
            raise CategoricalError(
                "Cannot use morphisms without matrix representations in a linear category. "
                f"Missing matrix on morphism '{m.name or repr(m)}' ({m.source.id}→{m.target.id})."
            )
        return np.asarray(m.matrix, dtype=np.float64)

    def identity(self, obj: Object) -> Morphism:
        return Morphism(
            source=obj,
            target=obj,
            name=f"id_{obj.id}",
            matrix=np.eye(obj.dimension, dtype=np.float64),
        )

    def compose(self, g: Morphism, f: Morphism) -> Morphism:
        if f.target != g.source:
            raise ValueError(
                f"Cannot compose: {f} target {f.target.id} ≠ {g} source {g.source.id}"
            )
        composed_matrix = self._require_matrix(g) @ self._require_matrix(f)
        return Morphism(
            source=f.source,
            target=g.target,
            name=f"({g.name} ∘ {f.name})" if g.name and f.name else "",
            matrix=composed_matrix,
        )

    def source(self, f: Morphism) -> Object:
        return f.source

    def target(self, f: Morphism) -> Object:
        return f.target

    def eq(self, a: Morphism, b: Morphism) -> bool:
        if a.source != b.source or a.target != b.target:
            return False
        left = self._require_matrix(a)
        right = self._require_matrix(b)
        diff = np.linalg.norm(left - right, 'fro')
        ref_norm = max(np.linalg.norm(left, 'fro'), np.linalg.norm(right, 'fro'), 1.0)
        return bool(diff <= self.rel_tol * ref_norm)

    def as_linear(self) -> Optional["MatrixCategory"]:
        return self

    def as_finite(self) -> Optional[FiniteCategory]:
        if self._morphisms is None:
            return None
        listed = list(self._morphisms)

        def _compose_listed(g: Morphism, f: Morphism) -> Morphism:
            # 复合结果按 eq 归一到态射表中的代表元
            raw = self.compose(g, f)
            for candidate in listed:
                if self.eq(candidate, raw):
                    return candidate
            raise CompositionUndefinedError(
                f"Finite view of '{self.name}' is not closed: {g!r} ∘ {f!r} is unlisted"
            )

        def _identity_listed(obj: Object) -> Morphism:
            raw = self.identity(obj)
            for candidate in listed:
                if self.eq(candidate, raw):
                    return candidate
            raise CategoricalError(f"Finite view of '{self.name}' lists no identity on {obj.id}")

        return FiniteCategory(
            objects=self._objects,
            arrows=listed,
            identity=_identity_listed,
            compose=_compose_listed,
            source=self.source,
            target=self.target,
            eq=self.eq,
            name=f"{self.name}[finite]",
        )

    def __repr__(self):
        return f"MatrixCategory('{self.name}', {len(self._objects)} objects)"


__all__ = [
    "CategoricalError",
    "CompositionUndefinedError",
    "FunctorLawViolation",
    "Object",
    "Morphism",
    "CategoryBase",
    "FiniteCategory",
    "MatrixCategory",
]
