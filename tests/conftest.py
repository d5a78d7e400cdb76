"""Shared finite categories for the localization tests."""

import pytest

from categorical_engine import FiniteCategory, Morphism, Object
from calculus_of_fractions import CalculusOfFractionsData, localize_category

A = Object("A")
B = Object("B")
C = Object("C")


def arrow_category():
    """A --f--> B"""
    f = Morphism(A, B, "f")
    return FiniteCategory.from_composition_table("arrow", [A, B], [f], {})


def chain_category():
    """A --f--> B --g--> C with h = g ∘ f"""
    f = Morphism(A, B, "f")
    g = Morphism(B, C, "g")
    h = Morphism(A, C, "h")
    return FiniteCategory.from_composition_table(
        "chain", [A, B, C], [f, g, h], {("g", "f"): "h"}
    )


def cospan_category():
    """A --f--> B <--s-- C, nothing from A to C"""
    f = Morphism(A, B, "f")
    s = Morphism(C, B, "s")
    return FiniteCategory.from_composition_table("cospan", [A, B, C], [f, s], {})


def iso_groupoid():
    """A ⇄ B with g ∘ f = id_A and f ∘ g = id_B"""
    f = Morphism(A, B, "f")
    g = Morphism(B, A, "g")
    return FiniteCategory.from_composition_table(
        "groupoid", [A, B], [f, g], {("g", "f"): "id_A", ("f", "g"): "id_B"}
    )


def twisted_groupoid():
    """Two-object groupoid with a Z/2 twist on every hom-set.

    Arrow x → y with twist k is named f"{x}{y}{k}"; twists add mod 2.
    """
    objects = [A, B]
    arrows = [
        Morphism(x, y, f"{x.id}{y.id}{k}")
        for x in objects for y in objects for k in (0, 1)
    ]
    by_name = {m.name: m for m in arrows}

    def compose(g, f):
        if f.target != g.source:
            raise ValueError(f"Cannot compose {g!r} after {f!r}")
        twist = (int(g.name[-1]) + int(f.name[-1])) % 2
        return by_name[f"{f.source.id}{g.target.id}{twist}"]

    return FiniteCategory(
        objects=objects,
        arrows=arrows,
        identity=lambda obj: by_name[f"{obj.id}{obj.id}0"],
        compose=compose,
        source=lambda m: m.source,
        target=lambda m: m.target,
        eq=lambda a, b: a.name == b.name,
        name="twisted",
    )


def arrow_named(category, name):
    for arrow in category.arrows:
        if arrow.name == name:
            return arrow
    raise KeyError(name)


@pytest.fixture
def arrow_cat():
    return arrow_category()


@pytest.fixture
def arrow_localization(arrow_cat):
    return localize_category(CalculusOfFractionsData(arrow_cat, arrow_cat.arrows))


@pytest.fixture
def chain_cat():
    return chain_category()


@pytest.fixture
def chain_localization(chain_cat):
    denominators = [chain_cat.identity(obj) for obj in chain_cat.objects]
    denominators.append(arrow_named(chain_cat, "f"))
    return localize_category(CalculusOfFractionsData(chain_cat, denominators))


@pytest.fixture
def cospan_cat():
    return cospan_category()


@pytest.fixture
def cospan_localization(cospan_cat):
    denominators = [cospan_cat.identity(obj) for obj in cospan_cat.objects]
    denominators.append(arrow_named(cospan_cat, "s"))
    return localize_category(CalculusOfFractionsData(cospan_cat, denominators))
