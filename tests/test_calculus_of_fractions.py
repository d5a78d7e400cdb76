import json

import pytest

from categorical_engine import CategoricalError, FiniteCategory, Morphism, Object
from calculus_of_fractions import (
    ArrowIndexOutOfRange,
    ArrowIndexing,
    CalculusOfFractionsData,
    ComposedFraction,
    FractionClosureEngine,
    LocalizationContractError,
    OreObstruction,
    OreObstructionError,
    UnknownArrowError,
    _self_test,
    localize_category,
    pair_key,
)
from conftest import A, B, C, arrow_category, arrow_named, chain_category


# ---------------------------------------------------------------- indexing


def test_index_of_by_reference_and_by_equality():
    cat = arrow_category()
    indexing = ArrowIndexing(cat)
    f = arrow_named(cat, "f")
    assert indexing.index_of(f) == 2
    # structurally equal but a different object
    assert indexing.index_of(Morphism(A, B, "f")) == 2


def test_index_of_unknown_arrow():
    indexing = ArrowIndexing(arrow_category())
    with pytest.raises(UnknownArrowError):
        indexing.index_of(Morphism(B, A, "g"))


def test_arrow_at_out_of_range_carries_context():
    indexing = ArrowIndexing(arrow_category())
    with pytest.raises(ArrowIndexOutOfRange, match="closure apex"):
        indexing.arrow_at(3, "closure apex")
    with pytest.raises(ArrowIndexOutOfRange):
        indexing.source(-1)


def test_composite_index_requires_composable_pair():
    cat = chain_category()
    indexing = ArrowIndexing(cat)
    f = indexing.index_of(arrow_named(cat, "f"))
    g = indexing.index_of(arrow_named(cat, "g"))
    h = indexing.index_of(arrow_named(cat, "h"))
    assert indexing.composite_index(g, f) == h
    with pytest.raises(LocalizationContractError):
        indexing.composite_index(f, g)


# ---------------------------------------------------------------- closure


def _arrow_engine():
    cat = arrow_category()
    indexing = ArrowIndexing(cat)
    denominators = tuple(range(len(indexing)))
    return indexing, FractionClosureEngine(indexing, denominators, denominators)


def test_closure_contains_seed_and_refinements():
    _, engine = _arrow_engine()
    # id_B / id_B refines along f to f / f
    assert set(engine.closure(1, 1)) == {(1, 1), (2, 2)}


def test_closure_follows_refinements_backwards():
    _, engine = _arrow_engine()
    assert set(engine.closure(2, 2)) == {(1, 1), (2, 2)}
    assert engine.canonical_form(2, 2) == (1, 1)


def test_canonical_form_is_minimal_member():
    _, engine = _arrow_engine()
    for seed in [(0, 0), (0, 2), (2, 0), (1, 1)]:
        assert engine.canonical_form(*seed) == min(engine.closure(*seed))


# ---------------------------------------------------------------- registry / category


def test_registry_of_inverted_arrow(arrow_localization):
    keys = [arrow.key for arrow in arrow_localization.localized_category.arrows]
    assert sorted(keys) == sorted([pair_key(0, 0), pair_key(0, 2), pair_key(1, 1), pair_key(2, 0)])
    inverse = arrow_localization.inverse_of(arrow_named(arrow_localization.base_category, "f"))
    assert (inverse.source, inverse.target, inverse.apex) == (B, A, A)
    assert inverse.denominator.name == "f"
    assert inverse.numerator.name == "id_A"


def test_denominator_invertibility(arrow_localization):
    L = arrow_localization.localized_category
    f = arrow_named(arrow_localization.base_category, "f")
    loc_f = arrow_localization.localization_functor(f)
    inverse = arrow_localization.inverse_of(f)
    assert L.compose(inverse, loc_f) == L.identity(A)
    assert L.compose(loc_f, inverse) == L.identity(B)


def test_identity_law(chain_localization):
    L = chain_localization.localized_category
    functor = chain_localization.localization_functor
    base = chain_localization.base_category
    for obj in base.objects:
        assert functor(base.identity(obj)) == L.identity(obj)


def test_functoriality(chain_localization):
    L = chain_localization.localized_category
    functor = chain_localization.localization_functor
    base = chain_localization.base_category
    for f, g in base.composable_pairs():
        assert functor(base.compose(g, f)) == L.compose(functor(g), functor(f))
    assert functor.witness.holds


def test_fraction_composition_through_inverse(chain_localization):
    base = chain_localization.base_category
    L = chain_localization.localized_category
    f_inverse = chain_localization.inverse_of(arrow_named(base, "f"))
    h = chain_localization.localize(arrow_named(base, "h"))
    # h ∘ f⁻¹ = g ∘ f ∘ f⁻¹ = g
    assert L.compose(h, f_inverse) == chain_localization.localize(arrow_named(base, "g"))


def test_lawful_chain_diagnostics(chain_localization):
    diagnostics = chain_localization.diagnostics
    assert diagnostics.identity_closure
    assert diagnostics.composition_closure
    assert diagnostics.ore_condition
    assert diagnostics.holds
    assert len(diagnostics.details) == 3


def test_determinism(chain_cat):
    denominators = [chain_cat.identity(obj) for obj in chain_cat.objects]
    denominators.append(arrow_named(chain_cat, "f"))
    first = localize_category(CalculusOfFractionsData(chain_cat, denominators))
    second = localize_category(CalculusOfFractionsData(chain_cat, denominators))
    assert [a.key for a in first.localized_category.arrows] == [
        a.key for a in second.localized_category.arrows
    ]


def test_duplicate_denominators_collapse(arrow_cat):
    doubled = list(arrow_cat.arrows) + list(arrow_cat.arrows)
    result = localize_category(CalculusOfFractionsData(arrow_cat, doubled))
    assert len(result.localized_category.arrows) == 4
    assert result.diagnostics.holds


def test_metadata_is_echoed(arrow_cat):
    data = CalculusOfFractionsData(arrow_cat, arrow_cat.arrows, metadata=["inverting f"])
    result = localize_category(data)
    metadata = result.localization_functor.witness.metadata
    assert metadata[-1] == "inverting f"
    assert len(metadata) == 2


def test_inverse_of_non_denominator_rejected(chain_localization):
    with pytest.raises(LocalizationContractError):
        chain_localization.inverse_of(arrow_named(chain_localization.base_category, "g"))


# ---------------------------------------------------------------- non-lawful sets


def test_ore_failure_is_reported_not_raised(cospan_localization):
    diagnostics = cospan_localization.diagnostics
    assert diagnostics.identity_closure
    assert diagnostics.composition_closure
    assert not diagnostics.ore_condition
    assert not diagnostics.holds

    base = cospan_localization.base_category
    loc_f = cospan_localization.localize(arrow_named(base, "f"))
    s_inverse = cospan_localization.inverse_of(arrow_named(base, "s"))
    assert any(
        failure.left == loc_f and failure.right == s_inverse
        for failure in diagnostics.ore_failures
    )


def test_direct_compose_raises_ore_obstruction(cospan_localization):
    base = cospan_localization.base_category
    loc_f = cospan_localization.localize(arrow_named(base, "f"))
    s_inverse = cospan_localization.inverse_of(arrow_named(base, "s"))
    L = cospan_localization.localized_category
    with pytest.raises(OreObstructionError) as excinfo:
        L.compose(s_inverse, loc_f)
    assert excinfo.value.obstruction.left == loc_f
    assert isinstance(cospan_localization.try_compose(s_inverse, loc_f), OreObstruction)


def test_try_compose_reports_success(cospan_localization):
    base = cospan_localization.base_category
    s = arrow_named(base, "s")
    outcome = cospan_localization.try_compose(
        cospan_localization.localize(s), cospan_localization.inverse_of(s)
    )
    assert isinstance(outcome, ComposedFraction)
    assert outcome.arrow == cospan_localization.localized_category.identity(B)


def test_compose_rejects_boundary_mismatch(arrow_localization):
    L = arrow_localization.localized_category
    loc_f = arrow_localization.localize(arrow_named(arrow_localization.base_category, "f"))
    with pytest.raises(CategoricalError) as excinfo:
        L.compose(loc_f, loc_f)
    assert not isinstance(excinfo.value, OreObstructionError)


def test_missing_identities_still_localize(arrow_cat):
    f = arrow_named(arrow_cat, "f")
    result = localize_category(CalculusOfFractionsData(arrow_cat, [f]))
    assert not result.diagnostics.identity_closure
    assert set(result.diagnostics.missing_identities) == {A, B}
    assert not result.diagnostics.holds
    assert result.localization_functor(f).source == A
    assert result.localized_category.identity(A).source == A


def test_composition_closure_failure(chain_cat):
    denominators = [chain_cat.identity(obj) for obj in chain_cat.objects]
    denominators += [arrow_named(chain_cat, "f"), arrow_named(chain_cat, "g")]
    result = localize_category(CalculusOfFractionsData(chain_cat, denominators))
    failures = result.diagnostics.composition_failures
    assert not result.diagnostics.composition_closure
    assert [(x.left.name, x.right.name, x.composite.name) for x in failures] == [("g", "f", "h")]
    json.dumps(result.diagnostics.to_dict())


def test_unknown_denominator_fails_fast(arrow_cat):
    with pytest.raises(UnknownArrowError):
        localize_category(CalculusOfFractionsData(arrow_cat, [Morphism(A, C, "stray")]))


def test_self_test_passes():
    assert _self_test()["ok"]


def _left_zero_monoid():
    """One object M; p and q satisfy x ∘ y = x."""
    M = Object("M")
    p, q = Morphism(M, M, "p"), Morphism(M, M, "q")
    table = {(x, y): x for x in ("p", "q") for y in ("p", "q")}
    return FiniteCategory.from_composition_table("left-zero", [M], [p, q], table)


def test_ambiguous_composite_is_an_obstruction():
    cat = _left_zero_monoid()
    (M,) = cat.objects
    p, q = arrow_named(cat, "p"), arrow_named(cat, "q")
    result = localize_category(CalculusOfFractionsData(cat, [cat.identity(M), p]))
    loc_p, loc_q = result.localize(p), result.localize(q)

    # p ∘ q = p, yet composing the fractions can land on either class
    outcome = result.try_compose(loc_p, loc_q)
    assert isinstance(outcome, OreObstruction)
    assert "Ambiguous composite" in outcome.reason
    with pytest.raises(OreObstructionError):
        result.localized_category.compose(loc_p, loc_q)

    diagnostics = result.diagnostics
    assert diagnostics.identity_closure
    assert diagnostics.composition_closure
    assert not diagnostics.ore_condition
    assert not diagnostics.holds
    assert any(
        failure.left == loc_q and failure.right == loc_p
        for failure in diagnostics.ore_failures
    )
