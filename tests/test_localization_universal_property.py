import json

import pytest

from categorical_engine import MatrixCategory, Morphism, Object
from calculus_of_fractions import CalculusOfFractionsData, localize_category
from conftest import arrow_named, iso_groupoid, twisted_groupoid
from functor_witness import construct_functor_with_witness
from localization_universal_property import (
    UniversalPropertyContractError,
    localization_universal_property,
)


def _localize_everything(cat):
    return localize_category(CalculusOfFractionsData(cat, cat.arrows))


def _identity_functor(cat):
    return construct_functor_with_witness(cat, cat, lambda o: o, lambda m: m, name="F")


def _roof_lift(result, target, inverse_of, overrides=None, embed=lambda m: m):
    """G(n ∘ d⁻¹) = embed(n) ∘ inverse_of(d) inside target, with optional per-key overrides"""
    overrides = overrides or {}

    def on_morphisms(arrow):
        if arrow.key in overrides:
            return overrides[arrow.key]
        return target.compose(embed(arrow.numerator), inverse_of(arrow.denominator))

    return construct_functor_with_witness(
        result.localized_category, target, lambda o: o, on_morphisms, name="G"
    )


def test_groupoid_lift_satisfies_universal_property():
    cat = iso_groupoid()
    result = _localize_everything(cat)
    inverses = {"id_A": "id_A", "id_B": "id_B", "f": "g", "g": "f"}
    G = _roof_lift(result, cat, lambda d: arrow_named(cat, inverses[d.name]))

    report = localization_universal_property(result, _identity_functor(cat), G)
    assert report.denominators_inverted
    assert report.factorization.holds
    assert report.lift_respects_fractions is True
    assert not report.fraction_check_skipped
    assert report.holds
    json.dumps(report.to_dict())


def test_lift_disagreeing_on_a_fraction_is_reported():
    cat = twisted_groupoid()
    result = _localize_everything(cat)

    def inverse(d):
        x, y, k = d.name
        return arrow_named(cat, f"{y}{x}{k}")

    bad = result.inverse_of(arrow_named(cat, "AB1"))
    G = _roof_lift(result, cat, inverse, overrides={bad.key: arrow_named(cat, "BA0")})

    report = localization_universal_property(result, _identity_functor(cat), G)
    assert report.denominators_inverted
    assert report.lift_respects_fractions is False
    assert not report.holds
    failures = [f for f in report.fraction_failures if f.arrow == bad]
    assert len(failures) == 1
    assert failures[0].expected.name == "BA1"
    assert failures[0].actual.name == "BA0"


def test_functor_that_does_not_invert_denominators(arrow_localization):
    base = arrow_localization.base_category
    G = construct_functor_with_witness(
        arrow_localization.localized_category, base,
        lambda o: o, lambda arrow: arrow.numerator, name="G",
    )
    report = localization_universal_property(arrow_localization, _identity_functor(base), G)
    assert not report.denominators_inverted
    assert [f.arrow.name for f in report.denominator_failures] == ["f"]
    assert not report.holds


def test_fraction_check_skipped_for_non_enumerable_target():
    cat = iso_groupoid()
    result = _localize_everything(cat)
    X = Object("X", 1)
    vect = MatrixCategory("lines")
    vect.add_object(X)
    scale = {"id_A": 1.0, "id_B": 1.0, "f": 2.0, "g": 0.5}

    def matrix_of(arrow):
        return Morphism(X, X, arrow.name, [[scale[arrow.name]]])

    F = construct_functor_with_witness(cat, vect, lambda o: X, matrix_of, name="F")
    G = construct_functor_with_witness(
        result.localized_category, vect, lambda o: X,
        lambda arrow: Morphism(
            X, X, arrow.key,
            [[scale[arrow.numerator.name] / scale[arrow.denominator.name]]],
        ),
        name="G",
    )
    assert F.witness.holds

    report = localization_universal_property(result, F, G)
    assert report.denominators_inverted
    assert report.factorization.holds
    assert report.lift_respects_fractions is None
    assert report.fraction_check_skipped
    assert report.holds
    assert "skipped" in report.details[2]


def test_mismatched_lift_source_is_a_contract_error(arrow_localization):
    base = arrow_localization.base_category
    F = _identity_functor(base)
    with pytest.raises(UniversalPropertyContractError):
        localization_universal_property(arrow_localization, F, _identity_functor(base))


def _inclusion(base, target):
    """F: base → target sending each arrow to the target arrow of the same name"""
    return construct_functor_with_witness(
        base, target, lambda o: o, lambda m: arrow_named(target, m.name), name="F"
    )


def _arrow_into_groupoid(result, overrides=()):
    """F includes {A, B, f} into the iso groupoid; G evaluates roofs there.

    overrides maps localized keys to the name of the arrow G should send them to.
    """
    groupoid = iso_groupoid()
    inverses = {"id_A": "id_A", "id_B": "id_B", "f": "g"}
    F = _inclusion(result.base_category, groupoid)
    G = _roof_lift(
        result, groupoid,
        lambda d: arrow_named(groupoid, inverses[d.name]),
        overrides={key: arrow_named(groupoid, name) for key, name in dict(overrides).items()},
        embed=lambda m: arrow_named(groupoid, m.name),
    )
    return F, G


def test_inverting_f_inside_a_groupoid(arrow_localization):
    base = arrow_localization.base_category
    inverse = arrow_localization.inverse_of(arrow_named(base, "f"))
    F, G = _arrow_into_groupoid(arrow_localization)
    assert F.witness.holds
    assert G(inverse).name == "g"

    report = localization_universal_property(arrow_localization, F, G)
    assert report.denominators_inverted
    assert report.factorization.holds
    assert report.lift_respects_fractions is True
    assert report.holds


def test_lift_sending_inverse_elsewhere_fails(arrow_localization):
    base = arrow_localization.base_category
    inverse = arrow_localization.inverse_of(arrow_named(base, "f"))
    F, G = _arrow_into_groupoid(arrow_localization, overrides={inverse.key: "id_B"})

    report = localization_universal_property(arrow_localization, F, G)
    assert report.denominators_inverted
    # the inverse fraction is not in the image of the localization functor
    assert report.factorization.holds
    assert report.lift_respects_fractions is False
    assert not report.holds
    assert [(x.arrow, x.expected.name, x.actual.name) for x in report.fraction_failures] == [
        (inverse, "g", "id_B")
    ]


def test_identities_missing_from_denominators_still_get_witnesses(arrow_cat):
    f = arrow_named(arrow_cat, "f")
    result = localize_category(CalculusOfFractionsData(arrow_cat, [f]))
    assert not result.diagnostics.identity_closure
    F, G = _arrow_into_groupoid(result)

    report = localization_universal_property(result, F, G)
    assert report.denominators_inverted
    assert report.denominator_failures == ()
    assert report.fraction_failures == ()
    assert report.lift_respects_fractions is True


def test_repeated_failing_denominator_reported_once(arrow_cat):
    doubled = list(arrow_cat.arrows) + list(arrow_cat.arrows)
    result = localize_category(CalculusOfFractionsData(arrow_cat, doubled))
    G = construct_functor_with_witness(
        result.localized_category, arrow_cat,
        lambda o: o, lambda arrow: arrow.numerator, name="G",
    )
    report = localization_universal_property(result, _identity_functor(arrow_cat), G)
    assert [x.arrow.name for x in report.denominator_failures] == ["f"]
