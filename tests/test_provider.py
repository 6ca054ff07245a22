import numpy as np
import pytest

from multicurve_engine.conventions import EUR, GBP, USD, IborIndex, IssuerKey, OvernightIndex
from multicurve_engine.curves import Curve
from multicurve_engine.errors import MissingCurveError, MissingFxRateError, PublishedBundleError
from multicurve_engine.provider import CurveBundle, FxMatrix, IssuerProvider

USD_LIBOR3M = IborIndex("USD-LIBOR3M", USD, 3)
USD_FEDFUNDS = OvernightIndex("USD-FEDFUNDS", USD)
ACME = IssuerKey("ACME", USD)


@pytest.fixture(scope="module")
def disc():
    return Curve.flat("USD-DSC", 0.03)


@pytest.fixture(scope="module")
def fwd():
    return Curve.flat("USD-LIBOR3M", 0.035)


@pytest.fixture()
def bundle(disc, fwd):
    b = CurveBundle()
    b.set_curve(USD, disc)
    b.set_curve(USD_FEDFUNDS, disc)
    b.set_curve(USD_LIBOR3M, fwd)
    b.set_fx_rate(EUR, USD, 1.10)
    return b


def test_discount_and_forward(bundle):
    assert abs(bundle.discount_factor(USD, 2.0) - np.exp(-0.06)) < 1e-15
    f = bundle.forward_rate(USD_LIBOR3M, 1.0, 1.25, 0.25)
    assert abs(f - (np.exp(0.035 * 0.25) - 1.0) / 0.25) < 1e-14


def test_curve_names_derived_from_maps(bundle):
    assert bundle.curve_names == ["USD-DSC", "USD-LIBOR3M"]
    assert set(bundle.keys_for("USD-DSC")) == {USD, USD_FEDFUNDS}


def test_missing_entries_raise(bundle):
    with pytest.raises(MissingCurveError):
        bundle.discount_factor(EUR, 1.0)
    with pytest.raises(MissingCurveError):
        bundle.forward_rate(IborIndex("EUR-EURIBOR6M", EUR, 6), 0.5, 1.0, 0.5)
    with pytest.raises(KeyError):
        bundle.curve("NOPE")


def test_set_curve_replaces_and_renames(bundle):
    new = Curve.flat("USD-DSC-V2", 0.02)
    bundle.set_curve(USD, new)
    assert bundle.discounting_curve(USD) is new
    assert "USD-DSC-V2" in bundle.curve_names
    # fed funds still maps to the old curve, so both names remain
    assert "USD-DSC" in bundle.curve_names


def test_copy_is_isolated_and_shares_curves(bundle, disc):
    c = bundle.copy()
    assert c.discounting_curve(USD) is disc
    c.set_curve(USD, Curve.flat("OTHER", 0.05))
    c.set_fx_rate(GBP, USD, 1.3)
    assert bundle.discounting_curve(USD) is disc
    with pytest.raises(MissingFxRateError):
        bundle.fx_rate(GBP, USD)


def test_set_all_last_write_wins(bundle):
    other = CurveBundle()
    replacement = Curve.flat("USD-LIBOR3M-NEW", 0.04)
    other.set_curve(USD_LIBOR3M, replacement)
    other.set_fx_rate(EUR, USD, 1.2)

    bundle.set_all(other)
    assert bundle.forward_curve(USD_LIBOR3M) is replacement
    assert bundle.fx_rate(EUR, USD) == pytest.approx(1.2)
    assert bundle.discounting_curve(USD).name == "USD-DSC"


def test_publish_guards_mutation(bundle):
    published = bundle.publish()
    assert published is bundle and bundle.is_published
    with pytest.raises(PublishedBundleError):
        bundle.set_curve(USD, Curve.flat("X", 0.01))
    with pytest.raises(PublishedBundleError):
        bundle.set_all(CurveBundle())

    working = bundle.copy()
    assert not working.is_published
    working.set_curve(USD, Curve.flat("X", 0.01))
    assert bundle.discounting_curve(USD).name == "USD-DSC"


def test_restricted_to(bundle):
    r = bundle.restricted_to(["USD-LIBOR3M"])
    assert r.curve_names == ["USD-LIBOR3M"]
    assert r.fx_rate(EUR, USD) == pytest.approx(1.10)
    with pytest.raises(MissingCurveError):
        bundle.restricted_to(["NOPE"])


def test_with_curve_named_is_copy_on_write(bundle, disc):
    bumped = Curve.flat("USD-DSC", 0.031)
    out = bundle.publish().with_curve_named("USD-DSC", bumped)
    assert out.discounting_curve(USD) is bumped
    assert out.forward_curve(USD_FEDFUNDS) is bumped
    assert bundle.discounting_curve(USD) is disc


def test_fx_matrix_inverse_and_convert():
    fx = FxMatrix({(EUR, USD): 1.25})
    assert fx.rate(USD, EUR) == pytest.approx(0.8)
    assert fx.rate(USD, USD) == 1.0
    assert fx.convert({EUR: 100.0, USD: 10.0}, USD) == pytest.approx(135.0)
    with pytest.raises(MissingFxRateError):
        fx.rate(GBP, EUR)
    with pytest.raises(ValueError):
        fx.add(GBP, USD, -1.0)


# ---------- IssuerProvider ----------

@pytest.fixture()
def issuer_provider(bundle):
    p = IssuerProvider(bundle)
    p.set_issuer_curve(ACME, Curve.flat("ACME-USD", 0.05))
    return p


def test_issuer_curve_never_falls_back(issuer_provider):
    assert abs(issuer_provider.issuer_discount_factor(ACME, 1.0) - np.exp(-0.05)) < 1e-15
    with pytest.raises(MissingCurveError):
        issuer_provider.issuer_discount_factor(IssuerKey("OTHER", USD), 1.0)


def test_issuer_provider_delegates(issuer_provider, bundle):
    assert issuer_provider.multicurve is bundle
    assert issuer_provider.discount_factor(USD, 1.0) == bundle.discount_factor(USD, 1.0)
    assert issuer_provider.curve("ACME-USD").name == "ACME-USD"
    assert set(issuer_provider.curve_names) == {"USD-DSC", "USD-LIBOR3M", "ACME-USD"}


def test_with_issuer_currency_leaves_original(issuer_provider):
    new = Curve.flat("ACME-USD-2", 0.06)
    out = issuer_provider.with_issuer_currency(ACME, new)
    assert out.issuer_curve(ACME) is new
    assert issuer_provider.issuer_curve(ACME).name == "ACME-USD"
    assert out.multicurve is issuer_provider.multicurve


def test_issuer_provider_publish_and_copy(issuer_provider):
    issuer_provider.publish()
    assert issuer_provider.multicurve.is_published
    with pytest.raises(PublishedBundleError):
        issuer_provider.set_issuer_curve(ACME, Curve.flat("Z", 0.01))
    c = issuer_provider.copy()
    c.set_issuer_curve(ACME, Curve.flat("Z", 0.01))
    c.set_curve(USD, Curve.flat("Z2", 0.01))
    assert issuer_provider.issuer_curve(ACME).name == "ACME-USD"
    assert issuer_provider.multicurve.discounting_curve(USD).name == "USD-DSC"


def test_issuer_provider_set_all_merges_issuers(issuer_provider):
    target = IssuerProvider()
    target.set_all(issuer_provider)
    assert target.issuer_curve(ACME) is issuer_provider.issuer_curve(ACME)
    assert target.multicurve.discounting_curve(USD).name == "USD-DSC"
