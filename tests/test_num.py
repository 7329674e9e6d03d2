from __future__ import annotations

import pytest

from ta_stream.config import NumConfig, num_factory_from_config
from ta_stream.errors import NumMismatchError
from ta_stream.num import DecimalNumFactory, DoubleNumFactory, NaN, NumBackend, NumFactory


def test_arithmetic_and_coercion(factory):
    a = factory.num_of(10)
    b = factory.num_of(4)

    assert float(a + b) == 14
    assert float(a - b) == 6
    assert float(a * b) == 40
    assert float(a / b) == 2.5
    assert float(3 + a) == 13
    assert float(1 - a) == -9
    assert float(20 / b) == 5
    assert float(-b) == -4
    assert float(factory.num_of(-3).abs()) == 3
    assert float(factory.num_of(2) ** 3) == 8


def test_constants(factory):
    assert factory.minus_one == -1
    assert factory.zero.is_zero()
    assert factory.two == 2
    assert factory.three == 3
    assert factory.hundred == 100
    assert factory.thousand == 1000
    assert factory.nan is NaN


def test_division_by_zero_is_nan(factory):
    assert (factory.one / factory.zero).is_nan()
    assert (factory.one / 0).is_nan()


def test_sqrt_negative_and_log_non_positive_are_nan(factory):
    assert factory.num_of(-4).sqrt().is_nan()
    assert factory.zero.log().is_nan()
    assert factory.num_of(-1).log().is_nan()
    assert float(factory.num_of(9).sqrt()) == pytest.approx(3.0)


def test_nan_propagates(factory):
    assert (factory.one + NaN).is_nan()
    assert (NaN * 3).is_nan()
    assert (factory.one / NaN).is_nan()
    assert NaN.sqrt().is_nan()
    assert factory.one.min(NaN).is_nan()
    assert factory.one.max(NaN).is_nan()


def test_nan_comparisons_are_false(factory):
    one = factory.one
    assert not (NaN < one)
    assert not (NaN >= one)
    assert not (one < NaN)
    assert not (one >= NaN)
    assert NaN == NaN
    assert not (one == NaN)


def test_non_finite_inputs_become_nan(factory):
    assert factory.num_of(float("inf")).is_nan()
    assert factory.num_of(float("nan")) is NaN


def test_predicates(factory):
    x = factory.num_of(-2)
    assert x.is_negative() and x.is_negative_or_zero()
    assert not x.is_positive()
    assert factory.zero.is_positive_or_zero()
    assert factory.zero.is_negative_or_zero()
    assert not NaN.is_zero()


def test_min_max_floor_ceil(factory):
    a, b = factory.num_of(2.5), factory.num_of(7)
    assert a.min(b) == 2.5
    assert a.max(b) == 7
    assert a.floor() == 2
    assert a.ceil() == 3


def test_mixing_backends_raises():
    d = DoubleNumFactory().one
    m = DecimalNumFactory().one
    with pytest.raises(NumMismatchError):
        d + m
    with pytest.raises(NumMismatchError):
        m < d


def test_mixing_decimal_precisions_raises():
    coarse = DecimalNumFactory(precision=10)
    fine = DecimalNumFactory(precision=20)
    with pytest.raises(NumMismatchError):
        coarse.one + fine.one
    with pytest.raises(NumMismatchError):
        fine.two > coarse.one
    assert float(fine.num_of(coarse.num_of(3)) + fine.one) == 4


def test_factories_with_the_same_settings_are_equal():
    assert DecimalNumFactory(12) == DecimalNumFactory(12)
    assert DecimalNumFactory(12) != DecimalNumFactory(13)
    assert DoubleNumFactory() == DoubleNumFactory()
    assert DoubleNumFactory() != DecimalNumFactory()
    assert len({DecimalNumFactory(12), DecimalNumFactory(12), DoubleNumFactory()}) == 2
    assert float(DecimalNumFactory(12).two * DecimalNumFactory(12).two) == 4
    assert DoubleNumFactory().produces(DoubleNumFactory().one)
    assert not DecimalNumFactory(12).produces(DecimalNumFactory(13).one)


def test_double_equality_is_tolerant():
    f = DoubleNumFactory()
    assert f.num_of(1.0) == f.num_of(1.0 + 1e-7)
    assert f.num_of(1.0) != f.num_of(1.001)


def test_decimal_precision_and_rounding():
    f = DecimalNumFactory(precision=5)
    assert str(f.num_of(2) / f.num_of(3)) == "0.66667"

    exact = DecimalNumFactory()
    assert exact.num_of(0.1) + exact.num_of(0.2) == exact.num_of("0.3")


def test_factory_selection():
    assert isinstance(NumFactory.create("double"), DoubleNumFactory)
    f = num_factory_from_config(NumConfig(backend="decimal", precision=10))
    assert isinstance(f, DecimalNumFactory)
    assert f.precision == 10
    assert f.backend is NumBackend.DECIMAL


def test_num_config_rejects_unknown_backend():
    with pytest.raises(ValueError):
        NumConfig(backend="float128")
