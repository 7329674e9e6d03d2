"""Numeric value type shared by indicators, positions and criteria.

Two backends exist:
- ``DOUBLE``: IEEE float, equality tolerant to ``DoubleNum.EPS``
- ``DECIMAL``: ``decimal.Decimal`` with a fixed precision and HALF_UP rounding

A computation graph picks exactly one backend through its ``NumFactory``.
Every value keeps a reference to the factory that built it. Factories are
equal when they share the backend (and, for decimals, the precision); an
expression mixing unequal factories raises ``NumMismatchError``.

Numeric degeneracy (division by zero, sqrt of a negative number, log of a
non-positive number, overflow) never raises: the result is the ``NaN``
sentinel, which propagates through every later operation.
"""

from __future__ import annotations

import decimal
import math
from abc import ABC, abstractmethod
from decimal import Decimal
from enum import Enum
from typing import Union

import numpy as np

from .errors import NumMismatchError

DEFAULT_PRECISION = 20


class NumBackend(str, Enum):
    DOUBLE = "double"
    DECIMAL = "decimal"


def _is_finite(x: float) -> bool:
    return bool(np.isfinite(x))


class Num(ABC):
    """Immutable number. Plain ``int``/``float``/``Decimal`` operands are
    converted through the left-hand value's own factory."""

    __slots__ = ()

    # ---------- backend hooks ----------

    @property
    @abstractmethod
    def factory(self) -> "NumFactory":
        ...

    @property
    @abstractmethod
    def delegate(self) -> Union[float, Decimal]:
        ...

    @abstractmethod
    def _plus(self, other: "Num") -> "Num":
        ...

    @abstractmethod
    def _minus(self, other: "Num") -> "Num":
        ...

    @abstractmethod
    def _times(self, other: "Num") -> "Num":
        ...

    @abstractmethod
    def _divided_by(self, other: "Num") -> "Num":
        ...

    @abstractmethod
    def _power(self, other: "Num") -> "Num":
        ...

    @abstractmethod
    def _compare(self, other: "Num") -> int:
        ...

    @abstractmethod
    def _equals(self, other: "Num") -> bool:
        ...

    @abstractmethod
    def sqrt(self) -> "Num":
        ...

    @abstractmethod
    def log(self) -> "Num":
        ...

    # ---------- shared behaviour ----------

    @property
    def backend(self) -> NumBackend:
        return self.factory.backend

    def is_nan(self) -> bool:
        return False

    def _coerce(self, other) -> "Num":
        if isinstance(other, Num):
            if other.is_nan():
                return other
            if other.factory != self.factory:
                raise NumMismatchError(f"cannot combine values of {self.factory!r} and {other.factory!r}")
            return other
        if isinstance(other, (int, float, Decimal, np.number)) and not isinstance(other, bool):
            return self.factory.num_of(other)
        raise TypeError(f"unsupported operand type: {type(other).__name__}")

    def _apply(self, other, op: str, reflected: bool = False) -> "Num":
        o = self._coerce(other)
        if o.is_nan():
            return NaN
        left, right = (o, self) if reflected else (self, o)
        return getattr(left, op)(right)

    def __add__(self, other) -> "Num":
        return self._apply(other, "_plus")

    def __radd__(self, other) -> "Num":
        return self._apply(other, "_plus", reflected=True)

    def __sub__(self, other) -> "Num":
        return self._apply(other, "_minus")

    def __rsub__(self, other) -> "Num":
        return self._apply(other, "_minus", reflected=True)

    def __mul__(self, other) -> "Num":
        return self._apply(other, "_times")

    def __rmul__(self, other) -> "Num":
        return self._apply(other, "_times", reflected=True)

    def __truediv__(self, other) -> "Num":
        return self._apply(other, "_divided_by")

    def __rtruediv__(self, other) -> "Num":
        return self._apply(other, "_divided_by", reflected=True)

    def __pow__(self, other) -> "Num":
        return self._apply(other, "_power")

    def __neg__(self) -> "Num":
        return self._times(self.factory.minus_one)

    def __abs__(self) -> "Num":
        return -self if self.is_negative() else self

    def pow(self, exponent) -> "Num":
        return self ** exponent

    def abs(self) -> "Num":
        return abs(self)

    def min(self, other) -> "Num":
        o = self._coerce(other)
        if o.is_nan():
            return NaN
        return self if self._compare(o) <= 0 else o

    def max(self, other) -> "Num":
        o = self._coerce(other)
        if o.is_nan():
            return NaN
        return self if self._compare(o) >= 0 else o

    def floor(self) -> "Num":
        return self.factory.num_of(math.floor(self.delegate))

    def ceil(self) -> "Num":
        return self.factory.num_of(math.ceil(self.delegate))

    # comparisons are False whenever NaN is involved

    def __lt__(self, other) -> bool:
        o = self._coerce(other)
        return not o.is_nan() and self._compare(o) < 0

    def __le__(self, other) -> bool:
        o = self._coerce(other)
        return not o.is_nan() and self._compare(o) <= 0

    def __gt__(self, other) -> bool:
        o = self._coerce(other)
        return not o.is_nan() and self._compare(o) > 0

    def __ge__(self, other) -> bool:
        o = self._coerce(other)
        return not o.is_nan() and self._compare(o) >= 0

    def __eq__(self, other) -> bool:
        if not isinstance(other, (Num, int, float, Decimal, np.number)) or isinstance(other, bool):
            return NotImplemented
        o = self._coerce(other)
        return not o.is_nan() and self._equals(o)

    __hash__ = None  # type: ignore[assignment]

    def is_zero(self) -> bool:
        return self._compare(self.factory.zero) == 0

    def is_positive(self) -> bool:
        return self._compare(self.factory.zero) > 0

    def is_positive_or_zero(self) -> bool:
        return self._compare(self.factory.zero) >= 0

    def is_negative(self) -> bool:
        return self._compare(self.factory.zero) < 0

    def is_negative_or_zero(self) -> bool:
        return self._compare(self.factory.zero) <= 0

    def __float__(self) -> float:
        return float(self.delegate)

    def __format__(self, format_spec: str) -> str:
        return format(self.delegate, format_spec)

    def __str__(self) -> str:
        return str(self.delegate)


class _NaNNum(Num):
    """The NaN sentinel. Only one instance exists (``NaN``)."""

    __slots__ = ()

    @property
    def factory(self) -> "NumFactory":
        raise AttributeError("NaN is not bound to a factory")

    @property
    def backend(self):
        return None

    @property
    def delegate(self) -> float:
        return float("nan")

    def is_nan(self) -> bool:
        return True

    def _coerce(self, other) -> Num:
        return self

    def _plus(self, other):
        return self

    _minus = _times = _divided_by = _power = _plus

    def _compare(self, other) -> int:
        raise ArithmeticError("NaN is unordered")

    def _equals(self, other) -> bool:
        return other.is_nan()

    def sqrt(self):
        return self

    def log(self):
        return self

    def __neg__(self):
        return self

    def __abs__(self):
        return self

    def floor(self):
        return self

    ceil = floor

    def __lt__(self, other) -> bool:
        return False

    __le__ = __gt__ = __ge__ = __lt__

    def __eq__(self, other) -> bool:
        if isinstance(other, Num):
            return other.is_nan()
        if isinstance(other, float):
            return math.isnan(other)
        return False

    __hash__ = None  # type: ignore[assignment]

    def is_zero(self) -> bool:
        return False

    is_positive = is_positive_or_zero = is_negative = is_negative_or_zero = is_zero

    def __repr__(self) -> str:
        return "NaN"

    def __str__(self) -> str:
        return "NaN"


NaN: Num = _NaNNum()


class DoubleNum(Num):
    __slots__ = ("_value", "_factory")

    # equality tolerance
    EPS = 1e-5

    def __init__(self, value: float, factory: "DoubleNumFactory"):
        self._value = float(value)
        self._factory = factory

    @property
    def factory(self) -> "DoubleNumFactory":
        return self._factory

    @property
    def delegate(self) -> float:
        return self._value

    def _wrap(self, x: float) -> Num:
        if not _is_finite(x):
            return NaN
        return DoubleNum(x, self._factory)

    def _plus(self, other: Num) -> Num:
        return self._wrap(self._value + other.delegate)

    def _minus(self, other: Num) -> Num:
        return self._wrap(self._value - other.delegate)

    def _times(self, other: Num) -> Num:
        return self._wrap(self._value * other.delegate)

    def _divided_by(self, other: Num) -> Num:
        if other.delegate == 0.0:
            return NaN
        return self._wrap(self._value / other.delegate)

    def _power(self, other: Num) -> Num:
        try:
            return self._wrap(math.pow(self._value, other.delegate))
        except (OverflowError, ValueError):
            return NaN

    def _compare(self, other: Num) -> int:
        o = other.delegate
        return (self._value > o) - (self._value < o)

    def _equals(self, other: Num) -> bool:
        return abs(self._value - other.delegate) < self.EPS

    def sqrt(self) -> Num:
        if self._value < 0:
            return NaN
        return DoubleNum(math.sqrt(self._value), self._factory)

    def log(self) -> Num:
        if self._value <= 0:
            return NaN
        return DoubleNum(math.log(self._value), self._factory)

    def __repr__(self) -> str:
        return f"DoubleNum({self._value!r})"


class DecimalNum(Num):
    __slots__ = ("_value", "_factory")

    def __init__(self, value: Decimal, factory: "DecimalNumFactory"):
        self._value = value
        self._factory = factory

    @property
    def factory(self) -> "DecimalNumFactory":
        return self._factory

    @property
    def delegate(self) -> Decimal:
        return self._value

    def _guarded(self, fn, *args) -> Num:
        try:
            x = fn(*args)
        except decimal.DecimalException:
            return NaN
        if not x.is_finite():
            return NaN
        return DecimalNum(x, self._factory)

    def _plus(self, other: Num) -> Num:
        return self._guarded(self._factory.context.add, self._value, other.delegate)

    def _minus(self, other: Num) -> Num:
        return self._guarded(self._factory.context.subtract, self._value, other.delegate)

    def _times(self, other: Num) -> Num:
        return self._guarded(self._factory.context.multiply, self._value, other.delegate)

    def _divided_by(self, other: Num) -> Num:
        if other.delegate.is_zero():
            return NaN
        return self._guarded(self._factory.context.divide, self._value, other.delegate)

    def _power(self, other: Num) -> Num:
        return self._guarded(self._factory.context.power, self._value, other.delegate)

    def _compare(self, other: Num) -> int:
        return int(self._value.compare(other.delegate))

    def _equals(self, other: Num) -> bool:
        return self._value == other.delegate

    def sqrt(self) -> Num:
        if self._value.is_signed() and not self._value.is_zero():
            return NaN
        return self._guarded(self._factory.context.sqrt, self._value)

    def log(self) -> Num:
        if self._value <= 0:
            return NaN
        return self._guarded(self._factory.context.ln, self._value)

    def __repr__(self) -> str:
        return f"DecimalNum({str(self._value)!r})"


class NumFactory(ABC):
    """Builds values of one backend and exposes the common constants."""

    backend: NumBackend

    def __init__(self):
        self.minus_one = self.num_of(-1)
        self.zero = self.num_of(0)
        self.one = self.num_of(1)
        self.two = self.num_of(2)
        self.three = self.num_of(3)
        self.hundred = self.num_of(100)
        self.thousand = self.num_of(1000)

    @property
    def nan(self) -> Num:
        return NaN

    @abstractmethod
    def num_of(self, value) -> Num:
        ...

    def produces(self, num: Num) -> bool:
        """True if ``num`` may take part in expressions of this factory."""
        return num.is_nan() or num.factory == self

    def _identity(self) -> tuple:
        return (self.backend,)

    def __eq__(self, other) -> bool:
        if not isinstance(other, NumFactory):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    @staticmethod
    def create(backend: NumBackend | str, precision: int = DEFAULT_PRECISION) -> "NumFactory":
        backend = NumBackend(backend)
        if backend is NumBackend.DOUBLE:
            return DoubleNumFactory()
        return DecimalNumFactory(precision=precision)


class DoubleNumFactory(NumFactory):
    backend = NumBackend.DOUBLE

    def num_of(self, value) -> Num:
        if isinstance(value, Num):
            if value.is_nan():
                return NaN
            if value.factory == self:
                return value
            value = value.delegate
        x = float(value)
        if not _is_finite(x):
            return NaN
        return DoubleNum(x, self)

    def __repr__(self) -> str:
        return "DoubleNumFactory()"


class DecimalNumFactory(NumFactory):
    backend = NumBackend.DECIMAL

    def __init__(self, precision: int = DEFAULT_PRECISION):
        if precision <= 0:
            raise ValueError("precision must be positive")
        self.precision = int(precision)
        self.context = decimal.Context(prec=self.precision, rounding=decimal.ROUND_HALF_UP)
        super().__init__()

    def _identity(self) -> tuple:
        return (self.backend, self.precision)

    def num_of(self, value) -> Num:
        if isinstance(value, Num):
            if value.is_nan():
                return NaN
            if value.factory == self:
                return value
            value = value.delegate
        if isinstance(value, np.integer):
            value = int(value)
        elif isinstance(value, np.floating):
            value = float(value)
        if isinstance(value, float):
            # go through repr so 0.1 becomes Decimal('0.1'), not its binary expansion
            if not _is_finite(value):
                return NaN
            value = repr(float(value))
        try:
            x = self.context.create_decimal(value)
        except decimal.DecimalException:
            return NaN
        if not x.is_finite():
            return NaN
        return DecimalNum(x, self)

    def __repr__(self) -> str:
        return f"DecimalNumFactory(precision={self.precision})"
