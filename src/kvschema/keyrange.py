"""Chainable key ranges for store and index queries.

A range starts from any single bound and may then receive the bound of the
other side exactly once. Which methods exist depends on the bounds already
set: a range with a lower bound only offers ``lt``/``lte``, one with an
upper bound only offers ``gt``/``gte``, and a fully bounded range offers
neither. The concrete :class:`NativeKeyRange` is only built, and validated,
by :meth:`TypedKeyRange.to_native`.

Example:
    >>> KeyRange.gt(10).lte(100).to_native().includes(100)
    True
    >>> KeyRange.lt(100).gte(10)      # 10 <= key < 100, order doesn't matter
    >>> KeyRange.eq("user-123")
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

K = TypeVar("K")


class InvalidKeyRangeError(ValueError):
    """Raised for an invalid key or a range whose bounds are out of order."""

    pass


# =============================================================================
# Key ordering
# =============================================================================

_NUMBER, _DATE, _STRING, _BINARY, _ARRAY = range(5)


def _key_class(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else _NUMBER
    if isinstance(value, (datetime, date)):
        return _DATE
    if isinstance(value, str):
        return _STRING
    if isinstance(value, (bytes, bytearray, memoryview)):
        return _BINARY
    if isinstance(value, (list, tuple)):
        return _ARRAY if all(is_valid_key(v) for v in value) else None
    return None


def is_valid_key(value: Any) -> bool:
    """Check a runtime value against the storage engine's key rules."""
    return _key_class(value) is not None


def _as_naive_utc(value: date) -> datetime:
    if not isinstance(value, datetime):
        return datetime.combine(value, time())
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def compare_keys(a: Any, b: Any) -> int:
    """Compare two keys: number < Date < string < binary < array.

    Arrays compare element by element, then by length.

    Returns:
        -1, 0 or 1.

    Raises:
        InvalidKeyRangeError: If either value is not a valid key.
    """
    class_a, class_b = _key_class(a), _key_class(b)
    if class_a is None:
        raise InvalidKeyRangeError(f"Not a valid key: {a!r}")
    if class_b is None:
        raise InvalidKeyRangeError(f"Not a valid key: {b!r}")

    if class_a != class_b:
        return -1 if class_a < class_b else 1
    if class_a == _ARRAY:
        for left, right in zip(a, b):
            result = compare_keys(left, right)
            if result:
                return result
        return _cmp(len(a), len(b))
    if class_a == _DATE:
        return _cmp(_as_naive_utc(a), _as_naive_utc(b))
    if class_a == _BINARY:
        return _cmp(bytes(a), bytes(b))
    return _cmp(a, b)


# =============================================================================
# Native range
# =============================================================================


class _Unbounded:
    """Marker for a side of a range without a bound."""

    _instance: "_Unbounded | None" = None

    def __new__(cls) -> "_Unbounded":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNBOUNDED"


_UNBOUNDED = _Unbounded()


@dataclass(frozen=True)
class NativeKeyRange:
    """Concrete key range; a side left at its default is unbounded."""

    lower: Any = _UNBOUNDED
    upper: Any = _UNBOUNDED
    lower_open: bool = False
    upper_open: bool = False

    def __post_init__(self) -> None:
        if self.lower is _UNBOUNDED and self.upper is _UNBOUNDED:
            raise InvalidKeyRangeError("A key range needs at least one bound")
        for value in (self.lower, self.upper):
            if value is not _UNBOUNDED and not is_valid_key(value):
                raise InvalidKeyRangeError(f"Not a valid key: {value!r}")
        if self.lower is not _UNBOUNDED and self.upper is not _UNBOUNDED:
            order = compare_keys(self.lower, self.upper)
            if order > 0:
                raise InvalidKeyRangeError(
                    f"Lower bound {self.lower!r} is greater than upper bound {self.upper!r}"
                )
            if order == 0 and (self.lower_open or self.upper_open):
                raise InvalidKeyRangeError(
                    f"Bounds are equal ({self.lower!r}) but at least one side is open"
                )

    @classmethod
    def only(cls, value: Any) -> "NativeKeyRange":
        return cls(value, value)

    @classmethod
    def lower_bound(cls, lower: Any, open: bool = False) -> "NativeKeyRange":
        return cls(lower=lower, lower_open=open)

    @classmethod
    def upper_bound(cls, upper: Any, open: bool = False) -> "NativeKeyRange":
        return cls(upper=upper, upper_open=open)

    @classmethod
    def bound(
        cls,
        lower: Any,
        upper: Any,
        lower_open: bool = False,
        upper_open: bool = False,
    ) -> "NativeKeyRange":
        return cls(lower, upper, lower_open, upper_open)

    def includes(self, key: Any) -> bool:
        """Check whether ``key`` falls inside the range."""
        if not is_valid_key(key):
            raise InvalidKeyRangeError(f"Not a valid key: {key!r}")
        if self.lower is not _UNBOUNDED:
            order = compare_keys(self.lower, key)
            if order > 0 or (order == 0 and self.lower_open):
                return False
        if self.upper is not _UNBOUNDED:
            order = compare_keys(self.upper, key)
            if order < 0 or (order == 0 and self.upper_open):
                return False
        return True


# =============================================================================
# Typed, chainable ranges
# =============================================================================


class BoundKind(str, Enum):
    """Which bounds a range carries."""

    ONLY = "only"
    LOWER = "lower"
    UPPER = "upper"
    BOUND = "bound"


@dataclass(frozen=True)
class RangeBounds:
    """Stored bounds; converted to a native range only on demand."""

    kind: BoundKind
    lower: Any = _UNBOUNDED
    upper: Any = _UNBOUNDED
    lower_open: bool = False
    upper_open: bool = False

    def to_native(self) -> NativeKeyRange:
        if self.kind is BoundKind.ONLY:
            return NativeKeyRange.only(self.lower)
        if self.kind is BoundKind.LOWER:
            return NativeKeyRange.lower_bound(self.lower, self.lower_open)
        if self.kind is BoundKind.UPPER:
            return NativeKeyRange.upper_bound(self.upper, self.upper_open)
        return NativeKeyRange.bound(self.lower, self.upper, self.lower_open, self.upper_open)


class TypedKeyRange(Generic[K]):
    """A key range over keys of type ``K``."""

    __slots__ = ("_bounds",)

    def __init__(self, bounds: RangeBounds) -> None:
        self._bounds = bounds

    @property
    def bounds(self) -> RangeBounds:
        return self._bounds

    def to_native(self) -> NativeKeyRange:
        """Build the concrete range.

        Raises:
            InvalidKeyRangeError: If a bound is not a valid key or the bounds
                are out of order.
        """
        return self._bounds.to_native()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TypedKeyRange):
            return NotImplemented
        return self._bounds == other._bounds

    def __hash__(self) -> int:
        return hash(self._bounds)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._bounds!r})"


class BoundedKeyRange(TypedKeyRange[K]):
    """A range with both bounds set; it cannot be narrowed further."""

    __slots__ = ()


class LowerBoundedKeyRange(TypedKeyRange[K]):
    """A range with a lower bound; an upper bound may still be added."""

    __slots__ = ()

    def _with_upper(self, value: K, open: bool) -> BoundedKeyRange[K]:
        return BoundedKeyRange(
            RangeBounds(
                BoundKind.BOUND,
                lower=self._bounds.lower,
                upper=value,
                lower_open=self._bounds.lower_open,
                upper_open=open,
            )
        )

    def lt(self, value: K) -> BoundedKeyRange[K]:
        """Add an exclusive upper bound: key < value."""
        return self._with_upper(value, True)

    def lte(self, value: K) -> BoundedKeyRange[K]:
        """Add an inclusive upper bound: key <= value."""
        return self._with_upper(value, False)


class UpperBoundedKeyRange(TypedKeyRange[K]):
    """A range with an upper bound; a lower bound may still be added."""

    __slots__ = ()

    def _with_lower(self, value: K, open: bool) -> BoundedKeyRange[K]:
        return BoundedKeyRange(
            RangeBounds(
                BoundKind.BOUND,
                lower=value,
                upper=self._bounds.upper,
                lower_open=open,
                upper_open=self._bounds.upper_open,
            )
        )

    def gt(self, value: K) -> BoundedKeyRange[K]:
        """Add an exclusive lower bound: key > value."""
        return self._with_lower(value, True)

    def gte(self, value: K) -> BoundedKeyRange[K]:
        """Add an inclusive lower bound: key >= value."""
        return self._with_lower(value, False)


class KeyRange:
    """Factory for typed key ranges.

    ``gt``/``gte``/``lt``/``lte`` start a chain; ``lower_bound``,
    ``upper_bound``, ``bound`` and ``eq`` mirror the native constructors and
    return plain ranges.
    """

    @staticmethod
    def gt(value: K) -> LowerBoundedKeyRange[K]:
        return LowerBoundedKeyRange(RangeBounds(BoundKind.LOWER, lower=value, lower_open=True))

    @staticmethod
    def gte(value: K) -> LowerBoundedKeyRange[K]:
        return LowerBoundedKeyRange(RangeBounds(BoundKind.LOWER, lower=value, lower_open=False))

    @staticmethod
    def lt(value: K) -> UpperBoundedKeyRange[K]:
        return UpperBoundedKeyRange(RangeBounds(BoundKind.UPPER, upper=value, upper_open=True))

    @staticmethod
    def lte(value: K) -> UpperBoundedKeyRange[K]:
        return UpperBoundedKeyRange(RangeBounds(BoundKind.UPPER, upper=value, upper_open=False))

    @staticmethod
    def lower_bound(lower: K, open: bool = False) -> TypedKeyRange[K]:
        return TypedKeyRange(RangeBounds(BoundKind.LOWER, lower=lower, lower_open=open))

    @staticmethod
    def upper_bound(upper: K, open: bool = False) -> TypedKeyRange[K]:
        return TypedKeyRange(RangeBounds(BoundKind.UPPER, upper=upper, upper_open=open))

    @staticmethod
    def bound(
        lower: K,
        upper: K,
        lower_open: bool = False,
        upper_open: bool = False,
    ) -> TypedKeyRange[K]:
        return TypedKeyRange(RangeBounds(BoundKind.BOUND, lower, upper, lower_open, upper_open))

    @staticmethod
    def eq(value: K) -> TypedKeyRange[K]:
        """Match exactly one key."""
        return TypedKeyRange(RangeBounds(BoundKind.ONLY, lower=value, upper=value))
