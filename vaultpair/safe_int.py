"""Checked integer wrapper for pool arithmetic.

Every reserve, share and fee amount in the pool is an unsigned e6 integer.
SafeInt makes the unsafe operations on such amounts loud by default:
- Division by zero raises DivisionByZero
- Subtraction below zero raises Underflow
- Leaving the unsigned 128-bit domain raises AmountOverflow on to_amount()

Call sites that intend clamping use the named saturating_* helpers instead,
so the choice between "clamp" and "fail" is visible in the code.

Usage pattern:
    from vaultpair.safe_int import S

    def redeem(shares: int, reserve: int, total: int) -> int:
        return (S(shares) * reserve // total).to_amount()
"""

from __future__ import annotations

from vaultpair.constants import AMOUNT_MAX


class SafeIntError(ArithmeticError):
    """Base class for SafeInt arithmetic errors."""

    pass


class DivisionByZero(SafeIntError):
    """Division or modulo by zero."""

    pass


class Underflow(SafeIntError):
    """Subtraction would produce a negative result."""

    pass


class AmountOverflow(SafeIntError):
    """Value does not fit the unsigned 128-bit amount domain."""

    pass


class SafeInt:
    """Integer with checked arithmetic.

    Intermediate values may grow without bound (Python ints), which is what
    the StableSwap solver needs for its D**3 terms. Only the final result is
    narrowed back into the amount domain with to_amount().

    Attributes:
        value: The underlying integer value (read-only)
    """

    __slots__ = ("_value",)
    _value: int

    def __init__(self, value: int | SafeInt) -> None:
        if isinstance(value, SafeInt):
            self._value = value._value
        elif isinstance(value, int) and not isinstance(value, bool):
            self._value = value
        else:
            raise TypeError(f"SafeInt requires int, got {type(value).__name__}")

    @property
    def value(self) -> int:
        """The underlying integer value."""
        return self._value

    def __repr__(self) -> str:
        return f"SafeInt({self._value})"

    def __str__(self) -> str:
        return str(self._value)

    def __hash__(self) -> int:
        return hash(self._value)

    # --- Arithmetic ---

    def __add__(self, other: SafeInt | int) -> SafeInt:
        return SafeInt(self._value + _extract_value(other))

    def __radd__(self, other: int) -> SafeInt:
        return SafeInt(other + self._value)

    def __sub__(self, other: SafeInt | int) -> SafeInt:
        """Subtract other from self.

        Raises:
            Underflow: If the result would be negative
        """
        other_val = _extract_value(other)
        result = self._value - other_val
        if result < 0:
            raise Underflow(f"Underflow: {self._value} - {other_val} = {result}")
        return SafeInt(result)

    def __rsub__(self, other: int) -> SafeInt:
        result = other - self._value
        if result < 0:
            raise Underflow(f"Underflow: {other} - {self._value} = {result}")
        return SafeInt(result)

    def __mul__(self, other: SafeInt | int) -> SafeInt:
        return SafeInt(self._value * _extract_value(other))

    def __rmul__(self, other: int) -> SafeInt:
        return SafeInt(other * self._value)

    def __floordiv__(self, other: SafeInt | int) -> SafeInt:
        """Floor division.

        Raises:
            DivisionByZero: If other is zero
        """
        other_val = _extract_value(other)
        if other_val == 0:
            raise DivisionByZero(f"Division by zero: {self._value} // 0")
        return SafeInt(self._value // other_val)

    def __pow__(self, exponent: int) -> SafeInt:
        return SafeInt(self._value**exponent)

    # --- Comparison ---

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SafeInt):
            return self._value == other._value
        if isinstance(other, int):
            return self._value == other
        return NotImplemented

    def __lt__(self, other: SafeInt | int) -> bool:
        return self._value < _extract_value(other)

    def __le__(self, other: SafeInt | int) -> bool:
        return self._value <= _extract_value(other)

    def __gt__(self, other: SafeInt | int) -> bool:
        return self._value > _extract_value(other)

    def __ge__(self, other: SafeInt | int) -> bool:
        return self._value >= _extract_value(other)

    # --- Conversion ---

    def __int__(self) -> int:
        return self._value

    def __bool__(self) -> bool:
        return self._value != 0

    def __index__(self) -> int:
        return self._value

    # --- Named operations ---

    def ceiling_div(self, other: SafeInt | int) -> SafeInt:
        """Ceiling division (rounds up).

        Raises:
            DivisionByZero: If other is zero
        """
        other_val = _extract_value(other)
        if other_val == 0:
            raise DivisionByZero(f"Ceiling division by zero: {self._value}")
        return SafeInt(-(-self._value // other_val))

    def min(self, other: SafeInt | int) -> SafeInt:
        return SafeInt(min(self._value, _extract_value(other)))

    def abs_diff(self, other: SafeInt | int) -> SafeInt:
        """Absolute difference |self - other| (never raises)."""
        return SafeInt(abs(self._value - _extract_value(other)))

    def saturating_sub(self, other: SafeInt | int) -> SafeInt:
        """Subtract, clamping the result at zero instead of raising."""
        return SafeInt(max(0, self._value - _extract_value(other)))

    def checked_sub(self, other: SafeInt | int) -> SafeInt | None:
        """Subtract, returning None on underflow instead of raising."""
        result = self._value - _extract_value(other)
        if result < 0:
            return None
        return SafeInt(result)

    def to_amount(self) -> int:
        """Narrow to the unsigned 128-bit amount domain.

        Raises:
            AmountOverflow: If the value is negative or exceeds AMOUNT_MAX
        """
        if self._value < 0:
            raise AmountOverflow(f"Negative value is not an amount: {self._value}")
        if self._value > AMOUNT_MAX:
            raise AmountOverflow(f"Value exceeds amount max: {self._value}")
        return self._value


def _extract_value(x: SafeInt | int) -> int:
    """Extract integer value from SafeInt or int."""
    if isinstance(x, SafeInt):
        return x._value
    return x


# Convenience alias for concise code
S = SafeInt
