"""
Operator instances.

An operator-sequence string is parsed into immutable, validated operator
values. The set is closed: lower-case opcodes are transforms that replace
the live datasheet, upper-case opcodes are dumps that only read it.

Operators carry no behavior of their own; ``sheetplot.ops.transforms``
dispatches on them with ``match``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import ClassVar, Dict, Optional, Sequence, Tuple, Type, Union

import numpy as np


def format_number(value: float) -> str:
    """Render an argument canonically: ``1.0`` -> ``1``, ``1e-05`` -> ``0.00001``."""
    if float(value).is_integer():
        return str(int(value))
    return np.format_float_positional(float(value), trim="-")


def _check_windows(code: str, args: Tuple[float, ...], strictly_positive: bool) -> None:
    if len(args) not in (1, 2):
        raise ValueError(f"Operator '{code}' takes 1 or 2 arguments, got {len(args)}")
    if not all(math.isfinite(a) and a >= 0 for a in args):
        raise ValueError(f"Operator '{code}': window sizes must be finite and non-negative")
    if len(args) == 1 and strictly_positive and args[0] <= 0:
        raise ValueError(f"Operator '{code}': window size must be positive")
    if len(args) == 2 and strictly_positive and args[0] == 0 and args[1] == 0:
        raise ValueError(f"Operator '{code}': left and right windows cannot both be 0")


class _Plain:
    """Mixin for operators that take no arguments."""

    code: ClassVar[str]
    arity: ClassVar[Tuple[int, ...]] = (0,)

    @property
    def args(self) -> Tuple[float, ...]:
        return ()

    def __str__(self) -> str:
        return self.code


class _Windowed:
    """Mixin for operators taking either ``w`` or ``l,r``."""

    code: ClassVar[str]
    arity: ClassVar[Tuple[int, ...]] = (1, 2)
    args: Tuple[float, ...]

    @property
    def window(self) -> Optional[float]:
        """The single window size, or None for the left/right form."""
        return self.args[0] if len(self.args) == 1 else None

    @property
    def bounds(self) -> Tuple[float, float]:
        """(left, right) reach; ``w`` means ``w, w``."""
        if len(self.args) == 1:
            return self.args[0], self.args[0]
        return self.args[0], self.args[1]

    def __str__(self) -> str:
        return self.code + ",".join(format_number(a) for a in self.args)


# Transforms

@dataclass(frozen=True)
class CDF(_Plain):
    """Empirical CDF of y."""

    code: ClassVar[str] = "c"


@dataclass(frozen=True)
class Derivative(_Windowed):
    """Finite difference of y over x.

    ``w`` walks the sorted rows and emits a slope each time x has advanced at
    least ``w`` from the previous anchor. ``l,r`` emits one slope per row over
    the nearest rows at least ``l`` behind and ``r`` ahead.
    """

    args: Tuple[float, ...]
    code: ClassVar[str] = "d"

    def __post_init__(self):
        object.__setattr__(self, "args", tuple(float(a) for a in self.args))
        _check_windows(self.code, self.args, strictly_positive=True)


@dataclass(frozen=True)
class Integral(_Plain):
    """Running sum of y ordered by x."""

    code: ClassVar[str] = "i"


@dataclass(frozen=True)
class Merge(_Plain):
    """Sum y over consecutive runs of equal x."""

    code: ClassVar[str] = "m"


@dataclass(frozen=True)
class Rotate(_Plain):
    """Swap x and y."""

    code: ClassVar[str] = "r"


@dataclass(frozen=True)
class Step(_Plain):
    """Differences between consecutive y values."""

    code: ClassVar[str] = "s"


@dataclass(frozen=True)
class Sort(_Plain):
    """Stable sort of the rows by x."""

    code: ClassVar[str] = "o"


@dataclass(frozen=True)
class Average(_Windowed):
    """Mean of y over the rows whose x lies in ``[x - l, x + r]``."""

    args: Tuple[float, ...]
    code: ClassVar[str] = "a"

    def __post_init__(self):
        object.__setattr__(self, "args", tuple(float(a) for a in self.args))
        _check_windows(self.code, self.args, strictly_positive=False)


@dataclass(frozen=True)
class FilterFinite(_Plain):
    """Drop rows whose y is INF/NaN."""

    code: ClassVar[str] = "f"


@dataclass(frozen=True)
class Unique(_Plain):
    """Keep the first row of each consecutive run of equal x."""

    code: ClassVar[str] = "u"


# Dumps

@dataclass(frozen=True)
class SaveCheckpoint(_Plain):
    """Persist the live datasheet to the checkpoint cache."""

    code: ClassVar[str] = "C"


@dataclass(frozen=True)
class Output(_Plain):
    """Write the live datasheet as CSV."""

    code: ClassVar[str] = "O"


@dataclass(frozen=True)
class Render(_Plain):
    """Hand the live datasheet to the renderer."""

    code: ClassVar[str] = "P"


Transform = Union[CDF, Derivative, Integral, Merge, Rotate, Step, Sort, Average, FilterFinite, Unique]
Dump = Union[SaveCheckpoint, Output, Render]
Operator = Union[Transform, Dump]

TRANSFORMS: Dict[str, Type] = {
    cls.code: cls
    for cls in (CDF, Derivative, Integral, Merge, Rotate, Step, Sort, Average, FilterFinite, Unique)
}
DUMPS: Dict[str, Type] = {cls.code: cls for cls in (SaveCheckpoint, Output, Render)}


def is_transform(op: Operator) -> bool:
    return type(op).code in TRANSFORMS


def build_operator(code: str, args: Sequence[float] = ()) -> Operator:
    """Create a validated operator from its opcode and arguments.

    Raises:
        ValueError: Unknown opcode, wrong number of arguments or an argument
                    out of range
    """
    table = TRANSFORMS if code.islower() else DUMPS
    if code not in table:
        kind = "transform" if code.islower() else "dump"
        raise ValueError(f"Unknown {kind} operator '{code}'")
    cls = table[code]
    if len(args) not in cls.arity:
        expected = " or ".join(str(n) for n in cls.arity)
        raise ValueError(f"Operator '{code}' takes {expected} argument(s), got {len(args)}")
    if cls.arity == (0,):
        return cls()
    return cls(tuple(args))
