"""
Operator-sequence parsing and canonical rendering.

An operator sequence is a compact string such as ``"od5,0.5CP"``: each
operator is one ASCII letter, optionally followed by comma-separated numeric
arguments that run up to the next letter.

Parsing validates every operator eagerly, so once an ``OpSeq`` exists its
operators can only fail on data, never on their arguments. ``prefix``
re-renders any leading part of the sequence in canonical form; the
transform-only prefix is the checkpoint cache key.
"""

import logging
import re
from typing import Iterator, List, Optional, Sequence, Tuple

from sheetplot.exceptions import OpSeqParseError
from sheetplot.ops.operators import Operator, Transform, build_operator, is_transform
from sheetplot.ops.transforms import transformed_names

logger = logging.getLogger(__name__)

_NUMBER = re.compile(r"[+-]?(?:\d+(?:\.\d+)?|\.\d+)")


class OpSeq:
    """A parsed, validated sequence of operators.

    Attributes:
        operators: The operators in application order
        text: The string the sequence was parsed from (may be empty when
              built directly from operators)
    """

    def __init__(self, operators: Sequence[Operator], text: str = "") -> None:
        self.operators: Tuple[Operator, ...] = tuple(operators)
        self.text = text

    @classmethod
    def parse(cls, text: str) -> "OpSeq":
        """Parse an operator-sequence string.

        Raises:
            OpSeqParseError: Empty input, a non-letter opcode, an unknown
                             opcode, a malformed number, wrong arity or an
                             out-of-range argument
        """
        if not text:
            raise OpSeqParseError("Empty operator sequence")

        operators = []
        pos = 0
        while pos < len(text):
            code = text[pos]
            if not (code.isascii() and code.isalpha()):
                raise OpSeqParseError(f"Non-alphabetic operator {code!r}", text[pos:], pos)

            end = pos + 1
            while end < len(text) and not (text[end].isascii() and text[end].isalpha()):
                end += 1
            fragment = text[pos:end]

            args = []
            if end > pos + 1:
                for arg in text[pos + 1:end].split(","):
                    if not _NUMBER.fullmatch(arg):
                        raise OpSeqParseError(f"Invalid argument {arg!r} for operator '{code}'", fragment, pos)
                    args.append(float(arg))

            try:
                operators.append(build_operator(code, args))
            except ValueError as e:
                raise OpSeqParseError(str(e), fragment, pos) from e
            pos = end

        logger.debug("Parsed operator sequence %r into %d operators", text, len(operators))
        return cls(operators, text)

    def __len__(self) -> int:
        return len(self.operators)

    def __iter__(self) -> Iterator[Operator]:
        return iter(self.operators)

    def __getitem__(self, index: int) -> Operator:
        return self.operators[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OpSeq):
            return NotImplemented
        return self.operators == other.operators

    def __str__(self) -> str:
        return self.prefix(len(self))

    def __repr__(self) -> str:
        return f"OpSeq({str(self)!r})"

    @property
    def transforms(self) -> List[Transform]:
        return [op for op in self.operators if is_transform(op)]

    def prefix(self, n: int, include_dumps: bool = True) -> str:
        """Render the first ``n`` operators canonically.

        Arguments are rendered as integers when integral, so ``d1.0`` and
        ``d1`` give the same string. With ``include_dumps=False`` only the
        transforms are rendered; that form is the checkpoint cache key.
        """
        return "".join(
            str(op) for op in self.operators[:n] if include_dumps or is_transform(op)
        )

    def transform_count(self, n: Optional[int] = None) -> int:
        """Number of transforms among the first ``n`` operators (all by default)."""
        ops = self.operators if n is None else self.operators[:n]
        return sum(1 for op in ops if is_transform(op))

    def resume_index(self, transforms: int) -> int:
        """Index of the operator following the ``transforms``-th transform.

        Dumps that sit between already-applied transforms are not replayed.

        Raises:
            ValueError: If the sequence has fewer than ``transforms`` transforms
        """
        if transforms == 0:
            return 0
        seen = 0
        for index, op in enumerate(self.operators):
            if is_transform(op):
                seen += 1
                if seen == transforms:
                    return index + 1
        raise ValueError(f"Sequence has {seen} transforms, cannot resume after {transforms}")

    def column_names(self, xname: str, yname: str) -> Tuple[str, str]:
        """Predict the (x, y) column names after every transform is applied."""
        for op in self.transforms:
            xname, yname = transformed_names(op, xname, yname)
        return xname, yname


def parse_transforms(opstr: str) -> List[Transform]:
    """Parse a transform-only cache key; the empty string means no transforms."""
    if not opstr:
        return []
    return OpSeq.parse(opstr).transforms


def check_opseq(text: str) -> OpSeq:
    """Validate an operator-sequence string, returning the parsed sequence."""
    return OpSeq.parse(text)
