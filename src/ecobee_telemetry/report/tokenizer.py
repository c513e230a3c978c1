"""Split comma-joined report text into tokens."""

from typing import Iterator, List


class TokenSequence:
    """
    Lazy, restartable token view over a delimited string.

    Tokens are produced left to right and iteration stops at the first
    empty token, so ``"a,b,,c"`` yields ``a`` and ``b`` only and a trailing
    delimiter never produces an empty final field. Iterating twice walks
    the source twice.
    """

    def __init__(self, source: str, delimiter: str = ","):
        if not delimiter:
            raise ValueError("delimiter must not be empty")
        self.source = source or ""
        self.delimiter = delimiter

    def __iter__(self) -> Iterator[str]:
        remaining = self.source
        while remaining:
            head, sep, remaining = remaining.partition(self.delimiter)
            if not head:
                return
            yield head
            if not sep:
                return

    def __repr__(self) -> str:
        return f"TokenSequence({self.source!r}, {self.delimiter!r})"


def tokenize(source: str, delimiter: str = ",") -> List[str]:
    """Return the tokens of ``source`` as a list."""
    return list(TokenSequence(source, delimiter))
