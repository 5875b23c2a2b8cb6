"""Text normalization for similarity ranking."""

from __future__ import annotations

import re

STOP_WORDS = frozenset(
    """
    a an the is are was were be been being have has had do does did will would
    could should may might shall can need dare ought to of in for on with at by
    from as into through during before after above below between out off over
    under again further then once and but or nor not so yet both each few more
    most other some such no only own same than too very just because if when
    where how what which who whom this that these those me my we our you your
    he him his she her it its they them their about up
    """.split()
)

MIN_TOKEN_LENGTH = 2

_SPLIT = re.compile(r"[\s\-_.,;:!?'\"()\[\]{}<>/\\|@#$%^&*+=~`]+")


def tokenize(text: str) -> list[str]:
    """Lower-case, split on whitespace/punctuation, drop stop words and short tokens.

    Order is preserved and duplicates are kept.
    """
    return [
        token
        for token in _SPLIT.split(text.lower())
        if len(token) >= MIN_TOKEN_LENGTH and token not in STOP_WORDS
    ]
