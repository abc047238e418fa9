"""
Request classifier.

Lexical routing between the data path and the conversational path: a message
that contains any interrogative or action verb (show, list, which, how many,
...) needs data; anything else is conversation. Verbs match as words or as
simple inflections ("Showing", "Counts", "Listed") but not inside unrelated
words such as "showcase" or "together".
"""

import re
from enum import StrEnum

DATA_KEYWORDS = (
    "show",
    "list",
    "find",
    "get",
    "which",
    "who",
    "how many",
    "count",
    "what",
    "when",
    "where",
)

_DATA_PATTERN = re.compile(
    r"\b(?:"
    + "|".join(re.escape(keyword).replace(r"\ ", r"\s+") for keyword in DATA_KEYWORDS)
    + r")(?:s|es|ed|ing|ting|n)?\b",
    re.IGNORECASE,
)


class Route(StrEnum):
    NEEDS_DATA = "needs_data"
    CONVERSATIONAL = "conversational"


def needs_data(message: str) -> bool:
    return _DATA_PATTERN.search(message) is not None


def classify(message: str) -> Route:
    """Route a message to the data or conversational path."""
    return Route.NEEDS_DATA if needs_data(message) else Route.CONVERSATIONAL
