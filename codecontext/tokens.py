"""Approximate token counting for source text.

This is a character-ratio heuristic, not a model tokenizer: every span is
charged ``ceil(chars * 0.25)`` (roughly four characters per token).  Counts
are only good for budgeting and will differ from a real tokenizer.
"""

from __future__ import annotations

import math
import re
from typing import List

from .models import TokenBreakdown, TokenEstimate

TOKENS_PER_CHAR = 0.25

COMMENT_RE = re.compile(r"//.*$|/\*[\s\S]*?\*/|#.*$", re.MULTILINE)
STRING_RE = re.compile(r"([\"'`])(?:(?!\1)[^\\]|\\.)*\1")
WHITESPACE_RE = re.compile(r"\s+")


def span_tokens(characters: int) -> int:
    return math.ceil(characters * TOKENS_PER_CHAR)


def _joined_length(matches: List[str]) -> int:
    return len("\n".join(matches))


def estimate_tokens(content: str) -> TokenEstimate:
    """Estimate tokens for *content*, split into code / comments / strings.

    Whitespace is reported in the breakdown but not added to the total.
    String literals are counted over the original text, so a quote inside a
    comment is charged twice.
    """
    comment_tokens = span_tokens(_joined_length(COMMENT_RE.findall(content)))
    string_tokens = span_tokens(_joined_length([m.group(0) for m in STRING_RE.finditer(content)]))

    code = STRING_RE.sub("", COMMENT_RE.sub("", content))
    code_tokens = span_tokens(len(code))
    whitespace_tokens = span_tokens(sum(len(ws) for ws in WHITESPACE_RE.findall(content)))

    return TokenEstimate(
        tokens=comment_tokens + string_tokens + code_tokens,
        characters=len(content),
        lines=len(content.split("\n")),
        breakdown=TokenBreakdown(
            code=code_tokens,
            comments=comment_tokens,
            strings=string_tokens,
            whitespace=whitespace_tokens,
        ),
    )


def line_cost(line: str) -> int:
    """Token cost of one line when chunking, including its newline."""
    return span_tokens(len(line)) + 1
