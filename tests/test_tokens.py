"""Tests for the character-ratio token estimator."""

from codecontext.tokens import estimate_tokens, line_cost, span_tokens


def test_empty_content():
    estimate = estimate_tokens("")

    assert estimate.tokens == 0
    assert estimate.characters == 0
    assert estimate.lines == 1


def test_span_tokens_rounds_up():
    assert span_tokens(0) == 0
    assert span_tokens(1) == 1
    assert span_tokens(4) == 1
    assert span_tokens(5) == 2


def test_breakdown():
    content = "const s = 'abcd'; // note"
    estimate = estimate_tokens(content)

    assert estimate.breakdown.comments == 2  # "// note"
    assert estimate.breakdown.strings == 2  # "'abcd'"
    assert estimate.breakdown.code == 3  # "const s = ; "
    assert estimate.breakdown.whitespace == 2
    assert estimate.tokens == 7
    assert estimate.characters == 25


def test_whitespace_is_not_added_to_total():
    estimate = estimate_tokens("x = 1\n\n\n    y = 2")
    breakdown = estimate.breakdown

    assert estimate.tokens == breakdown.code + breakdown.comments + breakdown.strings
    assert estimate.lines == 4


def test_hash_and_block_comments():
    estimate = estimate_tokens("x = 1  # python note\n/* block */")
    assert estimate.breakdown.comments == span_tokens(len("# python note\n/* block */"))


def test_growing_content_never_costs_less():
    content = ""
    previous = 0
    for line in ["import os", "def run():", "    return os.getcwd()  # cwd", "print('done')"]:
        content += line + "\n"
        current = estimate_tokens(content).tokens
        assert current >= previous
        previous = current


def test_line_cost_includes_newline():
    assert line_cost("") == 1
    assert line_cost("abcd") == 2
    assert line_cost("abcde") == 3
