import pytest

from dtsnarrow.errors import ScanError
from dtsnarrow.lexer import (
    ScanState,
    code_only,
    contains_word,
    find_assignment,
    find_matching,
    find_top_level,
    identifiers,
    split_top_level,
    strip_comments,
    strip_semicolon,
)


def test_split_top_level_ignores_nested_separators():
    assert split_top_level("a, f(b, c), [d, e], { f: 1, g: 2 }") == [
        "a",
        "f(b, c)",
        "[d, e]",
        "{ f: 1, g: 2 }",
    ]
    # separators inside strings and comments do not count
    assert split_top_level("'a,b', c /* d, e */") == ["'a,b'", "c /* d, e */"]
    assert split_top_level("a, b,") == ["a", "b"]


def test_split_top_level_with_angles():
    assert split_top_level("Map<K, V>, x", angles=True) == ["Map<K, V>", "x"]
    assert split_top_level("Map<K, V>, x") == ["Map<K", "V>", "x"]
    # `=>` is not a closing angle bracket
    assert split_top_level("f: () => void, g", angles=True) == ["f: () => void", "g"]


def test_find_top_level_respects_word_boundaries():
    assert find_top_level("x => y", "=>") == 2
    assert find_top_level("class as", "as") == 6
    assert find_top_level("(a as b)", "as") == -1
    assert find_top_level("'as' as T", "as") == 5


def test_find_matching():
    assert find_matching("(a, (b)) c", 0) == 7
    assert find_matching("{ a: '}' }", 0) == 9
    text = "<T extends Array<U>>"
    assert find_matching(text, 0) == len(text) - 1
    assert find_matching("(a, b", 0) == -1


def test_find_assignment_skips_arrows_and_comparisons():
    text = "a: (x) => void = f"
    idx = find_assignment(text)
    assert text[idx + 1 :].strip() == "f"
    assert find_assignment("a == b") == -1
    assert find_assignment("a: Foo<T = string>") == -1


def test_code_only_and_identifiers():
    assert code_only("a 'b' // c").strip() == "a"
    assert identifiers("Foo | 'Bar' /* Baz */ | Qux") == {"Foo", "Qux"}
    assert identifiers("`${Inner}`") == {"Inner"}


def test_strip_comments_keeps_strings():
    assert strip_comments("a /* x */ b // c\nd") == "a  b \nd"
    assert strip_comments("'//not a comment'") == "'//not a comment'"


def test_strip_semicolon():
    assert strip_semicolon("  a = 1;; ") == "a = 1"
    assert strip_semicolon("';'") == "';'"


def test_contains_word():
    assert contains_word("extends Foo", "Foo")
    assert not contains_word("extends FooBar", "Foo")


def test_regex_literal_is_not_a_comment():
    state = ScanState()
    text = "x = /ab\\/c/g; y"
    i = 0
    while i < len(text):
        i = state.advance(text, i)
    state.finish(text)
    assert state.at_top_level


def test_unterminated_string_position():
    text = "a = 1\nconst s = 'abc\n"
    state = ScanState()
    i = 0
    with pytest.raises(ScanError) as exc_info:
        while i < len(text):
            i = state.advance(text, i)
    err = exc_info.value
    assert err.reason == "unterminated string literal"
    assert (err.line, err.column) == (2, 11)
    assert str(err) == "2:11: unterminated string literal"


def test_finish_reports_unclosed_bracket():
    text = "f(a, [b"
    state = ScanState()
    i = 0
    while i < len(text):
        i = state.advance(text, i)
    with pytest.raises(ScanError, match="unclosed"):
        state.finish(text)


def test_unbalanced_closer_is_clamped():
    state = ScanState()
    text = "a) b"
    i = 0
    while i < len(text):
        i = state.advance(text, i)
    assert state.clamped == 1
    assert state.depth == 0
