import pytest

from dtsnarrow.inference import (
    infer,
    is_broad_annotation,
    split_assertion,
    widened_type,
)
from dtsnarrow.models import TypeKind


@pytest.mark.parametrize(
    "value, is_const, expected",
    [
        # literals
        ("'hi'", True, "'hi'"),
        ('"hi"', False, '"hi"'),
        ("42", True, "42"),
        ("42", False, "number"),
        ("-1.5", True, "-1.5"),
        ("0xff", False, "number"),
        ("10n", True, "10n"),
        ("10n", False, "bigint"),
        ("true", True, "true"),
        ("false", False, "boolean"),
        ("null", False, "null"),
        ("undefined", True, "undefined"),
        ("`plain`", False, "`plain`"),
        ("`a${b}`", False, "string"),
        ("`a${b}`", True, "`a${b}`"),
        # arrays
        ("[1, 2, 3]", True, "readonly [1, 2, 3]"),
        ("[]", True, "readonly []"),
        ("[]", False, "never[]"),
        ("[1, 'a', 2]", False, "Array<number | 'a'>"),
        ("[[1], [2]]", True, "readonly [readonly [1], readonly [2]]"),
        # objects
        ("{ a: 1, b: 'x' }", True, "{ a: 1; b: 'x' }"),
        ("{ a: 1 }", False, "{ a: number }"),
        ("{}", True, "{}"),
        ("{ 'b-c': 1, d: [true] }", True, "{ 'b-c': 1; d: readonly [true] }"),
        ("{ ...base, a: 1 }", True, "{ a: 1 }"),
        ("{ [key]: 1, a: 2 }", True, "{ a: 2 }"),
        ("{ name }", True, "{ name: unknown }"),
        (
            "{ m(a: number): string { return '' } }",
            True,
            "{ m: (a: number) => string }",
        ),
        ("{ get x() { return 1 }, set x(v) {} }", True, "{ x: unknown }"),
        # assertions
        ("[1, 2] as const", False, "readonly [1, 2]"),
        ("{ a: 1 } as const", False, "{ a: 1 }"),
        ("value as Config", True, "Config"),
        ("{ a: 1 } satisfies Shape", True, "Shape"),
        # functions
        ("(a: number, b = 2) => a + b", True, "(a: number, b?: number) => unknown"),
        ("(): string => ''", True, "() => string"),
        ("x => 1", True, "(x: unknown) => number"),
        ("async () => 1", True, "() => Promise<number>"),
        ("async (): Promise<string> => ''", True, "() => Promise<string>"),
        ("<T>(x: T) => x", True, "<T>(x: T) => unknown"),
        ("function (a: string) { return a }", True, "(a: string) => unknown"),
        ("async function load() {}", True, "() => Promise<unknown>"),
        # constructors and well known calls
        ("new Date()", True, "Date"),
        ("new Map()", True, "Map<any, any>"),
        ("new Map<string, number>()", True, "Map<string, number>"),
        ("new Widget('a')", True, "Widget"),
        ("new factory()", True, "factory"),
        ("Promise.resolve(1)", True, "Promise<number>"),
        ("Promise.resolve()", True, "Promise<void>"),
        ("Promise.reject(new Error('x'))", True, "Promise<never>"),
        ("Promise.all([1, 'a'])", True, "Promise<[number, 'a']>"),
        ("Symbol('id')", True, "symbol"),
        # everything else
        ("compute()", True, "unknown"),
        ("a + b", True, "unknown"),
        ("(42)", True, "42"),
        ("1 // trailing comment", True, "1"),
    ],
)
def test_infer(value, is_const, expected):
    assert infer(value, is_const).text == expected


def test_infer_never_raises_on_broken_input():
    assert infer("'unterminated", True).text == "unknown"
    assert infer("{ a: ", True).is_unknown
    assert infer("", True).is_unknown
    assert infer(None, True).is_unknown


def test_deeply_nested_values_keep_their_shape():
    nested = "[" * 25 + "1" + "]" * 25
    assert infer(nested, True).text == "readonly [" * 25 + "1" + "]" * 25

    obj = "{ a: " * 25 + "true" + " }" * 25
    assert infer(obj, False).text == "{ a: " * 25 + "boolean" + " }" * 25


def test_function_members_are_parenthesized_in_unions():
    inferred = infer("[() => 1, 2]", False)
    assert inferred.kind is TypeKind.ARRAY
    assert inferred.text == "Array<(() => number) | number>"


@pytest.mark.parametrize(
    "value, expected",
    [("'a'", "string"), ("1", "number"), ("true", "boolean"), ("1n", "bigint")],
)
def test_widened_type(value, expected):
    assert widened_type(value) == expected


@pytest.mark.parametrize(
    "annotation, broad",
    [
        ("any", True),
        ("object", True),
        ("Record<string, unknown>", True),
        ("Array<any>", True),
        ("{ [key: string]: any }", True),
        ("{}", True),
        ("string", False),
        ("Config", False),
        ("{ a: number }", False),
    ],
)
def test_is_broad_annotation(annotation, broad):
    assert is_broad_annotation(annotation) is broad


def test_split_assertion_uses_last_operator():
    assert split_assertion("x as unknown as Foo") == ("x as unknown", "as", "Foo")
    assert split_assertion("(a as B)") is None
    assert split_assertion("plain") is None
