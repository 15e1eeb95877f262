import pytest

from dtsnarrow.members import (
    ClassMember,
    class_body_lines,
    format_doc_comment,
    member_lines,
    split_members,
    take_modifiers,
)

COUNTER_BODY = """{
  private secret: string = 'x';
  #hidden = 1;
  static readonly NAME = 'counter';
  count: number = 0;
  /** Adds to the count. */
  constructor(public start: number, private token: string) {}
  increment(by = 1): number { return this.count += by; }
  protected reset(): void {}
  get value(): number { return this.count; }
  private helper() {}
}"""


def test_class_body_drops_private_members():
    assert class_body_lines(COUNTER_BODY, keep_comments=False) == [
        "static readonly NAME: 'counter';",
        "count: number;",
        "start: number;",
        "constructor(start: number, token: string);",
        "increment(by?: number): number;",
        "protected reset(): void;",
        "get value(): number;",
    ]


def test_class_body_keeps_member_docs():
    lines = class_body_lines(COUNTER_BODY, keep_comments=True)
    idx = lines.index("/** Adds to the count. */")
    assert lines[idx + 1] == "start: number;"


def test_split_members_without_semicolons():
    members = split_members("{\n  a = 1\n  b = [\n    2,\n  ]\n  c(): void {}\n}")
    assert [m.text for m in members] == ["a = 1", "b = [\n    2,\n  ]", "c(): void {}"]


def test_take_modifiers_stops_at_member_names():
    assert take_modifiers("public static readonly x = 1") == (
        ["public", "static", "readonly"],
        "x = 1",
    )
    # a property named like a modifier
    assert take_modifiers("static: boolean") == ([], "static: boolean")
    assert take_modifiers("readonly?: number") == ([], "readonly?: number")


@pytest.mark.parametrize(
    "text, expected",
    [
        ("label?: string;", ["label?: string;"]),
        ("ref!: Element;", ["ref: Element;"]),
        ("untyped;", ["untyped: any;"]),
        ("readonly max = 10;", ["readonly max: 10;"]),
        ("total = 10;", ["total: number;"]),
        ("[key: string]: number;", ["[key: string]: number;"]),
        ("async load() {}", ["load(): Promise<void>;"]),
        ("*items() {}", ["items(): Generator<unknown, void, unknown>;"]),
        (
            "map<T>(fn: (x: T) => T): T[] { return [] }",
            ["map<T>(fn: (x: T) => T): T[];"],
        ),
        ("set name(v: string) {}", ["set name(v: string);"]),
        ("get size() { return 1 }", ["get size(): unknown;"]),
        ("abstract run(): void;", ["abstract run(): void;"]),
        ("override render(): string { return '' }", ["render(): string;"]),
        ("@Input() title: string;", ["title: string;"]),
        ("static { init(); }", []),
        ("#secret = 1;", []),
        ("private cache = new Map();", []),
    ],
)
def test_member_lines(text, expected):
    assert member_lines(ClassMember(text=text)) == expected


def test_constructor_parameter_properties():
    member = ClassMember(
        text="constructor(readonly id: string, protected n = 1, plain: boolean) {}"
    )
    assert member_lines(member) == [
        "readonly id: string;",
        "protected n: number;",
        "constructor(id: string, n?: number, plain: boolean);",
    ]


def test_format_doc_comment_aligns_gutter():
    doc = "/**\n     * First line.\n     */"
    assert format_doc_comment(doc, "  ") == ["  /**", "   * First line.", "   */"]
