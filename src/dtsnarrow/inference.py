import re
from typing import List, Optional, Tuple

from dtsnarrow.errors import ScanError
from dtsnarrow.lexer import (
    LexContext,
    ScanState,
    collapse_whitespace,
    find_matching,
    find_top_level,
    is_identifier,
    split_top_level,
    strip_comments,
    strip_semicolon,
)
from dtsnarrow.models import UNKNOWN_TYPE, InferredType, TypeKind
from dtsnarrow.signatures import (
    normalize_parameters,
    parse_function,
    read_generics,
    read_identifier,
    skip_space,
)

_NUMBER_RE = re.compile(
    r"^-?(?:0[xX][0-9a-fA-F_]+|0[bB][01_]+|0[oO][0-7_]+|"
    r"(?:\d[\d_]*)?\.?\d[\d_]*(?:[eE][+-]?\d+)?)$"
)
_BIGINT_RE = re.compile(r"^-?\d[\d_]*n$")
_METHOD_RE = re.compile(
    r"^(?:(async)\s+)?(\*\s*)?(?:(get|set)\s+)?"
    r"([A-Za-z_$][\w$]*|'[^']*'|\"[^\"]*\"|\d+)\s*[<(]"
)
_INDEX_SIGNATURE_RE = re.compile(
    r"^\{\s*\[\s*[\w$]+\s*:\s*(?:string|number|symbol)\s*\]\s*:\s*"
    r"(?:any|string|number|unknown)\s*;?\s*\}$"
)

NEW_EXPRESSION_TYPES = {
    "Date": "Date",
    "Map": "Map<any, any>",
    "Set": "Set<any>",
    "WeakMap": "WeakMap<any, any>",
    "WeakSet": "WeakSet<any>",
    "RegExp": "RegExp",
    "Error": "Error",
    "Array": "any[]",
    "Promise": "Promise<any>",
}

_BROAD_ANNOTATIONS = frozenset({"any", "object", "unknown", "Object", "{}"})


def _literal(text: str) -> InferredType:
    return InferredType(text=text, kind=TypeKind.LITERAL)


def _reference(text: str) -> InferredType:
    return InferredType(text=text, kind=TypeKind.REFERENCE)


def infer(value: Optional[str], is_const: bool) -> InferredType:
    """
    Infer the narrowest faithful type of a value expression.

    This never raises: anything it does not recognize becomes ``unknown``.
    *is_const* selects literal types for numbers, booleans and templates and
    ``readonly`` tuples for arrays; it is propagated into nested values.
    """
    try:
        return _infer(value, is_const)
    except RecursionError:
        return UNKNOWN_TYPE


def _infer(value: Optional[str], is_const: bool) -> InferredType:
    if not value:
        return UNKNOWN_TYPE
    expr = strip_semicolon(strip_comments(value))
    if not expr:
        return UNKNOWN_TYPE

    if _is_function_expression(expr):
        return _infer_function(expr)

    assertion = split_assertion(expr)
    if assertion is not None:
        inner, operator, target = assertion  # `satisfies T` and `as T` both give T
        if operator == "as" and target == "const":
            return _infer(inner, True)
        return _reference(target)

    literal = _infer_literal(expr, is_const)
    if literal is not None:
        return literal

    if expr[0] == "[" and find_matching(expr, 0) == len(expr) - 1:
        return _infer_array(expr[1:-1], is_const)
    if expr[0] == "{" and find_matching(expr, 0) == len(expr) - 1:
        return _infer_object(expr[1:-1], is_const)
    if expr[0] == "(" and find_matching(expr, 0) == len(expr) - 1:
        return _infer(expr[1:-1], is_const)

    if expr.startswith("new") and expr[3:4].isspace():
        return _infer_new(expr[3:].strip())
    if expr.startswith("Promise."):
        return _infer_promise(expr)
    if expr.startswith(("Symbol(", "Symbol.for(")) and expr.endswith(")"):
        return _reference("symbol")

    return UNKNOWN_TYPE


def widen(inferred: InferredType) -> InferredType:
    """
    Widen a literal type to its primitive: ``'a'`` to ``string``, ``1`` to
    ``number``, ``true`` to ``boolean`` and ``1n`` to ``bigint``.
    """
    if inferred.kind is not TypeKind.LITERAL:
        return inferred
    text = inferred.text
    if text[:1] in ("'", '"', "`"):
        return _reference("string")
    if text in ("true", "false"):
        return _reference("boolean")
    if _BIGINT_RE.match(text):
        return _reference("bigint")
    if _NUMBER_RE.match(text):
        return _reference("number")
    return inferred


def widened_type(value: str) -> str:
    return widen(infer(value, False)).text


def parameter_list(params: List[str]) -> str:
    """
    Render raw parameters for a declaration; untyped defaults are typed with
    the widened inferred type of the default value.
    """
    return normalize_parameters(params, widened_type)


def is_broad_annotation(annotation: str) -> bool:
    """
    True for annotations that say less than the value itself would, such as
    ``any``, ``Record<...>`` or a plain index signature.
    """
    text = collapse_whitespace(annotation)
    if text in _BROAD_ANNOTATIONS:
        return True
    if text.startswith(("Record<", "Array<")) and text.endswith(">"):
        return True
    return bool(_INDEX_SIGNATURE_RE.match(text))


def split_assertion(expr: str) -> Optional[Tuple[str, str, str]]:
    """
    Split ``value as T`` / ``value satisfies T`` at the last top-level
    operator into ``(value, operator, T)``.
    """
    best: Optional[Tuple[int, str]] = None
    for operator in ("as", "satisfies"):
        pos = -1
        start = 0
        while True:
            found = find_top_level(expr, operator, start)
            if found == -1:
                break
            pos = found
            start = found + len(operator)
        if pos > 0 and (best is None or pos > best[0]):
            best = (pos, operator)
    if best is None:
        return None
    pos, operator = best
    inner = expr[:pos].strip()
    target = collapse_whitespace(expr[pos + len(operator) :].strip())
    if not inner or not target:
        return None
    return inner, operator, target


# ---------------------------------------------------------------------------
# Literals
# ---------------------------------------------------------------------------


def _single_literal(expr: str) -> bool:
    """
    True when *expr* is exactly one string or template literal.
    """
    state = ScanState()
    try:
        i = state.advance(expr, 0)
        while i < len(expr) and state.context is not LexContext.NORMAL:
            i = state.advance(expr, i)
    except ScanError:
        return False
    return i == len(expr) and state.context is LexContext.NORMAL


def _infer_literal(expr: str, is_const: bool) -> Optional[InferredType]:
    first = expr[0]
    if first in ("'", '"') and _single_literal(expr):
        return _literal(expr)
    if first == "`" and _single_literal(expr):
        if "${" not in expr or is_const:
            return _literal(expr)
        return _reference("string")

    if _NUMBER_RE.match(expr):
        return _literal(expr) if is_const else _reference("number")
    if _BIGINT_RE.match(expr):
        return _literal(expr) if is_const else _reference("bigint")
    if expr in ("true", "false"):
        return _literal(expr) if is_const else _reference("boolean")
    if expr in ("null", "undefined"):
        return _literal(expr)
    return None


# ---------------------------------------------------------------------------
# Arrays and objects
# ---------------------------------------------------------------------------


def _infer_array(content: str, is_const: bool) -> InferredType:
    elements = split_top_level(content)
    if is_const:
        types = [_infer(e, True).text for e in elements]
        return InferredType(
            text="readonly [" + ", ".join(types) + "]", kind=TypeKind.TUPLE
        )
    if not elements:
        return InferredType(text="never[]", kind=TypeKind.ARRAY)

    members: List[str] = []
    for element in elements:
        member = _infer(element, False).in_union()
        if member not in members:
            members.append(member)
    return InferredType(
        text="Array<" + " | ".join(members) + ">", kind=TypeKind.ARRAY
    )


def _property_key(key: str) -> Optional[str]:
    key = key.strip()
    if not key or key.startswith("["):
        return None
    if key[0] in ("'", '"') or is_identifier(key) or key.isdigit():
        return key
    return "'" + key.replace("\\", "\\\\").replace("'", "\\'") + "'"


def _infer_method(prop: str) -> Optional[Tuple[str, Optional[InferredType]]]:
    """
    Type an object literal method. Returns None when *prop* is not a method;
    a setter yields its key with no type and is left out of the object.
    """
    match = _METHOD_RE.match(prop)
    if match is None:
        return None
    is_async, star, accessor, name = match.groups()
    key = _property_key(name)
    rest = prop[match.start(4) + len(name) :]
    parsed = parse_function(
        ("async " if is_async else "") + "function" + (star or "") + " " + rest
    )
    if key is None or parsed is None:
        return "", None
    _, signature = parsed
    if accessor == "get":
        return key, _reference(signature.return_type or "unknown")
    if accessor == "set":
        return key, None
    return key, _function_type(
        signature.generics,
        parameter_list(signature.parameters),
        signature.return_type,
        bool(is_async),
    )


def _infer_object(content: str, is_const: bool) -> InferredType:
    entries: List[str] = []
    for prop in split_top_level(content):
        if prop.startswith("..."):
            continue
        method = _infer_method(prop)
        if method is not None:
            key, value_type = method
            if value_type is not None:
                entries.append(f"{key}: {value_type.text}")
            continue
        colon = find_top_level(prop, ":")
        if colon == -1:
            # shorthand property refers to a binding we cannot see
            if is_identifier(prop):
                entries.append(f"{prop}: unknown")
            continue
        key = _property_key(prop[:colon])
        if key is not None:
            entries.append(f"{key}: {_infer(prop[colon + 1 :], is_const).text}")
    if not entries:
        return InferredType(text="{}", kind=TypeKind.OBJECT)
    return InferredType(text="{ " + "; ".join(entries) + " }", kind=TypeKind.OBJECT)


# ---------------------------------------------------------------------------
# Functions
# ---------------------------------------------------------------------------


def _is_function_expression(expr: str) -> bool:
    head = expr
    if head.startswith("async") and head[5:6].isspace():
        head = head[5:].lstrip()
    if head.startswith("function") and not is_identifier(head[:9]):
        return True
    return find_top_level(expr, "=>", angles=True) != -1


def _function_type(
    generics: Optional[str],
    params: str,
    return_type: Optional[str],
    is_async: bool,
    annotated: bool = True,
) -> InferredType:
    """
    Build ``<G>(params) => R``. Async functions get ``Promise<R>`` unless
    the return type was written out by the author.
    """
    ret = return_type or "unknown"
    if is_async and not (annotated and return_type):
        ret = f"Promise<{ret}>"
    return InferredType(
        text=f"{generics or ''}({params}) => {ret}", kind=TypeKind.FUNCTION
    )


def _infer_function(expr: str) -> InferredType:
    rest = expr
    is_async = False
    if rest.startswith("async") and rest[5:6].isspace():
        is_async = True
        rest = rest[5:].lstrip()

    if rest.startswith("function"):
        parsed = parse_function(rest)
        if parsed is None:
            return UNKNOWN_TYPE
        _, signature = parsed
        return _function_type(
            signature.generics,
            parameter_list(signature.parameters),
            signature.return_type,
            is_async,
        )

    generics, i = read_generics(rest, 0)
    i = skip_space(rest, i)
    if i < len(rest) and rest[i] == "(":
        close = find_matching(rest, i)
        if close == -1:
            return UNKNOWN_TYPE
        params = split_top_level(rest[i + 1 : close], ",", angles=True)
        after = rest[close + 1 :]
    else:
        name, j = read_identifier(rest, i)
        if not name:
            return UNKNOWN_TYPE
        params = [name]
        after = rest[j:]

    arrow = find_top_level(after, "=>", angles=True)
    if arrow == -1:
        return UNKNOWN_TYPE
    head = after[:arrow].strip()
    body = after[arrow + 2 :].strip()
    params_text = parameter_list(params)
    if head.startswith(":") and head[1:].strip():
        return _function_type(
            generics, params_text, collapse_whitespace(head[1:].strip()), is_async
        )
    if body.startswith("{"):
        return _function_type(generics, params_text, None, is_async)
    body_type = _infer(body, False)
    return _function_type(
        generics, params_text, body_type.text, is_async, annotated=False
    )


# ---------------------------------------------------------------------------
# Constructors and well known calls
# ---------------------------------------------------------------------------


def _infer_new(rest: str) -> InferredType:
    name, i = read_identifier(rest, 0)
    while i < len(rest) and rest[i] == ".":
        part, i = read_identifier(rest, i + 1)
        name = f"{name}.{part}"
    if not name:
        return UNKNOWN_TYPE
    generics, _ = read_generics(rest, i)
    if generics:
        return _reference(f"{name}{generics}")
    return _reference(NEW_EXPRESSION_TYPES.get(name, name))


def _call_arguments(expr: str, callee: str) -> Optional[str]:
    if not expr.startswith(callee + "("):
        return None
    open_idx = len(callee)
    if find_matching(expr, open_idx) != len(expr) - 1:
        return None
    return expr[open_idx + 1 : -1]


def _infer_promise(expr: str) -> InferredType:
    args = _call_arguments(expr, "Promise.resolve")
    if args is not None:
        inner = _infer(args, False).text if args.strip() else "void"
        return InferredType(text=f"Promise<{inner}>", kind=TypeKind.PROMISE)

    if _call_arguments(expr, "Promise.reject") is not None:
        return InferredType(text="Promise<never>", kind=TypeKind.PROMISE)

    args = _call_arguments(expr, "Promise.all")
    if args is not None:
        args = args.strip()
        if args.startswith("[") and find_matching(args, 0) == len(args) - 1:
            types = [_infer(e, False).text for e in split_top_level(args[1:-1])]
            return InferredType(
                text="Promise<[" + ", ".join(types) + "]>", kind=TypeKind.PROMISE
            )
        return InferredType(text="Promise<unknown[]>", kind=TypeKind.PROMISE)

    return UNKNOWN_TYPE
