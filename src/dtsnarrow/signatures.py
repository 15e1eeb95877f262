"""
Parsing helpers for function-like headers and parameter lists.

Everything here works on raw source snippets and keeps type text verbatim;
only parameter default values are removed, since declaration output may not
carry initializers.
"""

from typing import Callable, List, Optional, Tuple

from dtsnarrow.lexer import (
    collapse_whitespace,
    find_assignment,
    find_matching,
    find_top_level,
    is_ident_char,
    split_top_level,
    strip_comments,
    strip_semicolon,
    walk,
)
from dtsnarrow.models import FunctionSignature

DefaultTyper = Callable[[str], str]


def read_identifier(text: str, start: int = 0) -> Tuple[str, int]:
    """
    Read an identifier at *start* (after skipping whitespace); returns the
    identifier and the index just past it.
    """
    i = start
    n = len(text)
    while i < n and text[i].isspace():
        i += 1
    begin = i
    while i < n and is_ident_char(text[i]):
        i += 1
    return text[begin:i], i


def skip_space(text: str, i: int) -> int:
    while i < len(text) and text[i].isspace():
        i += 1
    return i


def read_generics(text: str, i: int) -> Tuple[Optional[str], int]:
    """
    Read a ``<...>`` type parameter list at *i* if present.
    """
    i = skip_space(text, i)
    if i < len(text) and text[i] == "<":
        end = find_matching(text, i)
        if end != -1:
            return collapse_whitespace(text[i : end + 1]), end + 1
    return None, i


def split_body(after: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Split the text following a parameter list into ``(return_type, body)``.

    The body is the final top-level ``{...}`` block. When nothing but a
    lone ``:`` precedes that block it is an object return type instead.
    """
    s = strip_semicolon(after)
    if not s:
        return None, None

    if s.endswith("}"):
        open_idx = -1
        for i, ch, state in walk(s):
            if ch == "{" and state.depth == 0:
                open_idx = i
        if open_idx != -1:
            head = s[:open_idx].strip()
            if head == "":
                return None, s[open_idx:]
            if head.startswith(":") and head[1:].strip():
                return collapse_whitespace(head[1:].strip()), s[open_idx:]
            if head == ":":
                return s[1:].strip(), None

    if s.startswith(":"):
        return s[1:].strip(), None
    return None, None


def parse_function(text: str) -> Optional[Tuple[str, FunctionSignature]]:
    """
    Parse ``[async] function[*] name<G>(params): R { body }``.

    Returns the function name and its signature, or None when *text* is not
    a well-formed function header.
    """
    rest = text.strip()
    is_async = False
    if rest.startswith("async") and rest[5:6].isspace():
        is_async = True
        rest = rest[5:].lstrip()
    if not rest.startswith("function"):
        return None
    i = len("function")
    i = skip_space(rest, i)
    is_generator = False
    if i < len(rest) and rest[i] == "*":
        is_generator = True
        i += 1
    name, i = read_identifier(rest, i)
    generics, i = read_generics(rest, i)
    i = skip_space(rest, i)
    if i >= len(rest) or rest[i] != "(":
        return None
    close = find_matching(rest, i)
    if close == -1:
        return None
    params = split_top_level(rest[i + 1 : close], ",", angles=True)
    return_type, body = split_body(rest[close + 1 :])
    return name, FunctionSignature(
        generics=generics,
        parameters=params,
        return_type=return_type,
        is_async=is_async,
        is_generator=is_generator,
        has_body=body is not None,
    )


def strip_binding_defaults(pattern: str) -> str:
    """
    Drop default values from a destructuring pattern while keeping its
    shape: ``{ a = 1, b: { c = 2 } }`` becomes ``{ a, b: { c } }``.
    """
    pattern = pattern.strip()
    if len(pattern) < 2 or pattern[0] not in "{[":
        return pattern
    open_ch, close_ch = pattern[0], "}" if pattern[0] == "{" else "]"
    inner = pattern[1:-1]
    elements: List[str] = []
    for element in split_top_level(inner):
        eq = find_assignment(element)
        if eq != -1:
            element = element[:eq].strip()
        colon = find_top_level(element, ":")
        if colon != -1:
            key, target = element[:colon].strip(), element[colon + 1 :].strip()
            element = f"{key}: {strip_binding_defaults(target)}"
        elif element[:1] in "{[":
            element = strip_binding_defaults(element)
        elements.append(element)
    if not elements:
        return f"{open_ch}{close_ch}"
    if open_ch == "{":
        return "{ " + ", ".join(elements) + " }"
    return "[" + ", ".join(elements) + "]"


def strip_decorators(text: str) -> str:
    """
    Drop leading `@name`, `@a.b` and `@name(...)` decorators.
    """
    text = text.lstrip()
    while text.startswith("@"):
        _, i = read_identifier(text, 1)
        while i < len(text) and text[i] == ".":
            _, i = read_identifier(text, i + 1)
        i = skip_space(text, i)
        if i < len(text) and text[i] == "(":
            close = find_matching(text, i)
            i = close + 1 if close != -1 else len(text)
        text = text[i:].lstrip()
    return text


def normalize_parameter(param: str, default_type: DefaultTyper) -> str:
    """
    Render one parameter for a declaration: defaults are dropped and turn
    the parameter optional, and a missing annotation is filled in from the
    default's widened type or ``unknown``.
    """
    p = collapse_whitespace(strip_comments(param))
    p = strip_decorators(p)

    default: Optional[str] = None
    eq = find_assignment(p)
    if eq != -1:
        default = p[eq + 1 :].strip()
        p = p[:eq].strip()

    annotation: Optional[str] = None
    colon = find_top_level(p, ":", angles=True)
    if colon != -1:
        annotation = p[colon + 1 :].strip()
        p = p[:colon].strip()

    rest = p.startswith("...")
    if rest:
        p = p[3:].strip()
    optional = p.endswith("?")
    if optional:
        p = p[:-1].rstrip()
    if p.startswith(("{", "[")):
        p = strip_binding_defaults(p)

    if annotation is None and rest:
        annotation = "unknown[]"
    elif annotation is None:
        annotation = default_type(default) if default else "unknown"
    if default is not None and not rest:
        optional = True

    prefix = "..." if rest else ""
    marker = "?" if optional else ""
    return f"{prefix}{p}{marker}: {annotation}"


def normalize_parameters(params: List[str], default_type: DefaultTyper) -> str:
    return ", ".join(normalize_parameter(p, default_type) for p in params)


def default_return_type(is_async: bool, is_generator: bool) -> str:
    """
    Return type written for a function with a body and no annotation.
    """
    if is_generator:
        if is_async:
            return "AsyncGenerator<unknown, void, unknown>"
        return "Generator<unknown, void, unknown>"
    return "Promise<void>" if is_async else "void"
