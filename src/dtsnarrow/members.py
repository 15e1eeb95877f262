import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from dtsnarrow.inference import infer, parameter_list, widened_type
from dtsnarrow.lexer import (
    LexContext,
    ScanState,
    collapse_whitespace,
    find_assignment,
    find_matching,
    find_top_level,
    split_top_level,
    strip_semicolon,
)
from dtsnarrow.scanner import continues_at, is_incomplete
from dtsnarrow.signatures import (
    default_return_type,
    normalize_parameter,
    read_generics,
    read_identifier,
    skip_space,
    split_body,
    strip_decorators,
)

MEMBER_MODIFIERS = frozenset(
    {
        "public",
        "private",
        "protected",
        "static",
        "abstract",
        "readonly",
        "override",
        "declare",
        "async",
        "accessor",
    }
)
# Modifiers that survive into declarations, in output order.
MODIFIER_ORDER = ("protected", "static", "abstract", "readonly")
PARAMETER_PROPERTY_MODIFIERS = frozenset(
    {"public", "private", "protected", "readonly"}
)

_STRING_KEY_RE = re.compile(r"^(['\"])(?:\\.|(?!\1).)*\1")
# A word followed by one of these is a member name, not a modifier.
_NAME_FOLLOWERS = "(:=?!;<,"


@dataclass
class ClassMember:
    text: str
    doc: Optional[str] = None


def format_doc_comment(doc: str, indent: str = "") -> List[str]:
    """
    Re-indent a ``/** ... */`` comment, aligning its ``*`` gutter.
    """
    lines = []
    for idx, line in enumerate(doc.strip().splitlines()):
        line = line.strip()
        if idx > 0 and line.startswith("*"):
            line = " " + line
        lines.append(indent + line)
    return lines


def split_members(body: str) -> List[ClassMember]:
    """
    Segment a class body into member texts, each with the doc comment that
    directly precedes it.
    """
    inner = body.strip()
    if inner.startswith("{") and inner.endswith("}"):
        inner = inner[1:-1]

    state = ScanState()
    members: List[ClassMember] = []
    pending_doc: Optional[str] = None
    doc: Optional[str] = None
    start: Optional[int] = None
    n = len(inner)
    i = 0
    while i < n:
        if start is None:
            ch = inner[i]
            if ch.isspace() or ch in ";,":
                i += 1
                continue
            if inner.startswith("//", i):
                end = inner.find("\n", i)
                i = n if end == -1 else end
                pending_doc = None
                continue
            if inner.startswith("/*", i):
                end = inner.find("*/", i + 2)
                if end == -1:
                    break
                comment = inner[i : end + 2]
                is_doc = comment.startswith("/**") and comment != "/**/"
                pending_doc = comment if is_doc else None
                i = end + 2
                continue
            start, doc, pending_doc = i, pending_doc, None

        ch = inner[i]
        top = state.context is LexContext.NORMAL
        j = state.advance(inner, i)
        end = -1
        if top and state.at_top_level:
            if ch == ";":
                end = j
            elif ch == "}" and not continues_at(inner, j):
                end = j
            elif ch == "\n" and not is_incomplete(inner[start:i]):
                if not continues_at(inner, i + 1):
                    end = i
        if end != -1:
            members.append(ClassMember(text=inner[start:end].strip(), doc=doc))
            start = None
        i = j

    if start is not None and inner[start:].strip():
        members.append(ClassMember(text=inner[start:].strip(), doc=doc))
    return members


def take_modifiers(text: str) -> Tuple[List[str], str]:
    modifiers: List[str] = []
    while True:
        word, i = read_identifier(text)
        if word not in MEMBER_MODIFIERS:
            break
        rest = text[i:].lstrip()
        if not rest or rest[0] in _NAME_FOLLOWERS:
            break
        modifiers.append(word)
        text = rest
    return modifiers, text.lstrip()


def _modifier_prefix(modifiers: List[str]) -> str:
    kept = [m for m in MODIFIER_ORDER if m in modifiers]
    return "".join(f"{m} " for m in kept)


def _read_name(text: str) -> Tuple[str, int]:
    if not text:
        return "", 0
    if text[0] == "#":
        name, i = read_identifier(text, 1)
        return "#" + name, i
    if text[0] in ("'", '"'):
        match = _STRING_KEY_RE.match(text)
        if match:
            return match.group(0), match.end()
        return "", 0
    if text[0] == "[":
        close = find_matching(text, 0)
        if close == -1:
            return "", 0
        return collapse_whitespace(text[: close + 1]), close + 1
    return read_identifier(text)


def _is_index_signature(text: str) -> bool:
    if not text.startswith("["):
        return False
    close = find_matching(text, 0)
    if close == -1:
        return False
    after = text[close + 1 :].lstrip()
    return after.startswith(":") and find_top_level(text[1:close], ":") != -1


def _constructor(params: List[str], modifiers: List[str]) -> List[str]:
    lines: List[str] = []
    plain: List[str] = []
    for param in params:
        param_mods, text = take_modifiers(strip_decorators(param))
        plain.append(text)
        if not PARAMETER_PROPERTY_MODIFIERS.intersection(param_mods):
            continue
        if "private" in param_mods:
            continue
        rendered = normalize_parameter(text, widened_type)
        name, _, type_text = rendered.partition(": ")
        if find_assignment(text) != -1:
            name = name.rstrip("?")
        lines.append(f"{_modifier_prefix(param_mods)}{name}: {type_text};")
    prefix = _modifier_prefix(modifiers)
    lines.append(f"{prefix}constructor({parameter_list(plain)});")
    return lines


def member_lines(member: ClassMember) -> List[str]:
    """
    Declaration lines for one class member; empty for members that do not
    appear in declarations (private ones, static blocks).
    """
    text = strip_decorators(member.text)
    modifiers, text = take_modifiers(text)
    if "private" in modifiers or text.startswith("#"):
        return []
    if text.startswith("{"):
        return []  # static initialization block
    prefix = _modifier_prefix(modifiers)

    if _is_index_signature(text):
        return [f"{prefix}{collapse_whitespace(strip_semicolon(text))};"]

    is_generator = False
    if text.startswith("*"):
        is_generator = True
        text = text[1:].lstrip()

    accessor: Optional[str] = None
    word, i = read_identifier(text)
    if word in ("get", "set"):
        rest = text[i:].lstrip()
        if rest and rest[0] not in _NAME_FOLLOWERS:
            accessor = word
            text = rest

    name, i = _read_name(text)
    if not name or name.startswith("#"):
        return []
    rest = text[i:].lstrip()
    marker = ""
    if rest.startswith("?"):
        marker = "?"
        rest = rest[1:].lstrip()
    elif rest.startswith("!"):
        rest = rest[1:].lstrip()

    if rest.startswith(("(", "<")):
        generics, k = read_generics(rest, 0)
        k = skip_space(rest, k)
        if k >= len(rest) or rest[k] != "(":
            return []
        close = find_matching(rest, k)
        if close == -1:
            return []
        params = split_top_level(rest[k + 1 : close], ",", angles=True)
        return_type, _ = split_body(rest[close + 1 :])

        if name == "constructor":
            return _constructor(params, modifiers)
        if accessor == "set":
            return [f"{prefix}set {name}({parameter_list(params)});"]
        if accessor == "get":
            return [f"{prefix}get {name}(): {return_type or 'unknown'};"]
        if return_type is None:
            return_type = default_return_type("async" in modifiers, is_generator)
        signature = f"{name}{marker}{generics or ''}({parameter_list(params)})"
        return [f"{prefix}{signature}: {return_type};"]

    eq = find_assignment(rest)
    head = strip_semicolon(rest if eq == -1 else rest[:eq])
    value = None if eq == -1 else strip_semicolon(rest[eq + 1 :])
    if head.startswith(":"):
        type_text = collapse_whitespace(head[1:])
    elif value:
        type_text = infer(value, "readonly" in modifiers).text
    else:
        type_text = "any"
    return [f"{prefix}{name}{marker}: {type_text};"]


def class_body_lines(body: str, keep_comments: bool) -> List[str]:
    """
    Filter a class body down to the lines of its public declaration surface.
    """
    lines: List[str] = []
    for member in split_members(body):
        emitted = member_lines(member)
        if not emitted:
            continue
        if keep_comments and member.doc:
            lines.extend(format_doc_comment(member.doc))
        lines.extend(emitted)
    return lines
