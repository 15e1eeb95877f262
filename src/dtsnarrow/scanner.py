import re
from typing import Any, Dict, List, Optional, Tuple

from dtsnarrow.errors import ScanError
from dtsnarrow.imports import parse_import
from dtsnarrow.lexer import (
    LexContext,
    ScanState,
    code_only,
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
from dtsnarrow.logger import logger
from dtsnarrow.models import Declaration, DeclarationKind, ScanResult
from dtsnarrow.signatures import (
    parse_function,
    read_generics,
    read_identifier,
    skip_space,
    strip_decorators,
)

_DIRECTIVE_RE = re.compile(
    r"^///\s*<(?:reference|amd-module|amd-dependency)\b[^>]*/>\s*$"
)
_FROM_RE = re.compile(r"\bfrom\s*(['\"])(.*?)\1")
_STRING_NAME_RE = re.compile(r"^(['\"])(?:\\.|(?!\1).)*\1")

# A line ending in one of these cannot be the end of a statement.
_INCOMPLETE_SUFFIXES = (
    "=>", "&&", "||", "??", "=", ",", "+", "-", "*", "/", "%",
    "&", "|", "?", ":", "<", ".", "@",
)  # fmt: skip
_INCOMPLETE_WORDS = frozenset(
    {
        "export",
        "declare",
        "default",
        "async",
        "abstract",
        "extends",
        "implements",
        "as",
        "satisfies",
        "keyof",
        "typeof",
        "instanceof",
        "new",
        "readonly",
    }
)

# A following line starting with one of these continues the statement.
_CONTINUATION_RE = re.compile(
    r"^(?:\?\.|\.(?!\.\.)|\?|:|=|\|\||\||&&|&|\+(?!\+)|-(?!-)|\*|/(?![/*])|%|"
    r"\)|\]|,|\{|>|(?:as|satisfies|extends|implements|instanceof|keyof)\b)"
)
_CONTROL_RE = re.compile(r"^(if|for|while|with|else|do)\b")


def starts_with_word(text: str, word: str) -> bool:
    return text.startswith(word) and (
        len(text) == len(word) or not is_ident_char(text[len(word)])
    )


def _last_word(code: str) -> str:
    """
    Trailing identifier of *code*, or "" when it is a property name after
    `.` or `?.`.
    """
    end = len(code)
    start = end
    while start > 0 and is_ident_char(code[start - 1]):
        start -= 1
    if start > 0 and code[start - 1] == ".":
        return ""
    return code[start:end]


def is_incomplete(segment: str) -> bool:
    """
    True when the statement text seen so far clearly continues on the next
    line.
    """
    code = strip_comments(segment).rstrip()
    if not code:
        return True
    if not strip_decorators(code):
        return True
    if code.endswith(("++", "--")):
        return False
    if code.endswith("/") and not code_only(segment).rstrip().endswith("/"):
        return False  # regex literal
    if code.endswith(_INCOMPLETE_SUFFIXES):
        return True
    return _last_word(code) in _INCOMPLETE_WORDS


def _next_line(text: str, start: int) -> Optional[str]:
    i = skip_space(text, start)
    if i >= len(text):
        return None
    end = text.find("\n", i)
    line = text[i:] if end == -1 else text[i:end]
    if line.startswith(("//", "/*")):
        return None
    return line


def continues_at(text: str, start: int) -> bool:
    """
    True when the next non-blank line from *start* continues the statement
    before it.
    """
    nxt = _next_line(text, start)
    return nxt is not None and _CONTINUATION_RE.match(nxt) is not None


def _brace_less_control(raw: str) -> bool:
    """
    True for a control statement header with no body on the same line,
    e.g. ``if (x)``; the statement that follows belongs to it.
    """
    match = _CONTROL_RE.match(raw)
    if match is None:
        return False
    keyword = match.group(1)
    rest = raw[len(keyword) :].strip()
    if keyword == "else" and starts_with_word(rest, "if"):
        keyword, rest = "if", rest[2:].strip()
    if keyword in ("else", "do"):
        return rest == ""
    if not rest.startswith("("):
        return False
    close = find_matching(rest, 0)
    return close != -1 and rest[close + 1 :].strip() == ""


def _split_block(text: str) -> Tuple[str, Optional[str]]:
    """
    Split ``head { ... }`` into the head and the balanced block.
    """
    brace = find_top_level(text, "{", angles=True)
    if brace == -1:
        return strip_semicolon(text), None
    close = find_matching(text, brace)
    if close == -1:
        return text[:brace].strip(), None
    return text[:brace].strip(), text[brace : close + 1]


def _clause(head: str, keyword: str, stop: Optional[str] = None) -> Optional[str]:
    pos = find_top_level(head, keyword, angles=True)
    if pos == -1:
        return None
    end = len(head)
    if stop is not None:
        stop_pos = find_top_level(head, stop, pos, angles=True)
        if stop_pos != -1:
            end = stop_pos
    clause = collapse_whitespace(head[pos + len(keyword) : end])
    return clause or None


def _function_header(raw: str, has_body: bool) -> str:
    """
    Text of a function statement without its body.
    """
    if not has_body:
        return strip_semicolon(raw)
    open_idx = -1
    for i, ch, state in walk(raw):
        if ch == "{" and state.depth == 0:
            open_idx = i
    if open_idx == -1:
        return strip_semicolon(raw)
    return raw[:open_idx].rstrip()


class DeclarationScanner:
    """
    Single left-to-right pass over a module that segments it into top-level
    statements and classifies the ones that declare something.

    Statement boundaries come from the live lexical state: a statement ends
    at a top-level ``;``, or at a top-level newline when neither the line
    nor the next one says it continues. Anything nested inside braces,
    brackets or parentheses is never seen as a statement of its own.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.state = ScanState()
        self.result = ScanResult()
        self._skip_next = False

    def scan(self) -> ScanResult:
        text = self.text
        n = len(text)
        preamble = True
        i = 0
        while i < n:
            ch = text[i]
            if ch.isspace() or ch == ";":
                i += 1
                continue

            if text.startswith("//", i):
                end = text.find("\n", i)
                end = n if end == -1 else end
                line = text[i:end].rstrip()
                if preamble and _DIRECTIVE_RE.match(line):
                    self.result.directives.append(line)
                self.state.pending_doc = None
                i = end
                continue

            if text.startswith("/*", i):
                end = text.find("*/", i + 2)
                if end == -1:
                    raise ScanError.at(text, i, "unterminated block comment")
                comment = text[i : end + 2]
                is_doc = comment.startswith("/**") and comment != "/**/"
                self.state.pending_doc = comment if is_doc else None
                i = end + 2
                continue

            preamble = False
            i = self._statement(i)

        self.result.declarations = group_overloads(self.result.declarations)
        return self.result

    # --- segmentation -------------------------------------------------
    def _statement(self, start: int) -> int:
        text = self.text
        state = self.state
        doc = state.pending_doc
        state.pending_doc = None

        i = start
        n = len(text)
        while i < n:
            ch = text[i]
            top = state.context is LexContext.NORMAL
            clamped = state.clamped
            j = state.advance(text, i)
            if state.clamped != clamped:
                logger.warning(
                    "Ignoring unbalanced closing bracket",
                    char=ch,
                    line=text.count("\n", 0, i) + 1,
                )
            if top and state.at_top_level:
                if ch == ";":
                    self._finish(start, j, doc)
                    return j
                if ch == "\n" and self._complete(start, i):
                    self._finish(start, i, doc)
                    return j
            i = j

        state.finish(text)
        self._finish(start, n, doc)
        return n

    def _complete(self, start: int, newline: int) -> bool:
        if is_incomplete(self.text[start:newline]):
            return False
        return not continues_at(self.text, newline + 1)

    def _finish(self, start: int, end: int, doc: Optional[str]) -> None:
        raw = self.text[start:end].rstrip()
        if self._skip_next:
            self._skip_next = False
            logger.debug("Skipping body of brace-less control statement", start=start)
            return
        if _brace_less_control(raw):
            self._skip_next = True
            return
        self.result.declarations.extend(self._classify(raw, start, doc))

    # --- classification -----------------------------------------------
    def _classify(
        self, raw: str, start: int, doc: Optional[str]
    ) -> List[Declaration]:
        body = strip_decorators(raw)
        common: Dict[str, Any] = dict(
            raw_text=raw,
            leading_doc_comment=doc,
            start=start,
            end=start + len(raw),
        )

        if starts_with_word(body, "export"):
            body = strip_decorators(body[len("export") :])
            common["is_exported"] = True
            passthrough = self._export_passthrough(body, common)
            if passthrough is not None:
                return [passthrough]
            if starts_with_word(body, "default"):
                common["is_default"] = True
                body = body[len("default") :].lstrip()
        if starts_with_word(body, "declare"):
            common["is_ambient"] = True
            body = body[len("declare") :].lstrip()

        keyword, after = read_identifier(body)
        rest = body[after:].lstrip()

        if keyword == "import" and not common.get("is_exported"):
            return self._import(raw, rest, common)

        declares = (
            keyword in ("function", "class", "interface")
            or (keyword == "async" and starts_with_word(rest, "function"))
            or (keyword == "abstract" and starts_with_word(rest, "class"))
        )
        if common.get("is_default") and not declares:
            return [
                Declaration(
                    kind=DeclarationKind.EXPORT,
                    value_expression=strip_semicolon(body),
                    **common,
                )
            ]

        if keyword in ("const", "let", "var"):
            if keyword == "const" and starts_with_word(rest, "enum"):
                return _block_declaration(
                    DeclarationKind.ENUM, rest[4:], ["const"], common
                )
            return _variables(keyword, rest, raw, common)
        if keyword == "function" or (
            keyword == "async" and starts_with_word(rest, "function")
        ):
            return _function(body, raw, common)
        if keyword == "interface":
            return _block_declaration(DeclarationKind.INTERFACE, rest, [], common)
        if keyword == "type" and rest[:1] and is_ident_char(rest[0]):
            return _type_alias(rest, common)
        if keyword == "class":
            return _block_declaration(DeclarationKind.CLASS, rest, [], common)
        if keyword == "abstract" and starts_with_word(rest, "class"):
            return _block_declaration(
                DeclarationKind.CLASS, rest[5:], ["abstract"], common
            )
        if keyword == "enum":
            return _block_declaration(DeclarationKind.ENUM, rest, [], common)
        if keyword in ("namespace", "module") or keyword == "global":
            return _module(keyword, rest, common)

        logger.debug(
            "Skipping unrecognized top-level statement",
            start=start,
            text=collapse_whitespace(raw)[:60],
        )
        return []

    def _import(
        self, raw: str, rest: str, common: Dict[str, Any]
    ) -> List[Declaration]:
        if rest.startswith(("(", ".")):
            return []
        record = parse_import(raw)
        if record is None:
            logger.debug("Skipping unsupported import form", text=raw[:60])
            return []
        self.result.imports.append(record)
        return [
            Declaration(
                kind=DeclarationKind.IMPORT,
                is_type_only=record.statement_is_type_only,
                source=record.source,
                **common,
            )
        ]

    def _export_passthrough(
        self, body: str, common: Dict[str, Any]
    ) -> Optional[Declaration]:
        type_only = False
        rest = body
        if starts_with_word(rest, "type"):
            after = rest[len("type") :].lstrip()
            if after.startswith(("{", "*")):
                type_only = True
                rest = after
        if not rest.startswith(("{", "*", "=")):
            return None
        match = _FROM_RE.search(rest)
        return Declaration(
            kind=DeclarationKind.EXPORT,
            is_type_only=type_only,
            source=match.group(2) if match else None,
            value_expression=strip_semicolon(rest),
            **common,
        )


# ---------------------------------------------------------------------------
# Per-kind parsing
# ---------------------------------------------------------------------------


def _variables(
    keyword: str, rest: str, raw: str, common: Dict[str, Any]
) -> List[Declaration]:
    declarators = split_top_level(strip_semicolon(rest), ",", angles=True)
    single = len(declarators) == 1
    declarations: List[Declaration] = []
    cursor = 0
    for declarator in declarators:
        name, j = read_identifier(declarator)
        offset = raw.find(declarator, cursor)
        cursor = max(cursor, offset + len(declarator))
        if not name:
            logger.debug(
                "Skipping destructuring declaration", text=declarator[:60]
            )
            continue
        tail = declarator[j:].lstrip()
        if tail.startswith("!"):
            tail = tail[1:].lstrip()
        eq = find_assignment(tail)
        head = tail if eq == -1 else tail[:eq]
        value = None if eq == -1 else tail[eq + 1 :].strip() or None
        head = head.strip()
        annotation = collapse_whitespace(head[1:]) if head.startswith(":") else None

        fields = dict(common)
        if not single and offset != -1:
            fields["raw_text"] = declarator
            fields["start"] = common["start"] + offset
            fields["end"] = common["start"] + offset + len(declarator)
        if not single and declarations:
            fields["leading_doc_comment"] = None
        declarations.append(
            Declaration(
                kind=DeclarationKind.VARIABLE,
                name=name,
                modifiers=[keyword],
                type_annotation=annotation or None,
                value_expression=value,
                **fields,
            )
        )
    return declarations


def _function(body: str, raw: str, common: Dict[str, Any]) -> List[Declaration]:
    parsed = parse_function(body)
    if parsed is None:
        logger.debug("Skipping malformed function header", text=raw[:60])
        return []
    name, signature = parsed
    signature.leading_doc_comment = common.get("leading_doc_comment")
    fields = dict(common)
    fields["raw_text"] = _function_header(raw, signature.has_body)
    return [
        Declaration(
            kind=DeclarationKind.FUNCTION,
            name=name,
            modifiers=["async"] if signature.is_async else [],
            generics=signature.generics,
            parameters=signature.parameters,
            return_type=signature.return_type,
            signature=signature,
            **fields,
        )
    ]


def _type_alias(rest: str, common: Dict[str, Any]) -> List[Declaration]:
    name, i = read_identifier(rest)
    generics, i = read_generics(rest, i)
    tail = rest[i:].lstrip()
    if not tail.startswith("="):
        return []
    return [
        Declaration(
            kind=DeclarationKind.TYPE,
            name=name,
            generics=generics,
            body=strip_semicolon(tail[1:]),
            **common,
        )
    ]


def _block_declaration(
    kind: DeclarationKind, rest: str, modifiers: List[str], common: Dict[str, Any]
) -> List[Declaration]:
    rest = rest.lstrip()
    name, i = read_identifier(rest)
    if name in ("extends", "implements"):
        name, i = "", 0
    generics, i = read_generics(rest, i)
    head, block = _split_block(rest[i:])

    extends = implements = None
    if kind is DeclarationKind.CLASS:
        extends = _clause(head, "extends", stop="implements")
        implements = _clause(head, "implements")
    elif kind is DeclarationKind.INTERFACE:
        extends = _clause(head, "extends")

    if block is None and kind is not DeclarationKind.CLASS:
        logger.debug("Skipping declaration without body", kind=kind.value, name=name)
        return []
    return [
        Declaration(
            kind=kind,
            name=name,
            generics=generics,
            extends=extends,
            implements=implements,
            modifiers=modifiers,
            body=block or "{}",
            **common,
        )
    ]


def _module(keyword: str, rest: str, common: Dict[str, Any]) -> List[Declaration]:
    if keyword == "global":
        if not rest.startswith("{"):
            return []
        name, tail = "global", rest
    else:
        match = _STRING_NAME_RE.match(rest)
        if match:
            name, tail = match.group(0), rest[match.end() :]
        else:
            name, i = read_identifier(rest)
            while i < len(rest) and rest[i] == ".":
                part, i = read_identifier(rest, i + 1)
                name = f"{name}.{part}"
            tail = rest[i:]
        if not name:
            return []
    _, block = _split_block(tail)
    return [
        Declaration(
            kind=DeclarationKind.MODULE,
            name=name,
            modifiers=[keyword],
            body=block,
            **common,
        )
    ]


# ---------------------------------------------------------------------------
# Overloads
# ---------------------------------------------------------------------------


def _merge(overloads: List[Declaration], primary: Declaration) -> Declaration:
    if not overloads:
        return primary
    return primary.model_copy(
        update={
            "overload_signatures": [o.signature for o in overloads if o.signature],
            "start": overloads[0].start,
        }
    )


def group_overloads(declarations: List[Declaration]) -> List[Declaration]:
    """
    Fold runs of body-less function declarations sharing a name into the
    declaration that follows them: the first one with a body becomes the
    primary signature. A run with no implementation keeps its last entry
    as the primary.
    """
    grouped: List[Declaration] = []
    pending: List[Declaration] = []

    def flush() -> None:
        if pending:
            grouped.append(_merge(pending[:-1], pending[-1]))
            pending.clear()

    for decl in declarations:
        if decl.kind is DeclarationKind.FUNCTION and decl.signature is not None:
            if pending and pending[0].name != decl.name:
                flush()
            if decl.signature.has_body:
                grouped.append(_merge(list(pending), decl))
                pending.clear()
            else:
                pending.append(decl)
            continue
        flush()
        grouped.append(decl)
    flush()
    return grouped


def scan(text: str) -> ScanResult:
    """
    Segment *text* into top-level declarations, import records and leading
    triple-slash directives.

    Raises ScanError for unterminated strings, templates and block comments
    and for brackets left open at the end of input.
    """
    return DeclarationScanner(text).scan()
