import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from dtsnarrow.errors import ScanError

# ---------------------------------------------------------------------------
# Character classes
# ---------------------------------------------------------------------------

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$]*$")
_IDENTIFIER_TOKEN_RE = re.compile(r"[A-Za-z_$][\w$]*")

# A `/` after one of these starts a regex literal rather than a division.
_REGEX_PREFIX_CHARS = frozenset("=([!&|?:,;{}^~+-*%<>")
_REGEX_PREFIX_WORDS = frozenset(
    {
        "return",
        "typeof",
        "void",
        "delete",
        "throw",
        "new",
        "in",
        "of",
        "case",
        "instanceof",
        "yield",
        "await",
    }
)

_OPENERS = {"{": "}", "[": "]", "(": ")"}
_CLOSERS = {"}": "{", "]": "[", ")": "("}


def is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


def is_identifier(name: str) -> bool:
    return bool(_IDENTIFIER_RE.match(name))


class LexContext(str, Enum):
    NORMAL = "normal"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"
    SINGLE_QUOTE = "single_quote"
    DOUBLE_QUOTE = "double_quote"
    TEMPLATE = "template"
    TEMPLATE_EXPR = "template_expr"


_CODE_CONTEXTS = (LexContext.NORMAL, LexContext.TEMPLATE_EXPR)

_UNTERMINATED = {
    LexContext.BLOCK_COMMENT: "unterminated block comment",
    LexContext.SINGLE_QUOTE: "unterminated string literal",
    LexContext.DOUBLE_QUOTE: "unterminated string literal",
    LexContext.TEMPLATE: "unterminated template literal",
    LexContext.TEMPLATE_EXPR: "unterminated template literal",
}


@dataclass
class ScanState:
    """
    Mutable lexical state of a left-to-right pass over source text.

    The three bracket depths are tracked independently and never drop
    below zero. ``pending_doc`` buffers the last ``/** ... */`` comment seen
    at the top level until a declaration claims it.
    """

    context: LexContext = LexContext.NORMAL
    brace_depth: int = 0
    bracket_depth: int = 0
    paren_depth: int = 0
    pending_doc: Optional[str] = None
    context_start: int = 0
    clamped: int = 0  # closing brackets ignored at depth 0

    _stack: List[Tuple[LexContext, int]] = field(default_factory=list)
    _expr_depths: List[int] = field(default_factory=list)
    _open: List[Tuple[str, int]] = field(default_factory=list)

    @property
    def depth(self) -> int:
        return self.brace_depth + self.bracket_depth + self.paren_depth

    @property
    def in_code(self) -> bool:
        return self.context in _CODE_CONTEXTS

    @property
    def at_top_level(self) -> bool:
        return self.context is LexContext.NORMAL and self.depth == 0

    # --- context stack ---------------------------------------------
    def _enter(self, ctx: LexContext, start: int) -> None:
        self._stack.append((self.context, self.context_start))
        self.context = ctx
        self.context_start = start

    def _leave(self) -> None:
        if self._stack:
            self.context, self.context_start = self._stack.pop()
        else:
            self.context, self.context_start = LexContext.NORMAL, 0

    # --- brackets ---------------------------------------------------
    def _open_bracket(self, ch: str, pos: int) -> None:
        if ch == "{":
            self.brace_depth += 1
        elif ch == "[":
            self.bracket_depth += 1
        else:
            self.paren_depth += 1
        self._open.append((ch, pos))

    def _close_bracket(self, ch: str) -> None:
        opener = _CLOSERS[ch]
        attr = {"{": "brace_depth", "[": "bracket_depth", "(": "paren_depth"}[opener]
        current = getattr(self, attr)
        if current == 0:
            self.clamped += 1
            return
        setattr(self, attr, current - 1)
        for idx in range(len(self._open) - 1, -1, -1):
            if self._open[idx][0] == opener:
                del self._open[idx]
                break

    # --- stepping ---------------------------------------------------
    def advance(self, text: str, i: int) -> int:
        """
        Consume the lexical unit starting at *i* and return the index just
        past it. A unit is one character, an escape sequence, a comment
        delimiter, ``${`` or a whole regex literal.
        """
        ch = text[i]
        ctx = self.context

        if ctx in _CODE_CONTEXTS:
            nxt = text[i + 1] if i + 1 < len(text) else ""
            if ch == "/" and nxt == "/":
                self._enter(LexContext.LINE_COMMENT, i)
                return i + 2
            if ch == "/" and nxt == "*":
                self._enter(LexContext.BLOCK_COMMENT, i)
                return i + 2
            if ch == "'":
                self._enter(LexContext.SINGLE_QUOTE, i)
                return i + 1
            if ch == '"':
                self._enter(LexContext.DOUBLE_QUOTE, i)
                return i + 1
            if ch == "`":
                self._enter(LexContext.TEMPLATE, i)
                return i + 1
            if ch == "/" and _is_regex_start(text, i):
                end = _skip_regex(text, i)
                if end is not None:
                    return end
                return i + 1
            if ch in _OPENERS:
                self._open_bracket(ch, i)
            elif ch == "}" and ctx is LexContext.TEMPLATE_EXPR and (
                self.brace_depth == self._expr_depths[-1]
            ):
                self._expr_depths.pop()
                self._leave()
            elif ch in _CLOSERS:
                self._close_bracket(ch)
            return i + 1

        if ctx is LexContext.LINE_COMMENT:
            if ch == "\n":
                # hand the newline back to the enclosing context
                self._leave()
                return i
            j = text.find("\n", i)
            return len(text) if j == -1 else j

        if ctx is LexContext.BLOCK_COMMENT:
            j = text.find("*/", i)
            if j == -1:
                return len(text)
            self._leave()
            return j + 2

        if ctx in (LexContext.SINGLE_QUOTE, LexContext.DOUBLE_QUOTE):
            quote = "'" if ctx is LexContext.SINGLE_QUOTE else '"'
            if ch == "\\":
                return i + 2
            if ch == quote:
                self._leave()
            elif ch == "\n":
                raise ScanError.at(
                    text, self.context_start, "unterminated string literal"
                )
            return i + 1

        # template literal body
        if ch == "\\":
            return i + 2
        if ch == "`":
            self._leave()
            return i + 1
        if ch == "$" and text.startswith("${", i):
            self._expr_depths.append(self.brace_depth)
            self._enter(LexContext.TEMPLATE_EXPR, i)
            return i + 2
        return i + 1

    def finish(self, text: str) -> None:
        """
        Validate the state at end of input.
        """
        if self.context is LexContext.LINE_COMMENT:
            self._leave()
        if self.context is not LexContext.NORMAL:
            start = self.context_start
            if self.context is LexContext.TEMPLATE_EXPR:
                # report the template literal, not the expression inside it
                for ctx, pos in reversed(self._stack):
                    if ctx is LexContext.TEMPLATE:
                        start = pos
                        break
            raise ScanError.at(text, start, _UNTERMINATED[self.context])
        if self._open:
            ch, pos = self._open[-1]
            raise ScanError.at(text, pos, f"unclosed '{ch}' at end of input")


def _is_regex_start(text: str, i: int) -> bool:
    p = i - 1
    while p >= 0 and text[p] in " \t\r\n":
        p -= 1
    if p < 0:
        return True
    prev = text[p]
    if prev in _REGEX_PREFIX_CHARS:
        return True
    if is_ident_char(prev):
        wp = p
        while wp >= 0 and is_ident_char(text[wp]):
            wp -= 1
        return text[wp + 1 : p + 1] in _REGEX_PREFIX_WORDS
    return False


def _skip_regex(text: str, i: int) -> Optional[int]:
    """
    Return the index past a regex literal starting at *i*, or None when the
    literal is not closed on the same line.
    """
    pos = i + 1
    in_class = False
    n = len(text)
    while pos < n:
        ch = text[pos]
        if ch == "\\":
            pos += 2
            continue
        if ch in "\r\n":
            return None
        if in_class:
            if ch == "]":
                in_class = False
        elif ch == "[":
            in_class = True
        elif ch == "/":
            pos += 1
            while pos < n and is_ident_char(text[pos]):
                pos += 1
            return pos
        pos += 1
    return None


# ---------------------------------------------------------------------------
# Helpers over snippets
# ---------------------------------------------------------------------------


def walk(text: str) -> Iterator[Tuple[int, str, ScanState]]:
    """
    Yield ``(index, char, state)`` for every character that is code, i.e.
    outside strings, template text, comments and regex literals. The state
    reflects depths *before* the character is consumed.

    Snippets are treated leniently: unterminated strings end the walk
    instead of raising.
    """
    state = ScanState()
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        code = state.in_code and not text.startswith(("//", "/*"), i)
        if code and ch not in "'\"`" and not _closes_template_expr(state, ch):
            if ch == "/" and _is_regex_start(text, i):
                end = _skip_regex(text, i)
                if end is not None:
                    i = end
                    continue
            yield i, ch, state
        try:
            i = state.advance(text, i)
        except ScanError:
            return


def _closes_template_expr(state: ScanState, ch: str) -> bool:
    return (
        ch == "}"
        and state.context is LexContext.TEMPLATE_EXPR
        and state.brace_depth == state._expr_depths[-1]
    )


def _angle_delta(text: str, i: int, ch: str) -> int:
    if ch == "<":
        return 1
    if ch == ">" and not (i > 0 and text[i - 1] == "="):
        return -1
    return 0


def split_top_level(text: str, sep: str = ",", angles: bool = False) -> List[str]:
    """
    Split *text* on *sep* occurrences that sit outside every bracket,
    string and comment. Pieces are stripped; empty pieces are dropped so a
    trailing separator is harmless.
    """
    pieces: List[str] = []
    start = 0
    angle = 0
    for i, ch, state in walk(text):
        if angles:
            angle = max(0, angle + _angle_delta(text, i, ch))
        if ch == sep and state.depth == 0 and angle == 0:
            pieces.append(text[start:i])
            start = i + 1
    pieces.append(text[start:])
    return [p.strip() for p in pieces if p.strip()]


def find_top_level(
    text: str, target: str, start: int = 0, angles: bool = False
) -> int:
    """
    Index of the first *target* at depth zero at or after *start*, or -1.
    Word targets only match on identifier boundaries.
    """
    word = is_ident_char(target[0])
    angle = 0
    for i, ch, state in walk(text):
        if angles:
            angle = max(0, angle + _angle_delta(text, i, ch))
        if i < start or state.depth != 0 or angle != 0:
            continue
        if not text.startswith(target, i):
            continue
        if word:
            before = text[i - 1] if i > 0 else " "
            end = i + len(target)
            after = text[end] if end < len(text) else " "
            if is_ident_char(before) or is_ident_char(after):
                continue
        return i
    return -1


def find_matching(text: str, open_index: int) -> int:
    """
    Index of the bracket closing the one at *open_index* (``(``, ``[``,
    ``{`` or ``<``), or -1 when it is never closed.
    """
    opener = text[open_index]
    if opener == "<":
        depth = 0
        for i, ch, _state in walk(text):
            if i < open_index:
                continue
            delta = _angle_delta(text, i, ch)
            depth += delta
            if delta < 0 and depth == 0:
                return i
        return -1

    closer = _OPENERS[opener]
    base: Optional[int] = None
    for i, ch, state in walk(text):
        if i < open_index:
            continue
        if base is None:
            base = _depth_of(state, opener)
            continue
        if ch == closer and _depth_of(state, opener) == base + 1:
            return i
    return -1


def _depth_of(state: ScanState, opener: str) -> int:
    if opener == "{":
        return state.brace_depth
    if opener == "[":
        return state.bracket_depth
    return state.paren_depth


def code_only(text: str) -> str:
    """
    Blank out comments and the contents of string literals and template
    text, keeping code (including template ``${}`` expressions) in place.
    """
    out = [" " if ch not in "\n" else ch for ch in text]
    for i, ch, _state in walk(text):
        out[i] = ch
    return "".join(out)


def strip_comments(text: str) -> str:
    """
    Remove ``//`` and ``/* */`` comments outside of strings.
    """
    comments = (LexContext.LINE_COMMENT, LexContext.BLOCK_COMMENT)
    state = ScanState()
    out: List[str] = []
    i = 0
    n = len(text)
    while i < n:
        before = state.context
        try:
            j = state.advance(text, i)
        except ScanError:
            out.append(text[i:])
            break
        if before not in comments and state.context not in comments:
            out.append(text[i:j])
        i = j
    return "".join(out)


def identifiers(text: str) -> set:
    """
    Set of identifier tokens appearing in code positions of *text*.
    """
    return set(_IDENTIFIER_TOKEN_RE.findall(code_only(text)))


def contains_word(text: str, word: str) -> bool:
    return (
        re.search(r"(?<![\w$])" + re.escape(word) + r"(?![\w$])", text) is not None
    )


def collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def strip_semicolon(text: str) -> str:
    text = text.strip()
    while text.endswith(";"):
        text = text[:-1].rstrip()
    return text


def find_assignment(text: str) -> int:
    """
    Index of the first top-level ``=`` that is an assignment, skipping
    ``=>``, comparison operators and generic defaults inside ``<...>``.
    """
    angle = 0
    n = len(text)
    for i, ch, state in walk(text):
        angle = max(0, angle + _angle_delta(text, i, ch))
        if ch != "=" or state.depth != 0 or angle != 0:
            continue
        nxt = text[i + 1] if i + 1 < n else ""
        prev = text[i - 1] if i > 0 else ""
        if nxt in ("=", ">") or prev in ("=", "!", "<", ">"):
            continue
        return i
    return -1
