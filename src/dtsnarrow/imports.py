"""
Import statement parsing and usage-driven import minimization.

An import survives only with the bindings that the emitted declarations
actually mention; side-effect imports are always kept.
"""

import re
from typing import Iterable, List, Optional, Sequence, Set

from dtsnarrow.lexer import collapse_whitespace, identifiers, strip_comments
from dtsnarrow.logger import logger
from dtsnarrow.models import ImportBinding, ImportRecord, RetainedImport

_SIDE_EFFECT_RE = re.compile(r"^import\s*(['\"])(.+?)\1")
_IMPORT_RE = re.compile(r"^import\s+(type\s+)?(.*?)\s*\bfrom\s*(['\"])(.+?)\3")
_NAMESPACE_RE = re.compile(r"^\*\s*as\s+([\w$]+)$")
_REQUIRE_RE = re.compile(
    r"^import\s+(type\s+)?([\w$]+)\s*=\s*require\(\s*(['\"])(.+?)\3\s*\)$"
)


def _parse_binding(text: str) -> Optional[ImportBinding]:
    text = text.strip()
    if not text:
        return None
    is_type = False
    if text.startswith("type ") and text[5:].strip():
        is_type = True
        text = text[5:].strip()
    parts = re.split(r"\s+as\s+", text, maxsplit=1)
    if len(parts) == 2:
        return ImportBinding(name=parts[0], alias=parts[1], is_type_only=is_type)
    return ImportBinding(name=text, is_type_only=is_type)


def parse_import(statement: str) -> Optional[ImportRecord]:
    """
    Parse one ``import`` statement. Returns None for forms that bind nothing
    we can track, such as dynamic ``import()`` calls.
    """
    text = collapse_whitespace(strip_comments(statement)).strip().rstrip(";")

    match = _SIDE_EFFECT_RE.match(text)
    if match:
        return ImportRecord(
            source=match.group(2), is_side_effect=True, raw=statement
        )

    match = _REQUIRE_RE.match(text)
    if match:
        type_keyword, name, _, source = match.groups()
        return ImportRecord(
            source=source,
            default_binding=name,
            statement_is_type_only=bool(type_keyword),
            is_require=True,
            raw=statement,
        )

    match = _IMPORT_RE.match(text)
    if match is None:
        return None
    type_keyword, clause, _, source = match.groups()
    clause = clause.strip()
    if type_keyword and not clause:
        # `import type from 'x'` binds a default named "type"
        type_keyword, clause = None, "type"

    record = ImportRecord(
        source=source,
        statement_is_type_only=bool(type_keyword),
        raw=statement,
    )
    head = clause
    brace = clause.find("{")
    if brace != -1:
        close = clause.rfind("}")
        if close < brace:
            return None
        head = clause[:brace]
        for part in clause[brace + 1 : close].split(","):
            binding = _parse_binding(part)
            if binding is not None:
                record.named_bindings.append(binding)

    for part in head.split(","):
        part = part.strip()
        if not part:
            continue
        ns = _NAMESPACE_RE.match(part)
        if ns:
            record.namespace_binding = ns.group(1)
        else:
            record.default_binding = part
    return record


def render_import(
    record: ImportRecord,
    default_binding: Optional[str],
    namespace_binding: Optional[str],
    named_bindings: Sequence[ImportBinding],
) -> str:
    if record.is_side_effect:
        return f"import '{record.source}';"
    keyword = "import type" if record.statement_is_type_only else "import"
    if record.is_require:
        return f"{keyword} {default_binding} = require('{record.source}');"
    parts: List[str] = []
    if default_binding:
        parts.append(default_binding)
    if namespace_binding:
        parts.append(f"* as {namespace_binding}")
    if named_bindings:
        parts.append("{ " + ", ".join(b.render() for b in named_bindings) + " }")
    return f"{keyword} {', '.join(parts)} from '{record.source}';"


def reduce_import(record: ImportRecord, used: Set[str]) -> Optional[RetainedImport]:
    """
    Keep only the bindings of *record* found in *used*; None when nothing
    is left.
    """
    if record.is_side_effect:
        text = render_import(record, None, None, [])
        return RetainedImport(record=record, text=text)

    default = record.default_binding if record.default_binding in used else None
    namespace = (
        record.namespace_binding if record.namespace_binding in used else None
    )
    named = [b for b in record.named_bindings if b.local_name in used]
    if not (default or namespace or named):
        return None
    return RetainedImport(
        record=record,
        default_binding=default,
        namespace_binding=namespace,
        named_bindings=named,
        text=render_import(record, default, namespace, named),
    )


def import_priority(source: str, preferred_sources: Sequence[str]) -> int:
    for idx, prefix in enumerate(preferred_sources):
        if source.startswith(prefix):
            return idx
    return len(preferred_sources)


def sort_imports(
    imports: Iterable[RetainedImport], preferred_sources: Sequence[str] = ()
) -> List[RetainedImport]:
    return sorted(
        imports,
        key=lambda imp: (
            import_priority(imp.record.source, preferred_sources),
            imp.text,
        ),
    )


def optimize(
    records: Iterable[ImportRecord],
    declaration_text: str,
    preferred_sources: Sequence[str] = (),
) -> List[RetainedImport]:
    """
    Reduce *records* to the bindings referenced by *declaration_text*, the
    assembled output without its import section.

    Usage is whole-word: an identifier only counts when it appears as a
    token in code, never as part of a longer name or inside a string.
    """
    used = identifiers(declaration_text)
    retained: List[RetainedImport] = []
    for record in records:
        reduced = reduce_import(record, used)
        if reduced is None:
            logger.debug("Dropping unused import", source=record.source)
            continue
        retained.append(reduced)
    return sort_imports(retained, preferred_sources)
