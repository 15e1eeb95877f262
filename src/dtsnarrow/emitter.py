from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from dtsnarrow.imports import optimize
from dtsnarrow.inference import infer, is_broad_annotation, parameter_list
from dtsnarrow.lexer import collapse_whitespace, is_identifier
from dtsnarrow.members import class_body_lines
from dtsnarrow.models import (
    Declaration,
    DeclarationKind,
    FunctionSignature,
    ImportRecord,
)
from dtsnarrow.signatures import default_return_type

INDENT = "  "


@dataclass
class EmissionDocument:
    """
    Output sections of one declaration file. Sections are filled in any
    order and always rendered in the order of the fields below.
    """

    directives: List[str] = field(default_factory=list)
    imports: List[str] = field(default_factory=list)
    type_only_re_exports: List[str] = field(default_factory=list)
    declarations: List[str] = field(default_factory=list)
    value_re_exports: List[str] = field(default_factory=list)
    default_export: List[str] = field(default_factory=list)

    def body_text(self) -> str:
        """
        Everything that follows the import section.
        """
        sections = (
            self.type_only_re_exports,
            self.declarations,
            self.value_re_exports,
            self.default_export,
        )
        return "\n".join(chunk for section in sections for chunk in section)

    def render(self) -> str:
        head = "\n".join(self.directives + self.imports)
        body = self.body_text()
        if head and body:
            return f"{head}\n\n{body}\n"
        text = head or body
        return f"{text}\n" if text else ""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _with_doc(text: str, doc: Optional[str], keep_comments: bool) -> str:
    if keep_comments and doc:
        return f"{doc.strip()}\n{text}"
    return text


def _prefix(decl: Declaration) -> str:
    return "export declare " if decl.is_exported else "declare "


def _block(lines: List[str]) -> str:
    if not lines:
        return "{}"
    return "{\n" + "\n".join(INDENT + line for line in lines) + "\n}"


def _heritage(decl: Declaration) -> str:
    text = ""
    if decl.extends:
        text += f" extends {decl.extends}"
    if decl.implements:
        text += f" implements {decl.implements}"
    return text


# ---------------------------------------------------------------------------
# Per-kind rendering
# ---------------------------------------------------------------------------


def function_line(prefix: str, name: str, signature: FunctionSignature) -> str:
    return_type = signature.return_type or default_return_type(
        signature.is_async, signature.is_generator
    )
    generics = signature.generics or ""
    params = parameter_list(signature.parameters)
    return f"{prefix}function {name}{generics}({params}): {return_type};"


def emit_function(decl: Declaration, keep_comments: bool, prefix: str) -> str:
    chunks: List[str] = []
    for overload in decl.overload_signatures:
        line = function_line(prefix, decl.name, overload)
        chunks.append(_with_doc(line, overload.leading_doc_comment, keep_comments))
    signature = decl.signature or FunctionSignature(
        generics=decl.generics,
        parameters=decl.parameters or [],
        return_type=decl.return_type,
    )
    line = function_line(prefix, decl.name, signature)
    chunks.append(_with_doc(line, decl.leading_doc_comment, keep_comments))
    return "\n".join(chunks)


def variable_type(decl: Declaration) -> str:
    """
    Type written for a variable: its annotation, unless a const binding
    annotated with something broad can be narrowed from its value.
    """
    keyword = decl.modifiers[0] if decl.modifiers else "const"
    is_const = keyword == "const"
    annotation = decl.type_annotation
    value = decl.value_expression
    if annotation:
        if is_const and value and is_broad_annotation(annotation):
            inferred = infer(value, True)
            if not inferred.is_unknown:
                return inferred.text
        return annotation
    if not value:
        return "any"
    return infer(value, is_const).text


def emit_variable(decl: Declaration) -> str:
    keyword = decl.modifiers[0] if decl.modifiers else "const"
    return f"{_prefix(decl)}{keyword} {decl.name}: {variable_type(decl)};"


def emit_interface(decl: Declaration, prefix: str) -> str:
    head = f"{prefix}interface {decl.name}{decl.generics or ''}{_heritage(decl)}"
    return f"{head} {decl.body}"


def emit_type(decl: Declaration) -> str:
    return f"{_prefix(decl)}type {decl.name}{decl.generics or ''} = {decl.body};"


def emit_class(decl: Declaration, keep_comments: bool, prefix: str) -> str:
    abstract = "abstract " if "abstract" in decl.modifiers else ""
    name = f" {decl.name}" if decl.name else ""
    head = f"{prefix}{abstract}class{name}{decl.generics or ''}{_heritage(decl)}"
    lines = class_body_lines(decl.body or "{}", keep_comments)
    return f"{head} {_block(lines)}"


def emit_enum(decl: Declaration) -> str:
    const = "const " if "const" in decl.modifiers else ""
    return f"{_prefix(decl)}{const}enum {decl.name} {decl.body}"


def emit_module(decl: Declaration) -> str:
    if decl.name == "global":
        return f"declare global {decl.body or '{}'}"
    keyword = decl.modifiers[0] if decl.modifiers else "namespace"
    if decl.name[:1] in ("'", '"'):
        # ambient module, never exported
        head = f"declare module {decl.name}"
    else:
        head = f"{_prefix(decl)}{keyword} {decl.name}"
    if decl.body is None:
        return f"{head};"
    return f"{head} {decl.body}"


def emit_default(decl: Declaration, keep_comments: bool) -> List[str]:
    if decl.kind is DeclarationKind.FUNCTION:
        return [emit_function(decl, keep_comments, "export default ")]
    if decl.kind is DeclarationKind.CLASS:
        text = emit_class(decl, keep_comments, "export default ")
        return [_with_doc(text, decl.leading_doc_comment, keep_comments)]
    if decl.kind is DeclarationKind.INTERFACE:
        text = emit_interface(decl, "export default ")
        return [_with_doc(text, decl.leading_doc_comment, keep_comments)]

    expression = collapse_whitespace(decl.value_expression or "")
    if is_identifier(expression):
        return [f"export default {expression};"]
    default_type = infer(expression, False).text
    return [
        f"declare const _default: {default_type};",
        "export default _default;",
    ]


def emit_declaration(decl: Declaration, keep_comments: bool) -> Optional[str]:
    kind = decl.kind
    if kind is DeclarationKind.FUNCTION:
        return emit_function(decl, keep_comments, _prefix(decl))

    if kind is DeclarationKind.VARIABLE:
        text = emit_variable(decl)
    elif kind is DeclarationKind.INTERFACE:
        text = emit_interface(decl, _prefix(decl))
    elif kind is DeclarationKind.TYPE:
        text = emit_type(decl)
    elif kind is DeclarationKind.CLASS:
        text = emit_class(decl, keep_comments, _prefix(decl))
    elif kind is DeclarationKind.ENUM:
        text = emit_enum(decl)
    elif kind is DeclarationKind.MODULE:
        text = emit_module(decl)
    else:
        return None
    return _with_doc(text, decl.leading_doc_comment, keep_comments)


def _passthrough(decl: Declaration) -> str:
    keyword = "export type" if decl.is_type_only else "export"
    clause = collapse_whitespace(decl.value_expression or "")
    if clause.startswith("="):
        return f"export {clause};"
    return f"{keyword} {clause};"


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def build_document(
    declarations: Sequence[Declaration],
    import_records: Sequence[ImportRecord],
    keep_comments: bool = True,
    preferred_sources: Sequence[str] = (),
    directives: Sequence[str] = (),
) -> EmissionDocument:
    doc = EmissionDocument(directives=list(directives))
    # names re-exported from other modules do not count as uses of imports
    usage: List[str] = []
    for decl in declarations:
        if decl.kind is DeclarationKind.IMPORT:
            continue
        if decl.is_default:
            chunks = emit_default(decl, keep_comments)
            doc.default_export.extend(chunks)
            usage.extend(chunks)
        elif decl.kind is DeclarationKind.EXPORT:
            section = (
                doc.type_only_re_exports if decl.is_type_only else doc.value_re_exports
            )
            text = _passthrough(decl)
            section.append(text)
            if decl.source is None:
                usage.append(text)
        else:
            text = emit_declaration(decl, keep_comments)
            if text is not None:
                doc.declarations.append(text)
                usage.append(text)

    retained = optimize(import_records, "\n".join(usage), preferred_sources)
    doc.imports = [imp.text for imp in retained]
    return doc


def emit(
    declarations: Sequence[Declaration],
    import_records: Sequence[ImportRecord],
    keep_comments: bool = True,
    preferred_sources: Sequence[str] = (),
    directives: Sequence[str] = (),
) -> str:
    """
    Render declarations as declaration file text.

    Imports are decided last, from the finished body of the document, so
    that only bindings the output refers to are kept.
    """
    return build_document(
        declarations, import_records, keep_comments, preferred_sources, directives
    ).render()
