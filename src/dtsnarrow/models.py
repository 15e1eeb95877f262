from pydantic import BaseModel, Field
from enum import Enum
from typing import List, Optional

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class DeclarationKind(str, Enum):
    IMPORT = "import"
    EXPORT = "export"
    FUNCTION = "function"
    VARIABLE = "variable"
    INTERFACE = "interface"
    TYPE = "type"
    CLASS = "class"
    ENUM = "enum"
    MODULE = "module"


class TypeKind(str, Enum):
    LITERAL = "literal"
    ARRAY = "array"
    TUPLE = "tuple"
    OBJECT = "object"
    FUNCTION = "function"
    PROMISE = "promise"
    REFERENCE = "reference"
    UNKNOWN = "unknown"


class GenerationStatus(str, Enum):
    GENERATED = "generated"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


class SourceUnit(BaseModel):
    text: str
    file_path: str  # project relative path


# ---------------------------------------------------------------------------
# Scanner output
# ---------------------------------------------------------------------------


class FunctionSignature(BaseModel):
    generics: Optional[str] = None  # "<T extends X>" including brackets
    parameters: List[str] = Field(default_factory=list)  # raw top-level parameters
    return_type: Optional[str] = None
    is_async: bool = False
    is_generator: bool = False
    has_body: bool = False
    leading_doc_comment: Optional[str] = None


class Declaration(BaseModel):
    kind: DeclarationKind
    name: str = ""
    raw_text: str
    leading_doc_comment: Optional[str] = None
    is_exported: bool = False
    is_type_only: bool = False
    is_default: bool = False  # export default function|class
    is_ambient: bool = False  # written with `declare`
    generics: Optional[str] = None
    extends: Optional[str] = None
    implements: Optional[str] = None
    modifiers: List[str] = Field(default_factory=list)

    # functions
    parameters: Optional[List[str]] = None
    return_type: Optional[str] = None
    overload_signatures: List[FunctionSignature] = Field(default_factory=list)
    signature: Optional[FunctionSignature] = None  # primary signature

    # variables
    type_annotation: Optional[str] = None
    value_expression: Optional[str] = None

    # class / interface / enum / namespace / module / type bodies
    body: Optional[str] = None

    # export passthroughs
    source: Optional[str] = None

    start: int = 0
    end: int = 0


class ImportBinding(BaseModel):
    name: str  # imported name, "a" in `a as b`
    alias: Optional[str] = None  # local name, "b" in `a as b`
    is_type_only: bool = False

    @property
    def local_name(self) -> str:
        return self.alias or self.name

    def render(self) -> str:
        text = f"{self.name} as {self.alias}" if self.alias else self.name
        return f"type {text}" if self.is_type_only else text


class ImportRecord(BaseModel):
    source: str
    default_binding: Optional[str] = None
    namespace_binding: Optional[str] = None  # `* as ns`
    named_bindings: List[ImportBinding] = Field(default_factory=list)
    statement_is_type_only: bool = False
    is_side_effect: bool = False
    is_require: bool = False  # `import x = require('y')`
    raw: str = ""

    @property
    def is_mixed(self) -> bool:
        return not self.statement_is_type_only and any(
            b.is_type_only for b in self.named_bindings
        )

    def local_names(self) -> List[str]:
        names: List[str] = []
        if self.default_binding:
            names.append(self.default_binding)
        if self.namespace_binding:
            names.append(self.namespace_binding)
        names.extend(b.local_name for b in self.named_bindings)
        return names


class RetainedImport(BaseModel):
    record: ImportRecord  # the record this was reduced from
    default_binding: Optional[str] = None
    namespace_binding: Optional[str] = None
    named_bindings: List[ImportBinding] = Field(default_factory=list)
    text: str


class ScanResult(BaseModel):
    declarations: List[Declaration] = Field(default_factory=list)
    imports: List[ImportRecord] = Field(default_factory=list)
    directives: List[str] = Field(default_factory=list)  # triple-slash lines


# ---------------------------------------------------------------------------
# Inference
# ---------------------------------------------------------------------------


class InferredType(BaseModel):
    text: str
    kind: TypeKind = TypeKind.UNKNOWN

    def __str__(self) -> str:
        return self.text

    @property
    def is_unknown(self) -> bool:
        return self.kind is TypeKind.UNKNOWN

    def in_union(self) -> str:
        """
        Text suitable as a union member; function types need parentheses
        so that `=>` does not swallow the rest of the union.
        """
        if self.kind is TypeKind.FUNCTION:
            return f"({self.text})"
        return self.text


UNKNOWN_TYPE = InferredType(text="unknown", kind=TypeKind.UNKNOWN)


# ---------------------------------------------------------------------------
# Generation results
# ---------------------------------------------------------------------------


class GenerationResult(BaseModel):
    file_path: str
    status: GenerationStatus
    output: Optional[str] = None
    error: Optional[str] = None
    duration: float = 0.0
