from typing import Optional


class DtsError(Exception):
    """
    Base class for declaration generation failures.
    """

    def __init__(self, message: str, file_path: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.file_path = file_path

    def __str__(self) -> str:
        if self.file_path:
            return f"{self.file_path}: {self.message}"
        return self.message


class ScanError(DtsError):
    """
    Raised by the declaration scanner when the source cannot be segmented:
    an unterminated string, template or block comment, or brackets still
    open at the end of input.

    ``position`` is a 0-based character offset; ``line`` and ``column`` are
    1-based and derived from it.
    """

    def __init__(
        self,
        reason: str,
        position: int,
        line: int = 0,
        column: int = 0,
        file_path: Optional[str] = None,
    ) -> None:
        super().__init__(reason, file_path=file_path)
        self.reason = reason
        self.position = position
        self.line = line
        self.column = column

    @classmethod
    def at(cls, text: str, position: int, reason: str) -> "ScanError":
        position = max(0, min(position, len(text)))
        line = text.count("\n", 0, position) + 1
        column = position - (text.rfind("\n", 0, position) + 1) + 1
        return cls(reason, position, line=line, column=column)

    def with_file(self, file_path: str) -> "ScanError":
        self.file_path = file_path
        return self

    def __str__(self) -> str:
        location = f"{self.line}:{self.column}"
        if self.file_path:
            return f"{self.file_path}:{location}: {self.reason}"
        return f"{location}: {self.reason}"
