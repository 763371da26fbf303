"""Custom exceptions for sqlmerge."""

from typing import List, Optional


class DataMergeError(Exception):
    """Base exception for all sqlmerge errors."""

    pass


class ValidationError(DataMergeError):
    """Merge definition is invalid; raised before any statement is issued."""

    def __init__(self, message: str, target_table: Optional[str] = None):
        self.message = message
        self.target_table = target_table
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        parts = ["✗ Merge definition validation failed"]
        if self.target_table:
            parts.append(f"\n  Target: {self.target_table}")
        parts.append(f"\n  Error: {self.message}")
        return "".join(parts)


class ConfigurationError(DataMergeError):
    """The execution gateway cannot support the requested operation."""

    def __init__(self, message: str, suggestions: Optional[List[str]] = None):
        self.message = message
        self.suggestions = suggestions or []
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        parts = [f"✗ Configuration error: {self.message}"]

        if self.suggestions:
            parts.append("\n\n  Suggestions:")
            for i, suggestion in enumerate(self.suggestions, 1):
                parts.append(f"\n    {i}. {suggestion}")

        return "".join(parts)


class ExecutionError(DataMergeError):
    """The database rejected a generated statement or the bulk transfer failed."""

    def __init__(
        self,
        step: str,
        message: str,
        sql: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.step = step
        self.message = message
        self.sql = sql
        self.original_error = original_error
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        parts = [f"✗ Merge step failed: {self.step}", f"\n\n  Error: {self.message}"]

        if self.original_error:
            parts.append(f"\n  Type: {type(self.original_error).__name__}")

        if self.sql:
            preview = self.sql if len(self.sql) <= 500 else self.sql[:500] + " ..."
            parts.append(f"\n\n  Statement:\n{preview}")

        return "".join(parts)


class MergeCancelledError(DataMergeError):
    """A cancellation signal stopped the merge at a suspension point."""

    def __init__(self, state: str):
        self.state = state
        super().__init__(f"✗ Merge cancelled while {state}")


class ConnectionError(DataMergeError):
    """Connection failed or invalid."""

    def __init__(self, connection_name: str, reason: str, suggestions: Optional[List[str]] = None):
        self.connection_name = connection_name
        self.reason = reason
        self.suggestions = suggestions or []
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        parts = [
            f"✗ Connection failed: {self.connection_name}",
            f"\n  Reason: {self.reason}",
        ]

        if self.suggestions:
            parts.append("\n\n  Suggestions:")
            for i, suggestion in enumerate(self.suggestions, 1):
                parts.append(f"\n    {i}. {suggestion}")

        return "".join(parts)
