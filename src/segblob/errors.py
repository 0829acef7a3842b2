"""Custom exceptions for segblob with caller-friendly context."""

from typing import Any


class SegblobError(Exception):
    """Base error for segblob."""

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context."""
        parts = [self.message]

        if self.context:
            ctx_parts = [f"{k}={v}" for k, v in self.context.items() if v is not None]
            if ctx_parts:
                parts.append(f"({', '.join(ctx_parts)})")

        return " ".join(parts)


class BlobNotFoundError(SegblobError, LookupError):
    """No segments exist for the requested blob."""

    def __init__(self, blob_id: str, operation: str | None = None, **context: Any):
        self.blob_id = blob_id
        self.operation = operation
        super().__init__(
            f"Blob '{blob_id}' not found. It was never written or has been removed.",
            blob_id=blob_id,
            operation=operation,
            **context
        )
