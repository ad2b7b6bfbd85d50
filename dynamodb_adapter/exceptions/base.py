from typing import Any, Dict, Optional


class DynamoDBAdapterError(Exception):
    """Root of every error raised by the adapter.

    ``original_error`` keeps the botocore (or other) exception an error was
    mapped from; ``context`` holds the values needed to diagnose it, such as
    the table, the key or the attribute involved.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.context = dict(context) if context else {}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{name}={value}" for name, value in self.context.items())
        return f"{self.message} (Context: {details})"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, context={self.context!r})"
