from typing import Optional


class RemoteOperationError(Exception):
    """The backend reported a failed select, insert, update or delete."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation}: {self.message}"
        return self.message


class FetchError(RemoteOperationError):
    def __init__(self, message: str):
        super().__init__(message, operation="select")
