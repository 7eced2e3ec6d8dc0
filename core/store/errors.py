"""
POS Store - Errors
==================
Failures raised by DataStore implementations.
"""


class StoreError(Exception):
    """Base error for data store operations."""
    pass


class StorePermissionDenied(StoreError):
    """Row-level security or a grant refused the operation."""

    def __init__(self, table: str, operation: str, detail: str = ""):
        self.table = table
        self.operation = operation
        self.detail = detail
        super().__init__(
            f"Permission denied for {operation} on '{table}'"
            + (f": {detail}" if detail else ".")
        )


class UnknownTableError(StoreError):
    def __init__(self, table: str):
        self.table = table
        super().__init__(f"Unknown table '{table}'.")


class StoreConflict(StoreError):
    """A uniqueness constraint rejected the write."""

    def __init__(self, table: str, operation: str, detail: str = ""):
        self.table = table
        self.operation = operation
        self.detail = detail
        super().__init__(
            f"Conflicting {operation} on '{table}'"
            + (f": {detail}" if detail else ".")
        )
