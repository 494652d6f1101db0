"""
Custom exception hierarchy for attribution statistics.

Exception Hierarchy:
    ValidationError                 - Input validation failed (user-correctable)
    └── InvalidPeriodError          - Period keyword/dates cannot be resolved

    EventStoreError (base)
    ├── EventStoreUnavailableError  - Store connection or query failed
    └── QueryTimeoutError           - Query exceeded timeout
"""


class ValidationError(Exception):
    """
    Input validation failed.

    Used for validating user input before any query runs.
    """

    def __init__(self, field: str, message: str, value: any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value!r})"
        return f"{self.field}: {self.message}"


class InvalidPeriodError(ValidationError):
    """
    Period parameters cannot be resolved into a time window.

    Raised for unknown keywords, unparseable or missing custom dates,
    and custom ranges whose end precedes their start.
    """

    def __init__(self, message: str, value: any = None, field: str = "period"):
        super().__init__(field, message, value)


class EventStoreError(Exception):
    """Base exception for all event store failures."""

    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class EventStoreUnavailableError(EventStoreError):
    """
    Event store could not serve a query.

    Not retried inside the aggregation core; the failing call
    propagates this to its caller.
    """

    def __init__(self, message: str, details: str = None, operation: str = None):
        super().__init__(message, details)
        self.operation = operation


class QueryTimeoutError(EventStoreError):
    """
    Database query exceeded timeout.

    Indicates a long-running query that should be investigated:
    - Missing index
    - Too much data being scanned
    """

    def __init__(self, query: str, timeout: float, details: str = None):
        self.query = query[:200] + "..." if len(query) > 200 else query
        self.timeout = timeout
        message = f"Query timed out after {timeout}s"
        super().__init__(message, details)

    def __str__(self) -> str:
        return f"QueryTimeoutError: Query timed out after {self.timeout}s - {self.query}"
