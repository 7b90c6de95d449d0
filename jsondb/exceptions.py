"""Exceptions raised by jsondb.

Every error carries a human-readable message plus a ``details`` dict so
callers (and log sinks) get structured context without parsing strings.
"""


class JsonDbError(Exception):
    """Base class for all jsondb errors.

    Attributes:
        message: Human-readable error description
        details: Dict of structured context for debugging
    """

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# =============================================================================
# INDEXING
# =============================================================================

class UnsupportedTypeError(JsonDbError):
    """Raised when a document holds a value outside the six JSON kinds.

    The whole scan is aborted; no entries are returned or persisted.
    """

    def __init__(self, path: str, value_type: str):
        super().__init__(
            f"Unsupported JSON type '{value_type}' at path '{path}'",
            {"path": path, "type": value_type},
        )
        self.path = path
        self.value_type = value_type


class DepthExceededError(JsonDbError):
    """Raised when a document nests deeper than the configured maximum."""

    def __init__(self, path: str, depth: int, max_depth: int):
        super().__init__(
            f"Document nesting depth {depth} at path '{path}' exceeds maximum {max_depth}",
            {"path": path, "depth": depth, "max_depth": max_depth},
        )
        self.path = path
        self.depth = depth
        self.max_depth = max_depth


# =============================================================================
# QUERY COMPILATION
# =============================================================================

class UnknownPathError(JsonDbError):
    """Raised when a query references paths that were never indexed.

    Raised during validation, before any view is created.
    """

    def __init__(self, paths: list[str]):
        listed = ", ".join(repr(p) for p in paths)
        super().__init__(f"Unknown path(s): {listed}", {"paths": list(paths)})
        self.paths = list(paths)


class InvalidPredicateError(JsonDbError):
    """Raised for an unknown operator, direction or malformed operand."""


class BuilderStateError(JsonDbError):
    """Raised when a builder operation is not allowed in its current state."""

    def __init__(self, operation: str, state: str):
        super().__init__(
            f"Cannot {operation} while builder is {state}",
            {"operation": operation, "state": state},
        )
        self.operation = operation
        self.state = state


# =============================================================================
# EXECUTION
# =============================================================================

class EngineError(JsonDbError):
    """Raised when the relational engine rejects a statement."""


class ViewLifecycleError(JsonDbError):
    """Raised when creating, querying or dropping a pivot view fails.

    Attributes:
        stage: 'create', 'select', 'drop', or 'transaction' when the
            surrounding BEGIN/COMMIT itself failed
        view_name: Name of the ephemeral view involved
        cleanup_error: ViewCleanupError when the drop also failed after
            this error, otherwise None
    """

    def __init__(self, stage: str, view_name: str, reason: str):
        super().__init__(
            f"View {view_name} failed during {stage}: {reason}",
            {"stage": stage, "view_name": view_name, "reason": reason},
        )
        self.stage = stage
        self.view_name = view_name
        self.cleanup_error: ViewCleanupError | None = None


class ViewCleanupError(ViewLifecycleError):
    """Raised when an ephemeral view could not be dropped.

    The view may still exist in the catalog and needs out-of-band cleanup.
    """

    def __init__(self, view_name: str, reason: str):
        super().__init__("drop", view_name, reason)


# =============================================================================
# DOCUMENTS
# =============================================================================

class DocumentNotFoundError(JsonDbError):
    """Raised when an operation targets a document id that does not exist."""

    def __init__(self, oid: str):
        super().__init__(f"Document not found: {oid}", {"oid": oid})
        self.oid = oid
