class DomainError(Exception):
    def __init__(self, code: str, message: str, details: dict | None = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFoundError(DomainError):
    def __init__(self, entity: str, message: str | None = None, details: dict | None = None):
        code = f"NF_{entity.upper()}_001"
        msg = message or f"{entity} not found"
        super().__init__(code, msg, details)


class QueryExecutionError(DomainError):
    """A primary fetch failed in the persistence layer.

    The underlying driver error is chained as ``__cause__`` and never copied
    into ``message``, which is safe to return to clients.
    """

    def __init__(self, resource: str, message: str | None = None, details: dict | None = None):
        code = f"DB_{resource.upper()}_001"
        msg = message or f"Failed to query {resource}"
        super().__init__(code, msg, details)


class ResourceDefinitionError(ValueError):
    """Raised while building a catalog, join graph or resource that is inconsistent."""
