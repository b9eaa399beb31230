class CampusRagError(Exception):
    """Base class for errors raised by the ingestion and answer pipelines."""


class ConfigurationError(CampusRagError, ValueError):
    """Invalid static configuration, e.g. chunk overlap >= chunk size.

    Raised before any external call is made.
    """


class GatewayError(CampusRagError):
    """An external service (embeddings, generation, vector index) failed."""

    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}")
        self.service = service
        self.message = message


class NotFoundError(CampusRagError):
    """Requested record is absent or not owned by the caller.

    The two cases are not distinguished.
    """

    def __init__(self, kind: str, ident: str):
        super().__init__(f"{kind} not found")
        self.kind = kind
        self.ident = ident
