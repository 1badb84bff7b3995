from __future__ import annotations


class IngestionError(Exception):
    pass


class ValidationError(IngestionError):
    """The upload is not a structurally acceptable PDF. Nothing was persisted."""


class ParseError(IngestionError):
    """Text extraction or recognition failed; the batch is left as PARSE_FAILED."""


class PreconditionError(IngestionError):
    pass


class InvalidTransitionError(PreconditionError):
    pass


class NotFoundError(IngestionError):
    pass


class ConcurrencyError(IngestionError):
    pass


class PublishError(IngestionError):
    pass
