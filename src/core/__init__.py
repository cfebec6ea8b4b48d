from .exceptions import (
    DomainError,
    ValidationError,
    NotFoundError,
    ConflictError,
    BatchNotReadyError,
    EmptyBatchError,
    ArchiveBuildInProgressError,
    RenderError,
    CompressionUnavailable,
    NetworkError
)

__all__ = [
    'DomainError',
    'ValidationError',
    'NotFoundError',
    'ConflictError',
    'BatchNotReadyError',
    'EmptyBatchError',
    'ArchiveBuildInProgressError',
    'RenderError',
    'CompressionUnavailable',
    'NetworkError'
]
