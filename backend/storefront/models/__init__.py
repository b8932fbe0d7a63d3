from .documents import StoredDocument

__all__ = [
    'StoredDocument',
]
