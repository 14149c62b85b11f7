"""GitHub repository content client with an expiring response cache."""

from .cache import CACHE_PREFIX, CacheKey, CacheKind, CacheStore, LocalStorage, StorageQuotaExceeded
from .client import GitHubClient, get_token
from .exceptions import (
    ConfigurationInvalid,
    ContentError,
    DecodeFailed,
    NotFound,
    RateLimited,
    RequestFailed,
    Unauthorized,
    describe_error,
)
from .models import FileMetadata, RepositoryConfig, TreeEntry

__all__ = [
    "CACHE_PREFIX",
    "CacheKey",
    "CacheKind",
    "CacheStore",
    "ConfigurationInvalid",
    "ContentError",
    "DecodeFailed",
    "FileMetadata",
    "GitHubClient",
    "LocalStorage",
    "NotFound",
    "RateLimited",
    "RepositoryConfig",
    "RequestFailed",
    "StorageQuotaExceeded",
    "TreeEntry",
    "Unauthorized",
    "describe_error",
    "get_token",
]
