"""
Directory service - server-side organizational directory lookup.
"""

from .directory_repository import (
    DirectoryRepository,
    SQLiteDirectoryRepository,
    SupabaseDirectoryRepository
)
from .directory_service import (
    EDU_REQUIRED_MESSAGE,
    CallerResolutionError,
    DirectoryForbiddenError,
    DirectoryService,
    bearer_token
)

__all__ = [
    'DirectoryRepository',
    'SQLiteDirectoryRepository',
    'SupabaseDirectoryRepository',
    'EDU_REQUIRED_MESSAGE',
    'CallerResolutionError',
    'DirectoryForbiddenError',
    'DirectoryService',
    'bearer_token'
]
