"""
Directory service - authorizes the caller and runs the contact search.
"""

from typing import List, Optional

from services.chat_service.models import DirectoryContact
from services.directory_service.directory_repository import DirectoryRepository
from utils.logging_config import get_logger


EDU_REQUIRED_MESSAGE = "Directory access requires an educational account"


class CallerResolutionError(Exception):
    """Request carries no usable session token"""


class DirectoryForbiddenError(Exception):
    """Caller's profile is not an educational account"""


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Token part of an ``Authorization: Bearer <token>`` header"""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


class DirectoryService:
    """Directory lookup on behalf of an authenticated caller"""

    def __init__(self, repository: DirectoryRepository):
        self.logger = get_logger(__name__)
        self.repository = repository

    def search(self, authorization: Optional[str], query: str) -> List[DirectoryContact]:
        """
        Search the caller's directory

        Args:
            authorization: Raw Authorization header
            query: Name fragment

        Raises:
            CallerResolutionError: Missing header or unknown token
            DirectoryForbiddenError: Caller lacks the educational account flag
        """
        token = bearer_token(authorization)
        if token is None:
            raise CallerResolutionError("No authorization header")

        user_id = self.repository.resolve_caller(token)
        if user_id is None:
            raise CallerResolutionError("Invalid session token")

        profile = self.repository.get_profile(user_id)
        if not profile or not profile.get("is_edu_account"):
            self.logger.warning(f"Directory access denied for user {user_id}")
            raise DirectoryForbiddenError(EDU_REQUIRED_MESSAGE)

        contacts = self.repository.search_contacts(user_id, query or "")
        self.logger.info(f"Directory search by {user_id} returned {len(contacts)} contact(s)")
        return contacts
