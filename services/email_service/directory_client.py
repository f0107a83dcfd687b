"""
Client for the server-side directory lookup endpoint.
"""

from typing import List, Optional

import requests

from services.chat_service.models import DirectoryContact
from services.email_service.errors import DirectoryAccessError, DirectoryLookupError
from utils.logging_config import get_logger


class DirectoryClient:
    """Searches the caller's organizational directory through the proxy"""

    def __init__(self, directory_url: str, timeout: float = 30.0,
                 session: Optional[requests.Session] = None):
        self.logger = get_logger(__name__)
        self.directory_url = directory_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def search(self, query: str, access_token: Optional[str], session_token: Optional[str]) -> List[DirectoryContact]:
        """
        Search contacts whose name contains ``query``

        Args:
            query: Name fragment extracted from the user's message
            access_token: Delegated Google access token
            session_token: Session token identifying the caller

        Returns:
            Matching contacts, possibly empty

        Raises:
            DirectoryAccessError: Caller has no educational account
            DirectoryLookupError: Any other failure
        """
        headers = {"Content-Type": "application/json"}
        if session_token:
            headers["Authorization"] = f"Bearer {session_token}"

        try:
            response = self.session.post(
                self.directory_url,
                json={"query": query, "accessToken": access_token},
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            self.logger.error(f"Directory request failed: {e}")
            raise DirectoryLookupError("Directory lookup is unavailable right now") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code == 403:
            reason = payload.get("error") or "Directory access requires an educational account"
            self.logger.warning(f"Directory access denied: {reason}")
            raise DirectoryAccessError(reason)

        if not response.ok:
            reason = payload.get("error") or f"HTTP {response.status_code}"
            self.logger.error(f"Directory lookup failed: {reason}")
            raise DirectoryLookupError(f"Directory lookup failed: {reason}")

        contacts = [DirectoryContact.from_row(row) for row in payload.get("contacts") or []]
        self.logger.info(f"Directory search for '{query}' returned {len(contacts)} contact(s)")
        return contacts
