"""
Session data models for the authentication service.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class SessionIdentity:
    """Signed-in user as seen by the rest of the app"""
    user_id: str
    email: str
    access_token: str
    provider_token: Optional[str] = None  # Google token when signed in through Google
    display_name: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def label(self) -> str:
        return self.display_name or self.email
