"""
Contact disambiguation state machine.

IDLE --resolve(0)--> IDLE (no match)
IDLE --resolve(1)--> COMPOSING
IDLE --resolve(n)--> SELECTING --select(i)--> COMPOSING
SELECTING/COMPOSING --dismiss()/reset()--> IDLE
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from services.chat_service.models import DirectoryContact


NO_MATCH = "no_match"


class ResolutionState(Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    COMPOSING = "composing"


@dataclass
class ContactResolution:
    """Where the user is in picking an email recipient"""
    state: ResolutionState = ResolutionState.IDLE
    query: Optional[str] = None
    candidates: List[DirectoryContact] = field(default_factory=list)
    selected: List[DirectoryContact] = field(default_factory=list)
    reason: Optional[str] = None

    @property
    def is_no_match(self) -> bool:
        return self.state is ResolutionState.IDLE and self.reason == NO_MATCH

    def resolve(self, contacts: List[DirectoryContact], query: Optional[str] = None) -> 'ContactResolution':
        """Move to the state dictated by the number of directory matches"""
        self.query = query
        self.candidates = list(contacts)
        self.selected = []
        self.reason = None

        if not contacts:
            self.state = ResolutionState.IDLE
            self.reason = NO_MATCH
        elif len(contacts) == 1:
            self.state = ResolutionState.COMPOSING
            self.selected = [contacts[0]]
        else:
            self.state = ResolutionState.SELECTING

        return self

    def select(self, index: int) -> DirectoryContact:
        """
        Pick one candidate while SELECTING

        Raises:
            ValueError: Not selecting, or index out of range
        """
        if self.state is not ResolutionState.SELECTING:
            raise ValueError(f"Cannot select a contact while {self.state.value}")
        if not 0 <= index < len(self.candidates):
            raise ValueError(f"No candidate at index {index}")

        contact = self.candidates[index]
        self.selected = [contact]
        self.state = ResolutionState.COMPOSING
        return contact

    def dismiss(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.state = ResolutionState.IDLE
        self.query = None
        self.candidates = []
        self.selected = []
        self.reason = None
