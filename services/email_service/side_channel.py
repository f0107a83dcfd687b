"""
Email side channel: directory lookup, recipient disambiguation and send.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional

from services.chat_service.models import DirectoryContact
from services.email_service.contact_resolution import ContactResolution, ResolutionState
from services.email_service.credential_provider import CredentialProvider
from services.email_service.directory_client import DirectoryClient
from services.email_service.errors import EmailChannelError
from services.email_service.gmail_sender import GmailSender
from utils.logging_config import get_logger, log_email_event


@dataclass
class SendOutcome:
    """Result of sending to one recipient"""
    contact: DirectoryContact
    ok: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class EmailSideChannel:
    """
    Drives one email request from "send an email to <name>" to delivery.

    Sends are at-most-once: a failed send is reported, never retried.
    """

    def __init__(self, directory_client: DirectoryClient, credentials: CredentialProvider,
                 sender: GmailSender, session_token_getter: Callable[[], Optional[str]] = lambda: None):
        self.logger = get_logger(__name__)
        self.directory_client = directory_client
        self.credentials = credentials
        self.sender = sender
        self.session_token_getter = session_token_getter
        self.resolution = ContactResolution()

    @property
    def state(self) -> ResolutionState:
        return self.resolution.state

    def begin(self, name: str) -> ContactResolution:
        """
        Look up ``name`` in the directory and start disambiguation

        Raises:
            CredentialError: No Google token
            DirectoryAccessError: Caller is not an educational account
            DirectoryLookupError: Lookup failed
        """
        self.resolution.reset()
        access_token = self.credentials.require()
        contacts = self.directory_client.search(name, access_token, self.session_token_getter())
        self.resolution.resolve(contacts, query=name)
        self.logger.info(f"Email request for '{name}' is {self.resolution.state.value}")
        return self.resolution

    def select(self, index: int) -> DirectoryContact:
        return self.resolution.select(index)

    def dismiss(self) -> None:
        self.resolution.dismiss()

    def send(self, subject: str, body: str) -> List[SendOutcome]:
        """
        Send the composed email to every selected contact

        Raises:
            ValueError: Blank subject/body, or no recipient selected
            CredentialError: No Google token
        """
        if not subject or not subject.strip() or not body or not body.strip():
            raise ValueError("Please fill in both subject and message")
        if self.resolution.state is not ResolutionState.COMPOSING or not self.resolution.selected:
            raise ValueError("No recipient selected")

        access_token = self.credentials.require()

        outcomes = []
        for contact in self.resolution.selected:
            try:
                message_id = self.sender.send(access_token, contact.contact_email, subject, body)
                outcomes.append(SendOutcome(contact=contact, ok=True, message_id=message_id))
            except EmailChannelError as e:
                outcomes.append(SendOutcome(contact=contact, ok=False, error=str(e)))

        log_email_event(
            self.logger, "sent",
            recipients=len(outcomes),
            failures=sum(1 for outcome in outcomes if not outcome.ok),
        )
        self.resolution.reset()
        return outcomes
