"""
Email service - directory lookup and Gmail side channel
"""

from .contact_resolution import ContactResolution, ResolutionState
from .credential_provider import CredentialProvider, GoogleOAuthFlow
from .directory_client import DirectoryClient
from .errors import (
    CredentialError,
    DirectoryAccessError,
    DirectoryLookupError,
    EmailChannelError,
    EmailSendError,
)
from .gmail_sender import GmailSender
from .side_channel import EmailSideChannel, SendOutcome

__all__ = [
    'ContactResolution',
    'ResolutionState',
    'CredentialProvider',
    'GoogleOAuthFlow',
    'DirectoryClient',
    'CredentialError',
    'DirectoryAccessError',
    'DirectoryLookupError',
    'EmailChannelError',
    'EmailSendError',
    'GmailSender',
    'EmailSideChannel',
    'SendOutcome',
]
