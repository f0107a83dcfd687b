"""
Errors raised by the directory/email side channel.

The string form of each error is shown to the user as-is.
"""


class EmailChannelError(Exception):
    """Base class for side-channel failures that abort the current operation"""


class CredentialError(EmailChannelError):
    """No delegated Google access token is available"""


class DirectoryAccessError(EmailChannelError):
    """Caller is not allowed to search the directory"""


class DirectoryLookupError(EmailChannelError):
    """Directory search failed for any other reason"""


class EmailSendError(EmailChannelError):
    """Gmail rejected or failed to deliver one message"""
