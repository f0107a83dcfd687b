"""
Gmail API sender using a delegated user access token.
"""

from email.mime.text import MIMEText
from typing import Callable, Optional
import base64

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from services.email_service.errors import EmailSendError
from utils.logging_config import get_logger


def build_gmail_service(access_token: str):
    """Build an authenticated Gmail API service for one access token"""
    credentials = Credentials(token=access_token)
    return build("gmail", "v1", credentials=credentials, cache_discovery=False)


def encode_message(to: str, subject: str, body: str) -> str:
    """Base64url-encoded RFC 2822 message as expected by ``users.messages.send``"""
    message = MIMEText(body, "plain", "utf-8")
    message["to"] = to
    message["subject"] = subject
    return base64.urlsafe_b64encode(message.as_bytes()).decode()


class GmailSender:
    """Sends plain-text email as the signed-in Google user"""

    def __init__(self, service_factory: Optional[Callable[[str], object]] = None):
        self.logger = get_logger(__name__)
        self.service_factory = service_factory or build_gmail_service

    def send(self, access_token: str, to: str, subject: str, body: str) -> str:
        """
        Send one email

        Args:
            access_token: Delegated Google access token with gmail.send scope
            to: Recipient address
            subject: Subject line
            body: Plain-text body

        Returns:
            Gmail message id

        Raises:
            EmailSendError: Gmail API call failed
        """
        raw_message = encode_message(to, subject, body)

        try:
            service = self.service_factory(access_token)
            sent = (
                service.users()
                .messages()
                .send(userId="me", body={"raw": raw_message})
                .execute()
            )
        except HttpError as e:
            self.logger.error(f"Gmail rejected message to {to}: {e}")
            raise EmailSendError(f"Failed to send email to {to}: {e}") from e

        message_id = sent["id"]
        self.logger.info(f"Sent email to {to} (message_id: {message_id})")
        return message_id
