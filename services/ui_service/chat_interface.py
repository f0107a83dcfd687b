"""
Chat interface service - handles chat UI components and interactions.
"""

import streamlit as st
from typing import Optional
import base64

from config.app_config import AppConfig, get_config
from services.auth_service.models import SessionIdentity
from services.chat_service.conversation_manager import ConversationManager, build_conversation_manager
from services.chat_service.local_storage import FileKeyValueStorage, new_device_id
from services.chat_service.models import USER_ROLE
from services.email_service.contact_resolution import ResolutionState
from services.email_service.credential_provider import OAUTH_STATE_NAMESPACE, GoogleOAuthFlow, OAuthStateStore
from services.email_service.errors import EmailChannelError
from utils.logging_config import get_logger, get_error_tracker


MANAGER_KEY = "conversation_manager"
DEVICE_ID_KEY = "device_id"
OAUTH_STATE_KEY = "oauth_state"
UPLOAD_COUNTER_KEY = "upload_counter"

_NOTICE_RENDERERS = {
    "info": "ℹ️",
    "warning": "⚠️",
    "error": "🚨",
}


def image_to_data_uri(data: bytes, mime_type: Optional[str]) -> str:
    """Encode uploaded image bytes as a data URI"""
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type or 'image/jpeg'};base64,{encoded}"


def get_device_id() -> str:
    """Random id for this browser session, created on first use"""
    device_id = st.session_state.get(DEVICE_ID_KEY)
    if device_id is None:
        device_id = new_device_id()
        st.session_state[DEVICE_ID_KEY] = device_id
    return device_id


def get_conversation_manager(identity: Optional[SessionIdentity], config: Optional[AppConfig] = None) -> ConversationManager:
    """Per-session manager, rebuilt and reloaded when the signed-in user changes"""
    config = config or get_config()
    manager = st.session_state.get(MANAGER_KEY)
    owner_id = identity.user_id if identity else None

    if manager is None or manager.owner_id != owner_id:
        manager = build_conversation_manager(config, identity, device_id=get_device_id())
        manager.load()
        st.session_state[MANAGER_KEY] = manager

    return manager


class ChatInterface:
    """
    Service for chat interface components and interactions.
    Handles conversation sidebar, message rendering and the email panel.
    """

    def __init__(self, manager: Optional[ConversationManager], config: Optional[AppConfig] = None):
        self.logger = get_logger(__name__)
        self.config = config or get_config()
        self.manager = manager
        self.oauth_flow = GoogleOAuthFlow(
            self.config.api.google_oauth_client_secrets,
            redirect_uri=self.config.email.oauth_redirect_uri,
        )
        self.oauth_states = OAuthStateStore(
            FileKeyValueStorage(self.config.storage.local_storage_dir, OAUTH_STATE_NAMESPACE)
        )

    def render_conversation_sidebar(self):
        """Render the conversation sidebar"""
        summaries = self.manager.summaries()
        active_id = self.manager.active_conversation_id

        with st.sidebar:
            st.markdown("## 💬 Conversations")

            if st.button("➕ New Chat", use_container_width=True, type="secondary"):
                self.manager.create_conversation()
                st.rerun()

            st.caption(f"📊 {len(summaries)} conversation{'s' if len(summaries) != 1 else ''}")

            for summary in summaries:
                select_col, delete_col = st.columns([5, 1])
                is_active = summary.conversation_id == active_id
                with select_col:
                    if st.button(
                        f"{'✅' if is_active else '💬'} {summary.title}",
                        key=f"select_{summary.conversation_id}",
                        use_container_width=True,
                        type="primary" if is_active else "secondary",
                    ) and not is_active:
                        self.manager.select_conversation(summary.conversation_id)
                        st.rerun()
                with delete_col:
                    if st.button("🗑️", key=f"delete_{summary.conversation_id}", help="Delete chat"):
                        self.manager.delete_conversation(summary.conversation_id)
                        st.rerun()

            st.divider()
            st.caption(
                f"{self.config.persona.brand_name} by "
                f"[{self.config.persona.creator}]({self.config.persona.creator_url})"
            )

    def render_chat_messages(self):
        for message in self.manager.active_messages():
            with st.chat_message("user" if message.role == USER_ROLE else "assistant"):
                if message.image:
                    st.image(message.image, width=240)
                if message.content:
                    st.markdown(message.content)

    def render_notices(self):
        """Surface pending manager notices"""
        for notice in self.manager.drain_notices():
            st.toast(notice.message, icon=_NOTICE_RENDERERS.get(notice.level))

    def render_image_uploader(self) -> Optional[str]:
        counter = st.session_state.get(UPLOAD_COUNTER_KEY, 0)
        with st.sidebar:
            uploaded = st.file_uploader(
                "📎 Attach an image",
                type=self.config.ui.accepted_image_types,
                key=f"image_upload_{counter}",
            )
        if uploaded is None:
            return None
        return image_to_data_uri(uploaded.getvalue(), uploaded.type)

    @property
    def storage_namespace(self) -> Optional[str]:
        if self.manager is None:
            return None
        return getattr(self.manager.local_storage, "namespace", None)

    def handle_oauth_callback(self):
        """
        Store the Google token when returning from the consent page

        The token goes to the namespace that started the flow, which the
        original tab picks up on its next rerun.
        """
        code = st.query_params.get("code")
        if not code:
            return
        try:
            namespace = self.oauth_states.consume(st.query_params.get("state"))
            token = self.oauth_flow.exchange_code(code, self.config.email.oauth_scopes)
            if namespace == self.storage_namespace:
                self.manager.email_channel.credentials.store(token)
                st.toast("Google account connected", icon="✅")
            else:
                storage = FileKeyValueStorage(self.config.storage.local_storage_dir, namespace)
                storage.set(self.config.storage.token_key, token)
                st.success("Google account connected. You can close this tab and return to Helper.")
            self.logger.info("Stored Google token from OAuth callback")
        except EmailChannelError as e:
            st.error(str(e))
        finally:
            st.query_params.clear()

    def _oauth_state(self) -> str:
        """State issued once per session for this session's namespace"""
        issued = st.session_state.get(OAUTH_STATE_KEY)
        if (issued is None or issued[0] != self.storage_namespace
                or not self.oauth_states.is_pending(issued[1])):
            issued = (self.storage_namespace, self.oauth_states.issue(self.storage_namespace))
            st.session_state[OAUTH_STATE_KEY] = issued
        return issued[1]

    def render_google_connect(self):
        channel = self.manager.email_channel
        if channel is None or channel.credentials.get_token() or not self.storage_namespace:
            return
        with st.sidebar:
            try:
                url = self.oauth_flow.authorization_url(self.config.email.oauth_scopes, state=self._oauth_state())
            except EmailChannelError as e:
                self.logger.debug(f"Google connect unavailable: {e}")
                return
            st.link_button("📧 Connect Google for email", url, use_container_width=True)

    def render_email_panel(self):
        """Contact selector and composer for a pending email request"""
        channel = self.manager.email_channel
        if channel is None:
            return
        resolution = channel.resolution

        if resolution.state is ResolutionState.SELECTING:
            with st.container(border=True):
                st.markdown(f"**Several contacts match '{resolution.query}'. Who should receive the email?**")
                for index, contact in enumerate(resolution.candidates):
                    details = " · ".join(part for part in (contact.title, contact.department) if part)
                    label = f"{contact.display}{f' ({details})' if details else ''}"
                    if st.button(label, key=f"pick_{index}", use_container_width=True):
                        channel.select(index)
                        st.rerun()
                if st.button("Cancel", key="cancel_selection"):
                    channel.dismiss()
                    st.rerun()

        elif resolution.state is ResolutionState.COMPOSING:
            self._render_composer()

    def _render_composer(self):
        channel = self.manager.email_channel
        recipients = ", ".join(contact.display for contact in channel.resolution.selected)

        with st.form("email_composer"):
            st.markdown(f"**✉️ New email to {recipients}**")
            subject = st.text_input("Subject")
            body = st.text_area("Message", height=200)
            preview_col, send_col, cancel_col = st.columns(3)
            preview = preview_col.form_submit_button("👁️ Preview")
            send = send_col.form_submit_button("📤 Send", type="primary")
            cancel = cancel_col.form_submit_button("Cancel")

        if cancel:
            channel.dismiss()
            st.rerun()

        if preview:
            with st.container(border=True):
                st.markdown(f"**To:** {recipients}")
                st.markdown(f"**Subject:** {subject}")
                st.text(body)

        if send:
            try:
                outcomes = channel.send(subject, body)
            except (ValueError, EmailChannelError) as e:
                st.error(str(e))
                return
            except Exception as e:
                get_error_tracker().track_error(e, "email_send")
                st.error("Failed to send email. Please try again.")
                return

            for outcome in outcomes:
                if outcome.ok:
                    self.manager.notify("info", f"Email sent to {outcome.contact.contact_name}")
                else:
                    self.manager.notify("error", outcome.error or f"Failed to send to {outcome.contact.contact_name}")
            st.rerun()

    def handle_input(self, image: Optional[str]):
        """Chat input; submission runs the turn to completion and reruns"""
        prompt = st.chat_input(self.config.ui.input_placeholder)
        if prompt is None:
            return

        if not prompt.strip() and not image:
            return

        with st.spinner("Thinking..."):
            result = self.manager.submit(prompt, image)

        if result.kind != "ignored":
            st.session_state[UPLOAD_COUNTER_KEY] = st.session_state.get(UPLOAD_COUNTER_KEY, 0) + 1
        st.rerun()
