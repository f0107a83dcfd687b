import streamlit as st

from config.app_config import get_config
from services.auth_service.auth_manager import GUEST_KEY, get_auth_manager
from services.ui_service.chat_interface import ChatInterface, get_conversation_manager
from utils.logging_config import initialize_logging, get_logger

# Initialize logging and error tracking
error_tracker = initialize_logging()
logger = get_logger(__name__)

# Get configuration
config = get_config()

st.set_page_config(page_title=config.ui.app_title, page_icon="💡")

# Initialize authentication
auth = get_auth_manager()

# Google redirects back into a new session, before any sign-in
if st.query_params.get("code"):
    ChatInterface(None, config).handle_oauth_callback()


def main_app():
    """Main application content (signed-in users and guests)"""
    st.title(f"💡 {config.ui.app_title}")

    identity = auth.get_identity()

    try:
        manager = get_conversation_manager(identity, config)
    except Exception as e:
        error_tracker.track_error(e, "conversation_initialization")
        st.error("Failed to initialize conversations. Please refresh the page.")
        return

    chat = ChatInterface(manager, config)

    chat.render_conversation_sidebar()
    chat.render_google_connect()
    image = chat.render_image_uploader()

    chat.render_chat_messages()
    chat.render_email_panel()
    chat.render_notices()

    chat.handle_input(image)


if config.auth.enabled:
    if auth.get_identity() is not None or st.session_state.get(GUEST_KEY):
        auth.render_user_menu()
    auth.require_authentication(main_app)
else:
    main_app()
