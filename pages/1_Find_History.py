import hmac

import streamlit as st

from config.app_config import get_config
from services.chat_service.conversation_repository import (
    SQLiteConversationStore,
    SupabaseConversationStore,
    UserNotFoundError,
    history_to_row,
)
from services.chat_service.models import USER_ROLE
from utils.logging_config import initialize_logging, get_logger

error_tracker = initialize_logging()
logger = get_logger(__name__)

config = get_config()

ADMIN_KEY = "admin_authenticated"


def get_history_store():
    if config.storage.backend == "supabase":
        from infrastructure.external.supabase_client import get_supabase_client
        return SupabaseConversationStore(get_supabase_client().get_service_client())
    return SQLiteConversationStore(config.storage.sqlite_path)


def render_password_gate() -> bool:
    if st.session_state.get(ADMIN_KEY):
        return True

    if not config.api.admin_password:
        st.warning("History lookup is disabled: no admin password is configured.")
        return False

    with st.form("admin_login"):
        password = st.text_input("🔒 Admin password", type="password")
        if st.form_submit_button("Unlock"):
            if hmac.compare_digest(password, config.api.admin_password):
                st.session_state[ADMIN_KEY] = True
                st.rerun()
            else:
                logger.warning("Failed admin password attempt")
                st.error("Incorrect password")
    return False


def render_history_lookup():
    email = st.text_input("User email")
    if not st.button("Find history", type="primary") or not email.strip():
        return

    try:
        records = get_history_store().find_histories_by_email(email.strip())
    except UserNotFoundError:
        st.warning("User not found")
        return
    except Exception as e:
        error_tracker.track_error(e, "history_lookup")
        st.error("Could not load chat histories. Please try again.")
        return

    if not records:
        st.info("This user has no saved chats.")
        return

    st.caption(f"{len(records)} chat(s), most recent first")
    for record in records:
        row = history_to_row(record)
        with st.expander(f"{row['title']} · {row['updated']} · {row['messages']} message(s)"):
            for message in record.conversation.messages:
                speaker = "🧑 User" if message.role == USER_ROLE else f"💡 {config.persona.brand_name}"
                st.markdown(f"**{speaker}** ({message.created_at.strftime('%H:%M')})")
                if message.image:
                    st.image(message.image, width=200)
                if message.content:
                    st.markdown(message.content)


st.title("🔎 Find History")

if render_password_gate():
    render_history_lookup()
