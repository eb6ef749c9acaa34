"""
Streamlit Chat Console for Finbot

A local stand-in for the messaging platform: the same ConversationFlow a
chat bot would drive, with a browser chat window as the transport.

DESIGN PRINCIPLES:
1. Every message goes through exactly the same flow as the bot
2. Confirm/cancel buttons are the only way to write a transaction
3. Replies are shown as they were sent, in Portuguese

Runs on Google Sheets when configured, otherwise on an empty in-memory
store (useful only to try the interface).
"""

import asyncio
from uuid import uuid4

import streamlit as st

from finbot.config import get_settings, validate_all_settings
from finbot.models.finance import InboundEvent
from finbot.orchestrator import create_app_components
from finbot.services.transport import RecordingTransport


# Page configuration
st.set_page_config(
    page_title="Finbot",
    page_icon="💰",
    layout="centered",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components(use_storage=True, transport=RecordingTransport())


def send_event(flow, text: str = "", callback_token: str = None):
    """Feed one inbound event to the flow, like the chat platform would."""
    event = InboundEvent(
        update_id=str(uuid4()),
        chat_id=st.session_state.chat_id,
        user=st.session_state.user,
        text=text,
        callback_token=callback_token,
    )
    run_async(flow.handle_event(event))


def render_sidebar():
    st.sidebar.title("💰 Finbot")
    st.sidebar.text_input("Usuário", key="user")
    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **Exemplos:**
        - gastei 50 no mercado com Nubank
        - comprei tênis 300 em 3x no cartão
        - recebi 1000 de salário
        - transferi 100 de Itaú para Nubank

        Envie **/ajuda** para ver os comandos.
        """
    )

    st.sidebar.markdown("---")
    status = validate_all_settings()
    if status.get("google_sheets"):
        st.sidebar.success("✅ Google Sheets configurado")
    else:
        error = status.get("google_sheets_error", "Não configurado")
        st.sidebar.error(f"❌ Google Sheets - {error}")

    if status.get("app"):
        app_settings = get_settings().app
        st.sidebar.caption(f"Ambiente: {app_settings.app_environment}")
        if app_settings.debug_mode:
            st.sidebar.json(status)


def render_history():
    """Show the conversation; buttons only on the latest message that has them."""
    history = st.session_state.history
    last_with_buttons = max(
        (i for i, (role, item) in enumerate(history) if role == "assistant" and item.buttons),
        default=None,
    )
    for index, (role, item) in enumerate(history):
        with st.chat_message(role):
            if role == "user":
                st.markdown(item)
                continue
            st.text(item.text)
            if index == last_with_buttons:
                columns = st.columns(len(item.buttons))
                for column, button in zip(columns, item.buttons):
                    if column.button(button.label, key=f"{index}-{button.token}"):
                        st.session_state.pending_token = button.token


def main():
    """Main application entry point."""
    flow, transport, _ = get_components()

    st.session_state.setdefault("user", "console")
    st.session_state.setdefault("history", [])
    st.session_state.setdefault("pending_token", None)
    # One chat per browser session: replies and pending confirmations stay apart
    st.session_state.setdefault("chat_id", f"console-{uuid4()}")

    render_sidebar()
    st.title("💬 Finbot")

    prompt = st.chat_input("Escreva um lançamento ou um comando")
    if prompt:
        st.session_state.history.append(("user", prompt))
        send_event(flow, text=prompt)

    token = st.session_state.pending_token
    if token:
        st.session_state.pending_token = None
        send_event(flow, callback_token=token)

    # Collect replies sent since the last run
    for message in transport.drain(st.session_state.chat_id):
        st.session_state.history.append(("assistant", message))

    render_history()

    # A button was pressed during this run: process it on the next one
    if st.session_state.pending_token:
        st.rerun()


if __name__ == "__main__":
    main()
