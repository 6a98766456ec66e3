"""
Streamlit Frontend for Personal Wallet

A small peer-to-peer wallet: sign up, add money, withdraw it,
and send it to other people on the same wallet.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Balance always visible
3. Ledger error messages shown exactly as raised
4. Visual feedback for all operations
5. No hidden actions

All money movement goes through WalletFlow, which enforces
sign-in, limits and auditing. This file only renders.
"""

import asyncio
import threading
from datetime import date, timedelta

import streamlit as st

from wallet.audit import create_correlation_id
from wallet.config import get_settings, validate_all_settings
from wallet.identity import IdentityError
from wallet.ledger import LedgerError
from wallet.models.transaction import HistoryQuery, Transaction, TransactionKind
from wallet.orchestrator import (
    AppComponents,
    AuthFlow,
    WalletFlow,
    create_app_components,
)
from wallet.services.storage import StorageError


# Page configuration
st.set_page_config(
    page_title="Personal Wallet",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


KIND_LABELS = {
    TransactionKind.DEPOSIT: "⬇️ Deposit",
    TransactionKind.WITHDRAWAL: "⬆️ Withdrawal",
    TransactionKind.TRANSFER_IN: "📥 Received",
    TransactionKind.TRANSFER_OUT: "📤 Sent",
}


@st.cache_resource
def get_event_loop() -> asyncio.AbstractEventLoop:
    """One loop for the whole server, so the ledger lock is shared by every session."""
    loop = asyncio.new_event_loop()
    threading.Thread(target=loop.run_forever, daemon=True).start()
    return loop


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    return asyncio.run_coroutine_threadsafe(coro, get_event_loop()).result()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    return run_async(create_app_components())


def get_flows(components: AppComponents) -> tuple[AuthFlow, WalletFlow]:
    """Per-browser-session flows; the signed-in actor lives here."""
    if "flows" not in st.session_state:
        st.session_state.flows = components.new_session()
    return st.session_state.flows


def format_money(amount) -> str:
    symbol = get_settings().app.currency_symbol
    return f"{symbol}{amount:,.2f}"


def describe_entry(entry: Transaction, wallet_flow: WalletFlow) -> str:
    label = KIND_LABELS[entry.kind]
    name = wallet_flow.queries.counterparty_name(entry)
    if entry.kind == TransactionKind.TRANSFER_OUT:
        label += f" to {name or 'unknown'}"
    elif entry.kind == TransactionKind.TRANSFER_IN:
        label += f" from {name or 'unknown'}"
    return label


def render_entries(entries: list[Transaction], wallet_flow: WalletFlow):
    """Render a list of entries as a table."""
    if not entries:
        st.info("No transactions yet.")
        return
    rows = [
        {
            "When": entry.timestamp.strftime("%Y-%m-%d %H:%M"),
            "What": describe_entry(entry, wallet_flow),
            "Amount": ("+" if entry.kind.is_credit else "-") + format_money(entry.amount),
            "Note": entry.note or "",
        }
        for entry in entries
    ]
    st.dataframe(rows, use_container_width=True, hide_index=True)


def main():
    """Main application entry point."""
    components = get_components()
    auth_flow, wallet_flow = get_flows(components)

    st.sidebar.title("💰 Personal Wallet")
    st.sidebar.markdown("---")

    actor = auth_flow.session.current_actor
    if actor is None:
        render_auth_page(auth_flow)
        return

    st.sidebar.markdown(f"Signed in as **{actor.name}**")
    st.sidebar.markdown(f"Balance: **{format_money(wallet_flow.balance())}**")

    page = st.sidebar.radio(
        "Navigate to:",
        ["🏠 Dashboard", "💸 Send Money", "📜 History", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    if st.sidebar.button("Sign out"):
        run_async(auth_flow.sign_out())
        st.rerun()

    # Route to appropriate page
    if page == "🏠 Dashboard":
        render_dashboard_page(wallet_flow)
    elif page == "💸 Send Money":
        render_transfer_page(wallet_flow)
    elif page == "📜 History":
        render_history_page(wallet_flow)
    elif page == "⚙️ Settings":
        render_settings_page(components)


def render_auth_page(auth_flow: AuthFlow):
    """Render sign-in and registration forms."""
    st.title("Welcome")
    sign_in_tab, register_tab = st.tabs(["Sign in", "Create account"])

    with sign_in_tab:
        with st.form("sign_in"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            if st.form_submit_button("Sign in"):
                try:
                    run_async(auth_flow.sign_in(email, password))
                    st.rerun()
                except IdentityError as e:
                    st.error(str(e))

    with register_tab:
        with st.form("register"):
            name = st.text_input("Your name")
            email = st.text_input("Email", key="register_email")
            password = st.text_input("Password", type="password", key="register_password")
            if st.form_submit_button("Create account"):
                try:
                    run_async(auth_flow.register(name, email, password))
                    st.rerun()
                except (IdentityError, ValueError, StorageError) as e:
                    st.error(str(e))


def render_dashboard_page(wallet_flow: WalletFlow):
    """Render balance, deposit/withdraw forms and recent activity."""
    app_settings = get_settings().app
    st.title("🏠 Dashboard")

    summary = wallet_flow.summary(app_settings.recent_activity_count)
    col1, col2, col3 = st.columns(3)
    col1.markdown(
        f'<div class="big-number">{format_money(summary.balance)}</div>',
        unsafe_allow_html=True,
    )
    col2.metric("Money in", format_money(summary.total_in))
    col3.metric("Money out", format_money(summary.total_out))

    st.markdown("---")
    deposit_col, withdraw_col = st.columns(2)

    with deposit_col:
        with st.form("deposit", clear_on_submit=True):
            st.markdown("### Add money")
            amount = st.text_input("Amount", key="deposit_amount")
            note = st.text_input("Note (optional)", max_chars=app_settings.max_note_length, key="deposit_note")
            if st.form_submit_button("Deposit"):
                try:
                    entry = run_async(wallet_flow.deposit(amount, note or None, create_correlation_id()))
                    st.success(f"Deposited {format_money(entry.amount)}")
                except (LedgerError, StorageError) as e:
                    st.error(str(e))

    with withdraw_col:
        with st.form("withdraw", clear_on_submit=True):
            st.markdown("### Withdraw")
            amount = st.text_input("Amount", key="withdraw_amount")
            note = st.text_input("Note (optional)", max_chars=app_settings.max_note_length, key="withdraw_note")
            if st.form_submit_button("Withdraw"):
                try:
                    entry = run_async(wallet_flow.withdraw(amount, note or None, create_correlation_id()))
                    st.success(f"Withdrew {format_money(entry.amount)}")
                except (LedgerError, StorageError) as e:
                    st.error(str(e))

    st.markdown("### Recent activity")
    render_entries(summary.recent, wallet_flow)


def render_transfer_page(wallet_flow: WalletFlow):
    """Render recipient search and the transfer form."""
    app_settings = get_settings().app
    st.title("💸 Send Money")

    search = st.text_input("Find a person by name or email")
    recipients = wallet_flow.search_recipients(search)
    if search and not recipients:
        st.warning("Nobody matches that search.")
        return
    if not recipients:
        return

    choice = st.selectbox(
        "Send to",
        recipients,
        format_func=lambda actor: f"{actor.name} ({actor.email})",
    )

    with st.form("transfer", clear_on_submit=True):
        amount = st.text_input("Amount")
        note = st.text_input("Note (optional)", max_chars=app_settings.max_note_length)
        if st.form_submit_button(f"Send to {choice.name}"):
            try:
                receipt = run_async(wallet_flow.transfer(choice.id, amount, note or None, create_correlation_id()))
                st.success(f"Sent {format_money(receipt.out_entry.amount)} to {choice.name}")
            except (LedgerError, StorageError) as e:
                st.error(str(e))


def render_history_page(wallet_flow: WalletFlow):
    """Render the filtered history list."""
    st.title("📜 History")

    col1, col2, col3 = st.columns(3)
    with col1:
        kinds = st.multiselect(
            "Type",
            list(TransactionKind),
            format_func=lambda kind: KIND_LABELS[kind],
        )
    with col2:
        date_from = st.date_input("From", value=date.today() - timedelta(days=30))
    with col3:
        date_to = st.date_input("To", value=date.today())
    search_term = st.text_input("Search notes and names")

    try:
        query = HistoryQuery(
            kinds=kinds,
            date_from=date_from,
            date_to=date_to,
            search_term=search_term or None,
        )
    except ValueError as e:
        st.error(str(e))
        return

    render_entries(wallet_flow.history(query), wallet_flow)


def render_settings_page(components: AppComponents):
    """Render the settings page."""
    st.title("⚙️ Settings")

    limits = components.ledger.limits
    st.markdown("### Limits")
    st.markdown(
        f"""
        - At most **{limits.max_transactions_per_window}** transactions every **{limits.window_seconds}** seconds
        - At most **{format_money(limits.max_amount_per_transaction)}** per transaction
        - At most **{format_money(limits.max_daily_withdrawal)}** withdrawn per day
        - At most **{format_money(limits.max_daily_transfer)}** sent per day
        - Days start at midnight **{limits.timezone}**
        """
    )

    st.markdown("### Connection Status")
    st.markdown(f"Storage backend in use: **{components.ledger.storage.backend_name}**")

    status = validate_all_settings()
    sections = [
        ("Rate limits", "rate_limits"),
        ("Ledger", "ledger"),
        ("App", "app"),
        ("Google Sheets (Storage)", "google_sheets"),
    ]

    for name, key in sections:
        if key not in status:
            continue
        if status[key]:
            st.success(f"✅ {name} - OK")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    if components.ledger.reconcile():
        st.success("✅ Balances reconcile with the transaction log")
    else:
        st.error("❌ Balances do not match the transaction log")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
