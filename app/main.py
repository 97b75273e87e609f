"""
Streamlit Frontend for BankFlow

DESIGN PRINCIPLES:
1. The UI renders; the session decides
2. Every rejection is shown with the engine's own message
3. Destructive actions need an explicit confirmation tick

No business rule lives in this file. Everything goes through
BankingSession.
"""

import streamlit as st

from bankflow.audit import configure_logging
from bankflow.config import get_settings, validate_all_settings
from bankflow.models.ledger import Rejection
from bankflow.models.stats import TransactionFilter, TransactionSort
from bankflow.orchestrator import BankingSession, create_app_components
from bankflow.utils.money import format_money


st.set_page_config(
    page_title="BankFlow",
    page_icon="🏦",
    layout="wide",
    initial_sidebar_state="expanded",
)


@st.cache_resource
def get_session() -> BankingSession:
    """Get or create the banking session (cached, shared across reruns)."""
    configure_logging(get_settings().app.log_level)
    session, _ = create_app_components(use_storage=True)
    return session


def show_result(result, success_message: str) -> None:
    if isinstance(result, Rejection):
        st.error(result.message)
    else:
        st.success(success_message)


def main():
    """Main application entry point."""
    session = get_session()

    st.sidebar.title("🏦 BankFlow")
    st.sidebar.markdown("---")
    page = st.sidebar.radio(
        "Navigate to:",
        ["Dashboard", "Deposit", "Withdraw", "Transactions", "Contact", "Data"],
        index=0,
    )

    if page == "Dashboard":
        render_dashboard(session)
    elif page == "Deposit":
        render_deposit(session)
    elif page == "Withdraw":
        render_withdraw(session)
    elif page == "Transactions":
        render_transactions(session)
    elif page == "Contact":
        render_contact(session)
    elif page == "Data":
        render_data(session)


def render_dashboard(session: BankingSession):
    st.title("Dashboard")

    monthly = session.monthly_stats()
    col1, col2, col3 = st.columns(3)
    col1.metric("Balance", format_money(session.get_balance()))
    col2.metric("Income this month", format_money(monthly.total_deposits))
    col3.metric("Expenses this month", format_money(monthly.total_withdrawals))

    col1, col2, col3 = st.columns(3)
    col1.metric("Net this month", format_money(monthly.net))
    col2.metric("Average transaction", format_money(monthly.average_transaction))
    col3.metric("Largest transaction", format_money(monthly.largest_transaction))

    usage = session.limit_usage()
    st.markdown("### Today's limits")
    st.caption(f"Deposits: {format_money(usage.today_deposits)} used")
    st.progress(usage.deposit_percent / 100)
    st.caption(f"Withdrawals: {format_money(usage.today_withdrawals)} used")
    st.progress(usage.withdrawal_percent / 100)

    st.markdown("### Recent activity")
    for transaction in session.get_transactions()[:5]:
        sign = "+" if transaction.type.value == "deposit" else "-"
        st.write(
            f"{transaction.description}: {sign}{format_money(transaction.amount)} "
            f"({transaction.date:%b %d, %Y})"
        )


def render_deposit(session: BankingSession):
    st.title("Deposit")
    policy = session.policy
    st.caption(
        f"Up to {format_money(policy.max_deposit_per_transaction)} per deposit, "
        f"{format_money(policy.daily_deposit_limit)} per day."
    )
    with st.form("deposit-form", clear_on_submit=True):
        amount = st.text_input("Amount")
        description = st.text_input("Description", placeholder="Deposit")
        if st.form_submit_button("Deposit"):
            result = session.deposit(amount, description or None)
            if not isinstance(result, Rejection):
                amount_text = format_money(result.transactions[0].amount)
                show_result(result, f"Successfully deposited {amount_text}")
            else:
                show_result(result, "")


def render_withdraw(session: BankingSession):
    st.title("Withdraw")
    st.caption(f"You can withdraw up to {format_money(session.max_withdrawal())}.")

    quick = st.columns(4)
    for column, preset in zip(quick, (20, 50, 100, 200)):
        if column.button(f"${preset}"):
            result = session.withdraw(preset, "Quick Withdrawal")
            show_result(result, f"Successfully withdrew {format_money(preset)}")

    with st.form("withdraw-form", clear_on_submit=True):
        amount = st.text_input("Amount")
        description = st.text_input("Description", placeholder="Withdrawal")
        if st.form_submit_button("Withdraw"):
            result = session.withdraw(amount, description or None)
            if not isinstance(result, Rejection):
                amount_text = format_money(result.transactions[0].amount)
                show_result(result, f"Successfully withdrew {amount_text}")
            else:
                show_result(result, "")


def render_transactions(session: BankingSession):
    st.title("Transactions")

    col1, col2 = st.columns(2)
    filter_type = col1.selectbox(
        "Show",
        options=list(TransactionFilter),
        format_func=lambda f: f.value.title(),
    )
    sort_by = col2.selectbox(
        "Sort by",
        options=list(TransactionSort),
        format_func=lambda s: s.value.replace("-", " ").title(),
    )

    rows = [
        {
            "Date": f"{t.date:%b %d, %Y %H:%M}",
            "Description": t.description,
            "Type": "Deposit" if t.type.value == "deposit" else "Withdrawal",
            "Amount": f"{'+' if t.type.value == 'deposit' else '-'}{format_money(t.amount)}",
            "Balance": format_money(t.balance_after),
        }
        for t in session.get_transactions(filter_type, sort_by)
    ]
    if rows:
        st.table(rows)
    else:
        st.info("No transactions found.")

    summary = session.transaction_summary()
    col1, col2, col3 = st.columns(3)
    col1.metric("Total deposits", format_money(summary.total_deposits))
    col2.metric("Total withdrawals", format_money(summary.total_withdrawals))
    col3.metric("Net change", format_money(summary.net_change))

    if st.button("Prepare CSV export"):
        filename, text = session.export_csv()
        st.download_button("Download CSV", text, file_name=filename, mime="text/csv")


def render_contact(session: BankingSession):
    st.title("Contact")
    with st.form("contact-form", clear_on_submit=True):
        name = st.text_input("Name")
        email = st.text_input("Email")
        subject = st.selectbox(
            "Subject",
            ["General Inquiry", "Account Question", "Technical Support", "Feedback"],
        )
        message = st.text_area("Message")
        if st.form_submit_button("Send"):
            result = session.submit_message(name, email, subject, message)
            show_result(result, "Your message has been received.")

    st.markdown("### Messages")
    for record in session.get_messages():
        st.write(f"**{record.subject}** from {record.name} <{record.email}>")
        st.caption(record.message)
    if st.button("Clear messages"):
        session.clear_messages()
        st.success("Contact messages cleared")


def render_data(session: BankingSession):
    st.title("Data")

    last_backup = session.ledger.last_backup
    st.caption(f"Last backup: {last_backup:%Y-%m-%d %H:%M} UTC" if last_backup else "Last backup: Never")

    if st.button("Prepare backup"):
        filename, text = session.export_backup()
        st.download_button("Download backup", text, file_name=filename, mime="application/json")

    uploaded = st.file_uploader("Import data", type=["json"])
    confirm_import = st.checkbox("Replace all current data with the imported file")
    if uploaded is not None and confirm_import and st.button("Import"):
        result = session.import_data(uploaded.getvalue())
        show_result(result, "Data imported successfully")

    st.markdown("---")
    confirm = st.checkbox("I understand this cannot be undone")
    col1, col2 = st.columns(2)
    if col1.button("Clear transaction history", disabled=not confirm):
        session.clear_history()
        st.success("Transaction history cleared (demo data kept)")
    if col2.button("Reset all data", disabled=not confirm):
        session.reset_to_demo()
        st.success("All data has been reset to defaults")

    st.markdown("### Audit log")
    events = session.recent_activity(limit=10)
    if events:
        st.table([
            {
                "Time": f"{event.timestamp:%Y-%m-%d %H:%M:%S}",
                "Event": event.event_type.value,
                "Description": event.description,
            }
            for event in events
        ])
    else:
        st.info("No audit events recorded.")

    st.markdown("### Configuration")
    status = validate_all_settings()
    for name in ("app", "storage", "policy"):
        if status.get(name, False):
            st.success(f"✅ {name} settings")
        else:
            st.error(f"❌ {name} settings - {status.get(f'{name}_error', 'invalid')}")


if __name__ == "__main__":
    main()
