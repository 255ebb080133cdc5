"""
Back-office: bancos, cartera, mesas e integraciones.

Ejecutar:
    streamlit run backoffice/app.py
"""

import sys
from pathlib import Path

# Garantiza que la raíz del proyecto esté en el sys.path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import logging
from dataclasses import replace
from datetime import date, timedelta

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from backoffice.api.banks import BanksAPI
from backoffice.api.context import TenantContext
from backoffice.api.integrations import IntegrationsAPI
from backoffice.api.orders import OrdersAPI
from backoffice.api.receivables import ReceivablesAPI
from backoffice.api.supabase_client import SupabaseClient
from backoffice.api.tables import TablesAPI
from backoffice.components import (
    page_header,
    section_header,
    status_badge,
    table_card,
    unpaid_splits_banner,
    warning_banner,
)
from backoffice.config import LOG_LEVEL
from backoffice.models.pos_models import ProductToAdd, TableForm
from backoffice.models.receivable_models import PaymentInput, ReceivableFilters
from backoffice.services.aging_service import (
    BUCKET_LABELS,
    BUCKET_ORDER,
    aging_frame,
    aging_totals,
    count_aging_groups,
)
from backoffice.services.bill_split_service import (
    BillSplitSession,
    SplitNotConfirmableError,
    SplitPaymentTracker,
    split_to_cart_lines,
    unassigned_items,
)
from backoffice.services.export_service import export_filename
from backoffice.services.integration_service import (
    CONNECTION_STATUSES,
    ENVIRONMENTS,
    allowed_actions,
    connection_stats,
    filter_connections,
)
from backoffice.services.reconciliation_service import summarize_reconciliation
from backoffice.services.table_service import (
    TABLE_STATES,
    apply_optimistic_state,
    filter_tables,
    rollback,
)
from backoffice.styles import (
    AGING_COLORS,
    CONNECTION_STATUS_VARIANTS,
    CUSTOM_CSS,
    PLOTLY_TEMPLATE,
    RECONCILIATION_STATUS_LABELS,
    RISK_VARIANTS,
    TABLE_STATE_LABELS,
)
from backoffice.utils.actions import run_action, run_command
from backoffice.utils.caching import cached, clear_all_caches
from backoffice.utils.formatting import format_cop, format_days, format_percent

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


# ═══════════════════════════════════════════════════════
# PAGE CONFIG
# ═══════════════════════════════════════════════════════

st.set_page_config(page_title="Back-office", layout="wide", initial_sidebar_state="expanded")
st.markdown(CUSTOM_CSS, unsafe_allow_html=True)


# ═══════════════════════════════════════════════════════
# CLIENTES
# ═══════════════════════════════════════════════════════

@st.cache_resource
def get_client() -> SupabaseClient:
    return SupabaseClient()


@st.cache_resource
def current_user_id() -> str | None:
    auth = get_client().auth
    if not auth.has_session():
        return None
    return auth.get_user().get("id")


ctx = TenantContext.from_config()
if not ctx.organization_id:
    st.error("Falta BACKOFFICE_ORGANIZATION_ID en la configuración")
    st.stop()

client = get_client()
if not ctx.user_id:
    user_id = run_action(current_user_id, failure="No se pudo obtener el usuario actual")
    if user_id:
        ctx = ctx.with_user(user_id)

banks = BanksAPI(client, ctx)
receivables = ReceivablesAPI(client, ctx)
tables = TablesAPI(client, ctx)
orders = OrdersAPI(client, ctx)
integrations = IntegrationsAPI(client, ctx)


# ═══════════════════════════════════════════════════════
# DATA LOADING (cached)
# ═══════════════════════════════════════════════════════

@cached()
def load_bank_overview():
    return banks.list_accounts(), banks.get_stats()


@cached()
def load_transactions(account_id: int, start: str, end: str):
    return banks.list_transactions(account_id, start_date=start, end_date=end)


@cached()
def load_reconciliations():
    return banks.list_reconciliations()


@cached()
def load_receivables(search: str, status: str, aging: str):
    filters = ReceivableFilters(search=search or None, status=status, aging=aging)
    return receivables.list_receivables(filters), receivables.get_stats_optimized()


@cached()
def load_aging(ref_date: date):
    return receivables.aging_report(ref_date)


@cached()
def load_tables():
    return tables.list_tables_with_sessions(), tables.list_zones()


@cached()
def load_connections():
    return integrations.list_connections()


def refresh():
    clear_all_caches()
    st.session_state.pop("table_view", None)
    st.rerun()


# ═══════════════════════════════════════════════════════
# SIDEBAR
# ═══════════════════════════════════════════════════════

with st.sidebar:
    st.title("Back-office")
    if st.button("Actualizar datos", use_container_width=True):
        refresh()
    st.caption(f"Organización {ctx.organization_id}")
    if ctx.branch_id:
        st.caption(f"Sucursal {ctx.branch_id}")
    else:
        st.warning("Sin sucursal: la vista de mesas no está disponible")

st.markdown(page_header("Back-office", "Bancos · Cartera · Mesas · Integraciones"), unsafe_allow_html=True)

tab_banks, tab_recon, tab_cartera, tab_mesas, tab_integ = st.tabs(
    ["Bancos", "Conciliación", "Cartera", "Mesas", "Integraciones"]
)


# ═══════════════════════════════════════════════════════
# BANCOS
# ═══════════════════════════════════════════════════════

with tab_banks:
    try:
        accounts, bank_stats = load_bank_overview()
    except Exception as e:
        st.error(f"Error cargando cuentas bancarias: {e}")
        accounts, bank_stats = [], None

    if bank_stats is not None:
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Cuentas", bank_stats.total_accounts)
        c2.metric("Activas", bank_stats.active_accounts)
        c3.metric("Saldo total", format_cop(bank_stats.total_balance))
        c4.metric("Conciliaciones pendientes", bank_stats.pending_reconciliations)

    st.markdown(section_header("Cuentas bancarias"), unsafe_allow_html=True)
    if accounts:
        st.dataframe(
            pd.DataFrame([
                {
                    "Nombre": a.name,
                    "Banco": a.bank_name,
                    "Número": a.account_number,
                    "Tipo": a.account_type,
                    "Saldo": format_cop(a.balance),
                    "Activa": a.is_active,
                }
                for a in accounts
            ]),
            use_container_width=True,
            hide_index=True,
        )

    with st.expander("Nueva cuenta"):
        with st.form("new_account"):
            name = st.text_input("Nombre")
            bank_name = st.text_input("Banco")
            number = st.text_input("Número de cuenta")
            account_type = st.selectbox("Tipo", ["checking", "savings"])
            currencies = run_action(banks.list_currencies, failure="Error cargando monedas") or []
            currency = st.selectbox("Moneda", [c.code for c in currencies] or ["COP"])
            initial = st.number_input("Saldo inicial", min_value=0.0, step=1000.0)
            if st.form_submit_button("Crear"):
                created = run_action(
                    lambda: banks.create_account({
                        "name": name,
                        "bank_name": bank_name,
                        "account_number": number,
                        "account_type": account_type,
                        "currency": currency,
                        "initial_balance": initial,
                    }),
                    success="Cuenta creada",
                    failure="Error creando cuenta",
                )
                if created:
                    refresh()

    if accounts:
        st.markdown(section_header("Transacciones"), unsafe_allow_html=True)
        by_name = {f"{a.name} · {a.bank_name}": a for a in accounts}
        selected = by_name[st.selectbox("Cuenta", list(by_name))]
        d1, d2 = st.columns(2)
        start = d1.date_input("Desde", date.today() - timedelta(days=30))
        end = d2.date_input("Hasta", date.today())

        try:
            txs = load_transactions(selected.id, start.isoformat(), end.isoformat())
        except Exception as e:
            st.error(f"Error cargando transacciones: {e}")
            txs = []
        if txs:
            st.dataframe(
                pd.DataFrame([
                    {
                        "Fecha": t.trans_date[:10] if t.trans_date else "",
                        "Descripción": t.description,
                        "Referencia": t.reference,
                        "Monto": format_cop(t.signed_amount),
                        "Estado": t.status,
                    }
                    for t in txs
                ]),
                use_container_width=True,
                hide_index=True,
            )
        else:
            st.info("Sin transacciones en el período")

        with st.form("new_tx"):
            st.caption("Registrar transacción")
            description = st.text_input("Descripción")
            amount = st.number_input("Monto", min_value=0.0, step=1000.0)
            tx_type = st.radio("Tipo", ["credit", "debit"], horizontal=True,
                               format_func=lambda t: "Crédito" if t == "credit" else "Débito")
            reference = st.text_input("Referencia")
            if st.form_submit_button("Registrar") and amount > 0:
                done = run_action(
                    lambda: banks.create_transaction({
                        "bank_account_id": selected.id,
                        "description": description,
                        "amount": amount,
                        "transaction_type": tx_type,
                        "reference": reference or None,
                    }),
                    success="Transacción registrada",
                    failure="Error creando transacción",
                )
                if done:
                    refresh()


# ═══════════════════════════════════════════════════════
# CONCILIACIÓN
# ═══════════════════════════════════════════════════════

with tab_recon:
    try:
        recs = load_reconciliations()
    except Exception as e:
        st.error(f"Error cargando conciliaciones: {e}")
        recs = []

    if recs:
        labels = {
            f"{(r.bank_account or {}).get('name', r.bank_account_id)} · {r.period_start} → {r.period_end}": r
            for r in recs
        }
        rec = labels[st.selectbox("Conciliación", list(labels))]
        items = run_action(
            lambda: banks.list_reconciliation_items(rec.id),
            failure="Error cargando items",
        ) or []
        summary = summarize_reconciliation(rec, items)

        st.markdown(
            status_badge(RECONCILIATION_STATUS_LABELS.get(rec.status, rec.status),
                         "success" if rec.is_closed else "info"),
            unsafe_allow_html=True,
        )
        r1, r2, r3, r4 = st.columns(4)
        r1.metric("Saldo inicial", format_cop(summary.opening_balance))
        r2.metric("Saldo extracto", format_cop(summary.statement_balance))
        r3.metric("Conciliado", format_cop(summary.matched_amount), f"{summary.matched_count} items")
        r4.metric("Diferencia", format_cop(summary.difference))
        if not summary.is_balanced:
            st.markdown(warning_banner(
                f"La conciliación no cuadra: diferencia de <strong>{format_cop(summary.difference)}</strong>"
            ), unsafe_allow_html=True)

        for item in items:
            tx = item.bank_transaction or {}
            col_a, col_b = st.columns([5, 1])
            col_a.write(f"{tx.get('description') or 'Transacción'} · {format_cop(item.amount)} · {item.match_type}")
            if not rec.is_closed and col_b.button("Deshacer", key=f"unmatch-{item.id}"):
                if run_command(lambda: banks.unmatch_transaction(item.id, item.bank_transaction_id),
                              success="Match deshecho", failure="Error deshaciendo match"):
                    refresh()

        if not rec.is_closed:
            pending = run_action(
                lambda: banks.list_transactions(rec.bank_account_id, status="pending",
                                                start_date=rec.period_start, end_date=rec.period_end),
                failure="Error cargando transacciones pendientes",
            ) or []
            if pending:
                tx_labels = {f"{t.description} · {format_cop(t.signed_amount)}": t for t in pending}
                tx = tx_labels[st.selectbox("Transacción pendiente", list(tx_labels))]
                match_type = st.selectbox("Tipo de match", ["manual", "payment", "journal"])
                matched_id = st.text_input("ID vinculado (pago o asiento)")
                if st.button("Conciliar transacción"):
                    if run_action(
                        lambda: banks.match_transaction(rec.id, tx.id, match_type, matched_id or None),
                        success="Transacción conciliada",
                        failure="Error haciendo match",
                    ):
                        refresh()
            if st.button("Cerrar conciliación", type="primary"):
                if run_action(lambda: banks.close_reconciliation(rec.id),
                              success="Conciliación cerrada", failure="Error cerrando conciliación"):
                    refresh()
    else:
        st.info("No hay conciliaciones")

    with st.expander("Nueva conciliación"):
        if accounts:
            with st.form("new_rec"):
                acc_map = {a.name: a for a in accounts}
                acc = acc_map[st.selectbox("Cuenta", list(acc_map))]
                p1, p2 = st.columns(2)
                period_start = p1.date_input("Inicio", date.today().replace(day=1))
                period_end = p2.date_input("Fin", date.today())
                opening = st.number_input("Saldo inicial", value=float(acc.balance), step=1000.0)
                statement = st.number_input("Saldo extracto", value=0.0, step=1000.0)
                if st.form_submit_button("Crear"):
                    if run_action(
                        lambda: banks.create_reconciliation(
                            acc.id, period_start.isoformat(), period_end.isoformat(), opening, statement
                        ),
                        success="Conciliación creada",
                        failure="Error creando conciliación",
                    ):
                        refresh()


# ═══════════════════════════════════════════════════════
# CARTERA
# ═══════════════════════════════════════════════════════

with tab_cartera:
    f1, f2, f3 = st.columns(3)
    search = f1.text_input("Buscar cliente")
    status = f2.selectbox("Estado", ["todos", "current", "overdue", "partial", "paid"])
    aging = f3.selectbox("Antigüedad", ["todos", "0-30", "31-60", "61-90", "90+"])

    try:
        rows, stats = load_receivables(search, status, aging)
    except Exception as e:
        st.error(f"Error cargando cartera: {e}")
        rows, stats = [], None

    if stats is not None:
        k1, k2, k3, k4 = st.columns(4)
        k1.metric("Cuentas", stats.total_cuentas)
        k2.metric("Saldo pendiente", format_cop(stats.total_balance))
        k3.metric("Vencido", format_cop(stats.overdue_amount))
        overdue_rate = stats.overdue_amount / stats.total_balance * 100 if stats.total_balance else 0
        k4.metric("% vencido", format_percent(overdue_rate))

    groups = count_aging_groups(rows)
    g = st.columns(5)
    g[0].metric("Corrientes", groups.current)
    g[1].metric("Vencidas ≤30", groups.overdue_30)
    g[2].metric("31-60", groups.overdue_60)
    g[3].metric("61-90", groups.overdue_90)
    g[4].metric("90+", groups.overdue_90_plus)

    if rows:
        st.dataframe(
            pd.DataFrame([
                {
                    "Cliente": r.customer_name,
                    "Email": r.customer_email,
                    "Monto": format_cop(r.amount),
                    "Saldo": format_cop(r.balance),
                    "Vence": r.due_date,
                    "Estado": r.status,
                    "Vencimiento": format_days(r.days_overdue),
                }
                for r in rows
            ]),
            use_container_width=True,
            hide_index=True,
        )
        csv_data = run_action(
            lambda: receivables.export_csv(ReceivableFilters(search=search or None, status=status, aging=aging)),
            failure="Error exportando CSV",
        )
        if csv_data is not None:
            st.download_button("Exportar CSV", csv_data, file_name=export_filename(), mime="text/csv")

        with st.expander("Registrar abono"):
            with st.form("payment"):
                acc_labels = {f"{r.customer_name} · {format_cop(r.balance)}": r for r in rows if r.balance > 0}
                if acc_labels:
                    target = acc_labels[st.selectbox("Cuenta", list(acc_labels))]
                    balances = run_action(lambda: receivables.customer_balances([target.customer_id]),
                                          failure="Error al obtener balances de clientes") or []
                    if len(balances) > 1:
                        st.caption(
                            f"El cliente tiene {len(balances)} cuentas abiertas por "
                            f"{format_cop(sum(b.balance for b in balances))}"
                        )
                    pay_amount = st.number_input("Monto", min_value=0.0, max_value=float(target.balance), step=1000.0)
                    method = st.selectbox("Método", ["cash", "transfer", "card"])
                    pay_ref = st.text_input("Referencia")
                    pay_date = st.date_input("Fecha", date.today())
                    if st.form_submit_button("Aplicar abono") and pay_amount > 0:
                        done = run_command(
                            lambda: receivables.apply_payment(
                                target.id,
                                PaymentInput(pay_amount, method, pay_date.isoformat(), pay_ref or None),
                            ),
                            success="Abono registrado",
                            failure="Error al aplicar abono",
                        )
                        if done:
                            refresh()
                else:
                    st.caption("No hay cuentas con saldo")
                    st.form_submit_button("Aplicar abono", disabled=True)

    # ─── Aging ───

    st.markdown(section_header("Aging por cliente", f"Corte {date.today().isoformat()}"), unsafe_allow_html=True)
    try:
        buckets = load_aging(date.today())
    except Exception as e:
        st.error(f"Error cargando aging: {e}")
        buckets = []

    if buckets:
        totals = aging_totals(buckets)
        fig = go.Figure(go.Bar(
            x=[BUCKET_LABELS[k] for k in BUCKET_ORDER],
            y=[totals[k] for k in BUCKET_ORDER],
            marker_color=[AGING_COLORS[BUCKET_LABELS[k]] for k in BUCKET_ORDER],
            hovertemplate="<b>%{x}</b><br>$ %{y:,.0f}<extra></extra>",
        ))
        fig.update_layout(template=PLOTLY_TEMPLATE, height=300, yaxis=dict(tickformat=",.0f"))
        st.plotly_chart(fig, use_container_width=True)

        df_aging = aging_frame(buckets)
        st.dataframe(df_aging, use_container_width=True, hide_index=True)
        high_risk = df_aging[df_aging["riesgo"] == "Alto Riesgo"]
        if not high_risk.empty:
            st.markdown(
                status_badge(f"{len(high_risk)} clientes en alto riesgo", RISK_VARIANTS["Alto Riesgo"]),
                unsafe_allow_html=True,
            )
    else:
        st.info("Sin saldos pendientes")

    # ─── Recordatorios ───

    due = run_action(receivables.reminders_due, failure="Error obteniendo recordatorios") or []
    if due:
        st.markdown(section_header("Recordatorios pendientes"), unsafe_allow_html=True)
        for reminder in due:
            col_r, col_btn = st.columns([5, 1])
            col_r.write(f"{reminder.customer_name} · {format_cop(reminder.amount)} · {format_days(reminder.days_overdue)}")
            if col_btn.button("Enviado", key=f"rem-{reminder.id}"):
                if run_command(lambda: receivables.touch_reminder(reminder.id),
                              success="Recordatorio registrado",
                              failure="Error al actualizar fecha de recordatorio"):
                    refresh()


# ═══════════════════════════════════════════════════════
# MESAS
# ═══════════════════════════════════════════════════════

def render_split(detail):
    """Diálogo de división de cuenta; el estado vive en st.session_state."""
    key = f"split-{detail.session.id}"
    state = st.session_state.get(key)
    total = sum(i.total for i in detail.items)

    if state is None:
        n = st.number_input("Comensales", min_value=1, value=max(detail.session.customers, 1), key=f"{key}-n")
        if st.button("Dividir cuenta", key=f"{key}-start"):
            st.session_state[key] = {
                "session": BillSplitSession(detail.items, total, int(n)),
                "tracker": None,
                "item_ids": [i.id for i in detail.items],
            }
            st.rerun()
        return

    split: BillSplitSession = state["session"]
    tracker: SplitPaymentTracker = state["tracker"]

    if tracker is None:
        mode = st.radio("Modo", ["items", "equal", "custom"], horizontal=True,
                        index=["items", "equal", "custom"].index(split.mode.kind), key=f"{key}-mode")
        if mode != split.mode.kind:
            split.set_mode(mode)

        if mode == "items":
            current = st.selectbox("Comensal", range(split.comensales),
                                   format_func=lambda i: split.names[split.split_ids[i]], key=f"{key}-cur")
            split.select_split(current)
            for item in split.items:
                qty = st.number_input(
                    f"{item.product_name} (quedan {split.item_remaining(item.id):g})",
                    min_value=0.0, max_value=float(item.quantity), step=1.0,
                    key=f"{key}-{split.split_ids[current]}-{item.id}",
                )
                split.assign_item(item.id, qty)
        elif mode == "custom":
            if st.button("Usar división equitativa como base", key=f"{key}-base"):
                split.distribute_as_base()
            for sid in split.split_ids:
                amount = st.number_input(split.names[sid], min_value=0.0, step=1000.0,
                                         value=float(split.mode.amounts.get(sid, 0.0)), key=f"{key}-{sid}-amt")
                split.set_custom_amount(sid, amount)

        st.caption(f"Asignado {format_cop(split.total_assigned())} de {format_cop(split.total)}")
        for s in split.splits:
            st.write(f"{s.name}: {format_cop(s.total)}")

        if st.button("Confirmar división", disabled=not split.can_confirm(), key=f"{key}-confirm"):
            try:
                state["tracker"] = SplitPaymentTracker(split.confirm())
            except SplitNotConfirmableError as e:
                st.toast(str(e))
            st.rerun()
        if st.button("Cancelar", key=f"{key}-cancel"):
            del st.session_state[key]
            st.rerun()
        return

    missing = unassigned_items(tracker.splits, detail.items, state["item_ids"])
    if missing:
        st.markdown(warning_banner(
            f"Hay <strong>{len(missing)} items</strong> agregados después de dividir la cuenta"
        ), unsafe_allow_html=True)

    for s in tracker.splits:
        col_s, col_p = st.columns([4, 1])
        lines = split_to_cart_lines(s)
        col_s.write(f"{s.name}: {format_cop(s.total)} · {len(lines)} líneas")
        if tracker.is_paid(s.id):
            col_p.markdown(status_badge("Pagado", "success"), unsafe_allow_html=True)
        elif col_p.button("Cobrar", key=f"{key}-pay-{s.id}"):
            tracker.mark_paid(s.id)
            st.rerun()

    if st.button("Finalizar y cerrar mesa", disabled=not tracker.can_finish, key=f"{key}-finish"):
        outstanding, pending = tracker.outstanding_amount, len(tracker.pending_splits)
        if run_command(lambda: tables.release_table(detail.session.restaurant_table_id),
                      success="Mesa liberada", failure="Error liberando mesa"):
            del st.session_state[key]
            if pending:
                st.session_state["unpaid_banner"] = (outstanding, pending)
            refresh()


with tab_mesas:
    if "unpaid_banner" in st.session_state:
        outstanding, pending = st.session_state.pop("unpaid_banner")
        st.markdown(unpaid_splits_banner(outstanding, pending), unsafe_allow_html=True)

    if not ctx.branch_id:
        st.info("Configure BACKOFFICE_BRANCH_ID para ver las mesas")
    else:
        try:
            all_tables, zones = load_tables()
        except Exception as e:
            st.error(f"Error obteniendo mesas: {e}")
            all_tables, zones = [], []

        # Estado optimista: los cambios confirmados se ven sin recargar las mesas
        view = st.session_state.get("table_view")
        if view:
            view_by_id = {t.id: t for t in view}
            all_tables = [replace(t, table=view_by_id.get(t.table.id, t.table)) for t in all_tables]

        z1, z2 = st.columns([3, 1])
        zone = z1.selectbox("Zona", ["all", *zones], format_func=lambda z: "Todas" if z == "all" else z)
        occupied_only = z2.checkbox("Solo ocupadas")
        visible = filter_tables(all_tables, zone=zone, occupied_only=occupied_only)

        cols = st.columns(4)
        for i, t in enumerate(visible):
            with cols[i % 4]:
                st.markdown(table_card(t), unsafe_allow_html=True)

        with st.expander("Nueva mesa"):
            with st.form("new_table"):
                t_name = st.text_input("Nombre")
                t_capacity = st.number_input("Capacidad", min_value=1, value=4)
                t_zone = st.text_input("Zona")
                if st.form_submit_button("Crear"):
                    if run_action(lambda: tables.create_table(TableForm(t_name, int(t_capacity), t_zone or None)),
                                  success="Mesa creada", failure="Error creando mesa"):
                        refresh()

        if zones:
            with st.expander("Renombrar zona"):
                with st.form("rename_zone"):
                    old_zone = st.selectbox("Zona", zones, key="rename-zone-old")
                    new_zone = st.text_input("Nuevo nombre")
                    if st.form_submit_button("Renombrar") and new_zone.strip():
                        if run_command(lambda: tables.rename_zone(old_zone, new_zone.strip()),
                                      success="Zona renombrada", failure="Error renombrando zona"):
                            refresh()

        if all_tables:
            st.markdown(section_header("Detalle de mesa"), unsafe_allow_html=True)
            by_label = {t.table.name: t for t in all_tables}
            current = by_label[st.selectbox("Mesa", list(by_label))]

            s1, s2 = st.columns([3, 1])
            new_state = s1.selectbox(
                "Estado",
                TABLE_STATES,
                index=TABLE_STATES.index(current.table.state) if current.table.state in TABLE_STATES else 0,
                format_func=lambda s: TABLE_STATE_LABELS.get(s, s),
                key=f"state-{current.table.id}",
            )
            if s2.button("Cambiar estado") and new_state != current.table.state:
                table_view, previous = apply_optimistic_state(
                    [t.table for t in all_tables], current.table.id, new_state
                )
                st.session_state["table_view"] = table_view
                if not run_command(lambda: tables.set_table_state(current.table.id, new_state),
                                   success="Estado actualizado", failure="Error cambiando estado de mesa"):
                    st.session_state["table_view"] = rollback(table_view, previous)
                st.rerun()

            if current.session is None:
                customers = st.number_input("Comensales", min_value=1, value=2, key="open-customers")
                if st.button("Abrir mesa"):
                    if run_action(lambda: orders.start_session(current.table.id, customers=int(customers)),
                                  success="Mesa abierta", failure="Error iniciando sesión de mesa"):
                        refresh()
            else:
                detail = run_action(lambda: orders.get_table_detail(current.table.id),
                                    failure="Error obteniendo sesión de mesa")
                if detail is not None:
                    st.write(f"Sesión {detail.session.status} · {detail.session.customers} comensales")
                    if detail.items:
                        st.dataframe(
                            pd.DataFrame([
                                {
                                    "Producto": i.product_name,
                                    "Cantidad": i.quantity,
                                    "Precio": format_cop(i.unit_price),
                                    "Total": format_cop(i.total),
                                }
                                for i in detail.items
                            ]),
                            use_container_width=True,
                            hide_index=True,
                        )
                        pre = None
                        if st.button("Pre-cuenta"):
                            pre = run_action(lambda: orders.pre_cuenta(current.table.id),
                                             failure="Error generando pre-cuenta")
                        if pre is not None:
                            st.success(f"Subtotal {format_cop(pre.subtotal)} · Total {format_cop(pre.total)}")

                        destinations = {
                            t.table.name: t.table.id
                            for t in all_tables
                            if t.session is not None and t.table.id != current.table.id
                        }
                        if destinations:
                            with st.expander("Transferir item"):
                                with st.form("transfer_item"):
                                    items_by_label = {f"{i.product_name} × {i.quantity:g} ({i.id})": i for i in detail.items}
                                    moving = items_by_label[st.selectbox("Item", list(items_by_label))]
                                    dest_name = st.selectbox("Mesa destino", list(destinations))
                                    min_qty = min(1.0, float(moving.quantity))
                                    move_qty = st.number_input("Cantidad", min_value=min_qty,
                                                               max_value=float(moving.quantity), value=min_qty, step=1.0,
                                                               key="transfer-qty")
                                    if st.form_submit_button("Transferir"):
                                        if run_command(
                                            lambda: orders.transfer_item(moving.id, destinations[dest_name], move_qty),
                                            success="Item transferido",
                                            failure="Error transfiriendo item",
                                        ):
                                            refresh()

                    with st.form("add_product"):
                        st.caption("Agregar producto")
                        p_id = st.number_input("ID producto", min_value=1, step=1)
                        p_name = st.text_input("Nombre")
                        p_qty = st.number_input("Cantidad", min_value=1.0, value=1.0, step=1.0)
                        p_price = st.number_input("Precio unitario", min_value=0.0, step=500.0)
                        p_notes = st.text_input("Notas")
                        if st.form_submit_button("Agregar"):
                            if run_action(
                                lambda: orders.add_products(detail.session.id, [
                                    ProductToAdd(int(p_id), p_name, p_qty, p_price, notes=p_notes or None)
                                ]),
                                success="Producto agregado",
                                failure="Error agregando productos",
                            ):
                                refresh()

                    b1, b2, b3 = st.columns(3)
                    if b1.button("Enviar a cocina"):
                        run_command(lambda: orders.send_to_kitchen(detail.session.id),
                                   success="Comanda enviada", failure="Error enviando a cocina")
                    if b2.button("Pedir cuenta"):
                        if run_command(lambda: orders.request_bill(detail.session.id),
                                      success="Cuenta solicitada", failure="Error solicitando cuenta"):
                            refresh()
                    if b3.button("Liberar mesa"):
                        if run_command(lambda: tables.release_table(current.table.id),
                                      success="Mesa liberada", failure="Error liberando mesa"):
                            refresh()

                    if detail.items:
                        st.markdown(section_header("Dividir cuenta"), unsafe_allow_html=True)
                        render_split(detail)


# ═══════════════════════════════════════════════════════
# INTEGRACIONES
# ═══════════════════════════════════════════════════════

with tab_integ:
    try:
        connections = load_connections()
    except Exception as e:
        st.error(f"Error obteniendo conexiones: {e}")
        connections = []

    cstats = connection_stats(connections)
    i1, i2, i3 = st.columns(3)
    i1.metric("Conexiones", cstats.total)
    i2.metric("Activas", cstats.active)
    i3.metric("Errores 24h", cstats.errors_24h)

    n1, n2, n3 = st.columns(3)
    conn_status = n1.selectbox("Estado", ["all", *CONNECTION_STATUSES], key="conn-status",
                               format_func=lambda s: "Todos" if s == "all" else s)
    conn_env = n2.selectbox("Ambiente", ["all", *ENVIRONMENTS], key="conn-env",
                            format_func=lambda e: "Todos" if e == "all" else e)
    conn_search = n3.text_input("Buscar conexión")
    visible_connections = filter_connections(connections, status=conn_status, environment=conn_env, search=conn_search)

    actions_map = {
        "pause": ("Pausar", integrations.pause_connection),
        "resume": ("Reanudar", integrations.resume_connection),
        "revoke": ("Revocar", integrations.revoke_connection),
        "health_check": ("Health check", integrations.health_check),
        "duplicate": ("Duplicar", integrations.duplicate_connection),
        "delete": ("Eliminar", integrations.delete_connection),
    }

    if connections and not visible_connections:
        st.info("Ninguna conexión coincide con los filtros")

    for conn in visible_connections:
        provider = conn.connector.provider.name if conn.connector and conn.connector.provider else ""
        st.markdown(
            f"**{conn.name}** · {provider} · {conn.environment} "
            + status_badge(conn.status, CONNECTION_STATUS_VARIANTS.get(conn.status, "info")),
            unsafe_allow_html=True,
        )
        allowed = allowed_actions(conn)
        buttons = [a for a in actions_map if a in allowed]
        if buttons:
            cols = st.columns(len(buttons))
            for col, action in zip(cols, buttons):
                label, fn = actions_map[action]
                if col.button(label, key=f"{action}-{conn.id}"):
                    if run_command(lambda: fn(conn.id), success=f"{label}: {conn.name}",
                                  failure=f"Error en {label.lower()}"):
                        refresh()
