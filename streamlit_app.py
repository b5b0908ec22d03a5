from datetime import date, datetime

import pandas as pd
import streamlit as st
from streamlit.errors import StreamlitSecretNotFoundError

from glicemia.analytics import StatusBand, band_advice, band_style, classify, summarize
from glicemia.auth import AuthGate, FileCredentialCache
from glicemia.config import Environment, configure_logging, load_environment
from glicemia.errors import AuthError, InvalidRange, ValidationError, WriteError
from glicemia.history import LiveHistoryView, ViewStatus, window_for
from glicemia.records import RecordWriter, to_dataframe
from glicemia.store import DocumentStore
from glicemia.validation import parse_glucose_text

st.set_page_config(page_title="Glicemia Control", layout="centered")


def read_secrets() -> dict:
    try:
        return dict(st.secrets)
    except StreamlitSecretNotFoundError:
        return {}


@st.cache_resource
def get_environment() -> Environment:
    env = load_environment(read_secrets())
    configure_logging(env.log_level)
    return env


@st.cache_resource
def get_store(_env: Environment) -> DocumentStore:
    # shared by every session so writes reach all live views of the same owner
    return DocumentStore.from_environment(_env)


env = get_environment()
store = get_store(env)


def get_auth_gate() -> AuthGate:
    if "auth_gate" not in st.session_state:
        cache = FileCredentialCache(env.remember_me_path) if env.remember_me_path else None
        st.session_state["auth_gate"] = AuthGate.from_environment(env, credential_cache=cache)
    return st.session_state["auth_gate"]


def get_history_view() -> LiveHistoryView:
    if "history_view" not in st.session_state:
        st.session_state["history_view"] = LiveHistoryView(store, limit=env.history_limit)
    return st.session_state["history_view"]


def sign_out() -> None:
    get_history_view().close()
    get_auth_gate().sign_out()
    st.session_state.pop("history_view", None)


def style_table(df: pd.DataFrame):
    def status_css(status: str) -> str:
        if not status:
            return ""
        style = band_style(StatusBand(status))
        return f"color: {style.color}; background-color: {style.background}; font-weight: bold"

    return df.style.map(status_css, subset=["Status"])


def render_login(gate: AuthGate) -> None:
    st.title("Acessar Glicemia Control")
    tab_login, tab_register = st.tabs(["Entrar", "Cadastrar Novo Usuário"])

    with tab_login:
        with st.form("login_form"):
            email = st.text_input("E-mail (Nome de Usuário)", placeholder="seu@email.com")
            password = st.text_input("Senha", type="password", placeholder="Sua senha secreta")
            remember = st.checkbox(
                "Manter conectado neste dispositivo",
                disabled=gate.credential_cache is None,
                help="Guarda apenas um token de sessão com validade, nunca a senha.",
            )
            submitted = st.form_submit_button("Entrar")

        if submitted:
            try:
                gate.sign_in(email, password, remember=remember)
            except AuthError as exc:
                st.error(exc.message)
            else:
                st.rerun()

    with tab_register:
        with st.form("register_form"):
            email = st.text_input("E-mail", placeholder="seu@email.com (Será seu login)")
            password = st.text_input("Senha (Mínimo 6 caracteres)", type="password")
            created = st.form_submit_button("Cadastrar e Entrar")

        if created:
            try:
                gate.create_account(email, password)
            except AuthError as exc:
                st.error(exc.message)
            else:
                st.success("Cadastro realizado com sucesso! Você será logado automaticamente.")
                st.rerun()


def render_new_reading(owner_uid: str) -> None:
    st.subheader("Novo Registro")
    with st.form("reading_form", clear_on_submit=True):
        raw_value = st.text_input("Valor da Glicemia (mg/dL)", placeholder="Ex: 120")
        col_date, col_time = st.columns(2)
        reading_date = col_date.date_input("Data", value=date.today(), format="DD/MM/YYYY")
        reading_time = col_time.time_input("Hora", value=datetime.now().time().replace(second=0, microsecond=0), step=60)
        submitted = st.form_submit_button("Salvar Registro")

    if submitted:
        try:
            RecordWriter(store, owner_uid).save(raw_value, reading_date, reading_time)
        except (ValidationError, WriteError) as exc:
            st.error(exc.message)
        else:
            st.success(f"Registro de {raw_value.strip()} mg/dL salvo com sucesso!")
            band = classify(parse_glucose_text(raw_value))
            getattr(st, band_style(band).level)(band_advice(band))


@st.fragment(run_every=env.refresh_seconds)
def render_history_results() -> None:
    view = get_history_view()
    state = view.state

    if state.status == ViewStatus.ERROR:
        st.error(state.error.message if state.error else "Não foi possível carregar os registros.")
        return
    if state.status == ViewStatus.LOADING:
        st.info("Carregando estatísticas...")
        return

    summary = summarize(state.records)
    st.markdown(f"**Resumo do Período ({summary.count} Registros)**")
    if summary.count > 0:
        style = band_style(summary.status)
        m1, m2, m3 = st.columns(3)
        m1.metric("Média", f"{summary.average:.1f} mg/dL")
        m2.metric("Mínimo", f"{summary.minimum:.0f} mg/dL")
        m3.metric("Máximo", f"{summary.maximum:.0f} mg/dL")
        getattr(st, style.level)(f"Status do período: {style.label}")
    else:
        st.caption(band_advice(StatusBand.INFORMATIONAL))

    if state.records:
        st.dataframe(style_table(to_dataframe(state.records)), hide_index=True, width="stretch")
    st.caption("* A tabela é atualizada automaticamente em tempo real.")


def render_history(owner_uid: str) -> None:
    st.subheader("Histórico e Estatísticas")
    col_start, col_end = st.columns(2)
    start_date = col_start.date_input("De", value=date.today(), format="DD/MM/YYYY", key="start_date")
    end_date = col_end.date_input("Até", value=date.today(), format="DD/MM/YYYY", key="end_date")

    try:
        window = window_for(start_date, end_date)
    except InvalidRange as exc:
        st.warning(exc.message)
        return

    get_history_view().show(owner_uid, window)
    render_history_results()


gate = get_auth_gate()
# the bootstrap token is honoured once per session so "Sair" really signs out
bootstrap_token = None if st.session_state.get("bootstrap_used") else env.bootstrap_token
st.session_state["bootstrap_used"] = True
owner = gate.restore(bootstrap_token)

if owner is None:
    render_login(gate)
    st.stop()

with st.sidebar:
    st.header("Glicemia Control")
    st.caption(f"Usuário: {owner.email}")
    st.caption(f"ID: {owner.uid[:8]}...")
    if st.button("Sair"):
        sign_out()
        st.rerun()

render_new_reading(owner.uid)
st.divider()
render_history(owner.uid)
