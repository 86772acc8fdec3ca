import logging
import os
from uuid import uuid4

from flask import Flask, Response, redirect, render_template, request, session, url_for

from simples_calc.brackets import ANNEX_TABLES
from simples_calc.data_models import AddMonth, Annex, ClearLedger, LedgerAction, RemoveMonth, UpdateMonth
from simples_calc.engine import LedgerValidationError, compute_ledger, reduce_ledger, summarize
from simples_calc.export import default_export_filename, ledger_to_csv
from simples_calc.formatter import alert_messages, format_amount, format_currency, format_percent
from simples_calc_web.simulation_store import create_store_from_env

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config["ASSET_VERSION"] = os.environ.get("ASSET_VERSION", "1")
app.secret_key = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
simulation_store = create_store_from_env(os.environ.get("SIMULATION_DATABASE_URL"))

EMPTY_FORM = {"month_year": "", "revenue_without_st": "", "revenue_with_st": "", "annex": Annex.ANNEX_I.value}


def _ensure_user_token() -> str:
    token = session.get("user_token")
    if not token:
        token = uuid4().hex
        session["user_token"] = token
        session.modified = True
    return token


def _form_values(form) -> dict:
    return {key: form.get(key, default).strip() for key, default in EMPTY_FORM.items()}


def _form_to_action(form) -> LedgerAction:
    """Build an add action, or an update when the form names an existing month."""
    values = _form_values(form)
    inputs = dict(
        month_year=values["month_year"],
        revenue_without_st=values["revenue_without_st"],
        revenue_with_st=values["revenue_with_st"],
        annex=values["annex"] or Annex.ANNEX_I.value,
    )
    if form.get("action") == "update":
        return UpdateMonth(entry_id=form.get("entry_id", ""), **inputs)
    return AddMonth(**inputs)


def _apply(user_token: str, action) -> None:
    """Reduce the visitor's working ledger, then persist the recomputed result."""
    ledger = reduce_ledger(simulation_store.load_ledger(user_token), action)
    if isinstance(action, ClearLedger):
        simulation_store.clear_ledger(user_token)
    else:
        simulation_store.save_ledger(user_token, compute_ledger(ledger))


@app.route("/", methods=["GET", "POST"])
def index():
    error = None
    form_values = dict(EMPTY_FORM)
    user_token = _ensure_user_token()

    if request.method == "POST":
        action = request.form.get("action", "add")
        try:
            if action == "add":
                form_values = _form_values(request.form)
                _apply(user_token, _form_to_action(request.form))
                form_values = dict(EMPTY_FORM)
            elif action == "update":
                _apply(user_token, _form_to_action(request.form))
            elif action == "remove":
                _apply(user_token, RemoveMonth(entry_id=request.form.get("entry_id", "")))
            elif action == "clear":
                _apply(user_token, ClearLedger())
            elif action == "save_simulation":
                name = request.form.get("simulation_name", "").strip() or "Simulação"
                simulation_id = simulation_store.save_simulation(user_token, name, simulation_store.load_ledger(user_token))
                logger.info("Saved simulation %s (%s)", simulation_id, name)
            else:
                error = f"Unknown action: {action}"
        except LedgerValidationError as exc:
            error = str(exc)

    ledger = compute_ledger(simulation_store.load_ledger(user_token))
    summary = summarize(ledger)

    return render_template(
        "index.html",
        entries=ledger,
        summary=summary if ledger else None,
        alerts=alert_messages(summary) if ledger else [],
        error=error,
        form=form_values,
        annexes=list(Annex),
        bracket_tables=ANNEX_TABLES,
        simulations=simulation_store.list_simulations(user_token),
        currency=format_currency,
        amount=format_amount,
        percent=format_percent,
        asset_version=app.config["ASSET_VERSION"],
    )


@app.get("/export.csv")
def export_csv():
    user_token = _ensure_user_token()
    ledger = compute_ledger(simulation_store.load_ledger(user_token))
    return Response(
        ledger_to_csv(ledger),
        mimetype="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={default_export_filename()}"},
    )


@app.post("/simulations/<simulation_id>/load")
def load_simulation(simulation_id):
    user_token = _ensure_user_token()
    entries = simulation_store.load_simulation(user_token, simulation_id)
    if entries is not None:
        simulation_store.save_ledger(user_token, compute_ledger(entries))
    return redirect(url_for("index"))


@app.post("/simulations/<simulation_id>/rename")
def rename_simulation(simulation_id):
    name = request.form.get("simulation_name", "").strip()
    if name:
        simulation_store.rename_simulation(session.get("user_token"), simulation_id, name)
    return redirect(url_for("index"))


@app.post("/simulations/<simulation_id>/duplicate")
def duplicate_simulation(simulation_id):
    simulation_store.duplicate_simulation(session.get("user_token"), simulation_id)
    return redirect(url_for("index"))


@app.post("/simulations/<simulation_id>/delete")
def delete_simulation(simulation_id):
    simulation_store.remove_simulation(session.get("user_token"), simulation_id)
    return redirect(url_for("index"))


if __name__ == "__main__":
    print("Starting Simples Nacional simulator web app...")
    app.run(host="0.0.0.0", port=8710, debug=True)
