"""
Tests for the Flask front-end and the simulation store.
"""

from decimal import Decimal

import pytest

from conftest import build_ledger
from simples_calc.data_models import MonthEntry
from simples_calc.engine import compute_ledger
from simples_calc_web import app as web
from simples_calc_web.simulation_store import COPY_SUFFIX, SimulationStore


@pytest.fixture
def store():
    return SimulationStore("sqlite://")


@pytest.fixture
def client(store, monkeypatch):
    monkeypatch.setattr(web, "simulation_store", store)
    web.app.config["TESTING"] = True
    with web.app.test_client() as client:
        yield client


def _token(client):
    with client.session_transaction() as sess:
        return sess["user_token"]


def _add(client, month_year, without_st="", with_st="", annex="I"):
    return client.post(
        "/",
        data={
            "action": "add",
            "month_year": month_year,
            "revenue_without_st": without_st,
            "revenue_with_st": with_st,
            "annex": annex,
        },
    )


class TestSimulationStore:
    """Working ledgers and named simulations."""

    def test_working_ledger(self, store):
        ledger = compute_ledger(build_ledger(("01/2024", "100000", "0", "I")))
        assert store.load_ledger("u1") == ()
        store.save_ledger("u1", ledger)
        store.save_ledger("u1", ledger + ledger)
        assert len(store.load_ledger("u1")) == 2
        assert store.load_ledger("u2") == ()
        store.clear_ledger("u1")
        assert store.load_ledger("u1") == ()

    def test_simulation_lifecycle(self, store):
        ledger = compute_ledger(build_ledger(("01/2024", "100000", "0", "I"), ("02/2024", "1", "0", "II")))
        sim_id = store.save_simulation("u1", "Plano 2024", ledger)
        listed = store.list_simulations("u1")
        assert [s["name"] for s in listed] == ["Plano 2024"]
        assert listed[0]["month_count"] == 2
        assert store.load_simulation("u1", sim_id) == ledger

        assert store.rename_simulation("u1", sim_id, "Plano B")
        copy_id = store.duplicate_simulation("u1", sim_id)
        assert store.get_simulation("u1", copy_id)["name"] == "Plano B" + COPY_SUFFIX
        assert store.load_simulation("u1", copy_id) == ledger

        store.remove_simulation("u1", sim_id)
        assert [s["id"] for s in store.list_simulations("u1")] == [copy_id]

    def test_other_users_cannot_touch_simulation(self, store):
        sim_id = store.save_simulation("u1", "Mine", ())
        assert store.load_simulation("u2", sim_id) is None
        assert store.get_simulation("u2", sim_id) is None
        assert not store.rename_simulation("u2", sim_id, "Stolen")
        assert store.duplicate_simulation("u2", sim_id) is None
        store.remove_simulation("u2", sim_id)
        assert store.get_simulation("u1", sim_id)["name"] == "Mine"

    def test_listing_is_capped(self, store):
        for i in range(35):
            store.save_simulation("u1", f"S{i}", ())
        assert len(store.list_simulations("u1")) == 30

    def test_missing_token(self, store):
        assert store.list_simulations("") == []
        assert store.save_simulation("", "x", ()) is None


class TestWebApp:
    """Flask views."""

    def test_index_empty(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "Nenhum mês adicionado ainda." in response.get_data(as_text=True)

    def test_add_month(self, client, store):
        response = _add(client, "01/2024", without_st="100.000,00")
        assert response.status_code == 200
        body = response.get_data(as_text=True)
        assert "R$ 4.000,00" in body
        ledger = store.load_ledger(_token(client))
        assert len(ledger) == 1
        assert ledger[0].total_tax == Decimal("4000")

    def test_invalid_add_keeps_ledger_and_form(self, client, store):
        _add(client, "01/2024", without_st="10")
        response = _add(client, "2024/01", without_st="99")
        body = response.get_data(as_text=True)
        assert "expected MM/YYYY" in body
        assert 'value="2024/01"' in body
        assert len(store.load_ledger(_token(client))) == 1

    def test_add_reads_grouped_thousands(self, client, store):
        _add(client, "01/2024", without_st="150.000")
        ledger = store.load_ledger(_token(client))
        assert ledger[0].revenue_without_st == Decimal("150000")

    def test_add_rejects_implausible_revenue(self, client, store):
        response = _add(client, "01/2024", without_st="100000000000000000000000000")
        assert response.status_code == 200
        assert "must be below" in response.get_data(as_text=True)
        assert store.load_ledger(_token(client)) == ()
        assert client.get("/").status_code == 200

    def test_stored_oversized_entry_still_renders(self, client, store):
        client.get("/")
        token = _token(client)
        entry = MonthEntry(id="big", month_year="01/2024", revenue_without_st=Decimal("1e27"))
        store.save_ledger(token, compute_ledger((entry,)))
        response = client.get("/")
        assert response.status_code == 200
        assert "R$ 1.000.000.000.000.000.000.000.000.000,00" in response.get_data(as_text=True)

    def test_update_month(self, client, store):
        _add(client, "01/2024", without_st="100000")
        _add(client, "02/2024", without_st="200000")
        token = _token(client)
        first = store.load_ledger(token)[0]
        response = client.post(
            "/",
            data={
                "action": "update",
                "entry_id": first.id,
                "month_year": "01/2024",
                "revenue_without_st": "50.000,00",
                "revenue_with_st": "",
                "annex": "II",
            },
        )
        assert response.status_code == 200
        ledger = store.load_ledger(token)
        assert ledger[0].id == first.id
        assert ledger[0].annex.value == "II"
        assert ledger[0].revenue_without_st == Decimal("50000.00")
        assert ledger[1].trailing_12m_revenue == Decimal("250000")

    def test_update_unknown_month(self, client, store):
        _add(client, "01/2024", without_st="100000")
        body = client.post(
            "/",
            data={"action": "update", "entry_id": "missing", "month_year": "01/2024", "revenue_without_st": "1"},
        ).get_data(as_text=True)
        assert "No month with id missing" in body
        assert store.load_ledger(_token(client))[0].revenue_without_st == Decimal("100000")

    def test_edit_form_prefilled(self, client):
        _add(client, "01/2024", without_st="150000")
        body = client.get("/").get_data(as_text=True)
        assert 'value="150.000,00"' in body

    def test_remove_recomputes(self, client, store):
        _add(client, "01/2024", without_st="100000")
        _add(client, "02/2024", without_st="200000")
        token = _token(client)
        first = store.load_ledger(token)[0]
        client.post("/", data={"action": "remove", "entry_id": first.id})
        ledger = store.load_ledger(token)
        assert len(ledger) == 1
        assert ledger[0].trailing_12m_revenue == Decimal("200000")

    def test_clear(self, client, store):
        _add(client, "01/2024", without_st="1")
        client.post("/", data={"action": "clear"})
        assert store.load_ledger(_token(client)) == ()

    def test_export_csv(self, client):
        _add(client, "01/2024", without_st="100000")
        response = client.get("/export.csv")
        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        assert "simples_nacional_completo_" in response.headers["Content-Disposition"]
        assert '"R$ 4.000,00"' in response.get_data(as_text=True)

    def test_alert_rendered(self, client):
        _add(client, "01/2024", without_st="280000")
        body = client.get("/").get_data(as_text=True)
        assert "Atenção: Próximo ao limite de média mensal" in body

    def test_save_and_load_simulation(self, client, store):
        _add(client, "01/2024", without_st="100000")
        client.post("/", data={"action": "save_simulation", "simulation_name": "Plano"})
        token = _token(client)
        sims = store.list_simulations(token)
        assert [s["name"] for s in sims] == ["Plano"]

        client.post("/", data={"action": "clear"})
        response = client.post(f"/simulations/{sims[0]['id']}/load")
        assert response.status_code == 302
        assert len(store.load_ledger(token)) == 1

    def test_simulation_routes(self, client, store):
        _add(client, "01/2024", without_st="1")
        client.post("/", data={"action": "save_simulation", "simulation_name": "A"})
        token = _token(client)
        sim_id = store.list_simulations(token)[0]["id"]
        client.post(f"/simulations/{sim_id}/rename", data={"simulation_name": "B"})
        client.post(f"/simulations/{sim_id}/duplicate")
        names = sorted(s["name"] for s in store.list_simulations(token))
        assert names == ["B", "B" + COPY_SUFFIX]
        client.post(f"/simulations/{sim_id}/delete")
        assert [s["name"] for s in store.list_simulations(token)] == ["B" + COPY_SUFFIX]

    def test_unknown_action(self, client):
        body = client.post("/", data={"action": "explode"}).get_data(as_text=True)
        assert "Unknown action: explode" in body
