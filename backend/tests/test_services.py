"""
test_services.py: BOM, production, catalog and stock service wrappers.

Mapper tests feed raw backend records (mixed casing, legacy columns);
REST tests check the path, query and body that reach the mocked backend.
"""

import asyncio
import json
import logging

import httpx
import pytest

from goldpdv.services import bom_service, catalog_service, production_service, stock_service
from goldpdv.services.costing_engine import BillOfMaterials, BomLine
from goldpdv.services.logging_config import JSONFormatter


def run(coro):
    return asyncio.run(coro)


# ===========================================================================
# BOM service
# ===========================================================================

class TestBomMappers:

    def test_totals_recomputed_not_trusted(self):
        record = {
            "id": "b1",
            "product_code": "PAO01",
            "margin_target": 20,
            "total_cost": 999,
            "margin_achieved": 999,
            "items": [{"component_code": "FAR", "quantity_base": 1.5, "unit_cost": 10}],
        }
        mapped = bom_service.map_bom_from_api(record)
        assert mapped.totals.total == pytest.approx(15.0)
        assert mapped.totals.margin_achieved == pytest.approx(25.0)

    def test_legacy_line_columns(self):
        line = bom_service.map_bom_line_from_api({"CDITEM": "SAL", "qtde": "0,5", "custo": "2", "percentual": 50})
        assert line.component_code == "SAL"
        assert line.base_quantity == 0.0        # comma decimals are not parsed here
        assert line.unit_cost == 2.0
        assert line.percentage == 50

    def test_defaults(self):
        mapped = bom_service.map_bom_from_api({"id": "b2"})
        assert mapped.bom.version == "1.0"
        assert mapped.bom.lines == []

    def test_non_dict_record(self):
        assert bom_service.map_bom_from_api(None).id == ""

    def test_create_payload(self):
        bom = BillOfMaterials(
            product_code="PAO01",
            margin_target=20,
            notes="",
            lines=[BomLine(component_code="FAR", base_quantity=1.5, unit_cost=10, percentage=100)],
        )
        body = bom_service.map_bom_to_api_payload(bom)
        assert body["total_cost"] == pytest.approx(15.0)
        assert body["unit_cost"] == body["total_cost"]
        assert body["margin_achieved"] == pytest.approx(25.0)
        assert body["notes"] is None
        assert body["items"][0] == {
            "component_code": "FAR",
            "description": "",
            "quantity": 1.5,
            "quantity_base": 1.5,
            "unit_cost": 10,
            "fator": 1.0,
        }

    def test_update_payload_only_sends_changes(self):
        assert bom_service.map_bom_update_to_api_payload({"version": "2.0"}) == {"version": "2.0"}

    def test_update_payload_lines_only_uses_stored_target(self):
        current = BillOfMaterials(product_code="P", margin_target=12)
        changes = {"lines": [BomLine(component_code="A", base_quantity=2, unit_cost=3)]}
        body = bom_service.map_bom_update_to_api_payload(changes, current)
        assert body["total_cost"] == pytest.approx(6.0)
        assert body["unit_cost"] == pytest.approx(6.0)
        assert body["margin_achieved"] == pytest.approx(50.0)
        assert "margin_target" not in body

    def test_update_payload_target_only_uses_stored_lines(self):
        current = BillOfMaterials(
            product_code="P", lines=[BomLine(component_code="A", base_quantity=2, unit_cost=3)]
        )
        body = bom_service.map_bom_update_to_api_payload({"margin_target": 20}, current)
        assert body["margin_target"] == 20
        assert body["total_cost"] == pytest.approx(6.0)
        assert body["margin_achieved"] == pytest.approx(70.0)
        assert "items" not in body

    def test_update_payload_margin_with_lines(self):
        changes = {"margin_target": 12, "lines": [BomLine(component_code="A", base_quantity=2, unit_cost=3)]}
        body = bom_service.map_bom_update_to_api_payload(changes)
        assert body["margin_achieved"] == pytest.approx(50.0)


class TestBomRest:

    def test_list_from_envelope(self, api_client, backend, session):
        backend.routes[("GET", "/production/bom")] = {"data": [{"id": "1"}, {"id": "2"}]}
        records = run(bom_service.list_boms(api_client, session))
        assert [r.id for r in records] == ["1", "2"]

    def test_create(self, api_client, backend, session):
        backend.routes[("POST", "/production/bom")] = lambda req: httpx.Response(201, json={"id": "new", **backend.last_json()})
        bom = BillOfMaterials(product_code="P", lines=[BomLine(component_code="A", base_quantity=1, unit_cost=2)])
        record = run(bom_service.create_bom(api_client, session, bom))
        assert record.id == "new"
        assert record.totals.total == pytest.approx(2.0)

    def test_update_uses_patch(self, api_client, backend, session):
        backend.routes[("PATCH", "/production/bom/b1")] = {"id": "b1", "version": "2.0"}
        record = run(bom_service.update_bom(api_client, session, "b1", {"version": "2.0"}))
        assert record.bom.version == "2.0"
        assert backend.last_json() == {"version": "2.0"}
        assert [r.method for r in backend.requests] == ["PATCH"]

    def test_update_target_reads_stored_bom_first(self, api_client, backend, session):
        backend.routes[("GET", "/production/bom/b1")] = {
            "id": "b1", "product_code": "P", "margin_target": 10,
            "items": [{"component_code": "A", "quantity_base": 2, "unit_cost": 3}],
        }
        backend.routes[("PATCH", "/production/bom/b1")] = {"id": "b1"}
        run(bom_service.update_bom(api_client, session, "b1", {"margin_target": 20}))
        assert [r.method for r in backend.requests] == ["GET", "PATCH"]
        body = backend.last_json()
        assert body["margin_target"] == 20
        assert body["total_cost"] == pytest.approx(6.0)
        assert body["margin_achieved"] == pytest.approx(70.0)

    def test_delete(self, api_client, backend, session):
        backend.routes[("DELETE", "/production/bom/b1")] = httpx.Response(204)
        run(bom_service.delete_bom(api_client, session, "b1"))
        assert backend.requests[-1].method == "DELETE"

    def test_latest_for_product(self, api_client, backend, session):
        backend.routes[("GET", "/production/bom/product/PAO01")] = {"id": "b9", "product_code": "PAO01"}
        record = run(bom_service.get_latest_bom_for_product(api_client, session, "PAO01"))
        assert record.id == "b9"

    def test_latest_for_product_empty(self, api_client, backend, session):
        backend.routes[("GET", "/production/bom/product/X")] = {}
        assert run(bom_service.get_latest_bom_for_product(api_client, session, "X")) is None
        assert run(bom_service.get_latest_bom_for_product(api_client, session, "")) is None

    def test_formulas(self, api_client, backend, session):
        backend.routes[("GET", "/T_FORMULAS")] = {"rows": [{"cditem": "P", "cdcomp": "A"}]}
        rows = run(bom_service.list_formulas(api_client, session, "P"))
        assert rows == [{"cditem": "P", "cdcomp": "A"}]
        assert dict(backend.requests[-1].url.params) == {"tabela": "T_FORMULAS", "cditem": "P"}


# ===========================================================================
# Production service
# ===========================================================================

class TestOrderMapper:

    def test_product_name_candidates(self):
        order = production_service.map_order_from_api({"id": "1", "product_name": " ", "deitem": "Pao frances"})
        assert order.product_name == "Pao frances"

    def test_author_fallbacks(self):
        order = production_service.map_order_from_api({"id": "1", "author": "maria"})
        assert order.author_user == "maria"

    def test_nested_breakdown(self):
        order = production_service.map_order_from_api({"id": "1", "cost_breakdown": {"ingredients": "10", "labor": 2}})
        assert order.cost_breakdown.ingredients == 10
        assert order.cost_breakdown.labor == 2
        assert order.cost_breakdown.overhead == 0

    def test_flat_breakdown_fallback(self):
        order = production_service.map_order_from_api({"id": "1", "ingredients": 40, "Overhead": 3})
        assert order.cost_breakdown.ingredients == 40
        assert order.cost_breakdown.overhead == 3

    def test_no_breakdown(self):
        assert production_service.map_order_from_api({"id": "1"}).cost_breakdown is None

    def test_defaults(self):
        order = production_service.map_order_from_api({"id": "1"})
        assert order.status == "SEPARACAO"
        assert order.unit == "UN"
        assert order.bom_totals is None

    def test_children(self):
        order = production_service.map_order_from_api({
            "id": "1",
            "OP": "OP-77",
            "totalCost": "120.5",
            "raw_materials": [{"id": "r1", "component_code": "FAR", "quantity_used": 3, "unit_cost": 2}],
            "bom_items": [{"component_code": "FAR", "planned_quantity": 3, "planned_cost": 6}],
            "finished_goods": [{"id": "f1", "quantity_good": 10, "quantity_scrap": 1}],
            "status_history": [{"id": "s1", "status": "PRODUCAO", "event_time": "2026-10-01T10:00:00"}],
            "bom_totals": {"totalCost": 6, "labor": 1},
        })
        assert order.op == "OP-77"
        assert order.total_cost == 120.5
        assert order.raw_materials[0].planned_cost is None
        assert order.bom_items[0].planned_cost == 6
        assert order.finished_goods[0].quantity_scrap == 1
        assert order.status_history[0].responsible == "Sistema"
        assert order.bom_totals.total_cost == 6
        assert order.bom_totals.ingredients is None


    def test_update_payload_partial(self):
        body = production_service.map_order_update_to_api_payload({
            "quantity_planned": 12,
            "notes": "x" * 2500,
            "raw_materials": [
                production_service.RawMaterialIssueItem(component_code="FAR", quantity_used=2.5, unit_cost=4.2),
            ],
        })
        assert set(body) == {"quantity_planned", "notes", "raw_materials"}
        assert body["quantity_planned"] == 12
        assert len(body["notes"]) == 2000
        assert body["raw_materials"] == [{
            "component_code": "FAR",
            "description": None,
            "quantity_used": 2.5,
            "unit": "UN",
            "unit_cost": 4.2,
            "warehouse": None,
            "batch_number": None,
            "consumed_at": None,
        }]

    def test_update_payload_blank_notes_and_no_materials(self):
        body = production_service.map_order_update_to_api_payload({"notes": "", "raw_materials": None, "unknown": 1})
        assert body == {"notes": None}


class TestOrderRest:

    def test_list_filters(self, api_client, backend, session):
        backend.routes[("GET", "/production/orders")] = [{"id": "1"}, "junk"]
        orders = run(production_service.list_orders(api_client, session, product_code="P", status="PRODUCAO"))
        assert [o.id for o in orders] == ["1"]
        assert dict(backend.requests[-1].url.params) == {"product_code": "P", "status": "PRODUCAO"}

    def test_non_list_response(self, api_client, backend, session):
        backend.routes[("GET", "/production/orders/separacao")] = {"data": []}
        assert run(production_service.list_separation_orders(api_client, session)) == []

    def test_in_production(self, api_client, backend, session):
        backend.routes[("GET", "/production/orders/producao")] = [{"id": "7", "status": "PRODUCAO"}]
        orders = run(production_service.list_orders_in_production(api_client, session))
        assert orders[0].status == "PRODUCAO"

    def test_update_partial(self, api_client, backend, session):
        backend.routes[("PATCH", "/production/orders/1")] = {"id": "1", "notes": "ok"}
        run(production_service.update_order(api_client, session, "1", {"notes": "ok", "box_cost": 2}))
        assert backend.last_json() == {"box_cost": 2, "notes": "ok"}

    def test_register_status(self, api_client, backend, session):
        backend.routes[("POST", "/production/orders/1/status")] = {"id": "s1", "status": "PRODUCAO", "responsible": "Ana"}
        payload = production_service.StatusRegistration(status="PRODUCAO", responsible="Ana", remarks="inicio")
        event = run(production_service.register_status(api_client, session, "1", payload))
        assert event.responsible == "Ana"
        assert backend.last_json() == {"status": "PRODUCAO", "responsible": "Ana", "event_time": None, "remarks": "inicio"}

    def test_issue_raw_materials(self, api_client, backend, session):
        backend.routes[("POST", "/production/orders/1/issue-raw-materials")] = {"id": "s2", "status": "PRODUCAO"}
        payload = production_service.RawMaterialIssue(
            warehouse="01",
            raw_materials=[production_service.RawMaterialIssueItem(component_code="FAR", quantity_used=2.5)],
        )
        run(production_service.issue_raw_materials(api_client, session, "1", payload))
        body = backend.last_json()
        assert body["warehouse"] == "01"
        assert body["raw_materials"][0]["component_code"] == "FAR"
        assert body["raw_materials"][0]["unit"] == "UN"

    def test_complete(self, api_client, backend, session):
        backend.routes[("POST", "/production/orders/1/complete")] = {"id": "1", "status": "CONCLUIDA"}
        payload = production_service.OrderCompletion(quantity="10", warehouse="01", lot_number="L1")
        order = run(production_service.complete_order(api_client, session, "1", payload))
        assert order.status == "CONCLUIDA"
        assert backend.last_json()["quantity"] == "10"

    def test_complete_logs_order_extras(self, api_client, backend, session, caplog):
        backend.routes[("POST", "/production/orders/1/complete")] = {"id": "1", "product_code": "PAO01"}
        payload = production_service.OrderCompletion(quantity="10", warehouse="01")
        with caplog.at_level(logging.INFO, logger="goldpdv-production.service"):
            run(production_service.complete_order(api_client, session, "1", payload))
        record = [r for r in caplog.records if r.name == "goldpdv-production.service"][-1]
        assert record.order_id == "1"
        assert record.product_code == "PAO01"
        line = json.loads(JSONFormatter().format(record))
        assert line["order_id"] == "1"
        assert line["product_code"] == "PAO01"
        assert line["tenant"] == "acme"

    def test_finished_goods(self, api_client, backend, session):
        backend.routes[("POST", "/production/orders/1/finished-goods")] = {"id": "f1", "quantity_good": 9}
        backend.routes[("GET", "/production/orders/1/finished-goods")] = [{"id": "f1", "quantity_good": 9}]
        entry = production_service.FinishedGoodEntry(product_code="P", quantity_good=9)
        good = run(production_service.record_finished_good(api_client, session, "1", entry))
        assert good.quantity_good == 9
        assert backend.last_json()["quantity_scrap"] == 0
        assert len(run(production_service.list_finished_goods(api_client, session, "1"))) == 1

    def test_raw_materials(self, api_client, backend, session):
        backend.routes[("POST", "/production/orders/1/raw-materials")] = {"id": "r1", "component_code": "FAR"}
        backend.routes[("GET", "/production/orders/1/raw-materials")] = [{"id": "r1"}, {"id": "r2"}]
        item = production_service.RawMaterialIssueItem(component_code="FAR", quantity_used=1)
        assert run(production_service.record_raw_material(api_client, session, "1", item)).component_code == "FAR"
        assert len(run(production_service.list_raw_materials(api_client, session, "1"))) == 2

    def test_status_events(self, api_client, backend, session):
        backend.routes[("GET", "/production/orders/1/status")] = [{"id": "s1", "authoruser": "joao"}]
        events = run(production_service.list_status_events(api_client, session, "1"))
        assert events[0].author_user == "joao"


# ===========================================================================
# Catalog service
# ===========================================================================

class TestCatalog:

    def test_legacy_item_columns(self):
        item = catalog_service.normalize_item_from_api({
            "CDITEM": "1001", "DEITEM": "Farinha", "UNID": "KG", "preco": "5.5",
            "custo": 4.2, "qtembitem": 12, "matprima": "S", "itprodsn": "N", "sldatual": 30,
        })
        assert item.sku == "1001"
        assert item.id == "1001"
        assert item.name == "Farinha"
        assert item.unit == "KG"
        assert item.sale_price == 5.5
        assert item.packaging_qty == 12
        assert item.is_raw_material is True
        assert item.is_composed is False
        assert item.balance == 30

    def test_fallback_id(self):
        assert catalog_service.normalize_item_from_api({}, fallback_id="item-3").id == "item-3"

    def test_payload_flags(self):
        item = catalog_service.CatalogItem(id="1", sku="1001", name="Pao", is_composed=True)
        body = catalog_service.map_item_to_api_payload(item)
        assert body["itprodsn"] == "S"
        assert body["matprima"] == " "
        assert body["unid"] == body["undven"] == "UN"

    def test_list_items(self, api_client, backend, session):
        backend.routes[("GET", "/T_ITENS")] = {"itens": [{"cditem": "1"}, {"cditem": "2"}]}
        items = run(catalog_service.list_items(api_client, session))
        assert [i.sku for i in items] == ["1", "2"]
        assert dict(backend.requests[-1].url.params) == {"tabela": "T_ITENS"}

    def test_categories(self, api_client, backend, session):
        backend.routes[("GET", "/T_GRITENS")] = [{"cdgru": "01", "degru": "Farinhas"}, {"cdgru": "02"}]
        cats = run(catalog_service.list_categories(api_client, session))
        assert cats[0].description == "Farinhas"
        assert cats[1].description == "02"

    @pytest.mark.parametrize("item_id,method,path", [(None, "POST", "/T_ITENS"), ("55", "PATCH", "/T_ITENS/55")])
    def test_save_item(self, api_client, backend, session, item_id, method, path):
        backend.routes[(method, path)] = {"cditem": "1001", "deitem": "Pao"}
        item = catalog_service.CatalogItem(id="", sku="1001", name="Pao")
        saved = run(catalog_service.save_item(api_client, session, item, item_id))
        assert saved.name == "Pao"
        assert backend.requests[-1].method == method


# ===========================================================================
# Stock service
# ===========================================================================

class TestStock:

    def test_legacy_movement(self):
        mv = stock_service.map_movement_from_api({
            "nrlan": 12, "cditem": 1001, "st": "S", "qtde": "3", "data": "2026-10-01",
            "preco": 2.5, "valor": 7.5, "saldoant": 10, "sldatual": 7, "obs": "venda",
            "numdoc": 555, "tipdoc": "NF", "clifor": 9, "clifortipo": "C", "deitem": "Farinha",
        })
        assert mv.id == 12
        assert mv.item_id == 1001
        assert mv.item_code == "1001"
        assert mv.type == "S"
        assert mv.quantity == 3
        assert mv.previous_balance == 10
        assert mv.current_balance == 7
        assert mv.document.number == 555
        assert mv.counterparty.type == "C"
        assert mv.item_label == "Farinha"

    def test_generated_id(self):
        a = stock_service.map_movement_from_api({})
        b = stock_service.map_movement_from_api({})
        assert a.id != b.id
        assert a.type == "E"

    def test_list_params(self, api_client, backend, session):
        backend.routes[("GET", "/inventory/movements")] = [{"id": 1}]
        run(stock_service.list_movements(api_client, session, "E", date_from="2026-10-01", item_id=7))
        assert dict(backend.requests[-1].url.params) == {"type": "E", "from": "2026-10-01", "itemId": "7"}

    def test_kardex(self, api_client, backend, session):
        backend.routes[("GET", "/inventory/movements/7")] = {"data": [{"id": 1}, {"id": 2}]}
        assert len(run(stock_service.get_item_kardex(api_client, session, 7))) == 2

    def test_summary(self, api_client, backend, session):
        backend.routes[("GET", "/inventory/movements/summary")] = {"entries": 10, "exits": 4, "net": 6}
        summary = run(stock_service.get_movement_summary(api_client, session, "2026-10-01", "2026-10-31"))
        assert summary["net"] == 6

    def test_create(self, api_client, backend, session):
        backend.routes[("POST", "/inventory/movements")] = {"id": 99, "itemId": 7, "type": "E", "quantity": 5}
        movement = stock_service.NewMovement(item_id="7", type="E", quantity=5, unit_price=2)
        created = run(stock_service.create_movement(api_client, session, movement))
        assert created.id == 99
        assert backend.last_json()["unitPrice"] == 2
