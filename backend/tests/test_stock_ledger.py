# Overview: Pytest coverage for stock unit lifecycle, FIFO lookup, and identifier minting.

import pytest

from jewelshop.errors import InvalidStateTransition, NotFoundOrForeignTenant, StockUnavailable, ValidationError
from jewelshop.extensions import db
from jewelshop.models import AuditLog
from jewelshop.repositories import StockItemRepository
from jewelshop.services import identifier_service, stock_service
from jewelshop.services.identifier_service import (
    BARCODE_PATTERN,
    TAG_ID_PATTERN,
    IdentifierExhaustedError,
    generate_tag_id,
    mint_stock_identifiers,
)


class TestTransitions:
    """AVAILABLE -> RESERVED -> SOLD, AVAILABLE -> SOLD, RESERVED -> AVAILABLE."""

    def test_reserve_then_sell(self, ctx_a, make_product, receive_units):
        _, units = receive_units(ctx_a, make_product(ctx_a))
        repo = StockItemRepository(ctx_a)

        item = repo.reserve(units[0].id, sales_order_line_id=None)
        assert item.status == "RESERVED"

        item = repo.mark_as_sold(units[0].id, sales_order_line_id=1)
        assert item.status == "SOLD"
        assert item.sale_date is not None

    def test_direct_sale(self, ctx_a, make_product, receive_units):
        _, units = receive_units(ctx_a, make_product(ctx_a))
        item = StockItemRepository(ctx_a).mark_as_sold(units[0].id, sales_order_line_id=7)
        assert item.status == "SOLD"
        assert item.sales_order_line_id == 7

    def test_release_returns_to_available(self, ctx_a, make_product, receive_units):
        _, units = receive_units(ctx_a, make_product(ctx_a))
        repo = StockItemRepository(ctx_a)
        repo.reserve(units[0].id, sales_order_line_id=3)

        item = repo.release(units[0].id)
        assert item.status == "AVAILABLE"
        assert item.sales_order_line_id is None

    def test_sold_unit_cannot_be_reserved(self, ctx_a, make_product, receive_units):
        _, units = receive_units(ctx_a, make_product(ctx_a))
        repo = StockItemRepository(ctx_a)
        repo.mark_as_sold(units[0].id, sales_order_line_id=1)

        with pytest.raises(StockUnavailable) as exc:
            repo.reserve(units[0].id)
        assert exc.value.details["current_status"] == "SOLD"

    def test_sold_unit_cannot_be_released(self, ctx_a, make_product, receive_units):
        _, units = receive_units(ctx_a, make_product(ctx_a))
        repo = StockItemRepository(ctx_a)
        repo.mark_as_sold(units[0].id, sales_order_line_id=1)

        with pytest.raises(InvalidStateTransition):
            repo.release(units[0].id)

    def test_available_unit_cannot_be_released(self, ctx_a, make_product, receive_units):
        _, units = receive_units(ctx_a, make_product(ctx_a))
        with pytest.raises(InvalidStateTransition):
            StockItemRepository(ctx_a).release(units[0].id)

    def test_reserved_unit_only_sold_through_its_line(self, ctx_a, make_product, receive_units):
        _, units = receive_units(ctx_a, make_product(ctx_a))
        repo = StockItemRepository(ctx_a)
        repo.reserve(units[0].id, sales_order_line_id=10)

        with pytest.raises(StockUnavailable):
            repo.mark_as_sold(units[0].id, sales_order_line_id=11)

    def test_transitions_are_audited(self, ctx_a, make_product, receive_units):
        _, units = receive_units(ctx_a, make_product(ctx_a))
        repo = StockItemRepository(ctx_a)
        repo.reserve(units[0].id, sales_order_line_id=4)
        repo.release(units[0].id)
        repo.mark_as_sold(units[0].id, sales_order_line_id=5)

        changes = [
            (entry.before_data["status"], entry.after_data["status"])
            for entry in db.session.query(AuditLog)
            .filter_by(module="STOCK", entity_id=units[0].id, action="STATUS_CHANGE")
            .order_by(AuditLog.id)
        ]
        assert changes == [("AVAILABLE", "RESERVED"), ("RESERVED", "AVAILABLE"), ("AVAILABLE", "SOLD")]

    def test_rejected_transition_not_audited(self, ctx_a, make_product, receive_units):
        _, units = receive_units(ctx_a, make_product(ctx_a))
        with pytest.raises(InvalidStateTransition):
            StockItemRepository(ctx_a).release(units[0].id)
        assert db.session.query(AuditLog).filter_by(module="STOCK", action="STATUS_CHANGE").count() == 0


class TestLookups:

    def test_fifo_order(self, ctx_a, make_product, receive_units):
        product = make_product(ctx_a)
        _, first = receive_units(ctx_a, product, quantity=2)
        _, second = receive_units(ctx_a, product, quantity=1)

        available = stock_service.find_available_by_product(ctx_a, product.id)
        ids = [u.id for u in available]
        assert ids[:2] == sorted(u.id for u in first)
        assert ids[-1] == second[0].id

    def test_fifo_skips_unavailable(self, ctx_a, make_product, receive_units):
        product = make_product(ctx_a)
        _, units = receive_units(ctx_a, product, quantity=3)
        StockItemRepository(ctx_a).mark_as_sold(units[0].id, sales_order_line_id=1)

        available = stock_service.find_available_by_product(ctx_a, product.id, limit=1)
        assert len(available) == 1
        assert available[0].id != units[0].id

    def test_lookup_by_tag(self, ctx_a, make_product, receive_units):
        _, units = receive_units(ctx_a, make_product(ctx_a))
        item = stock_service.get_by_tag_id(ctx_a, units[0].tag_id)
        assert item.id == units[0].id

    def test_scan_barcode_then_tag(self, ctx_a, make_product, receive_units):
        po, units = receive_units(ctx_a, make_product(ctx_a))
        unit = units[0]

        by_barcode = stock_service.scan_code(ctx_a, f" {unit.barcode} ")
        by_tag = stock_service.scan_code(ctx_a, unit.tag_id)

        assert by_barcode["stock_item"]["id"] == unit.id
        assert by_tag["stock_item"]["id"] == unit.id
        assert by_barcode["product"]["id"] == unit.product_id
        assert by_barcode["purchase_order"]["po_number"] == po.po_number

    def test_scan_type_restricts_lookup(self, ctx_a, make_product, receive_units):
        _, units = receive_units(ctx_a, make_product(ctx_a))
        with pytest.raises(NotFoundOrForeignTenant):
            stock_service.scan_code(ctx_a, units[0].tag_id, "barcode")
        assert stock_service.scan_code(ctx_a, units[0].tag_id, "tag")["stock_item"]["id"] == units[0].id

    def test_scan_foreign_unit_not_found(self, ctx_a, ctx_b, make_product, receive_units):
        _, units = receive_units(ctx_b, make_product(ctx_b))
        with pytest.raises(NotFoundOrForeignTenant):
            stock_service.scan_code(ctx_a, units[0].barcode)

    @pytest.mark.parametrize("code,scan_type", [("", "auto"), ("   ", "auto"), (None, "auto"), ("X", "huid")])
    def test_scan_rejects_bad_input(self, ctx_a, code, scan_type):
        with pytest.raises(ValidationError):
            stock_service.scan_code(ctx_a, code, scan_type)

    def test_scan_route(self, client, owner_a, ctx_a, make_product, receive_units, login):
        _, units = receive_units(ctx_a, make_product(ctx_a))
        headers = login('owner_a')

        found = client.get(f'/api/stock/scan?code={units[0].barcode}', headers=headers)
        missing = client.get('/api/stock/scan?code=NOPE', headers=headers)

        assert found.status_code == 200
        assert found.json['data']['stock_item']['tag_id'] == units[0].tag_id
        assert missing.status_code == 404

    def test_availability_counts(self, ctx_a, make_product, receive_units):
        product = make_product(ctx_a)
        _, units = receive_units(ctx_a, product, quantity=3)
        repo = StockItemRepository(ctx_a)
        repo.reserve(units[0].id)
        repo.mark_as_sold(units[1].id, sales_order_line_id=1)

        result = stock_service.availability(ctx_a, product.id)
        assert result["available"] == 1
        assert result["counts_by_status"] == {"AVAILABLE": 1, "RESERVED": 1, "SOLD": 1}

    def test_inventory_value_excludes_sold(self, ctx_a, make_product, receive_units):
        product = make_product(ctx_a)
        _, units = receive_units(ctx_a, product, quantity=3, unit_cost_paise=1000)
        StockItemRepository(ctx_a).mark_as_sold(units[0].id, sales_order_line_id=1)

        summary = stock_service.inventory_summary(ctx_a)
        assert summary["inventory_value_paise"] == 2000


class TestIdentifiers:

    def test_tag_id_format(self):
        tag = generate_tag_id("GOLD", "22K")
        assert tag.startswith("G22-")
        assert TAG_ID_PATTERN.match(tag)

    def test_unknown_metal_code(self):
        assert generate_tag_id("COPPER", "999").startswith("X999-")

    def test_received_units_have_unique_identifiers(self, ctx_a, make_product, receive_units):
        _, units = receive_units(ctx_a, make_product(ctx_a, metal_type="SILVER", purity="925"), quantity=10)

        tags = {u.tag_id for u in units}
        barcodes = {u.barcode for u in units}
        assert len(tags) == 10
        assert len(barcodes) == 10
        assert all(t.startswith("S925-") for t in tags)
        assert all(BARCODE_PATTERN.match(b) for b in barcodes)

    def test_units_carry_purchase_cost_only(self, ctx_a, make_product, receive_units):
        _, units = receive_units(ctx_a, make_product(ctx_a), quantity=1, unit_cost_paise=4321)
        data = units[0].to_dict()
        assert data["purchase_cost_paise"] == 4321
        assert data["status"] == "AVAILABLE"
        assert "selling_price_paise" not in data

    def test_exhaustion_raises(self, ctx_a, make_product, receive_units, monkeypatch):
        product = make_product(ctx_a)
        _, units = receive_units(ctx_a, product)
        taken = units[0]

        monkeypatch.setattr(identifier_service, "generate_tag_id", lambda metal, purity: taken.tag_id)

        with pytest.raises(IdentifierExhaustedError):
            mint_stock_identifiers(
                StockItemRepository(ctx_a),
                product_id=product.id,
                metal_type="GOLD",
                purity="22K",
                count=1,
            )
