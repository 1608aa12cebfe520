# Overview: Pytest coverage for the rate master and dynamic price calculation.

import pytest

from jewelshop.errors import NotFoundOrForeignTenant, RateNotConfigured, ValidationError
from jewelshop.extensions import db
from jewelshop.models import AuditLog, RateMaster
from jewelshop.services import pricing_service, stock_service
from jewelshop.services.pricing_service import calculate_price, round_half_up_div


class TestCalculatePrice:
    """Integer-only pricing: weights in mg, wastage in bps, money in paise."""

    def test_plain_metal(self):
        breakdown = calculate_price(net_weight_mg=1000, wastage_bps=0, rate_per_gram_paise=500)
        assert breakdown.metal_amount_paise == 500
        assert breakdown.total_paise == 500

    def test_wastage_making_and_stones(self):
        # 10 g at 6000/g with 8% wastage = 10.8 g -> 64800, plus 1500 making and 2500 stones
        breakdown = calculate_price(
            net_weight_mg=10_000,
            wastage_bps=800,
            rate_per_gram_paise=6000,
            making_charges_paise=1500,
            stone_value_paise=2500,
        )
        assert breakdown.effective_weight_mg == 10_800
        assert breakdown.metal_amount_paise == 64_800
        assert breakdown.total_paise == 68_800

    def test_rounds_half_up(self):
        # 1 mg at 500/g = 0.5 paise -> 1
        assert calculate_price(net_weight_mg=1, wastage_bps=0, rate_per_gram_paise=500).metal_amount_paise == 1
        # 1 mg at 400/g = 0.4 paise -> 0
        assert calculate_price(net_weight_mg=1, wastage_bps=0, rate_per_gram_paise=400).metal_amount_paise == 0

    def test_round_half_up_div(self):
        assert round_half_up_div(5, 2) == 3
        assert round_half_up_div(7, 3) == 2
        assert round_half_up_div(0, 9) == 0

    def test_negative_inputs_rejected(self):
        with pytest.raises(ValidationError):
            calculate_price(net_weight_mg=-1, wastage_bps=0, rate_per_gram_paise=500)


class TestRateMaster:

    def test_new_rate_deactivates_previous(self, ctx_a, set_rate):
        old = set_rate(ctx_a, 6000)
        new = set_rate(ctx_a, 6100)

        assert new.is_active is True
        history = pricing_service.rate_history(ctx_a, "GOLD", "22K")
        by_id = {r.id: r for r in history}
        assert by_id[old.id].is_active is False
        assert by_id[new.id].is_active is True
        assert pricing_service.get_current_rate(ctx_a, "gold", "22k").id == new.id

    def test_one_active_rate_per_pair(self, ctx_a, set_rate):
        set_rate(ctx_a, 6000)
        set_rate(ctx_a, 6100)
        set_rate(ctx_a, 7000, metal_type="GOLD", purity="24K")

        current = pricing_service.current_rates(ctx_a)
        pairs = [(r.metal_type, r.purity) for r in current]
        assert sorted(pairs) == [("GOLD", "22K"), ("GOLD", "24K")]

    def test_rates_are_per_shop(self, ctx_a, ctx_b, set_rate):
        set_rate(ctx_a, 6000)
        with pytest.raises(RateNotConfigured):
            pricing_service.get_current_rate(ctx_b, "GOLD", "22K")

    def test_invalid_metal(self, ctx_a):
        with pytest.raises(ValidationError):
            pricing_service.create_rate(ctx_a, metal_type="COPPER", purity="99", rate_per_gram_paise=100)

    def test_non_positive_rate(self, ctx_a):
        with pytest.raises(ValidationError):
            pricing_service.create_rate(ctx_a, metal_type="GOLD", purity="22K", rate_per_gram_paise=0)

    def test_valid_until_before_effective(self, ctx_a):
        with pytest.raises(ValidationError):
            pricing_service.create_rate(
                ctx_a,
                metal_type="GOLD",
                purity="22K",
                rate_per_gram_paise=6000,
                effective_date="2026-05-02T00:00:00Z",
                valid_until="2026-05-01T00:00:00Z",
            )


class TestPriceBreakdown:

    def test_breakdown_uses_current_rate(self, ctx_a, make_product, set_rate):
        product = make_product(ctx_a, net_weight_mg=2000, gross_weight_mg=2100, making_charges_paise=300)
        set_rate(ctx_a, 500)

        result = pricing_service.get_price_breakdown(ctx_a, product.id)
        assert result["breakdown"]["metal_amount_paise"] == 1000
        assert result["breakdown"]["total_paise"] == 1300
        assert result["rate"]["rate_per_gram_paise"] == 500

    def test_missing_rate(self, ctx_a, make_product):
        product = make_product(ctx_a)
        with pytest.raises(RateNotConfigured) as exc:
            pricing_service.get_price_breakdown(ctx_a, product.id)
        assert exc.value.details == {"metal_type": "GOLD", "purity": "22K"}

    def test_quote_stock_item(self, ctx_a, make_product, set_rate, receive_units):
        set_rate(ctx_a, 500)
        _, units = receive_units(ctx_a, make_product(ctx_a), unit_cost_paise=300)

        quote = stock_service.quote_stock_item(ctx_a, units[0].id)
        assert quote["selling_price_paise"] == 500
        assert quote["status"] == "AVAILABLE"


class TestRateMaintenance:

    def test_get_rate_is_shop_scoped(self, ctx_a, ctx_b, set_rate):
        rate = set_rate(ctx_a, 6000)
        assert pricing_service.get_rate(ctx_a, rate.id).rate_per_gram_paise == 6000
        with pytest.raises(NotFoundOrForeignTenant):
            pricing_service.get_rate(ctx_b, rate.id)

    def test_amend_window_and_source(self, ctx_a, set_rate):
        rate = set_rate(ctx_a, 6000)

        updated = pricing_service.update_rate(ctx_a, rate.id, {
            "valid_until": "2099-01-01T00:00:00Z",
            "rate_source": "MARKET",
        })

        assert updated.rate_source == "MARKET"
        assert updated.valid_until.year == 2099
        assert updated.rate_per_gram_paise == 6000
        entry = db.session.query(AuditLog).filter_by(
            module="RATE_MASTER", entity_id=rate.id, action="UPDATE",
        ).one()
        assert entry.after_data["rate_source"] == "MARKET"

    @pytest.mark.parametrize("payload", [
        {"rate_per_gram_paise": 6500},
        {"metal_type": "SILVER"},
        {"purity": "24K", "rate_source": "MANUAL"},
    ])
    def test_recorded_amount_is_fixed(self, ctx_a, set_rate, payload):
        rate = set_rate(ctx_a, 6000)
        with pytest.raises(ValidationError) as exc:
            pricing_service.update_rate(ctx_a, rate.id, payload)
        assert "record a new rate" in exc.value.message
        assert db.session.get(RateMaster, rate.id).rate_per_gram_paise == 6000

    @pytest.mark.parametrize("payload", [
        {},
        {"rate_source": "RUMOUR"},
        {"is_active": "yes"},
        {"valid_until": "2000-01-01T00:00:00Z"},
    ])
    def test_invalid_amendments(self, ctx_a, set_rate, payload):
        rate = set_rate(ctx_a, 6000)
        with pytest.raises(ValidationError):
            pricing_service.update_rate(ctx_a, rate.id, payload)

    def test_reactivating_old_rate_deactivates_current(self, ctx_a, set_rate):
        old = set_rate(ctx_a, 6000)
        new = set_rate(ctx_a, 6100)

        pricing_service.update_rate(ctx_a, old.id, {"is_active": True})

        assert pricing_service.get_current_rate(ctx_a, "GOLD", "22K").id == old.id
        assert db.session.get(RateMaster, new.id).is_active is False
        active = db.session.query(RateMaster).filter_by(
            shop_id=ctx_a.shop_id, metal_type="GOLD", purity="22K", is_active=True,
        ).count()
        assert active == 1


class TestPriceImpact:

    def test_compares_current_and_chosen_rate(self, ctx_a, make_product, set_rate):
        ring = make_product(ctx_a, net_weight_mg=2000, gross_weight_mg=2000, making_charges_paise=100)
        make_product(ctx_a, metal_type="SILVER", purity="925")
        current = set_rate(ctx_a, 500)
        proposed = set_rate(ctx_a, 600)
        pricing_service.update_rate(ctx_a, current.id, {"is_active": True})

        impact = pricing_service.price_impact(ctx_a, proposed.id)

        assert impact["current_rate"]["id"] == current.id
        assert impact["total_products"] == 1
        change = impact["price_changes"][0]
        assert change["product_id"] == ring.id
        assert change["current_price_paise"] == 1100
        assert change["new_price_paise"] == 1300
        assert change["difference_paise"] == 200

    def test_filters_by_collection(self, ctx_a, make_product, set_rate):
        bridal = make_product(ctx_a, collection_name="Bridal 2026")
        make_product(ctx_a, collection_name="Daily Wear")
        rate = set_rate(ctx_a, 500)

        impact = pricing_service.price_impact(ctx_a, rate.id, {"collection": "bridal"})

        assert [c["product_id"] for c in impact["price_changes"]] == [bridal.id]
        assert impact["price_changes"][0]["difference_paise"] == 0

    def test_product_ids_must_be_integers(self, ctx_a, set_rate):
        rate = set_rate(ctx_a, 500)
        with pytest.raises(ValidationError):
            pricing_service.price_impact(ctx_a, rate.id, {"product_ids": "1,2"})


class TestRateRoutes:

    def test_put_refuses_amount_change(self, client, owner_a, ctx_a, set_rate, login):
        rate = set_rate(ctx_a, 6000)
        response = client.put(f'/api/rates/{rate.id}', json={'rate_per_gram_paise': 1}, headers=login('owner_a'))
        assert response.status_code == 400
        assert response.json['error']['details'] == {'fields': ['rate_per_gram_paise']}

    def test_price_preview(self, client, owner_a, ctx_a, make_product, set_rate, login):
        product = make_product(ctx_a)
        rate = set_rate(ctx_a, 500)
        response = client.post(
            f'/api/rates/{rate.id}/price-preview',
            json={'product_ids': [product.id]},
            headers=login('owner_a'),
        )
        assert response.status_code == 200
        assert response.json['data']['price_changes'][0]['new_price_paise'] == 500
