from __future__ import annotations

from decimal import Decimal

from app.api.deps.work_order_gateway import get_work_order_gateway
from app.main import app as fastapi_app
from app.models.discount import DiscountType
from app.services.pricing_errors import CollaboratorUnavailable

HEADERS = {"X-User-Email": "tech@example.com"}
MANAGER = {"X-User-Email": "manager@example.com"}

TAX_CONFIG = {
    "labor_tax_rate": "8",
    "parts_tax_rate": "6",
    "apply_tax_to_labor": True,
    "apply_tax_to_parts": True,
    "tax_calculation_method": "additive",
    "tax_description": "State sales tax",
}


def _apply(client, owner_kind, owner_id, payload, headers=HEADERS):
    return client.post(f"/api/v1/discounts/{owner_kind}/{owner_id}", headers=headers, json=payload)


def _pricing_payload(**overrides):
    payload = {
        "job_lines": [{"id": 10, "total_amount": "500.00"}],
        "parts": [{"id": 20, "total_price": "200.00"}],
        "tax_config": dict(TAX_CONFIG),
    }
    payload.update(overrides)
    return payload


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "up"}


def test_discount_types_lists_active_entries_for_category(client, db_session):
    db_session.add_all(
        [
            DiscountType(name="Senior", kind="percentage", default_value=Decimal("10"), applies_to="labor"),
            DiscountType(name="Anything", kind="fixed_amount", default_value=Decimal("5"), applies_to="any"),
            DiscountType(name="Parts Match", kind="fixed_amount", default_value=Decimal("0"), applies_to="parts"),
            DiscountType(
                name="Retired",
                kind="percentage",
                default_value=Decimal("5"),
                applies_to="labor",
                is_active=False,
            ),
        ]
    )
    db_session.commit()

    response = client.get("/api/v1/discount-types", params={"category": "labor"})

    assert response.status_code == 200
    assert [row["name"] for row in response.json()] == ["Anything", "Senior"]


def test_full_discount_lifecycle_over_http(client):
    created = _apply(
        client,
        "job_line",
        10,
        {
            "discount_name": "Goodwill",
            "kind": "percentage",
            "value": "10",
            "requires_approval": True,
            "reason": "Comeback repair",
        },
    )
    assert created.status_code == 201
    body = created.json()
    assert body["approval_status"] == "pending"
    assert Decimal(body["discount_amount"]) == Decimal("50.00")
    discount_id = body["id"]

    approved = client.post(f"/api/v1/discounts/{discount_id}/approve", headers=MANAGER)
    assert approved.status_code == 200
    assert approved.json()["approved_by"] == "manager@example.com"

    again = client.post(f"/api/v1/discounts/{discount_id}/reject", headers=MANAGER, json={"reason": "No"})
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "INVALID_STATE"

    modified = client.patch(f"/api/v1/discounts/{discount_id}", headers=HEADERS, json={"value": "20"})
    assert modified.status_code == 200
    assert Decimal(modified.json()["discount_amount"]) == Decimal("100.00")
    assert modified.json()["approval_status"] == "approved"

    listed = client.get("/api/v1/work-orders/1/discounts")
    assert [row["id"] for row in listed.json()["discounts"]] == [discount_id]

    removed = client.delete(f"/api/v1/discounts/{discount_id}", headers=HEADERS, params={"reason": "Oops"})
    assert removed.status_code == 200
    assert removed.json() == {"discount_id": discount_id, "removed": True}

    history = client.get(f"/api/v1/discounts/{discount_id}/audit-log")
    assert history.status_code == 200
    entries = history.json()["entries"]
    assert [entry["action_type"] for entry in entries] == ["created", "approved", "modified", "deleted"]
    assert entries[2]["old_values"]["value"] == "10.00"
    assert entries[3]["reason"] == "Oops"


def test_apply_validation_failures(client):
    too_big = _apply(client, "part", 20, {"discount_name": "X", "kind": "percentage", "value": "150"})
    assert too_big.status_code == 400
    assert too_big.json()["detail"]["code"] == "VALIDATION_ERROR"

    missing_fields = _apply(client, "part", 20, {"discount_name": "X"})
    assert missing_fields.status_code == 422

    bad_kind = _apply(client, "invoice", 1, {"discount_name": "X", "kind": "percentage", "value": "5"})
    assert bad_kind.status_code == 400


def test_locked_work_order_refuses_changes(client, gateway):
    gateway.lock(1)

    response = _apply(client, "work_order", 1, {"discount_name": "X", "kind": "fixed_amount", "value": "5"})

    assert response.status_code == 400
    assert response.json()["detail"]["work_order_id"] == 1


def test_gateway_outage_is_bad_gateway(client):
    class _DownGateway:
        def load_owner(self, owner_kind, owner_id):
            raise CollaboratorUnavailable(context={"owner_kind": owner_kind, "owner_id": owner_id})

    fastapi_app.dependency_overrides[get_work_order_gateway] = lambda: _DownGateway()

    response = _apply(client, "part", 20, {"discount_name": "X", "kind": "fixed_amount", "value": "5"})

    assert response.status_code == 502
    assert response.json()["detail"]["code"] == "WORK_ORDER_SERVICE_UNAVAILABLE"


def test_unknown_discount_is_not_found(client):
    assert client.post("/api/v1/discounts/999/approve", headers=MANAGER).status_code == 404
    assert client.get("/api/v1/discounts/999/audit-log").status_code == 404
    assert client.delete("/api/v1/discounts/999", headers=HEADERS).status_code == 404


def test_pricing_uses_stored_active_discounts(client):
    _apply(client, "job_line", 10, {"discount_name": "Senior", "kind": "percentage", "value": "10"})
    _apply(
        client,
        "work_order",
        1,
        {"discount_name": "Loyalty", "kind": "fixed_amount", "value": "50", "applies_to": "total"},
    )
    _apply(
        client,
        "part",
        20,
        {"discount_name": "Pending", "kind": "fixed_amount", "value": "30", "requires_approval": True, "reason": "Ask"},
    )

    response = client.post("/api/v1/work-orders/1/pricing", json=_pricing_payload())

    assert response.status_code == 200
    result = response.json()["result"]
    assert Decimal(result["subtotal_before_wo_discounts"]) == Decimal("650.00")
    assert Decimal(result["work_order_discounts"]) == Decimal("50.00")
    assert Decimal(result["total_tax"]) == Decimal("48.00")
    assert Decimal(result["final_total"]) == Decimal("648.00")
    assert len(result["discount_lines"]) == 2


def test_pricing_for_exempt_customer(client):
    response = client.post(
        "/api/v1/work-orders/1/pricing",
        json=_pricing_payload(customer_tax_exempt=True),
    )

    assert response.status_code == 200
    assert Decimal(response.json()["result"]["total_tax"]) == Decimal("0.00")
    assert Decimal(response.json()["result"]["final_total"]) == Decimal("700.00")


def test_pricing_request_flag_overrides_exempt_tax_config(client):
    config = dict(TAX_CONFIG, customer_tax_exempt=True)

    response = client.post(
        "/api/v1/work-orders/1/pricing",
        json=_pricing_payload(tax_config=config, customer_tax_exempt=False),
    )

    assert response.status_code == 200
    assert Decimal(response.json()["result"]["total_tax"]) == Decimal("52.00")


def test_pricing_rejects_oversized_amounts(client):
    oversized_line = client.post(
        "/api/v1/work-orders/1/pricing",
        json=_pricing_payload(job_lines=[{"id": 10, "total_amount": "1e27"}]),
    )
    oversized_fleet = client.post(
        "/api/v1/work-orders/1/pricing",
        json=_pricing_payload(tax_config=dict(TAX_CONFIG, fleet_discount_amount="10000000000000000.00")),
    )

    assert oversized_line.status_code == 422
    assert oversized_fleet.status_code == 422


def test_pricing_rejects_invalid_tax_settings(client):
    config = dict(TAX_CONFIG, labor_tax_rate="120")

    response = client.post("/api/v1/work-orders/1/pricing", json=_pricing_payload(tax_config=config))

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == "INVALID_TAX_SETTINGS"
    assert detail["errors"] == ["Labor tax rate must be between 0 and 100."]


def test_tax_settings_validation_endpoint(client):
    response = client.post(
        "/api/v1/tax-settings/validate",
        json=dict(TAX_CONFIG, tax_calculation_method="compound", tax_description=""),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["is_valid"] is False
    assert body["errors"] == ["Tax description is required."]
    assert body["warnings"] == ["Compound tax with different labor and parts rates uses a blended rate."]
