"""Tests for the order profit API endpoint."""

from __future__ import annotations


def test_order_profit(client, jan_shop, team_headers):
    response = client.get(f"/api/v1/orders/{jan_shop['order'].id}/profit", headers=team_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["revenue_ex_vat"] == 450.0
    assert data["product_costs"] == 200.0
    assert data["shipping_cost"] == 32.0
    assert data["payment_fees"] == 19.31
    assert data["contribution_profit"] == 198.69
    assert data["store_id"] == jan_shop["store"].id


def test_order_of_other_team_is_404(client, seed, db, jan_shop):
    other = seed.team("Other")
    db.commit()
    response = client.get(
        f"/api/v1/orders/{jan_shop['order'].id}/profit", headers={"X-Team-Id": str(other.id)}
    )
    assert response.status_code == 404


def test_unknown_order_is_404(client, team_headers):
    assert client.get("/api/v1/orders/424242/profit", headers=team_headers).status_code == 404
