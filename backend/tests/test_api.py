"""
End-to-end tests through the HTTP API.
"""

from decimal import Decimal

import pytest

from shared.config.constants import ErrorMessages, Role


def public_url(restaurant, table: int = 0) -> str:
    return f"/api/public/{restaurant.slug}/tables/{restaurant.qr_codes[table]}"


def order_body(restaurant, *lines, **extra) -> dict:
    return {
        "items": [
            {"dish_id": restaurant.dish_ids[name], "quantity": quantity}
            for name, quantity in lines
        ],
        **extra,
    }


class TestPublicOrdering:
    """Customer endpoints reached from the table QR code."""

    @pytest.mark.asyncio
    async def test_validate_table(self, client, restaurant):
        response = await client.get(public_url(restaurant))

        assert response.status_code == 200
        data = response.json()
        assert data["table"]["number"] == 1
        assert data["tenant"] == {"name": "Casa Pepe", "slug": "casa-pepe"}
        assert data["settings"]["tip_enabled"] is True
        assert data["settings"]["currency"] == "EUR"

    @pytest.mark.asyncio
    async def test_unknown_restaurant(self, client):
        response = await client.get("/api/public/nowhere/tables/nowhere-t1")

        assert response.status_code == 404
        assert response.json() == {"detail": "Restaurant not found", "code": "NOT_FOUND"}

    @pytest.mark.asyncio
    async def test_place_and_follow_order(self, client, restaurant):
        response = await client.post(
            f"{public_url(restaurant)}/orders",
            json=order_body(
                restaurant, ("Paella valenciana", 2), ("Caña", 3), tip_percentage="10"
            ),
        )

        assert response.status_code == 201
        created = response.json()
        assert created["order_number"] == 1
        assert created["status"] == "PENDING"
        assert Decimal(created["total"]) == Decimal("47.40")

        response = await client.get(f"{public_url(restaurant)}/orders/{created['order_number']}")

        assert response.status_code == 200
        status = response.json()
        assert status["status"] == "PENDING"
        assert {item["dish_name"] for item in status["items"]} == {"Paella valenciana", "Caña"}
        assert status["history"][0]["to_status"] == "PENDING"
        assert "changed_by_id" not in status["history"][0]

    @pytest.mark.asyncio
    async def test_order_from_another_table_is_hidden(self, client, restaurant):
        await client.post(f"{public_url(restaurant)}/orders", json=order_body(restaurant, ("Caña", 1)))

        response = await client.get(f"{public_url(restaurant, table=1)}/orders/1")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_script_in_notes_is_rejected(self, client, restaurant):
        response = await client.post(
            f"{public_url(restaurant)}/orders",
            json=order_body(
                restaurant, ("Caña", 1), customer_notes="<script>alert('x')</script>"
            ),
        )

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_empty_order(self, client, restaurant):
        response = await client.post(f"{public_url(restaurant)}/orders", json={"items": []})

        assert response.status_code == 400
        assert response.json()["code"] == "BAD_REQUEST"

    @pytest.mark.asyncio
    async def test_sixth_order_gets_429(self, client, restaurant):
        url = f"{public_url(restaurant)}/orders"
        body = order_body(restaurant, ("Agua mineral", 1))

        for _ in range(5):
            assert (await client.post(url, json=body)).status_code == 201

        response = await client.post(url, json=body)

        assert response.status_code == 429
        assert response.json() == {
            "detail": ErrorMessages.TOO_MANY_ORDERS,
            "code": "TOO_MANY_REQUESTS",
        }
        assert int(response.headers["Retry-After"]) >= 1

    @pytest.mark.asyncio
    async def test_non_json_body_is_rejected(self, client, restaurant):
        response = await client.post(
            f"{public_url(restaurant)}/orders",
            content="items=1",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        assert response.status_code == 415
        assert response.json()["code"] == "UNSUPPORTED_MEDIA_TYPE"


class TestStaffAuth:
    """Authentication and authorization on staff endpoints."""

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/orders")

        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_garbage_token(self, client):
        response = await client.get("/api/orders", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401
        assert response.json() == {"detail": ErrorMessages.INVALID_TOKEN, "code": "UNAUTHORIZED"}

    @pytest.mark.asyncio
    async def test_cook_cannot_view_tables(self, client, restaurant, auth_headers):
        response = await client.get(
            f"/api/tables/{restaurant.table_ids[0]}/active-orders",
            headers=auth_headers(restaurant.tenant_id, Role.COOK),
        )

        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_orders_are_tenant_scoped(
        self, client, restaurant, other_restaurant, auth_headers
    ):
        created = (
            await client.post(
                f"{public_url(restaurant)}/orders", json=order_body(restaurant, ("Caña", 1))
            )
        ).json()

        own = await client.get(
            f"/api/orders/{created['order_id']}",
            headers=auth_headers(restaurant.tenant_id, Role.WAITER),
        )
        foreign = await client.get(
            f"/api/orders/{created['order_id']}",
            headers=auth_headers(other_restaurant.tenant_id, Role.ADMIN),
        )

        assert own.status_code == 200
        assert foreign.status_code == 404


class TestServiceFlow:
    """From the customer's order to the table closing."""

    @pytest.mark.asyncio
    async def test_full_service(self, client, restaurant, auth_headers):
        cook = auth_headers(restaurant.tenant_id, Role.COOK)
        bartender = auth_headers(restaurant.tenant_id, Role.BARTENDER)
        waiter = auth_headers(restaurant.tenant_id, Role.WAITER)

        created = (
            await client.post(
                f"{public_url(restaurant)}/orders",
                json=order_body(restaurant, ("Croquetas de jamón", 1), ("Caña", 2)),
            )
        ).json()
        order_id = created["order_id"]

        # Kitchen picks up its ticket
        kitchen = (await client.get("/api/prep/sectors/kitchen/tickets", headers=cook)).json()
        assert kitchen["sector_code"] == "KITCHEN"
        croquetas_id = kitchen["pending"][0]["items"][0]["id"]

        response = await client.patch(
            f"/api/prep/items/{croquetas_id}/status", json={"status": "IN_PROGRESS"}, headers=cook
        )
        assert response.status_code == 200
        assert response.json()["order_status"] == "IN_PROGRESS"

        # Cook may not touch the bar
        bar_for_cook = await client.get("/api/prep/sectors/BAR/tickets", headers=cook)
        assert bar_for_cook.status_code == 403

        response = await client.post(
            f"/api/prep/sectors/KITCHEN/orders/{order_id}/ready", headers=cook
        )
        assert response.json()["updated_count"] == 1

        # Bar moves its drinks in bulk
        bar = (await client.get("/api/prep/sectors/BAR/tickets", headers=bartender)).json()
        cana_id = bar["pending"][0]["items"][0]["id"]
        for target in ("IN_PROGRESS", "READY"):
            response = await client.post(
                "/api/prep/items/bulk-status",
                json={"item_ids": [cana_id], "status": target},
                headers=bartender,
            )
            assert response.json() == {"updated_count": 1}

        detail = (await client.get(f"/api/orders/{order_id}", headers=waiter)).json()
        assert detail["status"] == "READY"

        for sector, headers in (("KITCHEN", cook), ("BAR", bartender)):
            response = await client.post(
                f"/api/prep/sectors/{sector}/orders/{order_id}/clear", headers=headers
            )
            assert response.status_code == 200
        assert response.json()["order_status"] == "DELIVERED"

        stats = (await client.get("/api/prep/sectors/BAR/stats", headers=bartender)).json()
        assert stats["completed_last_24h"] == 1
        assert stats["avg_ticket_time"] == 0

        # Waiter settles the table
        table_id = restaurant.table_ids[0]
        summary = (
            await client.get(f"/api/tables/{table_id}/active-orders", headers=waiter)
        ).json()
        assert summary["order_count"] == 1
        assert Decimal(summary["combined_total"]) == Decimal(created["total"])

        response = await client.post(
            f"/api/tables/{table_id}/close", json={"payment_method": "CARD"}, headers=waiter
        )
        assert response.status_code == 200
        assert response.json()["table"]["status"] == "CLEANING"
        assert response.json()["closed_order_count"] == 1

        response = await client.post(
            f"/api/tables/{table_id}/close", json={"payment_method": "CARD"}, headers=waiter
        )
        assert response.status_code == 412
        assert response.json() == {
            "detail": ErrorMessages.TABLE_NOT_OCCUPIED,
            "code": "PRECONDITION_FAILED",
        }

        # The customer sees the order as paid
        status = (await client.get(f"{public_url(restaurant)}/orders/1")).json()
        assert status["status"] == "PAID"

    @pytest.mark.asyncio
    async def test_invalid_transition(self, client, restaurant, auth_headers):
        await client.post(f"{public_url(restaurant)}/orders", json=order_body(restaurant, ("Caña", 1)))
        bartender = auth_headers(restaurant.tenant_id, Role.BARTENDER)
        bar = (await client.get("/api/prep/sectors/BAR/tickets", headers=bartender)).json()
        item_id = bar["pending"][0]["items"][0]["id"]

        response = await client.patch(
            f"/api/prep/items/{item_id}/status", json={"status": "SERVED"}, headers=bartender
        )

        assert response.status_code == 400
        assert response.json()["code"] == "BAD_REQUEST"
        assert "Valid targets: CANCELLED, IN_PROGRESS" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_waiter_cancels_order(self, client, restaurant, auth_headers):
        created = (
            await client.post(
                f"{public_url(restaurant)}/orders", json=order_body(restaurant, ("Caña", 1))
            )
        ).json()
        waiter = auth_headers(restaurant.tenant_id, Role.WAITER)

        response = await client.patch(
            f"/api/orders/{created['order_id']}/status",
            json={"status": "CANCELLED", "notes": "Customer left"},
            headers=waiter,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"

        listed = (await client.get("/api/orders?status=CANCELLED", headers=waiter)).json()
        assert [order["id"] for order in listed] == [created["order_id"]]
