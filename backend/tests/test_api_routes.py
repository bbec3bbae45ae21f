"""
HTTP-level tests for the REST routers.

Tests verify:
- the diner flow: join, cart, submit, host approval
- identity headers are required and checked
- staff consoles, promotions and public receipts
"""

import pytest

from shared.infrastructure.correlation import actor_from_headers


def guest_headers(guest_id: int) -> dict:
    return {"X-Guest-Id": str(guest_id)}


def staff_headers(profile) -> dict:
    return {"X-Staff-Profile-Id": str(profile.id)}


@pytest.fixture
def joined(client, seed_store, seed_table, seed_products):
    """Alice (host) and Bruno joined through the API."""
    first = client.post("/api/diner/tables/mesa-07-token/join", json={"name": "Alice"}).json()
    second = client.post("/api/diner/tables/mesa-07-token/join", json={"name": "Bruno"}).json()
    return {
        "session_id": first["session"]["id"],
        "host": first["guest"]["id"],
        "guest": second["guest"]["id"],
    }


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["service"] == "rest-api"

    def test_security_headers(self, client):
        response = client.get("/api/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_request_id_echoed(self, client):
        response = client.get("/api/health", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"

        generated = client.get("/api/health").headers["X-Request-ID"]
        assert len(generated) == 32


class TestRequestActor:
    @pytest.mark.parametrize(
        "headers,expected",
        [
            ({"X-Guest-Id": "42"}, "guest:42"),
            ({"X-Staff-Profile-Id": "3", "X-Guest-Id": "42"}, "staff:3"),
            ({"X-Guest-Id": "abc"}, ""),
            ({}, ""),
        ],
    )
    def test_actor_from_headers(self, headers, expected):
        assert actor_from_headers(headers) == expected


class TestDinerFlow:
    def test_join_assigns_host_once(self, client, joined):
        response = client.get(f"/api/diner/sessions/{joined['session_id']}", headers=guest_headers(joined["guest"]))

        body = response.json()
        assert response.status_code == 200
        assert body["host_guest_id"] == joined["host"]
        assert [g["is_host"] for g in body["guests"]] == [True, False]

    def test_unknown_table(self, client, seed_store):
        response = client.post("/api/diner/tables/nope/join", json={"name": "Alice"})
        assert response.status_code == 404

    def test_blank_name_rejected(self, client, seed_table):
        response = client.post("/api/diner/tables/mesa-07-token/join", json={"name": "   "})
        assert response.status_code == 422

    def test_missing_guest_header(self, client, joined):
        response = client.get(f"/api/diner/sessions/{joined['session_id']}/cart")
        assert response.status_code == 403

    def test_outsider_cannot_read_cart(self, client, joined):
        response = client.get(f"/api/diner/sessions/{joined['session_id']}/cart", headers=guest_headers(9999))
        assert response.status_code == 403

    def test_cart_increment_and_shared_view(self, client, joined, seed_products):
        session_id = joined["session_id"]
        url = f"/api/diner/sessions/{session_id}/cart/increment"
        soda = seed_products["soda"].id

        client.post(url, json={"product_id": soda, "delta": 1}, headers=guest_headers(joined["host"]))
        response = client.post(url, json={"product_id": soda, "delta": 2}, headers=guest_headers(joined["host"]))
        client.post(url, json={"product_id": soda, "delta": 1}, headers=guest_headers(joined["guest"]))

        assert response.json()["line"]["qty"] == 3
        cart = client.get(f"/api/diner/sessions/{session_id}/cart", headers=guest_headers(joined["guest"])).json()
        assert sorted(line["qty"] for line in cart["lines"]) == [1, 3]

    def test_decrement_to_zero_removes_line(self, client, joined, seed_products):
        url = f"/api/diner/sessions/{joined['session_id']}/cart/increment"
        soda = seed_products["soda"].id
        headers = guest_headers(joined["host"])

        client.post(url, json={"product_id": soda, "delta": 1}, headers=headers)
        response = client.post(url, json={"product_id": soda, "delta": -1}, headers=headers)

        assert response.json()["line"] is None

    def test_submit_then_approve(self, client, joined, seed_products):
        session_id = joined["session_id"]
        burger = seed_products["burger"].id
        bacon = next(a.id for a in seed_products["burger"].addons if a.name == "Bacon")
        client.post(
            f"/api/diner/sessions/{session_id}/cart/increment",
            json={"product_id": burger, "delta": 2, "addon_ids": [bacon]},
            headers=guest_headers(joined["guest"]),
        )

        submitted = client.post(
            f"/api/diner/sessions/{session_id}/orders", json={}, headers=guest_headers(joined["guest"])
        )
        assert submitted.status_code == 201
        order = submitted.json()
        assert order["approval_status"] == "PENDING_APPROVAL"
        assert order["total_cents"] == 2 * (2500 + 300)

        forbidden = client.post(f"/api/diner/orders/{order['id']}/approve", headers=guest_headers(joined["guest"]))
        assert forbidden.status_code == 403

        approved = client.post(f"/api/diner/orders/{order['id']}/approve", headers=guest_headers(joined["host"]))
        assert approved.status_code == 200
        assert approved.json()["approval_status"] == "APPROVED"
        assert approved.json()["approved_by_guest_id"] == joined["host"]

    def test_approval_keeps_host_cart(self, client, joined, seed_products):
        session_id = joined["session_id"]
        url = f"/api/diner/sessions/{session_id}/cart/increment"
        soda = seed_products["soda"].id
        client.post(url, json={"product_id": soda, "delta": 1}, headers=guest_headers(joined["guest"]))
        order = client.post(
            f"/api/diner/sessions/{session_id}/orders", json={}, headers=guest_headers(joined["guest"])
        ).json()
        client.post(url, json={"product_id": soda, "delta": 2}, headers=guest_headers(joined["host"]))

        client.post(f"/api/diner/orders/{order['id']}/approve", headers=guest_headers(joined["host"]))

        cart = client.get(f"/api/diner/sessions/{session_id}/cart", headers=guest_headers(joined["guest"])).json()
        assert [(line["guest_id"], line["qty"]) for line in cart["lines"]] == [(joined["host"], 2)]

    def test_second_submit_blocked_while_pending(self, client, joined, seed_products):
        session_id = joined["session_id"]
        headers = guest_headers(joined["guest"])
        url = f"/api/diner/sessions/{session_id}/cart/increment"
        soda = seed_products["soda"].id

        client.post(url, json={"product_id": soda, "delta": 1}, headers=headers)
        client.post(f"/api/diner/sessions/{session_id}/orders", json={}, headers=headers)

        blocked_cart = client.post(url, json={"product_id": soda, "delta": 1}, headers=headers)
        blocked_submit = client.post(f"/api/diner/sessions/{session_id}/orders", json={}, headers=headers)

        assert blocked_cart.status_code == 409
        assert blocked_submit.status_code == 409

    def test_empty_cart_submit(self, client, joined):
        response = client.post(
            f"/api/diner/sessions/{joined['session_id']}/orders", json={}, headers=guest_headers(joined["host"])
        )
        assert response.status_code == 400

    def test_non_json_body_rejected(self, client, joined):
        response = client.post(
            f"/api/diner/sessions/{joined['session_id']}/orders",
            content="general_note=x",
            headers={**guest_headers(joined["host"]), "Content-Type": "application/x-www-form-urlencoded"},
        )
        assert response.status_code == 415


class TestStaffRoutes:
    def test_missing_or_inactive_profile(self, client, seed_staff):
        assert client.post("/api/staff/counter-session").status_code == 403
        response = client.post("/api/staff/counter-session", headers=staff_headers(seed_staff["retired"]))
        assert response.status_code == 403

    def test_counter_session_reused(self, client, seed_store, seed_staff):
        headers = staff_headers(seed_staff["waiter"])

        first = client.post("/api/staff/counter-session", headers=headers).json()
        second = client.post("/api/staff/counter-session", headers=headers).json()

        assert first["id"] == second["id"]
        assert first["table_type"] == "COUNTER"

    def test_staff_order_lifecycle(self, client, joined, seed_products, seed_staff):
        headers = staff_headers(seed_staff["waiter"])
        created = client.post(
            "/api/staff/orders",
            json={
                "session_id": joined["session_id"],
                "items": [{"product_id": seed_products["soda"].id, "qty": 2}],
            },
            headers=headers,
        )
        assert created.status_code == 201
        order = created.json()
        assert order["approval_status"] == "APPROVED"
        assert order["origin"] == "WAITER"

        for target in ("PREPARING", "READY"):
            response = client.patch(f"/api/staff/orders/{order['id']}/status", json={"status": target}, headers=headers)
            assert response.json()["status"] == target

        backwards = client.patch(
            f"/api/staff/orders/{order['id']}/status", json={"status": "PREPARING"}, headers=headers
        )
        assert backwards.status_code == 400

    def test_lock_blocks_guest_cart(self, client, joined, seed_products, seed_staff):
        session_id = joined["session_id"]
        locked = client.post(f"/api/staff/sessions/{session_id}/lock", headers=staff_headers(seed_staff["waiter"]))
        assert locked.json()["status"] == "LOCKED"

        response = client.post(
            f"/api/diner/sessions/{session_id}/cart/increment",
            json={"product_id": seed_products["soda"].id, "delta": 1},
            headers=guest_headers(joined["host"]),
        )
        assert response.status_code == 400

    def test_close_session(self, client, joined, seed_staff):
        session_id = joined["session_id"]
        headers = staff_headers(seed_staff["manager"])

        closed = client.post(f"/api/staff/sessions/{session_id}/close", json={"outcome": "FINISH"}, headers=headers)
        again = client.post(f"/api/staff/sessions/{session_id}/close", json={"outcome": "FINISH"}, headers=headers)

        assert closed.json()["status"] == "EXPIRED"
        assert again.status_code == 400

    def test_ticket_and_receipt(self, client, joined, seed_products, seed_staff):
        headers = staff_headers(seed_staff["waiter"])
        order = client.post(
            "/api/staff/orders",
            json={"session_id": joined["session_id"], "items": [{"product_id": seed_products["soda"].id, "qty": 1}]},
            headers=headers,
        ).json()

        ticket = client.get(f"/api/staff/sessions/{joined['session_id']}/ticket", headers=headers).json()
        assert ticket["order_ids"] == [order["id"]]

        token = client.post(f"/api/staff/orders/{order['id']}/receipt-token", headers=headers).json()["receipt_token"]
        receipt = client.get(f"/api/public/receipts/{token}")
        assert receipt.status_code == 200
        assert receipt.json()["total_cents"] == 600

        assert client.get("/api/public/receipts/unknown").status_code == 404


class TestPromotionRoutes:
    def payload(self, product_id: int) -> dict:
        return {
            "name": "Segunda",
            "scope": "PRODUCT",
            "discount_type": "PERCENT",
            "discount_value": 10,
            "weekdays": [1],
            "product_ids": [product_id],
        }

    def test_waiter_cannot_create(self, client, seed_products, seed_staff):
        response = client.post(
            "/api/promotions", json=self.payload(seed_products["burger"].id), headers=staff_headers(seed_staff["waiter"])
        )
        assert response.status_code == 403

    def test_conflict_is_409(self, client, seed_products, seed_staff):
        headers = staff_headers(seed_staff["manager"])
        body = self.payload(seed_products["burger"].id)

        assert client.post("/api/promotions", json=body, headers=headers).status_code == 201
        assert client.post("/api/promotions", json=body, headers=headers).status_code == 409

        listed = client.get("/api/promotions", headers=staff_headers(seed_staff["waiter"])).json()
        assert len(listed) == 1

    def test_menu_is_public(self, client, seed_store, seed_products):
        response = client.get("/api/menu")

        names = [p["name"] for p in response.json()["products"]]
        assert response.status_code == 200
        assert "Pudim" not in names
        assert "X-Burger" in names
