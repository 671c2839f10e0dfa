"""HTTP boundary: auth gating, status codes and error bodies of the order endpoints."""
from shared.security import OPERATOR_ROLE

IMAGE = "https://res.cloudinary.com/demo/image/upload/v1700000000/stickers/fox.png"


async def create(client, headers, size_id=2, quantity=2):
    resp = await client.post(
        "/orders/", json={"image_url": IMAGE, "size_id": size_id, "quantity": quantity}, headers=headers
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestAuthentication:
    async def test_missing_token(self, client):
        resp = await client.get("/orders/")

        assert resp.status_code == 401
        assert resp.json()["error"] == "unauthorized"
        assert resp.headers["www-authenticate"] == "Bearer"

    async def test_garbage_token(self, client):
        resp = await client.get("/orders/", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    async def test_public_endpoints(self, client):
        assert (await client.get("/orders/health")).json()["status"] == "running"

        sizes = (await client.get("/orders/sizes")).json()
        assert [s["label"] for s in sizes] == ['2" x 2"', '3" x 3"', '4" x 4"']
        assert sizes[1]["unit_price"] == 3.99


class TestOrdersApi:
    async def test_create_and_list(self, client, auth_headers):
        alice = auth_headers("user-a")
        order = await create(client, alice)

        assert order["total"] == 7.98
        assert order["status"] == "draft"

        listed = (await client.get("/orders/", headers=alice)).json()
        assert [o["id"] for o in listed] == [order["id"]]

        other = (await client.get("/orders/", headers=auth_headers("user-b"))).json()
        assert other == []

    async def test_client_cannot_set_price(self, client, auth_headers):
        resp = await client.post(
            "/orders/",
            json={"image_url": IMAGE, "size_id": 1, "quantity": 1, "total": 0.01, "unit_price": 0.01},
            headers=auth_headers("user-a"),
        )

        assert resp.json()["total"] == 2.99

    async def test_invalid_quantity(self, client, auth_headers):
        resp = await client.post(
            "/orders/", json={"image_url": IMAGE, "size_id": 1, "quantity": 0}, headers=auth_headers("user-a")
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_input"

    async def test_malformed_body(self, client, auth_headers):
        resp = await client.post("/orders/", json={"image_url": IMAGE, "quantity": "lots"}, headers=auth_headers("user-a"))

        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_input"

    async def test_edit_draft(self, client, auth_headers):
        alice = auth_headers("user-a")
        order = await create(client, alice)

        resp = await client.patch(f"/orders/{order['id']}", json={"quantity": 4}, headers=alice)

        assert resp.status_code == 200
        assert resp.json()["total"] == 15.96

    async def test_owner_cannot_change_status(self, client, auth_headers):
        alice = auth_headers("user-a")
        order = await create(client, alice)

        resp = await client.patch(f"/orders/{order['id']}/status", json={"status": "completed"}, headers=alice)

        assert resp.status_code == 403

    async def test_operator_lists_all_and_filters(self, client, auth_headers):
        await create(client, auth_headers("user-a"))
        await create(client, auth_headers("user-b"))
        operator = auth_headers("ops", roles=[OPERATOR_ROLE])

        everything = (await client.get("/orders/", headers=operator)).json()
        assert {o["user_id"] for o in everything} == {"user-a", "user-b"}

        completed = (await client.get("/orders/", params={"status": "completed"}, headers=operator)).json()
        assert completed == []

    async def test_delete_reports_asset_result(self, client, auth_headers, assets):
        alice = auth_headers("user-a")
        order = await create(client, alice)
        assets.delete_result = False

        resp = await client.delete(f"/orders/{order['id']}", headers=alice)

        assert resp.status_code == 200
        assert resp.json()["asset_deleted"] is False
        assert (await client.get("/orders/", headers=alice)).json() == []

    async def test_delete_foreign_order_is_not_found(self, client, auth_headers):
        order = await create(client, auth_headers("user-a"))

        resp = await client.delete(f"/orders/{order['id']}", headers=auth_headers("user-b"))

        assert resp.status_code == 404


class TestCheckoutApi:
    async def test_checkout_confirm_and_fulfil(self, client, auth_headers, gateway):
        alice = auth_headers("user-a")
        order = await create(client, alice)

        resp = await client.post("/orders/checkout", json={"order_ids": [order["id"]]}, headers=alice)
        assert resp.status_code == 200
        checkout = resp.json()
        assert checkout["amount"] == 798
        assert checkout["currency"] == "usd"

        gateway.succeed(checkout["authorization_id"])
        resp = await client.post(
            "/orders/checkout/confirm", json={"authorization_id": checkout["authorization_id"]}, headers=alice
        )
        assert resp.json() == {"updated_count": 1}

        again = await client.post(
            "/orders/checkout/confirm", json={"authorization_id": checkout["authorization_id"]}, headers=alice
        )
        assert again.status_code == 404
        assert again.json()["updated_count"] == 0

        operator = auth_headers("ops", roles=[OPERATOR_ROLE])
        resp = await client.patch(f"/orders/{order['id']}/status", json={"status": "completed"}, headers=operator)
        assert resp.status_code == 200
        assert resp.json()["status"] == "completed"

    async def test_confirm_by_another_user_is_rejected(self, client, auth_headers, gateway):
        alice = auth_headers("user-a")
        order = await create(client, alice)
        checkout = (await client.post("/orders/checkout", json={"order_ids": [order["id"]]}, headers=alice)).json()
        gateway.succeed(checkout["authorization_id"])

        resp = await client.post(
            "/orders/checkout/confirm",
            json={"authorization_id": checkout["authorization_id"]},
            headers=auth_headers("user-b"),
        )

        assert resp.status_code == 404
        listed = (await client.get("/orders/", headers=alice)).json()
        assert listed[0]["status"] == "draft"

    async def test_unpaid_confirmation(self, client, auth_headers):
        alice = auth_headers("user-a")
        order = await create(client, alice)
        checkout = (await client.post("/orders/checkout", json={"order_ids": [order["id"]]}, headers=alice)).json()

        resp = await client.post(
            "/orders/checkout/confirm", json={"authorization_id": checkout["authorization_id"]}, headers=alice
        )

        assert resp.status_code == 400
        assert resp.json()["detail"] == "Payment not successful"

    async def test_upstream_error_is_generic(self, client, auth_headers, gateway):
        alice = auth_headers("user-a")
        order = await create(client, alice)
        gateway.fail_create = True

        resp = await client.post("/orders/checkout", json={"order_ids": [order["id"]]}, headers=alice)

        assert resp.status_code == 502
        assert "stripe" not in resp.json()["detail"].lower()
