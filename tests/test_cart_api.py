import logging

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import SQLAlchemyError

from app.api.deps import get_operation_context
from app.core.security import create_access_token
from app.main import app
from app.repositories.cart_store import CartStore
from app.services.context import OperationContext

BASE = "/api/v1/cart"


async def _create_cart(client: AsyncClient, headers: dict, user_id: int = 15, items=None) -> dict:
    resp = await client.post(
        BASE,
        json={"user_id": user_id, "line_items": items or []},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_cart_flow(client: AsyncClient, auth_headers: dict):
    cart = await _create_cart(client, auth_headers, items=[{"product_id": 30, "quantity": 2}])
    assert cart["user_id"] == 15
    assert [(i["product_id"], i["quantity"]) for i in cart["line_items"]] == [(30, 2)]
    assert cart["line_items"][0]["cart_id"] == cart["id"]

    # Agregar: el producto existente acumula, el nuevo se inserta
    add_resp = await client.put(
        f"{BASE}/{cart['id']}/items",
        json=[{"product_id": 30, "quantity": 1}, {"product_id": 31, "quantity": 4}],
        headers=auth_headers,
    )
    assert add_resp.status_code == 201, add_resp.text
    added = add_resp.json()
    assert [(i["product_id"], i["quantity"]) for i in added] == [(30, 3), (31, 4)]
    assert added[0]["id"] == cart["line_items"][0]["id"]

    show_resp = await client.get(f"{BASE}/{cart['id']}", headers=auth_headers)
    assert show_resp.status_code == 200
    assert len(show_resp.json()["line_items"]) == 2

    # Quitar una línea
    remove_resp = await client.delete(f"{BASE}/{cart['id']}/items/{added[1]['id']}", headers=auth_headers)
    assert remove_resp.status_code == 204
    assert remove_resp.content == b""

    show_resp = await client.get(f"{BASE}/{cart['id']}", headers=auth_headers)
    assert [i["product_id"] for i in show_resp.json()["line_items"]] == [30]

    # Vaciar conserva el carrito
    empty_resp = await client.delete(f"{BASE}/{cart['id']}", headers=auth_headers)
    assert empty_resp.status_code == 204

    show_resp = await client.get(f"{BASE}/{cart['id']}", headers=auth_headers)
    assert show_resp.status_code == 200
    assert show_resp.json()["line_items"] == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {},
        {"user_id": 0},
        {"user_id": 5, "line_items": [{"product_id": 1, "quantity": 0}]},
        {"user_id": 5, "line_items": [{"product_id": 1}]},
    ],
)
async def test_create_cart_rejects_invalid_body(client: AsyncClient, auth_headers: dict, body: dict):
    resp = await client.post(BASE, json=body, headers=auth_headers)
    assert resp.status_code == 422, resp.text


@pytest.mark.asyncio
async def test_invalid_path_ids(client: AsyncClient, auth_headers: dict):
    assert (await client.get(f"{BASE}/0", headers=auth_headers)).status_code == 422
    assert (await client.get(f"{BASE}/abc", headers=auth_headers)).status_code == 422
    assert (await client.delete(f"{BASE}/1/items/0", headers=auth_headers)).status_code == 422


@pytest.mark.asyncio
async def test_missing_cart(client: AsyncClient, auth_headers: dict):
    show_resp = await client.get(f"{BASE}/999", headers=auth_headers)
    assert show_resp.status_code == 404
    assert show_resp.json()["detail"] == "Cart 999 not found"

    add_resp = await client.put(
        f"{BASE}/999/items",
        json=[{"product_id": 1, "quantity": 1}],
        headers=auth_headers,
    )
    assert add_resp.status_code == 404


@pytest.mark.asyncio
async def test_remove_is_idempotent(client: AsyncClient, auth_headers: dict):
    cart = await _create_cart(client, auth_headers)

    missing_item = await client.delete(f"{BASE}/{cart['id']}/items/4242", headers=auth_headers)
    assert missing_item.status_code == 204

    missing_cart = await client.delete(f"{BASE}/4242/items/1", headers=auth_headers)
    assert missing_cart.status_code == 204


@pytest.mark.asyncio
async def test_auth_is_required(client: AsyncClient):
    no_token = await client.get(f"{BASE}/1")
    assert no_token.status_code == 401

    bad_token = await client.get(f"{BASE}/1", headers={"Authorization": "Bearer not-a-jwt"})
    assert bad_token.status_code == 403

    valid = create_access_token(subject="x")
    ok = await client.get(f"{BASE}/1", headers={"Authorization": f"Bearer {valid}"})
    assert ok.status_code == 404


@pytest.mark.asyncio
async def test_cancelled_request_maps_to_timeout(client: AsyncClient, auth_headers: dict):
    def _expired() -> OperationContext:
        return OperationContext.with_timeout(0)

    app.dependency_overrides[get_operation_context] = _expired

    resp = await client.post(BASE, json={"user_id": 15}, headers=auth_headers)
    assert resp.status_code == 408

    resp = await client.delete(f"{BASE}/1/items/1", headers=auth_headers)
    assert resp.status_code == 408


@pytest.mark.asyncio
async def test_storage_failure_maps_to_server_error(client: AsyncClient, auth_headers: dict, monkeypatch, caplog):
    async def _fail(self, cart_id):
        raise SQLAlchemyError("database is locked")

    monkeypatch.setattr(CartStore, "cart_with_items", _fail)

    with caplog.at_level(logging.ERROR, logger="app.storage"):
        resp = await client.get(f"{BASE}/1", headers={**auth_headers, "x-request-id": "req-500"})

    assert resp.status_code == 500
    assert resp.json() == {"detail": "Internal server error"}
    [alert] = [r for r in caplog.records if r.name == "app.storage"]
    assert alert.alert is True
    assert (alert.phase, alert.cart_id, alert.request_id) == ("cart", "1", "req-500")


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient, auth_headers: dict):
    resp = await client.get(f"{BASE}/1", headers={**auth_headers, "x-request-id": "abc-123"})
    assert resp.headers["x-request-id"] == "abc-123"

    resp = await client.get("/")
    assert resp.status_code == 200
    assert resp.headers["x-request-id"]
