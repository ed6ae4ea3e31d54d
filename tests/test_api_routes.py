import pytest
from decimal import Decimal
from datetime import datetime, timezone
from types import SimpleNamespace
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, patch
from uuid import uuid4
from saga_ledger.core.exceptions import AccountAlreadyExistsError, AccountNotFoundError, ConcurrencyConflictError
from saga_ledger.main import orders_app, payments_app
from saga_ledger.models.order import OrderStatus

# No context manager: the lifespan (database and broker) is not started
orders_client = TestClient(orders_app)
payments_client = TestClient(payments_app)


def _order(order_id=1, user_id=None, amount="100.00", status=OrderStatus.PAYMENT_PENDING):
    return SimpleNamespace(
        id=order_id,
        user_id=user_id or uuid4(),
        amount=Decimal(amount),
        status=status,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def test_create_order_success():
    user_id = uuid4()
    with patch('saga_ledger.api.v1.orders.place_order', new_callable=AsyncMock) as mock_place:
        mock_place.return_value = _order(order_id=12, user_id=user_id, amount="100.00")
        response = orders_client.post("/api/v1/orders/", json={"user_id": str(user_id), "amount": "100.00"})

    assert response.status_code == 202
    body = response.json()
    assert body["success"] is True
    assert body["data"]["order_id"] == 12
    assert body["data"]["status"] == "PaymentPending"
    mock_place.assert_awaited_once_with(user_id=user_id, amount=Decimal("100.00"))


@pytest.mark.parametrize("amount", ["0", "-1.00", "1.005"])
def test_create_order_invalid_amount(amount):
    response = orders_client.post("/api/v1/orders/", json={"user_id": str(uuid4()), "amount": amount})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "validation_error"


def test_get_order_not_found():
    with patch('saga_ledger.api.v1.orders.get_order_by_id', new_callable=AsyncMock, return_value=None):
        response = orders_client.get("/api/v1/orders/999")

    assert response.status_code == 404
    assert response.json()["success"] is False
    assert response.json()["error"]["message"] == "Order not found"


def test_get_order_returns_status():
    order = _order(order_id=5, status=OrderStatus.PAYMENT_FAILED)
    with patch('saga_ledger.api.v1.orders.get_order_by_id', new_callable=AsyncMock, return_value=order):
        response = orders_client.get("/api/v1/orders/5")

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "PaymentFailed"
    assert response.json()["data"]["amount"] == "100.00"


def test_list_orders_for_user():
    user_id = uuid4()
    with patch('saga_ledger.api.v1.orders.list_orders', new_callable=AsyncMock) as mock_list:
        mock_list.return_value = [_order(order_id=2, user_id=user_id), _order(order_id=1, user_id=user_id)]
        response = orders_client.get("/api/v1/orders/", params={"user_id": str(user_id)})

    assert response.status_code == 200
    assert [o["id"] for o in response.json()["data"]["orders"]] == [2, 1]
    mock_list.assert_awaited_once_with(user_id)


def test_create_account_created():
    user_id = uuid4()
    account = SimpleNamespace(id=1, user_id=user_id, balance=Decimal("0"))
    with patch('saga_ledger.api.v1.accounts.create_account', new_callable=AsyncMock, return_value=account):
        response = payments_client.post("/api/v1/accounts/", json={"user_id": str(user_id)})

    assert response.status_code == 201
    assert response.json()["data"]["user_id"] == str(user_id)


def test_create_account_twice():
    with patch('saga_ledger.api.v1.accounts.create_account', new_callable=AsyncMock,
               side_effect=AccountAlreadyExistsError("Account already exists")):
        response = payments_client.post("/api/v1/accounts/", json={"user_id": str(uuid4())})

    assert response.status_code == 400


def test_deposit_returns_new_balance():
    user_id = uuid4()
    account = SimpleNamespace(id=1, user_id=user_id, balance=Decimal("150.00"))
    with patch('saga_ledger.api.v1.accounts.deposit', new_callable=AsyncMock, return_value=account):
        response = payments_client.post("/api/v1/accounts/deposit",
                                        json={"user_id": str(user_id), "amount": "100.00"})

    assert response.status_code == 200
    assert response.json()["data"]["balance"] == "150.00"


@pytest.mark.parametrize("error, expected_status", [
    (AccountNotFoundError("Account not found"), 404),
    (ConcurrencyConflictError("Concurrency conflict occurred"), 409),
])
def test_deposit_errors(error, expected_status):
    with patch('saga_ledger.api.v1.accounts.deposit', new_callable=AsyncMock, side_effect=error):
        response = payments_client.post("/api/v1/accounts/deposit",
                                        json={"user_id": str(uuid4()), "amount": "10.00"})

    assert response.status_code == expected_status
    assert response.json()["error"]["message"] == str(error)


def test_get_unknown_balance():
    with patch('saga_ledger.api.v1.accounts.get_account', new_callable=AsyncMock,
               side_effect=AccountNotFoundError("Account not found")):
        response = payments_client.get(f"/api/v1/accounts/{uuid4()}")

    assert response.status_code == 404


def test_order_routes_live_only_on_orders_service():
    response = payments_client.get("/api/v1/orders/1")

    assert response.status_code == 404
