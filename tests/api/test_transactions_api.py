"""
Tests for transaction API endpoints.

These test the HTTP layer: status codes, response format
and the error contract the web form relies on. Business
logic is tested in the service tests.
"""

from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from finance_ledger.config import get_settings
from finance_ledger.exceptions import ConflictError, GENERIC_FAILURE_MESSAGE
from finance_ledger.services.ledger_service import LedgerService

from helpers import OTHER_OWNER, OWNER, payload

HEADERS = {"X-Owner-Id": OWNER}
OTHER_HEADERS = {"X-Owner-Id": OTHER_OWNER}
OPERATOR_HEADERS = {"X-Operator-Token": "cron-secret"}


@pytest.fixture
def operator_token(monkeypatch):
    monkeypatch.setattr(get_settings(), "OPERATOR_TOKEN", "cron-secret")


def create_account(client, name="Main", headers=HEADERS):
    response = client.post("/accounts", json={"name": name, "type": "CURRENT"},
                           headers=headers)
    return response.json()["id"]


def balance(client, account_id, headers=HEADERS):
    return Decimal(client.get(f"/accounts/{account_id}", headers=headers).json()["balance"])


class TestCreateTransaction:

    def test_returns_201_with_account_id(self, client, categories):
        account_id = create_account(client)

        response = client.post("/transactions", json=payload(
            account_id, amount="19.99", date="2024-01-31",
            isRecurring=True, recurringInterval="MONTHLY",
        ), headers=HEADERS)

        assert response.status_code == 201
        data = response.json()
        assert data["accountId"] == account_id
        txn = data["transaction"]
        assert txn["type"] == "EXPENSE"
        assert Decimal(txn["amount"]) == Decimal("19.99")
        assert txn["category"] == "groceries"
        assert txn["isRecurring"] is True
        assert txn["recurringInterval"] == "MONTHLY"
        assert txn["nextOccurrenceAt"] == "2024-02-29"
        assert balance(client, account_id) == Decimal("-19.99")

    def test_every_field_error_returned_at_once(self, client, categories):
        response = client.post("/transactions", json={
            "type": "GIFT",
            "amount": "-5",
            "date": "soon",
            "accountId": "",
            "category": "",
            "isRecurring": True,
        }, headers=HEADERS)

        assert response.status_code == 422
        errors = response.json()["detail"]["errors"]
        assert set(errors) == {
            "type", "amount", "date", "accountId", "category", "recurringInterval",
        }
        assert errors["amount"] == "amount must be greater than 0"

    def test_validation_failure_leaves_balance(self, client, categories):
        account_id = create_account(client)

        client.post("/transactions", json=payload(account_id, amount="0"), headers=HEADERS)

        assert balance(client, account_id) == 0
        listing = client.get(f"/accounts/{account_id}/transactions", headers=HEADERS)
        assert listing.json() == []

    def test_foreign_account_returns_404(self, client, categories):
        theirs = create_account(client, headers=OTHER_HEADERS)

        response = client.post("/transactions", json=payload(theirs), headers=HEADERS)

        assert response.status_code == 404

    def test_store_failure_returns_generic_message(self, client, categories):
        account_id = create_account(client)

        with patch(
            "finance_ledger.services.ledger_service.LedgerService.lock_accounts",
            side_effect=OperationalError("SELECT", {}, Exception("disk I/O error")),
        ):
            response = client.post("/transactions", json=payload(account_id),
                                   headers=HEADERS)

        assert response.status_code == 500
        assert response.json()["detail"] == GENERIC_FAILURE_MESSAGE
        assert "disk" not in response.text

    def test_commit_failure_returns_generic_message(self, client, db_session, categories):
        account_id = create_account(client)

        with patch.object(
            db_session, "commit",
            side_effect=OperationalError("COMMIT", {}, Exception("could not serialize")),
        ):
            response = client.post("/transactions", json=payload(account_id),
                                   headers=HEADERS)

        assert response.status_code == 500
        assert response.json()["detail"] == GENERIC_FAILURE_MESSAGE
        assert balance(client, account_id) == 0

    def test_amount_beyond_storage_precision_returns_422(self, client, categories):
        account_id = create_account(client)

        response = client.post("/transactions", json=payload(account_id, amount="0.00001"),
                               headers=HEADERS)

        assert response.status_code == 422
        assert set(response.json()["detail"]["errors"]) == {"amount"}


class TestUpdateTransaction:

    def test_flip_expense_to_income(self, client, categories):
        account_id = create_account(client)
        created = client.post("/transactions", json=payload(account_id),
                              headers=HEADERS).json()
        txn_id = created["transaction"]["id"]

        response = client.put(f"/transactions/{txn_id}", json=payload(
            account_id, type="INCOME", category="salary",
        ), headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["transaction"]["type"] == "INCOME"
        assert balance(client, account_id) == Decimal("50")

    def test_move_returns_new_account_id(self, client, categories):
        first = create_account(client, "First")
        second = create_account(client, "Second")
        txn_id = client.post("/transactions", json=payload(first),
                             headers=HEADERS).json()["transaction"]["id"]

        response = client.put(f"/transactions/{txn_id}", json=payload(second),
                              headers=HEADERS)

        assert response.json()["accountId"] == second
        assert balance(client, first) == 0
        assert balance(client, second) == Decimal("-50")

    def test_invalid_update_returns_422(self, client, categories):
        account_id = create_account(client)
        txn_id = client.post("/transactions", json=payload(account_id),
                             headers=HEADERS).json()["transaction"]["id"]

        response = client.put(f"/transactions/{txn_id}", json=payload(
            account_id, isRecurring=True,
        ), headers=HEADERS)

        assert response.status_code == 422
        assert response.json()["detail"]["errors"] == {
            "recurringInterval": "recurring interval is required for recurring transactions",
        }

    def test_concurrent_write_returns_409(self, client, categories):
        account_id = create_account(client)
        txn_id = client.post("/transactions", json=payload(account_id),
                             headers=HEADERS).json()["transaction"]["id"]

        with patch.object(
            LedgerService, "update",
            side_effect=ConflictError("Account was modified concurrently; retry"),
        ):
            response = client.put(f"/transactions/{txn_id}", json=payload(
                account_id, amount="75",
            ), headers=HEADERS)

        assert response.status_code == 409
        assert "retry" in response.json()["detail"]
        assert balance(client, account_id) == Decimal("-50")

    def test_missing_transaction_returns_404(self, client, categories):
        account_id = create_account(client)
        response = client.put("/transactions/999", json=payload(account_id),
                              headers=HEADERS)
        assert response.status_code == 404


class TestDeleteAndGet:

    def test_delete_returns_account_id(self, client, categories):
        account_id = create_account(client)
        txn_id = client.post("/transactions", json=payload(account_id),
                             headers=HEADERS).json()["transaction"]["id"]

        response = client.delete(f"/transactions/{txn_id}", headers=HEADERS)

        assert response.status_code == 200
        assert response.json() == {"accountId": account_id}
        assert balance(client, account_id) == 0
        assert client.get(f"/transactions/{txn_id}", headers=HEADERS).status_code == 404

    def test_get_by_other_owner_returns_404(self, client, categories):
        account_id = create_account(client)
        txn_id = client.post("/transactions", json=payload(account_id),
                             headers=HEADERS).json()["transaction"]["id"]

        assert client.get(f"/transactions/{txn_id}", headers=HEADERS).status_code == 200
        assert client.get(f"/transactions/{txn_id}", headers=OTHER_HEADERS).status_code == 404
        assert client.delete(f"/transactions/{txn_id}", headers=OTHER_HEADERS).status_code == 404


class TestScan:

    def test_scan_prefills_form(self, client, categories):
        account_id = create_account(client)

        response = client.post("/transactions/scan", json={
            "extracted": {"amount": "8.25", "description": "Bakery", "merchant": "Bread Co"},
            "payload": payload(account_id),
        }, headers=HEADERS)

        assert response.status_code == 201
        txn = response.json()["transaction"]
        assert Decimal(txn["amount"]) == Decimal("8.25")
        assert txn["description"] == "Bakery"


class TestRunDue:

    def test_materializes_due_occurrences(self, client, categories, operator_token):
        account_id = create_account(client)
        origin = client.post("/transactions", json=payload(
            account_id, amount="10", date="2024-01-31",
            isRecurring=True, recurringInterval="MONTHLY",
        ), headers=HEADERS).json()["transaction"]

        response = client.post("/recurring/run-due", params={"now": "2024-03-31"},
                               headers=OPERATOR_HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        listing = client.get(f"/accounts/{account_id}/transactions", headers=HEADERS).json()
        assert [t["date"] for t in listing] == ["2024-03-29", "2024-02-29", "2024-01-31"]
        assert all(t["originId"] == origin["id"] for t in listing[:2])
        assert balance(client, account_id) == Decimal("-30")

    def test_second_run_creates_nothing(self, client, categories, operator_token):
        account_id = create_account(client)
        client.post("/transactions", json=payload(
            account_id, date="2024-01-01", isRecurring=True, recurringInterval="WEEKLY",
        ), headers=HEADERS)

        client.post("/recurring/run-due", params={"now": "2024-01-20"},
                    headers=OPERATOR_HEADERS)
        response = client.post("/recurring/run-due", params={"now": "2024-01-20"},
                               headers=OPERATOR_HEADERS)

        assert response.json() == {"createdIds": [], "count": 0}

    def test_requires_operator_token(self, client, categories, operator_token):
        response = client.post("/recurring/run-due", params={"now": "2024-01-20"})
        assert response.status_code == 403

        response = client.post("/recurring/run-due", params={"now": "2024-01-20"},
                               headers={"X-Operator-Token": "guess"})
        assert response.status_code == 403

    def test_closed_when_no_token_configured(self, client, categories, monkeypatch):
        monkeypatch.setattr(get_settings(), "OPERATOR_TOKEN", "")

        response = client.post("/recurring/run-due", headers={"X-Operator-Token": ""})

        assert response.status_code == 403

    def test_future_now_rejected(self, client, categories, operator_token):
        account_id = create_account(client)
        client.post("/transactions", json=payload(
            account_id, date="2024-01-15", isRecurring=True, recurringInterval="DAILY",
        ), headers=HEADERS)
        tomorrow = date.today() + timedelta(days=1)

        response = client.post("/recurring/run-due", params={"now": tomorrow.isoformat()},
                               headers=OPERATOR_HEADERS)

        assert response.status_code == 422
        listing = client.get(f"/accounts/{account_id}/transactions", headers=HEADERS).json()
        assert len(listing) == 1
