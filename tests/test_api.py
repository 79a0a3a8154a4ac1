"""HTTP API tests (FastAPI TestClient, in-memory components)."""

import pytest
from fastapi.testclient import TestClient

from app.main import GENERIC_MESSAGE, UNAVAILABLE_MESSAGE, UNPARSEABLE_MESSAGE, create_app
from splitmate.errors import (
    ConsistencyError,
    InterpreterResponseError,
    InterpreterUnavailableError,
)


@pytest.fixture
def client(components):
    return TestClient(create_app(components))


def _as(user):
    return {"X-User-Id": str(user.id)}


DINNER = {"amount": 300, "reason": "dinner", "payer": "me", "members": ["Alice"]}


class TestProcessCommand:
    """Tests for /api/process-command."""

    def test_success_shape(self, client, interpreter, people):
        """Test the success response for a two-person dinner."""
        interpreter.reply = DINNER

        response = client.post(
            "/api/process-command",
            json={"command": "Paid 300 for dinner with Alice"},
            headers=_as(people["john"]),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "You paid ₹300.00 for dinner split among 2 people (₹150.00 each)"
        data = body["data"]
        assert data["amount"] == 300.0
        assert data["reason"] == "dinner"
        assert data["members"] == ["Alice"]
        assert data["payer"] == "me"
        assert data["totalMembers"] == 2
        assert data["splitAmount"] == 150.0
        assert data["expenseId"]

    def test_balances_after_command(self, client, interpreter, people):
        """Test that the balance endpoints reflect the new expense."""
        interpreter.reply = DINNER
        client.post(
            "/api/process-command",
            json={"command": "dinner with Alice"},
            headers=_as(people["john"]),
        )

        mine = client.get("/api/balances/me", headers=_as(people["john"])).json()
        everyone = client.get("/api/balances", headers=_as(people["alice"])).json()

        assert mine["amount"] == "150.00"
        assert {b["user_id"]: b["amount"] for b in everyone} == {
            str(people["john"].id): "150.00",
            str(people["alice"].id): "-150.00",
        }

    @pytest.mark.parametrize("headers", [{}, {"X-User-Id": "not-a-uuid"}, {"X-User-Id": "00000000-0000-0000-0000-000000000000"}])
    def test_requires_known_user(self, client, people, headers):
        """Test that missing or unknown users get 401."""
        response = client.post("/api/process-command", json={"command": "x"}, headers=headers)

        assert response.status_code == 401
        assert "Unauthorized" in response.json()["error"]

    def test_missing_command(self, client, people):
        """Test that an empty body is a 400 with a corrective message."""
        response = client.post("/api/process-command", json={}, headers=_as(people["john"]))

        assert response.status_code == 400
        assert response.json() == {"error": "Command is required and must be a non-empty string"}

    def test_unknown_member(self, client, interpreter, people):
        """Test that unresolved names list the available users."""
        interpreter.reply = {"amount": 300, "reason": "dinner", "members": ["Zed"]}

        response = client.post(
            "/api/process-command",
            json={"command": "dinner with Zed"},
            headers=_as(people["john"]),
        )

        assert response.status_code == 400
        assert "Users not found: Zed" in response.json()["error"]
        assert "Alice Smith" in response.json()["error"]

    @pytest.mark.parametrize("error, status, message", [
        (InterpreterResponseError("fake", "garbage"), 400, UNPARSEABLE_MESSAGE),
        (InterpreterUnavailableError("fake", "down"), 503, UNAVAILABLE_MESSAGE),
    ])
    def test_interpreter_errors(self, client, interpreter, people, error, status, message):
        """Test the status codes for interpreter failures."""
        interpreter.error = error

        response = client.post(
            "/api/process-command",
            json={"command": "dinner with Alice"},
            headers=_as(people["john"]),
        )

        assert response.status_code == status
        assert response.json() == {"error": message}

    def test_internal_errors_are_generic(self, client, interpreter, people):
        """Test that internal failures never leak their message."""
        interpreter.error = ConsistencyError("balance row 7 is corrupt")

        response = client.post(
            "/api/process-command",
            json={"command": "dinner with Alice"},
            headers=_as(people["john"]),
        )

        assert response.status_code == 500
        assert "corrupt" not in response.json()["error"]

    def test_unexpected_errors_are_json(self, components, interpreter, people):
        """Test that an exception outside the domain taxonomy still renders as {error}."""
        interpreter.error = RuntimeError("socket closed mid-read")
        client = TestClient(create_app(components), raise_server_exceptions=False)

        response = client.post(
            "/api/process-command",
            json={"command": "dinner with Alice"},
            headers=_as(people["john"]),
        )

        assert response.status_code == 500
        assert response.json() == {"error": GENERIC_MESSAGE}

    def test_usage_info(self, client):
        """Test GET returns usage information."""
        body = client.get("/api/process-command").json()

        assert body["message"] == "AI Expense Processing API"
        assert body["status"] == "active"
        assert body["endpoints"]["examples"]

    @pytest.mark.parametrize("method", ["put", "patch", "delete"])
    def test_other_methods_not_allowed(self, client, method):
        """Test that other methods get 405."""
        response = client.request(method.upper(), "/api/process-command")

        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}


class TestLedgerEndpoints:
    """Tests for the structured expense, group and settlement endpoints."""

    def test_health(self, client):
        """Test the health check."""
        assert client.get("/health").json() == {"status": "ok"}

    def test_register_user(self, client, people):
        """Test signup and duplicate email rejection."""
        created = client.post("/api/users", json={"name": "Dev", "email": "dev@example.com"})
        duplicate = client.post("/api/users", json={"name": "Dev 2", "email": "dev@example.com"})

        assert created.status_code == 201
        assert created.json()["name"] == "Dev"
        assert duplicate.status_code == 400

    def test_create_and_delete_expense(self, client, people):
        """Test that only the payer or creator may delete."""
        john, alice = people["john"], people["alice"]
        created = client.post(
            "/api/expenses",
            json={
                "description": "Dinner",
                "amount": "300",
                "participants": [{"userId": str(john.id)}, {"userId": str(alice.id)}],
            },
            headers=_as(john),
        )
        assert created.status_code == 201
        expense_id = created.json()["expenseId"]

        forbidden = client.delete(f"/api/expenses/{expense_id}", headers=_as(alice))
        assert forbidden.status_code == 403
        assert forbidden.json() == {"error": "You don't have permission to delete this expense"}

        deleted = client.delete(f"/api/expenses/{expense_id}", headers=_as(john))
        assert deleted.status_code == 200
        assert client.get("/api/balances/me", headers=_as(john)).json()["amount"] == "0.00"

    def test_split_mismatch_is_400(self, client, people):
        """Test that exact splits not adding up are rejected."""
        john, alice = people["john"], people["alice"]
        response = client.post(
            "/api/expenses",
            json={
                "description": "Dinner",
                "amount": "300",
                "splitType": "exact",
                "participants": [
                    {"userId": str(john.id), "amount": "100"},
                    {"userId": str(alice.id), "amount": "150"},
                ],
            },
            headers=_as(john),
        )
        assert response.status_code == 400
        assert "must sum to the total" in response.json()["error"]

    def test_amount_beyond_precision_is_400(self, client, people):
        """Test that an unquantizable amount is rejected as bad input on both write endpoints."""
        john, alice = people["john"], people["alice"]

        expense = client.post(
            "/api/expenses",
            json={
                "description": "Typo",
                "amount": "1e30",
                "participants": [{"userId": str(john.id)}, {"userId": str(alice.id)}],
            },
            headers=_as(john),
        )
        settlement = client.post(
            "/api/settlements",
            json={"amount": "1e30", "receivedByUserId": str(john.id)},
            headers=_as(alice),
        )

        for response in (expense, settlement):
            assert response.status_code == 400
            assert "too large" in response.json()["error"]

    def test_group_financials_and_settlement(self, client, people):
        """Test the group view after an expense and a settlement."""
        john, alice, carol = people["john"], people["alice"], people["carol"]
        group = client.post(
            "/api/groups",
            json={"name": "Flat", "memberIds": [str(alice.id)]},
            headers=_as(john),
        ).json()

        client.post(
            "/api/expenses",
            json={
                "description": "Rent",
                "amount": "1000",
                "groupId": group["id"],
                "participants": [{"userId": str(john.id)}, {"userId": str(alice.id)}],
            },
            headers=_as(john),
        )
        settlement = client.post(
            "/api/settlements",
            json={"amount": "200", "receivedByUserId": str(john.id), "groupId": group["id"]},
            headers=_as(alice),
        )
        assert settlement.status_code == 201

        view = client.get(f"/api/groups/{group['id']}/financials", headers=_as(john))
        assert view.status_code == 200
        balances = {b["user_id"]: b for b in view.json()["balances"]}

        assert balances[str(john.id)]["total_balance"] == "300.00"
        assert balances[str(john.id)]["owed_by"] == [{"from": str(alice.id), "amount": "300.00"}]
        assert balances[str(alice.id)]["owes"] == [{"to": str(john.id), "amount": "300.00"}]

        outsider = client.get(f"/api/groups/{group['id']}/financials", headers=_as(carol))
        assert outsider.status_code == 403

    def test_expenses_with_other_user(self, client, interpreter, people):
        """Test the one-on-one history endpoint."""
        interpreter.reply = DINNER
        client.post("/api/process-command", json={"command": "dinner"}, headers=_as(people["john"]))

        response = client.get(
            f"/api/expenses/with/{people['alice'].id}", headers=_as(people["john"])
        )

        assert response.status_code == 200
        assert response.json()["balance"] == "150.00"
        assert len(response.json()["expenses"]) == 1
