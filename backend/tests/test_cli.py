# Overview: Pytest coverage for the users, counters and orders CLI groups.

from storefront.services import identity_service, order_service

CHECKOUT = {
    "userId": "cu000001",
    "items": [{"id": "p1", "name": "Widget", "price": 10, "quantity": 2}],
    "shippingAddress": {"zipCode": "90210", "country": "US"},
}


class TestUserCommands:
    def test_create_user(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=[
            "users", "create", "--email", "Ada@Example.com", "--first-name", "Ada", "--phone", "555-0100",
        ])

        assert result.exit_code == 0
        assert "PASS Created user cu000001 (Ada@Example.com)" in result.output
        user = identity_service.get_user_by_id("cu000001")
        assert user["email"] == "ada@example.com"
        assert user["firstName"] == "Ada"
        assert user["primaryPhone"] == "555-0100"

    def test_create_duplicate_email_fails(self, app, db_session):
        runner = app.test_cli_runner()
        runner.invoke(args=["users", "create", "--email", "a@x.com"])

        result = runner.invoke(args=["users", "create", "--email", "A@x.com"])

        assert "FAIL Failed to create user: Email already exists" in result.output
        assert len(identity_service.list_users()) == 1

    def test_upgrade_and_revert(self, app, db_session):
        runner = app.test_cli_runner()
        runner.invoke(args=["users", "create", "--email", "a@x.com"])

        result = runner.invoke(args=["users", "upgrade", "cu000001"])
        assert "PASS cu000001 is now fr000001" in result.output
        assert identity_service.get_user_by_id("fr000001")["previousId"] == "cu000001"

        result = runner.invoke(args=["users", "revert", "fr000001"])
        assert "PASS fr000001 is now cu000001" in result.output

    def test_upgrade_rejects_franchise_id(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["users", "upgrade", "fr000001"])
        assert "FAIL Failed to upgrade fr000001" in result.output

    def test_list_by_category(self, app, db_session):
        runner = app.test_cli_runner()
        runner.invoke(args=["users", "create", "--email", "a@x.com"])
        runner.invoke(args=["users", "create", "--email", "b@x.com"])
        runner.invoke(args=["users", "upgrade", "cu000002"])

        result = runner.invoke(args=["users", "list", "--category", "franchise"])

        assert "fr000001" in result.output
        assert "b@x.com" in result.output
        assert "a@x.com" not in result.output


class TestCounterAndOrderCommands:
    def test_counters_show(self, app, db_session):
        runner = app.test_cli_runner()
        assert "No counters allocated yet." in runner.invoke(args=["counters", "show"]).output

        identity_service.create_user({"email": "a@x.com"})
        result = runner.invoke(args=["counters", "show"])
        assert "customerCounter" in result.output

    def test_orders_lookup(self, app, db_session):
        placed = order_service.create_order(CHECKOUT)
        runner = app.test_cli_runner()

        result = runner.invoke(args=[
            "orders", "lookup", "--user-id", "cu000001", "--code", placed["orderCode"],
        ])

        assert result.exit_code == 0
        assert placed["orderId"] in result.output
        assert "#1  pending  total=20" in result.output

    def test_orders_lookup_other_user(self, app, db_session):
        placed = order_service.create_order(CHECKOUT)

        result = app.test_cli_runner().invoke(args=[
            "orders", "lookup", "--user-id", "cu000002", "--code", placed["orderCode"],
        ])

        assert "No matching orders." in result.output
