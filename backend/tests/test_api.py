# Overview: Pytest coverage for the HTTP layer: status codes, error bodies, pagination and JSON shapes.

from decimal import Decimal

from printshop.models import Invoice


def _create_invoice(client, supplier_id, customer_id=None):
    return client.post('/api/invoices', json={
        "customer_id": customer_id,
        "discount": "10",
        "items": [
            {
                "product_name": "Flyer A5",
                "quantity": 2,
                "unit_price": 50,
                "costs": [{"supplier_id": supplier_id, "cost_type": "printing", "amount": "20"}],
            },
            {"product_name": "Business cards", "quantity": 1, "unit_price": "30"},
        ],
    })


class TestHealth:
    def test_health(self, client, db_session):
        response = client.get('/api/health')
        assert response.status_code == 200
        assert response.json["checks"]["database"]["status"] == "healthy"


class TestInvoiceApi:
    def test_create_pay_and_read(self, client, db_session, balance, supplier, customer):
        response = _create_invoice(client, supplier.id, customer.id)
        assert response.status_code == 201
        body = response.json
        assert body["subtotal"] == "130.00"
        assert body["total"] == "120.00"
        assert body["total_cost"] == "20.00"
        assert body["profit"] == "100.00"
        assert body["customer_name"] == customer.name
        assert len(body["items"]) == 2
        assert body["items"][0]["costs"][0]["supplier_name"] == "Supplier X"

        invoice_id = body["id"]
        response = client.post(f'/api/invoices/{invoice_id}/payments', json={
            "amount": "120.00", "payment_method": "cash", "payment_type": "full",
        })
        assert response.status_code == 201
        assert response.json["invoice"]["remaining_amount"] == "0.00"
        assert response.json["payment"]["amount"] == "120.00"

        response = client.get('/api/cash/balance')
        assert response.json["cash_balance"] == "120.00"
        assert response.json["total_balance"] == "120.00"

        response = client.get(f'/api/invoices/{invoice_id}')
        assert response.status_code == 200
        assert len(response.json["payments"]) == 1

    def test_validation_error_body(self, client, db_session, balance):
        response = client.post('/api/invoices', json={
            "items": [{"quantity": 1, "unit_price": "10"}, {"quantity": "abc", "unit_price": "10"}],
        })
        assert response.status_code == 422
        assert "items.1.quantity" in response.json["fields"]
        assert db_session.query(Invoice).count() == 0

    def test_overpayment_is_422(self, client, db_session, balance, supplier):
        invoice_id = _create_invoice(client, supplier.id).json["id"]
        response = client.post(f'/api/invoices/{invoice_id}/payments', json={
            "amount": "500", "payment_method": "cash", "payment_type": "full",
        })
        assert response.status_code == 422
        assert "amount" in response.json["fields"]

    def test_delete_with_payment_is_409(self, client, db_session, balance, supplier):
        invoice_id = _create_invoice(client, supplier.id).json["id"]
        client.post(f'/api/invoices/{invoice_id}/payments', json={
            "amount": "10", "payment_method": "bank", "payment_type": "deposit",
        })
        response = client.delete(f'/api/invoices/{invoice_id}')
        assert response.status_code == 409

    def test_status_workflow(self, client, db_session, balance, supplier):
        invoice_id = _create_invoice(client, supplier.id).json["id"]
        response = client.patch(f'/api/invoices/{invoice_id}/status', json={"status": "ready"})
        assert response.status_code == 200
        assert response.json["status"] == "ready"

        response = client.patch(f'/api/invoices/{invoice_id}/status', json={"status": "new"})
        assert response.status_code == 422

    def test_quantity_beyond_storage_is_422(self, client, db_session, balance):
        response = client.post('/api/invoices', json={
            "items": [{"quantity": "99999999999999999999", "unit_price": "9999999999"}],
        })
        assert response.status_code == 422
        assert "items.0.quantity" in response.json["fields"]

    def test_line_total_above_money_limit_is_422(self, client, db_session, balance):
        response = client.post('/api/invoices', json={
            "items": [{"quantity": "1000000", "unit_price": "9999999"}],
        })
        assert response.status_code == 422
        assert "items.0.quantity" in response.json["fields"]
        assert db_session.query(Invoice).count() == 0

    def test_missing_invoice_is_404(self, client, db_session):
        assert client.get('/api/invoices/4040').status_code == 404

    def test_pagination_is_clamped(self, client, db_session, balance, supplier):
        for _ in range(3):
            _create_invoice(client, supplier.id)
        response = client.get('/api/invoices?limit=2&offset=-5')
        assert response.status_code == 200
        assert response.json["count"] == 3
        assert response.json["limit"] == 2
        assert response.json["offset"] == 0
        assert len(response.json["items"]) == 2

        response = client.get('/api/invoices?limit=100000')
        assert response.json["limit"] == 500


class TestCashApi:
    def test_transfer_flow(self, client, db_session, balance):
        client.post('/api/cash/set-initial', json={"cash_balance": "100", "bank_balance": "0"})
        response = client.post('/api/cash/transfer', json={"from": "cash", "to": "bank", "amount": "50"})
        assert response.status_code == 201
        assert response.json["balance"]["cash_balance"] == "50.00"
        assert response.json["balance"]["bank_balance"] == "50.00"

        response = client.post('/api/cash/transfer', json={"from": "bank", "to": "bank", "amount": "5"})
        assert response.status_code == 422

        response = client.get('/api/cash/movements?source=cash')
        assert response.json["count"] == 2

        response = client.get('/api/cash/reconcile')
        assert response.json["balanced"] is True

    def test_adjust(self, client, db_session, balance):
        response = client.post('/api/cash/adjust', json={
            "source": "cash", "amount": "-25.00", "description": "Till count difference",
        })
        assert response.status_code == 201
        assert response.json["movement"]["movement_type"] == "expense"
        assert response.json["movement"]["amount"] == "-25.00"
        assert response.json["balance"]["cash_balance"] == "-25.00"

        response = client.post('/api/cash/adjust', json={"source": "bank", "amount": "10"})
        assert response.status_code == 422
        assert "description" in response.json["fields"]

        assert client.get('/api/cash/reconcile').json["balanced"] is True


class TestSupplierApi:
    def test_supplier_payable_roundtrip(self, client, db_session, balance):
        response = client.post('/api/suppliers', json={"name": "Print House", "type": "printer"})
        assert response.status_code == 201
        supplier_id = response.json["id"]

        _create_invoice(client, supplier_id)
        response = client.get(f'/api/suppliers/{supplier_id}')
        assert response.json["supplier"]["total_debt"] == "20.00"
        cost_id = response.json["unpaid_costs"][0]["id"]

        response = client.patch(f'/api/suppliers/{supplier_id}/costs/{cost_id}', json={"is_paid": True})
        assert response.status_code == 200
        assert response.json["supplier"]["total_debt"] == "0.00"

        response = client.post(f'/api/suppliers/{supplier_id}/payments', json={"amount": "5", "payment_method": "cash"})
        assert response.status_code == 201
        assert Decimal(response.json["supplier"]["total_debt"]) == Decimal("-5.00")

    def test_unknown_field_rejected(self, client, db_session):
        response = client.post('/api/suppliers', json={"name": "X", "total_debt": "100"})
        assert response.status_code == 422


class TestDebtAndInventoryApi:
    def test_debt_repay(self, client, db_session, balance):
        response = client.post('/api/debts', json={"debtor_name": "Sam", "source": "cash", "amount": "40"})
        assert response.status_code == 201
        debt_id = response.json["id"]

        response = client.post(f'/api/debts/{debt_id}/repay', json={"amount": "40", "payment_method": "cash"})
        assert response.status_code == 201
        assert response.json["debt"]["is_paid"] is True
        assert response.json["debt"]["remaining_amount"] == "0.00"

    def test_remove_stock_conflict(self, client, db_session):
        response = client.post('/api/inventory', json={"name": "Ink cyan", "unit": "bottle", "current_quantity": 5})
        assert response.status_code == 201
        item_id = response.json["id"]

        response = client.post(f'/api/inventory/{item_id}/remove-stock', json={"quantity": 10})
        assert response.status_code == 409
        assert client.get(f'/api/inventory/{item_id}').json["current_quantity"] == "5.000"


class TestDashboardApi:
    def test_dashboard_and_charts(self, client, db_session, balance):
        assert client.get('/api/dashboard').status_code == 200
        assert client.get('/api/dashboard/charts?days=7').status_code == 200
        assert client.get('/api/dashboard/charts?days=0').status_code == 422


class TestCustomerApi:
    def test_crud_and_search(self, client, db_session):
        response = client.post('/api/customers', json={"name": "Nile Bakery", "phone": "0100000009"})
        assert response.status_code == 201
        customer_id = response.json["id"]

        response = client.put(f'/api/customers/{customer_id}', json={"address": "12 Market St"})
        assert response.status_code == 200
        assert response.json["address"] == "12 Market St"

        response = client.get('/api/customers?search=0100000009')
        assert response.json["count"] == 1

        response = client.delete(f'/api/customers/{customer_id}')
        assert response.status_code == 200
        assert response.json["is_active"] is False
        assert client.get('/api/customers').json["count"] == 0
        assert client.get('/api/customers?include_inactive=true').json["count"] == 1

    def test_blank_name_is_422(self, client, db_session):
        response = client.post('/api/customers', json={"name": "   "})
        assert response.status_code == 422
        assert "name" in response.json["fields"]

    def test_receivable_summary_excludes_cancelled(self, client, db_session, balance, supplier, customer):
        invoice_id = _create_invoice(client, supplier.id, customer.id).json["id"]
        client.post(f'/api/invoices/{invoice_id}/payments', json={
            "amount": "50", "payment_method": "cash", "payment_type": "deposit",
        })
        cancelled_id = client.post('/api/invoices', json={
            "customer_id": customer.id, "items": [{"quantity": 1, "unit_price": "999"}],
        }).json["id"]
        client.patch(f'/api/invoices/{cancelled_id}/status', json={"status": "cancelled"})

        response = client.get(f'/api/customers/{customer.id}')
        assert response.status_code == 200
        summary = response.json["summary"]
        assert summary["invoices_count"] == 1
        assert summary["total_amount"] == "120.00"
        assert summary["paid_amount"] == "50.00"
        assert summary["remaining_amount"] == "70.00"
        assert len(response.json["invoices"]) == 2

    def test_transactions_feed(self, client, db_session, balance, supplier, customer):
        invoice_id = _create_invoice(client, supplier.id, customer.id).json["id"]
        client.post(f'/api/invoices/{invoice_id}/payments', json={
            "amount": "20", "payment_method": "bank", "payment_type": "deposit",
        })

        response = client.get(f'/api/customers/{customer.id}/transactions')
        assert response.status_code == 200
        feed = response.json["items"]
        assert [row["type"] for row in feed] == ["payment", "invoice"]
        assert feed[0]["amount"] == "20.00"
        assert feed[0]["payment_method"] == "bank"
        assert feed[1]["amount"] == "120.00"
        assert feed[1]["invoice_number"] == feed[0]["invoice_number"]

        assert client.get('/api/customers/4040/transactions').status_code == 404


class TestProductAndCategoryApi:
    def test_product_update_and_deactivate(self, client, db_session):
        response = client.post('/api/products', json={"name": "Roll-up banner", "default_price": "45"})
        assert response.status_code == 201
        product_id = response.json["id"]
        assert response.json["default_price"] == "45.00"

        response = client.put(f'/api/products/{product_id}', json={"default_price": "50.5"})
        assert response.status_code == 200
        assert response.json["default_price"] == "50.50"

        response = client.put(f'/api/products/{product_id}', json={"default_price": "-1"})
        assert response.status_code == 422

        response = client.delete(f'/api/products/{product_id}')
        assert response.status_code == 200
        assert response.json["is_active"] is False
        assert client.get('/api/products').json["count"] == 0
        assert client.get(f'/api/products/{product_id}').status_code == 200

        assert client.put('/api/products/4040', json={"name": "x"}).status_code == 404

    def test_categories(self, client, db_session):
        response = client.post('/api/categories', json={"name": "Large format"})
        assert response.status_code == 201
        category_id = response.json["id"]

        response = client.post('/api/products', json={"name": "Vinyl banner", "category_id": category_id})
        assert response.status_code == 201
        assert response.json["category_name"] == "Large format"

        response = client.get('/api/categories')
        assert response.json["count"] == 1
        assert response.json["items"][0]["products_count"] == 1

        response = client.get(f'/api/categories/{category_id}')
        assert [p["name"] for p in response.json["products"]] == ["Vinyl banner"]

        response = client.put(f'/api/categories/{category_id}', json={"description": "Banners and posters"})
        assert response.json["description"] == "Banners and posters"

        assert client.delete(f'/api/categories/{category_id}').json["is_active"] is False
        assert client.get('/api/categories?active_only=true').json["count"] == 0
        assert client.get('/api/categories').json["count"] == 1

    def test_unknown_category_is_404(self, client, db_session):
        response = client.post('/api/products', json={"name": "Mug", "category_id": 4040})
        assert response.status_code == 404


class TestDebtAccountApi:
    def test_account_delete_rules(self, client, db_session, balance):
        response = client.post('/api/debt-accounts', json={"name": "Corner shop"})
        assert response.status_code == 201
        account_id = response.json["id"]

        debt_id = client.post('/api/debts', json={
            "debtor_name": "Corner shop", "source": "cash", "amount": "30", "debt_account_id": account_id,
        }).json["id"]

        response = client.get(f'/api/debt-accounts/{account_id}')
        assert response.json["balance"] == "30.00"
        assert len(response.json["debts"]) == 1

        response = client.delete(f'/api/debt-accounts/{account_id}')
        assert response.status_code == 409

        client.post(f'/api/debts/{debt_id}/repay', json={"amount": "30", "payment_method": "cash"})
        response = client.delete(f'/api/debt-accounts/{account_id}')
        assert response.status_code == 200

        assert client.get(f'/api/debt-accounts/{account_id}').status_code == 404
        response = client.get(f'/api/debts/{debt_id}')
        assert response.status_code == 200
        assert response.json["debt_account_id"] is None
        assert response.json["is_paid"] is True

    def test_update_and_list(self, client, db_session):
        account_id = client.post('/api/debt-accounts', json={"name": "Print club"}).json["id"]
        response = client.put(f'/api/debt-accounts/{account_id}', json={"phone": "0111111111"})
        assert response.status_code == 200
        assert response.json["phone"] == "0111111111"
        assert client.get('/api/debt-accounts?search=club').json["count"] == 1


class TestExpenseApi:
    def test_expense_and_withdrawal_flow(self, client, db_session, balance):
        response = client.post('/api/expense-types', json={"name": "Rent"})
        assert response.status_code == 201
        type_id = response.json["id"]
        assert client.post('/api/expense-types', json={"name": "Rent"}).status_code == 409
        assert client.get('/api/expense-types').json["count"] == 1

        response = client.post('/api/expenses', json={
            "expense_type_id": type_id, "amount": "300", "payment_method": "bank",
        })
        assert response.status_code == 201
        assert response.json["expense_type_name"] == "Rent"

        response = client.post('/api/withdrawals', json={
            "withdrawn_by": "Owner", "amount": "80", "payment_method": "cash",
        })
        assert response.status_code == 201

        assert client.get('/api/expenses?payment_method=bank').json["count"] == 1
        assert client.get('/api/expenses?payment_method=cash').json["count"] == 0
        assert client.get('/api/withdrawals').json["count"] == 1

        response = client.get('/api/cash/balance')
        assert response.json["bank_balance"] == "-300.00"
        assert response.json["cash_balance"] == "-80.00"

    def test_expense_validation(self, client, db_session, balance):
        response = client.post('/api/expenses', json={"amount": "10", "payment_method": "cash"})
        assert response.status_code == 422
        assert "expense_type_id" in response.json["fields"]

        response = client.post('/api/expenses', json={"expense_type_id": 4040, "amount": "10", "payment_method": "cash"})
        assert response.status_code == 404

        response = client.post('/api/withdrawals', json={"withdrawn_by": "Owner", "amount": "0", "payment_method": "cash"})
        assert response.status_code == 422


class TestInventoryMovementApi:
    def test_store_and_list_movements(self, client, db_session):
        item_id = client.post('/api/inventory', json={"name": "Toner black", "unit": "cartridge"}).json["id"]

        response = client.post('/api/inventory-movements', json={
            "inventory_item_id": item_id, "movement_type": "in", "quantity": 4, "unit_cost": "25",
        })
        assert response.status_code == 201
        assert response.json["total_cost"] == "100.00"

        response = client.post('/api/inventory-movements', json={
            "inventory_item_id": item_id, "movement_type": "out", "quantity": 1,
        })
        assert response.status_code == 201

        response = client.post('/api/inventory-movements', json={
            "inventory_item_id": item_id, "movement_type": "out", "quantity": 10,
        })
        assert response.status_code == 409

        response = client.get(f'/api/inventory-movements?inventory_item_id={item_id}')
        assert response.json["count"] == 2
        assert client.get('/api/inventory-movements?movement_type=out').json["count"] == 1
        assert client.get(f'/api/inventory/{item_id}').json["current_quantity"] == "3.000"

    def test_out_of_range_quantity_is_422(self, client, db_session):
        item_id = client.post('/api/inventory', json={"name": "Glue"}).json["id"]
        response = client.post('/api/inventory-movements', json={
            "inventory_item_id": item_id, "movement_type": "in", "quantity": "1e30",
        })
        assert response.status_code == 422
