"""
Checkout, invoice totals, voids and returns.
"""

import pytest

from fleur.errors import BusinessRuleError, ValidationError
from fleur.models import Customer, Debt, Invoice
from fleur.services.sales_service import compute_invoice_totals

from conftest import stock_of


# =============================================================================
# TOTALS
# =============================================================================


class TestInvoiceTotals:

    def test_total_is_gross_minus_item_and_overall_discounts(self):
        totals = compute_invoice_totals(
            [
                {"unit_price": 100000, "quantity": 2, "item_discount": 10000},
                {"unit_price": 50000, "quantity": 1},
            ],
            overall_discount=5000,
        )
        assert totals.subtotal == 250000
        assert totals.item_discount_total == 10000
        assert totals.total == 235000
        assert totals.line_totals == [190000, 50000]

    def test_item_discount_over_cap_rejected(self):
        with pytest.raises(BusinessRuleError):
            compute_invoice_totals(
                [{"unit_price": 100000, "quantity": 2, "item_discount": 20001, "max_discount_per_unit": 10000}]
            )

    def test_item_discount_at_cap_allowed(self):
        totals = compute_invoice_totals(
            [{"unit_price": 100000, "quantity": 2, "item_discount": 20000, "max_discount_per_unit": 10000}]
        )
        assert totals.total == 180000

    def test_zero_cap_means_uncapped(self):
        totals = compute_invoice_totals(
            [{"unit_price": 100000, "quantity": 1, "item_discount": 90000, "max_discount_per_unit": 0}]
        )
        assert totals.total == 10000

    def test_negative_discount_rejected(self):
        with pytest.raises(ValidationError):
            compute_invoice_totals([{"unit_price": 1000, "quantity": 1}], overall_discount=-1)

    def test_discounts_larger_than_amount_rejected(self):
        with pytest.raises(BusinessRuleError):
            compute_invoice_totals([{"unit_price": 1000, "quantity": 1}], overall_discount=1001)

    def test_empty_cart_rejected(self):
        with pytest.raises(ValidationError):
            compute_invoice_totals([])


# =============================================================================
# CHECKOUT
# =============================================================================


class TestCheckout:

    def test_checkout_creates_invoice_and_takes_stock(self, client, db_session, staff_headers, rose, lily):
        resp = client.post("/api/invoices", json={
            "customer_name": "Chị Lan",
            "items": [
                {"product_id": rose.id, "quantity": 2, "item_discount": 10000},
                {"product_id": lily.id, "quantity": 1},
            ],
            "discount": 5000,
        }, headers=staff_headers)

        assert resp.status_code == 201, resp.json
        invoice = resp.json["invoice"]
        assert invoice["invoice_number"] == "HD-0001"
        assert invoice["total"] == 100000 * 2 + 50000 - 10000 - 5000
        assert invoice["amount_paid"] == invoice["total"]
        assert invoice["debt_amount"] == 0
        assert invoice["employee_name"] == "Nhân viên Mai"
        assert invoice["payment_method"] == "Tiền mặt"
        assert [line["name"] for line in invoice["lines"]] == ["Hoa hồng", "Hoa ly"]

        assert stock_of(db_session, rose.id) == 8
        assert stock_of(db_session, lily.id) == 4
        assert db_session.query(Debt).count() == 0

    def test_invoice_numbers_are_sequential(self, client, db_session, staff_headers, rose):
        numbers = []
        for _ in range(3):
            resp = client.post("/api/invoices", json={
                "customer_name": "Khách lẻ",
                "items": [{"product_id": rose.id, "quantity": 1}],
            }, headers=staff_headers)
            assert resp.status_code == 201
            numbers.append(resp.json["invoice"]["invoice_number"])
        assert numbers == ["HD-0001", "HD-0002", "HD-0003"]

    def test_underpayment_creates_customer_debt(self, client, db_session, staff_headers, rose):
        resp = client.post("/api/invoices", json={
            "customer_name": "Anh Tuấn",
            "items": [{"product_id": rose.id, "quantity": 3}],
            "amount_paid": 200000,
        }, headers=staff_headers)

        assert resp.status_code == 201
        invoice = resp.json["invoice"]
        assert invoice["debt_amount"] == 100000

        debt = db_session.query(Debt).one()
        assert debt.debt_type == "CUSTOMER"
        assert debt.counterparty == "Anh Tuấn"
        assert debt.amount == 100000
        assert debt.status == "UNPAID"
        assert debt.invoice_id == invoice["id"]

    def test_overpayment_creates_no_debt(self, client, db_session, staff_headers, rose):
        resp = client.post("/api/invoices", json={
            "customer_name": "Anh Tuấn",
            "items": [{"product_id": rose.id, "quantity": 1}],
            "amount_paid": 150000,
        }, headers=staff_headers)
        assert resp.status_code == 201
        assert resp.json["invoice"]["debt_amount"] == 0
        assert db_session.query(Debt).count() == 0

    def test_insufficient_stock_lists_every_short_product(self, client, db_session, staff_headers, rose, lily):
        resp = client.post("/api/invoices", json={
            "customer_name": "Khách lẻ",
            "items": [
                {"product_id": rose.id, "quantity": 11},
                {"product_id": lily.id, "quantity": 6},
            ],
        }, headers=staff_headers)

        assert resp.status_code == 409
        short = {item["product_id"]: item for item in resp.json["details"]["items"]}
        assert short[rose.id]["available"] == 10
        assert short[lily.id]["requested"] == 6

        assert stock_of(db_session, rose.id) == 10
        assert stock_of(db_session, lily.id) == 5
        assert db_session.query(Invoice).count() == 0

    def test_same_product_on_two_lines_is_checked_in_total(self, client, db_session, staff_headers, lily):
        resp = client.post("/api/invoices", json={
            "customer_name": "Khách lẻ",
            "items": [
                {"product_id": lily.id, "quantity": 3},
                {"product_id": lily.id, "quantity": 3},
            ],
        }, headers=staff_headers)
        assert resp.status_code == 409
        assert stock_of(db_session, lily.id) == 5

    def test_discount_over_cap_writes_nothing(self, client, db_session, staff_headers, rose):
        resp = client.post("/api/invoices", json={
            "customer_name": "Khách lẻ",
            "items": [{"product_id": rose.id, "quantity": 1, "item_discount": 15000}],
        }, headers=staff_headers)
        assert resp.status_code == 422
        assert stock_of(db_session, rose.id) == 10
        assert db_session.query(Invoice).count() == 0

    def test_missing_customer_name_rejected(self, client, db_session, staff_headers, rose):
        resp = client.post("/api/invoices", json={
            "customer_name": "  ",
            "items": [{"product_id": rose.id, "quantity": 1}],
        }, headers=staff_headers)
        assert resp.status_code == 400

    def test_unknown_product_is_404(self, client, db_session, staff_headers):
        resp = client.post("/api/invoices", json={
            "customer_name": "Khách lẻ",
            "items": [{"product_id": 9999, "quantity": 1}],
        }, headers=staff_headers)
        assert resp.status_code == 404

    def test_unknown_customer_is_404_and_writes_nothing(self, client, db_session, staff_headers, rose):
        resp = client.post("/api/invoices", json={
            "customer_name": "Chị Lan",
            "customer_id": 999,
            "items": [{"product_id": rose.id, "quantity": 1}],
        }, headers=staff_headers)
        assert resp.status_code == 404
        assert resp.json["details"]["customer_id"] == 999
        assert stock_of(db_session, rose.id) == 10
        assert db_session.query(Invoice).count() == 0

    def test_known_customer_is_linked(self, client, db_session, staff_headers, customer_user, rose):
        customer = db_session.query(Customer).filter_by(user_id=customer_user.id).one()
        resp = client.post("/api/invoices", json={
            "customer_name": "Chị Lan",
            "customer_id": customer.id,
            "items": [{"product_id": rose.id, "quantity": 1}],
        }, headers=staff_headers)
        assert resp.status_code == 201
        assert resp.json["invoice"]["customer_id"] == customer.id

    def test_invoice_keeps_snapshot_after_product_changes(self, client, db_session, staff_headers, manager_headers, rose):
        resp = client.post("/api/invoices", json={
            "customer_name": "Khách lẻ",
            "items": [{"product_id": rose.id, "quantity": 1}],
        }, headers=staff_headers)
        invoice_id = resp.json["invoice"]["id"]

        patch = client.patch(f"/api/products/{rose.id}", json={"name": "Hoa hồng Đà Lạt", "price": 120000},
                             headers=manager_headers)
        assert patch.status_code == 200

        resp = client.get(f"/api/invoices/{invoice_id}", headers=staff_headers)
        line = resp.json["invoice"]["lines"][0]
        assert line["name"] == "Hoa hồng"
        assert line["unit_price"] == 100000

    def test_list_filters_by_status(self, client, db_session, staff_headers, manager_headers, rose):
        for _ in range(2):
            client.post("/api/invoices", json={
                "customer_name": "Khách lẻ",
                "items": [{"product_id": rose.id, "quantity": 1}],
            }, headers=staff_headers)
        first = db_session.query(Invoice).order_by(Invoice.id).first()
        client.post(f"/api/invoices/{first.id}/void", json={"reason": "Nhập sai"}, headers=manager_headers)

        resp = client.get("/api/invoices?status=completed", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["total"] == 1


# =============================================================================
# VOIDS AND RETURNS
# =============================================================================


class TestVoidAndReturns:

    def _sell(self, client, headers, product_id, quantity, **extra):
        resp = client.post("/api/invoices", json={
            "customer_name": "Chị Lan",
            "items": [{"product_id": product_id, "quantity": quantity}],
            **extra,
        }, headers=headers)
        assert resp.status_code == 201, resp.json
        return resp.json["invoice"]

    def test_void_restocks_and_settles_debt(self, client, db_session, staff_headers, manager_headers, rose):
        invoice = self._sell(client, staff_headers, rose.id, 4, amount_paid=0)
        assert stock_of(db_session, rose.id) == 6

        resp = client.post(f"/api/invoices/{invoice['id']}/void", json={"reason": "Khách hủy"},
                           headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json["invoice"]["status"] == "VOIDED"
        assert resp.json["invoice"]["void_reason"] == "Khách hủy"
        assert stock_of(db_session, rose.id) == 10

        db_session.expire_all()
        assert db_session.query(Debt).one().status == "PAID"

    def test_void_twice_rejected(self, client, db_session, staff_headers, manager_headers, rose):
        invoice = self._sell(client, staff_headers, rose.id, 1)
        client.post(f"/api/invoices/{invoice['id']}/void", headers=manager_headers)
        resp = client.post(f"/api/invoices/{invoice['id']}/void", headers=manager_headers)
        assert resp.status_code == 422
        assert stock_of(db_session, rose.id) == 10

    def test_staff_cannot_void(self, client, db_session, staff_headers, rose):
        invoice = self._sell(client, staff_headers, rose.id, 1)
        resp = client.post(f"/api/invoices/{invoice['id']}/void", headers=staff_headers)
        assert resp.status_code == 403
        assert stock_of(db_session, rose.id) == 9

    def test_return_restocks_and_refunds_line_share(self, client, db_session, staff_headers, manager_headers, rose):
        invoice = self._sell(client, staff_headers, rose.id, 4)

        resp = client.post(f"/api/invoices/{invoice['id']}/returns", json={
            "items": [{"product_id": rose.id, "quantity": 1}],
            "reason": "Hoa héo",
        }, headers=manager_headers)
        assert resp.status_code == 201, resp.json
        assert resp.json["return"]["refund_amount"] == 100000
        assert stock_of(db_session, rose.id) == 7

    def test_return_more_than_sold_rejected(self, client, db_session, staff_headers, manager_headers, rose):
        invoice = self._sell(client, staff_headers, rose.id, 2)
        client.post(f"/api/invoices/{invoice['id']}/returns", json={
            "items": [{"product_id": rose.id, "quantity": 1}],
        }, headers=manager_headers)

        resp = client.post(f"/api/invoices/{invoice['id']}/returns", json={
            "items": [{"product_id": rose.id, "quantity": 2}],
        }, headers=manager_headers)
        assert resp.status_code == 422
        assert resp.json["details"]["returnable"] == 1
        assert stock_of(db_session, rose.id) == 9

    def test_void_after_partial_return_restocks_remainder(self, client, db_session, staff_headers, manager_headers, rose):
        invoice = self._sell(client, staff_headers, rose.id, 5)
        client.post(f"/api/invoices/{invoice['id']}/returns", json={
            "items": [{"product_id": rose.id, "quantity": 2}],
        }, headers=manager_headers)
        assert stock_of(db_session, rose.id) == 7

        client.post(f"/api/invoices/{invoice['id']}/void", headers=manager_headers)
        assert stock_of(db_session, rose.id) == 10

    def test_return_pays_down_customer_debt(self, client, db_session, staff_headers, manager_headers, rose):
        invoice = self._sell(client, staff_headers, rose.id, 4, amount_paid=100000)
        assert invoice["debt_amount"] == 300000

        resp = client.post(f"/api/invoices/{invoice['id']}/returns", json={
            "items": [{"product_id": rose.id, "quantity": 1}],
        }, headers=manager_headers)
        assert resp.status_code == 201, resp.json
        assert resp.json["return"]["debt_offset"] == 100000

        db_session.expire_all()
        debt = db_session.query(Debt).one()
        assert debt.amount == 200000
        assert debt.status == "UNPAID"

    def test_full_return_settles_customer_debt(self, client, db_session, staff_headers, manager_headers, rose):
        invoice = self._sell(client, staff_headers, rose.id, 4, amount_paid=100000)

        resp = client.post(f"/api/invoices/{invoice['id']}/returns", json={
            "items": [{"product_id": rose.id, "quantity": 4}],
        }, headers=manager_headers)
        assert resp.status_code == 201, resp.json
        assert resp.json["return"]["refund_amount"] == 400000
        assert resp.json["return"]["debt_offset"] == 300000

        db_session.expire_all()
        assert db_session.query(Debt).one().status == "PAID"
