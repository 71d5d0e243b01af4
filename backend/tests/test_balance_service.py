"""
Customer balance reconciliation tests.

The cached Customer.balance must always equal
sum(deposit) - sum(withdraw + balance_used) over the customer's ledger.
"""

import threading
from decimal import Decimal

import pytest

from ordertrack import create_app
from ordertrack.extensions import db
from ordertrack.models import Customer, Payment
from ordertrack.services import balance_service, ledger_service
from ordertrack.services.balance_service import InconsistentStateError, InsufficientBalanceError
from ordertrack.validation import NotFoundError


def _reload(customer_id):
    db.session.expire_all()
    return db.session.get(Customer, customer_id)


class TestRecalcBalance:
    def test_formula_over_mixed_entries(self, db_session, make_customer, make_order, make_entry):
        customer = make_customer()
        order = make_order(customer, final_amount=1000)
        make_entry(customer, 500, "deposit")
        make_entry(customer, 300, "deposit")
        make_entry(customer, 200, "balance_used", order=order)
        make_entry(customer, 100, "withdraw")
        # Payments and refunds never touch the balance
        make_entry(customer, 400, "payment", order=order)
        make_entry(customer, 50, "refund", order=order)

        assert balance_service.recalc_balance(customer.id) == Decimal("500")
        assert _reload(customer.id).balance == Decimal("500")

    def test_idempotent(self, db_session, make_customer, make_entry):
        customer = make_customer()
        make_entry(customer, 750, "deposit")

        first = balance_service.recalc_balance(customer.id)
        second = balance_service.recalc_balance(customer.id)
        assert first == second == Decimal("750")

    def test_order_of_entries_does_not_matter(self, db_session, make_customer, make_entry):
        a = make_customer(name="A")
        b = make_customer(name="B")
        for amount, kind in [(100, "deposit"), (40, "balance_used"), (60, "deposit")]:
            make_entry(a, amount, kind)
        for amount, kind in [(60, "deposit"), (40, "balance_used"), (100, "deposit")]:
            make_entry(b, amount, kind)

        assert balance_service.recalc_balance(a.id) == balance_service.recalc_balance(b.id) == Decimal("120")

    def test_repairs_drifted_cache(self, db_session, make_customer, make_entry):
        customer = make_customer()
        make_entry(customer, 200, "deposit")
        customer.balance = Decimal("999")
        db_session.commit()

        assert balance_service.recalc_balance(customer.id) == Decimal("200")
        assert _reload(customer.id).balance == Decimal("200")

    def test_no_entries_gives_zero(self, db_session, make_customer):
        customer = make_customer()
        assert balance_service.recalc_balance(customer.id) == Decimal("0")

    def test_unknown_customer(self, db_session):
        with pytest.raises(NotFoundError):
            balance_service.recalc_balance(9999)


class TestVerifyAndAudit:
    def test_verify_passes_after_ledger_writes(self, db_session, make_customer):
        customer = make_customer()
        ledger_service.deposit(customer.id, 300)
        assert balance_service.verify_balance(customer.id) == Decimal("300")

    def test_verify_detects_tampering(self, db_session, make_customer):
        customer = make_customer()
        ledger_service.deposit(customer.id, 300)
        db_session.query(Customer).filter_by(id=customer.id).update({"balance": Decimal("1")})
        db_session.commit()

        with pytest.raises(InconsistentStateError):
            balance_service.verify_balance(customer.id)

    def test_audit_lists_only_drifted(self, db_session, make_customer):
        good = make_customer(name="Good")
        bad = make_customer(name="Bad")
        ledger_service.deposit(good.id, 100)
        ledger_service.deposit(bad.id, 100)
        db_session.query(Customer).filter_by(id=bad.id).update({"balance": Decimal("5")})
        db_session.commit()

        mismatches = balance_service.audit_balances()
        assert [m["customer_id"] for m in mismatches] == [bad.id]
        assert mismatches[0]["expected"] == Decimal("100")

    def test_recalc_all_repairs_every_customer(self, db_session, make_customer, make_entry):
        first = make_customer(name="First", balance=10)
        second = make_customer(name="Second", balance=20)
        make_entry(first, 70, "deposit")

        assert balance_service.recalc_all_balances() == 2
        assert balance_service.audit_balances() == []
        assert _reload(first.id).balance == Decimal("70")
        assert _reload(second.id).balance == Decimal("0")


class TestInsufficientBalance:
    def test_spend_more_than_balance_is_rejected(self, db_session, make_customer, make_order):
        customer = make_customer()
        order = make_order(customer, final_amount=1000000)
        ledger_service.add_payment(order.id, 300000)
        ledger_service.deposit(customer.id, 500000)

        with pytest.raises(InsufficientBalanceError) as exc:
            ledger_service.add_payment(order.id, 600000, entry_type="balance_used")

        assert exc.value.available == Decimal("500000")
        assert exc.value.requested == Decimal("600000")
        assert _reload(customer.id).balance == Decimal("500000")
        assert ledger_service.total_paid(order.id) == Decimal("300000")
        assert db_session.query(Payment).filter_by(order_id=order.id).count() == 1

    def test_spend_entire_balance_is_allowed(self, db_session, make_customer, make_order):
        customer = make_customer()
        order = make_order(customer, final_amount=1000000)
        ledger_service.deposit(customer.id, 500000)

        ledger_service.use_balance(customer.id, 500000, order_id=order.id)
        assert _reload(customer.id).balance == Decimal("0")
        assert ledger_service.total_paid(order.id) == Decimal("500000")

    def test_guard_reads_ledger_not_cache(self, db_session, make_customer):
        customer = make_customer()
        ledger_service.deposit(customer.id, 100)
        db_session.query(Customer).filter_by(id=customer.id).update({"balance": Decimal("10000")})
        db_session.commit()

        with pytest.raises(InsufficientBalanceError):
            ledger_service.use_balance(customer.id, 500)

    def test_legacy_withdraw_is_guarded(self, db_session, make_customer):
        customer = make_customer()
        ledger_service.deposit(customer.id, 100)
        with pytest.raises(InsufficientBalanceError):
            ledger_service.import_ledger_entry(customer.id, 150, entry_type="withdraw")
        ledger_service.import_ledger_entry(customer.id, 60, entry_type="withdraw")
        assert _reload(customer.id).balance == Decimal("40")

    def test_concurrent_spends_serialized(self, tmp_path):
        race_app = create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'race.db'}",
            'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        })
        with race_app.app_context():
            db.create_all()
            customer = Customer(name="Racer", balance=Decimal("0"), discount_percent=Decimal("0"))
            db.session.add(customer)
            db.session.commit()
            customer_id = customer.id
            ledger_service.deposit(customer_id, 1000)

        start = threading.Barrier(4)
        outcomes = []

        def spend():
            with race_app.app_context():
                start.wait()
                try:
                    ledger_service.use_balance(customer_id, 600)
                    outcomes.append("ok")
                except InsufficientBalanceError:
                    outcomes.append("insufficient")

        workers = [threading.Thread(target=spend) for _ in range(4)]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()

        assert sorted(outcomes) == ["insufficient", "insufficient", "insufficient", "ok"]
        with race_app.app_context():
            assert db.session.get(Customer, customer_id).balance == Decimal("400")
            assert balance_service.ledger_balance(customer_id) == Decimal("400")
            db.drop_all()
