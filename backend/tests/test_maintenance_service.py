from datetime import timedelta
from decimal import Decimal

from ordertrack.extensions import db
from ordertrack.models import Customer, Order, Payment
from ordertrack.services import ledger_service, maintenance_service
from ordertrack.time_utils import today


class TestCleanupOldOrders:
    def test_removes_only_old_completed_orders(self, db_session, make_customer, make_order):
        customer = make_customer()
        old_done = make_order(customer, status="completed", order_date=today() - timedelta(days=400)).id
        old_open = make_order(customer, status="pending", order_date=today() - timedelta(days=400)).id
        recent_done = make_order(customer, status="completed", order_date=today() - timedelta(days=30)).id

        assert maintenance_service.cleanup_old_orders(days_old=365) == 1

        remaining = {o.id for o in db.session.query(Order).all()}
        assert remaining == {old_open, recent_done}
        assert old_done not in remaining

    def test_balance_reconciled_after_cleanup(self, db_session, make_customer, make_order):
        customer = make_customer()
        order = make_order(customer, quantity=1, final_amount=300, order_date=today() - timedelta(days=500))
        ledger_service.deposit(customer.id, 1000)
        ledger_service.add_delivery(order.id, 1)
        ledger_service.add_payment(order.id, 300, entry_type="balance_used")

        assert maintenance_service.cleanup_old_orders(days_old=365) == 1
        db.session.expire_all()
        assert db.session.get(Customer, customer.id).balance == Decimal("1000")
        assert db.session.query(Payment).count() == 1

    def test_nothing_to_clean(self, db_session):
        assert maintenance_service.cleanup_old_orders(days_old=30) == 0
