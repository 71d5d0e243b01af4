import gc

from ordertrack.services import concurrency
from ordertrack.services.concurrency import customer_guard


class TestCustomerGuard:
    def test_reentrant_for_same_customer(self):
        with customer_guard(7):
            with customer_guard(7):
                assert 7 in concurrency._customer_locks

    def test_same_lock_while_held(self):
        with customer_guard(8):
            held = concurrency._customer_locks[8]
            assert concurrency._lock_for_customer(8) is held

    def test_lock_released_after_use(self):
        with customer_guard(9):
            pass
        gc.collect()
        assert 9 not in concurrency._customer_locks
