# Overview: Pytest coverage for contention handling in the stock ledger.

"""
Concurrency Tests

Threads share one file-backed SQLite database, each with its own app
context (and therefore its own session and connection), the way concurrent
requests would.
"""

import threading

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from blueledger.errors import InsufficientStock, NotFound, TransactionAborted
from blueledger.extensions import db
from blueledger.models import Product, ProductStatus
from blueledger.services import get_services
from blueledger.services.concurrency import TransactionRunner


def _run_threads(app, jobs):
    """Run each job in its own thread and app context; return (results, errors)."""
    results = []
    errors = []
    lock = threading.Lock()
    barrier = threading.Barrier(len(jobs))

    def worker(job):
        with app.app_context():
            try:
                barrier.wait()
                outcome = job(get_services())
                with lock:
                    results.append(outcome)
            except Exception as exc:
                with lock:
                    errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(job,)) for job in jobs]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results, errors


def _reload(product_id):
    db.session.expire_all()
    return db.session.get(Product, product_id)


@pytest.fixture
def seeded(file_app, tenant_factory):
    services = get_services()
    tenant = tenant_factory(services, "Race")
    product = services.ledger.create_product(
        company_id=tenant.company_id, actor_uid=tenant.admin.uid, name="Contested", qty=10,
    )
    product_id = product.id
    db.session.remove()
    return tenant, product_id


class TestConcurrentSells:
    def test_two_sells_of_six_from_ten(self, file_app, seeded):
        """Exactly one Sell(6) wins; the other sees the post-commit quantity."""
        tenant, product_id = seeded

        def sell(services):
            return services.ledger.sell(
                product_id, 6, uid=tenant.admin.uid, company_id=tenant.company_id, display_name="Owner",
            )

        results, errors = _run_threads(file_app, [sell, sell])

        assert len(results) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], InsufficientStock)
        assert errors[0].available == 4

        product = _reload(product_id)
        assert (product.qty_uploaded, product.qty_current, product.qty_sold) == (10, 4, 6)
        assert product.status == ProductStatus.AVAILABLE

    def test_unit_sells_never_oversell(self, file_app, seeded):
        tenant, product_id = seeded

        def sell_one(services):
            return services.ledger.sell(
                product_id, 1, uid=tenant.admin.uid, company_id=tenant.company_id, display_name="Owner",
            )

        results, errors = _run_threads(file_app, [sell_one] * 14)

        assert len(results) == 10
        assert all(isinstance(e, InsufficientStock) for e in errors)
        product = _reload(product_id)
        assert (product.qty_current, product.qty_sold, product.status) == (0, 10, ProductStatus.SOLD)

    def test_mixed_restock_and_sell_balance(self, file_app, seeded):
        tenant, product_id = seeded

        def restock(services):
            return services.ledger.restock(product_id, 3, company_id=tenant.company_id)

        def sell(services):
            return services.ledger.sell(
                product_id, 2, uid=tenant.admin.uid, company_id=tenant.company_id, display_name="Owner",
            )

        results, errors = _run_threads(file_app, [restock, sell] * 4)

        assert errors == []
        assert len(results) == 8
        product = _reload(product_id)
        assert product.qty_uploaded == 10 + 4 * 3
        assert product.qty_sold == 4 * 2
        assert product.qty_current == product.qty_uploaded - product.qty_sold


class FakeDb:
    def __init__(self):
        self.session = FakeSession()


class FakeSession:
    def __init__(self):
        self.commits = 0
        self.rollbacks = 0

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


class TestTransactionRunner:
    def test_retries_stale_writes(self):
        fake = FakeDb()
        runner = TransactionRunner(fake, max_attempts=3, backoff_base=0)
        attempts = []

        def unit(session):
            attempts.append(1)
            if len(attempts) < 3:
                raise StaleDataError("row version changed")
            return "done"

        assert runner.run(unit) == "done"
        assert len(attempts) == 3
        assert fake.session.rollbacks == 2
        assert fake.session.commits == 1

    def test_exhaustion_aborts(self):
        fake = FakeDb()
        runner = TransactionRunner(fake, max_attempts=2, backoff_base=0)

        def unit(session):
            raise OperationalError("UPDATE products", {}, Exception("database is locked"))

        with pytest.raises(TransactionAborted) as exc_info:
            runner.run(unit)
        assert exc_info.value.http_status == 503
        assert exc_info.value.details == {"attempts": 2}
        assert fake.session.commits == 0

    def test_domain_errors_are_not_retried(self):
        fake = FakeDb()
        runner = TransactionRunner(fake, max_attempts=5, backoff_base=0)
        attempts = []

        def unit(session):
            attempts.append(1)
            raise NotFound("Product not found.")

        with pytest.raises(NotFound):
            runner.run(unit)
        assert len(attempts) == 1
        assert fake.session.rollbacks == 1

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            TransactionRunner(FakeDb(), max_attempts=0)
