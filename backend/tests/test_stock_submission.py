"""
Stock record and submission tests.

Verifies:
- Submission moves the variant ledger by +quantity (in) / -quantity (out)
- Insufficient stock rejects the whole record, names the line, the requested
  and the available quantity, and leaves the ledger and status untouched
- Submitted records are immutable
- The conditional ledger write catches a stale sufficiency check, including
  two submissions racing from separate threads
- Error paths keep the position of the line in the request
"""

import re
import threading

import pytest

from conftest import make_user
from stockroom import create_app
from stockroom.errors import AuthorizationDenied, NotFound, ValidationFailed
from stockroom.extensions import db
from stockroom.models import Product, ProductVariant, User, STATUS_DRAFT, STATUS_SUBMITTED
from stockroom.services import permission_service, stock_record_service
from stockroom.services.stock_ledger_service import apply_delta, current_quantity
from stockroom.services.stock_record_service import STOCK_IN, STOCK_OUT


DAY = "2026-10-19"


def _draft(kind, principal, authz, lines, **extra):
    payload = {"date": DAY, "items": lines}
    payload.update(extra)
    return stock_record_service.create_record(kind, payload, principal=principal, authz=authz)


def _line(variant, quantity):
    return {"product_variant_id": variant.id, "quantity": quantity}


# =============================================================================
# DRAFTS
# =============================================================================


class TestDrafts:

    def test_create_generates_transaction_code(self, authz, admin_user, variant_v):
        record = _draft(STOCK_IN, admin_user, authz, [_line(variant_v, 3)], note="Supplier delivery")
        assert re.fullmatch(r"ALBR-\d{12}", record.transaction_code)
        assert record.status == STATUS_DRAFT
        assert record.note == "Supplier delivery"
        assert record.created_by_user_id == admin_user.id
        assert record.total_quantity == 3

    def test_create_does_not_touch_ledger(self, authz, admin_user, variant_v):
        _draft(STOCK_OUT, admin_user, authz, [_line(variant_v, 7)])
        assert current_quantity(variant_v.id) == 10

    def test_duplicate_variant_is_rejected(self, authz, admin_user, variant_v):
        with pytest.raises(ValidationFailed) as exc:
            _draft(STOCK_IN, admin_user, authz, [_line(variant_v, 1), _line(variant_v, 2)])
        assert "items.1.product_variant_id" in exc.value.errors

    def test_negative_and_decimal_quantities_are_rejected(self, authz, admin_user, variant_v, variant_w):
        with pytest.raises(ValidationFailed) as exc:
            _draft(STOCK_IN, admin_user, authz, [
                {"product_variant_id": variant_v.id, "quantity": -1},
                {"product_variant_id": variant_w.id, "quantity": 1.5},
            ])
        assert set(exc.value.errors) == {"items.0.quantity", "items.1.quantity"}

    def test_empty_items_and_missing_date(self, authz, admin_user):
        with pytest.raises(ValidationFailed) as exc:
            stock_record_service.create_record(
                STOCK_IN, {"items": []}, principal=admin_user, authz=authz
            )
        assert set(exc.value.errors) == {"date", "items"}

    def test_unknown_variant_is_rejected(self, authz, admin_user, variant_v):
        with pytest.raises(ValidationFailed) as exc:
            _draft(STOCK_IN, admin_user, authz, [_line(variant_v, 1), {"product_variant_id": 999999, "quantity": 1}])
        assert list(exc.value.errors) == ["items.1.product_variant_id"]

    def test_error_paths_follow_request_positions(self, authz, admin_user, variant_v):
        """A rejected earlier line must not shift the paths of the lines after it."""
        with pytest.raises(ValidationFailed) as exc:
            _draft(STOCK_IN, admin_user, authz, [
                _line(variant_v, -1),
                {"product_variant_id": 999999, "quantity": 1},
            ])
        assert set(exc.value.errors) == {"items.0.quantity", "items.1.product_variant_id"}

    def test_duplicate_then_unknown_variant(self, authz, admin_user, variant_v):
        with pytest.raises(ValidationFailed) as exc:
            _draft(STOCK_IN, admin_user, authz, [
                _line(variant_v, 1),
                _line(variant_v, 1),
                {"product_variant_id": 999999, "quantity": 1},
            ])
        assert exc.value.errors == {
            "items.1.product_variant_id": ["This product variant is already listed."],
            "items.2.product_variant_id": ["The selected product variant is invalid."],
        }

    def test_transaction_code_taken_concurrently(self, authz, admin_user, variant_v, monkeypatch):
        """The pre-insert code check can race; the unique constraint reports it as a field error."""
        monkeypatch.setattr(stock_record_service, "generate_transaction_code", lambda kind: "ALBR-000000000042")
        _draft(STOCK_IN, admin_user, authz, [_line(variant_v, 1)])

        with pytest.raises(ValidationFailed) as exc:
            _draft(STOCK_IN, admin_user, authz, [_line(variant_v, 2)])
        assert list(exc.value.errors) == ["transaction_code"]

        records, total = stock_record_service.list_records(STOCK_IN)
        assert total == 1

    def test_note_only_on_stock_in(self, authz, admin_user, variant_v):
        with pytest.raises(ValidationFailed) as exc:
            _draft(STOCK_OUT, admin_user, authz, [_line(variant_v, 1)], note="nope")
        assert "note" in exc.value.errors

    def test_update_replaces_items(self, authz, admin_user, variant_v, variant_w):
        record = _draft(STOCK_IN, admin_user, authz, [_line(variant_v, 1)])
        record = stock_record_service.update_record(
            STOCK_IN, record.id, {"items": [_line(variant_w, 4)], "date": "2026-10-18"},
            principal=admin_user, authz=authz,
        )
        assert [(i.product_variant_id, i.quantity) for i in record.items] == [(variant_w.id, 4)]
        assert record.date.isoformat() == "2026-10-18"

    def test_delete_draft(self, authz, admin_user, variant_v):
        record = _draft(STOCK_IN, admin_user, authz, [_line(variant_v, 1)])
        assert stock_record_service.delete_record(STOCK_IN, record.id, principal=admin_user, authz=authz)
        with pytest.raises(NotFound):
            stock_record_service.get_record(STOCK_IN, record.id)

    def test_staff_cannot_delete(self, authz, admin_user, staff_user, variant_v):
        record = _draft(STOCK_IN, admin_user, authz, [_line(variant_v, 1)])
        with pytest.raises(AuthorizationDenied):
            stock_record_service.delete_record(STOCK_IN, record.id, principal=staff_user, authz=authz)


# =============================================================================
# SUBMISSION
# =============================================================================


class TestSubmission:

    def test_stock_in_increases_ledger(self, authz, staff_user, variant_v, variant_w):
        record = _draft(STOCK_IN, staff_user, authz, [_line(variant_v, 5), _line(variant_w, 2)])
        record = stock_record_service.submit_record(STOCK_IN, record.id, principal=staff_user, authz=authz)

        assert record.status == STATUS_SUBMITTED
        assert record.submitted_by_user_id == staff_user.id
        assert record.submitted_at is not None
        assert current_quantity(variant_v.id) == 15
        assert current_quantity(variant_w.id) == 7

    def test_stock_out_then_insufficient(self, authz, staff_user, variant_v):
        first = _draft(STOCK_OUT, staff_user, authz, [_line(variant_v, 4)])
        stock_record_service.submit_record(STOCK_OUT, first.id, principal=staff_user, authz=authz)
        assert current_quantity(variant_v.id) == 6

        second = _draft(STOCK_OUT, staff_user, authz, [_line(variant_v, 10)])
        with pytest.raises(ValidationFailed) as exc:
            stock_record_service.submit_record(STOCK_OUT, second.id, principal=staff_user, authz=authz)

        assert exc.value.errors == {"items.0.quantity": ["Insufficient stock: requested 10, available 6."]}
        assert current_quantity(variant_v.id) == 6
        assert stock_record_service.get_record(STOCK_OUT, second.id).status == STATUS_DRAFT

    def test_one_short_line_rejects_the_whole_record(self, authz, staff_user, variant_v, variant_w):
        record = _draft(STOCK_OUT, staff_user, authz, [_line(variant_v, 2), _line(variant_w, 6)])
        with pytest.raises(ValidationFailed) as exc:
            stock_record_service.submit_record(STOCK_OUT, record.id, principal=staff_user, authz=authz)

        assert list(exc.value.errors) == ["items.1.quantity"]
        assert current_quantity(variant_v.id) == 10
        assert current_quantity(variant_w.id) == 5

    def test_exact_stock_can_be_taken_out(self, authz, staff_user, variant_w):
        record = _draft(STOCK_OUT, staff_user, authz, [_line(variant_w, 5)])
        stock_record_service.submit_record(STOCK_OUT, record.id, principal=staff_user, authz=authz)
        assert current_quantity(variant_w.id) == 0

    def test_zero_quantity_lines_are_allowed(self, authz, staff_user, variant_v, variant_w):
        record = _draft(STOCK_OUT, staff_user, authz, [_line(variant_v, 0), _line(variant_w, 1)])
        stock_record_service.submit_record(STOCK_OUT, record.id, principal=staff_user, authz=authz)
        assert current_quantity(variant_v.id) == 10
        assert current_quantity(variant_w.id) == 4

    def test_items_given_at_submit_replace_saved_lines(self, authz, staff_user, variant_v, variant_w):
        record = _draft(STOCK_OUT, staff_user, authz, [_line(variant_v, 9)])
        record = stock_record_service.submit_record(
            STOCK_OUT, record.id, principal=staff_user, authz=authz, items=[_line(variant_w, 3)],
        )
        assert [(i.product_variant_id, i.quantity) for i in record.items] == [(variant_w.id, 3)]
        assert current_quantity(variant_v.id) == 10
        assert current_quantity(variant_w.id) == 2

    def test_tombstoned_variant_blocks_submission(self, authz, db_session, staff_user, variant_v):
        record = _draft(STOCK_IN, staff_user, authz, [_line(variant_v, 1)])
        variant_v.tombstone()
        db_session.commit()

        with pytest.raises(ValidationFailed) as exc:
            stock_record_service.submit_record(STOCK_IN, record.id, principal=staff_user, authz=authz)
        assert "items.0.product_variant_id" in exc.value.errors
        assert current_quantity(variant_v.id) == 10

    def test_management_cannot_submit(self, authz, staff_user, manager_user, variant_v):
        record = _draft(STOCK_IN, staff_user, authz, [_line(variant_v, 1)])
        with pytest.raises(AuthorizationDenied):
            stock_record_service.submit_record(STOCK_IN, record.id, principal=manager_user, authz=authz)
        assert current_quantity(variant_v.id) == 10
        assert stock_record_service.get_record(STOCK_IN, record.id).status == STATUS_DRAFT

    def test_missing_record(self, authz, staff_user, setup_roles):
        with pytest.raises(NotFound):
            stock_record_service.submit_record(STOCK_IN, 424242, principal=staff_user, authz=authz)

    def test_ledger_equals_sum_of_submitted_deltas(self, authz, staff_user, variant_v):
        moves = [(STOCK_IN, 5), (STOCK_OUT, 12), (STOCK_IN, 1), (STOCK_OUT, 4)]
        for kind, quantity in moves:
            record = _draft(kind, staff_user, authz, [_line(variant_v, quantity)])
            stock_record_service.submit_record(kind, record.id, principal=staff_user, authz=authz)
        # an unsubmitted draft never counts
        _draft(STOCK_OUT, staff_user, authz, [_line(variant_v, 3)])

        assert current_quantity(variant_v.id) == 10 + 5 - 12 + 1 - 4


# =============================================================================
# SUBMITTED RECORDS ARE FINAL
# =============================================================================


class TestSubmittedIsFinal:

    @pytest.fixture
    def submitted(self, authz, staff_user, variant_v):
        record = _draft(STOCK_IN, staff_user, authz, [_line(variant_v, 2)])
        return stock_record_service.submit_record(STOCK_IN, record.id, principal=staff_user, authz=authz)

    def test_cannot_resubmit(self, authz, staff_user, submitted, variant_v):
        with pytest.raises(ValidationFailed) as exc:
            stock_record_service.submit_record(STOCK_IN, submitted.id, principal=staff_user, authz=authz)
        assert "status" in exc.value.errors
        assert current_quantity(variant_v.id) == 12

    def test_cannot_update(self, authz, staff_user, submitted):
        with pytest.raises(ValidationFailed) as exc:
            stock_record_service.update_record(
                STOCK_IN, submitted.id, {"date": "2026-01-01"}, principal=staff_user, authz=authz
            )
        assert "status" in exc.value.errors

    def test_cannot_delete(self, authz, admin_user, submitted):
        with pytest.raises(ValidationFailed) as exc:
            stock_record_service.delete_record(STOCK_IN, submitted.id, principal=admin_user, authz=authz)
        assert "status" in exc.value.errors

    def test_can_mutate(self, submitted):
        assert stock_record_service.can_mutate(submitted) is False


# =============================================================================
# LEDGER WRITE VS STALE READS
# =============================================================================


class TestLedgerGuard:

    def test_apply_delta_refuses_to_go_negative(self, db_session, variant_w):
        with pytest.raises(ValidationFailed) as exc:
            apply_delta(variant_w.id, -6, field="items.0.quantity")
        db_session.rollback()
        assert exc.value.errors == {"items.0.quantity": ["Insufficient stock: requested 6, available 5."]}
        assert current_quantity(variant_w.id) == 5

    def test_competing_submission_rejected_against_committed_value(
        self, authz, staff_user, variant_w, monkeypatch
    ):
        """
        V=5 and two stock-outs of 4. The second one validates against a stale
        snapshot (5 on hand) as if it had read before the first committed.
        """
        first = _draft(STOCK_OUT, staff_user, authz, [_line(variant_w, 4)])
        second = _draft(STOCK_OUT, staff_user, authz, [_line(variant_w, 4)])

        stock_record_service.submit_record(STOCK_OUT, first.id, principal=staff_user, authz=authz)
        assert current_quantity(variant_w.id) == 1

        monkeypatch.setattr(
            stock_record_service, "_available_quantities", lambda variants: {vid: 5 for vid in variants}
        )
        with pytest.raises(ValidationFailed) as exc:
            stock_record_service.submit_record(STOCK_OUT, second.id, principal=staff_user, authz=authz)

        assert exc.value.errors == {"items.0.quantity": ["Insufficient stock: requested 4, available 1."]}
        assert current_quantity(variant_w.id) == 1
        assert stock_record_service.get_record(STOCK_OUT, second.id).status == STATUS_DRAFT

    def test_partial_ledger_write_is_rolled_back(self, authz, staff_user, variant_v, variant_w, monkeypatch):
        """First line applies, second fails in the database: the first must be undone."""
        record = _draft(STOCK_OUT, staff_user, authz, [_line(variant_v, 3), _line(variant_w, 8)])
        monkeypatch.setattr(
            stock_record_service, "_available_quantities", lambda variants: {vid: 100 for vid in variants}
        )
        with pytest.raises(ValidationFailed) as exc:
            stock_record_service.submit_record(STOCK_OUT, record.id, principal=staff_user, authz=authz)

        assert list(exc.value.errors) == ["items.1.quantity"]
        assert current_quantity(variant_v.id) == 10
        assert current_quantity(variant_w.id) == 5


# =============================================================================
# CONCURRENT SUBMISSIONS
# =============================================================================


@pytest.fixture
def file_app(tmp_path):
    """A second application on a file database, so two threads share committed state."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'ledger.db'}",
        'BCRYPT_ROUNDS': 4,
        'LOG_LEVEL': 'WARNING',
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()
        db.engine.dispose()


class TestConcurrentSubmission:

    def test_two_stock_outs_race_for_the_same_stock(self, file_app, monkeypatch):
        """
        V=5, two drafted stock-outs of 4 submitted from two threads. Both read
        5 on hand before either writes; exactly one must succeed.
        """
        with file_app.app_context():
            permission_service.seed_roles_and_permissions()
            db.session.commit()
            user_id = make_user(db.session, "Staff", "staff@stockroom.test", "inventory_staff").id

            product = Product(name="Arabica Beans", sku="ARB")
            product.variants.append(ProductVariant(name="1kg", sku="ARB-1000", stock_current=5))
            db.session.add(product)
            db.session.commit()
            variant_id = product.variants[0].id

            authz = file_app.extensions["authorization"]
            principal = db.session.get(User, user_id)
            record_ids = [
                _draft(STOCK_OUT, principal, authz, [{"product_variant_id": variant_id, "quantity": 4}]).id
                for _ in range(2)
            ]

        both_read = threading.Barrier(2, timeout=10)
        original = stock_record_service._available_quantities

        def read_then_wait(variants):
            available = original(variants)
            both_read.wait()
            return available

        monkeypatch.setattr(stock_record_service, "_available_quantities", read_then_wait)

        outcomes = {}

        def submit(record_id):
            with file_app.app_context():
                principal = db.session.get(User, user_id)
                try:
                    stock_record_service.submit_record(
                        STOCK_OUT, record_id, principal=principal, authz=file_app.extensions["authorization"]
                    )
                    outcomes[record_id] = "submitted"
                except ValidationFailed as e:
                    outcomes[record_id] = e.errors

        threads = [threading.Thread(target=submit, args=(record_id,)) for record_id in record_ids]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert sorted(outcomes.values(), key=str) == sorted([
            "submitted",
            {"items.0.quantity": ["Insufficient stock: requested 4, available 1."]},
        ], key=str)

        with file_app.app_context():
            assert current_quantity(variant_id) == 1
            statuses = sorted(stock_record_service.get_record(STOCK_OUT, rid).status for rid in record_ids)
            assert statuses == [STATUS_DRAFT, STATUS_SUBMITTED]



# =============================================================================
# LISTING
# =============================================================================


class TestListing:

    def test_filters_and_statistics(self, authz, staff_user, variant_v):
        a = _draft(STOCK_IN, staff_user, authz, [_line(variant_v, 2)], note="pallet 7")
        _draft(STOCK_IN, staff_user, authz, [_line(variant_v, 3)])
        stock_record_service.submit_record(STOCK_IN, a.id, principal=staff_user, authz=authz)

        drafts, total = stock_record_service.list_records(STOCK_IN, status=STATUS_DRAFT)
        assert total == 1 and drafts[0].status == STATUS_DRAFT

        found, total = stock_record_service.list_records(STOCK_IN, search="pallet")
        assert total == 1 and found[0].id == a.id

        stats = stock_record_service.record_statistics(STOCK_IN)
        assert stats["total_records"] == 2
        assert stats["total_draft"] == 1
        assert stats["total_submitted"] == 1
        assert stats["total_submitted_quantity"] == 2
        assert stats["total_items"] == 2

    def test_invalid_status_filter(self, setup_roles):
        with pytest.raises(ValidationFailed):
            stock_record_service.list_records(STOCK_OUT, status="posted")
