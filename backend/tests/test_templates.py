"""
Template tests.

Verifies:
- At most one template is active; activating one deactivates the rest
- Variant lists reject duplicates by position
- Soft delete needs an inactive, empty template; restore and force delete
  need a deleted one
- The active template resolves into stock-out lines
"""

import pytest

from stockroom.errors import AuthorizationDenied, NotFound, ValidationFailed
from stockroom.models import Template
from stockroom.services import template_service


def _create(authz, principal, name, variants, **extra):
    payload = {"name": name, "variants": [v.id for v in variants]}
    payload.update(extra)
    return template_service.create_template(payload, principal=principal, authz=authz)


def _active_ids(db_session):
    return [t.id for t in db_session.query(Template).filter(Template.is_active.is_(True)).all()]


class TestActivation:

    def test_new_templates_start_inactive(self, authz, admin_user, variant_v):
        template = _create(authz, admin_user, "Morning", [variant_v])
        assert template.is_active is False

    def test_set_active_switches_exclusively(self, authz, db_session, admin_user, variant_v, variant_w):
        a = _create(authz, admin_user, "A", [variant_v], is_active=True)
        b = _create(authz, admin_user, "B", [variant_w])
        assert _active_ids(db_session) == [a.id]

        template_service.set_active(b.id, principal=admin_user, authz=authz)

        assert _active_ids(db_session) == [b.id]
        assert db_session.get(Template, a.id).is_active is False

    def test_creating_active_takes_the_slot(self, authz, db_session, admin_user, variant_v):
        a = _create(authz, admin_user, "A", [variant_v], is_active=True)
        c = _create(authz, admin_user, "C", [variant_v], is_active=True)
        assert _active_ids(db_session) == [c.id]
        assert a.id != c.id

    def test_set_active_is_idempotent(self, authz, db_session, admin_user, variant_v):
        a = _create(authz, admin_user, "A", [variant_v])
        template_service.set_active(a.id, principal=admin_user, authz=authz)
        template_service.set_active(a.id, principal=admin_user, authz=authz)
        assert _active_ids(db_session) == [a.id]

    def test_deactivate(self, authz, db_session, admin_user, variant_v):
        a = _create(authz, admin_user, "A", [variant_v], is_active=True)
        template_service.deactivate(a.id, principal=admin_user, authz=authz)
        assert _active_ids(db_session) == []
        assert template_service.get_active_template() is None

    def test_staff_cannot_activate(self, authz, admin_user, staff_user, variant_v):
        a = _create(authz, admin_user, "A", [variant_v])
        with pytest.raises(AuthorizationDenied):
            template_service.set_active(a.id, principal=staff_user, authz=authz)


class TestValidation:

    def test_duplicate_variant_reported_by_position(self, authz, admin_user, variant_v, variant_w):
        with pytest.raises(ValidationFailed) as exc:
            template_service.create_template(
                {"name": "Dup", "variants": [variant_v.id, variant_w.id, variant_v.id]},
                principal=admin_user, authz=authz,
            )
        assert list(exc.value.errors) == ["variants.2"]

    def test_unknown_variant(self, authz, admin_user, variant_v):
        with pytest.raises(ValidationFailed) as exc:
            template_service.create_template(
                {"name": "X", "variants": [variant_v.id, 987654]}, principal=admin_user, authz=authz,
            )
        assert list(exc.value.errors) == ["variants.1"]

    def test_create_requires_name_and_variants(self, authz, admin_user, setup_roles):
        with pytest.raises(ValidationFailed) as exc:
            template_service.create_template({"variants": []}, principal=admin_user, authz=authz)
        assert set(exc.value.errors) == {"name", "variants"}

    def test_update_diffs_items(self, authz, admin_user, variant_v, variant_w):
        template = _create(authz, admin_user, "A", [variant_v])
        kept_item_id = template.items[0].id

        template = template_service.update_template(
            template.id, {"name": "A2", "variants": [variant_v.id, variant_w.id]},
            principal=admin_user, authz=authz,
        )
        assert template.name == "A2"
        assert sorted(template.variant_ids) == sorted([variant_v.id, variant_w.id])
        assert kept_item_id in [item.id for item in template.items]


class TestDeletion:

    def test_active_or_nonempty_template_cannot_be_deleted(self, authz, admin_user, variant_v):
        template = _create(authz, admin_user, "A", [variant_v], is_active=True)
        with pytest.raises(ValidationFailed) as exc:
            template_service.delete_template(template.id, principal=admin_user, authz=authz)
        assert set(exc.value.errors) == {"is_active", "items"}

    def test_delete_checks_the_current_row(self, authz, db_session, admin_user, variant_v):
        """Activated by another writer after this session loaded it: delete must still refuse."""
        template = _create(authz, admin_user, "A", [variant_v])
        template_service.update_template(template.id, {"variants": []}, principal=admin_user, authz=authz)
        assert template.is_active is False

        table = Template.__table__
        db_session.connection().execute(
            table.update().where(table.c.id == template.id).values(is_active=True)
        )

        with pytest.raises(ValidationFailed) as exc:
            template_service.delete_template(template.id, principal=admin_user, authz=authz)
        assert list(exc.value.errors) == ["is_active"]

    def test_delete_restore_force_delete(self, authz, db_session, admin_user, variant_v):
        template = _create(authz, admin_user, "A", [variant_v])
        template_service.update_template(template.id, {"variants": []}, principal=admin_user, authz=authz)

        template_service.delete_template(template.id, principal=admin_user, authz=authz)
        with pytest.raises(NotFound):
            template_service.get_template(template.id)

        restored = template_service.restore_template(template.id, principal=admin_user, authz=authz)
        assert restored.deleted_at is None

        template_service.delete_template(template.id, principal=admin_user, authz=authz)
        template_service.force_delete_template(template.id, principal=admin_user, authz=authz)
        assert db_session.get(Template, template.id) is None

    def test_restore_requires_deleted(self, authz, admin_user, variant_v):
        template = _create(authz, admin_user, "A", [variant_v])
        with pytest.raises(ValidationFailed) as exc:
            template_service.restore_template(template.id, principal=admin_user, authz=authz)
        assert "deleted_at" in exc.value.errors

    def test_force_delete_requires_deleted(self, authz, admin_user, variant_v):
        template = _create(authz, admin_user, "A", [variant_v])
        with pytest.raises(ValidationFailed):
            template_service.force_delete_template(template.id, principal=admin_user, authz=authz)

    def test_listing_trashed(self, authz, admin_user, variant_v):
        keep = _create(authz, admin_user, "Keep", [variant_v])
        gone = _create(authz, admin_user, "Gone", [variant_v])
        template_service.update_template(gone.id, {"variants": []}, principal=admin_user, authz=authz)
        template_service.delete_template(gone.id, principal=admin_user, authz=authz)

        live, total = template_service.list_templates()
        assert total == 1 and live[0].id == keep.id

        trashed, total = template_service.list_templates(only_trashed=True)
        assert total == 1 and trashed[0].id == gone.id

        _, total = template_service.list_templates(with_trashed=True)
        assert total == 2


class TestResolve:

    def test_no_active_template(self, setup_roles):
        assert template_service.resolve_active() == {"template": None, "items": []}

    def test_resolves_lines_and_skips_tombstoned_variants(self, authz, db_session, admin_user, variant_v, variant_w):
        template = _create(authz, admin_user, "Daily", [variant_v, variant_w], is_active=True)
        variant_w.tombstone()
        db_session.commit()

        resolved = template_service.resolve_active()
        assert resolved["template"] == {"id": template.id, "name": "Daily"}
        assert resolved["items"] == [{
            "product_variant_id": variant_v.id,
            "quantity": 0,
            "variant_name": "250g",
            "variant_sku": "ARB-250",
            "product_name": "Arabica Beans",
            "stock_current": 10,
        }]
