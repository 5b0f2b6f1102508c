"""
Catalog tests.

Verifies:
- Products are created with their variants; skus are unique
- stock_current is only taken as an opening balance for new variants
- Soft delete cascades to variants with one timestamp; restore brings back
  exactly those variants
- Force delete needs a deleted product whose variants nothing references
"""

import pytest

from stockroom.errors import AuthorizationDenied, NotFound, ValidationFailed
from stockroom.models import Product, ProductVariant
from stockroom.services import products_service, template_service


def _payload(**overrides):
    payload = {
        "name": "Green Tea",
        "sku": "GTEA",
        "description": "Loose leaf",
        "variants": [
            {"name": "50g", "sku": "GTEA-50", "stock_current": 12},
            {"name": "100g", "sku": "GTEA-100"},
        ],
    }
    payload.update(overrides)
    return payload


class TestCreate:

    def test_create_with_variants(self, authz, admin_user):
        product = products_service.create_product(_payload(), principal=admin_user, authz=authz)
        stock = {v.sku: v.stock_current for v in product.variants}
        assert stock == {"GTEA-50": 12, "GTEA-100": 0}

    def test_description_is_optional(self, authz, admin_user):
        payload = _payload()
        del payload["description"]
        product = products_service.create_product(payload, principal=admin_user, authz=authz)
        assert product.id is not None
        assert product.description is None

        products_service.update_product(product.id, {"description": "Sencha"}, principal=admin_user, authz=authz)
        assert product.description == "Sencha"
        products_service.update_product(product.id, {"description": None}, principal=admin_user, authz=authz)
        assert product.description is None

    def test_sku_taken_between_check_and_insert(self, authz, db_session, admin_user, product, monkeypatch):
        monkeypatch.setattr(products_service, "_sku_taken", lambda *args, **kwargs: False)
        with pytest.raises(ValidationFailed) as exc:
            products_service.create_product(_payload(sku="ARB"), principal=admin_user, authz=authz)
        assert exc.value.errors == {"sku": ["The sku has already been taken."]}
        assert db_session.query(Product).filter_by(sku="ARB").count() == 1

    def test_duplicate_skus(self, authz, admin_user, product):
        payload = _payload(sku="ARB", variants=[
            {"name": "a", "sku": "ARB-250"},
            {"name": "b", "sku": "NEW-1"},
            {"name": "c", "sku": "NEW-1"},
        ])
        with pytest.raises(ValidationFailed) as exc:
            products_service.create_product(payload, principal=admin_user, authz=authz)
        assert set(exc.value.errors) == {"sku", "variants.0.sku", "variants.2.sku"}

    def test_variants_required(self, authz, admin_user):
        with pytest.raises(ValidationFailed) as exc:
            products_service.create_product(_payload(variants=[]), principal=admin_user, authz=authz)
        assert "variants" in exc.value.errors

    def test_negative_opening_balance(self, authz, admin_user):
        payload = _payload(variants=[{"name": "x", "sku": "X-1", "stock_current": -3}])
        with pytest.raises(ValidationFailed) as exc:
            products_service.create_product(payload, principal=admin_user, authz=authz)
        assert "variants.0.stock_current" in exc.value.errors

    def test_staff_cannot_create(self, authz, staff_user):
        with pytest.raises(AuthorizationDenied):
            products_service.create_product(_payload(), principal=staff_user, authz=authz)


class TestUpdate:

    def test_existing_stock_is_never_written(self, authz, admin_user, product, variant_v, variant_w):
        products_service.update_product(product.id, {
            "name": "Arabica",
            "variants": [
                {"id": variant_v.id, "name": "250 g", "sku": "ARB-250", "stock_current": 999},
                {"id": variant_w.id, "name": "1 kg", "sku": "ARB-1000"},
            ],
        }, principal=admin_user, authz=authz)

        assert variant_v.stock_current == 10
        assert variant_v.name == "250 g"
        assert product.name == "Arabica"

    def test_omitted_variant_is_tombstoned_and_new_one_added(self, authz, admin_user, product, variant_v, variant_w):
        products_service.update_product(product.id, {
            "variants": [
                {"id": variant_v.id, "name": "250g", "sku": "ARB-250"},
                {"name": "5kg", "sku": "ARB-5000", "stock_current": 2},
            ],
        }, principal=admin_user, authz=authz)

        assert variant_w.is_tombstoned
        new = next(v for v in product.variants if v.sku == "ARB-5000")
        assert new.stock_current == 2
        assert not variant_v.is_tombstoned

    def test_foreign_variant_id_rejected(self, authz, admin_user, product):
        other = products_service.create_product(_payload(), principal=admin_user, authz=authz)
        foreign_id = other.variants[0].id
        with pytest.raises(ValidationFailed) as exc:
            products_service.update_product(product.id, {
                "variants": [{"id": foreign_id, "name": "x", "sku": "X-9"}],
            }, principal=admin_user, authz=authz)
        assert "variants.0.id" in exc.value.errors


class TestLifecycle:

    def test_delete_cascades_and_restore_brings_back(self, authz, db_session, admin_user, product, variant_v, variant_w):
        products_service.delete_product(product.id, principal=admin_user, authz=authz)

        assert product.is_tombstoned
        assert variant_v.deleted_at == product.deleted_at
        assert variant_w.deleted_at == product.deleted_at
        with pytest.raises(NotFound):
            products_service.get_product(product.id)

        products_service.restore_product(product.id, principal=admin_user, authz=authz)
        assert not product.is_tombstoned
        assert not variant_v.is_tombstoned
        assert not variant_w.is_tombstoned

    def test_restore_leaves_earlier_deleted_variants(self, authz, admin_user, product, variant_v, variant_w):
        products_service.update_product(product.id, {
            "variants": [{"id": variant_v.id, "name": "250g", "sku": "ARB-250"}],
        }, principal=admin_user, authz=authz)
        products_service.delete_product(product.id, principal=admin_user, authz=authz)
        products_service.restore_product(product.id, principal=admin_user, authz=authz)

        assert not variant_v.is_tombstoned
        assert variant_w.is_tombstoned

    def test_restore_requires_deleted(self, authz, admin_user, product):
        with pytest.raises(ValidationFailed) as exc:
            products_service.restore_product(product.id, principal=admin_user, authz=authz)
        assert "deleted_at" in exc.value.errors

    def test_force_delete_requires_deleted(self, authz, admin_user, product):
        with pytest.raises(ValidationFailed):
            products_service.force_delete_product(product.id, principal=admin_user, authz=authz)

    def test_force_delete_blocked_by_references(self, authz, db_session, admin_user, product, variant_v):
        template_service.create_template(
            {"name": "Uses V", "variants": [variant_v.id]}, principal=admin_user, authz=authz
        )
        products_service.delete_product(product.id, principal=admin_user, authz=authz)

        with pytest.raises(ValidationFailed) as exc:
            products_service.force_delete_product(product.id, principal=admin_user, authz=authz)
        assert "variants" in exc.value.errors
        assert db_session.get(Product, product.id) is not None

    def test_force_delete_removes_product_and_variants(self, authz, db_session, admin_user, product):
        product_id = product.id
        products_service.delete_product(product_id, principal=admin_user, authz=authz)
        products_service.force_delete_product(product_id, principal=admin_user, authz=authz)

        assert db_session.get(Product, product_id) is None
        assert db_session.query(ProductVariant).filter_by(product_id=product_id).count() == 0

    def test_supervisor_cannot_force_delete(self, authz, admin_user, supervisor_user, product):
        products_service.delete_product(product.id, principal=admin_user, authz=authz)
        with pytest.raises(AuthorizationDenied):
            products_service.force_delete_product(product.id, principal=supervisor_user, authz=authz)


class TestListing:

    def test_search_matches_variant_sku(self, authz, admin_user, product):
        products_service.create_product(_payload(), principal=admin_user, authz=authz)

        found, total = products_service.list_products(search="ARB-1000")
        assert total == 1 and found[0].id == product.id

    def test_trashed_filters(self, authz, admin_user, product):
        other = products_service.create_product(_payload(), principal=admin_user, authz=authz)
        products_service.delete_product(other.id, principal=admin_user, authz=authz)

        _, live = products_service.list_products()
        _, trashed = products_service.list_products(only_trashed=True)
        _, everything = products_service.list_products(with_trashed=True)
        assert (live, trashed, everything) == (1, 1, 2)

    def test_list_variants_hides_tombstoned(self, authz, admin_user, product, variant_v):
        products_service.update_product(product.id, {
            "variants": [{"id": variant_v.id, "name": "250g", "sku": "ARB-250"}],
        }, principal=admin_user, authz=authz)
        assert [v.sku for v in products_service.list_variants()] == ["ARB-250"]
