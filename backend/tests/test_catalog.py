from decimal import Decimal
from pathlib import Path

import pytest

from jewelry_shop.core.config import settings
from jewelry_shop.core.exceptions import BadRequestError, NotFoundError
from jewelry_shop.modules.catalog.service import CatalogService


def product_data(sku, **extra):
    return {
        "name": f"Pearl {sku}",
        "description": "Freshwater pearl",
        "base_price": Decimal("250.00"),
        "sku": sku,
        "stock_quantity": 3,
        "is_featured": False,
        **extra,
    }


# ==================== Categories ====================


async def test_category_slugs_are_unique(db):
    catalog = CatalogService(db)
    first = await catalog.create_category("Rings")
    second = await catalog.create_category("Rings")

    assert first.slug == "rings"
    assert second.slug == "rings-2"


async def test_category_parent_must_exist(db):
    catalog = CatalogService(db)
    with pytest.raises(BadRequestError):
        await catalog.create_category("Earrings", parent_id=404)

    parent = await catalog.create_category("Jewelry")
    child = await catalog.create_category("Earrings", parent_id=parent.id)
    assert child.parent.id == parent.id

    with pytest.raises(BadRequestError, match="own parent"):
        await catalog.update_category(parent.id, {"parent_id": parent.id})


async def test_deleted_category_is_hidden(db):
    catalog = CatalogService(db)
    category = await catalog.create_category("Bracelets")
    await catalog.delete_category(category.id)

    assert await catalog.get_categories() == []
    with pytest.raises(NotFoundError):
        await catalog.get_category(category.id)


# ==================== Products ====================


async def test_first_image_becomes_primary(db):
    product = await CatalogService(db).create_product(
        product_data(
            "P-1",
            images=[
                {"image_url": "/uploads/products/a.jpg"},
                {"image_url": "/uploads/products/b.jpg"},
            ],
        )
    )

    assert product.slug == "pearl-p-1-p-1"
    assert product.primary_image_url == "/uploads/products/a.jpg"
    assert sum(image.is_primary for image in product.images) == 1


async def test_duplicate_sku_rejected_even_after_delete(db):
    catalog = CatalogService(db)
    product = await catalog.create_product(product_data("DUP"))

    with pytest.raises(BadRequestError, match="already exists"):
        await catalog.create_product(product_data("DUP"))

    await catalog.delete_product(product.id)
    with pytest.raises(BadRequestError):
        await catalog.create_product(product_data("DUP"))


async def test_colliding_product_slugs_get_suffixes(db):
    catalog = CatalogService(db)
    first = await catalog.create_product(product_data("X-1", name="Gold Ring"))
    second = await catalog.create_product(product_data("Ring-X-1", name="Gold"))

    assert first.slug == "gold-ring-x-1"
    assert second.slug == "gold-ring-x-1-2"


async def test_sku_check_ignores_case(db):
    catalog = CatalogService(db)
    await catalog.create_product(product_data("AB-1"))

    with pytest.raises(BadRequestError, match="already exists"):
        await catalog.create_product(product_data("ab-1"))


async def test_soft_deleted_product_disappears(db):
    catalog = CatalogService(db)
    kept = await catalog.create_product(product_data("KEEP"))
    gone = await catalog.create_product(product_data("GONE"))

    await catalog.delete_product(gone.id)

    page = await catalog.get_products()
    assert [p.id for p in page["products"]] == [kept.id]
    assert page["total_count"] == 1
    with pytest.raises(NotFoundError):
        await catalog.get_product(gone.id)


async def test_update_images_replace_or_preserve(db):
    catalog = CatalogService(db)
    product = await catalog.create_product(
        product_data("IMG", images=[{"image_url": "/uploads/products/old.jpg"}])
    )

    renamed = await catalog.update_product(product.id, {"name": "Pearl Drop"})
    assert renamed.name == "Pearl Drop"
    assert [i.image_url for i in renamed.images] == ["/uploads/products/old.jpg"]

    replaced = await catalog.update_product(
        product.id, {"images": [{"image_url": "/uploads/products/new.jpg"}]}
    )
    assert [i.image_url for i in replaced.images] == ["/uploads/products/new.jpg"]

    cleared = await catalog.update_product(product.id, {"images": []})
    assert cleared.images == []
    assert cleared.primary_image_url is None


async def test_update_relinks_categories(db):
    catalog = CatalogService(db)
    rings = await catalog.create_category("Rings")
    gold = await catalog.create_category("Gold")
    product = await catalog.create_product(product_data("CAT", category_ids=[rings.id]))
    assert [c.slug for c in product.categories] == ["rings"]

    both = await catalog.update_product(product.id, {"category_ids": [rings.id, gold.id]})
    assert sorted(c.slug for c in both.categories) == ["gold", "rings"]

    only_gold = await catalog.update_product(product.id, {"category_ids": [gold.id]})
    assert [c.slug for c in only_gold.categories] == ["gold"]

    with pytest.raises(BadRequestError, match="Categories not found"):
        await catalog.update_product(product.id, {"category_ids": [999]})


async def test_update_ignores_null_required_fields(db):
    catalog = CatalogService(db)
    product = await catalog.create_product(product_data("NUL", sale_price=Decimal("200.00")))

    updated = await catalog.update_product(product.id, {"name": None, "sale_price": None})
    assert updated.name == "Pearl NUL"
    assert updated.sale_price is None
    assert updated.price == Decimal("250.00")


async def test_filters_and_pagination(db):
    catalog = CatalogService(db)
    rings = await catalog.create_category("Rings")
    await catalog.create_product(
        product_data("R-1", name="Diamond Ring", category_ids=[rings.id], is_featured=True)
    )
    await catalog.create_product(
        product_data("R-2", name="Ruby Ring", category_ids=[rings.id], sale_price=Decimal("90"))
    )
    await catalog.create_product(product_data("N-1", name="Silver Necklace"))

    found = await catalog.get_products(search="ring")
    assert found["total_count"] == 2

    in_category = await catalog.get_products(category_id=rings.id)
    assert in_category["total_count"] == 2

    featured = await catalog.get_products(featured=True)
    assert [p.sku for p in featured["products"]] == ["R-1"]

    cheap = await catalog.get_products(max_price=Decimal("100"))
    assert [p.sku for p in cheap["products"]] == ["R-2"]

    page = await catalog.get_products(page=2, limit=2)
    assert page["total_count"] == 3
    assert page["total_pages"] == 2
    assert page["current_page"] == 2
    assert len(page["products"]) == 1


# ==================== API ====================


async def test_api_lists_products_publicly(client, ring):
    response = await client.get("/api/products", params={"search": "RING-1"})
    assert response.status_code == 200
    body = response.json()
    assert body["total_count"] == 1
    assert body["products"][0]["sku"] == "RING-1"
    assert body["products"][0]["price"] == 10


async def test_api_product_writes_need_admin(client, customer_headers, admin_headers):
    payload = {
        "name": "Jade Bangle",
        "description": "Green jade",
        "base_price": "500.00",
        "sku": "JADE-1",
        "stock_quantity": 1,
    }

    denied = await client.post("/api/products", json=payload, headers=customer_headers)
    assert denied.status_code == 401

    created = await client.post("/api/products", json=payload, headers=admin_headers)
    assert created.status_code == 201
    product_id = created.json()["id"]

    deleted = await client.delete(f"/api/products/{product_id}", headers=admin_headers)
    assert deleted.status_code == 200
    assert (await client.get(f"/api/products/{product_id}")).status_code == 404


async def test_api_products_with_colliding_slugs(client, admin_headers):
    base = {"description": "Yellow gold", "base_price": "300.00", "stock_quantity": 1}

    first = await client.post(
        "/api/products", json={**base, "name": "Gold Ring", "sku": "X-1"}, headers=admin_headers
    )
    second = await client.post(
        "/api/products", json={**base, "name": "Gold", "sku": "Ring-X-1"}, headers=admin_headers
    )

    assert first.status_code == 201
    assert second.status_code == 201
    assert first.json()["slug"] != second.json()["slug"]


async def test_api_upload_images(client, admin_headers):
    response = await client.post(
        "/api/products/upload",
        files=[("files", ("ring.png", b"\x89PNG\r\n\x1a\n", "image/png"))],
        headers=admin_headers,
    )
    assert response.status_code == 201
    [url] = response.json()["urls"]
    assert url.startswith("/uploads/products/") and url.endswith(".png")
    assert (Path(settings.upload_dir) / url.removeprefix("/uploads/")).exists()


async def test_api_upload_rejects_non_images(client, admin_headers):
    response = await client.post(
        "/api/products/upload",
        files=[("files", ("notes.txt", b"hello", "text/plain"))],
        headers=admin_headers,
    )
    assert response.status_code == 400


async def test_api_category_crud(client, admin_headers):
    created = await client.post(
        "/api/categories", json={"name": "Anklets"}, headers=admin_headers
    )
    assert created.status_code == 201
    category_id = created.json()["id"]

    renamed = await client.patch(
        f"/api/categories/{category_id}",
        json={"description": "Ankle chains"},
        headers=admin_headers,
    )
    assert renamed.json()["name"] == "Anklets"
    assert renamed.json()["description"] == "Ankle chains"

    listed = await client.get("/api/categories")
    assert [c["slug"] for c in listed.json()] == ["anklets"]
