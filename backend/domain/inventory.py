"""
Inventory listing updates.

One combined update sets the offered flag, sell price, reference price and
stock. With brand variants, the aggregate stock is the sum over variants that
are currently offered; switching the item off only clears the aggregate flag,
variant data is left as it was.
"""
from typing import Optional

from domain.errors import ValidationError
from domain.records import BrandVariant, InventoryItem


def aggregate_stock(brand_details: dict[str, BrandVariant]) -> int:
    return sum(v.stock for v in brand_details.values() if v.in_stock)


def apply_listing_update(
    item: InventoryItem,
    *,
    in_stock: bool,
    price: Optional[float] = None,
    mrp: Optional[float] = None,
    stock: Optional[int] = None,
    brand_details: Optional[dict[str, BrandVariant]] = None,
) -> InventoryItem:
    """Return a new InventoryItem with the listing change applied. `item` is untouched."""
    new_price = item.store_price if price is None else price
    new_mrp = item.mrp if mrp is None else mrp
    new_stock = item.stock if stock is None else stock
    if new_price < 0:
        raise ValidationError("Price must not be negative", field="price")
    if new_stock < 0:
        raise ValidationError("Stock must not be negative", field="stock")
    if new_mrp is not None and new_mrp < 0:
        raise ValidationError("MRP must not be negative", field="mrp")

    variants = dict(item.brand_details if brand_details is None else brand_details)
    if variants:
        new_stock = aggregate_stock(variants)

    return item.model_copy(
        update={
            "store_price": new_price,
            "mrp": new_mrp,
            "in_stock": in_stock,
            "stock": new_stock,
            "is_active": True,
            "brand_details": variants,
        }
    )


def toggle_in_stock(item: InventoryItem) -> InventoryItem:
    """Flip the offered flag, keeping price, MRP, stock and variants."""
    return apply_listing_update(item, in_stock=not item.in_stock)


def delist(item: InventoryItem) -> InventoryItem:
    """Remove from the store's managed list (not offered, no stock)."""
    return item.model_copy(update={"is_active": False, "in_stock": False, "stock": 0})
