"""
Built-in starter catalog.

Seeded into the products table on first start and used as the demo store's
catalog. Store owners list these (or add custom products) to build inventory.
"""
from domain.records import BrandOption, CatalogProduct


def _p(id, name, price, mrp, emoji, category, brands=(), description=None):
    return CatalogProduct(
        id=id,
        name=name,
        price=price,
        mrp=mrp,
        emoji=emoji,
        category=category,
        description=description,
        brands=[BrandOption(name=b, price=bp) for b, bp in brands],
    )


INITIAL_PRODUCTS: list[CatalogProduct] = [
    _p("1", "Sona Masoori Rice (1kg)", 60, 70, "🍚", "Staples",
       [("Generic", 60), ("India Gate", 85), ("Daawat", 80)]),
    _p("2", "Toor Dal (1kg)", 140, 160, "🫘", "Staples",
       [("Generic", 140), ("Tata Sampann", 165)]),
    _p("3", "Whole Wheat Atta (5kg)", 240, 275, "🌾", "Staples",
       [("Generic", 240), ("Aashirvaad", 265)]),
    _p("4", "Sunflower Oil (1L)", 150, 175, "🛢️", "Staples",
       [("Generic", 150), ("Fortune", 165)]),
    _p("21", "Onion (1kg)", 40, 45, "🧅", "Produce"),
    _p("22", "Tomato (1kg)", 30, 35, "🍅", "Produce"),
    _p("23", "Banana (dozen)", 55, 60, "🍌", "Produce"),
    _p("41", "Toned Milk (500ml)", 27, 28, "🥛", "Dairy",
       [("Nandini", 27), ("Amul", 29)]),
    _p("42", "Fresh Curd (500g)", 35, 40, "🥣", "Dairy",
       [("Nandini", 35), ("Amul", 40)]),
    _p("43", "Paneer (200g)", 90, 100, "🧀", "Dairy"),
    _p("61", "Brown Bread", 45, 50, "🍞", "Bakery"),
    _p("81", "Potato Chips", 20, 20, "🥔", "Snacks",
       [("Lay's", 20), ("Bingo", 20)]),
    _p("82", "Glucose Biscuits", 10, 10, "🍪", "Snacks",
       [("Parle-G", 10), ("Britannia", 10)]),
]

CATALOG_BY_ID: dict[str, CatalogProduct] = {p.id: p for p in INITIAL_PRODUCTS}
