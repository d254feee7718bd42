import asyncio

from app.database import generate_slug, restaurant_record, save_menu
from app.models import ColorPalette, MenuItem, ParsedMenu


def items(*names, category=None):
    return [MenuItem(name=name, price="$1.00", category=category) for name in names]


def test_generate_slug() -> None:
    assert generate_slug("Joe's Pizza & Pasta!") == "joe-s-pizza-pasta"
    assert generate_slug("  Café 24  ") == "caf-24"


def test_flat_menu_goes_to_single_menu_category(store) -> None:
    menu = ParsedMenu(items=items("Burger", "Fries", "Shake"), categories=None)

    totals = asyncio.run(save_menu(store, "r1", menu))

    assert totals == (1, 3)
    assert len(store.categories) == 1
    only = store.categories[0]
    assert only["name"] == "Menu"
    assert only["display_order"] == 0
    assert {i["name"] for i in store.items_in(only["id"])} == {"Burger", "Fries", "Shake"}


def test_empty_category_list_is_treated_as_flat(store) -> None:
    menu = ParsedMenu(items=items("Burger", category="Mains"), categories=[])
    asyncio.run(save_menu(store, "r1", menu))
    assert [(c["name"], c["display_order"]) for c in store.categories] == [("Menu", 0)]


def test_categories_keep_order_and_leftovers_sort_last(store) -> None:
    menu = ParsedMenu(
        categories=["Starters", "Mains", "starters"],
        items=items("Soup", category="Starters")
        + items("Steak", category="mains")
        + items("Mystery", category="Specials")
        + items("Water"),
    )

    totals = asyncio.run(save_menu(store, "r1", menu))

    assert [(c["name"], c["display_order"]) for c in store.categories] == [
        ("Starters", 0), ("Mains", 1), ("Menu", 999),
    ]
    assert totals == (3, 4)
    leftovers = store.items_in(store.category_named("Menu")["id"])
    assert {i["name"] for i in leftovers} == {"Mystery", "Water"}


def test_items_of_failed_category_fall_back_to_menu(store) -> None:
    store.fail_categories.add("Starters")
    menu = ParsedMenu(
        categories=["Starters", "Mains"],
        items=items("Soup", "Salad", category="Starters") + items("Steak", category="Mains"),
    )

    totals = asyncio.run(save_menu(store, "r1", menu))

    assert totals == (2, 3)
    assert [(c["name"], c["display_order"]) for c in store.categories] == [("Mains", 1), ("Menu", 999)]
    fallback = store.items_in(store.category_named("Menu")["id"])
    assert {i["name"] for i in fallback} == {"Soup", "Salad"}


def test_failed_fallback_category_is_skipped(store) -> None:
    store.fail_categories.update({"Starters", "Menu"})
    menu = ParsedMenu(
        categories=["Starters", "Mains"],
        items=items("Soup", category="Starters") + items("Steak", category="Mains"),
    )

    assert asyncio.run(save_menu(store, "r1", menu)) == (1, 1)
    assert [c["name"] for c in store.categories] == ["Mains"]


def test_nothing_to_save(store) -> None:
    assert asyncio.run(save_menu(store, "r1", ParsedMenu())) == (0, 0)
    assert store.categories == []


def test_restaurant_record_carries_branding() -> None:
    record = restaurant_record(
        "place-1", "Test Bistro",
        colors=ColorPalette(primary="#aa0000", secondary="#00aa00"),
        logo="https://example.com/logo.png",
        currency="CAD",
    )
    assert record["slug"] == "test-bistro"
    assert record["primary_colour"] == "#aa0000"
    assert record["accent_colour"] is None
    assert record["logo_url"] == "https://example.com/logo.png"
    assert record["currency"] == "CAD"
    assert record["verified"] is False
