import asyncio

from app.menu_parser import menu_from_dict, parse_menu, preprocess_menu_content
from app.photo_parser import parse_menu_from_photos


def test_preprocess_strips_noise() -> None:
    raw = (
        "  Starters  \n\n\n"
        "Spring   Roll\t\t$5.00\n"
        "-----------\n"
        "Order at https://order.example.com/bistro now\n"
        "© 2024 Bistro. All rights reserved. Built by someone\n"
        "Privacy Policy\n"
        "Terms & Conditions apply\n"
        "Soup $4.00  "
    )
    assert preprocess_menu_content(raw) == "Starters\nSpring Roll $5.00\nOrder at now\n© 2024 Bistro.\nSoup $4.00"


def test_menu_from_dict_drops_bad_items_and_tags() -> None:
    menu = menu_from_dict({
        "description": "Cozy.",
        "cuisine": "thai",
        "tags": ["vegan", "cheap"],
        "categories": ["Mains", "  "],
        "items": [
            {"name": "Pad Thai", "price": "$14.00", "category": "Mains", "tags": ["spicy", "vegetarian"]},
            {"name": "", "price": "$1.00"},
            {"price": "$2.00"},
            "nonsense",
        ],
    })
    assert [i.name for i in menu.items] == ["Pad Thai"]
    assert menu.items[0].tags == ["vegetarian"]
    assert menu.categories == ["Mains"]
    assert menu.cuisine == "Thai"
    assert menu.tags == ["vegan"]


def test_parse_menu_uses_forced_tool(fake_llm) -> None:
    client = fake_llm(tool_input={
        "description": "A bistro.",
        "categories": ["Starters"],
        "items": [{"name": "Soup", "description": None, "price": "$4.00", "category": "Starters", "tags": []}],
    })

    menu = asyncio.run(parse_menu("Starters\nSoup $4.00", "Bistro", has_website_data=True))

    assert menu.items[0].name == "Soup"
    call = client.messages.calls[0]
    assert call["tool_choice"] == {"type": "tool", "name": "save_menu"}
    assert "Restaurant: Bistro" in call["messages"][0]["content"]


def test_parse_menu_returns_none_on_failure() -> None:
    assert asyncio.run(parse_menu("Soup $4.00", "Bistro")) is None


def test_photo_parser(fake_llm) -> None:
    client = fake_llm(deltas=['```json\n{"categories": ["Board"], ', '"items": [{"name": "Latte", "price": "$4.50"}]}\n```'])

    menu = asyncio.run(parse_menu_from_photos([f"https://photos.test/{i}" for i in range(8)], "Cafe"))

    assert [i.name for i in menu.items] == ["Latte"]
    content = client.messages.calls[0]["messages"][0]["content"]
    assert sum(1 for block in content if block["type"] == "image") == 5


def test_photo_parser_without_photos() -> None:
    assert asyncio.run(parse_menu_from_photos([], "Cafe")) is None
