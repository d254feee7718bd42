from app.places import place_details_from_response


def test_canadian_place() -> None:
    details = place_details_from_response("p1", {
        "displayName": {"text": "Maple Diner"},
        "websiteUri": "https://maple.test",
        "formattedAddress": "1 King St W, Toronto, ON",
        "addressComponents": [
            {"types": ["locality", "political"], "longText": "Toronto", "shortText": "Toronto"},
            {"types": ["country", "political"], "longText": "Canada", "shortText": "CA"},
        ],
        "nationalPhoneNumber": "(416) 555-0100",
        "internationalPhoneNumber": "+1 416-555-0100",
        "photos": [{"name": "places/p1/photos/a"}, {"name": "places/p1/photos/b"}],
    }, api_key="k")

    assert details.name == "Maple Diner"
    assert details.city == "Toronto"
    assert details.currency == "CAD"
    assert details.phone == "+1 416-555-0100"
    assert details.photo_urls[0].startswith("https://places.googleapis.com/v1/places/p1/photos/a/media?key=k")


def test_defaults_for_sparse_response() -> None:
    details = place_details_from_response("p2", {
        "addressComponents": [{"types": ["administrative_area_level_3"], "shortText": "Springfield"}],
    })
    assert details.name == "Unknown Restaurant"
    assert details.city == "Springfield"
    assert details.currency == "USD"
    assert details.website_url is None
    assert details.photo_urls == []
