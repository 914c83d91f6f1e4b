from datetime import date

from fakes import make_item

from stocksync.services.sync import ListingMapper, content_hash
from stocksync.services.sync.mapper import (get_int, get_path, get_str,
                                            strip_resize_placeholder)


def test_maps_full_item_onto_listing_attributes():
    mapped = ListingMapper().map(make_item("S1", vin="WF0XXX", price=12500))
    attrs = mapped.attributes

    assert mapped.natural_key == "S1"
    assert mapped.vin == "WF0XXX"
    assert mapped.publication_status == "PUBLISHED"
    assert attrs.stock_number == "S1"
    assert attrs.vin_number == "WF0XXX"
    assert attrs.title == "2019 Ford Fiesta"
    assert attrs.slug == "ford-fiesta-2019-s1"
    assert attrs.year == 2019
    assert attrs.mileage == 42000
    assert attrs.price == 12500
    assert attrs.sale_price == 12500
    assert attrs.make == "Ford"
    assert attrs.body_type == "Hatchback"
    assert attrs.dealer_name == "Example Motors"
    assert attrs.dealer_location == "1 High Street, Leeds, West Yorkshire, LS1 1AA"
    assert attrs.autotrader_last_updated == "2024-05-01T10:00:00Z"
    assert mapped.media_refs == ["https://m.atcdn.co.uk/a/media/{resize}/S1-1.jpg"]


def test_sparse_item_maps_to_defaults():
    mapper = ListingMapper(today=date(2024, 1, 2))
    mapped = mapper.map({})

    assert mapped.natural_key == "unknown"
    assert mapped.is_unknown_key
    assert mapped.attributes.title == "Auto Listing 2024-01-02"
    assert mapped.attributes.slug.startswith("auto-listing-")
    assert mapped.attributes.make == "Default"
    assert mapped.attributes.year == 0
    assert mapped.attributes.price == 0.0
    assert mapped.media_refs == []


def test_external_stock_id_is_used_when_stock_id_missing():
    item = make_item(None)
    item["metadata"]["externalStockId"] = "EXT-9"

    assert ListingMapper.natural_key(item) == "EXT-9"


def test_price_falls_back_to_supplied_price():
    item = make_item("S1")
    del item["adverts"]["forecourtPrice"]
    item["adverts"]["retailAdverts"]["suppliedPrice"] = {"amountGBP": 8750}

    assert ListingMapper.price(item) == 8750


def test_make_falls_back_to_vehicle_make():
    item = make_item("S1")
    del item["vehicle"]["standard"]
    item["vehicle"]["make"] = "Vauxhall"
    item["vehicle"]["model"] = "Corsa"

    attrs = ListingMapper().map(item).attributes
    assert attrs.make == "Vauxhall"
    assert attrs.title == "2019 Vauxhall Corsa"


def test_wrongly_typed_fields_fall_back_instead_of_raising():
    item = make_item("S1")
    item["vehicle"]["yearOfManufacture"] = "not a year"
    item["vehicle"]["standard"] = "Ford"
    item["media"]["images"] = [{"href": 42}, "bare-string", {"href": " https://x/a.jpg "}]

    mapped = ListingMapper().map(item)
    assert mapped.attributes.year == 0
    assert mapped.attributes.make == "Default"
    assert mapped.media_refs == ["", "", "https://x/a.jpg"]


def test_features_are_deduplicated_in_order():
    item = make_item("S1")
    item["vehicle"]["standardFeatures"] = [
        {"name": "Sat Nav"},
        {"name": "Heated Seats"},
        {"name": "Sat Nav"},
        {"type": "no name"},
    ]

    assert ListingMapper.features(item) == ["Sat Nav", "Heated Seats"]


def test_content_hash_is_stable_for_identical_items():
    mapper = ListingMapper()
    sparse = {"metadata": {}}

    assert content_hash(mapper.map(make_item("S1"))) == content_hash(mapper.map(make_item("S1")))
    # Fallback slugs are random but never affect the hash.
    assert content_hash(mapper.map(sparse)) == content_hash(mapper.map(sparse))


def test_content_hash_changes_with_price():
    mapper = ListingMapper()
    before = content_hash(mapper.map(make_item("S1", price=10000)))
    after = content_hash(mapper.map(make_item("S1", price=9500)))

    assert before != after


def test_path_helpers_tolerate_non_dict_intermediates():
    doc = {"a": {"b": [1, 2]}, "c": "text", "n": "12.7"}

    assert get_path(doc, "a.b.c") is None
    assert get_path(doc, "c.d", default="x") == "x"
    assert get_str(doc, "a.b") == ""
    assert get_int(doc, "n") == 12


def test_strip_resize_placeholder():
    assert strip_resize_placeholder("https://m.atcdn.co.uk/a/media/{resize}/abc.jpg") == (
        "https://m.atcdn.co.uk/a/media/abc.jpg"
    )
    assert strip_resize_placeholder("https://m.atcdn.co.uk/a/media/%7Bresize%7D/abc.jpg") == (
        "https://m.atcdn.co.uk/a/media/abc.jpg"
    )
