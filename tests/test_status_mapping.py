"""Status canonicalisation, temporary IDs and Shopify tags."""

from __future__ import annotations

import re

import pytest

from delifast_sync.models.shipment import ShipmentStatus
from delifast_sync.utils.status_mapping import (
    generate_temporary_id,
    get_all_delifast_tags,
    get_shopify_tag,
    get_status_label,
    get_status_label_ar,
    is_temporary_id,
    map_status_value,
)


class TestMapStatusValue:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (0, ShipmentStatus.NEW),
            (3, ShipmentStatus.IN_TRANSIT),
            ("5", ShipmentStatus.COMPLETED),
            (101, ShipmentStatus.CANCELLED),
            ("102", ShipmentStatus.RETURNED),
            (20, ShipmentStatus.IN_TRANSIT),
            ("3 - At office", ShipmentStatus.IN_TRANSIT),
        ],
    )
    def test_numeric_codes(self, raw, expected) -> None:
        assert map_status_value(raw) == expected

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("New", ShipmentStatus.NEW),
            ("With driver", ShipmentStatus.IN_TRANSIT),
            ("Delivered", ShipmentStatus.COMPLETED),
            ("Cancelled", ShipmentStatus.CANCELLED),
            ("Returned to sender", ShipmentStatus.RETURNED),
            ("تم التسليم", ShipmentStatus.COMPLETED),
            ("مرتجع", ShipmentStatus.RETURNED),
        ],
    )
    def test_keywords(self, raw, expected) -> None:
        assert map_status_value(raw) == expected

    @pytest.mark.parametrize("raw", [None, "gibberish", 42, True, {"a": 1}])
    def test_unrecognised_values_are_unknown(self, raw) -> None:
        assert map_status_value(raw) == ShipmentStatus.UNKNOWN


class TestTemporaryIds:
    @pytest.mark.parametrize("value", ["PENDING-1001-1", "DELIFAST-1", "TEMP-abc"])
    def test_reserved_prefixes(self, value) -> None:
        assert is_temporary_id(value)

    @pytest.mark.parametrize("value", [None, "", "DF123456", "pending-1001"])
    def test_real_ids(self, value) -> None:
        assert not is_temporary_id(value)

    def test_generated_format(self) -> None:
        temp_id = generate_temporary_id("1001")
        assert re.fullmatch(r"PENDING-1001-\d{13,}", temp_id)
        assert is_temporary_id(temp_id)

    def test_generated_ids_are_unique(self) -> None:
        ids = {generate_temporary_id("1001") for _ in range(200)}
        assert len(ids) == 200


class TestTags:
    def test_status_tags(self) -> None:
        assert get_shopify_tag("new") == "delifast-new"
        assert get_shopify_tag(ShipmentStatus.IN_TRANSIT) == "delifast-in-transit"
        assert get_shopify_tag("completed") == "delifast-delivered"

    @pytest.mark.parametrize("status", ["error", "not_found", "garbage"])
    def test_untagged_statuses_map_to_unknown(self, status) -> None:
        assert get_shopify_tag(status) == "delifast-unknown"

    def test_all_tags(self) -> None:
        tags = get_all_delifast_tags()
        assert len(tags) == 6
        assert "delifast-returned" in tags

    def test_labels(self) -> None:
        assert get_status_label("in_transit") == "In Transit"
        assert get_status_label("bogus") == "Unknown"
        assert get_status_label_ar("completed") == "تم التسليم"
