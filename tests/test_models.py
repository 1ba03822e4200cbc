from __future__ import annotations

import math
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from pyfindmy.models.device import Device
from pyfindmy.models.records import (
    EstimatedLocationRecord,
    NamingRecord,
    OwnedBeaconRecord,
    ProductInfoRecord,
)


def test_owned_beacon_record_maps_camel_case_keys() -> None:
    record = OwnedBeaconRecord.model_validate(
        {"identifier": " 1a2b-3c ", "model": "AirTag", "pairingDate": datetime(2024, 2, 8, 12, 0)}
    )

    assert record.identifier == "1a2b-3c"
    assert record.model == "AirTag"
    assert record.pairing_date == datetime(2024, 2, 8, 12, 0, tzinfo=UTC)
    assert record.raw["model"] == "AirTag"


def test_record_without_identifier_is_invalid() -> None:
    with pytest.raises(ValidationError):
        OwnedBeaconRecord.model_validate({"model": "AirTag"})
    with pytest.raises(ValidationError):
        NamingRecord.model_validate({"associatedBeacon": "  ", "name": "Keys"})


def test_blank_and_nan_values_fall_back_to_defaults() -> None:
    record = EstimatedLocationRecord.model_validate(
        {"associatedBeacon": "A", "latitude": math.nan, "longitude": 2.0, "horizontalAccuracy": ""}
    )

    assert record.latitude is None
    assert record.longitude == 2.0
    assert record.horizontal_accuracy is None


def test_product_info_version_is_text() -> None:
    record = ProductInfoRecord.model_validate({"identifier": "A", "manufacturerName": "Apple", "version": 2})

    assert record.version == "2"
    assert record.model_name is None


def test_unknown_record_keys_are_ignored() -> None:
    record = NamingRecord.model_validate({"associatedBeacon": "A", "name": "Keys", "roleId": 7})

    assert record.name == "Keys"
    assert record.raw["roleId"] == 7


@pytest.mark.parametrize(
    ("fields", "label"),
    [
        ({"model": "X1"}, "X1"),
        ({"model": "X1", "name": "Keys", "emoji": "🔑"}, "🔑 Keys"),
        ({"model": "X1", "name": "Keys"}, "Keys"),
        ({"emoji": "🔑"}, "abc-1"),
        ({}, "abc-1"),
    ],
)
def test_device_label(fields: dict[str, str], label: str) -> None:
    assert Device(identifier="abc-1", **fields).label == label


def test_device_display_id_and_fix() -> None:
    device = Device(identifier="abc-1")

    assert device.display_id == "ABC-1"
    assert not device.has_fix
    assert device.model_copy(update={"latitude": 1.0, "longitude": 2.0}).has_fix


def test_device_is_immutable() -> None:
    device = Device(identifier="abc-1")

    with pytest.raises(ValidationError):
        device.name = "Keys"  # type: ignore[misc]
