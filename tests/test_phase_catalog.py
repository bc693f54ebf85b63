"""
Tests — phase catalog: library order, service-type resolution, overrides.
"""

import pytest

from app.core.exceptions import ValidationError
from app.services.phase_catalog import (
    ALWAYS_ON_PHASE_KEYS,
    DEFAULT_PHASE_KEYS,
    PhaseCatalog,
    get_catalog,
)


def test_default_phases_are_the_eight_step_sequence():
    catalog = PhaseCatalog()
    keys = [p.key for p in catalog.default_phases()]
    assert keys == ["ONB", "IDEA", "DSGN", "REV", "PROD", "PAY", "SIGN", "LAUNCH"]
    assert tuple(keys) == DEFAULT_PHASE_KEYS


def test_empty_service_types_resolve_to_defaults():
    catalog = PhaseCatalog()
    assert catalog.resolve_phase_keys([]) == list(DEFAULT_PHASE_KEYS)
    assert catalog.resolve_phase_keys(None) == list(DEFAULT_PHASE_KEYS)


def test_graphic_design_adds_always_on_phases():
    keys = PhaseCatalog().resolve_phase_keys(["GD"])
    assert keys == ["ONB", "IDEA", "DSGN", "REV", "PROD", "PAY", "SIGN", "LAUNCH"]
    for key in ALWAYS_ON_PHASE_KEYS:
        assert key in keys


def test_multiple_service_types_are_merged_in_library_order():
    keys = PhaseCatalog().resolve_phase_keys(["PY", "WEB"])
    assert keys == ["ONB", "DISC", "DSGN", "DEV", "QA", "REV", "DEPLOY", "PAY", "SIGN", "LAUNCH"]
    assert len(keys) == len(set(keys))


def test_unknown_service_type_is_rejected():
    with pytest.raises(ValidationError) as exc:
        PhaseCatalog().resolve_phase_keys(["GD", "NOPE"])
    assert exc.value.details == {"service_types": ["NOPE"]}


def test_approval_flags():
    catalog = PhaseCatalog()
    assert catalog.requires_approval("ONB")
    assert catalog.requires_approval("SIGN")
    assert not catalog.requires_approval("IDEA")
    assert not catalog.requires_approval("PAY")
    assert not catalog.requires_approval("UNKNOWN")


def test_unknown_phase_definition_raises():
    with pytest.raises(ValidationError):
        PhaseCatalog().definition("NOPE")
    assert PhaseCatalog().label("NOPE") == "NOPE"


def test_config_overrides_labels_and_service_types():
    catalog = PhaseCatalog.from_config({
        "PHASE_LABELS": {"IDEA": "Concepts", "PHOTO": "Photography"},
        "SERVICE_TYPES": {"PH": {"display_name": "Photo shoot", "phase_keys": ["ONB", "PHOTO"]}},
    })
    assert catalog.label("IDEA") == "Concepts"
    assert catalog.resolve_phase_keys(["PH"]) == ["ONB", "PAY", "SIGN", "LAUNCH", "PHOTO"]
    assert [s["code"] for s in catalog.list_service_types()] == ["PH"]


def test_config_with_unknown_phase_key_fails_fast():
    with pytest.raises(ValueError):
        PhaseCatalog.from_config({"SERVICE_TYPES": {"X": ["ONB", "MISSING"]}})


def test_app_catalog_lists_eleven_service_types():
    codes = {s["code"] for s in get_catalog().list_service_types()}
    assert codes == {"COL", "IDE", "SP", "LFP", "GD", "WW", "SAAS", "WEB", "BOOK", "LOGO", "PY"}
