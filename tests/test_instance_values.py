"""
Tests for the instance write boundary.

Validates that:
1. Values are checked against their definition with specific messages
2. Mutations return new instances and never bypass validation
3. Identical-set counts never go below 0
4. Session materialization creates the right instances and ids
"""

import pytest

from scorekeeper.engine import (
    adjust_set_count,
    check_instance_value,
    default_value_for,
    increment_instance,
    materialize_instances,
    reset_instance,
    set_element_quantity,
    set_instance_value,
    validate_instance_value,
)
from scorekeeper.formula import ValidationError
from scorekeeper.models import (
    DefinitionType,
    Ownership,
    OwnershipKind,
    SetElementValue,
    SetType,
)
from tests.fixtures import definition, instance


@pytest.fixture
def gold():
    return definition("d-gold", "Gold", min=0, max=10)


@pytest.fixture
def crew():
    return definition("d-crew", "Crew", type=DefinitionType.SET, set_type=SetType.IDENTICAL, max=5)


@pytest.fixture
def treasure():
    return definition(
        "d-treasure",
        "Treasure",
        type=DefinitionType.SET,
        set_type=SetType.ELEMENTS,
        set_elements=("gold", "ruby"),
    )


class TestValidation:
    """check_instance_value messages."""

    @pytest.mark.parametrize("value,message", [
        ("3", "Value must be a number"),
        (True, "Value must be a number"),
        (float("nan"), "Value must be a number"),
        (-1, "Value must be at least 0"),
        (11, "Value must be at most 10"),
    ])
    def test_numeric(self, gold, value, message):
        assert check_instance_value(value, gold) == message

    def test_numeric_in_range(self, gold):
        assert check_instance_value(10, gold) is None
        assert check_instance_value(2.5, gold) is None

    def test_numeric_types_share_rules(self):
        for def_type in (DefinitionType.RESOURCE, DefinitionType.TERRITORY, DefinitionType.CARD):
            assert check_instance_value("x", definition("d", type=def_type)) == "Value must be a number"

    def test_boolean(self):
        flag = definition("d-flag", "Flag", type=DefinitionType.BOOLEAN)
        assert check_instance_value(1, flag) == "Value must be a boolean"
        assert check_instance_value(False, flag) is None

    def test_string_options(self):
        faction = definition("d-faction", "Faction", type=DefinitionType.STRING, options=("Red", "Green"))
        assert check_instance_value("Blue", faction) == "Value must be one of: Red, Green"
        assert check_instance_value(3, faction) == "Value must be a string"
        assert check_instance_value("Red", faction) is None

    def test_set_requires_set_type(self):
        loose = definition("d-set", "Loose", type=DefinitionType.SET)
        assert check_instance_value(1, loose) == "Set object must have a setType defined"

    def test_identical_set(self, crew):
        assert check_instance_value(-1, crew) == "Set count cannot be negative"
        assert check_instance_value("2", crew) == "Identical set value must be a number (count)"
        assert check_instance_value(6, crew) == "Set count must be at most 5"
        assert check_instance_value(3, crew) is None

    @pytest.mark.parametrize("value,message", [
        (3, "Elements set value must be an array"),
        ([{"quantity": 1}], "Set element must have an elementObjectDefinitionId"),
        ([{"elementObjectDefinitionId": "emerald", "quantity": 1}], "Set element emerald is not defined in set"),
        ([{"elementObjectDefinitionId": "gold", "quantity": "1"}], "Set element quantity must be a number"),
        ([{"elementObjectDefinitionId": "gold", "quantity": -2}], "Set element quantity cannot be negative"),
    ])
    def test_elements_set(self, treasure, value, message):
        assert check_instance_value(value, treasure) == message

    def test_elements_set_accepts_legacy_key_and_records(self, treasure):
        value = [
            {"elementVariableDefinitionId": "ruby", "quantity": 2},
            SetElementValue("gold", 1),
        ]
        assert check_instance_value(value, treasure) is None

    def test_custom_is_free_form(self):
        assert check_instance_value({"any": "thing"}, definition("d-c", type=DefinitionType.CUSTOM)) is None

    def test_validate_raises_with_definition_name(self, gold):
        with pytest.raises(ValidationError, match="Gold: Value must be at most 10"):
            validate_instance_value(12, gold)


class TestMutations:
    """Each mutation returns a new, validated instance."""

    def test_set_value(self, gold):
        original = instance("d-gold", "p1", 1)
        updated = set_instance_value(original, gold, 7)
        assert updated.value == 7
        assert original.value == 1

    def test_rejected_write_is_not_stored(self, gold):
        original = instance("d-gold", "p1", 1)
        with pytest.raises(ValidationError):
            set_instance_value(original, gold, 99)
        assert original.value == 1

    def test_set_value_normalizes_elements(self, treasure):
        updated = set_instance_value(
            instance("d-treasure", "p1", ()),
            treasure,
            [{"elementObjectDefinitionId": "gold", "quantity": 2}],
        )
        assert updated.value == (SetElementValue("gold", 2),)

    def test_increment(self, gold):
        assert increment_instance(instance("d-gold", "p1", 3), gold, 2).value == 5
        assert increment_instance(instance("d-gold", "p1", None), gold, 4).value == 4

    def test_increment_respects_bounds(self, gold):
        with pytest.raises(ValidationError, match="at most 10"):
            increment_instance(instance("d-gold", "p1", 9), gold, 2)

    def test_increment_rejects_non_numeric_definitions(self):
        faction = definition("d-faction", "Faction", type=DefinitionType.STRING)
        with pytest.raises(ValidationError, match="cannot increment a string value"):
            increment_instance(instance("d-faction", None, "Red"), faction, 1)

    def test_set_count_never_negative(self, crew):
        current = instance("d-crew", "p1", 2)
        for _ in range(5):
            current = adjust_set_count(current, crew, -1)
        assert current.value == 0

    def test_set_count_clamped_at_max(self, crew):
        assert adjust_set_count(instance("d-crew", "p1", 4), crew, 3).value == 5

    def test_set_count_requires_identical_set(self, treasure):
        with pytest.raises(ValidationError, match="not an identical set"):
            adjust_set_count(instance("d-treasure", "p1", ()), treasure, 1)

    def test_element_quantity_add_update_remove(self, treasure):
        current = instance("d-treasure", "p1", ())
        current = set_element_quantity(current, treasure, "gold", 2)
        current = set_element_quantity(current, treasure, "ruby", 1)
        current = set_element_quantity(current, treasure, "gold", 5)
        assert current.value == (SetElementValue("gold", 5), SetElementValue("ruby", 1))
        current = set_element_quantity(current, treasure, "gold", 0)
        assert current.value == (SetElementValue("ruby", 1),)

    def test_element_quantity_clamped_at_zero(self, treasure):
        current = instance("d-treasure", "p1", (SetElementValue("ruby", 1),))
        assert set_element_quantity(current, treasure, "ruby", -3).value == ()

    def test_element_quantity_unknown_element(self, treasure):
        with pytest.raises(ValidationError, match="Set element emerald is not defined in set"):
            set_element_quantity(instance("d-treasure", "p1", ()), treasure, "emerald", 1)

    def test_reset(self, gold):
        used = instance("d-gold", "p1", 8, computed_value=3.0, last_computed_at=1, derived_state="owned")
        fresh = reset_instance(used, gold)
        assert fresh.value == 0
        assert fresh.computed_value is None
        assert fresh.last_computed_at is None
        assert fresh.derived_state is None

    def test_reset_keeps_explicit_state(self, gold):
        assert reset_instance(instance("d-gold", "p1", 8, state="discarded"), gold).state == "discarded"


class TestDefaults:
    """default_value_for."""

    @pytest.mark.parametrize("kwargs,expected", [
        ({}, 0),
        ({"type": DefinitionType.BOOLEAN}, False),
        ({"type": DefinitionType.STRING}, ""),
        ({"type": DefinitionType.SET, "set_type": SetType.IDENTICAL}, 0),
        ({"type": DefinitionType.SET, "set_type": SetType.ELEMENTS}, ()),
        ({"default_value": 3}, 3),
    ])
    def test_defaults(self, kwargs, expected):
        assert default_value_for(definition("d", **kwargs)) == expected


class TestMaterialization:
    """Instances created for a new session."""

    def test_instances_by_ownership(self):
        definitions = [
            definition("gold", "Gold"),
            definition("weather", "Weather", ownership=OwnershipKind.GLOBAL),
            definition("retired", "Retired", ownership=OwnershipKind.INACTIVE),
            definition("cargo", "Cargo", ownership=Ownership.refers_to("gold")),
        ]
        created = materialize_instances(definitions, ["p1", "p2"], "s1")
        by_id = {i.id: i for i in created}
        assert list(by_id) == [
            "gold-p1",
            "gold-p2",
            "weather-session-s1",
            "retired-session-s1",
            "cargo-session-s1",
        ]
        assert by_id["gold-p2"].player_id == "p2"
        assert by_id["weather-session-s1"].player_id is None
        assert by_id["cargo-session-s1"].state == "inactive"
        assert by_id["weather-session-s1"].state is None

    def test_default_values_are_applied(self):
        definitions = [
            definition("vp", "VP", default_value=5),
            definition("bag", "Bag", type=DefinitionType.SET, set_type=SetType.ELEMENTS, set_elements=("a",)),
        ]
        created = materialize_instances(definitions, ["p1"], "s1")
        assert [i.value for i in created] == [5, ()]
