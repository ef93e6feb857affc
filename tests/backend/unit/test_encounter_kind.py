import pytest

from gmtracker.backend.encounter_kind import (
    AccomplishmentEncounter,
    AccomplishmentLevel,
    CombatEncounter,
    EncounterEnemy,
    SubsystemCheck,
    SubsystemEncounter,
    SubsystemType,
    UnknownEncounter,
    encounter_kind_from_dict,
    encounter_kind_to_dict,
    encounter_type_of,
)


def test_combat_kind_round_trips_through_wire_format() -> None:
    kind = CombatEncounter(
        enemies=(EncounterEnemy(id=12, level_adjustment=1), EncounterEnemy(id=40)),
        hazards=(3, 3),
    )

    payload = encounter_kind_to_dict(kind)

    assert payload == {
        "encounter_type": "combat",
        "enemies": [{"id": 12, "level_adjustment": 1}, {"id": 40, "level_adjustment": 0}],
        "hazards": [3, 3],
    }
    assert encounter_kind_from_dict(payload) == kind


def test_combat_kind_accepts_bare_enemy_ids() -> None:
    kind = encounter_kind_from_dict({"encounter_type": "combat", "enemies": [5, 6]})

    assert kind == CombatEncounter(enemies=(EncounterEnemy(id=5), EncounterEnemy(id=6)))


def test_subsystem_kind_parses_checks() -> None:
    kind = encounter_kind_from_dict(
        {
            "encounter_type": "subsystem",
            "subsystemType": "chase",
            "subsystemChecks": [{"name": "Climb", "vp": 2}, {"name": "Sprint"}],
        }
    )

    assert kind == SubsystemEncounter(
        subsystem_type=SubsystemType.CHASE,
        subsystem_checks=(SubsystemCheck(name="Climb", vp=2), SubsystemCheck(name="Sprint", vp=1)),
    )
    assert encounter_kind_to_dict(kind)["subsystemType"] == "chase"


def test_accomplishment_kind_carries_optional_level() -> None:
    kind = encounter_kind_from_dict({"encounter_type": "accomplishment", "accomplishmentLevel": "major"})

    assert kind == AccomplishmentEncounter(level=AccomplishmentLevel.MAJOR)
    assert encounter_kind_to_dict(kind) == {"encounter_type": "accomplishment", "accomplishmentLevel": "major"}
    assert encounter_kind_to_dict(AccomplishmentEncounter()) == {"encounter_type": "accomplishment"}
    assert encounter_kind_from_dict({"encounter_type": "accomplishment"}) == AccomplishmentEncounter()


def test_missing_discriminant_means_unknown() -> None:
    assert encounter_kind_from_dict({}) == UnknownEncounter()


def test_encounter_type_of_names_each_kind() -> None:
    assert encounter_type_of(CombatEncounter()) == "combat"
    assert encounter_type_of(AccomplishmentEncounter()) == "accomplishment"
    assert encounter_type_of(UnknownEncounter()) == "unknown"


@pytest.mark.parametrize(
    "payload",
    [
        {"encounter_type": "dungeon"},
        {"encounter_type": "combat", "enemies": "goblin"},
        {"encounter_type": "combat", "enemies": [{"id": "goblin"}]},
        {"encounter_type": "combat", "hazards": [True]},
        {"encounter_type": "subsystem", "subsystemType": "poker"},
        {"encounter_type": "subsystem", "subsystemChecks": [{"vp": 1}]},
        {"encounter_type": "accomplishment", "accomplishmentLevel": "legendary"},
    ],
)
def test_malformed_kinds_raise_value_error(payload: dict) -> None:
    with pytest.raises(ValueError):
        encounter_kind_from_dict(payload)


def test_encounter_type_of_rejects_foreign_objects() -> None:
    with pytest.raises(TypeError):
        encounter_type_of("combat")  # type: ignore[arg-type]
