from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from duofarm.catalog.models import PlantInfo
from duofarm.ecosystem.logic import EcosystemEngine
from duofarm.ecosystem.models import AnimalHealth, FarmEcosystem, FarmHealth, FarmWarningLevel, WarningLevel

T0 = datetime(2025, 11, 17, 9, 0, tzinfo=timezone.utc)


def _engine(**kwargs):
    return EcosystemEngine.for_room('room-1', now=T0, **kwargs)


def _set_hours(engine, animal_id, hours):
    # reach into the owned state to stage a scenario
    engine._eco.animal_health_map[animal_id].hours_until_death = hours


def test_add_animal_starts_full():
    engine = _engine()
    aid = engine.add_animal('chicken', now=T0)
    animal = engine.get_animal(aid)
    assert animal.animal_type == 'chicken'
    assert animal.hours_until_death == 24.0
    assert animal.last_fed_at == T0
    assert animal.warning_level is WarningLevel.HEALTHY


def test_same_species_tracked_independently():
    engine = _engine()
    a = engine.add_animal('sheep', now=T0)
    b = engine.add_animal('sheep', now=T0)
    assert a != b
    assert len(engine.animals()) == 2


def test_decay_then_feed_scenario():
    engine = _engine()
    aid = engine.add_animal('chicken', now=T0)
    engine.buy_plant('tomatoes', now=T0)

    engine.update_health(now=T0 + timedelta(hours=10))
    animal = engine.get_animal(aid)
    assert animal.hours_until_death == pytest.approx(14.0)
    assert animal.warning_level is WarningLevel.HEALTHY

    assert engine.feed_animal(aid, 'tomatoes', now=T0 + timedelta(hours=10)) is True
    assert engine.get_animal(aid).hours_until_death == pytest.approx(21.2)


def test_update_health_does_not_double_count():
    engine = _engine()
    aid = engine.add_animal('chicken', now=T0)
    t = T0 + timedelta(hours=3)
    engine.update_health(now=t)
    engine.update_health(now=t + timedelta(seconds=36))
    assert engine.get_animal(aid).hours_until_death == pytest.approx(21.0 - 0.01)


def test_repeated_update_at_same_instant_is_idempotent():
    engine = _engine()
    aid = engine.add_animal('chicken', now=T0)
    t = T0 + timedelta(hours=5)
    engine.update_health(now=t)
    engine.update_health(now=t)
    assert engine.get_animal(aid).hours_until_death == pytest.approx(19.0)


def test_critical_animal_dies_and_clamps_at_zero():
    engine = _engine()
    aid = engine.add_animal('pig', now=T0)
    _set_hours(engine, aid, 1.5)
    assert engine.get_animal(aid).warning_level is WarningLevel.CRITICAL

    engine.update_health(now=T0 + timedelta(hours=2))
    animal = engine.get_animal(aid)
    assert animal.hours_until_death == 0.0
    assert animal.warning_level is WarningLevel.DEAD


def test_clock_going_backwards_does_not_heal():
    engine = _engine()
    aid = engine.add_animal('pig', now=T0)
    _set_hours(engine, aid, 10.0)
    engine.update_health(now=T0 - timedelta(hours=3))
    assert engine.get_animal(aid).hours_until_death == 10.0


def test_backwards_clock_keeps_checkpoint():
    engine = _engine()
    aid = engine.add_animal('pig', now=T0)
    engine.update_health(now=T0 + timedelta(hours=10))
    engine.update_health(now=T0 + timedelta(hours=5))
    assert engine.get_animal(aid).last_fed_at == T0 + timedelta(hours=10)
    engine.update_health(now=T0 + timedelta(hours=10))
    assert engine.get_animal(aid).hours_until_death == pytest.approx(14.0)


def test_full_nutrition_from_zero_restores_exactly_max():
    full = PlantInfo(id='feast', name='Feast', asset_name='feast', cost=0, nutrition_value=100.0)
    engine = _engine(plant_lookup=lambda pid: full if pid == 'feast' else None)
    aid = engine.add_animal('cow', now=T0)
    _set_hours(engine, aid, 0.0)
    engine.buy_plant('feast')
    assert engine.feed_animal(aid, 'feast', now=T0) is True
    assert engine.get_animal(aid).hours_until_death == 24.0


def test_repeated_feeding_clamps_at_max():
    engine = _engine()
    aid = engine.add_animal('cow', now=T0)
    engine.buy_plant('potatoes', 5)
    for _ in range(5):
        assert engine.feed_animal(aid, 'potatoes', now=T0)
    assert engine.get_animal(aid).hours_until_death == 24.0


def test_feed_with_empty_inventory_is_noop():
    engine = _engine()
    aid = engine.add_animal('duck', now=T0)
    _set_hours(engine, aid, 5.0)
    before = engine.snapshot()

    assert engine.feed_animal(aid, 'wheat', now=T0 + timedelta(hours=1)) is False
    after = engine.snapshot()
    assert after.animal_health_map[aid].hours_until_death == 5.0
    assert after.animal_health_map[aid].last_fed_at == before.animal_health_map[aid].last_fed_at
    assert after.plant_inventory == {}
    assert after.last_updated_at == before.last_updated_at


def test_feed_unknown_animal_is_noop():
    engine = _engine()
    engine.add_animal('duck', now=T0)
    engine.buy_plant('wheat', 2, now=T0)
    before = engine.snapshot()

    assert engine.feed_animal(uuid4(), 'wheat', now=T0 + timedelta(hours=1)) is False
    assert engine.inventory() == {'wheat': 2}
    assert engine.snapshot().last_updated_at == before.last_updated_at


def test_feed_unknown_plant_is_noop():
    engine = _engine()
    aid = engine.add_animal('duck', now=T0)
    engine.buy_plant('caviar', 1)
    assert engine.feed_animal(aid, 'caviar') is False
    assert engine.inventory() == {'caviar': 1}


def test_last_plant_removes_inventory_key():
    engine = _engine()
    aid = engine.add_animal('horse', now=T0)
    assert engine.buy_plant('wheat', 3) == 3
    for _ in range(3):
        assert engine.feed_animal(aid, 'wheat', now=T0)
    assert 'wheat' not in engine.inventory()
    assert engine.feed_animal(aid, 'wheat', now=T0) is False


def test_buy_plant_accumulates_and_ignores_non_positive():
    engine = _engine()
    engine.buy_plant('wheat')
    engine.buy_plant('wheat', 4)
    assert engine.buy_plant('wheat', 0) == 5
    assert engine.inventory() == {'wheat': 5}


def test_health_stays_in_bounds_under_mixed_operations():
    engine = _engine()
    aid = engine.add_animal('goat', now=T0)
    engine.buy_plant('potatoes', 10)
    t = T0
    for step in range(40):
        t += timedelta(hours=3 if step % 3 else 0.5)
        engine.update_health(now=t)
        if step % 4 == 0:
            engine.feed_animal(aid, 'potatoes', now=t)
        hours = engine.get_animal(aid).hours_until_death
        assert 0.0 <= hours <= 24.0


def test_overall_health_empty_farm_is_full():
    assert _engine().overall_health_percentage == 1.0


def test_overall_health_only_dead_is_zero():
    engine = _engine()
    aid = engine.add_animal('chicken', now=T0)
    engine.update_health(now=T0 + timedelta(hours=30))
    assert engine.get_animal(aid).is_dead
    assert engine.overall_health_percentage == 0.0


def test_overall_health_averages_living_only():
    engine = _engine()
    a = engine.add_animal('chicken', now=T0)
    b = engine.add_animal('sheep', now=T0)
    c = engine.add_animal('pig', now=T0)
    _set_hours(engine, a, 12.0)
    _set_hours(engine, b, 6.0)
    _set_hours(engine, c, 0.0)
    assert engine.overall_health_percentage == pytest.approx((0.5 + 0.25) / 2)


def test_counts_and_worst_level():
    engine = _engine()
    assert engine.worst_warning_level is WarningLevel.HEALTHY

    a = engine.add_animal('chicken', now=T0)
    b = engine.add_animal('sheep', now=T0)
    _set_hours(engine, a, 8.0)
    assert engine.worst_warning_level is WarningLevel.WARNING

    _set_hours(engine, b, 2.0)
    assert engine.critical_animals_count == 1
    assert engine.worst_warning_level is WarningLevel.CRITICAL

    _set_hours(engine, a, 0.0)
    assert engine.dead_animals_count == 1
    assert engine.worst_warning_level is WarningLevel.DEAD
    assert engine.warning_message == WarningLevel.DEAD.message


@pytest.mark.parametrize('hours,level', [
    (24.0, WarningLevel.HEALTHY),
    (8.01, WarningLevel.HEALTHY),
    (8.0, WarningLevel.WARNING),
    (2.01, WarningLevel.WARNING),
    (2.0, WarningLevel.CRITICAL),
    (0.01, WarningLevel.CRITICAL),
    (0.0, WarningLevel.DEAD),
])
def test_tier_breakpoints(hours, level):
    animal = AnimalHealth(animal_type='chicken', last_fed_at=T0, hours_until_death=hours)
    assert animal.warning_level is level


def test_remove_dead_animals():
    engine = _engine()
    a = engine.add_animal('chicken', now=T0)
    b = engine.add_animal('sheep', now=T0)
    _set_hours(engine, a, 0.0)
    removed = engine.remove_dead_animals()
    assert [r.id for r in removed] == [a]
    assert list(engine.animals()) == [b]


def test_representative_animals_prefers_healthiest():
    engine = _engine()
    weak = engine.add_animal('sheep', now=T0)
    strong = engine.add_animal('sheep', now=T0)
    hen = engine.add_animal('chicken', now=T0)
    _set_hours(engine, weak, 3.0)
    _set_hours(engine, strong, 20.0)
    reps = engine.representative_animals()
    assert [r.animal_type for r in reps] == ['chicken', 'sheep']
    assert reps[0].id == hen
    assert reps[1].id == strong


def test_snapshot_round_trips_through_json():
    engine = _engine()
    aid = engine.add_animal('chicken', now=T0)
    engine.buy_plant('wheat', 2, now=T0)
    data = engine.snapshot().model_dump(mode='json')
    assert set(data) == {'room_id', 'animal_health_map', 'plant_inventory', 'last_updated_at'}

    restored = EcosystemEngine(FarmEcosystem.model_validate(data))
    assert restored.get_animal(aid).hours_until_death == 24.0
    assert restored.inventory() == {'wheat': 2}


def test_loaded_state_is_clamped():
    eco = FarmEcosystem.model_validate({
        'room_id': 'r',
        'animal_health_map': {
            str(uuid4()): {'animal_type': 'pig', 'last_fed_at': '2025-11-17T09:00:00', 'hours_until_death': 99},
        },
        'plant_inventory': {'wheat': 0, 'tomatoes': 2},
    })
    animal = next(iter(eco.animal_health_map.values()))
    assert animal.hours_until_death == 24.0
    assert animal.last_fed_at.tzinfo is not None
    assert eco.plant_inventory == {'tomatoes': 2}


def test_loaded_ids_follow_map_keys():
    key, other = uuid4(), uuid4()
    eco = FarmEcosystem.model_validate({
        'room_id': 'r',
        'animal_health_map': {
            str(key): {'animal_type': 'pig', 'last_fed_at': '2025-11-17T09:00:00', 'hours_until_death': 0},
            str(other): {'id': str(uuid4()), 'animal_type': 'cow',
                         'last_fed_at': '2025-11-17T09:00:00', 'hours_until_death': 5},
        },
    })
    assert all(a.id == k for k, a in eco.animal_health_map.items())

    engine = EcosystemEngine(eco)
    removed = engine.remove_dead_animals()
    assert [a.id for a in removed] == [key]
    assert list(engine.animals()) == [other]


def test_fast_decay_multiplier():
    engine = _engine(decay_multiplier=720.0)
    aid = engine.add_animal('chicken', now=T0)
    engine.update_health(now=T0 + timedelta(seconds=60))
    assert engine.get_animal(aid).hours_until_death == pytest.approx(12.0)


def test_animal_equality_tolerates_small_drift():
    a = AnimalHealth(animal_type='cow', last_fed_at=T0, hours_until_death=10.0)
    b = a.model_copy(update={'hours_until_death': 10.005})
    c = a.model_copy(update={'hours_until_death': 10.5})
    assert a == b
    assert a != c


def test_legacy_farm_health():
    fh = FarmHealth.calculate(T0, now=T0 + timedelta(hours=20))
    assert fh.hours_until_death == pytest.approx(4.0)
    assert fh.is_dying
    assert fh.warning_level is FarmWarningLevel.WARNING
    assert fh.warning_level.color == 'orange'

    gone = FarmHealth.calculate(T0, now=T0 + timedelta(hours=30))
    assert gone.hours_until_death == pytest.approx(-6.0)
    assert gone.health_percentage == 0.0
    assert gone.is_dead
    assert gone.warning_level is FarmWarningLevel.CRITICAL
