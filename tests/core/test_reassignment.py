"""Tests for the driver reassignment engine."""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from core.driver_types import DriverTypeResolver
from core.exceptions import DriverClassificationError
from core.models import (
    DriverRemoval,
    DriverShift,
    DriverType,
    PlanType,
    ReassignmentRequest,
    TaskStep,
    TaskWithDriver,
    UnitSlot,
)
from core.reassignment import ReassignmentEngine, home_units, required_driver_types


T = datetime(2024, 6, 10, 18, 0, tzinfo=timezone.utc)
PARTNER_ID = 10


def tasks_for(assignments: dict[int, int | None]) -> list[TaskWithDriver]:
    """Three steps per unit, all held by the unit's driver."""
    return [
        TaskWithDriver(
            task_id=f"task-{unit}-{step}",
            unit_number=unit,
            step_number=TaskStep(step),
            driver_id=driver_id,
        )
        for unit, driver_id in sorted(assignments.items())
        for step in (1, 2, 3)
    ]


def request(assignments, old_plan, new_plan, old_count, new_count, partner_id=None):
    return ReassignmentRequest(
        current_tasks=tasks_for(assignments),
        old_plan_type=old_plan,
        new_plan_type=new_plan,
        old_unit_count=old_count,
        new_unit_count=new_count,
        appointment_time=T,
        moving_partner_id=partner_id,
    )


@pytest.fixture
def driver_types():
    """driver id -> DriverType; partner drivers belong to PARTNER_ID."""
    return {}


@pytest.fixture
def engine(driver_types):
    resolver = Mock(spec=DriverTypeResolver)
    resolver.classify.side_effect = lambda driver_id, moving_partner_id=None: driver_types[driver_id]
    resolver.is_partner_of.side_effect = (
        lambda driver_id, partner_id: partner_id == PARTNER_ID and driver_types[driver_id] == DriverType.PARTNER
    )
    return ReassignmentEngine(resolver)


class TestRequiredDriverTypes:
    """Target shape per plan."""

    def test_full_service_with_partner(self):
        shape = required_driver_types(PlanType.FULL_SERVICE, 3, PARTNER_ID)
        assert shape == {1: DriverType.PARTNER, 2: DriverType.FLEET, 3: DriverType.FLEET}

    def test_full_service_without_partner_is_fleet(self):
        assert required_driver_types(PlanType.FULL_SERVICE, 1, None) == {1: DriverType.FLEET}

    @pytest.mark.parametrize("plan", [PlanType.DIY, PlanType.THIRD_PARTY_LOADING_HELP])
    def test_other_plans_all_fleet(self, plan):
        assert set(required_driver_types(plan, 2, PARTNER_ID).values()) == {DriverType.FLEET}


class TestHomeUnits:
    """Home unit derivation."""

    def test_lowest_step_task_decides(self):
        tasks = [
            TaskWithDriver(task_id="a", unit_number=2, step_number=TaskStep.PICKUP, driver_id=16),
            TaskWithDriver(task_id="b", unit_number=1, step_number=TaskStep.RETURN, driver_id=16),
        ]
        assert home_units(tasks) == {16: 2}

    def test_ties_go_to_lowest_unit(self):
        tasks = [
            TaskWithDriver(task_id="a", unit_number=3, step_number=TaskStep.PICKUP, driver_id=16),
            TaskWithDriver(task_id="b", unit_number=2, step_number=TaskStep.PICKUP, driver_id=16),
        ]
        assert home_units(tasks) == {16: 2}

    def test_unassigned_tasks_ignored(self):
        assert home_units(tasks_for({1: None})) == {}


class TestPlanChanges:
    """Reconciliation scenarios."""

    def test_diy_to_full_service_shifts_fleet_driver(self, engine, driver_types):
        """Fleet driver on unit 1 moves to unit 2 and unit 1 needs a partner."""
        driver_types[16] = DriverType.FLEET

        plan = engine.analyze(request({1: 16}, PlanType.DIY, PlanType.FULL_SERVICE, 1, 2, PARTNER_ID))

        assert plan.drivers_to_keep == [
            DriverShift(driver_id=16, current_unit=1, new_unit=2, new_arrival_time=T + timedelta(minutes=45)),
        ]
        assert plan.drivers_to_remove == []
        assert plan.units_needing_new_driver == [UnitSlot(unit_number=1, driver_type=DriverType.PARTNER)]

    def test_diy_to_full_service_single_unit_removes_fleet_driver(self, engine, driver_types):
        """With one unit there is nowhere to shift to."""
        driver_types[16] = DriverType.FLEET

        plan = engine.analyze(request({1: 16}, PlanType.DIY, PlanType.FULL_SERVICE, 1, 1, PARTNER_ID))

        assert plan.drivers_to_keep == []
        assert plan.drivers_to_remove == [
            DriverRemoval(driver_id=16, unit_number=1, reason="No available unit to shift to"),
        ]
        assert plan.units_needing_new_driver == [UnitSlot(unit_number=1, driver_type=DriverType.PARTNER)]

    def test_full_service_to_diy_removes_partner_driver(self, engine, driver_types):
        driver_types[30] = DriverType.PARTNER
        driver_types[16] = DriverType.FLEET

        plan = engine.analyze(request({1: 30, 2: 16}, PlanType.FULL_SERVICE, PlanType.DIY, 2, 2, None))

        assert [shift.driver_id for shift in plan.drivers_to_keep] == [16]
        assert plan.drivers_to_keep[0].is_move is False
        assert plan.drivers_to_remove == [
            DriverRemoval(driver_id=30, unit_number=1, reason="Driver type mismatch"),
        ]
        assert plan.units_needing_new_driver == [UnitSlot(unit_number=1, driver_type=DriverType.FLEET)]

    def test_partner_driver_of_other_partner_removed(self, engine, driver_types):
        """Switching moving partners takes the old crew off unit 1."""
        driver_types[30] = DriverType.PARTNER

        plan = engine.analyze(request({1: 30}, PlanType.FULL_SERVICE, PlanType.FULL_SERVICE, 1, 1, 11))

        assert plan.drivers_to_remove == [
            DriverRemoval(driver_id=30, unit_number=1, reason="Driver type mismatch"),
        ]

    def test_unit_count_reduction(self, engine, driver_types):
        driver_types.update({16: DriverType.FLEET, 17: DriverType.FLEET, 18: DriverType.FLEET})

        plan = engine.analyze(request({1: 16, 2: 17, 3: 18}, PlanType.DIY, PlanType.DIY, 3, 1))

        assert [shift.driver_id for shift in plan.drivers_to_keep] == [16]
        assert plan.drivers_to_remove == [
            DriverRemoval(driver_id=17, unit_number=2, reason="Unit 2 no longer exists"),
            DriverRemoval(driver_id=18, unit_number=3, reason="Unit 3 no longer exists"),
        ]
        assert plan.units_needing_new_driver == []

    def test_removed_unit_driver_not_shifted(self, engine, driver_types):
        """A driver on a removed unit comes off even if another unit is open."""
        driver_types.update({16: DriverType.FLEET, 18: DriverType.FLEET})

        plan = engine.analyze(request({1: 16, 3: 18}, PlanType.DIY, PlanType.DIY, 3, 2))

        assert plan.drivers_to_remove == [
            DriverRemoval(driver_id=18, unit_number=3, reason="Unit 3 no longer exists"),
        ]
        assert plan.units_needing_new_driver == [UnitSlot(unit_number=2, driver_type=DriverType.FLEET)]

    def test_unit_count_increase_keeps_everyone(self, engine, driver_types):
        driver_types[16] = DriverType.FLEET

        plan = engine.analyze(request({1: 16}, PlanType.DIY, PlanType.DIY, 1, 3))

        assert plan.drivers_to_keep == [
            DriverShift(driver_id=16, current_unit=1, new_unit=1, new_arrival_time=T),
        ]
        assert plan.units_needing_new_driver == [
            UnitSlot(unit_number=2, driver_type=DriverType.FLEET),
            UnitSlot(unit_number=3, driver_type=DriverType.FLEET),
        ]
        assert plan.has_changes is True

    def test_no_change_has_no_changes(self, engine, driver_types):
        driver_types.update({16: DriverType.FLEET, 17: DriverType.FLEET})

        plan = engine.analyze(request({1: 16, 2: 17}, PlanType.DIY, PlanType.THIRD_PARTY_LOADING_HELP, 2, 2))

        assert plan.drivers_to_remove == []
        assert plan.units_needing_new_driver == []
        assert plan.has_changes is False

    def test_shift_does_not_take_a_correctly_filled_unit(self, engine, driver_types):
        """Unit 2's own fleet driver keeps unit 2; the displaced unit-1 driver goes to unit 3."""
        driver_types.update({16: DriverType.FLEET, 17: DriverType.FLEET})

        plan = engine.analyze(request({1: 16, 2: 17}, PlanType.DIY, PlanType.FULL_SERVICE, 2, 3, PARTNER_ID))

        assert plan.drivers_to_keep == [
            DriverShift(driver_id=16, current_unit=1, new_unit=3, new_arrival_time=T + timedelta(minutes=90)),
            DriverShift(driver_id=17, current_unit=2, new_unit=2, new_arrival_time=T + timedelta(minutes=45)),
        ]
        assert plan.units_needing_new_driver == [UnitSlot(unit_number=1, driver_type=DriverType.PARTNER)]


class TestCompetingShifts:
    """Several displaced drivers competing for open units."""

    def test_lowest_driver_id_gets_lowest_unit(self, engine, driver_types):
        """Two fleet drivers share unit 1; the lower id gets unit 2, the other unit 3."""
        driver_types.update({21: DriverType.FLEET, 20: DriverType.FLEET})
        tasks = [
            TaskWithDriver(task_id="a", unit_number=1, step_number=TaskStep.PICKUP, driver_id=21),
            TaskWithDriver(task_id="b", unit_number=1, step_number=TaskStep.CUSTOMER, driver_id=20),
        ]
        req = ReassignmentRequest(
            current_tasks=tasks,
            old_plan_type=PlanType.DIY,
            new_plan_type=PlanType.FULL_SERVICE,
            old_unit_count=1,
            new_unit_count=3,
            appointment_time=T,
            moving_partner_id=PARTNER_ID,
        )

        plan = engine.analyze(req)

        assert [(s.driver_id, s.new_unit) for s in plan.drivers_to_keep] == [(20, 2), (21, 3)]

    def test_deterministic(self, engine, driver_types):
        driver_types.update({16: DriverType.FLEET, 17: DriverType.FLEET, 30: DriverType.PARTNER})
        req = request({1: 16, 2: 30, 3: 17}, PlanType.DIY, PlanType.FULL_SERVICE, 3, 2, PARTNER_ID)

        assert engine.analyze(req) == engine.analyze(req)


class TestPlanProperties:
    """Invariants that hold for any reconciliation."""

    @pytest.mark.parametrize("new_plan,new_count,partner_id", [
        (PlanType.FULL_SERVICE, 1, PARTNER_ID),
        (PlanType.FULL_SERVICE, 3, PARTNER_ID),
        (PlanType.DIY, 2, None),
        (PlanType.THIRD_PARTY_LOADING_HELP, 4, None),
    ])
    def test_units_partitioned(self, engine, driver_types, new_plan, new_count, partner_id):
        """Every unit is either kept by exactly one driver or listed as needing one."""
        driver_types.update({16: DriverType.FLEET, 17: DriverType.FLEET, 30: DriverType.PARTNER})

        plan = engine.analyze(request({1: 30, 2: 16, 3: 17}, PlanType.FULL_SERVICE, new_plan, 3, new_count, partner_id))

        kept_units = [shift.new_unit for shift in plan.drivers_to_keep]
        open_units = [slot.unit_number for slot in plan.units_needing_new_driver]
        assert len(kept_units) == len(set(kept_units))
        assert sorted(kept_units + open_units) == list(range(1, new_count + 1))

        kept = {shift.driver_id for shift in plan.drivers_to_keep}
        removed = {removal.driver_id for removal in plan.drivers_to_remove}
        assert kept.isdisjoint(removed)
        assert kept | removed == {16, 17, 30}


class TestClassificationFailure:
    """Unclassifiable drivers are surfaced."""

    def test_error_propagates(self, driver_types):
        resolver = Mock(spec=DriverTypeResolver)
        resolver.classify.side_effect = DriverClassificationError(16)
        engine = ReassignmentEngine(resolver)

        with pytest.raises(DriverClassificationError):
            engine.analyze(request({1: 16}, PlanType.DIY, PlanType.DIY, 1, 1))
