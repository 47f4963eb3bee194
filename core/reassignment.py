"""
Driver reassignment reconciliation.

When an appointment's plan type, moving partner or unit count changes after
drivers are assigned, ReassignmentEngine works out who keeps their unit, who
moves to another unit, who comes off the job, and which units are left
needing a driver of which type.

The engine is pure apart from driver classification lookups: identical
inputs always give an identical plan.
"""

import logging

from core.driver_types import DriverTypeResolver
from core.models import (
    DriverRemoval,
    DriverShift,
    DriverType,
    PlanType,
    ReassignmentPlan,
    ReassignmentRequest,
    TaskWithDriver,
    UnitSlot,
    REASON_NO_SHIFT_TARGET,
    REASON_TYPE_MISMATCH,
    REASON_UNIT_REMOVED,
)
from core.time_windows import unit_start_time

logger = logging.getLogger(__name__)


def required_driver_types(
    plan_type: PlanType,
    unit_count: int,
    moving_partner_id: int | None,
) -> dict[int, DriverType]:
    """
    Driver type each unit needs under a plan.

    Full Service with a moving partner puts a partner crew on unit 1; every
    other unit (and every unit of the other plans) is served by the fleet.
    """
    shape = {unit: DriverType.FLEET for unit in range(1, unit_count + 1)}
    if plan_type == PlanType.FULL_SERVICE and moving_partner_id is not None:
        shape[1] = DriverType.PARTNER
    return shape


def home_units(tasks: list[TaskWithDriver]) -> dict[int, int]:
    """
    Each assigned driver's home unit: the unit of their lowest-step task,
    lowest unit on ties.
    """
    best: dict[int, tuple[int, int]] = {}
    for task in tasks:
        if task.driver_id is None:
            continue
        key = (int(task.step_number), task.unit_number)
        if task.driver_id not in best or key < best[task.driver_id]:
            best[task.driver_id] = key
    return {driver_id: unit for driver_id, (_, unit) in best.items()}


class ReassignmentEngine:
    """Computes a ReassignmentPlan from current assignments and a new plan shape."""

    def __init__(self, resolver: DriverTypeResolver, stagger_minutes: int = 45):
        self.resolver = resolver
        self.stagger_minutes = stagger_minutes

    def _fits(self, driver_id: int, driver_type: DriverType, required: DriverType, partner_id: int | None) -> bool:
        if driver_type != required:
            return False
        if required == DriverType.PARTNER:
            return self.resolver.is_partner_of(driver_id, partner_id)
        return True

    def analyze(self, request: ReassignmentRequest) -> ReassignmentPlan:
        """
        Reconcile current assignments with the requested plan shape.

        Drivers are processed in (home unit, driver id) order in three passes:
        drivers on removed units come off first, then drivers already of the
        right type keep their unit, then the rest either shift to the lowest
        open fleet unit (fleet drivers displaced by a partner requirement) or
        come off. When several displaced drivers compete, the lowest driver
        id gets the lowest open unit.

        Raises:
            DriverClassificationError: an assigned driver is neither partner nor fleet
            NotFoundError: an assigned driver does not exist
        """
        new_count = request.new_unit_count
        partner_id = request.moving_partner_id
        required = required_driver_types(request.new_plan_type, new_count, partner_id)

        homes = home_units(request.current_tasks)
        ordered = sorted(homes.items(), key=lambda item: (item[1], item[0]))
        types = {driver_id: self.resolver.classify(driver_id) for driver_id, _ in ordered}

        claimed: dict[int, int] = {}
        keep: list[DriverShift] = []
        remove: list[DriverRemoval] = []
        pending: list[tuple[int, int]] = []

        # Units that no longer exist, before any shift is considered
        for driver_id, unit in ordered:
            if unit > new_count:
                remove.append(DriverRemoval(
                    driver_id=driver_id,
                    unit_number=unit,
                    reason=REASON_UNIT_REMOVED.format(unit=unit),
                ))
            else:
                pending.append((driver_id, unit))

        # Correctly typed drivers stay put
        displaced: list[tuple[int, int]] = []
        for driver_id, unit in pending:
            if unit not in claimed and self._fits(driver_id, types[driver_id], required[unit], partner_id):
                claimed[unit] = driver_id
                keep.append(self._shift(request, driver_id, unit, unit))
            else:
                displaced.append((driver_id, unit))

        # Shift displaced fleet drivers or take them off
        for driver_id, unit in displaced:
            if types[driver_id] != DriverType.FLEET:
                remove.append(DriverRemoval(driver_id=driver_id, unit_number=unit, reason=REASON_TYPE_MISMATCH))
                continue

            target = self._lowest_open_fleet_unit(required, claimed)
            if target is None:
                remove.append(DriverRemoval(driver_id=driver_id, unit_number=unit, reason=REASON_NO_SHIFT_TARGET))
                continue

            claimed[target] = driver_id
            keep.append(self._shift(request, driver_id, unit, target))

        units_needing = [
            UnitSlot(unit_number=unit, driver_type=required[unit])
            for unit in sorted(required)
            if unit not in claimed
        ]

        plan = ReassignmentPlan(
            drivers_to_keep=sorted(keep, key=lambda s: (s.current_unit, s.driver_id)),
            drivers_to_remove=sorted(remove, key=lambda r: (r.unit_number, r.driver_id)),
            units_needing_new_driver=units_needing,
        )

        logger.info(
            f"Reassignment {request.old_plan_type.value}/{request.old_unit_count} -> "
            f"{request.new_plan_type.value}/{new_count}: keep={len(plan.drivers_to_keep)} "
            f"remove={len(plan.drivers_to_remove)} open={len(plan.units_needing_new_driver)}"
        )
        return plan

    def _lowest_open_fleet_unit(self, required: dict[int, DriverType], claimed: dict[int, int]) -> int | None:
        for unit in sorted(required):
            if unit >= 2 and unit not in claimed and required[unit] == DriverType.FLEET:
                return unit
        return None

    def _shift(self, request: ReassignmentRequest, driver_id: int, current_unit: int, new_unit: int) -> DriverShift:
        return DriverShift(
            driver_id=driver_id,
            current_unit=current_unit,
            new_unit=new_unit,
            new_arrival_time=unit_start_time(request.appointment_time, new_unit, self.stagger_minutes),
        )
