"""Tests for TaskPlanningService - provider task creation and window re-planning."""

from datetime import timedelta
from unittest.mock import Mock

import pytest

from clients.onfleet_client import OnfleetClient
from core.models import PlanType, TaskState, TaskStep, WorkerType
from core.repositories import MovingPartnerRepository, TaskRepository
from core.services.task_planning_service import TaskPlanningService
from utils.timezone import to_epoch_ms

FLEET_TEAM_ID = "team-boombox-fleet"


def metadata_dict(payload):
    return {m["name"]: m["value"] for m in payload["metadata"]}


@pytest.fixture
def onfleet():
    client = Mock(spec=OnfleetClient)
    counter = iter(range(1, 1000))
    client.create_task.side_effect = lambda payload: {"id": f"onf-{next(counter)}", "shortId": "abcd"}
    return client


@pytest.fixture
def tasks():
    repo = Mock(spec=TaskRepository)
    repo.create.side_effect = lambda data, actor: data
    return repo


@pytest.fixture
def partners(make_partner):
    repo = Mock(spec=MovingPartnerRepository)
    repo.get_by_id.return_value = make_partner(onfleet_team_id="team-ggm")
    return repo


@pytest.fixture
def planner(onfleet, tasks, partners, dispatch_config):
    return TaskPlanningService(onfleet, tasks, partners, dispatch_config)


class TestBuildTaskPayload:
    """Provider create-task bodies."""

    def test_customer_step_goes_to_customer(self, planner, make_appointment):
        appointment = make_appointment(latitude=37.79, longitude=-122.40)

        payload = planner.build_task_payload(appointment, 1, TaskStep.CUSTOMER)

        assert payload["destination"]["address"]["unparsed"] == appointment.address
        assert payload["destination"]["location"] == [-122.40, 37.79]

    @pytest.mark.parametrize("step", [TaskStep.PICKUP, TaskStep.RETURN])
    def test_travel_steps_go_to_warehouse(self, planner, make_appointment, dispatch_config, step):
        payload = planner.build_task_payload(make_appointment(), 1, step)

        assert payload["destination"]["address"]["unparsed"] == dispatch_config.warehouse_address
        assert "location" not in payload["destination"]

    def test_metadata(self, planner, make_appointment):
        payload = planner.build_task_payload(make_appointment(), 2, TaskStep.RETURN)

        assert metadata_dict(payload) == {
            "step": 3,
            "job_type": "storage_unit",
            "appointment_id": 100,
            "unit_number": 2,
        }

    def test_window_from_staggered_start(self, planner, make_appointment):
        """Unit 2 customer window starts 45 minutes after the appointment."""
        appointment = make_appointment()

        payload = planner.build_task_payload(appointment, 2, TaskStep.CUSTOMER)

        start = appointment.scheduled_at + timedelta(minutes=45)
        assert payload["completeAfter"] == to_epoch_ms(start)
        assert payload["completeBefore"] == to_epoch_ms(start + timedelta(hours=1))

    def test_dependency(self, planner, make_appointment):
        payload = planner.build_task_payload(make_appointment(), 1, TaskStep.CUSTOMER, depends_on="onf-1")
        assert payload["dependencies"] == ["onf-1"]

    def test_fleet_team_by_default(self, planner, make_appointment):
        payload = planner.build_task_payload(make_appointment(), 1, TaskStep.PICKUP)
        assert payload["container"] == {"type": "TEAM", "team": FLEET_TEAM_ID}

    def test_partner_team_for_full_service_unit_one(self, planner, make_appointment):
        appointment = make_appointment(plan_type=PlanType.FULL_SERVICE, moving_partner_id=10)

        assert planner.build_task_payload(appointment, 1, TaskStep.PICKUP)["container"]["team"] == "team-ggm"
        assert planner.build_task_payload(appointment, 2, TaskStep.PICKUP)["container"]["team"] == FLEET_TEAM_ID

    def test_partner_without_team_falls_back_to_fleet(self, planner, partners, make_appointment, make_partner):
        partners.get_by_id.return_value = make_partner(onfleet_team_id=None)
        appointment = make_appointment(plan_type=PlanType.FULL_SERVICE, moving_partner_id=10)

        assert planner.build_task_payload(appointment, 1, TaskStep.PICKUP)["container"]["team"] == FLEET_TEAM_ID


class TestCreateUnitTasks:
    """Linked three-task sequence per unit."""

    def test_creates_chained_tasks(self, planner, onfleet, make_appointment):
        planner.create_unit_tasks(make_appointment(), 1)

        payloads = [c[0][0] for c in onfleet.create_task.call_args_list]
        assert [metadata_dict(p)["step"] for p in payloads] == [1, 2, 3]
        assert "dependencies" not in payloads[0]
        assert payloads[1]["dependencies"] == ["onf-1"]
        assert payloads[2]["dependencies"] == ["onf-2"]

    def test_records_each_task(self, planner, tasks, make_appointment):
        created = planner.create_unit_tasks(make_appointment(), 1, actor="ops@example.com")

        assert [t.task_id for t in created] == ["onf-1", "onf-2", "onf-3"]
        assert all(t.worker_type == WorkerType.FLEET_DRIVER for t in created)
        assert tasks.create.call_args[1]["actor"] == "ops@example.com"

    def test_no_admin_task_created(self, planner, onfleet, make_appointment):
        planner.create_unit_tasks(make_appointment(), 1)
        assert onfleet.create_task.call_count == 3

    def test_partner_unit_worker_type(self, planner, make_appointment):
        appointment = make_appointment(plan_type=PlanType.FULL_SERVICE, moving_partner_id=10)

        created = planner.create_unit_tasks(appointment, 1)

        assert all(t.worker_type == WorkerType.MOVING_PARTNER for t in created)


class TestReplanWindows:

    def test_live_travel_tasks_moved(self, planner, onfleet, tasks, make_appointment, make_task):
        tasks.list_for_appointment.return_value = [
            make_task(1, 1),
            make_task(1, 2, state=TaskState.COMPLETED),
            make_task(1, 4),
            make_task(2, 3),
        ]

        updated = planner.replan_windows(make_appointment())

        assert updated == 2
        assert [c[0][0] for c in onfleet.update_task.call_args_list] == ["task-1-1", "task-2-3"]
        assert tasks.update_window.call_count == 2


class TestSyncUnits:
    """Bringing provider tasks in line with an edit."""

    def test_added_units_get_tasks(self, planner, onfleet, tasks, make_appointment):
        previous = make_appointment(unit_count=1)
        current = make_appointment(unit_count=3)

        created = planner.sync_units(previous, current)

        assert {t.unit_number for t in created} == {2, 3}
        assert onfleet.create_task.call_count == 6
        tasks.cancel_units_above.assert_not_called()

    def test_removed_units_cancelled(self, planner, onfleet, tasks, make_appointment):
        tasks.cancel_units_above.return_value = []

        planner.sync_units(make_appointment(unit_count=3), make_appointment(unit_count=1))

        tasks.cancel_units_above.assert_called_once_with(100, 1, "system")
        onfleet.create_task.assert_not_called()

    def test_time_change_replans(self, planner, onfleet, tasks, make_appointment):
        tasks.list_for_appointment.return_value = []
        previous = make_appointment()
        current = make_appointment(scheduled_at=previous.scheduled_at + timedelta(hours=2))

        planner.sync_units(previous, current)

        tasks.list_for_appointment.assert_called_once_with(100)

    def test_unchanged_shape_does_nothing(self, planner, onfleet, tasks, make_appointment):
        planner.sync_units(make_appointment(), make_appointment(plan_type=PlanType.FULL_SERVICE))

        onfleet.create_task.assert_not_called()
        onfleet.update_task.assert_not_called()
