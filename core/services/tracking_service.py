"""
Customer tracking-page service.

Verifies a tracking link, loads the appointment and its tasks, polls the
delivery provider for each unit's live task state, and derives the per-unit
step list. Units are fetched concurrently, one fetch group per unit.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

from auth.exceptions import InvalidTokenError, RateLimitedError
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.tracking_token import INVALID_TOKEN_MESSAGE, TrackingTokenService
from clients.onfleet_client import OnfleetClient
from core.config import DispatchConfig
from core.exceptions import IntegrationFailure
from core.models import (
    Appointment,
    DispatchTask,
    TaskSnapshot,
    TaskState,
    TaskStep,
    TrackingEvent,
    TrackingView,
    UnitTracking,
    UnitTrackingInput,
)
from core.repositories import (
    AppointmentRepository,
    MovingPartnerRepository,
    TaskRepository,
    TrackingEventRepository,
)
from core.tracking import build_unit_tracking
from utils.timezone import from_epoch_ms

logger = logging.getLogger(__name__)


class TrackingService:
    """Builds the tracking view behind a customer tracking link."""

    def __init__(
        self,
        tokens: TrackingTokenService,
        rate_limiter: RateLimiter,
        security_logger: SecurityLogger,
        appointments: AppointmentRepository,
        tasks: TaskRepository,
        partners: MovingPartnerRepository,
        tracking_events: TrackingEventRepository,
        onfleet: OnfleetClient,
        config: DispatchConfig,
    ):
        self.tokens = tokens
        self.rate_limiter = rate_limiter
        self.security_logger = security_logger
        self.appointments = appointments
        self.tasks = tasks
        self.partners = partners
        self.tracking_events = tracking_events
        self.onfleet = onfleet
        self.config = config

    def verify(
        self,
        token: str,
        client_ip: str | None = None,
        user_agent: str | None = None,
    ) -> TrackingView:
        """
        Resolve a tracking link to its tracking view.

        Raises:
            RateLimitedError: too many verifications from this client IP
            InvalidTokenError: bad, expired or orphaned token
        """
        if client_ip:
            try:
                self.rate_limiter.check_rate_limit(client_ip)
            except RateLimitedError:
                self.security_logger.log(
                    SecurityEvent.RATE_LIMITED,
                    ip_address=client_ip,
                    user_agent=user_agent,
                    details={"endpoint": "tracking_verify"},
                )
                raise

        try:
            claims = self.tokens.verify(token)
        except InvalidTokenError:
            self.security_logger.log(
                SecurityEvent.TRACKING_TOKEN_REJECTED,
                ip_address=client_ip,
                user_agent=user_agent,
            )
            raise

        appointment = self.appointments.get_by_id(claims.appointment_id)
        if appointment is None:
            logger.warning(f"Tracking token names missing appointment {claims.appointment_id}")
            self.security_logger.log(
                SecurityEvent.TRACKING_TOKEN_REJECTED,
                ip_address=client_ip,
                user_agent=user_agent,
                appointment_id=claims.appointment_id,
                details={"reason": "appointment not found"},
            )
            raise InvalidTokenError(INVALID_TOKEN_MESSAGE)

        units = self.build_units(
            appointment,
            client_event=claims.to_event(),
            feedback_url=f"{self.config.app_base_url}/feedback/{token}",
        )
        return TrackingView(
            appointment_id=appointment.id,
            appointment_date=appointment.scheduled_at,
            appointment_type=appointment.appointment_type,
            delivery_units=units,
            latitude=appointment.latitude,
            longitude=appointment.longitude,
        )

    def build_units(
        self,
        appointment: Appointment,
        client_event: TrackingEvent | None = None,
        feedback_url: str | None = None,
    ) -> list[UnitTracking]:
        """Tracking entries for every unit that has tasks, in unit order."""
        groups: dict[int, list[DispatchTask]] = {}
        for task in self.tasks.list_for_appointment(appointment.id):
            groups.setdefault(task.unit_number, []).append(task)
        if not groups:
            return []

        server_event = self.tracking_events.get_latest(appointment.id)
        partner_name = self._partner_name(appointment)
        unit_numbers = sorted(groups)

        workers = min(self.config.tracking_fetch_workers, len(unit_numbers))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            snapshots = list(executor.map(lambda n: self._fetch_unit(groups[n]), unit_numbers))

        units = []
        for unit_number, by_step in zip(unit_numbers, snapshots):
            unit = UnitTrackingInput(
                unit_number=unit_number,
                appointment_type=appointment.appointment_type,
                provider_name=self._provider_name(unit_number, partner_name),
                pickup=by_step.get(TaskStep.PICKUP),
                customer=by_step.get(TaskStep.CUSTOMER),
                dropoff=by_step.get(TaskStep.RETURN),
                admin=by_step.get(TaskStep.ADMIN),
                service_start_at=appointment.service_start_at,
                service_end_at=appointment.service_end_at,
                client_event=client_event,
                server_event=server_event,
                invoice_url=appointment.invoice_url,
                feedback_url=feedback_url,
            )
            units.append(
                build_unit_tracking(
                    unit,
                    total_units=len(unit_numbers),
                    tz_name=self.config.display_timezone,
                    brand_name=self.config.brand_name,
                )
            )
        return units

    def _partner_name(self, appointment: Appointment) -> str | None:
        if appointment.moving_partner_id is None:
            return None
        partner = self.partners.get_by_id(appointment.moving_partner_id)
        return partner.name if partner else None

    def _provider_name(self, unit_number: int, partner_name: str | None) -> str:
        """Unit 1 is served by the moving partner when there is one."""
        if unit_number == 1 and partner_name:
            return partner_name
        return f"{self.config.brand_name} Driver"

    def _fetch_unit(self, tasks: list[DispatchTask]) -> dict[TaskStep, TaskSnapshot]:
        return {task.step_number: self._snapshot(task) for task in tasks}

    def _snapshot(self, task: DispatchTask) -> TaskSnapshot:
        """
        Live view of one task.

        Provider state wins over the stored state. If the provider cannot be
        reached the stored state is used so the page still renders.
        """
        snapshot = TaskSnapshot(
            short_id=task.short_id,
            state=task.state,
            webhook_time=task.webhook_time,
            completed_at=task.completed_at,
        )
        try:
            remote = self.onfleet.fetch_task(task.task_id)
        except IntegrationFailure as e:
            logger.warning(f"Using stored state for task {task.task_id}: {e}")
            return snapshot

        state = remote.get("state")
        if state is not None:
            try:
                snapshot.state = TaskState(int(state))
            except ValueError:
                logger.warning(f"Task {task.task_id} has unknown provider state {state!r}")

        completion_time = (remote.get("completionDetails") or {}).get("time")
        if completion_time:
            snapshot.completed_at = from_epoch_ms(completion_time)

        snapshot.tracking_url = remote.get("trackingURL")
        return snapshot
