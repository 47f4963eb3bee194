"""Delivery-provider webhook payload models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from core.exceptions import ValidationError

# Completion photos are served from the provider's CDN by upload id
PHOTO_URL_TEMPLATE = "https://d15p8tr8p0vffz.cloudfront.net/{upload_id}/800x.png"


class JobType(str, Enum):
    """Job family carried in the task's job_type metadata."""

    PACKING_SUPPLY_DELIVERY = "packing_supply_delivery"
    STORAGE_UNIT = "storage_unit"

    @classmethod
    def from_metadata(cls, value: Any) -> "JobType":
        """Anything other than a packing-supply delivery is a storage-unit job."""
        if value == cls.PACKING_SUPPLY_DELIVERY.value:
            return cls.PACKING_SUPPLY_DELIVERY
        return cls.STORAGE_UNIT


class TriggerName(str, Enum):
    """Webhook trigger names the provider can send."""

    TASK_STARTED = "taskStarted"
    TASK_ETA = "taskEta"
    TASK_ARRIVAL = "taskArrival"
    TASK_COMPLETED = "taskCompleted"
    TASK_FAILED = "taskFailed"
    TASK_CREATED = "taskCreated"
    TASK_UPDATED = "taskUpdated"
    TASK_DELETED = "taskDeleted"
    TASK_ASSIGNED = "taskAssigned"
    TASK_UNASSIGNED = "taskUnassigned"
    TASK_DELAYED = "taskDelayed"
    TASK_CLONED = "taskCloned"
    WORKER_DUTY = "workerDuty"


class MetadataEntry(BaseModel):
    """One task metadata field."""

    name: str
    type: str | None = None
    value: Any = None
    visibility: list[str] = Field(default_factory=list)


class WebhookTask(BaseModel):
    """Task snapshot embedded in a webhook."""

    short_id: str = Field(..., alias="shortId")
    metadata: list[MetadataEntry] = Field(default_factory=list)
    worker: str | None = None
    state: int | None = None
    tracking_url: str | None = Field(None, alias="trackingURL")
    completion_details: dict[str, Any] | None = Field(None, alias="completionDetails")

    model_config = {"populate_by_name": True}


class WebhookData(BaseModel):
    task: WebhookTask | None = None
    worker: dict[str, Any] | None = None


class WebhookPayload(BaseModel):
    """
    Inbound delivery-provider event.

    {taskId, time, triggerName, data: {task: {shortId, metadata, worker}, worker}}
    """

    task_id: str = Field(..., alias="taskId")
    time: int
    trigger_name: TriggerName = Field(..., alias="triggerName")
    data: WebhookData = Field(default_factory=WebhookData)

    model_config = {"populate_by_name": True}

    @classmethod
    def parse(cls, raw: dict[str, Any]) -> "WebhookPayload":
        """
        Validate a raw JSON body.

        Raises:
            ValidationError: missing fields or unknown trigger name.
        """
        try:
            return cls.model_validate(raw)
        except PydanticValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ValidationError(f"Invalid webhook payload: {fields}")

    def get_metadata_value(self, name: str) -> Any:
        """Value of the named metadata field, or None."""
        if self.data.task is None:
            return None
        for entry in self.data.task.metadata:
            if entry.name == name:
                return entry.value
        return None

    def _int_metadata(self, name: str) -> int | None:
        value = self.get_metadata_value(name)
        if value is None or value == "":
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Metadata '{name}' must be numeric, got {value!r}")

    @property
    def job_type(self) -> JobType:
        return JobType.from_metadata(self.get_metadata_value("job_type"))

    @property
    def step(self) -> int | None:
        return self._int_metadata("step")

    @property
    def order_id(self) -> int | None:
        return self._int_metadata("order_id")

    @property
    def appointment_id(self) -> int | None:
        return self._int_metadata("appointment_id")

    @property
    def unit_number(self) -> int | None:
        return self._int_metadata("unit_number")

    @property
    def short_id(self) -> str | None:
        return self.data.task.short_id if self.data.task else None

    @property
    def completion_photo_url(self) -> str | None:
        """URL of the first completion photo, if the driver uploaded one."""
        if self.data.task is None or not self.data.task.completion_details:
            return None
        details = self.data.task.completion_details
        upload_ids = details.get("photoUploadIds") or []
        upload_id = upload_ids[0] if upload_ids else details.get("photoUploadId")
        if not upload_id:
            return None
        return PHOTO_URL_TEMPLATE.format(upload_id=upload_id)

    @property
    def dedup_key(self) -> str:
        return f"webhook:{self.task_id}:{self.trigger_name.value}:{self.time}"
