"""Pydantic models for change notifications, dependency requests and outbound messages."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Final, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from recordsync.domain.model import DEFAULT_SCHEMA, MirroredRecord, Operation

# Tables whose natural id is not carried in ``data.id``.
ID_ATTRIBUTES: Final[Mapping[str, str]] = MappingProxyType({"ProgrammeMembership": "uuid"})


class RecordSyncBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class NotificationMetadata(RecordSyncBaseModel):
    operation: Operation
    schema_name: str = Field(default=DEFAULT_SCHEMA, alias="schema-name")
    table_name: str = Field(alias="table-name")

    @field_validator("operation", mode="before")
    @classmethod
    def _parse_operation(cls, value: object) -> object:
        if isinstance(value, str):
            return Operation.parse(value)
        return value


class ChangeNotificationPayload(RecordSyncBaseModel):
    """One inbound notification: the row's data plus routing metadata."""

    tis_id: str | None = Field(default=None, alias="tisId")
    data: dict[str, str] = Field(default_factory=dict)
    metadata: NotificationMetadata

    @field_validator("data", mode="before")
    @classmethod
    def _stringify_data(cls, value: object) -> object:
        if not isinstance(value, Mapping):
            return value
        mapping_value = cast(Mapping[str, object], value)
        return {
            str(key): item if isinstance(item, str) else _stringify(item)
            for key, item in mapping_value.items()
            if item is not None
        }

    @field_validator("tis_id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> object:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @model_validator(mode="after")
    def _require_natural_id(self) -> ChangeNotificationPayload:
        if self.natural_id is None:
            attribute = ID_ATTRIBUTES.get(self.metadata.table_name, "id")
            raise ValueError(
                f"{self.metadata.table_name} notification carries neither tisId nor {attribute}"
            )
        return self

    @property
    def natural_id(self) -> str | None:
        if self.tis_id:
            return self.tis_id
        return self.data.get(ID_ATTRIBUTES.get(self.metadata.table_name, "id")) or None

    def to_record(self) -> MirroredRecord:
        return MirroredRecord(
            natural_id=cast(str, self.natural_id),
            table_name=self.metadata.table_name,
            schema_name=self.metadata.schema_name,
            operation=self.metadata.operation,
            attributes=dict(self.data),
        )


def _stringify(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class DataRequestMessage(RecordSyncBaseModel):
    """Asks the upstream system to resend the rows matching ``where``."""

    table: str
    where: dict[str, str]
    schema_name: str = Field(default=DEFAULT_SCHEMA, alias="schema")


class OutboundMessage(RecordSyncBaseModel):
    payload: dict[str, object]
    group_key: str = Field(alias="groupKey")
