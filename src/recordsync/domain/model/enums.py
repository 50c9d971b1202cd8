"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum
from typing import Final


class Operation(StrEnum):
    """Closed vocabulary of operations carried by every mirrored record."""

    LOAD = "load"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    LOOKUP = "lookup"

    @classmethod
    def parse(cls, value: str) -> Operation:
        """Match an operation name case-insensitively."""

        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            raise ValueError(f"Unknown operation: {value!r}") from exc


class RecordType:
    """Table names of the mirrored record types the pipeline knows about."""

    PROGRAMME_MEMBERSHIP: Final = "ProgrammeMembership"
    CURRICULUM_MEMBERSHIP: Final = "CurriculumMembership"
    CONDITIONS_OF_JOINING: Final = "ConditionsOfJoining"
    PROGRAMME: Final = "Programme"
    CURRICULUM: Final = "Curriculum"
    PLACEMENT: Final = "Placement"
    PLACEMENT_SITE: Final = "PlacementSite"
    PLACEMENT_SPECIALTY: Final = "PlacementSpecialty"
    POST: Final = "Post"
    POST_SPECIALTY: Final = "PostSpecialty"
    SITE: Final = "Site"
    GRADE: Final = "Grade"
    SPECIALTY: Final = "Specialty"
    TRUST: Final = "Trust"
    QUALIFICATION: Final = "Qualification"
    PERSON: Final = "Person"
