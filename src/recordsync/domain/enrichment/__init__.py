"""Enrichment orchestrators, one per aggregate family."""

from __future__ import annotations

from .base import Enricher
from .curriculum_membership import CurriculumMembershipEnricher
from .placement import PlacementEnricher
from .programme_membership import ProgrammeMembershipEnricher
from .resolution import Link, RelationResolver, Resolution

__all__ = [
    "CurriculumMembershipEnricher",
    "Enricher",
    "Link",
    "PlacementEnricher",
    "ProgrammeMembershipEnricher",
    "RelationResolver",
    "Resolution",
]
