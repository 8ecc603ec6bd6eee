"""Grouping of an account's calls under its opportunities.

Everything here is pure: inputs are already-fetched read models, outputs are
new read models. Fetching lives in the service layer.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal

from app.crm.schemas import (
    CallRead,
    OpportunitiesWithCallsRead,
    OpportunityRead,
    OpportunityWithCallsRead,
)
from app.metrics import observe_orphaned_calls


logger = logging.getLogger("app.crm.linkage")

OrphanPolicy = Literal["unlinked", "drop"]


@dataclass(frozen=True, slots=True)
class CallGroups:
    by_opportunity: Mapping[str, tuple[CallRead, ...]]
    unlinked: tuple[CallRead, ...]


def group_calls(calls: Sequence[CallRead]) -> CallGroups:
    """Partition calls by opportunity id, keeping the incoming order in every group."""

    grouped: dict[str, list[CallRead]] = {}
    unlinked: list[CallRead] = []
    for call in calls:
        if call.opportunity_id:
            grouped.setdefault(call.opportunity_id, []).append(call)
        else:
            unlinked.append(call)
    return CallGroups(
        by_opportunity=MappingProxyType({key: tuple(value) for key, value in grouped.items()}),
        unlinked=tuple(unlinked),
    )


def link_calls(
    opportunities: Sequence[OpportunityRead],
    calls: Sequence[CallRead],
    *,
    orphan_policy: OrphanPolicy = "unlinked",
    account_id: str | None = None,
) -> OpportunitiesWithCallsRead:
    groups = group_calls(calls)
    known_ids = {opportunity.id for opportunity in opportunities}

    linked = [
        OpportunityWithCallsRead(
            **opportunity.model_dump(),
            calls=list(groups.by_opportunity.get(opportunity.id, ())),
        )
        for opportunity in opportunities
    ]

    orphan_ids = {key for key in groups.by_opportunity if key not in known_ids}
    unlinked: list[CallRead] = list(groups.unlinked)
    if orphan_ids:
        orphan_count = sum(len(groups.by_opportunity[key]) for key in orphan_ids)
        observe_orphaned_calls(policy=orphan_policy, count=orphan_count)
        logger.warning(
            "linkage.orphaned_calls",
            extra={"account_id": account_id, "orphaned_count": orphan_count},
        )
        if orphan_policy == "unlinked":
            # Re-walk the input so orphans interleave with unlinked calls in fetch order.
            unlinked = [
                call
                for call in calls
                if not call.opportunity_id or call.opportunity_id in orphan_ids
            ]

    return OpportunitiesWithCallsRead(opportunities=linked, unlinked_calls=unlinked)
