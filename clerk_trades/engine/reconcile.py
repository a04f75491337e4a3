"""Trade reconciliation against the persisted trade history."""

from __future__ import annotations

from typing import Callable, Iterable

import structlog

from ..config import EquivalencePolicy
from ..infra import TradeStore
from ..models import TradeRecord

Equivalence = Callable[[TradeRecord, TradeRecord], bool]

# Name and Asset are left out: the extractor spells them inconsistently.
MATCH_FIELDS = ("ticker", "type", "date", "filed", "amount", "cap")


def exact_match(candidate: TradeRecord, existing: TradeRecord) -> bool:
    return candidate == existing


def six_field_match(candidate: TradeRecord, existing: TradeRecord) -> bool:
    return all(getattr(candidate, attr) == getattr(existing, attr) for attr in MATCH_FIELDS)


def six_field_wildcard_match(candidate: TradeRecord, existing: TradeRecord) -> bool:
    """Like :func:`six_field_match` but an empty candidate string matches anything."""

    for attr in MATCH_FIELDS:
        value = getattr(candidate, attr)
        if value == "":
            continue
        if value != getattr(existing, attr):
            return False
    return True


def name_and_fields_match(candidate: TradeRecord, existing: TradeRecord) -> bool:
    """Names overlap either way and every non-empty optional field agrees."""

    a, b = candidate.name.casefold(), existing.name.casefold()
    if a not in b and b not in a:
        return False
    for attr in ("asset", "ticker", "type", "date", "filed", "amount"):
        mine, theirs = getattr(candidate, attr), getattr(existing, attr)
        if mine and theirs and mine != theirs:
            return False
    return candidate.cap == existing.cap


POLICIES: dict[EquivalencePolicy, Equivalence] = {
    EquivalencePolicy.EXACT: exact_match,
    EquivalencePolicy.SIX_FIELD: six_field_match,
    EquivalencePolicy.SIX_FIELD_WILDCARD: six_field_wildcard_match,
    EquivalencePolicy.NAME_AND_FIELDS: name_and_fields_match,
}


def unique_candidates(
    candidates: Iterable[TradeRecord],
    existing: Iterable[TradeRecord],
    equivalent: Equivalence,
) -> list[TradeRecord]:
    """Return candidates with no equivalent in ``existing`` or earlier in the batch."""

    known = list(existing)
    fresh: list[TradeRecord] = []
    for candidate in candidates:
        if any(equivalent(candidate, record) for record in known):
            continue
        known.append(candidate)
        fresh.append(candidate)
    return fresh


class Reconciler:
    """Merge extracted trades into the trade store, returning what was added."""

    def __init__(
        self,
        store: TradeStore,
        policy: EquivalencePolicy = EquivalencePolicy.SIX_FIELD,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.store = store
        self.policy = policy
        self.equivalent = POLICIES[policy]
        self.logger = logger or structlog.get_logger("clerk_trades.reconcile")

    def reconcile(self, candidates: Iterable[TradeRecord]) -> list[TradeRecord]:
        batch = list(candidates)
        added = self.store.update(
            lambda existing: unique_candidates(batch, existing, self.equivalent)
        )
        if added:
            self.logger.info(
                "trades_updated",
                path=str(self.store.path),
                added=len(added),
                policy=self.policy.value,
            )
        else:
            self.logger.debug("no_new_trades", candidates=len(batch))
        return added


__all__ = [
    "MATCH_FIELDS",
    "POLICIES",
    "Reconciler",
    "exact_match",
    "name_and_fields_match",
    "six_field_match",
    "six_field_wildcard_match",
    "unique_candidates",
]
