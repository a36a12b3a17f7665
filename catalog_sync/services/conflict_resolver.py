"""
Priority-based conflict resolution for the master catalog.

Several suppliers describe the same UPC. Within a retail vertical every
supplier has a unique rank (1 = most trusted) and the whole identification
record belongs to whichever supplier ranks best among those that have sent
it. Resolution is pure: it reads a PriorityTable snapshot taken at the start
of a run and returns a decision for the caller to apply.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Tuple

from catalog_sync.core.enums import ResolutionAction, ResolutionReason, UNRANKED_PRIORITY
from catalog_sync.core.exceptions import ConfigurationError, PriorityValidationError
from catalog_sync.models.master_product import IDENTIFICATION_FIELDS

logger = logging.getLogger(__name__)

PRIORITY_MIN = 1
PRIORITY_MAX = 25


@dataclass(frozen=True)
class ResolutionDecision:
    action: ResolutionAction
    reason: ResolutionReason
    previous_source: Optional[str] = None
    # Identical data from a better-ranked supplier: record it as the owner without counting an update
    claims_ownership: bool = False

    @property
    def writes(self) -> bool:
        return self.action != ResolutionAction.SKIP or self.claims_ownership


class PriorityTable:
    """
    Immutable (vertical, supplier slug) -> rank snapshot.

    Built once per run so that rank edits made while a run is in flight do not
    change its outcome halfway through.
    """

    def __init__(self, entries: Iterable[Tuple[int, str, int]],
                 min_rank: int = PRIORITY_MIN, max_rank: int = PRIORITY_MAX):
        ranks: Dict[Tuple[int, str], int] = {}
        taken: Dict[Tuple[int, int], str] = {}
        for vertical_id, slug, rank in entries:
            if not min_rank <= rank <= max_rank:
                raise PriorityValidationError(
                    f"Priority {rank} for '{slug}' in vertical {vertical_id} is outside {min_rank}-{max_rank}"
                )
            holder = taken.get((vertical_id, rank))
            if holder is not None and holder != slug:
                raise PriorityValidationError(
                    f"Priority {rank} in vertical {vertical_id} is held by both '{holder}' and '{slug}'"
                )
            taken[(vertical_id, rank)] = slug
            ranks[(vertical_id, slug)] = rank
        self._ranks = ranks

    @classmethod
    def for_vertical(cls, vertical_id: int, ranks: Mapping[str, int], **limits) -> "PriorityTable":
        return cls(((vertical_id, slug, rank) for slug, rank in ranks.items()), **limits)

    def rank(self, vertical_id: int, supplier_slug: str) -> Optional[int]:
        return self._ranks.get((vertical_id, supplier_slug))

    def require_rank(self, vertical_id: int, supplier_slug: str) -> int:
        rank = self.rank(vertical_id, supplier_slug)
        if rank is None:
            raise ConfigurationError(
                f"Supplier '{supplier_slug}' has no priority in retail vertical {vertical_id}"
            )
        return rank

    def __len__(self):
        return len(self._ranks)


def _normalized(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def identification_equal(incoming: Mapping, existing: Mapping) -> bool:
    return all(
        _normalized(incoming.get(name)) == _normalized(existing.get(name))
        for name in IDENTIFICATION_FIELDS
    )


class ConflictResolver:
    def __init__(self, priority_table: PriorityTable):
        self.priority_table = priority_table

    def resolve(self, incoming, existing, supplier_slug: str, vertical_id: int,
                force: bool = False) -> ResolutionDecision:
        """
        Decide what to do with an incoming canonical record.

        ``existing`` is the stored product (or None). Both are read through
        ``identification()``. ``force`` is the manual override used after
        re-ranking: the incoming supplier takes the product whatever the
        stored owner's rank.

        Raises:
            ConfigurationError: the incoming supplier has no rank in the vertical
        """
        incoming_rank = self.priority_table.require_rank(vertical_id, supplier_slug)

        if existing is None:
            return ResolutionDecision(ResolutionAction.CREATE, ResolutionReason.NEW_PRODUCT)

        owner = existing.source
        same_fields = identification_equal(incoming.identification(), existing.identification())

        if force and not (owner == supplier_slug and same_fields):
            logger.info(f"Manual override: {supplier_slug} takes {incoming.upc} from {owner}")
            return ResolutionDecision(ResolutionAction.UPDATE, ResolutionReason.MANUAL_OVERRIDE, owner)

        if owner == supplier_slug:
            if same_fields:
                return ResolutionDecision(ResolutionAction.SKIP, ResolutionReason.NO_CHANGE, owner)
            return ResolutionDecision(ResolutionAction.UPDATE, ResolutionReason.OWNER_REFRESH, owner)

        owner_rank = self.priority_table.rank(vertical_id, owner)
        if owner_rank is None:
            owner_rank = UNRANKED_PRIORITY

        if owner_rank <= incoming_rank:
            return ResolutionDecision(ResolutionAction.SKIP, ResolutionReason.LOWER_OR_EQUAL_PRIORITY, owner)

        if same_fields:
            return ResolutionDecision(ResolutionAction.SKIP, ResolutionReason.NO_CHANGE, owner,
                                      claims_ownership=True)

        logger.debug(
            f"{supplier_slug} (rank {incoming_rank}) takes over {incoming.upc} from {owner} (rank {owner_rank})"
        )
        return ResolutionDecision(ResolutionAction.UPDATE, ResolutionReason.HIGHER_PRIORITY, owner)
