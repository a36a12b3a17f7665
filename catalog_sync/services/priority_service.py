"""
Administration of supplier ranks per retail vertical.

Ranks in a vertical must be unique and within PRIORITY_MIN..PRIORITY_MAX;
ideally they also form a gap-free 1..N sequence. Setting a rank that another
supplier already holds is refused rather than silently swapped.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.core.config import get_settings
from catalog_sync.core.exceptions import PriorityValidationError, DatabaseError
from catalog_sync.models import Supplier, SupplierVerticalPriority

logger = logging.getLogger(__name__)


def check_priority_consistency(ranks: Dict[str, int], min_rank: int = 1, max_rank: int = 25) -> Dict:
    """
    Inspect a slug -> rank mapping for one vertical.

    Returns ``{"is_valid", "issues", "recommendations"}`` where each issue is
    ``{"kind", "detail"}`` and kind is one of duplicate, out_of_range, gap,
    exceeds_count.
    """
    issues: List[Dict[str, str]] = []
    recommendations: List[str] = []

    by_rank: Dict[int, List[str]] = {}
    for slug, rank in ranks.items():
        by_rank.setdefault(rank, []).append(slug)

    duplicates = {rank: sorted(slugs) for rank, slugs in by_rank.items() if len(slugs) > 1}
    for rank, slugs in sorted(duplicates.items()):
        issues.append({"kind": "duplicate", "detail": f"Priority {rank} is assigned to multiple suppliers: {', '.join(slugs)}"})
    if duplicates:
        recommendations.append("Reassign duplicate priorities to keep one supplier per rank")

    out_of_range = sorted(slug for slug, rank in ranks.items() if not min_rank <= rank <= max_rank)
    if out_of_range:
        issues.append({
            "kind": "out_of_range",
            "detail": f"Priorities outside {min_rank}-{max_rank}: "
                      + ", ".join(f"{slug}={ranks[slug]}" for slug in out_of_range),
        })
        recommendations.append(f"Priority values must be integers from {min_rank} to {max_rank}")

    count = len(ranks)
    if count:
        missing = [rank for rank in range(1, count + 1) if rank not in by_rank]
        if missing:
            issues.append({"kind": "gap", "detail": f"Missing priorities in 1-{count} sequence: {', '.join(map(str, missing))}"})
            recommendations.append("Re-sequence priorities to fill gaps and keep a continuous 1-N order")
        extra = sorted(rank for rank in by_rank if rank > count)
        if extra:
            issues.append({"kind": "exceeds_count", "detail": f"Priorities exceed supplier count ({count}): {', '.join(map(str, extra))}"})
            recommendations.append("Compress the priority sequence to fit the 1-N range")

    return {
        "is_valid": not issues,
        "issues": issues,
        "recommendations": list(dict.fromkeys(recommendations)),
    }


def resequenced_ranks(ranks: Dict[str, int]) -> Dict[str, int]:
    """Compress ranks to 1..N keeping their order (ties broken by slug)."""
    ordered = sorted(ranks.items(), key=lambda item: (item[1], item[0]))
    return {slug: position for position, (slug, _) in enumerate(ordered, start=1)}


class PriorityService:
    def __init__(self, db: AsyncSession, settings=None):
        self.db = db
        self.settings = settings or get_settings()

    async def _ranks(self, vertical_id: int) -> Dict[str, int]:
        result = await self.db.execute(
            select(Supplier.slug, SupplierVerticalPriority.priority)
            .join(Supplier, Supplier.id == SupplierVerticalPriority.supplier_id)
            .where(SupplierVerticalPriority.retail_vertical_id == vertical_id)
        )
        return {slug: priority for slug, priority in result.all()}

    async def list_priorities(self, vertical_id: int) -> List[Dict]:
        ranks = await self._ranks(vertical_id)
        return [
            {"supplier_slug": slug, "retail_vertical_id": vertical_id, "priority": rank}
            for slug, rank in sorted(ranks.items(), key=lambda item: item[1])
        ]

    async def set_priority(self, vertical_id: int, supplier_slug: str, priority: int) -> Dict:
        """
        Assign a rank to a supplier in a vertical.

        Raises:
            PriorityValidationError: out of range, unknown supplier, or rank held by another supplier
        """
        if not self.settings.PRIORITY_MIN <= priority <= self.settings.PRIORITY_MAX:
            raise PriorityValidationError(
                f"Priority must be between {self.settings.PRIORITY_MIN} and {self.settings.PRIORITY_MAX}"
            )

        supplier = (await self.db.execute(select(Supplier).where(Supplier.slug == supplier_slug))).scalar_one_or_none()
        if supplier is None:
            raise PriorityValidationError(f"Unknown supplier '{supplier_slug}'")

        holder = (await self.db.execute(
            select(Supplier.slug)
            .join(SupplierVerticalPriority, Supplier.id == SupplierVerticalPriority.supplier_id)
            .where(SupplierVerticalPriority.retail_vertical_id == vertical_id,
                   SupplierVerticalPriority.priority == priority)
        )).scalar_one_or_none()
        if holder is not None and holder != supplier_slug:
            raise PriorityValidationError(
                f"Priority {priority} in vertical {vertical_id} is already held by '{holder}'"
            )

        row = (await self.db.execute(
            select(SupplierVerticalPriority).where(
                SupplierVerticalPriority.supplier_id == supplier.id,
                SupplierVerticalPriority.retail_vertical_id == vertical_id,
            )
        )).scalar_one_or_none()
        if row is None:
            row = SupplierVerticalPriority(supplier_id=supplier.id, retail_vertical_id=vertical_id)
            self.db.add(row)
        row.priority = priority

        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise PriorityValidationError(f"Priority {priority} conflicts with an existing assignment") from e

        logger.info(f"Set {supplier_slug} priority to {priority} in vertical {vertical_id}")
        return {"supplier_slug": supplier_slug, "retail_vertical_id": vertical_id, "priority": priority}

    async def validate_consistency(self, vertical_id: int) -> Dict:
        report = check_priority_consistency(
            await self._ranks(vertical_id), self.settings.PRIORITY_MIN, self.settings.PRIORITY_MAX
        )
        if not report["is_valid"]:
            logger.warning(f"Vertical {vertical_id} priority issues: {[i['detail'] for i in report['issues']]}")
        return {"retail_vertical_id": vertical_id, **report}

    async def resequence(self, vertical_id: int) -> List[Dict]:
        """Rewrite the vertical's ranks as 1..N in their current order."""
        result = await self.db.execute(
            select(SupplierVerticalPriority, Supplier.slug)
            .join(Supplier, Supplier.id == SupplierVerticalPriority.supplier_id)
            .where(SupplierVerticalPriority.retail_vertical_id == vertical_id)
        )
        rows = result.all()
        supplier_ids = {slug: row.supplier_id for row, slug in rows}
        new_ranks = resequenced_ranks({slug: row.priority for row, slug in rows})

        try:
            # Unique (vertical, priority) forbids renumbering in place
            await self.db.execute(
                delete(SupplierVerticalPriority).where(SupplierVerticalPriority.retail_vertical_id == vertical_id)
            )
            await self.db.flush()
            for slug, rank in new_ranks.items():
                self.db.add(SupplierVerticalPriority(
                    supplier_id=supplier_ids[slug], retail_vertical_id=vertical_id, priority=rank
                ))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseError(f"Failed to resequence vertical {vertical_id}: {str(e)}") from e

        logger.info(f"Resequenced {len(new_ranks)} priorities in vertical {vertical_id}")
        return await self.list_priorities(vertical_id)
