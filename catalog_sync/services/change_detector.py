"""
Differential change detection for supplier feeds.

Supplier feeds are large and mostly static between runs, so each feed is
reduced to the lines that differ from the last successfully processed copy.
Comparison is on whole normalized lines: a line that is byte-identical to a
line in the previous snapshot is unchanged, anything else is new or modified.
Removed lines are counted but never acted upon.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ChangeStats:
    total_lines: int = 0      # data lines in the new feed, header excluded
    changed_lines: int = 0
    added_lines: int = 0
    removed_lines: int = 0


@dataclass
class ChangeSet:
    """Header line first, followed by changed/new data lines in feed order."""
    changed_lines: List[str] = field(default_factory=list)
    stats: ChangeStats = field(default_factory=ChangeStats)
    content_hash: str = ""

    @property
    def has_changes(self) -> bool:
        return self.stats.changed_lines > 0

    @property
    def header(self) -> Optional[str]:
        return self.changed_lines[0] if self.changed_lines else None

    def as_text(self) -> str:
        return "\n".join(self.changed_lines)


def normalize_lines(content: Optional[str]) -> List[str]:
    """Split on any line ending and drop blank lines."""
    if not content:
        return []
    text = content.replace("\r\n", "\n").replace("\r", "\n")
    return [line for line in text.split("\n") if line.strip()]


def normalize_content(content: Optional[str]) -> str:
    return "\n".join(normalize_lines(content))


def fingerprint(content: Optional[str]) -> str:
    """SHA-256 hex digest of the normalized content."""
    return hashlib.sha256(normalize_content(content).encode("utf-8")).hexdigest()


def detect_changes(previous_snapshot: Optional[str], new_content: str) -> ChangeSet:
    """
    Compare a new feed against the previous snapshot.

    With no previous snapshot every data line is reported as changed, which
    makes the first sync a full baseline import.
    """
    new_lines = normalize_lines(new_content)
    content_hash = fingerprint(new_content)

    if not new_lines:
        return ChangeSet(changed_lines=[], stats=ChangeStats(), content_hash=content_hash)

    header, data_lines = new_lines[0], new_lines[1:]

    if previous_snapshot is None:
        logger.info(f"No previous snapshot, treating all {len(data_lines)} lines as new")
        return ChangeSet(
            changed_lines=[header] + data_lines,
            stats=ChangeStats(
                total_lines=len(data_lines),
                changed_lines=len(data_lines),
                added_lines=len(data_lines),
                removed_lines=0,
            ),
            content_hash=content_hash,
        )

    if fingerprint(previous_snapshot) == content_hash:
        return ChangeSet(
            changed_lines=[header],
            stats=ChangeStats(total_lines=len(data_lines)),
            content_hash=content_hash,
        )

    previous_lines = normalize_lines(previous_snapshot)
    previous_data = set(previous_lines[1:])
    new_data = set(data_lines)

    changed = [line for line in data_lines if line not in previous_data]
    removed = len(previous_data - new_data)

    logger.debug(
        f"Diff: {len(data_lines)} lines, {len(changed)} changed, {removed} removed"
    )

    return ChangeSet(
        changed_lines=[header] + changed,
        stats=ChangeStats(
            total_lines=len(data_lines),
            changed_lines=len(changed),
            added_lines=len(changed),
            removed_lines=removed,
        ),
        content_hash=content_hash,
    )
