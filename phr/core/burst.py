"""Burst (rapid sequence) detection."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from phr.core.config import BurstConfig
from phr.core.models import MediaRecord

logger = logging.getLogger(__name__)


@dataclass
class BurstGroup:
    """A qualifying run of photos sharing one group id."""
    id: int
    members: List[MediaRecord] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.members)

    @property
    def start_time(self) -> Optional[datetime]:
        return self.members[0].date_taken if self.members else None

    @property
    def end_time(self) -> Optional[datetime]:
        return self.members[-1].date_taken if self.members else None


def _sort_key(record: MediaRecord) -> datetime:
    """Timestamp used for ordering and gap measurement, subseconds included."""
    stamp = record.date_taken
    if record.subsec_time:
        stamp += timedelta(milliseconds=record.subsec_time)
    return stamp


class BurstGrouper:
    """Groups closely spaced photos into numbered bursts.

    A single greedy left-to-right pass over photos sorted by resolved time
    (ties keep scan order). A photo joins the current run when it is at most
    max_interval_seconds after the previous photo of the run; otherwise the
    run closes. Closed runs with at least min_count photos become groups
    numbered from 1, members indexed 1..N.

    Usage:
        grouper = BurstGrouper(BurstConfig(max_interval_seconds=3.0, min_count=3))
        groups = grouper.assign(records)
    """

    def __init__(self, config: Optional[BurstConfig] = None):
        self.config = config or BurstConfig()

    def detect(self, records: List[MediaRecord]) -> List[BurstGroup]:
        """Find burst groups without touching the records.

        Args:
            records: All records in scan order. Videos and records without a
                     resolved date are ignored.

        Returns:
            Qualifying groups in timestamp order.
        """
        photos = [r for r in records if r.is_photo and r.date_taken is not None]
        # sorted() is stable, so equal timestamps keep scan order
        photos = sorted(photos, key=_sort_key)

        max_gap = timedelta(seconds=self.config.max_interval_seconds)
        groups: List[BurstGroup] = []
        run: List[MediaRecord] = []

        for record in photos:
            if run and _sort_key(record) - _sort_key(run[-1]) > max_gap:
                self._close(run, groups)
                run = []
            run.append(record)
        self._close(run, groups)

        return groups

    def _close(self, run: List[MediaRecord], groups: List[BurstGroup]) -> None:
        if len(run) >= self.config.min_count:
            groups.append(BurstGroup(id=len(groups) + 1, members=list(run)))

    def assign(self, records: List[MediaRecord]) -> List[BurstGroup]:
        """Detect bursts and write burst_group_id/burst_index on records.

        Any previous burst assignment on the given records is cleared first.
        """
        for record in records:
            record.burst_group_id = None
            record.burst_index = None

        groups = self.detect(records)
        for group in groups:
            for index, record in enumerate(group.members, start=1):
                record.burst_group_id = group.id
                record.burst_index = index
                record.info(f"Burst group {group.id}, index {index} of {group.count}")

        logger.debug(f"Found {len(groups)} burst groups covering {sum(g.count for g in groups)} photos")
        return groups
