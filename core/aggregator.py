"""
Result aggregation: deterministic ordering and scan statistics
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from core.models import PortStatus, ProbeOutcome, Protocol, ScanStatistics, ScanTarget

logger = logging.getLogger(__name__)

# Below this the throughput figure is meaningless
MIN_DURATION_SECONDS = 1e-6


def outcome_sort_key(outcome: ProbeOutcome) -> Tuple[int, str]:
    return outcome.port, outcome.protocol.value


class ResultAggregator:
    """Sorts collected outcomes and summarizes them"""

    def __init__(self, target: ScanTarget, start_time: datetime):
        self.target = target
        self.start_time = start_time

    @staticmethod
    def sort_outcomes(outcomes: Iterable[ProbeOutcome]) -> List[ProbeOutcome]:
        """Port ascending, then protocol name ascending ('tcp' before 'udp')"""
        return sorted(outcomes, key=outcome_sort_key)

    def compute_statistics(self, outcomes: Iterable[ProbeOutcome],
                           end_time: Optional[datetime] = None) -> ScanStatistics:
        end_time = end_time or datetime.now()
        total_ports = self.target.port_count

        open_ports = closed_ports = filtered_ports = 0
        for outcome in outcomes:
            if outcome.protocol != Protocol.TCP:
                continue
            if outcome.status == PortStatus.OPEN:
                open_ports += 1
            elif outcome.status == PortStatus.FILTERED:
                filtered_ports += 1
            else:
                closed_ports += 1

        if open_ports + closed_ports + filtered_ports != total_ports:
            logger.warning(
                f"TCP outcome count {open_ports + closed_ports + filtered_ports} "
                f"does not match range size {total_ports}"
            )

        duration = (end_time - self.start_time).total_seconds()
        ports_per_second = total_ports / duration if duration >= MIN_DURATION_SECONDS else 0.0

        return ScanStatistics(
            target_host=self.target.host,
            total_ports=total_ports,
            open_ports=open_ports,
            closed_ports=closed_ports,
            filtered_ports=filtered_ports,
            start_time=self.start_time,
            end_time=end_time,
            duration_seconds=duration,
            ports_per_second=ports_per_second,
        )

    def aggregate(self, outcomes: Iterable[ProbeOutcome],
                  end_time: Optional[datetime] = None) -> Tuple[List[ProbeOutcome], ScanStatistics]:
        ordered = self.sort_outcomes(outcomes)
        return ordered, self.compute_statistics(ordered, end_time)
