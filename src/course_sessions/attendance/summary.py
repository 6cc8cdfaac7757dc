from __future__ import annotations

from collections import Counter
from datetime import date
from typing import Sequence

from ..core.enums import AttendanceStatus, AttendanceSummaryStatus
from ..schedules.model import ClassSession
from ..schedules.status import is_elapsed
from .model import AttendanceRecord


def summary_status(records: Sequence[AttendanceRecord], *, elapsed: bool) -> AttendanceSummaryStatus:
    if records:
        if all(r.status == AttendanceStatus.ABSENT for r in records):
            return AttendanceSummaryStatus.ABSENT
        return AttendanceSummaryStatus.ATTENDED

    # A past session without rows is shown as absent; the reconciler fills it in.
    if elapsed:
        return AttendanceSummaryStatus.ABSENT
    return AttendanceSummaryStatus.NOT_YET


def summarize_session(
    session: ClassSession,
    records: Sequence[AttendanceRecord],
    *,
    total_students: int,
    today: date,
) -> dict:
    counts = Counter(r.status for r in records)
    return {
        "total_students": int(total_students),
        "recorded": len(records),
        "not_recorded": max(int(total_students) - len(records), 0),
        "present": counts[AttendanceStatus.PRESENT],
        "absent": counts[AttendanceStatus.ABSENT],
        "late": counts[AttendanceStatus.LATE],
        "excused": counts[AttendanceStatus.EXCUSED],
        "status": summary_status(records, elapsed=is_elapsed(session, today)).value,
        "is_attendance_taken": len(records) > 0,
    }


def attendance_statistics(records: Sequence[AttendanceRecord]) -> dict:
    counts = Counter(r.status for r in records)
    total = len(records)
    rate = round(counts[AttendanceStatus.PRESENT] / total * 100, 2) if total else 0.0
    return {
        "total": total,
        "present": counts[AttendanceStatus.PRESENT],
        "absent": counts[AttendanceStatus.ABSENT],
        "late": counts[AttendanceStatus.LATE],
        "excused": counts[AttendanceStatus.EXCUSED],
        "attendance_rate": rate,
    }
