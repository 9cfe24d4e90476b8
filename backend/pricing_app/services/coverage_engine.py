"""
coverage_engine.py - Schedule coverage analysis for Service Desk / NOC rosters.

Covers:
  - Shift window resolution (explicit HH:MM times or shift preset codes)
  - Weekly scheduled hours per entry / per member (feeds fractional cost allocation)
  - 7 x 24 coverage matrix with gap detection and gap severity
  - Coverage recommendations (overall band, weekend, night)

Days are numbered 0 = Sunday .. 6 = Saturday. Windows whose end is not after
their start wrap past midnight into the next day.
"""

import logging
from typing import Any, Dict, Iterable, List, Tuple

from pricing_app.config import HOURS_PER_WEEK, SHIFT_PRESETS
from pricing_app.services.budget_types import ScheduleEntry

logger = logging.getLogger("pricing-coverage")

DAY_NAMES: List[str] = [
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
]

_ALL_DAYS: Tuple[int, ...] = (0, 1, 2, 3, 4, 5, 6)


def parse_time(value: str) -> float:
    """'HH:MM' -> hours as float ('18:30' -> 18.5)."""
    hours, _, minutes = value.strip().partition(":")
    return int(hours) + (int(minutes) / 60.0 if minutes else 0.0)


def resolve_window(entry: ScheduleEntry) -> Tuple[str, str, Tuple[int, ...]]:
    """
    Return (start_time, end_time, days_of_week) for a schedule entry.

    Explicit fields win; a known ``shift_code`` fills whatever is missing.
    An entry with neither times nor a known code resolves to a full-day window.
    """
    preset = SHIFT_PRESETS.get((entry.shift_code or "").lower())
    start = entry.start_time or (preset[0] if preset else "00:00")
    end = entry.end_time or (preset[1] if preset else "00:00")
    days = tuple(entry.days_of_week) or (preset[2] if preset else _ALL_DAYS)
    return start, end, days


def window_hours(start_time: str, end_time: str) -> float:
    """Length of a daily window in hours, wrapping overnight."""
    start = parse_time(start_time)
    end = parse_time(end_time)
    if end > start:
        return end - start
    return (24.0 - start) + end


def weekly_hours(entry: ScheduleEntry) -> float:
    """Scheduled hours per week for one entry."""
    start, end, days = resolve_window(entry)
    return window_hours(start, end) * len(set(days))


def scheduled_hours_by_member(schedule: Iterable[ScheduleEntry]) -> Dict[str, float]:
    """Sum weekly scheduled hours per member across every entry they appear in."""
    totals: Dict[str, float] = {}
    for entry in schedule:
        totals[entry.member_id] = totals.get(entry.member_id, 0.0) + weekly_hours(entry)
    return totals


def _gap_severity(start_hour: int, end_hour: int) -> str:
    duration = end_hour - start_hour

    # Business hours (08-18)
    if (8 <= start_hour < 18) or (8 < end_hour <= 18):
        return "critical" if duration > 4 else "high"

    # Evening (18-22)
    if (18 <= start_hour < 22) or (18 < end_hour <= 22):
        return "medium" if duration > 2 else "low"

    # Night (22-06)
    return "medium" if duration > 6 else "low"


def _build_matrix(schedule: List[ScheduleEntry]) -> List[List[bool]]:
    matrix = [[False] * 24 for _ in range(7)]
    for entry in schedule:
        start_time, end_time, days = resolve_window(entry)
        start_hour = int(parse_time(start_time))
        end_hour = int(parse_time(end_time))
        for day in days:
            day = day % 7
            if end_hour > start_hour:
                for hour in range(start_hour, end_hour):
                    matrix[day][hour] = True
            else:
                next_day = (day + 1) % 7
                for hour in range(start_hour, 24):
                    matrix[day][hour] = True
                for hour in range(0, end_hour):
                    matrix[next_day][hour] = True
    return matrix


def calculate_coverage_analysis(schedule: Iterable[ScheduleEntry]) -> Dict[str, Any]:
    """
    Analyse weekly coverage produced by a set of schedule entries.

    Returns:
        Dict with total_hours (168), covered_hours, coverage_pct, gaps
        (one per uncovered run per day, with severity and a suggestion),
        weekend_coverage_pct, night_coverage_pct and recommendations.
    """
    entries = list(schedule)
    matrix = _build_matrix(entries)

    covered_hours = sum(1 for day in matrix for hour in day if hour)

    gaps: List[Dict[str, Any]] = []
    for day_index, day in enumerate(matrix):
        gap_start = -1
        for hour, covered in enumerate(day):
            if not covered and gap_start == -1:
                gap_start = hour
            elif covered and gap_start != -1:
                gaps.append(_gap(day_index, gap_start, hour))
                gap_start = -1
        if gap_start != -1:
            gaps.append(_gap(day_index, gap_start, 24))

    coverage_pct = min(covered_hours / HOURS_PER_WEEK * 100.0, 100.0)

    weekend_hours = sum(1 for h in matrix[0] if h) + sum(1 for h in matrix[6] if h)
    weekend_pct = weekend_hours / 48.0 * 100.0

    night_hours = 0
    for day in matrix:
        night_hours += sum(1 for hour in list(range(22, 24)) + list(range(0, 6)) if day[hour])
    night_pct = night_hours / 56.0 * 100.0

    recommendations: List[str] = []
    if not entries:
        recommendations.append("Configure at least one work schedule")
    elif coverage_pct < 30:
        recommendations.append("Very low coverage - add more shifts")
    elif coverage_pct < 60:
        recommendations.append("Low coverage - consider extending hours")
    elif coverage_pct < 80:
        recommendations.append("Adequate coverage - consider optimising shift times")
    else:
        recommendations.append("Good coverage")

    if weekend_pct < 50:
        recommendations.append("Consider improving weekend coverage")
    if night_pct < 30:
        recommendations.append("Consider adding night coverage")

    logger.debug(f"Coverage analysis: {covered_hours}/{HOURS_PER_WEEK}h covered, {len(gaps)} gaps")

    return {
        "total_hours": HOURS_PER_WEEK,
        "covered_hours": covered_hours,
        "coverage_pct": round(coverage_pct, 2),
        "weekend_coverage_pct": round(weekend_pct, 2),
        "night_coverage_pct": round(night_pct, 2),
        "gaps": gaps,
        "recommendations": recommendations,
    }


def _gap(day_index: int, start_hour: int, end_hour: int) -> Dict[str, Any]:
    return {
        "day_of_week": day_index,
        "start_time": f"{start_hour:02d}:00",
        "end_time": f"{end_hour:02d}:00",
        "hours": end_hour - start_hour,
        "severity": _gap_severity(start_hour, end_hour),
        "suggestion": (
            f"Consider adding coverage on {DAY_NAMES[day_index]} "
            f"from {start_hour:02d}h to {end_hour:02d}h"
        ),
    }
