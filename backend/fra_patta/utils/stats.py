"""Aggregation helpers shared by the statistics endpoints"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession


def months_ago(now: datetime, months: int) -> datetime:
    """First day of the month `months` before now's month"""
    index = now.year * 12 + (now.month - 1) - months
    return datetime(index // 12, index % 12 + 1, 1)


def monthly_counts(timestamps: Iterable[Optional[datetime]], now: Optional[datetime] = None,
                   months: int = 12) -> List[Dict[str, Any]]:
    """
    Count timestamps per calendar month over the last `months` months,
    current month included. Months without entries are reported as 0.
    """
    now = now or datetime.utcnow()
    buckets: Dict[str, int] = {}
    for offset in range(months - 1, -1, -1):
        start = months_ago(now, offset)
        buckets[f"{start.year:04d}-{start.month:02d}"] = 0

    for ts in timestamps:
        if ts is None:
            continue
        key = f"{ts.year:04d}-{ts.month:02d}"
        if key in buckets:
            buckets[key] += 1

    return [{"month": key, "count": count} for key, count in buckets.items()]


async def count_rows(db: AsyncSession, model, *conditions) -> int:
    """SELECT COUNT(*) with optional WHERE conditions"""
    query = select(func.count()).select_from(model)
    if conditions:
        query = query.where(*conditions)
    return (await db.execute(query)).scalar() or 0


async def grouped_counts(db: AsyncSession, column, *conditions) -> Dict[Any, int]:
    """COUNT(*) GROUP BY column"""
    query = select(column, func.count()).group_by(column)
    if conditions:
        query = query.where(*conditions)
    result = await db.execute(query)
    return {key: count for key, count in result.all()}
