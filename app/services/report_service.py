"""Tabular views over bookings for the admin dashboard."""
from typing import Iterable

import pandas as pd

from app.models.db_models import Booking, BookingStatus

COLUMNS = [
    "id", "date", "start_time", "end_time", "status",
    "service_name", "customer_id", "total_price", "currency",
]


def bookings_dataframe(bookings: Iterable[Booking]) -> pd.DataFrame:
    rows = [b.model_dump(mode="json", include=set(COLUMNS)) for b in bookings]
    df = pd.DataFrame(rows, columns=COLUMNS)
    if not df.empty:
        df["date"] = pd.to_datetime(df["date"])
        df = df.sort_values(["date", "start_time"], ascending=[False, True]).reset_index(drop=True)
    return df


def status_counts(df: pd.DataFrame) -> pd.Series:
    """Bookings per status, every status present (zero when unused)."""
    statuses = [s.value for s in BookingStatus]
    if df.empty:
        return pd.Series(0, index=statuses, dtype="int64")
    return df["status"].value_counts().reindex(statuses, fill_value=0).astype("int64")


def daily_summary(df: pd.DataFrame) -> pd.DataFrame:
    """Per-day booking count and revenue from completed bookings."""
    if df.empty:
        return pd.DataFrame(columns=["date", "bookings", "revenue"])
    completed = df["status"] == BookingStatus.COMPLETED.value
    summary = (
        df.assign(revenue=df["total_price"].where(completed, 0.0))
        .groupby("date")
        .agg(bookings=("id", "count"), revenue=("revenue", "sum"))
        .reset_index()
        .sort_values("date")
        .reset_index(drop=True)
    )
    return summary
