"""Analysis helpers: pandas-based utilities for recorded sessions."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pandas as pd


def load_session(path: str | Path) -> pd.DataFrame:
    """Load a session CSV into a :class:`pandas.DataFrame`.

    The ``timestamp_ms`` column becomes a :class:`~pandas.TimedeltaIndex`
    named ``elapsed`` for easy resampling.  Empty score/threshold cells load
    as ``NaN``.
    """
    df = pd.read_csv(path, comment="#", keep_default_na=False, na_values={
        "engagement_score": [""],
        "decision_threshold": [""],
    })
    if df.empty:
        return df
    df["in_zone"] = df["in_zone"].astype(bool)
    df["reward_triggered"] = df["reward_triggered"].astype(bool)
    df.index = pd.to_timedelta(df["timestamp_ms"], unit="ms")
    df.index.name = "elapsed"
    return df


def summarize_session(df: pd.DataFrame) -> dict[str, Any]:
    """Return summary statistics for a loaded session."""
    if df.empty:
        return {"rows": 0}

    duration_s = float(df["timestamp_ms"].iloc[-1] - df["timestamp_ms"].iloc[0]) / 1000.0
    rewards = int(df["reward_triggered"].sum())

    calibrated = df[df["decision_threshold"].notna() & df["engagement_score"].notna()]
    engaged_fraction = (
        float((calibrated["engagement_score"] > calibrated["decision_threshold"]).mean())
        if not calibrated.empty
        else None
    )
    thresholds = df["decision_threshold"].dropna()

    summary: dict[str, Any] = {
        "rows": int(len(df)),
        "duration_seconds": round(duration_s, 3),
        "rewards": rewards,
        "rewards_per_minute": round(rewards / (duration_s / 60.0), 3) if duration_s > 0 else None,
        "in_zone_fraction": round(float(df["in_zone"].mean()), 4),
        "engaged_fraction": round(engaged_fraction, 4) if engaged_fraction is not None else None,
        "stalled_fraction": round(float((df["signal_status"] == "stalled").mean()), 4),
        "score_mean": round(float(df["engagement_score"].mean()), 4)
        if df["engagement_score"].notna().any()
        else None,
    }
    if not thresholds.empty:
        summary.update(
            threshold_first=float(thresholds.iloc[0]),
            threshold_last=float(thresholds.iloc[-1]),
            threshold_min=float(thresholds.min()),
            threshold_max=float(thresholds.max()),
        )
    return summary


def resample_session(df: pd.DataFrame, rule: str = "10s") -> pd.DataFrame:
    """Resample a loaded session to a coarser resolution.

    Parameters
    ----------
    df:
        DataFrame returned by :func:`load_session`.
    rule:
        Pandas offset alias (``'1s'``, ``'10s'``, ``'1min'``, etc.).
    """
    if df.empty:
        return df
    return df.groupby(pd.Grouper(freq=rule)).agg(
        score_mean=("engagement_score", "mean"),
        threshold=("decision_threshold", "last"),
        in_zone_fraction=("in_zone", "mean"),
        rewards=("reward_triggered", "sum"),
    )


def session_events(df: pd.DataFrame) -> pd.DataFrame:
    """Rows that carry a discrete event, exploded to one event per row."""
    if df.empty or "event" not in df.columns:
        return pd.DataFrame(columns=["timestamp_ms", "event"])
    events = df.loc[df["event"] != "", ["timestamp_ms", "event"]].copy()
    events["event"] = events["event"].str.split(";")
    return events.explode("event").reset_index(drop=True)
