"""Session segmentation of per-container time series.

One persisted series can span several monitoring runs (the daemon was
stopped and restarted). A session is a maximal run of consecutive samples
that belong together:

- samples stamped with a session id are grouped by that id;
- legacy samples without an id are split wherever two consecutive samples
  are more than ``2 * interval + 5`` seconds apart.

Views of a single session or time window always recompute the summary; a
cached whole-series summary is only reused when the series is one session.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

from mdok.analysis.summarize import summarize_series
from mdok.core.constants import GAP_INTERVAL_MULTIPLIER, GAP_SLACK_SECONDS
from mdok.core.schemas import ContainerSeries, Sample, Session, SessionInfo

logger = logging.getLogger(__name__)


def gap_threshold(interval_seconds: int) -> timedelta:
    """Largest gap between consecutive samples of the same session."""
    return timedelta(seconds=interval_seconds * GAP_INTERVAL_MULTIPLIER + GAP_SLACK_SECONDS)


def _is_boundary(prev: Sample, cur: Sample, threshold: timedelta) -> bool:
    if prev.session_id is not None and cur.session_id is not None:
        return prev.session_id != cur.session_id
    if prev.session_id is not None or cur.session_id is not None:
        return True
    return cur.timestamp - prev.timestamp > threshold


def _make_session(samples: list[Sample]) -> Session:
    first = samples[0]
    session_id = first.session_id or str(int(first.timestamp.timestamp()))
    return Session(
        session_id=session_id,
        start_time=first.timestamp,
        end_time=samples[-1].timestamp,
        samples=samples,
    )


def segment(samples: Sequence[Sample], interval_seconds: int) -> list[Session]:
    """Split samples into sessions, oldest first.

    Args:
        samples: Samples ordered by timestamp
        interval_seconds: Sampling interval the series was recorded with

    Returns:
        Sessions in order; empty for no samples
    """
    if not samples:
        return []

    threshold = gap_threshold(interval_seconds)
    sessions: list[Session] = []
    start = 0
    for i in range(1, len(samples)):
        if _is_boundary(samples[i - 1], samples[i], threshold):
            sessions.append(_make_session(list(samples[start:i])))
            start = i
    sessions.append(_make_session(list(samples[start:])))
    return sessions


def current_session(samples: Sequence[Sample], interval_seconds: int) -> Session | None:
    """The most recent session, or None when there are no samples."""
    sessions = segment(samples, interval_seconds)
    return sessions[-1] if sessions else None


def session_by_id(
    samples: Sequence[Sample], interval_seconds: int, session_id: str
) -> Session | None:
    """The session with the given id, or None if absent."""
    for session in segment(samples, interval_seconds):
        if session.session_id == session_id:
            return session
    return None


def _restrict(
    series: ContainerSeries,
    samples: list[Sample],
    start_time: datetime,
    end_time: datetime | None,
    session_id: str | None,
) -> ContainerSeries:
    return series.model_copy(
        update={
            "samples": samples,
            "start_time": start_time,
            "end_time": end_time,
            "session_id": session_id,
            "summary": None,
            "network_cost": None,
            "recommendation": None,
        }
    )


def filter_to_current_session(
    series: ContainerSeries, region: str | None = None
) -> ContainerSeries:
    """Restrict a series to its most recent session.

    A single-session series is returned unchanged (its cached summary, if
    any, already describes exactly that session).
    """
    sessions = segment(series.samples, series.interval_seconds)
    if len(sessions) <= 1:
        return series

    latest = sessions[-1]
    end_time = series.end_time if series.end_time and series.end_time >= latest.end_time else None
    restricted = _restrict(
        series, latest.samples, latest.start_time, end_time or latest.end_time, latest.session_id
    )
    return summarize_series(restricted, region)


def filter_to_session(
    series: ContainerSeries, session_id: str, region: str | None = None
) -> ContainerSeries:
    """Restrict a series to one session; an unknown id yields an empty series."""
    session = session_by_id(series.samples, series.interval_seconds, session_id)
    if session is None:
        logger.debug(f"Session {session_id} not found for {series.container_name}")
        return _restrict(series, [], series.start_time, None, None)

    restricted = _restrict(
        series, session.samples, session.start_time, session.end_time, session.session_id
    )
    return summarize_series(restricted, region)


def filter_by_time(
    series: ContainerSeries,
    start: datetime | None = None,
    end: datetime | None = None,
    region: str | None = None,
) -> ContainerSeries:
    """Restrict a series to samples within [start, end] (either bound optional)."""
    if start is None and end is None:
        return series

    samples = [
        s
        for s in series.samples
        if (start is None or s.timestamp >= start) and (end is None or s.timestamp <= end)
    ]
    if not samples:
        return _restrict(series, [], series.start_time, None, series.session_id)

    restricted = _restrict(
        series, samples, samples[0].timestamp, samples[-1].timestamp, series.session_id
    )
    return summarize_series(restricted, region)


def list_sessions(series_list: Iterable[ContainerSeries], config_name: str = "") -> list[SessionInfo]:
    """All sessions of a configuration across its containers, newest first.

    Sessions of different containers with the same id are merged.
    """
    merged: dict[str, SessionInfo] = {}
    for series in series_list:
        for session in segment(series.samples, series.interval_seconds):
            info = merged.get(session.session_id)
            if info is None:
                merged[session.session_id] = SessionInfo(
                    session_id=session.session_id,
                    config_name=config_name,
                    start_time=session.start_time,
                    end_time=session.end_time,
                    sample_count=session.sample_count,
                    containers=[series.container_name],
                )
                continue
            if series.container_name not in info.containers:
                info.containers.append(series.container_name)
            info.start_time = min(info.start_time, session.start_time)
            info.end_time = max(info.end_time, session.end_time)
            info.sample_count += session.sample_count

    return sorted(merged.values(), key=lambda s: (s.start_time, s.session_id), reverse=True)
