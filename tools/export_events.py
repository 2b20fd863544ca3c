"""
Export voting events from an EventLog database to CSV.
"""

import logging
import sys
from typing import Optional, List

import pandas as pd

from voting.events import EventLog, EventKind

log = logging.getLogger(__name__)

BASE_COLUMNS = ["sequence", "kind", "project", "timestamp"]


def load_events_frame(db_path: str, kind: Optional[str] = None, project: Optional[str] = None) -> pd.DataFrame:
    """Load events into a DataFrame, one column per payload field."""
    events = EventLog(db_path)
    try:
        rows = [e.to_dict() for e in events.get_events(
            kind=EventKind(kind) if kind else None,
            project=project,
        )]
    finally:
        events.close()

    if not rows:
        return pd.DataFrame(columns=BASE_COLUMNS)
    frame = pd.DataFrame(rows)
    frame["time"] = pd.to_datetime(frame["timestamp"], unit="s")
    return frame


def summarize_votes(frame: pd.DataFrame) -> pd.DataFrame:
    """
    Per-poll activity: casts, distinct voters, tokens burned and refunded.
    """
    columns = ["project", "poll_id", "casts", "voters", "tokens_spent", "tokens_returned"]
    if frame.empty or "tokens_cost" not in frame.columns:
        return pd.DataFrame(columns=columns)

    casts = frame[frame["kind"] == EventKind.VOTE_CAST.value]
    removals = frame[frame["kind"] == EventKind.VOTE_REMOVED.value]

    summary = casts.groupby(["project", "poll_id"]).agg(
        casts=("sequence", "count"),
        voters=("user", "nunique"),
        tokens_spent=("tokens_cost", "sum"),
    )
    if not removals.empty:
        returned = removals.groupby(["project", "poll_id"])["tokens_returned"].sum()
        summary = summary.join(returned.rename("tokens_returned"), how="outer")
    else:
        summary["tokens_returned"] = 0

    summary = summary.fillna(0).reset_index()
    for col in ["poll_id", "casts", "voters", "tokens_spent", "tokens_returned"]:
        summary[col] = summary[col].astype(int)
    return summary[columns]


def main(argv: Optional[List[str]] = None) -> int:
    """CLI interface for the exporter."""
    import argparse

    parser = argparse.ArgumentParser(description="Export quadratic voting events to CSV")
    parser.add_argument("--db", required=True, help="Path to the EventLog SQLite database")
    parser.add_argument("--out", default="events.csv", help="CSV file to write")
    parser.add_argument("--kind", choices=[k.value for k in EventKind], help="Only export this event kind")
    parser.add_argument("--project", help="Only export events of this project address")
    parser.add_argument("--summary", action="store_true", help="Also print per-poll vote summary")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s │ %(name)-20s │ %(levelname)-8s │ %(message)s',
        datefmt='%H:%M:%S',
    )

    frame = load_events_frame(args.db, kind=args.kind, project=args.project)
    frame.to_csv(args.out, index=False)
    log.info(f"Wrote {len(frame)} events to {args.out}")

    print("=" * 60)
    print("EVENTS BY KIND")
    print("=" * 60)
    if frame.empty:
        print("(no events)")
    else:
        for kind, count in frame["kind"].value_counts().sort_index().items():
            print(f"{kind:28s} {count:6d}")

    if args.summary:
        print("\n" + "=" * 60)
        print("VOTES PER POLL")
        print("=" * 60)
        print(summarize_votes(frame).to_string(index=False))

    return 0


if __name__ == "__main__":
    sys.exit(main())
