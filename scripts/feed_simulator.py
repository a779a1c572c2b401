from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

from matrix_live.models.snapshot import MessageEnvelope
from matrix_live.parsing.matrix_text import parse_email_body
from matrix_live.series.aggregator import SnapshotAggregator

TIMEFRAMES = ["5 Min", "15 Min", "60 Min", "Daily", "Weekly"]


def fake_body(price: float) -> str:
    """One synthetic email body: a line of prose, then one matrix line per timeframe."""
    lines = ["TradeStation matrix alert"]
    for tf in TIMEFRAMES:
        count = random.randint(-9, 9)
        levels = [price + d for d in (-10.0, -5.0, 5.0, 10.0)]
        lines.append(
            f"@ES {tf} {price:,.2f} {count} " + " ".join(f"{lvl:,.2f}" for lvl in levels)
        )
    return "<br/>".join(lines)


def run(messages: int = 60, max_length: int = 25) -> None:
    """
    Generates `messages` fake emails and feeds them into a SnapshotAggregator.

    - Price does a random walk between emails.
    - Every 10th email is replayed once to show it gets discarded.
    - At the end the bound is halved to show the retroactive trim.
    """
    agg = SnapshotAggregator(max_length=max_length)
    sent = datetime.now(timezone.utc).replace(second=0, microsecond=0)
    price = 4500.0

    absorbed = 0
    for i in range(messages):
        price += random.uniform(-3.0, 3.0)
        records = parse_email_body(fake_body(round(price, 2)))
        env = MessageEnvelope(message_id=f"sim-{i}", sent=sent.isoformat(), records=records)

        if agg.absorb(env):
            absorbed += 1
        if i % 10 == 0:
            agg.absorb(env)

        sent += timedelta(minutes=5)

    print(f"Absorbed {absorbed} of {messages} messages (replays discarded).")
    for key, points in agg.all().items():
        print(f"  {key.symbol} {key.timeframe}: {len(points)} points")

    dropped = agg.rebound(max_length // 2)
    print(f"\nRebound to {agg.max_length}: dropped {dropped} points.")


if __name__ == "__main__":
    run()
