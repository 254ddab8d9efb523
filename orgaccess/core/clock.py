"""Wall-clock helper.

Persisted timestamps are integer Unix epoch seconds (UTC).  Services take an
optional ``now`` argument and fall back to this function, so tests can pin
time without patching.
"""

from __future__ import annotations

import datetime


def utc_now_ts() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())
