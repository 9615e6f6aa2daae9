"""
Flash crash detection rule.
"""

from decimal import Decimal
from typing import Optional, Sequence

from ..types import DropSignal, Outcome, PriceSample


def detect_drop(
    side: Outcome,
    samples: Sequence[PriceSample],
    now_ms: int,
    lookback_ms: int,
    threshold: Decimal,
) -> Optional[DropSignal]:
    """
    Evaluate the drop rule over one side's history.

    The newest sample is the current price. The reference is the newest
    earlier sample no older than lookback_ms at now_ms. Fires when
    reference - current >= threshold.

    Args:
        side: Side the history belongs to
        samples: Oldest-first samples
        now_ms: Evaluation time, same clock as the samples
        lookback_ms: Maximum reference age
        threshold: Minimum drop to fire

    Returns:
        DropSignal, or None if there is no reference or the drop is too small
    """
    if len(samples) < 2:
        return None

    current = samples[-1]

    reference: Optional[PriceSample] = None
    for sample in reversed(samples[:-1]):
        if now_ms - sample.timestamp_ms <= lookback_ms:
            reference = sample
            break

    if reference is None:
        return None

    signal = DropSignal(
        side=side,
        reference_price=reference.price,
        current_price=current.price,
        reference_ts=reference.timestamp_ms,
        current_ts=current.timestamp_ms,
    )
    if signal.drop >= threshold:
        return signal
    return None
