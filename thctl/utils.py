#!/usr/bin/env python3
"""
Utility Functions
Big-integer parsing, human-readable formatting and bitfield decoding shared by
the Lotus client, the aggregator and the CLI
"""

import logging
import sys
from decimal import Decimal, ROUND_HALF_EVEN, localcontext
from fractions import Fraction
from typing import Any, List, Optional

BYTE_UNITS = ["B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB"]
FIL_DECIMALS = 18
EPOCHS_PER_DAY = 2880
TERMINATION_LIFETIME_CAP_DAYS = 140


def setup_logging(level=logging.WARNING):
    """Set up logging configuration to stderr only"""
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )


def parse_big_int(value: Any) -> Optional[int]:
    """Parse an int or decimal string into an arbitrary-precision int, None if not parseable"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    digits = text[1:] if text[:1] in ("+", "-") else text
    if not digits.isdigit() or not digits.isascii():
        return None
    return int(text)


def _quantize(value: Decimal, places: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_EVEN)


def format_bytes(value: Any) -> str:
    """Render a byte count with binary units, e.g. '1.00 KiB'. Never raises."""
    amount = parse_big_int(value)
    if not amount:
        return "0 B"

    unit = 0
    magnitude = abs(amount)
    while unit < len(BYTE_UNITS) - 1 and magnitude >= 1024 ** (unit + 1):
        unit += 1

    with localcontext() as ctx:
        ctx.prec = max(50, len(str(magnitude)) + 10)
        scaled = Decimal(amount) / Decimal(1024 ** unit)
        return f"{_quantize(scaled, 2)} {BYTE_UNITS[unit]}"


def format_fixed_point(value: Any, decimals: int = FIL_DECIMALS, unit: str = "FIL", places: int = 6) -> str:
    """Render a base-unit integer amount in display units, e.g. '1.000000 FIL'. Never raises."""
    amount = parse_big_int(value)
    if amount is None:
        return f"0 {unit}"

    with localcontext() as ctx:
        ctx.prec = max(50, len(str(abs(amount))) + places + 10)
        scaled = Decimal(amount).scaleb(-decimals)
        return f"{_quantize(scaled, places)} {unit}"


def format_fil(value: Any) -> str:
    return format_fixed_point(value, FIL_DECIMALS, "FIL")


def format_percentage(share: Optional[float], places: int = 4) -> str:
    if share is None:
        return "0%"
    return f"{share * 100:.{places}f}%"


def power_share(part: Any, total: Any) -> float:
    """Exact ratio of two big-integer strings, narrowed to float only at the end"""
    numerator = parse_big_int(part)
    denominator = parse_big_int(total)
    if not numerator or not denominator:
        return 0.0
    return float(Fraction(numerator, denominator))


def add_big_ints(*values: Any) -> str:
    """Sum decimal-string amounts, treating unparseable entries as zero"""
    return str(sum(parse_big_int(value) or 0 for value in values))


def bitfield_count(bitfield: Optional[List[int]]) -> int:
    """Count set bits in a run-length encoded bitfield ([skip, run, skip, run, ...])"""
    if not bitfield or len(bitfield) < 2:
        return 0
    return sum(bitfield[i + 1] for i in range(0, len(bitfield) - 1, 2))


def bitfield_to_list(bitfield: Optional[List[int]]) -> List[int]:
    """Expand a run-length encoded bitfield into the sorted list of set positions"""
    positions = []
    if not bitfield or len(bitfield) < 2:
        return positions

    cursor = 0
    for i in range(0, len(bitfield) - 1, 2):
        cursor += bitfield[i]
        run = bitfield[i + 1]
        positions.extend(range(cursor, cursor + run))
        cursor += run
    return positions


def estimate_termination_penalty(expected_storage_pledge: Any, expected_day_reward: Any,
                                 activation_epoch: int, current_epoch: int) -> str:
    """
    Estimate the fee for terminating a sector today

    Follows the miner actor's termination fee shape: the twenty-day storage
    pledge plus half of the expected daily reward for each day the sector has
    been active, capped at 140 days. Replaced-sector terms are ignored.
    """
    pledge = parse_big_int(expected_storage_pledge) or 0
    day_reward = parse_big_int(expected_day_reward) or 0

    age = max(0, current_epoch - activation_epoch)
    capped_age = min(age, TERMINATION_LIFETIME_CAP_DAYS * EPOCHS_PER_DAY)
    penalized_reward = day_reward * capped_age // 2
    return str(pledge + penalized_reward // EPOCHS_PER_DAY)
