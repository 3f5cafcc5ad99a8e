"""
Human-paced typing for login forms.

Timing contract per character: base interval with +/-50% jitter, a 5% chance
of an extra 150-300ms pause, never below 20ms. Login pages score keystroke
cadence, so this must not be replaced by a single fill().
"""

import asyncio
import random
from typing import Optional

BASE_DELAY_MS = 67
JITTER_RATIO = 0.5
PAUSE_CHANCE = 0.05
PAUSE_RANGE_MS = (150, 300)
MIN_DELAY_MS = 20


def keystroke_delay_ms(base_ms: float = BASE_DELAY_MS, rng: Optional[random.Random] = None) -> float:
    rng = rng or random
    jitter = base_ms * JITTER_RATIO
    delay = base_ms + rng.uniform(-jitter, jitter)
    if rng.random() < PAUSE_CHANCE:
        delay += rng.uniform(*PAUSE_RANGE_MS)
    return max(MIN_DELAY_MS, delay)


async def _pause(low_ms: float, high_ms: float, rng) -> None:
    await asyncio.sleep(rng.uniform(low_ms, high_ms) / 1000)


async def type_like_human(handle, value: str, base_ms: float = BASE_DELAY_MS,
                          rng: Optional[random.Random] = None) -> None:
    """Focus, clear, then press each character with a jittered delay"""
    rng = rng or random
    await _pause(50, 150, rng)
    await handle.click()
    await _pause(30, 80, rng)
    await handle.fill('')
    await _pause(20, 50, rng)

    for char in value:
        await handle.press(char)
        await asyncio.sleep(keystroke_delay_ms(base_ms, rng) / 1000)
