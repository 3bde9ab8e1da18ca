"""Human behavioral profile: consolidated parameters that make the agent look human.

Bundles pointer speed, click timing, typing speed, typing accuracy and
the pauses between login steps into a single object. Presets available
for testing (fast) and production (normal, cautious).
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class HumanProfile:
    """All behavioral parameters for human-like interaction."""

    mouse_fast: bool = False
    type_speed: str = 'medium'                       # instant, fast, medium, slow
    type_accuracy: str = 'high'                      # high, average, low
    hover_pause: tuple[float, float] = (0.2, 0.5)    # after reaching the target, before pressing
    click_hold_ms: tuple[float, float] = (50.0, 150.0)
    focus_pause: tuple[float, float] = (0.2, 0.4)    # after focusing a field, before typing
    step_pause: tuple[float, float] = (1.0, 2.0)     # between login steps
    settle_pause: tuple[float, float] = (3.0, 5.0)   # after page loads and dialogs open


# -- Presets ----------------------------------------------------------------

FAST = HumanProfile(
    mouse_fast=True,
    type_speed='instant',
    type_accuracy='high',
    hover_pause=(0.0, 0.0),
    click_hold_ms=(0.0, 0.0),
    focus_pause=(0.0, 0.0),
    step_pause=(0.0, 0.0),
    settle_pause=(0.0, 0.0),
)

NORMAL = HumanProfile()

CAUTIOUS = HumanProfile(
    mouse_fast=False,
    type_speed='slow',
    type_accuracy='average',
    hover_pause=(0.3, 0.8),
    click_hold_ms=(80.0, 200.0),
    focus_pause=(0.3, 0.7),
    step_pause=(1.5, 3.0),
    settle_pause=(4.0, 7.0),
)

PROFILES = {
    'fast': FAST,
    'normal': NORMAL,
    'cautious': CAUTIOUS,
}
