"""
Randomness and geometry behind human-like input.

Click points, pointer paths, pacing, keystroke timing and typo plans.
Nothing here touches a browser, so it is all testable on its own.
"""

from __future__ import annotations

import math
import random
from typing import NamedTuple

Point = tuple[float, float]

_ROWS = ('1234567890', 'qwertyuiop', 'asdfghjkl', 'zxcvbnm')


def _neighbours() -> dict[str, str]:
    """Keys touching each key on a staggered QWERTY layout."""
    pos = {ch: (r, c) for r, row in enumerate(_ROWS) for c, ch in enumerate(row)}
    out = {}
    for ch, (r, c) in pos.items():
        near = []
        for other, (r2, c2) in pos.items():
            if other == ch or abs(r - r2) > 1:
                continue
            # Lower rows sit half a key to the right of the row above
            shift = 0 if r2 == r else (-1 if r2 > r else 1)
            if (r2 == r and abs(c2 - c) == 1) or (r2 != r and c2 - c in (0, shift)):
                near.append(other)
        out[ch] = ''.join(near)
    return out


ADJACENT_KEYS = _neighbours()

LEFT_HAND = set('12345qwertasdfgzxcvb')

SHIFTED = '!@#$%^&*()_+{}|:"<>?~'

# Median inter-key gap per speed, in ms
KEY_GAP_MS = {'fast': 65, 'medium': 125, 'slow': 210}

TYPO_RATE = {'high': 0.0, 'average': 0.03, 'low': 0.08}


class Keystroke(NamedTuple):
    """One intended character; `wrong` is the neighbouring key hit first, if any."""

    char: str
    wrong: str | None = None


def uniform_delay(bounds: tuple[float, float]) -> float:
    """Random delay in seconds from a (lo, hi) range. (0, 0) means no delay."""
    lo, hi = bounds
    return random.uniform(lo, hi) if hi > 0 else 0.0


def random_point_in_box(box: dict, margin: float = 0.15) -> Point:
    """
    Uniformly random point inside a Playwright bounding_box() dict.

    `margin` is the fraction of width/height kept clear on each side.
    A zero-size dimension collapses to the box origin.
    """
    def axis(origin, size):
        size = max(float(size), 0.0)
        if size == 0:
            return float(origin)
        return origin + random.uniform(size * margin, size * (1 - margin))

    return axis(box['x'], box['width']), axis(box['y'], box['height'])


def _lerp(a: Point, b: Point, t: float) -> Point:
    return a[0] + (b[0] - a[0]) * t, a[1] + (b[1] - a[1]) * t


def _de_casteljau(ctrl: list[Point], t: float) -> Point:
    while len(ctrl) > 1:
        ctrl = [_lerp(a, b, t) for a, b in zip(ctrl, ctrl[1:])]
    return ctrl[0]


def bezier_curve(
    start: Point,
    end: Point,
    num_points: int = 20,
    curvature: float = 0.3,
) -> list[Point]:
    """
    Cubic Bezier path from start to end, num_points + 1 waypoints.

    Both control points bow to the same side of the straight line, by up
    to `curvature` times the distance, so the path reads as one arc.
    """
    dist = math.dist(start, end)
    if dist < 1:
        return [start, end]

    nx = -(end[1] - start[1]) / dist
    ny = (end[0] - start[0]) / dist
    side = random.choice((-1, 1))

    ctrl = [start]
    for lo, hi in ((0.2, 0.4), (0.6, 0.8)):
        bx, by = _lerp(start, end, random.uniform(lo, hi))
        bow = side * random.uniform(0, curvature) * dist
        ctrl.append((bx + nx * bow, by + ny * bow))
    ctrl.append(end)

    points = [_de_casteljau(ctrl, i / num_points) for i in range(num_points)]
    points.append(end)
    return points


def apply_jitter(points: list[Point], magnitude: float = 1.5) -> list[Point]:
    """Gaussian wobble on interior points, strongest mid-path. Endpoints untouched."""
    n = len(points)
    if n <= 2 or magnitude <= 0:
        return points
    out = [points[0]]
    for i, (x, y) in enumerate(points[1:-1], start=1):
        s = magnitude * math.sin(math.pi * i / (n - 1))
        out.append((x + random.gauss(0, s), y + random.gauss(0, s)))
    out.append(points[-1])
    return out


def apply_overshoot(
    points: list[Point],
    target: Point,
    probability: float = 0.12,
) -> list[Point]:
    """
    Sometimes carry past the target by 5-20px along the direction of
    travel, then drift back onto it.
    """
    if len(points) < 2 or random.random() >= probability:
        return points

    (px, py), (tx, ty) = points[-2], target
    heading = math.atan2(ty - py, tx - px) + random.gauss(0, 0.25)
    past = random.uniform(5, 20)
    over = (tx + past * math.cos(heading), ty + past * math.sin(heading))

    back = bezier_curve(over, target, num_points=4, curvature=0.1)
    return points[:-1] + [over] + back[1:]


def num_waypoints(distance: float) -> int:
    """Pointer steps for a move; each step is one mouse.move() round trip."""
    return min(20, max(3, round(math.sqrt(max(distance, 0.0)))))


def movement_duration(distance: float, target_width: float = 40.0) -> float:
    """Fitts-style move time in seconds with multiplicative noise, floored at 70ms."""
    if distance < 1:
        return 0.0
    index = math.log2(distance / max(target_width, 1.0) + 1)
    return max(0.07, (0.09 + 0.075 * index) * random.lognormvariate(0, 0.15))


def velocity_profile(num_points: int, total: float) -> list[float]:
    """Per-step delays summing to total: slow start, fast middle, slow finish."""
    if num_points <= 1 or total <= 0:
        return [0.0] * max(num_points, 0)
    # Bell-shaped speed; delay is its inverse
    speeds = [max(6 * t * (1 - t), 0.15)
              for t in ((i + 0.5) / num_points for i in range(num_points))]
    inv = [1 / s for s in speeds]
    k = total / sum(inv)
    return [d * k for d in inv]


def typing_delay(speed: str = 'medium', char: str = '', prev_char: str = '') -> float:
    """
    Gap before a keystroke, in seconds. Drawn independently every call.

    speed: 'instant' (always 0), 'fast', 'medium' or 'slow'. Same-hand
    letter runs, shifted characters and digits take longer; spaces are quick.
    """
    if speed == 'instant':
        return 0.0
    ms = KEY_GAP_MS.get(speed, KEY_GAP_MS['medium'])

    a, b = prev_char.lower(), char.lower()
    if a.isalpha() and b.isalpha() and a != b and (a in LEFT_HAND) == (b in LEFT_HAND):
        ms *= 1.35
    if char.isupper() or char in SHIFTED:
        ms *= 1.2
    elif char.isdigit():
        ms *= 1.1
    elif char == ' ':
        ms *= 0.8

    return max(0.02, ms * random.lognormvariate(0, 0.3) / 1000.0)


def typo_generator(text: str, accuracy: str = 'high') -> list[Keystroke]:
    """
    Plan the keystrokes for `text`.

    accuracy: 'high' (never), 'average' (~3%) or 'low' (~8%) chance per
    letter/digit of first hitting a neighbouring key, then backspacing.
    Symbols are never mistyped.
    """
    rate = TYPO_RATE.get(accuracy, 0.0)
    plan = []
    for ch in text:
        near = ADJACENT_KEYS.get(ch.lower())
        if near and rate and random.random() < rate:
            wrong = random.choice(near)
            plan.append(Keystroke(ch, wrong.upper() if ch.isupper() else wrong))
        else:
            plan.append(Keystroke(ch))
    return plan
