"""Jerk-limited speed profile for the newly generated trajectory points."""

from typing import Tuple

import numpy as np


def _max_approach_accel(error: float, max_delta: float, dt: float) -> float:
    """Largest acceleration from which the speed error can still be closed.

    Starting with acceleration ``a`` and lowering it by ``max_delta`` every
    step until it reaches zero adds ``dt * sum(max(a - k * max_delta, 0))``
    to the speed. Returns the largest ``a`` for which that sum is at most
    ``error``.
    """
    if error <= 0.0:
        return 0.0
    k = 0
    while True:
        # On (k * max_delta, (k + 1) * max_delta] the sum is linear in a
        a = (error / dt + max_delta * k * (k + 1) / 2.0) / (k + 1)
        if a <= (k + 1) * max_delta:
            return a
        k += 1


def plan_speeds(
    v0: float,
    a0: float,
    target_speed: float,
    n: int,
    dt: float,
    max_accel: float,
    max_jerk: float,
    max_speed: float
) -> Tuple[np.ndarray, np.ndarray]:
    """Step the speed from ``v0`` towards ``target_speed`` for ``n`` points.

    Each step changes the acceleration by at most ``max_jerk * dt`` and keeps
    it within ``max_accel``. The acceleration towards the target is capped so
    that it can still be wound down to zero at ``max_jerk`` by the time the
    target is reached, so the target is met without a step in acceleration.
    Only an initial state that is already past that point (for instance a
    large ``a0`` right below the target) overshoots, in which case the speed
    is held at the target.

    Args:
        v0: Speed at the last emitted point [m/s]
        a0: Acceleration at the last emitted point [m/s²]
        target_speed: Speed to converge to [m/s]
        n: Number of points to plan
        dt: Time between points [s]
        max_accel: Acceleration magnitude limit [m/s²]
        max_jerk: Jerk magnitude limit [m/s³]
        max_speed: Speed limit [m/s]

    Returns:
        speeds: Speed at each new point, shape (n,)
        accels: Realised acceleration into each new point, shape (n,)
    """
    target = min(max(target_speed, 0.0), max_speed)
    speeds = np.zeros(n)
    accels = np.zeros(n)

    v = min(max(v0, 0.0), max_speed)
    a = a0
    max_delta = max_jerk * dt

    for i in range(n):
        # Work along the direction of the speed error
        sign = 1.0 if target >= v else -1.0
        error = sign * (target - v)
        a_dir = sign * a

        a_next = min(a_dir + max_delta, _max_approach_accel(error, max_delta, dt))
        a_next = max(a_next, a_dir - max_delta)
        a_next = max(-max_accel, min(max_accel, a_next))

        v_next = v + sign * a_next * dt
        # Rounding (or an overshooting initial state) must not cross the target
        if sign * (target - v_next) < 0:
            v_next = target
        v_next = min(max(v_next, 0.0), max_speed)

        a = (v_next - v) / dt
        v = v_next
        speeds[i] = v
        accels[i] = a

    return speeds, accels
