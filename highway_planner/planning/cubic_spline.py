"""Natural cubic spline through trajectory anchors.

Based on the implementation from PythonRobotics:
https://github.com/AtsushiSakai/PythonRobotics
"""

import bisect
from typing import List, Sequence, Union

import numpy as np


class CubicSpline1D:
    """1D cubic spline y(x) with natural boundary conditions.

    Evaluating outside ``[x[0], x[-1]]`` returns None for scalars and NaN
    for array entries.

    Args:
        x: Knot abscissae, strictly increasing
        y: Knot values

    Raises:
        ValueError: If fewer than two knots are given, the lengths differ,
            or x is not strictly increasing
    """

    def __init__(self, x: Sequence[float], y: Sequence[float]):
        x = [float(v) for v in x]
        y = [float(v) for v in y]
        if len(x) != len(y):
            raise ValueError(f"x and y must have the same length, got {len(x)} and {len(y)}")
        if len(x) < 2:
            raise ValueError(f"At least two knots are required, got {len(x)}")
        h = np.diff(x)
        if np.any(h <= 0):
            raise ValueError(f"x coordinates must be strictly increasing, got {x}")

        self.x = x
        self.y = y
        self.nx = len(x)
        self.a = list(y)
        self.b = []
        self.d = []

        A = self._calc_A(h)
        B = self._calc_B(h, self.a)
        self.c = np.linalg.solve(A, B).tolist()

        for i in range(self.nx - 1):
            self.d.append((self.c[i + 1] - self.c[i]) / (3.0 * h[i]))
            self.b.append(
                (self.a[i + 1] - self.a[i]) / h[i] - h[i] / 3.0 * (2.0 * self.c[i] + self.c[i + 1])
            )

        # Arrays so that segment indices can be vectors
        self.a = np.asarray(self.a)
        self.b = np.asarray(self.b)
        self.c = np.asarray(self.c)
        self.d = np.asarray(self.d)

    def calc_position(self, x: Union[float, np.ndarray]) -> Union[float, np.ndarray, None]:
        """y value(s) at x."""
        return self._evaluate(x, lambda i, dx: self.a[i] + self.b[i] * dx + self.c[i] * dx ** 2 + self.d[i] * dx ** 3)

    def calc_first_derivative(self, x: Union[float, np.ndarray]) -> Union[float, np.ndarray, None]:
        """dy/dx at x."""
        return self._evaluate(x, lambda i, dx: self.b[i] + 2.0 * self.c[i] * dx + 3.0 * self.d[i] * dx ** 2)

    def calc_second_derivative(self, x: Union[float, np.ndarray]) -> Union[float, np.ndarray, None]:
        """d2y/dx2 at x."""
        return self._evaluate(x, lambda i, dx: 2.0 * self.c[i] + 6.0 * self.d[i] * dx)

    def _evaluate(self, x, poly):
        if np.isscalar(x):
            if x < self.x[0] or x > self.x[-1]:
                return None
            i = self._search_index(x)
            return float(poly(i, x - self.x[i]))

        x = np.asarray(x, dtype=float)
        res = np.full_like(x, np.nan, dtype=float)
        mask = (x >= self.x[0]) & (x <= self.x[-1])
        if np.any(mask):
            i = self._search_index(x[mask])
            dx = x[mask] - np.asarray(self.x)[i]
            res[mask] = poly(i, dx)
        return res

    def _search_index(self, x: Union[float, np.ndarray]) -> Union[int, np.ndarray]:
        """Segment index of x, clipped to the last segment at the right end."""
        if np.isscalar(x):
            idx = bisect.bisect(self.x, x) - 1
            return min(max(idx, 0), self.nx - 2)
        idx = np.searchsorted(self.x, x, side='right') - 1
        return np.clip(idx, 0, self.nx - 2)

    def _calc_A(self, h: np.ndarray) -> np.ndarray:
        """Tridiagonal system matrix for the c coefficients."""
        A = np.zeros((self.nx, self.nx))
        A[0, 0] = 1.0
        for i in range(self.nx - 1):
            if i != (self.nx - 2):
                A[i + 1, i + 1] = 2.0 * (h[i] + h[i + 1])
            A[i + 1, i] = h[i]
            A[i, i + 1] = h[i]

        A[0, 1] = 0.0
        A[self.nx - 1, self.nx - 2] = 0.0
        A[self.nx - 1, self.nx - 1] = 1.0
        return A

    def _calc_B(self, h: np.ndarray, a: List[float]) -> np.ndarray:
        """Right-hand side for the c coefficients."""
        B = np.zeros(self.nx)
        for i in range(self.nx - 2):
            B[i + 1] = 3.0 * (a[i + 2] - a[i + 1]) / h[i + 1] - 3.0 * (a[i + 1] - a[i]) / h[i]
        return B
