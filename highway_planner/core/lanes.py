"""Lane model: lane indices from Frenet lateral offsets."""

import math
from typing import Iterable, List, Optional

# Priority order names accepted by adjacent_lanes
LEFT = "left"
RIGHT = "right"


class LaneModel:
    """Partition of the drivable band ``[0, lane_count * lane_width)``.

    Lanes are 0-based and increase with d. Offsets outside the band are
    off-road (or on the opposite carriageway) and map to no lane.

    Args:
        lane_width: Width of one lane [m]
        lane_count: Number of lanes
    """

    def __init__(self, lane_width: float = 4.0, lane_count: int = 3):
        if lane_width <= 0:
            raise ValueError(f"lane_width must be positive, got {lane_width}")
        if lane_count <= 0:
            raise ValueError(f"lane_count must be positive, got {lane_count}")
        self.lane_width = lane_width
        self.lane_count = lane_count

    @property
    def road_width(self) -> float:
        return self.lane_width * self.lane_count

    def is_on_road(self, d: float) -> bool:
        return 0.0 <= d < self.road_width

    def lane_of(self, d: float) -> Optional[int]:
        """Lane index of a lateral offset, None outside the drivable band."""
        if not self.is_on_road(d):
            return None
        return int(math.floor(d / self.lane_width)) % self.lane_count

    def lane_exists(self, lane: int) -> bool:
        return 0 <= lane < self.lane_count

    def lane_center(self, lane: int) -> float:
        """Lateral offset of a lane centerline [m]."""
        if not self.lane_exists(lane):
            raise ValueError(f"Lane {lane} does not exist (lane_count={self.lane_count})")
        return self.lane_width * (lane + 0.5)

    def adjacent_lanes(self, lane: int, order: Iterable[str] = (LEFT, RIGHT)) -> List[int]:
        """Existing neighbours of ``lane`` in the given priority order.

        ``left`` is the lane with the lower index, ``right`` the higher one.
        """
        offsets = {LEFT: -1, RIGHT: 1}
        lanes = []
        for side in order:
            if side not in offsets:
                raise ValueError(f"Unknown lane side '{side}', expected '{LEFT}' or '{RIGHT}'")
            candidate = lane + offsets[side]
            if self.lane_exists(candidate) and candidate not in lanes:
                lanes.append(candidate)
        return lanes
