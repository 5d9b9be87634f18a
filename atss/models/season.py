"""Season identifier — integer encoding of in-game progress."""

from __future__ import annotations

_SEASON_NAMES = {1: "drizzle", 2: "clearance", 0: "storm"}


class SeasonId(int):
    """
    Encoded game progress.

      0        world map (no active settlement)
      3n - 2   year n drizzle
      3n - 1   year n clearance
      3n       year n storm
      < 0      invalid / unknown
    """

    INVALID: SeasonId
    WORLD_MAP: SeasonId

    @classmethod
    def from_year_season(cls, year: int, season: int) -> SeasonId:
        """Build an identifier from a 1-based year and a 0-based season index."""
        return cls(3 * year - 2 + season)

    @property
    def is_valid(self) -> bool:
        return self >= 0

    @property
    def is_world_map(self) -> bool:
        return self == 0

    @property
    def is_drizzle(self) -> bool:
        return self.is_valid and not self.is_world_map and self % 3 == 1

    @property
    def is_clearance(self) -> bool:
        return self.is_valid and self % 3 == 2

    @property
    def is_storm(self) -> bool:
        return self.is_valid and not self.is_world_map and self % 3 == 0

    @property
    def year(self) -> int:
        """1-based year, 0 on the world map or when invalid."""
        if self <= 0:
            return 0
        return (int(self) + 2) // 3

    def __str__(self) -> str:
        if not self.is_valid:
            return "invalid"
        if self.is_world_map:
            return "world map"
        return f"Y{self.year} {_SEASON_NAMES[self % 3]}"

    def __repr__(self) -> str:
        return f"SeasonId({int(self)})"


SeasonId.INVALID = SeasonId(-1)
SeasonId.WORLD_MAP = SeasonId(0)
