"""Per-event point tracking for KOTH participants."""
from typing import Dict, List, Optional, Tuple


def identity_order(player_id: str) -> Tuple[int, int, str]:
    """
    Sort key used to break score ties.

    Numeric ids (e.g. Steam ids) compare numerically and come before
    non-numeric ones, which compare lexically.
    """
    if player_id.isdigit():
        return (0, int(player_id), "")
    return (1, 0, player_id)


class ScoreBoard:
    """Maps participant identity to points for the running event."""

    def __init__(self, presence_points: int = 10, kill_points: int = 1):
        if presence_points < 0 or kill_points < 0:
            raise ValueError("Point awards must be non-negative")
        self.presence_points = presence_points
        self.kill_points = kill_points
        self._points: Dict[str, int] = {}

    def _add(self, player_id: str, points: int) -> int:
        total = self._points.get(player_id, 0) + points
        self._points[player_id] = total
        return total

    def award_zone_presence(self, player_id: str) -> int:
        """Award one tick of zone presence. Returns the new total."""
        return self._add(player_id, self.presence_points)

    def award_kill(
        self,
        attacker_id: str,
        victim_id: str,
        attacker_inside: bool,
        victim_inside: bool
    ) -> Optional[int]:
        """Award the kill bonus if both players were in the zone.

        Self-kills and kills with either party outside the zone score nothing.

        Returns:
            The attacker's new total, or None if the kill was not scored.
        """
        if attacker_id == victim_id:
            return None
        if not (attacker_inside and victim_inside):
            return None
        return self._add(attacker_id, self.kill_points)

    def points(self, player_id: str) -> int:
        return self._points.get(player_id, 0)

    def winner(self) -> Optional[str]:
        """Highest scorer; ties go to the lowest identity."""
        ranked = self.top(1)
        return ranked[0][0] if ranked else None

    def top(self, n: int) -> List[Tuple[str, int]]:
        """Up to n (player_id, points) pairs, highest first."""
        if n <= 0:
            return []
        ranked = sorted(
            self._points.items(),
            key=lambda item: (-item[1], identity_order(item[0]))
        )
        return ranked[:n]

    def clear(self) -> None:
        """Reset all scores."""
        self._points.clear()

    def __len__(self) -> int:
        return len(self._points)

    def __contains__(self, player_id: str) -> bool:
        return player_id in self._points
