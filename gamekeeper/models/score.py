"""
Score data carried by a Result.

The stored payload is loose JSON such as
``{"winner": "12", "scores": {"12": 3, "15": 1}, "notes": "..."}`` with the
sentinel ``"DRAW"`` for a tie. Inside the service it is handled as a tagged
outcome plus a score mapping; conversion happens only at the boundary.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from gamekeeper.utils.constants import DRAW


@dataclass(frozen=True)
class Draw:
    pass


@dataclass(frozen=True)
class Winner:
    user_id: str


Outcome = Union[Draw, Winner]


@dataclass
class ScoreData:
    outcome: Optional[Outcome]
    scores: Dict[str, float] = field(default_factory=dict)
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def from_json(cls, payload: Optional[Dict[str, Any]]) -> "ScoreData":
        """Parse a stored payload leniently; unknown keys land in metadata."""
        payload = payload or {}
        winner = payload.get("winner")
        if winner is None or winner == "":
            outcome = None
        elif str(winner).upper() == DRAW:
            outcome = Draw()
        else:
            outcome = Winner(user_id=str(winner))

        scores = {}
        raw_scores = payload.get("scores")
        if isinstance(raw_scores, dict):
            for key, value in raw_scores.items():
                try:
                    scores[str(key)] = float(value)
                except (TypeError, ValueError):
                    continue

        extra = {k: v for k, v in payload.items() if k not in ("winner", "scores")}
        metadata = payload.get("metadata") if set(extra) == {"metadata"} else (extra or None)
        return cls(outcome=outcome, scores=scores, metadata=metadata)

    def to_json(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"scores": dict(self.scores)}
        if isinstance(self.outcome, Draw):
            payload["winner"] = DRAW
        elif isinstance(self.outcome, Winner):
            payload["winner"] = self.outcome.user_id
        if self.metadata:
            payload["metadata"] = self.metadata
        return payload

    @property
    def is_draw(self) -> bool:
        return isinstance(self.outcome, Draw)

    def outcome_for(self, user_id) -> str:
        """WIN, LOSS or DRAW from the point of view of one participant; UNKNOWN without a winner."""
        if self.outcome is None:
            return "UNKNOWN"
        if self.is_draw:
            return "DRAW"
        if isinstance(self.outcome, Winner) and self.outcome.user_id == str(user_id):
            return "WIN"
        return "LOSS"
