# src/squashrank/schemas/common.py

"""Common Pydantic schemas used across multiple resources."""

from pydantic import BaseModel, ConfigDict, Field

from squashrank.rating.glicko2_engine import Glicko2Rating


class RatingInfo(BaseModel):
    """Pydantic model for Glicko-2 rating data with validation.

    Attributes:
        rating: The player's skill rating (default: 1500.0)
        rd: Rating deviation / uncertainty (default: 350.0)
        vol: Volatility / consistency (default: 0.06)
    """

    rating: float = Field(..., description="Skill rating")
    rd: float = Field(..., gt=0, description="Rating deviation (uncertainty)")
    vol: float = Field(..., gt=0, description="Volatility (consistency)")

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_state(cls, state: Glicko2Rating) -> "RatingInfo":
        return cls(rating=state.rating, rd=state.rd, vol=state.vol)
