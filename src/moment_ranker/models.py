from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class Moment(BaseModel):
    """A moment as supplied by the content store."""

    id: str = Field(..., description="Unique id of the moment")
    user_id: str = Field(..., description="Id of the moment's author")
    caption: str | None = Field(None, description="Caption text, if any")
    type: str = Field("image", description="Media type (image or video)")
    created_at: datetime = Field(..., description="Creation timestamp")
    author_display_name: str | None = Field(
        None, description="Display name of the author, used in scoring prompts"
    )


class UserProfile(BaseModel):
    """The slice of a user record the ranking pipeline needs."""

    id: str
    display_name: str | None = None
    bio: str | None = None


class RankingTier(str, Enum):
    """Which signal produced an ordering, in strictly degrading order."""

    VECTOR = "vector"
    SCORED = "scored"
    CHRONOLOGICAL = "chronological"


class RankedMoment(BaseModel):
    """A moment with the scores that placed it in a ranked order."""

    moment: Moment
    relevance_score: float = Field(..., ge=0.0, le=1.0)
    recency_score: float = Field(..., ge=0.0, le=1.0)
    combined_score: float = Field(..., ge=0.0, le=1.0)


class SimilarMoment(BaseModel):
    """A nearest-neighbour hit for a user's embedding."""

    moment_id: str
    similarity: float = Field(..., ge=-1.0, le=1.0, description="Cosine similarity")


class MomentScore(BaseModel):
    """A relevance score for one moment, in [0, 1]."""

    moment_id: str
    score: float = Field(..., ge=0.0, le=1.0)
