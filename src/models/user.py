"""Row models for the users/casts tables and the enrichment profile."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _fid_to_str(v: Any) -> Any:
    # fid is a bigint column; keys are compared as strings everywhere
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return v


class ChannelRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    description: Optional[str] = None


class UserRow(BaseModel):
    """Row from the ``users`` table"""

    model_config = ConfigDict(extra="ignore")

    fid: str
    user_name: Optional[str] = None
    description: Optional[str] = None
    follower_count: int = 0
    following_count: int = 0
    channels_following: Optional[List[ChannelRef]] = None
    channels_member: Optional[List[ChannelRef]] = None
    embeddings: Optional[Any] = None
    summary: Optional[str] = None

    @field_validator("fid", mode="before")
    @classmethod
    def coerce_fid(cls, v: Any) -> Any:
        return _fid_to_str(v)

    @field_validator("follower_count", "following_count", mode="before")
    @classmethod
    def default_counts(cls, v: Any) -> Any:
        return 0 if v is None else v


class CastRow(BaseModel):
    """Row from the ``casts`` table: ``{"fid", "casts": {"data": [...]}}``"""

    model_config = ConfigDict(extra="ignore")

    fid: str
    casts: Optional[Dict[str, Any]] = None

    @field_validator("fid", mode="before")
    @classmethod
    def coerce_fid(cls, v: Any) -> Any:
        return _fid_to_str(v)

    @property
    def cast_list(self) -> Optional[List[Dict[str, Any]]]:
        if not self.casts:
            return None
        data = self.casts.get("data")
        return data if isinstance(data, list) else None


class UserProfile(BaseModel):
    """Everything the enricher needs to summarize one user"""

    fid: str
    bio: Optional[str] = None
    follower_count: int = 0
    following_count: int = 0
    channels: List[ChannelRef] = Field(default_factory=list)
    user_name: Optional[str] = None
    name: Optional[str] = None
    casts: List[Dict[str, Any]] = Field(default_factory=list)
