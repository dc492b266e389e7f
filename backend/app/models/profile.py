from pydantic import BaseModel


class ClaimAchievementPayload(BaseModel):
    achievement_name: str


class ClaimLevelRewardPayload(BaseModel):
    level: int
