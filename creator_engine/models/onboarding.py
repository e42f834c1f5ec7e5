"""Onboarding state models"""
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class OnboardingStep(str, Enum):
    """Interview steps, in order"""
    WELCOME = "welcome"
    PLATFORM = "platform"
    NICHE = "niche"
    EQUIPMENT = "equipment"
    GOALS = "goals"
    CHALLENGES = "challenges"
    COMPLETE = "complete"


STEP_ORDER: tuple[OnboardingStep, ...] = tuple(OnboardingStep)

# Response key written by each step
STEP_RESPONSE_KEYS: dict[OnboardingStep, str] = {
    OnboardingStep.WELCOME: "creatorLevel",
    OnboardingStep.PLATFORM: "preferredPlatforms",
    OnboardingStep.NICHE: "contentNiche",
    OnboardingStep.EQUIPMENT: "equipment",
    OnboardingStep.GOALS: "goals",
    OnboardingStep.CHALLENGES: "challenges",
}


class OnboardingContext(BaseModel):
    """The `context` map of an onboarding conversation"""
    type: Literal["onboarding"] = "onboarding"
    step: OnboardingStep = OnboardingStep.WELCOME
    responses: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return self.step == OnboardingStep.COMPLETE


class OnboardingTransition(BaseModel):
    """Result of parsing one reply: where to go and what was learned"""
    next_step: OnboardingStep
    fields: dict[str, Any] = Field(default_factory=dict)


class CreatorProfile(BaseModel):
    """Completed onboarding responses handed to profile persistence"""
    user_id: str
    creator_level: str
    preferred_platforms: list[str]
    content_niche: str
    equipment: str = ""
    goals: str = ""
    challenges: str = ""
    platform_notes: str = ""
