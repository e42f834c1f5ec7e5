"""
Onboarding state machine

welcome → platform → niche → equipment → goals → challenges → complete

Parsing is a pure function of (step, reply text). The machine only moves
forward, and a reply that cannot be parsed leaves the step where it is.
Response keys are only ever added.
"""

import logging
import re
from typing import Any

from creator_engine.models.onboarding import (
    STEP_ORDER,
    STEP_RESPONSE_KEYS,
    OnboardingContext,
    OnboardingStep,
    OnboardingTransition,
)

logger = logging.getLogger(__name__)

# Checked in order; the first match wins
CREATOR_LEVEL_PATTERNS: tuple[tuple[str, re.Pattern], ...] = (
    ("beginner", re.compile(r"\b(1|beginner|new|just start|starting out|brand new)\b", re.IGNORECASE)),
    ("intermediate", re.compile(r"\b(2|intermediate|some experience|few months|year)\b", re.IGNORECASE)),
    ("advanced", re.compile(r"\b(3|advanced|expert|professional|years)\b", re.IGNORECASE)),
)

# Canonical platform order
PLATFORM_PATTERNS: tuple[tuple[str, re.Pattern], ...] = (
    ("youtube", re.compile(r"\b(youtube|yt)\b", re.IGNORECASE)),
    ("tiktok", re.compile(r"\b(tiktok|tik tok)\b", re.IGNORECASE)),
    ("twitch", re.compile(r"\b(twitch|streaming)\b", re.IGNORECASE)),
)
ALL_PLATFORMS_PATTERN = re.compile(r"\b(all|multiple|variety|every)\b", re.IGNORECASE)
ALL_PLATFORMS = [name for name, _ in PLATFORM_PATTERNS]

# Steps whose answer is stored verbatim
FREE_TEXT_STEPS = {
    OnboardingStep.NICHE,
    OnboardingStep.EQUIPMENT,
    OnboardingStep.GOALS,
    OnboardingStep.CHALLENGES,
}


def next_step(step: OnboardingStep) -> OnboardingStep:
    """Following step; complete is terminal"""
    index = STEP_ORDER.index(step)
    return STEP_ORDER[min(index + 1, len(STEP_ORDER) - 1)]


def parse_creator_level(text: str) -> str | None:
    for level, pattern in CREATOR_LEVEL_PATTERNS:
        if pattern.search(text):
            return level
    return None


def parse_platforms(text: str) -> tuple[list[str], bool]:
    """
    Platforms named in a reply

    Returns:
        (platforms, recognized). Unrecognized text yields all platforms.
    """
    named = [name for name, pattern in PLATFORM_PATTERNS if pattern.search(text)]
    if named:
        return named, True
    return list(ALL_PLATFORMS), bool(ALL_PLATFORMS_PATTERN.search(text))


def parse_onboarding_reply(step: OnboardingStep | str, text: str) -> OnboardingTransition:
    """
    Parse one user reply at a given step

    Args:
        step: Current step
        text: Raw reply

    Returns:
        Transition with the next step and the response fields learned.
        No fields and an unchanged step when the reply cannot be used.
    """
    step = OnboardingStep(step)
    reply = (text or "").strip()
    stay = OnboardingTransition(next_step=step)

    if step == OnboardingStep.COMPLETE or not reply:
        return stay

    if step == OnboardingStep.WELCOME:
        level = parse_creator_level(reply)
        if level is None:
            return stay
        return OnboardingTransition(next_step=next_step(step), fields={"creatorLevel": level})

    if step == OnboardingStep.PLATFORM:
        platforms, recognized = parse_platforms(reply)
        fields: dict[str, Any] = {"preferredPlatforms": platforms}
        if not recognized:
            fields["platformNotes"] = reply
        return OnboardingTransition(next_step=next_step(step), fields=fields)

    if step in FREE_TEXT_STEPS:
        return OnboardingTransition(next_step=next_step(step), fields={STEP_RESPONSE_KEYS[step]: reply})

    raise ValueError(f"Unhandled onboarding step: {step}")


def apply_onboarding_reply(context: OnboardingContext, text: str) -> OnboardingContext:
    """
    New context after a reply

    Existing response keys are never removed or overwritten and the step
    never moves backward.
    """
    transition = parse_onboarding_reply(context.step, text)

    responses = dict(context.responses)
    for key, value in transition.fields.items():
        responses.setdefault(key, value)

    step = context.step
    if STEP_ORDER.index(transition.next_step) > STEP_ORDER.index(step):
        step = transition.next_step

    return OnboardingContext(step=step, responses=responses)


# ==========================================
# Re-ask detection
# ==========================================

# Question cues per step, matched only inside sentences that end with '?'
REASK_PATTERNS: dict[OnboardingStep, re.Pattern] = {
    OnboardingStep.WELCOME: re.compile(
        r"(experience level|how experienced|beginner, intermediate|are you (a )?(beginner|new to))", re.IGNORECASE
    ),
    OnboardingStep.PLATFORM: re.compile(
        r"(which platform|what platform|youtube, tiktok,? or twitch)", re.IGNORECASE
    ),
    OnboardingStep.NICHE: re.compile(r"(what (type|kind) of content|your (content )?niche)", re.IGNORECASE),
    OnboardingStep.EQUIPMENT: re.compile(r"(what equipment|what (gear|camera|microphone))", re.IGNORECASE),
    OnboardingStep.GOALS: re.compile(r"(your goals|want to achieve|how much time)", re.IGNORECASE),
    OnboardingStep.CHALLENGES: re.compile(r"(biggest (concern|challenge)|what challenges)", re.IGNORECASE),
}

QUESTION_PATTERN = re.compile(r"[^.!?\n]*\?")


def find_reasked_steps(reply: str, responses: dict[str, Any]) -> list[OnboardingStep]:
    """
    Answered steps that an assistant reply asks about again

    Detection only; callers decide what to do with the result.
    """
    questions = QUESTION_PATTERN.findall(reply or "")
    if not questions:
        return []

    reasked = []
    for step, pattern in REASK_PATTERNS.items():
        if STEP_RESPONSE_KEYS[step] not in responses:
            continue
        if any(pattern.search(question) for question in questions):
            reasked.append(step)
    return reasked
