"""Unit tests for the onboarding state machine (creator_engine/conversation/onboarding.py)"""
import pytest

from creator_engine.conversation.onboarding import (
    apply_onboarding_reply,
    find_reasked_steps,
    parse_onboarding_reply,
    parse_platforms,
)
from creator_engine.models.onboarding import OnboardingContext, OnboardingStep


# ============================================================================
# Welcome Step Tests
# ============================================================================

@pytest.mark.parametrize("reply,level", [
    ("1", "beginner"),
    ("I'm a beginner", "beginner"),
    ("just starting out", "beginner"),
    ("2", "intermediate"),
    ("I have some experience", "intermediate"),
    ("3", "advanced"),
    ("I'm a professional", "advanced"),
])
def test_welcome_parses_creator_level(reply, level):
    transition = parse_onboarding_reply(OnboardingStep.WELCOME, reply)

    assert transition.next_step == OnboardingStep.PLATFORM
    assert transition.fields == {"creatorLevel": level}


def test_welcome_unparseable_reply_stays():
    transition = parse_onboarding_reply(OnboardingStep.WELCOME, "hmm, not sure what to say")

    assert transition.next_step == OnboardingStep.WELCOME
    assert transition.fields == {}


def test_empty_reply_stays_at_any_step():
    for step in (OnboardingStep.WELCOME, OnboardingStep.PLATFORM, OnboardingStep.GOALS):
        transition = parse_onboarding_reply(step, "   ")
        assert transition.next_step == step
        assert transition.fields == {}


# ============================================================================
# Platform Step Tests
# ============================================================================

def test_platform_single_choice():
    transition = parse_onboarding_reply(OnboardingStep.PLATFORM, "Twitch")

    assert transition.next_step == OnboardingStep.NICHE
    assert transition.fields == {"preferredPlatforms": ["twitch"]}


def test_platforms_kept_in_canonical_order():
    platforms, recognized = parse_platforms("TikTok and YouTube mostly")

    assert platforms == ["youtube", "tiktok"]
    assert recognized is True


def test_all_platforms_keyword():
    transition = parse_onboarding_reply(OnboardingStep.PLATFORM, "all of them")

    assert transition.fields == {"preferredPlatforms": ["youtube", "tiktok", "twitch"]}


def test_unrecognized_platform_defaults_and_keeps_note():
    transition = parse_onboarding_reply(OnboardingStep.PLATFORM, "Instagram reels")

    assert transition.next_step == OnboardingStep.NICHE
    assert transition.fields == {
        "preferredPlatforms": ["youtube", "tiktok", "twitch"],
        "platformNotes": "Instagram reels",
    }


# ============================================================================
# Free-text Step Tests
# ============================================================================

@pytest.mark.parametrize("step,key,following", [
    (OnboardingStep.NICHE, "contentNiche", OnboardingStep.EQUIPMENT),
    (OnboardingStep.EQUIPMENT, "equipment", OnboardingStep.GOALS),
    (OnboardingStep.GOALS, "goals", OnboardingStep.CHALLENGES),
    (OnboardingStep.CHALLENGES, "challenges", OnboardingStep.COMPLETE),
])
def test_free_text_steps_store_reply(step, key, following):
    transition = parse_onboarding_reply(step, "  gaming  ")

    assert transition.next_step == following
    assert transition.fields == {key: "gaming"}


def test_complete_is_terminal():
    transition = parse_onboarding_reply(OnboardingStep.COMPLETE, "anything else?")

    assert transition.next_step == OnboardingStep.COMPLETE
    assert transition.fields == {}


# ============================================================================
# Context Application Tests
# ============================================================================

def test_full_interview_collects_every_answer():
    context = OnboardingContext()
    for reply in ("1", "YouTube", "gaming", "a webcam", "grow to 1k subs", "finding time"):
        context = apply_onboarding_reply(context, reply)

    assert context.is_complete
    assert context.responses == {
        "creatorLevel": "beginner",
        "preferredPlatforms": ["youtube"],
        "contentNiche": "gaming",
        "equipment": "a webcam",
        "goals": "grow to 1k subs",
        "challenges": "finding time",
    }


def test_existing_answers_never_overwritten():
    context = OnboardingContext(
        step=OnboardingStep.NICHE,
        responses={"creatorLevel": "advanced", "contentNiche": "cooking"},
    )

    updated = apply_onboarding_reply(context, "gaming")

    assert updated.step == OnboardingStep.EQUIPMENT
    assert updated.responses["contentNiche"] == "cooking"
    assert updated.responses["creatorLevel"] == "advanced"


def test_apply_returns_new_context():
    context = OnboardingContext()

    updated = apply_onboarding_reply(context, "1")

    assert context.step == OnboardingStep.WELCOME
    assert context.responses == {}
    assert updated.step == OnboardingStep.PLATFORM


# ============================================================================
# Re-ask Detection Tests
# ============================================================================

def test_reasked_answered_step_detected():
    reply = "Great choice! Which platform do you want to focus on?"

    assert find_reasked_steps(reply, {"preferredPlatforms": ["youtube"]}) == [OnboardingStep.PLATFORM]


def test_unanswered_step_is_not_a_reask():
    reply = "Which platform do you want to focus on?"

    assert find_reasked_steps(reply, {"creatorLevel": "beginner"}) == []


def test_statements_are_not_questions():
    reply = "You told me which platform you use. Now, what equipment do you have?"

    assert find_reasked_steps(reply, {"preferredPlatforms": ["twitch"]}) == []
