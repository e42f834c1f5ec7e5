"""
Service Layer Package

Business logic services between request handlers and the gamification,
conversation and database layers.

- UserService: onboarding completion and profile persistence
- GamificationService: one entry point per user action, running the award cascade
"""

from creator_engine.services.container import ServiceContainer, get_container, init_container

__all__ = [
    "ServiceContainer",
    "get_container",
    "init_container",
]
