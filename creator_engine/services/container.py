"""
Service Container - Dependency Injection Container

Simple DI container for managing service instances and their dependencies.
Uses lazy loading to only instantiate services when first accessed.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container for services.

    Services are lazy-loaded on first access via properties.
    Infrastructure dependencies (db, llm) are injected.
    """

    # Infrastructure dependencies (injected)
    db: object  # Database instance
    llm: Optional[object] = None  # LLMClient; created on first use if not injected

    # Services (lazy-loaded via properties)
    _user_service: Optional[object] = field(default=None, init=False, repr=False)
    _gamification_service: Optional[object] = field(default=None, init=False, repr=False)
    _conversation_manager: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def llm_client(self):
        """Get LLMClient instance (lazy-loaded)"""
        if self.llm is None:
            from creator_engine.agent.llm_client import LLMClient
            self.llm = LLMClient()
            logger.debug("LLMClient instantiated")
        return self.llm

    @property
    def user_service(self):
        """Get UserService instance (lazy-loaded)"""
        if self._user_service is None:
            from creator_engine.services.user_service import UserService
            self._user_service = UserService()
            logger.debug("UserService instantiated")
        return self._user_service

    @property
    def gamification_service(self):
        """Get GamificationService instance (lazy-loaded)"""
        if self._gamification_service is None:
            from creator_engine.services.gamification_service import GamificationService
            self._gamification_service = GamificationService(self.llm_client)
            logger.debug("GamificationService instantiated")
        return self._gamification_service

    @property
    def conversation_manager(self):
        """Get ConversationManager instance (lazy-loaded), handing completed onboarding to UserService"""
        if self._conversation_manager is None:
            from creator_engine.conversation.manager import ConversationManager
            self._conversation_manager = ConversationManager(
                self.llm_client,
                profile_sink=self.user_service.complete_onboarding,
            )
            logger.debug("ConversationManager instantiated")
        return self._conversation_manager


# Global container instance (initialized in bootstrap.startup)
_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """
    Get the global service container.

    Raises:
        RuntimeError: If container not initialized (call init_container first)
    """
    if _container is None:
        raise RuntimeError(
            "Service container not initialized. "
            "Call init_container() during startup before using services."
        )
    return _container


def init_container(db: object, llm: Optional[object] = None) -> ServiceContainer:
    """
    Initialize the global service container.

    Args:
        db: Database instance
        llm: Optional LLMClient (created lazily when omitted)
    """
    global _container

    _container = ServiceContainer(db=db, llm=llm)

    logger.info("Service container initialized")
    return _container


def reset_container() -> None:
    """Drop the global container (shutdown and tests)"""
    global _container
    _container = None
