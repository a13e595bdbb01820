"""Wiring of the draw workflow to its collaborators."""
from secret_santa.core.config import settings
from secret_santa.core.database import engine
from secret_santa.draw.orchestrator import DrawOrchestrator
from secret_santa.draw.store import DrawStore
from secret_santa.notify.sender import build_notifier


def build_orchestrator() -> DrawOrchestrator:
    """Create an orchestrator on the application database and configured mailer."""
    return DrawOrchestrator(
        DrawStore(engine),
        build_notifier(settings),
        timeout=settings.notification_timeout_seconds,
        max_workers=settings.notification_max_workers,
        base_url=settings.app_url,
    )


def get_orchestrator() -> DrawOrchestrator:
    """Dependency for getting the draw orchestrator."""
    return build_orchestrator()
