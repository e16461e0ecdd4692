"""Dependency injection container for the evaluation engine."""

from __future__ import annotations

from dependency_injector import containers, providers

from .core import (
    CompletionTracker,
    KeyedLocks,
    ScoreboardBuilder,
    ScoreLedger,
    StepCatalog,
    StepProgression,
    UnitOfWork,
)
from .notifications import LoggingNotifier, NotificationTrigger
from .repositories import InMemoryEvaluationStore
from .schemas.config import AppConfig
from .service import EvaluationService


class EvaluationContainer(containers.DeclarativeContainer):
    """Dependency-injector container definition."""

    config = providers.Configuration(default=AppConfig().to_settings())

    store = providers.Singleton(InMemoryEvaluationStore)
    locks = providers.Singleton(KeyedLocks)
    unit_of_work = providers.Singleton(UnitOfWork, store=store, locks=locks)

    notifier = providers.Singleton(LoggingNotifier)
    notifications = providers.Singleton(
        NotificationTrigger,
        notifier=notifier,
        enabled=config.notifications.enabled,
    )

    catalog = providers.Singleton(
        StepCatalog,
        store=store,
        locks=locks,
        default_min_score=config.scoring.default_min_score,
        default_max_score=config.scoring.default_max_score,
        required_evaluator_percentage=config.scoring.required_evaluator_percentage,
    )
    tracker = providers.Singleton(CompletionTracker, store=store, unit_of_work=unit_of_work)
    scoreboard = providers.Singleton(ScoreboardBuilder, store=store, catalog=catalog)

    ledger = providers.Singleton(
        ScoreLedger,
        store=store,
        unit_of_work=unit_of_work,
        tracker=tracker,
        on_change=scoreboard.provided.invalidate,
    )
    progression = providers.Singleton(
        StepProgression,
        store=store,
        unit_of_work=unit_of_work,
        catalog=catalog,
        ledger=ledger,
        tracker=tracker,
        notifications=notifications,
        on_change=scoreboard.provided.invalidate,
    )

    service = providers.Singleton(
        EvaluationService,
        store=store,
        catalog=catalog,
        ledger=ledger,
        tracker=tracker,
        progression=progression,
        scoreboard=scoreboard,
    )


def create_container(
    *,
    settings: dict | None = None,
    store: InMemoryEvaluationStore | None = None,
    notifier: object | None = None,
) -> EvaluationContainer:
    """Instantiate container with optional overrides."""

    container = EvaluationContainer()

    if isinstance(settings, dict):
        for section in ("scoring", "notifications"):
            if settings.get(section):
                container.config.from_dict({section: settings[section]})

    if store is not None:
        container.store.override(providers.Object(store))

    if notifier is not None:
        container.notifier.override(providers.Object(notifier))

    return container
