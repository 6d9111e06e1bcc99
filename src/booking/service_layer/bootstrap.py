"""
Bootstrap : assemblage de l'application (Composition Root).

Ce module construit le message bus avec toutes ses dépendances.
C'est ici que l'injection de dépendances est réalisée :
on assemble les composants concrets (ou les fakes pour les tests).

C'est le seul endroit de l'application qui connaît les
implémentations concrètes de chaque abstraction.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from booking.adapters import orm
from booking.config import Settings, get_settings
from booking.domain import commands, events
from booking.service_layer import handlers, messagebus, unit_of_work


def bootstrap(
    start_orm: bool = True,
    uow_factory: Optional[Callable[[], unit_of_work.AbstractUnitOfWork]] = None,
    engine: Optional[Engine] = None,
    settings: Optional[Settings] = None,
    **extra_dependencies: Any,
) -> messagebus.MessageBus:
    """
    Construit et retourne un MessageBus configuré.

    En production, crée l'engine depuis la configuration (ou utilise
    celui fourni) et un UoW SQLAlchemy par message. En test, on
    injecte une fabrique de fakes via `uow_factory`.
    """
    if start_orm:
        orm.start_mappers()

    if uow_factory is None:
        if engine is None:
            engine = unit_of_work.make_engine((settings or get_settings()).database_uri)
        session_factory = sessionmaker(bind=engine)

        def uow_factory() -> unit_of_work.AbstractUnitOfWork:
            return unit_of_work.SqlAlchemyUnitOfWork(session_factory)

    return messagebus.MessageBus(
        uow_factory=uow_factory,
        event_handlers=EVENT_HANDLERS,
        command_handlers=COMMAND_HANDLERS,
        dependencies=dict(extra_dependencies),
    )


# --- Routage des messages vers les handlers ---

EVENT_HANDLERS: dict[type[events.Event], list] = {
    events.OrderPlaced: [handlers.publish_order_placed],
    events.LessonUpdated: [handlers.log_lesson_updated],
    events.LessonSoldOut: [handlers.warn_lesson_sold_out],
}

COMMAND_HANDLERS: dict[type[commands.Command], Any] = {
    commands.PlaceOrder: handlers.place_order,
    commands.UpdateLesson: handlers.update_lesson,
}
