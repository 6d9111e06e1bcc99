"""
Handlers pour les commands et events.

Les handlers sont les fonctions qui traitent les commands et events
transitant par le message bus.

- Command handlers : exécutent une action (peuvent échouer)
- Event handlers : réagissent à un fait passé (ne doivent pas échouer)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from booking.domain import commands, events, model

if TYPE_CHECKING:
    from booking.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)


# --- Command Handlers ---


def place_order(
    cmd: commands.PlaceOrder,
    uow: AbstractUnitOfWork,
) -> str:
    """
    Enregistre une commande après avoir réservé toutes ses places.

    La validation précède toute écriture. Chaque ligne réserve ses
    places par un décrément conditionnel ; la commande n'est insérée
    que si toutes les réservations ont réussi. Le tout tient dans
    une seule transaction : un échec annule les lignes déjà réservées.

    Retourne l'id de la commande. Lève InvalidRequest, NotFound,
    InsufficientCapacity ou StoreUnavailable, sans réessayer.
    """
    order = model.Order.create(
        name=cmd.name,
        phone=cmd.phone,
        lessons=cmd.lessons,
        created_at=cmd.created_at,
    )
    with uow:
        for line in order.lines:
            uow.lessons.reserve(line.lesson_id, line.quantity)
        uow.orders.add(order)
        order.confirm()
        order_id = str(order.id)
        uow.commit()
    return order_id


def update_lesson(
    cmd: commands.UpdateLesson,
    uow: AbstractUnitOfWork,
) -> model.Lesson:
    """
    Modifie partiellement un cours et retourne sa version à jour.

    Lève InvalidRequest si la demande est vide ou incohérente,
    NotFound si le cours n'existe pas.
    """
    update = model.LessonUpdate(fields=dict(cmd.fields), capacity_delta=cmd.capacity_delta)
    with uow:
        lesson = uow.lessons.apply_update(cmd.lesson_id, update)
        uow.commit()
    return lesson


# --- Event Handlers ---


def publish_order_placed(
    event: events.OrderPlaced,
) -> None:
    """
    Publie l'enregistrement d'une commande vers l'extérieur.

    Pour l'instant la publication se limite au journal applicatif.
    """
    logger.info(
        "Commande enregistrée : %s (%d ligne(s), %d place(s))",
        event.order_id,
        len(event.lines),
        sum(line.quantity for line in event.lines),
    )


def log_lesson_updated(
    event: events.LessonUpdated,
) -> None:
    logger.debug(
        "Cours %s modifié : champs=%s delta=%s places=%d",
        event.lesson_id, event.fields, event.capacity_delta, event.available_space,
    )


def warn_lesson_sold_out(
    event: events.LessonSoldOut,
) -> None:
    """Signale qu'un cours est complet."""
    logger.warning("Cours complet : %s", event.lesson_id)
