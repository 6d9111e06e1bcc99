"""
Events du domaine.

Les events représentent des faits qui se sont produits dans le système.
Ils sont immuables et nommés au passé (quelque chose s'est passé).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from booking.domain.model import OrderLine


class Event:
    """Classe de base pour tous les events du domaine."""
    pass


@dataclass(frozen=True)
class OrderPlaced(Event):
    """Une commande a été enregistrée après réservation de toutes ses lignes."""

    order_id: str
    lines: tuple[OrderLine, ...]


@dataclass(frozen=True)
class LessonUpdated(Event):
    """Un cours a été modifié (champs et/ou places disponibles)."""

    lesson_id: str
    fields: tuple[str, ...]
    capacity_delta: Optional[int]
    available_space: int


@dataclass(frozen=True)
class LessonSoldOut(Event):
    """Il ne reste plus aucune place pour un cours."""

    lesson_id: str
