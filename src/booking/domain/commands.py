"""
Commands du domaine.

Les commands représentent des intentions : quelque chose que
le système doit faire. Contrairement aux events (faits passés),
les commands sont des demandes qui peuvent échouer.

Les champs restent bruts (tels que reçus) : la validation est
faite par les handlers, avant toute écriture.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


class Command:
    """Classe de base pour toutes les commands."""
    pass


@dataclass(frozen=True)
class PlaceOrder(Command):
    """Demande d'enregistrement d'une commande de cours."""

    name: Any
    phone: Any
    lessons: Any
    created_at: Any = None


@dataclass(frozen=True)
class UpdateLesson(Command):
    """Demande de modification partielle d'un cours."""

    lesson_id: str
    fields: dict[str, Any] = field(default_factory=dict)
    capacity_delta: Optional[Any] = None
