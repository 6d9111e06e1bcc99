"""
Views (lecture) pour le pattern CQRS.

Les views sont des fonctions de lecture pure : elles ne passent
ni par les commands ni par le message bus et ne modifient rien.
Elles retournent des dicts prêts à être sérialisés, avec un `id`
toujours sous forme de chaîne.
"""

from __future__ import annotations

from typing import Optional

from booking.domain import model, search
from booking.service_layer import unit_of_work

# Nom exposé au client -> attribut du domaine
LESSON_FIELDS = {
    "subject": "subject",
    "location": "location",
    "price": "price",
    "availableSpace": "available_space",
    "icon": "icon",
}


def lesson_to_dict(lesson: model.Lesson) -> dict:
    data = {"id": str(lesson.id)}
    for public_name, attribute in LESSON_FIELDS.items():
        data[public_name] = getattr(lesson, attribute)
    return data


def lessons(uow: unit_of_work.AbstractUnitOfWork) -> list[dict]:
    """Retourne tout le catalogue, sans filtre."""
    with uow:
        return [lesson_to_dict(lesson) for lesson in uow.lessons.list()]


def search_lessons(query: Optional[str], uow: unit_of_work.AbstractUnitOfWork) -> list[dict]:
    """
    Recherche texte/numérique dans le catalogue.

    Une requête vide retourne une liste vide, sans toucher au store.
    """
    predicate = search.build_predicate(query)
    if predicate is None:
        return []
    with uow:
        return [lesson_to_dict(lesson) for lesson in uow.lessons.find(predicate)]
