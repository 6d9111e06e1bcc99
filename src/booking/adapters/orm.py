"""
Mapping ORM avec SQLAlchemy (classical mapping).

On définit les tables séparément, puis on mappe les classes
du domaine sur ces tables. Le modèle de domaine reste ainsi
ignorant de la persistance (persistence ignorance).

Deux tables indépendantes : `lesson` (le catalogue) et `order`
(les commandes). Une commande garde ses lignes telles que reçues,
dans une colonne JSON ; elle ne possède pas les cours qu'elle référence.
"""

import uuid

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    event,
)
from sqlalchemy.orm import registry

from booking.domain import model

metadata = MetaData()
mapper_registry = registry(metadata=metadata)


def new_id() -> str:
    """Identifiant opaque généré par le store à la création."""
    return uuid.uuid4().hex


# --- Définition des tables ---

lessons = Table(
    "lesson",
    metadata,
    Column("id", String(32), primary_key=True, default=new_id),
    Column("subject", String(255), nullable=False),
    Column("location", String(255), nullable=False),
    Column("price", Float, nullable=False),
    Column("available_space", Integer, nullable=False),
    Column("icon", JSON, nullable=True),
    CheckConstraint("available_space >= 0", name="ck_lesson_available_space"),
    CheckConstraint("price >= 0", name="ck_lesson_price"),
)

# Index indicatif : la recherche n'en dépend pas pour ses résultats.
Index("ix_lesson_subject_location", lessons.c.subject, lessons.c.location)

orders = Table(
    "order",
    metadata,
    Column("id", String(32), primary_key=True, default=new_id),
    Column("name", String(255), nullable=False),
    Column("phone", String(64), nullable=False),
    Column("lessons", JSON, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


def start_mappers() -> None:
    """
    Configure le mapping entre les classes du domaine et les tables SQL.

    Idempotent : un second appel (serveur + CLI dans le même processus)
    ne remappe pas les classes.
    """
    if mapper_registry.mappers:
        return
    mapper_registry.map_imperatively(model.Lesson, lessons)
    mapper_registry.map_imperatively(model.Order, orders)


@event.listens_for(model.Lesson, "load")
def receive_lesson_load(lesson: model.Lesson, _: object) -> None:
    """Initialise la liste d'événements quand un cours est chargé depuis la BDD."""
    lesson.events = []


@event.listens_for(model.Order, "load")
def receive_order_load(order: model.Order, _: object) -> None:
    order.events = []
