"""
Modèle de domaine pour le catalogue de cours et les commandes.

Le domaine modélise des cours (Lesson) dont les places disponibles
sont réservées par des commandes (Order). Un cours n'appartient pas
à une commande : une ligne de commande référence un cours par son id.
"""

from __future__ import annotations

import numbers
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from booking.domain import events
from booking.domain.errors import InsufficientCapacity, InvalidRequest

# Champs modifiables d'un cours (noms des attributs du domaine).
UPDATABLE_FIELDS = ("subject", "location", "price", "available_space", "icon")


def _is_integer(value: Any) -> bool:
    # bool est une sous-classe de int : on l'exclut explicitement
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


@dataclass(frozen=True)
class LessonUpdate:
    """
    Value Object décrivant une modification partielle d'un cours.

    `fields` contient des affectations absolues, `capacity_delta` un
    ajustement relatif (signé) des places disponibles. Les deux peuvent
    être combinés, sauf sur `available_space` : affecter et incrémenter
    le même champ dans une seule écriture est ambigu, donc refusé.
    """

    fields: dict[str, Any] = field(default_factory=dict)
    capacity_delta: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.fields and self.capacity_delta is None:
            raise InvalidRequest("Aucun champ de mise à jour valide fourni")
        unknown = set(self.fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise InvalidRequest(f"Champs non modifiables : {', '.join(sorted(unknown))}")
        if self.capacity_delta is not None and not _is_integer(self.capacity_delta):
            raise InvalidRequest("L'ajustement de places doit être un entier")
        if "available_space" in self.fields and self.capacity_delta is not None:
            raise InvalidRequest(
                "Impossible d'affecter et d'ajuster availableSpace dans la même requête"
            )
        for name in ("subject", "location"):
            if name in self.fields and not isinstance(self.fields[name], str):
                raise InvalidRequest(f"{name} doit être une chaîne")
        if "price" in self.fields:
            price = self.fields["price"]
            if not _is_number(price) or price < 0:
                raise InvalidRequest("price doit être un nombre positif ou nul")
        if "available_space" in self.fields:
            space = self.fields["available_space"]
            if not _is_integer(space) or space < 0:
                raise InvalidRequest("availableSpace doit être un entier positif ou nul")

    @property
    def changes_capacity(self) -> bool:
        return bool(self.capacity_delta) or "available_space" in self.fields


class Lesson:
    """
    Entité représentant un cours proposé à la réservation.

    L'identité est attribuée par le store à la création ; l'égalité
    et le hash reposent sur elle. `available_space` ne doit jamais
    devenir négatif.
    """

    def __init__(
        self,
        subject: str,
        location: str,
        price: float,
        available_space: int,
        icon: Any = None,
        id: Optional[str] = None,
    ):
        self.id = id
        self.subject = subject
        self.location = location
        self.price = price
        self.available_space = available_space
        self.icon = icon
        self.events: list[events.Event] = []

    def __repr__(self) -> str:
        return f"<Lesson {self.id} {self.subject!r}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Lesson):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @classmethod
    def create(
        cls,
        subject: Any,
        location: Any,
        price: Any,
        available_space: Any,
        icon: Any = None,
    ) -> Lesson:
        """Valide un nouveau cours avec les règles d'une modification complète."""
        LessonUpdate(
            fields=dict(
                subject=subject,
                location=location,
                price=price,
                available_space=available_space,
            )
        )
        return cls(subject, location, price, available_space, icon=icon)

    def can_apply(self, update: LessonUpdate) -> bool:
        if update.capacity_delta is None:
            return True
        return self.available_space + update.capacity_delta >= 0

    def apply(self, update: LessonUpdate) -> None:
        """Applique la modification en mémoire, sans émettre d'événement."""
        if not self.can_apply(update):
            raise InsufficientCapacity(str(self.id), -update.capacity_delta)
        for name, value in update.fields.items():
            setattr(self, name, value)
        if update.capacity_delta:
            self.available_space += update.capacity_delta

    def record_update(self, update: LessonUpdate) -> None:
        """
        Enregistre les événements d'une modification déjà appliquée.

        Appelé par le repository une fois l'écriture effectuée, quel
        que soit le mécanisme de persistance.
        """
        self.events.append(
            events.LessonUpdated(
                lesson_id=str(self.id),
                fields=tuple(sorted(update.fields)),
                capacity_delta=update.capacity_delta,
                available_space=self.available_space,
            )
        )
        if update.changes_capacity and self.available_space == 0:
            self.events.append(events.LessonSoldOut(lesson_id=str(self.id)))


@dataclass(frozen=True)
class OrderLine:
    """Value Object : une quantité demandée pour un cours donné."""

    lesson_id: str
    quantity: int


def parse_lines(lessons: Any) -> list[OrderLine]:
    """
    Convertit les lignes brutes d'une commande en OrderLine.

    Une ligne est un objet portant l'id du cours (`id`, ou `_id` tel
    qu'envoyé par le frontend) et une quantité (`qty` ou `quantity`,
    1 par défaut).
    """
    if not isinstance(lessons, list) or not lessons:
        raise InvalidRequest("La commande doit contenir au moins un cours")
    lines = []
    for item in lessons:
        if not isinstance(item, dict):
            raise InvalidRequest("Ligne de commande invalide")
        lesson_id = item.get("id", item.get("_id"))
        if lesson_id is None or str(lesson_id).strip() == "":
            raise InvalidRequest("Ligne de commande sans identifiant de cours")
        quantity = item.get("qty", item.get("quantity", 1))
        if not _is_integer(quantity) or quantity < 1:
            raise InvalidRequest(f"Quantité invalide pour le cours {lesson_id}")
        lines.append(OrderLine(lesson_id=str(lesson_id), quantity=quantity))
    return lines


def _parse_created_at(created_at: Any) -> datetime:
    if created_at is None or created_at == "":
        return datetime.now(timezone.utc)
    if isinstance(created_at, datetime):
        return created_at
    if isinstance(created_at, str):
        try:
            return datetime.fromisoformat(created_at)
        except ValueError:
            pass
    raise InvalidRequest("createdAt doit être une date ISO 8601")


class Order:
    """
    Commande d'un client.

    Les lignes (`lessons`) sont conservées telles que le client les a
    envoyées. Une commande est immuable une fois créée.
    """

    def __init__(
        self,
        name: str,
        phone: str,
        lessons: list[dict],
        created_at: datetime,
        id: Optional[str] = None,
    ):
        self.id = id
        self.name = name
        self.phone = phone
        self.lessons = lessons
        self.created_at = created_at
        self.events: list[events.Event] = []

    def __repr__(self) -> str:
        return f"<Order {self.id}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Order):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @classmethod
    def create(
        cls,
        name: Any,
        phone: Any,
        lessons: Any,
        created_at: Any = None,
    ) -> Order:
        """Valide une demande de commande. Lève InvalidRequest sans effet de bord."""
        if not isinstance(name, str) or not name.strip():
            raise InvalidRequest("Le nom du client est obligatoire")
        if not isinstance(phone, str) or not phone.strip():
            raise InvalidRequest("Le téléphone du client est obligatoire")
        parse_lines(lessons)
        return cls(
            name=name,
            phone=phone,
            lessons=lessons,
            created_at=_parse_created_at(created_at),
        )

    @property
    def lines(self) -> list[OrderLine]:
        return parse_lines(self.lessons)

    def confirm(self) -> None:
        """Marque la commande comme enregistrée (toutes les places sont réservées)."""
        self.events.append(
            events.OrderPlaced(
                order_id=str(self.id),
                lines=tuple(self.lines),
            )
        )
