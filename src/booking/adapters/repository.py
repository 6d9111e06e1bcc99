"""
Pattern Repository.

Le repository fournit une abstraction sur la couche de persistance.
Il expose une interface de type collection (add, get, list) qui masque
les détails de l'accès aux données.

Deux repositories indépendants :
- le catalogue (`lessons`), seul à connaître la réservation atomique
  de places ;
- les commandes (`orders`), en ajout seul.
"""

from __future__ import annotations

import abc
import logging

from sqlalchemy import String, func, or_
from sqlalchemy import update as sql_update
from sqlalchemy.orm import Session

from booking.adapters import orm
from booking.domain import model
from booking.domain.errors import InsufficientCapacity, InvalidRequest, NotFound
from booking.domain.search import LessonPredicate

logger = logging.getLogger(__name__)


class AbstractLessonRepository(abc.ABC):
    """
    Interface abstraite du catalogue.

    Le pattern Template Method est utilisé : les méthodes publiques
    gèrent le tracking via `seen` et les invariants, puis délèguent
    aux méthodes abstraites préfixées _ que les sous-classes implémentent.
    """

    seen: set[model.Lesson]

    def __init__(self) -> None:
        # `seen` trace les cours modifiés pendant la transaction, ce qui
        # permet au Unit of Work de collecter leurs événements.
        self.seen: set[model.Lesson] = set()

    def add(self, lesson: model.Lesson) -> None:
        """Ajoute un cours au catalogue ; le store lui attribue son id."""
        self._add(lesson)

    def get(self, lesson_id: str) -> model.Lesson | None:
        return self._get(lesson_id)

    def list(self) -> list[model.Lesson]:
        """Tous les cours, dans l'ordre natif du store."""
        return self._list()

    def find(self, predicate: LessonPredicate) -> list[model.Lesson]:
        return self._find(predicate)

    def apply_update(self, lesson_id: str, update: model.LessonUpdate) -> model.Lesson:
        """
        Applique une modification en une seule écriture atomique.

        Lève NotFound si l'id ne correspond à aucun cours et
        InsufficientCapacity si les places passeraient sous zéro
        (rien n'est alors écrit). Retourne le cours après modification.
        """
        if not update.fields and update.capacity_delta is None:
            raise InvalidRequest("Aucun champ de mise à jour valide fourni")
        lesson = self._apply_update(lesson_id, update)
        if lesson is None:
            raise NotFound(f"Cours introuvable : {lesson_id}")
        lesson.record_update(update)
        self.seen.add(lesson)
        return lesson

    def reserve(self, lesson_id: str, quantity: int) -> model.Lesson:
        """Réserve `quantity` places (décrément conditionnel)."""
        return self.apply_update(lesson_id, model.LessonUpdate(capacity_delta=-quantity))

    @abc.abstractmethod
    def _add(self, lesson: model.Lesson) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def _get(self, lesson_id: str) -> model.Lesson | None:
        raise NotImplementedError

    @abc.abstractmethod
    def _list(self) -> list[model.Lesson]:
        raise NotImplementedError

    @abc.abstractmethod
    def _find(self, predicate: LessonPredicate) -> list[model.Lesson]:
        raise NotImplementedError

    @abc.abstractmethod
    def _apply_update(
        self, lesson_id: str, update: model.LessonUpdate
    ) -> model.Lesson | None:
        raise NotImplementedError


class AbstractOrderRepository(abc.ABC):
    """Interface abstraite des commandes (ajout et lecture seulement)."""

    seen: set[model.Order]

    def __init__(self) -> None:
        self.seen: set[model.Order] = set()

    def add(self, order: model.Order) -> None:
        """Enregistre la commande ; le store lui attribue son id."""
        self._add(order)
        self.seen.add(order)

    def get(self, order_id: str) -> model.Order | None:
        return self._get(order_id)

    @abc.abstractmethod
    def _add(self, order: model.Order) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def _get(self, order_id: str) -> model.Order | None:
        raise NotImplementedError


class SqlAlchemyLessonRepository(AbstractLessonRepository):
    """Implémentation concrète du catalogue avec SQLAlchemy."""

    def __init__(self, session: Session):
        super().__init__()
        self.session = session

    def _add(self, lesson: model.Lesson) -> None:
        self.session.add(lesson)
        # flush pour que la colonne par défaut renseigne l'id
        self.session.flush()

    def _get(self, lesson_id: str) -> model.Lesson | None:
        return self.session.get(model.Lesson, lesson_id)

    def _list(self) -> list[model.Lesson]:
        return self.session.query(model.Lesson).all()

    def _find(self, predicate: LessonPredicate) -> list[model.Lesson]:
        needle = predicate.text.lower()
        clauses = [
            func.lower(orm.lessons.c.subject, type_=String).contains(needle, autoescape=True),
            func.lower(orm.lessons.c.location, type_=String).contains(needle, autoescape=True),
        ]
        if predicate.number is not None:
            clauses.append(orm.lessons.c.price == predicate.number)
            clauses.append(orm.lessons.c.available_space == predicate.number)
        return self.session.query(model.Lesson).filter(or_(*clauses)).all()

    def _apply_update(
        self, lesson_id: str, update: model.LessonUpdate
    ) -> model.Lesson | None:
        """
        UPDATE conditionnel : la condition sur les places et l'écriture
        sont évaluées par la base dans la même instruction, ce qui
        sérialise les réservations concurrentes sur une même ligne.

        Selon le SGBD, rowcount compte les lignes trouvées ou les lignes
        modifiées. Il n'est lu que pour un décrément, qui modifie
        toujours la ligne qu'il atteint ; sinon on relit la ligne.
        """
        delta = update.capacity_delta
        values = dict(update.fields)
        stmt = sql_update(orm.lessons).where(orm.lessons.c.id == lesson_id)
        if delta is not None:
            new_space = orm.lessons.c.available_space + delta
            values["available_space"] = new_space
            if delta < 0:
                stmt = stmt.where(new_space >= 0)
        result = self.session.execute(stmt.values(**values))
        if delta is not None and delta < 0 and result.rowcount == 0:
            if self._get(lesson_id) is None:
                return None
            logger.info("Réservation refusée pour le cours %s (delta %s)", lesson_id, delta)
            raise InsufficientCapacity(lesson_id, -delta)
        return self.session.get(model.Lesson, lesson_id, populate_existing=True)


class SqlAlchemyOrderRepository(AbstractOrderRepository):
    """Implémentation concrète des commandes avec SQLAlchemy."""

    def __init__(self, session: Session):
        super().__init__()
        self.session = session

    def _add(self, order: model.Order) -> None:
        self.session.add(order)
        self.session.flush()

    def _get(self, order_id: str) -> model.Order | None:
        return self.session.get(model.Order, order_id)
