"""
Pattern Unit of Work.

Le Unit of Work (UoW) gère la notion de transaction atomique.
Il coordonne l'écriture en base de données et la collecte
des événements émis par les agrégats au cours de la transaction.

Le UoW agit comme un context manager :
    with uow:
        # ... opérations sur les repositories ...
        uow.commit()

Une commande à plusieurs lignes réserve toutes ses places et
s'enregistre dans le même UoW : si une ligne échoue, le rollback
annule aussi les réservations déjà faites.
"""

from __future__ import annotations

import abc
import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from booking.adapters import repository
from booking.domain.errors import StoreUnavailable

logger = logging.getLogger(__name__)


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def register_sqlite_functions(engine: Engine) -> None:
    """
    Remplace `lower()` de SQLite, limité à l'ASCII, par `str.lower`.

    La recherche en SQL compare alors les chaînes accentuées comme
    le prédicat en mémoire ("ÉVRY" contient "évry").
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _connection_record) -> None:
        dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)


def make_engine(database_uri: str) -> Engine:
    """Crée l'engine partagé par le processus (le seul état global)."""
    connect_args = {}
    if database_uri.startswith("sqlite"):
        # les requêtes Flask s'exécutent sur plusieurs threads
        connect_args = {"check_same_thread": False, "timeout": 30}
    # Pas de SERIALIZABLE : l'UPDATE conditionnel réévalue sa clause WHERE
    # après l'attente du verrou de ligne (READ COMMITTED suffit).
    engine = create_engine(database_uri, connect_args=connect_args)
    if engine.dialect.name == "sqlite":
        register_sqlite_functions(engine)
    return engine


class AbstractUnitOfWork(abc.ABC):
    """
    Interface abstraite du Unit of Work.

    Fournit les repositories `lessons` et `orders` et gère commit/rollback.
    Le rollback est automatique si commit() n'est pas appelé
    (grâce au __exit__ du context manager).
    """

    lessons: repository.AbstractLessonRepository
    orders: repository.AbstractOrderRepository

    def __enter__(self) -> AbstractUnitOfWork:
        return self

    def __exit__(self, *args: object) -> None:
        self.rollback()

    def commit(self) -> None:
        self._commit()

    def collect_new_events(self):
        """
        Collecte tous les événements émis par les agrégats vus
        pendant cette transaction, cours puis commandes.
        """
        for lesson in self.lessons.seen:
            while lesson.events:
                yield lesson.events.pop(0)
        for order in self.orders.seen:
            while order.events:
                yield order.events.pop(0)

    @abc.abstractmethod
    def _commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def rollback(self) -> None:
        raise NotImplementedError


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """
    Implémentation concrète du UoW avec SQLAlchemy.

    Crée une session à l'entrée du context manager,
    la ferme à la sortie. Rollback automatique si pas de commit.

    Toute erreur SQLAlchemy levée dans le bloc est convertie en
    StoreUnavailable : l'appelant ne voit que la taxonomie du domaine.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        # les agrégats retournés par les handlers restent lisibles après commit
        self.session: Session = self.session_factory(expire_on_commit=False)
        self.lessons = repository.SqlAlchemyLessonRepository(self.session)
        self.orders = repository.SqlAlchemyOrderRepository(self.session)
        return super().__enter__()

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            super().__exit__(exc_type, exc, tb)
        except SQLAlchemyError as rollback_error:
            logger.error("Échec du rollback : %s", rollback_error)
            raise StoreUnavailable("Base de données indisponible") from rollback_error
        finally:
            self.session.close()
        if exc_type is not None and issubclass(exc_type, SQLAlchemyError):
            logger.error("Erreur de persistance : %s", exc)
            raise StoreUnavailable("Base de données indisponible") from exc

    def _commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
