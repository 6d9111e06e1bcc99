"""
Configuration partagée pour les tests.

Le mapping ORM est démarré une seule fois pour toute la session de tests.
Cela permet aux tests d'intégration et e2e d'utiliser SQLAlchemy
sans interférer avec les tests unitaires.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from booking.adapters import orm
from booking.service_layer import unit_of_work


@pytest.fixture(scope="session", autouse=True)
def mappers():
    """Démarre le mapping ORM une fois pour toute la session."""
    orm.start_mappers()


@pytest.fixture
def sqlite_session_factory():
    """Fabrique de sessions sur une base SQLite en mémoire, tables créées."""
    engine = create_engine("sqlite:///:memory:")
    unit_of_work.register_sqlite_functions(engine)
    orm.metadata.create_all(engine)
    yield sessionmaker(bind=engine)
    engine.dispose()
