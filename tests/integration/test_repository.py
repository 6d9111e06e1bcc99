"""
Tests d'intégration des repositories avec SQLite en mémoire.

Ces tests vérifient que le mapping ORM et les requêtes SQL
respectent les mêmes règles que le domaine :
- sauvegarder et recharger un cours, id attribué par le store
- recherche texte/numérique traduite en SQL
- mise à jour conditionnelle atomique des places
"""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.sql.expression import Update

from booking.adapters import repository
from booking.domain import events
from booking.domain.errors import InsufficientCapacity, InvalidRequest, NotFound
from booking.domain.model import Lesson, LessonUpdate, Order
from booking.domain.search import build_predicate


def ajouter_cours(session, **attributs) -> str:
    valeurs = dict(subject="Mathématiques", location="Hendon", price=100, available_space=5)
    valeurs.update(attributs)
    lesson = Lesson(**valeurs)
    repository.SqlAlchemyLessonRepository(session).add(lesson)
    session.commit()
    return lesson.id


def places(session, lesson_id: str) -> int:
    [[value]] = session.execute(
        text("SELECT available_space FROM lesson WHERE id = :id"), dict(id=lesson_id)
    )
    return value


class TestSqlAlchemyLessonRepository:
    def test_sauvegarder_et_recharger_un_cours(self, sqlite_session_factory):
        session = sqlite_session_factory()
        lesson_id = ajouter_cours(session, icon="math.png")

        rechargé = repository.SqlAlchemyLessonRepository(sqlite_session_factory()).get(lesson_id)

        assert isinstance(lesson_id, str) and lesson_id
        assert rechargé.subject == "Mathématiques"
        assert rechargé.available_space == 5
        assert rechargé.icon == "math.png"
        assert rechargé.events == []

    def test_get_retourne_none_si_id_inexistant(self, sqlite_session_factory):
        repo = repository.SqlAlchemyLessonRepository(sqlite_session_factory())
        assert repo.get("inexistant") is None

    def test_list(self, sqlite_session_factory):
        session = sqlite_session_factory()
        ids = {ajouter_cours(session), ajouter_cours(session, subject="Art")}

        repo = repository.SqlAlchemyLessonRepository(sqlite_session_factory())

        assert {lesson.id for lesson in repo.list()} == ids

    def test_find_texte_et_nombre(self, sqlite_session_factory):
        session = sqlite_session_factory()
        prix_5 = ajouter_cours(session, subject="Art", location="Barnet", price=5, available_space=1)
        football = ajouter_cours(session, subject="5-a-side", location="Barnet", price=90)
        math = ajouter_cours(session, subject="Mathematics", location="Hendon", price=90, available_space=2)
        musique = ajouter_cours(session, subject="École de musique", location="ÉVRY", price=40, available_space=3)

        repo = repository.SqlAlchemyLessonRepository(sqlite_session_factory())

        assert {l.id for l in repo.find(build_predicate("5"))} == {prix_5, football}
        assert {l.id for l in repo.find(build_predicate("MATH"))} == {math}
        assert {l.id for l in repo.find(build_predicate("barnet"))} == {prix_5, football}
        assert {l.id for l in repo.find(build_predicate("2"))} == {math}
        assert {l.id for l in repo.find(build_predicate("École"))} == {musique}
        assert {l.id for l in repo.find(build_predicate("évry"))} == {musique}
        assert {l.id for l in repo.find(build_predicate("ÉCOLE DE"))} == {musique}

    def test_find_échappe_les_jokers_sql(self, sqlite_session_factory):
        session = sqlite_session_factory()
        ajouter_cours(session, subject="Mathématiques")
        remise = ajouter_cours(session, subject="Remise 100%")

        repo = repository.SqlAlchemyLessonRepository(sqlite_session_factory())

        assert repo.find(build_predicate("%")) == [repo.get(remise)]
        assert repo.find(build_predicate("_")) == []

    def test_lectures_sans_effet_de_bord(self, sqlite_session_factory):
        session = sqlite_session_factory()
        lesson_id = ajouter_cours(session, available_space=3)
        repo = repository.SqlAlchemyLessonRepository(session)

        repo.get(lesson_id)
        repo.list()
        repo.find(build_predicate("Math"))
        session.commit()

        assert places(sqlite_session_factory(), lesson_id) == 3
        assert repo.seen == set()

    def test_apply_update_retourne_le_cours_modifié(self, sqlite_session_factory):
        session = sqlite_session_factory()
        lesson_id = ajouter_cours(session, available_space=3)
        repo = repository.SqlAlchemyLessonRepository(session)
        repo.get(lesson_id)  # déjà dans l'identity map

        lesson = repo.apply_update(lesson_id, LessonUpdate(fields={"subject": "Art"}, capacity_delta=-2))
        session.commit()

        assert lesson.subject == "Art"
        assert lesson.available_space == 1
        assert lesson in repo.seen
        assert isinstance(lesson.events[0], events.LessonUpdated)
        assert places(sqlite_session_factory(), lesson_id) == 1

    def test_apply_update_sans_delta(self, sqlite_session_factory):
        session = sqlite_session_factory()
        lesson_id = ajouter_cours(session, available_space=3)
        repo = repository.SqlAlchemyLessonRepository(session)

        lesson = repo.apply_update(lesson_id, LessonUpdate(fields={"subject": "Art"}, capacity_delta=0))

        assert lesson.subject == "Art"
        assert lesson.available_space == 3

    def test_réservation_excessive_refusée_sans_écriture(self, sqlite_session_factory):
        session = sqlite_session_factory()
        lesson_id = ajouter_cours(session, available_space=1)
        repo = repository.SqlAlchemyLessonRepository(session)

        with pytest.raises(InsufficientCapacity):
            repo.reserve(lesson_id, 2)
        session.commit()

        assert places(sqlite_session_factory(), lesson_id) == 1
        assert repo.seen == set()

    def test_réserver_la_dernière_place(self, sqlite_session_factory):
        session = sqlite_session_factory()
        lesson_id = ajouter_cours(session, available_space=1)
        repo = repository.SqlAlchemyLessonRepository(session)

        lesson = repo.reserve(lesson_id, 1)

        assert lesson.available_space == 0
        assert events.LessonSoldOut(lesson_id=lesson_id) in lesson.events

    @pytest.mark.parametrize(
        "update",
        [LessonUpdate(fields={"subject": "Art"}), LessonUpdate(capacity_delta=-1)],
    )
    def test_apply_update_id_inconnu(self, sqlite_session_factory, update):
        repo = repository.SqlAlchemyLessonRepository(sqlite_session_factory())

        with pytest.raises(NotFound):
            repo.apply_update("inexistant", update)

    def test_affecter_la_valeur_actuelle(self, sqlite_session_factory):
        session = sqlite_session_factory()
        lesson_id = ajouter_cours(session, subject="Art")
        repo = repository.SqlAlchemyLessonRepository(session)

        lesson = repo.apply_update(lesson_id, LessonUpdate(fields={"subject": "Art"}))

        assert lesson.id == lesson_id
        assert lesson.subject == "Art"

    @pytest.mark.parametrize(
        "update",
        [LessonUpdate(fields={"subject": "Art"}), LessonUpdate(capacity_delta=0)],
    )
    def test_ligne_trouvée_mais_non_modifiée(self, sqlite_session_factory, monkeypatch, update):
        # un SGBD qui compte les lignes modifiées renvoie rowcount = 0 ici
        session = sqlite_session_factory()
        lesson_id = ajouter_cours(session, subject="Art", available_space=3)
        repo = repository.SqlAlchemyLessonRepository(session)
        execute = session.execute

        class RésultatSansModification:
            rowcount = 0

        def execute_sans_modification(statement, *args, **kwargs):
            result = execute(statement, *args, **kwargs)
            if isinstance(statement, Update):
                return RésultatSansModification()
            return result

        monkeypatch.setattr(session, "execute", execute_sans_modification)

        lesson = repo.apply_update(lesson_id, update)

        assert lesson.id == lesson_id
        assert lesson.available_space == 3

    def test_contraintes_du_schéma(self, sqlite_session_factory):
        session = sqlite_session_factory()

        with pytest.raises(IntegrityError):
            ajouter_cours(session, available_space=-1)
        session.rollback()
        with pytest.raises(IntegrityError):
            ajouter_cours(session, price=-5)

    def test_apply_update_vide_refusé(self, sqlite_session_factory):
        session = sqlite_session_factory()
        lesson_id = ajouter_cours(session)
        repo = repository.SqlAlchemyLessonRepository(session)
        # contourne la validation du value object
        update = object.__new__(LessonUpdate)
        object.__setattr__(update, "fields", {})
        object.__setattr__(update, "capacity_delta", None)

        with pytest.raises(InvalidRequest):
            repo.apply_update(lesson_id, update)


class TestSqlAlchemyOrderRepository:
    def test_sauvegarder_et_recharger_une_commande(self, sqlite_session_factory):
        session = sqlite_session_factory()
        repo = repository.SqlAlchemyOrderRepository(session)
        lessons = [{"_id": "L1", "qty": 2, "subject": "Maths"}]
        order = Order.create("A", "0600", lessons, created_at="2024-03-01T10:00:00")

        repo.add(order)
        session.commit()

        rechargée = repository.SqlAlchemyOrderRepository(sqlite_session_factory()).get(order.id)
        assert rechargée.name == "A"
        assert rechargée.lessons == lessons
        assert rechargée.created_at.year == 2024
        assert order in repo.seen
