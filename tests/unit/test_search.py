"""
Tests unitaires du moteur de recherche.

Le prédicat est évalué en mémoire : on vérifie ici les règles
de correspondance, indépendamment de toute base de données.
"""

import pytest

from booking.domain.model import Lesson
from booking.domain.search import LessonPredicate, build_predicate, parse_number


def cours(subject="Mathématiques", location="Hendon", price=100, places=5) -> Lesson:
    return Lesson(subject, location, price, places, id=f"{subject}-{location}")


class TestBuildPredicate:
    @pytest.mark.parametrize("query", [None, "", "   ", "\t\n"])
    def test_requête_vide_ne_donne_pas_de_prédicat(self, query):
        assert build_predicate(query) is None

    def test_la_requête_est_nettoyée(self):
        assert build_predicate("  Math ") == LessonPredicate(text="Math", number=None)

    def test_requête_numérique(self):
        assert build_predicate("5") == LessonPredicate(text="5", number=5.0)

    @pytest.mark.parametrize("text, expected", [("12.5", 12.5), ("-3", -3.0), ("1e2", 100.0)])
    def test_parse_number(self, text, expected):
        assert parse_number(text) == expected

    @pytest.mark.parametrize("text", ["Math", "nan", "inf", "5 euros"])
    def test_parse_number_hors_nombres(self, text):
        assert parse_number(text) is None


class TestLessonPredicate:
    def test_sous_chaîne_du_sujet(self):
        assert build_predicate("Math").matches(cours(subject="Mathematics"))

    def test_insensible_à_la_casse(self):
        predicate = build_predicate("hENdon")
        assert predicate.matches(cours(location="Hendon"))

    def test_sous_chaîne_du_lieu(self):
        assert build_predicate("don").matches(cours(subject="Art", location="London"))

    def test_aucune_correspondance(self):
        assert not build_predicate("Musique").matches(cours())

    def test_nombre_correspond_au_prix_et_au_texte(self):
        predicate = build_predicate("5")
        assert predicate.matches(cours(subject="Art", price=5, places=1))
        assert predicate.matches(cours(subject="5-a-side", price=90, places=1))
        assert predicate.matches(cours(subject="Art", location="Barnet", price=90, places=5))
        assert not predicate.matches(cours(subject="Art", location="Barnet", price=90, places=1))

    def test_le_texte_n_est_pas_un_motif(self):
        assert not build_predicate("M.th").matches(cours(subject="Math"))
        assert build_predicate("C++").matches(cours(subject="Programmation C++"))
