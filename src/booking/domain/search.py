"""
Moteur de recherche du catalogue.

Une requête texte libre est traduite en prédicat sur les cours :
- sous-chaîne (insensible à la casse) dans `subject` ou `location` ;
- si la requête est un nombre, égalité exacte sur `price` ou
  `available_space`, en plus de la recherche texte (union).

Le prédicat est indépendant de la persistance : il s'évalue en
mémoire (`matches`) et chaque repository le traduit dans son langage.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from booking.domain.model import Lesson


@dataclass(frozen=True)
class LessonPredicate:
    text: str
    number: Optional[float] = None

    def matches(self, lesson: Lesson) -> bool:
        needle = self.text.lower()
        if needle in (lesson.subject or "").lower():
            return True
        if needle in (lesson.location or "").lower():
            return True
        if self.number is not None:
            return lesson.price == self.number or lesson.available_space == self.number
        return False


def parse_number(text: str) -> Optional[float]:
    try:
        number = float(text)
    except ValueError:
        return None
    # nan / inf ne sont pas des recherches numériques exploitables
    if not math.isfinite(number):
        return None
    return number


def build_predicate(query: Optional[str]) -> Optional[LessonPredicate]:
    """
    Construit le prédicat pour une requête brute.

    Retourne None pour une requête vide ou composée d'espaces :
    l'appelant doit alors renvoyer une liste vide, pas tout le catalogue.
    """
    if query is None:
        return None
    text = query.strip()
    if not text:
        return None
    return LessonPredicate(text=text, number=parse_number(text))
