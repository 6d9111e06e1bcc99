"""
Erreurs du domaine.

Chaque erreur porte un `kind` stable que les entrypoints utilisent
pour choisir le code de retour, sans dépendre du texte du message.
"""

from enum import Enum


class ErrorKind(Enum):
    """Catégories d'erreurs exposées aux appelants."""

    INVALID_REQUEST = "INVALID_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    INSUFFICIENT_CAPACITY = "INSUFFICIENT_CAPACITY"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


class BookingError(Exception):
    """Classe de base de toutes les erreurs remontées au client."""

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequest(BookingError):
    """Requête mal formée ou incomplète. Aucun effet de bord."""

    kind = ErrorKind.INVALID_REQUEST


class NotFound(BookingError):
    """L'entité référencée n'existe pas."""

    kind = ErrorKind.NOT_FOUND


class InsufficientCapacity(BookingError):
    """La réservation ferait passer les places disponibles sous zéro."""

    kind = ErrorKind.INSUFFICIENT_CAPACITY

    def __init__(self, lesson_id: str, requested: int) -> None:
        super().__init__(
            f"Places insuffisantes pour le cours {lesson_id} (demandé : {requested})"
        )
        self.lesson_id = lesson_id
        self.requested = requested


class StoreUnavailable(BookingError):
    """Échec de la couche de persistance (connexion, verrou, etc.)."""

    kind = ErrorKind.STORE_UNAVAILABLE
