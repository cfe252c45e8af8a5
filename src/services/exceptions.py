"""Shared exceptions for service layer operations."""
from collections.abc import Iterable


class AssociationError(Exception):
    """
    Base exception for association synchronization failures.

    Whenever one of these is raised, the synchronization it came from has been
    rolled back and the previous association set is still in place.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)


class AssociationValidationError(AssociationError):
    """Raised when the relation name or a related id is malformed."""

    def __init__(self, message: str, value: object = None) -> None:
        self.value = value
        super().__init__(message)


class AssociationReferenceError(AssociationError):
    """Raised when the owner or a related record does not exist."""


class OwnerNotFoundError(AssociationReferenceError):
    """Raised when the owning record of a relation does not exist."""

    def __init__(self, relation: str, owner_id: int) -> None:
        self.relation = relation
        self.owner_id = owner_id
        super().__init__(f"Owner {owner_id} not found for relation '{relation}'")


class RelatedNotFoundError(AssociationReferenceError):
    """Raised when one or more related ids do not exist."""

    def __init__(self, relation: str, missing_ids: Iterable[int]) -> None:
        self.relation = relation
        self.missing_ids = sorted(missing_ids)
        ids = ", ".join(str(i) for i in self.missing_ids)
        super().__init__(f"Unknown related id(s) for relation '{relation}': {ids}")


class AssociationConflictError(AssociationError):
    """Raised when the store detects a concurrent, incompatible mutation."""

    def __init__(self, relation: str, owner_id: int, reason: str) -> None:
        self.relation = relation
        self.owner_id = owner_id
        self.reason = reason
        super().__init__(
            f"Conflicting update on relation '{relation}' for owner {owner_id}: {reason}",
        )


class AssociationStorageError(AssociationError):
    """Raised on persistence failures that are not conflicts (e.g. connectivity)."""

    def __init__(self, relation: str, owner_id: int) -> None:
        self.relation = relation
        self.owner_id = owner_id
        super().__init__(
            f"Storage failure while synchronizing relation '{relation}' for owner {owner_id}",
        )


class GameNotFoundError(Exception):
    """Raised when a game is not found."""

    def __init__(self, game_id: int) -> None:
        self.game_id = game_id
        super().__init__(f"Game {game_id} not found")


class PublisherNotFoundError(Exception):
    """Raised when a publisher is not found."""

    def __init__(self, publisher_id: int) -> None:
        self.publisher_id = publisher_id
        super().__init__(f"Publisher {publisher_id} not found")
