from __future__ import annotations


class ResolutionError(Exception):
    pass


class EntityConsistencyError(ResolutionError):
    """A vector-search hit points at an id the primary store does not know.

    The vector index and the store have diverged; the run must stop.
    """

    def __init__(self, collection: str, entity_id: str):
        super().__init__(
            f"Id '{entity_id}' returned by the {collection} vector search does not exist in the store"
        )
        self.collection = collection
        self.entity_id = entity_id


class EntityRepositoryError(ResolutionError):
    def __init__(self, operation: str, reason: str):
        super().__init__(f"Entity repository error during {operation}: {reason}")
        self.operation = operation
        self.reason = reason


class UnknownEntityError(ResolutionError):
    def __init__(self, name: str):
        super().__init__(f"No resolved entity for name: {name!r}")
        self.name = name
