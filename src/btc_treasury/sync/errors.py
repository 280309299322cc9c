from __future__ import annotations


class EntityNotFoundError(LookupError):
    """No entity exists for the requested slug."""

    def __init__(self, slug: str) -> None:
        super().__init__(f"Entity not found: {slug}")
        self.slug = slug
