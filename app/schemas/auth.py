"""
Authenticated user context.
"""
from pydantic import BaseModel


class CurrentUser(BaseModel):
    """User behind a request; id is None for anonymous listeners"""
    id: str | None = None
    access_token: str | None = None

    @property
    def is_anonymous(self) -> bool:
        return self.id is None
