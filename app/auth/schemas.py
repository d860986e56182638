from typing import Dict

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Authenticated caller and the school they are acting in. Every billing query is scoped to school_id."""

    id: int
    school_id: int
    role: str
    permissions: Dict[str, Dict[str, bool]] = {}
