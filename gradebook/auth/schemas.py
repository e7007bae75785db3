from typing import Dict, Optional
from uuid import UUID

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Identity handed to the grading services. Audit entries record name and id as given."""

    id: UUID
    school_id: UUID
    name: str
    role: str
    permissions: Dict[str, Dict[str, bool]] = {}
    academic_year: Optional[str] = None
