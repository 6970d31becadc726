"""
Document backend snapshot model.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class DocumentSnapshot(BaseModel):
    """Point-in-time view of one document.

    ``data`` is None when the document does not exist. ``version`` starts at 1
    on creation and increases by one on every update (0 when absent).
    """

    collection: str
    key: str
    data: Optional[dict[str, Any]] = None
    version: int = Field(0, ge=0)

    @property
    def exists(self) -> bool:
        return self.data is not None
