"""
Shared base models for pipeline entities.
"""

from typing import Any, Dict

from pydantic import BaseModel


class PatchModel(BaseModel):
    """
    Partial update payload.

    Every field is optional; a field that was not sent, or was sent as null,
    leaves the stored value unchanged.
    """

    def changes(self) -> Dict[str, Any]:
        """Return only the fields that carry a new value."""
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True, mode="json").items()
            if value is not None
        }
