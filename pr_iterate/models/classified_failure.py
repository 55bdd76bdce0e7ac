"""
Classified Failure Model
Pydantic model for a RawFailure after category assignment.
Priority is derived from the category (Security=1 … Unknown=6).
"""
from pydantic import BaseModel, ConfigDict

from pr_iterate.core.constants import FailureCategory


class ClassifiedFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw_check_name: str
    category: FailureCategory
    priority: int
    detail_text: str = ""
