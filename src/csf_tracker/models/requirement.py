"""
Framework requirement model.

A requirement is one implementation example of a framework subcategory, e.g.
``GV.OC-01 Ex1`` in NIST CSF 2.0. Requirements are reference data: the only
user-editable field is ``in_scope``.
"""

import re
from typing import Optional

from pydantic import BaseModel, model_validator

CATEGORY_ID_PATTERN = re.compile(r"\(([^)]+)\)")


def derive_category_id(category: Optional[str]) -> str:
    """Extract ``GV.OC`` from ``Organizational Context (GV.OC)``."""
    if not category:
        return ''
    match = CATEGORY_ID_PATTERN.search(category)
    return match.group(1).strip() if match else ''


class Requirement(BaseModel):
    """Framework requirement (implementation example)."""
    id: str
    framework_id: str
    function: str = ''
    function_description: str = ''
    category: str = ''
    category_description: str = ''
    category_id: str = ''
    subcategory_id: str = ''
    subcategory_description: str = ''
    implementation_example: str = ''
    in_scope: bool = False

    @model_validator(mode='after')
    def _fill_category_id(self) -> 'Requirement':
        if not self.category_id:
            self.category_id = derive_category_id(self.category)
        return self
