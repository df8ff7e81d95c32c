"""
Structured intent extraction from the model's final answer.

Only payments are derived from free text, and only for the phrasing
"send $X to Name". Analysis and query operations come from UI-initiated flows.
"""

import re
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

OperationType = Literal["payment", "analysis", "query"]

PAYMENT_PATTERN = re.compile(r"send\s+\$?(\d+(?:\.\d{2})?)\s+to\s+(\w+)", re.IGNORECASE)


class ParsedOperation(BaseModel):
    type: OperationType
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def requires_confirmation(self) -> bool:
        return self.type == "payment"


def parse_operation(model_answer: Optional[str]) -> Optional[ParsedOperation]:
    if not model_answer:
        return None
    match = PAYMENT_PATTERN.search(model_answer)
    if match is None:
        return None
    return ParsedOperation(type="payment", data={"amount": match.group(1), "recipientName": match.group(2)})
