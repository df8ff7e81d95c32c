"""
Operation Policy
Decides which confirmation steps an AI-derived operation needs before it runs
"""

from enum import Enum
from typing import Any, Dict


class RiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class OperationPolicy:
    """
    Maps operation types to the verification they require
    """

    def __init__(self):
        self.risk_rules = {
            "query": RiskLevel.LOW,
            "analysis": RiskLevel.LOW,
            "payment": RiskLevel.HIGH,
        }

    def evaluate(self, operation_type: str) -> Dict[str, Any]:
        risk_level = self.risk_rules.get(operation_type, RiskLevel.MEDIUM)

        result = {
            "risk_level": risk_level.value,
            "requires_confirmation": False,
            "requires_acknowledgement": False,
        }

        # money-moving operations need an explicit confirm plus the irreversibility acknowledgement
        if risk_level in (RiskLevel.HIGH, RiskLevel.MEDIUM):
            result["requires_confirmation"] = True
        if risk_level is RiskLevel.HIGH:
            result["requires_acknowledgement"] = True

        return result
