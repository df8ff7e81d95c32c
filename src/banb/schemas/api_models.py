from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, StrictBool, StrictStr


class ChatContext(BaseModel):
    profileId: Optional[str] = None
    includeBalance: bool = False
    includeTransactions: bool = False
    includeRecipients: bool = False


class ChatRequest(BaseModel):
    message: StrictStr = Field(min_length=1)
    context: ChatContext = Field(default_factory=ChatContext)


class ChatResponse(BaseModel):
    success: bool
    response: Optional[str] = None
    operation: Optional[Dict[str, Any]] = None
    operationId: Optional[str] = None
    fallback: bool = False
    message: Optional[str] = None


class ExecuteRequest(BaseModel):
    operationId: StrictStr
    profileId: Optional[str] = None
    confirmed: StrictBool
    acknowledgeRisk: bool = False


class RejectRequest(BaseModel):
    operationId: StrictStr
    profileId: Optional[str] = None


class DirectOperationRequest(BaseModel):
    profileId: Optional[str] = None
    type: Literal["analysis", "query"]
    data: Dict[str, Any] = Field(default_factory=dict)
    message: Optional[str] = None
