"""
tools/registry.py

Static catalog of the account-data tools exposed over the protocol and offered
to the reasoning model. Defined once at import; identity is the tool name.
"""

from typing import Any, Dict, Iterable, List, Tuple

from pydantic import BaseModel, ConfigDict, Field

from banb.errors import UnknownToolError


class Tool(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    description: str
    input_schema: Dict[str, Any] = Field(alias="inputSchema")

    def wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


ONCHAIN_TOOL = "get_onchain_transactions"

TOOLS: Tuple[Tool, ...] = (
    Tool(
        name="get_investment_options",
        description="Get available investment options including Morpho vaults with current APR rates",
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    Tool(
        name="get_user_balance",
        description="Get the current user's wallet balance in USDC",
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    Tool(
        name="get_accounts",
        description="Get all accounts (wallets, bank accounts, investment accounts) for the current user",
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    Tool(
        name="get_recent_transactions",
        description="Get recent transactions from the database for the current user",
        inputSchema={
            "type": "object",
            "properties": {
                "limit": {
                    "type": "number",
                    "description": "Maximum number of transactions to return (default: 10)",
                    "minimum": 1,
                    "maximum": 50,
                    "default": 10,
                },
            },
            "required": [],
        },
    ),
    Tool(
        name="get_recipients",
        description="Get the list of saved recipients for the current user",
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    Tool(
        name="get_transaction_summary",
        description="Get a summary of transaction history with spending insights",
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    Tool(
        name=ONCHAIN_TOOL,
        description=(
            "Get blockchain transactions for the user's wallet directly from the Base network. "
            "ONLY use this if the user explicitly asks to check onchain or search the blockchain."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "limit": {
                    "type": "number",
                    "description": "Maximum number of transactions to return (default: 5)",
                    "minimum": 1,
                    "maximum": 20,
                    "default": 5,
                },
            },
            "required": [],
        },
    ),
)


class ToolRegistry:
    def __init__(self, tools: Iterable[Tool]) -> None:
        self._tools: Dict[str, Tool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool

    def list_tools(self) -> List[Tool]:
        return list(self._tools.values())

    def get(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def names(self) -> List[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


TOOL_REGISTRY = ToolRegistry(TOOLS)


def list_tools() -> List[Tool]:
    return TOOL_REGISTRY.list_tools()


def clamp_limit(tool: Tool, value: Any) -> int:
    """Coerce a `limit` argument into the bounds declared by the tool schema.

    Missing, unparseable or zero limits fall back to the default.
    """
    field = tool.input_schema.get("properties", {}).get("limit", {})
    default = int(field.get("default", 10))
    lo = int(field.get("minimum", 1))
    hi = int(field.get("maximum", default))
    if value is None or isinstance(value, bool):
        return default
    try:
        num = int(float(value))
    except (TypeError, ValueError):
        return default
    if num == 0:
        return default
    return max(lo, min(hi, num))
