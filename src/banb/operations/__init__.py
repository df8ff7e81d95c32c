from banb.operations.gate import ConfirmationGate, OperationRecord  # noqa: F401
from banb.operations.parser import ParsedOperation, parse_operation  # noqa: F401
