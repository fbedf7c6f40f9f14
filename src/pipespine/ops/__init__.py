"""
Operations layer: the functions both surfaces (CLI and API) call.

Every operation takes a :class:`QueryContext` first and returns an
:class:`OperationResult`; none of them raise for query-level failures.
"""

from pipespine.ops.context import QueryContext
from pipespine.ops.health import check_health, list_pipes
from pipespine.ops.query import find_variable_values, run_batch, run_query
from pipespine.ops.responses import HealthStatus, VariableValues
from pipespine.ops.result import OperationError, OperationResult

__all__ = [
    "HealthStatus",
    "OperationError",
    "OperationResult",
    "QueryContext",
    "VariableValues",
    "check_health",
    "find_variable_values",
    "list_pipes",
    "run_batch",
    "run_query",
]
