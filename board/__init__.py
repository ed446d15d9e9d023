# Board client: optimistic drag-and-drop on top of the task board API
#
# Components:
#   api.py        - httpx client for the /tasks endpoints
#   columns.py    - column derivation and card ordering
#   reconciler.py - optimistic update / rollback state machine

from board.api import BoardApiClient, BoardRequestError
from board.columns import BoardColumn, group_columns
from board.reconciler import BoardReconciler, CardState

__all__ = [
    "BoardApiClient",
    "BoardRequestError",
    "BoardColumn",
    "group_columns",
    "BoardReconciler",
    "CardState",
]
