"""Domain errors raised by the splitting core and the spend lifecycle.

All of them are raised before any state is written, so callers can fix the
input and retry.
"""

INVALID_AMOUNT = "InvalidAmount"
EMPTY_ASSIGNMENT_SET = "EmptyAssignmentSet"
DUPLICATE_ASSIGNEE = "DuplicateAssignee"
RECONCILIATION_FAILED = "ReconciliationFailed"
SPEND_NOT_OPEN = "SpendNotOpen"


class TripSplitError(Exception):
    kind = "TripSplitError"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TripSplitError):
    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind


class ReconciliationFailed(TripSplitError):
    kind = RECONCILIATION_FAILED

    def __init__(self, normalized_amount: int, assigned_total: int, tolerance: int):
        percent = (assigned_total * 100 / normalized_amount) if normalized_amount else 0
        super().__init__(
            f"Cannot finalize: assignments total {assigned_total} of {normalized_amount} "
            f"({percent:.1f}%). Use force=true to override."
        )
        self.normalized_amount = normalized_amount
        self.assigned_total = assigned_total
        self.tolerance = tolerance


class SpendNotOpen(TripSplitError):
    kind = SPEND_NOT_OPEN
    status_code = 409

    def __init__(self, spend_id: str, action: str = "modify"):
        super().__init__(f"Cannot {action} closed spend {spend_id}. Spend is locked.")
        self.spend_id = spend_id
