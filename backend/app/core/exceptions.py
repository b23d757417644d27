"""
Domain exceptions for the loan portfolio data mart.

Database errors (sqlalchemy.exc.IntegrityError and friends) are not swallowed:
the loader helpers re-raise them as one of the types below, chained with
``raise ... from``, so the original constraint message stays available.
"""


class MartError(Exception):
    """Base exception for all data mart errors."""
    pass


# =============================================================================
# Load Errors
# =============================================================================

class LoadError(MartError):
    """Base exception for dimension/fact load errors."""
    pass


class UnknownDimensionMemberError(LoadError):
    """Raised when a natural key does not resolve to a dimension row."""

    def __init__(self, dimension: str, natural_key: str, value):
        self.dimension = dimension
        self.natural_key = natural_key
        self.value = value
        message = (
            f"No {dimension} row for {natural_key}={value!r}.\n"
            f"Load the dimension member before loading facts that reference it."
        )
        super().__init__(message)


class GrainViolationError(LoadError):
    """Raised when a fact row duplicates an existing row at the table's grain."""

    def __init__(self, table: str, grain: dict):
        self.table = table
        self.grain = grain
        keys = ", ".join(f"{k}={v!r}" for k, v in grain.items())
        message = (
            f"Duplicate {table} row at grain ({keys}).\n"
            f"Snapshots are append-only; each (loan, date) may be loaded once."
        )
        super().__init__(message)


class PaymentComponentMismatchError(LoadError):
    """Raised when principal + interest + charges does not equal the payment amount."""

    def __init__(self, txn_reference, payment_amount, component_total, tolerance):
        self.txn_reference = txn_reference
        self.payment_amount = payment_amount
        self.component_total = component_total
        self.tolerance = tolerance
        message = (
            f"Payment {txn_reference!r}: components sum to {component_total}, "
            f"payment_amount is {payment_amount} (tolerance {tolerance})."
        )
        super().__init__(message)


class SCDPolicyError(LoadError):
    """Raised when an unknown slowly-changing-dimension policy is requested."""

    def __init__(self, policy: str, available_policies: list):
        self.policy = policy
        self.available_policies = available_policies
        message = (
            f"Unknown SCD policy: '{policy}'.\n"
            f"Available policies: {available_policies}"
        )
        super().__init__(message)


class CustomerVersionConflictError(LoadError):
    """Raised when a type2 customer change cannot open a new version at as_of."""

    def __init__(self, customer_id: str, as_of, current_effective_from):
        self.customer_id = customer_id
        self.as_of = as_of
        self.current_effective_from = current_effective_from
        message = (
            f"Cannot version customer {customer_id!r} as of {as_of}: "
            f"current version is effective from {current_effective_from}.\n"
            f"Changes must be loaded in effective-date order."
        )
        super().__init__(message)


# =============================================================================
# Integrity Errors
# =============================================================================

class ImmutableRowError(MartError):
    """Raised when an append-only row is updated or deleted through the ORM."""

    def __init__(self, table: str, operation: str):
        self.table = table
        self.operation = operation
        message = f"{table} rows are append-only; {operation} is not allowed."
        super().__init__(message)


class InvalidDateKeyError(MartError):
    """Raised when an integer is not a valid YYYYMMDD calendar date key."""

    def __init__(self, date_key):
        self.date_key = date_key
        super().__init__(f"Invalid date_key {date_key!r}: expected YYYYMMDD of a real calendar date.")
