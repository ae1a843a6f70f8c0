"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class NotFoundError(DomainException):
    """Requested customer, receivable or approval request does not exist"""

    pass


class InvalidAmountError(DomainException):
    """Money amount is not a positive number of cents"""

    pass


class IllegalTransitionError(DomainException):
    """State machine move that is not in the transition table"""

    def __init__(self, entity: str, current: str, target: str):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"Illegal {entity} transition: {current} -> {target}")


class CreditBlockedError(DomainException):
    """Customer credit facility is blocked"""

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Credit facility is blocked for customer {customer_id}")


class CreditLimitExceededError(DomainException):
    """Debit would push the outstanding balance above the credit limit"""

    def __init__(self, customer_id: str, attempted_cents: int, available_cents: int, credit_limit_cents: int):
        self.customer_id = customer_id
        self.attempted_cents = attempted_cents
        self.available_cents = available_cents
        self.credit_limit_cents = credit_limit_cents
        super().__init__(
            f"Insufficient credit limit for customer {customer_id}. "
            f"Attempted balance: {attempted_cents}, available: {available_cents}"
        )


class CreditSalesDisabledError(DomainException):
    """Credit sales are switched off in the credit settings"""

    pass


class LimitBelowOutstandingError(DomainException):
    """Credit limit cannot be set below the outstanding balance"""

    def __init__(self, customer_id: str, requested_cents: int, outstanding_cents: int):
        self.customer_id = customer_id
        self.requested_cents = requested_cents
        self.outstanding_cents = outstanding_cents
        super().__init__(
            f"Cannot reduce credit limit of {customer_id} to {requested_cents} "
            f"below outstanding balance of {outstanding_cents}"
        )


class OverpaymentUnappliedError(DomainException):
    """Payment exceeds the total open balance of the customer"""

    def __init__(self, customer_id: str, amount_cents: int, unapplied_cents: int):
        self.customer_id = customer_id
        self.amount_cents = amount_cents
        self.unapplied_cents = unapplied_cents
        super().__init__(
            f"Payment of {amount_cents} for customer {customer_id} leaves "
            f"{unapplied_cents} unapplied"
        )


class BandConfigurationGapError(DomainException):
    """Approval bands do not cover the amount (or are not contiguous)"""

    def __init__(self, module: str, detail: str):
        self.module = module
        super().__init__(f"No approval band configured for {module}: {detail}")


class SelfApprovalForbiddenError(DomainException):
    """Submitter attempted to decide their own request"""

    pass


class SecondApproverNotIndependentError(SelfApprovalForbiddenError):
    """Dual approval sign-off given by the first approver or the submitter"""

    pass


class InsufficientApprovalAuthorityError(DomainException):
    """Decider's role ranks below the request's required role"""

    pass


class RoleSeparationViolationError(DomainException):
    """Actor would hold two conflicting duties on the same subject"""

    def __init__(self, rule: str, user_id: str, subject_id: str):
        self.rule = rule
        self.user_id = user_id
        self.subject_id = subject_id
        super().__init__(f"Role separation rule '{rule}' forbids {user_id} on {subject_id}")


class ConcurrentModificationError(DomainException):
    """Optimistic lock conflict on a customer or approval request"""

    pass


class CustomerAlreadyExistsError(DomainException):
    """A credit account is already open for this customer id"""

    pass


class DuplicateOriginReferenceError(DomainException):
    """Origin reference already backs a provisional or outstanding receivable"""

    def __init__(self, origin_ref: str):
        self.origin_ref = origin_ref
        super().__init__(f"Origin reference {origin_ref} already has a live credit transaction")
