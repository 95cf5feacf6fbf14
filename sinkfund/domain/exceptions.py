"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class UserNotFoundError(DomainException):
    """No user with the given id"""

    pass


class ObligationNotFoundError(DomainException):
    """No obligation with the given id"""

    pass


class InvalidEscalationRuleError(DomainException):
    """Escalation rule rejected at the edit boundary"""

    pass
