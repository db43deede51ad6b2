"""
Errors and warnings raised by the quasi-potential computations.

    - :class:`InvalidDomain` bad bounds or a start point outside / on the edge of the domain.
    - :class:`DegenerateGeometry` no well-posed local update could produce a finite value.
    - :class:`AlignmentError` local surfaces can't be reconciled at an unstable point.
    - :class:`NumericalWarning` results are returned but their accuracy is questionable.
"""


class QPotError(Exception):
    """Base class for all qpot errors."""


class InvalidDomain(QPotError, ValueError):
    pass


class DegenerateGeometry(QPotError, ArithmeticError):
    pass


class AlignmentError(QPotError, ValueError):
    pass


class NumericalWarning(UserWarning):
    pass
