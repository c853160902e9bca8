#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""Exception hierarchy for the factor model.

Per-date estimation problems derive from ``EstimationError`` and are
recoverable: the estimator records them and drops the date. Configuration and
schema problems are raised immediately to the caller.
"""


class ToranikoError(Exception):
    """Base class for all errors raised by this package."""


class EstimationError(ToranikoError):
    """A single cross-section could not be estimated."""


class RankDeficientError(EstimationError):
    """Design matrix is singular, ill-conditioned or under-determined."""


class InsufficientDataError(EstimationError):
    """Fewer observations than required for a window or statistic."""


class InvalidConfigError(ToranikoError, ValueError):
    """A configuration value is outside its valid domain."""


class SchemaMismatchError(ToranikoError, ValueError):
    """An input panel is missing a field or carries invalid values."""


class UnknownFactorError(ToranikoError, LookupError):
    """Registry lookup for a factor name that was never registered."""


class DuplicateFactorError(ToranikoError):
    """A factor name is already registered."""
