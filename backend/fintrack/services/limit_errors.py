"""Engine errors raised by limit validation.

A failed business rule is not an error: it comes back as a ``ValidationResult``
with ``is_valid=False``. These exceptions are reserved for inputs the engine
cannot evaluate at all.
"""

from __future__ import annotations


class LimitValidationError(Exception):
    code = "limit_validation_error"


class ConfigurationError(LimitValidationError):
    code = "configuration_error"


class PreferencesNotFoundError(ConfigurationError):
    code = "preferences_not_found"

    def __init__(self, user_id: int) -> None:
        super().__init__(f"User preferences not found for user {user_id}")
        self.user_id = user_id


class UnsupportedPeriodError(LimitValidationError):
    code = "unsupported_period"

    def __init__(self, period: object) -> None:
        super().__init__(f"Unsupported period type: {period}")
        self.period = period
