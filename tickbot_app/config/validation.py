"""Configuration validation utilities."""

from dataclasses import dataclass
from typing import Any

_PROGRESSIONS = ("flat", "martingale")
_CEILING_MODES = ("cap", "reset")
_STRATEGIES = ("even_odd", "over_under", "differs")
_SINKS = ("logging", "stdout", "null")
_DURATION_UNITS = ("t", "s", "m", "h", "d")
_BARRIER_CONTRACTS = ("DIGITMATCH", "DIGITDIFF", "DIGITOVER", "DIGITUNDER")


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_session_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate trading session parameters."""
        errors = []

        for name in ("initial_stake", "target_profit", "stop_loss", "max_stake"):
            if name in params:
                value = params[name]
                if not _is_number(value) or value <= 0:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a positive number",
                        value=value
                    ))

        # Validate martingale_multiplier
        if "martingale_multiplier" in params:
            value = params["martingale_multiplier"]
            if not _is_number(value) or value < 1:
                errors.append(ValidationError(
                    field="martingale_multiplier",
                    message="Must be a number >= 1",
                    value=value
                ))

        # Validate progression
        if "progression" in params and params["progression"] not in _PROGRESSIONS:
            errors.append(ValidationError(
                field="progression",
                message=f"Must be one of {', '.join(_PROGRESSIONS)}",
                value=params["progression"]
            ))

        # Validate on_ceiling
        if "on_ceiling" in params and params["on_ceiling"] not in _CEILING_MODES:
            errors.append(ValidationError(
                field="on_ceiling",
                message=f"Must be one of {', '.join(_CEILING_MODES)}",
                value=params["on_ceiling"]
            ))

        # Validate duration
        if "duration" in params:
            value = params["duration"]
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                errors.append(ValidationError(
                    field="duration",
                    message="Must be a positive integer",
                    value=value
                ))

        # Validate duration_unit
        if "duration_unit" in params and params["duration_unit"] not in _DURATION_UNITS:
            errors.append(ValidationError(
                field="duration_unit",
                message=f"Must be one of {', '.join(_DURATION_UNITS)}",
                value=params["duration_unit"]
            ))

        # Validate cooldown_seconds
        if "cooldown_seconds" in params:
            value = params["cooldown_seconds"]
            if not _is_number(value) or value < 0:
                errors.append(ValidationError(
                    field="cooldown_seconds",
                    message="Must be a non-negative number",
                    value=value
                ))

        # Validate settlement_timeout_seconds
        if "settlement_timeout_seconds" in params:
            value = params["settlement_timeout_seconds"]
            if not _is_number(value) or value <= 0:
                errors.append(ValidationError(
                    field="settlement_timeout_seconds",
                    message="Must be a positive number",
                    value=value
                ))

        # Digit match/differs/over/under contracts need a prediction digit
        if params.get("contract_type") in _BARRIER_CONTRACTS:
            value = params.get("prediction")
            if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= 9:
                errors.append(ValidationError(
                    field="prediction",
                    message=f"Must be a digit 0-9 for {params['contract_type']}",
                    value=value
                ))

        if "initial_stake" in params and "max_stake" in params:
            stake, ceiling = params["initial_stake"], params["max_stake"]
            if _is_number(stake) and _is_number(ceiling) and stake > ceiling:
                errors.append(ValidationError(
                    field="max_stake",
                    message="Must be >= initial_stake",
                    value=ceiling
                ))

        return errors

    @staticmethod
    def validate_backoff_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate reconnect backoff parameters."""
        errors = []

        for name in ("base_seconds", "cap_seconds"):
            if name in params:
                value = params[name]
                if not _is_number(value) or value <= 0:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a positive number",
                        value=value
                    ))

        # Validate multiplier
        if "multiplier" in params:
            value = params["multiplier"]
            if not _is_number(value) or value < 1:
                errors.append(ValidationError(
                    field="multiplier",
                    message="Must be a number >= 1",
                    value=value
                ))

        # Validate jitter_ratio
        if "jitter_ratio" in params:
            value = params["jitter_ratio"]
            if not _is_number(value) or not 0 <= value < 1:
                errors.append(ValidationError(
                    field="jitter_ratio",
                    message="Must be a number between 0 and 1",
                    value=value
                ))

        # Validate max_retries
        if params.get("max_retries") is not None:
            value = params["max_retries"]
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                errors.append(ValidationError(
                    field="max_retries",
                    message="Must be a positive integer or null",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_heartbeat_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate heartbeat parameters."""
        errors = []

        for name in ("interval_seconds", "timeout_seconds"):
            if name in params:
                value = params[name]
                if not _is_number(value) or value <= 0:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a positive number",
                        value=value
                    ))

        # Validate max_missed
        if "max_missed" in params:
            value = params["max_missed"]
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                errors.append(ValidationError(
                    field="max_missed",
                    message="Must be a positive integer",
                    value=value
                ))

        interval = params.get("interval_seconds")
        timeout = params.get("timeout_seconds")
        if _is_number(interval) and _is_number(timeout) and timeout >= interval:
            errors.append(ValidationError(
                field="timeout_seconds",
                message="Must be shorter than interval_seconds",
                value=timeout
            ))

        return errors

    @staticmethod
    def validate_aggregator_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate rolling window parameters."""
        errors = []

        if "window_size" in params:
            value = params["window_size"]
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                errors.append(ValidationError(
                    field="window_size",
                    message="Must be a positive integer",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_strategy_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate strategy parameters."""
        errors = []

        if "name" in params and params["name"] not in _STRATEGIES:
            errors.append(ValidationError(
                field="name",
                message=f"Must be one of {', '.join(_STRATEGIES)}",
                value=params["name"]
            ))

        # Validate bias_pct
        if "bias_pct" in params:
            value = params["bias_pct"]
            if not _is_number(value) or not 50 <= value <= 100:
                errors.append(ValidationError(
                    field="bias_pct",
                    message="Must be a percentage between 50 and 100",
                    value=value
                ))

        # Validate barrier
        if "barrier" in params:
            value = params["barrier"]
            if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= 8:
                errors.append(ValidationError(
                    field="barrier",
                    message="Must be a digit between 0 and 8",
                    value=value
                ))

        # Validate differs_max_pct
        if "differs_max_pct" in params:
            value = params["differs_max_pct"]
            if not _is_number(value) or not 0 < value < 10:
                errors.append(ValidationError(
                    field="differs_max_pct",
                    message="Must be a percentage between 0 and 10 (exclusive)",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_delivery_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate notification sink parameters."""
        errors = []

        if "sink" in params and params["sink"] not in _SINKS:
            errors.append(ValidationError(
                field="sink",
                message=f"Must be one of {', '.join(_SINKS)}",
                value=params["sink"]
            ))

        if "format" in params and params["format"] not in ("json", "pretty"):
            errors.append(ValidationError(
                field="format",
                message="Must be json or pretty",
                value=params["format"]
            ))

        if "snapshot_every" in params:
            value = params["snapshot_every"]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                errors.append(ValidationError(
                    field="snapshot_every",
                    message="Must be a non-negative integer",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ValidationError]:
        """Validate complete configuration."""
        errors = []

        if "session" in config:
            errors.extend(ConfigValidator.validate_session_params(config["session"]))

        if "backoff" in config:
            errors.extend(ConfigValidator.validate_backoff_params(config["backoff"]))

        if "heartbeat" in config:
            errors.extend(ConfigValidator.validate_heartbeat_params(config["heartbeat"]))

        if "aggregator" in config:
            errors.extend(ConfigValidator.validate_aggregator_params(config["aggregator"]))

        if "strategy" in config:
            errors.extend(ConfigValidator.validate_strategy_params(config["strategy"]))

        if "delivery" in config:
            errors.extend(ConfigValidator.validate_delivery_params(config["delivery"]))

        return errors
