"""Tests for session data models."""

from dataclasses import FrozenInstanceError
from decimal import Decimal

import pytest

from tickbot_app.config.defaults import SessionParams
from tickbot_app.models.trading import TradeResult
from tickbot_app.session.models import SessionConfig, SessionStatus, TradingSession


class TestTradingSession:
    """Test the session snapshot."""

    def test_active_statuses(self):
        """WAITING and TRADING are active, COMPLETED and ERROR are terminal."""
        assert TradingSession(SessionStatus.WAITING).is_active
        assert TradingSession(SessionStatus.TRADING).is_active
        assert TradingSession(SessionStatus.COMPLETED).is_terminal
        assert TradingSession(SessionStatus.ERROR).is_terminal

    def test_immutable(self):
        """Sessions cannot be mutated in place."""
        session = TradingSession(SessionStatus.TRADING)

        with pytest.raises(FrozenInstanceError):
            session.wins = 3

    def test_to_dict(self):
        """Decimals serialize as strings."""
        session = TradingSession(
            SessionStatus.TRADING,
            stake=Decimal("20.00"),
            current_profit=Decimal("-10"),
            wins=0,
            losses=1,
            last_result=TradeResult.LOSS,
        )

        data = session.to_dict()

        assert data["status"] == "trading"
        assert data["stake"] == "20.00"
        assert data["current_profit"] == "-10"
        assert data["last_result"] == "loss"
        assert session.total_trades == 1


class TestSessionConfig:
    """Test session configuration."""

    def test_from_params(self):
        """Floats from configuration become exact decimals."""
        config = SessionConfig.from_params(SessionParams(initial_stake=0.35, max_stake=50.0))

        assert config.initial_stake == Decimal("0.35")
        assert config.max_stake == Decimal("50.0")
        assert config.martingale_multiplier == Decimal("2.0")

    def test_rejects_non_positive_stake(self):
        """Stakes must be positive."""
        with pytest.raises(ValueError, match="initial_stake"):
            SessionConfig("R_100", "DIGITEVEN", Decimal("0"), Decimal("5"), Decimal("5"))

    def test_rejects_non_positive_thresholds(self):
        """Target and stop loss must be positive."""
        with pytest.raises(ValueError):
            SessionConfig("R_100", "DIGITEVEN", Decimal("1"), Decimal("0"), Decimal("5"))

    def test_barrier_contract_needs_prediction(self):
        """DIGITOVER without a prediction is rejected up front."""
        with pytest.raises(ValueError, match="prediction"):
            SessionConfig("R_100", "DIGITOVER", Decimal("1"), Decimal("5"), Decimal("5"))

    def test_placement_request(self):
        """The buy request carries stake, contract and duration."""
        config = SessionConfig("R_100", "DIGITUNDER", Decimal("1"), Decimal("5"), Decimal("5"), prediction=5)

        request = config.placement_request(Decimal("2.50"), "DIGITUNDER", 5)

        assert request == {
            "buy": 1,
            "price": 2.5,
            "parameters": {
                "amount": 2.5,
                "basis": "stake",
                "contract_type": "DIGITUNDER",
                "currency": "USD",
                "duration": 5,
                "duration_unit": "t",
                "symbol": "R_100",
                "barrier": "5",
            },
        }

    def test_placement_request_without_barrier(self):
        """Parity contracts carry no barrier."""
        config = SessionConfig("R_100", "DIGITEVEN", Decimal("1"), Decimal("5"), Decimal("5"))

        assert "barrier" not in config.placement_request(Decimal("1"), "DIGITODD")["parameters"]
