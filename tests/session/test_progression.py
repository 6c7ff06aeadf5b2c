"""Tests for stake progression policies."""

from decimal import Decimal

import pytest

from tickbot_app.models.trading import TradeResult
from tickbot_app.session.models import SessionConfig
from tickbot_app.session.progression import FlatStake, Martingale, build_progression, round_stake


class TestRoundStake:
    """Test stake rounding."""

    def test_rounds_half_up_to_cents(self):
        """Stakes are rounded half up to two decimals."""
        assert round_stake(Decimal("0.125")) == Decimal("0.13")
        assert round_stake(Decimal("1")) == Decimal("1.00")


class TestFlatStake:
    """Test the flat policy."""

    def test_always_initial(self):
        """Results never change the stake."""
        policy = FlatStake(Decimal("0.35"))

        assert policy.next_stake(Decimal("5"), TradeResult.LOSS) == Decimal("0.35")
        assert policy.next_stake(Decimal("5"), TradeResult.WIN) == Decimal("0.35")


class TestMartingale:
    """Test the martingale policy."""

    def test_doubles_on_loss(self):
        """A loss multiplies the previous stake."""
        policy = Martingale(Decimal("10"))

        assert policy.next_stake(Decimal("10"), TradeResult.LOSS) == Decimal("20.00")
        assert policy.next_stake(Decimal("20"), TradeResult.LOSS) == Decimal("40.00")

    def test_resets_on_win(self):
        """A win returns to the initial stake."""
        policy = Martingale(Decimal("10"))

        assert policy.next_stake(Decimal("40"), TradeResult.WIN) == Decimal("10.00")

    def test_custom_multiplier_rounds(self):
        """Fractional multipliers are rounded to cents."""
        policy = Martingale(Decimal("0.35"), multiplier=Decimal("2.1"))

        assert policy.next_stake(Decimal("0.35"), TradeResult.LOSS) == Decimal("0.74")

    def test_ceiling_cap(self):
        """With on_ceiling=cap the stake stops at max_stake."""
        policy = Martingale(Decimal("10"), max_stake=Decimal("30"))

        assert policy.next_stake(Decimal("20"), TradeResult.LOSS) == Decimal("30.00")

    def test_ceiling_reset(self):
        """With on_ceiling=reset the stake returns to the initial stake."""
        policy = Martingale(Decimal("10"), max_stake=Decimal("30"), on_ceiling="reset")

        assert policy.next_stake(Decimal("20"), TradeResult.LOSS) == Decimal("10.00")

    def test_invalid_ceiling_mode(self):
        """Unknown ceiling modes are rejected."""
        with pytest.raises(ValueError):
            Martingale(Decimal("1"), on_ceiling="explode")


class TestBuildProgression:
    """Test policy selection from a session config."""

    def _config(self, **overrides):
        params = dict(symbol="R_100", contract_type="DIGITODD", initial_stake=Decimal("1"),
                      target_profit=Decimal("5"), stop_loss=Decimal("5"))
        params.update(overrides)
        return SessionConfig(**params)

    def test_martingale_by_default(self):
        """Sessions use martingale unless configured otherwise."""
        assert isinstance(build_progression(self._config()), Martingale)

    def test_flat(self):
        """progression=flat selects the flat policy."""
        assert isinstance(build_progression(self._config(progression="flat")), FlatStake)

    def test_unknown(self):
        """Unknown progression names raise."""
        with pytest.raises(ValueError, match="Unknown progression"):
            build_progression(self._config(progression="fibonacci"))
