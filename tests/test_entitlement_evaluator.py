"""
Entitlement evaluator tests.

Pure function tests over plain objects: no database involved.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from streamgate.entitlements.evaluator import active_payments, evaluate, next_change_at, trial_is_live
from streamgate.entitlements.models import Entitlement

NOW = datetime(2025, 3, 20, 12, 0, 0, tzinfo=timezone.utc)


def _account(trial_expires_at=None, account_id="acct-1"):
    return SimpleNamespace(id=account_id, trial_expires_at=trial_expires_at)


def _payment(plan_kind, ends_at, state="completed"):
    return SimpleNamespace(plan_kind=plan_kind, state=state, subscription_ends_at=ends_at)


# ============================================================================
# TEST SUITE: TRIAL WINDOW
# ============================================================================

class TestTrialWindow:

    def test_fresh_account_in_trial_streams_with_ads(self):
        """A fresh account in its 24h trial streams with ads."""
        trial_end = NOW + timedelta(hours=24)
        result = evaluate(_account(trial_end), [], NOW)

        assert result.can_stream is True
        assert result.shows_ads is True
        assert result.is_premium is False
        assert result.is_in_trial is True
        assert result.active_until == trial_end

    def test_lapsed_trial_without_payment_cannot_stream(self):
        result = evaluate(_account(NOW - timedelta(seconds=1)), [], NOW)

        assert result.can_stream is False
        assert result.active_until is None
        assert result.is_in_trial is False

    def test_trial_expiring_exactly_now_is_not_live(self):
        assert trial_is_live(_account(NOW), NOW) is False

    def test_no_trial_and_no_payment_cannot_stream(self):
        result = evaluate(_account(None), [], NOW)

        assert result.can_stream is False
        assert result.shows_ads is True

    def test_naive_trial_expiry_is_treated_as_utc(self):
        naive = (NOW + timedelta(hours=1)).replace(tzinfo=None)
        result = evaluate(_account(naive), [], NOW)

        assert result.can_stream is True
        assert result.active_until == NOW + timedelta(hours=1)


# ============================================================================
# TEST SUITE: PAID WINDOWS
# ============================================================================

class TestPaidWindows:

    def test_yearly_plan_streams_with_ads(self):
        ends = NOW + timedelta(days=365)
        result = evaluate(_account(None), [_payment("yearly", ends)], NOW)

        assert result.can_stream is True
        assert result.shows_ads is True
        assert result.is_premium is False
        assert result.active_until == ends

    def test_daily_plan_is_ad_free_but_not_premium(self):
        result = evaluate(_account(None), [_payment("daily", NOW + timedelta(days=1))], NOW)

        assert result.can_stream is True
        assert result.shows_ads is False
        assert result.is_premium is False

    def test_premium_plan_removes_ads_even_during_trial(self):
        account = _account(NOW + timedelta(hours=5))
        result = evaluate(account, [_payment("premium_yearly", NOW + timedelta(days=30))], NOW)

        assert result.is_premium is True
        assert result.shows_ads is False

    def test_overlapping_yearly_and_daily_are_ad_free_until_daily_lapses(self):
        payments = [
            _payment("yearly", NOW + timedelta(days=365)),
            _payment("daily", NOW + timedelta(days=1)),
        ]

        during = evaluate(_account(None), payments, NOW)
        after = evaluate(_account(None), payments, NOW + timedelta(days=1, seconds=1))

        assert during.shows_ads is False
        assert after.shows_ads is True
        assert after.can_stream is True

    def test_active_until_is_latest_end_not_latest_created(self):
        later_end = NOW + timedelta(days=365)
        payments = [
            _payment("yearly", later_end),
            _payment("daily", NOW + timedelta(days=1)),
        ]
        result = evaluate(_account(None), payments, NOW)

        assert result.active_until == later_end

    def test_expired_payment_does_not_grant_access(self):
        result = evaluate(_account(None), [_payment("premium_yearly", NOW - timedelta(days=1))], NOW)

        assert result.can_stream is False
        assert result.is_premium is False
        assert result.shows_ads is True

    @pytest.mark.parametrize("state", ["pending", "failed"])
    def test_non_completed_rows_are_ignored(self, state):
        payments = [_payment("premium_yearly", NOW + timedelta(days=30), state=state)]
        result = evaluate(_account(None), payments, NOW)

        assert result.can_stream is False
        assert active_payments(payments, NOW) == []

    def test_payment_outlasting_trial_takes_precedence_for_active_until(self):
        ends = NOW + timedelta(days=1)
        result = evaluate(_account(NOW + timedelta(hours=2)), [_payment("daily", ends)], NOW)

        assert result.active_until == ends


# ============================================================================
# TEST SUITE: ENTITLEMENT VALUE
# ============================================================================

class TestEntitlementValue:

    def test_requires_account_id(self):
        with pytest.raises(ValueError):
            Entitlement(
                account_id=" ",
                can_stream=False,
                is_premium=False,
                shows_ads=True,
                active_until=None,
                is_in_trial=False,
                evaluated_at=NOW,
            )

    def test_requires_aware_evaluated_at(self):
        with pytest.raises(ValueError):
            Entitlement(
                account_id="acct-1",
                can_stream=False,
                is_premium=False,
                shows_ads=True,
                active_until=None,
                is_in_trial=False,
                evaluated_at=NOW.replace(tzinfo=None),
            )

    def test_to_dict_serializes_datetimes(self):
        result = evaluate(_account(NOW + timedelta(hours=1)), [], NOW)
        data = result.to_dict()

        assert data["evaluated_at"] == NOW.isoformat()
        assert data["active_until"] == (NOW + timedelta(hours=1)).isoformat()


# ============================================================================
# TEST SUITE: NEXT CHANGE
# ============================================================================

class TestNextChangeAt:

    def test_earliest_running_end_wins_over_latest(self):
        """Daily under yearly: the result changes when the daily window ends."""
        payments = [
            _payment("yearly", NOW + timedelta(days=365)),
            _payment("daily", NOW + timedelta(days=1)),
        ]

        assert next_change_at(_account(), payments, NOW) == NOW + timedelta(days=1)

    def test_live_trial_end_counts(self):
        payments = [_payment("premium_yearly", NOW + timedelta(days=365))]

        result = next_change_at(_account(NOW + timedelta(hours=3)), payments, NOW)

        assert result == NOW + timedelta(hours=3)

    def test_expired_and_unresolved_rows_are_ignored(self):
        payments = [
            _payment("daily", NOW - timedelta(hours=1)),
            _payment("daily", NOW + timedelta(hours=1), state="pending"),
        ]

        assert next_change_at(_account(NOW - timedelta(hours=2)), payments, NOW) is None
