"""User profile lifecycle: account creation, demo expiry and identity review."""

from __future__ import annotations

import random
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from coinledger.ledger import paths
from coinledger.ledger.models import (
    AccountType,
    KycStatus,
    Notification,
    NotificationKind,
    UserProfile,
)
from coinledger.ledger.store import AccountStore

AVATAR_URL = "https://api.dicebear.com/7.x/avataaars/svg?seed={uid}"

KYC_TRANSITIONS = {
    KycStatus.NONE: {KycStatus.PENDING},
    KycStatus.REJECTED: {KycStatus.PENDING},
    KycStatus.PENDING: {KycStatus.APPROVED, KycStatus.REJECTED},
    KycStatus.APPROVED: set(),
}


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class ProfileService:
    def __init__(
        self,
        store: AccountStore,
        demo_duration_days: float = 3.0,
        demo_initial_balance: float = 10000.0,
        live_initial_balance: float = 0.0,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.store = store
        self.demo_duration = timedelta(days=demo_duration_days)
        self.demo_initial_balance = demo_initial_balance
        self.live_initial_balance = live_initial_balance
        self._clock = clock or _utcnow
        self._rng = rng or random.Random()

    def get(self, uid: str) -> Optional[UserProfile]:
        record = self.store.get(paths.profile_path(uid))
        if not record:
            return None
        return UserProfile.from_record(record)

    def ensure_profile(
        self,
        uid: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> UserProfile:
        """Return the stored profile, creating it with seeded balances on first sight.

        The demo expiry is fixed at creation and never extended.
        """
        with self.store.locked():
            existing = self.get(uid)
            if existing is not None:
                return existing
            now = self._clock()
            profile = UserProfile(
                uid=uid,
                name=name or "Trader",
                email=email or "",
                trading_id=str(self._rng.randint(100000, 999999)),
                avatar=avatar or AVATAR_URL.format(uid=uid),
                kyc_status=KycStatus.NONE,
                created_at=now,
                demo_expires_at=now + self.demo_duration,
            )
            changes = {paths.profile_path(uid): profile.to_record()}
            has_balance = self.store.children(paths.balance_root(uid)) or self.store.get(paths.balance_root(uid))
            if not has_balance:
                changes[paths.balance_path(uid, AccountType.DEMO)] = self.demo_initial_balance
                changes[paths.balance_path(uid, AccountType.LIVE)] = self.live_initial_balance
            self.store.update(changes)
            return profile

    def submit_kyc(self, uid: str) -> UserProfile:
        return self.set_kyc_status(uid, KycStatus.PENDING)

    def set_kyc_status(self, uid: str, status: KycStatus | str) -> UserProfile:
        status = KycStatus(status)
        with self.store.locked():
            profile = self.get(uid)
            if profile is None:
                raise KeyError(f"No profile for user {uid}")
            if status not in KYC_TRANSITIONS[profile.kyc_status]:
                raise ValueError(f"Cannot move verification from {profile.kyc_status.value} to {status.value}")
            updated = replace(profile, kyc_status=status)
            notification = Notification(
                id=self.store.new_id(),
                kind=NotificationKind.KYC,
                title="Verification Update",
                message=f"Identity verification is {status.value}",
                timestamp=self._clock(),
            )
            self.store.update(
                {
                    paths.profile_path(uid): updated.to_record(),
                    f"{paths.notifications_prefix(uid)}/{notification.id}": notification.to_record(),
                }
            )
            return updated
