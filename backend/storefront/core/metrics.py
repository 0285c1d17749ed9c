from collections import Counter
from threading import Lock
from typing import Counter as CounterType, Dict

_metrics: CounterType[str] = Counter()
_lock = Lock()


def _inc(key: str) -> None:
    with _lock:
        _metrics[key] += 1


def record_coupon_validation(valid: bool) -> None:
    _inc("coupon_validations")
    if not valid:
        _inc("coupon_rejections")


def record_coupon_redemption() -> None:
    _inc("coupon_redemptions")


def record_wallet_credit() -> None:
    _inc("wallet_credits")


def record_wallet_debit(success: bool) -> None:
    _inc("wallet_debits" if success else "wallet_debit_refusals")


def record_gift_card_redeemed() -> None:
    _inc("gift_cards_redeemed")


def snapshot() -> Dict[str, int]:
    with _lock:
        return dict(_metrics)


def reset() -> None:
    with _lock:
        _metrics.clear()
