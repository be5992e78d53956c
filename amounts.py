from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Iterable, Mapping, Optional

if TYPE_CHECKING:  # pragma: no cover
    from schemas import Account

AmountMap = dict[str, Decimal]

ZERO = Decimal("0")


def account_key(account: "Account") -> str:
    """Key under which an account's values live in amount/balance maps.

    Maps are joined to accounts by name, not id, so renaming an account
    orphans the keys already stored on historical entries.
    """
    return account.name


def ordered_accounts(accounts: Iterable["Account"]) -> list["Account"]:
    return sorted(accounts, key=lambda acc: acc.order)


def to_decimal(value: object) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
    if not amount.is_finite():
        return None
    return amount


def normalize_amounts(raw: Optional[Mapping[str, object]]) -> AmountMap:
    """Drop zero, NaN and unparseable values; an absent key means no charge."""
    result: AmountMap = {}
    if not raw:
        return result
    for key, value in raw.items():
        amount = to_decimal(value)
        if amount is None or amount == ZERO:
            continue
        result[str(key)] = amount
    return result


def set_amount(amounts: Mapping[str, Decimal], key: str, value: object) -> AmountMap:
    updated = dict(amounts)
    amount = to_decimal(value)
    if amount is None or amount == ZERO:
        updated.pop(key, None)
    else:
        updated[key] = amount
    return updated


def remove_amount(amounts: Mapping[str, Decimal], key: str) -> AmountMap:
    updated = dict(amounts)
    updated.pop(key, None)
    return updated


def amount_for(amounts: Mapping[str, Decimal], account: "Account") -> Decimal:
    return amounts.get(account_key(account)) or ZERO


def map_total(amounts: Mapping[str, Decimal]) -> Decimal:
    return sum(amounts.values(), ZERO)


def zero_map(accounts: Iterable["Account"]) -> AmountMap:
    return {account_key(acc): ZERO for acc in accounts}


def dump_amounts(amounts: Mapping[str, Decimal]) -> dict[str, str]:
    # JSON columns cannot hold Decimal; strings keep the exact value.
    return {key: str(value) for key, value in amounts.items()}
