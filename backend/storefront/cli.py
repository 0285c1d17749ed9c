import argparse
import asyncio
import uuid
from decimal import Decimal, InvalidOperation

from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core import security
from storefront.core.logging_config import configure_logging
from storefront.db.session import SessionLocal
from storefront.models.coupon import Coupon, DiscountType
from storefront.models.user import User, UserRole
from storefront.models.wallet import WalletTransactionSource
from storefront.schemas.coupon import CouponCreate
from storefront.services import coupons as coupons_service
from storefront.services import wallet as wallet_service


def _decimal_arg(raw: str) -> Decimal:
    try:
        value = Decimal(raw)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"Not a valid amount: {raw}")
    if not value.is_finite():
        raise argparse.ArgumentTypeError(f"Not a valid amount: {raw}")
    return value


def _uuid_arg(raw: str) -> uuid.UUID:
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Not a valid id: {raw}")


async def create_user(session: AsyncSession, *, email: str, name: str | None, role: UserRole) -> User:
    email_norm = (email or "").strip().lower()
    if not email_norm or "@" not in email_norm:
        raise SystemExit("Invalid email")
    existing = (await session.execute(select(User).where(func.lower(User.email) == email_norm))).scalar_one_or_none()
    if existing:
        raise SystemExit(f"Email already registered: {email_norm}")
    user = User(email=email_norm, name=(name or "").strip() or None, role=role)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def create_coupon(session: AsyncSession, **fields) -> Coupon:
    try:
        payload = CouponCreate(**fields)
    except ValidationError as exc:
        raise SystemExit(f"Invalid coupon: {exc.errors()[0]['msg']}")
    try:
        return await coupons_service.create_coupon(session, payload)
    except HTTPException as exc:
        raise SystemExit(str(exc.detail))


async def wallet_credit(
    session: AsyncSession,
    *,
    user_id: uuid.UUID,
    amount: Decimal,
    source: WalletTransactionSource,
    description: str,
) -> Decimal:
    try:
        tx = await wallet_service.credit(
            session, user_id=user_id, amount=amount, source=source, description=description
        )
    except HTTPException as exc:
        raise SystemExit(str(exc.detail))
    return tx.balance


async def wallet_balance(session: AsyncSession, *, user_id: uuid.UUID) -> Decimal:
    try:
        return await wallet_service.get_balance(session, user_id)
    except HTTPException as exc:
        raise SystemExit(str(exc.detail))


async def _create_user_cmd(args: argparse.Namespace) -> None:
    async with SessionLocal() as session:
        user = await create_user(session, email=args.email, name=args.name, role=UserRole(args.role))
    print(f"User created: {user.email} role={user.role.value} id={user.id}")


async def _create_coupon_cmd(args: argparse.Namespace) -> None:
    async with SessionLocal() as session:
        coupon = await create_coupon(
            session,
            code=args.code,
            description=args.description,
            discount_type=DiscountType(args.type),
            discount_value=args.value,
            min_order_amount=args.min_order,
            max_discount=args.max_discount,
            usage_limit=args.usage_limit,
            per_user_limit=args.per_user_limit,
            is_public=args.public,
        )
    print(f"Coupon created: {coupon.code} id={coupon.id}")


async def _wallet_credit_cmd(args: argparse.Namespace) -> None:
    async with SessionLocal() as session:
        balance = await wallet_credit(
            session,
            user_id=args.user_id,
            amount=args.amount,
            source=WalletTransactionSource(args.source),
            description=args.description,
        )
    print(f"Wallet credited: user={args.user_id} balance={balance}")


async def _wallet_balance_cmd(args: argparse.Namespace) -> None:
    async with SessionLocal() as session:
        balance = await wallet_balance(session, user_id=args.user_id)
    print(f"{balance}")


def _add_user_commands(subparsers) -> None:
    user = subparsers.add_parser("create-user", help="Create a user for local use")
    user.add_argument("--email", required=True, help="User email")
    user.add_argument("--name", help="Display name")
    user.add_argument("--role", choices=[r.value for r in UserRole], default=UserRole.customer.value)

    token = subparsers.add_parser("issue-token", help="Print an access token for a user id")
    token.add_argument("--user-id", required=True, type=_uuid_arg)
    token.add_argument("--expires-minutes", type=int, default=None)


def _add_coupon_commands(subparsers) -> None:
    coupon = subparsers.add_parser("create-coupon", help="Create a coupon")
    coupon.add_argument("--code", required=True)
    coupon.add_argument("--type", required=True, choices=[t.value for t in DiscountType])
    coupon.add_argument("--value", required=True, type=_decimal_arg)
    coupon.add_argument("--description", default="")
    coupon.add_argument("--min-order", type=_decimal_arg, default=None)
    coupon.add_argument("--max-discount", type=_decimal_arg, default=None)
    coupon.add_argument("--usage-limit", type=int, default=None)
    coupon.add_argument("--per-user-limit", type=int, default=None)
    coupon.add_argument("--public", action="store_true", help="List the coupon on the public offers endpoint")


def _add_wallet_commands(subparsers) -> None:
    credit = subparsers.add_parser("wallet-credit", help="Credit a user's wallet")
    credit.add_argument("--user-id", required=True, type=_uuid_arg)
    credit.add_argument("--amount", required=True, type=_decimal_arg)
    credit.add_argument(
        "--source",
        choices=[s.value for s in WalletTransactionSource],
        default=WalletTransactionSource.admin.value,
    )
    credit.add_argument("--description", required=True)

    balance = subparsers.add_parser("wallet-balance", help="Print a user's wallet balance")
    balance.add_argument("--user-id", required=True, type=_uuid_arg)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Storefront admin CLI")
    subparsers = parser.add_subparsers(dest="command")
    _add_user_commands(subparsers)
    _add_coupon_commands(subparsers)
    _add_wallet_commands(subparsers)
    return parser


def _run_cli_command(args: argparse.Namespace) -> bool:
    if args.command == "create-user":
        asyncio.run(_create_user_cmd(args))
        return True

    if args.command == "issue-token":
        print(security.create_access_token(str(args.user_id), expires_minutes=args.expires_minutes))
        return True

    if args.command == "create-coupon":
        asyncio.run(_create_coupon_cmd(args))
        return True

    if args.command == "wallet-credit":
        asyncio.run(_wallet_credit_cmd(args))
        return True

    if args.command == "wallet-balance":
        asyncio.run(_wallet_balance_cmd(args))
        return True

    return False


def main(argv: list[str] | None = None) -> None:
    configure_logging()
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not _run_cli_command(args):
        parser.print_help()


if __name__ == "__main__":
    main()
