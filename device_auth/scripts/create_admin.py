"""
One-time bootstrap script — creates an account with the ADMIN role tier.

Usage:
    python -m device_auth.scripts.create_admin

Goes through the regular credential store, so the account gets the same
bcrypt hash and placeholder device session as a self-registered one.
"""

import asyncio
import getpass

from device_auth.core.config import get_settings
from device_auth.core.database import SessionLocal, engine
from device_auth.core.exceptions import DuplicateAccountError
from device_auth.models.user import UserRole
from device_auth.services import user_service


async def create_admin() -> None:
    settings = get_settings()

    async with SessionLocal() as session:
        # ── Collect input ────────────────────────────────────────────
        print("\n🔧  Device Auth — Admin Account Setup\n")
        account_name = input("  Account name: ").strip()
        name = input("  Full name:    ").strip()
        password = getpass.getpass("  Password:     ")
        confirm = getpass.getpass("  Confirm:      ")

        if password != confirm:
            print("\n❌  Passwords do not match.")
            await engine.dispose()
            return

        if not account_name or not password:
            print("\n❌  Account name and password are required.")
            await engine.dispose()
            return

        # ── Create the admin user ────────────────────────────────────
        try:
            admin_user = await user_service.register_user(
                account_name,
                password,
                {"name": name},
                session,
                role=UserRole.ADMIN,
                bcrypt_rounds=settings.BCRYPT_ROUNDS,
            )
        except DuplicateAccountError:
            print(f"\n❌  Account '{account_name}' already exists.")
            await engine.dispose()
            return
        await session.commit()

        print(f"\n✅  Admin account created successfully!")
        print(f"    ID:      {admin_user.user_id}")
        print(f"    Account: {admin_user.account_name}")
        print(f"    Role:    {UserRole.ADMIN}")
        print(f"\n   You can now log in via POST {settings.API_PREFIX}/auth/login\n")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(create_admin())
