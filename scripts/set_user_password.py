"""Create a user or reset its password for local development."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure the project root is on sys.path so ``stylio`` can be imported when the script is executed directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy import select

from stylio import create_app
from stylio.extensions import db
from stylio.models import AuthAccount, User

ROLES = ("customer", "provider", "admin")


def set_password(email: str, password: str, role: str = "customer", username: str | None = None) -> None:
    app = create_app()
    email = email.lower()

    with app.app_context():
        user = db.session.scalar(select(User).where(User.email == email))
        if user is None:
            user = User(
                username=(username or email.split("@", 1)[0]).lower(),
                email=email,
                first_name=role.capitalize(),
                last_name="User",
                role=role,
            )
            db.session.add(user)
            db.session.flush()
            print(f"Created new {role} user: {email}")
        elif user.role != role:
            print(f"Updating user role from '{user.role}' to '{role}'")
            user.role = role

        account = user.auth_account
        if account is None:
            account = AuthAccount(user_id=user.user_id, password_hash="")
            db.session.add(account)
            print(f"Created auth account for user: {email}")

        account.password_hash = generate_password_hash(password)
        account.refresh_token = None
        db.session.commit()

        print(f"Password for {role} user '{email}' has been set successfully.")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Set a user password for local testing.")
    parser.add_argument("email", help="User email address")
    parser.add_argument("password", help="Plain-text password to hash and store")
    parser.add_argument("--role", choices=ROLES, default="customer", help="User role (default: customer)")
    parser.add_argument("--username", help="Username for a new user (default: the email's local part)")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    set_password(args.email, args.password, args.role, args.username)


if __name__ == "__main__":
    main()
