"""
Create a user (e.g. the first admin). Run from project root:
  python -m paydesk.scripts.create_user EMAIL PASSWORD "FULL NAME" [role]
Example:
  python -m paydesk.scripts.create_user owner@example.com your-secure-password "Shop Owner" admin
"""
import argparse
import sys

from pydantic import ValidationError

from paydesk.core.config import get_settings
from paydesk.core.database import SessionLocal
from paydesk.core.errors import AuthServiceError
from paydesk.core.security import PasswordHasher
from paydesk.models.user import ROLE_ADMIN, ROLES
from paydesk.schemas.auth import CreateUserRequest, validation_messages
from paydesk.services import users


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a paydesk login (no registration UI).")
    parser.add_argument("email", help="Email (max 254 chars)")
    parser.add_argument("password", help="Password (8-128 chars)")
    parser.add_argument("full_name", help="Full name (1-100 chars)")
    parser.add_argument("role", nargs="?", default=ROLE_ADMIN, choices=list(ROLES))
    parser.add_argument("--location", default=None, help="Location name (managers)")
    args = parser.parse_args(argv)

    try:
        body = CreateUserRequest(
            email=args.email,
            password=args.password,
            full_name=args.full_name,
            role=args.role,
            location=args.location,
        )
    except ValidationError as e:
        for field, message in validation_messages(e).items():
            print(f"{field}: {message}", file=sys.stderr)
        return 1

    hasher = PasswordHasher(rounds=get_settings().BCRYPT_ROUNDS)
    db = SessionLocal()
    try:
        users.insert_user(
            db,
            email=body.email,
            password_hash=hasher.hash(body.password),
            full_name=body.full_name,
            role=body.role,
            location=body.location,
        )
    except AuthServiceError as e:
        print(e.message, file=sys.stderr)
        return 1
    finally:
        db.close()
    print(f"Created user '{body.email}' with role '{body.role}'.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
