#!/usr/bin/env python3
"""
Create an administrator account.

Public registration only creates students and tutors, so the first admin
(and any later one) is created from the command line.

Usage:
    python3 scripts/create_admin.py admin@example.edu "Nombre Apellido"
    python3 scripts/create_admin.py admin@example.edu "Nombre Apellido" --create-tables

The password is read interactively.
"""
import argparse
import getpass
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from constants import Role
from database import Base, SessionLocal, atomic, engine
from errors import DomainError
from services.accounts import create_user


def main():
    parser = argparse.ArgumentParser(description="Create an administrator account")
    parser.add_argument("email")
    parser.add_argument("name")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables first")
    args = parser.parse_args()

    if args.create_tables:
        Base.metadata.create_all(bind=engine)
        print("Tables created (existing tables left untouched)")

    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        print("Passwords do not match")
        return 1

    db = SessionLocal()
    try:
        with atomic(db):
            user = create_user(db, args.email, password, args.name, Role.ADMIN.value)
        print(f"Admin {user.email} created with id {user.id}")
        return 0
    except DomainError as e:
        print(f"Error: {e.message}")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
