#!/usr/bin/env python3
from __future__ import annotations

from getpass import getpass
from pathlib import Path

from motorsite.auth.passwords import configure_hasher, hash_password
from motorsite.auth.users import ALL_ROLES, UNIQUE_COLUMNS, USER, UserRepository
from motorsite.core.errors import UniqueConstraintError
from motorsite.core.settings import load_settings
from motorsite.infra.store import TableStore


def main() -> None:
    settings = load_settings()
    configure_hasher(settings)
    data_dir = Path(str(settings.get("app.data_dir", "data"))).resolve()
    users = UserRepository(TableStore(data_dir, unique={"users": UNIQUE_COLUMNS}))

    login = input("Login: ").strip()
    email = input("Email: ").strip()
    role = (input(f"Role [{'/'.join(ALL_ROLES)}]: ").strip().lower() or USER)
    if role not in ALL_ROLES:
        raise SystemExit(f"Unknown role: {role}")

    pw1 = getpass("Password: ")
    pw2 = getpass("Repeat password: ")
    if pw1 != pw2:
        raise SystemExit("Passwords do not match")

    try:
        user = users.create(login=login, email=email, password_hash=hash_password(pw1), role=role)
    except UniqueConstraintError as e:
        raise SystemExit(f"{e.field} already exists: {e.value}")
    print(f"OK -> {user.login} (id {user.id}) in {data_dir}")


if __name__ == "__main__":
    main()
