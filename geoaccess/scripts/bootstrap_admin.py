# geoaccess/scripts/bootstrap_admin.py
import os
import secrets

from geoaccess.auth.identity import Role
from geoaccess.core.config import load_auth_settings
from geoaccess.core.database import SessionLocal, unit_of_work
from geoaccess.crud.crud_auth import create_principal

DEFAULT_USERNAME = "admin"


def main() -> None:
    settings = load_auth_settings()
    username = os.getenv("BOOTSTRAP_ADMIN_USERNAME", DEFAULT_USERNAME)
    password = secrets.token_urlsafe(18)

    with SessionLocal() as db:
        with unit_of_work(db):
            row, api_key = create_principal(
                db,
                username=username,
                password=password,
                pepper=settings.password_pepper,
                role=Role.ADMIN,
                created_by="bootstrap",
            )
            principal_id = row.id

    print("\nBOOTSTRAP ADMIN (save this, shown once):")
    print(f"username={username} id={principal_id}")
    print(f"password={password}")
    print(f"api_key={api_key}\n")


if __name__ == "__main__":
    main()
