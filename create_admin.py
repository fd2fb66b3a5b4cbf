"""
Create (or promote) an admin account.

Usage:
    python create_admin.py <email> <password> [display name]

Falls back to ADMIN_EMAIL / ADMIN_PASSWORD from the environment.
"""
import os
import sys

from app.database import SessionLocal
from app.models.user import User, UserRole
from app.auth.security import hash_password


def main(argv):
    email = (argv[1] if len(argv) > 1 else os.environ.get("ADMIN_EMAIL", "")).strip().lower()
    password = argv[2] if len(argv) > 2 else os.environ.get("ADMIN_PASSWORD", "")
    display_name = argv[3] if len(argv) > 3 else "Administrador"
    if not email or not password:
        print("Uso: python create_admin.py <email> <senha> [nome]")
        return 1

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        if user:
            user.role = UserRole.ADMIN
            action = "promovido"
        else:
            user = User(
                email=email,
                password_hash=hash_password(password),
                display_name=display_name,
                role=UserRole.ADMIN,
            )
            db.add(user)
            action = "criado"
        db.commit()
        print(f"Admin {action}: id={user.id}")
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
