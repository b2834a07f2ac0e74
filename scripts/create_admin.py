from __future__ import annotations

import sys

from sqlalchemy import select

from cafehoppr.core.security import get_password_hash
from cafehoppr.db.base import Base
from cafehoppr.db.session import SessionLocal, engine
from cafehoppr.models.users import AdminUser


def main() -> int:
    if len(sys.argv) not in (3, 4):
        print("Usage: python scripts/create_admin.py <email> <password> [hobby answer]")
        return 2

    email, password = sys.argv[1].strip(), sys.argv[2]
    hobby = sys.argv[3].strip() if len(sys.argv) == 4 else None

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        admin = db.scalar(select(AdminUser).where(AdminUser.email == email))
        created = admin is None
        if created:
            admin = AdminUser(email=email, password_hash="")
        admin.password_hash = get_password_hash(password)
        admin.hobby_answer_hash = get_password_hash(hobby) if hobby else None
        admin.is_active = True
        db.add(admin)
        db.commit()
        print(f"Admin {'created' if created else 'updated'}: {email}")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
