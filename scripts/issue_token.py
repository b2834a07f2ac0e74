from __future__ import annotations

import sys

from cafehoppr.db.base import Base
from cafehoppr.db.session import SessionLocal, engine
from cafehoppr.models.cafes import Cafe
from cafehoppr.models.enums import TokenType
from cafehoppr.services.access import issue_token


def main() -> int:
    if len(sys.argv) < 2 or len(sys.argv) > 4:
        print("Usage: python scripts/issue_token.py <add_cafe|edit_cafe|add_review> [cafe_id] [hours]")
        return 2

    try:
        token_type = TokenType(sys.argv[1])
    except ValueError:
        print(f"Unknown token type: {sys.argv[1]}")
        return 2
    cafe_id = sys.argv[2] if len(sys.argv) > 2 and sys.argv[2] != "-" else None
    hours = int(sys.argv[3]) if len(sys.argv) > 3 else None

    if token_type != TokenType.add_cafe and not cafe_id:
        print(f"{token_type.value} tokens need a cafe_id")
        return 2

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        if cafe_id and not db.get(Cafe, cafe_id):
            print("Cafe not found")
            return 1
        row = issue_token(db, type=token_type, cafe_id=cafe_id, expires_in_hours=hours)
        print(row.token)
        print(f"Open /upsert?token={row.token} (expires {row.expires_at:%Y-%m-%d %H:%M} UTC)")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
