"""Script to give a QR badge token to every user that has none."""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from toolroom.database import SessionLocal, engine, Base
from toolroom.models.user import User
from toolroom.services.users import generate_unique_qr_code


def generate_qr_codes():
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        users = db.query(User).filter(User.qr_code.is_(None)).all()
        for user in users:
            user.qr_code = generate_unique_qr_code(db)
            # Flush so the next uniqueness check sees this token
            db.flush()
            print(f"{user.username}: {user.qr_code}")
        db.commit()
        print(f"Generated {len(users)} QR code(s).")
    finally:
        db.close()


if __name__ == "__main__":
    generate_qr_codes()
