"""Script to create initial admin user."""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from toolroom.database import SessionLocal, engine, Base
from toolroom.models.user import User, UserRole
from toolroom.services.users import build_user
from toolroom.schemas.user import UserCreate


def create_admin(username: str = "admin", password: str = "admin123"):
    """Create initial admin user if not exists."""
    # Create tables
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        admin = db.query(User).filter(User.role == UserRole.ADMIN).first()
        if admin:
            print(f"Admin user already exists: {admin.username}")
            return

        build_user(db, UserCreate(
            username=username,
            password=password,
            first_name="System",
            last_name="Administrator",
            email="admin@example.com",
            role=UserRole.ADMIN,
        ))
        db.commit()
        print("Admin user created successfully!")
        print(f"Username: {username}")
        print(f"Password: {password}")
        print("\nPlease change the password after first login!")

    finally:
        db.close()


if __name__ == "__main__":
    create_admin(*sys.argv[1:3])
