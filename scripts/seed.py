"""Script to load demo data: users of every role, classes, models and tools."""
import sys
import os
from datetime import timedelta

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from toolroom.clock import utcnow
from toolroom.database import SessionLocal, engine, Base
from toolroom.models.tool import Tool
from toolroom.models.tool_class import ToolClass
from toolroom.models.tool_model import ToolModel
from toolroom.models.user import User, UserRole
from toolroom.schemas.user import UserCreate
from toolroom.services.calibration import apply_calibration_schedule
from toolroom.services.users import build_user

DEMO_USERS = [
    ("admin", "admin123", "System", "Administrator", UserRole.ADMIN, "Maintenance"),
    ("operator", "operator123", "Tool", "Room", UserRole.OPERATOR, "Maintenance"),
    ("jdoe", "user1234", "John", "Doe", UserRole.USER, "Production"),
    ("asmith", "user1234", "Anna", "Smith", UserRole.USER, "Quality"),
]

DEMO_CLASSES = ["Hand tools", "Measuring instruments", "Power tools"]

# name, requires calibration, interval in days
DEMO_MODELS = [
    ("Standard", False, None),
    ("Precision 180", True, 180),
    ("Precision 365", True, 365),
]

# name, code, class, model, quantity, days since last calibration
DEMO_TOOLS = [
    ("Torque wrench 20-100 Nm", "TW-001", "Hand tools", "Precision 365", 4, 360),
    ("Digital caliper 150 mm", "DC-150", "Measuring instruments", "Precision 180", 6, 175),
    ("Micrometer 0-25 mm", "MC-025", "Measuring instruments", "Precision 180", 2, 190),
    ("Cordless drill", "CD-018", "Power tools", "Standard", 5, None),
    ("Screwdriver set", "SD-SET", "Hand tools", "Standard", 10, None),
]


def seed():
    """Insert demo rows once; an existing admin means the database is already seeded."""
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        if db.query(User).filter(User.role == UserRole.ADMIN).first():
            print("Database already contains an admin, skipping seed.")
            return

        for username, password, first_name, last_name, role, department in DEMO_USERS:
            build_user(db, UserCreate(
                username=username,
                password=password,
                first_name=first_name,
                last_name=last_name,
                email=f"{username}@example.com",
                department=department,
                role=role,
            ))

        classes = {name: ToolClass(name=name) for name in DEMO_CLASSES}
        models = {
            name: ToolModel(name=name, requires_calibration=requires, calibration_interval_days=interval)
            for name, requires, interval in DEMO_MODELS
        }
        db.add_all(list(classes.values()) + list(models.values()))
        db.flush()

        now = utcnow()
        for name, code, class_name, model_name, quantity, calibrated_days_ago in DEMO_TOOLS:
            tool = Tool(
                name=name,
                code=code,
                class_id=classes[class_name].id,
                model_id=models[model_name].id,
                quantity=quantity,
                available_quantity=quantity,
            )
            if calibrated_days_ago is not None:
                tool.last_calibration_date = now - timedelta(days=calibrated_days_ago)
            apply_calibration_schedule(tool, models[model_name])
            db.add(tool)

        db.commit()
        print(f"Seeded {len(DEMO_USERS)} users, {len(DEMO_CLASSES)} classes, "
              f"{len(DEMO_MODELS)} models and {len(DEMO_TOOLS)} tools.")
        for username, password, *_ in DEMO_USERS:
            print(f"  {username} / {password}")

    finally:
        db.close()


if __name__ == "__main__":
    seed()
