import unittest
from datetime import timedelta

from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import toolroom.models  # noqa: F401
from toolroom.auth import create_access_token
from toolroom.clock import utcnow
from toolroom.database import Base, build_engine, get_db
from toolroom.main import app
from toolroom.models.tool import Tool
from toolroom.models.tool_class import ToolClass
from toolroom.models.tool_model import ToolModel
from toolroom.models.user import UserRole
from toolroom.schemas.user import UserCreate
from toolroom.services.calibration import apply_calibration_schedule
from toolroom.services.users import build_user


class DatabaseTestCase(unittest.TestCase):
    """Fresh in-memory database per test."""

    def setUp(self):
        self.engine = build_engine("sqlite://", poolclass=StaticPool)
        Base.metadata.create_all(bind=self.engine)
        self.Session = sessionmaker(
            bind=self.engine, autoflush=False, autocommit=False, expire_on_commit=False
        )
        self.db = self.Session()

    def tearDown(self):
        self.db.close()
        Base.metadata.drop_all(bind=self.engine)
        self.engine.dispose()

    def create_user(self, username, role=UserRole.USER, password="secret123", **fields):
        fields.setdefault("first_name", username.capitalize())
        fields.setdefault("last_name", "Tester")
        user = build_user(self.db, UserCreate(username=username, password=password, role=role, **fields))
        self.db.commit()
        self.db.refresh(user)
        return user

    def create_model(self, name="Standard", requires_calibration=False, interval=None):
        tool_model = ToolModel(
            name=name,
            requires_calibration=requires_calibration,
            calibration_interval_days=interval,
        )
        self.db.add(tool_model)
        self.db.commit()
        return tool_model

    def create_class(self, name="Hand tools"):
        tool_class = ToolClass(name=name)
        self.db.add(tool_class)
        self.db.commit()
        return tool_class

    def create_tool(self, code, quantity=1, name=None, model=None, tool_class=None, last_calibration_date=None):
        tool = Tool(
            name=name or f"Tool {code}",
            code=code,
            quantity=quantity,
            available_quantity=quantity,
            model_id=model.id if model else None,
            class_id=tool_class.id if tool_class else None,
            last_calibration_date=last_calibration_date,
        )
        apply_calibration_schedule(tool, model)
        self.db.add(tool)
        self.db.commit()
        return tool

    def reload(self, instance):
        instance_id = instance.id
        self.db.expire_all()
        return self.db.get(type(instance), instance_id)


class ApiTestCase(DatabaseTestCase):
    """Database test case with a client bound to the application."""

    def setUp(self):
        super().setUp()

        def override_get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)

        self.admin = self.create_user("admin", role=UserRole.ADMIN, password="admin123")
        self.operator = self.create_user("operator", role=UserRole.OPERATOR, password="operator123")

    def tearDown(self):
        app.dependency_overrides.clear()
        super().tearDown()

    def auth(self, user, expires_delta=None):
        return {"Authorization": f"Bearer {create_access_token(user, expires_delta)}"}

    def expired_auth(self, user):
        return self.auth(user, expires_delta=timedelta(minutes=-5))

    @staticmethod
    def days_from_now(days):
        return utcnow() + timedelta(days=days)
