import pytest
import os
from datetime import date, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["PAYROLL_TIMEZONE"] = "UTC"
os.environ["PAYROLL_BULK_MAX_WORKERS"] = "1"

from hr_payroll.database import Base, get_db
from hr_payroll.main import app
from hr_payroll.models import (
    Employee,
    Attendance,
    AttendanceStatus,
    LeaveRequest,
    LeaveStatus,
    LeaveType,
    SalaryComponent,
)
from hr_payroll.schemas.salary_structure import SalaryStructureCreate, StructureComponentInput
from hr_payroll.services import salary_structure_service
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

TENANT_ID = 1
OTHER_TENANT_ID = 2
ACTOR_ID = 500


@pytest.fixture(scope="function")
def engine():
    """
    A fresh in-memory database per test. Services commit and roll back on
    their own, so tests cannot share an outer transaction.
    """
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def headers():
    return {"X-Tenant-ID": str(TENANT_ID), "X-User-ID": str(ACTOR_ID)}


@pytest.fixture
def make_employee(db_session):
    """Factory for directory employees."""
    def _make(first_name="Asha", last_name="Rao", tenant_id=TENANT_ID, is_active=True):
        employee = Employee(
            tenant_id=tenant_id,
            first_name=first_name,
            last_name=last_name,
            email=f"{first_name.lower()}@example.com",
            is_active=is_active,
        )
        db_session.add(employee)
        db_session.commit()
        return employee
    return _make


@pytest.fixture
def make_component(db_session):
    """Factory for catalog components."""
    def _make(code, type="EARNING", calculation_type="FIXED", default_value=None,
              name=None, is_statutory=False, is_active=True, tenant_id=TENANT_ID, order=0):
        component = SalaryComponent(
            tenant_id=tenant_id,
            name=name or code.title(),
            code=code,
            type=type,
            calculation_type=calculation_type,
            default_value=default_value,
            is_statutory=is_statutory,
            is_active=is_active,
            order=order,
        )
        db_session.add(component)
        db_session.commit()
        return component
    return _make


@pytest.fixture
def standard_components(make_component):
    """HRA (fixed earning) and PF (12% of basic deduction)."""
    return {
        "HRA": make_component("HRA", type="EARNING", name="House Rent Allowance"),
        "PF": make_component("PF", type="DEDUCTION", calculation_type="PERCENTAGE",
                             default_value=12, name="Provident Fund", is_statutory=True),
    }


@pytest.fixture
def assign_structure(db_session):
    """Assign a structure through the service, as the API would."""
    def _assign(employee, basic_salary=30000, components=None, effective_from=date(2024, 1, 1),
                ctc=None, tenant_id=TENANT_ID):
        data = SalaryStructureCreate(
            user_id=employee.id,
            ctc=ctc or basic_salary * 12 * 2,
            basic_salary=basic_salary,
            effective_from=effective_from,
            components=[StructureComponentInput(**c) for c in (components or [])],
        )
        return salary_structure_service.assign_structure(db_session, tenant_id, data, actor_id=ACTOR_ID)
    return _assign


@pytest.fixture
def standard_structure(assign_structure, standard_components):
    """basic 30000 + HRA 12000 - PF 12% -> gross 42000, deductions 3600, net 38400."""
    def _assign(employee, **kwargs):
        return assign_structure(employee, components=[
            {"salary_component_id": standard_components["HRA"].id, "amount": 12000},
            {"salary_component_id": standard_components["PF"].id, "percentage": 12},
        ], **kwargs)
    return _assign


@pytest.fixture
def mark_attendance(db_session):
    def _mark(employee, days, status=AttendanceStatus.PRESENT.value, tenant_id=TENANT_ID):
        for day in days:
            db_session.add(Attendance(tenant_id=tenant_id, user_id=employee.id, date=day, status=status))
        db_session.commit()
    return _mark


@pytest.fixture
def add_leave(db_session):
    def _add(employee, from_date, to_date, is_paid=True, status=LeaveStatus.APPROVED.value, tenant_id=TENANT_ID):
        leave_type = LeaveType(tenant_id=tenant_id, name="Casual" if is_paid else "Unpaid", is_paid=is_paid)
        db_session.add(leave_type)
        db_session.flush()
        leave = LeaveRequest(
            tenant_id=tenant_id,
            user_id=employee.id,
            leave_type_id=leave_type.id,
            from_date=from_date,
            to_date=to_date,
            status=status,
        )
        db_session.add(leave)
        db_session.commit()
        return leave
    return _add


def weekdays(year, month):
    """Monday-Friday dates of a month."""
    day = date(year, month, 1)
    days = []
    while day.month == month:
        if day.weekday() < 5:
            days.append(day)
        day += timedelta(days=1)
    return days


# April 2024 has 22 working days
APRIL_2024 = weekdays(2024, 4)
