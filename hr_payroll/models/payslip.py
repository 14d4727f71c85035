from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from hr_payroll.database import Base
import enum


class PayslipStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PROCESSED = "PROCESSED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class Payslip(Base):
    __tablename__ = "payslips"
    __table_args__ = (
        UniqueConstraint("tenant_id", "user_id", "month", "year", name="uq_payslips_tenant_user_period"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)

    basic_salary = Column(Float, nullable=False)
    gross_earnings = Column(Float, nullable=False)
    total_deductions = Column(Float, nullable=False)  # Includes lop_deduction
    lop_deduction = Column(Float, nullable=False, default=0.0)
    net_salary = Column(Float, nullable=False)

    total_working_days = Column(Integer, nullable=False)
    days_worked = Column(Integer, nullable=False)
    leave_days = Column(Integer, nullable=False, default=0)  # Paid leave only
    unpaid_leave_days = Column(Integer, nullable=False, default=0)
    lop_days = Column(Integer, nullable=False, default=0)

    status = Column(String, default=PayslipStatus.DRAFT.value, nullable=False, index=True)
    generated_at = Column(DateTime(timezone=True), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    paid_by = Column(Integer, nullable=True)

    employee = relationship("Employee")
    components = relationship(
        "PayslipComponent",
        back_populates="payslip",
        cascade="all, delete-orphan",
        order_by="PayslipComponent.id",
    )

    def __repr__(self):
        return f"<Payslip user={self.user_id} {self.month}/{self.year} {self.status}>"


class PayslipComponent(Base):
    """Frozen copy of a structure component at generation time."""
    __tablename__ = "payslip_components"

    id = Column(Integer, primary_key=True, index=True)
    payslip_id = Column(Integer, ForeignKey("payslips.id", ondelete="CASCADE"), nullable=False, index=True)
    salary_component_id = Column(Integer, ForeignKey("salary_components.id"), nullable=True, index=True)

    component_name = Column(String, nullable=False)
    component_code = Column(String, nullable=True)
    component_type = Column(String, nullable=False)
    amount = Column(Float, nullable=False)

    payslip = relationship("Payslip", back_populates="components")
    salary_component = relationship("SalaryComponent", back_populates="payslip_components")
