from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from hr_payroll.database import Base
import enum


class ComponentType(str, enum.Enum):
    EARNING = "EARNING"
    DEDUCTION = "DEDUCTION"
    REIMBURSEMENT = "REIMBURSEMENT"


class CalculationType(str, enum.Enum):
    FIXED = "FIXED"
    PERCENTAGE = "PERCENTAGE"


class SalaryComponent(Base):
    """Catalog entry for a reusable earning, deduction or reimbursement."""
    __tablename__ = "salary_components"
    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_salary_components_tenant_code"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False, index=True)

    name = Column(String, nullable=False)
    code = Column(String, nullable=False)  # Stored upper-case, e.g. "HRA", "PF_EMP"
    type = Column(String, nullable=False)  # Store enum value as string
    calculation_type = Column(String, nullable=False, default=CalculationType.FIXED.value)
    default_value = Column(Float, nullable=True)  # Amount or Percentage

    is_taxable = Column(Boolean, default=True, nullable=False)
    is_statutory = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    order = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    structure_components = relationship("SalaryStructureComponent", back_populates="salary_component")
    payslip_components = relationship("PayslipComponent", back_populates="salary_component")

    def __repr__(self):
        return f"<SalaryComponent {self.code} ({self.type})>"
