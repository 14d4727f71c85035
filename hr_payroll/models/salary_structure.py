"""
Salary Structure Model.
A structure is one version in an employee's salary history; versions are
bounded by effective_from/effective_to and never overlap.
"""
from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Boolean, ForeignKey, Index, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from hr_payroll.database import Base


class SalaryStructure(Base):
    __tablename__ = "salary_structures"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)

    ctc = Column(Float, nullable=False)
    basic_salary = Column(Float, nullable=False)
    gross_salary = Column(Float, nullable=False, default=0.0)
    total_deductions = Column(Float, nullable=False, default=0.0)
    net_salary = Column(Float, nullable=False, default=0.0)

    effective_from = Column(Date, nullable=False)
    effective_to = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    remarks = Column(Text, nullable=True)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    employee = relationship("Employee")
    components = relationship(
        "SalaryStructureComponent",
        back_populates="structure",
        cascade="all, delete-orphan",
        order_by="SalaryStructureComponent.id",
    )

    def __repr__(self):
        return f"<SalaryStructure user={self.user_id} from={self.effective_from} active={self.is_active}>"


# At most one active version per employee, enforced by storage
Index(
    "uq_salary_structures_active_user",
    SalaryStructure.tenant_id,
    SalaryStructure.user_id,
    unique=True,
    sqlite_where=SalaryStructure.is_active.is_(True),
    postgresql_where=SalaryStructure.is_active.is_(True),
)


class SalaryStructureComponent(Base):
    __tablename__ = "salary_structure_components"

    id = Column(Integer, primary_key=True, index=True)
    salary_structure_id = Column(Integer, ForeignKey("salary_structures.id", ondelete="CASCADE"), nullable=False, index=True)
    salary_component_id = Column(Integer, ForeignKey("salary_components.id"), nullable=False, index=True)

    calculation_type = Column(String, nullable=False)
    amount = Column(Float, nullable=True)
    percentage = Column(Float, nullable=True)
    calculated_amount = Column(Float, nullable=False, default=0.0)

    structure = relationship("SalaryStructure", back_populates="components")
    salary_component = relationship("SalaryComponent", back_populates="structure_components")

    @property
    def component_name(self):
        return self.salary_component.name if self.salary_component else None

    @property
    def component_code(self):
        return self.salary_component.code if self.salary_component else None

    @property
    def component_type(self):
        return self.salary_component.type if self.salary_component else None
