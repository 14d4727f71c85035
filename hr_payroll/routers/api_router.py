from fastapi import APIRouter
from hr_payroll.routers import salary_components, salary_structures, payslips

# Routers are aggregated here; main.py only imports this hub.
api_router = APIRouter()

api_router.include_router(salary_components.router)
api_router.include_router(salary_structures.router)
api_router.include_router(payslips.router)
