"""
Department endpoints. Public.
"""
from fastapi import APIRouter, Depends

from auth.dependencies import get_department_service
from services.department_service import DepartmentService

router = APIRouter(prefix="/api/departments", tags=["departments"])


@router.get("")
def list_departments(service: DepartmentService = Depends(get_department_service)):
    """Get all active departments, ordered by name."""
    departments = service.list_active()
    return {
        "success": True,
        "data": [d.model_dump(by_alias=True, mode="json") for d in departments],
    }
