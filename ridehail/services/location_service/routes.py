# ridehail/services/location_service/routes.py
"""
HTTP API Location Service (/api/v1/drivers).
Ответы в конверте {success, data?, message?}.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Body, Depends, status

from ridehail.services.location_service.dependencies import get_driver_service
from ridehail.services.location_service.service import DriverService
from ridehail.shared.models import (
    APIResponse,
    BatchCreateRequest,
    CreateDriverRequest,
    Driver,
    DriverList,
    GeoPoint,
    SearchRequest,
)

router = APIRouter(prefix="/drivers", tags=["drivers"])

ServiceDep = Annotated[DriverService, Depends(get_driver_service)]


@router.post(
    "",
    response_model=APIResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_driver(
    payload: Annotated[CreateDriverRequest | list[CreateDriverRequest], Body()],
    service: ServiceDep,
) -> APIResponse:
    """
    Создать водителя.
    Принимает один объект или массив: массив обрабатывается как пакетная вставка.
    """
    if isinstance(payload, list):
        drivers = await service.batch_create(BatchCreateRequest(drivers=payload))
        return APIResponse.ok(DriverList(drivers=drivers, count=len(drivers)))

    driver = await service.create(payload)
    return APIResponse.ok(driver)


@router.post(
    "/batch",
    response_model=APIResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def batch_create_drivers(request: BatchCreateRequest, service: ServiceDep) -> APIResponse:
    drivers = await service.batch_create(request)
    return APIResponse.ok(DriverList(drivers=drivers, count=len(drivers)))


@router.post("/search", response_model=APIResponse, response_model_exclude_none=True)
async def search_drivers(request: SearchRequest, service: ServiceDep) -> APIResponse:
    """Водители в радиусе, по возрастанию расстояния."""
    results = await service.search_nearby(request)
    return APIResponse.ok(DriverList(drivers=results, count=len(results)))


@router.get("/{driver_id}", response_model=APIResponse, response_model_exclude_none=True)
async def get_driver(driver_id: str, service: ServiceDep) -> APIResponse:
    return APIResponse.ok(await service.get(driver_id))


@router.put("/{driver_id}", response_model=APIResponse, response_model_exclude_none=True)
async def update_driver(driver_id: str, driver: Driver, service: ServiceDep) -> APIResponse:
    # id из пути важнее id в теле
    updated = await service.update(driver.model_copy(update={"id": driver_id}))
    return APIResponse.ok(updated)


@router.patch("/{driver_id}/location", response_model=APIResponse, response_model_exclude_none=True)
async def update_driver_location(driver_id: str, location: GeoPoint, service: ServiceDep) -> APIResponse:
    updated = await service.update_location(driver_id, location)
    return APIResponse.ok(updated, message="Driver location updated successfully")


@router.delete("/{driver_id}", response_model=APIResponse, response_model_exclude_none=True)
async def delete_driver(driver_id: str, service: ServiceDep) -> APIResponse:
    await service.delete(driver_id)
    return APIResponse.ok(message="Driver deleted successfully")
