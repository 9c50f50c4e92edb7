"""
Reading-module API endpoints.

Static paths (`/active`, `/my-modules`, `/curated`, `/vocabulary/...`) are
declared before `/{module_id}` so they are not captured by it.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Path, Response, status
from fastapi.encoders import jsonable_encoder

from auth import dependencies as auth_dependencies
from core.responses import success

from . import schemas, service

router = APIRouter()


@router.get("/reading-modules/active")
async def get_active_modules(
    current_user: dict | None = Depends(auth_dependencies.get_optional_user),
) -> dict:
    return success(await service.get_active_modules(current_user))


@router.get("/reading-modules/my-modules")
async def get_my_modules(
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return success(await service.get_admin_modules(current_user["id"]))


# Curated modules (super admin)

@router.post("/reading-modules/curated", status_code=status.HTTP_201_CREATED)
async def create_curated_module(
    request: schemas.ModuleCreateRequest,
    _: dict = Depends(auth_dependencies.require_super_admin),
) -> dict:
    module = await service.create_curated_module(request)
    return {"message": "Curated module created successfully", "module": jsonable_encoder(module)}


@router.patch("/reading-modules/curated/{module_id}")
async def update_curated_module(
    module_id: UUID,
    request: schemas.ModuleUpdateRequest,
    current_user: dict = Depends(auth_dependencies.require_super_admin),
) -> dict:
    module = await service.update_curated_module(current_user, str(module_id), request)
    return success(module, "Curated module updated successfully")


@router.delete("/reading-modules/curated/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_curated_module(
    module_id: UUID,
    current_user: dict = Depends(auth_dependencies.require_super_admin),
) -> Response:
    await service.delete_curated_module(current_user, str(module_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Vocabulary entries by id

@router.put("/reading-modules/vocabulary/{vocabulary_id}")
async def update_vocabulary(
    vocabulary_id: UUID,
    request: schemas.VocabularyUpdateRequest,
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    entry = await service.update_vocabulary(current_user, str(vocabulary_id), request)
    return success(entry, "Vocabulary entry updated")


@router.delete("/reading-modules/vocabulary/{vocabulary_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_vocabulary(
    vocabulary_id: UUID,
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> Response:
    await service.delete_vocabulary(current_user, str(vocabulary_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Custom modules (admin)

@router.post("/reading-modules", status_code=status.HTTP_201_CREATED)
async def create_custom_module(
    request: schemas.ModuleCreateRequest,
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    module = await service.create_custom_module(current_user["id"], request)
    return success(module, "Reading module created successfully")


@router.get("/reading-modules/{module_id}")
async def get_module(
    module_id: UUID,
    _: dict = Depends(auth_dependencies.get_current_user),
) -> dict:
    return success(await service.get_module(str(module_id)))


@router.patch("/reading-modules/{module_id}")
async def update_module(
    module_id: UUID,
    request: schemas.ModuleUpdateRequest,
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return await service.update_module(current_user, str(module_id), request)


@router.delete("/reading-modules/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_module(
    module_id: UUID,
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> Response:
    await service.delete_module(current_user, str(module_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/reading-modules/{module_id}/paragraph/{paragraph_index}")
async def get_paragraph(
    module_id: UUID,
    paragraph_index: int = Path(..., ge=1),
    _: dict = Depends(auth_dependencies.get_current_user),
) -> dict:
    return await service.get_paragraph(str(module_id), paragraph_index)


@router.get("/reading-modules/{module_id}/paragraphs/{paragraph_index}/vocabulary")
async def get_paragraph_vocabulary(
    module_id: UUID,
    paragraph_index: int = Path(..., ge=1),
    _: dict = Depends(auth_dependencies.get_current_user),
) -> dict:
    return success(await service.list_paragraph_vocabulary(str(module_id), paragraph_index))


@router.post("/reading-modules/{module_id}/vocabulary", status_code=status.HTTP_201_CREATED)
async def add_vocabulary(
    module_id: UUID,
    request: schemas.VocabularyCreateRequest,
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    entry = await service.add_vocabulary(current_user, str(module_id), request)
    return success(entry, "Vocabulary entry added")


@router.get("/reading-modules/{module_id}/vocabulary")
async def list_vocabulary(
    module_id: UUID,
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return success(await service.list_module_vocabulary(current_user, str(module_id)))
