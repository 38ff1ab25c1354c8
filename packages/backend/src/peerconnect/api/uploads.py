"""Upload API — Cloudinary-backed file storage.

Learn: files stream through the API to Cloudinary (single, multiple or as a
base64 data URI). Browsers that want to upload directly can instead ask
for a signature and post to Cloudinary themselves.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from peerconnect.schemas.upload import (
    Base64UploadRequest,
    DeleteResponse,
    ResourceInfo,
    SignatureRequest,
    TransformRequest,
    TransformResponse,
    UploadResponse,
    UploadSignature,
)
from peerconnect.services.upload_service import CloudinaryService

router = APIRouter(prefix="/uploads")

ResourceKind = Literal["image", "video", "raw"]


def get_cloudinary() -> CloudinaryService:
    return CloudinaryService()


@router.post("/single", response_model=UploadResponse, status_code=201)
async def upload_single(
    file: UploadFile = File(...),
    folder: Optional[str] = Form(None),
    svc: CloudinaryService = Depends(get_cloudinary),
):
    content = await file.read()
    return await svc.upload(content, file.filename or "upload", file.content_type, folder=folder)


@router.post("/multiple", response_model=list[UploadResponse], status_code=201)
async def upload_multiple(
    files: list[UploadFile] = File(...),
    folder: Optional[str] = Form(None),
    svc: CloudinaryService = Depends(get_cloudinary),
):
    batch = [(await f.read(), f.filename or "upload", f.content_type) for f in files]
    return await svc.upload_many(batch, folder=folder)


@router.post("/base64", response_model=UploadResponse, status_code=201)
async def upload_base64(
    body: Base64UploadRequest, svc: CloudinaryService = Depends(get_cloudinary)
):
    return await svc.upload_base64(body.base64_string, folder=body.folder)


@router.post("/signature", response_model=UploadSignature)
async def signature(
    body: SignatureRequest, svc: CloudinaryService = Depends(get_cloudinary)
):
    return svc.generate_signature(body.params)


@router.get("/info/{public_id:path}", response_model=ResourceInfo)
async def info(
    public_id: str,
    resource_type: ResourceKind = Query("image", alias="resourceType"),
    svc: CloudinaryService = Depends(get_cloudinary),
):
    return await svc.info(public_id, resource_type)


@router.post("/transform/{public_id:path}", response_model=TransformResponse)
async def transform(
    public_id: str,
    body: TransformRequest,
    svc: CloudinaryService = Depends(get_cloudinary),
):
    return TransformResponse(url=svc.transform_url(public_id, body.transformation))


@router.delete("/{public_id:path}", response_model=DeleteResponse)
async def delete(
    public_id: str,
    resource_type: ResourceKind = Query("image", alias="resourceType"),
    svc: CloudinaryService = Depends(get_cloudinary),
):
    return await svc.delete(public_id, resource_type)
