"""Schemas for Cloudinary-backed uploads.

Learn: responses mirror Cloudinary's own JSON (snake_case public_id,
secure_url, ...) so a browser can hand them straight to Cloudinary widgets.
Only the request bodies follow the API's camelCase convention.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from peerconnect.schemas.base import CamelModel


class UploadResponse(BaseModel):
    public_id: str
    secure_url: str
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    resource_type: str
    bytes: int = 0
    created_at: str = ""
    tags: list[str] = []
    context: Optional[dict[str, Any]] = None


class DeleteResponse(BaseModel):
    result: str


class UploadSignature(BaseModel):
    timestamp: int
    signature: str
    api_key: str
    cloud_name: str


class ResourceInfo(BaseModel):
    public_id: str
    secure_url: str
    format: Optional[str] = None
    resource_type: str
    bytes: int = 0
    width: Optional[int] = None
    height: Optional[int] = None
    created_at: str = ""


class ImageTransformation(BaseModel):
    width: Optional[int] = Field(None, ge=1)
    height: Optional[int] = Field(None, ge=1)
    crop: Optional[str] = None
    gravity: Optional[str] = None
    quality: Optional[str] = None
    format: Optional[str] = None
    radius: Optional[int] = Field(None, ge=0)
    effect: Optional[str] = None
    overlay: Optional[str] = None
    underlay: Optional[str] = None


class Base64UploadRequest(CamelModel):
    base64_string: str = Field(..., min_length=1)
    folder: Optional[str] = None


class SignatureRequest(CamelModel):
    params: dict[str, Any] = Field(default_factory=dict)


class TransformRequest(CamelModel):
    transformation: ImageTransformation


class TransformResponse(BaseModel):
    url: str
