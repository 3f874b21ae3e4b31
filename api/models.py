"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Field names are camelCase on the wire (aliases) and snake_case in Python.
"""

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class _WireModel(BaseModel):
    class Config:
        populate_by_name = True


# ============================================================================
# Single claim / reject
# ============================================================================

class LicenseActionRequest(_WireModel):
    """Claim or reject one pending license."""
    license_id: UUID = Field(..., alias="licenseId", description="Pending license to act on")
    action: Literal["claim", "reject"]

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "licenseId": "123e4567-e89b-12d3-a456-426614174000",
                "action": "claim"
            }
        }


class LicenseActionResponse(_WireModel):
    """Successful claim or reject."""
    success: bool
    action: Literal["claimed", "rejected"]
    product_name: Optional[str] = Field(default=None, alias="productName")
    message: str

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "success": True,
                "action": "claimed",
                "productName": "Starter Robotics Kit",
                "message": "Successfully claimed Starter Robotics Kit!"
            }
        }


class ClaimCodeRequest(BaseModel):
    """Free-text activation code, as typed by the user."""
    code: str = Field(..., min_length=1, max_length=64)


class ClaimTokenRequest(BaseModel):
    """Claim token from an emailed claim link."""
    token: str = Field(..., min_length=1, max_length=128)


class ClaimedLicenseResponse(_WireModel):
    """Successful claim by code or claim link."""
    success: bool = True
    license_id: UUID = Field(..., alias="licenseId")
    product_name: Optional[str] = Field(default=None, alias="productName")
    message: str


# ============================================================================
# Batch claim / reject
# ============================================================================

class BatchActionRequest(_WireModel):
    """Claim or reject many pending licenses at once."""
    license_ids: List[UUID] = Field(..., alias="licenseIds")
    action: Literal["claim", "reject"]

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "licenseIds": [
                    "123e4567-e89b-12d3-a456-426614174000",
                    "123e4567-e89b-12d3-a456-426614174001"
                ],
                "action": "claim"
            }
        }


class BatchItemResponse(_WireModel):
    license_id: UUID = Field(..., alias="licenseId")
    success: bool
    error: Optional[str] = None


class BatchActionResponse(_WireModel):
    """Per-item results; mixed outcomes are still a 200."""
    success: bool
    results: List[BatchItemResponse]
    success_count: int = Field(..., alias="successCount")
    error_count: int = Field(..., alias="errorCount")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "success": False,
                "results": [
                    {"licenseId": "123e4567-e89b-12d3-a456-426614174000", "success": True},
                    {
                        "licenseId": "123e4567-e89b-12d3-a456-426614174001",
                        "success": False,
                        "error": "This license was claimed by another account"
                    }
                ],
                "successCount": 1,
                "errorCount": 1
            }
        }


# ============================================================================
# Read side
# ============================================================================

class PendingLicenseResponse(_WireModel):
    license_id: UUID = Field(..., alias="licenseId")
    code: str
    product_id: UUID = Field(..., alias="productId")
    product_name: Optional[str] = Field(default=None, alias="productName")
    created_at: datetime = Field(..., alias="createdAt")


class PendingLicenseListResponse(_WireModel):
    licenses: List[PendingLicenseResponse]
    total_count: int = Field(..., alias="totalCount")


class KitResponse(_WireModel):
    product_id: UUID = Field(..., alias="productId")
    product_name: Optional[str] = Field(default=None, alias="productName")
    quantity: int
    earliest_claimed_at: datetime = Field(..., alias="earliestClaimedAt")


class KitListResponse(_WireModel):
    kits: List[KitResponse]
    total_licenses: int = Field(..., alias="totalLicenses")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "kits": [
                    {
                        "productId": "123e4567-e89b-12d3-a456-426614174010",
                        "productName": "Starter Robotics Kit",
                        "quantity": 3,
                        "earliestClaimedAt": "2025-01-01T12:00:00Z"
                    }
                ],
                "totalLicenses": 3
            }
        }


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str

    class Config:
        json_schema_extra = {
            "example": {
                "error": "This license was claimed by another account"
            }
        }
