"""
Applications API

POST /api/applications          - Create an application from the web form
GET  /api/applications          - List applications with optional filters
POST /api/applications/submit   - Submit an application from an external system
GET  /api/applications/submit   - Describe the external submission API
GET  /api/applications/{id}     - Fetch one application by id or tracking id
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from permit_intake.config.constants import APPLICATION_FIELDS, DEFAULT_PAGE_LIMIT, LOGGER_NAME
from permit_intake.database import get_db
from permit_intake.exceptions import NotFoundError
from permit_intake.models.schemas import (
    ApplicationPayload,
    ApplicationRecord,
    ExternalApplicationPayload,
    SubmissionChannel,
)
from permit_intake.stores import ApplicationStore

logger = logging.getLogger(LOGGER_NAME)

router = APIRouter(prefix="/api/applications", tags=["Applications"])

EXTERNAL_OPTIONAL_FIELDS = ["externalId", "sourceSystem", "submissionNotes"]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_application(payload: ApplicationPayload, db: Session = Depends(get_db)):
    application = ApplicationStore(db).create_application(payload, channel=SubmissionChannel.WEB)
    return {
        "success": True,
        "trackingId": application.tracking_id,
        "application": ApplicationRecord.from_db(application),
    }


@router.get("")
async def list_applications(
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=500),
    offset: int = Query(0, ge=0),
    establishmentName: Optional[str] = None,
    submissionChannel: Optional[SubmissionChannel] = None,
    db: Session = Depends(get_db),
):
    rows, total = ApplicationStore(db).get_all_applications(
        limit=limit,
        offset=offset,
        establishment_name=establishmentName,
        submission_channel=submissionChannel.value if submissionChannel else None,
    )
    return {
        "success": True,
        "applications": [ApplicationRecord.from_db(row) for row in rows],
        "total": total,
    }


@router.post("/submit", status_code=status.HTTP_201_CREATED)
async def submit_external_application(
    payload: ExternalApplicationPayload, db: Session = Depends(get_db)
):
    """
    System-to-system submission.

    The full request body, external metadata included, is kept as the
    record's raw data for audit.
    """
    application = ApplicationStore(db).create_application(
        payload,
        channel=SubmissionChannel.EXTERNAL_API,
        raw_data=payload.model_dump(mode="json", exclude_none=True),
    )
    logger.info(
        f"External application submitted: {application.tracking_id} "
        f"(externalId={payload.externalId}, sourceSystem={payload.sourceSystem})"
    )

    response = {
        "success": True,
        "message": "Application submitted successfully",
        "trackingId": application.tracking_id,
        "application": {
            "id": application.tracking_id,
            "establishmentName": application.establishment_name,
            "submissionChannel": application.submission_channel,
            "createdAt": application.created_at,
        },
    }
    if payload.externalId:
        response["externalReference"] = {
            "externalId": payload.externalId,
            "sourceSystem": payload.sourceSystem,
        }
    return response


@router.get("/submit")
async def describe_external_api():
    return {
        "message": "External Application Submission API",
        "description": "Submit complete food establishment permit applications from external systems",
        "version": "1.0.0",
        "endpoints": {
            "submit": {
                "method": "POST",
                "path": "/api/applications/submit",
                "description": "Submit a complete application",
            },
        },
        "requiredFields": APPLICATION_FIELDS,
        "optionalFields": EXTERNAL_OPTIONAL_FIELDS,
        "example": {
            "establishmentName": "Joe's Pizza",
            "streetAddress": "123 Main St, Anytown, ST 12345",
            "establishmentPhone": "5551234567",
            "establishmentEmail": "joe@pizza.com",
            "ownerName": "Joe Smith",
            "ownerPhone": "5559876543",
            "ownerEmail": "joe.smith@email.com",
            "establishmentType": "Restaurant",
            "plannedOpeningDate": "2030-06-01",
            "externalId": "EXT-2024-001",
            "sourceSystem": "City Permits System",
            "submissionNotes": "Submitted via automated integration",
        },
    }


@router.get("/{application_id}")
async def get_application(application_id: str, db: Session = Depends(get_db)):
    store = ApplicationStore(db)
    row = store.get_application(application_id) or store.get_application_by_tracking_id(application_id)
    if row is None:
        raise NotFoundError("Application not found")
    return {"success": True, "application": ApplicationRecord.from_db(row)}
