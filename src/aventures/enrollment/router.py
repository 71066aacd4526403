"""Enrollment API endpoints — wizard session, enrollments and admin status."""

from __future__ import annotations

import asyncio
import base64
import binascii

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from aventures.config import get_settings
from aventures.database import get_session
from aventures.dependencies import get_current_user_id, get_redis_dep, require_admin
from aventures.enrollment.errors import EnrollmentNotFoundError, TripNotFoundError
from aventures.enrollment.schemas import (
    EnrollmentResponse,
    ProofUploadRequest,
    StatusUpdateRequest,
    WizardResponse,
    WizardUpdateRequest,
)
from aventures.enrollment.service import (
    SqlEnrollmentGateway,
    attach_payment_proof,
    get_enrollment,
    transition_status,
)
from aventures.enrollment.sessions import WizardSessionStore
from aventures.enrollment.storage import LocalProofStorage
from aventures.enrollment.wizard import EnrollmentWizard, ProofFile, ProofUploader, validate_proof
from aventures.trips.service import get_trip

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["Enrollment"])

PROOF_UPLOAD_TIMEOUT = "The storage service did not respond in time. Please try again."
PROOF_UPLOAD_FAILED = "The payment proof could not be stored. Please try again."


def get_proof_uploader() -> ProofUploader:
    settings = get_settings()
    return LocalProofStorage(settings.payment_proof_dir, settings.media_base_url)


async def get_wizard_sessions(redis: object = Depends(get_redis_dep)) -> WizardSessionStore:
    return WizardSessionStore(redis, get_settings().wizard_session_ttl_seconds)


def _decode_proof(body: ProofUploadRequest) -> ProofFile:
    try:
        data = base64.b64decode(body.data_base64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise HTTPException(status_code=422, detail="Payment proof is not valid base64") from e
    return ProofFile(filename=body.filename, content_type=body.content_type, data=data)


def _build_wizard(
    state: dict | None,
    trip_id: str,
    user_id: str,
    db: AsyncSession,
    uploader: ProofUploader,
) -> EnrollmentWizard:
    settings = get_settings()
    gateway = SqlEnrollmentGateway(db)
    options = {
        "io_timeout": settings.enrollment_io_timeout_seconds,
        "max_proof_bytes": settings.payment_proof_max_bytes,
    }
    if state is None:
        return EnrollmentWizard(trip_id, user_id, gateway, gateway, uploader, **options)
    return EnrollmentWizard.from_state(state, gateway, gateway, uploader, **options)


async def _load_wizard(
    trip_id: str,
    user_id: str,
    db: AsyncSession,
    sessions: WizardSessionStore,
    uploader: ProofUploader,
) -> EnrollmentWizard:
    state = await sessions.load(user_id, trip_id)
    if state is None:
        raise HTTPException(status_code=404, detail="No enrollment in progress for this trip")
    return _build_wizard(state, trip_id, user_id, db, uploader)


# ── Wizard ──


@router.post("/trips/{trip_id}/enrollment/wizard", response_model=WizardResponse, status_code=201)
async def open_wizard(
    trip_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    sessions: WizardSessionStore = Depends(get_wizard_sessions),
    uploader: ProofUploader = Depends(get_proof_uploader),
):
    """Start a fresh enrollment for a trip, replacing any wizard in progress."""
    try:
        await get_trip(db, trip_id)
    except TripNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    wizard = _build_wizard(None, trip_id, user_id, db, uploader)
    await wizard.open()
    await sessions.save(wizard.to_state())
    return WizardResponse.from_wizard(wizard)


@router.get("/trips/{trip_id}/enrollment/wizard", response_model=WizardResponse)
async def get_wizard(
    trip_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    sessions: WizardSessionStore = Depends(get_wizard_sessions),
    uploader: ProofUploader = Depends(get_proof_uploader),
):
    wizard = await _load_wizard(trip_id, user_id, db, sessions, uploader)
    return WizardResponse.from_wizard(wizard)


@router.patch("/trips/{trip_id}/enrollment/wizard", response_model=WizardResponse)
async def update_wizard(
    trip_id: str,
    body: WizardUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    sessions: WizardSessionStore = Depends(get_wizard_sessions),
    uploader: ProofUploader = Depends(get_proof_uploader),
):
    """Update form fields. Fields left out of the body are unchanged."""
    wizard = await _load_wizard(trip_id, user_id, db, sessions, uploader)
    wizard.update(**body.model_dump(exclude_unset=True))
    await sessions.save(wizard.to_state())
    return WizardResponse.from_wizard(wizard)


@router.put("/trips/{trip_id}/enrollment/wizard/payment-proof", response_model=WizardResponse)
async def put_wizard_proof(
    trip_id: str,
    body: ProofUploadRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    sessions: WizardSessionStore = Depends(get_wizard_sessions),
    uploader: ProofUploader = Depends(get_proof_uploader),
):
    """Attach the payment proof image. It is uploaded once the enrollment is saved."""
    wizard = await _load_wizard(trip_id, user_id, db, sessions, uploader)
    wizard.attach_proof(_decode_proof(body))
    await sessions.save(wizard.to_state())
    return WizardResponse.from_wizard(wizard)


@router.post("/trips/{trip_id}/enrollment/wizard/next", response_model=WizardResponse)
async def wizard_next(
    trip_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    sessions: WizardSessionStore = Depends(get_wizard_sessions),
    uploader: ProofUploader = Depends(get_proof_uploader),
):
    """Advance one step. Leaving the payment step submits the enrollment."""
    wizard = await _load_wizard(trip_id, user_id, db, sessions, uploader)
    await wizard.next()
    await sessions.save(wizard.to_state())
    return WizardResponse.from_wizard(wizard)


@router.post("/trips/{trip_id}/enrollment/wizard/previous", response_model=WizardResponse)
async def wizard_previous(
    trip_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    sessions: WizardSessionStore = Depends(get_wizard_sessions),
    uploader: ProofUploader = Depends(get_proof_uploader),
):
    wizard = await _load_wizard(trip_id, user_id, db, sessions, uploader)
    wizard.previous()
    await sessions.save(wizard.to_state())
    return WizardResponse.from_wizard(wizard)


@router.delete("/trips/{trip_id}/enrollment/wizard", status_code=204)
async def close_wizard(
    trip_id: str,
    user_id: str = Depends(get_current_user_id),
    sessions: WizardSessionStore = Depends(get_wizard_sessions),
):
    """Discard the wizard. A submitted enrollment is kept."""
    await sessions.delete(user_id, trip_id)


# ── Enrollments ──


async def _get_own_enrollment(db: AsyncSession, enrollment_id: str, user_id: str):
    try:
        enrollment = await get_enrollment(db, enrollment_id)
    except EnrollmentNotFoundError as e:
        raise HTTPException(status_code=404, detail="Enrollment not found") from e
    if enrollment.user_id != user_id:
        raise HTTPException(status_code=404, detail="Enrollment not found")
    return enrollment


@router.get("/enrollments/{enrollment_id}", response_model=EnrollmentResponse)
async def read_enrollment(
    enrollment_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    return await _get_own_enrollment(db, enrollment_id, user_id)


@router.put("/enrollments/{enrollment_id}/payment-proof", response_model=EnrollmentResponse)
async def put_enrollment_proof(
    enrollment_id: str,
    body: ProofUploadRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    uploader: ProofUploader = Depends(get_proof_uploader),
):
    """Upload or replace the payment proof of an existing enrollment."""
    enrollment = await _get_own_enrollment(db, enrollment_id, user_id)
    if enrollment.status not in ("pending", "confirmed"):
        raise HTTPException(status_code=409, detail=f"Enrollment is {enrollment.status}")

    settings = get_settings()
    proof = _decode_proof(body)
    message = validate_proof(proof, settings.payment_proof_max_bytes)
    if message is not None:
        raise HTTPException(status_code=422, detail=message)

    try:
        url = await asyncio.wait_for(uploader.upload(enrollment.id, proof), settings.enrollment_io_timeout_seconds)
    except asyncio.TimeoutError as e:
        logger.warning("payment_proof_upload_timeout", enrollment_id=enrollment.id)
        raise HTTPException(status_code=504, detail=PROOF_UPLOAD_TIMEOUT) from e
    except Exception as e:
        logger.exception("payment_proof_upload_failed", enrollment_id=enrollment.id)
        raise HTTPException(status_code=503, detail=PROOF_UPLOAD_FAILED) from e
    return await attach_payment_proof(db, enrollment.id, url)


@router.post("/enrollments/{enrollment_id}/cancel", response_model=EnrollmentResponse)
async def cancel_enrollment(
    enrollment_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    enrollment = await _get_own_enrollment(db, enrollment_id, user_id)
    try:
        return await transition_status(db, redis, enrollment.id, "cancelled")
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e


# ── Admin ──


@router.post(
    "/admin/enrollments/{enrollment_id}/status",
    response_model=EnrollmentResponse,
    dependencies=[Depends(require_admin)],
)
async def update_enrollment_status(
    enrollment_id: str,
    body: StatusUpdateRequest,
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Confirm, cancel or complete an enrollment."""
    try:
        return await transition_status(db, redis, enrollment_id, body.status)
    except EnrollmentNotFoundError as e:
        raise HTTPException(status_code=404, detail="Enrollment not found") from e
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
