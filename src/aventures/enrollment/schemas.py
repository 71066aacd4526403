"""Pydantic request/response models for enrollment endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from aventures.enrollment.wizard import EnrollmentWizard, PaymentMethod

TShirtSize = Literal["XS", "S", "M", "L", "XL", "XXL"]
DietaryPreference = Literal["none", "vegetarian", "vegan", "gluten-free", "halal", "other"]


# --- Wizard ---


class WizardUpdateRequest(BaseModel):
    """Partial form update. Only fields present in the body are applied."""

    accepted_terms: bool = False
    dietary_preference: DietaryPreference | None = None
    tshirt_size: TShirtSize | None = None
    needs_transport: bool = False
    transport_pickup_point: str | None = Field(default=None, max_length=200)
    additional_questions: str | None = Field(default=None, max_length=2000)
    medical_info_confirmed: bool = False
    payment_method: PaymentMethod | None = None
    transaction_number: str | None = Field(default=None, max_length=64)


class ProofUploadRequest(BaseModel):
    filename: str = Field(..., min_length=1, max_length=255)
    content_type: str = Field(..., min_length=1, max_length=100)
    data_base64: str = Field(..., min_length=1)


class WizardFormResponse(BaseModel):
    accepted_terms: bool
    dietary_preference: str | None = None
    tshirt_size: str | None = None
    needs_transport: bool
    transport_pickup_point: str | None = None
    additional_questions: str | None = None
    medical_info_confirmed: bool
    payment_method: PaymentMethod | None = None
    transaction_number: str | None = None


class WizardResponse(BaseModel):
    trip_id: str
    step: int
    step_name: str
    form: WizardFormResponse
    proof_filename: str | None = None
    error: str | None = None
    warning: str | None = None
    remaining_seats: int | None = None
    enrollment_id: str | None = None
    reservation_number: str | None = None
    proof_uploaded: bool = False

    @classmethod
    def from_wizard(cls, wizard: EnrollmentWizard) -> WizardResponse:
        form = wizard.form
        return cls(
            trip_id=wizard.trip_id,
            step=int(wizard.step),
            step_name=wizard.step.name.lower(),
            form=WizardFormResponse(
                accepted_terms=form.accepted_terms,
                dietary_preference=form.dietary_preference,
                tshirt_size=form.tshirt_size,
                needs_transport=form.needs_transport,
                transport_pickup_point=form.transport_pickup_point,
                additional_questions=form.additional_questions,
                medical_info_confirmed=form.medical_info_confirmed,
                payment_method=form.payment_method,
                transaction_number=form.transaction_number,
            ),
            proof_filename=wizard.proof.filename if wizard.proof else None,
            error=wizard.error,
            warning=wizard.warning,
            remaining_seats=wizard.remaining_seats,
            enrollment_id=wizard.enrollment_id,
            reservation_number=wizard.reservation_number,
            proof_uploaded=wizard.proof_uploaded,
        )


# --- Enrollment ---


class EnrollmentResponse(BaseModel):
    id: str
    trip_id: str
    user_id: str
    status: str
    reservation_number: str
    accepted_terms: bool
    dietary_preference: str | None = None
    tshirt_size: str | None = None
    needs_transport: bool
    transport_pickup_point: str | None = None
    additional_questions: str | None = None
    medical_info_confirmed: bool
    payment_method: str | None = None
    payment_proof_url: str | None = None
    transaction_number: str | None = None
    total_amount: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class StatusUpdateRequest(BaseModel):
    status: Literal["confirmed", "cancelled", "completed"]
