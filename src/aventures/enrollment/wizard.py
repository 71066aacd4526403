"""Trip enrollment wizard — 5-step state machine.

State progression: confirm -> details -> medical -> payment -> done
Forward moves are guarded per step; backward moves keep the form data.
Leaving the payment step commits the enrollment, then uploads the payment
proof best-effort. A failed upload never undoes the enrollment.

The wizard owns no I/O of its own: availability, persistence and file upload
go through the collaborator protocols below, each call bounded by a timeout.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import asdict, dataclass, field
from enum import Enum, IntEnum
from typing import Any, Protocol

from aventures.enrollment.errors import EnrollmentError

logger = logging.getLogger(__name__)

DEFAULT_IO_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_PROOF_BYTES = 5 * 1024 * 1024

TERMS_REQUIRED = "You must accept terms and conditions to continue"
MEDICAL_REQUIRED = "You must confirm your medical information is up to date"
PAYMENT_METHOD_REQUIRED = "Please select a payment method"
PROOF_REQUIRED = "Please upload a payment proof"
TRANSACTION_REQUIRED = "Please enter the transaction number"
PROOF_NOT_IMAGE = "The payment proof must be an image"
PROOF_TOO_LARGE = "The payment proof must not exceed {limit} MB"
ALREADY_SUBMITTED = "This enrollment has already been submitted"
NO_PREVIOUS_STEP = "There is no previous step"
COMMIT_TIMEOUT = "The enrollment service did not respond in time. Please try again."
COMMIT_FAILED = "Your enrollment could not be saved. Please try again."
AVAILABILITY_UNKNOWN = "Seat availability could not be checked. You can still continue."
TRIP_FULL_WARNING = "This trip appears to be full. Your enrollment may be refused."
UPLOAD_FAILED_WARNING = (
    "Your enrollment is saved but the payment proof could not be uploaded. "
    "You can upload it again from your enrollment."
)


class WizardStep(IntEnum):
    CONFIRM = 1
    DETAILS = 2
    MEDICAL = 3
    PAYMENT = 4
    DONE = 5


class PaymentMethod(str, Enum):
    CCP = "ccp"
    BARIDIMOB = "baridimob"
    ON_SITE = "on-site"


@dataclass
class EnrollmentForm:
    """Form data collected across steps 1-4."""

    # Step 1
    accepted_terms: bool = False
    # Step 2
    dietary_preference: str | None = None
    tshirt_size: str | None = None
    needs_transport: bool = False
    transport_pickup_point: str | None = None
    additional_questions: str | None = None
    # Step 3
    medical_info_confirmed: bool = False
    # Step 4
    payment_method: PaymentMethod | None = None
    transaction_number: str | None = None


FORM_FIELDS = frozenset(EnrollmentForm.__dataclass_fields__)


@dataclass(frozen=True)
class ProofFile:
    filename: str
    content_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


class SeatAvailability(Protocol):
    available: bool
    remaining: int


class CreatedEnrollment(Protocol):
    id: str
    reservation_number: str


class AvailabilityChecker(Protocol):
    async def check_availability(self, trip_id: str) -> SeatAvailability: ...


class EnrollmentStore(Protocol):
    async def create(self, trip_id: str, user_id: str, form: EnrollmentForm) -> CreatedEnrollment: ...

    async def attach_proof(self, enrollment_id: str, url: str) -> None: ...


class ProofUploader(Protocol):
    async def upload(self, enrollment_id: str, proof: ProofFile) -> str: ...


def validate_proof(proof: ProofFile, max_bytes: int = DEFAULT_MAX_PROOF_BYTES) -> str | None:
    """Return an error message if the file is not an acceptable payment proof."""
    if not proof.content_type.startswith("image/"):
        return PROOF_NOT_IMAGE
    if proof.size > max_bytes:
        return PROOF_TOO_LARGE.format(limit=max_bytes // (1024 * 1024))
    return None


def validate_step(step: WizardStep, form: EnrollmentForm, proof: ProofFile | None = None) -> str | None:
    """Return the message for the first unmet guard on leaving ``step``, or None."""
    if step is WizardStep.CONFIRM:
        if not form.accepted_terms:
            return TERMS_REQUIRED
    elif step is WizardStep.MEDICAL:
        if not form.medical_info_confirmed:
            return MEDICAL_REQUIRED
    elif step is WizardStep.PAYMENT:
        # Earlier steps can be edited after they were passed
        if not form.accepted_terms:
            return TERMS_REQUIRED
        if not form.medical_info_confirmed:
            return MEDICAL_REQUIRED
        if form.payment_method is None:
            return PAYMENT_METHOD_REQUIRED
        if form.payment_method is not PaymentMethod.ON_SITE:
            if proof is None:
                return PROOF_REQUIRED
            if not (form.transaction_number or "").strip():
                return TRANSACTION_REQUIRED
    elif step is WizardStep.DONE:
        return ALREADY_SUBMITTED
    return None


class EnrollmentWizard:
    """One user's pass through the enrollment form for one trip.

    Every public operation reports its outcome through ``error`` and
    ``warning`` instead of raising, so callers can render the current step
    as-is after any call.
    """

    def __init__(
        self,
        trip_id: str,
        user_id: str,
        availability: AvailabilityChecker,
        store: EnrollmentStore,
        uploader: ProofUploader,
        *,
        io_timeout: float = DEFAULT_IO_TIMEOUT_SECONDS,
        max_proof_bytes: int = DEFAULT_MAX_PROOF_BYTES,
    ) -> None:
        self.trip_id = trip_id
        self.user_id = user_id
        self._availability = availability
        self._store = store
        self._uploader = uploader
        self._io_timeout = io_timeout
        self._max_proof_bytes = max_proof_bytes

        self.step = WizardStep.CONFIRM
        self.form = EnrollmentForm()
        self.proof: ProofFile | None = None
        self.error: str | None = None
        self.warning: str | None = None
        self.remaining_seats: int | None = None
        self.enrollment_id: str | None = None
        self.reservation_number: str | None = None
        self.proof_uploaded = False

    @property
    def is_done(self) -> bool:
        return self.step is WizardStep.DONE

    async def open(self) -> None:
        """Enter step 1 and run the soft availability check."""
        self.step = WizardStep.CONFIRM
        self.error = None
        self.warning = None
        try:
            availability = await asyncio.wait_for(
                self._availability.check_availability(self.trip_id), self._io_timeout
            )
        except Exception:
            logger.warning("Availability check failed for trip %s", self.trip_id, exc_info=True)
            self.remaining_seats = None
            self.warning = AVAILABILITY_UNKNOWN
            return

        self.remaining_seats = availability.remaining
        if not availability.available:
            self.warning = TRIP_FULL_WARNING

    def update(self, **changes: Any) -> bool:
        """Apply form field changes. Refused once the enrollment is submitted."""
        if self.is_done:
            self.error = ALREADY_SUBMITTED
            return False
        unknown = set(changes) - FORM_FIELDS
        if unknown:
            raise ValueError(f"Unknown enrollment fields: {sorted(unknown)}")

        if changes.get("payment_method") is not None:
            changes["payment_method"] = PaymentMethod(changes["payment_method"])
        for name, value in changes.items():
            setattr(self.form, name, value)
        self.error = None
        return True

    def attach_proof(self, proof: ProofFile) -> bool:
        if self.is_done:
            self.error = ALREADY_SUBMITTED
            return False
        message = validate_proof(proof, self._max_proof_bytes)
        if message is not None:
            self.error = message
            return False
        self.proof = proof
        self.error = None
        return True

    async def next(self) -> bool:
        """Advance one step if the current step's guard passes."""
        message = validate_step(self.step, self.form, self.proof)
        if message is not None:
            self.error = message
            return False

        if self.step is WizardStep.PAYMENT:
            return await self._submit()

        self.step = WizardStep(self.step + 1)
        self.error = None
        return True

    def previous(self) -> bool:
        """Go back one step. Form data is kept, only the error is cleared."""
        if self.is_done:
            self.error = ALREADY_SUBMITTED
            return False
        if self.step is WizardStep.CONFIRM:
            self.error = NO_PREVIOUS_STEP
            return False
        self.step = WizardStep(self.step - 1)
        self.error = None
        return True

    def close(self) -> None:
        """Discard in-memory data and return to step 1. A committed enrollment is unaffected."""
        self.step = WizardStep.CONFIRM
        self.form = EnrollmentForm()
        self.proof = None
        self.error = None
        self.warning = None
        self.remaining_seats = None
        self.enrollment_id = None
        self.reservation_number = None
        self.proof_uploaded = False

    async def _submit(self) -> bool:
        try:
            enrollment = await asyncio.wait_for(
                self._store.create(self.trip_id, self.user_id, self.form), self._io_timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Enrollment commit timed out for trip %s", self.trip_id)
            self.error = COMMIT_TIMEOUT
            return False
        except EnrollmentError as e:
            self.error = str(e)
            return False
        except Exception:
            logger.exception("Enrollment commit failed for trip %s", self.trip_id)
            self.error = COMMIT_FAILED
            return False

        self.enrollment_id = enrollment.id
        self.reservation_number = enrollment.reservation_number
        self.step = WizardStep.DONE
        self.error = None
        self.warning = None
        logger.info("Enrollment %s created for trip %s", enrollment.id, self.trip_id)

        if self.proof is not None:
            await self._upload_proof(enrollment.id, self.proof)
        self.proof = None
        return True

    async def _upload_proof(self, enrollment_id: str, proof: ProofFile) -> None:
        try:
            url = await asyncio.wait_for(self._uploader.upload(enrollment_id, proof), self._io_timeout)
            await asyncio.wait_for(self._store.attach_proof(enrollment_id, url), self._io_timeout)
        except Exception:
            logger.warning("Payment proof upload failed for enrollment %s", enrollment_id, exc_info=True)
            self.warning = UPLOAD_FAILED_WARNING
            return
        self.proof_uploaded = True

    # ── Serialization ──

    def to_state(self) -> dict[str, Any]:
        """JSON-safe snapshot of the wizard, for session storage."""
        form = asdict(self.form)
        if self.form.payment_method is not None:
            form["payment_method"] = self.form.payment_method.value
        proof = None
        if self.proof is not None:
            proof = {
                "filename": self.proof.filename,
                "content_type": self.proof.content_type,
                "data": base64.b64encode(self.proof.data).decode("ascii"),
            }
        return {
            "trip_id": self.trip_id,
            "user_id": self.user_id,
            "step": int(self.step),
            "form": form,
            "proof": proof,
            "error": self.error,
            "warning": self.warning,
            "remaining_seats": self.remaining_seats,
            "enrollment_id": self.enrollment_id,
            "reservation_number": self.reservation_number,
            "proof_uploaded": self.proof_uploaded,
        }

    @classmethod
    def from_state(
        cls,
        state: dict[str, Any],
        availability: AvailabilityChecker,
        store: EnrollmentStore,
        uploader: ProofUploader,
        **options: Any,
    ) -> EnrollmentWizard:
        wizard = cls(state["trip_id"], state["user_id"], availability, store, uploader, **options)
        wizard.step = WizardStep(state["step"])
        form = dict(state.get("form") or {})
        if form.get("payment_method") is not None:
            form["payment_method"] = PaymentMethod(form["payment_method"])
        wizard.form = EnrollmentForm(**{k: v for k, v in form.items() if k in FORM_FIELDS})
        proof = state.get("proof")
        if proof:
            wizard.proof = ProofFile(
                filename=proof["filename"],
                content_type=proof["content_type"],
                data=base64.b64decode(proof["data"]),
            )
        wizard.error = state.get("error")
        wizard.warning = state.get("warning")
        wizard.remaining_seats = state.get("remaining_seats")
        wizard.enrollment_id = state.get("enrollment_id")
        wizard.reservation_number = state.get("reservation_number")
        wizard.proof_uploaded = bool(state.get("proof_uploaded"))
        return wizard
