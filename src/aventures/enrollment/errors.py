"""Enrollment domain errors. Routes map these to 404/409 responses."""


class EnrollmentError(ValueError):
    """Base class for enrollment failures the caller can report to the user."""


class TripNotFoundError(EnrollmentError):
    def __init__(self, trip_id: str) -> None:
        super().__init__(f"Trip {trip_id} not found")
        self.trip_id = trip_id


class TripFullError(EnrollmentError):
    def __init__(self, trip_id: str) -> None:
        super().__init__("This trip is full")
        self.trip_id = trip_id


class DuplicateEnrollmentError(EnrollmentError):
    def __init__(self, trip_id: str, user_id: str) -> None:
        super().__init__("You are already enrolled in this trip")
        self.trip_id = trip_id
        self.user_id = user_id


class EnrollmentNotFoundError(EnrollmentError):
    def __init__(self, enrollment_id: str) -> None:
        super().__init__(f"Enrollment {enrollment_id} not found")
        self.enrollment_id = enrollment_id


class TripClosedError(EnrollmentError):
    def __init__(self, trip_id: str, status: str) -> None:
        super().__init__("This trip is no longer open for enrollment")
        self.trip_id = trip_id
        self.status = status
