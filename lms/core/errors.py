"""Domain error taxonomy.

Services raise these; the exception handler in lms.main renders them as

    {"detail": {"kind": "...", "message": "...", "data": {...}}}

with the status code of the error's kind.  ``data`` carries whatever the
caller needs to branch on (e.g. the price behind a PaymentRequired).
"""

from __future__ import annotations

from typing import Any, ClassVar


class LmsError(Exception):
    kind: ClassVar[str] = "error"
    status_code: ClassVar[int] = 500
    default_message: ClassVar[str] = "Request failed"

    def __init__(self, message: str | None = None, **data: Any) -> None:
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "data": self.data}


# --- not_found ---


class NotFoundError(LmsError):
    kind = "not_found"
    status_code = 404


class CourseNotFound(NotFoundError):
    default_message = "Course not found"


class LessonNotFound(NotFoundError):
    default_message = "Lesson not found"


class SectionNotFound(NotFoundError):
    default_message = "Section not found"


class UserNotFound(NotFoundError):
    default_message = "User not found"


class EnrollmentNotFound(NotFoundError):
    default_message = "Enrollment not found"


class NotEnrolled(NotFoundError):
    default_message = "Not enrolled in this course"


class PaymentNotFound(NotFoundError):
    default_message = "Payment not found or does not belong to you"


class LiveSessionNotFound(NotFoundError):
    default_message = "Live session not found"


# --- conflict ---


class ConflictError(LmsError):
    kind = "conflict"
    status_code = 409


class AlreadyEnrolled(ConflictError):
    default_message = "Already enrolled in this course"


class EnrollmentLimitReached(ConflictError):
    default_message = "Course enrollment limit has been reached"


class EnrollmentSuspended(ConflictError):
    default_message = "Enrollment is suspended"


class AlreadyCompleted(ConflictError):
    default_message = "Payment already completed"


class InvalidPaymentTransition(ConflictError):
    default_message = "Payment cannot move to the requested status"


class SlugTaken(ConflictError):
    default_message = "Slug already taken"


# --- payment_required ---


class PaymentRequired(LmsError):
    kind = "payment_required"
    status_code = 402
    default_message = "This course requires payment"


# --- invalid_input ---


class InvalidInputError(LmsError):
    kind = "invalid_input"
    status_code = 422


class InvalidStatus(InvalidInputError):
    default_message = "Invalid status. Must be active, completed, or suspended"


class NotAStudent(InvalidInputError):
    default_message = "User is not a student"


class CourseIsFree(InvalidInputError):
    default_message = "This course is free or has an invalid price"


# --- signature_invalid ---


class SignatureInvalidError(LmsError):
    kind = "signature_invalid"
    status_code = 400


class InvalidSignature(SignatureInvalidError):
    default_message = "Invalid payment signature"


class InvalidWebhookSignature(SignatureInvalidError):
    default_message = "Invalid webhook signature"


# --- upstream_failure ---


class UpstreamFailure(LmsError):
    kind = "upstream_failure"
    status_code = 502


class GatewayError(UpstreamFailure):
    default_message = "Payment gateway request failed"


class GatewayNotConfigured(UpstreamFailure):
    status_code = 503
    default_message = "Payment gateway is not configured"


class MeetingProviderError(UpstreamFailure):
    default_message = "Video meeting provider request failed"


class MeetingsNotConfigured(UpstreamFailure):
    status_code = 503
    default_message = "Video meeting provider is not configured"
