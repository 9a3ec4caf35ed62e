class EnrollmentError(Exception):
    """Base class for failures that abort an enrollment."""


class EnrollmentValidationError(EnrollmentError):
    """The request was rejected before any store or device work."""


class SubjectNotFoundError(EnrollmentValidationError):
    def __init__(self, subject_id: int):
        super().__init__(f"Subject {subject_id} not found")
        self.subject_id = subject_id


class UnsupportedImageError(EnrollmentValidationError):
    pass


class PersistenceError(EnrollmentError):
    """The store write failed and was rolled back."""


class DeviceConfigError(Exception):
    """The device client cannot be built from the given configuration."""
