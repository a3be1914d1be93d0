# trackmix/errors.py
from enum import Enum


class TrackmixError(Exception):
    """Base class for every error raised by trackmix."""


class _KindError(TrackmixError):
    def __init__(self, kind: Enum, detail: str = ""):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)


class ProbeErrorKind(str, Enum):
    FILE_NOT_FOUND = "file_not_found"
    UNSUPPORTED_CONTAINER = "unsupported_container"
    INSPECTION_FAILED = "inspection_failed"


class ProbeError(_KindError):
    kind: ProbeErrorKind


class SubmissionErrorKind(str, Enum):
    EMPTY_INPUTS = "empty_inputs"
    INVALID_OUTPUT_PATH = "invalid_output_path"
    INVALID_INPUT = "invalid_input"


class SubmissionError(_KindError):
    kind: SubmissionErrorKind


class MixErrorKind(str, Enum):
    SUBPROCESS_FAILED = "subprocess_failed"
    TIMEOUT = "timeout"
    OUTPUT_MISSING = "output_missing"
    OUTPUT_EMPTY = "output_empty"
    SOURCE_MISSING = "source_missing"
    CANCELLED = "cancelled"


class MixExecutionError(_KindError):
    kind: MixErrorKind


class JobNotFound(TrackmixError, KeyError):
    def __init__(self, job_id: int):
        self.job_id = job_id
        super().__init__(f"no mix job with id {job_id}")

    def __str__(self) -> str:
        return self.args[0]


class InvalidTransition(TrackmixError):
    def __init__(self, job_id: int, current, requested):
        self.job_id = job_id
        self.current = current
        self.requested = requested
        super().__init__(f"job {job_id}: cannot go from {current.value} to {requested.value}")
