"""
Error taxonomy — every failure the provisioner can surface.

Four families, matching how the operator is expected to react:

    PreconditionError   host is unsuitable; nothing has been touched yet
    CommandError /      a step's underlying operation failed; fix the
    FetchError          condition and re-run the whole pipeline
    VerificationError   trust could not be established (TrustUnavailable)
                        or was actively contradicted (TrustViolation)
    StepError           pipeline wrapper carrying step name + diagnostics

Adapters never raise for a non-zero exit code; callers decide with
``CommandResult.check()`` which turns a failed result into CommandError.
"""

from __future__ import annotations

from collections.abc import Sequence


class ProvisionError(Exception):
    """Base class for all provisioning failures.

    ``output`` carries captured diagnostic text (combined stdout/stderr of
    the command that failed, gpg status lines, ...).
    """

    def __init__(self, message: str, *, output: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.output = output


class PreconditionError(ProvisionError):
    """Unsupported platform or missing privilege. Raised before any step runs."""


class CommandError(ProvisionError):
    """An external command exited non-zero (or could not be started)."""

    def __init__(
        self,
        message: str,
        *,
        argv: Sequence[str] = (),
        returncode: int = 1,
        output: str = "",
    ) -> None:
        super().__init__(message, output=output)
        self.argv = list(argv)
        self.returncode = returncode


class FetchError(ProvisionError):
    """A download failed."""

    def __init__(self, message: str, *, url: str = "", output: str = "") -> None:
        super().__init__(message, output=output)
        self.url = url


# ── Trust ───────────────────────────────────────────────────────────


class VerificationError(ProvisionError):
    """Base class for release verification failures."""


class TrustUnavailable(VerificationError):
    """Evidence needed to establish trust is missing (key, manifest, signature)."""


class TrustViolation(VerificationError):
    """Evidence actively contradicts trust. Never tolerated, never retried."""


class FingerprintMismatch(TrustViolation):
    """An imported key does not carry the pinned fingerprint."""

    def __init__(self, signer: str, expected: str, actual: Sequence[str] = ()) -> None:
        found = ", ".join(actual) if actual else "none"
        super().__init__(
            f"Key fingerprint mismatch for {signer}: expected {expected}, found {found}"
        )
        self.signer = signer
        self.expected = expected
        self.actual = list(actual)


class InsufficientSignatures(TrustViolation):
    """Fewer trusted good signatures than the policy threshold."""

    def __init__(self, observed: int, required: int, *, output: str = "") -> None:
        super().__init__(
            f"Insufficient valid signatures: got {observed}, need {required}",
            output=output,
        )
        self.observed = observed
        self.required = required


class BadSignature(TrustViolation):
    """A required signature did not verify."""


class ChecksumMismatch(TrustViolation):
    """An artifact's digest does not match its (signed) listing."""

    def __init__(self, filename: str, expected: str | None, actual: str) -> None:
        if expected is None:
            message = f"Checksum listing has no entry for {filename}"
        else:
            message = f"Checksum mismatch for {filename}: expected {expected}, got {actual}"
        super().__init__(message)
        self.filename = filename
        self.expected = expected
        self.actual = actual


# ── Pipeline ────────────────────────────────────────────────────────


class StepError(ProvisionError):
    """A pipeline step failed. Wraps the underlying cause."""

    def __init__(self, step_name: str, index: int, cause: BaseException) -> None:
        output = getattr(cause, "output", "") or ""
        super().__init__(f"{step_name} failed: {cause}", output=output)
        self.step_name = step_name
        self.index = index
        self.cause = cause
