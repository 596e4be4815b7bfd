"""
Verify use case — fetch and authenticate a release without installing.

Runs the same download and verification code as the install pipeline,
so an operator can check a release (or the trust setup) up front.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from typing import Literal

from vpnode.core.errors import ProvisionError, TrustViolation
from vpnode.core.models.trust import VerificationReport
from vpnode.core.services.provision import bitcoin, lnd
from vpnode.core.services.provision.host import HostContext

logger = logging.getLogger(__name__)

Family = Literal["bitcoin", "lnd"]


@dataclass
class VerifyResult:
    family: str = ""
    version: str = ""
    report: VerificationReport | None = None
    error: str | None = None
    output: str = ""
    violation: bool = False     # trust actively contradicted

    @property
    def ok(self) -> bool:
        return self.error is None and self.report is not None

    def to_dict(self) -> dict:
        result: dict = {"family": self.family, "version": self.version, "ok": self.ok}
        if self.report:
            result["report"] = self.report.model_dump(mode="json")
        if self.error:
            result["error"] = self.error
            result["violation"] = self.violation
        return result


def verify_release(family: Family, host: HostContext) -> VerifyResult:
    """Download and verify the pinned release of ``family``.

    The work directory is removed after a successful check and kept
    after a failure.
    """
    if family == "bitcoin":
        staged = bitcoin.stage_bitcoin_core(host)
    else:
        staged = lnd.stage_lnd(host)

    result = VerifyResult(family=staged.release.family, version=staged.release.version)

    try:
        if family == "bitcoin":
            staged.download(host, listing_required=True)
            result.report = bitcoin.verify_bitcoin_core(host, staged)
        else:
            lnd.download_lnd(host, staged)
            result.report = lnd.verify_lnd(host, staged)
    except ProvisionError as e:
        result.error = str(e)
        result.output = e.output
        result.violation = isinstance(e, TrustViolation)
        logger.error("%s verification failed: %s", result.family, e)
        return result

    shutil.rmtree(staged.workdir, ignore_errors=True)
    return result
