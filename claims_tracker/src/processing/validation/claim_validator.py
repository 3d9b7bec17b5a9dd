import re
from typing import List
import structlog

from ...api.models.claim_models import Claim
from ...core.exceptions import ClaimValidationError

logger = structlog.get_logger(__name__)

NPI_PATTERN = re.compile(r"^\d{10}$")


class ClaimValidator:
    """
    Checks a claim before it is committed. Scoring and aggregation never call this;
    they accept whatever partially-populated claim they are given.
    """

    def validate_claim(self, claim: Claim) -> List[str]:
        """
        Validates a single claim against the commit rules.
        Returns a list of error messages. An empty list means the claim is valid.
        """
        errors: List[str] = []

        if not (claim.claim_number or "").strip():
            errors.append("Missing claim_number.")

        if not (claim.patient_name or "").strip():
            errors.append("Missing patient_name.")

        if not (claim.payer_name or "").strip():
            errors.append("Missing payer_name.")

        if claim.billed_amount is None or claim.billed_amount < 0:
            errors.append(f"Billed amount ({claim.billed_amount}) cannot be negative.")

        for field_name in ("allowed_amount", "paid_amount", "patient_responsibility"):
            value = getattr(claim, field_name)
            if value is not None and value < 0:
                errors.append(f"{field_name} ({value}) cannot be negative.")

        if claim.service_date and claim.service_date_end and claim.service_date_end < claim.service_date:
            errors.append(
                f"Service end date ({claim.service_date_end}) cannot be before service date ({claim.service_date})."
            )

        if claim.provider_npi and not NPI_PATTERN.match(claim.provider_npi.strip()):
            errors.append(f"Provider NPI ({claim.provider_npi}) must be 10 digits.")

        if errors:
            logger.debug("Claim validation failed", claim_number=claim.claim_number, errors=errors)
        else:
            logger.debug("Claim validation successful", claim_number=claim.claim_number)

        return errors

    def ensure_valid(self, claim: Claim) -> Claim:
        errors = self.validate_claim(claim)
        if errors:
            raise ClaimValidationError(errors)
        return claim
