"""Domain errors raised by the campaign ledger services.

Every error carries a stable ``code`` (returned to API clients) and the HTTP
status the API layer answers with.  Services always raise; a raised error
means the operation was rolled back and left no trace in the ledger.
"""

from __future__ import annotations


class FundingError(Exception):
    code: str = "FundingError"
    status_code: int = 400

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.code
        super().__init__(self.detail)


class NotFound(FundingError):
    code = "NotFound"
    status_code = 404


class CampaignNotFound(NotFound):
    """Raised for an unknown campaign id."""


class InvalidMilestone(FundingError):
    code = "InvalidMilestone"
    status_code = 404


class InvalidParameters(FundingError):
    code = "InvalidParameters"
    status_code = 400


class Unauthorized(FundingError):
    code = "Unauthorized"
    status_code = 403


class CampaignNotActive(FundingError):
    code = "CampaignNotActive"
    status_code = 409


CampaignAlreadyFinal = CampaignNotActive


class ZeroAmount(FundingError):
    code = "ZeroAmount"
    status_code = 400


class DeadlinePassed(FundingError):
    code = "DeadlinePassed"
    status_code = 409


class MilestoneDeadlinePassed(FundingError):
    code = "MilestoneDeadlinePassed"
    status_code = 409


class ExceedsTarget(FundingError):
    code = "ExceedsTarget"
    status_code = 409


class NotFullyFunded(FundingError):
    code = "NotFullyFunded"
    status_code = 409


class MilestoneNotPending(FundingError):
    code = "MilestoneNotPending"
    status_code = 409


class PriorMilestoneIncomplete(FundingError):
    code = "PriorMilestoneIncomplete"
    status_code = 409


class AlreadyVoted(FundingError):
    code = "AlreadyVoted"
    status_code = 409


class NoContribution(FundingError):
    code = "NoContribution"
    status_code = 409


class RefundNotAvailable(FundingError):
    code = "RefundNotAvailable"
    status_code = 409


class TransferFailed(FundingError):
    code = "TransferFailed"
    status_code = 502
