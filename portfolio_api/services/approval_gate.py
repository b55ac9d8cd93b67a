from __future__ import annotations

import logging

from ..domain.permissions import Action, AdminPage
from ..domain.policy import (
    NO_PERMISSIONS_MESSAGE,
    Allow,
    Deny,
    Enqueued,
    RequiresApproval,
    decide,
)
from ..domain.roles import AdministratorRole, DelegatedAdministrator
from .pending_requests import PendingRequestService, RequestProposal

logger = logging.getLogger("portfolio.permissions")


class ApprovalGate:
    """Turns approval-requiring writes into pending requests.

    Core admins are allowed through. Delegates holding the nominal
    UPDATE/DELETE bit get a pending request instead of a refusal.
    """

    def __init__(self, requests: PendingRequestService):
        self.requests = requests

    async def decide_or_enqueue(
        self,
        role: AdministratorRole,
        page: AdminPage,
        action: Action,
        proposal: RequestProposal,
    ) -> Allow | Deny | Enqueued:
        decision = decide(role, page, action)
        if not isinstance(decision, RequiresApproval):
            return decision

        if not isinstance(role, DelegatedAdministrator):
            return Deny(NO_PERMISSIONS_MESSAGE)
        request = await self.requests.submit(role, proposal)
        logger.info(
            "Queued %s on %s from %s as request %s",
            action.value,
            page.value,
            role.profile.email,
            request.id,
        )
        return Enqueued(pending_request_id=str(request.id), pending_request=request)
