from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .config import AppConfig
from .dispatch import ArrDispatcher, DispatchOutcome
from .engine import find_instances
from .metadata import MetadataFetchError, OverseerrClient
from .models import ApplyTarget
from .webhook import Webhook, get_post_data, is_object, is_webhook

LOGGER = logging.getLogger(__name__)

ROUTABLE_NOTIFICATIONS = frozenset({"MEDIA_PENDING", "MEDIA_AUTO_APPROVED"})
TEST_NOTIFICATION = "TEST_NOTIFICATION"


@dataclass(slots=True)
class RouteResult:
    status: str  # routed | unmatched | ignored | test | invalid | error
    message: str = ""
    instances: Optional[ApplyTarget] = None
    outcomes: List[DispatchOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        if self.status == "routed":
            return all(outcome.success for outcome in self.outcomes)
        return self.status not in {"invalid", "error"}

    def as_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "message": self.message,
            "instances": self.instances,
            "outcomes": [outcome.as_dict() for outcome in self.outcomes],
        }


class WebhookRouter:
    def __init__(
        self,
        config: AppConfig,
        *,
        metadata_client: Optional[OverseerrClient] = None,
        dispatcher: Optional[ArrDispatcher] = None,
    ) -> None:
        settings = config.settings
        self.config = config
        self.metadata_client = metadata_client or OverseerrClient(settings.overseerr)
        self.dispatcher = dispatcher or ArrDispatcher(
            config.instances,
            timeout=settings.request_timeout,
            dry_run=settings.dry_run,
        )

    def route(self, webhook: Webhook, data: Mapping[str, Any], *, dispatch: bool = True) -> RouteResult:
        """Select instances for a webhook with known metadata and optionally dispatch."""
        media = webhook.media
        instances = find_instances(webhook, data, self.config.filters)
        if instances is None:
            LOGGER.info(
                "No filter matched %s request %s (tmdb %s)",
                media.media_type,
                webhook.request_id or "?",
                media.tmdb_id or "?",
            )
            return RouteResult(status="unmatched", message="No filter matched")

        LOGGER.info("Request %s routed to %s", webhook.request_id or "?", instances)
        if not dispatch:
            return RouteResult(status="routed", message="Dispatch skipped", instances=instances)

        outcomes = self.dispatcher.dispatch(instances, webhook, data, get_post_data(webhook))
        failed = [outcome.instance for outcome in outcomes if not outcome.success]
        message = f"Dispatch failed for {', '.join(failed)}" if failed else "Dispatched"
        return RouteResult(status="routed", message=message, instances=instances, outcomes=outcomes)

    def handle(self, payload: Any) -> RouteResult:
        if is_object(payload) and str(payload.get("notification_type") or "").upper() == TEST_NOTIFICATION:
            LOGGER.info("Received test notification")
            return RouteResult(status="test", message="Test notification received")

        if not is_webhook(payload):
            LOGGER.warning("Rejected payload that is not a webhook")
            return RouteResult(status="invalid", message="Payload is not a valid webhook")

        webhook = Webhook.from_payload(payload)
        notification_type = (webhook.notification_type or "").upper() or "<none>"
        if notification_type not in ROUTABLE_NOTIFICATIONS:
            LOGGER.debug("Ignoring notification type %s", notification_type)
            return RouteResult(status="ignored", message=f"Notification type {notification_type} is not routed")

        try:
            data = self.metadata_client.fetch_media_details(webhook.media.media_type, webhook.media.tmdb_id)
        except MetadataFetchError as exc:
            LOGGER.error("Metadata lookup failed for request %s: %s", webhook.request_id or "?", exc)
            return RouteResult(status="error", message=str(exc))

        return self.route(webhook, data)
