"""
Lifecycle State Machine

Applies verified lifecycle events to the credential store and drives the
provisioning relay.

States:
    UNREGISTERED -> REGISTERED -> INSTALLED -> {UNINSTALLED, UNREGISTERED}
"""

from typing import Optional

from structlog import get_logger

from ..auth.models import VerifiedIdentity
from ..credentials.models import RegistrationInfo
from ..credentials.store import CredentialStore
from ..errors import ConfigurationError
from ..relay.provisioning import ProvisioningRelay
from ..relay.schema import RelayStatus
from .models import (
    InstalledEvent,
    LifecycleEvent,
    LifecycleEventType,
    LifecycleOutcome,
    LifecycleResult,
    LifecycleState,
    RegisteredEvent,
)

logger = get_logger()

_RELAY_OUTCOMES = {
    RelayStatus.SUCCEEDED: LifecycleOutcome.APPLIED,
    RelayStatus.FAILED: LifecycleOutcome.DOWNSTREAM_FAILED,
    RelayStatus.DOWNSTREAM_UNAVAILABLE: LifecycleOutcome.DOWNSTREAM_UNAVAILABLE,
}


class LifecycleStateMachine:
    """Dispatches verified lifecycle events to state transitions."""

    def __init__(self, store: CredentialStore, provisioning: ProvisioningRelay):
        self.store = store
        self.provisioning = provisioning

    def state_of(self, tenant_id: str, dev_tenant_id: Optional[str], app_id: Optional[str]) -> LifecycleState:
        """Derive a tenant's lifecycle state from what the store holds."""
        registration = self._registration(dev_tenant_id, app_id)
        if registration is None:
            return LifecycleState.UNREGISTERED
        if self.store.get(tenant_id) is not None:
            return LifecycleState.INSTALLED
        return LifecycleState.REGISTERED

    def handle(
        self,
        event: LifecycleEvent,
        identity: VerifiedIdentity,
        dev_tenant_id: Optional[str],
        app_id: Optional[str],
    ) -> LifecycleResult:
        """
        Apply one verified lifecycle event.

        Args:
            event: Parsed lifecycle event
            identity: Verified identity of the inbound request
            dev_tenant_id: Tenant that registered the app (request header)
            app_id: App identifier (request header)

        Returns:
            Structured lifecycle result
        """
        event_type = LifecycleEventType(event.id)
        tenant_id = identity.tenant_id
        logger.info("lifecycle_event_received", event_type=event_type.value, tenant_id=tenant_id, app_id=app_id)

        if event_type == LifecycleEventType.REGISTERED:
            return self._on_registered(event, identity, app_id)
        elif event_type == LifecycleEventType.INSTALLED:
            return self._on_installed(event, identity, dev_tenant_id, app_id)
        elif event_type == LifecycleEventType.UNREGISTERED:
            return self._on_unregistered(identity, dev_tenant_id, app_id)
        elif event_type == LifecycleEventType.UNINSTALLED:
            return self._on_uninstalled(identity, dev_tenant_id, app_id)
        else:
            raise ValueError(f"Unhandled lifecycle event: {event_type}")

    def _registration(self, dev_tenant_id: Optional[str], app_id: Optional[str]) -> Optional[RegistrationInfo]:
        if not dev_tenant_id or not app_id:
            return None
        return self.store.get_registration(dev_tenant_id, app_id)

    def _reject(self, event_type: LifecycleEventType, identity: VerifiedIdentity, detail: str) -> LifecycleResult:
        logger.warning(
            "lifecycle_event_rejected",
            event_type=event_type.value,
            tenant_id=identity.tenant_id,
            detail=detail,
        )
        return LifecycleResult(
            event=event_type,
            tenant_id=identity.tenant_id,
            outcome=LifecycleOutcome.REJECTED,
            state=LifecycleState.UNREGISTERED,
            detail=detail,
        )

    def _on_registered(self, event: RegisteredEvent, identity: VerifiedIdentity, app_id: Optional[str]) -> LifecycleResult:
        if not app_id:
            return self._reject(LifecycleEventType.REGISTERED, identity, "Missing app id")

        payload = event.data.model_dump(by_alias=True, exclude_none=True)
        self.store.upsert_registration(payload, identity.tenant_id, app_id)

        return LifecycleResult(
            event=LifecycleEventType.REGISTERED,
            tenant_id=identity.tenant_id,
            outcome=LifecycleOutcome.APPLIED,
            state=LifecycleState.REGISTERED,
        )

    def _on_installed(
        self,
        event: InstalledEvent,
        identity: VerifiedIdentity,
        dev_tenant_id: Optional[str],
        app_id: Optional[str],
    ) -> LifecycleResult:
        registration = self._registration(dev_tenant_id, app_id)
        if registration is None:
            return self._reject(LifecycleEventType.INSTALLED, identity, "Unknown tenant/app registration")

        tenant_id = identity.tenant_id
        supplied = event.data.client_credentials
        client_id = (supplied.client_id if supplied else None) or registration.client_id
        client_secret = (supplied.client_secret if supplied else None) or registration.client_secret

        self.store.upsert_account(tenant_id, event.data.region, client_id=client_id, client_secret=client_secret)

        try:
            relay = self.provisioning.provision(tenant_id, identity)
        except ConfigurationError as e:
            logger.error("integration_setup_not_configured", tenant_id=tenant_id, error=str(e))
            return LifecycleResult(
                event=LifecycleEventType.INSTALLED,
                tenant_id=tenant_id,
                outcome=LifecycleOutcome.CONFIGURATION_ERROR,
                state=LifecycleState.INSTALLED,
                detail=str(e),
            )

        return LifecycleResult(
            event=LifecycleEventType.INSTALLED,
            tenant_id=tenant_id,
            outcome=_RELAY_OUTCOMES[relay.status],
            state=LifecycleState.INSTALLED,
            relay=relay,
            detail=relay.error,
        )

    def _on_unregistered(
        self,
        identity: VerifiedIdentity,
        dev_tenant_id: Optional[str],
        app_id: Optional[str],
    ) -> LifecycleResult:
        if self._registration(dev_tenant_id, app_id) is None:
            return self._reject(LifecycleEventType.UNREGISTERED, identity, "Unknown tenant/app registration")

        # Irreversible; no downstream notification
        self.store.remove_all()
        self.store.remove_registrations()

        return LifecycleResult(
            event=LifecycleEventType.UNREGISTERED,
            tenant_id=identity.tenant_id,
            outcome=LifecycleOutcome.APPLIED,
            state=LifecycleState.UNREGISTERED,
        )

    def _on_uninstalled(
        self,
        identity: VerifiedIdentity,
        dev_tenant_id: Optional[str],
        app_id: Optional[str],
    ) -> LifecycleResult:
        if self._registration(dev_tenant_id, app_id) is None:
            return self._reject(LifecycleEventType.UNINSTALLED, identity, "Unknown tenant/app registration")

        tenant_id = identity.tenant_id
        relay = None
        detail = None

        # Best effort: notification failures never block local teardown
        try:
            relay = self.provisioning.notify_uninstall(tenant_id, identity)
            if relay.succeeded:
                logger.info("uninstall_notification_sent", tenant_id=tenant_id)
            else:
                detail = relay.error
                logger.error("uninstall_notification_failed", tenant_id=tenant_id, error=relay.error)
        except ConfigurationError as e:
            detail = str(e)
            logger.error("uninstall_notification_failed", tenant_id=tenant_id, error=str(e))

        self.store.remove(tenant_id)

        return LifecycleResult(
            event=LifecycleEventType.UNINSTALLED,
            tenant_id=tenant_id,
            outcome=LifecycleOutcome.APPLIED,
            state=LifecycleState.UNINSTALLED,
            relay=relay,
            detail=detail,
        )
