"""Firebase Cloud Messaging (FCM) push notifications to floor staff."""

import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)


def waiter_topic(tenant_id: str) -> str:
    """FCM topic every waiter device of a tenant subscribes to."""
    return f"waiters-{tenant_id}"


class FirebasePushService:
    """Send push notifications via Firebase Cloud Messaging (FCM v1 API)."""

    def __init__(self):
        self._initialized = False
        self._app = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self, credentials_path: Optional[str] = None):
        """Initialize Firebase Admin SDK."""
        try:
            import firebase_admin
            from firebase_admin import credentials as fb_credentials

            if credentials_path:
                cred = fb_credentials.Certificate(credentials_path)
                self._app = firebase_admin.initialize_app(cred)
            else:
                self._app = firebase_admin.initialize_app()
            self._initialized = True
            logger.info("Firebase Admin SDK initialized")
        except Exception as e:
            logger.warning(f"Firebase initialization failed: {e}. Push notifications disabled.")

    async def send_to_topic(
        self, topic: str, title: str, body: str, data: Optional[Dict[str, str]] = None
    ) -> bool:
        """Send notification to a topic."""
        if not self._initialized:
            logger.debug("Firebase not initialized, skipping push notification")
            return False
        try:
            from firebase_admin import messaging

            message = messaging.Message(
                notification=messaging.Notification(title=title, body=body),
                data=data or {},
                topic=topic,
            )
            response = messaging.send(message)
            logger.info(f"Topic notification sent to '{topic}': {response}")
            return True
        except Exception as e:
            logger.error(f"Topic notification failed: {e}")
            return False

    async def notify_ready_to_serve(self, tenant_id: str, table_id: Optional[int], order_id: str) -> bool:
        """Tell the waiters that food for a table is waiting at the pass."""
        return await self.send_to_topic(
            waiter_topic(tenant_id),
            title=f"Table {table_id} ready to serve",
            body="An order is waiting at the pass.",
            data={"table_id": str(table_id), "order_id": str(order_id)},
        )


firebase_push = FirebasePushService()
