"""
알림 디스패처

교환 이벤트를 사용자 채널(`user-{id}`)로 SQS 에 발행합니다.
실시간 푸시 계층이 큐를 소비합니다. 원장 정합성은 알림 전달 여부에
의존하지 않으므로 이 서비스는 절대 예외를 던지지 않습니다.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, Field

from bookswap.config import Settings

logger = logging.getLogger(__name__)


class NotificationEventType:
    BOOK_REQUEST = "book-request"
    REQUEST_UPDATE = "request-update"


class NotificationEvent(BaseModel):
    channel: str
    event: str
    target_user_id: int
    payload: Dict[str, Any] = Field(default_factory=dict)
    emitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def user_channel(user_id: int) -> str:
    return f"user-{user_id}"


class NotificationService:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.region_name = settings.AWS_REGION
        self.aws_access_key_id = settings.AWS_ACCESS_KEY_ID
        self.aws_secret_access_key = settings.AWS_SECRET_ACCESS_KEY
        self.queue_url = settings.NOTIFICATION_QUEUE_URL
        self._sqs = None

    def _client(self):
        if self._sqs is None:
            if self.aws_access_key_id and self.aws_secret_access_key:
                self._sqs = boto3.client(
                    "sqs",
                    region_name=self.region_name,
                    aws_access_key_id=self.aws_access_key_id,
                    aws_secret_access_key=self.aws_secret_access_key,
                )
            else:
                self._sqs = boto3.client("sqs", region_name=self.region_name)
        return self._sqs

    @property
    def enabled(self) -> bool:
        return bool(self.settings.NOTIFICATIONS_ENABLED and self.queue_url)

    def publish(
        self,
        target_user_id: int,
        event_type: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        이벤트 발행 (fire-and-forget)

        Returns:
            bool: 큐에 전달되었으면 True. 비활성/실패 시 False (예외 없음)
        """
        event = NotificationEvent(
            channel=user_channel(target_user_id),
            event=event_type,
            target_user_id=target_user_id,
            payload=payload or {},
        )

        if not self.enabled:
            logger.debug(f"Notification skipped (disabled): {event.event} -> {event.channel}")
            return False

        params = {"QueueUrl": self.queue_url, "MessageBody": event.model_dump_json()}
        if self.queue_url.endswith(".fifo"):
            # 사용자 채널 단위로 순서 보장
            params["MessageGroupId"] = event.channel
        try:
            self._client().send_message(**params)
            logger.info(f"Notification published: {event.event} -> {event.channel}")
            return True
        except (BotoCoreError, ClientError) as e:
            logger.warning(
                f"Notification delivery failed: {event.event} -> {event.channel}: {e}"
            )
            return False
