import json
from unittest.mock import Mock, patch

from botocore.exceptions import ClientError

from bookswap.config import Settings
from bookswap.services.notification_service import (
    NotificationEventType,
    NotificationService,
)

QUEUE_URL = "https://sqs.ap-northeast-2.amazonaws.com/123456789012/bookswap-events"


def _settings(**overrides):
    values = {"NOTIFICATIONS_ENABLED": True, "NOTIFICATION_QUEUE_URL": QUEUE_URL}
    values.update(overrides)
    return Settings(**values)


class TestNotificationService:
    def test_disabled_publish_is_noop(self):
        service = NotificationService(_settings(NOTIFICATIONS_ENABLED=False))

        with patch("bookswap.services.notification_service.boto3.client") as mock_client:
            assert service.publish(1, NotificationEventType.BOOK_REQUEST, {}) is False
        mock_client.assert_not_called()

    def test_publish_sends_user_channel_event(self):
        service = NotificationService(_settings())
        sqs = Mock()

        with patch("bookswap.services.notification_service.boto3.client", return_value=sqs):
            delivered = service.publish(
                5, NotificationEventType.REQUEST_UPDATE, {"request_id": 9, "status": "ACCEPTED"}
            )

        assert delivered is True
        kwargs = sqs.send_message.call_args.kwargs
        assert kwargs["QueueUrl"] == QUEUE_URL
        assert "MessageGroupId" not in kwargs
        body = json.loads(kwargs["MessageBody"])
        assert body["channel"] == "user-5"
        assert body["event"] == "request-update"
        assert body["payload"] == {"request_id": 9, "status": "ACCEPTED"}

    def test_fifo_queue_groups_by_channel(self):
        service = NotificationService(_settings(NOTIFICATION_QUEUE_URL=QUEUE_URL + ".fifo"))
        sqs = Mock()

        with patch("bookswap.services.notification_service.boto3.client", return_value=sqs):
            service.publish(3, NotificationEventType.BOOK_REQUEST)

        assert sqs.send_message.call_args.kwargs["MessageGroupId"] == "user-3"

    def test_delivery_failure_returns_false(self):
        service = NotificationService(_settings())
        sqs = Mock()
        sqs.send_message.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "SendMessage"
        )

        with patch("bookswap.services.notification_service.boto3.client", return_value=sqs):
            assert service.publish(1, NotificationEventType.BOOK_REQUEST, {}) is False
