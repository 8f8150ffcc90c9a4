import json
import logging
import os
from datetime import datetime, timezone

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .currency import format_eur

logger = logging.getLogger(__name__)

AWS_REGION = os.environ.get("AWS_REGION", "eu-west-1")
SQS_QUEUE_URL = os.environ.get("SQS_QUEUE_URL")
SNS_TOPIC_ARN = os.environ.get("SNS_TOPIC_ARN")


def get_sqs_client():
    """
    Return a boto3 SQS client.
    """
    return boto3.client("sqs", region_name=AWS_REGION)


def get_sns_client():
    """
    Return a boto3 SNS client.
    """
    return boto3.client("sns", region_name=AWS_REGION)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def send_order_event_to_sqs(order_id: int, user_id, total, items: list):
    """
    Send an order event message to SQS.

    items is expected to be a list of dicts with keys such as:
        [{"game_id": 1, "quantity": 2, "price": 9.99}, ...]
    """
    if not SQS_QUEUE_URL:
        raise RuntimeError("SQS_QUEUE_URL environment variable is not set.")

    sqs = get_sqs_client()

    payload = {
        "order_id": order_id,
        "user_id": user_id,
        "total": float(total),
        "items": items,
        "created_at": _utc_now(),
        "source": "game-storefront",
    }

    try:
        sqs.send_message(
            QueueUrl=SQS_QUEUE_URL,
            MessageBody=json.dumps(payload),
        )
    except (BotoCoreError, ClientError) as e:
        raise RuntimeError(f"Failed to send order event to SQS: {e}") from e


def notify_order_via_sns(order_id: int, customer: str, total):
    """
    Publish a simple notification to SNS when an order is placed.
    """
    if not SNS_TOPIC_ARN:
        raise RuntimeError("SNS_TOPIC_ARN environment variable is not set.")

    sns = get_sns_client()

    subject = f"New Game Store Order #{order_id}"
    message = (
        f"A new order has been placed.\n\n"
        f"Order ID: {order_id}\n"
        f"Customer: {customer}\n"
        f"Total: {format_eur(total)}\n"
        f"Time (UTC): {_utc_now()}\n"
    )

    try:
        sns.publish(
            TopicArn=SNS_TOPIC_ARN,
            Subject=subject,
            Message=message,
        )
    except (BotoCoreError, ClientError) as e:
        raise RuntimeError(f"Failed to publish order notification to SNS: {e}") from e


def publish_order_placed(order, customer: str = "guest") -> None:
    """
    Announce a committed order on whichever of SQS and SNS is configured.

    Publishing is best-effort: failures are logged and never propagate,
    the order already exists.
    """
    items = [
        {"game_id": line.game_id, "quantity": line.quantity, "price": float(line.price)}
        for line in order.lines
    ]

    if SQS_QUEUE_URL:
        try:
            send_order_event_to_sqs(
                order_id=order.order_id,
                user_id=order.user_id,
                total=order.total_amount,
                items=items,
            )
        except RuntimeError as e:
            logger.warning("SQS send error: %s", e)

    if SNS_TOPIC_ARN:
        try:
            notify_order_via_sns(
                order_id=order.order_id,
                customer=customer,
                total=order.total_amount,
            )
        except RuntimeError as e:
            logger.warning("SNS publish error: %s", e)
