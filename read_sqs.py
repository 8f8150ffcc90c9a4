import json
import sys

from storefront_lib import aws_events


def main(max_messages: int = 1) -> int:
    """Print pending order events from the configured SQS queue."""
    if not aws_events.SQS_QUEUE_URL:
        print("Missing SQS_QUEUE_URL")
        return 1

    sqs = aws_events.get_sqs_client()

    response = sqs.receive_message(
        QueueUrl=aws_events.SQS_QUEUE_URL,
        MaxNumberOfMessages=max_messages,
        WaitTimeSeconds=2
    )

    messages = response.get("Messages", [])
    if not messages:
        print("No messages available.")
    else:
        for msg in messages:
            event = json.loads(msg["Body"])
            print(f"Order #{event['order_id']}:")
            print(json.dumps(event, indent=4))
    return 0


if __name__ == "__main__":
    sys.exit(main(int(sys.argv[1]) if len(sys.argv) > 1 else 1))
