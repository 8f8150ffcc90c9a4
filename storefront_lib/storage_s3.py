import os

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import UploadError

S3_BUCKET_NAME = os.environ.get("S3_BUCKET_NAME")
AWS_REGION = os.environ.get("AWS_REGION", "eu-west-1")


def get_s3_client():
    return boto3.client("s3", region_name=AWS_REGION)


def s3_enabled() -> bool:
    return bool(S3_BUCKET_NAME)


def upload_game_image(file_storage, filename: str) -> str:
    """
    Upload a game image to S3 and return the public URL.

    Relies on the bucket policy for public-read access. This function
    does NOT set an ACL because the bucket uses Object Ownership
    'Bucket owner enforced', which disables ACLs.
    """
    if not S3_BUCKET_NAME:
        raise UploadError("Image storage is not configured.")

    s3_client = get_s3_client()
    key = f"game-images/{filename}"

    try:
        s3_client.upload_fileobj(
            Fileobj=file_storage.stream,
            Bucket=S3_BUCKET_NAME,
            Key=key,
            ExtraArgs={"ContentType": file_storage.mimetype or "image/jpeg"},
        )
    except (BotoCoreError, ClientError) as e:
        raise UploadError("Failed to upload image.") from e

    return f"https://{S3_BUCKET_NAME}.s3.{AWS_REGION}.amazonaws.com/{key}"
