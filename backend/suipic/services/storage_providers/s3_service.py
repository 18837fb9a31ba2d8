from suipic.core.config import settings
from suipic.core.errors import NotFound, UpstreamFailure
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
import logging

logger = logging.getLogger(__name__)

_MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


class S3Service:
    """
    S3 Compatible Storage Service (Garage, MinIO, R2, AWS).
    Implements StorageInterface.
    """

    def __init__(self, client=None, bucket_name: str = None):
        self.endpoint_url = settings.S3_ENDPOINT_URL
        self.bucket_name = bucket_name or settings.S3_BUCKET_NAME

        if client is None:
            session = boto3.session.Session()
            client = session.client(
                's3',
                endpoint_url=self.endpoint_url or None,
                aws_access_key_id=settings.S3_ACCESS_KEY_ID,
                aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
                region_name=settings.S3_REGION_NAME,
                # Path-style addressing is required for Garage/MinIO
                config=Config(signature_version='s3v4', s3={'addressing_style': 'path'})
            )
        self.s3_client = client

    def put(self, key: str, data: bytes, content_type: str) -> None:
        """Upload bytes."""
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 upload failed for {key}: {e}")
            raise UpstreamFailure("Failed to store image")

    def get(self, key: str) -> bytes:
        """Download bytes."""
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=key)
            return response['Body'].read()
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in _MISSING_KEY_CODES:
                raise NotFound("Stored object not found")
            logger.error(f"S3 download failed for {key}: {e}")
            raise UpstreamFailure("Failed to read image")
        except BotoCoreError as e:
            logger.error(f"S3 download failed for {key}: {e}")
            raise UpstreamFailure("Failed to read image")

    def delete(self, key: str) -> None:
        """Delete object."""
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise UpstreamFailure(f"Failed to delete {key}: {e}")

    def signed_url(self, key: str, ttl_seconds: int) -> str:
        """Generate GET URL."""
        try:
            return self.s3_client.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket_name, 'Key': key},
                ExpiresIn=ttl_seconds
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error signing URL for {key}: {e}")
            raise UpstreamFailure("Failed to sign image URL")
