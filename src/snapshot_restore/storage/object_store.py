"""
Object storage backend (S3 and S3-compatible services).

Google Cloud Storage is reached through its S3 interoperability endpoint
when the source uses the gs:// scheme.
"""

import logging
import posixpath
from typing import List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError, HTTPClientError
from botocore.exceptions import ConnectionError as BotoConnectionError

from ..errors import BackendError, ObjectNotFoundError, TransientBackendError
from .backend import Backend

logger = logging.getLogger(__name__)

GCS_S3_ENDPOINT = 'https://storage.googleapis.com'

NOT_FOUND_CODES = {'404', 'NoSuchKey', 'NotFound'}
TRANSIENT_CODES = {
    'RequestTimeout',
    'RequestTimeoutException',
    'SlowDown',
    'Throttling',
    'ThrottlingException',
    'TooManyRequestsException',
    'InternalError',
    'ServiceUnavailable',
}


def create_s3_client(
    endpoint_url: Optional[str] = None,
    region: Optional[str] = None,
    max_pool_connections: int = 32,
):
    """
    Create a boto3 S3 client.

    Credentials come from the standard AWS resolution chain (env vars,
    shared credentials file, instance profile). Retries are left to the
    restore engine, so botocore makes a single attempt per call.
    """
    boto_config = BotoConfig(
        signature_version='s3v4',
        max_pool_connections=max_pool_connections,
        retries={'max_attempts': 1, 'mode': 'standard'},
    )
    client_kwargs = {'config': boto_config}
    if endpoint_url:
        client_kwargs['endpoint_url'] = endpoint_url
    if region:
        client_kwargs['region_name'] = region

    session = boto3.session.Session()
    return session.client('s3', **client_kwargs)


class ObjectStoreBackend(Backend):
    """
    Backend over one bucket of an S3-compatible object store.

    boto3 clients are safe to share between threads, so one client serves
    every restore worker.
    """

    def __init__(
        self,
        bucket: str,
        scheme: str = 's3',
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
        client=None,
    ):
        """
        Args:
            bucket: bucket name
            scheme: 's3' or 'gs', used for messages and the default endpoint
            endpoint_url: custom endpoint (MinIO, R2, GCS interop)
            region: region name
            client: preconfigured boto3 S3 client (tests, custom sessions)
        """
        self.bucket = bucket
        self.scheme = scheme
        if endpoint_url is None and scheme == 'gs':
            endpoint_url = GCS_S3_ENDPOINT
        self.endpoint_url = endpoint_url
        self.client = client if client is not None else create_s3_client(endpoint_url, region)
        logger.debug(
            "Object store backend %s (endpoint %s)", self.describe(), endpoint_url or "default",
        )

    def list(self, prefix: str) -> List[str]:
        full_prefix = prefix.strip('/') + '/' if prefix.strip('/') else ''
        names = []
        token = None

        while True:
            kwargs = {
                'Bucket': self.bucket,
                'Prefix': full_prefix,
                'Delimiter': '/',
            }
            if token:
                kwargs['ContinuationToken'] = token
            response = self._call("list", prefix, self.client.list_objects_v2, **kwargs)

            for obj in response.get('Contents', []):
                name = obj['Key'][len(full_prefix):]
                if name:
                    names.append(name)
            for common in response.get('CommonPrefixes', []):
                name = common['Prefix'][len(full_prefix):].rstrip('/')
                if name:
                    names.append(name)

            if not response.get('IsTruncated'):
                break
            token = response.get('NextContinuationToken')

        return sorted(names)

    def exists(self, key: str) -> bool:
        try:
            self._call("head", key, self.client.head_object, Bucket=self.bucket, Key=key)
            return True
        except ObjectNotFoundError:
            return False

    def read_range(self, key: str, offset: int, length: int) -> bytes:
        if length <= 0:
            return b''
        byte_range = f"bytes={offset}-{offset + length - 1}"
        response = self._call(
            "read", key, self.client.get_object,
            Bucket=self.bucket, Key=key, Range=byte_range,
        )
        return self._read_body(key, response)

    def read(self, key: str) -> bytes:
        response = self._call("read", key, self.client.get_object, Bucket=self.bucket, Key=key)
        return self._read_body(key, response)

    def write_range(self, key: str, offset: int, data: bytes) -> None:
        if offset != 0:
            raise BackendError(
                f"Object storage only supports whole-object writes: {self.describe(key)}"
            )
        self._call("write", key, self.client.put_object, Bucket=self.bucket, Key=key, Body=data)

    def describe(self, key: str = '') -> str:
        return f"{self.scheme}://{posixpath.join(self.bucket, key)}"

    def _read_body(self, key: str, response: dict) -> bytes:
        body = response['Body']
        try:
            return body.read()
        except (BotoConnectionError, HTTPClientError) as e:
            raise TransientBackendError("read", key, e)
        finally:
            body.close()

    def _call(self, operation: str, key: str, method, **kwargs):
        """Invoke a client method, translating botocore errors."""
        try:
            return method(**kwargs)
        except ClientError as e:
            error = e.response.get('Error', {})
            code = str(error.get('Code', ''))
            status = e.response.get('ResponseMetadata', {}).get('HTTPStatusCode') or 0
            if code in NOT_FOUND_CODES or status == 404:
                raise ObjectNotFoundError(key)
            if code in TRANSIENT_CODES or status >= 500 or status == 429:
                raise TransientBackendError(operation, key, e)
            raise BackendError(
                f"Object store error during {operation}: {self.describe(key)}\nCause: {e}"
            )
        except (BotoConnectionError, HTTPClientError) as e:
            raise TransientBackendError(operation, key, e)
        except BotoCoreError as e:
            raise BackendError(
                f"Object store error during {operation}: {self.describe(key)}\nCause: {e}"
            )

    def __repr__(self) -> str:
        return f"ObjectStoreBackend({self.describe()!r})"
