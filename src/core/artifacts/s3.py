"""
S3 Artifact Service

Artifact backend over S3-compatible object storage (AWS S3, MinIO, ...).

Object names follow the key builder layout:
    {app_name}/{user_id}/{session_id}/{filename}/{version}
    {app_name}/{user_id}/user/{filename}/{version}

The service talks to storage only through an ObjectStoreClient, so any
store offering list/put/get/delete can be plugged in. The default client
wraps boto3.

Every operation takes an optional keyword-only ``timeout`` in seconds. It
bounds each request the call makes, in place of the configured default
request timeout.
"""

from __future__ import annotations

import logging
import threading
from typing import (
    TYPE_CHECKING,
    Any,
    BinaryIO,
    Callable,
    ContextManager,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    runtime_checkable,
)

from opentelemetry.trace import Span

from .base import DEFAULT_MIME_TYPE, Artifact, ArtifactService, SessionInfo, StorageBackend
from .config import DEFAULT_REQUEST_TIMEOUT, ArtifactStorageConfig
from .errors import BackendError, ConfigurationError, InvalidVersionError, ObjectNotFoundError
from .keys import (
    build_object_name,
    build_object_name_prefix,
    build_session_prefix,
    build_user_namespace_prefix,
    filename_from_object_name,
    parse_version,
)
from .telemetry import artifact_span, log_extra

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)

# botocore error codes meaning "no such object"
_NOT_FOUND_CODES = frozenset(("NoSuchKey", "NoSuchBucket", "NotFound", "404"))


@runtime_checkable
class ObjectStoreClient(Protocol):
    """
    The four object store primitives the S3 artifact service relies on.

    ``timeout`` is a per-request deadline in seconds; None means the
    client's configured default.
    """

    def list_objects(self, prefix: str, *, timeout: Optional[float] = None) -> List[str]:
        """Return every object name under prefix. Raises ObjectNotFoundError if the bucket is missing."""
        ...

    def put_object(
        self, name: str, data: bytes, content_type: str, *, timeout: Optional[float] = None
    ) -> None:
        """Store data under name, replacing any existing object."""
        ...

    def get_object(
        self, name: str, *, timeout: Optional[float] = None
    ) -> Tuple[BinaryIO, Mapping[str, str]]:
        """Return (body stream, response headers). Raises ObjectNotFoundError."""
        ...

    def delete_object(self, name: str, *, timeout: Optional[float] = None) -> None:
        """Remove an object. Raises ObjectNotFoundError if the store reports it missing."""
        ...


class Boto3ObjectStoreClient:
    """
    ObjectStoreClient backed by a boto3 S3 client bound to one bucket.

    botocore "not found" errors are translated to ObjectNotFoundError; every
    other error propagates unchanged.

    boto3 fixes timeouts when a client is created, so a per-call timeout is
    served by a second client built by ``client_factory`` for that timeout
    and kept for reuse. Without a factory, per-call timeouts are ignored and
    the wrapped client's own timeout applies.
    """

    def __init__(
        self,
        bucket: str,
        s3_client: "S3Client",
        client_factory: Optional[Callable[[float], "S3Client"]] = None,
    ):
        self._bucket = bucket
        self._client = s3_client
        self._client_factory = client_factory
        self._clients_by_timeout: Dict[float, "S3Client"] = {}
        self._clients_lock = threading.Lock()

    @classmethod
    def create(
        cls,
        bucket: str,
        *,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> "Boto3ObjectStoreClient":
        """Create a boto3 S3 client and wrap it."""
        import boto3
        from botocore.config import Config

        client_kwargs: Dict[str, Any] = {}
        if region:
            client_kwargs["region_name"] = region
        if endpoint_url:
            client_kwargs["endpoint_url"] = endpoint_url
        if access_key_id and secret_access_key:
            client_kwargs["aws_access_key_id"] = access_key_id
            client_kwargs["aws_secret_access_key"] = secret_access_key

        def build(timeout: float) -> "S3Client":
            config = Config(connect_timeout=timeout, read_timeout=timeout)
            return boto3.client("s3", config=config, **client_kwargs)

        return cls(bucket, build(request_timeout), client_factory=build)

    @property
    def bucket(self) -> str:
        return self._bucket

    def _client_for(self, timeout: Optional[float]) -> "S3Client":
        if timeout is None or self._client_factory is None:
            return self._client
        with self._clients_lock:
            client = self._clients_by_timeout.get(timeout)
            if client is None:
                client = self._client_factory(timeout)
                self._clients_by_timeout[timeout] = client
            return client

    @staticmethod
    def _is_not_found(error: Exception) -> bool:
        from botocore.exceptions import ClientError

        if not isinstance(error, ClientError):
            return False
        code = str(error.response.get("Error", {}).get("Code", ""))
        return code in _NOT_FOUND_CODES

    def list_objects(self, prefix: str, *, timeout: Optional[float] = None) -> List[str]:
        paginator = self._client_for(timeout).get_paginator("list_objects_v2")
        names: List[str] = []
        try:
            for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    names.append(obj["Key"])
        except Exception as e:
            if self._is_not_found(e):
                raise ObjectNotFoundError(prefix) from e
            raise
        return names

    def put_object(
        self, name: str, data: bytes, content_type: str, *, timeout: Optional[float] = None
    ) -> None:
        self._client_for(timeout).put_object(
            Bucket=self._bucket,
            Key=name,
            Body=data,
            ContentType=content_type,
        )

    def get_object(
        self, name: str, *, timeout: Optional[float] = None
    ) -> Tuple[BinaryIO, Mapping[str, str]]:
        try:
            response = self._client_for(timeout).get_object(Bucket=self._bucket, Key=name)
        except Exception as e:
            if self._is_not_found(e):
                raise ObjectNotFoundError(name) from e
            raise

        headers: Dict[str, str] = {}
        if response.get("ContentType"):
            headers["Content-Type"] = response["ContentType"]
        if response.get("ContentLength") is not None:
            headers["Content-Length"] = str(response["ContentLength"])
        return response["Body"], headers

    def delete_object(self, name: str, *, timeout: Optional[float] = None) -> None:
        try:
            self._client_for(timeout).delete_object(Bucket=self._bucket, Key=name)
        except Exception as e:
            if self._is_not_found(e):
                raise ObjectNotFoundError(name) from e
            raise


# =============================================================================
# Client builder
# =============================================================================

ClientBuilder = Callable[..., object]


def default_client_builder(
    *,
    bucket: str,
    endpoint_url: Optional[str] = None,
    region: Optional[str] = None,
    access_key_id: Optional[str] = None,
    secret_access_key: Optional[str] = None,
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
) -> Boto3ObjectStoreClient:
    """Build the boto3-backed client."""
    return Boto3ObjectStoreClient.create(
        bucket,
        endpoint_url=endpoint_url,
        region=region,
        access_key_id=access_key_id,
        secret_access_key=secret_access_key,
        request_timeout=request_timeout,
    )


_client_builder: ClientBuilder = default_client_builder


def set_client_builder(builder: ClientBuilder) -> None:
    """
    Replace the builder used to construct object store clients.

    The builder receives the service configuration as keyword arguments and
    must return an ObjectStoreClient.
    """
    global _client_builder
    _client_builder = builder


def get_client_builder() -> ClientBuilder:
    """Return the builder used to construct object store clients."""
    return _client_builder


def reset_client_builder() -> None:
    """Restore the default boto3 client builder."""
    set_client_builder(default_client_builder)


# =============================================================================
# Service
# =============================================================================


class S3ArtifactService(ArtifactService):
    """
    S3-compatible implementation of ArtifactService.

    Environment Variables:
        ARTIFACT_S3_BUCKET: Bucket name (required unless passed or a client is given)
        ARTIFACT_S3_ENDPOINT_URL: Custom endpoint for MinIO/localstack
        ARTIFACT_S3_REGION: Region (default: us-east-1)
        ARTIFACT_S3_ACCESS_KEY_ID / ARTIFACT_S3_SECRET_ACCESS_KEY: Credentials
        ARTIFACT_S3_REQUEST_TIMEOUT: Default per-request timeout in seconds (default: 60)

    Version assignment lists the existing versions and writes max + 1. The
    list and the write are not atomic: two concurrent saves to the same
    filename can pick the same version, and the later upload replaces the
    earlier one. Closing this gap needs a conditional put or a version
    reservation primitive, which the client interface does not offer.
    Saves to different filenames never interfere.
    """

    def __init__(
        self,
        bucket: Optional[str] = None,
        *,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        request_timeout: Optional[float] = None,
        client: Optional[ObjectStoreClient] = None,
        config: Optional[ArtifactStorageConfig] = None,
    ):
        """
        Initialize S3 artifact storage.

        Args:
            bucket: Bucket name. Falls back to ARTIFACT_S3_BUCKET.
            endpoint_url: Custom endpoint for S3-compatible services.
            region: Region name.
            access_key_id: Access key. Falls back to ARTIFACT_S3_ACCESS_KEY_ID.
            secret_access_key: Secret key. Falls back to ARTIFACT_S3_SECRET_ACCESS_KEY.
            request_timeout: Default per-request timeout in seconds.
            client: Pre-built object store client. When given, every other
                    argument is ignored.
            config: Configuration to read defaults from (default: environment).

        Raises:
            ConfigurationError: If no bucket is configured or the client
                                builder returns something that is not an
                                ObjectStoreClient.
        """
        if client is not None:
            self._client = self._check_client(client)
            return

        config = config or ArtifactStorageConfig.from_env()

        bucket = bucket or config.S3_BUCKET
        if not bucket:
            raise ConfigurationError(
                "S3 bucket name required. Set ARTIFACT_S3_BUCKET environment variable "
                "or pass bucket parameter."
            )

        built = get_client_builder()(
            bucket=bucket,
            endpoint_url=endpoint_url or config.S3_ENDPOINT_URL,
            region=region or config.S3_REGION,
            access_key_id=access_key_id or config.S3_ACCESS_KEY_ID,
            secret_access_key=secret_access_key or config.S3_SECRET_ACCESS_KEY,
            request_timeout=request_timeout or config.S3_REQUEST_TIMEOUT,
        )
        self._client = self._check_client(built)
        logger.info(f"Created S3ArtifactService for bucket {bucket}")

    @staticmethod
    def _check_client(client: object) -> ObjectStoreClient:
        if not isinstance(client, ObjectStoreClient):
            raise ConfigurationError(
                "client builder returned invalid type: expected ObjectStoreClient, "
                f"got {type(client).__name__}"
            )
        return client

    @property
    def backend_type(self) -> StorageBackend:
        return StorageBackend.S3

    @property
    def client(self) -> ObjectStoreClient:
        return self._client

    def _span(
        self,
        operation: str,
        session_info: SessionInfo,
        filename: Optional[str],
        timeout: Optional[float],
    ) -> ContextManager[Span]:
        if timeout is not None and timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        return artifact_span(self.backend_type, operation, session_info, filename)

    def _versions(
        self, session_info: SessionInfo, filename: str, timeout: Optional[float]
    ) -> List[int]:
        """List stored versions, ignoring objects that are not direct versions."""
        prefix = build_object_name_prefix(session_info, filename)
        try:
            names = self._client.list_objects(prefix, timeout=timeout)
        except ObjectNotFoundError:
            return []
        except Exception as e:
            logger.warning(
                f"Listing versions under {prefix} failed: {e}",
                extra=log_extra(session_info, filename),
            )
            raise BackendError("list versions", e) from e

        versions = set()
        for name in names:
            version = parse_version(name)
            # Nested objects ("{path}/x/0") belong to another filename
            if version is not None and name == f"{prefix}{version}":
                versions.add(version)
        return sorted(versions)

    def save_artifact(
        self,
        session_info: SessionInfo,
        filename: str,
        artifact: Artifact,
        *,
        timeout: Optional[float] = None,
    ) -> int:
        with self._span("save_artifact", session_info, filename, timeout) as span:
            versions = self._versions(session_info, filename, timeout)
            version = max(versions) + 1 if versions else 0

            object_name = build_object_name(session_info, filename, version)
            try:
                self._client.put_object(
                    object_name,
                    artifact.data,
                    artifact.mime_type or DEFAULT_MIME_TYPE,
                    timeout=timeout,
                )
            except Exception as e:
                logger.warning(
                    f"Upload of {object_name} failed: {e}",
                    extra=log_extra(session_info, filename, version),
                )
                raise BackendError("upload artifact", e) from e

            span.set_attribute("artifact.version", version)
            logger.debug(
                f"Saved artifact ({artifact.size_bytes} bytes)",
                extra=log_extra(session_info, filename, version),
            )
            return version

    def load_artifact(
        self,
        session_info: SessionInfo,
        filename: str,
        version: Optional[int] = None,
        *,
        timeout: Optional[float] = None,
    ) -> Optional[Artifact]:
        if version is not None and version < 0:
            raise InvalidVersionError(version, filename)

        with self._span("load_artifact", session_info, filename, timeout) as span:
            if version is None:
                versions = self._versions(session_info, filename, timeout)
                if not versions:
                    return None
                version = max(versions)
            span.set_attribute("artifact.version", version)

            object_name = build_object_name(session_info, filename, version)
            try:
                body, headers = self._client.get_object(object_name, timeout=timeout)
            except ObjectNotFoundError:
                return None
            except Exception as e:
                logger.warning(
                    f"Download of {object_name} failed: {e}",
                    extra=log_extra(session_info, filename, version),
                )
                raise BackendError("download artifact", e) from e

            try:
                data = body.read()
            except Exception as e:
                raise BackendError("read artifact data", e) from e
            finally:
                body.close()

            return Artifact(
                data=data,
                mime_type=headers.get("Content-Type") or DEFAULT_MIME_TYPE,
                name=filename,
            )

    def _filenames_under(
        self, session_info: SessionInfo, prefix: str, operation: str, timeout: Optional[float]
    ) -> List[str]:
        try:
            names = self._client.list_objects(prefix, timeout=timeout)
        except ObjectNotFoundError:
            return []
        except Exception as e:
            logger.warning(f"Listing {prefix} failed: {e}", extra=log_extra(session_info))
            raise BackendError(operation, e) from e

        filenames = []
        for name in names:
            filename = filename_from_object_name(name)
            if filename is not None:
                filenames.append(filename)
        return filenames

    def list_artifact_keys(
        self, session_info: SessionInfo, *, timeout: Optional[float] = None
    ) -> List[str]:
        with self._span("list_artifact_keys", session_info, None, timeout):
            filenames = set(
                self._filenames_under(
                    session_info,
                    build_session_prefix(session_info),
                    "list session artifacts",
                    timeout,
                )
            )
            filenames.update(
                self._filenames_under(
                    session_info,
                    build_user_namespace_prefix(session_info),
                    "list user artifacts",
                    timeout,
                )
            )
            return sorted(filenames)

    def delete_artifact(
        self, session_info: SessionInfo, filename: str, *, timeout: Optional[float] = None
    ) -> None:
        """
        Delete every version of an artifact, one object at a time.

        Objects already gone are skipped. A failure stops the deletion and is
        raised; versions deleted before it are not restored.
        """
        with self._span("delete_artifact", session_info, filename, timeout) as span:
            versions = self._versions(session_info, filename, timeout)
            for version in versions:
                object_name = build_object_name(session_info, filename, version)
                try:
                    self._client.delete_object(object_name, timeout=timeout)
                except ObjectNotFoundError:
                    continue
                except Exception as e:
                    logger.warning(
                        f"Delete of {object_name} failed: {e}",
                        extra=log_extra(session_info, filename, version),
                    )
                    raise BackendError(f"delete artifact version {version}", e) from e

            span.set_attribute("artifact.deleted_versions", len(versions))
            if versions:
                logger.info(
                    f"Deleted artifact ({len(versions)} versions)",
                    extra=log_extra(session_info, filename),
                )

    def list_versions(
        self, session_info: SessionInfo, filename: str, *, timeout: Optional[float] = None
    ) -> List[int]:
        with self._span("list_versions", session_info, filename, timeout):
            return self._versions(session_info, filename, timeout)
