"""In-memory store for every resource the GCP mock serves.

A single ``MemoryStore`` owns buckets, objects (with their content), Cloud
SQL instances, databases, users and the operation log. All public methods
are synchronous and atomic: reads run under the shared side of an
``RWLock``, mutations under the exclusive side. Callers always receive
deep copies, never references into the store.

Data is lost on restart.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from urllib.parse import quote

import crc32c

from gcpmock.errors import (
    AlreadyExists,
    BucketAlreadyExists,
    BucketNotEmpty,
    BucketNotFound,
    DatabaseNotFound,
    DeletionProtected,
    InstanceNotFound,
    ObjectNotFound,
    UserNotFound,
)
from gcpmock.models.base import utcnow
from gcpmock.models.sqladmin import (
    DEFAULT_CHARSET,
    DEFAULT_COLLATION,
    DEFAULT_DATABASE_VERSION,
    DEFAULT_REGION,
    DEFAULT_TIER,
    DEFAULT_USER_HOST,
    DEFAULT_USER_TYPE,
    OP_CREATE,
    OP_CREATE_DATABASE,
    OP_CREATE_USER,
    OP_DELETE,
    OP_DELETE_DATABASE,
    OP_DELETE_USER,
    OP_UPDATE,
    OP_UPDATE_DATABASE,
    OP_UPDATE_USER,
    Database,
    DatabaseInsertRequest,
    DatabaseInstance,
    DatabasePatchRequest,
    InstanceInsertRequest,
    InstancePatchRequest,
    IpMapping,
    Operation,
    Settings,
    User,
    UserInsertRequest,
    UserUpdateRequest,
)
from gcpmock.models.storage import (
    DEFAULT_CONTENT_TYPE,
    DEFAULT_LOCATION,
    DEFAULT_STORAGE_CLASS,
    Bucket,
    BucketInsertRequest,
    BucketUpdateRequest,
    Object,
    ObjectUpdateRequest,
)
from gcpmock.store.lock import RWLock
from gcpmock.store.oplog import OperationLog
from gcpmock.validation import validate_bucket_name

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8080"
DEFAULT_PROJECT = "playground"
DEFAULT_PROJECT_NUMBER = 123456789012

# Settings fields the store owns; patch bodies never overwrite them.
_SETTINGS_READONLY = frozenset({"kind", "settings_version"})


# ---------------------------------------------------------------------------
# Checksums
# ---------------------------------------------------------------------------


def compute_md5(data: bytes) -> str:
    """Return the base64-encoded MD5 digest of *data*."""
    return base64.b64encode(hashlib.md5(data).digest()).decode("ascii")


def compute_crc32c(data: bytes) -> str:
    """Return the base64-encoded big-endian CRC32C (Castagnoli) of *data*."""
    return base64.b64encode(crc32c.crc32c(data).to_bytes(4, "big")).decode("ascii")


@dataclass
class _StoredObject:
    meta: Object
    content: bytes


def _user_key(name: str, host: str | None) -> tuple[str, str]:
    return name, host or DEFAULT_USER_HOST


def _is_zero(value: Any) -> bool:
    """True for values a partial update treats as "not provided".

    Booleans are never zero-valued here: an explicit ``false`` is a real
    request to turn a flag off.
    """
    if value is None:
        return True
    if isinstance(value, bool):
        return False
    return value == "" or value == 0


class MemoryStore:
    """Coherent in-memory dataset for Cloud Storage and Cloud SQL resources.

    Attributes:
        base_url: Prefix used for ``selfLink``/``mediaLink`` values.
        project_id: Configured project identity.
        project_number: Numeric project id reported on buckets.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        project_id: str = DEFAULT_PROJECT,
        project_number: int = DEFAULT_PROJECT_NUMBER,
    ) -> None:
        self._lock = RWLock()
        self.base_url = base_url.rstrip("/")
        self.project_id = project_id
        self.project_number = project_number
        self._last_nanos = 0

        self._buckets: dict[str, Bucket] = {}
        self._objects: dict[str, dict[str, _StoredObject]] = {}
        self._instances: dict[str, DatabaseInstance] = {}
        self._databases: dict[str, dict[str, Database]] = {}
        self._users: dict[str, dict[tuple[str, str], User]] = {}
        self._oplog = OperationLog(self.base_url, self.project_id)

    def reset(self) -> None:
        """Drop every resource. Configuration is kept."""
        with self._lock.write():
            self._buckets.clear()
            self._objects.clear()
            self._instances.clear()
            self._databases.clear()
            self._users.clear()
            self._oplog.clear()
        logger.debug("Store reset")

    def stats(self) -> dict[str, int]:
        """Return resource counts for dashboards and metrics gauges."""
        with self._lock.read():
            return {
                "buckets": len(self._buckets),
                "objects": sum(len(objs) for objs in self._objects.values()),
                "bytes": sum(
                    len(stored.content)
                    for objs in self._objects.values()
                    for stored in objs.values()
                ),
                "instances": len(self._instances),
                "databases": sum(len(dbs) for dbs in self._databases.values()),
                "users": sum(len(users) for users in self._users.values()),
                "operations": len(self._oplog),
            }

    # -- internal helpers (caller holds the lock) -----------------------------

    def _tick(self) -> tuple[datetime, int]:
        """Return (now, nanos) with nanos strictly greater than any previous value."""
        nanos = max(time.time_ns(), self._last_nanos + 1)
        self._last_nanos = nanos
        return utcnow(), nanos

    @staticmethod
    def _etag(nanos: int) -> str:
        return base64.b64encode(f"CAE{nanos}".encode("ascii")).decode("ascii")

    def _sql_prefix(self) -> str:
        return f"{self.base_url}/sql/v1beta4/projects/{self.project_id}"

    def _require_instance(self, name: str) -> DatabaseInstance:
        instance = self._instances.get(name)
        if instance is None:
            raise InstanceNotFound(name)
        return instance

    # =========================================================================
    # Buckets
    # =========================================================================

    def create_bucket(self, req: BucketInsertRequest, project: str | None = None) -> Bucket:
        """Create a bucket.

        Args:
            req: The decoded insert body.
            project: Project id the bucket belongs to; defaults to the
                configured project.

        Returns:
            The new bucket.

        Raises:
            RequiredField: If the name is empty.
            InvalidArgument: If the name breaks a naming rule.
            BucketAlreadyExists: If the name is taken.
        """
        validate_bucket_name(req.name)
        with self._lock.write():
            if req.name in self._buckets:
                raise BucketAlreadyExists(req.name)
            now, nanos = self._tick()
            bucket = Bucket(
                id=req.name,
                self_link=f"{self.base_url}/storage/v1/b/{req.name}",
                project_number=self.project_number,
                name=req.name,
                time_created=now,
                updated=now,
                metageneration=1,
                location=req.location or DEFAULT_LOCATION,
                storage_class=req.storage_class or DEFAULT_STORAGE_CLASS,
                etag=self._etag(nanos),
                labels=req.labels,
                iam_configuration=req.iam_configuration,
                versioning=req.versioning,
                lifecycle=req.lifecycle,
                soft_delete_policy=req.soft_delete_policy,
                project=project or self.project_id,
            )
            self._buckets[req.name] = bucket
            self._objects[req.name] = {}
            logger.debug("Created bucket %s", req.name)
            return bucket.model_copy(deep=True)

    def get_bucket(self, name: str) -> Bucket | None:
        with self._lock.read():
            bucket = self._buckets.get(name)
            return bucket.model_copy(deep=True) if bucket is not None else None

    def list_buckets(self, project: str | None = None) -> list[Bucket]:
        """Return buckets sorted by name, only those of *project* when given."""
        with self._lock.read():
            buckets = [
                b.model_copy(deep=True)
                for b in self._buckets.values()
                if not project or b.project == project
            ]
        return sorted(buckets, key=lambda b: b.name)

    def update_bucket(self, name: str, req: BucketUpdateRequest) -> Bucket:
        """Merge the fields present in *req* into the bucket.

        Raises:
            BucketNotFound: If the bucket does not exist.
        """
        with self._lock.write():
            bucket = self._buckets.get(name)
            if bucket is None:
                raise BucketNotFound(name)
            for field in req.model_fields_set:
                value = getattr(req, field)
                if _is_zero(value):
                    continue
                if hasattr(value, "model_copy"):
                    value = value.model_copy(deep=True)
                setattr(bucket, field, value)
            now, nanos = self._tick()
            bucket.updated = now
            bucket.metageneration += 1
            bucket.etag = self._etag(nanos)
            logger.debug("Updated bucket %s (metageneration=%d)", name, bucket.metageneration)
            return bucket.model_copy(deep=True)

    def delete_bucket(self, name: str) -> None:
        """Delete an empty bucket.

        Raises:
            BucketNotFound: If the bucket does not exist.
            BucketNotEmpty: If the bucket still owns objects.
        """
        with self._lock.write():
            if name not in self._buckets:
                raise BucketNotFound(name)
            if self._objects.get(name):
                raise BucketNotEmpty(name)
            del self._buckets[name]
            self._objects.pop(name, None)
            logger.debug("Deleted bucket %s", name)

    def bucket_is_empty(self, name: str) -> bool:
        """Return True when the bucket owns no objects (or does not exist)."""
        with self._lock.read():
            return not self._objects.get(name)

    # =========================================================================
    # Objects
    # =========================================================================

    def create_object(
        self,
        bucket: str,
        name: str,
        content_type: str | None,
        content: bytes,
        metadata: dict[str, str] | None = None,
    ) -> Object:
        """Store object content, replacing any previous generation.

        Re-uploading content with the same MD5 and the same user metadata as
        the live object returns the live object unchanged.

        Raises:
            BucketNotFound: If the bucket does not exist.
        """
        md5 = compute_md5(content)
        metadata = dict(metadata) if metadata else None
        with self._lock.write():
            owner = self._buckets.get(bucket)
            if owner is None:
                raise BucketNotFound(bucket)
            existing = self._objects[bucket].get(name)
            if (
                existing is not None
                and existing.meta.md5_hash == md5
                and (existing.meta.metadata or {}) == (metadata or {})
            ):
                logger.debug("Upload of %s/%s unchanged, keeping generation", bucket, name)
                return existing.meta.model_copy(deep=True)

            now, generation = self._tick()
            quoted = quote(name, safe="")
            obj = Object(
                id=f"{bucket}/{name}/{generation}",
                self_link=f"{self.base_url}/storage/v1/b/{bucket}/o/{quoted}",
                media_link=f"{self.base_url}/download/storage/v1/b/{bucket}/o/{quoted}?alt=media",
                name=name,
                bucket=bucket,
                generation=generation,
                metageneration=1,
                content_type=content_type or DEFAULT_CONTENT_TYPE,
                time_created=now,
                updated=now,
                storage_class=owner.storage_class,
                size=len(content),
                md5_hash=md5,
                crc32c=compute_crc32c(content),
                etag=self._etag(generation),
                metadata=metadata,
            )
            self._objects[bucket][name] = _StoredObject(meta=obj, content=bytes(content))
            logger.debug("Stored object %s/%s (generation=%d)", bucket, name, generation)
            return obj.model_copy(deep=True)

    def get_object(self, bucket: str, name: str) -> Object | None:
        with self._lock.read():
            stored = self._objects.get(bucket, {}).get(name)
            return stored.meta.model_copy(deep=True) if stored is not None else None

    def get_object_content(self, bucket: str, name: str) -> bytes | None:
        with self._lock.read():
            stored = self._objects.get(bucket, {}).get(name)
            return stored.content if stored is not None else None

    def get_object_with_content(self, bucket: str, name: str) -> tuple[Object, bytes] | None:
        """Return metadata and content from a single consistent snapshot."""
        with self._lock.read():
            stored = self._objects.get(bucket, {}).get(name)
            if stored is None:
                return None
            return stored.meta.model_copy(deep=True), stored.content

    def list_objects(
        self, bucket: str, prefix: str = "", delimiter: str = ""
    ) -> tuple[list[Object], list[str]]:
        """List objects with optional prefix filtering and delimiter grouping.

        When *delimiter* is set, any name whose remainder after *prefix*
        contains the delimiter is folded into a common prefix (up to and
        including the first delimiter) instead of being returned.

        Returns:
            ``(objects, prefixes)``, both sorted ascending by name.

        Raises:
            BucketNotFound: If the bucket does not exist.
        """
        with self._lock.read():
            if bucket not in self._buckets:
                raise BucketNotFound(bucket)
            objects: list[Object] = []
            prefixes: set[str] = set()
            for name, stored in self._objects[bucket].items():
                if prefix and not name.startswith(prefix):
                    continue
                if delimiter:
                    suffix = name[len(prefix):]
                    pos = suffix.find(delimiter)
                    if pos >= 0:
                        prefixes.add(prefix + suffix[: pos + len(delimiter)])
                        continue
                objects.append(stored.meta.model_copy(deep=True))
        objects.sort(key=lambda o: o.name)
        return objects, sorted(prefixes)

    def update_object(self, bucket: str, name: str, req: ObjectUpdateRequest) -> Object:
        """Merge metadata into an object and bump its metageneration.

        Keys mapped to ``None`` are removed. Content and generation are
        untouched.

        Raises:
            BucketNotFound: If the bucket does not exist.
            ObjectNotFound: If the object does not exist.
        """
        with self._lock.write():
            objs = self._objects.get(bucket)
            if objs is None:
                raise BucketNotFound(bucket)
            stored = objs.get(name)
            if stored is None:
                raise ObjectNotFound(bucket, name)
            meta = stored.meta
            if req.metadata is not None:
                merged = dict(meta.metadata or {})
                for key, value in req.metadata.items():
                    if value is None:
                        merged.pop(key, None)
                    else:
                        merged[key] = value
                meta.metadata = merged or None
            if req.content_type:
                meta.content_type = req.content_type
            now, nanos = self._tick()
            meta.updated = now
            meta.metageneration += 1
            meta.etag = self._etag(nanos)
            logger.debug("Updated object %s/%s (metageneration=%d)", bucket, name, meta.metageneration)
            return meta.model_copy(deep=True)

    def delete_object(self, bucket: str, name: str) -> None:
        """Delete an object.

        Raises:
            BucketNotFound: If the bucket does not exist.
            ObjectNotFound: If the object does not exist.
        """
        with self._lock.write():
            objs = self._objects.get(bucket)
            if objs is None:
                raise BucketNotFound(bucket)
            if name not in objs:
                raise ObjectNotFound(bucket, name)
            del objs[name]
            logger.debug("Deleted object %s/%s", bucket, name)

    # =========================================================================
    # Cloud SQL instances
    # =========================================================================

    def create_instance(self, req: InstanceInsertRequest) -> tuple[DatabaseInstance, Operation]:
        """Create an instance with its default ``mysql`` database and ``root@%`` user.

        Raises:
            AlreadyExists: If an instance with the same name exists.
        """
        with self._lock.write():
            if req.name in self._instances:
                raise AlreadyExists(f"The Cloud SQL instance already exists: {req.name}")
            now, nanos = self._tick()
            region = req.region or DEFAULT_REGION
            settings = self._initial_settings(req.settings)
            instance = DatabaseInstance(
                database_version=req.database_version or DEFAULT_DATABASE_VERSION,
                settings=settings,
                etag=self._etag(nanos),
                ip_addresses=[IpMapping(type="PRIMARY", ip_address=_mock_ip(nanos))],
                project=self.project_id,
                service_account_email_address=(
                    f"p{self.project_number}-abc123@gcp-sa-cloud-sql.iam.gserviceaccount.com"
                ),
                self_link=f"{self._sql_prefix()}/instances/{req.name}",
                connection_name=f"{self.project_id}:{region}:{req.name}",
                name=req.name,
                region=region,
                gce_zone=f"{region}-a",
                create_time=now,
                root_password=req.root_password,
            )
            if req.master_instance_name:
                instance.master_instance_name = req.master_instance_name
                instance.instance_type = "READ_REPLICA_INSTANCE"

            self._instances[req.name] = instance
            self._databases[req.name] = {}
            self._users[req.name] = {}
            self._insert_database(req.name, "mysql", DEFAULT_CHARSET, DEFAULT_COLLATION)
            self._insert_user(req.name, "root", DEFAULT_USER_HOST, DEFAULT_USER_TYPE, req.root_password)
            instance.lifecycle_state = "RUNNABLE"

            op = self._oplog.record(OP_CREATE, req.name, now, nanos)
            logger.debug("Created instance %s (%s)", req.name, op.name)
            return instance.model_copy(deep=True), op

    def get_instance(self, name: str) -> DatabaseInstance | None:
        with self._lock.read():
            instance = self._instances.get(name)
            return instance.model_copy(deep=True) if instance is not None else None

    def list_instances(self) -> list[DatabaseInstance]:
        with self._lock.read():
            instances = [i.model_copy(deep=True) for i in self._instances.values()]
        return sorted(instances, key=lambda i: i.name)

    def update_instance(
        self, name: str, req: InstancePatchRequest
    ) -> tuple[DatabaseInstance, Operation]:
        """Merge the settings present in *req* and bump ``settingsVersion``.

        Raises:
            InstanceNotFound: If the instance does not exist.
        """
        with self._lock.write():
            instance = self._require_instance(name)
            if req.settings is not None:
                settings = instance.settings or Settings()
                for field in req.settings.model_fields_set - _SETTINGS_READONLY:
                    value = getattr(req.settings, field)
                    if _is_zero(value):
                        continue
                    if hasattr(value, "model_copy"):
                        value = value.model_copy(deep=True)
                    setattr(settings, field, value)
                settings.settings_version = (settings.settings_version or 0) + 1
                instance.settings = settings
            now, nanos = self._tick()
            instance.etag = self._etag(nanos)
            op = self._oplog.record(OP_UPDATE, name, now, nanos)
            logger.debug("Updated instance %s (%s)", name, op.name)
            return instance.model_copy(deep=True), op

    def delete_instance(self, name: str) -> Operation:
        """Delete an instance together with its databases and users.

        Raises:
            InstanceNotFound: If the instance does not exist.
            DeletionProtected: If deletion protection is enabled.
        """
        with self._lock.write():
            instance = self._require_instance(name)
            if instance.settings is not None and instance.settings.deletion_protection_enabled:
                raise DeletionProtected(name)
            instance.lifecycle_state = "DELETING"
            del self._instances[name]
            self._databases.pop(name, None)
            self._users.pop(name, None)
            now, nanos = self._tick()
            op = self._oplog.record(OP_DELETE, name, now, nanos)
            logger.debug("Deleted instance %s (%s)", name, op.name)
            return op

    @staticmethod
    def _initial_settings(requested: Settings | None) -> Settings:
        settings = requested.model_copy(deep=True) if requested is not None else Settings()
        settings.kind = "sql#settings"
        settings.settings_version = 1
        settings.tier = settings.tier or DEFAULT_TIER
        settings.availability_type = settings.availability_type or "ZONAL"
        settings.pricing_plan = settings.pricing_plan or "PER_USE"
        settings.activation_policy = settings.activation_policy or "ALWAYS"
        settings.data_disk_type = settings.data_disk_type or "PD_SSD"
        if not settings.data_disk_size_gb or settings.data_disk_size_gb <= 0:
            settings.data_disk_size_gb = 10
        if settings.storage_auto_resize is None:
            settings.storage_auto_resize = False
        return settings

    # =========================================================================
    # Cloud SQL databases
    # =========================================================================

    def _insert_database(self, instance: str, name: str, charset: str, collation: str) -> Database:
        _, nanos = self._tick()
        db = Database(
            charset=charset,
            collation=collation,
            etag=self._etag(nanos),
            name=name,
            instance=instance,
            self_link=f"{self._sql_prefix()}/instances/{instance}/databases/{name}",
            project=self.project_id,
        )
        self._databases[instance][name] = db
        return db

    def create_database(
        self, instance: str, req: DatabaseInsertRequest
    ) -> tuple[Database, Operation]:
        """Create a database on an instance.

        Raises:
            InstanceNotFound: If the instance does not exist.
            AlreadyExists: If the database already exists.
        """
        with self._lock.write():
            self._require_instance(instance)
            if req.name in self._databases[instance]:
                raise AlreadyExists(
                    f"Database {req.name} already exists on instance {instance}"
                )
            db = self._insert_database(
                instance,
                req.name,
                req.charset or DEFAULT_CHARSET,
                req.collation or DEFAULT_COLLATION,
            )
            now, nanos = self._tick()
            op = self._oplog.record(OP_CREATE_DATABASE, instance, now, nanos)
            logger.debug("Created database %s on %s", req.name, instance)
            return db.model_copy(deep=True), op

    def get_database(self, instance: str, name: str) -> Database | None:
        with self._lock.read():
            db = self._databases.get(instance, {}).get(name)
            return db.model_copy(deep=True) if db is not None else None

    def list_databases(self, instance: str) -> list[Database]:
        """Raises InstanceNotFound if the instance does not exist."""
        with self._lock.read():
            self._require_instance(instance)
            dbs = [db.model_copy(deep=True) for db in self._databases[instance].values()]
        return sorted(dbs, key=lambda d: d.name)

    def update_database(
        self, instance: str, name: str, req: DatabasePatchRequest
    ) -> tuple[Database, Operation]:
        with self._lock.write():
            self._require_instance(instance)
            db = self._databases[instance].get(name)
            if db is None:
                raise DatabaseNotFound(instance, name)
            if req.charset:
                db.charset = req.charset
            if req.collation:
                db.collation = req.collation
            now, nanos = self._tick()
            db.etag = self._etag(nanos)
            op = self._oplog.record(OP_UPDATE_DATABASE, instance, now, nanos)
            logger.debug("Updated database %s on %s", name, instance)
            return db.model_copy(deep=True), op

    def delete_database(self, instance: str, name: str) -> Operation:
        with self._lock.write():
            self._require_instance(instance)
            if name not in self._databases[instance]:
                raise DatabaseNotFound(instance, name)
            del self._databases[instance][name]
            now, nanos = self._tick()
            op = self._oplog.record(OP_DELETE_DATABASE, instance, now, nanos)
            logger.debug("Deleted database %s on %s", name, instance)
            return op

    # =========================================================================
    # Cloud SQL users
    # =========================================================================

    def _insert_user(
        self, instance: str, name: str, host: str, user_type: str, password: str | None
    ) -> User:
        _, nanos = self._tick()
        user = User(
            etag=self._etag(nanos),
            name=name,
            host=host,
            instance=instance,
            project=self.project_id,
            type=user_type,
            password=password,
        )
        self._users[instance][_user_key(name, host)] = user
        return user

    def create_user(self, instance: str, req: UserInsertRequest) -> tuple[User, Operation]:
        """Create a user keyed by ``(name, host)``; host defaults to ``%``.

        Raises:
            InstanceNotFound: If the instance does not exist.
            AlreadyExists: If the user already exists at that host.
        """
        host = req.host or DEFAULT_USER_HOST
        with self._lock.write():
            self._require_instance(instance)
            if _user_key(req.name, host) in self._users[instance]:
                raise AlreadyExists(
                    f"User {req.name}@{host} already exists on instance {instance}"
                )
            user = self._insert_user(
                instance, req.name, host, req.type or DEFAULT_USER_TYPE, req.password
            )
            now, nanos = self._tick()
            op = self._oplog.record(OP_CREATE_USER, instance, now, nanos)
            logger.debug("Created user %s@%s on %s", req.name, host, instance)
            return user.model_copy(deep=True), op

    def get_user(self, instance: str, name: str, host: str | None = None) -> User | None:
        with self._lock.read():
            user = self._users.get(instance, {}).get(_user_key(name, host))
            return user.model_copy(deep=True) if user is not None else None

    def list_users(self, instance: str) -> list[User]:
        """Raises InstanceNotFound if the instance does not exist."""
        with self._lock.read():
            self._require_instance(instance)
            users = [u.model_copy(deep=True) for u in self._users[instance].values()]
        return sorted(users, key=lambda u: (u.name, u.host))

    def update_user(
        self, instance: str, name: str, host: str | None, req: UserUpdateRequest
    ) -> tuple[User, Operation]:
        """Update a user's password and/or host. A new host re-keys the user.

        Raises:
            InstanceNotFound: If the instance does not exist.
            UserNotFound: If no user matches ``(name, host)``.
            AlreadyExists: If the new host collides with another user.
        """
        with self._lock.write():
            self._require_instance(instance)
            users = self._users[instance]
            key = _user_key(name, host)
            user = users.get(key)
            if user is None:
                raise UserNotFound(instance, name, key[1])
            if req.host and req.host != user.host:
                new_key = _user_key(name, req.host)
                if new_key in users:
                    raise AlreadyExists(
                        f"User {name}@{req.host} already exists on instance {instance}"
                    )
                del users[key]
                user.host = req.host
                users[new_key] = user
            if req.password:
                user.password = req.password
            now, nanos = self._tick()
            user.etag = self._etag(nanos)
            op = self._oplog.record(OP_UPDATE_USER, instance, now, nanos)
            logger.debug("Updated user %s@%s on %s", name, user.host, instance)
            return user.model_copy(deep=True), op

    def delete_user(self, instance: str, name: str, host: str | None = None) -> Operation:
        with self._lock.write():
            self._require_instance(instance)
            key = _user_key(name, host)
            if key not in self._users[instance]:
                raise UserNotFound(instance, name, key[1])
            del self._users[instance][key]
            now, nanos = self._tick()
            op = self._oplog.record(OP_DELETE_USER, instance, now, nanos)
            logger.debug("Deleted user %s@%s on %s", name, key[1], instance)
            return op

    # =========================================================================
    # Operations
    # =========================================================================

    def get_operation(self, name: str) -> Operation | None:
        with self._lock.read():
            return self._oplog.get(name)

    def list_operations(self, instance: str | None = None) -> list[Operation]:
        """Return operations newest first, filtered by target instance when given."""
        with self._lock.read():
            return self._oplog.list_operations(instance)


def _mock_ip(nanos: int) -> str:
    return f"10.{(nanos >> 16) & 0xFF}.{(nanos >> 8) & 0xFF}.{nanos & 0xFF}"
