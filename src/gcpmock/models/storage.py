"""Cloud Storage JSON API resource and request models.

These mirror the ``storage#bucket`` and ``storage#object`` resources of the
Cloud Storage JSON API v1, plus the request bodies the mock accepts for
bucket insert/patch and object metadata updates.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from gcpmock.models.base import Timestamp, WireInt, WireModel

DEFAULT_LOCATION = "US"
DEFAULT_STORAGE_CLASS = "STANDARD"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


# ---------------------------------------------------------------------------
# Bucket configuration sub-records
# ---------------------------------------------------------------------------


class UniformBucketLevelAccess(WireModel):
    enabled: bool = False
    locked_time: Timestamp | None = None


class IamConfiguration(WireModel):
    uniform_bucket_level_access: UniformBucketLevelAccess | None = None
    public_access_prevention: str | None = None


class Versioning(WireModel):
    enabled: bool = False


class LifecycleAction(WireModel):
    type: str = ""
    storage_class: str | None = None


class LifecycleCondition(WireModel):
    """Conditions under which a lifecycle action applies.

    Every field is optional; only the ones a client sets are echoed back.
    """

    age: int | None = None
    created_before: str | None = None
    is_live: bool | None = None
    matches_storage_class: list[str] | None = None
    num_newer_versions: int | None = None
    with_state: str | None = None
    matches_prefix: list[str] | None = None
    matches_suffix: list[str] | None = None
    days_since_custom_time: int | None = None
    days_since_noncurrent_time: int | None = None
    noncurrent_time_before: str | None = None
    custom_time_before: str | None = None


class LifecycleRule(WireModel):
    action: LifecycleAction | None = None
    condition: LifecycleCondition | None = None


class Lifecycle(WireModel):
    rule: list[LifecycleRule] | None = None


class SoftDeletePolicy(WireModel):
    retention_duration_seconds: WireInt | None = None
    effective_time: Timestamp | None = None


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


class Bucket(WireModel):
    """A ``storage#bucket`` resource.

    Attributes:
        project: Project id the bucket was created under. Used for
            ``list-buckets`` filtering and never serialized.
    """

    kind: str = "storage#bucket"
    id: str = ""
    self_link: str = ""
    project_number: WireInt = 0
    name: str = ""
    time_created: Timestamp | None = None
    updated: Timestamp | None = None
    metageneration: WireInt = 1
    location: str = DEFAULT_LOCATION
    location_type: str = "region"
    storage_class: str = DEFAULT_STORAGE_CLASS
    etag: str = ""
    labels: dict[str, str] | None = None
    iam_configuration: IamConfiguration | None = None
    versioning: Versioning | None = None
    lifecycle: Lifecycle | None = None
    soft_delete_policy: SoftDeletePolicy | None = None

    project: str = Field(default="", exclude=True)


class Object(WireModel):
    """A ``storage#object`` resource (metadata only; content lives in the store)."""

    kind: str = "storage#object"
    id: str = ""
    self_link: str = ""
    media_link: str = ""
    name: str = ""
    bucket: str = ""
    generation: WireInt = 0
    metageneration: WireInt = 1
    content_type: str = DEFAULT_CONTENT_TYPE
    time_created: Timestamp | None = None
    updated: Timestamp | None = None
    storage_class: str = DEFAULT_STORAGE_CLASS
    size: WireInt = 0
    md5_hash: str = ""
    crc32c: str = Field(default="", alias="crc32c")
    etag: str = ""
    metadata: dict[str, str] | None = None


class BucketList(WireModel):
    kind: str = "storage#buckets"
    items: list[Bucket] = Field(default_factory=list)


class ObjectList(WireModel):
    """A ``storage#objects`` listing page.

    ``prefixes`` is left as ``None`` when empty so it is omitted on the wire.
    """

    kind: str = "storage#objects"
    items: list[Object] = Field(default_factory=list)
    prefixes: list[str] | None = None


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class BucketInsertRequest(WireModel):
    name: str = ""
    location: str | None = None
    storage_class: str | None = None
    labels: dict[str, str] | None = None
    iam_configuration: IamConfiguration | None = None
    versioning: Versioning | None = None
    lifecycle: Lifecycle | None = None
    soft_delete_policy: SoftDeletePolicy | None = None


class BucketUpdateRequest(WireModel):
    """Body of a bucket PATCH or PUT. Absent fields leave the bucket unchanged."""

    location: str | None = None
    storage_class: str | None = None
    labels: dict[str, str] | None = None
    iam_configuration: IamConfiguration | None = None
    versioning: Versioning | None = None
    lifecycle: Lifecycle | None = None
    soft_delete_policy: SoftDeletePolicy | None = None


class ObjectUpdateRequest(WireModel):
    """Body of an object metadata PATCH or PUT.

    A ``None`` value inside ``metadata`` removes that key.
    """

    content_type: str | None = None
    metadata: dict[str, str | None] | None = None


class ObjectUploadMetadata(WireModel):
    """The JSON part of a ``multipart/related`` upload.

    User metadata values are stored as strings; ``null`` values are dropped.
    """

    name: str | None = None
    content_type: str | None = None
    metadata: dict[str, str] | None = None

    @field_validator("metadata", mode="before")
    @classmethod
    def stringify_metadata(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        return {str(k): str(v) for k, v in value.items() if v is not None} or None
