"""Cloud SQL Admin API v1beta4 resource and request models.

Covers ``sql#instance`` (with its ``sql#settings`` sub-record),
``sql#database``, ``sql#user`` and ``sql#operation``, the list envelopes
for each, and the request bodies accepted by the insert/patch/update calls.
"""

from __future__ import annotations

from pydantic import Field

from gcpmock.models.base import Timestamp, WireInt, WireModel

DEFAULT_DATABASE_VERSION = "MYSQL_8_0"
DEFAULT_REGION = "us-central1"
DEFAULT_TIER = "db-n1-standard-1"
DEFAULT_CHARSET = "utf8"
DEFAULT_COLLATION = "utf8_general_ci"
DEFAULT_USER_HOST = "%"
DEFAULT_USER_TYPE = "BUILT_IN"

# Operation types recorded in the operation log.
OP_CREATE = "CREATE"
OP_UPDATE = "UPDATE"
OP_DELETE = "DELETE"
OP_CREATE_DATABASE = "CREATE_DATABASE"
OP_UPDATE_DATABASE = "UPDATE_DATABASE"
OP_DELETE_DATABASE = "DELETE_DATABASE"
OP_CREATE_USER = "CREATE_USER"
OP_UPDATE_USER = "UPDATE_USER"
OP_DELETE_USER = "DELETE_USER"


# ---------------------------------------------------------------------------
# Settings sub-records
# ---------------------------------------------------------------------------


class AclEntry(WireModel):
    kind: str = "sql#aclEntry"
    value: str = ""
    name: str | None = None
    expiration_time: Timestamp | None = None


class IpConfiguration(WireModel):
    ipv4_enabled: bool = True
    private_network: str | None = None
    require_ssl: bool | None = None
    authorized_networks: list[AclEntry] | None = None
    allocated_ip_range: str | None = None
    ssl_mode: str | None = None


class LocationPreference(WireModel):
    kind: str = "sql#locationPreference"
    zone: str | None = None
    secondary_zone: str | None = None


class DatabaseFlag(WireModel):
    name: str = ""
    value: str = ""


class MaintenanceWindow(WireModel):
    kind: str = "sql#maintenanceWindow"
    hour: int | None = None
    day: int | None = None
    update_track: str | None = None


class BackupRetentionSettings(WireModel):
    retained_backups: int | None = None
    retention_unit: str | None = None


class BackupConfiguration(WireModel):
    kind: str = "sql#backupConfiguration"
    enabled: bool = False
    start_time: str | None = None
    binary_log_enabled: bool | None = None
    location: str | None = None
    point_in_time_recovery_enabled: bool | None = None
    transaction_log_retention_days: int | None = None
    backup_retention_settings: BackupRetentionSettings | None = None


class InsightsConfig(WireModel):
    query_insights_enabled: bool = False
    record_client_address: bool | None = None
    record_application_tags: bool | None = None
    query_string_length: int | None = None
    query_plans_per_minute: int | None = None


class PasswordValidationPolicy(WireModel):
    min_length: int | None = None
    complexity: str | None = None
    reuse_interval: int | None = None
    disallow_username_substring: bool | None = None
    password_change_interval: str | None = None
    enable_password_policy: bool | None = None


class Settings(WireModel):
    """The ``sql#settings`` record of an instance.

    Scalar fields default to ``None`` so that a request body can be told
    apart from the defaults the store fills in at creation.
    """

    kind: str = "sql#settings"
    settings_version: WireInt | None = None
    tier: str | None = None
    user_labels: dict[str, str] | None = None
    availability_type: str | None = None
    pricing_plan: str | None = None
    activation_policy: str | None = None
    ip_configuration: IpConfiguration | None = None
    storage_auto_resize: bool | None = None
    storage_auto_resize_limit: WireInt | None = None
    location_preference: LocationPreference | None = None
    database_flags: list[DatabaseFlag] | None = None
    data_disk_type: str | None = None
    data_disk_size_gb: WireInt | None = None
    maintenance_window: MaintenanceWindow | None = None
    backup_configuration: BackupConfiguration | None = None
    insights_config: InsightsConfig | None = None
    password_validation_policy: PasswordValidationPolicy | None = None
    collation: str | None = None
    edition: str | None = None
    time_zone: str | None = None
    deletion_protection_enabled: bool | None = None


class IpMapping(WireModel):
    type: str = "PRIMARY"
    ip_address: str = ""


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


class DatabaseInstance(WireModel):
    """A ``sql#instance`` resource.

    Attributes:
        lifecycle_state: Internal lifecycle state. The wire ``state`` is
            always ``RUNNABLE`` because every operation completes inline.
        root_password: Accepted on insert, never serialized.
    """

    kind: str = "sql#instance"
    state: str = "RUNNABLE"
    database_version: str = DEFAULT_DATABASE_VERSION
    settings: Settings | None = None
    etag: str = ""
    master_instance_name: str | None = None
    ip_addresses: list[IpMapping] | None = None
    instance_type: str = "CLOUD_SQL_INSTANCE"
    project: str = ""
    service_account_email_address: str | None = None
    backend_type: str = "SECOND_GEN"
    self_link: str = ""
    connection_name: str = ""
    name: str = ""
    region: str = DEFAULT_REGION
    gce_zone: str | None = None
    create_time: Timestamp | None = None

    lifecycle_state: str = Field(default="PENDING_CREATE", exclude=True)
    root_password: str | None = Field(default=None, exclude=True)


class Database(WireModel):
    kind: str = "sql#database"
    charset: str = DEFAULT_CHARSET
    collation: str = DEFAULT_COLLATION
    etag: str = ""
    name: str = ""
    instance: str = ""
    self_link: str = ""
    project: str = ""


class User(WireModel):
    """A ``sql#user`` resource. The password is write-only."""

    kind: str = "sql#user"
    etag: str = ""
    name: str = ""
    host: str = DEFAULT_USER_HOST
    instance: str = ""
    project: str = ""
    type: str = DEFAULT_USER_TYPE

    password: str | None = Field(default=None, exclude=True)


class Operation(WireModel):
    """A ``sql#operation``. The mock completes every operation inline."""

    kind: str = "sql#operation"
    target_link: str = ""
    status: str = "DONE"
    insert_time: Timestamp | None = None
    start_time: Timestamp | None = None
    end_time: Timestamp | None = None
    operation_type: str = ""
    name: str = ""
    target_id: str = ""
    self_link: str = ""
    target_project: str = ""


class InstancesList(WireModel):
    kind: str = "sql#instancesList"
    items: list[DatabaseInstance] = Field(default_factory=list)


class DatabasesList(WireModel):
    kind: str = "sql#databasesList"
    items: list[Database] = Field(default_factory=list)


class UsersList(WireModel):
    kind: str = "sql#usersList"
    items: list[User] = Field(default_factory=list)


class OperationsList(WireModel):
    kind: str = "sql#operationsList"
    items: list[Operation] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class InstanceInsertRequest(WireModel):
    name: str = ""
    database_version: str | None = None
    region: str | None = None
    settings: Settings | None = None
    master_instance_name: str | None = None
    root_password: str | None = None


class InstancePatchRequest(WireModel):
    settings: Settings | None = None


class DatabaseInsertRequest(WireModel):
    name: str = ""
    charset: str | None = None
    collation: str | None = None


class DatabasePatchRequest(WireModel):
    charset: str | None = None
    collation: str | None = None


class UserInsertRequest(WireModel):
    name: str = ""
    password: str | None = None
    host: str | None = None
    type: str | None = None


class UserUpdateRequest(WireModel):
    password: str | None = None
    host: str | None = None
