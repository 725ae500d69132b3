"""Unit tests for MemoryStore and OperationLog."""

import pytest

from gcpmock.errors import (
    AlreadyExists,
    BucketAlreadyExists,
    BucketNotEmpty,
    BucketNotFound,
    DatabaseNotFound,
    DeletionProtected,
    InstanceNotFound,
    InvalidArgument,
    ObjectNotFound,
    UserNotFound,
)
from gcpmock.models.sqladmin import (
    DatabaseInsertRequest,
    DatabasePatchRequest,
    InstanceInsertRequest,
    InstancePatchRequest,
    Settings,
    UserInsertRequest,
    UserUpdateRequest,
)
from gcpmock.models.storage import BucketInsertRequest, BucketUpdateRequest, ObjectUpdateRequest
from gcpmock.store.memory import MemoryStore, compute_crc32c, compute_md5


@pytest.fixture
def bucket_store(store: MemoryStore) -> MemoryStore:
    store.create_bucket(BucketInsertRequest(name="bkt"))
    return store


@pytest.fixture
def sql_store(store: MemoryStore) -> MemoryStore:
    store.create_instance(InstanceInsertRequest(name="db1"))
    return store


class TestChecksums:
    """Tests for compute_md5() and compute_crc32c()."""

    def test_md5_hello(self):
        assert compute_md5(b"hello") == "XUFAKrxLKna5cZ2REBfFkg=="

    def test_crc32c_empty(self):
        assert compute_crc32c(b"") == "AAAAAA=="

    def test_crc32c_check_value(self):
        """CRC32C('123456789') is 0xE3069283 (Castagnoli check value)."""
        assert compute_crc32c(b"123456789") == "4waSgw=="


class TestBuckets:
    """Bucket operations on the store."""

    def test_create_and_get(self, store):
        """A created bucket is returned unchanged by get."""
        created = store.create_bucket(BucketInsertRequest(name="mybucket"))
        assert created.project_number == store.project_number
        assert created.self_link.endswith("/storage/v1/b/mybucket")
        assert store.get_bucket("mybucket") == created

    def test_defaults(self, store):
        bucket = store.create_bucket(BucketInsertRequest(name="mybucket"))
        assert bucket.location == "US"
        assert bucket.storage_class == "STANDARD"
        assert bucket.metageneration == 1

    def test_duplicate(self, bucket_store):
        """Creating an existing name fails with a conflict, not a validation error."""
        with pytest.raises(BucketAlreadyExists) as exc_info:
            bucket_store.create_bucket(BucketInsertRequest(name="bkt"))
        assert exc_info.value.http_status == 409
        assert exc_info.value.reason == "conflict"

    def test_invalid_name(self, store):
        with pytest.raises(InvalidArgument):
            store.create_bucket(BucketInsertRequest(name="Bad"))

    def test_get_missing(self, store):
        assert store.get_bucket("nope") is None

    def test_list_sorted_and_filtered(self, store):
        """list_buckets sorts by name and filters on the recorded project."""
        store.create_bucket(BucketInsertRequest(name="zeta"), project="p1")
        store.create_bucket(BucketInsertRequest(name="alpha"), project="p1")
        store.create_bucket(BucketInsertRequest(name="other"), project="p2")
        assert [b.name for b in store.list_buckets()] == ["alpha", "other", "zeta"]
        assert [b.name for b in store.list_buckets("p1")] == ["alpha", "zeta"]

    def test_default_project(self, store):
        store.create_bucket(BucketInsertRequest(name="mine"))
        assert [b.name for b in store.list_buckets(store.project_id)] == ["mine"]

    def test_update_merges(self, bucket_store):
        """Only fields present in the patch change; metageneration and etag move."""
        before = bucket_store.create_bucket(BucketInsertRequest(name="merge-me", labels={"a": "1"}))
        after = bucket_store.update_bucket(
            "merge-me", BucketUpdateRequest.model_validate({"storageClass": "NEARLINE"})
        )
        assert after.storage_class == "NEARLINE"
        assert after.labels == {"a": "1"}
        assert after.location == before.location
        assert after.metageneration == 2
        assert after.etag != before.etag

    def test_update_ignores_empty_values(self, bucket_store):
        after = bucket_store.update_bucket(
            "bkt", BucketUpdateRequest.model_validate({"location": ""})
        )
        assert after.location == "US"

    def test_update_missing(self, store):
        with pytest.raises(BucketNotFound):
            store.update_bucket("nope", BucketUpdateRequest())

    def test_delete_requires_empty(self, bucket_store):
        """delete_bucket succeeds iff the bucket holds no objects."""
        bucket_store.create_object("bkt", "o", "text/plain", b"x")
        assert not bucket_store.bucket_is_empty("bkt")
        with pytest.raises(BucketNotEmpty):
            bucket_store.delete_bucket("bkt")
        bucket_store.delete_object("bkt", "o")
        assert bucket_store.bucket_is_empty("bkt")
        bucket_store.delete_bucket("bkt")
        assert bucket_store.get_bucket("bkt") is None

    def test_delete_missing(self, store):
        with pytest.raises(BucketNotFound):
            store.delete_bucket("nope")

    def test_results_are_copies(self, bucket_store):
        """Mutating a returned record does not change the store."""
        bucket = bucket_store.get_bucket("bkt")
        bucket.location = "EU"
        assert bucket_store.get_bucket("bkt").location == "US"


class TestObjects:
    """Object operations on the store."""

    def test_create(self, bucket_store):
        obj = bucket_store.create_object("bkt", "a/b.txt", "text/plain", b"hello")
        assert obj.size == 5
        assert obj.md5_hash == "XUFAKrxLKna5cZ2REBfFkg=="
        assert obj.id == f"bkt/a/b.txt/{obj.generation}"
        assert obj.self_link.endswith("/storage/v1/b/bkt/o/a%2Fb.txt")
        assert obj.media_link.endswith("/download/storage/v1/b/bkt/o/a%2Fb.txt?alt=media")
        assert bucket_store.get_object_content("bkt", "a/b.txt") == b"hello"

    def test_inherits_storage_class(self, store):
        store.create_bucket(BucketInsertRequest(name="cold", storage_class="COLDLINE"))
        obj = store.create_object("cold", "x", None, b"x")
        assert obj.storage_class == "COLDLINE"
        assert obj.content_type == "application/octet-stream"

    def test_missing_bucket(self, store):
        with pytest.raises(BucketNotFound):
            store.create_object("nope", "x", None, b"x")

    def test_idempotent_reupload(self, bucket_store):
        """Same bytes and metadata keep the generation."""
        first = bucket_store.create_object("bkt", "x.txt", "text/plain", b"0123456789")
        second = bucket_store.create_object("bkt", "x.txt", "text/plain", b"0123456789")
        assert second.generation == first.generation
        assert second.etag == first.etag

    def test_changed_content_new_generation(self, bucket_store):
        first = bucket_store.create_object("bkt", "x.txt", "text/plain", b"0123456789")
        second = bucket_store.create_object("bkt", "x.txt", "text/plain", b"9876543210")
        assert second.generation > first.generation
        assert bucket_store.get_object_content("bkt", "x.txt") == b"9876543210"

    def test_changed_metadata_new_generation(self, bucket_store):
        first = bucket_store.create_object("bkt", "x", None, b"same", {"k": "1"})
        second = bucket_store.create_object("bkt", "x", None, b"same", {"k": "2"})
        assert second.generation > first.generation

    def test_empty_metadata_equals_none(self, bucket_store):
        first = bucket_store.create_object("bkt", "x", None, b"same", None)
        second = bucket_store.create_object("bkt", "x", None, b"same", {})
        assert second.generation == first.generation

    def test_list_delimiter(self, bucket_store):
        """Delimiter folds nested names into sorted common prefixes."""
        for name in ("root.txt", "f/2.txt", "f/1.txt", "g/x/y"):
            bucket_store.create_object("bkt", name, None, b"x")
        items, prefixes = bucket_store.list_objects("bkt", delimiter="/")
        assert [o.name for o in items] == ["root.txt"]
        assert prefixes == ["f/", "g/"]

    def test_list_prefix_and_delimiter(self, bucket_store):
        for name in ("f/1.txt", "f/2.txt", "f/sub/3.txt", "other"):
            bucket_store.create_object("bkt", name, None, b"x")
        items, prefixes = bucket_store.list_objects("bkt", prefix="f/", delimiter="/")
        assert [o.name for o in items] == ["f/1.txt", "f/2.txt"]
        assert prefixes == ["f/sub/"]

    def test_list_sorted_no_duplicates(self, bucket_store):
        for name in ("c", "a", "b", "a"):
            bucket_store.create_object("bkt", name, None, name.encode())
        items, prefixes = bucket_store.list_objects("bkt")
        assert [o.name for o in items] == ["a", "b", "c"]
        assert prefixes == []

    def test_list_missing_bucket(self, store):
        with pytest.raises(BucketNotFound):
            store.list_objects("nope")

    def test_update_metadata(self, bucket_store):
        """Metadata merges, None removes a key, metageneration bumps."""
        obj = bucket_store.create_object("bkt", "x", None, b"x", {"keep": "1", "drop": "2"})
        updated = bucket_store.update_object(
            "bkt", "x", ObjectUpdateRequest(metadata={"drop": None, "new": "3"})
        )
        assert updated.metadata == {"keep": "1", "new": "3"}
        assert updated.metageneration == 2
        assert updated.generation == obj.generation

    def test_update_missing(self, bucket_store):
        with pytest.raises(ObjectNotFound):
            bucket_store.update_object("bkt", "nope", ObjectUpdateRequest())

    def test_delete_missing(self, bucket_store, store):
        with pytest.raises(ObjectNotFound):
            bucket_store.delete_object("bkt", "nope")
        with pytest.raises(BucketNotFound):
            store.delete_object("nope", "x")


class TestInstances:
    """Instance operations on the store."""

    def test_create_defaults(self, store):
        """A new instance owns the mysql database and root@% user."""
        instance, op = store.create_instance(InstanceInsertRequest(name="db1"))
        assert instance.state == "RUNNABLE"
        assert instance.lifecycle_state == "RUNNABLE"
        assert instance.database_version == "MYSQL_8_0"
        assert instance.region == "us-central1"
        assert instance.connection_name == f"{store.project_id}:us-central1:db1"
        assert instance.settings.tier == "db-n1-standard-1"
        assert instance.settings.settings_version == 1
        assert instance.settings.data_disk_size_gb == 10
        assert len(instance.ip_addresses) == 1
        assert op.operation_type == "CREATE"
        assert op.status == "DONE"
        assert [d.name for d in store.list_databases("db1")] == ["mysql"]
        assert [(u.name, u.host) for u in store.list_users("db1")] == [("root", "%")]

    def test_read_replica(self, sql_store):
        replica, _ = sql_store.create_instance(
            InstanceInsertRequest(name="db2", master_instance_name="db1")
        )
        assert replica.instance_type == "READ_REPLICA_INSTANCE"

    def test_duplicate(self, sql_store):
        with pytest.raises(AlreadyExists):
            sql_store.create_instance(InstanceInsertRequest(name="db1"))

    def test_update_bumps_settings_version(self, sql_store):
        instance, op = sql_store.update_instance(
            "db1",
            InstancePatchRequest(settings=Settings.model_validate({"tier": "db-custom-2-7680"})),
        )
        assert instance.settings.tier == "db-custom-2-7680"
        assert instance.settings.settings_version == 2
        assert instance.settings.data_disk_type == "PD_SSD"
        assert op.operation_type == "UPDATE"

    def test_deletion_protection(self, sql_store):
        """Protected instances cannot be deleted until protection is turned off."""
        sql_store.update_instance(
            "db1",
            InstancePatchRequest(settings=Settings.model_validate({"deletionProtectionEnabled": True})),
        )
        with pytest.raises(DeletionProtected):
            sql_store.delete_instance("db1")
        sql_store.update_instance(
            "db1",
            InstancePatchRequest(settings=Settings.model_validate({"deletionProtectionEnabled": False})),
        )
        op = sql_store.delete_instance("db1")
        assert op.operation_type == "DELETE"

    def test_delete_cascades(self, sql_store):
        sql_store.delete_instance("db1")
        assert sql_store.get_instance("db1") is None
        assert sql_store.get_database("db1", "mysql") is None
        assert sql_store.get_user("db1", "root") is None
        with pytest.raises(InstanceNotFound):
            sql_store.list_databases("db1")

    def test_delete_missing(self, store):
        with pytest.raises(InstanceNotFound):
            store.delete_instance("nope")


class TestDatabasesAndUsers:
    """Database and user operations on the store."""

    def test_database_crud(self, sql_store):
        db, op = sql_store.create_database("db1", DatabaseInsertRequest(name="app"))
        assert db.charset == "utf8"
        assert db.collation == "utf8_general_ci"
        assert op.operation_type == "CREATE_DATABASE"
        with pytest.raises(AlreadyExists):
            sql_store.create_database("db1", DatabaseInsertRequest(name="app"))
        db, op = sql_store.update_database("db1", "app", DatabasePatchRequest(charset="utf8mb4"))
        assert db.charset == "utf8mb4"
        assert db.collation == "utf8_general_ci"
        assert op.operation_type == "UPDATE_DATABASE"
        op = sql_store.delete_database("db1", "app")
        assert op.operation_type == "DELETE_DATABASE"
        with pytest.raises(DatabaseNotFound):
            sql_store.delete_database("db1", "app")

    def test_database_missing_instance(self, store):
        with pytest.raises(InstanceNotFound):
            store.create_database("nope", DatabaseInsertRequest(name="app"))

    def test_user_crud(self, sql_store):
        user, op = sql_store.create_user("db1", UserInsertRequest(name="bob", password="pw"))
        assert user.host == "%"
        assert user.type == "BUILT_IN"
        assert op.operation_type == "CREATE_USER"
        with pytest.raises(AlreadyExists):
            sql_store.create_user("db1", UserInsertRequest(name="bob"))
        sql_store.create_user("db1", UserInsertRequest(name="bob", host="10.0.0.1"))
        assert [(u.name, u.host) for u in sql_store.list_users("db1")] == [
            ("bob", "%"),
            ("bob", "10.0.0.1"),
            ("root", "%"),
        ]

    def test_user_rekey_on_host_change(self, sql_store):
        sql_store.create_user("db1", UserInsertRequest(name="bob"))
        user, op = sql_store.update_user("db1", "bob", None, UserUpdateRequest(host="localhost"))
        assert user.host == "localhost"
        assert op.operation_type == "UPDATE_USER"
        assert sql_store.get_user("db1", "bob") is None
        assert sql_store.get_user("db1", "bob", "localhost") is not None

    def test_user_rekey_collision(self, sql_store):
        sql_store.create_user("db1", UserInsertRequest(name="bob"))
        sql_store.create_user("db1", UserInsertRequest(name="bob", host="localhost"))
        with pytest.raises(AlreadyExists):
            sql_store.update_user("db1", "bob", "%", UserUpdateRequest(host="localhost"))

    def test_user_missing(self, sql_store):
        with pytest.raises(UserNotFound):
            sql_store.update_user("db1", "ghost", None, UserUpdateRequest(password="x"))
        with pytest.raises(UserNotFound):
            sql_store.delete_user("db1", "ghost")

    def test_delete_user(self, sql_store):
        op = sql_store.delete_user("db1", "root", "%")
        assert op.operation_type == "DELETE_USER"
        assert sql_store.list_users("db1") == []


class TestOperationLog:
    """Operation recording and lookup."""

    def test_one_operation_per_mutation(self, store):
        """Every successful mutation appends exactly one retrievable operation."""
        _, op1 = store.create_instance(InstanceInsertRequest(name="db1"))
        _, op2 = store.create_database("db1", DatabaseInsertRequest(name="app"))
        _, op3 = store.create_user("db1", UserInsertRequest(name="bob"))
        assert len({op1.name, op2.name, op3.name}) == 3
        assert store.stats()["operations"] == 3
        for op in (op1, op2, op3):
            assert store.get_operation(op.name) == op

    def test_failed_mutation_records_nothing(self, sql_store):
        with pytest.raises(AlreadyExists):
            sql_store.create_database("db1", DatabaseInsertRequest(name="mysql"))
        assert sql_store.stats()["operations"] == 1

    def test_newest_first_and_filter(self, store):
        store.create_instance(InstanceInsertRequest(name="a"))
        store.create_instance(InstanceInsertRequest(name="b"))
        store.create_database("a", DatabaseInsertRequest(name="x"))
        ops = store.list_operations()
        assert [op.operation_type for op in ops] == ["CREATE_DATABASE", "CREATE", "CREATE"]
        assert [op.target_id for op in ops] == ["a", "b", "a"]
        assert [op.target_id for op in store.list_operations("b")] == ["b"]

    def test_operation_links(self, store):
        _, op = store.create_instance(InstanceInsertRequest(name="db1"))
        prefix = f"{store.base_url}/sql/v1beta4/projects/{store.project_id}"
        assert op.name.startswith("operation-")
        assert op.target_link == f"{prefix}/instances/db1"
        assert op.self_link == f"{prefix}/operations/{op.name}"
        assert op.target_project == store.project_id
        assert op.insert_time == op.start_time == op.end_time

    def test_get_missing(self, store):
        assert store.get_operation("operation-0") is None


class TestResetAndStats:
    """Tests for reset() and stats()."""

    def test_stats(self, bucket_store):
        bucket_store.create_object("bkt", "a", None, b"abc")
        bucket_store.create_instance(InstanceInsertRequest(name="db1"))
        stats = bucket_store.stats()
        assert stats["buckets"] == 1
        assert stats["objects"] == 1
        assert stats["bytes"] == 3
        assert stats["instances"] == 1
        assert stats["databases"] == 1
        assert stats["users"] == 1
        assert stats["operations"] == 1

    def test_reset(self, bucket_store):
        bucket_store.create_instance(InstanceInsertRequest(name="db1"))
        bucket_store.reset()
        assert all(count == 0 for count in bucket_store.stats().values())
