"""Integration tests for the Cloud Storage object handlers."""

import json

import pytest

BOUNDARY = "gcpmock_boundary"


@pytest.fixture
async def bucket(client) -> str:
    """Create the bucket the object tests upload into."""
    resp = await client.post("/storage/v1/b?project=test-project", json={"name": "mybucket"})
    assert resp.status_code == 200
    return "mybucket"


async def upload(client, bucket: str, name: str, data: bytes, content_type="text/plain", **query):
    params = {"name": name, **query}
    return await client.post(
        f"/upload/storage/v1/b/{bucket}/o",
        params=params,
        content=data,
        headers={"content-type": content_type},
    )


def multipart_body(meta: dict, data: bytes, media_type: str = "application/octet-stream") -> bytes:
    return (
        f"--{BOUNDARY}\r\nContent-Type: application/json; charset=UTF-8\r\n\r\n"
        f"{json.dumps(meta)}\r\n"
        f"--{BOUNDARY}\r\nContent-Type: {media_type}\r\n\r\n"
    ).encode() + data + f"\r\n--{BOUNDARY}--\r\n".encode()


class TestSimpleUpload:
    """Tests for POST /upload/storage/v1/b/{bucket}/o."""

    async def test_upload_and_download(self, client, bucket):
        """A simple upload stores bytes retrievable with alt=media."""
        resp = await upload(client, bucket, "a/b.txt", b"hello")
        assert resp.status_code == 200
        data = resp.json()
        assert data["kind"] == "storage#object"
        assert data["name"] == "a/b.txt"
        assert data["bucket"] == bucket
        assert data["size"] == "5"
        assert data["contentType"] == "text/plain"
        assert data["md5Hash"] == "XUFAKrxLKna5cZ2REBfFkg=="
        assert data["crc32c"] == "mnG7TA=="
        assert "crc32C" not in data
        assert data["metageneration"] == "1"
        assert data["generation"].isdigit()

        resp = await client.get(f"/storage/v1/b/{bucket}/o/a/b.txt", params={"alt": "media"})
        assert resp.status_code == 200
        assert resp.content == b"hello"
        assert resp.headers["content-type"] == "text/plain"
        assert resp.headers["content-length"] == "5"
        assert resp.headers["etag"] == data["etag"]
        assert resp.headers["x-goog-generation"] == data["generation"]
        assert resp.headers["x-goog-hash"] == f"crc32c={data['crc32c']},md5={data['md5Hash']}"

    async def test_default_content_type(self, client, bucket):
        resp = await client.post(
            f"/upload/storage/v1/b/{bucket}/o", params={"name": "blob"}, content=b"x"
        )
        assert resp.json()["contentType"] == "application/octet-stream"

    async def test_query_metadata(self, client, bucket):
        """x-goog-meta-* query parameters become user metadata."""
        resp = await upload(client, bucket, "m.txt", b"x", **{"x-goog-meta-owner": "qa"})
        assert resp.json()["metadata"] == {"owner": "qa"}

    async def test_idempotent_reupload(self, client, bucket):
        """Identical bytes keep the generation; new bytes get a greater one."""
        first = (await upload(client, bucket, "x.txt", b"0123456789")).json()
        second = (await upload(client, bucket, "x.txt", b"0123456789")).json()
        assert second["generation"] == first["generation"]
        third = (await upload(client, bucket, "x.txt", b"abcdefghij")).json()
        assert int(third["generation"]) > int(first["generation"])

    async def test_missing_name(self, client, bucket):
        resp = await client.post(f"/upload/storage/v1/b/{bucket}/o", content=b"x")
        assert resp.status_code == 400
        assert resp.json()["error"]["errors"][0]["reason"] == "required"

    async def test_missing_bucket(self, client):
        resp = await upload(client, "nope", "x", b"x")
        assert resp.status_code == 404
        assert resp.json()["error"]["message"] == "Bucket nope not found"


class TestMultipartUpload:
    """Tests for multipart/related uploads."""

    async def test_multipart(self, client, bucket):
        """Name, type and metadata come from the JSON part."""
        body = multipart_body(
            {"name": "docs/readme.md", "contentType": "text/markdown", "metadata": {"k": "v"}},
            b"# hi",
        )
        resp = await client.post(
            f"/upload/storage/v1/b/{bucket}/o",
            params={"uploadType": "multipart"},
            content=body,
            headers={"content-type": f"multipart/related; boundary={BOUNDARY}"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "docs/readme.md"
        assert data["contentType"] == "text/markdown"
        assert data["metadata"] == {"k": "v"}
        assert data["size"] == "4"

    async def test_null_metadata_not_stored(self, client, bucket):
        """Null metadata values are dropped rather than stored as text."""
        body = multipart_body({"name": "m", "metadata": {"k": None, "j": 5}}, b"x")
        resp = await client.post(
            f"/upload/storage/v1/b/{bucket}/o",
            params={"uploadType": "multipart"},
            content=body,
            headers={"content-type": f"multipart/related; boundary={BOUNDARY}"},
        )
        assert resp.status_code == 200
        assert resp.json()["metadata"] == {"j": "5"}

    async def test_query_name_wins(self, client, bucket):
        body = multipart_body({"name": "from-json"}, b"x")
        resp = await client.post(
            f"/upload/storage/v1/b/{bucket}/o",
            params={"name": "from-query"},
            content=body,
            headers={"content-type": f"multipart/related; boundary={BOUNDARY}"},
        )
        assert resp.json()["name"] == "from-query"

    async def test_bad_multipart(self, client, bucket):
        resp = await client.post(
            f"/upload/storage/v1/b/{bucket}/o",
            content=b"garbage",
            headers={"content-type": "multipart/related"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["errors"][0]["reason"] == "invalid"


class TestGetObject:
    """Tests for object metadata and media reads."""

    async def test_metadata(self, client, bucket):
        created = (await upload(client, bucket, "dir/file.txt", b"abc")).json()
        resp = await client.get(f"/storage/v1/b/{bucket}/o/dir/file.txt")
        assert resp.status_code == 200
        assert resp.json() == created

    async def test_encoded_name(self, client, bucket):
        """An object name sent with %2F resolves to the same object."""
        await upload(client, bucket, "dir/file.txt", b"abc")
        resp = await client.get(f"/storage/v1/b/{bucket}/o/dir%2Ffile.txt")
        assert resp.status_code == 200
        assert resp.json()["name"] == "dir/file.txt"

    async def test_download_endpoint(self, client, bucket):
        await upload(client, bucket, "dl.bin", b"\x00\x01", content_type="application/octet-stream")
        resp = await client.get(f"/download/storage/v1/b/{bucket}/o/dl.bin", params={"alt": "media"})
        assert resp.status_code == 200
        assert resp.content == b"\x00\x01"

    async def test_path_style(self, client, bucket):
        await upload(client, bucket, "p/q.txt", b"path")
        resp = await client.get(f"/{bucket}/p/q.txt")
        assert resp.status_code == 200
        assert resp.content == b"path"

    async def test_path_style_missing_bucket(self, client):
        resp = await client.get("/nobucket/x.txt")
        assert resp.status_code == 404
        assert resp.json()["error"]["message"] == "Bucket nobucket not found"

    async def test_missing_object(self, client, bucket):
        resp = await client.get(f"/storage/v1/b/{bucket}/o/ghost")
        assert resp.status_code == 404
        error = resp.json()["error"]
        assert error["errors"][0]["reason"] == "notFound"
        assert error["message"] == f"No such object: {bucket}/ghost"

    async def test_missing_object_media(self, client, bucket):
        resp = await client.get(f"/storage/v1/b/{bucket}/o/ghost", params={"alt": "media"})
        assert resp.status_code == 404


class TestListObjects:
    """Tests for GET /storage/v1/b/{bucket}/o."""

    async def test_delimiter(self, client, bucket):
        """Nested names fold into prefixes with delimiter=/."""
        for name in ("root.txt", "f/1.txt", "f/2.txt"):
            await upload(client, bucket, name, b"x")
        resp = await client.get(f"/storage/v1/b/{bucket}/o", params={"delimiter": "/"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["kind"] == "storage#objects"
        assert [o["name"] for o in data["items"]] == ["root.txt"]
        assert data["prefixes"] == ["f/"]

    async def test_prefix(self, client, bucket):
        for name in ("f/1.txt", "f/2.txt", "g/1.txt"):
            await upload(client, bucket, name, b"x")
        resp = await client.get(f"/storage/v1/b/{bucket}/o", params={"prefix": "f/"})
        data = resp.json()
        assert [o["name"] for o in data["items"]] == ["f/1.txt", "f/2.txt"]
        assert "prefixes" not in data

    async def test_missing_bucket(self, client):
        resp = await client.get("/storage/v1/b/nope/o")
        assert resp.status_code == 404


class TestUpdateObject:
    """Tests for PATCH and PUT on objects."""

    async def test_patch_metadata(self, client, bucket):
        """Metadata merges and metageneration bumps; generation is unchanged."""
        created = (await upload(client, bucket, "m", b"x", **{"x-goog-meta-a": "1"})).json()
        resp = await client.patch(
            f"/storage/v1/b/{bucket}/o/m", json={"metadata": {"b": "2"}}
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["metadata"] == {"a": "1", "b": "2"}
        assert data["metageneration"] == "2"
        assert data["generation"] == created["generation"]

    async def test_put_removes_null_keys(self, client, bucket):
        await upload(client, bucket, "m", b"x", **{"x-goog-meta-a": "1"})
        resp = await client.put(f"/storage/v1/b/{bucket}/o/m", json={"metadata": {"a": None}})
        assert "metadata" not in resp.json()

    async def test_update_missing(self, client, bucket):
        resp = await client.patch(f"/storage/v1/b/{bucket}/o/ghost", json={})
        assert resp.status_code == 404


class TestDeleteObject:
    """Tests for DELETE /storage/v1/b/{bucket}/o/{object}."""

    async def test_delete(self, client, bucket):
        await upload(client, bucket, "gone", b"x")
        resp = await client.delete(f"/storage/v1/b/{bucket}/o/gone")
        assert resp.status_code == 204
        assert (await client.get(f"/storage/v1/b/{bucket}/o/gone")).status_code == 404

    async def test_delete_missing(self, client, bucket):
        resp = await client.delete(f"/storage/v1/b/{bucket}/o/gone")
        assert resp.status_code == 404
