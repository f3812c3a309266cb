"""End-to-end tests of the HTTP surface against a live aiohttp server."""

from __future__ import annotations

import aiohttp
import pytest
import pytest_asyncio

pytestmark = [pytest.mark.integration, pytest.mark.server, pytest.mark.webdav]

from magnetdav import __version__
from magnetdav.engine.memory import MemoryFile
from magnetdav.models import AuthConfig, Config
from magnetdav.server.app import HTTPServer
from magnetdav.session.manager import LifecycleManager
from magnetdav.utils.exceptions import StreamError
from tests.conftest import ID_A, ID_B, MAGNET_A, MAGNET_B

VIDEO = bytes(range(100))
SUBS = b"1\n00:00:01,000 --> 00:00:02,000\nhello\n"


async def _start(catalog, engine, config: Config | None = None):
    engine.add_content(ID_A, "Alpha", [("video.mp4", VIDEO), ("subs/video.srt", SUBS)])
    manager = LifecycleManager(catalog, engine, metadata_timeout=1.0)
    server = HTTPServer(manager, catalog, config or Config(), host="127.0.0.1", port=0)
    await server.start()
    await manager.submit(MAGNET_A)
    await manager.wait_idle(2.0)
    return manager, server


@pytest_asyncio.fixture
async def live(catalog, memory_engine):
    manager, server = await _start(catalog, memory_engine)
    async with aiohttp.ClientSession(base_url=f"http://127.0.0.1:{server.port}") as client:
        yield client, manager, memory_engine
    await server.stop()
    await manager.shutdown()


class TestRangeStreaming:
    """GET and HEAD on files."""

    @pytest.mark.asyncio
    async def test_full_file(self, live):
        client, _, _ = live
        async with client.get(f"/webdav/{ID_A}/video.mp4") as resp:
            assert resp.status == 200
            body = await resp.read()
            assert body == VIDEO
            assert resp.headers["Content-Length"] == "100"
            assert resp.headers["Content-Type"] == "video/mp4"
            assert resp.headers["Accept-Ranges"] == "bytes"
            assert resp.headers["Cache-Control"] == "public, max-age=86400"
            assert resp.headers["Access-Control-Allow-Origin"] == "*"
            assert "Content-Range" not in resp.headers
            assert "Expires" in resp.headers

    @pytest.mark.asyncio
    async def test_first_byte(self, live):
        client, _, _ = live
        async with client.get(
            f"/webdav/{ID_A}/video.mp4", headers={"Range": "bytes=0-0"}
        ) as resp:
            assert resp.status == 206
            assert await resp.read() == VIDEO[:1]
            assert resp.headers["Content-Range"] == "bytes 0-0/100"
            assert resp.headers["Content-Length"] == "1"
            assert resp.headers["Cache-Control"] == "public, max-age=1800"

    @pytest.mark.asyncio
    async def test_open_and_suffix_ranges(self, live):
        client, _, _ = live
        async with client.get(
            f"/webdav/{ID_A}/video.mp4", headers={"Range": "bytes=90-"}
        ) as resp:
            assert resp.status == 206
            assert await resp.read() == VIDEO[90:]
            assert resp.headers["Content-Range"] == "bytes 90-99/100"
        async with client.get(
            f"/webdav/{ID_A}/video.mp4", headers={"Range": "bytes=-5"}
        ) as resp:
            assert await resp.read() == VIDEO[-5:]

    @pytest.mark.asyncio
    async def test_malformed_range_serves_full(self, live):
        client, _, _ = live
        async with client.get(
            f"/webdav/{ID_A}/video.mp4", headers={"Range": "bytes=zz"}
        ) as resp:
            assert resp.status == 200
            assert await resp.read() == VIDEO

    @pytest.mark.asyncio
    async def test_unsatisfiable_range(self, live):
        client, _, _ = live
        async with client.get(
            f"/webdav/{ID_A}/video.mp4", headers={"Range": "bytes=100-"}
        ) as resp:
            assert resp.status == 416
            assert resp.headers["Content-Range"] == "bytes */100"

    @pytest.mark.asyncio
    async def test_head_sends_no_body(self, live):
        client, _, _ = live
        async with client.head(f"/webdav/{ID_A}/video.mp4") as resp:
            assert resp.status == 200
            assert resp.headers["Content-Length"] == "100"
            assert await resp.read() == b""

    @pytest.mark.asyncio
    async def test_subtitle_charset_and_nested_path(self, live):
        client, _, _ = live
        async with client.get(f"/webdav/{ID_A}/subs/video.srt") as resp:
            assert resp.status == 200
            assert resp.headers["Content-Type"] == "text/plain; charset=utf-8"
            assert resp.headers["Cache-Control"] == "public, max-age=3600"
            assert await resp.read() == SUBS

    @pytest.mark.asyncio
    async def test_if_none_match_short_circuits(self, live):
        client, _, _ = live
        path = f"/webdav/{ID_A}/video.mp4"
        async with client.get(path, headers={"Range": "bytes=0-9"}) as resp:
            etag = resp.headers["ETag"]
            await resp.read()
        async with client.get(
            path, headers={"Range": "bytes=0-9", "If-None-Match": etag}
        ) as resp:
            assert resp.status == 304
            assert await resp.read() == b""
            assert resp.headers["ETag"] == etag
            assert "Cache-Control" in resp.headers
        async with client.get(
            path, headers={"Range": "bytes=0-10", "If-None-Match": etag}
        ) as resp:
            assert resp.status == 206

    @pytest.mark.asyncio
    async def test_access_is_counted(self, live):
        client, manager, _ = live
        async with client.get(f"/webdav/{ID_A}/video.mp4") as resp:
            await resp.read()
        await manager.wait_idle(2.0)
        record = await manager.catalog.get_record(ID_A)
        assert record.access_count == 1

    @pytest.mark.asyncio
    async def test_open_range_from_zero_gets_full_lifetime(self, live):
        client, _, _ = live
        async with client.get(
            f"/webdav/{ID_A}/video.mp4", headers={"Range": "bytes=0-"}
        ) as resp:
            assert resp.status == 206
            assert resp.headers["Content-Range"] == "bytes 0-99/100"
            assert resp.headers["Cache-Control"] == "public, max-age=86400"
            assert await resp.read() == VIDEO

    @pytest.mark.asyncio
    async def test_session_dropped_mid_transfer_closes_connection(self, live):
        client, manager, engine = live
        big = bytes(8 * 1024 * 1024)
        engine.add_content(ID_B, "Big", [("big.mkv", big)])
        await manager.submit(MAGNET_B)
        await manager.wait_idle(2.0)

        async with client.get(f"/webdav/{ID_B}/big.mkv") as resp:
            assert resp.status == 200
            assert len(await resp.content.readexactly(64 * 1024)) == 64 * 1024
            engine.sessions[ID_B].drop()
            with pytest.raises(aiohttp.ClientPayloadError):
                await resp.read()

        assert all(reader.closed for reader in engine.sessions[ID_B].readers)
        async with client.get("/health") as resp:
            assert resp.status == 200

    @pytest.mark.asyncio
    async def test_reader_failure_after_headers_closes_connection(
        self, live, monkeypatch
    ):
        client, _, _ = live

        def broken_reader(self, start=0):
            raise StreamError("piece storage unavailable")

        with monkeypatch.context() as patch:
            patch.setattr(MemoryFile, "open_reader", broken_reader)
            with pytest.raises(aiohttp.ClientError):
                async with client.get(f"/webdav/{ID_A}/video.mp4") as resp:
                    await resp.read()

        async with client.get(f"/webdav/{ID_A}/video.mp4") as resp:
            assert resp.status == 200
            assert await resp.read() == VIDEO


class TestResolutionErrors:
    """404 paths."""

    @pytest.mark.asyncio
    async def test_unknown_identifier(self, live):
        client, _, _ = live
        async with client.get("/webdav/ffff/video.mp4") as resp:
            assert resp.status == 404

    @pytest.mark.asyncio
    async def test_unknown_file(self, live):
        client, _, _ = live
        async with client.get(f"/webdav/{ID_A}/missing.mkv") as resp:
            assert resp.status == 404
            assert "file not found" in await resp.text()

    @pytest.mark.asyncio
    async def test_not_ready(self, live):
        client, manager, engine = live
        engine.add_content(ID_B, "Beta", [("b.mkv", b"b")], auto_metadata=False)
        session = await engine.acquire(MAGNET_B, ID_B)
        manager.registry.register(ID_B, session)
        async with client.get(f"/webdav/{ID_B}/b.mkv") as resp:
            assert resp.status == 404

    @pytest.mark.asyncio
    async def test_method_not_allowed(self, live):
        client, _, _ = live
        async with client.put(f"/webdav/{ID_A}/video.mp4", data=b"x") as resp:
            assert resp.status == 405


class TestListings:
    """Directory views, PROPFIND and OPTIONS."""

    @pytest.mark.asyncio
    async def test_directory_listing(self, live):
        client, _, _ = live
        async with client.get(f"/webdav/{ID_A}/") as resp:
            assert resp.status == 200
            assert resp.content_type == "text/html"
            text = await resp.text()
        assert text.index("video.mp4") < text.index("subs/video.srt")
        assert f'href="/webdav/{ID_A}/video.mp4"' in text

    @pytest.mark.asyncio
    async def test_directory_unknown(self, live):
        client, _, _ = live
        async with client.get("/webdav/ffff/") as resp:
            assert resp.status == 404

    @pytest.mark.asyncio
    async def test_root_listing_and_redirect(self, live):
        client, _, _ = live
        async with client.get("/") as resp:
            assert resp.status == 200
            assert str(resp.url).endswith("/webdav/")
            assert "Alpha" in await resp.text()

    @pytest.mark.asyncio
    async def test_propfind(self, live):
        client, _, _ = live
        async with client.request(
            "PROPFIND", f"/webdav/{ID_A}/", headers={"Depth": "1"}
        ) as resp:
            assert resp.status == 207
            text = await resp.text()
        assert "video.mp4" in text
        assert "<D:getcontentlength>100</D:getcontentlength>" in text

    @pytest.mark.asyncio
    async def test_propfind_file(self, live):
        client, _, _ = live
        async with client.request("PROPFIND", f"/webdav/{ID_A}/video.mp4") as resp:
            assert resp.status == 207
        async with client.request("PROPFIND", f"/webdav/{ID_A}/nope") as resp:
            assert resp.status == 404

    @pytest.mark.asyncio
    async def test_options(self, live):
        client, _, _ = live
        async with client.options("/webdav/") as resp:
            assert resp.status == 200
            assert resp.headers["DAV"] == "1"
            assert "PROPFIND" in resp.headers["Allow"]


class TestManagementApi:
    """JSON API."""

    @pytest.mark.asyncio
    async def test_health(self, live):
        client, _, _ = live
        async with client.get("/health") as resp:
            data = await resp.json()
        assert data["status"] == "ok"
        assert data["version"] == __version__
        assert data["active_torrents"] == 1

    @pytest.mark.asyncio
    async def test_add_list_files_delete(self, live):
        client, manager, engine = live
        engine.add_content(ID_B, "Beta", [("b.mkv", b"bb")])
        async with client.post("/api/magnets", json={"magnet_uri": MAGNET_B}) as resp:
            assert resp.status == 201
            assert (await resp.json())["id"] == ID_B
        await manager.wait_idle(2.0)

        async with client.get("/api/magnets") as resp:
            ids = [m["id"] for m in (await resp.json())["magnets"]]
        assert set(ids) == {ID_A, ID_B}

        async with client.get(f"/api/magnets/{ID_B}/files") as resp:
            files = (await resp.json())["files"]
        assert [(f["file_path"], f["file_size"]) for f in files] == [("b.mkv", 2)]

        async with client.delete(f"/api/magnets/{ID_B}") as resp:
            assert resp.status == 200
        async with client.delete(f"/api/magnets/{ID_B}") as resp:
            assert resp.status == 404
            assert (await resp.json())["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_add_invalid_body(self, live):
        client, _, _ = live
        async with client.post("/api/magnets", json={"magnet_uri": "  "}) as resp:
            assert resp.status == 400
        async with client.post("/api/magnets", data=b"not json") as resp:
            assert resp.status == 400

    @pytest.mark.asyncio
    async def test_files_unknown(self, live):
        client, _, _ = live
        async with client.get("/api/magnets/ffff/files") as resp:
            assert resp.status == 404

    @pytest.mark.asyncio
    async def test_stats(self, live):
        client, _, _ = live
        async with client.get("/api/stats") as resp:
            data = await resp.json()
        assert data == {"total_magnets": 1, "total_files": 2, "active_torrents": 1}


class TestBasicAuth:
    """Authentication gate on /webdav."""

    @pytest_asyncio.fixture
    async def secured(self, catalog, memory_engine):
        config = Config(auth=AuthConfig(enabled=True, username="admin", password="pw"))
        manager, server = await _start(catalog, memory_engine, config)
        async with aiohttp.ClientSession(
            base_url=f"http://127.0.0.1:{server.port}"
        ) as client:
            yield client
        await server.stop()
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_requires_credentials(self, secured):
        async with secured.get(f"/webdav/{ID_A}/video.mp4") as resp:
            assert resp.status == 401
            assert resp.headers["WWW-Authenticate"].startswith('Basic realm="Magnet WebDAV"')

    @pytest.mark.asyncio
    async def test_accepts_credentials(self, secured):
        async with secured.get(
            f"/webdav/{ID_A}/video.mp4", auth=aiohttp.BasicAuth("admin", "pw")
        ) as resp:
            assert resp.status == 200

    @pytest.mark.asyncio
    async def test_api_and_health_stay_open(self, secured):
        async with secured.get("/health") as resp:
            assert resp.status == 200
            assert (await resp.json())["auth"] is True
