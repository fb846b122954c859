import pytest
import httpx

from releasemirror.infrastructure.error_handler import (
    MirrorSyncError,
    SourceUnavailable,
    MirrorListUnavailable,
    MirrorWriteError,
    DownloadFailed,
    UploadFailed,
    ManifestRewriteFailed,
    ReconciliationAborted,
    handle_api_error,
    raise_for_status,
)


# ---- Exception classes -----------------------------------------------------

def test_error_message_and_original():
    original = ValueError("boom")
    err = DownloadFailed("failed", original)
    assert err.message == "failed"
    assert err.original_error is original
    assert "failed" in str(err)
    assert "Original: boom" in str(err)


@pytest.mark.parametrize("exc_cls", [
    SourceUnavailable, MirrorListUnavailable, MirrorWriteError,
    DownloadFailed, UploadFailed, ManifestRewriteFailed, ReconciliationAborted,
])
def test_specific_errors_store_message(exc_cls):
    err = exc_cls("msg")
    assert isinstance(err, MirrorSyncError)
    assert err.message == "msg"
    assert str(err) == "msg"


# ---- raise_for_status ----------------------------------------------------------

def test_raise_for_status_passes_success():
    raise_for_status(httpx.Response(201), MirrorWriteError, "create")


def test_raise_for_status_maps_error_status():
    response = httpx.Response(404, text="Not Found")

    with pytest.raises(MirrorWriteError) as exc_info:
        raise_for_status(response, MirrorWriteError, "create v1")
    assert str(exc_info.value) == "create v1: HTTP 404 Not Found"


# ---- handle_api_error decorator -------------------------------------------

@pytest.mark.asyncio
async def test_handle_api_error_httpx_error():
    @handle_api_error(SourceUnavailable, "read failed")
    async def fn():
        raise httpx.RequestError("conn reset")

    with pytest.raises(SourceUnavailable) as exc_info:
        await fn()
    assert exc_info.value.message == "read failed"
    assert isinstance(exc_info.value.original_error, httpx.RequestError)


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [ValueError("bad json"), KeyError("id"), TypeError("none")])
async def test_handle_api_error_malformed_payload(error):
    @handle_api_error(MirrorListUnavailable, "list failed")
    async def fn():
        raise error

    with pytest.raises(MirrorListUnavailable) as exc_info:
        await fn()
    assert "malformed response" in exc_info.value.message


@pytest.mark.asyncio
async def test_handle_api_error_local_io_error():
    @handle_api_error(UploadFailed, "upload failed")
    async def fn():
        raise FileNotFoundError("missing.exe")

    with pytest.raises(UploadFailed):
        await fn()


@pytest.mark.asyncio
async def test_handle_api_error_keeps_typed_errors():
    @handle_api_error(UploadFailed, "upload failed")
    async def fn():
        raise MirrorWriteError("already typed")

    with pytest.raises(MirrorWriteError):
        await fn()


@pytest.mark.asyncio
async def test_handle_api_error_returns_value_and_keeps_name():
    @handle_api_error(UploadFailed, "upload failed")
    async def upload_thing():
        return "ok"

    assert await upload_thing() == "ok"
    assert upload_thing.__name__ == "upload_thing"


@pytest.mark.asyncio
async def test_handle_api_error_does_not_retry():
    calls = []

    @handle_api_error(SourceUnavailable, "read failed")
    async def fn():
        calls.append(1)
        raise httpx.ConnectError("down")

    with pytest.raises(SourceUnavailable):
        await fn()
    assert len(calls) == 1
