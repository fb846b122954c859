import json

import pytest

from releasemirror.core.rewriter import ContentRewriter
from releasemirror.infrastructure.error_handler import ManifestRewriteFailed
from releasemirror.models import MirrorConfig


def make_rewriter(**overrides) -> ContentRewriter:
    """Helper building a rewriter for octo/app -> mirror/app-mirror."""
    values = dict(
        source_owner="octo",
        source_repo="app",
        mirror_owner="mirror",
        mirror_repo="app-mirror",
        mirror_token="token",
    )
    values.update(overrides)
    return ContentRewriter(MirrorConfig(**values))


def test_rewrite_body_replaces_download_url():
    rewriter = make_rewriter()
    body = "Get it: https://github.com/octo/app/releases/download/v1.0.0/app.exe"

    result = rewriter.rewrite_body(body)

    assert result == "Get it: https://gitee.com/mirror/app-mirror/releases/download/v1.0.0/app.exe"
    assert "github.com" not in result


def test_rewrite_body_handles_markdown_links_and_sentence_end():
    rewriter = make_rewriter()
    body = "[exe](https://github.com/octo/app/releases/download/v1/a.exe) see https://github.com/octo/app."

    result = rewriter.rewrite_body(body)

    assert "(https://gitee.com/mirror/app-mirror/releases/download/v1/a.exe)" in result
    assert result.endswith("https://gitee.com/mirror/app-mirror.")


def test_rewrite_body_leaves_other_repositories_alone():
    rewriter = make_rewriter()
    body = "https://github.com/octo/app-extras/releases and https://github.com/other/app"

    assert rewriter.rewrite_body(body) == body


def test_rewrite_body_disabled():
    rewriter = make_rewriter(rewrite_release_body=False)
    body = "https://github.com/octo/app/releases/download/v1/a.exe"

    assert rewriter.rewrite_body(body) == body


def test_is_manifest_honours_name_and_toggle():
    assert make_rewriter().is_manifest("latest.json")
    assert not make_rewriter().is_manifest("app.exe")
    assert not make_rewriter(rewrite_manifest=False).is_manifest("latest.json")
    assert make_rewriter(manifest_name="update.json").is_manifest("update.json")


def test_rewrite_manifest_rewrites_nested_urls():
    rewriter = make_rewriter()
    manifest = {
        "version": "1.0.0",
        "notes": "See https://github.com/octo/app",
        "platforms": {
            "windows-x86_64": {
                "signature": "abc",
                "url": "https://github.com/octo/app/releases/download/v1.0.0/app.msi",
            },
            "darwin-aarch64": {
                "url": "https://github.com/octo/app/releases/download/v1.0.0/app.tar.gz",
            },
        },
        "mirrors": ["https://github.com/octo/app/releases"],
        "size": 12,
    }

    result = json.loads(rewriter.rewrite_manifest(json.dumps(manifest).encode("utf-8")))

    assert result["platforms"]["windows-x86_64"]["url"] == (
        "https://gitee.com/mirror/app-mirror/releases/download/v1.0.0/app.msi"
    )
    assert result["platforms"]["windows-x86_64"]["signature"] == "abc"
    assert result["mirrors"] == ["https://gitee.com/mirror/app-mirror/releases"]
    assert result["size"] == 12
    assert "github.com" not in json.dumps(result)


@pytest.mark.parametrize("content", [b"not json", b"\xff\xfe", b'{"url": '])
def test_rewrite_manifest_invalid_content_raises(content):
    with pytest.raises(ManifestRewriteFailed):
        make_rewriter().rewrite_manifest(content)
