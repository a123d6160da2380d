"""Tests for the S3 blob store and asset fetching."""

import base64
from unittest.mock import MagicMock, patch

import pytest
import requests
from botocore.exceptions import ClientError

from quoteflow.errors import NotFoundError, StoreError
from quoteflow.storage.assets import fetch_asset
from quoteflow.storage.s3_blob_store import S3BlobStore


@pytest.fixture
def s3_client():
    return MagicMock()


@pytest.fixture
def s3_store(s3_client):
    return S3BlobStore("quote-docs", s3_client=s3_client)


class TestS3BlobStore:
    def test_put(self, s3_store, s3_client):
        url = s3_store.put(b"%PDF", "quotations/pdfs/q.pdf", content_type="application/pdf")

        assert url == "s3://quote-docs/quotations/pdfs/q.pdf"
        s3_client.put_object.assert_called_once_with(
            Bucket="quote-docs",
            Key="quotations/pdfs/q.pdf",
            Body=b"%PDF",
            ContentType="application/pdf",
        )

    def test_put_error(self, s3_store, s3_client):
        s3_client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )
        with pytest.raises(StoreError):
            s3_store.put(b"x", "k")

    def test_get(self, s3_store, s3_client):
        s3_client.get_object.return_value = {"Body": MagicMock(read=MagicMock(return_value=b"bytes"))}

        assert s3_store.get("s3://other-bucket/a/b.png") == b"bytes"
        s3_client.get_object.assert_called_once_with(Bucket="other-bucket", Key="a/b.png")

    def test_get_missing(self, s3_store, s3_client):
        s3_client.get_object.side_effect = ClientError(
            {"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject"
        )
        with pytest.raises(NotFoundError):
            s3_store.get("s3://quote-docs/nothing")

    def test_presigned_url(self, s3_store, s3_client):
        s3_client.generate_presigned_url.return_value = "https://signed"

        assert s3_store.generate_presigned_url("s3://quote-docs/q.pdf", expiration=60) == "https://signed"
        s3_client.generate_presigned_url.assert_called_once_with(
            "get_object", Params={"Bucket": "quote-docs", "Key": "q.pdf"}, ExpiresIn=60
        )


class TestFetchAsset:
    def test_data_url(self, blob_store):
        url = "data:image/png;base64," + base64.b64encode(b"logo").decode()
        assert fetch_asset(url, blob_store) == b"logo"

    @patch("quoteflow.storage.assets.requests.get")
    def test_http_url(self, mock_get, blob_store):
        mock_get.return_value = MagicMock(content=b"logo")

        assert fetch_asset("https://cdn.example.com/logo.png", blob_store) == b"logo"
        mock_get.return_value.raise_for_status.assert_called_once()

    @patch("quoteflow.storage.assets.requests.get")
    def test_http_error_propagates(self, mock_get, blob_store):
        mock_get.return_value.raise_for_status.side_effect = requests.HTTPError("404")

        with pytest.raises(requests.RequestException):
            fetch_asset("https://cdn.example.com/logo.png", blob_store)

    def test_blob_url(self, blob_store):
        url = blob_store.put(b"sig", "signatures/u.png")
        assert fetch_asset(url, blob_store) == b"sig"
