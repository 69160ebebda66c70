from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError

from doctrack.services.storage import StorageService, schedule_delete


def _configure(mock_settings, public_base=""):
    mock_settings.s3_endpoint_url = "http://localhost:9000"
    mock_settings.s3_access_key = "test-key"
    mock_settings.s3_secret_key = "test-secret"
    mock_settings.s3_region = "us-east-1"
    mock_settings.s3_bucket_name = "doctrack-documents"
    mock_settings.s3_public_base_url = public_base


class TestStorageService:
    def test_generate_storage_key_format(self):
        key = StorageService.generate_storage_key("application/pdf")
        assert key.startswith("documents/")
        assert key.endswith(".pdf")

    def test_unknown_content_type(self):
        assert StorageService.generate_storage_key("text/x-weird").endswith(".bin")

    def test_is_configured_false_by_default(self):
        assert StorageService.is_configured() is False

    @patch("doctrack.services.storage.settings")
    def test_is_configured_true(self, mock_settings):
        _configure(mock_settings)
        assert StorageService.is_configured() is True

    @patch("doctrack.services.storage.settings")
    def test_object_url_uses_bucket_path(self, mock_settings):
        _configure(mock_settings)
        assert StorageService.object_url("documents/a.pdf") == (
            "http://localhost:9000/doctrack-documents/documents/a.pdf"
        )

    @patch("doctrack.services.storage.settings")
    def test_key_from_public_url(self, mock_settings):
        _configure(mock_settings, public_base="https://cdn.test/files/")
        assert StorageService.key_from_url("https://cdn.test/files/documents/a.pdf") == (
            "documents/a.pdf"
        )

    @patch("doctrack.services.storage.settings")
    def test_key_from_bucket_url(self, mock_settings):
        _configure(mock_settings)
        url = "http://localhost:9000/doctrack-documents/documents/a.pdf"
        assert StorageService.key_from_url(url) == "documents/a.pdf"

    @patch("doctrack.services.storage.boto3")
    @patch("doctrack.services.storage.settings")
    def test_upload_object(self, mock_settings, mock_boto3):
        _configure(mock_settings)
        mock_client = MagicMock()
        mock_boto3.client.return_value = mock_client

        url = StorageService.upload_object(b"%PDF", "application/pdf")

        assert url.startswith("http://localhost:9000/doctrack-documents/documents/")
        mock_client.put_object.assert_called_once()
        assert mock_client.put_object.call_args.kwargs["ContentType"] == (
            "application/pdf"
        )

    @patch("doctrack.services.storage.boto3")
    @patch("doctrack.services.storage.settings")
    def test_delete_object(self, mock_settings, mock_boto3):
        _configure(mock_settings)
        mock_client = MagicMock()
        mock_boto3.client.return_value = mock_client

        assert StorageService.delete_object(
            "http://localhost:9000/doctrack-documents/documents/a.pdf"
        ) is True
        mock_client.delete_object.assert_called_once_with(
            Bucket="doctrack-documents", Key="documents/a.pdf"
        )

    @patch("doctrack.services.storage.boto3")
    @patch("doctrack.services.storage.settings")
    def test_delete_object_failure_is_reported(self, mock_settings, mock_boto3):
        _configure(mock_settings)
        mock_client = MagicMock()
        mock_client.delete_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "DeleteObject"
        )
        mock_boto3.client.return_value = mock_client

        assert StorageService.delete_object("http://localhost:9000/x/a.pdf") is False

    def test_delete_object_unconfigured(self):
        assert StorageService.delete_object("https://files.test/a.pdf") is False

    def test_delete_object_empty_url(self):
        assert StorageService.delete_object("") is False


class TestScheduleDelete:
    def test_queues_task(self, storage_delay):
        schedule_delete("https://files.test/a.pdf")
        storage_delay.assert_called_once_with("https://files.test/a.pdf")

    def test_ignores_empty(self, storage_delay):
        schedule_delete(None)
        storage_delay.assert_not_called()

    def test_queue_failure_is_swallowed(self, storage_delay):
        storage_delay.side_effect = ConnectionError("broker down")
        schedule_delete("https://files.test/a.pdf")


class TestDeleteAttachmentTask:
    def test_delegates_to_storage(self):
        from doctrack.tasks.storage import delete_attachment

        with patch("doctrack.services.storage.storage.delete_object", return_value=True) as mock_delete:
            delete_attachment.run("https://files.test/a.pdf")
        mock_delete.assert_called_once_with("https://files.test/a.pdf")
