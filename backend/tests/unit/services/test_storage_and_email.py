"""
Unit Tests for storage and notification services
"""
import asyncio
import io
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from fra_patta.core.exceptions import FileTooLargeError, InvalidFileTypeError, ValidationError
from fra_patta.models.user import User, UserRole
from fra_patta.services import email_service as email_module
from fra_patta.services.email_service import EmailService, dispatch_notification
from fra_patta.services.storage_service import PATTA_CATEGORY, StorageService


def make_upload(filename: str, content: bytes, content_type: str = 'text/plain') -> UploadFile:
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({'content-type': content_type}),
    )


class TestStorageService:
    """Test local document storage"""

    @pytest.mark.asyncio
    async def test_save_upload(self, tmp_path):
        storage = StorageService(base_dir=tmp_path)

        stored = await storage.save_upload(
            make_upload('Patta Scan.TXT', b'District: Mandla'), PATTA_CATEGORY, 'patta', ['pdf', 'txt']
        )

        assert stored.file_name == 'Patta Scan.TXT'
        assert stored.size == len(b'District: Mandla')
        assert stored.mime_type == 'text/plain'
        assert stored.path.startswith(str(tmp_path / PATTA_CATEGORY))
        assert stored.path.endswith('.txt')
        with open(stored.path, 'rb') as f:
            assert f.read() == b'District: Mandla'

    @pytest.mark.asyncio
    async def test_rejects_extension(self, tmp_path):
        storage = StorageService(base_dir=tmp_path)

        with pytest.raises(InvalidFileTypeError) as exc_info:
            await storage.save_upload(make_upload('run.exe', b'MZ'), PATTA_CATEGORY, 'patta', ['pdf'])

        assert exc_info.value.details['file_type'] == 'exe'

    @pytest.mark.asyncio
    async def test_rejects_large_file(self, tmp_path):
        storage = StorageService(base_dir=tmp_path)

        with patch('fra_patta.services.storage_service.settings.MAX_UPLOAD_SIZE', 4):
            with pytest.raises(FileTooLargeError):
                await storage.save_upload(make_upload('big.txt', b'12345'), PATTA_CATEGORY, 'patta', ['txt'])

        assert not (tmp_path / PATTA_CATEGORY).exists() or not any((tmp_path / PATTA_CATEGORY).iterdir())

    @pytest.mark.asyncio
    async def test_requires_filename(self, tmp_path):
        storage = StorageService(base_dir=tmp_path)

        with pytest.raises(ValidationError):
            await storage.save_upload(make_upload('', b'x'), PATTA_CATEGORY, 'patta', ['txt'])

    def test_generated_names_are_unique(self):
        names = {StorageService.generate_file_name('policy', 'pdf') for _ in range(20)}

        assert len(names) == 20
        assert all(name.startswith('policy-') and name.endswith('.pdf') for name in names)

    def test_delete_missing_file(self, tmp_path):
        storage = StorageService(base_dir=tmp_path)

        assert storage.delete_file(str(tmp_path / 'nope.pdf')) is False
        assert storage.delete_file(None) is False

    def test_delete_existing_file(self, tmp_path):
        storage = StorageService(base_dir=tmp_path)
        target = tmp_path / 'doc.pdf'
        target.write_bytes(b'%PDF')

        assert storage.delete_file(str(target)) is True
        assert not target.exists()


class TestEmailService:
    """Test SMTP notifications"""

    @pytest.mark.asyncio
    async def test_unconfigured_smtp_only_logs(self):
        service = EmailService()
        service.smtp_user = ''

        with patch('fra_patta.services.email_service.aiosmtplib.send', new_callable=AsyncMock) as send:
            result = await service.send_email('ngo@fra-ngo.org', 'Subject', '<p>Hi</p>')

        assert result is False
        send.assert_not_called()

    @pytest.mark.asyncio
    async def test_configured_smtp_sends(self):
        service = EmailService()
        service.smtp_user = 'mailer'
        service.smtp_password = 'secret'

        with patch('fra_patta.services.email_service.aiosmtplib.send', new_callable=AsyncMock) as send:
            result = await service.send_email('ngo@fra-ngo.org', 'Subject', '<p>Hi</p>', 'Hi')

        assert result is True
        send.assert_awaited_once()
        message = send.await_args.args[0]
        assert message['To'] == 'ngo@fra-ngo.org'
        assert message['Subject'] == 'Subject'

    @pytest.mark.asyncio
    async def test_send_failure_returns_false(self):
        service = EmailService()
        service.smtp_user = 'mailer'
        service.smtp_password = 'secret'

        with patch(
            'fra_patta.services.email_service.aiosmtplib.send',
            new_callable=AsyncMock,
            side_effect=OSError('connection refused'),
        ):
            assert await service.send_email('ngo@fra-ngo.org', 'Subject', '<p>Hi</p>') is False

    @pytest.mark.asyncio
    async def test_rejection_email_escapes_reason(self):
        service = EmailService()
        ngo = User(email='ngo@fra-ngo.org', name='Van Sathi', role=UserRole.NGO)

        with patch.object(service, 'send_email', new_callable=AsyncMock, return_value=True) as send:
            await service.send_ngo_rejection_email(ngo, '<b>Incomplete documents</b>')

        html = send.await_args.args[2]
        assert '&lt;b&gt;Incomplete documents&lt;/b&gt;' in html


class TestNotificationDispatch:
    """Test fire-and-forget dispatch"""

    @pytest.mark.asyncio
    async def test_dispatch_runs_in_background(self):
        done = asyncio.Event()

        async def notify():
            done.set()
            return True

        task = dispatch_notification(notify())
        await asyncio.wait_for(done.wait(), timeout=1)
        await task

        assert task.result() is True
        assert task not in email_module._pending_notifications

    @pytest.mark.asyncio
    async def test_dispatch_failure_is_logged_not_raised(self):
        async def notify():
            raise RuntimeError('smtp down')

        with patch.object(email_module.logger, 'log_error_with_context') as log_error:
            task = dispatch_notification(notify())
            await asyncio.gather(task, return_exceptions=True)
            await asyncio.sleep(0)

        log_error.assert_called_once()
        assert task not in email_module._pending_notifications
