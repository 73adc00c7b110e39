# tests/test_submission.py
"""
Tests del almacenamiento de fotos y del pipeline de envío
"""
import os
import re
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from app.models import Report
from app.services.draft import Draft, DraftPhoto, DraftStatus, ReportDraftController
from app.services.errors import PhotoUploadFailed, StoreWriteFailed, ValidationError
from app.services.geo import Coordinate
from app.services.storage import PhotoStorage, generate_photo_name, purge_staged_photos
from app.services.submission import SubmissionPipeline


@pytest.fixture
def storage(tmp_path):
    return PhotoStorage(str(tmp_path / 'storage'), public_base_url='http://localhost/fotos/')


@pytest.fixture
def staged_photo(tmp_path):
    path = tmp_path / 'staged.jpg'
    path.write_bytes(b'JPEGDATA')
    return DraftPhoto(path=str(path), filename='IMG_0001.JPG', content_type='image/jpeg', size=8)


def ready_draft(**kwargs):
    values = dict(description='bolsas en la esquina', location=Coordinate(6.25, -75.57),
                  status=DraftStatus.LOCATION_READY)
    values.update(kwargs)
    return Draft(**values)


class TestPhotoStorage:
    """Tests del bucket de fotos"""

    def test_generate_name_keeps_extension(self):
        name = generate_photo_name('Foto.JPEG', now=1700000000.123)
        assert re.fullmatch(r'1700000000123-[0-9a-f]{12}\.jpeg', name)

    def test_generate_name_without_extension(self):
        assert re.fullmatch(r'\d+-[0-9a-f]{12}', generate_photo_name('foto'))

    def test_names_do_not_collide(self):
        names = {generate_photo_name('a.jpg', now=1.0) for _ in range(200)}
        assert len(names) == 200

    def test_upload_and_public_url(self, storage):
        name = storage.upload(b'abc', 'x.png', 'image/png')
        assert os.path.exists(os.path.join(storage.bucket_dir, name))
        assert storage.public_url(name) == f'http://localhost/fotos/{name}'

    def test_upload_failure(self, storage):
        with patch('app.services.storage.open', create=True, side_effect=PermissionError(13, 'Permission denied')):
            with pytest.raises(PhotoUploadFailed) as exc:
                storage.upload(b'abc', 'x.png')
        assert exc.value.message.startswith('Error subiendo foto')

    @pytest.mark.parametrize('name', ['', '../x.jpg', 'a/b.jpg', '.env'])
    def test_unsafe_names(self, storage, name):
        with pytest.raises(ValueError):
            storage.path_for(name)

    def test_remove(self, storage):
        name = storage.upload(b'abc', 'x.png')
        assert storage.remove(name) is True
        assert storage.remove(name) is False


class TestStagingPurge:
    """Fotos temporales de borradores abandonados"""

    def _staged(self, directory, name, age_seconds, now):
        path = directory / name
        path.write_bytes(b'x')
        os.utime(path, (now - age_seconds, now - age_seconds))
        return path

    def test_removes_only_old_files(self, tmp_path):
        now = 1_700_000_000
        old = self._staged(tmp_path, 'vieja.jpg', 25 * 3600, now)
        recent = self._staged(tmp_path, 'reciente.jpg', 3600, now)

        assert purge_staged_photos(str(tmp_path), 24 * 3600, now=now) == 1
        assert not old.exists()
        assert recent.exists()

    def test_missing_directory(self, tmp_path):
        assert purge_staged_photos(str(tmp_path / 'no-existe'), 60) == 0

    def test_undeletable_file_is_skipped(self, tmp_path):
        now = 1_700_000_000
        self._staged(tmp_path, 'a.jpg', 7200, now)
        with patch('app.services.storage.os.remove', side_effect=PermissionError(13, 'Permission denied')):
            assert purge_staged_photos(str(tmp_path), 60, now=now) == 0


class TestSubmissionPipeline:
    """Tests del pipeline (foto primero, registro después)"""

    def test_submit_without_photo(self, app_context, db, storage):
        report = SubmissionPipeline(storage, db.session).submit(ready_draft())
        assert report.photo_url is None
        assert report.lat == 6.25
        assert report.lng == -75.57
        assert report.location == 'POINT(-75.57 6.25)'
        assert Report.query.count() == 1

    def test_description_is_trimmed(self, app_context, db, storage):
        report = SubmissionPipeline(storage, db.session).submit(ready_draft(description='  bolsas  \n'))
        assert report.description == 'bolsas'

    def test_submit_with_photo(self, app_context, db, storage, staged_photo):
        report = SubmissionPipeline(storage, db.session).submit(ready_draft(photo=staged_photo))
        assert report.photo_url.startswith('http://localhost/fotos/')
        assert report.photo_url.endswith('.jpg')
        name = report.photo_url.rsplit('/', 1)[1]
        with open(storage.path_for(name), 'rb') as f:
            assert f.read() == b'JPEGDATA'

    @pytest.mark.parametrize('draft', [
        ready_draft(description='   '),
        ready_draft(location=None),
    ])
    def test_invalid_draft(self, app_context, db, storage, draft):
        with pytest.raises(ValidationError):
            SubmissionPipeline(storage, db.session).submit(draft)
        assert Report.query.count() == 0

    def test_upload_failure_writes_nothing(self, app_context, db, storage, staged_photo):
        controller = ReportDraftController(draft=ready_draft(photo=staged_photo))
        pipeline = SubmissionPipeline(storage, db.session)

        with patch.object(storage, 'upload', side_effect=PhotoUploadFailed('Error subiendo foto: sin espacio')):
            with pytest.raises(PhotoUploadFailed):
                controller.submit(pipeline)

        assert Report.query.count() == 0
        assert controller.status == DraftStatus.LOCATION_READY
        assert controller.draft.description == 'bolsas en la esquina'
        assert controller.draft.photo == staged_photo
        assert controller.draft.error == 'Error subiendo foto: sin espacio'

    def test_missing_staged_file(self, app_context, db, storage, staged_photo):
        os.remove(staged_photo.path)
        with pytest.raises(PhotoUploadFailed):
            SubmissionPipeline(storage, db.session).submit(ready_draft(photo=staged_photo))
        assert Report.query.count() == 0

    def test_store_failure_removes_photo(self, app_context, db, storage, staged_photo):
        pipeline = SubmissionPipeline(storage, db.session)
        with patch.object(db.session, 'commit', side_effect=OperationalError('INSERT', {}, Exception('db down'))):
            with pytest.raises(StoreWriteFailed):
                pipeline.submit(ready_draft(photo=staged_photo))

        assert Report.query.count() == 0
        assert os.listdir(storage.bucket_dir) == []

    def test_retry_after_failure(self, app_context, db, storage):
        controller = ReportDraftController(draft=ready_draft())
        pipeline = SubmissionPipeline(storage, db.session)

        with patch.object(db.session, 'commit', side_effect=OperationalError('INSERT', {}, Exception('db down'))):
            with pytest.raises(StoreWriteFailed):
                controller.submit(pipeline)
        assert controller.status == DraftStatus.LOCATION_READY

        report = controller.submit(pipeline)
        assert controller.status == DraftStatus.IDLE
        assert Report.query.count() == 1
        assert report.description == 'bolsas en la esquina'

    def test_cleanup_error_keeps_store_failure(self, app_context, db, storage, staged_photo):
        pipeline = SubmissionPipeline(storage, db.session)
        with patch.object(db.session, 'commit', side_effect=OperationalError('INSERT', {}, Exception('db down'))), \
                patch.object(storage, 'remove', side_effect=PermissionError(13, 'Permission denied')):
            with pytest.raises(StoreWriteFailed):
                pipeline.submit(ready_draft(photo=staged_photo))

        assert Report.query.count() == 0
