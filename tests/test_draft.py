# tests/test_draft.py
"""
Tests de la máquina de estados del borrador de reporte
"""
import itertools

import pytest

from app.services.channel import LocationChannel
from app.services.draft import (
    MAX_PHOTO_BYTES,
    Draft,
    DraftPhoto,
    DraftStatus,
    ReportDraftController,
)
from app.services.errors import (
    InvalidTransition,
    PhotoUploadFailed,
    StoreWriteFailed,
    ValidationError,
)
from app.services.geo import Coordinate
from app.services.geolocation import BrowserPositionSource, GeolocationAdapter

HERE = Coordinate(6.25, -75.57)


def gps_ok(coord=HERE):
    return GeolocationAdapter(BrowserPositionSource({'lat': coord.lat, 'lng': coord.lng, 'elapsed_ms': 500}))


def gps_timeout():
    return GeolocationAdapter(BrowserPositionSource({'error': {'code': 3, 'message': 'Timeout expired'}}))


def make_photo(tmp_path, size, name='foto.jpg'):
    path = tmp_path / name
    path.write_bytes(b'\xff' * size)
    return DraftPhoto(path=str(path), filename=name, content_type='image/jpeg', size=size)


class FakePipeline:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def submit(self, draft):
        self.calls.append(draft.status)
        if self.error is not None:
            raise self.error
        return {'description': draft.description, 'location': draft.location}


class TestTransitions:
    """Tests de las transiciones válidas"""

    def test_starts_idle(self):
        assert ReportDraftController().status == DraftStatus.IDLE

    def test_open(self):
        c = ReportDraftController()
        c.open()
        assert c.status == DraftStatus.ACQUIRING_LOCATION
        assert c.draft.minimized is False

    def test_gps_success(self):
        c = ReportDraftController()
        c.open()
        assert c.acquire_location(gps_ok()) == HERE
        assert c.status == DraftStatus.LOCATION_READY
        assert c.draft.location == HERE

    def test_gps_success_publishes_on_channel(self):
        received = []
        channel = LocationChannel()
        channel.subscribe(received.append)
        c = ReportDraftController(channel=channel)
        c.open()
        c.acquire_location(gps_ok())
        assert received == [HERE]

    def test_gps_failure_enters_manual_selection(self):
        modes = []
        c = ReportDraftController(on_selection_mode=modes.append)
        c.open()
        assert c.acquire_location(gps_timeout()) is None
        assert c.status == DraftStatus.AWAITING_MANUAL_SELECTION
        assert c.draft.minimized is True
        assert c.selection_mode is True
        assert c.draft.error is None
        assert modes == [True]

    def test_select_location(self):
        modes = []
        c = ReportDraftController(on_selection_mode=modes.append)
        c.open()
        c.acquire_location(gps_timeout())
        c.select_location(Coordinate(6.30, -75.58))
        assert c.status == DraftStatus.LOCATION_READY
        assert c.draft.location == Coordinate(6.30, -75.58)
        assert c.draft.minimized is False
        assert modes == [True, False]

    def test_change_location_from_ready(self):
        c = ReportDraftController()
        c.open()
        c.acquire_location(gps_ok())
        c.request_manual_selection()
        assert c.status == DraftStatus.AWAITING_MANUAL_SELECTION
        assert c.selection_mode is True
        # La ubicación anterior se conserva hasta elegir otra
        assert c.draft.location == HERE

    def test_restore_form_with_previous_location(self):
        c = ReportDraftController()
        c.open()
        c.acquire_location(gps_ok())
        c.request_manual_selection()
        c.restore_form()
        assert c.status == DraftStatus.LOCATION_READY
        assert c.selection_mode is False

    def test_restore_form_without_location(self):
        c = ReportDraftController()
        c.open()
        c.acquire_location(gps_timeout())
        c.restore_form()
        assert c.status == DraftStatus.AWAITING_MANUAL_SELECTION
        assert c.draft.minimized is False
        assert c.selection_mode is False

    def test_submit_success_resets(self):
        refreshed = []
        c = ReportDraftController(on_refresh=lambda: refreshed.append(True))
        c.open()
        c.acquire_location(gps_ok())
        c.set_description('bolsas en la esquina')
        pipeline = FakePipeline()
        result = c.submit(pipeline)

        assert result['description'] == 'bolsas en la esquina'
        assert pipeline.calls == [DraftStatus.SUBMITTING]
        assert c.status == DraftStatus.IDLE
        assert c.draft == Draft()
        assert refreshed == [True]

    def test_cancel_from_every_non_submitting_state(self, tmp_path):
        for setup in ('idle', 'acquiring', 'ready', 'awaiting'):
            c = ReportDraftController()
            if setup != 'idle':
                c.open()
            if setup == 'ready':
                c.acquire_location(gps_ok())
            if setup == 'awaiting':
                c.acquire_location(gps_timeout())
            if setup != 'idle':
                c.set_description('algo')
                c.attach_photo(make_photo(tmp_path, 10, name=f'{setup}.jpg'))
            c.cancel()
            assert c.status == DraftStatus.IDLE
            assert c.draft == Draft()
            assert not (tmp_path / f'{setup}.jpg').exists()


class TestInvalidTransitions:
    """Acciones fuera de su estado"""

    def test_open_twice(self):
        c = ReportDraftController()
        c.open()
        with pytest.raises(InvalidTransition):
            c.open()

    def test_acquire_without_open(self):
        with pytest.raises(InvalidTransition):
            ReportDraftController().acquire_location(gps_ok())

    def test_select_location_when_ready(self):
        c = ReportDraftController()
        c.open()
        c.acquire_location(gps_ok())
        with pytest.raises(InvalidTransition):
            c.select_location(Coordinate(6.3, -75.6))

    def test_submit_from_idle(self):
        with pytest.raises(InvalidTransition):
            ReportDraftController().submit(FakePipeline())

    def test_submit_while_acquiring(self):
        c = ReportDraftController()
        c.open()
        c.set_description('algo')
        with pytest.raises(InvalidTransition):
            c.submit(FakePipeline())

    def test_submit_while_submitting(self):
        c = ReportDraftController(draft=Draft(description='x', location=HERE, status=DraftStatus.SUBMITTING))
        with pytest.raises(InvalidTransition) as exc:
            c.submit(FakePipeline())
        assert exc.value.message == 'El reporte ya se está enviando.'

    def test_cancel_while_submitting(self):
        c = ReportDraftController(draft=Draft(description='x', location=HERE, status=DraftStatus.SUBMITTING))
        with pytest.raises(InvalidTransition):
            c.cancel()
        assert c.status == DraftStatus.SUBMITTING

    def test_edit_when_idle(self, tmp_path):
        c = ReportDraftController()
        with pytest.raises(InvalidTransition):
            c.set_description('x')
        with pytest.raises(InvalidTransition):
            c.attach_photo(make_photo(tmp_path, 10))


class TestValidation:
    """Un borrador incompleto nunca llega al pipeline"""

    def test_partial_drafts_never_submit(self):
        descriptions = ['', '   ', '\n\t', 'bolsas']
        locations = [None, HERE]
        statuses = [DraftStatus.LOCATION_READY, DraftStatus.AWAITING_MANUAL_SELECTION]

        for description, location, status in itertools.product(descriptions, locations, statuses):
            complete = bool(description.strip()) and location is not None
            if complete:
                continue
            pipeline = FakePipeline()
            c = ReportDraftController(draft=Draft(description=description, location=location, status=status))
            with pytest.raises(ValidationError):
                c.submit(pipeline)
            assert pipeline.calls == []
            assert c.status == status
            assert c.draft.error

    def test_missing_description_message(self):
        c = ReportDraftController(draft=Draft(location=HERE, status=DraftStatus.LOCATION_READY))
        with pytest.raises(ValidationError) as exc:
            c.submit(FakePipeline())
        assert exc.value.message == 'La descripción es obligatoria.'

    def test_missing_location_message(self):
        c = ReportDraftController(draft=Draft(description='x', status=DraftStatus.AWAITING_MANUAL_SELECTION))
        with pytest.raises(ValidationError) as exc:
            c.submit(FakePipeline())
        assert 'No hay ubicación' in exc.value.message


class TestPhoto:
    """Límite de 5MB y manejo de la foto temporal"""

    def _open(self):
        c = ReportDraftController()
        c.open()
        c.acquire_location(gps_ok())
        return c

    def test_exactly_5mb_accepted(self, tmp_path):
        c = self._open()
        c.attach_photo(make_photo(tmp_path, MAX_PHOTO_BYTES))
        assert c.draft.photo.size == 5 * 1024 * 1024

    def test_over_5mb_rejected(self, tmp_path):
        c = self._open()
        photo = make_photo(tmp_path, MAX_PHOTO_BYTES + 1)
        with pytest.raises(ValidationError) as exc:
            c.attach_photo(photo)
        assert exc.value.message == 'La foto no puede superar 5MB'
        assert c.draft.photo is None
        assert c.status == DraftStatus.LOCATION_READY
        assert not (tmp_path / 'foto.jpg').exists()

    def test_replacing_photo_discards_previous(self, tmp_path):
        c = self._open()
        c.attach_photo(make_photo(tmp_path, 10, name='a.jpg'))
        c.attach_photo(make_photo(tmp_path, 10, name='b.jpg'))
        assert not (tmp_path / 'a.jpg').exists()
        assert c.draft.photo.filename == 'b.jpg'

    def test_clear_photo(self, tmp_path):
        c = self._open()
        c.attach_photo(make_photo(tmp_path, 10))
        c.clear_photo()
        assert c.draft.photo is None
        assert not (tmp_path / 'foto.jpg').exists()

    def test_discard_missing_file(self, tmp_path):
        photo = DraftPhoto(path=str(tmp_path / 'nada.jpg'), filename='nada.jpg',
                           content_type='image/jpeg', size=1)
        photo.discard()


class TestSubmitFailures:
    """Un fallo del pipeline devuelve el borrador intacto a su estado anterior"""

    @pytest.mark.parametrize('error', [PhotoUploadFailed(), StoreWriteFailed()])
    def test_failure_restores_previous_state(self, tmp_path, error):
        c = ReportDraftController()
        c.open()
        c.acquire_location(gps_ok())
        c.set_description('bolsas')
        c.attach_photo(make_photo(tmp_path, 10))

        with pytest.raises(type(error)):
            c.submit(FakePipeline(error=error))

        assert c.status == DraftStatus.LOCATION_READY
        assert c.draft.description == 'bolsas'
        assert c.draft.location == HERE
        assert c.draft.photo is not None
        assert c.draft.error == error.message

    def test_failure_from_manual_selection(self):
        c = ReportDraftController(draft=Draft(description='x', location=HERE,
                                              status=DraftStatus.AWAITING_MANUAL_SELECTION))
        with pytest.raises(StoreWriteFailed):
            c.submit(FakePipeline(error=StoreWriteFailed()))
        assert c.status == DraftStatus.AWAITING_MANUAL_SELECTION

    def test_retry_after_failure(self):
        c = ReportDraftController(draft=Draft(description='x', location=HERE,
                                              status=DraftStatus.LOCATION_READY))
        with pytest.raises(PhotoUploadFailed):
            c.submit(FakePipeline(error=PhotoUploadFailed()))
        c.submit(FakePipeline())
        assert c.status == DraftStatus.IDLE


class TestSerialization:

    def test_draft_round_trip(self, tmp_path):
        draft = Draft(description='d', photo=make_photo(tmp_path, 3), location=HERE,
                      status=DraftStatus.AWAITING_MANUAL_SELECTION, error='e', minimized=True)
        assert Draft.from_dict(draft.to_dict()) == draft

    def test_snapshot_hides_photo_path(self, tmp_path):
        c = ReportDraftController()
        c.open()
        c.attach_photo(make_photo(tmp_path, 3))
        snap = c.snapshot()
        assert snap['photo'] == {'filename': 'foto.jpg', 'size': 3}
        assert snap['status'] == 'acquiring_location'
