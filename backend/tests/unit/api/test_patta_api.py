"""
Unit Tests for Patta API Endpoints
"""
import os

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from fra_patta.api.v1.endpoints import patta as patta_endpoints
from fra_patta.core.exceptions import StorageError
from fra_patta.models.patta import Patta
from fra_patta.services.patta_extractor import (
    MANUAL_ENTRY_REQUIRED,
    NAME_REQUIRED,
    PROCESSING_REQUIRED,
)


async def create_patta(client: AsyncClient, headers: dict, **fields) -> dict:
    payload = {
        'claimant_name': 'Ramesh Kumar',
        'district': 'Mandla',
        'village': 'Bhimpur',
        'state': 'Madhya Pradesh',
        'land_area': 2.5,
        'approval_date': '2020-08-15',
        'coordinates': {'latitude': 22.59, 'longitude': 80.37},
    }
    payload.update(fields)
    response = await client.post('/api/v1/patta/manual-add', json=payload, headers=headers)
    assert response.status_code == 201
    return response.json()


class TestUpload:
    """Test single document upload"""

    @pytest.mark.asyncio
    async def test_upload_text_patta(self, client: AsyncClient, ministry_headers, patta_text):
        response = await client.post(
            '/api/v1/patta/upload',
            files={'patta_file': ('patta.txt', patta_text.encode('utf-8'), 'text/plain')},
            headers=ministry_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data['file_name'] == 'patta.txt'
        assert data['extracted_data']['claimant_name'] == 'Ramesh Kumar'
        assert data['extracted_data']['approval_date'] == '2020-08-15'
        assert data['extracted_data']['extraction_metadata']['confidence'] == 100

        detail = await client.get(f"/api/v1/patta/{data['patta_id']}", headers=ministry_headers)
        assert detail.status_code == 200
        assert detail.json()['coordinates'] == {'latitude': 22.5975, 'longitude': 80.3712}
        assert detail.json()['is_verified'] is False

    @pytest.mark.asyncio
    async def test_unreadable_document_still_creates_record(self, client: AsyncClient, ministry_headers):
        response = await client.post(
            '/api/v1/patta/upload',
            files={'patta_file': ('scan.pdf', b'garbage bytes', 'application/pdf')},
            headers=ministry_headers,
        )

        assert response.status_code == 201
        extracted = response.json()['extracted_data']
        assert extracted['claimant_name'] == PROCESSING_REQUIRED
        assert extracted['district'] == MANUAL_ENTRY_REQUIRED
        assert extracted['extraction_metadata']['confidence'] == 0

    @pytest.mark.asyncio
    async def test_upload_rejects_file_type(self, client: AsyncClient, ministry_headers):
        response = await client.post(
            '/api/v1/patta/upload',
            files={'patta_file': ('photo.png', b'\x89PNG', 'image/png')},
            headers=ministry_headers,
        )

        assert response.status_code == 400
        body = response.json()
        assert body['success'] is False
        assert body['error']['code'] == 'INVALID_FILE_TYPE'

    @pytest.mark.asyncio
    async def test_failed_save_removes_stored_file(
        self, client: AsyncClient, db_session, ministry_headers, patta_text, monkeypatch
    ):
        stored_paths = []

        def failing_build(record, uploaded_by, stored=None):
            stored_paths.append(stored.path)
            raise StorageError('Could not persist patta record')

        monkeypatch.setattr(patta_endpoints, 'build_patta', failing_build)

        response = await client.post(
            '/api/v1/patta/upload',
            files={'patta_file': ('patta.txt', patta_text.encode('utf-8'), 'text/plain')},
            headers=ministry_headers,
        )

        assert response.status_code == 500
        assert response.json()['error']['code'] == 'STORAGE_ERROR'
        assert len(stored_paths) == 1
        assert not os.path.exists(stored_paths[0])
        assert (await db_session.execute(select(Patta))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_upload_requires_ministry(self, client: AsyncClient, ngo_headers, patta_text):
        response = await client.post(
            '/api/v1/patta/upload',
            files={'patta_file': ('patta.txt', patta_text.encode('utf-8'), 'text/plain')},
            headers=ngo_headers,
        )

        assert response.status_code == 403


class TestBatchUpload:
    """Test multi-file upload"""

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_batch(
        self, client: AsyncClient, db_session, ministry_headers, patta_text, monkeypatch
    ):
        real_extract = patta_endpoints.extract_patta_data
        calls = []

        def flaky_extract(file_path):
            calls.append(file_path)
            if len(calls) == 2:
                raise RuntimeError('disk on fire')
            return real_extract(file_path)

        monkeypatch.setattr(patta_endpoints, 'extract_patta_data', flaky_extract)

        files = [
            ('patta_files', (f'patta-{i}.txt', patta_text.encode('utf-8'), 'text/plain'))
            for i in range(3)
        ]
        response = await client.post('/api/v1/patta/upload-multiple', files=files, headers=ministry_headers)

        assert response.status_code == 201
        data = response.json()
        assert data['message'] == 'Processed 3 files: 2 succeeded, 1 failed'
        statuses = [r['status'] for r in data['results']]
        assert statuses == ['success', 'error', 'success']
        assert data['results'][1]['file_name'] == 'patta-1.txt'
        assert 'disk on fire' in data['results'][1]['error']

        # The failed file was removed from disk
        assert not os.path.exists(calls[1])

        rows = (await db_session.execute(select(Patta))).scalars().all()
        assert len(rows) == 2

    @pytest.mark.asyncio
    async def test_too_many_files(self, client: AsyncClient, ministry_headers, monkeypatch):
        monkeypatch.setattr(patta_endpoints.settings, 'MAX_BATCH_FILES', 2)

        files = [('patta_files', (f'p{i}.txt', b'District: Mandla', 'text/plain')) for i in range(3)]
        response = await client.post('/api/v1/patta/upload-multiple', files=files, headers=ministry_headers)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_bad_extension_reported_per_file(self, client: AsyncClient, ministry_headers, patta_text):
        files = [
            ('patta_files', ('good.txt', patta_text.encode('utf-8'), 'text/plain')),
            ('patta_files', ('bad.exe', b'MZ', 'application/octet-stream')),
        ]
        response = await client.post('/api/v1/patta/upload-multiple', files=files, headers=ministry_headers)

        assert response.status_code == 201
        results = response.json()['results']
        assert results[0]['status'] == 'success'
        assert results[1]['status'] == 'error'
        assert 'Invalid file type' in results[1]['error']


class TestManualAdd:
    """Test hand-entered records"""

    @pytest.mark.asyncio
    async def test_manual_add(self, client: AsyncClient, ministry_headers):
        data = await create_patta(client, ministry_headers)

        assert data['claimant_name'] == 'Ramesh Kumar'
        assert data['confidence'] == 100
        assert data['extracted_data']['source'] == 'manual'
        assert data['file_name'] is None

    @pytest.mark.asyncio
    async def test_manual_add_applies_extraction_rules(self, client: AsyncClient, ministry_headers):
        data = await create_patta(
            client, ministry_headers, claimant_name='Al', land_area=-4, coordinates={'latitude': 120, 'longitude': 0}
        )

        assert data['claimant_name'] == NAME_REQUIRED
        assert data['land_area'] is None
        assert data['coordinates'] is None
        assert data['confidence'] == 67


class TestQueries:
    """Test list, stats, map data"""

    @pytest.mark.asyncio
    async def test_list_with_filters(self, client: AsyncClient, ministry_headers, ngo_headers):
        await create_patta(client, ministry_headers)
        await create_patta(client, ministry_headers, claimant_name='Sita Devi', district='Dindori')

        response = await client.get('/api/v1/patta', params={'district': 'dindori'}, headers=ngo_headers)

        assert response.status_code == 200
        data = response.json()
        assert data['total'] == 1
        assert data['items'][0]['claimant_name'] == 'Sita Devi'

    @pytest.mark.asyncio
    async def test_list_search_and_pagination(self, client: AsyncClient, ministry_headers):
        for name in ('Ramesh Kumar', 'Ramesh Singh', 'Sita Devi'):
            await create_patta(client, ministry_headers, claimant_name=name)

        response = await client.get(
            '/api/v1/patta', params={'search': 'ramesh', 'page_size': 1}, headers=ministry_headers
        )

        data = response.json()
        assert data['total'] == 2
        assert data['total_pages'] == 2
        assert data['has_next'] is True
        assert len(data['items']) == 1

    @pytest.mark.asyncio
    async def test_stats(self, client: AsyncClient, ministry_headers):
        first = await create_patta(client, ministry_headers)
        await create_patta(client, ministry_headers, district='Dindori')
        await client.put(f"/api/v1/patta/{first['id']}/verify", headers=ministry_headers)

        response = await client.get('/api/v1/patta/stats', headers=ministry_headers)

        assert response.status_code == 200
        data = response.json()
        assert data['total'] == 2
        assert data['verified'] == 1
        assert data['pending'] == 1
        assert {d['district'] for d in data['district_stats']} == {'Mandla', 'Dindori'}
        assert len(data['monthly_stats']) == 12

    @pytest.mark.asyncio
    async def test_map_data_skips_records_without_coordinates(self, client: AsyncClient, ministry_headers):
        await create_patta(client, ministry_headers)
        await create_patta(client, ministry_headers, claimant_name='Sita Devi', coordinates=None)

        response = await client.get('/api/v1/patta/map-data', headers=ministry_headers)

        assert response.status_code == 200
        points = response.json()
        assert len(points) == 1
        assert points[0]['name'] == 'Ramesh Kumar'
        assert points[0]['lat'] == 22.59

    @pytest.mark.asyncio
    async def test_get_missing(self, client: AsyncClient, ministry_headers):
        response = await client.get('/api/v1/patta/does-not-exist', headers=ministry_headers)

        assert response.status_code == 404
        assert response.json()['error']['code'] == 'PATTA_NOT_FOUND'


class TestChanges:
    """Test update, verify, delete"""

    @pytest.mark.asyncio
    async def test_update(self, client: AsyncClient, ministry_headers):
        patta = await create_patta(client, ministry_headers)

        response = await client.put(
            f"/api/v1/patta/{patta['id']}",
            json={'village': 'Ghughri', 'land_area': 3.0},
            headers=ministry_headers,
        )

        assert response.status_code == 200
        assert response.json()['village'] == 'Ghughri'
        assert response.json()['land_area'] == 3.0

    @pytest.mark.asyncio
    async def test_correction_rescores_confidence(self, client: AsyncClient, ministry_headers):
        patta = await create_patta(client, ministry_headers, claimant_name='Al')
        assert patta['confidence'] == 83

        response = await client.put(
            f"/api/v1/patta/{patta['id']}", json={'claimant_name': 'Ramesh Kumar'}, headers=ministry_headers
        )

        assert response.status_code == 200
        assert response.json()['confidence'] == 100
        assert response.json()['extracted_data']['claimant_name'] == NAME_REQUIRED

    @pytest.mark.asyncio
    async def test_update_rejects_invalid_value(self, client: AsyncClient, ministry_headers):
        patta = await create_patta(client, ministry_headers)

        response = await client.put(
            f"/api/v1/patta/{patta['id']}", json={'claimant_name': 'X'}, headers=ministry_headers
        )

        assert response.status_code == 400
        assert response.json()['error']['details']['field'] == 'claimant_name'

    @pytest.mark.asyncio
    async def test_verify_and_unverify(self, client: AsyncClient, ministry_headers):
        patta = await create_patta(client, ministry_headers)

        verified = await client.put(f"/api/v1/patta/{patta['id']}/verify", headers=ministry_headers)
        unverified = await client.put(
            f"/api/v1/patta/{patta['id']}/verify", params={'verified': 'false'}, headers=ministry_headers
        )

        assert verified.json()['is_verified'] is True
        assert unverified.json()['is_verified'] is False

    @pytest.mark.asyncio
    async def test_ngo_cannot_verify(self, client: AsyncClient, ministry_headers, ngo_headers):
        patta = await create_patta(client, ministry_headers)

        response = await client.put(f"/api/v1/patta/{patta['id']}/verify", headers=ngo_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_delete_removes_file(self, client: AsyncClient, db_session, ministry_headers, patta_text):
        upload = await client.post(
            '/api/v1/patta/upload',
            files={'patta_file': ('patta.txt', patta_text.encode('utf-8'), 'text/plain')},
            headers=ministry_headers,
        )
        patta_id = upload.json()['patta_id']
        row = (await db_session.execute(select(Patta).where(Patta.id == patta_id))).scalar_one()
        file_path = row.file_path
        assert os.path.exists(file_path)

        response = await client.delete(f'/api/v1/patta/{patta_id}', headers=ministry_headers)

        assert response.status_code == 200
        assert response.json() == {'message': 'Patta deleted successfully'}
        assert not os.path.exists(file_path)
        missing = await client.get(f'/api/v1/patta/{patta_id}', headers=ministry_headers)
        assert missing.status_code == 404
