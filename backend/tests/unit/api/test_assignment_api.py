"""
Unit Tests for Assignment API Endpoints
"""
import json
import os
from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from fra_patta.models.assignment import Assignment, AssignmentStatus


def assignment_payload(ngo_id: str, **overrides) -> dict:
    payload = {
        'ngo_id': ngo_id,
        'title': 'Verify FRA claims in Bhimpur',
        'description': 'Field verification of pending claims',
        'area': {'district': 'Mandla', 'villages': ['Bhimpur', 'Ghughri']},
        'instructions': 'Meet every claimant and photograph boundary markers',
        'objectives': ['Verify boundaries'],
        'expected_deliverables': ['Photos', 'Visit log'],
        'deadline': (datetime.utcnow() + timedelta(days=14)).isoformat(),
        'priority': 'high',
    }
    payload.update(overrides)
    return payload


async def create_assignment(client: AsyncClient, headers: dict, ngo_id: str, **overrides) -> dict:
    response = await client.post(
        '/api/v1/assignment/create', json=assignment_payload(ngo_id, **overrides), headers=headers
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestCreate:
    """Test assignment creation"""

    @pytest.mark.asyncio
    async def test_create(self, client: AsyncClient, ministry_user, ministry_headers, ngo_user):
        data = await create_assignment(client, ministry_headers, str(ngo_user.id))

        assert data['status'] == 'active'
        assert data['progress'] == 0
        assert data['priority'] == 'high'
        assert data['assigned_by'] == str(ministry_user.id)
        assert data['area']['villages'] == ['Bhimpur', 'Ghughri']
        assert data['ngo']['email'] == ngo_user.email

    @pytest.mark.asyncio
    async def test_create_with_past_deadline_is_overdue(
        self, client: AsyncClient, db_session, ministry_headers, ngo_user
    ):
        """Test the deadline check runs before the first write"""
        data = await create_assignment(
            client, ministry_headers, str(ngo_user.id),
            deadline=(datetime.utcnow() - timedelta(days=1)).isoformat(),
        )

        assert data['status'] == 'overdue'
        stored = (
            await db_session.execute(select(Assignment).where(Assignment.id == data['id']))
        ).scalar_one()
        assert stored.status == AssignmentStatus.OVERDUE

    @pytest.mark.asyncio
    async def test_create_for_pending_ngo(self, client: AsyncClient, ministry_headers, pending_ngo):
        response = await client.post(
            '/api/v1/assignment/create',
            json=assignment_payload(str(pending_ngo.id)),
            headers=ministry_headers,
        )

        assert response.status_code == 400
        assert response.json()['error']['code'] == 'INVALID_NGO'

    @pytest.mark.asyncio
    async def test_create_for_ministry_user(self, client: AsyncClient, ministry_user, ministry_headers):
        response = await client.post(
            '/api/v1/assignment/create',
            json=assignment_payload(str(ministry_user.id)),
            headers=ministry_headers,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_ngo_cannot_create(self, client: AsyncClient, ngo_user, ngo_headers):
        response = await client.post(
            '/api/v1/assignment/create',
            json=assignment_payload(str(ngo_user.id)),
            headers=ngo_headers,
        )

        assert response.status_code == 403


class TestReading:
    """Test listing and visibility"""

    @pytest.mark.asyncio
    async def test_overdue_derived_on_read(self, client: AsyncClient, ministry_headers, ngo_user, ngo_headers):
        created = await create_assignment(
            client, ministry_headers, str(ngo_user.id),
            deadline=(datetime.utcnow() - timedelta(days=1)).isoformat(),
        )

        response = await client.get(f"/api/v1/assignment/{created['id']}", headers=ngo_headers)

        assert response.status_code == 200
        assert response.json()['status'] == 'overdue'

    @pytest.mark.asyncio
    async def test_list_marks_overdue(self, client: AsyncClient, ministry_headers, ngo_user):
        await create_assignment(
            client, ministry_headers, str(ngo_user.id),
            deadline=(datetime.utcnow() - timedelta(days=1)).isoformat(),
        )
        await create_assignment(client, ministry_headers, str(ngo_user.id))

        response = await client.get(
            '/api/v1/assignment/all', params={'status': 'overdue'}, headers=ministry_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data['total'] == 1
        assert data['items'][0]['ngo']['id'] == str(ngo_user.id)

    @pytest.mark.asyncio
    async def test_other_ngo_cannot_read(
        self, client: AsyncClient, ministry_headers, ngo_user, other_ngo_headers
    ):
        created = await create_assignment(client, ministry_headers, str(ngo_user.id))

        response = await client.get(f"/api/v1/assignment/{created['id']}", headers=other_ngo_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_my_assignments(
        self, client: AsyncClient, ministry_headers, ngo_user, ngo_headers, other_ngo_user
    ):
        await create_assignment(client, ministry_headers, str(ngo_user.id))
        await create_assignment(client, ministry_headers, str(ngo_user.id), title='Second visit round')
        await create_assignment(client, ministry_headers, str(other_ngo_user.id))

        response = await client.get('/api/v1/assignment/my-assignments', headers=ngo_headers)

        assert response.status_code == 200
        data = response.json()
        assert data['total'] == 2
        assert data['stats']['total'] == 2
        assert data['stats']['active'] == 2

    @pytest.mark.asyncio
    async def test_stats(self, client: AsyncClient, ministry_headers, ngo_user):
        await create_assignment(client, ministry_headers, str(ngo_user.id))
        await create_assignment(client, ministry_headers, str(ngo_user.id), priority='urgent')

        response = await client.get('/api/v1/assignment/stats', headers=ministry_headers)

        assert response.status_code == 200
        data = response.json()
        assert data['total'] == 2
        assert data['active'] == 2
        priorities = {p['priority']: p['count'] for p in data['priority_stats']}
        assert priorities == {'low': 0, 'medium': 0, 'high': 1, 'urgent': 1}

    @pytest.mark.asyncio
    async def test_missing(self, client: AsyncClient, ministry_headers):
        response = await client.get('/api/v1/assignment/nope', headers=ministry_headers)

        assert response.status_code == 404


class TestStatusChanges:
    """Test PUT /{id}/status"""

    @pytest.mark.asyncio
    async def test_ngo_progress(self, client: AsyncClient, ministry_headers, ngo_user, ngo_headers):
        created = await create_assignment(client, ministry_headers, str(ngo_user.id))

        response = await client.put(
            f"/api/v1/assignment/{created['id']}/status",
            json={'status': 'in-progress', 'progress': 30},
            headers=ngo_headers,
        )

        assert response.status_code == 200
        assert response.json()['status'] == 'in-progress'
        assert response.json()['progress'] == 30

    @pytest.mark.asyncio
    async def test_completed_is_final(self, client: AsyncClient, ministry_headers, ngo_user, ngo_headers):
        created = await create_assignment(client, ministry_headers, str(ngo_user.id))
        url = f"/api/v1/assignment/{created['id']}/status"

        done = await client.put(url, json={'status': 'completed'}, headers=ngo_headers)
        reopened = await client.put(url, json={'status': 'in-progress'}, headers=ngo_headers)

        assert done.status_code == 200
        assert done.json()['completed_at'] is not None
        assert reopened.status_code == 400
        assert reopened.json()['error']['code'] == 'INVALID_STATUS_TRANSITION'

    @pytest.mark.asyncio
    async def test_overdue_cannot_be_requested(self, client: AsyncClient, ministry_headers, ngo_user):
        created = await create_assignment(client, ministry_headers, str(ngo_user.id))

        response = await client.put(
            f"/api/v1/assignment/{created['id']}/status",
            json={'status': 'overdue'},
            headers=ministry_headers,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_ngo_cannot_cancel(self, client: AsyncClient, ministry_headers, ngo_user, ngo_headers):
        created = await create_assignment(client, ministry_headers, str(ngo_user.id))

        response = await client.put(
            f"/api/v1/assignment/{created['id']}/status",
            json={'status': 'cancelled'},
            headers=ngo_headers,
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_other_ngo_cannot_update(
        self, client: AsyncClient, ministry_headers, ngo_user, other_ngo_headers
    ):
        created = await create_assignment(client, ministry_headers, str(ngo_user.id))

        response = await client.put(
            f"/api/v1/assignment/{created['id']}/status",
            json={'status': 'in-progress'},
            headers=other_ngo_headers,
        )

        assert response.status_code == 403


class TestReportAndFeedback:
    """Test report submission and ministry feedback"""

    @pytest.mark.asyncio
    async def test_report_with_attachment(self, client: AsyncClient, ministry_headers, ngo_user, ngo_headers):
        created = await create_assignment(client, ministry_headers, str(ngo_user.id))

        response = await client.put(
            f"/api/v1/assignment/{created['id']}/report",
            data={
                'summary': 'All claims verified',
                'findings': ['Boundaries match', 'Two disputes'],
                'beneficiaries_reached': '42',
                'villages_visited': json.dumps([{'name': 'Bhimpur', 'visit_date': '2026-01-10'}]),
            },
            files=[('report_files', ('site.jpg', b'\xff\xd8\xff', 'image/jpeg'))],
            headers=ngo_headers,
        )

        assert response.status_code == 200, response.text
        data = response.json()
        assert data['status'] == 'completed'
        assert data['progress'] == 100
        report = data['report']
        assert report['summary'] == 'All claims verified'
        assert report['findings'] == ['Boundaries match', 'Two disputes']
        assert report['beneficiaries_reached'] == 42
        assert report['villages_visited'][0]['name'] == 'Bhimpur'
        assert report['attachments'][0]['filename'] == 'site.jpg'
        assert os.path.exists(report['attachments'][0]['path'])
        assert 'submitted_at' in report

    @pytest.mark.asyncio
    async def test_report_invalid_villages_json(
        self, client: AsyncClient, ministry_headers, ngo_user, ngo_headers
    ):
        created = await create_assignment(client, ministry_headers, str(ngo_user.id))

        response = await client.put(
            f"/api/v1/assignment/{created['id']}/report",
            data={'summary': 'Done', 'villages_visited': '{not json'},
            headers=ngo_headers,
        )

        assert response.status_code == 400
        assert response.json()['error']['details']['field'] == 'villages_visited'

    @pytest.mark.asyncio
    async def test_other_ngo_cannot_report(
        self, client: AsyncClient, ministry_headers, ngo_user, other_ngo_headers
    ):
        created = await create_assignment(client, ministry_headers, str(ngo_user.id))

        response = await client.put(
            f"/api/v1/assignment/{created['id']}/report",
            data={'summary': 'Done'},
            headers=other_ngo_headers,
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_feedback(self, client: AsyncClient, ministry_user, ministry_headers, ngo_user, ngo_headers):
        created = await create_assignment(client, ministry_headers, str(ngo_user.id))
        await client.put(
            f"/api/v1/assignment/{created['id']}/report", data={'summary': 'Done'}, headers=ngo_headers
        )

        response = await client.put(
            f"/api/v1/assignment/{created['id']}/feedback",
            json={'rating': 5, 'comments': 'Excellent'},
            headers=ministry_headers,
        )

        assert response.status_code == 200
        feedback = response.json()['feedback']
        assert feedback['rating'] == 5
        assert feedback['given_by'] == str(ministry_user.id)

    @pytest.mark.asyncio
    async def test_feedback_before_completion(self, client: AsyncClient, ministry_headers, ngo_user):
        created = await create_assignment(client, ministry_headers, str(ngo_user.id))

        response = await client.put(
            f"/api/v1/assignment/{created['id']}/feedback",
            json={'rating': 4},
            headers=ministry_headers,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_feedback_rating_out_of_range(self, client: AsyncClient, ministry_headers, ngo_user):
        created = await create_assignment(client, ministry_headers, str(ngo_user.id))

        response = await client.put(
            f"/api/v1/assignment/{created['id']}/feedback",
            json={'rating': 9},
            headers=ministry_headers,
        )

        assert response.status_code == 422


class TestDelete:

    @pytest.mark.asyncio
    async def test_delete(self, client: AsyncClient, ministry_headers, ngo_user):
        created = await create_assignment(client, ministry_headers, str(ngo_user.id))

        response = await client.delete(f"/api/v1/assignment/{created['id']}", headers=ministry_headers)
        missing = await client.get(f"/api/v1/assignment/{created['id']}", headers=ministry_headers)

        assert response.status_code == 200
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_ngo_cannot_delete(self, client: AsyncClient, ministry_headers, ngo_user, ngo_headers):
        created = await create_assignment(client, ministry_headers, str(ngo_user.id))

        response = await client.delete(f"/api/v1/assignment/{created['id']}", headers=ngo_headers)

        assert response.status_code == 403
