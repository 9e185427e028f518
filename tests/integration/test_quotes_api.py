"""
Integration tests for the /quotes JSON API: editing, concurrency, review and conversion.
"""

import pytest


def post(client, url, **body):
    return client.post(url, json=body)


@pytest.fixture
def draft(authenticated_client, catalog):
    """Quote built through the API: Production > Stage > 2 x LED wall. Returns ids and version."""
    response = post(authenticated_client, '/quotes/', project_title='Launch event',
                    customer_id=catalog['customer_id'], issue_date='2026-10-19', valid_days=30)
    assert response.status_code == 201
    quote = response.get_json()['quote']
    quote_id = quote['id']

    response = post(authenticated_client, f'/quotes/{quote_id}/groups', name='Production', version=quote['version'])
    data = response.get_json()
    group_id = data['group_id']

    response = post(authenticated_client, f'/quotes/{quote_id}/groups/{group_id}/items',
                    name='Stage', version=data['quote']['version'])
    data = response.get_json()
    item_id = data['item_id']

    response = post(authenticated_client, f'/quotes/{quote_id}/groups/{group_id}/items/{item_id}/details/from-master',
                    master_item_id=catalog['led_wall_id'], quantity=2, version=data['quote']['version'])
    data = response.get_json()

    return {
        'quote_id': quote_id,
        'group_id': group_id,
        'item_id': item_id,
        'detail_id': data['detail_id'],
        'version': data['quote']['version'],
    }


class TestQuoteEditing:
    """Tests for creating and editing quotes over HTTP."""

    def test_requires_login(self, client):
        response = client.get('/quotes/')

        assert response.status_code == 401

    def test_create_quote(self, authenticated_client, catalog):
        response = post(authenticated_client, '/quotes/', project_title='Launch event',
                        customer_id=catalog['customer_id'], issue_date='2026-10-19')

        data = response.get_json()
        assert response.status_code == 201
        assert data['quote']['quote_number'] == 'Q-20261019-0001'
        assert data['quote']['customer_name_snapshot'] == 'Acme Corp'
        assert data['quote']['status'] == 'draft'
        assert data['calculation']['final_total'] == 0

    def test_create_quote_requires_title(self, authenticated_client):
        response = post(authenticated_client, '/quotes/', project_title='')

        assert response.status_code == 400
        assert response.get_json()['field'] == 'project_title'

    def test_built_quote_is_calculated(self, authenticated_client, draft):
        response = authenticated_client.get(f"/quotes/{draft['quote_id']}")

        data = response.get_json()
        assert draft['version'] == 4
        detail = data['quote']['groups'][0]['items'][0]['details'][0]
        assert detail['name'] == 'LED wall'
        assert detail['supplier_name_snapshot'] == 'Stage Rentals'
        # subtotal 1000000, fee 150000, VAT 115000
        assert data['calculation']['final_total'] == 1265000
        assert data['calculation']['total_profit'] == 1265000 - 700000 - 150000

    def test_update_detail(self, authenticated_client, draft):
        url = f"/quotes/{draft['quote_id']}/groups/{draft['group_id']}/items/{draft['item_id']}/details/{draft['detail_id']}"

        response = authenticated_client.patch(url, json={'quantity': 1, 'version': draft['version']})

        data = response.get_json()
        assert response.status_code == 200
        assert data['quote']['version'] == draft['version'] + 1
        assert data['calculation']['subtotal'] == 500000

    def test_negative_quantity_is_rejected(self, authenticated_client, draft):
        url = f"/quotes/{draft['quote_id']}/groups/{draft['group_id']}/items/{draft['item_id']}/details/{draft['detail_id']}"

        response = authenticated_client.patch(url, json={'quantity': -1, 'version': draft['version']})

        assert response.status_code == 400

    def test_unknown_group(self, authenticated_client, draft):
        response = post(authenticated_client, f"/quotes/{draft['quote_id']}/groups/missing/items",
                        name='Stage', version=draft['version'])

        assert response.status_code == 404

    def test_preview_calculation(self, authenticated_client):
        response = post(authenticated_client, '/quotes/calculate', agency_fee_rate='0.15', groups=[
            {'name': 'Stage', 'items': [{'name': 'Wall', 'details': [
                {'name': 'LED', 'quantity': 2, 'unit_price': 150000, 'cost_price': 100000},
            ]}]},
        ])

        assert response.status_code == 200
        assert response.get_json()['calculation']['final_total'] == 379500


class TestHeaderUpdates:
    """Tests for PATCH /quotes/<id>."""

    def test_change_customer(self, authenticated_client, draft):
        customer_id = post(authenticated_client, '/catalog/customers', name='Beta Events').get_json()['customer']['id']

        response = authenticated_client.patch(f"/quotes/{draft['quote_id']}", json={
            'customer_id': customer_id, 'version': draft['version'],
        })

        quote = response.get_json()['quote']
        assert response.status_code == 200
        assert quote['customer_id'] == customer_id
        assert quote['customer_name_snapshot'] == 'Beta Events'

    def test_unknown_customer(self, authenticated_client, draft):
        response = authenticated_client.patch(f"/quotes/{draft['quote_id']}", json={
            'customer_id': 4242, 'version': draft['version'],
        })

        assert response.status_code == 404

    @pytest.mark.parametrize('value', [None, 'tomorrow', 20261019])
    def test_bad_issue_date(self, authenticated_client, draft, value):
        response = authenticated_client.patch(f"/quotes/{draft['quote_id']}", json={
            'issue_date': value, 'version': draft['version'],
        })

        assert response.status_code == 400
        assert response.get_json()['field'] == 'issue_date'

    def test_fee_rate_beyond_four_places(self, authenticated_client, draft):
        response = authenticated_client.patch(f"/quotes/{draft['quote_id']}", json={
            'agency_fee_rate': '0.12345', 'version': draft['version'],
        })

        assert response.status_code == 400
        assert response.get_json()['field'] == 'agency_fee_rate'


class TestOptimisticConcurrency:
    """Tests for the version check on API mutations."""

    def test_stale_version_returns_conflict(self, authenticated_client, draft):
        url = f"/quotes/{draft['quote_id']}"
        authenticated_client.patch(url, json={'notes': 'first editor', 'version': draft['version']})

        response = authenticated_client.patch(url, json={'notes': 'second editor', 'version': draft['version']})

        data = response.get_json()
        assert response.status_code == 409
        assert data['retryable'] is True
        assert data['version'] == draft['version'] + 1
        assert authenticated_client.get(url).get_json()['quote']['notes'] == 'first editor'

    def test_version_is_required(self, authenticated_client, draft):
        response = authenticated_client.patch(f"/quotes/{draft['quote_id']}", json={'notes': 'no version'})

        assert response.status_code == 400
        assert response.get_json()['field'] == 'version'


class TestReviewWorkflow:
    """Tests for status changes, conversion and deletion over HTTP."""

    def submit(self, client, draft):
        response = post(client, f"/quotes/{draft['quote_id']}/status", status='submitted', version=draft['version'])
        assert response.status_code == 200
        return response.get_json()['quote']['version']

    def test_member_cannot_approve(self, authenticated_client, draft):
        version = self.submit(authenticated_client, draft)

        response = post(authenticated_client, f"/quotes/{draft['quote_id']}/status",
                        status='under_review', version=version)

        assert response.status_code == 403

    def test_admin_approves_and_converts(self, authenticated_client, admin_client, draft):
        version = self.submit(authenticated_client, draft)
        url = f"/quotes/{draft['quote_id']}"

        for status in ('under_review', 'approved'):
            response = post(admin_client, f'{url}/status', status=status, version=version)
            assert response.status_code == 200
            version = response.get_json()['quote']['version']

        response = post(authenticated_client, f'{url}/groups', name='Late', version=version)
        assert response.status_code == 409

        response = post(authenticated_client, f'{url}/convert')
        assert response.status_code == 403

        response = post(admin_client, f'{url}/convert', start_date='2026-11-01', end_date='2026-11-03')
        data = response.get_json()
        assert response.status_code == 201
        assert data['project']['total_revenue'] == 1265000
        assert data['project']['total_cost'] == 700000

        response = post(admin_client, f'{url}/convert')
        assert response.status_code == 400

    def test_invalid_transition(self, admin_client, draft):
        response = post(admin_client, f"/quotes/{draft['quote_id']}/status", status='approved', version=draft['version'])

        data = response.get_json()
        assert response.status_code == 409
        assert data['current'] == 'draft'
        assert data['requested'] == 'approved'

    def test_rejection_reason(self, authenticated_client, admin_client, draft):
        version = self.submit(authenticated_client, draft)
        url = f"/quotes/{draft['quote_id']}/status"
        version = post(admin_client, url, status='under_review', version=version).get_json()['quote']['version']

        response = post(admin_client, url, status='rejected', reason='Over budget', version=version)

        assert response.get_json()['quote']['rejection_reason'] == 'Over budget'

    def test_non_string_reason_is_rejected(self, authenticated_client, admin_client, draft):
        version = self.submit(authenticated_client, draft)
        url = f"/quotes/{draft['quote_id']}/status"
        version = post(admin_client, url, status='under_review', version=version).get_json()['quote']['version']

        response = post(admin_client, url, status='rejected', reason=42, version=version)

        assert response.status_code == 400
        assert response.get_json()['field'] == 'reason'

    def test_copy_structure_only(self, authenticated_client, draft):
        response = post(authenticated_client, f"/quotes/{draft['quote_id']}/copy",
                        project_title='Launch event 2027', structure_only=True)

        data = response.get_json()
        assert response.status_code == 201
        assert data['quote']['id'] != draft['quote_id']
        assert data['quote']['groups'][0]['items'][0]['details'][0]['quantity'] == 0
        assert data['calculation']['final_total'] == 0

    def test_delete_draft_only(self, authenticated_client, draft, catalog):
        self.submit(authenticated_client, draft)
        response = authenticated_client.delete(f"/quotes/{draft['quote_id']}")
        assert response.status_code == 400

        other = post(authenticated_client, '/quotes/', project_title='Scratch').get_json()['quote']
        response = authenticated_client.delete(f"/quotes/{other['id']}")
        assert response.status_code == 200
        assert authenticated_client.get(f"/quotes/{other['id']}").status_code == 404

    def test_list_filters(self, authenticated_client, draft):
        post(authenticated_client, '/quotes/', project_title='Office party', issue_date='2026-03-01')

        quotes = authenticated_client.get('/quotes/?q=launch').get_json()['quotes']
        assert [q['id'] for q in quotes] == [draft['quote_id']]

        quotes = authenticated_client.get('/quotes/?amount_min=1000').get_json()['quotes']
        assert [q['total_amount'] for q in quotes] == [1265000]

        response = authenticated_client.get('/quotes/?status=archived')
        assert response.status_code == 400
