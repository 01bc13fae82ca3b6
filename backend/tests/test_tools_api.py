from sqlalchemy.exc import OperationalError

from sama import db
from sama.models import Tool, AnalyticsEvent


NEW_TOOL = {
    'name': 'Summary Bot',
    'tagline': 'Summaries in seconds',
    'description': 'Summarizes long documents',
    'website_url': 'https://summary.example.com',
    'tags': ['writing', 'summary', 'writing'],
    'tech_stack': ['Python'],
    'pricing_model': 'FREEMIUM',
}


class TestListTools:

    def test_lists_public_tools_with_facets(self, client, catalog):
        response = client.get('/api/tools')
        assert response.status_code == 200
        data = response.get_json()
        assert data['total_count'] == 3
        assert data['page'] == 1
        assert data['per_page'] == 20
        assert {tool['name'] for tool in data['tools']} == {'Image Forge', 'Pixel Painter', 'Text Wizard'}
        assert set(data['facets']) == {'categories', 'tags', 'pricing_models', 'tech_stack'}
        assert response.headers['Cache-Control'] == 'no-cache, no-store, must-revalidate'

    def test_rows_carry_review_aggregates(self, client, catalog, users, add_review):
        add_review(catalog['forge'], users['other'], 4)
        add_review(catalog['forge'], users['admin'], 5)
        data = client.get('/api/tools?q=forge').get_json()
        assert data['tools'][0]['review_count'] == 2
        assert data['tools'][0]['average_rating'] == 4.5

    def test_per_page_is_capped(self, client, catalog):
        data = client.get('/api/tools?per_page=1000').get_json()
        assert data['per_page'] == 50

    def test_bogus_sort_falls_back(self, client, catalog):
        response = client.get('/api/tools?sort_by=bogus')
        assert response.status_code == 200
        assert response.get_json()['tools'][0]['name'] == 'Text Wizard'

    def test_invalid_pricing_model(self, client, catalog):
        response = client.get('/api/tools?pricing_model=CHEAP')
        assert response.status_code == 400

    def test_rows_carry_analytics_count(self, client, catalog):
        forge = catalog['forge']
        db.session.add_all([
            AnalyticsEvent(tool_id=forge.id, event_type='VIEW'),
            AnalyticsEvent(tool_id=forge.id, event_type='CLICK'),
        ])
        db.session.commit()
        data = client.get('/api/tools?sort_by=name&sort_order=asc').get_json()
        counts = {tool['name']: tool['analytics_count'] for tool in data['tools']}
        assert counts == {'Image Forge': 2, 'Pixel Painter': 0, 'Text Wizard': 0}

    def test_huge_page_is_empty(self, client, catalog):
        response = client.get('/api/tools?page=100000000000000000000')
        assert response.status_code == 200
        data = response.get_json()
        assert data['tools'] == []
        assert data['total_count'] == 3

    def test_tag_filter_ignores_case(self, client, catalog):
        data = client.get('/api/tools?tags=IMAGE').get_json()
        assert {tool['name'] for tool in data['tools']} == {'Image Forge', 'Pixel Painter'}

    def test_database_error_returns_generic_500(self, client, catalog, monkeypatch):
        def broken_search(params):
            raise OperationalError('SELECT 1', {}, Exception('boom'))

        monkeypatch.setattr('sama.routes.tools.run_search', broken_search)
        response = client.get('/api/tools')
        assert response.status_code == 500
        assert response.get_json() == {'error': '获取工具列表失败'}
        assert 'boom' not in response.get_data(as_text=True)


class TestCreateTool:

    def test_requires_auth(self, client):
        response = client.post('/api/tools', json=NEW_TOOL)
        assert response.status_code == 401

    def test_creates_draft_private_tool(self, client, users, auth_headers):
        payload = dict(NEW_TOOL, status='APPROVED', visibility='PUBLIC')
        response = client.post('/api/tools', json=payload, headers=auth_headers(users['owner']))
        assert response.status_code == 201
        data = response.get_json()
        assert data['slug'] == 'summary-bot'
        assert data['status'] == 'DRAFT'
        assert data['visibility'] == 'PRIVATE'
        assert data['owner_id'] == users['owner'].id
        assert data['tags'] == ['writing', 'summary']

        event = AnalyticsEvent.query.filter_by(tool_id=data['id']).one()
        assert event.event_type == 'SIGNUP'
        assert event.event_metadata == {'source': 'api'}

    def test_missing_required_fields(self, client, users, auth_headers):
        payload = dict(NEW_TOOL)
        del payload['website_url']
        response = client.post('/api/tools', json=payload, headers=auth_headers(users['owner']))
        assert response.status_code == 400

    def test_invalid_pricing_model(self, client, users, auth_headers):
        payload = dict(NEW_TOOL, pricing_model='CHEAP')
        response = client.post('/api/tools', json=payload, headers=auth_headers(users['owner']))
        assert response.status_code == 400

    def test_unknown_category(self, client, users, auth_headers):
        payload = dict(NEW_TOOL, category_id=9999)
        response = client.post('/api/tools', json=payload, headers=auth_headers(users['owner']))
        assert response.status_code == 400

    def test_name_without_alphanumerics(self, client, users, auth_headers):
        payload = dict(NEW_TOOL, name='!!!')
        response = client.post('/api/tools', json=payload, headers=auth_headers(users['owner']))
        assert response.status_code == 400

    def test_duplicate_slug_rejected(self, client, catalog, users, auth_headers):
        payload = dict(NEW_TOOL, name='Image  Forge!')
        response = client.post('/api/tools', json=payload, headers=auth_headers(users['other']))
        assert response.status_code == 400
        assert '已存在' in response.get_json()['error']

    def test_chinese_name_gets_pinyin_slug(self, client, users, auth_headers):
        payload = dict(NEW_TOOL, name='图像生成')
        response = client.post('/api/tools', json=payload, headers=auth_headers(users['owner']))
        assert response.status_code == 201
        assert response.get_json()['slug'] == 'tu-xiang-sheng-cheng'

    def test_long_chinese_name_slug_fits_column(self, client, users, auth_headers):
        payload = dict(NEW_TOOL, name='图' * 100)
        response = client.post('/api/tools', json=payload, headers=auth_headers(users['owner']))
        assert response.status_code == 201
        slug = response.get_json()['slug']
        assert 0 < len(slug) <= 100
        assert not slug.endswith('-')


class TestToolDetail:

    def test_public_view_counts_and_tracks(self, client, catalog):
        tool_id = catalog['forge'].id
        response = client.get(f'/api/tools/{tool_id}', headers={'Referer': 'https://news.example.com/post'})
        assert response.status_code == 200
        data = response.get_json()
        assert data['name'] == 'Image Forge'
        assert data['reviews'] == []
        assert data['category']['slug'] == 'image-generation'
        assert db.session.get(Tool, tool_id).view_count == 1

        event = AnalyticsEvent.query.filter_by(tool_id=tool_id, event_type='VIEW').one()
        assert event.referrer == 'https://news.example.com/post'
        assert event.user_id is None

    def test_by_slug(self, client, catalog):
        response = client.get('/api/tools/slug/text-wizard')
        assert response.status_code == 200
        assert response.get_json()['id'] == catalog['wizard'].id

    def test_missing_tool(self, client, catalog):
        assert client.get('/api/tools/9999').status_code == 404
        assert client.get('/api/tools/slug/nothing-here').status_code == 404

    def test_private_tool_hidden_from_others(self, client, catalog, users, auth_headers):
        tool_id = catalog['draft'].id
        assert client.get(f'/api/tools/{tool_id}').status_code == 403
        assert client.get(f'/api/tools/{tool_id}', headers=auth_headers(users['other'])).status_code == 403

    def test_private_tool_visible_to_owner_and_admin_without_counting(self, client, catalog, users, auth_headers):
        tool_id = catalog['draft'].id
        assert client.get(f'/api/tools/{tool_id}', headers=auth_headers(users['owner'])).status_code == 200
        assert client.get(f'/api/tools/{tool_id}', headers=auth_headers(users['admin'])).status_code == 200
        assert db.session.get(Tool, tool_id).view_count == 0

    def test_unlisted_tool_viewable_by_link(self, client, catalog):
        assert client.get(f"/api/tools/{catalog['unlisted'].id}").status_code == 200


class TestUpdateTool:

    def test_requires_auth(self, client, catalog):
        response = client.put(f"/api/tools/{catalog['forge'].id}", json={'tagline': 'New'})
        assert response.status_code == 401

    def test_non_owner_forbidden(self, client, catalog, users, auth_headers):
        response = client.put(f"/api/tools/{catalog['forge'].id}", json={'tagline': 'New'},
                              headers=auth_headers(users['other']))
        assert response.status_code == 403

    def test_missing_tool(self, client, users, auth_headers):
        response = client.put('/api/tools/9999', json={'tagline': 'New'}, headers=auth_headers(users['owner']))
        assert response.status_code == 404

    def test_owner_updates_fields_and_ignores_unknown(self, client, catalog, users, auth_headers):
        response = client.put(
            f"/api/tools/{catalog['forge'].id}",
            json={'tagline': 'Sharper images', 'view_count': 1000, 'tags': ['image']},
            headers=auth_headers(users['owner'])
        )
        assert response.status_code == 200
        data = response.get_json()
        assert data['tagline'] == 'Sharper images'
        assert data['tags'] == ['image']
        assert data['view_count'] == 0

    def test_rename_regenerates_slug(self, client, catalog, users, auth_headers):
        response = client.put(f"/api/tools/{catalog['forge'].id}", json={'name': 'Image Foundry'},
                              headers=auth_headers(users['owner']))
        assert response.status_code == 200
        assert response.get_json()['slug'] == 'image-foundry'

    def test_rename_collision(self, client, catalog, users, auth_headers):
        response = client.put(f"/api/tools/{catalog['forge'].id}", json={'name': 'Text Wizard'},
                              headers=auth_headers(users['owner']))
        assert response.status_code == 400

    def test_owner_can_submit_for_review(self, client, catalog, users, auth_headers):
        response = client.put(f"/api/tools/{catalog['draft'].id}", json={'status': 'PENDING_REVIEW'},
                              headers=auth_headers(users['owner']))
        assert response.status_code == 200
        assert response.get_json()['status'] == 'PENDING_REVIEW'

    def test_owner_cannot_approve(self, client, catalog, users, auth_headers):
        response = client.put(f"/api/tools/{catalog['draft'].id}", json={'status': 'APPROVED'},
                              headers=auth_headers(users['owner']))
        assert response.status_code == 400

    def test_invalid_visibility(self, client, catalog, users, auth_headers):
        response = client.put(f"/api/tools/{catalog['forge'].id}", json={'visibility': 'EVERYONE'},
                              headers=auth_headers(users['owner']))
        assert response.status_code == 400


class TestDeleteTool:

    def test_owner_deletes(self, client, catalog, users, auth_headers, add_review):
        tool_id = catalog['forge'].id
        add_review(catalog['forge'], users['other'], 5)
        response = client.delete(f'/api/tools/{tool_id}', headers=auth_headers(users['owner']))
        assert response.status_code == 204
        assert db.session.get(Tool, tool_id) is None

    def test_non_owner_forbidden(self, client, catalog, users, auth_headers):
        response = client.delete(f"/api/tools/{catalog['forge'].id}", headers=auth_headers(users['other']))
        assert response.status_code == 403

    def test_missing_tool(self, client, users, auth_headers):
        assert client.delete('/api/tools/9999', headers=auth_headers(users['owner'])).status_code == 404


def test_owner_dashboard(client, catalog, users, auth_headers):
    db.session.get(Tool, catalog['forge'].id).view_count = 7
    db.session.commit()

    response = client.get('/api/tools/mine', headers=auth_headers(users['owner']))
    assert response.status_code == 200
    data = response.get_json()
    assert len(data['tools']) == 5
    assert data['stats']['total_tools'] == 5
    assert data['stats']['published_tools'] == 4
    assert data['stats']['total_views'] == 7
    assert data['stats']['average_rating'] == round((4.5 + 3.0 + 4.0) / 5, 2)


def test_dashboard_empty_for_new_user(client, catalog, users, auth_headers):
    data = client.get('/api/tools/mine', headers=auth_headers(users['other'])).get_json()
    assert data['tools'] == []
    assert data['stats'] == {'total_tools': 0, 'published_tools': 0, 'total_views': 0, 'average_rating': 0}
