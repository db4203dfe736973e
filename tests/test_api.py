"""
Tests for the builder REST API.
"""

from unittest.mock import Mock

import pytest

from app_builder_core.exceptions import UpstreamUnavailableError
from builder_api.ai_client import GenerationResult
from builder_api.app import create_app
from builder_api.project_db import InMemoryDocumentStore
from builder_api.settings import Settings


ALICE = {'X-User-Id': 'alice'}
BOB = {'X-User-Id': 'bob'}


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def generation_client():
    return Mock()


@pytest.fixture
def client(store, generation_client):
    app = create_app(Settings(db_path=':memory:', ai_rate_limit=2), store=store,
                     generation_client=generation_client, library_store=InMemoryDocumentStore())
    app.config['TESTING'] = True
    return app.test_client()


@pytest.fixture
def project_id(client):
    response = client.post('/api/projects', json={'projectName': 'Shop'}, headers=ALICE)
    assert response.status_code == 200
    return response.get_json()['data']['projectId']


def _add(client, project_id, component_type, **props):
    response = client.post(f'/api/projects/{project_id}/components',
                           json={'type': component_type, 'props': props}, headers=ALICE)
    assert response.status_code == 200
    return response.get_json()['data']


class TestProjects:
    """Project level endpoints."""

    def test_health(self, client):
        body = client.get('/api/health').get_json()
        assert body['success'] is True
        assert body['data']['status'] == 'healthy'

    def test_palette(self, client):
        data = client.get('/api/palette').get_json()['data']
        assert [t['type'] for t in data['Basic']][:4] == ['Button', 'Text', 'Input', 'Card']
        searched = client.get('/api/palette?q=button').get_json()['data']
        assert searched[0]['type'] == 'Button'

    def test_create_and_get(self, client, project_id):
        body = client.get(f'/api/projects/{project_id}', headers=ALICE).get_json()
        assert body['success'] is True
        assert body['data']['projectName'] == 'Shop'
        assert body['data']['components'] == []

    def test_create_requires_name(self, client):
        response = client.post('/api/projects', json={}, headers=ALICE)
        assert response.status_code == 400
        assert response.get_json()['success'] is False

    def test_create_requires_json_object(self, client):
        response = client.post('/api/projects', data='nope', headers=ALICE)
        assert response.status_code == 400

    def test_create_rejects_corrupt_graph(self, client):
        response = client.post('/api/projects', json={
            'projectName': 'Broken',
            'components': [{'id': 'a', 'type': 'Card'}],
            'connections': [{'id': 'e1', 'from': 'a', 'to': 'ghost'}],
        }, headers=ALICE)
        assert response.status_code == 400
        error = response.get_json()['error']
        assert error['kind'] == 'corrupt_document'
        assert error['violations'][0]['kind'] == 'dangling_endpoint'

    def test_requires_caller(self, client, project_id):
        assert client.get('/api/projects').status_code == 401
        assert client.get(f'/api/projects/{project_id}').status_code == 401

    def test_other_owner_forbidden(self, client, project_id):
        assert client.get(f'/api/projects/{project_id}', headers=BOB).status_code == 403
        assert client.get('/api/projects', headers=BOB).get_json()['data'] == []

    def test_list(self, client, project_id):
        data = client.get('/api/projects', headers=ALICE).get_json()['data']
        assert [p['projectId'] for p in data] == [project_id]

    def test_missing_project(self, client):
        response = client.get('/api/projects/proj_missing', headers=ALICE)
        assert response.status_code == 404
        assert response.get_json()['error']['kind'] == 'not_found'

    def test_update_metadata(self, client, project_id):
        response = client.put(f'/api/projects/{project_id}',
                              json={'projectName': 'Store', 'status': 'in-progress'}, headers=ALICE)
        assert response.status_code == 200
        assert response.get_json()['data']['projectName'] == 'Store'
        assert response.get_json()['data']['status'] == 'in-progress'

    def test_delete(self, client, project_id):
        assert client.delete(f'/api/projects/{project_id}', headers=ALICE).status_code == 200
        assert client.get(f'/api/projects/{project_id}', headers=ALICE).status_code == 404

    def test_corrupt_stored_document(self, client, store):
        store.save('proj_bad', {
            'projectId': 'proj_bad', 'projectName': 'Bad',
            'components': [], 'connections': [{'id': 'e', 'from': 'x', 'to': 'y'}],
        }, owner='alice')
        response = client.get('/api/projects/proj_bad', headers=ALICE)
        assert response.status_code == 500
        assert response.get_json()['error']['kind'] == 'corrupt_document'


class TestGraphEditing:
    """Component and connection endpoints."""

    def test_add_component_applies_defaults(self, client, project_id):
        component = _add(client, project_id, 'Button')
        assert component['props']['name'] == 'Button_1'
        assert component['props']['text'] == 'Click me'
        assert component['props']['style']['backgroundColor'] == '#3B82F6'

    def test_add_component_rejects_bad_style(self, client, project_id):
        response = client.post(f'/api/projects/{project_id}/components',
                               json={'type': 'Card', 'props': {'style': {'padding': 4}}},
                               headers=ALICE)
        assert response.status_code == 400
        assert response.get_json()['error']['kind'] == 'invalid_props'

    @pytest.mark.parametrize('props', [
        {'text': 5},
        {'name': ['x']},
        {'position': {'x': 1}},
        {'position': 'top-left'},
    ])
    def test_add_component_rejects_bad_props(self, client, project_id, props):
        response = client.post(f'/api/projects/{project_id}/components',
                               json={'type': 'Text', 'props': props}, headers=ALICE)
        assert response.status_code == 400
        assert response.get_json()['error']['kind'] == 'invalid_props'
        assert client.get(f'/api/projects/{project_id}/components', headers=ALICE).get_json()['data'] == []

    def test_update_rejects_bad_props(self, client, project_id):
        c1 = _add(client, project_id, 'Text')
        url = f"/api/projects/{project_id}/components/{c1['id']}"
        response = client.patch(url, json={'props': {'style': {'width': 100}}}, headers=ALICE)
        assert response.status_code == 400
        assert response.get_json()['error']['id'] == c1['id']

        document = client.get(f'/api/projects/{project_id}', headers=ALICE).get_json()['data']
        assert document['components'][0]['props'] == c1['props']

    def test_connect_and_cascade(self, client, project_id):
        c1 = _add(client, project_id, 'Button')
        c2 = _add(client, project_id, 'Card')

        response = client.post(f'/api/projects/{project_id}/connections', json={
            'from': c1['id'], 'to': c2['id'], 'type': 'action', 'label': 'onClick',
        }, headers=ALICE)
        assert response.status_code == 200
        edge = response.get_json()['data']
        assert edge['type'] == 'action'

        response = client.delete(f"/api/projects/{project_id}/components/{c2['id']}", headers=ALICE)
        assert response.get_json()['data'] == {'removed': True, 'removedConnections': [edge['id']]}

        document = client.get(f'/api/projects/{project_id}', headers=ALICE).get_json()['data']
        assert [c['id'] for c in document['components']] == [c1['id']]
        assert document['connections'] == []

    @pytest.mark.parametrize('connection_type, to_self, kind', [
        ('data', True, 'self_loop'),
        ('bogus', False, 'invalid_type'),
    ])
    def test_rejected_connections(self, client, project_id, connection_type, to_self, kind):
        c1 = _add(client, project_id, 'Button')
        c2 = _add(client, project_id, 'Card')
        response = client.post(f'/api/projects/{project_id}/connections', json={
            'from': c1['id'], 'to': c1['id'] if to_self else c2['id'], 'type': connection_type,
        }, headers=ALICE)
        assert response.status_code == 400
        assert response.get_json()['error']['kind'] == kind

    def test_connection_to_missing_component(self, client, project_id):
        c1 = _add(client, project_id, 'Button')
        response = client.post(f'/api/projects/{project_id}/connections',
                               json={'from': c1['id'], 'to': 'ghost'}, headers=ALICE)
        assert response.status_code == 400
        assert response.get_json()['error']['kind'] == 'invalid_endpoint'

    def test_update_move_duplicate(self, client, project_id):
        c1 = _add(client, project_id, 'Text', position={'x': 10, 'y': 10})
        base = f"/api/projects/{project_id}/components/{c1['id']}"

        updated = client.patch(base, json={'props': {'text': 'Hello'}}, headers=ALICE).get_json()['data']
        assert updated['props']['text'] == 'Hello'

        moved = client.post(f'{base}/move', json={'dx': 5, 'dy': -5}, headers=ALICE).get_json()['data']
        assert moved['props']['position'] == {'x': 15.0, 'y': 5.0}

        placed = client.post(f'{base}/move', json={'x': 1, 'y': 2}, headers=ALICE).get_json()['data']
        assert placed['props']['position'] == {'x': 1.0, 'y': 2.0}

        clone = client.post(f'{base}/duplicate', headers=ALICE).get_json()['data']
        assert clone['id'] != c1['id']
        assert clone['props'] == placed['props']

    def test_update_missing_component(self, client, project_id):
        response = client.patch(f'/api/projects/{project_id}/components/ghost',
                                json={'text': 'x'}, headers=ALICE)
        assert response.status_code == 404

    def test_disconnect(self, client, project_id):
        c1 = _add(client, project_id, 'Button')
        c2 = _add(client, project_id, 'Card')
        edge = client.post(f'/api/projects/{project_id}/connections',
                           json={'from': c1['id'], 'to': c2['id']}, headers=ALICE).get_json()['data']
        url = f"/api/projects/{project_id}/connections/{edge['id']}"
        assert client.delete(url, headers=ALICE).get_json()['data'] == {'removed': True}
        assert client.delete(url, headers=ALICE).get_json()['data'] == {'removed': False}

    def test_code_and_validate(self, client, project_id):
        _add(client, project_id, 'Button')
        code = client.get(f'/api/projects/{project_id}/code', headers=ALICE).get_json()['data']
        assert code['language'] == 'jsx'
        assert '>Click me</button>' in code['code']

        report = client.get(f'/api/projects/{project_id}/validate', headers=ALICE).get_json()['data']
        assert report == {'consistent': True, 'violations': []}

    def test_schema(self, client, project_id):
        url = f'/api/projects/{project_id}/schema'
        assert client.get(url, headers=ALICE).status_code == 404
        schema = {'tables': [{'name': 'users'}], 'relationships': []}
        stored = {'tables': [{'name': 'users', 'fields': []}], 'relationships': []}
        assert client.put(url, json=schema, headers=ALICE).get_json()['data'] == stored
        assert client.get(url, headers=ALICE).get_json()['data'] == stored
        assert client.delete(url, headers=ALICE).status_code == 200
        assert client.get(url, headers=ALICE).status_code == 404


class TestGeneration:
    """AI generation endpoint."""

    def test_generate(self, client, generation_client):
        generation_client.generate.return_value = GenerationResult(
            'Todo App', 'Tracks tasks',
            [{'type': 'Input', 'props': {'name': 'TaskInput'}}, {'type': 'Button'}],
        )
        response = client.post('/api/ai/generate', json={'prompt': 'todo app'}, headers=ALICE)
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['projectName'] == 'Todo App'
        assert data['status'] == 'generated'
        assert data['components'][1]['props']['text'] == 'Click me'

        listed = client.get('/api/projects', headers=ALICE).get_json()['data']
        assert listed[0]['projectId'] == data['projectId']

    def test_prompt_required(self, client, generation_client):
        response = client.post('/api/ai/generate', json={'prompt': ' '}, headers=ALICE)
        assert response.status_code == 400
        generation_client.generate.assert_not_called()

    def test_rate_limited(self, client, generation_client):
        generation_client.generate.return_value = GenerationResult('A', '', [])
        for _ in range(2):
            assert client.post('/api/ai/generate', json={'prompt': 'x'}, headers=ALICE).status_code == 200
        response = client.post('/api/ai/generate', json={'prompt': 'x'}, headers=ALICE)
        assert response.status_code == 429
        assert 'Retry-After' in response.headers
        assert client.post('/api/ai/generate', json={'prompt': 'x'}, headers=BOB).status_code == 200

    def test_upstream_failure(self, client, generation_client):
        generation_client.generate.side_effect = UpstreamUnavailableError('ai', 'Generation service timed out')
        response = client.post('/api/ai/generate', json={'prompt': 'x'}, headers=ALICE)
        assert response.status_code == 502
        assert response.get_json()['error']['service'] == 'ai'

    def test_malformed_components(self, client, generation_client, store):
        generation_client.generate.return_value = GenerationResult(
            'Bad', '', [{'type': 'Card', 'props': {'style': {'padding': 8}}}],
        )
        response = client.post('/api/ai/generate', json={'prompt': 'x'}, headers=ALICE)
        assert response.status_code == 502
        assert store.list_documents() == []


def _link(source_table, source_field, target_table, target_field, link_type='manyToOne'):
    return {'source': {'table': source_table, 'field': source_field},
            'target': {'table': target_table, 'field': target_field}, 'type': link_type}


class TestSchemaDesign:
    """Table, relationship and Prisma endpoints of a project schema."""

    @pytest.fixture
    def schema_url(self, client, project_id):
        url = f'/api/projects/{project_id}/schema'
        response = client.put(url, json={'tables': [
            {'name': 'users', 'fields': [{'name': 'id', 'type': 'Int', 'isId': True, 'isRequired': True}]},
            {'name': 'posts', 'fields': [{'name': 'authorId', 'type': 'Int', 'isRequired': True}]},
        ]}, headers=ALICE)
        assert response.status_code == 200
        return url

    def test_requires_existing_schema(self, client, project_id):
        url = f'/api/projects/{project_id}/schema'
        response = client.post(f'{url}/tables', json={'table': {'name': 'tags'}}, headers=ALICE)
        assert response.status_code == 404
        assert client.get(f'{url}/prisma', headers=ALICE).status_code == 404

    def test_put_rejects_bad_table(self, client, project_id):
        response = client.put(f'/api/projects/{project_id}/schema',
                              json={'tables': [{'name': 'users', 'fields': 'id'}]}, headers=ALICE)
        assert response.status_code == 400
        assert response.get_json()['error']['kind'] == 'invalid_schema'

    def test_add_table(self, client, schema_url):
        data = client.post(f'{schema_url}/tables', json={'table': {'name': 'tags'}},
                           headers=ALICE).get_json()['data']
        assert [t['name'] for t in data['tables']] == ['users', 'posts', 'tags']

        response = client.post(f'{schema_url}/tables', json={'table': {'name': 'tags'}}, headers=ALICE)
        assert response.status_code == 400

    def test_update_and_delete_table(self, client, schema_url):
        client.post(f'{schema_url}/relationships', json=_link('posts', 'authorId', 'users', 'id'),
                    headers=ALICE)
        data = client.put(f'{schema_url}/tables/users', json={'table': {'name': 'accounts'}},
                          headers=ALICE).get_json()['data']
        assert data['relationships'][0]['target']['table'] == 'accounts'

        data = client.delete(f'{schema_url}/tables/accounts', headers=ALICE).get_json()['data']
        assert [t['name'] for t in data['tables']] == ['posts']
        assert data['relationships'] == []

        assert client.delete(f'{schema_url}/tables/accounts', headers=ALICE).status_code == 404

    def test_relationships(self, client, schema_url):
        link = _link('posts', 'authorId', 'users', 'id')
        data = client.post(f'{schema_url}/relationships', json=link, headers=ALICE).get_json()['data']
        assert data['relationships'] == [link]

        response = client.post(f'{schema_url}/relationships', json=_link('posts', 'id', 'ghosts', 'id'),
                               headers=ALICE)
        assert response.status_code == 400

        body = {'source': link['source'], 'target': link['target']}
        data = client.delete(f'{schema_url}/relationships', json=body, headers=ALICE).get_json()['data']
        assert data['relationships'] == []
        assert client.delete(f'{schema_url}/relationships', json=body, headers=ALICE).status_code == 404

    def test_prisma(self, client, schema_url):
        data = client.get(f'{schema_url}/prisma', headers=ALICE).get_json()['data']
        assert data['schema'].startswith('model users {\n  id Int @id\n}\n\n')
        assert '  authorId Int\n' in data['schema']


class TestLibrary:
    """Component library endpoints."""

    BODY = {'name': 'Hero', 'type': 'Card', 'description': 'Landing banner', 'projectId': 'proj_1'}

    def _create(self, client, **overrides):
        response = client.post('/api/library', json=dict(self.BODY, **overrides), headers=ALICE)
        assert response.status_code == 200
        return response.get_json()['data']

    def test_create_and_get(self, client):
        entry = self._create(client)
        assert entry['status'] == 'active'
        assert entry['createdBy'] == 'alice'
        fetched = client.get(f"/api/library/{entry['id']}", headers=ALICE).get_json()['data']
        assert fetched['name'] == 'Hero'

    def test_create_missing_field(self, client):
        body = dict(self.BODY)
        del body['description']
        response = client.post('/api/library', json=body, headers=ALICE)
        assert response.status_code == 400
        assert response.get_json()['error'] == {
            'kind': 'invalid_library_entry',
            'message': 'Missing required fields: description',
            'field': 'description',
        }

    def test_list_by_project(self, client):
        self._create(client)
        self._create(client, projectId='proj_2')
        everything = client.get('/api/library', headers=ALICE).get_json()['data']
        assert len(everything) == 2
        scoped = client.get('/api/library?projectId=proj_2', headers=ALICE).get_json()['data']
        assert [e['projectId'] for e in scoped] == ['proj_2']
        assert client.get('/api/library', headers=BOB).get_json()['data'] == []

    def test_update_and_delete(self, client):
        entry = self._create(client)
        url = f"/api/library/{entry['id']}"
        updated = client.put(url, json={'version': '1.1.0', 'name': ''}, headers=ALICE).get_json()['data']
        assert updated['version'] == '1.1.0'
        assert updated['name'] == 'Hero'

        assert client.delete(url, headers=ALICE).status_code == 200
        assert client.get(url, headers=ALICE).status_code == 404

    def test_other_owner_forbidden(self, client):
        entry = self._create(client)
        url = f"/api/library/{entry['id']}"
        assert client.get(url, headers=BOB).status_code == 403
        assert client.put(url, json={'name': 'Mine'}, headers=BOB).status_code == 403
        assert client.delete(url, headers=BOB).status_code == 403

    def test_missing_entry(self, client):
        response = client.get('/api/library/lib_nothere', headers=ALICE)
        assert response.status_code == 404
        assert response.get_json()['error']['kind'] == 'not_found'
