import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import update

from qeema.models import Lesson
from qeema.utils.pagination import Page, parse_pagination, total_pages

from conftest import auth, create_lesson


@pytest.mark.parametrize('page,limit,expected', [
    (None, None, (1, 10)),
    ('abc', 'xyz', (1, 10)),
    ('0', '5', (1, 5)),
    ('-3', '0', (1, 1)),
    ('2', '1000', (2, 100)),
    (' 4 ', '25', (4, 25)),
])
def test_parse_pagination_never_raises(page, limit, expected):
    params = parse_pagination(page, limit, default_limit=10, max_limit=100)
    assert (params.page, params.limit) == expected


def test_offset_and_total_pages():
    assert parse_pagination('3', '20').offset == 40
    assert total_pages(0, 10) == 0
    assert total_pages(20, 10) == 2
    assert total_pages(21, 10) == 3
    assert Page(items=[], page=1, limit=10, total=21).meta() == {'page': 1, 'limit': 10, 'total': 21, 'totalPages': 3}


def test_pages_cover_every_lesson_exactly_once(client, admin_token, student):
    for i in range(23):
        create_lesson(client, admin_token, f'Lesson {i:02d}', 'A lesson used for paging tests.')
    headers = auth(student['token'])

    first = client.get('/api/lessons', params={'limit': 10}, headers=headers).json()
    assert first['meta'] == {'page': 1, 'limit': 10, 'total': 23, 'totalPages': 3}

    seen = []
    for page in range(1, 4):
        body = client.get('/api/lessons', params={'page': page, 'limit': 10}, headers=headers).json()
        seen.extend(l['id'] for l in body['data'])
    assert len(seen) == 23
    assert len(set(seen)) == 23


def test_newest_lessons_come_first(client, admin_token, student):
    create_lesson(client, admin_token, 'Older')
    create_lesson(client, admin_token, 'Newer')
    titles = [l['title'] for l in client.get('/api/lessons', headers=auth(student['token'])).json()['data']]
    assert titles == ['Newer', 'Older']


def test_bad_paging_params_fall_back(client, admin_token, student):
    create_lesson(client, admin_token)
    r = client.get('/api/lessons', params={'page': 'abc', 'limit': '-1'}, headers=auth(student['token']))
    assert r.status_code == 200
    assert r.json()['meta']['page'] == 1
    assert r.json()['meta']['limit'] == 1


def test_lessons_with_the_same_timestamp_page_by_id(client, app, admin_token, student):
    ids = [create_lesson(client, admin_token, f'Tied {i}')['id'] for i in range(7)]
    with app.state.engine.begin() as conn:
        conn.execute(update(Lesson).values(created_at=datetime(2025, 1, 1, tzinfo=timezone.utc)))

    seen = []
    for page in range(1, 4):
        body = client.get('/api/lessons', params={'page': page, 'limit': 3}, headers=auth(student['token'])).json()
        seen.extend(l['id'] for l in body['data'])
    assert seen == sorted(ids, key=uuid.UUID, reverse=True)
