from campuseats.services import DEFAULT_MENU_IMAGE


def test_vendors_are_public(client):
    r = client.get('/vendors')
    assert r.status_code == 200
    names = {v['shop_name'] for v in r.json()}
    assert {'Campus Canteen', 'Quick Bites', 'Juice Junction', 'Dosa Point'} <= names


def test_menu_sorted_by_category_then_name(client, canteen):
    menu = client.get(f"/vendors/{canteen['vendor']['id']}/menu").json()
    keys = [(m['category'], m['name']) for m in menu]
    assert keys == sorted(keys)
    assert client.get('/vendors/99999/menu').status_code == 404


def test_vendor_menu_crud(client, vendor_headers, other_vendor_headers, canteen):
    r = client.post('/menu-items', json={'name': 'Lemon Rice', 'price': 55, 'category': 'LUNCH', 'preparation_time': 12}, headers=vendor_headers)
    assert r.status_code == 200, r.text
    item = r.json()
    assert item['vendor_id'] == canteen['vendor']['id']
    assert item['image_url'] == DEFAULT_MENU_IMAGE
    assert item['is_available'] is True

    upd = client.put(f"/menu-items/{item['id']}", json={'price': 60, 'is_available': False}, headers=vendor_headers)
    assert upd.status_code == 200
    assert upd.json()['price'] == 60.0
    assert upd.json()['is_available'] is False
    assert upd.json()['name'] == 'Lemon Rice'

    menu = client.get(f"/vendors/{canteen['vendor']['id']}/menu").json()
    assert any(m['id'] == item['id'] and m['is_available'] is False for m in menu)

    assert client.put(f"/menu-items/{item['id']}", json={'price': 1}, headers=other_vendor_headers).status_code == 403
    assert client.delete(f"/menu-items/{item['id']}", headers=other_vendor_headers).status_code == 403

    assert client.delete(f"/menu-items/{item['id']}", headers=vendor_headers).json() == {'success': True}
    assert client.delete(f"/menu-items/{item['id']}", headers=vendor_headers).status_code == 404


def test_menu_item_validation(client, vendor_headers, make_student):
    assert client.post('/menu-items', json={'name': 'Free Lunch', 'price': 0}, headers=vendor_headers).status_code == 400
    assert client.post('/menu-items', json={'name': 'Time Travel', 'price': 10, 'preparation_time': -1}, headers=vendor_headers).status_code == 400
    student = make_student()
    assert client.post('/menu-items', json={'name': 'Hack', 'price': 10}, headers=student['headers']).status_code == 403


def test_unavailable_items_cannot_be_ordered(client, vendor_headers, make_student, canteen):
    item = client.post('/menu-items', json={'name': 'Sold Out Samosa', 'price': 15}, headers=vendor_headers).json()
    client.put(f"/menu-items/{item['id']}", json={'is_available': False}, headers=vendor_headers)
    student = make_student(balance=100)
    r = client.post('/orders', json={
        'vendor_id': canteen['vendor']['id'],
        'items': [{'menu_item_id': item['id'], 'quantity': 1}],
        'payment_method': 'RFID',
    }, headers=student['headers'])
    assert r.status_code == 400
    assert 'unavailable' in r.json()['detail']


def test_recommended_items(client):
    r = client.get('/menu/recommended')
    assert r.status_code == 200
    body = r.json()
    assert body['success'] is True
    data = body['data']
    assert body['total'] == len(data)
    assert 0 < len(data) <= 12
    scores = [d['recommendation_score'] for d in data]
    assert scores == sorted(scores, reverse=True)
    assert all(s >= 4.0 for s in scores)
    assert all(d['is_available'] for d in data)
    first = data[0]
    assert {'vendor', 'vendor_rating', 'review_count', 'is_recommended'} <= set(first)


def test_menu_price_must_be_finite(client, vendor_headers):
    headers = {**vendor_headers, 'Content-Type': 'application/json'}
    for price in ('NaN', '1e309'):
        r = client.post('/menu-items', content=f'{{"name": "Mystery Meal", "price": {price}}}', headers=headers)
        assert r.status_code == 400, price
    item = client.post('/menu-items', json={'name': 'Plain Rice', 'price': 30}, headers=vendor_headers).json()
    r = client.put(f"/menu-items/{item['id']}", content='{"price": Infinity}', headers=headers)
    assert r.status_code == 400
    assert client.put(f"/menu-items/{item['id']}", json={'name': '  Jeera Rice  '}, headers=vendor_headers).json()['name'] == 'Jeera Rice'
