def test_admin_credit_updates_balance_and_ledger(client, admin_headers, make_student):
    student = make_student()
    r = client.post('/rfid/credit', json={'rfid_number': student['rfid'], 'amount': 250}, headers=admin_headers)
    assert r.status_code == 200, r.text
    user = r.json()['user']
    assert user['previous_balance'] == 0.0
    assert user['new_balance'] == 250.0
    assert user['credited_amount'] == 250.0

    r = client.post('/rfid/credit', json={'rfid_number': student['rfid'], 'amount': 49.5}, headers=admin_headers)
    assert r.json()['user']['new_balance'] == 299.5

    balance = client.get('/balance', headers=student['headers']).json()
    assert balance == {'rfid_number': student['rfid'], 'rfid_balance': 299.5}
    ledger = client.get('/transactions', headers=student['headers']).json()
    assert [t['transaction_type'] for t in ledger] == ['CREDIT', 'CREDIT']
    assert ledger[0]['new_balance'] == 299.5


def test_credit_validation(client, admin_headers, vendor_headers, make_student):
    student = make_student()
    assert client.post('/rfid/credit', json={'rfid_number': student['rfid'], 'amount': -5}, headers=admin_headers).status_code == 400
    assert client.post('/rfid/credit', json={'rfid_number': student['rfid']}, headers=admin_headers).status_code == 400
    assert client.post('/rfid/credit', json={'rfid_number': 'NOPE00000', 'amount': 10}, headers=admin_headers).status_code == 404
    assert client.post('/rfid/credit', json={'rfid_number': student['rfid'], 'amount': 10}, headers=vendor_headers).status_code == 403


def test_balance_is_student_only(client, admin_headers):
    assert client.get('/balance', headers=admin_headers).status_code == 403


def _collected_order(client, student, canteen, vendor_headers):
    order = client.post('/orders', json={
        'vendor_id': canteen['vendor']['id'],
        'items': [{'menu_item_id': canteen['menu']['Masala Dosa']['id'], 'quantity': 1}],
        'payment_method': 'RFID',
    }, headers=student['headers']).json()
    for status in ('CONFIRMED', 'PREPARING', 'READY', 'COMPLETED'):
        client.patch(f"/orders/{order['id']}/status", json={'status': status}, headers=vendor_headers)
    return order


def test_review_updates_vendor_rating(client, make_student, canteen, vendor_headers):
    student = make_student(balance=200)
    order = _collected_order(client, student, canteen, vendor_headers)
    r = client.post('/reviews', json={'order_id': order['id'], 'food_rating': 5, 'service_rating': 4, 'comment': 'Great dosa'}, headers=student['headers'])
    assert r.status_code == 200, r.text
    assert r.json()['vendor_id'] == canteen['vendor']['id']

    dup = client.post('/reviews', json={'order_id': order['id'], 'food_rating': 5, 'service_rating': 5}, headers=student['headers'])
    assert dup.status_code == 409

    reviews = client.get('/reviews', params={'vendor_id': canteen['vendor']['id']}).json()
    assert reviews and reviews[0]['order_id'] == order['id']
    expected = round(sum((x['food_rating'] + x['service_rating']) / 2 for x in reviews) / len(reviews), 2)
    vendor = next(v for v in client.get('/vendors').json() if v['id'] == canteen['vendor']['id'])
    assert vendor['total_reviews'] == len(reviews)
    assert vendor['average_rating'] == expected


def test_review_rules(client, make_student, canteen, vendor_headers):
    student = make_student(balance=200)
    fresh = client.post('/orders', json={
        'vendor_id': canteen['vendor']['id'],
        'items': [{'menu_item_id': canteen['menu']['Idli Sambar']['id'], 'quantity': 1}],
        'payment_method': 'RFID',
    }, headers=student['headers']).json()
    r = client.post('/reviews', json={'order_id': fresh['id'], 'food_rating': 4, 'service_rating': 4}, headers=student['headers'])
    assert r.status_code == 400

    collected = _collected_order(client, student, canteen, vendor_headers)
    stranger = make_student()
    r = client.post('/reviews', json={'order_id': collected['id'], 'food_rating': 4, 'service_rating': 4}, headers=stranger['headers'])
    assert r.status_code == 403
    r = client.post('/reviews', json={'order_id': collected['id'], 'food_rating': 6, 'service_rating': 4}, headers=student['headers'])
    assert r.status_code == 422
    assert client.get('/reviews').status_code == 400


def _post_raw(client, url, body, headers):
    return client.post(url, content=body, headers={**headers, 'Content-Type': 'application/json'})


def test_credit_rejects_non_finite_amounts(client, admin_headers, make_student):
    student = make_student()
    for amount in ('NaN', 'Infinity', '1e309'):
        body = f'{{"rfid_number": "{student["rfid"]}", "amount": {amount}}}'
        r = _post_raw(client, '/rfid/credit', body, admin_headers)
        assert r.status_code == 400, amount
    assert client.get('/balance', headers=student['headers']).json()['rfid_balance'] == 0.0
    assert client.get('/transactions', headers=student['headers']).json() == []
