from sqlmodel import Session

from campuseats import models, repositories
from campuseats.database import engine
from campuseats.services import OrderService


def test_reconcile_settles_collected_rfid_orders_once(client, make_student, canteen):
    student = make_student(balance=100)
    order = client.post('/orders', json={
        'vendor_id': canteen['vendor']['id'],
        'items': [{'menu_item_id': canteen['menu']['Veg Biryani']['id'], 'quantity': 1}],
        'payment_method': 'RFID',
    }, headers=student['headers']).json()

    # simulate a row written before settlement was tied to collection
    with Session(engine) as session:
        row = session.get(models.Order, order['id'])
        row.order_status = models.OrderStatus.PICKED_UP
        session.add(row)
        session.commit()

    with Session(engine) as session:
        results = OrderService(session).reconcile_unsettled()
    mine = [r for r in results if r['order_number'] == order['order_number']]
    assert mine == [{'order_number': order['order_number'], 'settled': True, 'amount': 84.0, 'new_balance': 16.0}]

    with Session(engine) as session:
        again = OrderService(session).reconcile_unsettled()
    assert all(r['order_number'] != order['order_number'] for r in again)

    assert client.get('/balance', headers=student['headers']).json()['rfid_balance'] == 16.0
    ledger = client.get('/transactions', headers=student['headers']).json()
    assert [t['transaction_type'] for t in ledger].count('DEBIT') == 1
    with Session(engine) as session:
        rows = repositories.TransactionRepository(session).list_for_order(order['id'])
    assert [(t.transaction_type, t.amount) for t in rows] == [(models.TransactionType.DEBIT, 84.0)]
    assert client.get(f"/orders/{order['id']}", headers=student['headers']).json()['payment_status'] == 'PAID'


def test_reconcile_reports_shortfall(client, admin_headers, make_student, canteen):
    student = make_student(balance=100)
    order = client.post('/orders', json={
        'vendor_id': canteen['vendor']['id'],
        'items': [{'menu_item_id': canteen['menu']['Veg Biryani']['id'], 'quantity': 1}],
        'payment_method': 'RFID',
    }, headers=student['headers']).json()

    with Session(engine) as session:
        row = session.get(models.Order, order['id'])
        row.order_status = models.OrderStatus.COMPLETED
        user = session.get(models.User, student['id'])
        user.rfid_balance = 10.0
        session.add(row)
        session.add(user)
        session.commit()

    with Session(engine) as session:
        results = OrderService(session).reconcile_unsettled()
    mine = [r for r in results if r['order_number'] == order['order_number']]
    assert mine[0]['settled'] is False
    assert 'Insufficient' in mine[0]['error']
    assert client.get('/balance', headers=student['headers']).json()['rfid_balance'] == 10.0
