from datetime import date

import pytest

from campuseats.utils import gateway
from campuseats.utils.codes import generate_order_number, generate_pickup_code, generate_share_link


TODAY = date(2026, 6, 15)


def test_charge_card_reference():
    ref = gateway.charge_card('4111 1111 1111 1234', '12/27', '123', 99.0, today=TODAY)
    assert ref.startswith('CARD-1234-')


@pytest.mark.parametrize('number,expiry,cvv,message', [
    ('4111', '12/27', '123', 'Invalid card number'),
    ('4111111111111111', '12/27', '12', 'Invalid CVV'),
    ('4111111111111111', '1227', '123', 'Invalid expiry'),
    ('4111111111111111', '13/27', '123', 'Invalid expiry'),
    ('4111111111111111', '05/26', '123', 'Card expired'),
])
def test_charge_card_declines(number, expiry, cvv, message):
    with pytest.raises(gateway.PaymentDeclined) as exc:
        gateway.charge_card(number, expiry, cvv, 10.0, today=TODAY)
    assert message in str(exc.value)


def test_card_valid_through_expiry_month():
    assert gateway.charge_card('4111111111111111', '06/26', '123', 10.0, today=TODAY)


def test_charge_upi():
    assert gateway.charge_upi('john.doe@okbank', 50.0).startswith('UPI-')
    for bad in ('', 'john.doe', '@okbank', 'john@1bank'):
        with pytest.raises(gateway.PaymentDeclined):
            gateway.charge_upi(bad, 50.0)
    with pytest.raises(gateway.PaymentDeclined):
        gateway.charge_upi('john@okbank', 0)


def test_generated_codes_shape():
    number = generate_order_number()
    assert number.startswith('ORD') and len(number) == 12 and number[3:].isdigit()
    code = generate_pickup_code()
    assert len(code) == 6 and code[0] != '0'
    link = generate_share_link()
    assert len(link) == 22 and link.isalnum() and link == link.lower()
