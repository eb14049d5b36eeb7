from decimal import Decimal

import pytest

from breeze_erp.services.pdf_service import rupees
from breeze_erp.utils.money import format_indian_number, format_inr, quantize_money, round_money

pytestmark = pytest.mark.unit


def test_indian_number_basic_groups():
    cases = [
        (0, '0'),
        (12, '12'),
        (123, '123'),
        (1234, '1,234'),
        (12345, '12,345'),
        (123456, '1,23,456'),
        (1234567, '12,34,567'),
        (12345678, '1,23,45,678'),
        (123456789, '12,34,56,789'),
    ]
    for value, expected in cases:
        assert format_indian_number(value) == expected


def test_indian_number_negative_and_fraction():
    assert format_indian_number(-1234567.89) == '-12,34,567.89'


def test_round_half_up():
    assert round_money(2.675) == 2.68
    assert round_money(1.005) == 1.01
    assert round_money("12.344") == 12.34
    assert quantize_money(None) == Decimal("0.00")
    assert round_money("junk") == 0.0


def test_format_inr():
    assert format_inr(1.005) == '₹1.01'
    assert format_inr(9876543210.5) == '₹9,87,65,43,210.50'
    assert format_inr(1234.5, symbol=False) == '1,234.50'
    assert format_inr(Decimal('1234.50')) == '₹1,234.50'
    assert format_inr(-50) == '-₹50.00'


def test_pdf_amounts_use_ascii_prefix():
    assert rupees(123456.7) == 'Rs. 1,23,456.70'
