from decimal import Decimal

from src.payroll_engine.payroll_engine.common.money import divide, multiply, to_decimal, to_minor


def test_half_up_rounding():
    assert to_minor(Decimal("2.5")) == 3
    assert to_minor(Decimal("-2.5")) == -3
    assert to_minor(Decimal("2.49")) == 2


def test_multiply_rounds_once():
    assert multiply(333, Decimal("0.5"), 3) == 500
    assert multiply(100, 1.1) == 110


def test_divide_by_zero_is_zero():
    assert divide(30000, 0) == 0
    assert divide(30000, 30) == 1000
    assert divide(10000, 3) == 3333


def test_float_goes_through_str():
    assert to_decimal(0.1) == Decimal("0.1")
