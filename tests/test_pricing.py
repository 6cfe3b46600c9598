from decimal import Decimal

import pytest

from storefront.core.errors import ValidationError
from storefront.services import pricing


def test_single_line_scenario():
    totals = pricing.order_totals([(1000, 2)], shipping_cents=499)
    assert totals.subtotal_cents == 2000
    assert totals.tax_cents == 160
    assert totals.total_cents == 2659


def test_total_is_sum_of_parts():
    totals = pricing.order_totals([(1299, 3), (450, 1)], shipping_cents=1299)
    assert totals.total_cents == totals.subtotal_cents + totals.shipping_cents + totals.tax_cents


def test_tax_rounds_half_up_to_the_cent():
    # 8% of 1.31 is 0.1048 -> 0.10; 8% of 0.19 is 0.0152 -> 0.02
    assert pricing.tax_for(131) == 10
    assert pricing.tax_for(19) == 2
    assert pricing.tax_for(1000, Decimal("0.075")) == 75


def test_shipping_options():
    assert pricing.shipping_option("standard") == ("Standard Shipping", 499)
    with pytest.raises(ValidationError):
        pricing.shipping_option("teleport")
