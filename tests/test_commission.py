"""
Commission tests.

Covers:
- the worked examples for a $100 order
- linearity and the rush bonus
- rounding when earnings are written
- distributing earnings for delivered orders, once
- the earnings queries
"""

import unittest
from decimal import Decimal

from sqlmodel import select

from bakery_bliss.commission import (
    baker_earnings_breakdown,
    baker_total_earnings,
    calculate_commission,
    commission_rate,
    distribute_earnings,
    earnings_summary,
)
from bakery_bliss.models import BakerEarning, OrderStatus, UserRole

from support import DatabaseTestCase, make_order, make_user

BAKER_ROLES = (UserRole.JUNIOR_BAKER, UserRole.MAIN_BAKER)
TOTALS = ("0.01", "7.35", "19.99", "100", "123.45", "2500.50")


class TestCalculateCommission(unittest.TestCase):

    def test_junior_standard_order(self):
        result = calculate_commission(Decimal("100"), UserRole.JUNIOR_BAKER).quantized()
        self.assertEqual(result.base_amount, Decimal("15.00"))
        self.assertEqual(result.bonus_amount, Decimal("0.00"))
        self.assertEqual(result.total_amount, Decimal("15.00"))
        self.assertEqual(result.percentage, Decimal("15.00"))

    def test_junior_rush_order(self):
        result = calculate_commission(Decimal("100"), UserRole.JUNIOR_BAKER, rush=True).quantized()
        self.assertEqual(result.base_amount, Decimal("15.00"))
        self.assertEqual(result.bonus_amount, Decimal("1.50"))
        self.assertEqual(result.total_amount, Decimal("16.50"))

    def test_main_baker_rate(self):
        result = calculate_commission(100, UserRole.MAIN_BAKER)
        self.assertEqual(result.total_amount, Decimal("20"))
        self.assertEqual(commission_rate(UserRole.MAIN_BAKER), Decimal("0.20"))

    def test_float_totals_have_no_binary_noise(self):
        result = calculate_commission(19.99, UserRole.JUNIOR_BAKER)
        self.assertEqual(result.base_amount, Decimal("2.9985"))

    def test_linear_in_order_total(self):
        for role in BAKER_ROLES:
            for total in TOTALS:
                t = Decimal(total)
                self.assertEqual(
                    calculate_commission(2 * t, role).total_amount,
                    2 * calculate_commission(t, role).total_amount,
                )

    def test_rush_bonus_is_ten_percent_of_base(self):
        for role in BAKER_ROLES:
            for total in TOTALS:
                t = Decimal(total)
                standard = calculate_commission(t, role)
                rush = calculate_commission(t, role, rush=True)
                self.assertEqual(rush.total_amount, standard.total_amount * Decimal("1.10"))
                self.assertEqual(rush.bonus_amount, rush.base_amount * Decimal("0.10"))

    def test_rounds_half_up_to_the_cent(self):
        # 0.10 x 15% = 0.015
        result = calculate_commission(Decimal("0.10"), UserRole.JUNIOR_BAKER).quantized()
        self.assertEqual(result.base_amount, Decimal("0.02"))

    def test_quantized_total_is_sum_of_parts(self):
        for total in TOTALS:
            result = calculate_commission(Decimal(total), UserRole.JUNIOR_BAKER, rush=True).quantized()
            self.assertEqual(result.total_amount, result.base_amount + result.bonus_amount)

    def test_non_baker_roles_have_no_rate(self):
        for role in (UserRole.CUSTOMER, UserRole.ADMIN):
            with self.assertRaises(ValueError):
                calculate_commission(Decimal("100"), role)


class TestDistributeEarnings(DatabaseTestCase):

    def setUp(self):
        super().setUp()
        self.customer = make_user(self.session, UserRole.CUSTOMER, full_name="Casey Customer")
        self.main = make_user(self.session, UserRole.MAIN_BAKER, full_name="Marco Main")
        self.junior = make_user(self.session, UserRole.JUNIOR_BAKER, full_name="Julia Junior")

    def delivered(self, total=100.0, rush=False, junior=True):
        return make_order(
            self.session, self.customer, status=OrderStatus.DELIVERED, total=total, rush=rush,
            main_baker=self.main, junior=self.junior if junior else None,
        )

    def distribute(self, order):
        earnings = distribute_earnings(self.session, order)
        self.session.commit()
        return earnings

    def test_splits_between_junior_and_main(self):
        order = self.delivered(rush=True)
        earnings = self.distribute(order)

        by_role = {e.baker_type: e for e in earnings}
        self.assertEqual(by_role[UserRole.JUNIOR_BAKER].baker_id, self.junior.id)
        self.assertEqual(Decimal(by_role[UserRole.JUNIOR_BAKER].amount), Decimal("16.50"))
        self.assertEqual(by_role[UserRole.MAIN_BAKER].baker_id, self.main.id)
        self.assertEqual(Decimal(by_role[UserRole.MAIN_BAKER].bonus_amount), Decimal("2.00"))
        self.assertEqual(Decimal(by_role[UserRole.MAIN_BAKER].amount), Decimal("22.00"))

        self.session.refresh(self.junior)
        self.assertEqual(self.junior.completed_orders, 1)

    def test_idempotent(self):
        order = self.delivered()
        self.assertEqual(len(self.distribute(order)), 2)
        self.assertEqual(self.distribute(order), [])

        rows = self.session.exec(select(BakerEarning).where(BakerEarning.order_id == order.id)).all()
        self.assertEqual(len(rows), 2)
        self.session.refresh(self.junior)
        self.assertEqual(self.junior.completed_orders, 1)

    def test_main_baker_only(self):
        earnings = self.distribute(self.delivered(junior=False))
        self.assertEqual([e.baker_type for e in earnings], [UserRole.MAIN_BAKER])

    def test_skips_undelivered_orders(self):
        order = make_order(self.session, self.customer, status=OrderStatus.READY, main_baker=self.main, junior=self.junior)
        self.assertEqual(self.distribute(order), [])

    def test_skips_orders_without_main_baker(self):
        order = make_order(self.session, self.customer, status=OrderStatus.DELIVERED)
        self.assertEqual(self.distribute(order), [])

    def test_totals_and_breakdown(self):
        first = self.delivered(total=100.0)
        second = self.delivered(total=40.0, rush=True)
        self.distribute(first)
        self.distribute(second)

        # 15.00 + (6.00 + 0.60)
        self.assertEqual(baker_total_earnings(self.session, self.junior.id), Decimal("21.60"))
        self.assertEqual(baker_total_earnings(self.session, self.customer.id), Decimal("0"))

        breakdown = baker_earnings_breakdown(self.session, self.junior.id)
        self.assertEqual({row["order_id"] for row in breakdown}, {first.order_id, second.order_id})
        rush_row = next(row for row in breakdown if row["is_rush"])
        self.assertEqual(Decimal(rush_row["bonus_amount"]), Decimal("0.60"))

    def test_summary_sorted_by_total(self):
        self.distribute(self.delivered(total=100.0))

        summary = earnings_summary(self.session)
        self.assertEqual([row["baker_id"] for row in summary], [self.main.id, self.junior.id])
        self.assertEqual(summary[0]["baker_name"], "Marco Main")
        self.assertEqual(summary[0]["order_count"], 1)

        juniors_only = earnings_summary(self.session, UserRole.JUNIOR_BAKER)
        self.assertEqual(len(juniors_only), 1)
        self.assertEqual(juniors_only[0]["total_earnings"], Decimal("15.00"))


if __name__ == "__main__":
    unittest.main()
