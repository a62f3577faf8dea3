import unittest
from datetime import datetime
from types import SimpleNamespace

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import analytics
from database import Base
from models import User, Category, Transaction

engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

MAY_START = datetime(2024, 5, 1)
MAY_END = datetime(2024, 5, 31, 23, 59, 59)


def txn(amount, type, category_id=1, date=datetime(2024, 5, 10)):
    return SimpleNamespace(amount=amount, type=type, category_id=category_id, date=date)


class TestAggregationHelpers(unittest.TestCase):
    def test_summarize_transactions(self):
        stats = analytics.summarize_transactions([
            txn(500000, "income"), txn(12500, "expense"), txn(8700, "expense")])
        self.assertEqual(stats, {"total_income": 500000, "total_expenses": 21200,
                                 "balance": 478800, "transaction_count": 3})

    def test_summarize_nothing(self):
        self.assertEqual(analytics.summarize_transactions([]), analytics.empty_stats())

    def test_group_category_spending_keeps_first_seen_order(self):
        rows = [
            (2, "Groceries", "#ef4444", 12500, "expense"),
            (1, "Salary", "#10b981", 500000, "income"),
            (2, "Groceries", "#ef4444", 8700, "expense"),
            (7, None, None, 300, "expense"),
        ]
        spending = analytics.group_category_spending(rows)
        self.assertEqual([(s["category_id"], s["category_name"], s["total"]) for s in spending],
                         [(2, "Groceries", 21200), (1, "Salary", 500000), (7, "Unknown", 300)])
        self.assertEqual(spending[2]["category_color"], "#999999")

    def test_budget_progress(self):
        budget = SimpleNamespace(category_id=1, amount=50000, month="2024-05")
        progress = analytics.compute_budget_progress(budget, [txn(12500, "expense"), txn(8700, "expense")])
        self.assertEqual(progress["spent"], 21200)
        self.assertEqual(progress["remaining"], 28800)
        self.assertAlmostEqual(progress["percentage"], 42.4)

    def test_budget_progress_overspend_is_capped(self):
        budget = SimpleNamespace(category_id=1, amount=10000, month="2024-05")
        progress = analytics.compute_budget_progress(budget, [txn(15000, "expense")])
        self.assertEqual(progress["remaining"], -5000)
        self.assertEqual(progress["percentage"], 100)

    def test_budget_progress_ignores_other_rows(self):
        budget = SimpleNamespace(category_id=1, amount=10000, month="2024-05")
        progress = analytics.compute_budget_progress(budget, [
            txn(1000, "income"),
            txn(1000, "expense", category_id=2),
            txn(1000, "expense", date=datetime(2024, 6, 1)),
            txn(2500, "expense", date=datetime(2024, 5, 31, 23, 0)),
        ])
        self.assertEqual(progress["spent"], 2500)
        self.assertEqual(progress["percentage"], 25)

    def test_budget_progress_zero_amount(self):
        budget = SimpleNamespace(category_id=1, amount=0, month="2024-05")
        progress = analytics.compute_budget_progress(budget, [txn(500, "expense")])
        self.assertEqual(progress, {"spent": 500, "remaining": -500, "percentage": 0})

    def test_top_expense_categories(self):
        spending = [{"type": "expense", "total": t, "category_name": str(t)} for t in (5, 60, 10, 40, 20, 30)]
        spending.append({"type": "income", "total": 1000, "category_name": "Salary"})
        top = analytics.top_expense_categories(spending)
        self.assertEqual([s["total"] for s in top], [60, 40, 30, 20, 10])

    def test_split_and_compare(self):
        spending = [
            {"category_name": "Side", "type": "income", "total": 300},
            {"category_name": "Side", "type": "expense", "total": 100},
            {"category_name": "Rent", "type": "expense", "total": 0},
        ]
        split = analytics.split_by_type(spending)
        self.assertEqual(len(split["income"]), 1)
        self.assertEqual(len(split["expense"]), 1)
        self.assertEqual(analytics.compare_by_category_name(spending), [
            {"name": "Side", "income": 300, "expense": 100},
            {"name": "Rent", "income": 0, "expense": 0},
        ])

    def test_month_bounds(self):
        self.assertEqual(analytics.month_bounds("2024-02"),
                         (datetime(2024, 2, 1), datetime(2024, 2, 29, 23, 59, 59, 999999)))
        self.assertEqual(analytics.month_bounds("2023-12")[1].day, 31)


class TestAggregationQueries(unittest.TestCase):
    def setUp(self):
        Base.metadata.create_all(bind=engine)
        self.db = TestingSessionLocal()
        alice = User(name="Alice", email="alice@example.com", password_hash="x")
        bob = User(name="Bob", email="bob@example.com", password_hash="x")
        self.db.add_all([alice, bob])
        self.db.flush()
        self.alice, self.bob = alice.id, bob.id

        groceries = Category(user_id=alice.id, name="Groceries", type="expense", color="#ef4444")
        salary = Category(user_id=alice.id, name="Salary", type="income", color="#10b981")
        bobs = Category(user_id=bob.id, name="Bob's", type="expense", color="#000000")
        self.db.add_all([groceries, salary, bobs])
        self.db.flush()
        self.groceries, self.salary = groceries.id, salary.id

        self.db.add_all([
            Transaction(user_id=alice.id, category_id=groceries.id, amount=12500, type="expense",
                        date=datetime(2024, 5, 1)),
            Transaction(user_id=alice.id, category_id=salary.id, amount=500000, type="income",
                        date=datetime(2024, 5, 2)),
            Transaction(user_id=alice.id, category_id=groceries.id, amount=8700, type="expense",
                        date=MAY_END),
            # outside the range
            Transaction(user_id=alice.id, category_id=groceries.id, amount=999, type="expense",
                        date=datetime(2024, 4, 30, 23, 59, 59)),
            # another user's data
            Transaction(user_id=bob.id, category_id=bobs.id, amount=77700, type="expense",
                        date=datetime(2024, 5, 5)),
        ])
        self.db.commit()

    def tearDown(self):
        self.db.close()
        Base.metadata.drop_all(bind=engine)

    def test_dashboard_stats(self):
        stats = analytics.compute_dashboard_stats(self.db, self.alice, MAY_START, MAY_END)
        self.assertEqual(stats, {"total_income": 500000, "total_expenses": 21200,
                                 "balance": 478800, "transaction_count": 3})

    def test_category_spending(self):
        spending = analytics.compute_category_spending(self.db, self.alice, MAY_START, MAY_END)
        self.assertEqual(spending, [
            {"category_id": self.groceries, "category_name": "Groceries", "category_color": "#ef4444",
             "total": 21200, "type": "expense"},
            {"category_id": self.salary, "category_name": "Salary", "category_color": "#10b981",
             "total": 500000, "type": "income"},
        ])

    def test_empty_range(self):
        start, end = datetime(2030, 1, 1), datetime(2030, 1, 31)
        self.assertEqual(analytics.compute_dashboard_stats(self.db, self.alice, start, end), analytics.empty_stats())
        self.assertEqual(analytics.compute_category_spending(self.db, self.alice, start, end), [])

    def test_deleted_category_falls_back_to_unknown(self):
        self.db.query(Category).filter(Category.id == self.groceries).delete()
        self.db.commit()
        spending = analytics.compute_category_spending(self.db, self.alice, MAY_START, MAY_END)
        self.assertEqual((spending[0]["category_name"], spending[0]["category_color"]), ("Unknown", "#999999"))
        self.assertEqual(spending[0]["total"], 21200)

    def test_unreachable_database_gives_empty_results(self):
        broken = sessionmaker(bind=create_engine("sqlite:////nonexistent-dir/finance.db"))()
        try:
            self.assertEqual(analytics.compute_dashboard_stats(broken, 1, MAY_START, MAY_END), analytics.empty_stats())
            self.assertEqual(analytics.compute_category_spending(broken, 1, MAY_START, MAY_END), [])
            self.assertEqual(analytics.compute_budget_overview(broken, 1, "2024-05"), [])
        finally:
            broken.close()


if __name__ == "__main__":
    unittest.main()
