import os
import sys
from datetime import date, timedelta

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from coachdesk.core.db import Base, SessionLocal, engine
from coachdesk.core.security import hash_password
from coachdesk.models import (
    Budget,
    BudgetAssignment,
    Customer,
    KnowledgeBaseArticle,
    Lead,
    Meeting,
    NutritionTemplate,
    Payment,
    User,
    WorkoutTemplate,
)
from coachdesk.services.saved_views import create_view, ensure_default_view


def run() -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        if db.query(User).filter(User.email == "coach@demo.local").first():
            print("Seed already applied")
            return

        coach = User(email="coach@demo.local", full_name="Demo Coach", password_hash=hash_password("demo1234"))
        db.add(coach)
        db.flush()

        cut = NutritionTemplate(
            name="Cut 1800",
            description="Moderate deficit",
            targets={"calories": 1800, "protein": 150, "carbs": 160, "fat": 60},
        )
        bulk = NutritionTemplate(
            name="Lean bulk 2800",
            description="Slow surplus",
            targets={"calories": 2800, "protein": 180, "carbs": 320, "fat": 80},
            is_public=True,
        )
        full_body = WorkoutTemplate(name="Full body x3", description="Beginner split", goal_tags=["strength", "beginner"])
        db.add_all([cut, bulk, full_body])
        db.flush()

        fat_loss = Budget(
            name="Fat loss 12 weeks",
            description="Deficit with daily steps",
            nutrition_template_id=cut.id,
            steps_goal=10000,
            workout_template_id=full_body.id,
        )
        muscle = Budget(name="Muscle gain", description="Surplus and strength", nutrition_template_id=bulk.id, steps_goal=7000)
        steps_only = Budget(name="Walking habit", nutrition_targets={"calories": 2200}, steps_goal=8000, is_public=True)
        db.add_all([fat_loss, muscle, steps_only])
        db.flush()

        customer = Customer(full_name="Dana Levi", phone="0501111111", email="dana@demo.local", total_spent=2400, membership_tier="Gold")
        db.add(customer)
        db.flush()

        leads = [
            Lead(
                full_name="Dana Levi",
                phone="0501111111",
                email="dana@demo.local",
                customer_id=customer.id,
                status_main="active",
                source="instagram",
                fitness_goal="fat_loss",
                activity_level="moderate",
                preferred_time="morning",
                birth_date=date(1990, 4, 12),
                height=168,
                weight=72,
                subscription_data={"initialPackageMonths": 3, "initialPrice": 1200, "monthlyRenewalPrice": 400},
            ),
            Lead(
                full_name="Noam Cohen",
                phone="0502222222",
                status_main="new",
                source="facebook",
                fitness_goal="muscle_gain",
                activity_level="high",
                preferred_time="evening",
                birth_date=date(1996, 9, 3),
                height=181,
                weight=78,
            ),
            Lead(
                full_name="Maya Katz",
                phone="0503333333",
                status_main="vip",
                source="referral",
                fitness_goal="fat_loss",
                activity_level="low",
                preferred_time="morning",
            ),
        ]
        db.add_all(leads)
        db.flush()

        db.add_all(
            [
                BudgetAssignment(budget_id=fat_loss.id, lead_id=leads[0].id, customer_id=customer.id),
                BudgetAssignment(budget_id=muscle.id, lead_id=leads[1].id),
                BudgetAssignment(budget_id=steps_only.id, lead_id=leads[2].id),
                Meeting(lead_id=leads[1].id, title="Intro call", meeting_date=date.today() + timedelta(days=2)),
                Payment(customer_id=customer.id, lead_id=leads[0].id, product_name="3 month package", amount=1200, status="paid"),
                KnowledgeBaseArticle(title="Tracking steps", category="habits", tags=["steps"], is_published=True),
            ]
        )
        db.commit()

        for resource_key in ("leads", "customers", "budgets", "templates", "nutrition_templates"):
            ensure_default_view(db, resource_key, coach.id)
        create_view(
            db,
            owner_id=coach.id,
            resource_key="leads",
            view_name="VIPs",
            filter_config={
                "searchQuery": "",
                "advancedFilters": [
                    {"id": "vip", "fieldId": "status", "fieldLabel": "Status", "operator": "is", "values": ["vip"], "type": "multiselect"}
                ],
            },
            icon_name="star",
        )
        print("Seed complete: coach@demo.local / demo1234")
    finally:
        db.close()


if __name__ == "__main__":
    run()
