import argparse
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from coachdesk.core.db import SessionLocal
from coachdesk.core.security import hash_password
from coachdesk.models import User
from coachdesk.services.saved_views import ensure_default_view
from coachdesk.services.resources import RESOURCES


def run(email: str, password: str, full_name: str):
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.lower().strip()).first()
        if not user:
            user = User(email=email.lower().strip(), full_name=full_name, password_hash=hash_password(password))
            db.add(user)
            db.commit()
            db.refresh(user)
        else:
            user.password_hash = hash_password(password)
            db.commit()

        for resource_key in RESOURCES:
            ensure_default_view(db, resource_key, user.id)
        print(f"Coach ready: {user.email} (id {user.id})")
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--name", default="Head Coach")
    args = parser.parse_args()
    run(args.email, args.password, args.name)
