# make_admin.py
# Usage: python make_admin.py <email|username|phone>

import sys

from app import create_app
from referrals.accounts import promote_to_admin


def make_admin(identifier):
    app = create_app()
    with app.app_context():
        user = promote_to_admin(identifier)
        if user is None:
            print(f"No user matches {identifier!r}. Register the account first.")
            return 1
        print(f"User (id={user.id}, username={user.username}) is now admin.")
        return 0


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python make_admin.py <email|username|phone>")
        sys.exit(2)
    sys.exit(make_admin(sys.argv[1]))
