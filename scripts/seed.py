"""Seed script — creates demo users via the REST API.

Usage:
    python scripts/seed.py              # uses http://localhost:3000
    python scripts/seed.py http://host  # custom base URL
"""

import sys

import httpx

BASE_URL = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:3000"

USERS = [
    {
        "username": "alice",
        "email": "alice@example.com",
        "first_name": "Alice",
        "last_name": "Smith",
        "password": "password123",
    },
    {
        "username": "bob",
        "email": "bob@example.com",
        "first_name": "Bob",
        "last_name": "Jones",
        "password": "password123",
    },
    {
        "username": "carol",
        "email": "carol@example.com",
        "password": "password123",
    },
]

INACTIVE = ["carol"]


def create_user(client: httpx.Client, user: dict) -> int | None:
    resp = client.post(f"{BASE_URL}/api/v1/users", json=user)
    if resp.status_code == 201:
        user_id = resp.json()["id"]
        print(f"  Created {user['username']} ({user_id})")
        return user_id
    if resp.status_code == 409:
        print(f"  {user['username']} already exists, skipping")
        return None
    resp.raise_for_status()
    return None


def deactivate(client: httpx.Client, user_id: int) -> None:
    resp = client.post(f"{BASE_URL}/api/v1/users/{user_id}/deactivate")
    resp.raise_for_status()
    print(f"  Deactivated {user_id}")


def main() -> None:
    print(f"Seeding against {BASE_URL}\n")

    with httpx.Client(timeout=10) as client:
        print("Users:")
        created: dict[str, int] = {}
        for user in USERS:
            user_id = create_user(client, user)
            if user_id is not None:
                created[user["username"]] = user_id

        print("\nDeactivations:")
        for username in INACTIVE:
            if username in created:
                deactivate(client, created[username])

        total = client.get(f"{BASE_URL}/api/v1/users").json()["total_count"]

    print(f"\nDone! {total} users in total.")


if __name__ == "__main__":
    main()
