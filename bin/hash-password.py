"""Hash a roster password for AUTH_USERS and print the bcrypt hash.

Usage: python bin/hash-password.py <username>

The password is read from the terminal without echo. Paste the printed
entry into the AUTH_USERS JSON object.
"""

import asyncio
import getpass
import json
import sys

from shared.auth.password import hash_password


async def main() -> None:
    if len(sys.argv) != 2:
        print(f"Usage: {sys.argv[0]} <username>")
        sys.exit(1)

    username = sys.argv[1].strip().lower()
    password = getpass.getpass(f"Password for {username}: ")
    if not password:
        print("Error: password must not be empty")
        sys.exit(1)
    if getpass.getpass("Repeat password: ") != password:
        print("Error: passwords do not match")
        sys.exit(1)

    hashed = await hash_password(password)
    print(json.dumps({username: hashed}))


if __name__ == "__main__":
    asyncio.run(main())
