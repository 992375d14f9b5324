"""Secret generation and hashing for tenant provisioning.

Database passwords are random and never leave the process in plaintext
except inside the role DDL. Admin passwords are hashed with bcrypt before
they are queued.
"""

import secrets

import bcrypt

DATABASE_PASSWORD_BYTES = 32


def generate_database_password() -> str:
    """Generate a database password: 32 random bytes, hex-encoded."""
    return secrets.token_hex(DATABASE_PASSWORD_BYTES)


def hash_admin_password(password: str) -> str:
    """Hash an admin password using bcrypt with a generated salt."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_admin_password(password: str, password_hash: str) -> bool:
    """Verify a password against its bcrypt hash in constant time."""
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Invalid hash format
        return False
