"""
Password hashing for account records.

Credential checks happen in the upstream authentication gateway; this module
only produces the stored hash.
"""

from passlib.context import CryptContext

# Password hashing context
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a plaintext password for storage"""
    return pwd_context.hash(password)

