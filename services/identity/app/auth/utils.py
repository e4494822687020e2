import secrets

from passlib.context import CryptContext

from app.auth.constants import OTP_LENGTH

context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    return context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return context.verify(plain, hashed)


def generate_otp() -> str:
    """Uniform 6-digit code, zero-padded (000000..999999)."""
    return f"{secrets.randbelow(10 ** OTP_LENGTH):0{OTP_LENGTH}d}"


def normalize_email(email: str) -> str:
    return email.strip().lower()
