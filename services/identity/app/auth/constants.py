import enum

# ── OTP format ────────────────────────────────────────────────────────────────
# 6 digits = 10^6 possibilities; the expiry window is the binding defence.
OTP_LENGTH: int = 6

# ── Field limits (mirrored by the users table) ────────────────────────────────
EMAIL_MAX_LENGTH: int = 255
NAME_MIN_LENGTH: int = 2
NAME_MAX_LENGTH: int = 50
PASSWORD_MIN_LENGTH: int = 6
PASSWORD_MAX_LENGTH: int = 128


# ── Notification kinds understood by the notification service ─────────────────
class NotificationKind(str, enum.Enum):
    OTP = "otp"
    WELCOME = "welcome"
