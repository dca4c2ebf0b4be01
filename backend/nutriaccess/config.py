# backend/nutriaccess/config.py
import os
from dotenv import load_dotenv

load_dotenv(dotenv_path=os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".env"))


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# DB
ASYNC_DATABASE_URL = os.getenv("ASYNC_DATABASE_URL", "sqlite+aiosqlite:///./nutriaccess.db")

# 서명 키 (세션 쿠키, 외부 인증 토큰 공용)
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")
ALGORITHM = os.getenv("ALGORITHM", "HS256")

# 세션 쿠키
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "nutriaccess_session")
SESSION_EXPIRE_HOURS = int(os.getenv("SESSION_EXPIRE_HOURS", "24"))
SESSION_COOKIE_SECURE = _env_bool("SESSION_COOKIE_SECURE")

# 외부 인증(카카오) 후 발급하는 identity 토큰
IDENTITY_TOKEN_EXPIRE_MINUTES = int(os.getenv("IDENTITY_TOKEN_EXPIRE_MINUTES", "60"))
KAKAO_CLIENT_ID = os.getenv("KAKAO_CLIENT_ID")

# 접근 코드
CODE_LENGTH = int(os.getenv("CODE_LENGTH", "8"))
CODE_VALIDITY_DAYS = int(os.getenv("CODE_VALIDITY_DAYS", "30"))
CODE_WRITE_ATTEMPTS = int(os.getenv("CODE_WRITE_ATTEMPTS", "5"))

# 코드 추측 방지
LOGIN_MAX_FAILURES = int(os.getenv("LOGIN_MAX_FAILURES", "5"))
LOGIN_FAILURE_WINDOW_SECONDS = int(os.getenv("LOGIN_FAILURE_WINDOW_SECONDS", "900"))

# 체중 범위 (kg)
MIN_WEIGHT_KG = 10
MAX_WEIGHT_KG = 500

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
