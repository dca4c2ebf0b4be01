import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from nutriaccess.config import KAKAO_CLIENT_ID
from nutriaccess.errors import AuthenticationFailure, InternalError

logger = logging.getLogger(__name__)

KAKAO_TOKEN_URL = "https://kauth.kakao.com/oauth/token"
KAKAO_USERINFO_URL = "https://kapi.kakao.com/v2/user/me"
TIMEOUT = httpx.Timeout(10.0)


@dataclass(frozen=True)
class ExternalProfile:
    subject_id: str
    email: Optional[str] = None
    name: Optional[str] = None


async def exchange_code(code: str, redirect_uri: str, client: Optional[httpx.AsyncClient] = None) -> ExternalProfile:
    """
    카카오 인가 코드를 토큰으로 교환하고 사용자 정보를 가져옵니다.
    결과는 'kakao:<id>' 형태의 안정적인 subject id 입니다.
    """
    if not KAKAO_CLIENT_ID:
        raise InternalError("External identity provider is not configured")

    token_payload = {
        "grant_type": "authorization_code",
        "client_id": KAKAO_CLIENT_ID,
        "redirect_uri": redirect_uri,
        "code": code,
    }
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=TIMEOUT)
    try:
        token_resp = await client.post(KAKAO_TOKEN_URL, data=token_payload)
        if token_resp.status_code in (400, 401):
            raise AuthenticationFailure("External identity login failed")
        token_resp.raise_for_status()
        kakao_access_token = token_resp.json().get("access_token")
        if not kakao_access_token:
            raise AuthenticationFailure("External identity login failed")

        headers = {"Authorization": f"Bearer {kakao_access_token}"}
        user_info_resp = await client.get(KAKAO_USERINFO_URL, headers=headers)
        user_info_resp.raise_for_status()
        user_info = user_info_resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error("Kakao exchange failed: %s", e)
        raise InternalError("Failed to communicate with the identity provider") from e
    finally:
        if owns_client:
            await client.aclose()

    kakao_id = user_info.get("id")
    if not kakao_id:
        raise InternalError("Identity provider returned no subject id")

    return ExternalProfile(
        subject_id=f"kakao:{int(kakao_id)}",
        email=user_info.get("kakao_account", {}).get("email"),
        name=user_info.get("properties", {}).get("nickname"),
    )
