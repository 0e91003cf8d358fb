from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.concurrency import run_in_threadpool

from medq.core.firebase import verify_id_token

security_scheme = HTTPBearer()


async def get_current_uid(token: Annotated[HTTPAuthorizationCredentials, Depends(security_scheme)]) -> str:
  """Verify the Firebase ID token and return the caller's uid."""
  # The Admin SDK verifies synchronously and may fetch signing certificates.
  decoded_claims = await run_in_threadpool(verify_id_token, token.credentials)
  uid = str((decoded_claims or {}).get("uid") or "").strip()
  if not uid:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials", headers={"WWW-Authenticate": "Bearer"})
  return uid
