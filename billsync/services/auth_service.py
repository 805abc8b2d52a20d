import hashlib
import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

import httpx

from billsync.data.kv_store import KVStore
from billsync.services.results import AuthResult

logger = logging.getLogger("AuthService")

USER_KEY = "user_id"

class IdentityProvider(ABC):
    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthResult:
        ...

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> AuthResult:
        ...

class FirebaseIdentityProvider(IdentityProvider):
    """Firebase Auth via API REST (signInWithPassword / signUp)"""
    BASE_URL = "https://identitytoolkit.googleapis.com/v1"

    def __init__(self, api_key: str, timeout: float = 10, client: Optional[httpx.AsyncClient] = None):
        self.api_key = api_key
        self.client = client or httpx.AsyncClient(base_url=self.BASE_URL, timeout=timeout)

    async def _post(self, endpoint: str, email: str, password: str) -> AuthResult:
        try:
            response = await self.client.post(
                f"/accounts:{endpoint}",
                params={"key": self.api_key},
                json={"email": email, "password": password, "returnSecureToken": True},
            )
        except httpx.HTTPError as e:
            logger.error(f"Erro na autenticação: {e}")
            return AuthResult(success=False, error=str(e))

        data = response.json()
        if response.status_code != 200:
            # Ex: EMAIL_NOT_FOUND, INVALID_PASSWORD, EMAIL_EXISTS
            message = data.get("error", {}).get("message", f"HTTP {response.status_code}")
            return AuthResult(success=False, error=message)
        return AuthResult(success=True, user_id=data["localId"], email=data.get("email", email))

    async def sign_in(self, email: str, password: str) -> AuthResult:
        return await self._post("signInWithPassword", email, password)

    async def sign_up(self, email: str, password: str) -> AuthResult:
        return await self._post("signUp", email, password)

class LocalIdentityProvider(IdentityProvider):
    """
    Contas guardadas no KVStore, para uso com o servidor próprio sem Firebase.
    Senha com hash SHA256 + salt; o user_id é derivado do e-mail (estável entre dispositivos).
    """
    def __init__(self, kv_store: KVStore, salt: str = "billsync_offline_salt"):
        self.kv_store = kv_store
        self._salt_secret = salt

    def _hash_password(self, password: str) -> str:
        salted = f"{password}{self._salt_secret}"
        return hashlib.sha256(salted.encode()).hexdigest()

    @staticmethod
    def _user_id(email: str) -> str:
        return "local-" + hashlib.sha256(email.strip().lower().encode()).hexdigest()[:20]

    @staticmethod
    def _account_key(email: str) -> str:
        return f"account:{email.strip().lower()}"

    async def sign_in(self, email: str, password: str) -> AuthResult:
        stored = self.kv_store.get(self._account_key(email))
        if not stored or stored != self._hash_password(password):
            return AuthResult(success=False, error="INVALID_LOGIN_CREDENTIALS")
        return AuthResult(success=True, user_id=self._user_id(email), email=email)

    async def sign_up(self, email: str, password: str) -> AuthResult:
        if self.kv_store.get(self._account_key(email)):
            return AuthResult(success=False, error="EMAIL_EXISTS")
        self.kv_store.set(self._account_key(email), self._hash_password(password))
        return AuthResult(success=True, user_id=self._user_id(email), email=email)

class AuthService:
    """
    Fronteira de identidade. O sync só precisa do user_id estável;
    a sessão é persistida no KVStore para funcionar offline após reiniciar.
    """
    def __init__(self, provider: IdentityProvider, kv_store: KVStore):
        self.provider = provider
        self.kv_store = kv_store
        self._current_user_id: Optional[str] = kv_store.get(USER_KEY)
        self._callbacks: List[Callable[[Optional[str]], None]] = []

    def current_user_id(self) -> Optional[str]:
        return self._current_user_id

    def on_auth_state_change(self, callback: Callable[[Optional[str]], None]) -> Callable[[], None]:
        self._callbacks.append(callback)
        return lambda: self._callbacks.remove(callback) if callback in self._callbacks else None

    async def sign_in(self, email: str, password: str) -> AuthResult:
        result = await self.provider.sign_in(email, password)
        if result.success:
            self._set_user(result.user_id)
        return result

    async def sign_up(self, email: str, password: str) -> AuthResult:
        result = await self.provider.sign_up(email, password)
        if result.success:
            self._set_user(result.user_id)
        return result

    async def sign_out(self):
        self._set_user(None)

    def _set_user(self, user_id: Optional[str]):
        self._current_user_id = user_id
        if user_id:
            self.kv_store.set(USER_KEY, user_id)
        else:
            self.kv_store.delete(USER_KEY)

        for callback in list(self._callbacks):
            try:
                callback(user_id)
            except Exception as e:
                logger.error(f"Erro no callback de autenticação: {e}")
