"""
Autenticación con Supabase Auth (GoTrue).

Gestiona:
- Almacenamiento del refresh_token
- Expiración de tokens
- Refresh automático
- Usuario actual (id del mesero / cajero)
"""

import getpass
import json
import os
import time

import requests

from backoffice.config import (
    SUPABASE_URL,
    SUPABASE_ANON_KEY,
    SUPABASE_ACCESS_TOKEN,
    SUPABASE_REFRESH_TOKEN,
    AUTH_PATH,
    TOKEN_FILE,
    REQUEST_TIMEOUT,
)


class SupabaseAuth:
    def __init__(
        self,
        url: str = None,
        api_key: str = None,
        access_token: str = None,
        refresh_token: str = None,
        token_file: str = TOKEN_FILE,
    ):
        self.url = (url or SUPABASE_URL or "").rstrip("/")
        self.api_key = api_key or SUPABASE_ANON_KEY

        if not self.url or not self.api_key:
            raise ValueError(
                "url y api_key son obligatorios. "
                "Defina SUPABASE_URL y SUPABASE_ANON_KEY en el .env o st.secrets"
            )

        self.token_file = token_file
        self.access_token: str | None = access_token or SUPABASE_ACCESS_TOKEN
        self.refresh_token: str | None = refresh_token or SUPABASE_REFRESH_TOKEN
        # Un access_token recibido por config se considera vigente hasta el primer 401
        self.expires_at: float = float("inf") if self.access_token else 0
        self.user_id: str | None = None

    # ─── Obtener token válido (entry point principal) ───

    def get_access_token(self) -> str:
        """Retorna un access_token válido, renovándolo si es necesario."""
        if self.access_token and time.time() < self.expires_at:
            return self.access_token

        if self.refresh_token:
            self.refresh()
            return self.access_token

        if self._load_token():
            if time.time() < self.expires_at:
                return self.access_token
            if self.refresh_token:
                self.refresh()
                return self.access_token

        # Sin sesión de usuario: rol anónimo (las políticas RLS deciden)
        return self.api_key

    def can_refresh(self) -> bool:
        return bool(self.refresh_token)

    def has_session(self) -> bool:
        """Hay un usuario autenticado (en memoria o en el token guardado)."""
        return bool(self.access_token or self.refresh_token) or self._load_token()

    # ─── Flujos de token ───

    def _token_request(self, grant_type: str, payload: dict) -> dict:
        response = requests.post(
            f"{self.url}{AUTH_PATH}/token",
            params={"grant_type": grant_type},
            headers={"apikey": self.api_key, "Content-Type": "application/json"},
            json=payload,
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        token_data = response.json()
        self._save_token(token_data)
        return token_data

    def sign_in(self, email: str, password: str) -> dict:
        """Inicia sesión con email y contraseña."""
        return self._token_request("password", {"email": email, "password": password})

    def refresh(self):
        """Renueva el access_token usando el refresh_token."""
        if not self.refresh_token:
            raise ValueError("No hay refresh_token disponible.")
        self._token_request("refresh_token", {"refresh_token": self.refresh_token})

    def get_user(self) -> dict:
        """Retorna el usuario autenticado."""
        response = requests.get(
            f"{self.url}{AUTH_PATH}/user",
            headers={
                "apikey": self.api_key,
                "Authorization": f"Bearer {self.get_access_token()}",
            },
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        user = response.json()
        self.user_id = user.get("id")
        return user

    # ─── Persistencia ───

    def _save_token(self, token_data: dict):
        self.access_token = token_data["access_token"]
        self.refresh_token = token_data.get("refresh_token", self.refresh_token)
        expires_in = token_data.get("expires_in", 3600)
        self.expires_at = time.time() + expires_in - 60  # margen de 60s
        user = token_data.get("user") or {}
        self.user_id = user.get("id", self.user_id)

        try:
            with open(self.token_file, "w") as f:
                json.dump(
                    {
                        "access_token": self.access_token,
                        "refresh_token": self.refresh_token,
                        "expires_at": self.expires_at,
                        "user_id": self.user_id,
                    },
                    f,
                )
        except OSError:
            # En Cloud (filesystem de solo lectura) se guarda solo en memoria
            pass

    def _load_token(self) -> bool:
        if not self.token_file or not os.path.exists(self.token_file):
            return False
        with open(self.token_file) as f:
            data = json.load(f)
        self.access_token = data.get("access_token")
        self.refresh_token = data.get("refresh_token")
        self.expires_at = data.get("expires_at", 0)
        self.user_id = data.get("user_id")
        return True

    # ─── Flujo interactivo (CLI) ───

    def sign_in_interactive(self) -> dict:
        email = input("Email: ").strip()
        password = getpass.getpass("Contraseña: ")
        if not email or not password:
            raise ValueError("Email y contraseña son obligatorios.")

        token_data = self.sign_in(email, password)
        print("Sesión iniciada. Token guardado en", self.token_file)
        return token_data


# ─── CLI entry point ───

if __name__ == "__main__":
    auth = SupabaseAuth()
    auth.sign_in_interactive()
