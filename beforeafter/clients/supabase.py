"""Supabase client (PostgREST rows, RPC functions and Storage)."""

import logging

import requests

from ..errors import BeforeAfterError

logger = logging.getLogger(__name__)


class SupabaseError(BeforeAfterError):
    """Supabase returned an error or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SupabaseClient:
    """Thin REST client for the tables, functions and buckets this package uses."""

    def __init__(self, url: str, service_key: str):
        self.url = url.rstrip("/")
        self.service_key = service_key
        self.rest_url = f"{self.url}/rest/v1"
        self.storage_url = f"{self.url}/storage/v1"

    def _get_headers(self, **extra: str) -> dict:
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
        }
        headers.update(extra)
        return headers

    def _check(self, response: requests.Response, action: str) -> requests.Response:
        if not response.ok:
            raise SupabaseError(
                f"Supabase {action} failed: {response.status_code} - {response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    def _send(self, method: str, url: str, action: str, **kwargs) -> requests.Response:
        try:
            response = requests.request(method, url, timeout=30, **kwargs)
        except requests.RequestException as e:
            raise SupabaseError(f"Supabase {action} failed: {e}") from e
        return self._check(response, action)

    # ---- Rows ----

    def select(
        self,
        table: str,
        filters: dict[str, str] | None = None,
        order: str | None = None,
        limit: int | None = None,
        columns: str = "*",
    ) -> list[dict]:
        """
        Select rows.

        Args:
            table: Table name
            filters: PostgREST filters, e.g. {"id": "eq.123", "status": "in.(queued,processing)"}
            order: e.g. "updated_at.desc"
            limit: Max rows
            columns: Column list

        Returns:
            Matching rows
        """
        params = {"select": columns, **(filters or {})}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)
        response = self._send("GET", f"{self.rest_url}/{table}", f"select {table}",
                              headers=self._get_headers(), params=params)
        return response.json()

    def insert(self, table: str, row: dict) -> dict:
        response = self._send(
            "POST", f"{self.rest_url}/{table}", f"insert {table}",
            headers=self._get_headers(Prefer="return=representation"),
            json=row,
        )
        rows = response.json()
        return rows[0] if rows else row

    def update(self, table: str, values: dict, filters: dict[str, str]) -> list[dict]:
        """Update matching rows and return them. An empty list means nothing matched."""
        response = self._send(
            "PATCH", f"{self.rest_url}/{table}", f"update {table}",
            headers=self._get_headers(Prefer="return=representation"),
            params=filters,
            json=values,
        )
        return response.json()

    def delete(self, table: str, filters: dict[str, str]) -> None:
        self._send("DELETE", f"{self.rest_url}/{table}", f"delete {table}",
                   headers=self._get_headers(), params=filters)

    def rpc(self, function: str, params: dict) -> object:
        response = self._send(
            "POST", f"{self.rest_url}/rpc/{function}", f"rpc {function}",
            headers=self._get_headers(),
            json=params,
        )
        return response.json() if response.content else None

    # ---- Storage ----

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.storage_url}/object/public/{bucket}/{path}"

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """
        Upload bytes to a bucket, replacing any existing object.

        Returns:
            Public URL of the stored object
        """
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": content_type,
            "x-upsert": "true",
        }
        self._send("POST", f"{self.storage_url}/object/{bucket}/{path}", f"upload {bucket}/{path}",
                   headers=headers, data=data)
        logger.debug(f"Uploaded {len(data)} bytes to {bucket}/{path}")
        return self.public_url(bucket, path)
