from typing import Any, Dict, List, Optional

from supabase import create_async_client, AsyncClient

from vapi_calendar.core.config import settings
from vapi_calendar.core.logger import logger


class SupabaseNotConfigured(RuntimeError):
    pass


class DBService:
    """
    Thin wrapper around the Supabase async client.
    Owns the two RPCs this service relies on: slot availability and call capture.
    """

    def __init__(self, url: Optional[str] = None, key: Optional[str] = None):
        self.url = url if url is not None else settings.SUPABASE_URL
        self.key = key if key is not None else settings.SUPABASE_KEY
        self._client: Optional[AsyncClient] = None

    async def get_client(self) -> AsyncClient:
        if not self._client:
            if not (self.url and self.key):
                logger.warning("⚠️ Supabase credentials missing")
                raise SupabaseNotConfigured("SUPABASE_URL and SUPABASE_KEY must be set")
            self._client = await create_async_client(self.url, self.key)
            logger.info("✅ Supabase Async client initialized")
        return self._client

    async def check_availability(
        self,
        start_time: str,
        end_time: str,
        duration_minutes: int,
        user_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Calls `fn_check_availability` and returns the raw slot rows
        ({start_time, end_time, is_available}). Errors propagate to the caller.
        """
        client = await self.get_client()

        params = {
            'start_time': start_time,
            'end_time': end_time,
            'duration_minutes': duration_minutes,
        }
        if user_id:
            params['user_id'] = user_id

        response = await client.rpc('fn_check_availability', params).execute()
        return response.data or []

    async def capture_vapi_data(
        self,
        request_id: str,
        function_name: str,
        parameters: Dict[str, Any],
        response: Dict[str, Any],
    ) -> None:
        client = await self.get_client()
        await client.rpc('fn_capture_vapi_data', {
            'p_request_id': request_id,
            'p_function_name': function_name,
            'p_parameters': parameters,
            'p_response': response,
        }).execute()


db_service = DBService()
