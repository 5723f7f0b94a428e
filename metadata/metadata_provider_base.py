import httpx

from utils.logger import setup_logger


class MetadataProvider:

    def __init__(self, http_client: httpx.AsyncClient, base_url: str, timeout: float = 8.0):
        self.logger = setup_logger(__name__)
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def get_json(self, url):
        try:
            response = await self.http_client.get(url, timeout=self.timeout)
            response.raise_for_status()
        except httpx.TimeoutException:
            self.logger.error(f"Metadata request timed out: {url}")
            raise
        except httpx.HTTPStatusError as e:
            self.logger.error(f"Metadata request failed with status {e.response.status_code}: {url}")
            raise
        except httpx.RequestError as e:
            self.logger.error(f"Error requesting metadata: {e}")
            raise
        return response.json()
