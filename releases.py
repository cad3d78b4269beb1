import httpx

from logger import bot_logger
from security import QueryResult


class ReleaseChecker:
    """Получение последней опубликованной версии n8n"""

    def __init__(self, url: str, tag_prefix: str = "n8n@", timeout: float = 15,
                 transport=None):
        self.url = url
        self.tag_prefix = tag_prefix
        self.timeout = timeout
        self.transport = transport

    def normalize_tag(self, tag: str) -> str:
        tag = tag.strip()
        if self.tag_prefix and tag.startswith(self.tag_prefix):
            tag = tag[len(self.tag_prefix):]
        if tag.startswith("v"):
            tag = tag[1:]
        return tag

    async def latest_version(self) -> QueryResult:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(
                    self.url, headers={"Accept": "application/vnd.github+json"}
                )
                response.raise_for_status()
                data = response.json()
                tag = data.get("tag_name") if isinstance(data, dict) else None
        except (httpx.HTTPError, ValueError) as e:
            bot_logger.warning(f"Не удалось получить последнюю версию: {e}")
            return QueryResult(error=str(e) or e.__class__.__name__)

        if not isinstance(tag, str) or not tag.strip():
            bot_logger.warning("Ответ о релизе не содержит tag_name")
            return QueryResult(error="tag_name missing")

        return QueryResult(value=self.normalize_tag(tag))
