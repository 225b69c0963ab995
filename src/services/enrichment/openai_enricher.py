"""OpenAI-compatible profile enricher.

Two calls per profile:
1. Chat completion turning the profile into a behavioural fingerprint:
   12-15 lowercase hyphenated keyword pairs, comma separated.
2. Embedding of that summary.

Derived fields written back: ``{"summary": str, "embeddings": list[float]}``.
"""

import asyncio
from typing import Any, Dict, List

import aiohttp
import structlog

from src.models.config import EnrichmentSettings
from src.services.enrichment.base import Enricher
from src.utils.exceptions import EnrichmentError

logger = structlog.get_logger()


SYSTEM_PROMPT = (
    "You are an expert profile analyzer that returns structured behavioral "
    "summaries. Return only the comma-separated keyword pairs, nothing else."
)

ANALYSIS_PROMPT = """You analyze user behaviour on decentralized social platforms such as Farcaster.
Produce a behavioural fingerprint: 12-15 lowercase hyphenated keyword pairs
that capture the user's interests, values, expertise and social role.

Consider what the user builds (protocols, DAOs, apps), what they discuss or
support, which communities they belong to or lead, influence versus
exploration (followers vs following), and recurring themes in their posts.

Examples of the expected format: solana-builder, dao-member, nft-collector,
base-enthusiast, open-source-champion, ai-content-curator."""


def build_profile_prompt(profile: Dict[str, Any], max_casts: int) -> str:
    """Render the user message for one profile."""
    channels = profile.get("channels") or []
    channel_names = ", ".join(
        c.get("name") or "" for c in channels if isinstance(c, dict) and c.get("name")
    )

    casts = (profile.get("casts") or [])[:max_casts]
    cast_lines = "\n".join(
        f"- {c.get('text', '')}" for c in casts if isinstance(c, dict)
    )

    return (
        f"{ANALYSIS_PROMPT}\n\n"
        "Analyze this user profile:\n\n"
        f"Username: {profile.get('user_name') or 'Unknown'}\n"
        f"Bio: {profile.get('bio') or 'No bio provided'}\n"
        f"Follower count: {profile.get('follower_count', 0)}\n"
        f"Following count: {profile.get('following_count', 0)}\n"
        f"Channels: {channel_names or 'None'}\n\n"
        f"Recent posts (limited to first {max_casts}):\n"
        f"{cast_lines or 'No posts available'}\n\n"
        "Return only a comma-separated list of 12-15 meaningful keyword pairs "
        "in lowercase-hyphenated format."
    )


class OpenAIEnricher(Enricher):
    """Summary + embedding through the OpenAI REST API"""

    def __init__(self, settings: EnrichmentSettings):
        self.settings = settings
        self.base_url = settings.base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=settings.request_timeout_seconds)

    @property
    def name(self) -> str:
        return "openai"

    async def enrich(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        summary = await self.summarize(payload)
        embedding = await self.embed(summary)
        return {"summary": summary, "embeddings": embedding}

    async def summarize(self, profile: Dict[str, Any]) -> str:
        body = {
            "model": self.settings.summary_model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": build_profile_prompt(profile, self.settings.max_casts),
                },
            ],
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_tokens,
        }
        data = await self._post("chat/completions", body)

        try:
            summary = (data["choices"][0]["message"]["content"] or "").strip()
        except (KeyError, IndexError, TypeError):
            summary = ""

        if not summary:
            raise EnrichmentError("No summary generated")
        return summary

    async def embed(self, text: str) -> List[float]:
        body = {
            "model": self.settings.embedding_model,
            "input": text,
            "encoding_format": "float",
        }
        data = await self._post("embeddings", body)

        try:
            embedding = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError):
            embedding = None

        if not embedding:
            raise EnrichmentError("Invalid embedding response")
        return embedding

    async def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/{path}"
        headers = {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(url, json=body, headers=headers) as response:
                    if response.status != 200:
                        text = await response.text()
                        logger.error(
                            "enrichment_api_error",
                            path=path,
                            status=response.status,
                            body=text[:200],
                        )
                        raise EnrichmentError(
                            f"{path} request failed: {response.status}"
                        )
                    return await response.json()

        except asyncio.TimeoutError:
            raise EnrichmentError(f"{path} request timed out")
        except aiohttp.ClientError as e:
            raise EnrichmentError(f"{path} request failed: {e}")
