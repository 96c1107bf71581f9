"""Build interest profiles from a user's stored memories using Claude."""

import json
import logging
from datetime import timedelta
from typing import Any

import anthropic
import httpx

from mindclone_news.config import settings
from mindclone_news.models import InterestProfile
from mindclone_news.storage import CurationDatabase

logger = logging.getLogger(__name__)

PROFILE_SYSTEM_PROMPT = """You analyze a user's memories to extract their interests and preferences.

Given a list of memories about a user, extract:
1. Topics of interest: specific subjects they care about (e.g. "artificial intelligence", "climate tech", "indie hacking")
2. Entities: companies, people, products or brands they follow or mention (e.g. "OpenAI", "Elon Musk", "iPhone")
3. Industries: broader industry categories (e.g. "technology", "healthcare", "finance")
4. Curiosities: recent questions, problems or things they are trying to learn (e.g. "how to scale databases")

Be specific and extract only concrete interests that are clearly expressed in the memories.
Avoid vague or generic terms.

Return ONLY a valid JSON object with this exact structure:
{"topics": [...], "entities": [...], "industries": [...], "curiosities": [...]}"""


class InterestProfileBuilder:
    """Turn Mem0 memories into a structured interest profile."""

    def __init__(
        self,
        db: CurationDatabase,
        mem0_api_key: str | None = None,
        anthropic_api_key: str | None = None,
        cache_ttl: timedelta | None = None,
    ):
        mem0_api_key = mem0_api_key or settings.mem0_api_key
        anthropic_api_key = anthropic_api_key or settings.anthropic_api_key
        if not mem0_api_key:
            raise ValueError("MEM0_API_KEY is required for building interest profiles")
        if not anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY is required for building interest profiles")

        self.db = db
        self.mem0_api_key = mem0_api_key
        self.mem0_base_url = settings.mem0_base_url.rstrip("/")
        self.client = anthropic.AsyncAnthropic(api_key=anthropic_api_key)
        self.model = settings.claude_model
        self.cache_ttl = cache_ttl or timedelta(hours=settings.profile_cache_ttl_hours)

    async def build(self, user_id: str) -> InterestProfile:
        """Build (or load from cache) a user's interest profile.

        Args:
            user_id: User to build the profile for

        Returns:
            Interest profile, empty if the user has no memories
        """
        cached = self.db.get_cached_profile(user_id, self.cache_ttl)
        if cached is not None:
            logger.info(f"Using cached profile for {user_id}")
            return cached

        memories = await self.fetch_memories(user_id)
        if not memories:
            logger.info(f"No memories found for {user_id}")
            return InterestProfile()

        logger.info(f"Found {len(memories)} memories for {user_id}")
        profile = await self.extract_profile(memories)

        self.db.cache_profile(user_id, profile)
        logger.info(
            f"Built profile for {user_id}: {len(profile.topics)} topics, "
            f"{len(profile.entities)} entities"
        )
        return profile

    async def fetch_memories(self, user_id: str) -> list[str]:
        """Fetch all memory texts stored for a user in Mem0."""
        async with httpx.AsyncClient(
            base_url=self.mem0_base_url,
            timeout=settings.search_timeout,
            headers={"Authorization": f"Token {self.mem0_api_key}"},
        ) as client:
            response = await client.get("/v1/memories/", params={"user_id": user_id})
            response.raise_for_status()
            data = response.json()

        # Older API versions return a bare list
        entries = data.get("results", []) if isinstance(data, dict) else data
        return [e["memory"] for e in entries if isinstance(e, dict) and e.get("memory")]

    async def extract_profile(self, memories: list[str]) -> InterestProfile:
        """Ask Claude to extract an interest profile from memories."""
        memories_text = "\n\n".join(memories)
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=2000,
            temperature=0.3,
            system=PROFILE_SYSTEM_PROMPT,
            messages=[
                {
                    "role": "user",
                    "content": f"Analyze these memories and extract the user's interests:\n\n{memories_text}",
                }
            ],
        )
        return self._parse_profile_response(response.content[0].text)

    def _parse_profile_response(self, response: str) -> InterestProfile:
        """Parse Claude's JSON profile.

        Args:
            response: Raw response text from Claude

        Returns:
            Validated interest profile

        Raises:
            ValueError: If the response is not a JSON object
        """
        response = response.strip()

        # Handle potential markdown code blocks
        if response.startswith("```"):
            lines = response.split("\n")
            response = "\n".join(lines[1:-1])

        try:
            data: Any = json.loads(response)
        except json.JSONDecodeError as e:
            logger.debug(f"Response was: {response[:500]}")
            raise ValueError(f"Invalid JSON profile from Claude: {e}") from e

        if not isinstance(data, dict):
            raise ValueError("Claude profile response is not a JSON object")

        return InterestProfile.model_validate(data)
