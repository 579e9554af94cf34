"""
City/state to zipcode lookup via an OpenAI-compatible chat endpoint.

The model is asked for a single zipcode; anything that is not exactly five
digits is treated as a failed lookup.
"""

import asyncio
import functools
import re
from typing import Optional

import requests
from loguru import logger

from rentscout.config import Settings
from rentscout.errors import ZipcodeResolutionError

ZIP_RE = re.compile(r"^\d{5}$")

SYSTEM_PROMPT = (
    "You are a helpful assistant that provides zipcodes for US cities. "
    "Only respond with the zipcode number, nothing else."
)
USER_PROMPT = "What is the main zipcode for {city}, {state}? Only respond with the zipcode number."

RESOLUTION_FAILED_MESSAGE = (
    "Could not determine a valid zipcode for the specified city and state. "
    "Please try a different city or enter a zipcode directly."
)


class ZipcodeResolver:
    def __init__(self, settings: Settings, session: Optional[requests.Session] = None, timeout: int = 30):
        self.settings = settings
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Connection": "keep-alive"})
        if settings.zipcode_llm_api_key:
            self.session.headers.update({"Authorization": f"Bearer {settings.zipcode_llm_api_key}"})

    def resolve(self, city: str, state: str) -> str:
        """
        Main zipcode for ``city, state``.

        Raises ZipcodeResolutionError when the endpoint is unreachable or the
        answer is not a five-digit zipcode.
        """
        city = (city or "").strip()
        state = (state or "").strip()
        if not city or not state:
            raise ZipcodeResolutionError("City and state are required")

        payload = {
            "model": self.settings.zipcode_llm_model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": USER_PROMPT.format(city=city, state=state)},
            ],
            "max_tokens": 16,
            "temperature": 0.0,
        }

        try:
            response = self.session.post(self.settings.zipcode_llm_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            content = response.json()["choices"][0]["message"]["content"]
        except requests.exceptions.RequestException as e:
            logger.warning("Zipcode lookup request failed for {}, {}: {}", city, state, e)
            raise ZipcodeResolutionError(
                "Failed to get zipcode. Please try again or enter a zipcode directly."
            ) from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning("Unexpected zipcode lookup response for {}, {}: {}", city, state, e)
            raise ZipcodeResolutionError(RESOLUTION_FAILED_MESSAGE) from e

        zipcode = (content or "").strip()
        if not ZIP_RE.match(zipcode):
            logger.warning("Zipcode lookup for {}, {} returned {!r}", city, state, zipcode)
            raise ZipcodeResolutionError(RESOLUTION_FAILED_MESSAGE)

        logger.info("Resolved {}, {} -> {}", city, state, zipcode)
        return zipcode

    async def resolve_async(self, city: str, state: str) -> str:
        """``resolve`` on the default executor so the event loop is not blocked."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(self.resolve, city, state))
