"""
Generation gateway: sends a prompt to a text-generation service.

Single operation: generate(prompt) -> raw text. No streaming, no tool
calls, no automatic retries; callers that need a retry wrap the call.
"""

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from .config import GenerationConfig
from .errors import UpstreamError

logger = logging.getLogger(__name__)


class GenerationGateway(ABC):
    """Base class for text generation backends."""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: Fully rendered prompt

        Returns:
            Raw generated text

        Raises:
            UpstreamError: the call failed, timed out or returned nothing
        """


class LLMGateway(GenerationGateway):
    """LLM-based generation (Claude or OpenAI)."""

    def __init__(self, config: GenerationConfig, client=None):
        """Initialize with configuration; a prebuilt SDK client may be injected."""
        self.config = config

        if client is not None:
            self.client = client
        elif config.llm_provider == "claude":
            try:
                import anthropic
                self.client = anthropic.AsyncAnthropic(api_key=config.api_key or None)
            except ImportError:
                raise ImportError(
                    "anthropic package required for Claude. "
                    "Install with: pip install anthropic"
                )
        elif config.llm_provider == "openai":
            try:
                import openai
                self.client = openai.AsyncOpenAI(api_key=config.api_key or None)
            except ImportError:
                raise ImportError(
                    "openai package required for OpenAI. "
                    "Install with: pip install openai"
                )
        else:
            raise ValueError(f"Unsupported LLM provider: {config.llm_provider}")

    async def _call(self, prompt: str) -> Optional[str]:
        if self.config.llm_provider == "claude":
            response = await self.client.messages.create(
                model=self.config.llm_model,
                max_tokens=self.config.max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
            return "".join(
                block.text for block in response.content if getattr(block, "type", "text") == "text"
            )
        response = await self.client.chat.completions.create(
            model=self.config.llm_model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0.0,
            max_tokens=self.config.max_tokens,
        )
        return response.choices[0].message.content

    async def generate(self, prompt: str) -> str:
        """Generate text using the configured provider."""
        start_time = datetime.utcnow()
        try:
            text = await asyncio.wait_for(self._call(prompt), timeout=self.config.timeout)
        except asyncio.TimeoutError:
            raise UpstreamError(
                f"Generation timed out after {self.config.timeout}s",
                stage="generation",
                details={"provider": self.config.llm_provider},
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise UpstreamError(
                f"Generation call failed: {type(e).__name__}",
                stage="generation",
                details={"provider": self.config.llm_provider},
            ) from e

        if not text or not text.strip():
            raise UpstreamError(
                "No response from generation service",
                stage="generation",
                details={"provider": self.config.llm_provider},
            )

        elapsed_ms = (datetime.utcnow() - start_time).total_seconds() * 1000
        logger.debug(
            f"Generation complete: provider={self.config.llm_provider}, "
            f"model={self.config.llm_model}, generation_time_ms={elapsed_ms:.0f}"
        )
        return text


class MockGateway(GenerationGateway):
    """Mock generator for testing (deterministic heuristics, no API calls)."""

    FRAUD_KEYWORDS = ["cash", "stolen", "total loss", "no witness", "no receipt", "lost all", "urgent"]

    def __init__(self):
        self.prompts = []

    async def generate(self, prompt: str) -> str:
        """Answer fraud or verification prompts with plausible JSON."""
        self.prompts.append(prompt)
        if "fraudRiskScore" in prompt:
            payload = self._fraud(prompt)
        else:
            payload = self._verification(prompt)
        # Wrapped in a fence the way chat models usually answer
        return "```json\n" + json.dumps(payload, indent=2) + "\n```"

    def _line_value(self, prompt: str, label: str) -> str:
        match = re.search(rf"^- {re.escape(label)}: (.*)$", prompt, re.MULTILINE)
        return match.group(1).strip() if match else ""

    def _fraud(self, prompt: str) -> dict:
        description = self._line_value(prompt, "Description").lower()
        findings = []
        score = 20.0

        try:
            amount = float(self._line_value(prompt, "Amount").replace(",", ""))
        except ValueError:
            amount = 0.0
        if amount > 50000:
            score += 40
            findings.append(f"Very high claim amount ({amount:.2f})")
        elif amount > 10000:
            score += 25
            findings.append(f"High claim amount ({amount:.2f})")

        for keyword in self.FRAUD_KEYWORDS:
            if keyword in description:
                score += 12
                findings.append(f"Description mentions '{keyword}'")

        if len(description) < 20:
            score += 10
            findings.append("Incident description is very brief")

        score = min(score, 100.0)
        if not findings:
            findings.append("No common fraud indicators found")

        level = "LOW" if score < 40 else "HIGH" if score > 70 else "MEDIUM"
        recommendation = {"LOW": "APPROVE", "MEDIUM": "REVIEW", "HIGH": "REJECT"}[level]
        return {
            "fraudRiskScore": score,
            "riskLevel": level,
            "keyFindings": findings,
            "recommendation": recommendation,
        }

    def _verification(self, prompt: str) -> dict:
        form_part, _, rest = prompt.partition("text content:")
        document_text = rest.split("Respond with ONLY", 1)[0].strip().lower()
        values = [
            line.split(":", 1)[1].strip().lower()
            for line in form_part.splitlines()
            if line.startswith("- ") and ":" in line
        ]
        values = [v for v in values if v and v != "not provided"]

        if not document_text or document_text == "(no text extracted)":
            return {
                "isValid": False,
                "confidence": 20,
                "findings": ["No readable text in document"],
                "matchScore": 0,
            }

        matched = [v for v in values if v in document_text]
        match_score = round(100 * len(matched) / len(values)) if values else 0
        findings = [f"Found '{v}' in document" for v in matched]
        missing = [v for v in values if v not in matched]
        findings.extend(f"Could not find '{v}' in document" for v in missing)
        return {
            "isValid": match_score >= 50,
            "confidence": 50 + match_score // 2,
            "findings": findings,
            "matchScore": match_score,
        }


def create_gateway(config: Optional[GenerationConfig] = None) -> GenerationGateway:
    """Factory function to create the appropriate gateway."""
    if config is None:
        config = GenerationConfig.from_env()

    if config.llm_provider == "mock":
        return MockGateway()
    return LLMGateway(config)
