"""Site generator agent that asks an LLM for a complete Next.js file set."""

import json
import logging
import os
from typing import Any, Literal

from anthropic import Anthropic
import openai
from pydantic import BaseModel, ConfigDict

from sitesmith.agents.exceptions import AgentError, GenerationFailure
from sitesmith.exceptions import InputValidationError
from sitesmith.models import FileEntry, FileSet
from sitesmith.skills import SiteSkill, get_skill

logger = logging.getLogger(__name__)

# Constants
DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
MAX_API_TOKENS = 16384  # Full sites are long; 8k truncates multi-file output
MAX_FILES_PER_SITE = 40
MAX_PREVIOUS_FILE_CHARS = 6000  # Per-file cap when echoing a failed attempt back
TOOL_NAME = "write_site_files"


class GenerationContext(BaseModel):
    """Corrective context for a fix attempt: the last file set and why it failed."""

    model_config = ConfigDict(frozen=True)

    previous_files: FileSet
    error_excerpt: str


class SiteGenerator:
    """Generates website file sets via Claude (or OpenAI) tool use."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        llm_provider: str = "auto",
        llm_fallback_provider: str | None = None,
        allow_fallback: bool = False,
        openai_api_key: str | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            api_key: Anthropic API key. Falls back to ANTHROPIC_API_KEY env var.
            model: Model ID to use for generation.
            llm_provider: "anthropic", "openai", or "auto".
            llm_fallback_provider: Provider tried when the primary call fails.
            allow_fallback: Whether the fallback provider may be used at all.
            openai_api_key: OpenAI API key. Falls back to OPENAI_API_KEY env var.

        Raises:
            AgentError: If no API key is found for either provider.
        """
        self.model: str = model
        self.api_key: str | None = api_key or os.getenv("ANTHROPIC_API_KEY")
        self.openai_api_key: str | None = openai_api_key or os.getenv("OPENAI_API_KEY")
        self.llm_provider: Literal["anthropic", "openai", "auto"] = "auto"
        self.llm_fallback_provider: str | None = None
        self.allow_fallback: bool = False
        self._anthropic_client: Anthropic | None = None
        self._openai_client: openai.OpenAI | None = None

        if self.api_key:
            self._anthropic_client = Anthropic(api_key=self.api_key)
        if self.openai_api_key:
            self._openai_client = openai.OpenAI(api_key=self.openai_api_key)

        if not (self._anthropic_client or self._openai_client):
            raise AgentError(
                "No Anthropic or OpenAI API key found. "
                "Provide via parameter, ANTHROPIC_API_KEY, or OPENAI_API_KEY env vars."
            )
        self.set_provider_config(
            llm_provider=llm_provider,
            llm_fallback_provider=llm_fallback_provider,
            allow_fallback=allow_fallback,
        )

    def _normalize_provider(self, value: str) -> Literal["anthropic", "openai", "auto"]:
        if value not in {"auto", "anthropic", "openai"}:
            raise AgentError(f"Unsupported provider: {value}")
        return value

    def set_provider_config(
        self,
        llm_provider: str = "auto",
        llm_fallback_provider: str | None = None,
        allow_fallback: bool = False,
    ) -> None:
        self.llm_provider = self._normalize_provider(llm_provider)
        self.llm_fallback_provider = (
            self._normalize_provider(llm_fallback_provider)
            if llm_fallback_provider
            else None
        )
        self.allow_fallback = bool(allow_fallback)

        if self.llm_provider == "anthropic" and self._anthropic_client is None:
            raise AgentError("No Anthropic API key found for provider 'anthropic'.")
        if self.llm_provider == "openai" and self._openai_client is None:
            raise AgentError("No OpenAI API key found for provider 'openai'.")
        if self.allow_fallback and self.llm_fallback_provider:
            if self.llm_fallback_provider == "anthropic" and self._anthropic_client is None:
                raise AgentError(
                    "Fallback provider requested as anthropic but ANTHROPIC_API_KEY is not set."
                )
            if self.llm_fallback_provider == "openai" and self._openai_client is None:
                raise AgentError(
                    "Fallback provider requested as openai but OPENAI_API_KEY is not set."
                )

    def _primary_provider(self) -> Literal["anthropic", "openai"]:
        if self.llm_provider == "auto":
            if self._anthropic_client is not None:
                return "anthropic"
            return "openai"
        return self.llm_provider

    def _resolve_model(self, provider: str) -> str:
        if provider == "openai" and self.model.startswith("claude-"):
            return "gpt-4o"
        return self.model

    def _provider_chain(self) -> list[str]:
        chain: list[str] = [self._primary_provider()]
        if self.allow_fallback and self.llm_fallback_provider:
            if self.llm_fallback_provider != chain[0]:
                chain.append(self.llm_fallback_provider)
        return chain

    def generate(
        self,
        prompt: str,
        context: GenerationContext | None = None,
        skill: str | SiteSkill | None = None,
    ) -> FileSet:
        """Generate a complete file set for ``prompt``.

        When ``context`` is given, the previous file set and its build error
        are included so the model returns a corrected full file set rather
        than a patch.

        Args:
            prompt: The user's description of the site.
            context: Corrective context from a failed build, if any.
            skill: Skill name or instance; defaults to the default skill.

        Returns:
            FileSet containing every required file of the skill.

        Raises:
            GenerationFailure: If the LLM call fails or its output is unusable.
            InputValidationError: If the prompt is empty or the skill unknown.
        """
        if not prompt or not prompt.strip():
            raise InputValidationError("Prompt must not be empty")
        site_skill = skill if isinstance(skill, SiteSkill) else get_skill(skill)

        system = self._build_system_prompt(site_skill)
        user_message = self._build_user_message(prompt.strip(), context)
        files_data = self._call_llm(system, user_message)
        return self._to_file_set(files_data, site_skill)

    def _build_system_prompt(self, skill: SiteSkill) -> str:
        required = "\n".join(f"- {path}" for path in skill.required_files)
        extras = (
            "Additional files are allowed when the design needs them."
            if skill.allow_extra_files
            else "Return exactly these files, no extras."
        )
        return (
            f"{skill.get_system_prompt()}\n\n---\n\n"
            f"Return the site by calling the {TOOL_NAME} tool.\n\n"
            f"Required files (every one must be present):\n{required}\n\n"
            f"{extras}\n\n"
            "All file contents must be complete and buildable with `npm run build`. "
            'No placeholder comments like "// add your code here".'
        )

    def _build_user_message(self, prompt: str, context: GenerationContext | None) -> str:
        message = f"Build a Next.js website for: {prompt}"
        if context is None:
            return message

        previous = ""
        for entry in context.previous_files.files:
            if entry.encoding != "utf8":
                continue
            content = entry.content
            if len(content) > MAX_PREVIOUS_FILE_CHARS:
                content = content[:MAX_PREVIOUS_FILE_CHARS] + "\n... (truncated)"
            previous += f"\n### {entry.path}\n```\n{content}\n```\n"

        return (
            f"{message}\n\n"
            "A previous attempt failed to build. Fix the error and return the "
            "complete corrected file set, not only the changed files.\n\n"
            f"Build error:\n```\n{context.error_excerpt}\n```\n\n"
            f"Previous files:{previous}"
        )

    def _call_llm(self, system: str, user_message: str) -> list[dict[str, Any]]:
        providers = self._provider_chain()
        tool_schema = self._get_tool_schema()
        last_error: Exception | None = None

        for index, provider in enumerate(providers):
            try:
                if provider == "anthropic":
                    response = self._anthropic_client.messages.create(
                        model=self._resolve_model("anthropic"),
                        max_tokens=MAX_API_TOKENS,
                        system=system,
                        tools=[tool_schema],
                        tool_choice={"type": "tool", "name": TOOL_NAME},
                        messages=[{"role": "user", "content": user_message}],
                    )
                    return self._parse_anthropic_payload(response)

                response = self._openai_client.chat.completions.create(
                    model=self._resolve_model("openai"),
                    max_tokens=MAX_API_TOKENS,
                    tools=[self._get_openai_tool_schema(tool_schema)],
                    tool_choice={"type": "function", "function": {"name": TOOL_NAME}},
                    messages=[
                        {"role": "system", "content": system},
                        {"role": "user", "content": user_message},
                    ],
                )
                return self._parse_openai_payload(response)
            except GenerationFailure:
                raise
            except Exception as error:
                last_error = error
                if index < len(providers) - 1:
                    logger.warning(
                        "Generation via %s failed (%s); falling back to %s",
                        provider,
                        error,
                        providers[index + 1],
                    )

        raise GenerationFailure(f"LLM call failed: {last_error}") from last_error

    def _get_tool_schema(self) -> dict[str, Any]:
        return {
            "name": TOOL_NAME,
            "description": "Write the complete set of files for the website",
            "input_schema": {
                "type": "object",
                "properties": {
                    "files": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "path": {
                                    "type": "string",
                                    "description": "Relative path from repo root",
                                },
                                "content": {
                                    "type": "string",
                                    "description": "Complete file content",
                                },
                            },
                            "required": ["path", "content"],
                        },
                    }
                },
                "required": ["files"],
            },
        }

    def _get_openai_tool_schema(self, schema: dict[str, Any]) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": schema["name"],
                "description": schema.get("description", ""),
                "parameters": schema.get("input_schema", {}),
            },
        }

    def _parse_anthropic_payload(self, response: Any) -> list[dict[str, Any]]:
        for block in response.content:
            if block.type == "tool_use" and block.name == TOOL_NAME:
                return block.input.get("files", [])
        raise GenerationFailure("No tool_use block found in Claude response")

    def _parse_openai_payload(self, response: Any) -> list[dict[str, Any]]:
        message = response.choices[0].message
        tool_calls = getattr(message, "tool_calls", None)
        if not tool_calls:
            raise GenerationFailure("No tool call found in OpenAI response")
        try:
            args = json.loads(tool_calls[0].function.arguments or "{}")
        except json.JSONDecodeError as e:
            raise GenerationFailure(f"OpenAI tool arguments were not valid JSON: {e}") from e
        if not isinstance(args, dict):
            raise GenerationFailure("OpenAI tool arguments were not a JSON object")
        return args.get("files", [])

    def _to_file_set(self, files_data: list[dict[str, Any]], skill: SiteSkill) -> FileSet:
        """Validate raw tool output against the skill's file contract.

        Raises:
            GenerationFailure: On empty, malformed, incomplete or unexpected output.
        """
        if not files_data:
            raise GenerationFailure("LLM returned no files")
        if len(files_data) > MAX_FILES_PER_SITE:
            raise GenerationFailure(
                f"Too many files returned ({len(files_data)} > {MAX_FILES_PER_SITE})"
            )

        try:
            file_set = FileSet(
                files=[
                    FileEntry(path=item["path"], content=item["content"])
                    for item in files_data
                ]
            ).normalized()
        except (KeyError, TypeError, ValueError, InputValidationError) as e:
            raise GenerationFailure(f"Malformed file entry in LLM output: {e}") from e

        paths = file_set.paths()
        missing = [path for path in skill.required_files if path not in paths]
        if missing:
            raise GenerationFailure(
                f"LLM output is missing required files: {', '.join(missing)}"
            )

        if not skill.allow_extra_files:
            extra = [path for path in paths if path not in skill.required_files]
            if extra:
                raise GenerationFailure(
                    f"LLM output contains unexpected files: {', '.join(extra)}"
                )

        return file_set
